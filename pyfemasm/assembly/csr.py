"""pyfemasm.assembly.csr"""
import numpy as np
import scipy.sparse as sp

from pyfemasm.assembly.pattern import SparsityPattern


class CsrMatrix:
    """
    Values laid out against a shared :class:`SparsityPattern`.

    The pattern is never copied; ``values`` is owned by the matrix.
    """

    def __init__(self, pattern: SparsityPattern, values=None):
        if values is None:
            values = np.zeros(pattern.nnz)
        values = np.asarray(values, dtype=float)
        if values.shape != (pattern.nnz,):
            raise ValueError(f"values must have shape ({pattern.nnz},), got {values.shape}")
        self.pattern = pattern
        self.values = values

    @classmethod
    def from_pattern_and_values(cls, pattern: SparsityPattern, values) -> "CsrMatrix":
        return cls(pattern, values)

    @classmethod
    def zeros(cls, pattern: SparsityPattern) -> "CsrMatrix":
        return cls(pattern, np.zeros(pattern.nnz))

    def __repr__(self):
        return f"CsrMatrix(shape={self.shape}, nnz={self.nnz})"

    @property
    def shape(self):
        return self.pattern.major_dim, self.pattern.minor_dim

    @property
    def nnz(self) -> int:
        return self.pattern.nnz

    def _position(self, row, col) -> int:
        pos = self.pattern.find(row, col)
        if pos < 0:
            raise KeyError(f"Entry ({row}, {col}) is not part of the sparsity pattern.")
        return pos

    def add_to_entry(self, row: int, col: int, value: float) -> None:
        self.values[self._position(row, col)] += value

    def get_entry(self, row: int, col: int) -> float:
        """Stored value at ``(row, col)``; structural zeros outside the pattern read as 0."""
        pos = self.pattern.find(row, col)
        return float(self.values[pos]) if pos >= 0 else 0.0

    def to_scipy(self) -> sp.csr_matrix:
        return sp.csr_matrix((self.values.copy(),
                              np.array(self.pattern.minor_indices),
                              np.array(self.pattern.major_offsets)),
                             shape=self.shape)

    def to_dense(self) -> np.ndarray:
        return self.to_scipy().toarray()

    def dot(self, x) -> np.ndarray:
        return self.to_scipy() @ np.asarray(x, dtype=float)

    __matmul__ = dot
