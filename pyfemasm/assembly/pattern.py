"""pyfemasm.assembly.pattern
Immutable CSR sparsity patterns and their construction from element assemblers.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Iterator, List, Tuple

import numpy as np

from pyfemasm.assembly.errors import AssemblyError, SparsityPatternFormatError
from pyfemasm.assembly.kernels import element_pair_keys, find_in_lane

logger = logging.getLogger(__name__)


def _frozen(arr: np.ndarray) -> np.ndarray:
    arr = np.array(arr, dtype=np.int64, copy=True)
    arr.setflags(write=False)
    return arr


class SparsityPattern:
    """
    Compressed sparse row structure: the column indices of row ``i`` are
    ``minor_indices[major_offsets[i]:major_offsets[i+1]]``, strictly increasing.

    Instances never change after construction and may be shared freely across
    threads and across matrices.
    """
    __slots__ = ("_offsets", "_indices", "_minor_dim")

    def __init__(self, major_offsets, minor_indices, minor_dim: int):
        self._offsets = _frozen(major_offsets)
        self._indices = _frozen(minor_indices)
        self._minor_dim = int(minor_dim)

    @classmethod
    def from_offsets_and_indices(cls, major_dim: int, minor_dim: int, major_offsets, minor_indices):
        """Validating constructor; raises :class:`SparsityPatternFormatError` on bad input."""
        offsets = np.asarray(major_offsets, dtype=np.int64)
        indices = np.asarray(minor_indices, dtype=np.int64)
        if offsets.ndim != 1 or len(offsets) != major_dim + 1:
            raise SparsityPatternFormatError(f"Expected {major_dim + 1} offsets, got {offsets.shape}.")
        if offsets[0] != 0 or offsets[-1] != len(indices):
            raise SparsityPatternFormatError("Offsets must start at 0 and end at the number of indices.")
        if np.any(np.diff(offsets) < 0):
            raise SparsityPatternFormatError("Offsets must be non-decreasing.")
        if len(indices) and (indices.min() < 0 or indices.max() >= minor_dim):
            raise SparsityPatternFormatError(f"Minor indices must lie in [0, {minor_dim}).")
        for row in range(major_dim):
            lane = indices[offsets[row]:offsets[row + 1]]
            if np.any(np.diff(lane) <= 0):
                raise SparsityPatternFormatError(f"Row {row} is not strictly increasing.")
        return cls(offsets, indices, minor_dim)

    @classmethod
    def from_sorted_keys(cls, keys: np.ndarray, major_dim: int, minor_dim: int):
        """Build from sorted, unique ``row * minor_dim + col`` keys."""
        keys = np.asarray(keys, dtype=np.int64)
        rows = keys // max(minor_dim, 1)
        cols = keys - rows * minor_dim
        counts = np.bincount(rows, minlength=major_dim) if len(rows) else np.zeros(major_dim, dtype=np.int64)
        offsets = np.zeros(major_dim + 1, dtype=np.int64)
        np.cumsum(counts, out=offsets[1:])
        return cls(offsets, cols, minor_dim)

    def __repr__(self):
        return f"SparsityPattern(shape=({self.major_dim}, {self.minor_dim}), nnz={self.nnz})"

    def __eq__(self, other):
        if not isinstance(other, SparsityPattern):
            return NotImplemented
        return (self._minor_dim == other._minor_dim
                and np.array_equal(self._offsets, other._offsets)
                and np.array_equal(self._indices, other._indices))

    __hash__ = None

    @property
    def major_offsets(self) -> np.ndarray:
        return self._offsets

    @property
    def minor_indices(self) -> np.ndarray:
        return self._indices

    @property
    def major_dim(self) -> int:
        return len(self._offsets) - 1

    @property
    def minor_dim(self) -> int:
        return self._minor_dim

    @property
    def nnz(self) -> int:
        return len(self._indices)

    def lane(self, row: int) -> np.ndarray:
        return self._indices[self._offsets[row]:self._offsets[row + 1]]

    def find(self, row: int, col: int) -> int:
        """Position of ``(row, col)`` in the values array, or -1 if absent."""
        if not (0 <= row < self.major_dim):
            return -1
        return int(find_in_lane(self._indices, self._offsets[row], self._offsets[row + 1], col))

    def entries(self) -> Iterator[Tuple[int, int]]:
        for row in range(self.major_dim):
            for col in self.lane(row):
                yield row, int(col)


# ---- construction from element assemblers ------------------------------------
def element_global_dofs(element_assembler, elem_id: int) -> np.ndarray:
    """Expanded global dofs of one element, from the element-assembler connectivity contract."""
    s = element_assembler.solution_dim
    nodes = np.zeros(element_assembler.element_node_count(elem_id), dtype=np.int64)
    element_assembler.populate_element_nodes(nodes, elem_id)
    return (nodes[:, None] * s + np.arange(s, dtype=np.int64)[None, :]).ravel()


def _candidate_keys(element_assembler, elem_range, n_dofs: int) -> np.ndarray:
    chunks: List[np.ndarray] = []
    for eid in elem_range:
        dofs = element_global_dofs(element_assembler, eid)
        if len(dofs) == 0:
            continue
        if dofs.min() < 0 or dofs.max() >= n_dofs:
            raise AssemblyError(f"Element {eid} references global dofs outside [0, {n_dofs}).")
        chunks.append(element_pair_keys(dofs, n_dofs))
    if not chunks:
        return np.zeros(0, dtype=np.int64)
    return np.unique(np.concatenate(chunks))


def partition_range(n: int, n_parts: int) -> List[range]:
    """Split ``range(n)`` into at most ``n_parts`` contiguous, non-empty chunks."""
    n_parts = max(1, min(n_parts, n))
    bounds = np.linspace(0, n, n_parts + 1).astype(np.int64)
    return [range(int(a), int(b)) for a, b in zip(bounds[:-1], bounds[1:]) if b > a]


def build_pattern(element_assembler, num_workers: int = 1) -> SparsityPattern:
    """
    Sparsity pattern of all element couplings of ``element_assembler``.

    With ``num_workers > 1`` the element range is split into contiguous chunks,
    each reduced to sorted unique keys by a thread, and the chunks are merged
    by a final sort/unique pass. The result does not depend on the chunking.
    """
    n_dofs = element_assembler.num_nodes() * element_assembler.solution_dim
    n_elem = element_assembler.num_elements()
    if num_workers > 1 and n_elem > 1:
        parts = partition_range(n_elem, num_workers)
        with ThreadPoolExecutor(max_workers=num_workers) as executor:
            partials = list(executor.map(
                lambda r: _candidate_keys(element_assembler, r, n_dofs), parts))
        keys = np.unique(np.concatenate(partials)) if partials else np.zeros(0, dtype=np.int64)
    else:
        keys = _candidate_keys(element_assembler, range(n_elem), n_dofs)
    pattern = SparsityPattern.from_sorted_keys(keys, n_dofs, n_dofs)
    logger.debug(f"Built sparsity pattern {n_dofs}x{n_dofs} with nnz={pattern.nnz} "
                 f"from {n_elem} elements ({num_workers} workers).")
    return pattern
