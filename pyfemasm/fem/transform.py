"""pyfemasm.fem.transform
Reference → physical mapping for isoparametric elements.
"""
import numpy as np


def _ref_point(xi_eta):
    xi, eta = xi_eta
    return float(xi), float(eta)


class ElementView:
    """
    One element of a space, seen through its reference element.

    The view holds the element's node coordinates and its reference basis; it
    never copies data back into the space. Jacobians follow the convention
    ``J[i, j] = dx_i / dxi_j`` so that physical gradients of the basis are
    ``grad_ref @ inv(J)`` (row per basis function).
    """
    __slots__ = ("space", "elem_id", "ref", "vertices")

    def __init__(self, space, elem_id: int):
        self.space = space
        self.elem_id = elem_id
        self.ref = space.reference_element(elem_id)
        self.vertices = np.asarray(space.element_vertices(elem_id), dtype=float)

    @classmethod
    def from_space_and_element_index(cls, space, elem_id: int) -> "ElementView":
        return cls(space, elem_id)

    def __repr__(self):
        return f"ElementView(elem_id={self.elem_id}, num_nodes={self.num_nodes})"

    @property
    def num_nodes(self) -> int:
        return len(self.vertices)

    @property
    def geometry_dim(self) -> int:
        return self.vertices.shape[1]

    def map_reference_coords(self, xi_eta) -> np.ndarray:
        N = self.ref.shape(*_ref_point(xi_eta))
        return N @ self.vertices                       # (gdim,)

    def reference_jacobian(self, xi_eta) -> np.ndarray:
        dN = self.ref.grad(*_ref_point(xi_eta))        # (n_loc, rdim)
        return self.vertices.T @ dN                    # (gdim, rdim)

    def populate_basis(self, out: np.ndarray, xi_eta) -> None:
        """Write the basis values at ``xi_eta`` into ``out`` (length ``num_nodes``)."""
        assert len(out) == self.num_nodes, \
            f"Basis buffer of length {len(out)} does not match element with {self.num_nodes} nodes"
        out[:] = self.ref.shape(*_ref_point(xi_eta))

    def populate_basis_gradients(self, out: np.ndarray, xi_eta) -> None:
        """Write reference-coordinate gradients ``(num_nodes, rdim)`` into ``out``."""
        assert out.shape[0] == self.num_nodes, \
            f"Gradient buffer with {out.shape[0]} rows does not match element with {self.num_nodes} nodes"
        out[:] = self.ref.grad(*_ref_point(xi_eta))


def map_grad_scalar(J, grad_ref):
    """Push reference gradients ``(n, rdim)`` to physical gradients ``(n, gdim)``."""
    return grad_ref @ np.linalg.inv(J)
