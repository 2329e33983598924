"""pyfemasm.assembly.local_assembler
Element-level quadrature kernels and the element assemblers that feed the
global assemblers.

Local dofs are node-major: local dof ``i*s + c`` is component ``c`` of local
node ``i``, and maps to global dof ``node*s + c``.
"""
from typing import Sequence

import numpy as np

from pyfemasm.fem.transform import ElementView, map_grad_scalar


# ---- gather / scatter --------------------------------------------------------
def expand_node_indices(nodes, solution_dim: int) -> np.ndarray:
    """Global dof indices of ``nodes`` expanded by ``solution_dim``."""
    nodes = np.asarray(nodes, dtype=np.int64)
    s = int(solution_dim)
    return (nodes[:, None] * s + np.arange(s, dtype=np.int64)[None, :]).ravel()


def gather_global_to_local(u_global, u_local, nodes, solution_dim: int) -> None:
    assert len(u_local) == solution_dim * len(nodes), \
        "u_local must have length solution_dim * len(nodes)"
    u_local[:] = np.asarray(u_global)[expand_node_indices(nodes, solution_dim)]


def distribute_local_to_global(local, out, nodes, solution_dim: int) -> None:
    assert len(local) == solution_dim * len(nodes), \
        "local vector must have length solution_dim * len(nodes)"
    np.add.at(out, expand_node_indices(nodes, solution_dim), local)


# ---- scratch buffers -----------------------------------------------------------
class QuadratureBuffer:
    """Holds one element's quadrature rule and per-point data."""

    def __init__(self):
        self._weights = np.zeros(0)
        self._points = np.zeros((0, 2))
        self._data: Sequence = ()

    def populate_element_quadrature_from_table(self, elem_id: int, qtable) -> None:
        self._weights, self._points, self._data = qtable.element_quadrature_with_data(elem_id)
        assert len(self._data) == len(self._weights), \
            "quadrature table returned data of the wrong length"

    def weights(self):
        return self._weights

    def points(self):
        return self._points

    def data(self):
        return self._data


class BasisFunctionBuffer:
    """Element node indices, basis values and reference gradients for one element."""

    def __init__(self):
        self._nodes = np.zeros(0, dtype=np.int64)
        self._basis = np.zeros(0)
        self._gradients = np.zeros((0, 2))

    def resize(self, num_nodes: int, reference_dim: int) -> None:
        if len(self._basis) != num_nodes or self._gradients.shape != (num_nodes, reference_dim):
            self._nodes = np.zeros(num_nodes, dtype=np.int64)
            self._basis = np.zeros(num_nodes)
            self._gradients = np.zeros((num_nodes, reference_dim))

    def populate_element_nodes_from_space(self, elem_id: int, space) -> None:
        nodes = space.element_nodes(elem_id)
        assert len(nodes) == len(self._nodes), "buffer not sized for this element"
        self._nodes[:] = nodes

    def element_nodes(self):
        return self._nodes

    def element_basis_values_mut(self):
        return self._basis

    def element_gradients_mut(self):
        return self._gradients


# ---- local kernels ---------------------------------------------------------------
def _check_data(weights, points, data):
    assert len(points) == len(weights), "quadrature points and weights differ in length"
    assert len(data) == len(weights), "quadrature data and weights differ in length"


def assemble_element_elliptic_matrix(element, operator, u_element, weights, points, data,
                                     gradient_buffer) -> np.ndarray:
    """
    Local matrix of an elliptic contraction, ``(n*s, n*s)``.

    Block ``(i, j)`` accumulates ``w |det J| contract(grad u, data, grad phi_i, grad phi_j)``
    over the quadrature points, in order.
    """
    n = element.num_nodes
    s = operator.solution_dim
    assert gradient_buffer.shape[0] == n, \
        f"Gradient buffer with {gradient_buffer.shape[0]} rows does not match element with {n} nodes"
    assert len(u_element) == n * s, "u_element must have length solution_dim * num_nodes"
    _check_data(weights, points, data)

    u_loc = np.asarray(u_element, dtype=float).reshape(n, s)
    A = np.zeros((n * s, n * s))
    for w, xi, d in zip(weights, points, data):
        J = element.reference_jacobian(xi)
        detJ = abs(np.linalg.det(J))
        element.populate_basis_gradients(gradient_buffer, xi)
        G = map_grad_scalar(J, gradient_buffer)       # (n, dim)
        grad_u = G.T @ u_loc                           # (dim, s)
        scale = w * detJ
        for i in range(n):
            for j in range(n):
                block = operator.contract(grad_u, d, G[i], G[j])
                A[i*s:(i+1)*s, j*s:(j+1)*s] += scale * np.reshape(block, (s, s))
    return A


def assemble_element_elliptic_vector(element, operator, u_element, weights, points, data,
                                     gradient_buffer) -> np.ndarray:
    """Local residual ``int g(grad u) : grad phi_i``, ``(n*s,)``."""
    n = element.num_nodes
    s = operator.solution_dim
    assert gradient_buffer.shape[0] == n, \
        f"Gradient buffer with {gradient_buffer.shape[0]} rows does not match element with {n} nodes"
    assert len(u_element) == n * s, "u_element must have length solution_dim * num_nodes"
    _check_data(weights, points, data)

    u_loc = np.asarray(u_element, dtype=float).reshape(n, s)
    b = np.zeros(n * s)
    for w, xi, d in zip(weights, points, data):
        J = element.reference_jacobian(xi)
        detJ = abs(np.linalg.det(J))
        element.populate_basis_gradients(gradient_buffer, xi)
        G = map_grad_scalar(J, gradient_buffer)
        flux = np.reshape(operator.compute_elliptic_term(G.T @ u_loc, d), (G.shape[1], s))
        b += (w * detJ) * (G @ flux).ravel()
    return b


def assemble_element_source_vector(element, source, weights, points, data,
                                   basis_buffer) -> np.ndarray:
    """Local load vector ``int f(x) phi_i``, ``(n*s,)``."""
    n = element.num_nodes
    s = source.solution_dim
    assert len(basis_buffer) == n, \
        f"Basis buffer of length {len(basis_buffer)} does not match element with {n} nodes"
    _check_data(weights, points, data)

    b = np.zeros(n * s)
    for w, xi, d in zip(weights, points, data):
        J = element.reference_jacobian(xi)
        detJ = abs(np.linalg.det(J))
        x = element.map_reference_coords(xi)
        element.populate_basis(basis_buffer, xi)
        f = np.reshape(source.evaluate(x, d), (s,))
        b += (w * detJ) * np.outer(basis_buffer, f).ravel()
    return b


# ---- element assemblers ------------------------------------------------------------
class _SpaceElementAssembler:
    """Connectivity queries shared by every element assembler over a space."""

    def __init__(self, space, solution_dim: int):
        self.space = space
        self.solution_dim = int(solution_dim)

    def num_elements(self) -> int:
        return self.space.num_elements()

    def num_nodes(self) -> int:
        return self.space.num_nodes()

    def element_node_count(self, elem_id: int) -> int:
        return self.space.element_node_count(elem_id)

    def populate_element_nodes(self, out, elem_id: int) -> None:
        nodes = self.space.element_nodes(elem_id)
        assert len(out) == len(nodes), "output buffer does not match the element node count"
        out[:] = nodes

    def element_dofs(self, elem_id: int) -> np.ndarray:
        nodes = np.zeros(self.element_node_count(elem_id), dtype=np.int64)
        self.populate_element_nodes(nodes, elem_id)
        return expand_node_indices(nodes, self.solution_dim)

    def _prepare(self, elem_id, qtable):
        element = ElementView.from_space_and_element_index(self.space, elem_id)
        quadrature = QuadratureBuffer()
        quadrature.populate_element_quadrature_from_table(elem_id, qtable)
        basis = BasisFunctionBuffer()
        basis.resize(element.num_nodes, getattr(self.space, "reference_dim", 2))
        basis.populate_element_nodes_from_space(elem_id, self.space)
        return element, quadrature, basis


class ElementEllipticAssembler(_SpaceElementAssembler):
    """Space + elliptic operator + quadrature table + current solution ``u``."""

    def __init__(self, space, op, qtable, u):
        super().__init__(space, op.solution_dim)
        self.op = op
        self.qtable = qtable
        self.u = np.asarray(u, dtype=float)
        expected = space.num_nodes() * self.solution_dim
        if self.u.shape != (expected,):
            raise ValueError(f"u must have shape ({expected},), got {self.u.shape}")

    def _local_solution(self, basis):
        nodes = basis.element_nodes()
        u_element = np.zeros(len(nodes) * self.solution_dim)
        gather_global_to_local(self.u, u_element, nodes, self.solution_dim)
        return u_element

    def assemble_element_matrix(self, elem_id: int) -> np.ndarray:
        element, quadrature, basis = self._prepare(elem_id, self.qtable)
        return assemble_element_elliptic_matrix(
            element, self.op, self._local_solution(basis),
            quadrature.weights(), quadrature.points(), quadrature.data(),
            basis.element_gradients_mut())

    def assemble_element_vector(self, elem_id: int) -> np.ndarray:
        element, quadrature, basis = self._prepare(elem_id, self.qtable)
        return assemble_element_elliptic_vector(
            element, self.op, self._local_solution(basis),
            quadrature.weights(), quadrature.points(), quadrature.data(),
            basis.element_gradients_mut())


class ElementSourceAssembler(_SpaceElementAssembler):
    """Space + source function + quadrature table."""

    def __init__(self, space, source, qtable):
        super().__init__(space, source.solution_dim)
        self.source = source
        self.qtable = qtable

    def assemble_element_vector(self, elem_id: int) -> np.ndarray:
        element, quadrature, basis = self._prepare(elem_id, self.qtable)
        return assemble_element_source_vector(
            element, self.source,
            quadrature.weights(), quadrature.points(), quadrature.data(),
            basis.element_basis_values_mut())


class ElementSubsetAssembler:
    """
    Restricts another element assembler to a subset of its elements.

    Local element ``k`` of the subset is element ``element_ids[k]`` of the
    wrapped assembler; the global dof numbering is unchanged.
    """

    def __init__(self, inner, element_ids):
        self.inner = inner
        self.element_ids = np.asarray(element_ids, dtype=np.int64)
        self.solution_dim = inner.solution_dim

    def num_elements(self) -> int:
        return len(self.element_ids)

    def num_nodes(self) -> int:
        return self.inner.num_nodes()

    def element_node_count(self, elem_id: int) -> int:
        return self.inner.element_node_count(int(self.element_ids[elem_id]))

    def populate_element_nodes(self, out, elem_id: int) -> None:
        self.inner.populate_element_nodes(out, int(self.element_ids[elem_id]))

    def element_dofs(self, elem_id: int) -> np.ndarray:
        return self.inner.element_dofs(int(self.element_ids[elem_id]))

    def assemble_element_matrix(self, elem_id: int) -> np.ndarray:
        return self.inner.assemble_element_matrix(int(self.element_ids[elem_id]))

    def assemble_element_vector(self, elem_id: int) -> np.ndarray:
        return self.inner.assemble_element_vector(int(self.element_ids[elem_id]))
