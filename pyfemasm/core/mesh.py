import numpy as np
from typing import List, Sequence, Union

from pyfemasm.core.topology import Node
from pyfemasm.fem.reference import get_reference


class Mesh:
    """
    Isoparametric Lagrange mesh of a single element type.

    A ``Mesh`` is the finite element *space* consumed by the assemblers and the
    error estimator: it knows how many elements there are, which global nodes
    each element touches (in the local order of the reference element) and
    where those nodes sit in physical space. Geometry and solution share the
    same Lagrange basis, so an element of polynomial order ``p`` is mapped by
    its own ``p``-order shape functions.

    The local node order of each element must match the reference element
    (lexicographic for quads, row-by-row for triangles). The generators in
    :mod:`pyfemasm.utils.meshgen` produce connectivity in that order.
    """
    _NODES_PER_ELEMENT = {
        'tri':  lambda p: (p + 1) * (p + 2) // 2,
        'quad': lambda p: (p + 1) ** 2,
    }

    def __init__(self,
                 nodes: Union[List[Node], np.ndarray],
                 element_connectivity: np.ndarray,
                 *,
                 element_type: str = 'tri',
                 poly_order: int = 1):
        if element_type not in self._NODES_PER_ELEMENT:
            raise KeyError(element_type)
        if poly_order < 1:
            raise ValueError("Polynomial order must be a positive integer.")

        self.element_type = element_type
        self.poly_order = poly_order
        self.spatial_dim = 2
        self.reference_dim = 2

        if len(nodes) and isinstance(nodes[0], Node):
            self.nodes_list: List[Node] = list(nodes)
            self.nodes_x_y_pos = np.array([[n.x, n.y] for n in self.nodes_list], dtype=float)
        else:
            self.nodes_x_y_pos = np.asarray(nodes, dtype=float).reshape(-1, 2)
            self.nodes_list = [Node(i, x, y) for i, (x, y) in enumerate(self.nodes_x_y_pos)]

        conn = np.asarray(element_connectivity, dtype=np.int64)
        if conn.size == 0:
            conn = conn.reshape(0, self._NODES_PER_ELEMENT[element_type](poly_order))
        expected = self._NODES_PER_ELEMENT[element_type](poly_order)
        if conn.ndim != 2 or conn.shape[1] != expected:
            raise ValueError(f"{element_type} elements of order {poly_order} need {expected} nodes, "
                             f"got connectivity of shape {conn.shape}.")
        if conn.size and (conn.min() < 0 or conn.max() >= len(self.nodes_x_y_pos)):
            raise ValueError("Element connectivity references nodes outside the node list.")
        self.elements_connectivity = conn
        self.n_elements = len(conn)

    def __repr__(self):
        return (f"Mesh(element_type='{self.element_type}', poly_order={self.poly_order}, "
                f"n_nodes={self.num_nodes()}, n_elements={self.n_elements})")

    # --- Space interface ---

    def num_elements(self) -> int:
        return self.n_elements

    def num_nodes(self) -> int:
        return len(self.nodes_x_y_pos)

    def element_node_count(self, elem_id: int) -> int:
        return self.elements_connectivity.shape[1]

    def element_nodes(self, elem_id: int) -> np.ndarray:
        """Global node indices of an element in reference-element order."""
        return self.elements_connectivity[elem_id]

    def element_vertices(self, elem_id: int) -> np.ndarray:
        """Physical coordinates ``(n_loc, 2)`` of the element's nodes."""
        return self.nodes_x_y_pos[self.elements_connectivity[elem_id]]

    def reference_element(self, elem_id: int):
        return get_reference(self.element_type, self.poly_order)

    # --- Convenience ---

    def nodes_with_tag(self, name: str) -> np.ndarray:
        """Indices of nodes carrying the tag ``name`` (as set by the mesh generators)."""
        return np.array([n.id for n in self.nodes_list if n.has_tag(name)], dtype=np.int64)

    def boundary_nodes(self) -> np.ndarray:
        tags = ("boundary_left", "boundary_right", "boundary_bottom", "boundary_top")
        ids = {n.id for n in self.nodes_list for t in tags if n.has_tag(t)}
        return np.array(sorted(ids), dtype=np.int64)

    def areas(self) -> np.ndarray:
        """Shoelace area of each element, computed from its corner polygon."""
        corners = self._corner_local_indices()
        out = np.empty(self.n_elements)
        for eid in range(self.n_elements):
            xy = self.element_vertices(eid)[corners]
            x, y = xy[:, 0], xy[:, 1]
            out[eid] = 0.5 * abs(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1)))
        return out

    def _corner_local_indices(self) -> Sequence[int]:
        p = self.poly_order
        if self.element_type == 'quad':
            # lexicographic: eta outer, xi inner
            return [0, p, (p + 1) ** 2 - 1, p * (p + 1)]
        # tri rows: first row holds p+1 nodes, last node is the apex
        return [0, p, (p + 1) * (p + 2) // 2 - 1]
