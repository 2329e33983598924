"""pyfemasm.utils.meshgen
Mesh generators for quick tests and examples.
"""
import numpy as np
import numba
from scipy.spatial import Delaunay
from typing import List, Optional, Tuple

from pyfemasm.core.mesh import Mesh
from pyfemasm.core.topology import Node

__all__ = ["delaunay_rectangle", "structured_quad", "structured_triangles",
           "create_unit_square_uniform_quad_mesh", "create_unit_square_uniform_tri_mesh"]


def _tagged_nodes(coords: np.ndarray, Lx: float, Ly: float,
                  offset: Optional[Tuple[float, float]] = None) -> List[Node]:
    ox, oy = offset if offset is not None else (0.0, 0.0)
    nodes: List[Node] = []
    for i, (x, y) in enumerate(coords):
        tags = []
        if np.isclose(x, ox): tags.append("boundary_left")
        if np.isclose(x, ox + Lx): tags.append("boundary_right")
        if np.isclose(y, oy): tags.append("boundary_bottom")
        if np.isclose(y, oy + Ly): tags.append("boundary_top")
        nodes.append(Node(id=i, x=float(x), y=float(y), tag=",".join(tags) or "interior"))
    return nodes


def delaunay_rectangle(length: float, height: float, nx: int = 10, ny: int = 10):
    """P1 triangles of the Delaunay triangulation of an ``nx``×``ny`` point grid."""
    x = np.linspace(0.0, length, nx)
    y = np.linspace(0.0, height, ny)
    X, Y = np.meshgrid(x, y)
    pts = np.column_stack([X.ravel(), Y.ravel()])
    tri = Delaunay(pts)
    elems = tri.simplices.copy().astype(np.int64)

    # make triangles CCW
    a, b, c = pts[elems[:, 0]], pts[elems[:, 1]], pts[elems[:, 2]]
    signed = (b[:, 0]-a[:, 0])*(c[:, 1]-a[:, 1]) - (b[:, 1]-a[:, 1])*(c[:, 0]-a[:, 0])
    cw = signed < 0
    elems[cw, 1], elems[cw, 2] = elems[cw, 2], elems[cw, 1].copy()
    return _tagged_nodes(pts, length, height), elems


def structured_quad(Lx: float, Ly: float, *, nx: int, ny: int, poly_order: int = 1,
                    offset: Optional[Tuple[float, float]] = None, numba_path=True):
    """
    Structured Qn quadrilaterals on ``[0, Lx] x [0, Ly]`` (shifted by ``offset``).

    Returns ``(nodes, elements)``: tagged ``Node`` objects and lexicographic
    element connectivity matching :func:`pyfemasm.fem.reference.quad_qn.quad_qn`.
    """
    if not isinstance(poly_order, (int, np.integer)) or poly_order < 1:
        raise ValueError("Polynomial order must be a positive integer.")
    if numba_path:
        coords, elements = _structured_qn_numba(float(Lx), float(Ly), nx, ny, poly_order)
    else:
        coords, elements = _structured_qn(Lx, Ly, nx, ny, poly_order)
    if offset is not None:
        coords = coords + np.asarray(offset, dtype=np.float64)[None, :]
    return _tagged_nodes(coords, Lx, Ly, offset), elements


@numba.jit(nopython=True, parallel=True, cache=True)
def _structured_qn_numba(Lx, Ly, nx, ny, order):
    num_global_nodes_x = order * nx + 1
    num_global_nodes_y = order * ny + 1
    nodes_coords = np.zeros((num_global_nodes_x * num_global_nodes_y, 2), dtype=np.float64)
    x_coords = np.linspace(0, Lx, num_global_nodes_x)
    y_coords = np.linspace(0, Ly, num_global_nodes_y)

    for j_glob in numba.prange(num_global_nodes_y):
        for i_glob in range(num_global_nodes_x):
            node_id = j_glob * num_global_nodes_x + i_glob
            nodes_coords[node_id, 0] = x_coords[i_glob]
            nodes_coords[node_id, 1] = y_coords[j_glob]

    nodes_per_edge_1d = order + 1
    elements = np.empty((nx * ny, nodes_per_edge_1d**2), dtype=np.int64)
    for el_idx in numba.prange(nx * ny):
        start_ix = order * (el_idx % nx)
        start_iy = order * (el_idx // nx)
        local_node_idx = 0
        for local_ny in range(nodes_per_edge_1d):
            for local_nx in range(nodes_per_edge_1d):
                elements[el_idx, local_node_idx] = (start_iy + local_ny) * num_global_nodes_x + (start_ix + local_nx)
                local_node_idx += 1
    return nodes_coords, elements


def _structured_qn(Lx: float, Ly: float, nx: int, ny: int, order: int):
    num_global_nodes_x = order * nx + 1
    num_global_nodes_y = order * ny + 1
    x_coords = np.linspace(0, Lx, num_global_nodes_x)
    y_coords = np.linspace(0, Ly, num_global_nodes_y)
    X, Y = np.meshgrid(x_coords, y_coords)           # row j = y index
    coords = np.column_stack([X.ravel(), Y.ravel()])

    get_node_id = lambda ix, iy: iy * num_global_nodes_x + ix
    elements = np.empty((nx * ny, (order + 1) ** 2), dtype=np.int64)
    for el_j in range(ny):
        for el_i in range(nx):
            eid = el_j * nx + el_i
            elements[eid] = [get_node_id(order * el_i + a, order * el_j + b)
                             for b in range(order + 1) for a in range(order + 1)]
    return coords, elements


def structured_triangles(Lx: float, Ly: float, *, nx_quads: int, ny_quads: int, poly_order: int = 1,
                         offset: Optional[Tuple[float, float]] = None):
    """
    Structured Pk triangles: each of ``nx_quads``×``ny_quads`` cells is split
    along its rising diagonal. Returns ``(nodes, elements)``.
    """
    order_k = poly_order
    if not isinstance(order_k, (int, np.integer)) or order_k < 1:
        raise ValueError("Polynomial order must be a positive integer.")

    num_fine_nodes_x = order_k * nx_quads + 1
    num_fine_nodes_y = order_k * ny_quads + 1
    X, Y = np.meshgrid(np.linspace(0, Lx, num_fine_nodes_x), np.linspace(0, Ly, num_fine_nodes_y))
    coords = np.column_stack([X.ravel(), Y.ravel()])

    num_nodes_per_elem = (order_k + 1) * (order_k + 2) // 2
    elements = np.empty((2 * nx_quads * ny_quads, num_nodes_per_elem), dtype=np.int64)
    get_node_id = lambda ix, iy: iy * num_fine_nodes_x + ix

    eid = 0
    for e_iy in range(ny_quads):
        for e_ix in range(nx_quads):
            v00 = (order_k * e_ix, order_k * e_iy)
            v10 = (order_k * (e_ix + 1), order_k * e_iy)
            v01 = (order_k * e_ix, order_k * (e_iy + 1))
            v11 = (order_k * (e_ix + 1), order_k * (e_iy + 1))
            for V0, V1, V2 in ((v00, v10, v11), (v00, v11, v01)):
                # steps along V0->V1 (xi) and V0->V2 (eta) on the fine lattice
                d1 = ((V1[0] - V0[0]) // order_k, (V1[1] - V0[1]) // order_k)
                d2 = ((V2[0] - V0[0]) // order_k, (V2[1] - V0[1]) // order_k)
                elements[eid] = [get_node_id(V0[0] + i * d1[0] + j * d2[0], V0[1] + i * d1[1] + j * d2[1])
                                 for j in range(order_k + 1) for i in range(order_k + 1 - j)]
                eid += 1

    if offset is not None:
        coords = coords + np.asarray(offset, dtype=np.float64)[None, :]
    return _tagged_nodes(coords, Lx, Ly, offset), elements


def create_unit_square_uniform_quad_mesh(cells_per_dim: int, poly_order: int = 1) -> Mesh:
    nodes, elements = structured_quad(1.0, 1.0, nx=cells_per_dim, ny=cells_per_dim, poly_order=poly_order)
    return Mesh(nodes, elements, element_type='quad', poly_order=poly_order)


def create_unit_square_uniform_tri_mesh(cells_per_dim: int, poly_order: int = 1) -> Mesh:
    nodes, elements = structured_triangles(1.0, 1.0, nx_quads=cells_per_dim, ny_quads=cells_per_dim,
                                           poly_order=poly_order)
    return Mesh(nodes, elements, element_type='tri', poly_order=poly_order)
