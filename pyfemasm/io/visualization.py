"""pyfemasm.io.visualization"""
import numpy as np
import matplotlib.pyplot as plt
from matplotlib.collections import PolyCollection


def plot_mesh(mesh, *, solution_on_nodes=None, plot_nodes=True, show=True, ax=None):
    """
    Plots a 2D mesh of triangular or quadrilateral elements of any order.

    Args:
        mesh (Mesh): The mesh to plot. Element outlines use the corner nodes.
        solution_on_nodes (np.ndarray, optional): Nodal values used to color the
            elements by their corner average.
        plot_nodes (bool, optional): If True, plots all nodes as points.
        show (bool, optional): If True, calls plt.show() at the end.
        ax (matplotlib.axes.Axes, optional): An existing axes object to plot on.
    Returns:
        matplotlib.axes.Axes: The axes object containing the plot.
    """
    if ax is None:
        _, ax = plt.subplots(figsize=(8, 8))

    corners = mesh._corner_local_indices()
    polys = [mesh.element_vertices(eid)[corners] for eid in range(mesh.num_elements())]
    coll = PolyCollection(polys, edgecolors="black", linewidths=0.8)
    if solution_on_nodes is not None:
        vals = np.asarray(solution_on_nodes, dtype=float)
        conn = mesh.elements_connectivity[:, corners]
        coll.set_array(vals[conn].mean(axis=1))
        coll.set_cmap("viridis")
        ax.figure.colorbar(coll, ax=ax)
    else:
        coll.set_facecolor((0.9, 0.9, 0.9, 0.5))
    ax.add_collection(coll)

    if plot_nodes:
        xy = mesh.nodes_x_y_pos
        ax.plot(xy[:, 0], xy[:, 1], "k.", markersize=4)

    ax.autoscale_view()
    ax.set_aspect("equal")
    ax.set_title(f"{mesh.element_type} mesh, order {mesh.poly_order}, {mesh.num_elements()} elements")
    if show:
        plt.show()
    return ax


def plot_sparsity_pattern(pattern, *, markersize=2.0, show=True, ax=None):
    """Spy plot of a :class:`~pyfemasm.assembly.pattern.SparsityPattern` (or a CsrMatrix)."""
    pattern = getattr(pattern, "pattern", pattern)
    if ax is None:
        _, ax = plt.subplots(figsize=(6, 6))

    counts = np.diff(pattern.major_offsets)
    rows = np.repeat(np.arange(pattern.major_dim), counts)
    cols = np.asarray(pattern.minor_indices)
    ax.plot(cols, rows, "s", markersize=markersize, color="tab:blue")
    ax.set_xlim(-0.5, pattern.minor_dim - 0.5)
    ax.set_ylim(pattern.major_dim - 0.5, -0.5)
    ax.set_aspect("equal")
    ax.set_title(f"nnz = {pattern.nnz}")
    if show:
        plt.show()
    return ax
