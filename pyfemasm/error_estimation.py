"""pyfemasm.error_estimation
L2 error of a discrete field against a reference function, integrated with
the same element/quadrature machinery as the assemblers.
"""
import logging
import math

import numpy as np

from pyfemasm.assembly.local_assembler import (BasisFunctionBuffer, QuadratureBuffer,
                                               gather_global_to_local)
from pyfemasm.fem.transform import ElementView

logger = logging.getLogger(__name__)


def evaluate_u_h(u_h_element, phi, solution_dim: int) -> np.ndarray:
    """
    Value of the discrete field at a point from local coefficients and basis values.

    ``u_h_element`` is node-major, so it is viewed as an ``(s, n)`` matrix with
    one column per node and applied to ``phi``.
    """
    u_h_element = np.asarray(u_h_element, dtype=float)
    phi = np.asarray(phi, dtype=float)
    n = len(phi)
    assert len(u_h_element) == solution_dim * n, \
        "u_h_element must have length solution_dim * len(phi)"
    return u_h_element.reshape(n, solution_dim).T @ phi


def estimate_element_L2_error_squared(element, u, u_h_element, weights, points, basis_buffer,
                                      solution_dim: int = 1) -> float:
    """
    Squared L2 error ``||u_h - u||^2`` on one element.

    ``basis_buffer`` must have exactly one entry per element node.
    """
    assert len(basis_buffer) == element.num_nodes, \
        f"Basis buffer of length {len(basis_buffer)} does not match element with {element.num_nodes} nodes"
    phi = basis_buffer
    result = 0.0
    for w, xi in zip(weights, points):
        x = element.map_reference_coords(xi)
        J = element.reference_jacobian(xi)
        element.populate_basis(phi, xi)
        u_h = evaluate_u_h(u_h_element, phi, solution_dim)
        u_at_x = np.reshape(u(x), (solution_dim,))
        error = u_h - u_at_x
        result += w * float(error @ error) * abs(np.linalg.det(J))
    return result


def estimate_element_L2_error(element, u, u_h_element, weights, points, basis_buffer,
                              solution_dim: int = 1) -> float:
    return math.sqrt(estimate_element_L2_error_squared(
        element, u, u_h_element, weights, points, basis_buffer, solution_dim))


def estimate_L2_error_squared(space, u, u_h, qtable, solution_dim: int = 1) -> float:
    """
    ``sum_e int_e |u_h - u|^2 dx`` over all elements of ``space``.

    ``u`` maps a physical point to a scalar or to a ``solution_dim`` vector;
    ``u_h`` holds ``space.num_nodes() * solution_dim`` node-major coefficients.
    """
    u_h = np.asarray(u_h, dtype=float)
    expected = space.num_nodes() * solution_dim
    if u_h.shape != (expected,):
        raise ValueError(f"u_h must have shape ({expected},), got {u_h.shape}")

    quadrature = QuadratureBuffer()
    basis = BasisFunctionBuffer()
    result = 0.0
    for eid in range(space.num_elements()):
        quadrature.populate_element_quadrature_from_table(eid, qtable)
        element = ElementView.from_space_and_element_index(space, eid)
        n = element.num_nodes
        basis.resize(n, getattr(space, "reference_dim", 2))
        basis.populate_element_nodes_from_space(eid, space)
        u_element = np.zeros(solution_dim * n)
        gather_global_to_local(u_h, u_element, basis.element_nodes(), solution_dim)

        result += estimate_element_L2_error_squared(
            element, u, u_element,
            quadrature.weights(), quadrature.points(),
            basis.element_basis_values_mut(), solution_dim)
    logger.debug(f"Squared L2 error over {space.num_elements()} elements: {result:.6e}")
    return result


def estimate_L2_error(space, u, u_h, qtable, solution_dim: int = 1) -> float:
    return math.sqrt(estimate_L2_error_squared(space, u, u_h, qtable, solution_dim))
