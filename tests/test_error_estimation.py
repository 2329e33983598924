import numpy as np
import pytest
from pyfemasm.error_estimation import (estimate_L2_error, estimate_L2_error_squared, estimate_element_L2_error,
                                       estimate_element_L2_error_squared, evaluate_u_h)
from pyfemasm.fem.transform import ElementView
from pyfemasm.integration.quadrature import UniformQuadratureTable, volume
from pyfemasm.utils.meshgen import create_unit_square_uniform_quad_mesh, create_unit_square_uniform_tri_mesh


def _table(mesh, order=4):
    return UniformQuadratureTable(*volume(mesh.element_type, order))

@pytest.mark.parametrize("make_mesh", [create_unit_square_uniform_quad_mesh, create_unit_square_uniform_tri_mesh])
def test_interpolant_of_affine_field_is_exact(make_mesh):
    mesh = make_mesh(3)
    u = lambda x: 0.5 - x[0] + 4.0 * x[1]
    u_h = np.array([u(p) for p in mesh.nodes_x_y_pos])
    assert estimate_L2_error_squared(mesh, u, u_h, _table(mesh)) < 1e-24

def test_zero_field_against_one():
    mesh = create_unit_square_uniform_quad_mesh(2)
    err2 = estimate_L2_error_squared(mesh, lambda x: 1.0, np.zeros(mesh.num_nodes()), _table(mesh))
    assert np.isclose(err2, 1.0)
    assert np.isclose(estimate_L2_error(mesh, lambda x: 2.0, np.zeros(mesh.num_nodes()), _table(mesh)), 2.0)

def test_vector_valued_field():
    mesh = create_unit_square_uniform_tri_mesh(2, poly_order=2)
    xy = mesh.nodes_x_y_pos
    # quadratic field, exactly representable in P2
    u = lambda x: np.array([x[0]**2, x[0]*x[1] - 1.0])
    u_h = np.column_stack([xy[:, 0]**2, xy[:, 0]*xy[:, 1] - 1.0]).ravel()
    assert estimate_L2_error_squared(mesh, u, u_h, _table(mesh), solution_dim=2) < 1e-24
    # shifting one component by 3 everywhere gives error 3
    shifted = u_h.copy()
    shifted[1::2] += 3.0
    assert np.isclose(estimate_L2_error(mesh, u, shifted, _table(mesh), solution_dim=2), 3.0)

def test_error_decreases_under_refinement():
    u = lambda x: np.sin(np.pi * x[0]) * np.cos(np.pi * x[1])
    errors = []
    for n in (4, 8, 16):
        mesh = create_unit_square_uniform_quad_mesh(n)
        u_h = np.array([u(p) for p in mesh.nodes_x_y_pos])
        errors.append(estimate_L2_error(mesh, u, u_h, _table(mesh, 5)))
    rates = np.log2(np.array(errors[:-1]) / np.array(errors[1:]))
    # Q1 interpolation converges with order 2 in L2
    assert np.all(rates > 1.7)

def test_element_error_and_sum_agree():
    mesh = create_unit_square_uniform_quad_mesh(2)
    u = lambda x: x[0] * x[1]
    u_h = np.zeros(mesh.num_nodes())
    pts, wts = volume('quad', 3)
    total = 0.0
    for eid in range(mesh.num_elements()):
        el = ElementView(mesh, eid)
        e2 = estimate_element_L2_error_squared(el, u, u_h[mesh.element_nodes(eid)], wts, pts, np.zeros(4))
        assert np.isclose(estimate_element_L2_error(el, u, u_h[mesh.element_nodes(eid)], wts, pts, np.zeros(4)),
                          np.sqrt(e2))
        total += e2
    # ∫∫ x^2 y^2 = 1/9
    assert np.isclose(total, 1/9)
    assert np.isclose(total, estimate_L2_error_squared(mesh, u, u_h, UniformQuadratureTable(pts, wts)))

def test_preconditions():
    mesh = create_unit_square_uniform_quad_mesh(2)
    el = ElementView(mesh, 0)
    pts, wts = volume('quad', 2)
    with pytest.raises(AssertionError):
        estimate_element_L2_error_squared(el, lambda x: 0.0, np.zeros(4), wts, pts, np.zeros(3))
    with pytest.raises(AssertionError):
        evaluate_u_h(np.zeros(3), np.zeros(4), 1)
    with pytest.raises(ValueError):
        estimate_L2_error_squared(mesh, lambda x: 0.0, np.zeros(5), _table(mesh))

def test_evaluate_u_h_node_major():
    phi = np.array([0.25, 0.75])
    assert np.allclose(evaluate_u_h([1.0, 10.0, 3.0, 30.0], phi, 2), [2.5, 25.0])
