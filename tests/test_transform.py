import numpy as np
import pytest
from pyfemasm.core import Mesh
from pyfemasm.fem.transform import ElementView, map_grad_scalar
from pyfemasm.core.topology import Node
from pyfemasm.utils.meshgen import structured_quad

def test_reference_to_global_mapping():
    n1 = Node(0, 0,0)
    n2 = Node(1, 2,0)
    n3 = Node(2, 0,1)
    nodes=[n1,n2,n3]
    element_connectivity=np.array([[0,1,2]])
    mesh=Mesh(nodes,element_connectivity,element_type='tri')
    view = ElementView(mesh, 0)
    x = view.map_reference_coords((1/3,1/3))
    # centroid of the reference triangle maps to the physical centroid
    assert np.allclose(x, [2/3, 1/3])
    # detJ should be twice area
    area=mesh.areas()[0]
    assert np.isclose(np.linalg.det(view.reference_jacobian((0.2,0.2))), 2*area)

def test_jacobian_convention():
    # x = 2*xi, y = eta  ->  J = diag(2, 1) with J[i, j] = dx_i/dxi_j
    mesh = Mesh(np.array([[0,0],[2,0],[0,1]]), np.array([[0,1,2]]), element_type='tri')
    J = ElementView(mesh, 0).reference_jacobian((0.3, 0.1))
    assert np.allclose(J, [[2, 0], [0, 1]])
    grads = map_grad_scalar(J, np.array([[-1.0, -1.0], [1.0, 0.0], [0.0, 1.0]]))
    assert np.allclose(grads, [[-0.5, -1.0], [0.5, 0.0], [0.0, 1.0]])

def test_quad_mapping():
    nodes, elems = structured_quad(2.0, 1.0, nx=1, ny=1, poly_order=2)
    mesh = Mesh(nodes, elems, element_type='quad', poly_order=2)
    view = ElementView.from_space_and_element_index(mesh, 0)
    assert view.num_nodes == 9 and view.geometry_dim == 2
    assert np.allclose(view.map_reference_coords((0.0, 0.0)), [1.0, 0.5])
    assert np.allclose(view.map_reference_coords((0.5, -0.5)), [1.5, 0.25])
    assert np.isclose(np.linalg.det(view.reference_jacobian((0.4, -0.7))), 0.5)

def test_partition_of_unity_and_zero_gradient_sum(tri_mesh_p2):
    view = ElementView(tri_mesh_p2, 3)
    phi = np.zeros(view.num_nodes)
    dphi = np.zeros((view.num_nodes, 2))
    for xi in [(0.1, 0.2), (0.5, 0.25), (1/3, 1/3)]:
        view.populate_basis(phi, xi)
        view.populate_basis_gradients(dphi, xi)
        assert np.isclose(phi.sum(), 1.0)
        assert np.allclose(dphi.sum(axis=0), 0.0)

def test_populate_basis_wrong_buffer(quad_mesh_3x3):
    view = ElementView(quad_mesh_3x3, 0)
    with pytest.raises(AssertionError):
        view.populate_basis(np.zeros(3), (0.0, 0.0))
    with pytest.raises(AssertionError):
        view.populate_basis_gradients(np.zeros((5, 2)), (0.0, 0.0))
