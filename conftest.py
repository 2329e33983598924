# conftest.py
import matplotlib
import pytest

from pyfemasm.utils.meshgen import (create_unit_square_uniform_quad_mesh,
                                    create_unit_square_uniform_tri_mesh)

@pytest.fixture(autouse=True)
def mpl_test_backend():
    """Switch to a non-interactive backend for all tests."""
    matplotlib.use('Agg')

@pytest.fixture
def quad_mesh_3x3():
    return create_unit_square_uniform_quad_mesh(3)

@pytest.fixture
def tri_mesh_p2():
    return create_unit_square_uniform_tri_mesh(2, poly_order=2)
