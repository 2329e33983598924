import numpy as np
import pytest
import scipy.sparse as sp
from pyfemasm.assembly import (CsrAssembler, CsrParAssembler, CsrMatrix, AssemblyError, SparsityPattern,
                               ElementEllipticAssembler, ElementSourceAssembler, ElementSubsetAssembler,
                               LaplaceOperator, ConstantSource, SerialVectorAssembler)
from pyfemasm.integration.quadrature import UniformQuadratureTable, quad_quadrature_strength, volume
from pyfemasm.utils.meshgen import create_unit_square_uniform_quad_mesh, create_unit_square_uniform_tri_mesh


def _laplace(mesh, s=1, u=None, strength=5):
    if mesh.element_type == 'quad':
        table = UniformQuadratureTable(*quad_quadrature_strength(strength))
    else:
        table = UniformQuadratureTable.from_element_type('tri', 3)
    if u is None:
        u = np.zeros(mesh.num_nodes() * s)
    return ElementEllipticAssembler(mesh, LaplaceOperator(solution_dim=s), table, u)


def test_poisson_3x3(quad_mesh_3x3):
    ea = _laplace(quad_mesh_3x3)
    pattern = CsrParAssembler(num_workers=2).assemble_pattern(ea)
    csr = CsrMatrix.zeros(pattern)
    CsrAssembler().assemble_into_csr(csr, ea)
    A = csr.to_dense()
    assert A.shape == (16, 16)
    assert np.allclose(A, A.T)
    assert np.allclose(A.sum(axis=1), 0.0)
    assert np.all(np.linalg.eigvalsh(A) > -1e-12)

    table = UniformQuadratureTable(*quad_quadrature_strength(5))
    b = SerialVectorAssembler().assemble_vector(ElementSourceAssembler(quad_mesh_3x3, ConstantSource(1.0), table))
    assert b.shape == (16,)
    assert np.isclose(b.sum(), 1.0)

@pytest.mark.parametrize("workers", [1, 2, 3, 7])
def test_serial_and_parallel_values_identical(workers):
    mesh = create_unit_square_uniform_tri_mesh(4, poly_order=2)
    ea = _laplace(mesh, s=2)
    serial = CsrAssembler().assemble(ea)
    par = CsrParAssembler(num_workers=workers).assemble(ea)
    assert par.pattern == serial.pattern
    assert np.array_equal(par.values, serial.values)

def test_additivity_over_element_subsets():
    mesh = create_unit_square_uniform_quad_mesh(4)
    ea = _laplace(mesh)
    pattern = CsrAssembler().assemble_pattern(ea)
    full = np.zeros(pattern.nnz)
    CsrAssembler().assemble_values_into(full, pattern, ea)

    ids = np.arange(mesh.num_elements())
    part_a = np.zeros(pattern.nnz)
    part_b = np.zeros(pattern.nnz)
    CsrAssembler().assemble_values_into(part_a, pattern, ElementSubsetAssembler(ea, ids[ids % 2 == 0]))
    CsrParAssembler(num_workers=3).assemble_values_into(part_b, pattern, ElementSubsetAssembler(ea, ids[ids % 2 == 1]))
    assert np.allclose(part_a + part_b, full)

@pytest.mark.parametrize("element_type, order", [('quad', 1), ('quad', 2), ('tri', 1), ('tri', 2)])
def test_affine_field_has_zero_interior_residual(element_type, order):
    if element_type == 'quad':
        mesh = create_unit_square_uniform_quad_mesh(3, poly_order=order)
    else:
        mesh = create_unit_square_uniform_tri_mesh(3, poly_order=order)
    xy = mesh.nodes_x_y_pos
    u = 1.0 + 2.0 * xy[:, 0] - 3.0 * xy[:, 1]
    A = CsrAssembler().assemble(_laplace(mesh)).to_scipy()
    r = A @ u
    interior = np.setdiff1d(np.arange(mesh.num_nodes()), mesh.boundary_nodes())
    assert len(interior) > 0
    assert np.allclose(r[interior], 0.0, atol=1e-12)

def test_vector_laplace_is_block_diagonal_by_component(quad_mesh_3x3):
    A1 = CsrAssembler().assemble(_laplace(quad_mesh_3x3)).to_dense()
    A2 = CsrAssembler().assemble(_laplace(quad_mesh_3x3, s=2)).to_dense()
    assert np.allclose(A2[0::2, 0::2], A1)
    assert np.allclose(A2[1::2, 1::2], A1)
    assert np.allclose(A2[0::2, 1::2], 0.0)

def test_values_length_mismatch(quad_mesh_3x3):
    ea = _laplace(quad_mesh_3x3)
    pattern = CsrAssembler().assemble_pattern(ea)
    with pytest.raises(AssemblyError):
        CsrAssembler().assemble_values_into(np.zeros(pattern.nnz - 1), pattern, ea)
    with pytest.raises(AssemblyError):
        CsrParAssembler(num_workers=2).assemble_values_into(np.zeros(pattern.nnz + 1), pattern, ea)

def test_integer_values_storage_rejected(quad_mesh_3x3):
    ea = _laplace(quad_mesh_3x3)
    pattern = CsrAssembler().assemble_pattern(ea)
    values = np.zeros(pattern.nnz, dtype=np.int64)
    for assembler in (CsrAssembler(), CsrParAssembler(num_workers=2)):
        with pytest.raises(AssemblyError):
            assembler.assemble_values_into(values, pattern, ea)
    assert np.array_equal(values, np.zeros(pattern.nnz, dtype=np.int64))

def test_entry_outside_pattern_leaves_storage_untouched(quad_mesh_3x3):
    ea = _laplace(quad_mesh_3x3)
    # diagonal only: every element touches off-diagonal entries
    n = quad_mesh_3x3.num_nodes()
    pattern = SparsityPattern.from_offsets_and_indices(n, n, np.arange(n + 1), np.arange(n))
    values = np.full(n, 7.0)
    for assembler in (CsrAssembler(), CsrParAssembler(num_workers=3)):
        with pytest.raises(AssemblyError):
            assembler.assemble_values_into(values, pattern, ea)
        assert np.array_equal(values, np.full(n, 7.0))

def test_pattern_dimension_mismatch(quad_mesh_3x3):
    ea = _laplace(quad_mesh_3x3)
    pattern = CsrAssembler().assemble_pattern(_laplace(create_unit_square_uniform_quad_mesh(2)))
    with pytest.raises(AssemblyError):
        CsrAssembler().assemble_values_into(np.zeros(pattern.nnz), pattern, ea)

def test_assemble_values_overwrites(quad_mesh_3x3):
    ea = _laplace(quad_mesh_3x3)
    csr = CsrAssembler().assemble(ea)
    before = csr.values.copy()
    csr.values[:] = 99.0
    CsrParAssembler(num_workers=2).assemble_into_csr(csr, ea)
    assert np.array_equal(csr.values, before)

def test_csr_matrix_accessors(quad_mesh_3x3):
    csr = CsrAssembler().assemble(_laplace(quad_mesh_3x3))
    assert csr.shape == (16, 16) and csr.nnz == csr.pattern.nnz
    S = csr.to_scipy()
    assert isinstance(S, sp.csr_matrix)
    assert np.allclose(S.toarray(), csr.to_dense())
    d = csr.get_entry(5, 5)
    csr.add_to_entry(5, 5, 1.0)
    assert np.isclose(csr.get_entry(5, 5), d + 1.0)
    assert csr.get_entry(0, 15) == 0.0
    with pytest.raises(KeyError):
        csr.add_to_entry(0, 15, 1.0)
    x = np.ones(16)
    assert np.allclose(csr @ x, csr.to_dense() @ x)
    with pytest.raises(ValueError):
        CsrMatrix(csr.pattern, np.zeros(3))
    copy = CsrMatrix.from_pattern_and_values(csr.pattern, csr.values.copy())
    assert copy.pattern is csr.pattern

def test_nonlinear_residual_tangent_consistency(quad_mesh_3x3):
    # residual of a linear operator is the tangent applied to u
    u = np.sin(np.arange(32.0))
    ea = _laplace(quad_mesh_3x3, s=2, u=u)
    A = CsrAssembler().assemble(ea)
    r = SerialVectorAssembler().assemble_vector(ea)
    assert np.allclose(r, A @ u)

def test_tri_volume_rule_area():
    mesh = create_unit_square_uniform_tri_mesh(2)
    table = UniformQuadratureTable(*volume('tri', 2))
    b = SerialVectorAssembler().assemble_vector(ElementSourceAssembler(mesh, ConstantSource(3.0), table))
    assert np.isclose(b.sum(), 3.0)

def test_element_dependent_quadrature_tables(quad_mesh_3x3):
    from pyfemasm.integration.quadrature import PerElementQuadratureTable, CallbackQuadratureTable, quad_rule
    from pyfemasm.assembly import ParVectorAssembler
    from pyfemasm.error_estimation import estimate_L2_error_squared
    n_elem = quad_mesh_3x3.num_elements()
    per_element = PerElementQuadratureTable([quad_rule(1 + e % 3) for e in range(n_elem)])
    callback = CallbackQuadratureTable(lambda e: quad_rule(1 + e % 3))
    for table in (per_element, callback):
        ea = ElementEllipticAssembler(quad_mesh_3x3, LaplaceOperator(), table, np.zeros(16))
        serial = CsrAssembler().assemble(ea)
        par = CsrParAssembler(num_workers=3).assemble(ea)
        assert np.array_equal(serial.values, par.values)
        assert np.allclose(serial.to_dense().sum(axis=1), 0.0)

        src = ElementSourceAssembler(quad_mesh_3x3, ConstantSource(1.0), table)
        b = SerialVectorAssembler().assemble_vector(src)
        assert np.isclose(b.sum(), 1.0)
        assert np.array_equal(b, ParVectorAssembler(num_workers=2).assemble_vector(src))

        err2 = estimate_L2_error_squared(quad_mesh_3x3, lambda x: 1.0, np.zeros(16), table)
        assert np.isclose(err2, 1.0)
