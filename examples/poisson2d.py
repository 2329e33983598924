"""Example: Poisson on the unit square with Q1 elements, parallel assembly"""
import logging
import numpy as np, scipy.sparse.linalg as spla
from pyfemasm.utils.meshgen import create_unit_square_uniform_quad_mesh
from pyfemasm.assembly import (CsrAssembler, CsrParAssembler, CsrMatrix, SerialVectorAssembler,
                               ElementEllipticAssembler, ElementSourceAssembler, LaplaceOperator, FunctionSource)
from pyfemasm.integration.quadrature import UniformQuadratureTable, quad_quadrature_strength
from pyfemasm.error_estimation import estimate_L2_error
from pyfemasm.io.visualization import plot_mesh

logging.basicConfig(level=logging.INFO)

u_exact = lambda x: x[0]**2*x[1] + np.sin(x[1])
f_rhs   = lambda x: -2*x[1] + np.sin(x[1])

for n in (4, 8, 16, 32):
    mesh = create_unit_square_uniform_quad_mesh(n)
    qtable = UniformQuadratureTable(*quad_quadrature_strength(5))
    stiffness = ElementEllipticAssembler(mesh, LaplaceOperator(), qtable, np.zeros(mesh.num_nodes()))

    pattern = CsrParAssembler().assemble_pattern(stiffness)
    K = CsrMatrix.zeros(pattern)
    CsrAssembler().assemble_into_csr(K, stiffness)
    F = SerialVectorAssembler().assemble_vector(ElementSourceAssembler(mesh, FunctionSource(f_rhs), qtable))

    # strong Dirichlet data on the whole boundary
    A = K.to_scipy().tolil()
    for dof in mesh.boundary_nodes():
        A.rows[dof] = [dof]
        A.data[dof] = [1.0]
        F[dof] = u_exact(mesh.nodes_x_y_pos[dof])
    uh = spla.spsolve(A.tocsr(), F)
    print(f'n={n:3d}  nnz={pattern.nnz:6d}  L2 error = {estimate_L2_error(mesh, u_exact, uh, qtable):.3e}')

plot_mesh(mesh, solution_on_nodes=uh)
