from functools import lru_cache
import sympy as sp


@lru_cache(maxsize=None)
def tri_pn(n: int, max_deriv_order: int = 1):
    """
    Return lambdified shape functions and derivatives for Pn triangular elements.

    Args:
        n: Polynomial order of the Pn element (n >= 1).
        max_deriv_order: Maximum total derivative order to compute.

    Returns:
        tuple: (shape_lambda, deriv_lambdas)
            - shape_lambda: Callable giving shape function values [phi_1, ..., phi_N] at (xi, eta).
            - deriv_lambdas: Dict with keys (alpha_xi, alpha_eta), values are callables giving
                             derivative values [D^alpha phi_1, ..., D^alpha phi_N] at (xi, eta).

    Nodes live on the reference triangle (0,0)-(1,0)-(0,1), ordered row by row
    (eta outer, xi inner).
    """
    if n < 1:
        raise ValueError("Polynomial order n must be positive.")
    xi_sym, eta_sym = sp.symbols("xi eta")

    nodes_ref_coords = [(sp.Rational(i, n), sp.Rational(j, n))
                        for j in range(n + 1)
                        for i in range(n + 1 - j)]
    monomials = [xi_sym**px * eta_sym**(deg - px)
                 for deg in range(n + 1)
                 for px in range(deg + 1)]
    num_nodes = len(nodes_ref_coords)

    # Vandermonde: V[i, k] = m_k(node_i); the Lagrange basis is m(x) V^{-1}
    V = sp.Matrix(num_nodes, num_nodes,
                  lambda i, k: monomials[k].subs({xi_sym: nodes_ref_coords[i][0],
                                                  eta_sym: nodes_ref_coords[i][1]}))
    if V.det() == 0:
        raise RuntimeError(f"Vandermonde matrix is singular for tri_pn order n={n}.")
    coeffs = V.inv()
    basis = [sp.expand((sp.Matrix([monomials]) * coeffs.col(k))[0, 0]) for k in range(num_nodes)]

    multi_indices = [(i, j) for i in range(max_deriv_order + 1)
                     for j in range(max_deriv_order + 1) if i + j <= max_deriv_order]
    deriv_lambdas = {}
    for ax, ay in multi_indices:
        d = [sp.diff(phi, xi_sym, ax, eta_sym, ay) for phi in basis]
        deriv_lambdas[(ax, ay)] = sp.lambdify((xi_sym, eta_sym), sp.Matrix(d), "numpy")

    return deriv_lambdas[(0, 0)], deriv_lambdas
