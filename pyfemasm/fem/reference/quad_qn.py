"""pyfemasm.fem.reference.quad_qn"""
from functools import lru_cache
import sympy as sp
import numpy as np


@lru_cache(maxsize=None)
def _lagrange_basis_1d(n: int, max_deriv_order: int):
    """Equispaced 1D Lagrange basis on [-1, 1] and its derivatives as numpy lambdas."""
    x = sp.symbols('x')
    nodes = [sp.Rational(2 * i, n) - 1 for i in range(n + 1)]
    dL = {k: [] for k in range(max_deriv_order + 1)}
    for i, xi in enumerate(nodes):
        Li = sp.Integer(1)
        for j, xj in enumerate(nodes):
            if i != j:
                Li *= (x - xj) / (xi - xj)
        Li = sp.expand(Li)
        for k in range(max_deriv_order + 1):
            dL[k].append(sp.lambdify(x, sp.diff(Li, x, k), 'numpy'))
    return dL


@lru_cache(maxsize=None)
def quad_qn(n: int, max_deriv_order: int = 1):
    """
    Tensor-product Q_n on [-1,1]^2.

    Returns ``(shape_fn, deriv_fns)`` where ``shape_fn(xi, eta)`` gives the
    ``(n+1)^2`` basis values and ``deriv_fns[(ax, ay)]`` the mixed partial
    derivatives for ``ax + ay <= max_deriv_order``.
    Stacking order is (eta outer, xi inner): index = j*(n+1) + i
    """
    if n < 1:
        raise ValueError("Polynomial order n must be positive.")
    dL = _lagrange_basis_1d(n, max_deriv_order)

    def _eval_1d(vals, z):
        return np.array([f(z) for f in vals], dtype=float)

    def make(ax, ay):
        def d(xi, eta):
            dx = _eval_1d(dL[ax], xi)
            dy = _eval_1d(dL[ay], eta)
            return np.outer(dy, dx).reshape(-1)
        return d

    derivs = {(ax, ay): make(ax, ay)
              for ax in range(max_deriv_order + 1)
              for ay in range(max_deriv_order + 1)
              if ax + ay <= max_deriv_order}
    return derivs[(0, 0)], derivs
