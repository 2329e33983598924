# pyfemasm.fem.reference
"""
Order-agnostic reference-element factory.
"""
from functools import lru_cache
from importlib import import_module
import numpy as np

class Ref:
    """Lagrange basis on a reference element, evaluated at ``(xi, eta)``.

    Results are cached per reference point; the returned arrays are shared
    and must not be modified by callers.
    """
    def __init__(self, shape_lambda, deriv_lambdas, n_nodes):
        self.shape_lambda = shape_lambda
        self.deriv_lambdas = deriv_lambdas
        self.n_nodes = n_nodes

    @lru_cache(maxsize=None)
    def shape(self, xi, eta):
        return _readonly(np.asarray(self.shape_lambda(xi, eta), dtype=float).ravel())

    @lru_cache(maxsize=None)
    def derivative(self, xi, eta, order_xi, order_eta):
        alpha = (order_xi, order_eta)
        if alpha not in self.deriv_lambdas:
            raise ValueError(f"Derivative order {alpha} not computed. "
                             f"Adjust max_deriv_order >= {order_xi + order_eta}.")
        vals = np.asarray(self.deriv_lambdas[alpha](xi, eta), dtype=float).ravel()
        # lambdified constants collapse to a scalar
        return _readonly(np.broadcast_to(vals, (self.n_nodes,)).copy())

    @lru_cache(maxsize=None)
    def grad(self, xi, eta):
        """Reference gradients, shape ``(n_nodes, 2)``."""
        dphi_dxi = self.derivative(xi, eta, 1, 0)
        dphi_deta = self.derivative(xi, eta, 0, 1)
        return _readonly(np.hstack((dphi_dxi[:, None], dphi_deta[:, None])))


def _readonly(arr):
    arr.setflags(write=False)
    return arr


@lru_cache(maxsize=None)
def get_reference(element_type: str, poly_order: int = 1, max_deriv_order: int = 1):
    if element_type == "quad":
        shape_l, deriv_lambdas = import_module("pyfemasm.fem.reference.quad_qn").quad_qn(poly_order, max_deriv_order)
        n_nodes = (poly_order + 1) ** 2
    elif element_type == "tri":
        shape_l, deriv_lambdas = import_module("pyfemasm.fem.reference.tri_pn").tri_pn(poly_order, max_deriv_order)
        n_nodes = (poly_order + 1) * (poly_order + 2) // 2
    else:
        raise KeyError(element_type)

    return Ref(shape_l, deriv_lambdas, n_nodes)
