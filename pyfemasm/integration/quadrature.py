"""pyfemasm.integration.quadrature
Gauss rules for lines, triangles and quads, and the quadrature tables consumed
by the assemblers.
"""
# pyfemasm.integration.quadrature
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Any, Callable, Optional, Sequence, Tuple

import numpy as np
from numpy.polynomial.legendre import leggauss


# -------------------------------------------------------------------------
# 1‑D Gauss–Legendre
# -------------------------------------------------------------------------
def gauss_legendre(order: int):
    if order < 1:
        raise ValueError(order)
    return leggauss(order)  # (points, weights)

# -------------------------------------------------------------------------
# Tensor‑product construction helpers
# -------------------------------------------------------------------------
@lru_cache(maxsize=None)
def quad_rule(order: int):
    """``order``×``order`` Gauss rule on [-1,1]^2, exact for degree ``2*order-1`` per direction."""
    xi, wi = gauss_legendre(order)
    pts = np.array([[x, y] for y in xi for x in xi])
    wts = np.array([wx * wy for wy in wi for wx in wi])
    pts.setflags(write=False); wts.setflags(write=False)
    return pts, wts

@lru_cache(maxsize=None)
def tri_rule(order: int):
    """Collapsed (Duffy) Gauss rule on the reference triangle (0,0)-(1,0)-(0,1)."""
    xi, wi = gauss_legendre(order)
    u = 0.5 * (xi + 1.0)   # [0,1]
    w_u = 0.5 * wi
    pts = []
    wts = []
    for i, ui in enumerate(u):
        for j, vj in enumerate(u):
            pts.append([ui, vj * (1.0 - ui)])
            wts.append(w_u[i] * w_u[j] * (1.0 - ui))
    pts, wts = np.array(pts), np.array(wts)
    pts.setflags(write=False); wts.setflags(write=False)
    return pts, wts

# -------------------------------------------------------------------------
# Public API
# -------------------------------------------------------------------------
def volume(element_type: str, order: int = 2):
    if element_type == 'tri':
        return tri_rule(order)
    if element_type == 'quad':
        return quad_rule(order)
    raise KeyError(element_type)


def quad_quadrature_strength(strength: int):
    """Smallest tensor Gauss rule on [-1,1]^2 integrating polynomials of degree ``strength`` exactly."""
    return quad_rule(max(1, (strength + 2) // 2))


# -------------------------------------------------------------------------
# Quadrature tables
# -------------------------------------------------------------------------
class QuadratureTable(ABC):
    """
    Per-element source of quadrature rules.

    Assemblers only ever ask for ``element_quadrature_with_data(eid)``; whether the rule
    is shared by all elements or computed per element is up to the table.
    Each quadrature point may carry an opaque data payload that is handed
    unchanged to the operator.
    """

    @abstractmethod
    def element_quadrature(self, elem_id: int) -> Tuple[np.ndarray, np.ndarray]:
        """Return ``(weights (nq,), points (nq, rdim))`` for one element."""

    def element_quadrature_data(self, elem_id: int) -> Sequence[Any]:
        return [None] * self.element_quadrature_size(elem_id)

    def element_quadrature_size(self, elem_id: int) -> int:
        return len(self.element_quadrature(elem_id)[0])

    def element_quadrature_with_data(self, elem_id: int) -> Tuple[np.ndarray, np.ndarray, Sequence[Any]]:
        """``(weights, points, data)`` for one element, fetched together."""
        weights, points = self.element_quadrature(elem_id)
        return weights, points, self.element_quadrature_data(elem_id)


def _as_rule(points, weights):
    pts = np.array(points, dtype=float)
    wts = np.array(weights, dtype=float).reshape(-1)
    if pts.ndim == 1:
        pts = pts.reshape(len(wts), -1) if len(wts) else pts.reshape(0, 2)
    if len(pts) != len(wts):
        raise ValueError(f"Got {len(pts)} quadrature points but {len(wts)} weights.")
    pts.setflags(write=False); wts.setflags(write=False)
    return pts, wts


class UniformQuadratureTable(QuadratureTable):
    """The same rule (and per-point data) on every element."""

    def __init__(self, points, weights, data: Optional[Sequence[Any]] = None):
        self.points, self.weights = _as_rule(points, weights)
        if data is None:
            data = [None] * len(self.weights)
        if len(data) != len(self.weights):
            raise ValueError(f"Got {len(data)} data entries for {len(self.weights)} quadrature points.")
        self.data = tuple(data)

    @classmethod
    def from_points_and_weights(cls, points, weights) -> "UniformQuadratureTable":
        return cls(points, weights)

    @classmethod
    def from_element_type(cls, element_type: str, order: int = 2) -> "UniformQuadratureTable":
        pts, wts = volume(element_type, order)
        return cls(pts, wts)

    def element_quadrature(self, elem_id):
        return self.weights, self.points

    def element_quadrature_data(self, elem_id):
        return self.data

    def element_quadrature_size(self, elem_id):
        return len(self.weights)


class PerElementQuadratureTable(QuadratureTable):
    """An explicit rule for each element, e.g. from adaptive integration."""

    def __init__(self, rules: Sequence[Tuple[Any, Any]], data: Optional[Sequence[Sequence[Any]]] = None):
        self.rules = [_as_rule(pts, wts) for pts, wts in rules]
        if data is not None and len(data) != len(self.rules):
            raise ValueError(f"Got data for {len(data)} elements but {len(self.rules)} rules.")
        self.data = data

    def element_quadrature(self, elem_id):
        pts, wts = self.rules[elem_id]
        return wts, pts

    def element_quadrature_data(self, elem_id):
        if self.data is None:
            return [None] * len(self.rules[elem_id][1])
        return self.data[elem_id]


class CallbackQuadratureTable(QuadratureTable):
    """Rules produced on demand by ``rule_fn(elem_id) -> (points, weights)``."""

    def __init__(self, rule_fn: Callable[[int], Tuple[Any, Any]]):
        self.rule_fn = rule_fn

    def element_quadrature(self, elem_id):
        pts, wts = _as_rule(*self.rule_fn(elem_id))
        return wts, pts

    def element_quadrature_data(self, elem_id):
        return self.element_quadrature_with_data(elem_id)[2]

    def element_quadrature_with_data(self, elem_id):
        # one rule_fn call per element
        wts, pts = self.element_quadrature(elem_id)
        return wts, pts, [None] * len(wts)
