"""pyfemasm.assembly.operators

Physics callbacks consumed by the element assemblers. Operators know nothing
about meshes: they see a solution gradient ``(dim, s)``, basis gradients
``(dim,)``, physical points and whatever opaque per-quadrature-point data the
quadrature table carries.
"""
from abc import ABC, abstractmethod
from typing import Any, Callable

import numpy as np


class Operator(ABC):
    """Base of all operators. ``solution_dim`` is the number of unknowns per node."""
    solution_dim: int = 1


class EllipticOperator(Operator):

    @abstractmethod
    def compute_elliptic_term(self, gradient: np.ndarray, data: Any) -> np.ndarray:
        """Map the solution gradient ``(dim, s)`` to a flux of the same shape."""


class EllipticContraction(Operator):

    @abstractmethod
    def contract(self, gradient: np.ndarray, data: Any, a: np.ndarray, b: np.ndarray) -> np.ndarray:
        """Bilinear block ``(s, s)`` coupling basis gradients ``a`` and ``b`` at ``gradient``."""


class SourceFunction(Operator):

    @abstractmethod
    def evaluate(self, coords: np.ndarray, data: Any) -> np.ndarray:
        """Forcing term ``(s,)`` at the physical point ``coords``."""


class LaplaceOperator(EllipticOperator, EllipticContraction):
    """``-div(c grad u)`` applied component-wise to an ``s``-vector field."""

    def __init__(self, solution_dim: int = 1, coefficient: float = 1.0):
        if solution_dim < 1:
            raise ValueError(f"solution_dim must be positive, got {solution_dim}")
        self.solution_dim = solution_dim
        self.coefficient = float(coefficient)

    def __repr__(self):
        return f"LaplaceOperator(solution_dim={self.solution_dim}, coefficient={self.coefficient})"

    def compute_elliptic_term(self, gradient, data):
        return self.coefficient * gradient

    def contract(self, gradient, data, a, b):
        return self.coefficient * np.dot(a, b) * np.eye(self.solution_dim)


class ConstantSource(SourceFunction):

    def __init__(self, value):
        self.value = np.atleast_1d(np.asarray(value, dtype=float))
        self.solution_dim = len(self.value)

    def evaluate(self, coords, data):
        return self.value


class FunctionSource(SourceFunction):
    """Wraps ``fn(x) -> scalar or (s,)`` as a source term."""

    def __init__(self, fn: Callable[[np.ndarray], Any], solution_dim: int = 1):
        self.fn = fn
        self.solution_dim = solution_dim

    def evaluate(self, coords, data):
        return np.atleast_1d(np.asarray(self.fn(coords), dtype=float))
