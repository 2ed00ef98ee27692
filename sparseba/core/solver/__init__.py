"""Nonlinear least squares solvers for sparseba."""

from .scipy_solver import SciPySolver
from .diagnostics import compute_reprojection_diagnostics, find_largest_residuals

__all__ = [
    "SciPySolver",
    "compute_reprojection_diagnostics",
    "find_largest_residuals",
]
