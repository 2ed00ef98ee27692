"""Reprojection error diagnostics."""

from typing import Any, Dict, List, Tuple

import numpy as np

from ..optimization.problem import BundleAdjustmentProblem


def compute_reprojection_diagnostics(
    problem: BundleAdjustmentProblem,
    residuals: np.ndarray,
    top_k: int = 10
) -> Dict[str, Any]:
    """Compute reprojection error statistics.

    Args:
        problem: Problem the residual vector was evaluated on
        residuals: Stacked residual vector
        top_k: Number of largest residual blocks to report

    Returns:
        Dictionary with per-residual errors, RMS, max and largest offenders
    """
    errors = problem.residual_errors(residuals)

    if len(errors) == 0:
        return {
            "n_observations": 0,
            "rms_error": 0.0,
            "mean_error": 0.0,
            "median_error": 0.0,
            "max_error": 0.0,
            "errors": {},
            "largest_residuals": [],
        }

    per_residual = {
        residual.residual_id: float(error)
        for residual, error in zip(problem.residuals, errors)
    }

    return {
        "n_observations": len(errors),
        "rms_error": float(np.sqrt(np.mean(errors**2))),
        "mean_error": float(np.mean(errors)),
        "median_error": float(np.median(errors)),
        "max_error": float(np.max(errors)),
        "errors": per_residual,
        "largest_residuals": find_largest_residuals(per_residual, top_k),
    }


def find_largest_residuals(per_residual: Dict[str, float], top_k: int = 10) -> List[Tuple[str, float]]:
    """Residual ids with the largest errors, largest first."""
    ranked = sorted(per_residual.items(), key=lambda item: item[1], reverse=True)
    return ranked[:top_k]
