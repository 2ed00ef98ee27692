"""SciPy-based nonlinear least squares solver."""

import logging
import time
from typing import Any, Dict, Optional

import numpy as np
from scipy.optimize import least_squares

from ..models.results import SolverSummary
from ..models.settings import SolverSettings
from ..optimization.problem import BundleAdjustmentProblem
from .diagnostics import compute_reprojection_diagnostics

logger = logging.getLogger(__name__)

_TERMINATION_REASONS = {
    -1: "Improper input parameters",
    0: "Maximum number of function evaluations exceeded",
    1: "Gradient tolerance satisfied",
    2: "Function tolerance satisfied",
    3: "Parameter tolerance satisfied",
    4: "Function and parameter tolerances satisfied",
}


class SciPySolver:
    """Solves a BundleAdjustmentProblem with scipy.optimize.least_squares."""

    def __init__(self, settings: Optional[SolverSettings] = None, verbose: bool = False):
        """Initialize solver.

        Args:
            settings: Solver settings
            verbose: Print per-iteration progress from least_squares
        """
        self.settings = settings or SolverSettings()
        self.verbose = verbose

    def solve(self, problem: BundleAdjustmentProblem) -> SolverSummary:
        """Solve the problem in place.

        On return the problem's parameter blocks hold the solver's final
        values, or their initial values when the solver raised.

        Args:
            problem: Problem to optimize

        Returns:
            Solver summary
        """
        start_time = time.time()

        x0 = problem.initial_parameters()
        initial_residuals = problem.residual_vector()
        initial_cost = problem.cost(initial_residuals)
        initial_diagnostics = compute_reprojection_diagnostics(problem, initial_residuals)

        problem_size = {
            "num_parameter_blocks": len(problem.arena),
            "num_constant_parameter_blocks": sum(1 for block in problem.arena if block.is_constant),
            "num_residual_blocks": problem.num_residual_blocks,
            "num_parameters": problem.arena.num_parameters,
            "num_free_parameters": len(x0),
            "num_residuals": problem.num_residuals,
        }

        if len(x0) == 0:
            # No free parameters to optimize
            return SolverSummary(
                success=True,
                status=1,
                initial_cost=initial_cost,
                final_cost=initial_cost,
                termination_reason="No free parameters",
                initial_rms_error=initial_diagnostics["rms_error"],
                final_rms_error=initial_diagnostics["rms_error"],
                max_error=initial_diagnostics["max_error"],
                largest_residuals=initial_diagnostics["largest_residuals"],
                computation_time=time.time() - start_time,
                **problem_size
            )

        try:
            result = least_squares(
                fun=problem.evaluate,
                x0=x0,
                method=self.settings.method,
                ftol=self.settings.function_tolerance,
                xtol=self.settings.parameter_tolerance,
                gtol=self.settings.gradient_tolerance,
                x_scale=self.settings.x_scale,
                max_nfev=self._max_function_evaluations(len(x0)),
                verbose=2 if self.verbose else 0,
                **self._jacobian_arguments(problem)
            )
        except Exception as e:
            # Handle solver failure
            problem.arena.unpack(x0)
            logger.debug(f"least_squares raised: {e}")
            return SolverSummary(
                success=False,
                status=-1,
                initial_cost=initial_cost,
                final_cost=initial_cost,
                termination_reason=f"Solver error: {str(e)}",
                initial_rms_error=initial_diagnostics["rms_error"],
                final_rms_error=initial_diagnostics["rms_error"],
                max_error=initial_diagnostics["max_error"],
                computation_time=time.time() - start_time,
                **problem_size
            )

        final_residuals = problem.residual_vector(result.x)
        final_diagnostics = compute_reprojection_diagnostics(problem, final_residuals)

        return SolverSummary(
            success=bool(result.success),
            status=int(result.status),
            iterations=int(result.njev if result.njev is not None else result.nfev),
            function_evaluations=int(result.nfev),
            initial_cost=initial_cost,
            final_cost=problem.cost(final_residuals),
            termination_reason=self._parse_termination_reason(result),
            initial_rms_error=initial_diagnostics["rms_error"],
            final_rms_error=final_diagnostics["rms_error"],
            max_error=final_diagnostics["max_error"],
            largest_residuals=final_diagnostics["largest_residuals"],
            computation_time=time.time() - start_time,
            **problem_size
        )

    def _max_function_evaluations(self, num_free: int) -> int:
        # lm counts finite-difference evaluations as function evaluations
        if self.settings.method == "lm" and self.settings.jacobian != "blockwise":
            return self.settings.max_iterations * (num_free + 1)
        return self.settings.max_iterations

    def _jacobian_arguments(self, problem: BundleAdjustmentProblem) -> Dict[str, Any]:
        """Jacobian-related keyword arguments for least_squares."""
        if self.settings.jacobian == "blockwise":
            if self.settings.method == "lm":
                return {"jac": lambda x: problem.jacobian(x).toarray()}
            return {"jac": problem.jacobian}

        if self.settings.method == "lm":
            return {"jac": self.settings.jacobian}
        return {"jac": self.settings.jacobian, "jac_sparsity": problem.jacobian_sparsity()}

    def _parse_termination_reason(self, result) -> str:
        """Parse SciPy termination status into a human-readable string."""
        reason = _TERMINATION_REASONS.get(result.status, "Unknown termination status")
        if result.success:
            return f"Converged: {reason}"
        return f"Failed: {reason}"
