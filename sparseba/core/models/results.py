"""Solver summary and bundle adjustment result models."""

import math
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from .entities import Camera, Landmark


class SolverSummary(BaseModel):
    """Results from a solver run."""

    success: bool = Field(description="Whether the solver reported convergence")
    status: int = Field(default=0, description="Solver termination status code")
    iterations: int = Field(default=0, description="Number of iterations performed")
    function_evaluations: int = Field(default=0, description="Number of residual evaluations")
    initial_cost: float = Field(default=0.0, description="Cost at the initial parameters")
    final_cost: float = Field(default=0.0, description="Cost at the final parameters")
    termination_reason: str = Field(default="", description="Reason for convergence/termination")
    num_parameter_blocks: int = Field(default=0, description="Parameter blocks in the problem")
    num_constant_parameter_blocks: int = Field(default=0, description="Fully constant parameter blocks")
    num_residual_blocks: int = Field(default=0, description="Residual blocks in the problem")
    num_parameters: int = Field(default=0, description="Scalars across all parameter blocks")
    num_free_parameters: int = Field(default=0, description="Scalars the solver may change")
    num_residuals: int = Field(default=0, description="Scalar residuals")
    initial_rms_error: float = Field(default=0.0, description="Initial RMS reprojection error in pixels")
    final_rms_error: float = Field(default=0.0, description="Final RMS reprojection error in pixels")
    max_error: float = Field(default=0.0, description="Largest final reprojection error in pixels")
    largest_residuals: List[Tuple[str, float]] = Field(
        default_factory=list,
        description="Largest reprojection errors by residual block"
    )
    computation_time: Optional[float] = Field(default=None, description="Solve time in seconds")

    @field_validator('initial_cost', 'final_cost', 'initial_rms_error', 'final_rms_error', 'max_error')
    @classmethod
    def validate_finite(cls, v):
        """Ensure costs are JSON serializable."""
        if math.isinf(v) or math.isnan(v):
            return 1e10  # Large but finite value
        return v

    @field_validator('computation_time')
    @classmethod
    def validate_computation_time(cls, v):
        """Ensure computation_time is JSON serializable."""
        if v is not None and (math.isinf(v) or math.isnan(v)):
            return None
        return v

    def brief_report(self) -> str:
        """One line summary."""
        status = "CONVERGENCE" if self.success else "FAILURE"
        return (
            f"{status}: iterations {self.iterations}, "
            f"cost {self.initial_cost:.6e} -> {self.final_cost:.6e}, "
            f"rms {self.initial_rms_error:.4f} -> {self.final_rms_error:.4f} px"
        )

    def full_report(self) -> str:
        """Multi-line report of problem size, cost and termination."""
        lines = [
            "Bundle adjustment report",
            "------------------------",
            f"Parameter blocks      {self.num_parameter_blocks:>10d} "
            f"({self.num_constant_parameter_blocks} constant)",
            f"Parameters            {self.num_parameters:>10d} ({self.num_free_parameters} free)",
            f"Residual blocks       {self.num_residual_blocks:>10d}",
            f"Residuals             {self.num_residuals:>10d}",
            "",
            f"Initial cost          {self.initial_cost:>18.6e}",
            f"Final cost            {self.final_cost:>18.6e}",
            f"Initial RMS error     {self.initial_rms_error:>18.6f} px",
            f"Final RMS error       {self.final_rms_error:>18.6f} px",
            f"Max error             {self.max_error:>18.6f} px",
            "",
            f"Iterations            {self.iterations:>10d}",
            f"Function evaluations  {self.function_evaluations:>10d}",
        ]
        if self.computation_time is not None:
            lines.append(f"Time                  {self.computation_time:>14.4f} s")
        if self.largest_residuals:
            lines.append("")
            lines.append("Largest residuals:")
            for residual_id, error in self.largest_residuals:
                lines.append(f"  {residual_id:<30s} {error:>12.4f} px")
        lines.append("")
        lines.append(f"Termination: {'CONVERGENCE' if self.success else 'FAILURE'} ({self.termination_reason})")
        return "\n".join(lines)


class BundleAdjustResult(BaseModel):
    """Updated collections produced by one bundle adjustment call."""

    cameras: Dict[int, Camera] = Field(description="Frame id to camera")
    landmarks: Dict[int, Landmark] = Field(description="Track id to landmark")
    summary: SolverSummary = Field(description="Solver summary")
    committed: bool = Field(description="Whether optimized values were written to the collections")
    num_residual_blocks: int = Field(default=0, description="Reprojection residuals added to the problem")
