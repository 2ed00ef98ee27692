"""Bundle adjustment settings."""

from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..math.distortion import DistortionModel, num_distortion_params
from ..math.robust import LossFunctionType
from .entities import NUM_BASE_INTRINSICS


class IntrinsicsShareType(str, Enum):
    """How frames share intrinsics parameter blocks."""
    AUTO = "auto"  # frames with equal intrinsics share a block
    COMMON = "common"  # all frames share one block
    UNIQUE = "unique"  # every frame has its own block


class SolverSettings(BaseModel):
    """Options passed through to the nonlinear least squares solver."""

    model_config = ConfigDict(extra="forbid")

    method: Literal["trf", "dogbox", "lm"] = Field(default="trf", description="Minimization algorithm")
    max_iterations: int = Field(default=100, gt=0, description="Maximum solver iterations")
    function_tolerance: float = Field(default=1e-6, gt=0, description="Relative cost change tolerance")
    gradient_tolerance: float = Field(default=1e-10, gt=0, description="Gradient norm tolerance")
    parameter_tolerance: float = Field(default=1e-8, gt=0, description="Relative step size tolerance")
    x_scale: Union[Literal["jac"], float] = Field(default="jac", description="Characteristic variable scale")
    jacobian: Literal["blockwise", "2-point", "3-point"] = Field(
        default="blockwise",
        description="Jacobian evaluation: per residual block, or solver finite differences"
    )

    @field_validator('x_scale')
    @classmethod
    def validate_x_scale(cls, v):
        if not isinstance(v, str) and v <= 0:
            raise ValueError("x_scale must be positive")
        return v


class CameraSettings(BaseModel):
    """Camera model and which intrinsics are optimized."""

    model_config = ConfigDict(extra="forbid")

    distortion_model: DistortionModel = Field(
        default=DistortionModel.NONE,
        description="Lens distortion model"
    )
    intrinsics_share_type: IntrinsicsShareType = Field(
        default=IntrinsicsShareType.AUTO,
        description="How frames share intrinsics"
    )
    optimize_focal_length: bool = Field(default=True, description="Optimize focal length")
    optimize_aspect_ratio: bool = Field(default=False, description="Optimize aspect ratio")
    optimize_principal_point: bool = Field(default=False, description="Optimize principal point")
    optimize_skew: bool = Field(default=False, description="Optimize skew")
    optimize_dist_k1: bool = Field(default=True, description="Optimize radial coefficient k1")
    optimize_dist_k2: bool = Field(default=False, description="Optimize radial coefficient k2")
    optimize_dist_k3: bool = Field(default=False, description="Optimize radial coefficient k3")
    optimize_dist_p1_p2: bool = Field(default=False, description="Optimize tangential coefficients")
    optimize_dist_k4_k5_k6: bool = Field(default=False, description="Optimize rational coefficients")
    constant_intrinsics: Optional[List[int]] = Field(
        default=None,
        description="Explicit intrinsics indices held constant; overrides the optimize flags"
    )

    @property
    def num_distortion_params(self) -> int:
        return num_distortion_params(self.distortion_model)

    @model_validator(mode="after")
    def validate_constant_intrinsics(self):
        if self.constant_intrinsics is None:
            return self
        size = NUM_BASE_INTRINSICS + self.num_distortion_params
        for index in self.constant_intrinsics:
            if index < 0 or index >= size:
                raise ValueError(f"constant intrinsics index {index} outside [0, {size})")
        if len(set(self.constant_intrinsics)) != len(self.constant_intrinsics):
            raise ValueError("constant intrinsics indices must be unique")
        return self


class BundleAdjustSettings(BaseModel):
    """Complete bundle adjustment configuration."""

    model_config = ConfigDict(extra="forbid")

    verbose: bool = Field(default=False, description="Report optimization progress at each iteration")
    loss_function_type: LossFunctionType = Field(
        default=LossFunctionType.TRIVIAL,
        description="Robust loss function type"
    )
    loss_function_scale: float = Field(default=1.0, gt=0, description="Robust loss function scale factor")
    commit_on_failure: bool = Field(
        default=False,
        description="Return optimized values even when the solver does not succeed"
    )
    solver: SolverSettings = Field(default_factory=SolverSettings)
    camera: CameraSettings = Field(default_factory=CameraSettings)

    @model_validator(mode="after")
    def validate_solver_loss(self):
        if self.solver.method == "lm" and self.loss_function_type != LossFunctionType.TRIVIAL:
            raise ValueError("method 'lm' supports only the trivial loss function")
        return self
