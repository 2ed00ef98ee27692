"""Problem construction and result reassembly."""

from .parameter_blocks import BlockType, ParameterArena, ParameterBlock
from .extraction import (
    CameraParameters,
    extract_camera_parameters,
    extract_landmark_parameters,
    resolve_intrinsics_groups,
)
from .constancy import (
    ConstancyKind,
    IntrinsicsConstancy,
    enumerate_constant_intrinsics,
    resolve_intrinsics_constancy,
)
from .residuals import ReprojectionResidual, build_reprojection_residuals
from .problem import BundleAdjustmentProblem
from .reassembly import (
    optimized_camera_parameters,
    optimized_landmark_positions,
    reassemble_cameras,
    reassemble_landmarks,
)

__all__ = [
    "BlockType",
    "ParameterArena",
    "ParameterBlock",
    "CameraParameters",
    "extract_camera_parameters",
    "extract_landmark_parameters",
    "resolve_intrinsics_groups",
    "ConstancyKind",
    "IntrinsicsConstancy",
    "enumerate_constant_intrinsics",
    "resolve_intrinsics_constancy",
    "ReprojectionResidual",
    "build_reprojection_residuals",
    "BundleAdjustmentProblem",
    "optimized_camera_parameters",
    "optimized_landmark_positions",
    "reassemble_cameras",
    "reassemble_landmarks",
]
