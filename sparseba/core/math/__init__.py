"""Math primitives for sparseba."""

from .rotation import rotation_matrix, rotation_vector, skew_symmetric
from .distortion import DistortionModel, num_distortion_params, apply_distortion
from .camera import project, camera_center, point_depth
from .robust import (
    LossFunctionType,
    LossHandoff,
    LossOwnership,
    RobustLoss,
    create_loss_function,
)
from .jacobians import finite_difference_jacobian

__all__ = [
    "rotation_matrix",
    "rotation_vector",
    "skew_symmetric",
    "DistortionModel",
    "num_distortion_params",
    "apply_distortion",
    "project",
    "camera_center",
    "point_depth",
    "LossFunctionType",
    "LossHandoff",
    "LossOwnership",
    "RobustLoss",
    "create_loss_function",
    "finite_difference_jacobian",
]
