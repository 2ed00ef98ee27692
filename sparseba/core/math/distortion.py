"""Lens distortion models applied in normalized image coordinates."""

from enum import Enum
from typing import Tuple

import numpy as np


class DistortionModel(str, Enum):
    """Supported lens distortion models.

    Coefficients are stored in OpenCV order: k1, k2, p1, p2, k3, k4, k5, k6.
    """
    NONE = "none"
    POLYNOMIAL_RADIAL = "polynomial_radial"
    POLYNOMIAL_RADIAL_TANGENTIAL = "polynomial_radial_tangential"
    RATIONAL_RADIAL_TANGENTIAL = "rational_radial_tangential"


_NUM_DISTORTION_PARAMS = {
    DistortionModel.NONE: 0,
    DistortionModel.POLYNOMIAL_RADIAL: 2,
    DistortionModel.POLYNOMIAL_RADIAL_TANGENTIAL: 5,
    DistortionModel.RATIONAL_RADIAL_TANGENTIAL: 8,
}


def num_distortion_params(model: DistortionModel) -> int:
    """Number of distortion coefficients used by a model."""
    return _NUM_DISTORTION_PARAMS[DistortionModel(model)]


def apply_distortion(
    model: DistortionModel,
    coeffs: np.ndarray,
    x: np.ndarray,
    y: np.ndarray
) -> Tuple[np.ndarray, np.ndarray]:
    """Distort normalized image coordinates.

    Args:
        model: Distortion model
        coeffs: Distortion coefficients, at least num_distortion_params(model) long
        x: Normalized x coordinates
        y: Normalized y coordinates

    Returns:
        Tuple of distorted (x, y)
    """
    model = DistortionModel(model)
    n = num_distortion_params(model)
    if n == 0:
        return x, y
    if len(coeffs) < n:
        raise ValueError(f"{model.value} needs {n} coefficients, got {len(coeffs)}")

    r2 = x**2 + y**2
    r4 = r2**2

    if model == DistortionModel.POLYNOMIAL_RADIAL:
        k1, k2 = coeffs[:2]
        scale = 1 + k1 * r2 + k2 * r4
        return x * scale, y * scale

    k1, k2, p1, p2, k3 = coeffs[:5]
    r6 = r4 * r2
    scale = 1 + k1 * r2 + k2 * r4 + k3 * r6

    if model == DistortionModel.RATIONAL_RADIAL_TANGENTIAL:
        k4, k5, k6 = coeffs[5:8]
        scale = scale / (1 + k4 * r2 + k5 * r4 + k6 * r6)

    two_xy = 2 * x * y
    x_d = x * scale + p1 * two_xy + p2 * (r2 + 2 * x**2)
    y_d = y * scale + p1 * (r2 + 2 * y**2) + p2 * two_xy

    return x_d, y_d
