"""Camera projection for flat intrinsic and extrinsic parameter vectors."""

import numpy as np

from .distortion import DistortionModel, apply_distortion
from .rotation import rotation_matrix


def transform_to_camera(extrinsics: np.ndarray, X: np.ndarray) -> np.ndarray:
    """Transform world points into camera coordinates.

    Args:
        extrinsics: [rx, ry, rz, tx, ty, tz], axis-angle rotation and world-to-camera translation
        X: Nx3 array of 3D points in world coordinates

    Returns:
        Nx3 array of points in camera coordinates
    """
    if extrinsics.shape != (6,):
        raise ValueError(f"extrinsics must be 6-element vector, got shape {extrinsics.shape}")

    X = np.atleast_2d(X)
    if X.shape[1] != 3:
        raise ValueError(f"X must be Nx3 array, got shape {X.shape}")

    R = rotation_matrix(extrinsics[:3])
    return (R @ X.T).T + extrinsics[3:]


def project(
    intrinsics: np.ndarray,
    extrinsics: np.ndarray,
    X: np.ndarray,
    distortion_model: DistortionModel = DistortionModel.NONE
) -> np.ndarray:
    """Project 3D points to image coordinates.

    Args:
        intrinsics: [f, ppx, ppy, aspect_ratio, skew, d_0, ..., d_{D-1}]
        extrinsics: [rx, ry, rz, tx, ty, tz]
        X: Nx3 array of 3D points in world coordinates
        distortion_model: Model interpreting the trailing distortion coefficients

    Returns:
        Nx2 array of projected image coordinates [u, v]
    """
    if intrinsics.shape[0] < 5:
        raise ValueError(f"intrinsics must have at least 5 elements, got {intrinsics.shape}")

    X_cam = transform_to_camera(extrinsics, X)

    x_norm = X_cam[:, 0] / X_cam[:, 2]
    y_norm = X_cam[:, 1] / X_cam[:, 2]

    x_norm, y_norm = apply_distortion(distortion_model, intrinsics[5:], x_norm, y_norm)

    focal, ppx, ppy, aspect_ratio, skew = intrinsics[:5]
    u = focal * x_norm + skew * y_norm + ppx
    v = focal / aspect_ratio * y_norm + ppy

    return np.column_stack([u, v])


def camera_center(extrinsics: np.ndarray) -> np.ndarray:
    """Get camera center in world coordinates."""
    R = rotation_matrix(extrinsics[:3])
    return -R.T @ extrinsics[3:]


def point_depth(extrinsics: np.ndarray, X: np.ndarray) -> np.ndarray:
    """Get depth of 3D points relative to camera (positive = in front)."""
    return transform_to_camera(extrinsics, X)[:, 2]
