"""Visibility checking utilities for synthetic scene generation."""

import numpy as np
from typing import Tuple

from ..math.camera import point_depth
from ..math.distortion import DistortionModel
from ..models.entities import Camera


def check_visibility(
    camera: Camera,
    X: np.ndarray,
    image_width: int,
    image_height: int,
    min_depth: float = 0.1,
    max_depth: float = 1000.0,
    border_margin: int = 5,
    distortion_model: DistortionModel = DistortionModel.NONE
) -> Tuple[np.ndarray, np.ndarray]:
    """Check visibility of 3D points in camera.

    Args:
        camera: Camera to test against
        X: Nx3 array of 3D points
        image_width: Image width in pixels
        image_height: Image height in pixels
        min_depth: Minimum valid depth
        max_depth: Maximum valid depth
        border_margin: Margin from image border in pixels
        distortion_model: Distortion model used for projection

    Returns:
        Tuple of (visibility_mask, projected_points) where visibility_mask is
        boolean array indicating which points are visible
    """
    X = np.atleast_2d(X)

    # Check depth constraints before projecting so points behind the camera never divide by zero
    depths = point_depth(camera.extrinsics_vector(), X)
    depth_valid = (depths >= min_depth) & (depths <= max_depth)

    uv = np.full((len(X), 2), np.nan)
    if np.any(depth_valid):
        uv[depth_valid] = camera.project(X[depth_valid], distortion_model)

    # Check image bounds with margin
    with np.errstate(invalid="ignore"):
        u_valid = (uv[:, 0] >= border_margin) & (uv[:, 0] < image_width - border_margin)
        v_valid = (uv[:, 1] >= border_margin) & (uv[:, 1] < image_height - border_margin)

    visible = depth_valid & u_valid & v_valid

    return visible, uv


def count_visible_cameras(cameras, X: np.ndarray, image_size: Tuple[int, int]) -> np.ndarray:
    """Number of cameras each point is visible in.

    Args:
        cameras: Frame id to camera
        X: Nx3 array of 3D points
        image_size: Image dimensions (width, height)

    Returns:
        Array of per-point camera counts
    """
    X = np.atleast_2d(X)
    counts = np.zeros(len(X), dtype=int)
    for camera in cameras.values():
        visible, _ = check_visibility(camera, X, image_size[0], image_size[1])
        counts += visible
    return counts
