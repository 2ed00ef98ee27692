"""Axis-angle rotation operations used by camera extrinsics."""

import numpy as np


def skew_symmetric(v: np.ndarray) -> np.ndarray:
    """Create skew-symmetric matrix from 3D vector."""
    if v.shape != (3,):
        raise ValueError(f"v must be 3-element vector, got shape {v.shape}")

    return np.array([
        [0, -v[2], v[1]],
        [v[2], 0, -v[0]],
        [-v[1], v[0], 0]
    ])


def quat_from_axis_angle(axis: np.ndarray, angle: float) -> np.ndarray:
    """Create quaternion from axis-angle representation.

    Args:
        axis: 3D vector representing rotation axis
        angle: Rotation angle in radians

    Returns:
        Unit quaternion [w, x, y, z]
    """
    if axis.shape != (3,):
        raise ValueError(f"Axis must be 3-element vector, got shape {axis.shape}")

    axis_norm = np.linalg.norm(axis)
    if axis_norm < 1e-12:
        return np.array([1.0, 0.0, 0.0, 0.0])

    axis = axis / axis_norm
    half_angle = angle / 2
    sin_half = np.sin(half_angle)
    cos_half = np.cos(half_angle)

    return np.array([cos_half, sin_half * axis[0], sin_half * axis[1], sin_half * axis[2]])


def quat_to_matrix(q: np.ndarray) -> np.ndarray:
    """Convert unit quaternion [w, x, y, z] to rotation matrix."""
    if q.shape != (4,):
        raise ValueError(f"Quaternion must be 4-element vector, got shape {q.shape}")

    norm = np.linalg.norm(q)
    if norm < 1e-12:
        raise ValueError("Cannot normalize zero quaternion")
    w, x, y, z = q / norm

    return np.array([
        [1 - 2*(y**2 + z**2), 2*(x*y - w*z), 2*(x*z + w*y)],
        [2*(x*y + w*z), 1 - 2*(x**2 + z**2), 2*(y*z - w*x)],
        [2*(x*z - w*y), 2*(y*z + w*x), 1 - 2*(x**2 + y**2)]
    ])


def rotation_matrix(rvec: np.ndarray) -> np.ndarray:
    """Convert an axis-angle (Rodrigues) vector to a 3x3 rotation matrix.

    Args:
        rvec: 3-element rotation vector, direction is the axis and norm the angle

    Returns:
        3x3 rotation matrix
    """
    rvec = np.asarray(rvec, dtype=float)
    if rvec.shape != (3,):
        raise ValueError(f"rvec must be 3-element vector, got shape {rvec.shape}")

    theta = np.linalg.norm(rvec)
    if theta < 1e-8:
        # First order expansion keeps derivatives exact around identity
        return np.eye(3) + skew_symmetric(rvec)

    return quat_to_matrix(quat_from_axis_angle(rvec / theta, theta))


def rotation_vector(R: np.ndarray) -> np.ndarray:
    """Convert a 3x3 rotation matrix to an axis-angle vector.

    Args:
        R: 3x3 rotation matrix

    Returns:
        3-element rotation vector with angle in [0, pi]
    """
    if R.shape != (3, 3):
        raise ValueError(f"R must be 3x3 matrix, got shape {R.shape}")

    trace = np.trace(R)
    theta = np.arccos(np.clip((trace - 1) / 2, -1, 1))
    w = np.array([R[2, 1] - R[1, 2], R[0, 2] - R[2, 0], R[1, 0] - R[0, 1]])

    if theta < 1e-8:
        return 0.5 * w

    if np.pi - theta < 1e-6:
        # sin(theta) vanishes; recover the axis from the symmetric part
        B = 0.5 * (R + np.eye(3))
        axis = np.sqrt(np.clip(np.diag(B), 0.0, None))
        k = int(np.argmax(axis))
        axis = B[k] / axis[k]
        axis = axis / np.linalg.norm(axis)
        return theta * axis

    return theta / (2 * np.sin(theta)) * w


def look_at_rotation(camera_position: np.ndarray, target: np.ndarray, up: np.ndarray) -> np.ndarray:
    """World-to-camera rotation for a camera at a position looking at a target.

    The camera z-axis points at the target, x to the right and y down.
    """
    z_cam = target - camera_position
    z_cam = z_cam / np.linalg.norm(z_cam)

    x_cam = np.cross(z_cam, up)
    x_cam = x_cam / np.linalg.norm(x_cam)

    y_cam = np.cross(z_cam, x_cam)

    return np.array([x_cam, y_cam, z_cam])
