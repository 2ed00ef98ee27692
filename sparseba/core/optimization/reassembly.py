"""Turning optimized parameter blocks back into cameras and landmarks."""

from typing import Dict, List, Optional

import numpy as np

from ..models.entities import CameraIntrinsics, CameraMap, LandmarkMap
from .extraction import CameraParameters
from .parameter_blocks import BlockType, ParameterArena


def optimized_camera_parameters(arena: ParameterArena, initial: CameraParameters) -> CameraParameters:
    """Camera parameters with block values substituted where a block exists.

    Frames and intrinsics groups that no residual referenced keep their initial values.
    """
    optimized = initial.copy()
    for frame_id, value in arena.values_by_key(BlockType.EXTRINSICS).items():
        optimized.extrinsics[frame_id] = value
    optimized_groups = arena.values_by_key(BlockType.INTRINSICS)
    for group, value in optimized_groups.items():
        optimized.intrinsics[group] = value
    optimized.optimized_groups = set(optimized_groups)
    return optimized


def optimized_landmark_positions(arena: ParameterArena) -> Dict[int, np.ndarray]:
    """Positions of landmarks that had a parameter block."""
    return arena.values_by_key(BlockType.LANDMARK)


def reassemble_landmarks(landmarks: LandmarkMap, optimized_positions: Dict[int, np.ndarray]) -> LandmarkMap:
    """New landmark map with optimized positions applied.

    Landmarks without an optimized position are carried over unchanged.
    """
    updated = dict(landmarks)
    for track_id, position in optimized_positions.items():
        landmark = landmarks.get(track_id)
        if landmark is not None:
            updated[track_id] = landmark.with_position(position)
    return updated


def reassemble_cameras(cameras: CameraMap, camera_parameters: CameraParameters) -> CameraMap:
    """New camera map with optimized extrinsics and intrinsics.

    Each optimized intrinsics group produces one new CameraIntrinsics object
    shared by all frames in the group. Frames of a group that no residual
    referenced keep their own intrinsics.
    """
    group_intrinsics: List[Optional[CameraIntrinsics]] = [None] * camera_parameters.num_groups
    updated = {}

    for frame_id in sorted(cameras):
        camera = cameras[frame_id]
        group = camera_parameters.frame_to_intrinsics[frame_id]
        optimized = camera_parameters.optimized_groups
        if optimized is not None and group not in optimized:
            updated[frame_id] = camera.with_extrinsics(camera_parameters.extrinsics[frame_id])
            continue

        if group_intrinsics[group] is None:
            group_intrinsics[group] = camera.intrinsics.with_vector(camera_parameters.intrinsics[group])

        updated[frame_id] = camera.with_extrinsics(camera_parameters.extrinsics[frame_id]).model_copy(
            update={"intrinsics": group_intrinsics[group]}
        )

    return updated
