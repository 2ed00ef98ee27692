"""Extraction of flat parameter vectors from cameras and landmarks."""

import logging
from dataclasses import dataclass, field
from typing import Dict, Hashable, List, Mapping, Optional, Set, Tuple

import numpy as np

from ..math.distortion import DistortionModel, num_distortion_params
from ..models.entities import CameraIntrinsics, CameraMap, LandmarkMap
from ..models.settings import IntrinsicsShareType

logger = logging.getLogger(__name__)


@dataclass
class CameraParameters:
    """Flat camera parameters of one bundle adjustment call.

    - extrinsics: frame id -> [rx, ry, rz, tx, ty, tz]
    - intrinsics: one [f, ppx, ppy, aspect, skew, d...] vector per intrinsics group
    - frame_to_intrinsics: frame id -> index into intrinsics
    - optimized_groups: groups that had a parameter block, None before optimization
    """

    extrinsics: Dict[int, np.ndarray] = field(default_factory=dict)
    intrinsics: List[np.ndarray] = field(default_factory=list)
    frame_to_intrinsics: Dict[int, int] = field(default_factory=dict)
    optimized_groups: Optional[Set[int]] = None

    @property
    def num_groups(self) -> int:
        return len(self.intrinsics)

    def intrinsics_for(self, frame_id: int) -> np.ndarray:
        """Intrinsics vector of the group serving a frame."""
        return self.intrinsics[self.frame_to_intrinsics[frame_id]]

    def frames_in_group(self, group: int) -> List[int]:
        return sorted(frame for frame, g in self.frame_to_intrinsics.items() if g == group)

    def copy(self) -> "CameraParameters":
        return CameraParameters(
            extrinsics={frame: ext.copy() for frame, ext in self.extrinsics.items()},
            intrinsics=[intr.copy() for intr in self.intrinsics],
            frame_to_intrinsics=dict(self.frame_to_intrinsics),
            optimized_groups=None if self.optimized_groups is None else set(self.optimized_groups),
        )


def resolve_intrinsics_groups(
    cameras: CameraMap,
    share_type: IntrinsicsShareType = IntrinsicsShareType.AUTO,
    frame_groups: Optional[Mapping[int, Hashable]] = None
) -> Tuple[List[CameraIntrinsics], Dict[int, int]]:
    """Decide which frames share an intrinsics parameter block.

    Frames are visited in ascending id order, so group numbering and each
    group's representative (its lowest frame) are deterministic.

    Args:
        cameras: Frame id to camera
        share_type: Sharing policy, ignored when frame_groups is given
        frame_groups: Explicit frame id to group key; frames not listed get their own group

    Returns:
        (representative intrinsics per group, frame id -> group index)
    """
    representatives: List[CameraIntrinsics] = []
    frame_to_group: Dict[int, int] = {}
    group_index: Dict[Hashable, int] = {}

    for frame_id in sorted(cameras):
        intrinsics = cameras[frame_id].intrinsics

        if frame_groups is not None:
            if frame_id in frame_groups:
                key = ("explicit", frame_groups[frame_id])
            else:
                key = ("frame", frame_id)
        elif share_type == IntrinsicsShareType.COMMON:
            key = "common"
        elif share_type == IntrinsicsShareType.UNIQUE:
            key = frame_id
        else:
            key = intrinsics

        if key not in group_index:
            group_index[key] = len(representatives)
            representatives.append(intrinsics)
        frame_to_group[frame_id] = group_index[key]

    logger.debug(f"Resolved {len(representatives)} intrinsics groups for {len(cameras)} frames")
    return representatives, frame_to_group


def extract_camera_parameters(
    cameras: CameraMap,
    distortion_model: DistortionModel = DistortionModel.NONE,
    share_type: IntrinsicsShareType = IntrinsicsShareType.AUTO,
    frame_groups: Optional[Mapping[int, Hashable]] = None
) -> CameraParameters:
    """Flatten cameras into extrinsics vectors and shared intrinsics vectors.

    The returned arrays are new; the cameras are left untouched.
    """
    num_distortion = num_distortion_params(distortion_model)
    representatives, frame_to_group = resolve_intrinsics_groups(cameras, share_type, frame_groups)

    return CameraParameters(
        extrinsics={frame_id: cameras[frame_id].extrinsics_vector() for frame_id in sorted(cameras)},
        intrinsics=[intrinsics.to_vector(num_distortion) for intrinsics in representatives],
        frame_to_intrinsics=frame_to_group,
    )


def extract_landmark_parameters(landmarks: LandmarkMap) -> Dict[int, np.ndarray]:
    """Copy landmark positions into 3-vectors keyed by track id."""
    return {track_id: landmark.to_numpy() for track_id, landmark in landmarks.items()}
