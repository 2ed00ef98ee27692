"""Reprojection residual terms and the builder that adds them to a problem."""

import logging
from typing import TYPE_CHECKING, Dict, Iterable, List, Tuple

import numpy as np

from ..math.camera import project
from ..math.distortion import DistortionModel
from ..math.jacobians import finite_difference_jacobian
from ..models.entities import NUM_EXTRINSICS, Track
from .extraction import CameraParameters
from .parameter_blocks import BlockType, ParameterArena

if TYPE_CHECKING:
    from .problem import BundleAdjustmentProblem

logger = logging.getLogger(__name__)


class ReprojectionResidual:
    """Projected minus observed pixel location of one landmark in one frame."""

    dimension = 2

    def __init__(
        self,
        residual_id: str,
        intrinsics_handle: int,
        extrinsics_handle: int,
        landmark_handle: int,
        observed: Tuple[float, float],
        distortion_model: DistortionModel = DistortionModel.NONE
    ):
        """Initialize reprojection residual.

        Args:
            residual_id: Unique residual identifier
            intrinsics_handle: Handle of the intrinsics group block
            extrinsics_handle: Handle of the frame's extrinsics block
            landmark_handle: Handle of the landmark position block
            observed: Observed pixel location (u, v)
            distortion_model: Model interpreting the intrinsics distortion entries
        """
        self.residual_id = residual_id
        self.intrinsics_handle = intrinsics_handle
        self.extrinsics_handle = extrinsics_handle
        self.landmark_handle = landmark_handle
        self.observed = np.array(observed, dtype=float)
        self.distortion_model = distortion_model

    @property
    def handles(self) -> Tuple[int, int, int]:
        """Block handles in parameter order: intrinsics, extrinsics, landmark."""
        return (self.intrinsics_handle, self.extrinsics_handle, self.landmark_handle)

    def compute_residual(self, intrinsics: np.ndarray, extrinsics: np.ndarray, point: np.ndarray) -> np.ndarray:
        projected = project(intrinsics, extrinsics, point.reshape(1, 3), self.distortion_model)[0]
        return projected - self.observed

    def evaluate(self, arena: ParameterArena) -> np.ndarray:
        """Residual at the arena's current block values."""
        return self.compute_residual(*(arena.block(handle).value for handle in self.handles))

    def compute_jacobian(self, arena: ParameterArena) -> List[np.ndarray]:
        """Jacobian blocks with respect to each handle, by central differences."""
        intrinsics, extrinsics, point = (arena.block(handle).value for handle in self.handles)
        num_intrinsics = len(intrinsics)
        landmark_offset = num_intrinsics + NUM_EXTRINSICS

        def residual_func(params):
            return self.compute_residual(
                params[:num_intrinsics],
                params[num_intrinsics:landmark_offset],
                params[landmark_offset:]
            )

        J_full = finite_difference_jacobian(residual_func, np.concatenate([intrinsics, extrinsics, point]))
        return [
            J_full[:, :num_intrinsics],
            J_full[:, num_intrinsics:landmark_offset],
            J_full[:, landmark_offset:],
        ]


def build_reprojection_residuals(
    problem: "BundleAdjustmentProblem",
    tracks: Iterable[Track],
    landmark_positions: Dict[int, np.ndarray],
    camera_parameters: CameraParameters,
    distortion_model: DistortionModel = DistortionModel.NONE
) -> int:
    """Add one reprojection residual per usable observation.

    A track without a landmark is skipped entirely; an observation in a frame
    without a camera is skipped on its own. Parameter blocks are created the
    first time a residual references them.

    Returns:
        Number of residuals added
    """
    added = 0
    skipped_tracks = 0
    skipped_observations = 0

    for track in tracks:
        position = landmark_positions.get(track.id)
        if position is None:
            skipped_tracks += 1
            continue

        for index, observation in enumerate(track.observations):
            frame_id = observation.frame_id
            extrinsics = camera_parameters.extrinsics.get(frame_id)
            if extrinsics is None:
                skipped_observations += 1
                continue

            group = camera_parameters.frame_to_intrinsics[frame_id]
            residual = ReprojectionResidual(
                residual_id=f"track_{track.id}/frame_{frame_id}/obs_{index}",
                intrinsics_handle=problem.block_for(BlockType.INTRINSICS, group, camera_parameters.intrinsics[group]),
                extrinsics_handle=problem.block_for(BlockType.EXTRINSICS, frame_id, extrinsics),
                landmark_handle=problem.block_for(BlockType.LANDMARK, track.id, position),
                observed=observation.location,
                distortion_model=distortion_model,
            )
            problem.add_residual(residual)
            added += 1

    logger.debug(
        f"Added {added} reprojection residuals; skipped {skipped_tracks} tracks without landmarks "
        f"and {skipped_observations} observations without cameras"
    )
    return added
