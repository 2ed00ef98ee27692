"""Bundle adjustment of cameras and landmarks against feature tracks."""

import logging
from typing import Any, Dict, Hashable, List, Mapping, Optional

from pydantic import ValidationError

from ..errors import ConfigurationError, MissingInputError
from ..math.robust import create_loss_function
from ..models.entities import CameraMap, LandmarkMap, Track
from ..models.results import BundleAdjustResult
from ..models.settings import BundleAdjustSettings
from ..optimization.constancy import enumerate_constant_intrinsics, resolve_intrinsics_constancy
from ..optimization.extraction import extract_camera_parameters, extract_landmark_parameters
from ..optimization.problem import BundleAdjustmentProblem
from ..optimization.reassembly import (
    optimized_camera_parameters,
    optimized_landmark_positions,
    reassemble_cameras,
    reassemble_landmarks,
)
from ..optimization.residuals import build_reprojection_residuals
from ..solver.scipy_solver import SciPySolver


def _deep_merge(base: Dict[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class BundleAdjuster:
    """Refines camera and landmark parameters to minimize reprojection error.

    Each call to optimize() builds a fresh problem from the given
    collections, solves it and returns new collections. The inputs are
    never modified.
    """

    def __init__(self, settings: Optional[BundleAdjustSettings] = None):
        """Initialize bundle adjuster.

        Args:
            settings: Bundle adjustment settings
        """
        self.settings = settings or BundleAdjustSettings()
        self.logger = logging.getLogger(__name__)

    def get_configuration(self) -> Dict[str, Any]:
        """Current settings as a JSON-compatible dictionary."""
        return self.settings.model_dump(mode="json")

    def set_configuration(self, config: Mapping[str, Any]) -> None:
        """Merge config over the current settings.

        Raises:
            ConfigurationError: If the merged settings are invalid
        """
        self.settings = self._merged_settings(config)

    def check_configuration(self, config: Mapping[str, Any]) -> bool:
        """Whether config would produce valid settings. Logs the reason when it would not."""
        try:
            self._merged_settings(config)
        except ConfigurationError as e:
            self.logger.error(f"Invalid bundle adjustment configuration: {e}")
            return False
        return True

    def _merged_settings(self, config: Mapping[str, Any]) -> BundleAdjustSettings:
        if not isinstance(config, Mapping):
            raise ConfigurationError(f"Configuration must be a mapping, got {type(config).__name__}")
        try:
            return BundleAdjustSettings.model_validate(_deep_merge(self.get_configuration(), config))
        except ValidationError as e:
            raise ConfigurationError(str(e)) from e

    def optimize(
        self,
        cameras: CameraMap,
        landmarks: LandmarkMap,
        tracks: List[Track],
        frame_groups: Optional[Mapping[int, Hashable]] = None
    ) -> BundleAdjustResult:
        """Optimize cameras and landmarks.

        Args:
            cameras: Frame id to camera
            landmarks: Track id to landmark
            tracks: Feature tracks observing the landmarks
            frame_groups: Explicit intrinsics sharing, frame id to group key

        Returns:
            New camera and landmark maps with the solver summary

        Raises:
            MissingInputError: If cameras, landmarks or tracks is None
        """
        if cameras is None:
            raise MissingInputError("Bundle adjustment requires cameras")
        if landmarks is None:
            raise MissingInputError("Bundle adjustment requires landmarks")
        if tracks is None:
            raise MissingInputError("Bundle adjustment requires tracks")

        settings = self.settings
        camera_settings = settings.camera

        camera_parameters = extract_camera_parameters(
            cameras,
            camera_settings.distortion_model,
            camera_settings.intrinsics_share_type,
            frame_groups
        )
        landmark_positions = extract_landmark_parameters(landmarks)
        constancy = resolve_intrinsics_constancy(
            enumerate_constant_intrinsics(camera_settings),
            camera_settings.num_distortion_params
        )

        loss = create_loss_function(settings.loss_function_type, settings.loss_function_scale)
        with BundleAdjustmentProblem(loss) as problem:
            num_residuals = build_reprojection_residuals(
                problem,
                tracks,
                landmark_positions,
                camera_parameters,
                camera_settings.distortion_model
            )
            problem.apply_intrinsics_constancy(constancy)

            handoff = problem.loss_handoff()
            if handoff.caller_must_release:
                handoff.loss.release()

            self.logger.debug(
                f"Bundle adjusting {len(cameras)} cameras, {len(landmarks)} landmarks "
                f"with {num_residuals} residuals: {problem.arena.summary()}"
            )

            summary = SciPySolver(settings.solver, verbose=settings.verbose).solve(problem)
            optimized_cameras = optimized_camera_parameters(problem.arena, camera_parameters)
            optimized_landmarks = optimized_landmark_positions(problem.arena)

        self.logger.debug(summary.full_report())
        if settings.verbose:
            self.logger.info(summary.brief_report())

        committed = summary.success or settings.commit_on_failure
        if not summary.success:
            self.logger.warning(
                f"Bundle adjustment did not converge ({summary.termination_reason}); "
                f"{'committing' if committed else 'discarding'} optimized values"
            )

        if committed:
            new_cameras = reassemble_cameras(cameras, optimized_cameras)
            new_landmarks = reassemble_landmarks(landmarks, optimized_landmarks)
        else:
            new_cameras = dict(cameras)
            new_landmarks = dict(landmarks)

        return BundleAdjustResult(
            cameras=new_cameras,
            landmarks=new_landmarks,
            summary=summary,
            committed=committed,
            num_residual_blocks=num_residuals
        )
