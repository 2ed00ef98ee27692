"""Tests for reprojection residuals and the residual builder."""

import numpy as np
import pytest

from sparseba.core.math.distortion import DistortionModel
from sparseba.core.math.robust import create_loss_function
from sparseba.core.models.entities import Camera, CameraIntrinsics, Landmark, Observation, Track
from sparseba.core.models.settings import IntrinsicsShareType
from sparseba.core.optimization.extraction import extract_camera_parameters, extract_landmark_parameters
from sparseba.core.optimization.parameter_blocks import BlockType, ParameterArena
from sparseba.core.optimization.problem import BundleAdjustmentProblem
from sparseba.core.optimization.residuals import ReprojectionResidual, build_reprojection_residuals
from sparseba.core.solver.diagnostics import compute_reprojection_diagnostics


class TestReprojectionResidual:
    """Test a single reprojection residual."""

    def setup_method(self):
        self.arena = ParameterArena()
        self.intrinsics = self.arena.add_block(BlockType.INTRINSICS, 0, np.array([1000.0, 500.0, 500.0, 1.0, 0.0]))
        self.extrinsics = self.arena.add_block(BlockType.EXTRINSICS, 1, np.zeros(6))
        self.landmark = self.arena.add_block(BlockType.LANDMARK, 0, np.array([0.0, 0.0, 10.0]))

    def make_residual(self, observed):
        return ReprojectionResidual(
            residual_id="track_0/frame_1",
            intrinsics_handle=self.intrinsics,
            extrinsics_handle=self.extrinsics,
            landmark_handle=self.landmark,
            observed=observed,
        )

    def test_residual_is_projected_minus_observed(self):
        np.testing.assert_allclose(self.make_residual((500.0, 500.0)).evaluate(self.arena), [0.0, 0.0])
        np.testing.assert_allclose(self.make_residual((490.0, 503.0)).evaluate(self.arena), [10.0, -3.0])

    def test_residual_follows_block_values(self):
        residual = self.make_residual((500.0, 500.0))
        self.arena.block(self.landmark).value[0] = 1.0
        np.testing.assert_allclose(residual.evaluate(self.arena), [100.0, 0.0])

    def test_handles_order(self):
        assert self.make_residual((0.0, 0.0)).handles == (self.intrinsics, self.extrinsics, self.landmark)

    def test_jacobian_blocks(self):
        jacobians = self.make_residual((500.0, 500.0)).compute_jacobian(self.arena)

        assert [J.shape for J in jacobians] == [(2, 5), (2, 6), (2, 3)]
        # d(u, v)/d(ppx, ppy) is the identity
        np.testing.assert_allclose(jacobians[0][:, 1:3], np.eye(2), atol=1e-6)
        # d(u, v)/d(X) at the optical axis is f/z on x and y, zero on depth
        np.testing.assert_allclose(jacobians[2], [[100.0, 0.0, 0.0], [0.0, 100.0, 0.0]], atol=1e-4)
        # Moving the camera along x moves the image point like the landmark
        np.testing.assert_allclose(jacobians[1][:, 3:], jacobians[2], atol=1e-4)


class TestBuildReprojectionResiduals:
    """Test residual construction and skipping rules."""

    def setup_method(self):
        intrinsics = CameraIntrinsics(focal_length=1000.0, principal_point=(500.0, 500.0))
        self.cameras = {
            1: Camera(intrinsics=intrinsics),
            2: Camera(translation=(-1.0, 0.0, 0.0), intrinsics=intrinsics),
        }
        self.landmarks = {
            10: Landmark(position=(0.0, 0.0, 10.0)),
            11: Landmark(position=(1.0, 0.0, 10.0)),
            12: Landmark(position=(2.0, 0.0, 10.0)),
        }
        self.camera_parameters = extract_camera_parameters(
            self.cameras, DistortionModel.NONE, IntrinsicsShareType.AUTO
        )
        self.landmark_positions = extract_landmark_parameters(self.landmarks)
        self.problem = BundleAdjustmentProblem(create_loss_function("trivial"))

    def teardown_method(self):
        self.problem.close()

    def build(self, tracks):
        return build_reprojection_residuals(
            self.problem, tracks, self.landmark_positions, self.camera_parameters, DistortionModel.NONE
        )

    def test_one_residual_per_valid_observation(self):
        tracks = [
            Track(id=10, observations=(
                Observation(frame_id=1, location=(500.0, 500.0)),
                Observation(frame_id=2, location=(400.0, 500.0)),
            )),
            Track(id=11, observations=(Observation(frame_id=2, location=(500.0, 500.0)),)),
        ]

        assert self.build(tracks) == 3
        assert self.problem.num_residual_blocks == 3
        assert self.problem.num_residuals == 6

    def test_track_without_landmark_is_skipped(self):
        tracks = [Track(id=99, observations=(Observation(frame_id=1, location=(0.0, 0.0)),))]
        assert self.build(tracks) == 0
        assert len(self.problem.arena) == 0

    def test_observation_in_unknown_frame_is_skipped(self):
        tracks = [Track(id=10, observations=(
            Observation(frame_id=99, location=(0.0, 0.0)),
            Observation(frame_id=1, location=(500.0, 500.0)),
        ))]

        assert self.build(tracks) == 1
        assert self.problem.arena.handle_of(BlockType.EXTRINSICS, 99) is None

    def test_track_only_in_unknown_frame_adds_nothing(self):
        tracks = [Track(id=10, observations=(Observation(frame_id=99, location=(500.0, 500.0)),))]

        assert self.build(tracks) == 0
        assert self.problem.arena.handle_of(BlockType.LANDMARK, 10) is None

    def test_blocks_are_shared_and_created_lazily(self):
        tracks = [
            Track(id=10, observations=(
                Observation(frame_id=1, location=(500.0, 500.0)),
                Observation(frame_id=2, location=(400.0, 500.0)),
            )),
            Track(id=11, observations=(Observation(frame_id=1, location=(600.0, 500.0)),)),
        ]
        self.build(tracks)

        summary = self.problem.arena.summary()
        # One shared intrinsics group, two frames, two observed landmarks
        assert summary["by_type"] == {"intrinsics": 1, "extrinsics": 2, "landmark": 2}
        assert self.problem.arena.handle_of(BlockType.LANDMARK, 12) is None

        first, second, third = self.problem.residuals
        assert first.landmark_handle == second.landmark_handle
        assert first.extrinsics_handle == third.extrinsics_handle
        assert first.intrinsics_handle == second.intrinsics_handle == third.intrinsics_handle

    def test_residual_ids_and_order(self):
        tracks = [
            Track(id=11, observations=(Observation(frame_id=2, location=(500.0, 500.0)),)),
            Track(id=10, observations=(Observation(frame_id=1, location=(500.0, 500.0)),)),
        ]
        self.build(tracks)
        assert [r.residual_id for r in self.problem.residuals] == ["track_11/frame_2/obs_0", "track_10/frame_1/obs_0"]

    def test_repeated_frame_observations_get_distinct_ids(self):
        tracks = [Track(id=10, observations=(
            Observation(frame_id=1, location=(500.0, 500.0)),
            Observation(frame_id=1, location=(503.0, 504.0)),
        ))]
        self.build(tracks)

        ids = [r.residual_id for r in self.problem.residuals]
        assert ids == ["track_10/frame_1/obs_0", "track_10/frame_1/obs_1"]

        residuals = self.problem.residual_vector()
        errors = compute_reprojection_diagnostics(self.problem, residuals)["errors"]
        assert errors == pytest.approx({ids[0]: 0.0, ids[1]: 5.0})

    def test_empty_tracks(self):
        assert self.build([]) == 0
        assert self.problem.num_residual_blocks == 0

    def test_builder_copies_values_into_blocks(self):
        tracks = [Track(id=10, observations=(Observation(frame_id=1, location=(500.0, 500.0)),))]
        self.build(tracks)

        handle = self.problem.arena.handle_of(BlockType.LANDMARK, 10)
        self.problem.arena.block(handle).value[2] = 20.0
        assert self.landmark_positions[10][2] == pytest.approx(10.0)
        assert self.landmarks[10].position == (0.0, 0.0, 10.0)
