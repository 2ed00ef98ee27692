"""Tests for camera, landmark and track models."""

import numpy as np
import pytest
from pydantic import ValidationError

from sparseba.core.math.distortion import DistortionModel
from sparseba.core.models.entities import Camera, CameraIntrinsics, Landmark, Observation, Track


class TestCameraIntrinsics:
    """Test intrinsics vector layout."""

    def test_to_vector_layout(self):
        intrinsics = CameraIntrinsics(
            focal_length=1000.0, principal_point=(500.0, 400.0), aspect_ratio=1.1, skew=0.5
        )
        np.testing.assert_array_equal(intrinsics.to_vector(0), [1000.0, 500.0, 400.0, 1.1, 0.5])

    def test_to_vector_pads_distortion(self):
        intrinsics = CameraIntrinsics(focal_length=800.0, dist_coeffs=(0.1,))
        np.testing.assert_array_equal(intrinsics.to_vector(2)[5:], [0.1, 0.0])

    def test_to_vector_truncates_distortion(self):
        intrinsics = CameraIntrinsics(focal_length=800.0, dist_coeffs=(0.1, 0.2, 0.3))
        np.testing.assert_array_equal(intrinsics.to_vector(2)[5:], [0.1, 0.2])

    def test_with_vector_round_trip_keeps_equality(self):
        intrinsics = CameraIntrinsics(focal_length=800.0, principal_point=(320.0, 240.0), dist_coeffs=(0.1,))
        assert intrinsics.with_vector(intrinsics.to_vector(5)) == intrinsics

    def test_with_vector_keeps_coefficients_beyond_model(self):
        intrinsics = CameraIntrinsics(focal_length=800.0, dist_coeffs=(0.1, 0.2, 0.3))
        updated = intrinsics.with_vector(np.array([900.0, 1.0, 2.0, 1.0, 0.0, 0.15, 0.25]))

        assert updated.focal_length == 900.0
        assert updated.principal_point == (1.0, 2.0)
        assert updated.dist_coeffs == (0.15, 0.25, 0.3)
        assert intrinsics.focal_length == 800.0

    def test_with_vector_keeps_optimized_padding(self):
        intrinsics = CameraIntrinsics(focal_length=800.0)
        updated = intrinsics.with_vector(np.array([800.0, 0.0, 0.0, 1.0, 0.0, -0.05, 0.0]))
        assert updated.dist_coeffs == (-0.05, 0.0)

    def test_short_vector(self):
        with pytest.raises(ValueError):
            CameraIntrinsics(focal_length=800.0).with_vector(np.array([1.0, 2.0]))

    def test_invalid_values(self):
        with pytest.raises(ValidationError):
            CameraIntrinsics(focal_length=0.0)
        with pytest.raises(ValidationError):
            CameraIntrinsics(focal_length=1.0, aspect_ratio=-1.0)
        with pytest.raises(ValidationError):
            CameraIntrinsics(focal_length=1.0, dist_coeffs=tuple(range(9)))

    def test_immutable(self):
        intrinsics = CameraIntrinsics(focal_length=800.0)
        with pytest.raises(ValidationError):
            intrinsics.focal_length = 10.0

    def test_equal_values_are_equal_and_hash_equal(self):
        a = CameraIntrinsics(focal_length=800.0, principal_point=(1.0, 2.0))
        b = CameraIntrinsics(focal_length=800.0, principal_point=(1.0, 2.0))
        assert a == b
        assert hash(a) == hash(b)


class TestCamera:
    """Test camera pose handling."""

    def setup_method(self):
        self.camera = Camera(
            rotation=(0.0, 0.0, 0.0),
            translation=(0.0, 0.0, 0.0),
            intrinsics=CameraIntrinsics(focal_length=1000.0, principal_point=(500.0, 500.0))
        )

    def test_extrinsics_vector(self):
        camera = self.camera.with_extrinsics(np.array([0.1, 0.2, 0.3, 1.0, 2.0, 3.0]))
        np.testing.assert_array_equal(camera.extrinsics_vector(), [0.1, 0.2, 0.3, 1.0, 2.0, 3.0])
        np.testing.assert_array_equal(self.camera.extrinsics_vector(), np.zeros(6))

    def test_with_extrinsics_requires_six_values(self):
        with pytest.raises(ValueError):
            self.camera.with_extrinsics(np.zeros(5))

    def test_project(self):
        uv = self.camera.project(np.array([[0.0, 0.0, 10.0], [1.0, 0.0, 10.0]]))
        np.testing.assert_allclose(uv, [[500.0, 500.0], [600.0, 500.0]])

    def test_project_with_distortion(self):
        camera = self.camera.model_copy(update={
            "intrinsics": CameraIntrinsics(focal_length=1000.0, principal_point=(500.0, 500.0), dist_coeffs=(0.1,))
        })
        uv = camera.project(np.array([[5.0, 0.0, 10.0]]), DistortionModel.POLYNOMIAL_RADIAL)
        np.testing.assert_allclose(uv, [[500.0 + 500.0 * 1.025, 500.0]])

    def test_center(self):
        camera = self.camera.with_extrinsics(np.array([0.0, 0.0, 0.0, 0.0, 0.0, 5.0]))
        np.testing.assert_allclose(camera.center(), [0.0, 0.0, -5.0])


class TestLandmarkAndTrack:
    """Test landmark and track models."""

    def test_with_position_carries_color(self):
        landmark = Landmark(position=(1.0, 2.0, 3.0), color=(10, 20, 30))
        moved = landmark.with_position(np.array([4.0, 5.0, 6.0]))

        assert moved.position == (4.0, 5.0, 6.0)
        assert moved.color == (10, 20, 30)
        assert landmark.position == (1.0, 2.0, 3.0)

    def test_invalid_color(self):
        with pytest.raises(ValidationError):
            Landmark(position=(0.0, 0.0, 0.0), color=(0, 0, 256))

    def test_with_position_requires_three_values(self):
        with pytest.raises(ValueError):
            Landmark(position=(0.0, 0.0, 0.0)).with_position(np.zeros(2))

    def test_track_frame_ids(self):
        track = Track(id=3, observations=(
            Observation(frame_id=1, location=(10.0, 20.0)),
            Observation(frame_id=4, location=(11.0, 21.0)),
        ))
        assert track.frame_ids() == [1, 4]

    def test_empty_track(self):
        assert Track(id=0).observations == ()
