"""Tests for bundle adjustment settings and results."""

import math

import pytest
from pydantic import ValidationError

from sparseba.core.math.distortion import DistortionModel
from sparseba.core.math.robust import LossFunctionType
from sparseba.core.models.results import SolverSummary
from sparseba.core.models.settings import (
    BundleAdjustSettings,
    CameraSettings,
    IntrinsicsShareType,
    SolverSettings,
)


class TestSettingsDefaults:
    """Test default values."""

    def test_bundle_adjust_defaults(self):
        settings = BundleAdjustSettings()

        assert settings.verbose is False
        assert settings.loss_function_type == LossFunctionType.TRIVIAL
        assert settings.loss_function_scale == 1.0
        assert settings.commit_on_failure is False
        assert settings.solver.method == "trf"
        assert settings.camera.distortion_model == DistortionModel.NONE
        assert settings.camera.intrinsics_share_type == IntrinsicsShareType.AUTO

    def test_camera_optimize_flag_defaults(self):
        camera = CameraSettings()

        assert camera.optimize_focal_length is True
        assert camera.optimize_dist_k1 is True
        assert camera.optimize_aspect_ratio is False
        assert camera.optimize_principal_point is False
        assert camera.optimize_skew is False
        assert camera.optimize_dist_k2 is False
        assert camera.optimize_dist_k3 is False
        assert camera.optimize_dist_p1_p2 is False
        assert camera.optimize_dist_k4_k5_k6 is False
        assert camera.constant_intrinsics is None

    def test_num_distortion_params(self):
        camera = CameraSettings(distortion_model="rational_radial_tangential")
        assert camera.num_distortion_params == 8


class TestSettingsValidation:
    """Test validation rules."""

    def test_loss_scale_must_be_positive(self):
        with pytest.raises(ValidationError):
            BundleAdjustSettings(loss_function_scale=0.0)

    def test_unknown_loss_type(self):
        with pytest.raises(ValidationError):
            BundleAdjustSettings(loss_function_type="welsch")

    def test_unknown_distortion_model(self):
        with pytest.raises(ValidationError):
            CameraSettings(distortion_model="fisheye")

    def test_lm_requires_trivial_loss(self):
        with pytest.raises(ValidationError):
            BundleAdjustSettings(solver=SolverSettings(method="lm"), loss_function_type="huber")
        BundleAdjustSettings(solver=SolverSettings(method="lm"))

    def test_constant_intrinsics_range_depends_on_model(self):
        CameraSettings(constant_intrinsics=[0, 4])
        with pytest.raises(ValidationError):
            CameraSettings(constant_intrinsics=[5])
        CameraSettings(distortion_model="polynomial_radial", constant_intrinsics=[5, 6])

    def test_constant_intrinsics_must_be_unique(self):
        with pytest.raises(ValidationError):
            CameraSettings(constant_intrinsics=[1, 1])

    def test_x_scale(self):
        assert SolverSettings(x_scale=2.0).x_scale == 2.0
        with pytest.raises(ValidationError):
            SolverSettings(x_scale=-1.0)
        with pytest.raises(ValidationError):
            SolverSettings(x_scale="auto")

    def test_unknown_keys_rejected(self):
        with pytest.raises(ValidationError):
            BundleAdjustSettings.model_validate({"loss_function": "huber"})
        with pytest.raises(ValidationError):
            BundleAdjustSettings.model_validate({"camera": {"optimise_skew": True}})

    def test_json_round_trip(self):
        settings = BundleAdjustSettings(
            loss_function_type="cauchy",
            camera=CameraSettings(distortion_model="polynomial_radial", intrinsics_share_type="unique")
        )
        restored = BundleAdjustSettings.model_validate(settings.model_dump(mode="json"))
        assert restored == settings


class TestSolverSummary:
    """Test solver summary reports."""

    def test_non_finite_costs_are_clamped(self):
        summary = SolverSummary(success=False, initial_cost=math.inf, final_cost=math.nan)
        assert summary.initial_cost == 1e10
        assert summary.final_cost == 1e10

    def test_reports(self):
        summary = SolverSummary(
            success=True,
            iterations=3,
            initial_cost=10.0,
            final_cost=0.5,
            termination_reason="Converged: Function tolerance satisfied",
            largest_residuals=[("track_1/frame_0", 0.25)],
            computation_time=0.01,
        )

        assert summary.brief_report().startswith("CONVERGENCE")
        report = summary.full_report()
        assert "Function tolerance satisfied" in report
        assert "track_1/frame_0" in report
        assert "FAILURE" in SolverSummary(success=False).brief_report()
