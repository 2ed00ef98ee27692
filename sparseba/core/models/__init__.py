"""Data models for sparseba."""

from .entities import (
    Camera,
    CameraIntrinsics,
    CameraMap,
    Landmark,
    LandmarkMap,
    Observation,
    Track,
)
from .settings import (
    BundleAdjustSettings,
    CameraSettings,
    IntrinsicsShareType,
    SolverSettings,
)
from .results import BundleAdjustResult, SolverSummary

__all__ = [
    "Camera",
    "CameraIntrinsics",
    "CameraMap",
    "Landmark",
    "LandmarkMap",
    "Observation",
    "Track",
    "BundleAdjustSettings",
    "CameraSettings",
    "IntrinsicsShareType",
    "SolverSettings",
    "BundleAdjustResult",
    "SolverSummary",
]
