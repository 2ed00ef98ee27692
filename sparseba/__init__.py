"""sparseba - Sparse bundle adjustment

Builds reprojection least squares problems from cameras, landmarks and
feature tracks, solves them with SciPy and reassembles the results.
"""

__version__ = "0.1.0"

# Core models
from .core.models.entities import Camera, CameraIntrinsics, Landmark, Observation, Track
from .core.models.settings import BundleAdjustSettings, CameraSettings, IntrinsicsShareType, SolverSettings
from .core.models.results import BundleAdjustResult, SolverSummary
from .core.math.distortion import DistortionModel
from .core.math.robust import LossFunctionType

# Errors
from .core.errors import ConfigurationError, LossOwnershipError, MissingInputError

# Optimization
from .core.adjustment.bundle_adjuster import BundleAdjuster
from .core.optimization.problem import BundleAdjustmentProblem
from .core.solver.scipy_solver import SciPySolver

__all__ = [
    # Version
    "__version__",
    # Models
    "Camera",
    "CameraIntrinsics",
    "Landmark",
    "Observation",
    "Track",
    "BundleAdjustSettings",
    "CameraSettings",
    "IntrinsicsShareType",
    "SolverSettings",
    "BundleAdjustResult",
    "SolverSummary",
    "DistortionModel",
    "LossFunctionType",
    # Errors
    "ConfigurationError",
    "LossOwnershipError",
    "MissingInputError",
    # Optimization
    "BundleAdjuster",
    "BundleAdjustmentProblem",
    "SciPySolver",
]
