"""Core entities: CameraIntrinsics, Camera, Landmark, Observation, Track.

All entities are immutable. Updating a camera or landmark produces a new
object, so collections handed to bundle adjustment are never modified.
"""

from typing import Dict, List, Optional, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..math.camera import project
from ..math.distortion import DistortionModel, num_distortion_params
from ..math.rotation import rotation_matrix

Vector2 = Tuple[float, float]
Vector3 = Tuple[float, float, float]

# Intrinsic vector layout: [focal, ppx, ppy, aspect_ratio, skew, d_0 ... d_{D-1}]
NUM_BASE_INTRINSICS = 5
# Extrinsic vector layout: [rx, ry, rz, tx, ty, tz]
NUM_EXTRINSICS = 6


class CameraIntrinsics(BaseModel):
    """Internal camera calibration.

    - focal_length: Focal length in pixels
    - principal_point: (x, y) in pixels
    - aspect_ratio: Ratio of horizontal to vertical focal length
    - skew: Pixel skew
    - dist_coeffs: Distortion coefficients in OpenCV order (k1, k2, p1, p2, k3, k4, k5, k6)
    """

    model_config = ConfigDict(frozen=True)

    focal_length: float = Field(gt=0, description="Focal length in pixels")
    principal_point: Vector2 = Field(default=(0.0, 0.0), description="Principal point (x, y)")
    aspect_ratio: float = Field(default=1.0, gt=0, description="Focal length aspect ratio")
    skew: float = Field(default=0.0, description="Pixel skew")
    dist_coeffs: Tuple[float, ...] = Field(
        default=(),
        description="Distortion coefficients",
        max_length=8
    )

    def to_vector(self, num_distortion: int) -> np.ndarray:
        """Flatten into a parameter vector of length 5 + num_distortion.

        Distortion coefficients are zero-padded or truncated to num_distortion.
        """
        dist = np.zeros(num_distortion)
        n = min(num_distortion, len(self.dist_coeffs))
        dist[:n] = self.dist_coeffs[:n]
        base = [self.focal_length, *self.principal_point, self.aspect_ratio, self.skew]
        return np.concatenate([np.array(base, dtype=float), dist])

    def with_vector(self, vector: np.ndarray) -> "CameraIntrinsics":
        """New intrinsics with values taken from a parameter vector.

        Coefficients beyond the vector's distortion part are kept. Zero
        coefficients padded on by to_vector are dropped again when unchanged.
        """
        vector = np.asarray(vector, dtype=float)
        if len(vector) < NUM_BASE_INTRINSICS:
            raise ValueError(f"Intrinsics vector needs at least 5 elements, got {len(vector)}")

        optimized = [float(d) for d in vector[NUM_BASE_INTRINSICS:]]
        original = list(self.dist_coeffs)
        coeffs = optimized + original[len(optimized):]
        if len(coeffs) > len(original) and not any(coeffs[len(original):]):
            coeffs = coeffs[:len(original)]

        return self.model_copy(update={
            "focal_length": float(vector[0]),
            "principal_point": (float(vector[1]), float(vector[2])),
            "aspect_ratio": float(vector[3]),
            "skew": float(vector[4]),
            "dist_coeffs": tuple(coeffs),
        })


class Camera(BaseModel):
    """Camera with extrinsics and intrinsics.

    The pose maps world points into the camera frame: X_cam = R(rotation) X + translation.
    """

    model_config = ConfigDict(frozen=True)

    rotation: Vector3 = Field(default=(0.0, 0.0, 0.0), description="Rotation as axis-angle (rx, ry, rz)")
    translation: Vector3 = Field(default=(0.0, 0.0, 0.0), description="Translation (tx, ty, tz)")
    intrinsics: CameraIntrinsics = Field(description="Internal calibration")

    def extrinsics_vector(self) -> np.ndarray:
        """Flatten pose into [rx, ry, rz, tx, ty, tz]."""
        return np.array([*self.rotation, *self.translation], dtype=float)

    def with_extrinsics(self, vector: np.ndarray) -> "Camera":
        """New camera with pose taken from an extrinsics vector."""
        vector = np.asarray(vector, dtype=float)
        if vector.shape != (NUM_EXTRINSICS,):
            raise ValueError(f"Extrinsics vector must have 6 elements, got shape {vector.shape}")
        return self.model_copy(update={
            "rotation": tuple(float(r) for r in vector[:3]),
            "translation": tuple(float(t) for t in vector[3:]),
        })

    def rotation_matrix(self) -> np.ndarray:
        """World-to-camera rotation matrix."""
        return rotation_matrix(np.array(self.rotation, dtype=float))

    def center(self) -> np.ndarray:
        """Camera center in world coordinates."""
        return -self.rotation_matrix().T @ np.array(self.translation, dtype=float)

    def project(
        self,
        points: np.ndarray,
        distortion_model: DistortionModel = DistortionModel.NONE
    ) -> np.ndarray:
        """Project Nx3 world points into Nx2 pixel coordinates."""
        num_distortion = num_distortion_params(distortion_model)
        return project(
            self.intrinsics.to_vector(num_distortion),
            self.extrinsics_vector(),
            np.asarray(points, dtype=float),
            distortion_model
        )


class Landmark(BaseModel):
    """3D point in world coordinates."""

    model_config = ConfigDict(frozen=True)

    position: Vector3 = Field(description="3D coordinates (x, y, z)")
    color: Optional[Tuple[int, int, int]] = Field(default=None, description="RGB color")

    @field_validator('color')
    @classmethod
    def validate_color(cls, v):
        if v is not None and any(c < 0 or c > 255 for c in v):
            raise ValueError("color channels must be in [0, 255]")
        return v

    def to_numpy(self) -> np.ndarray:
        """Convert position to numpy array."""
        return np.array(self.position, dtype=float)

    def with_position(self, position: np.ndarray) -> "Landmark":
        """New landmark at a different position."""
        position = np.asarray(position, dtype=float)
        if position.shape != (3,):
            raise ValueError("position must be 3-element array")
        return self.model_copy(update={"position": tuple(float(p) for p in position)})


class Observation(BaseModel):
    """A feature location observed in one frame."""

    model_config = ConfigDict(frozen=True)

    frame_id: int = Field(description="Frame the feature was observed in")
    location: Vector2 = Field(description="Pixel location (u, v)")


class Track(BaseModel):
    """2D observations across frames of a single landmark."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(description="Track identifier, shared with its landmark")
    observations: Tuple[Observation, ...] = Field(default=(), description="Observations in frame order")

    def frame_ids(self) -> List[int]:
        """Frames this track is observed in."""
        return [obs.frame_id for obs in self.observations]


CameraMap = Dict[int, Camera]
LandmarkMap = Dict[int, Landmark]
