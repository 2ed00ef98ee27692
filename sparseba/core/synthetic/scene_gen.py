"""Synthetic scene generation utilities."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from ..math.distortion import DistortionModel
from ..math.rotation import look_at_rotation, rotation_matrix, rotation_vector
from ..models.entities import Camera, CameraIntrinsics, CameraMap, Landmark, LandmarkMap, Observation, Track
from .visibility import check_visibility


@dataclass
class SyntheticScene:
    """Ground truth cameras and landmarks with the tracks they produce."""

    cameras: CameraMap
    landmarks: LandmarkMap
    tracks: List[Track]
    image_size: Tuple[int, int] = (640, 480)
    distortion_model: DistortionModel = DistortionModel.NONE
    metadata: Dict[str, float] = field(default_factory=dict)

    @property
    def num_observations(self) -> int:
        return sum(len(track.observations) for track in self.tracks)


class SceneGenerator:
    """Generator for synthetic scenes and test data."""

    def __init__(self, seed: Optional[int] = None):
        """Initialize scene generator.

        Args:
            seed: Random seed for reproducible generation
        """
        self.rng = np.random.default_rng(seed)

    def generate_landmarks_box(
        self,
        n_points: int,
        bounds: Tuple[float, float, float, float, float, float] = (-1, 1, -1, 1, -1, 1)
    ) -> LandmarkMap:
        """Generate landmarks uniformly inside a box.

        Args:
            n_points: Number of landmarks
            bounds: (xmin, xmax, ymin, ymax, zmin, zmax)

        Returns:
            Track id to landmark, ids 0..n_points-1
        """
        xmin, xmax, ymin, ymax, zmin, zmax = bounds
        low = np.array([xmin, ymin, zmin])
        high = np.array([xmax, ymax, zmax])
        positions = self.rng.uniform(low, high, size=(n_points, 3))

        return {i: Landmark(position=tuple(positions[i])) for i in range(n_points)}

    def generate_landmarks_grid(
        self,
        bounds: Tuple[float, float, float, float, float, float],
        spacing: float,
        noise_std: float = 0.0
    ) -> LandmarkMap:
        """Generate landmarks on a regular grid.

        Args:
            bounds: (xmin, xmax, ymin, ymax, zmin, zmax)
            spacing: Grid spacing
            noise_std: Standard deviation of Gaussian noise to add

        Returns:
            Track id to landmark
        """
        xmin, xmax, ymin, ymax, zmin, zmax = bounds

        x_coords = np.arange(xmin, xmax + spacing / 2, spacing)
        y_coords = np.arange(ymin, ymax + spacing / 2, spacing)
        z_coords = np.arange(zmin, zmax + spacing / 2, spacing)

        landmarks = {}
        for x in x_coords:
            for y in y_coords:
                for z in z_coords:
                    coords = np.array([x, y, z])
                    if noise_std > 0:
                        coords = coords + self.rng.normal(0, noise_std, 3)
                    landmarks[len(landmarks)] = Landmark(position=tuple(coords))

        return landmarks

    def generate_cameras_circle(
        self,
        center: np.ndarray,
        radius: float,
        n_cameras: int,
        look_at: np.ndarray,
        up: np.ndarray = np.array([0.0, 0.0, 1.0]),
        intrinsics: Optional[CameraIntrinsics] = None
    ) -> CameraMap:
        """Generate cameras positioned on a circle looking at a target.

        Args:
            center: Center of the circle [x, y, z]
            radius: Radius of the circle
            n_cameras: Number of cameras to generate
            look_at: Point to look at [x, y, z]
            up: Up vector [x, y, z]
            intrinsics: Calibration shared by every camera

        Returns:
            Frame id to camera, ids 0..n_cameras-1
        """
        if intrinsics is None:
            intrinsics = CameraIntrinsics(focal_length=800.0, principal_point=(320.0, 240.0))

        cameras = {}
        angles = np.linspace(0, 2 * np.pi, n_cameras, endpoint=False)

        for i, angle in enumerate(angles):
            cam_pos = np.asarray(center, dtype=float) + radius * np.array([np.cos(angle), np.sin(angle), 0.0])

            R = look_at_rotation(cam_pos, np.asarray(look_at, dtype=float), np.asarray(up, dtype=float))
            t = -R @ cam_pos

            cameras[i] = Camera(
                rotation=tuple(rotation_vector(R)),
                translation=tuple(t),
                intrinsics=intrinsics
            )

        return cameras

    def generate_tracks(
        self,
        cameras: CameraMap,
        landmarks: LandmarkMap,
        noise_std: float = 0.0,
        image_size: Tuple[int, int] = (640, 480),
        distortion_model: DistortionModel = DistortionModel.NONE,
        min_observations: int = 2
    ) -> List[Track]:
        """Generate feature tracks by projecting landmarks into every camera.

        Args:
            cameras: Frame id to camera
            landmarks: Track id to landmark
            noise_std: Standard deviation of observation noise in pixels
            image_size: Image dimensions (width, height)
            distortion_model: Distortion model used for projection
            min_observations: Tracks seen by fewer cameras are dropped

        Returns:
            Tracks in ascending landmark id order
        """
        track_ids = sorted(landmarks)
        if not track_ids:
            return []
        X = np.array([landmarks[track_id].position for track_id in track_ids])

        observations: Dict[int, List[Observation]] = {track_id: [] for track_id in track_ids}
        for frame_id in sorted(cameras):
            visible, uv = check_visibility(
                cameras[frame_id], X, image_size[0], image_size[1], distortion_model=distortion_model
            )
            for index in np.flatnonzero(visible):
                location = uv[index]
                if noise_std > 0:
                    location = location + self.rng.normal(0, noise_std, 2)
                observations[track_ids[index]].append(
                    Observation(frame_id=frame_id, location=tuple(location))
                )

        return [
            Track(id=track_id, observations=tuple(observations[track_id]))
            for track_id in track_ids
            if len(observations[track_id]) >= min_observations
        ]

    def perturb_cameras(
        self,
        cameras: CameraMap,
        rotation_std: float = 0.0,
        translation_std: float = 0.0,
        focal_std: float = 0.0
    ) -> CameraMap:
        """Add Gaussian noise to camera poses and focal lengths.

        Rotation noise is a small axis-angle rotation (radians) composed onto
        each camera's rotation. Cameras sharing an intrinsics object keep
        sharing one perturbed object.
        """
        perturbed_intrinsics: Dict[CameraIntrinsics, CameraIntrinsics] = {}
        perturbed = {}

        for frame_id in sorted(cameras):
            camera = cameras[frame_id]
            R = rotation_matrix(self.rng.normal(0, rotation_std, 3)) @ camera.rotation_matrix()
            t = np.array(camera.translation) + self.rng.normal(0, translation_std, 3)

            intrinsics = camera.intrinsics
            if focal_std > 0:
                if intrinsics not in perturbed_intrinsics:
                    focal = intrinsics.focal_length + self.rng.normal(0, focal_std)
                    perturbed_intrinsics[intrinsics] = intrinsics.model_copy(update={"focal_length": focal})
                intrinsics = perturbed_intrinsics[intrinsics]

            perturbed[frame_id] = camera.with_extrinsics(
                np.concatenate([rotation_vector(R), t])
            ).model_copy(update={"intrinsics": intrinsics})

        return perturbed

    def perturb_landmarks(self, landmarks: LandmarkMap, position_std: float) -> LandmarkMap:
        """Add Gaussian noise to landmark positions."""
        return {
            track_id: landmark.with_position(landmark.to_numpy() + self.rng.normal(0, position_std, 3))
            for track_id, landmark in landmarks.items()
        }


def make_ring_scene(
    n_cameras: int = 6,
    n_landmarks: int = 40,
    radius: float = 6.0,
    camera_height: float = 1.0,
    noise_std: float = 0.0,
    intrinsics: Optional[CameraIntrinsics] = None,
    distortion_model: DistortionModel = DistortionModel.NONE,
    seed: Optional[int] = None
) -> SyntheticScene:
    """Create cameras on a ring around a landmark cloud at the origin.

    Args:
        n_cameras: Number of cameras
        n_landmarks: Number of landmarks
        radius: Camera distance from the vertical axis
        camera_height: Camera height above the cloud center
        noise_std: Observation noise in pixels
        intrinsics: Shared calibration
        distortion_model: Distortion model used for projection
        seed: Random seed

    Returns:
        Synthetic scene with ground truth
    """
    generator = SceneGenerator(seed=seed)

    landmarks = generator.generate_landmarks_box(n_landmarks)
    cameras = generator.generate_cameras_circle(
        center=np.array([0.0, 0.0, camera_height]),
        radius=radius,
        n_cameras=n_cameras,
        look_at=np.zeros(3),
        intrinsics=intrinsics
    )
    tracks = generator.generate_tracks(cameras, landmarks, noise_std=noise_std, distortion_model=distortion_model)

    return SyntheticScene(
        cameras=cameras,
        landmarks=landmarks,
        tracks=tracks,
        distortion_model=distortion_model,
        metadata={"noise_std": noise_std, "radius": radius}
    )


def make_two_view(
    n_points: int = 20,
    scene_bounds: Tuple[float, float, float, float, float, float] = (-2, 2, -2, 2, 4, 8),
    baseline: float = 2.0,
    noise_std: float = 0.0,
    seed: Optional[int] = None
) -> SyntheticScene:
    """Create a simple two-view scene for testing.

    Args:
        n_points: Number of 3D points
        scene_bounds: Scene bounds (xmin, xmax, ymin, ymax, zmin, zmax)
        baseline: Distance between cameras
        noise_std: Observation noise in pixels
        seed: Random seed

    Returns:
        Synthetic scene with two cameras looking down +Z
    """
    generator = SceneGenerator(seed=seed)
    landmarks = generator.generate_landmarks_box(n_points, scene_bounds)

    intrinsics = CameraIntrinsics(focal_length=500.0, principal_point=(320.0, 240.0))
    cameras = {}
    for i, x in enumerate([-baseline / 2, baseline / 2]):
        # Identity rotation, so t = -C
        cameras[i] = Camera(translation=(-x, 0.0, 0.0), intrinsics=intrinsics)

    tracks = generator.generate_tracks(cameras, landmarks, noise_std=noise_std, min_observations=1)

    return SyntheticScene(
        cameras=cameras,
        landmarks=landmarks,
        tracks=tracks,
        metadata={"noise_std": noise_std, "baseline": baseline}
    )
