"""Synthetic scene generation for testing."""

from .scene_gen import SceneGenerator, SyntheticScene, make_ring_scene, make_two_view
from .visibility import check_visibility, count_visible_cameras

__all__ = [
    "SceneGenerator",
    "SyntheticScene",
    "make_ring_scene",
    "make_two_view",
    "check_visibility",
    "count_visible_cameras",
]
