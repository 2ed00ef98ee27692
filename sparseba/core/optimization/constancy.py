"""Which intrinsics scalars are held constant during optimization."""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Tuple

from ..errors import ConfigurationError
from ..models.entities import NUM_BASE_INTRINSICS
from ..models.settings import CameraSettings
from .parameter_blocks import ParameterBlock

# Offsets into the intrinsics vector
FOCAL_LENGTH = 0
PRINCIPAL_POINT = (1, 2)
ASPECT_RATIO = 3
SKEW = 4
DIST_K1 = NUM_BASE_INTRINSICS + 0
DIST_K2 = NUM_BASE_INTRINSICS + 1
DIST_P1_P2 = (NUM_BASE_INTRINSICS + 2, NUM_BASE_INTRINSICS + 3)
DIST_K3 = NUM_BASE_INTRINSICS + 4
DIST_K4_K5_K6 = (NUM_BASE_INTRINSICS + 5, NUM_BASE_INTRINSICS + 6, NUM_BASE_INTRINSICS + 7)


class ConstancyKind(Enum):
    FREE = "free"
    SUBSET = "subset"
    FIXED = "fixed"


@dataclass(frozen=True)
class IntrinsicsConstancy:
    """Constancy applied to every intrinsics block of a problem."""

    kind: ConstancyKind
    indices: Tuple[int, ...] = ()

    def apply(self, block: ParameterBlock) -> None:
        if self.kind == ConstancyKind.FIXED:
            block.set_constant()
        elif self.kind == ConstancyKind.SUBSET:
            block.set_constant_indices(self.indices)


def enumerate_constant_intrinsics(camera_settings: CameraSettings) -> List[int]:
    """Intrinsics indices to hold constant, in ascending order.

    An explicit constant_intrinsics list takes precedence over the
    optimize_* flags. Distortion flags only contribute indices the
    distortion model actually has.
    """
    if camera_settings.constant_intrinsics is not None:
        return sorted(camera_settings.constant_intrinsics)

    num_distortion = camera_settings.num_distortion_params
    indices: List[int] = []

    if not camera_settings.optimize_focal_length:
        indices.append(FOCAL_LENGTH)
    if not camera_settings.optimize_principal_point:
        indices.extend(PRINCIPAL_POINT)
    if not camera_settings.optimize_aspect_ratio:
        indices.append(ASPECT_RATIO)
    if not camera_settings.optimize_skew:
        indices.append(SKEW)
    if num_distortion > 0 and not camera_settings.optimize_dist_k1:
        indices.append(DIST_K1)
    if num_distortion > 1 and not camera_settings.optimize_dist_k2:
        indices.append(DIST_K2)
    if num_distortion > 3 and not camera_settings.optimize_dist_p1_p2:
        indices.extend(DIST_P1_P2)
    if num_distortion > 4 and not camera_settings.optimize_dist_k3:
        indices.append(DIST_K3)
    if num_distortion > 5 and not camera_settings.optimize_dist_k4_k5_k6:
        indices.extend(DIST_K4_K5_K6)

    return indices


def resolve_intrinsics_constancy(constant_indices: Iterable[int], num_distortion: int) -> IntrinsicsConstancy:
    """Turn constant indices into a FREE, SUBSET or FIXED constancy.

    More than 4 + num_distortion constant indices freezes the whole block.

    Raises:
        ConfigurationError: If an index lies outside the intrinsics vector
    """
    size = NUM_BASE_INTRINSICS + num_distortion
    indices = tuple(sorted(set(constant_indices)))

    for index in indices:
        if index < 0 or index >= size:
            raise ConfigurationError(f"Constant intrinsics index {index} outside [0, {size})")

    if not indices:
        return IntrinsicsConstancy(ConstancyKind.FREE)
    if len(indices) > 4 + num_distortion:
        return IntrinsicsConstancy(ConstancyKind.FIXED, tuple(range(size)))
    return IntrinsicsConstancy(ConstancyKind.SUBSET, indices)
