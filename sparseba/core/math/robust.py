"""Robust loss functions and their ownership handoff.

Losses act on the squared norm ``s`` of a whole residual block and follow
the Ceres conventions: ``rho(s) = a * rho_1(s / a)`` with ``a = c**2`` for a
scale ``c``, except arctan where ``a = c``. Unit losses return a ``(3, m)``
array holding ``rho``, ``rho'`` and ``rho''``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple, Union

import numpy as np

from ..errors import LossOwnershipError


class LossFunctionType(str, Enum):
    """Robust loss function types."""
    TRIVIAL = "trivial"
    HUBER = "huber"
    SOFT_L_ONE = "soft_l1"
    CAUCHY = "cauchy"
    ARCTAN = "arctan"
    TUKEY = "tukey"


def trivial_loss(s: np.ndarray) -> np.ndarray:
    """Identity loss: rho(s) = s."""
    rho = np.empty((3, s.size))
    rho[0] = s
    rho[1] = 1.0
    rho[2] = 0.0
    return rho


def huber_loss(s: np.ndarray) -> np.ndarray:
    """Huber loss: s for s <= 1, 2 sqrt(s) - 1 otherwise."""
    rho = np.empty((3, s.size))
    is_inlier = s <= 1
    s_outer = np.where(is_inlier, 1.0, s)
    root = np.sqrt(s_outer)

    rho[0] = np.where(is_inlier, s, 2 * root - 1)
    rho[1] = np.where(is_inlier, 1.0, 1 / root)
    rho[2] = np.where(is_inlier, 0.0, -0.5 / (root * s_outer))
    return rho


def soft_l1_loss(s: np.ndarray) -> np.ndarray:
    """Soft L1 loss: 2 (sqrt(1 + s) - 1)."""
    rho = np.empty((3, s.size))
    t = 1 + s
    rho[0] = 2 * (np.sqrt(t) - 1)
    rho[1] = t**-0.5
    rho[2] = -0.5 * t**-1.5
    return rho


def cauchy_loss(s: np.ndarray) -> np.ndarray:
    """Cauchy loss: log(1 + s)."""
    rho = np.empty((3, s.size))
    t = 1 + s
    rho[0] = np.log1p(s)
    rho[1] = 1 / t
    rho[2] = -1 / t**2
    return rho


def arctan_loss(s: np.ndarray) -> np.ndarray:
    """Arctan loss: arctan(s)."""
    rho = np.empty((3, s.size))
    t = 1 + s**2
    rho[0] = np.arctan(s)
    rho[1] = 1 / t
    rho[2] = -2 * s / t**2
    return rho


def tukey_loss(s: np.ndarray) -> np.ndarray:
    """Tukey biweight loss: (1 - (1 - s)^3) / 3 for s <= 1, 1/3 otherwise."""
    rho = np.empty((3, s.size))
    is_inlier = s <= 1
    t = 1 - s

    rho[0] = np.where(is_inlier, (1 - t**3) / 3, 1.0 / 3)
    rho[1] = np.where(is_inlier, t**2, 0.0)
    rho[2] = np.where(is_inlier, -2 * t, 0.0)
    return rho


_LOSS_FUNCTIONS: Dict[LossFunctionType, Callable[[np.ndarray], np.ndarray]] = {
    LossFunctionType.TRIVIAL: trivial_loss,
    LossFunctionType.HUBER: huber_loss,
    LossFunctionType.SOFT_L_ONE: soft_l1_loss,
    LossFunctionType.CAUCHY: cauchy_loss,
    LossFunctionType.ARCTAN: arctan_loss,
    LossFunctionType.TUKEY: tukey_loss,
}


class LossOwnership(Enum):
    """Who is responsible for releasing a loss function."""
    UNUSED = "unused"  # no residual term uses it; the caller releases it
    ATTACHED = "attached"  # the problem owns it and releases it on teardown


@dataclass(frozen=True)
class LossHandoff:
    """Tagged outcome of building a problem around a loss function."""

    state: LossOwnership
    loss: "RobustLoss"

    @property
    def caller_must_release(self) -> bool:
        return self.state is LossOwnership.UNUSED


class RobustLoss:
    """A scaled robust loss shared by every residual term of a problem."""

    def __init__(self, kind: LossFunctionType, scale: float = 1.0):
        """Initialize robust loss.

        Args:
            kind: Loss function type
            scale: Residual magnitude where the loss starts down-weighting, > 0
        """
        if not np.isfinite(scale) or scale <= 0:
            raise ValueError(f"Loss scale must be positive, got {scale}")

        self.kind = LossFunctionType(kind)
        self.scale = float(scale)
        self._rho = _LOSS_FUNCTIONS[self.kind]
        self._owner: Optional[Any] = None
        self._released = False

    def __call__(self, s: np.ndarray) -> np.ndarray:
        """Evaluate the unit-scale loss and its derivatives on squared residuals."""
        if self._released:
            raise LossOwnershipError(f"{self!r} was already released")
        return self._rho(np.asarray(s, dtype=float))

    def __repr__(self) -> str:
        return f"RobustLoss({self.kind.value}, scale={self.scale})"

    @property
    def argument_scale(self) -> float:
        # Ceres' ArctanLoss(a) is a * atan(s / a); the others scale by a^2
        if self.kind == LossFunctionType.ARCTAN:
            return self.scale
        return self.scale**2

    def scaled(self, s: np.ndarray) -> np.ndarray:
        """Scaled loss and its first two derivatives, a * rho(s / a), as a (3, m) array."""
        a = self.argument_scale
        rho = self(np.asarray(s, dtype=float) / a)
        rho[0] *= a
        rho[2] /= a
        return rho

    def evaluate(self, s: np.ndarray) -> np.ndarray:
        """Scaled loss values on squared residual norms."""
        return self.scaled(s)[0]

    def whitening(self, s: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Per-block weights g(s) = sqrt(rho(s) / s) and their derivatives dg/ds.

        A residual block r with s = |r|^2 maps to g(s) r, whose squared norm
        is rho(s). Its Jacobian with respect to r is g I + 2 g' r r^T.
        """
        s = np.asarray(s, dtype=float)
        rho = self.scaled(s)
        small = s < 1e-12
        s_safe = np.where(small, 1.0, s)

        g = np.where(small, np.sqrt(rho[1]), np.sqrt(rho[0] / s_safe))
        dg = np.where(small, 0.0, (rho[1] - g**2) / (2 * g * s_safe))
        return g, dg

    @property
    def owner(self) -> Optional[Any]:
        return self._owner

    @property
    def released(self) -> bool:
        return self._released

    def attach(self, owner: Any) -> None:
        """Transfer ownership to a problem. Re-attaching to the same owner is a no-op."""
        if self._released:
            raise LossOwnershipError(f"Cannot attach released {self!r}")
        if self._owner is not None and self._owner is not owner:
            raise LossOwnershipError(f"{self!r} is already owned by another problem")
        self._owner = owner

    def release(self, owner: Optional[Any] = None) -> None:
        """Release the loss.

        Args:
            owner: The owning problem when called from its teardown, None for the caller
        """
        if self._released:
            raise LossOwnershipError(f"{self!r} was already released")
        if self._owner is not owner:
            raise LossOwnershipError(f"{self!r} is owned by a problem and released by its teardown")
        self._owner = None
        self._released = True


def create_loss_function(kind: Union[LossFunctionType, str], scale: float = 1.0) -> RobustLoss:
    """Create a robust loss function.

    Args:
        kind: Loss function type
        scale: Loss scale factor

    Returns:
        New, unowned loss function
    """
    try:
        kind = LossFunctionType(kind)
    except ValueError:
        raise ValueError(f"Unknown loss type: {kind}") from None
    return RobustLoss(kind, scale)

