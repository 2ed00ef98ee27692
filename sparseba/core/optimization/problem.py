"""Bundle adjustment problem: parameter blocks, residual terms and the shared loss."""

import logging
from typing import Hashable, List, Optional, Tuple

import numpy as np
from scipy.sparse import csr_matrix

from ..math.robust import LossFunctionType, LossHandoff, LossOwnership, RobustLoss
from .constancy import IntrinsicsConstancy
from .parameter_blocks import BlockType, ParameterArena
from .residuals import ReprojectionResidual

logger = logging.getLogger(__name__)


class BundleAdjustmentProblem:
    """Nonlinear least squares problem over reprojection residuals.

    The problem takes ownership of its loss when the first residual is added
    and releases it in close(). Use it as a context manager so that teardown
    happens on every exit path.
    """

    def __init__(self, loss: RobustLoss):
        """Initialize an empty problem.

        Args:
            loss: Robust loss shared by all residuals
        """
        self.loss = loss
        self.arena = ParameterArena()
        self.residuals: List[ReprojectionResidual] = []
        self._structure: Optional[Tuple[np.ndarray, np.ndarray, np.ndarray]] = None
        self._closed = False

    def __enter__(self) -> "BundleAdjustmentProblem":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def num_residual_blocks(self) -> int:
        return len(self.residuals)

    @property
    def num_residuals(self) -> int:
        return sum(residual.dimension for residual in self.residuals)

    def block_for(self, block_type: BlockType, key: Hashable, value: np.ndarray) -> int:
        """Handle of the block for key, created from value on first use."""
        self._check_open()
        return self.arena.get_or_add(block_type, key, value)

    def add_residual(self, residual: ReprojectionResidual) -> int:
        """Register a residual and return its index."""
        self._check_open()
        for handle in residual.handles:
            self.arena.block(handle)

        if not self.residuals:
            self.loss.attach(self)
        self.residuals.append(residual)
        self._structure = None
        return len(self.residuals) - 1

    def loss_handoff(self) -> LossHandoff:
        """Who is responsible for releasing the loss."""
        if self.residuals:
            return LossHandoff(LossOwnership.ATTACHED, self.loss)
        return LossHandoff(LossOwnership.UNUSED, self.loss)

    def apply_intrinsics_constancy(self, constancy: IntrinsicsConstancy) -> int:
        """Apply constancy to every intrinsics block; returns the number of blocks touched."""
        blocks = self.arena.blocks_of_type(BlockType.INTRINSICS)
        for block in blocks:
            constancy.apply(block)
        self._structure = None
        logger.debug(f"Applied {constancy.kind.value} constancy to {len(blocks)} intrinsics blocks")
        return len(blocks)

    def initial_parameters(self) -> np.ndarray:
        """Packed copy of the free scalars."""
        return self.arena.pack()

    def residual_vector(self, x: Optional[np.ndarray] = None) -> np.ndarray:
        """Stacked reprojection residuals in pixels, after writing x into the blocks when given."""
        if x is not None:
            self.arena.unpack(x)
        if not self.residuals:
            return np.array([])
        return np.concatenate([residual.evaluate(self.arena) for residual in self.residuals])

    def evaluate(self, x: Optional[np.ndarray] = None) -> np.ndarray:
        """Residual vector minimized by the solver.

        Each reprojection residual r is scaled by the loss weight g(|r|^2), so
        half the squared norm of the result is the robust cost of the problem.
        """
        residuals = self.residual_vector(x)
        if len(residuals) == 0 or self.loss.kind == LossFunctionType.TRIVIAL:
            return residuals

        blocks = residuals.reshape(-1, ReprojectionResidual.dimension)
        weights, _ = self.loss.whitening(np.sum(blocks**2, axis=1))
        return (blocks * weights[:, None]).ravel()

    def cost(self, residuals: np.ndarray) -> float:
        """Half the summed loss of the squared reprojection error of each block."""
        if len(residuals) == 0:
            return 0.0
        squared_norms = np.sum(residuals.reshape(-1, ReprojectionResidual.dimension)**2, axis=1)
        return float(0.5 * np.sum(self.loss.evaluate(squared_norms)))

    def residual_errors(self, residuals: np.ndarray) -> np.ndarray:
        """Pixel error magnitude of each residual block."""
        if len(residuals) == 0:
            return np.array([])
        return np.linalg.norm(residuals.reshape(-1, ReprojectionResidual.dimension), axis=1)

    def jacobian(self, x: Optional[np.ndarray] = None) -> csr_matrix:
        """Sparse Jacobian of evaluate() with respect to the free scalars."""
        if x is not None:
            self.arena.unpack(x)

        shape = (self.num_residuals, self.arena.num_free_parameters)
        if not self.residuals:
            return csr_matrix(shape)

        rows, cols, take = self._jacobian_structure()
        blocks = [np.hstack(residual.compute_jacobian(self.arena)) for residual in self.residuals]

        if self.loss.kind != LossFunctionType.TRIVIAL:
            raw = self.residual_vector().reshape(-1, ReprojectionResidual.dimension)
            weights, weight_derivatives = self.loss.whitening(np.sum(raw**2, axis=1))
            identity = np.eye(ReprojectionResidual.dimension)
            blocks = [
                (g * identity + 2 * dg * np.outer(r, r)) @ J
                for J, r, g, dg in zip(blocks, raw, weights, weight_derivatives)
            ]

        data = np.concatenate([J.ravel() for J in blocks])[take]
        return csr_matrix((data, (rows, cols)), shape=shape)

    def jacobian_sparsity(self) -> csr_matrix:
        """Structural non-zeros of the Jacobian."""
        shape = (self.num_residuals, self.arena.num_free_parameters)
        if not self.residuals:
            return csr_matrix(shape)
        rows, cols, _ = self._jacobian_structure()
        return csr_matrix((np.ones(len(rows)), (rows, cols)), shape=shape)

    def _jacobian_structure(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Row and column of every free Jacobian entry, and its index into the raveled residual Jacobians.

        Built once and reused until residuals or constancy change.
        """
        if self._structure is not None:
            return self._structure

        columns = self.arena.column_map()
        rows, cols, take = [], [], []
        offset = 0

        for index, residual in enumerate(self.residuals):
            block_columns = np.concatenate([columns[handle] for handle in residual.handles])
            free = np.flatnonzero(block_columns >= 0)
            width = len(block_columns)
            for r in range(residual.dimension):
                rows.append(np.full(len(free), index * residual.dimension + r))
                cols.append(block_columns[free])
                take.append(offset + r * width + free)
            offset += residual.dimension * width

        self._structure = (np.concatenate(rows), np.concatenate(cols), np.concatenate(take))
        return self._structure

    def close(self) -> None:
        """Release the loss if this problem owns it. Safe to call more than once."""
        if self._closed:
            return
        if self.loss.owner is self:
            self.loss.release(self)
        self._closed = True

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("Problem is closed")
