"""Parameter blocks: the flat vectors a solver mutates in place.

Blocks live in a ParameterArena and are referenced by integer handles,
so residual terms never hold on to the arrays themselves.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Hashable, Iterable, Iterator, List, Optional, Tuple

import numpy as np


class BlockType(Enum):
    """Kinds of parameter blocks."""
    EXTRINSICS = "extrinsics"
    INTRINSICS = "intrinsics"
    LANDMARK = "landmark"


BlockKey = Tuple[BlockType, Hashable]


@dataclass
class ParameterBlock:
    """A named, mutable vector of scalars with a per-entry constant mask."""

    handle: int
    type: BlockType
    key: Hashable
    value: np.ndarray
    constant_mask: Optional[np.ndarray] = None

    def __post_init__(self):
        self.value = np.array(self.value, dtype=float).ravel()
        if self.constant_mask is None:
            self.constant_mask = np.zeros(self.size, dtype=bool)
        else:
            self.constant_mask = np.array(self.constant_mask, dtype=bool).ravel()
            if len(self.constant_mask) != self.size:
                raise ValueError(f"Block {self.label}: constant mask size != block size")

    @property
    def size(self) -> int:
        return len(self.value)

    @property
    def label(self) -> str:
        return f"{self.type.value}[{self.key}]"

    @property
    def is_constant(self) -> bool:
        """True when no entry of the block is optimizable."""
        return bool(self.constant_mask.all())

    @property
    def free_size(self) -> int:
        return int(np.count_nonzero(~self.constant_mask))

    def get_value(self) -> np.ndarray:
        """Copy of the current value."""
        return self.value.copy()

    def set_constant(self) -> None:
        """Hold every entry of the block fixed."""
        self.constant_mask[:] = True

    def set_constant_indices(self, indices: Iterable[int]) -> None:
        """Hold the listed entries fixed, leaving the others optimizable."""
        indices = list(indices)
        for index in indices:
            if index < 0 or index >= self.size:
                raise ValueError(f"Block {self.label}: constant index {index} outside [0, {self.size})")
        self.constant_mask[:] = False
        self.constant_mask[indices] = True

    def free_values(self) -> np.ndarray:
        return self.value[~self.constant_mask]

    def set_free_values(self, values: np.ndarray) -> None:
        """Overwrite the optimizable entries in place."""
        values = np.asarray(values, dtype=float)
        if len(values) != self.free_size:
            raise ValueError(f"Block {self.label}: got {len(values)} values for {self.free_size} free entries")
        self.value[~self.constant_mask] = values


@dataclass
class ParameterArena:
    """Owns every parameter block of one problem, addressed by stable handles."""

    blocks: List[ParameterBlock] = field(default_factory=list)
    _handles: Dict[BlockKey, int] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.blocks)

    def __iter__(self) -> Iterator[ParameterBlock]:
        return iter(self.blocks)

    def add_block(self, block_type: BlockType, key: Hashable, value: np.ndarray) -> int:
        """Add a block and return its handle.

        Args:
            block_type: Kind of block
            key: Identifier unique within the block type
            value: Initial value, copied into the block
        """
        if (block_type, key) in self._handles:
            raise ValueError(f"Block {block_type.value}[{key}] already exists")

        handle = len(self.blocks)
        self.blocks.append(ParameterBlock(handle=handle, type=block_type, key=key, value=value))
        self._handles[(block_type, key)] = handle
        return handle

    def get_or_add(self, block_type: BlockType, key: Hashable, value: np.ndarray) -> int:
        """Handle of an existing block, or of a new one initialized from value."""
        handle = self._handles.get((block_type, key))
        if handle is None:
            handle = self.add_block(block_type, key, value)
        return handle

    def handle_of(self, block_type: BlockType, key: Hashable) -> Optional[int]:
        return self._handles.get((block_type, key))

    def block(self, handle: int) -> ParameterBlock:
        """Get block by handle."""
        if handle < 0 or handle >= len(self.blocks):
            raise ValueError(f"Parameter block handle {handle} not found")
        return self.blocks[handle]

    def value(self, handle: int) -> np.ndarray:
        return self.block(handle).get_value()

    def blocks_of_type(self, block_type: BlockType) -> List[ParameterBlock]:
        return [block for block in self.blocks if block.type == block_type]

    def values_by_key(self, block_type: BlockType) -> Dict[Hashable, np.ndarray]:
        """Copies of the current values of every block of a type."""
        return {block.key: block.get_value() for block in self.blocks_of_type(block_type)}

    @property
    def num_parameters(self) -> int:
        return sum(block.size for block in self.blocks)

    @property
    def num_free_parameters(self) -> int:
        return sum(block.free_size for block in self.blocks)

    def pack(self) -> np.ndarray:
        """Pack free entries of all blocks into a single vector, in handle order."""
        packed_values = [block.free_values() for block in self.blocks if block.free_size]
        if not packed_values:
            return np.array([])
        return np.concatenate(packed_values)

    def unpack(self, params: np.ndarray) -> None:
        """Write a packed vector back into the blocks in place."""
        offset = 0
        for block in self.blocks:
            end_offset = offset + block.free_size
            if end_offset > len(params):
                raise ValueError(f"Not enough parameters for block {block.label}")
            block.set_free_values(params[offset:end_offset])
            offset = end_offset

        if offset != len(params):
            raise ValueError(f"Parameter vector size mismatch: {offset} vs {len(params)}")

    def column_map(self) -> List[np.ndarray]:
        """Per block, the packed column of each entry, or -1 for constant entries."""
        columns = []
        offset = 0
        for block in self.blocks:
            block_columns = np.full(block.size, -1, dtype=int)
            free = ~block.constant_mask
            block_columns[free] = offset + np.arange(block.free_size)
            offset += block.free_size
            columns.append(block_columns)
        return columns

    def summary(self) -> Dict[str, Any]:
        """Block statistics."""
        by_type: Dict[str, int] = {}
        for block in self.blocks:
            by_type[block.type.value] = by_type.get(block.type.value, 0) + 1

        return {
            "total": len(self.blocks),
            "constant": sum(1 for block in self.blocks if block.is_constant),
            "total_parameters": self.num_parameters,
            "free_parameters": self.num_free_parameters,
            "by_type": by_type,
        }
