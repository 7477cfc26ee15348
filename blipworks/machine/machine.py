"""
Machine: the block layout a player builds.

Blocks are stored twice: a dense grid maps every position to the slot index
of its occupant, and an arena holds `(position, PlacedBlock)` per slot. Every
mutation keeps both directions of this mapping consistent.
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Tuple

from ..util.arena import Arena
from .block import Input, Output, PlacedBlock
from .grid import Dir3, Grid3, Point3, Vector3, shift
from .level import Level

logger = logging.getLogger(__name__)

BlockIndex = int


@dataclass
class Blocks:
    """Position -> slot grid plus the slot arena it points into."""
    indices: Grid3
    data: Arena = field(default_factory=Arena)

    @classmethod
    def empty(cls, size: Vector3) -> "Blocks":
        return cls(Grid3(size), Arena())


class Machine:
    """A block layout on a fixed-size grid, optionally bound to a level."""

    def __init__(self, blocks: Blocks, level: Optional[Level] = None):
        self.blocks = blocks
        self.level = level

    @classmethod
    def new_sandbox(cls, size: Vector3) -> "Machine":
        """Empty machine without a level."""
        return cls(Blocks.empty(size))

    @classmethod
    def new_from_block_data(
        cls,
        size: Vector3,
        block_data: Iterable[Tuple[Point3, PlacedBlock]],
        level: Optional[Level] = None,
    ) -> "Machine":
        """
        Build a machine from an ordered sequence of placed blocks.

        Slot indices are assigned in sequence order. Positions must be valid
        and distinct.
        """
        machine = cls(Blocks.empty(size), copy.deepcopy(level))

        for pos, placed_block in block_data:
            pos = tuple(pos)
            if not machine.is_valid_pos(pos):
                raise IndexError(f"Block position {pos} outside machine of size {machine.size()}")
            if machine.blocks.indices[pos] is not None:
                raise ValueError(f"Duplicate block at position {pos}")
            index = machine.blocks.data.add((pos, placed_block.copy()))
            machine.blocks.indices[pos] = index

        return machine

    @classmethod
    def new_from_level(cls, level: Level) -> "Machine":
        """
        Empty machine for a level, with the level's fixed blocks placed.

        Inputs are stacked on the X-minimum face and outputs on the X-maximum
        face, centered along Y, on the bottom layer.
        """
        machine = cls(Blocks.empty(level.size), copy.deepcopy(level))
        size_x, size_y, _ = level.size

        input_y_start = size_y // 2 - level.spec.input_dim() // 2
        for index in range(level.spec.input_dim()):
            machine.set_block_at_pos(
                (0, input_y_start + index, 0),
                PlacedBlock(Input(index=index)),
            )

        output_y_start = size_y // 2 - level.spec.output_dim() // 2
        for index in range(level.spec.output_dim()):
            machine.set_block_at_pos(
                (size_x - 1, output_y_start + index, 0),
                PlacedBlock(Output(index=index)),
            )

        logger.debug(
            f"Created level machine of size {level.size} with "
            f"{level.spec.input_dim()} inputs and {level.spec.output_dim()} outputs"
        )
        return machine

    def size(self) -> Vector3:
        return self.blocks.indices.size()

    def is_valid_pos(self, pos: Point3) -> bool:
        return self.blocks.indices.is_valid_pos(pos)

    def is_valid_layer(self, layer: int) -> bool:
        return 0 <= layer < self.size()[2]

    def get_index_at_pos(self, pos: Point3) -> Optional[BlockIndex]:
        return self.blocks.indices.get(pos)

    def get_block_at_pos(self, pos: Point3) -> Optional[Tuple[BlockIndex, PlacedBlock]]:
        """Slot and block at `pos`, or None if empty or outside the grid."""
        index = self.blocks.indices.get(pos)
        if index is None:
            return None
        return index, self.blocks.data[index][1]

    # Blocks are mutable objects, so the same accessor serves for in-place edits
    get_block_at_pos_mut = get_block_at_pos

    def block_at_index(self, index: BlockIndex) -> Tuple[Point3, PlacedBlock]:
        return self.blocks.data[index]

    def block_pos_at_index(self, index: BlockIndex) -> Point3:
        return self.blocks.data[index][0]

    def set_block_at_pos(self, pos: Point3, block: Optional[PlacedBlock]) -> None:
        """Replace whatever is at `pos` with `block` (or clear it for None)."""
        pos = tuple(pos)
        if not self.is_valid_pos(pos):
            raise IndexError(f"Position {pos} outside machine of size {self.size()}")

        self.remove_at_pos(pos)

        if block is not None:
            index = self.blocks.data.add((pos, block))
            self.blocks.indices[pos] = index

    def remove_at_pos(self, pos: Point3) -> Optional[Tuple[BlockIndex, PlacedBlock]]:
        """Remove and return the occupant of `pos`, if any."""
        pos = tuple(pos)
        index = self.blocks.indices.get(pos)
        if index is None:
            return None

        self.blocks.indices[pos] = None
        data_pos, block = self.blocks.data.remove(index)
        assert data_pos == pos, f"Slot {index} stored at {data_pos}, indexed at {pos}"
        return index, block

    def iter_blocks(self) -> Iterator[Tuple[BlockIndex, Tuple[Point3, PlacedBlock]]]:
        """Live slots in index order."""
        return self.blocks.data.iter()

    iter_blocks_mut = iter_blocks

    def iter_neighbors(self, pos: Point3) -> Iterator[Tuple[Dir3, BlockIndex]]:
        """(direction, slot) for every occupied neighbor cell of `pos`."""
        for direction in Dir3:
            index = self.blocks.indices.get(shift(pos, direction))
            if index is not None:
                yield direction, index

    def gc(self) -> None:
        """
        Compact the block arena and resync the grid's slot indices.

        Invalidates every slot index held outside the machine.
        """
        self.blocks.data.gc()

        for index, (pos, _) in self.blocks.data.iter():
            self.blocks.indices[pos] = index

        assert self.is_consistent()

    def is_contiguous(self) -> bool:
        return self.blocks.data.num_free() == 0

    def num_blocks(self) -> int:
        return len(self.blocks.data)

    def is_consistent(self) -> bool:
        """Check that grid and arena agree in both directions."""
        for index, (pos, _) in self.blocks.data.iter():
            if self.blocks.indices.get(pos) != index:
                return False

        for pos in self.blocks.indices.occupied():
            index = self.blocks.indices[pos]
            entry = self.blocks.data.get(index)
            if entry is None or entry[0] != pos:
                return False

        return True

    def inputs(self) -> List[Tuple[BlockIndex, Point3, Input]]:
        return [
            (index, pos, placed.block)
            for index, (pos, placed) in self.iter_blocks()
            if isinstance(placed.block, Input)
        ]

    def outputs(self) -> List[Tuple[BlockIndex, Point3, Output]]:
        return [
            (index, pos, placed.block)
            for index, (pos, placed) in self.iter_blocks()
            if isinstance(placed.block, Output)
        ]

    def copy(self) -> "Machine":
        return copy.deepcopy(self)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Machine):
            return NotImplemented
        return self.blocks == other.blocks and self.level == other.level

    def __repr__(self) -> str:
        return f"Machine(size={self.size()}, blocks={self.num_blocks()}, level={self.level is not None})"
