"""
Block variants and placed blocks.

A `Block` describes its ports in its own local frame. Only the fields that
track execution (`activated`, spawn counters, expected kinds, input feeds)
change while a machine runs; the port geometry is a pure function of the
variant. `PlacedBlock` adds a quarter-turn rotation in the X-Y plane and is
the only place where world directions are translated into the local frame.
"""

import copy
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Type

from .grid import Axis3, Dir3, Sign


class BlipKind(Enum):
    """Kinds (colors) of blips. They cycle A -> B -> C -> A."""
    A = "a"
    B = "b"
    C = "c"

    def next(self) -> "BlipKind":
        order = [BlipKind.A, BlipKind.B, BlipKind.C]
        return order[(order.index(self) + 1) % len(order)]

    @classmethod
    def from_code(cls, code: str) -> "BlipKind":
        """Parse a kind from its letter, in either case."""
        for kind in cls:
            if kind.value == code.strip().lower():
                return kind
        raise ValueError(f"Unknown blip kind: {code}")


class BlockType(Enum):
    """Serialized tags of the block variants."""
    PIPE = "Pipe"
    PIPE_SPLIT_XY = "PipeSplitXY"
    PIPE_MERGE_XY = "PipeMergeXY"
    FUNNEL_XY = "FunnelXY"
    WIND_SOURCE = "WindSource"
    BLIP_SPAWN = "BlipSpawn"
    BLIP_DUPLICATOR = "BlipDuplicator"
    BLIP_WIND_SOURCE = "BlipWindSource"
    SOLID = "Solid"
    INPUT = "Input"
    OUTPUT = "Output"


def _kind_to_str(kind: Optional[BlipKind]) -> Optional[str]:
    return kind.value if kind is not None else None


def _kind_from_str(code: Optional[str]) -> Optional[BlipKind]:
    return BlipKind.from_code(code) if code is not None else None


class Block(ABC):
    """Abstract base class for all block variants."""

    block_type: ClassVar[BlockType]

    @property
    @abstractmethod
    def name(self) -> str:
        """Display name of the block."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """One-line description of what the block does."""
        pass

    @abstractmethod
    def has_wind_hole(self, direction: Dir3) -> bool:
        """Does the block have a wind port towards `direction` (local frame)?"""
        pass

    def has_wind_hole_in(self, direction: Dir3) -> bool:
        return self.has_wind_hole(direction)

    def has_wind_hole_out(self, direction: Dir3) -> bool:
        return self.has_wind_hole(direction)

    def has_move_hole(self, direction: Dir3) -> bool:
        """Can blips pass through the face towards `direction`?"""
        return self.has_wind_hole(direction)

    def carried_kind(self) -> Optional[BlipKind]:
        """The blip kind carried by the block, if the variant has one."""
        return None

    def with_kind(self, kind: BlipKind) -> "Block":
        """Copy of the block carrying `kind` (unchanged copy for kindless variants)."""
        return self.copy()

    def copy(self) -> "Block":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.block_type.value}
        data.update(self._fields_to_dict())
        return data

    def _fields_to_dict(self) -> Dict[str, Any]:
        return {}

    @classmethod
    def _from_fields(cls, data: Dict[str, Any]) -> "Block":
        return cls()

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Block":
        """Deserialize a block written by `to_dict`."""
        try:
            block_type = BlockType(data["type"])
        except (KeyError, ValueError):
            raise ValueError(f"Invalid block type in {data!r}")

        block_cls = BLOCK_TYPES[block_type]
        try:
            return block_cls._from_fields(data)
        except (KeyError, TypeError) as e:
            raise ValueError(f"Invalid {block_type.value} block data: {e}")


@dataclass
class Pipe(Block):
    """Pipe connecting two faces; straight, curved or vertical."""
    dir_a: Dir3
    dir_b: Dir3

    block_type: ClassVar[BlockType] = BlockType.PIPE

    @property
    def name(self) -> str:
        a, b = self.dir_a, self.dir_b
        if a.axis != Axis3.Z and a.axis == b.axis:
            return "Pipe straight"
        if a.axis != Axis3.Z and b.axis != Axis3.Z and a.axis != b.axis:
            return "Pipe curve"
        if a.axis == Axis3.Z and a.axis == b.axis:
            return "Pipe up/down"
        if Dir3.Z_NEG in (a, b) and a.axis != b.axis:
            return "Pipe curve down"
        if Dir3.Z_POS in (a, b) and a.axis != b.axis:
            return "Pipe curve up"
        return "Pipe"

    @property
    def description(self) -> str:
        return "Conducts both wind and blips."

    def has_wind_hole(self, direction: Dir3) -> bool:
        return direction == self.dir_a or direction == self.dir_b

    def _fields_to_dict(self) -> Dict[str, Any]:
        return {"dir_a": self.dir_a.name, "dir_b": self.dir_b.name}

    @classmethod
    def _from_fields(cls, data: Dict[str, Any]) -> "Block":
        return cls(Dir3[data["dir_a"]], Dir3[data["dir_b"]])


@dataclass
class PipeSplitXY(Block):
    """T-shaped pipe; blips only pass through one of the two Y branches."""
    open_move_hole_y: Sign = Sign.POS

    block_type: ClassVar[BlockType] = BlockType.PIPE_SPLIT_XY

    @property
    def name(self) -> str:
        return "Pipe split"

    @property
    def description(self) -> str:
        return "Useless."

    def has_wind_hole(self, direction: Dir3) -> bool:
        return direction in (Dir3.Y_NEG, Dir3.Y_POS, Dir3.X_POS)

    def has_move_hole(self, direction: Dir3) -> bool:
        open_y = Dir3.from_axis_sign(Axis3.Y, self.open_move_hole_y)
        return direction == open_y or direction == Dir3.X_POS

    def _fields_to_dict(self) -> Dict[str, Any]:
        return {"open_move_hole_y": self.open_move_hole_y.name}

    @classmethod
    def _from_fields(cls, data: Dict[str, Any]) -> "Block":
        return cls(Sign[data["open_move_hole_y"]])


@dataclass
class PipeMergeXY(Block):
    """Four-way horizontal crossing."""

    block_type: ClassVar[BlockType] = BlockType.PIPE_MERGE_XY

    @property
    def name(self) -> str:
        return "Pipe crossing"

    @property
    def description(self) -> str:
        return "Four-way pipe. But why?"

    def has_wind_hole(self, direction: Dir3) -> bool:
        return direction.axis != Axis3.Z


@dataclass
class FunnelXY(Block):
    """One-way pipe: wind enters at Y_NEG and leaves at Y_POS."""

    block_type: ClassVar[BlockType] = BlockType.FUNNEL_XY

    @property
    def name(self) -> str:
        return "Funnel"

    @property
    def description(self) -> str:
        return "Not so useful."

    def has_wind_hole(self, direction: Dir3) -> bool:
        return direction in (Dir3.Y_NEG, Dir3.Y_POS)

    def has_wind_hole_in(self, direction: Dir3) -> bool:
        return direction == Dir3.Y_NEG

    def has_wind_hole_out(self, direction: Dir3) -> bool:
        return direction == Dir3.Y_POS


@dataclass
class WindSource(Block):
    """Emits wind through every face, every tick."""

    block_type: ClassVar[BlockType] = BlockType.WIND_SOURCE

    @property
    def name(self) -> str:
        return "Wind source"

    @property
    def description(self) -> str:
        return "Produces a stream of wind in all directions."

    def has_wind_hole(self, direction: Dir3) -> bool:
        return True

    def has_wind_hole_in(self, direction: Dir3) -> bool:
        return False


@dataclass
class BlipSpawn(Block):
    """
    Spawns blips of `kind` on its own cell.

    `num_spawns` limits the number of spawns (None means unlimited).
    `activated` holds the tick of the most recent spawn, for the tick in which
    it happened only.
    """
    kind: BlipKind = BlipKind.A
    num_spawns: Optional[int] = None
    activated: Optional[int] = None

    block_type: ClassVar[BlockType] = BlockType.BLIP_SPAWN

    @property
    def name(self) -> str:
        return "Blip source" if self.num_spawns is None else "Blip spawn"

    @property
    def description(self) -> str:
        if self.num_spawns is None:
            return "Produces a stream of blips."
        if self.num_spawns == 1:
            return "Spawns one blip."
        return "Spawns a limited number of blips."

    def has_wind_hole(self, direction: Dir3) -> bool:
        return True

    def carried_kind(self) -> Optional[BlipKind]:
        return self.kind

    def with_kind(self, kind: BlipKind) -> Block:
        block = self.copy()
        block.kind = kind
        return block

    def _fields_to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "num_spawns": self.num_spawns,
            "activated": self.activated,
        }

    @classmethod
    def _from_fields(cls, data: Dict[str, Any]) -> "Block":
        return cls(
            kind=BlipKind.from_code(data["kind"]),
            num_spawns=data.get("num_spawns"),
            activated=data.get("activated"),
        )


@dataclass
class BlipDuplicator(Block):
    """
    Copies the blip that activates it.

    With a `kind` filter set, only blips of that kind activate it. The
    activating kind is remembered in `activated` until the copies are emitted
    on the following tick, through the local X_NEG and X_POS faces.
    """
    kind: Optional[BlipKind] = None
    activated: Optional[BlipKind] = None

    block_type: ClassVar[BlockType] = BlockType.BLIP_DUPLICATOR

    COPY_DIRS: ClassVar[List[Dir3]] = [Dir3.X_NEG, Dir3.X_POS]

    @property
    def name(self) -> str:
        return "Blip copier" if self.kind is None else "Picky blip copier"

    @property
    def description(self) -> str:
        if self.kind is None:
            return "Produces two copies of whatever blip activates it."
        return "Produces two copies of a specific kind of blip that may activate it."

    def has_wind_hole(self, direction: Dir3) -> bool:
        return True

    def has_wind_hole_out(self, direction: Dir3) -> bool:
        return False

    def has_move_hole(self, direction: Dir3) -> bool:
        return True

    def accepts(self, kind: BlipKind) -> bool:
        return self.kind is None or self.kind == kind

    def carried_kind(self) -> Optional[BlipKind]:
        return self.kind

    def with_kind(self, kind: BlipKind) -> Block:
        block = self.copy()
        block.kind = kind
        return block

    def _fields_to_dict(self) -> Dict[str, Any]:
        return {
            "kind": _kind_to_str(self.kind),
            "activated": _kind_to_str(self.activated),
        }

    @classmethod
    def _from_fields(cls, data: Dict[str, Any]) -> "Block":
        return cls(
            kind=_kind_from_str(data.get("kind")),
            activated=_kind_from_str(data.get("activated")),
        )


@dataclass
class BlipWindSource(Block):
    """Turns a blip entering through Y_NEG into one tick of wind."""
    activated: bool = False

    block_type: ClassVar[BlockType] = BlockType.BLIP_WIND_SOURCE

    @property
    def name(self) -> str:
        return "Blipped wind spawn"

    @property
    def description(self) -> str:
        return "Spawns one thrust of wind when activated by a blip."

    def has_wind_hole(self, direction: Dir3) -> bool:
        return True

    def has_wind_hole_out(self, direction: Dir3) -> bool:
        # No wind out towards the activating face
        return direction != Dir3.Y_NEG

    def has_move_hole(self, direction: Dir3) -> bool:
        return direction == Dir3.Y_NEG

    def _fields_to_dict(self) -> Dict[str, Any]:
        return {"activated": self.activated}

    @classmethod
    def _from_fields(cls, data: Dict[str, Any]) -> "Block":
        return cls(activated=bool(data.get("activated", False)))


@dataclass
class Solid(Block):
    """Lets wind through, eats blips."""

    block_type: ClassVar[BlockType] = BlockType.SOLID

    @property
    def name(self) -> str:
        return "Solid"

    @property
    def description(self) -> str:
        return "Eats blips."

    def has_wind_hole(self, direction: Dir3) -> bool:
        return True


@dataclass
class Input(Block):
    """
    Level input feeding blips into the machine through X_POS.

    `inputs` is the remaining feed; each entry is a blip kind or None for a
    tick without a blip. `activated` is the kind fed in the current tick.
    """
    index: int = 0
    inputs: List[Optional[BlipKind]] = field(default_factory=list)
    activated: Optional[BlipKind] = None

    block_type: ClassVar[BlockType] = BlockType.INPUT

    @property
    def name(self) -> str:
        return "Input"

    @property
    def description(self) -> str:
        return "Input of the machine."

    def has_wind_hole(self, direction: Dir3) -> bool:
        return direction == Dir3.X_POS

    def _fields_to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "inputs": [_kind_to_str(kind) for kind in self.inputs],
            "activated": _kind_to_str(self.activated),
        }

    @classmethod
    def _from_fields(cls, data: Dict[str, Any]) -> "Block":
        return cls(
            index=int(data["index"]),
            inputs=[_kind_from_str(code) for code in data.get("inputs", [])],
            activated=_kind_from_str(data.get("activated")),
        )


@dataclass
class Output(Block):
    """Level output consuming blips; tracks the next expected kind."""
    index: int = 0
    expected_next_kind: Optional[BlipKind] = None

    block_type: ClassVar[BlockType] = BlockType.OUTPUT

    @property
    def name(self) -> str:
        return "Output"

    @property
    def description(self) -> str:
        return "Output of the machine."

    def has_wind_hole(self, direction: Dir3) -> bool:
        return direction != Dir3.Z_NEG

    def has_wind_hole_out(self, direction: Dir3) -> bool:
        return False

    def _fields_to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "expected_next_kind": _kind_to_str(self.expected_next_kind),
        }

    @classmethod
    def _from_fields(cls, data: Dict[str, Any]) -> "Block":
        return cls(
            index=int(data["index"]),
            expected_next_kind=_kind_from_str(data.get("expected_next_kind")),
        )


BLOCK_TYPES: Dict[BlockType, Type[Block]] = {
    BlockType.PIPE: Pipe,
    BlockType.PIPE_SPLIT_XY: PipeSplitXY,
    BlockType.PIPE_MERGE_XY: PipeMergeXY,
    BlockType.FUNNEL_XY: FunnelXY,
    BlockType.WIND_SOURCE: WindSource,
    BlockType.BLIP_SPAWN: BlipSpawn,
    BlockType.BLIP_DUPLICATOR: BlipDuplicator,
    BlockType.BLIP_WIND_SOURCE: BlipWindSource,
    BlockType.SOLID: Solid,
    BlockType.INPUT: Input,
    BlockType.OUTPUT: Output,
}


@dataclass
class PlacedBlock:
    """A block rotated by `rotation_xy` clockwise quarter turns."""
    block: Block
    rotation_xy: int = 0

    def __post_init__(self):
        if not 0 <= self.rotation_xy < 4:
            raise ValueError(f"rotation_xy must be in 0..3, got {self.rotation_xy}")

    def rotate_cw_xy(self) -> None:
        self.rotation_xy = (self.rotation_xy + 1) % 4

    def rotate_ccw_xy(self) -> None:
        self.rotation_xy = (self.rotation_xy + 3) % 4

    def rotated_dir_xy(self, direction: Dir3) -> Dir3:
        """Local direction -> world direction."""
        for _ in range(self.rotation_xy):
            direction = direction.rotated_cw_xy()
        return direction

    def rotated_dir_ccw_xy(self, direction: Dir3) -> Dir3:
        """World direction -> local direction."""
        for _ in range(self.rotation_xy):
            direction = direction.rotated_ccw_xy()
        return direction

    def angle_xy_radians(self) -> float:
        return -math.pi / 2.0 * self.rotation_xy

    def has_wind_hole(self, direction: Dir3) -> bool:
        return self.block.has_wind_hole(self.rotated_dir_ccw_xy(direction))

    def has_wind_hole_in(self, direction: Dir3) -> bool:
        return self.block.has_wind_hole_in(self.rotated_dir_ccw_xy(direction))

    def has_wind_hole_out(self, direction: Dir3) -> bool:
        return self.block.has_wind_hole_out(self.rotated_dir_ccw_xy(direction))

    def has_move_hole(self, direction: Dir3) -> bool:
        return self.block.has_move_hole(self.rotated_dir_ccw_xy(direction))

    def wind_holes(self) -> List[Dir3]:
        return [d for d in Dir3 if self.has_wind_hole(d)]

    def wind_holes_in(self) -> List[Dir3]:
        return [d for d in Dir3 if self.has_wind_hole_in(d)]

    def wind_holes_out(self) -> List[Dir3]:
        return [d for d in Dir3 if self.has_wind_hole_out(d)]

    def move_holes(self) -> List[Dir3]:
        return [d for d in Dir3 if self.has_move_hole(d)]

    def copy(self) -> "PlacedBlock":
        return PlacedBlock(self.block.copy(), self.rotation_xy)

    def to_dict(self) -> Dict[str, Any]:
        return {"rotation_xy": self.rotation_xy, "block": self.block.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlacedBlock":
        try:
            rotation_xy = int(data.get("rotation_xy", 0))
            block_data = data["block"]
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid placed block data: {e}")
        return cls(Block.from_dict(block_data), rotation_xy)


# Default blocks offered to the editor, in palette order
BLOCK_CATALOG: Dict[str, Block] = {
    "pipe_straight": Pipe(Dir3.Y_NEG, Dir3.Y_POS),
    "pipe_curve": Pipe(Dir3.Y_NEG, Dir3.X_POS),
    "pipe_up_down": Pipe(Dir3.Z_NEG, Dir3.Z_POS),
    "pipe_curve_up": Pipe(Dir3.Y_NEG, Dir3.Z_POS),
    "pipe_curve_down": Pipe(Dir3.Y_NEG, Dir3.Z_NEG),
    "pipe_split": PipeSplitXY(Sign.POS),
    "pipe_crossing": PipeMergeXY(),
    "funnel": FunnelXY(),
    "wind_source": WindSource(),
    "blip_source": BlipSpawn(BlipKind.A, None),
    "blip_spawn": BlipSpawn(BlipKind.A, 1),
    "blip_copier": BlipDuplicator(None),
    "picky_blip_copier": BlipDuplicator(BlipKind.A),
    "blipped_wind_spawn": BlipWindSource(),
    "solid": Solid(),
}
