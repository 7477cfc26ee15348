"""Machine model: grid geometry, block variants and block layouts."""

from .grid import Axis3, Sign, Dir3, Grid3, Point3, Vector3, shift
from .block import (
    BlipKind,
    BlockType,
    Block,
    Pipe,
    PipeSplitXY,
    PipeMergeXY,
    FunnelXY,
    WindSource,
    BlipSpawn,
    BlipDuplicator,
    BlipWindSource,
    Solid,
    Input,
    Output,
    PlacedBlock,
    BLOCK_CATALOG,
)
from .level import Level, LevelSpec
from .machine import Blocks, BlockIndex, Machine
from .saved import (
    SavedMachine,
    encode_machine_code,
    decode_machine_code,
    save_machine,
    load_machine,
)

__all__ = [
    "Axis3",
    "Sign",
    "Dir3",
    "Grid3",
    "Point3",
    "Vector3",
    "shift",
    "BlipKind",
    "BlockType",
    "Block",
    "Pipe",
    "PipeSplitXY",
    "PipeMergeXY",
    "FunnelXY",
    "WindSource",
    "BlipSpawn",
    "BlipDuplicator",
    "BlipWindSource",
    "Solid",
    "Input",
    "Output",
    "PlacedBlock",
    "BLOCK_CATALOG",
    "Level",
    "LevelSpec",
    "Blocks",
    "BlockIndex",
    "Machine",
    "SavedMachine",
    "encode_machine_code",
    "decode_machine_code",
    "save_machine",
    "load_machine",
]
