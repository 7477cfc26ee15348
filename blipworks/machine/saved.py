"""Saving and restoring machine layouts."""

import base64
import binascii
import gzip
import json
import logging
import zlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from .block import PlacedBlock
from .grid import Point3, Vector3
from .level import Level
from .machine import Machine

logger = logging.getLogger(__name__)

CODE_PREFIX = "BLIPWORKS"
FORMAT_VERSION = 1


@dataclass
class SavedMachine:
    """
    Only the data needed to restore a machine.

    Slot indices are not saved; they are reassigned in `block_data` order on
    load.
    """
    size: Vector3
    block_data: List[Tuple[Point3, PlacedBlock]] = field(default_factory=list)
    level: Optional[Level] = None

    @classmethod
    def from_machine(cls, machine: Machine) -> "SavedMachine":
        block_data = [
            (pos, placed_block.copy())
            for _, (pos, placed_block) in machine.iter_blocks()
        ]
        return cls(machine.size(), block_data, machine.level)

    def into_machine(self) -> Machine:
        return Machine.new_from_block_data(self.size, self.block_data, self.level)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "size": list(self.size),
            "block_data": [
                {"pos": list(pos), "placed_block": placed_block.to_dict()}
                for pos, placed_block in self.block_data
            ],
            "level": self.level.to_dict() if self.level is not None else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SavedMachine":
        try:
            size = tuple(int(s) for s in data["size"])
            block_data = [
                (tuple(int(p) for p in entry["pos"]), PlacedBlock.from_dict(entry["placed_block"]))
                for entry in data.get("block_data", [])
            ]
        except (KeyError, TypeError) as e:
            raise ValueError(f"Invalid saved machine data: {e}")

        if len(size) != 3:
            raise ValueError(f"Machine size must have three components, got {size}")

        level_data = data.get("level")
        level = Level.from_dict(level_data) if level_data is not None else None
        return cls(size, block_data, level)


def encode_machine_code(machine: Machine) -> str:
    """
    Encode a machine into a shareable code string.

    Returns:
        Code string (BLIPWORKS-1-xxxxx$)
    """
    json_str = json.dumps(SavedMachine.from_machine(machine).to_dict(), separators=(',', ':'))
    compressed = gzip.compress(json_str.encode('utf-8'))
    encoded = base64.b64encode(compressed).decode('ascii')
    return f"{CODE_PREFIX}-{FORMAT_VERSION}-{encoded}$"


def decode_machine_code(code: str) -> Machine:
    """
    Decode a machine code string produced by `encode_machine_code`.

    Raises:
        ValueError: If the code is malformed
    """
    code = code.strip()
    if code.endswith('$'):
        code = code[:-1]

    parts = code.split('-', 2)
    if len(parts) < 3 or parts[0] != CODE_PREFIX:
        raise ValueError("Invalid machine code format")
    if parts[1] != str(FORMAT_VERSION):
        raise ValueError(f"Unsupported machine code version: {parts[1]}")

    data = parts[2]
    while len(data) % 4 != 0:
        data += '='

    try:
        json_data = gzip.decompress(base64.b64decode(data))
        decoded = json.loads(json_data)
    except (binascii.Error, OSError, EOFError, zlib.error, json.JSONDecodeError) as e:
        raise ValueError(f"Invalid machine code payload: {e}")

    return SavedMachine.from_dict(decoded).into_machine()


def save_machine(machine: Machine, path: Union[str, Path]) -> None:
    """Write a machine as JSON."""
    path = Path(path)
    logger.info(f"Saving machine to: {path}")
    with open(path, 'w') as f:
        json.dump(SavedMachine.from_machine(machine).to_dict(), f, indent=2)


def load_machine(path: Union[str, Path]) -> Machine:
    """Read a machine written by `save_machine`."""
    path = Path(path)
    logger.info(f"Loading machine from: {path}")
    with open(path) as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid machine file {path}: {e}")
    return SavedMachine.from_dict(data).into_machine()
