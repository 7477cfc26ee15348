"""
Blipworks - a machine-building puzzle engine.

Blocks with directional ports are placed on a 3D grid. Running the machine
blows wind through connected ports and carries blips along with it.
"""

from .config import ExecConfig, DEFAULT_CONFIG
from .machine import (
    BlipKind,
    Dir3,
    Level,
    LevelSpec,
    Machine,
    PlacedBlock,
    SavedMachine,
)
from .exec import Exec, ExecPlayer

__all__ = [
    "ExecConfig",
    "DEFAULT_CONFIG",
    "BlipKind",
    "Dir3",
    "Level",
    "LevelSpec",
    "Machine",
    "PlacedBlock",
    "SavedMachine",
    "Exec",
    "ExecPlayer",
]

__version__ = "0.1.0"
