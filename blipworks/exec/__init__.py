"""Execution of machines: the tick engine and its play controller."""

from .exec import (
    WindState,
    Blip,
    BlipState,
    BlipIndex,
    OutputObservation,
    Exec,
    PLAYER_SPAWN_BLOCKS,
)
from .play import Status, ExecPlayer

__all__ = [
    "WindState",
    "Blip",
    "BlipState",
    "BlipIndex",
    "OutputObservation",
    "Exec",
    "PLAYER_SPAWN_BLOCKS",
    "Status",
    "ExecPlayer",
]
