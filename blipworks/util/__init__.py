"""Generic containers and timing helpers."""

from .arena import Arena
from .timer import Timer

__all__ = [
    "Arena",
    "Timer",
]
