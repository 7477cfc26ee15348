"""Paced execution of a machine, decoupled from the caller's frame rate."""

import logging
from enum import Enum, auto
from typing import Optional

from ..config import DEFAULT_CONFIG, ExecConfig
from ..machine.block import BlipKind
from ..machine.grid import Point3
from ..machine.machine import Machine
from ..util.timer import Timer
from .exec import BlipIndex, Exec

logger = logging.getLogger(__name__)


class Status(Enum):
    """Playback status."""
    PLAYING = auto()
    PAUSED = auto()
    STOPPED = auto()


class ExecPlayer:
    """
    Drives an `Exec` from wall-clock time.

    The caller reports elapsed time through `update`; a tick runs whenever a
    full tick period has accumulated. `tick_progress` tells a renderer how
    far it is between the previous and the current tick.
    """

    def __init__(self, machine: Machine, config: Optional[ExecConfig] = None):
        self.config = config or DEFAULT_CONFIG
        self.exec = Exec(machine, self.config)
        self.tick_timer = Timer.from_hz(self.config.default_ticks_per_sec)
        self.status = Status.PLAYING

    def update(self, dt: float) -> int:
        """
        Advance by `dt` seconds.

        Returns:
            Number of ticks run
        """
        if self.status != Status.PLAYING:
            return 0

        self.tick_timer += dt

        ticks = 0
        while ticks < self.config.max_ticks_per_update and self.tick_timer.trigger():
            self.exec.update()
            ticks += 1

        # Drop whatever lag is left beyond the allowed catch-up
        if self.tick_timer.accum >= self.tick_timer.period:
            self.tick_timer.reset()

        return ticks

    def pause_resume(self) -> None:
        if self.status == Status.PLAYING:
            logger.info("Pausing exec")
            self.status = Status.PAUSED
        elif self.status == Status.PAUSED:
            logger.info("Resuming exec")
            self.status = Status.PLAYING

    def stop(self) -> None:
        self.status = Status.STOPPED

    def run_single_tick(self) -> None:
        logger.info("Running single frame")
        self.exec.update()
        self.tick_timer.reset()

    def tick_progress(self) -> float:
        """Fraction of the way to the next tick, in [0, 1)."""
        return min(self.tick_timer.progress(), 1.0)

    def cur_tick_time(self) -> float:
        return self.exec.cur_tick + self.tick_progress()

    def spawn_blip(self, kind: BlipKind, pos: Point3) -> Optional[BlipIndex]:
        """Spawn a blip where the player clicked; does nothing if not possible."""
        if self.status == Status.STOPPED:
            return None
        return self.exec.spawn_blip(kind, pos)
