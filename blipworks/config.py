"""Configuration for running machines."""

from dataclasses import dataclass


@dataclass
class ExecConfig:
    """
    Settings of the tick engine and its play controller.

    default_ticks_per_sec: Simulation speed when playing
    debug: Record a per-tick trace in `Exec.debug_log`
    max_ticks_per_update: Upper bound on ticks run by one `ExecPlayer.update`
        call when frames lag behind
    """
    default_ticks_per_sec: float = 0.5
    debug: bool = False
    max_ticks_per_update: int = 1

    def __post_init__(self):
        if self.default_ticks_per_sec <= 0.0:
            raise ValueError(
                f"default_ticks_per_sec must be positive, got {self.default_ticks_per_sec}"
            )
        if self.max_ticks_per_update < 1:
            raise ValueError(
                f"max_ticks_per_update must be at least 1, got {self.max_ticks_per_update}"
            )


DEFAULT_CONFIG = ExecConfig()
