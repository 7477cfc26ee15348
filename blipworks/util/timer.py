"""Fixed-period timer used to pace simulation ticks."""


class Timer:
    """
    Accumulates elapsed time and triggers once per period.

    Times are in seconds. The accumulator is decoupled from the caller's
    frame rate: the caller adds frame deltas and asks whether a period has
    elapsed.
    """

    def __init__(self, period: float):
        if period <= 0.0:
            raise ValueError(f"Timer period must be positive, got {period}")
        self._period = period
        self._accum = 0.0

    @classmethod
    def from_hz(cls, hz: float) -> "Timer":
        if hz <= 0.0:
            raise ValueError(f"Timer frequency must be positive, got {hz}")
        return cls(1.0 / hz)

    @property
    def period(self) -> float:
        return self._period

    @property
    def accum(self) -> float:
        return self._accum

    def add(self, dt: float) -> None:
        """Add elapsed time."""
        assert dt >= 0.0, "Timer.add passed a negative duration"
        self._accum += dt

    def __iadd__(self, dt: float) -> "Timer":
        self.add(dt)
        return self

    def trigger(self) -> bool:
        """If a full period has accumulated, subtract it and return True."""
        if self._accum >= self._period:
            self._accum -= self._period
            return True
        return False

    def trigger_reset(self) -> bool:
        """If a full period has accumulated, reset to zero and return True."""
        if self._accum >= self._period:
            self._accum = 0.0
            return True
        return False

    def reset(self) -> bool:
        """Reset the accumulator. Returns whether a period had elapsed."""
        triggered = self._accum >= self._period
        self._accum = 0.0
        return triggered

    def progress(self) -> float:
        """Fraction of the current period that has elapsed."""
        return self._accum / self._period

    def __repr__(self) -> str:
        return f"Timer(period={self._period:.3f}s, accum={self._accum:.3f}s)"
