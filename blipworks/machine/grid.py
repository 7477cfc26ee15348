"""
Grid geometry for machines.

Positions are integer (x, y, z) tuples, with z being the layer. Directions
are the six axis-aligned unit vectors. Rotations only ever happen in the
X-Y plane, in quarter turns.
"""

from enum import Enum
from typing import Any, Generic, Iterator, List, Optional, Tuple, TypeVar

import numpy as np

Point3 = Tuple[int, int, int]
Vector3 = Tuple[int, int, int]

T = TypeVar("T")


class Axis3(Enum):
    """Coordinate axes."""
    X = 0
    Y = 1
    Z = 2


class Sign(Enum):
    """Direction along an axis."""
    NEG = -1
    POS = 1

    def invert(self) -> "Sign":
        return Sign.POS if self == Sign.NEG else Sign.NEG


class Dir3(Enum):
    """Axis-aligned unit directions in the grid."""
    X_NEG = (-1, 0, 0)
    X_POS = (1, 0, 0)
    Y_NEG = (0, -1, 0)
    Y_POS = (0, 1, 0)
    Z_NEG = (0, 0, -1)
    Z_POS = (0, 0, 1)

    @classmethod
    def from_axis_sign(cls, axis: Axis3, sign: Sign) -> "Dir3":
        vector = [0, 0, 0]
        vector[axis.value] = sign.value
        return cls(tuple(vector))

    @classmethod
    def all(cls) -> List["Dir3"]:
        """All directions, in the order used for every deterministic scan."""
        return list(cls)

    @property
    def axis(self) -> Axis3:
        for i, component in enumerate(self.value):
            if component != 0:
                return Axis3(i)
        raise AssertionError(f"Direction {self} has no axis")

    @property
    def sign(self) -> Sign:
        return Sign(self.value[self.axis.value])

    def to_vector(self) -> Vector3:
        return self.value

    def invert(self) -> "Dir3":
        dx, dy, dz = self.value
        return Dir3((-dx, -dy, -dz))

    def rotated_cw_xy(self) -> "Dir3":
        """Rotate a quarter turn clockwise (seen from above); Z is fixed."""
        dx, dy, dz = self.value
        if dz != 0:
            return self
        return Dir3((dy, -dx, dz))

    def rotated_ccw_xy(self) -> "Dir3":
        """Rotate a quarter turn counter-clockwise (seen from above); Z is fixed."""
        dx, dy, dz = self.value
        if dz != 0:
            return self
        return Dir3((-dy, dx, dz))


def shift(pos: Point3, direction: Dir3) -> Point3:
    """Position of the neighbor of `pos` in `direction`."""
    dx, dy, dz = direction.value
    return (pos[0] + dx, pos[1] + dy, pos[2] + dz)


class Grid3(Generic[T]):
    """
    Dense 3D array over all positions in [0, size) on each axis.

    `get` is safe for arbitrary positions and returns None outside the grid.
    Indexing with [] expects a valid position and raises IndexError otherwise.
    """

    def __init__(self, size: Vector3, fill: Any = None):
        if any(s < 0 for s in size):
            raise ValueError(f"Grid size must be non-negative, got {size}")
        self._size: Vector3 = (int(size[0]), int(size[1]), int(size[2]))
        self._fill = fill
        self._cells = np.full(self._size, fill, dtype=object)

    def size(self) -> Vector3:
        return self._size

    def is_valid_pos(self, pos: Point3) -> bool:
        return all(0 <= p < s for p, s in zip(pos, self._size))

    def get(self, pos: Point3) -> Optional[T]:
        if not self.is_valid_pos(pos):
            return None
        return self._cells[tuple(pos)]

    def __getitem__(self, pos: Point3) -> T:
        if not self.is_valid_pos(pos):
            raise IndexError(f"Position {pos} outside grid of size {self._size}")
        return self._cells[tuple(pos)]

    def __setitem__(self, pos: Point3, value: T) -> None:
        if not self.is_valid_pos(pos):
            raise IndexError(f"Position {pos} outside grid of size {self._size}")
        self._cells[tuple(pos)] = value

    def positions(self) -> Iterator[Point3]:
        """Iterate over all positions in x-major order."""
        for x, y, z in np.ndindex(*self._size):
            yield (x, y, z)

    def occupied(self) -> List[Point3]:
        """Positions whose cell differs from the fill value."""
        mask = self._cells != self._fill
        return [tuple(int(c) for c in p) for p in np.argwhere(mask)]

    def copy(self) -> "Grid3[T]":
        grid: Grid3[T] = Grid3(self._size, self._fill)
        grid._cells = self._cells.copy()
        return grid

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Grid3):
            return NotImplemented
        return self._size == other._size and bool(np.array_equal(self._cells, other._cells))

    def __repr__(self) -> str:
        return f"Grid3(size={self._size})"
