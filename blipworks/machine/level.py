"""Level definitions: machine size plus input feeds and expected outputs."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .block import BlipKind
from .grid import Vector3


@dataclass
class LevelSpec:
    """
    Input/output specification of a level.

    `inputs[i]` is the sequence fed by input i, one entry per tick (None for
    a tick without a blip). `outputs[i]` is the sequence of kinds output i
    expects to receive, in order.
    """
    inputs: List[List[Optional[BlipKind]]] = field(default_factory=list)
    outputs: List[List[BlipKind]] = field(default_factory=list)

    def input_dim(self) -> int:
        return len(self.inputs)

    def output_dim(self) -> int:
        return len(self.outputs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "inputs": [
                [kind.value if kind is not None else None for kind in feed]
                for feed in self.inputs
            ],
            "outputs": [[kind.value for kind in expected] for expected in self.outputs],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LevelSpec":
        inputs = [
            [BlipKind.from_code(code) if code is not None else None for code in feed]
            for feed in data.get("inputs", [])
        ]
        outputs = [
            [BlipKind.from_code(code) for code in expected]
            for expected in data.get("outputs", [])
        ]
        return cls(inputs, outputs)


@dataclass
class Level:
    """A puzzle: grid size and input/output specification."""
    size: Vector3
    spec: LevelSpec = field(default_factory=LevelSpec)

    def __post_init__(self):
        self.size = tuple(int(s) for s in self.size)
        if len(self.size) != 3 or any(s <= 0 for s in self.size):
            raise ValueError(f"Level size must be three positive integers, got {self.size}")

        if self.spec.input_dim() > self.size[1] or self.spec.output_dim() > self.size[1]:
            raise ValueError(
                f"Level with {self.spec.input_dim()} inputs and "
                f"{self.spec.output_dim()} outputs does not fit {self.size[1]} rows"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {"size": list(self.size), "spec": self.spec.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Level":
        try:
            return cls(tuple(data["size"]), LevelSpec.from_dict(data.get("spec", {})))
        except (KeyError, TypeError) as e:
            raise ValueError(f"Invalid level data: {e}")
