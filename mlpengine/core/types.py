"""Core typing contracts for the training engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

import numpy as np

Array = np.ndarray


@dataclass(frozen=True)
class LayerTopology:
    """Unit counts ``[n_features, hidden..., n_outputs]`` for one fit."""

    units: Tuple[int, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "units", tuple(int(u) for u in self.units))

    @classmethod
    def build(
        cls, n_features: int, hidden: Sequence[int], n_outputs: int
    ) -> "LayerTopology":
        return cls((n_features, *hidden, n_outputs))

    @property
    def n_layers(self) -> int:
        return len(self.units)

    @property
    def n_features(self) -> int:
        return self.units[0]

    @property
    def n_outputs(self) -> int:
        return self.units[-1]

    @property
    def hidden(self) -> Tuple[int, ...]:
        return self.units[1:-1]

    def transitions(self) -> List[Tuple[int, int]]:
        return list(zip(self.units[:-1], self.units[1:]))


@dataclass(frozen=True)
class ParameterLayout:
    """Offset table addressing weight and bias blocks inside one flat arena.

    For every layer transition the arena holds a ``fan_in x fan_out`` weight
    block followed by a ``fan_out`` bias vector.  The same layout addresses
    parameter and gradient arenas, so both can be handed to an optimizer as a
    single contiguous vector.
    """

    topology: LayerTopology
    coef_slices: Tuple[slice, ...]
    intercept_slices: Tuple[slice, ...]
    size: int

    @classmethod
    def from_topology(cls, topology: LayerTopology) -> "ParameterLayout":
        coef_slices: list[slice] = []
        intercept_slices: list[slice] = []
        offset = 0
        for fan_in, fan_out in topology.transitions():
            coef_slices.append(slice(offset, offset + fan_in * fan_out))
            offset += fan_in * fan_out
            intercept_slices.append(slice(offset, offset + fan_out))
            offset += fan_out
        return cls(
            topology=topology,
            coef_slices=tuple(coef_slices),
            intercept_slices=tuple(intercept_slices),
            size=offset,
        )

    def allocate(self) -> Array:
        return np.zeros(self.size, dtype=np.float64)

    def coefs(self, arena: Array) -> List[Array]:
        """Return ``(fan_in, fan_out)`` views into ``arena``."""

        return [
            arena[s].reshape(fan_in, fan_out)
            for s, (fan_in, fan_out) in zip(self.coef_slices, self.topology.transitions())
        ]

    def intercepts(self, arena: Array) -> List[Array]:
        return [arena[s] for s in self.intercept_slices]


@dataclass
class TrainingDiagnostics:
    """Per-fit history, appended during training and read-only afterwards."""

    loss_curve: List[float] = field(default_factory=list)
    validation_scores: List[float] = field(default_factory=list)
    best_loss: float = float("inf")
    best_validation_score: float = float("-inf")
    no_improvement_count: int = 0
    best_params: Array | None = None
    n_iter: int = 0
    t: int = 0
    loss: float = float("nan")


@dataclass(frozen=True)
class FitResult:
    """Summary returned by :meth:`mlpengine.training.trainer.Trainer.fit`."""

    n_iter: int
    converged: bool
    loss: float
    message: str = ""


__all__ = [
    "Array",
    "LayerTopology",
    "ParameterLayout",
    "TrainingDiagnostics",
    "FitResult",
]
