"""Dense network parameters and the reusable training buffers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Mapping

import numpy as np

from .activations import Activation
from .losses import LossFunction
from .propagation import forward_pass
from .types import Array, LayerTopology, ParameterLayout


@dataclass
class DenseNetwork:
    """Stack of affine layers whose parameters live in one flat arena."""

    topology: LayerTopology
    hidden_activation: Activation = Activation.RELU
    output_activation: Activation = Activation.IDENTITY
    loss: LossFunction = LossFunction.SQUARE
    alpha: float = 0.0
    weight_decay: float = 0.0
    batch_normalize: bool = False
    layout: ParameterLayout = field(init=False, repr=False)
    params: Array = field(init=False, repr=False)
    coefs: List[Array] = field(init=False, repr=False)
    intercepts: List[Array] = field(init=False, repr=False)
    normalization_scales: List[Array] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.layout = ParameterLayout.from_topology(self.topology)
        self.params = self.layout.allocate()
        self.coefs = self.layout.coefs(self.params)
        self.intercepts = self.layout.intercepts(self.params)
        self.normalization_scales = [
            np.ones(units, dtype=np.float64) for units in self.topology.hidden
        ]

    def reset(self, rng: np.random.Generator) -> None:
        """Glorot-uniform initialisation, weights then biases per layer."""

        factor = 2.0 if self.hidden_activation is Activation.LOGISTIC else 6.0
        for (fan_in, fan_out), coef, intercept in zip(
            self.topology.transitions(), self.coefs, self.intercepts
        ):
            bound = np.sqrt(factor / (fan_in + fan_out))
            coef[...] = rng.uniform(-bound, bound, size=(fan_in, fan_out))
            intercept[...] = rng.uniform(-bound, bound, size=fan_out)
        for scale in self.normalization_scales:
            scale.fill(1.0)

    def sum_coef_squares(self) -> float:
        return float(sum(np.dot(c.ravel(), c.ravel()) for c in self.coefs))

    def predict_raw(self, X: Array) -> Array:
        """Forward ``X`` through freshly allocated buffers."""

        activations = [X] + [
            np.empty((X.shape[0], units), dtype=np.float64)
            for units in self.topology.units[1:]
        ]
        forward_pass(self, activations, training=False)
        return activations[-1]

    def state_dict(self) -> Mapping[str, Array]:
        state = {}
        for idx, (coef, intercept) in enumerate(zip(self.coefs, self.intercepts)):
            state[f"W{idx}"] = coef.copy()
            state[f"b{idx}"] = intercept.copy()
        return state

    def load_state_dict(self, state: Mapping[str, Array]) -> None:
        for idx, (coef, intercept) in enumerate(zip(self.coefs, self.intercepts)):
            for key, target in ((f"W{idx}", coef), (f"b{idx}", intercept)):
                if key not in state:
                    raise KeyError(f"Missing parameter {key} in state dict")
                value = np.asarray(state[key], dtype=np.float64)
                if value.shape != target.shape:
                    raise ValueError(
                        f"Parameter {key} has shape {value.shape}, expected {target.shape}"
                    )
                target[...] = value

    def parameter_count(self) -> int:
        return self.layout.size


@dataclass
class Workspace:
    """Activation, delta and gradient buffers sized for the largest batch."""

    network: DenseNetwork
    batch_size: int
    activations: List[Array] = field(init=False, repr=False)
    deltas: List[Array] = field(init=False, repr=False)
    grads: Array = field(init=False, repr=False)
    coef_grads: List[Array] = field(init=False, repr=False)
    intercept_grads: List[Array] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        units = self.network.topology.units
        self.activations = [np.empty((self.batch_size, u), dtype=np.float64) for u in units[1:]]
        self.deltas = [np.empty((self.batch_size, u), dtype=np.float64) for u in units[1:]]
        layout = self.network.layout
        self.grads = layout.allocate()
        self.coef_grads = layout.coefs(self.grads)
        self.intercept_grads = layout.intercepts(self.grads)

    def view(self, X: Array) -> tuple[List[Array], List[Array]]:
        """Return activation/delta lists contracted to ``X``'s row count."""

        rows = X.shape[0]
        if rows > self.batch_size:
            raise ValueError(f"Batch of {rows} rows exceeds workspace size {self.batch_size}")
        activations = [X] + [a[:rows] for a in self.activations]
        deltas = [d[:rows] for d in self.deltas]
        return activations, deltas


__all__ = ["DenseNetwork", "Workspace"]
