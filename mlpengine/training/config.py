"""Hyperparameter record for the estimators and its (de)serialisation."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields, replace as _dc_replace
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Tuple

from ..core.activations import HIDDEN_ACTIVATIONS, Activation
from ..core.errors import InvalidHyperparameter
from ..core.optimizers import LearningRateSchedule

SOLVERS = ("sgd", "adam", "lbfgs")


@dataclass(frozen=True)
class MLPConfig:
    """Every knob of the training engine, with the conventional defaults."""

    hidden_layer_sizes: Tuple[int, ...] = (100,)
    activation: str = "relu"
    solver: str = "adam"
    alpha: float = 0.0001
    weight_decay: float = 0.0
    batch_size: int | None = None
    batch_normalize: bool = False
    learning_rate: str = "constant"
    learning_rate_init: float = 0.001
    power_t: float = 0.5
    max_iter: int = 200
    max_fun: int = 15000
    shuffle: bool = True
    random_state: int = 0
    tol: float = 1e-4
    verbose: bool = False
    warm_start: bool = False
    momentum: float = 0.9
    nesterovs_momentum: bool = True
    early_stopping: bool = False
    validation_fraction: float = 0.1
    beta_1: float = 0.9
    beta_2: float = 0.999
    epsilon: float = 1e-8
    n_iter_no_change: int = 10

    def __post_init__(self) -> None:
        sizes = self.hidden_layer_sizes
        if isinstance(sizes, int):
            sizes = (sizes,)
        object.__setattr__(self, "hidden_layer_sizes", tuple(int(h) for h in sizes))

    def validate(self) -> "MLPConfig":
        """Raise :class:`InvalidHyperparameter` for the first bad value."""

        if any(size <= 0 for size in self.hidden_layer_sizes):
            raise InvalidHyperparameter(
                f"hidden_layer_sizes must be > 0, got {list(self.hidden_layer_sizes)}."
            )
        if self.max_iter <= 0:
            raise InvalidHyperparameter(f"max_iter must be > 0, got {self.max_iter}.")
        if self.max_fun <= 0:
            raise InvalidHyperparameter(f"max_fun must be > 0, got {self.max_fun}.")
        if self.alpha < 0.0:
            raise InvalidHyperparameter(f"alpha must be >= 0, got {self.alpha}.")
        if not 0.0 <= self.weight_decay < 1.0:
            raise InvalidHyperparameter(
                f"weight_decay must be >= 0 and < 1, got {self.weight_decay}."
            )
        if self.learning_rate_init <= 0.0:
            raise InvalidHyperparameter(
                f"learning_rate_init must be > 0, got {self.learning_rate_init}."
            )
        if self.batch_size is not None and self.batch_size < 1:
            raise InvalidHyperparameter(f"batch_size must be >= 1, got {self.batch_size}.")
        if not 0.0 <= self.momentum <= 1.0:
            raise InvalidHyperparameter(f"momentum must be >= 0 and <= 1, got {self.momentum}")
        if not 0.0 <= self.validation_fraction < 1.0:
            raise InvalidHyperparameter(
                f"validation_fraction must be >= 0 and < 1, got {self.validation_fraction}"
            )
        if not 0.0 <= self.beta_1 < 1.0:
            raise InvalidHyperparameter(f"beta_1 must be >= 0 and < 1, got {self.beta_1}")
        if not 0.0 <= self.beta_2 < 1.0:
            raise InvalidHyperparameter(f"beta_2 must be >= 0 and < 1, got {self.beta_2}")
        if self.epsilon <= 0.0:
            raise InvalidHyperparameter(f"epsilon must be > 0, got {self.epsilon}.")
        if self.n_iter_no_change <= 0:
            raise InvalidHyperparameter(
                f"n_iter_no_change must be > 0, got {self.n_iter_no_change}."
            )
        if Activation.parse(self.activation) not in HIDDEN_ACTIVATIONS:
            raise InvalidHyperparameter(
                f"The activation {self.activation!r} cannot be used in hidden layers."
            )
        if self.solver.lower() not in SOLVERS:
            raise InvalidHyperparameter(
                f"The solver {self.solver!r} is not supported. "
                f"Supported solvers are {', '.join(SOLVERS)}."
            )
        LearningRateSchedule.parse(self.learning_rate)
        return self

    @property
    def hidden_activation(self) -> Activation:
        return Activation.parse(self.activation)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "MLPConfig":
        """Build a config from a plain record, e.g. decoded JSON.

        A record of the form ``{"params": {...}}`` is unwrapped first.  Keys
        that are not hyperparameters are rejected rather than ignored.
        """

        if "params" in mapping and isinstance(mapping["params"], Mapping):
            mapping = mapping["params"]
        values: Dict[str, Any] = {}
        for key, raw in mapping.items():
            parser = _FIELD_PARSERS.get(key)
            if parser is None:
                raise InvalidHyperparameter(f"Unknown hyperparameter: {key!r}")
            try:
                values[key] = parser(raw)
            except (TypeError, ValueError) as exc:
                raise InvalidHyperparameter(f"Invalid value for {key}: {raw!r}") from exc
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        record = asdict(self)
        record["hidden_layer_sizes"] = list(self.hidden_layer_sizes)
        return record

    def replace(self, **changes: Any) -> "MLPConfig":
        unknown = set(changes) - {f.name for f in fields(self)}
        if unknown:
            raise InvalidHyperparameter(f"Unknown hyperparameter: {sorted(unknown)[0]!r}")
        return _dc_replace(self, **changes)


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in {"true", "false"}:
        return value.lower() == "true"
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    raise ValueError(f"not a boolean: {value!r}")


def _parse_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("booleans are not integers here")
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"not an integer: {value!r}")
    return int(value)


def _parse_optional_int(value: Any) -> int | None:
    if value is None or value == "auto":
        return None
    return _parse_int(value)


def _parse_sizes(value: Any) -> Tuple[int, ...]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (_parse_int(value),)
    return tuple(_parse_int(v) for v in value)


_FIELD_PARSERS: Dict[str, Callable[[Any], Any]] = {
    "hidden_layer_sizes": _parse_sizes,
    "activation": str,
    "solver": str,
    "alpha": float,
    "weight_decay": float,
    "batch_size": _parse_optional_int,
    "batch_normalize": _parse_bool,
    "learning_rate": str,
    "learning_rate_init": float,
    "power_t": float,
    "max_iter": _parse_int,
    "max_fun": _parse_int,
    "shuffle": _parse_bool,
    "random_state": _parse_int,
    "tol": float,
    "verbose": _parse_bool,
    "warm_start": _parse_bool,
    "momentum": float,
    "nesterovs_momentum": _parse_bool,
    "early_stopping": _parse_bool,
    "validation_fraction": float,
    "beta_1": float,
    "beta_2": float,
    "epsilon": float,
    "n_iter_no_change": _parse_int,
}


def read_mapping(path: str | Path) -> Mapping[str, Any]:
    """Decode a JSON or YAML file into a mapping."""

    path = Path(path)
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        import yaml

        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text or "{}")
    else:
        raise ValueError(f"Unsupported config file type: {path.suffix}")
    if not isinstance(data, Mapping):
        raise TypeError(f"Config {path.name} must decode to a mapping")
    return data


def load_config(path: str | Path) -> MLPConfig:
    return MLPConfig.from_mapping(read_mapping(path))


__all__ = ["MLPConfig", "SOLVERS", "load_config", "read_mapping"]
