"""Scoring helpers shared by the estimators, the trainer and the pipelines."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping

import numpy as np

from ..core.errors import ShapeMismatch
from ..core.losses import LossFunction
from ..core.types import Array


@dataclass(frozen=True)
class MetricResult:
    name: str
    value: float


def _as_2d(values: Array) -> Array:
    array = np.asarray(values)
    return array.reshape(-1, 1) if array.ndim == 1 else array


def r2_score(y_true: Array, y_pred: Array) -> float:
    """Coefficient of determination averaged uniformly over output columns."""

    y_true = _as_2d(y_true).astype(np.float64)
    y_pred = _as_2d(y_pred).astype(np.float64)
    if y_true.shape != y_pred.shape:
        raise ShapeMismatch(f"y_true has shape {y_true.shape}, y_pred has {y_pred.shape}")
    ss_res = np.sum((y_true - y_pred) ** 2, axis=0)
    ss_tot = np.sum((y_true - y_true.mean(axis=0)) ** 2, axis=0)
    if np.any(ss_tot == 0):
        raise ShapeMismatch("R^2 is undefined when a target column has zero variance")
    return float(np.mean(1.0 - ss_res / ss_tot))


def accuracy_score(y_true: Array, y_pred: Array) -> float:
    """Fraction of rows whose every column matches exactly."""

    y_true = _as_2d(y_true)
    y_pred = _as_2d(y_pred)
    if y_true.shape != y_pred.shape:
        raise ShapeMismatch(f"y_true has shape {y_true.shape}, y_pred has {y_pred.shape}")
    if y_true.shape[0] == 0:
        return 0.0
    return float(np.mean(np.all(y_true == y_pred, axis=1)))


def indicator_from_outputs(outputs: Array, loss: LossFunction) -> Array:
    """Turn raw output-layer values into 0/1 indicator rows."""

    if loss is LossFunction.LOG:
        indicator = np.zeros_like(outputs)
        indicator[np.arange(outputs.shape[0]), np.argmax(outputs, axis=1)] = 1.0
        return indicator
    return (outputs > 0.5).astype(np.float64)


def default_metrics(task_type: str) -> List[str]:
    if task_type == "regression":
        return ["mae", "rmse", "r2"]
    if task_type in {"binary", "multiclass", "multilabel"}:
        return ["accuracy"]
    raise ValueError(f"Unknown task type: {task_type}")


def compute_metric(name: str, y_true: Array, y_pred: Array) -> MetricResult:
    key = name.lower()
    if key == "mae":
        value = float(np.mean(np.abs(_as_2d(y_pred) - _as_2d(y_true))))
    elif key == "rmse":
        value = float(np.sqrt(np.mean((_as_2d(y_pred) - _as_2d(y_true)) ** 2)))
    elif key == "r2":
        value = r2_score(y_true, y_pred)
    elif key == "accuracy":
        value = accuracy_score(y_true, y_pred)
    else:
        raise KeyError(f"Unknown metric: {name}")
    return MetricResult(name=key, value=value)


def compute_metrics(names: Iterable[str], y_true: Array, y_pred: Array) -> Mapping[str, float]:
    results: Dict[str, float] = {}
    for name in names:
        metric = compute_metric(name, y_true, y_pred)
        results[metric.name] = metric.value
    return results


__all__ = [
    "MetricResult",
    "r2_score",
    "accuracy_score",
    "indicator_from_outputs",
    "default_metrics",
    "compute_metric",
    "compute_metrics",
]
