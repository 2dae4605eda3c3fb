"""CSV-backed datasets: numeric feature columns plus one target column."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Mapping

import numpy as np
import pandas as pd

from .registry import DatasetSpec, DataSpec, register_dataset
from .utils import deterministic_split, split_loader, standardize

FIXTURE_DIR = Path(__file__).resolve().parent / "_fixtures"


def read_table(path: Path, target_col: str) -> tuple[np.ndarray, np.ndarray]:
    """Split a CSV into a float64 feature matrix and the raw target column."""

    frame = pd.read_csv(path)
    if target_col not in frame.columns:
        raise KeyError(f"Target column {target_col!r} not in {sorted(frame.columns)}")
    target = frame.pop(target_col).to_numpy()
    try:
        features = frame.to_numpy(dtype=np.float64)
    except ValueError as exc:
        raise ValueError(f"{path.name}: feature columns must be numeric") from exc
    return features, target


def _scaled(values: np.ndarray, enabled: bool) -> tuple[np.ndarray, Dict[str, list]]:
    if not enabled:
        return values, {}
    scaled, mean, std = standardize(values)
    return scaled, {"mean": mean.ravel().tolist(), "std": std.ravel().tolist()}


def _csv_dataset(
    name: str,
    path: Path,
    X: np.ndarray,
    y: np.ndarray,
    data_spec: DataSpec,
    *,
    val_split: float,
    test_split: float,
    seed: int,
    extra: Mapping[str, Any],
) -> DatasetSpec:
    splits = deterministic_split(X.shape[0], val_split=val_split, test_split=test_split, seed=seed)
    provenance = {
        "type": "csv",
        "path": str(path),
        "rows": int(X.shape[0]),
        "val_split": val_split,
        "test_split": test_split,
        "seed": seed,
        **extra,
    }
    return DatasetSpec(
        name=name,
        loader=split_loader(X, y, splits),
        data_spec=data_spec,
        provenance=provenance,
        splits=dict(splits.sizes),
    )


@register_dataset("csv_regression")
def load_csv_regression(
    *,
    csv_path: str | Path | None = None,
    target_col: str = "target",
    val_split: float = 0.0,
    test_split: float = 0.2,
    seed: int = 0,
    standardize_inputs: bool = True,
    standardize_targets: bool = False,
) -> DatasetSpec:
    path = Path(csv_path) if csv_path else FIXTURE_DIR / "csv_regression_fixture.csv"
    X, target = read_table(path, target_col)
    X, input_stats = _scaled(X, standardize_inputs)
    y, target_stats = _scaled(np.asarray(target, dtype=np.float64).reshape(-1, 1), standardize_targets)

    normalization = {}
    if input_stats:
        normalization["inputs"] = input_stats
    if target_stats:
        normalization["targets"] = target_stats
    data_spec = DataSpec(
        d_in=int(X.shape[1]),
        d_out=1,
        task_type="regression",
        normalization=normalization,
    )
    return _csv_dataset(
        "csv_regression",
        path,
        X,
        y,
        data_spec,
        val_split=val_split,
        test_split=test_split,
        seed=seed,
        extra={"target_col": target_col, "standardize_targets": standardize_targets},
    )


@register_dataset("csv_classification")
def load_csv_classification(
    *,
    csv_path: str | Path | None = None,
    target_col: str = "target",
    val_split: float = 0.0,
    test_split: float = 0.2,
    seed: int = 0,
    standardize_inputs: bool = True,
) -> DatasetSpec:
    """Labels stay raw; :class:`~mlpengine.models.MLPClassifier` binarizes them."""

    path = Path(csv_path) if csv_path else FIXTURE_DIR / "csv_classification_fixture.csv"
    X, labels = read_table(path, target_col)
    X, input_stats = _scaled(X, standardize_inputs)
    classes = pd.unique(labels)

    data_spec = DataSpec(
        d_in=int(X.shape[1]),
        d_out=1,
        task_type="binary" if len(classes) <= 2 else "multiclass",
        num_classes=int(len(classes)),
        normalization={"inputs": input_stats} if input_stats else {},
    )
    return _csv_dataset(
        "csv_classification",
        path,
        X,
        labels,
        data_spec,
        val_split=val_split,
        test_split=test_split,
        seed=seed,
        extra={"target_col": target_col, "classes": sorted(str(c) for c in classes)},
    )


__all__ = ["FIXTURE_DIR", "read_table", "load_csv_regression", "load_csv_classification"]
