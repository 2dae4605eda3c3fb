"""Pure in-memory synthetic datasets."""

from __future__ import annotations

import numpy as np

from .registry import DataSpec, DatasetSpec, register_dataset
from .utils import deterministic_split, split_loader

_XOR_CORNERS = np.array([[0.0, 0.0], [0.0, 1.0], [1.0, 0.0], [1.0, 1.0]])
_XOR_LABELS = np.array([0, 1, 1, 0])


def make_linear(
    n_points: int = 256,
    *,
    slope: float = 2.0,
    intercept: float = 1.0,
    noise: float = 0.0,
    seed: int = 0,
) -> tuple[np.ndarray, np.ndarray]:
    """``y = slope * x + intercept`` on ``x`` evenly spaced in ``[-1, 1]``."""

    rng = np.random.default_rng(seed)
    x = np.linspace(-1.0, 1.0, n_points).reshape(-1, 1)
    y = slope * x + intercept
    if noise:
        y = y + noise * rng.standard_normal(size=y.shape)
    return x, y


def make_xor(
    n_points: int = 200, *, jitter: float = 0.1, seed: int = 0
) -> tuple[np.ndarray, np.ndarray]:
    """XOR corners repeated to ``n_points`` rows with Gaussian jitter."""

    rng = np.random.default_rng(seed)
    picks = np.arange(n_points) % 4
    x = _XOR_CORNERS[picks] + jitter * rng.standard_normal(size=(n_points, 2))
    return x, _XOR_LABELS[picks].copy()


def make_blobs(
    n_points: int = 300,
    *,
    n_classes: int = 3,
    n_features: int = 2,
    spread: float = 0.5,
    seed: int = 0,
) -> tuple[np.ndarray, np.ndarray]:
    """Isotropic Gaussian clusters, one per class, centres drawn in ``[-5, 5]``."""

    rng = np.random.default_rng(seed)
    centres = rng.uniform(-5.0, 5.0, size=(n_classes, n_features))
    labels = np.arange(n_points) % n_classes
    x = centres[labels] + spread * rng.standard_normal(size=(n_points, n_features))
    return x, labels


@register_dataset("linear")
def _linear_factory(
    n_points: int = 256,
    slope: float = 2.0,
    intercept: float = 1.0,
    noise: float = 0.0,
    seed: int = 0,
    *,
    val_split: float = 0.0,
    test_split: float = 0.2,
) -> DatasetSpec:
    x, y = make_linear(n_points, slope=slope, intercept=intercept, noise=noise, seed=seed)
    splits = deterministic_split(
        x.shape[0], val_split=val_split, test_split=test_split, seed=seed
    )
    provenance = {
        "type": "synthetic",
        "generator": "linear",
        "n_points": n_points,
        "slope": slope,
        "intercept": intercept,
        "noise": noise,
        "seed": seed,
        "val_split": val_split,
        "test_split": test_split,
    }
    return DatasetSpec(
        name="linear",
        loader=split_loader(x, y, splits),
        data_spec=DataSpec(d_in=1, d_out=1, task_type="regression"),
        provenance=provenance,
        splits=dict(splits.sizes),
    )


@register_dataset("xor")
def _xor_factory(
    n_points: int = 200,
    jitter: float = 0.1,
    seed: int = 0,
    *,
    val_split: float = 0.0,
    test_split: float = 0.2,
) -> DatasetSpec:
    x, y = make_xor(n_points, jitter=jitter, seed=seed)
    splits = deterministic_split(
        x.shape[0], val_split=val_split, test_split=test_split, seed=seed
    )
    provenance = {
        "type": "synthetic",
        "generator": "xor",
        "n_points": n_points,
        "jitter": jitter,
        "seed": seed,
        "val_split": val_split,
        "test_split": test_split,
    }
    return DatasetSpec(
        name="xor",
        loader=split_loader(x, y, splits),
        data_spec=DataSpec(d_in=2, d_out=1, task_type="binary", num_classes=2),
        provenance=provenance,
        splits=dict(splits.sizes),
    )


@register_dataset("blobs")
def _blobs_factory(
    n_points: int = 300,
    n_classes: int = 3,
    n_features: int = 2,
    spread: float = 0.5,
    seed: int = 0,
    *,
    val_split: float = 0.0,
    test_split: float = 0.2,
) -> DatasetSpec:
    x, y = make_blobs(
        n_points, n_classes=n_classes, n_features=n_features, spread=spread, seed=seed
    )
    splits = deterministic_split(
        x.shape[0], val_split=val_split, test_split=test_split, seed=seed
    )
    provenance = {
        "type": "synthetic",
        "generator": "blobs",
        "n_points": n_points,
        "n_classes": n_classes,
        "n_features": n_features,
        "spread": spread,
        "seed": seed,
        "val_split": val_split,
        "test_split": test_split,
    }
    return DatasetSpec(
        name="blobs",
        loader=split_loader(x, y, splits),
        data_spec=DataSpec(
            d_in=n_features, d_out=1, task_type="multiclass", num_classes=n_classes
        ),
        provenance=provenance,
        splits=dict(splits.sizes),
    )


__all__ = ["make_linear", "make_xor", "make_blobs"]
