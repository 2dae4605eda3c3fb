"""Dataset registry, loaders and label encoding."""

# Ensure built-in datasets register themselves when the package is imported.
from . import csv_generic as _csv_generic  # noqa: F401
from . import synthetic as _synthetic  # noqa: F401
from .label_binarizer import LabelBinarizer
from .registry import (
    DatasetSpec,
    DataSpec,
    available_datasets,
    get_dataset,
    register_dataset,
)

__all__ = [
    "DataSpec",
    "DatasetSpec",
    "LabelBinarizer",
    "available_datasets",
    "get_dataset",
    "register_dataset",
]
