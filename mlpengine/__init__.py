"""mlpengine public API."""

from .core import activations, losses, types  # noqa: F401
from .core.errors import (
    ConvergenceWarning,
    InvalidHyperparameter,
    MLPError,
    NumericalInstability,
    ShapeMismatch,
)
from .data.label_binarizer import LabelBinarizer
from .models import MLPClassifier, MLPRegressor
from .persistence import load_model, save_model
from .training.config import MLPConfig, load_config
from .training.pipelines import load_preset, presets, run_pipeline
from .training.trainer import Trainer

__all__ = [
    "MLPRegressor",
    "MLPClassifier",
    "MLPConfig",
    "LabelBinarizer",
    "Trainer",
    "activations",
    "losses",
    "types",
    "MLPError",
    "InvalidHyperparameter",
    "NumericalInstability",
    "ShapeMismatch",
    "ConvergenceWarning",
    "load_config",
    "load_model",
    "save_model",
    "load_preset",
    "presets",
    "run_pipeline",
]
