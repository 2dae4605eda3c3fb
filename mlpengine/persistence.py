"""JSON records for fitted estimators."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Type

import numpy as np

from .core.activations import Activation
from .core.errors import ShapeMismatch
from .core.losses import LossFunction
from .core.types import LayerTopology
from .data.label_binarizer import LabelBinarizer
from .models import BaseMultilayerPerceptron, MLPClassifier, MLPRegressor
from .training.config import MLPConfig

RECORD_VERSION = 1

_ESTIMATORS: Dict[str, Type[BaseMultilayerPerceptron]] = {
    "MLPRegressor": MLPRegressor,
    "MLPClassifier": MLPClassifier,
}


def model_to_record(model: BaseMultilayerPerceptron) -> Dict[str, Any]:
    """Serialise hyperparameters, parameters and label codes of ``model``."""

    network = model._check_fitted()
    record: Dict[str, Any] = {
        "version": RECORD_VERSION,
        "estimator": type(model).__name__,
        "params": model.config.to_dict(),
        "coefs_": [coef.tolist() for coef in network.coefs],
        "intercepts_": [intercept.tolist() for intercept in network.intercepts],
        "out_activation_": network.output_activation.value,
        "loss_func_name": network.loss.value,
        "n_iter_": model.n_iter_,
        "loss_curve_": list(model.loss_curve_),
    }
    if network.batch_normalize:
        record["normalization_scales_"] = [s.tolist() for s in network.normalization_scales]
    if isinstance(model, MLPClassifier):
        binarizer = model.label_binarizer_
        record["classes_"] = [c.tolist() for c in binarizer.classes_]
        record["label_codes"] = {
            "neg_label": binarizer.neg_label,
            "pos_label": binarizer.pos_label,
            "one_dimensional": binarizer._one_dimensional,
        }
    return record


def _topology_from_coefs(coefs: List[np.ndarray], intercepts: List[np.ndarray]) -> LayerTopology:
    if not coefs or len(coefs) != len(intercepts):
        raise ShapeMismatch("Record needs one intercept vector per coefficient matrix")
    units = [coefs[0].shape[0]]
    for idx, (coef, intercept) in enumerate(zip(coefs, intercepts)):
        if coef.ndim != 2 or coef.shape[0] != units[-1]:
            raise ShapeMismatch(f"coefs_[{idx}] has shape {coef.shape}, expected ({units[-1]}, n)")
        if intercept.shape != (coef.shape[1],):
            raise ShapeMismatch(
                f"intercepts_[{idx}] has shape {intercept.shape}, expected ({coef.shape[1]},)"
            )
        units.append(coef.shape[1])
    return LayerTopology(tuple(units))


def model_from_record(record: Mapping[str, Any]) -> BaseMultilayerPerceptron:
    """Rebuild a fitted estimator; the topology comes from the coefficient shapes."""

    try:
        estimator_cls = _ESTIMATORS[str(record["estimator"])]
    except KeyError as exc:
        raise KeyError(f"Unknown estimator in record: {record.get('estimator')!r}") from exc

    coefs = [np.asarray(c, dtype=np.float64) for c in record["coefs_"]]
    intercepts = [np.asarray(b, dtype=np.float64) for b in record["intercepts_"]]
    topology = _topology_from_coefs(coefs, intercepts)

    config = MLPConfig.from_mapping(record.get("params", {}))
    config = config.replace(hidden_layer_sizes=topology.hidden)
    model = estimator_cls(config)

    if isinstance(model, MLPClassifier):
        codes = record.get("label_codes", {})
        model.label_binarizer_ = LabelBinarizer.from_classes(
            record["classes_"],
            one_dimensional=bool(codes.get("one_dimensional", len(record["classes_"]) == 1)),
            neg_label=float(codes.get("neg_label", 0.0)),
            pos_label=float(codes.get("pos_label", 1.0)),
        )
        if model.label_binarizer_.n_outputs != topology.n_outputs:
            raise ShapeMismatch(
                f"Label codes span {model.label_binarizer_.n_outputs} columns, "
                f"network produces {topology.n_outputs}"
            )

    model._initialize(topology.n_features, topology.n_outputs)
    network = model.network_
    network.output_activation = Activation.parse(record["out_activation_"])
    network.loss = LossFunction.parse(record["loss_func_name"])
    state = {}
    for idx, (coef, intercept) in enumerate(zip(coefs, intercepts)):
        state[f"W{idx}"] = coef
        state[f"b{idx}"] = intercept
    network.load_state_dict(state)
    for scale, saved in zip(network.normalization_scales, record.get("normalization_scales_", [])):
        scale[...] = np.asarray(saved, dtype=np.float64)

    diagnostics = model.trainer_.diagnostics
    diagnostics.n_iter = int(record.get("n_iter_", 0))
    diagnostics.loss_curve = [float(v) for v in record.get("loss_curve_", [])]
    if diagnostics.loss_curve:
        diagnostics.loss = diagnostics.loss_curve[-1]
    return model


def save_model(model: BaseMultilayerPerceptron, path: str | Path) -> str:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(model_to_record(model), indent=2))
    return str(path)


def load_model(path: str | Path) -> BaseMultilayerPerceptron:
    return model_from_record(json.loads(Path(path).read_text()))


__all__ = ["model_to_record", "model_from_record", "save_model", "load_model"]
