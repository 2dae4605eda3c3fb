"""Config-driven training runs with metric sinks and run artifacts."""

from __future__ import annotations

import json
import time
from copy import deepcopy
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Sequence, Type

from ..data import registry
from ..models import BaseMultilayerPerceptron, MLPClassifier, MLPRegressor
from ..persistence import save_model
from ..reporting.artifacts import write_manifest
from ..reporting.metrics import CsvSink, JsonlSink
from ..reporting.plots import PlotAdapter
from ..reporting.summary import write_summary
from .config import MLPConfig, read_mapping
from .metrics import compute_metrics, default_metrics

_ESTIMATORS: Dict[str, Type[BaseMultilayerPerceptron]] = {
    "regressor": MLPRegressor,
    "classifier": MLPClassifier,
}

_PRESETS: Dict[str, Mapping[str, object]] = {
    "linear-adam": {
        "data": {"name": "linear", "options": {"n_points": 256, "seed": 0}},
        "model": {
            "estimator": "regressor",
            "params": {
                "hidden_layer_sizes": [16],
                "solver": "adam",
                "learning_rate_init": 0.01,
                "batch_size": 32,
                "max_iter": 300,
                "tol": 1e-6,
            },
        },
        "train": {"seed": 0, "run_dir": "runs/linear-adam", "enable_plots": False},
    },
    "linear-early-stopping": {
        "data": {"name": "linear", "options": {"n_points": 256, "noise": 0.05, "seed": 0}},
        "model": {
            "estimator": "regressor",
            "params": {
                "hidden_layer_sizes": [16],
                "solver": "adam",
                "learning_rate_init": 0.01,
                "batch_size": 32,
                "max_iter": 300,
                "early_stopping": True,
                "validation_fraction": 0.2,
                "n_iter_no_change": 5,
            },
        },
        "train": {"seed": 0, "run_dir": "runs/linear-early-stopping", "enable_plots": False},
    },
    "xor-sgd": {
        "data": {"name": "xor", "options": {"n_points": 200, "jitter": 0.05, "seed": 0}},
        "model": {
            "estimator": "classifier",
            "params": {
                "hidden_layer_sizes": [8],
                "activation": "tanh",
                "solver": "sgd",
                "learning_rate": "adaptive",
                "learning_rate_init": 0.2,
                "batch_size": 16,
                "max_iter": 200,
            },
        },
        "train": {"seed": 1, "run_dir": "runs/xor-sgd", "enable_plots": False},
    },
    "blobs-lbfgs": {
        "data": {"name": "blobs", "options": {"n_points": 150, "n_classes": 3, "seed": 0}},
        "model": {
            "estimator": "classifier",
            "params": {
                "hidden_layer_sizes": [10],
                "activation": "logistic",
                "solver": "lbfgs",
                "max_iter": 200,
            },
        },
        "train": {"seed": 0, "run_dir": "runs/blobs-lbfgs", "enable_plots": False},
    },
    "csv-regression-adam": {
        "data": {"name": "csv_regression", "options": {"seed": 0}},
        "model": {
            "estimator": "regressor",
            "params": {
                "hidden_layer_sizes": [8],
                "solver": "adam",
                "learning_rate_init": 0.01,
                "max_iter": 200,
            },
        },
        "train": {"seed": 0, "run_dir": "runs/csv-regression-adam", "enable_plots": False},
    },
}

_PRESET_DIR = Path(__file__).resolve().parents[2] / "configs" / "presets"
_FILE_PRESETS_CACHE: Dict[str, Mapping[str, object]] | None = None


@dataclass(frozen=True)
class RunResult:
    """Paths and headline numbers of one pipeline run."""

    n_iter: int
    final_loss: float
    test_metrics: Mapping[str, float]
    run_dir: str
    metrics_path: str
    manifest_path: str
    summary_path: str
    model_path: str


def _file_presets() -> Dict[str, Mapping[str, object]]:
    global _FILE_PRESETS_CACHE
    if _FILE_PRESETS_CACHE is None:
        found: Dict[str, Mapping[str, object]] = {}
        if _PRESET_DIR.exists():
            for file in sorted(_PRESET_DIR.iterdir()):
                if file.suffix.lower() not in {".yaml", ".yml", ".json"}:
                    continue
                data = read_mapping(file)
                missing = {"data", "model", "train"} - set(data)
                if missing:
                    raise KeyError(
                        f"Preset {file.name} is missing required sections: "
                        f"{', '.join(sorted(missing))}"
                    )
                found[file.stem] = json.loads(json.dumps(data))
        _FILE_PRESETS_CACHE = found
    return {name: deepcopy(cfg) for name, cfg in _FILE_PRESETS_CACHE.items()}


def presets() -> Mapping[str, Mapping[str, object]]:
    combined: Dict[str, Mapping[str, object]] = {}
    combined.update({name: deepcopy(cfg) for name, cfg in _PRESETS.items()})
    combined.update(_file_presets())
    return combined


def load_preset(name: str) -> Mapping[str, object]:
    file_presets = _file_presets()
    if name in file_presets:
        return file_presets[name]
    try:
        return deepcopy(_PRESETS[name])
    except KeyError as exc:
        raise KeyError(f"Unknown preset: {name}") from exc


def build_estimator(
    model_cfg: Mapping[str, object],
    *,
    seed: int | None = None,
    callbacks: Sequence[object] = (),
) -> BaseMultilayerPerceptron:
    """Instantiate the estimator described by a ``model`` config section."""

    kind = str(model_cfg.get("estimator", "regressor"))
    try:
        estimator_cls = _ESTIMATORS[kind]
    except KeyError as exc:
        raise ValueError(f"Unknown estimator: {kind}") from exc
    params = MLPConfig.from_mapping(dict(model_cfg.get("params", {})))
    if seed is not None:
        params = params.replace(random_state=int(seed))
    return estimator_cls(params, callbacks=callbacks)


def run_pipeline(config: Mapping[str, object]) -> RunResult:
    data_cfg = dict(config["data"])
    model_cfg = dict(config["model"])
    train_cfg = dict(config.get("train", {}))

    dataset = registry.get_dataset(str(data_cfg["name"]), **dict(data_cfg.get("options", {})))
    task_type = dataset.data_spec.task_type
    X_train, y_train = dataset.load_split("train")

    seed = int(train_cfg.get("seed", 0))
    run_dir = _resolve_run_dir(train_cfg, dataset.name, str(model_cfg.get("estimator", "")))
    run_dir.mkdir(parents=True, exist_ok=True)

    jsonl = JsonlSink(run_dir / "metrics.jsonl", split="train", seed=seed)
    csv_sink = CsvSink(run_dir / "metrics.csv", split="train")
    plots = PlotAdapter(run_dir, enable_plots=bool(train_cfg.get("enable_plots", False)))
    estimator = build_estimator(model_cfg, seed=seed, callbacks=[jsonl, csv_sink, plots])

    _print_startup_summary(
        dataset_name=dataset.name,
        estimator=type(estimator).__name__,
        config=estimator.config,
        n_train=int(X_train.shape[0]),
    )
    estimator.fit(X_train, y_train)
    plots.close()

    metric_names = train_cfg.get("metrics") or default_metrics(task_type)
    if isinstance(metric_names, str):
        metric_names = [m.strip() for m in metric_names.split(",") if m.strip()]
    test_metrics: Dict[str, float] = {}
    if dataset.splits.get("test", 0) > 0:
        X_test, y_test = dataset.load_split("test")
        test_metrics = dict(compute_metrics(metric_names, y_test, estimator.predict(X_test)))
    (run_dir / "metrics_test.json").write_text(json.dumps(test_metrics, indent=2, sort_keys=True))

    model_path = save_model(estimator, run_dir / "model.json")
    resolved = _resolved_config(config, estimator)
    manifest = write_manifest(
        run_dir / "manifest.json",
        config=resolved,
        dataset_provenance=dataset.provenance,
        model={
            "estimator": type(estimator).__name__,
            "layer_units": list(estimator.network_.topology.units),
            "parameters": estimator.network_.parameter_count(),
            "n_iter": estimator.n_iter_,
            "loss": estimator.loss_,
        },
    )
    summary_path = write_summary(
        jsonl.path,
        run_dir / "summary.json",
        tail=int(train_cfg.get("summary_tail", 32)),
        extra={"test_metrics": test_metrics},
    )
    (run_dir / "config.json").write_text(json.dumps(resolved, indent=2))

    return RunResult(
        n_iter=estimator.n_iter_,
        final_loss=float(estimator.loss_),
        test_metrics=test_metrics,
        run_dir=str(run_dir),
        metrics_path=str(jsonl.path),
        manifest_path=manifest,
        summary_path=summary_path,
        model_path=model_path,
    )


def _resolve_run_dir(train_cfg: Mapping[str, object], dataset: str, estimator: str) -> Path:
    if "run_dir" in train_cfg:
        return Path(str(train_cfg["run_dir"]))
    timestamp = time.strftime("%Y%m%d-%H%M%S")
    return Path("runs") / timestamp / dataset / (estimator or "model")


def _resolved_config(
    config: Mapping[str, object], estimator: BaseMultilayerPerceptron
) -> Mapping[str, object]:
    copied = json.loads(json.dumps(config))
    copied.setdefault("model", {})["params"] = estimator.config.to_dict()
    return copied


def _print_startup_summary(
    *, dataset_name: str, estimator: str, config: MLPConfig, n_train: int
) -> None:
    print("=== mlpengine run ===")
    print(f"Dataset       : {dataset_name} ({n_train} training rows)")
    print(f"Estimator     : {estimator}")
    print(f"Hidden layers : {list(config.hidden_layer_sizes)}")
    print(f"Activation    : {config.activation}")
    print(f"Solver        : {config.solver}")
    print(f"Seed          : {config.random_state}")
    print("=====================")


__all__ = ["RunResult", "build_estimator", "load_preset", "presets", "run_pipeline"]
