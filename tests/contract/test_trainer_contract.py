import json
import warnings
from pathlib import Path

import pytest

from mlpengine.core.errors import ConvergenceWarning
from mlpengine.training import pipelines


def _config(run_dir, *, seed=11, solver="adam", estimator="regressor", data=None):
    return {
        "data": data or {"name": "linear", "options": {"n_points": 64, "seed": 0}},
        "model": {
            "estimator": estimator,
            "params": {
                "hidden_layer_sizes": [4],
                "solver": solver,
                "learning_rate_init": 0.01,
                "batch_size": 8,
                "max_iter": 5,
            },
        },
        "train": {"seed": seed, "run_dir": str(run_dir), "enable_plots": False},
    }


def test_trainer_pipeline_produces_artifacts(tmp_path):
    config = _config(tmp_path / "run")
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", ConvergenceWarning)
        result = pipelines.run_pipeline(config)

    assert result.n_iter == 5
    assert Path(result.metrics_path).exists()
    manifest = json.loads(Path(result.manifest_path).read_text())
    assert manifest["config"]["train"]["seed"] == 11
    assert manifest["config"]["model"]["params"]["random_state"] == 11
    assert manifest["dataset"]["generator"] == "linear"
    assert manifest["model"]["layer_units"] == [1, 4, 1]
    assert manifest["model"]["parameters"] == 1 * 4 + 4 + 4 * 1 + 1

    metrics = [
        json.loads(line)
        for line in Path(result.metrics_path).read_text().splitlines()
        if line
    ]
    assert [entry["epoch"] for entry in metrics] == [1, 2, 3, 4, 5]
    first = metrics[0]
    assert first["split"] == "train"
    assert "sha" in first
    assert first["seed"] == 11
    assert all("loss" in entry and "learning_rate" in entry for entry in metrics)

    run_dir = Path(result.run_dir)
    assert (run_dir / "metrics.csv").exists()
    assert (run_dir / "model.json").exists()
    assert (run_dir / "config.json").exists()
    test_metrics = json.loads((run_dir / "metrics_test.json").read_text())
    assert set(test_metrics) == {"mae", "rmse", "r2"}


def test_classifier_pipeline_reports_accuracy(tmp_path):
    config = _config(
        tmp_path / "clf",
        estimator="classifier",
        data={"name": "blobs", "options": {"n_points": 90, "n_classes": 3, "seed": 1}},
    )
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", ConvergenceWarning)
        result = pipelines.run_pipeline(config)
    assert set(result.test_metrics) == {"accuracy"}
    assert 0.0 <= result.test_metrics["accuracy"] <= 1.0


def test_lbfgs_pipeline_logs_a_single_record(tmp_path):
    config = _config(tmp_path / "lbfgs", solver="lbfgs")
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", ConvergenceWarning)
        result = pipelines.run_pipeline(config)
    lines = Path(result.metrics_path).read_text().splitlines()
    assert len(lines) == 1
    assert json.loads(lines[0])["epoch"] == result.n_iter


def test_pipeline_determinism(tmp_path):
    config = _config(tmp_path / "run1", seed=99)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", ConvergenceWarning)
        first = pipelines.run_pipeline(config)
        config["train"]["run_dir"] = str(tmp_path / "run2")
        second = pipelines.run_pipeline(config)

    assert Path(first.metrics_path).read_text() == Path(second.metrics_path).read_text()
    assert first.final_loss == second.final_loss


def test_presets_include_builtin_and_file_presets():
    names = set(pipelines.presets())
    assert {"linear-adam", "xor-sgd", "blobs-lbfgs", "blobs-sgd-nesterov"} <= names
    preset = pipelines.load_preset("blobs-sgd-nesterov")
    assert {"data", "model", "train"} <= set(preset)
    preset["train"]["seed"] = 1234
    assert pipelines.load_preset("blobs-sgd-nesterov")["train"].get("seed") != 1234


def test_unknown_preset_and_estimator_are_rejected():
    with pytest.raises(KeyError):
        pipelines.load_preset("missing")
    with pytest.raises(ValueError):
        pipelines.build_estimator({"estimator": "ranker"})
