import json
import warnings
from pathlib import Path

import pytest

from mlpengine.core.errors import ConvergenceWarning
from mlpengine.reporting.summary import tail_auc, write_summary
from mlpengine.training import pipelines


def test_summary_outputs_are_deterministic(tmp_path):
    config = {
        "data": {"name": "xor", "options": {"n_points": 64, "seed": 123}},
        "model": {
            "estimator": "classifier",
            "params": {
                "hidden_layer_sizes": [4],
                "activation": "tanh",
                "solver": "sgd",
                "batch_size": 4,
                "max_iter": 3,
                "early_stopping": True,
                "validation_fraction": 0.25,
            },
        },
        "train": {"seed": 55, "run_dir": str(tmp_path / "run_a"), "enable_plots": False},
    }

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", ConvergenceWarning)
        first = pipelines.run_pipeline(config)
        summary_a = Path(first.summary_path).read_bytes()
        metrics_a = Path(first.metrics_path).read_bytes()

        config["train"]["run_dir"] = str(tmp_path / "run_b")
        second = pipelines.run_pipeline(config)
    summary_b = Path(second.summary_path).read_bytes()
    metrics_b = Path(second.metrics_path).read_bytes()

    assert metrics_a == metrics_b
    assert summary_a == summary_b
    summary = json.loads(summary_a)
    assert summary["epochs"] == 3
    assert {"loss", "learning_rate", "validation_score"} <= set(summary["metrics"])


def test_write_summary_statistics(tmp_path):
    jsonl = tmp_path / "metrics.jsonl"
    rows = [
        {"epoch": 1, "split": "train", "seed": 0, "sha": "x", "loss": 3.0},
        {"epoch": 2, "split": "train", "seed": 0, "sha": "x", "loss": 2.0},
        {"epoch": 3, "split": "train", "seed": 0, "sha": "x", "loss": 1.0},
    ]
    jsonl.write_text("".join(json.dumps(row) + "\n" for row in rows))
    out = write_summary(jsonl, tmp_path / "summary.json", tail=2)
    summary = json.loads(Path(out).read_text())
    assert summary["tail_window"] == 2
    loss = summary["metrics"]["loss"]
    assert loss == {"min": 1.0, "max": 3.0, "mean": 2.0, "last": 1.0, "tail_auc": 1.5}
    assert set(summary["metrics"]) == {"loss"}


def test_tail_auc_needs_two_points():
    assert tail_auc([5.0]) == 0.0
    assert tail_auc([0.0, 1.0, 2.0]) == pytest.approx(2.0)
