import json
import warnings
from pathlib import Path

import pytest

from cli.main import main
from mlpengine.core.errors import ConvergenceWarning


@pytest.fixture(autouse=True)
def _quiet_convergence():
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", ConvergenceWarning)
        yield


def test_cli_basic_preset(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    main(["--preset", "xor-sgd"])
    run_dir = Path("runs/xor-sgd")
    assert (run_dir / "metrics.jsonl").exists()
    assert (run_dir / "manifest.json").exists()
    assert (run_dir / "model.json").exists()
    payload = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert "accuracy" in payload["test_metrics"]


def test_cli_overrides_dataset_seed_and_run_dir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    override = tmp_path / "override.yaml"
    override.write_text("model:\n  params:\n    max_iter: 4\n")
    dump = tmp_path / "resolved.json"
    main(
        [
            "--preset",
            "csv-regression-adam",
            "--config",
            str(override),
            "--seed",
            "7",
            "--run-dir",
            str(tmp_path / "custom"),
            "--dump-config",
            str(dump),
        ]
    )
    resolved = json.loads(dump.read_text())
    assert resolved["model"]["params"]["max_iter"] == 4
    assert resolved["model"]["params"]["solver"] == "adam"
    assert resolved["train"]["seed"] == 7
    lines = (tmp_path / "custom" / "metrics.jsonl").read_text().splitlines()
    assert len(lines) == 4
    assert json.loads(lines[0])["seed"] == 7


def test_cli_list_presets(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--list-presets"])
    assert excinfo.value.code == 0
    listed = capsys.readouterr().out.split()
    assert "linear-adam" in listed
    assert "blobs-sgd-nesterov" in listed
