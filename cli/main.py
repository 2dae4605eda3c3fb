"""Command line entry point for mlpengine training runs."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Iterable

from mlpengine.data import available_datasets
from mlpengine.training import pipelines
from mlpengine.training.config import read_mapping


def _format_result(result: pipelines.RunResult) -> str:
    payload = {
        "n_iter": result.n_iter,
        "loss": result.final_loss,
        "test_metrics": dict(result.test_metrics),
        "metrics": result.metrics_path,
        "manifest": result.manifest_path,
        "summary": result.summary_path,
        "model": result.model_path,
    }
    return json.dumps(payload, sort_keys=True)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    preset_names = sorted(pipelines.presets().keys())
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--preset",
        choices=preset_names,
        default="linear-adam",
        help="Preset configuration to execute",
    )
    parser.add_argument("--config", type=Path, help="Optional JSON/YAML config override")
    parser.add_argument("--enable-plots", action="store_true", help="Write loss.png")
    parser.add_argument(
        "--dataset",
        choices=sorted(available_datasets()),
        help="Override the dataset used by the run",
    )
    parser.add_argument("--csv-path", help="Path to a CSV file for csv_* datasets")
    parser.add_argument("--target-col", help="Target column name for CSV datasets")
    parser.add_argument("--seed", type=int, help="Seed used for dataset splits and training")
    parser.add_argument("--run-dir", type=Path, help="Directory receiving the run artifacts")
    parser.add_argument(
        "--list-presets", action="store_true", help="List available presets and exit"
    )
    parser.add_argument(
        "--dump-config", type=Path, help="Dump the resolved config to a JSON file"
    )
    return parser.parse_args(argv)


def _merge(base: dict, override: dict) -> dict:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _merge(dict(base[key]), value)
        else:
            base[key] = value
    return base


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)

    if args.list_presets:
        for name in sorted(pipelines.presets().keys()):
            print(name)
        raise SystemExit(0)

    config = json.loads(json.dumps(pipelines.load_preset(args.preset)))

    if args.config:
        override = json.loads(json.dumps(read_mapping(args.config)))
        if {"data", "model", "train"} <= set(override.keys()):
            config = override
        else:
            config = _merge(config, override)

    if args.enable_plots:
        config.setdefault("train", {})["enable_plots"] = True

    if args.dataset:
        opts: dict = {}
        if args.seed is not None:
            opts["seed"] = int(args.seed)
        if args.dataset in {"csv_regression", "csv_classification"}:
            if args.csv_path:
                opts["csv_path"] = args.csv_path
            if args.target_col:
                opts["target_col"] = args.target_col
        config["data"] = {"name": args.dataset, "options": opts}

    if args.seed is not None:
        config.setdefault("train", {})["seed"] = int(args.seed)
    if args.run_dir is not None:
        config.setdefault("train", {})["run_dir"] = str(args.run_dir)

    if args.dump_config:
        args.dump_config.parent.mkdir(parents=True, exist_ok=True)
        args.dump_config.write_text(json.dumps(config, indent=2))

    result = pipelines.run_pipeline(config)
    print(_format_result(result))


if __name__ == "__main__":
    main()
