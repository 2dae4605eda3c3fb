"""Deterministic run summaries built from the per-epoch JSONL log."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, List, Mapping, Sequence

import numpy as np

_SKIP_KEYS = {"epoch", "split", "seed", "sha"}


def tail_auc(points: Sequence[float]) -> float:
    """Trapezoidal area under ``points`` on a unit-spaced epoch axis."""

    if len(points) < 2:
        return 0.0
    y = np.asarray(points, dtype=np.float64)
    return float(np.sum(y[1:] + y[:-1]) / 2.0)


def _read_records(path: Path) -> List[Mapping[str, object]]:
    if not path.exists():
        return []
    return [json.loads(line) for line in path.read_text().splitlines() if line.strip()]


def _series(records: Iterable[Mapping[str, object]]) -> Mapping[str, List[float]]:
    series: dict[str, List[float]] = {}
    for record in records:
        for key, value in record.items():
            if key in _SKIP_KEYS or isinstance(value, bool):
                continue
            if isinstance(value, (int, float)):
                series.setdefault(key, []).append(float(value))
    return series


def write_summary(
    metrics_jsonl: str | Path,
    out_summary_json: str | Path,
    *,
    tail: int = 32,
    extra: Mapping[str, object] | None = None,
) -> str:
    """Write min/max/mean/last and the tail area of every logged metric."""

    out_path = Path(out_summary_json)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    records = _read_records(Path(metrics_jsonl))
    window = min(tail, len(records))

    metrics: dict[str, Mapping[str, float]] = {}
    for name, values in _series(records).items():
        arr = np.asarray(values, dtype=np.float64)
        metrics[name] = {
            "min": float(np.min(arr)),
            "max": float(np.max(arr)),
            "mean": float(np.mean(arr)),
            "last": float(arr[-1]),
            "tail_auc": tail_auc(arr[-window:].tolist()) if window else 0.0,
        }

    summary = {
        "version": 1,
        "epochs": len(records),
        "tail_window": window,
        "metrics": metrics,
    }
    if extra:
        summary.update(dict(extra))
    out_path.write_text(json.dumps(summary, sort_keys=True, indent=2))
    return str(out_path)


__all__ = ["tail_auc", "write_summary"]
