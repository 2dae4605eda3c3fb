"""Per-epoch metric sinks usable as estimator callbacks."""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Dict, Mapping

from .artifacts import git_sha


class _EpochSink:
    """Truncate ``path`` on construction and append one row per epoch."""

    def __init__(self, path: str | Path, *, split: str = "train") -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self.split = split

    def _row(self, epoch: int, metrics: Mapping[str, float]) -> Dict[str, object]:
        row: Dict[str, object] = {"epoch": int(epoch), "split": self.split}
        for name, value in metrics.items():
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                row[name] = float(value)
        return row

    def _append(self, row: Mapping[str, object]) -> None:
        raise NotImplementedError

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        self._append(self._row(epoch, metrics))

    def __call__(self, epoch: int, metrics: Mapping[str, float]) -> None:
        self.on_epoch(epoch, metrics)


class JsonlSink(_EpochSink):
    """One JSON object per line, tagged with the run seed and git revision."""

    def __init__(
        self,
        path: str | Path,
        *,
        split: str = "train",
        seed: int | None = None,
        sha: str | None = None,
    ) -> None:
        super().__init__(path, split=split)
        self.seed = seed
        self.sha = sha or git_sha()

    def _row(self, epoch: int, metrics: Mapping[str, float]) -> Dict[str, object]:
        row = super()._row(epoch, metrics)
        tagged: Dict[str, object] = {
            "epoch": row.pop("epoch"),
            "split": row.pop("split"),
            "seed": self.seed,
            "sha": self.sha,
        }
        tagged.update(row)
        return tagged

    def _append(self, row: Mapping[str, object]) -> None:
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(row) + "\n")


class CsvSink(_EpochSink):
    """CSV rows with sorted columns; the header comes from the first epoch."""

    def _append(self, row: Mapping[str, object]) -> None:
        with self.path.open("a", encoding="utf-8", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=sorted(row), extrasaction="ignore")
            if handle.tell() == 0:
                writer.writeheader()
            writer.writerow(row)


__all__ = ["JsonlSink", "CsvSink"]
