"""Metric sinks usable as optimizer callbacks."""

from __future__ import annotations

import csv
import json
import subprocess
from pathlib import Path
from typing import Mapping

_GRANULARITIES = {"epoch", "step"}


def _git_sha() -> str:
    try:
        out = subprocess.check_output(["git", "rev-parse", "HEAD"], stderr=subprocess.DEVNULL)
        return out.decode().strip()
    except (OSError, subprocess.CalledProcessError):  # pragma: no cover - git may be unavailable
        return "unknown"


class _Sink:
    """Shared callback plumbing: route step or epoch events to ``_write``."""

    def __init__(self, path: str | Path, *, split: str, granularity: str) -> None:
        if granularity not in _GRANULARITIES:
            raise ValueError(f"granularity must be one of {sorted(_GRANULARITIES)}")
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.split = split
        self.granularity = granularity
        self.records = 0

    def _write(self, index: int, metrics: Mapping[str, float]) -> None:
        raise NotImplementedError

    def on_step(self, step: int, metrics: Mapping[str, float]) -> None:
        if self.granularity == "step":
            self._write(step, metrics)

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        if self.granularity == "epoch":
            self._write(epoch, metrics)


class JsonlSink(_Sink):
    """Append-only JSONL writer for optimizer metrics."""

    def __init__(
        self,
        path: str | Path,
        *,
        split: str = "train",
        granularity: str = "epoch",
        seed: int | None = None,
        sha: str | None = None,
    ) -> None:
        super().__init__(path, split=split, granularity=granularity)
        self.path.write_text("")
        self.seed = seed
        self.sha = sha or _git_sha()

    def _write(self, index: int, metrics: Mapping[str, float]) -> None:
        record = {
            self.granularity: int(index),
            "split": self.split,
            "seed": self.seed,
            "sha": self.sha,
        }
        record.update({k: float(v) for k, v in metrics.items() if isinstance(v, (int, float))})
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record) + "\n")
        self.records += 1


class CsvSink(_Sink):
    """Write metrics to CSV with a stable schema."""

    def __init__(self, path: str | Path, *, split: str = "train", granularity: str = "epoch") -> None:
        super().__init__(path, split=split, granularity=granularity)
        self.path.write_text("")

    def _write(self, index: int, metrics: Mapping[str, float]) -> None:
        row = {self.granularity: int(index), "split": self.split}
        row.update({k: float(v) for k, v in metrics.items() if isinstance(v, (int, float))})
        with self.path.open("a", encoding="utf-8", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=sorted(row))
            if handle.tell() == 0:
                writer.writeheader()
            writer.writerow(row)
        self.records += 1


__all__ = ["JsonlSink", "CsvSink"]
