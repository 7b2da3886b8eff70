"""Metric helpers computed on network predictions.

Predictions and targets are column-major: one example per column.  Class
predictions are taken from the argmax over rows for multiclass outputs and
from ``sigmoid(logit) >= 0.5`` for binary outputs.
"""

from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Mapping

import numpy as np

from ..core.activations import sigmoid
from ..core.types import Array

_EPS = 1e-9

MetricFn = Callable[[Array, Array, str, "int | None"], float]


def default_metrics(task_type: str, *, num_classes: int | None = None) -> List[str]:
    if task_type == "regression":
        return ["mae", "rmse", "r2"]
    if task_type == "multiclass":
        metrics = ["accuracy"]
        if num_classes and num_classes <= 20:
            metrics.append("macro_f1")
        return metrics
    if task_type in {"binary", "multilabel"}:
        return ["accuracy", "precision", "recall", "f1"]
    raise ValueError(f"Unknown task type: {task_type}")


def _labels(values: Array, task_type: str, *, logits: bool) -> Array:
    if task_type == "multiclass":
        if values.shape[0] > 1:
            return np.argmax(values, axis=0)
        return values.reshape(-1).astype(int)
    if logits:
        return (sigmoid(values) >= 0.5).astype(int)
    return values.astype(int)


def _confusion(predictions: Array, targets: Array) -> tuple[float, float, float]:
    pred = (sigmoid(predictions) >= 0.5).astype(int)
    targ = targets.astype(int)
    tp = float(np.sum((pred == 1) & (targ == 1)))
    fp = float(np.sum((pred == 1) & (targ == 0)))
    fn = float(np.sum((pred == 0) & (targ == 1)))
    return tp, fp, fn


def _f1(precision: float, recall: float) -> float:
    return 2 * precision * recall / (precision + recall + _EPS)


def _mae(pred: Array, targ: Array, task_type: str, num_classes: int | None) -> float:
    return float(np.mean(np.abs(pred - targ)))


def _rmse(pred: Array, targ: Array, task_type: str, num_classes: int | None) -> float:
    return float(np.sqrt(np.mean((pred - targ) ** 2)))


def _r2(pred: Array, targ: Array, task_type: str, num_classes: int | None) -> float:
    ss_res = float(np.sum((targ - pred) ** 2))
    ss_tot = float(np.sum((targ - targ.mean(axis=1, keepdims=True)) ** 2))
    return 1.0 if ss_tot == 0 else 1.0 - ss_res / (ss_tot + _EPS)


def _accuracy(pred: Array, targ: Array, task_type: str, num_classes: int | None) -> float:
    predicted = _labels(pred, task_type, logits=True)
    expected = _labels(targ, task_type, logits=False)
    return float(np.mean(predicted == expected))


def _macro_f1(pred: Array, targ: Array, task_type: str, num_classes: int | None) -> float:
    if num_classes is None:
        raise ValueError("macro_f1 requires num_classes")
    predicted = np.argmax(pred, axis=0)
    expected = _labels(targ, "multiclass", logits=False)
    scores = []
    for cls in range(num_classes):
        tp = np.sum((predicted == cls) & (expected == cls))
        fp = np.sum((predicted == cls) & (expected != cls))
        fn = np.sum((predicted != cls) & (expected == cls))
        scores.append(_f1(tp / (tp + fp + _EPS), tp / (tp + fn + _EPS)))
    return float(np.mean(scores))


def _precision(pred: Array, targ: Array, task_type: str, num_classes: int | None) -> float:
    tp, fp, _ = _confusion(pred, targ)
    return tp / (tp + fp + _EPS)


def _recall(pred: Array, targ: Array, task_type: str, num_classes: int | None) -> float:
    tp, _, fn = _confusion(pred, targ)
    return tp / (tp + fn + _EPS)


def _binary_f1(pred: Array, targ: Array, task_type: str, num_classes: int | None) -> float:
    return float(_f1(_precision(pred, targ, task_type, num_classes), _recall(pred, targ, task_type, num_classes)))


_METRICS: Dict[str, MetricFn] = {
    "mae": _mae,
    "rmse": _rmse,
    "r2": _r2,
    "accuracy": _accuracy,
    "macro_f1": _macro_f1,
    "precision": _precision,
    "recall": _recall,
    "f1": _binary_f1,
}


def compute_metric(
    name: str,
    predictions: Array,
    targets: Array,
    *,
    task_type: str,
    num_classes: int | None = None,
) -> float:
    key = name.lower()
    try:
        fn = _METRICS[key]
    except KeyError as exc:
        raise KeyError(f"Unknown metric: {name}") from exc
    return float(fn(np.asarray(predictions), np.asarray(targets), task_type, num_classes))


def compute_metrics(
    names: Iterable[str],
    predictions: Array,
    targets: Array,
    *,
    task_type: str,
    num_classes: int | None = None,
) -> Mapping[str, float]:
    return {
        name.lower(): compute_metric(
            name, predictions, targets, task_type=task_type, num_classes=num_classes
        )
        for name in names
    }


__all__ = ["default_metrics", "compute_metric", "compute_metrics"]
