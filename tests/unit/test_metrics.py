from __future__ import annotations

import numpy as np
import pytest

from ffnet.training.metrics import compute_metric, compute_metrics, default_metrics


def test_default_metrics_by_task() -> None:
    assert default_metrics("regression") == ["mae", "rmse", "r2"]
    assert default_metrics("multiclass", num_classes=3) == ["accuracy", "macro_f1"]
    assert default_metrics("multiclass", num_classes=100) == ["accuracy"]
    assert default_metrics("binary") == ["accuracy", "precision", "recall", "f1"]
    with pytest.raises(ValueError):
        default_metrics("ranking")


def test_regression_metrics() -> None:
    targets = np.array([[1.0, 2.0, 3.0, 4.0]])
    predictions = targets + np.array([[0.5, -0.5, 0.5, -0.5]])
    values = compute_metrics(["mae", "rmse", "r2"], predictions, targets, task_type="regression")
    assert values["mae"] == pytest.approx(0.5)
    assert values["rmse"] == pytest.approx(0.5)
    assert values["r2"] == pytest.approx(1.0 - 1.0 / 5.0)


def test_multiclass_metrics_use_column_argmax() -> None:
    targets = np.eye(3)[:, [0, 1, 2, 2]]
    logits = np.array(
        [
            [3.0, 0.0, 0.0, 0.0],
            [0.0, 3.0, 3.0, 0.0],
            [0.0, 0.0, 0.0, 3.0],
        ]
    )
    accuracy = compute_metric("accuracy", logits, targets, task_type="multiclass", num_classes=3)
    assert accuracy == pytest.approx(0.75)
    macro = compute_metric("macro_f1", logits, targets, task_type="multiclass", num_classes=3)
    # Per-class F1: 1.0, 2/3, 2/3.
    assert macro == pytest.approx((1.0 + 2 / 3 + 2 / 3) / 3, rel=1e-6)
    with pytest.raises(ValueError):
        compute_metric("macro_f1", logits, targets, task_type="multiclass")


def test_binary_metrics_threshold_logits() -> None:
    logits = np.array([[2.0, -1.0, 0.5, -3.0]])
    targets = np.array([[1.0, 1.0, 0.0, 0.0]])
    values = compute_metrics(["accuracy", "precision", "recall", "f1"], logits, targets, task_type="binary")
    assert values["accuracy"] == pytest.approx(0.5)
    assert values["precision"] == pytest.approx(0.5)
    assert values["recall"] == pytest.approx(0.5)
    assert values["f1"] == pytest.approx(0.5)


def test_unknown_metric() -> None:
    with pytest.raises(KeyError):
        compute_metric("auc", np.zeros((1, 1)), np.zeros((1, 1)), task_type="binary")
