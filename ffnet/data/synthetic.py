"""Seeded synthetic datasets."""

from __future__ import annotations

from typing import Sequence

import numpy as np

from .registry import DatasetSpec, register_dataset


@register_dataset("sine")
def make_sine(freq: int = 3, n_points: int = 256, noise: float = 0.05, seed: int = 0) -> DatasetSpec:
    """Noisy ``sin(freq * pi * x)`` sampled on ``[-1, 1]``."""

    rng = np.random.default_rng(seed)
    x = np.linspace(-1.0, 1.0, n_points).reshape(1, -1)
    y = np.sin(freq * np.pi * x) + noise * rng.standard_normal(size=x.shape)
    return DatasetSpec(
        name="sine",
        predictors=x,
        responses=y,
        task_type="regression",
        provenance={"type": "sine", "freq": freq, "n_points": n_points, "noise": noise, "seed": seed},
    )


@register_dataset("blobs")
def make_blobs(
    n_per_class: int = 50,
    centers: Sequence[Sequence[float]] = ((2.0, 2.0), (-2.0, -2.0), (2.0, -2.0)),
    spread: float = 0.4,
    seed: int = 0,
) -> DatasetSpec:
    """Gaussian clusters with one-hot responses, shuffled."""

    rng = np.random.default_rng(seed)
    centers_arr = np.asarray(centers, dtype=np.float64)
    num_classes, dims = centers_arr.shape
    inputs = []
    labels = []
    for idx, center in enumerate(centers_arr):
        inputs.append(center[:, None] + spread * rng.standard_normal((dims, n_per_class)))
        labels.append(np.full(n_per_class, idx))
    x = np.hstack(inputs)
    y = np.eye(num_classes)[:, np.concatenate(labels)]
    order = rng.permutation(x.shape[1])
    return DatasetSpec(
        name="blobs",
        predictors=x[:, order],
        responses=y[:, order],
        task_type="multiclass",
        num_classes=num_classes,
        provenance={
            "type": "blobs",
            "n_per_class": n_per_class,
            "centers": centers_arr.tolist(),
            "spread": spread,
            "seed": seed,
        },
    )
