"""Dataset registry and metadata contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, MutableMapping

from ..core.types import Array

TASK_TYPES = frozenset({"regression", "multiclass", "binary", "multilabel"})


@dataclass(frozen=True)
class DatasetSpec:
    """An in-memory dataset in column-major layout.

    Attributes
    ----------
    predictors:
        ``(features, examples)`` input matrix.
    responses:
        ``(outputs, examples)`` target matrix.
    task_type:
        One of ``{"regression", "multiclass", "binary", "multilabel"}``.
    num_classes:
        Number of classes for multiclass datasets.
    provenance:
        Generator options, recorded in run manifests.
    """

    name: str
    predictors: Array
    responses: Array
    task_type: str
    num_classes: int | None = None
    provenance: Dict[str, Any] = field(default_factory=dict)

    @property
    def input_size(self) -> int:
        return int(self.predictors.shape[0])

    @property
    def output_size(self) -> int:
        return int(self.responses.shape[0])

    @property
    def num_examples(self) -> int:
        return int(self.predictors.shape[1])


DatasetFactory = Callable[..., DatasetSpec]

_REGISTRY: MutableMapping[str, DatasetFactory] = {}


def register_dataset(
    name: str | None = None,
    factory: DatasetFactory | None = None,
) -> Callable[[DatasetFactory], DatasetFactory] | DatasetFactory:
    """Register a dataset factory, directly or as a decorator::

        @register_dataset("sine")
        def make_sine(**kwargs):
            ...
    """

    def _decorator(func: DatasetFactory) -> DatasetFactory:
        _REGISTRY[str(name or func.__name__)] = func
        return func

    if factory is not None:
        return _decorator(factory)
    return _decorator


def get_dataset(name: str, **options: Any) -> DatasetSpec:
    """Build the dataset registered as ``name`` with ``options``."""

    if name not in _REGISTRY:
        available = ", ".join(sorted(_REGISTRY))
        raise KeyError(f"Unknown dataset {name!r}. Available datasets: {available}")
    spec = _REGISTRY[name](**options)
    _validate_spec(spec)
    return spec


def available_datasets() -> Iterable[str]:
    return sorted(_REGISTRY)


def _validate_spec(spec: DatasetSpec) -> None:
    if spec.task_type not in TASK_TYPES:
        raise ValueError(f"Invalid task type: {spec.task_type}")
    if spec.task_type == "multiclass" and spec.num_classes is None:
        raise ValueError("Multiclass datasets must define num_classes")
    if spec.predictors.ndim != 2 or spec.responses.ndim != 2:
        raise ValueError("Datasets must be 2-D column-major matrices")
    if spec.predictors.shape[1] != spec.responses.shape[1]:
        raise ValueError(
            f"Dataset {spec.name!r} has {spec.predictors.shape[1]} predictor columns but "
            f"{spec.responses.shape[1]} response columns"
        )


__all__ = ["DatasetSpec", "available_datasets", "get_dataset", "register_dataset"]
