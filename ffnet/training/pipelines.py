"""Config-driven assembly and training of feed-forward networks.

A run configuration is a mapping with three sections::

    {
        "data": {"name": "sine", "options": {...}},
        "model": {
            "input_dimensions": [1],
            "layers": [{"type": "linear", "out_size": 16}, {"type": "tanh"}, ...],
            "output_layer": "auto" | "mse" | {"name": "huber", "delta": 0.5},
            "init": {"name": "glorot", "seed": 0},
        },
        "train": {"optimizer": "sgd", "step_size": 0.01, "epochs": 20, ...},
    }

Configurations come from the built-in presets or from YAML/JSON files.
"""

from __future__ import annotations

import json
import time
from copy import deepcopy
from pathlib import Path
from typing import Dict, List, Mapping, Sequence

import yaml

from ..core.init import INIT_RULES, InitializationRule
from ..core.layers import LAYER_TYPES, Layer
from ..core.types import RunResult
from ..data import get_dataset
from ..reporting.artifacts import save_checkpoint, write_manifest
from ..reporting.metrics import CsvSink, JsonlSink
from ..reporting.plots import PlotAdapter
from .ffn import FFN
from .losses import REGISTRY as LOSS_REGISTRY
from .losses import OutputLayer
from .metrics import compute_metrics, default_metrics
from .optimizers import OPTIMIZERS, EarlyStopping, GradientDescent, SGDOptimizer

REQUIRED_SECTIONS = frozenset({"data", "model", "train"})

_PRESETS: Dict[str, Mapping[str, object]] = {
    "sine-mlp": {
        "data": {"name": "sine", "options": {"freq": 1, "n_points": 128, "seed": 0}},
        "model": {
            "input_dimensions": [1],
            "layers": [
                {"type": "linear", "out_size": 16},
                {"type": "tanh"},
                {"type": "linear", "out_size": 1},
            ],
            "output_layer": "auto",
            "init": {"name": "glorot", "seed": 0},
        },
        "train": {
            "optimizer": "sgd",
            "step_size": 0.01,
            "batch_size": 16,
            "epochs": 60,
            "seed": 0,
            "run_dir": "runs/sine-mlp",
            "enable_plots": False,
        },
    },
    "blobs-softmax": {
        "data": {"name": "blobs", "options": {"n_per_class": 40, "seed": 1}},
        "model": {
            "input_dimensions": [2],
            "layers": [
                {"type": "linear", "out_size": 16},
                {"type": "relu"},
                {"type": "dropout", "ratio": 0.1, "seed": 1},
                {"type": "linear", "out_size": 3},
            ],
            "output_layer": {"name": "ce", "reduction": "sum"},
            "init": {"name": "gaussian", "stddev": 0.1, "seed": 1},
        },
        "train": {
            "optimizer": "sgd",
            "step_size": 0.005,
            "batch_size": 8,
            "momentum": 0.9,
            "epochs": 30,
            "seed": 1,
            "run_dir": "runs/blobs-softmax",
            "enable_plots": False,
        },
    },
    "sine-full-batch": {
        "data": {"name": "sine", "options": {"freq": 1, "n_points": 64, "seed": 0}},
        "model": {
            "input_dimensions": [1],
            "layers": [
                {"type": "linear", "out_size": 8},
                {"type": "sigmoid"},
                {"type": "linear", "out_size": 1},
            ],
            "output_layer": {"name": "mse"},
            "init": {"name": "random", "lower": -0.5, "upper": 0.5, "seed": 0},
        },
        "train": {
            "optimizer": "gd",
            "step_size": 0.002,
            "epochs": 200,
            "seed": 0,
            "run_dir": "runs/sine-full-batch",
            "enable_plots": False,
        },
    },
}


# ----------------------------------------------------------------------
# Configuration sources


def load_config(path: str | Path) -> Mapping[str, object]:
    """Read a run configuration from a YAML or JSON file."""

    path = Path(path)
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text or "{}")
    else:
        raise ValueError(f"Unsupported config file type: {path.suffix}")

    if not isinstance(data, Mapping):
        raise TypeError(f"Config {path.name} must decode to a mapping")
    missing = REQUIRED_SECTIONS - set(data)
    if missing:
        raise KeyError(f"Config {path.name} is missing required sections: {', '.join(sorted(missing))}")
    return data


def presets() -> Mapping[str, Mapping[str, object]]:
    return {name: deepcopy(cfg) for name, cfg in _PRESETS.items()}


def load_preset(name: str) -> Mapping[str, object]:
    try:
        return deepcopy(_PRESETS[name])
    except KeyError as exc:
        raise KeyError(f"Unknown preset: {name}") from exc


# ----------------------------------------------------------------------
# Builders


def build_layer(spec: Mapping[str, object]) -> Layer:
    options = dict(spec)
    try:
        kind = str(options.pop("type"))
    except KeyError as exc:
        raise KeyError(f"Layer spec {dict(spec)} has no 'type'") from exc
    if kind not in LAYER_TYPES:
        raise ValueError(f"Unknown layer type {kind!r}. Available: {', '.join(sorted(LAYER_TYPES))}")
    return LAYER_TYPES[kind](**options)


def build_output_layer(spec: str | Mapping[str, object], *, task_type: str) -> OutputLayer:
    if isinstance(spec, str):
        return LOSS_REGISTRY.resolve(spec, task_type=task_type)
    options = dict(spec)
    name = str(options.pop("name", "auto"))
    return LOSS_REGISTRY.resolve(name, task_type=task_type, **options)


def build_initializer(spec: str | Mapping[str, object] | None) -> InitializationRule:
    if spec is None:
        spec = {"name": "random"}
    elif isinstance(spec, str):
        spec = {"name": spec}
    options = dict(spec)
    name = str(options.pop("name", "random"))
    if name not in INIT_RULES:
        raise ValueError(f"Unknown init rule {name!r}. Available: {', '.join(sorted(INIT_RULES))}")
    return INIT_RULES[name](**options)


def build_network(model_cfg: Mapping[str, object], *, task_type: str = "regression") -> FFN:
    """Create an unbound :class:`FFN` from the ``model`` section of a config."""

    layers: Sequence[Mapping[str, object]] = model_cfg.get("layers", [])  # type: ignore[assignment]
    if not layers:
        raise ValueError("model.layers must list at least one layer")
    network = FFN(
        output_layer=build_output_layer(model_cfg.get("output_layer", "auto"), task_type=task_type),
        initialize_rule=build_initializer(model_cfg.get("init")),
    )
    for spec in layers:
        network.add(build_layer(spec))
    if "input_dimensions" in model_cfg:
        network.input_dimensions = model_cfg["input_dimensions"]  # type: ignore[assignment]
    return network


def build_optimizer(train_cfg: Mapping[str, object], num_examples: int):
    """Create the optimizer; ``epochs`` is converted into an iteration cap."""

    name = str(train_cfg.get("optimizer", "sgd")).lower()
    if name not in OPTIMIZERS:
        raise ValueError(f"Unknown optimizer {name!r}. Available: {', '.join(sorted(OPTIMIZERS))}")
    epochs = int(train_cfg.get("epochs", 1))
    step_size = float(train_cfg.get("step_size", 0.01))
    tolerance = float(train_cfg.get("tolerance", 1e-5))
    if name == "gd":
        return GradientDescent(step_size=step_size, max_iterations=epochs, tolerance=tolerance)
    return SGDOptimizer(
        step_size=step_size,
        batch_size=int(train_cfg.get("batch_size", 32)),
        max_iterations=epochs * num_examples,
        tolerance=tolerance,
        shuffle=bool(train_cfg.get("shuffle", True)),
        momentum=float(train_cfg.get("momentum", 0.0)),
        exact_objective=bool(train_cfg.get("exact_objective", False)),
        seed=int(train_cfg.get("seed", 0)),
    )


# ----------------------------------------------------------------------
# Running


def run_pipeline(config: Mapping[str, object]) -> RunResult:
    """Train the configured network and write metrics, manifest and checkpoint."""

    missing = REQUIRED_SECTIONS - set(config)
    if missing:
        raise KeyError(f"Config is missing required sections: {', '.join(sorted(missing))}")
    data_cfg = dict(config["data"])  # type: ignore[arg-type]
    model_cfg = dict(config["model"])  # type: ignore[arg-type]
    train_cfg = dict(config["train"])  # type: ignore[arg-type]

    dataset = get_dataset(str(data_cfg["name"]), **dict(data_cfg.get("options", {})))
    model_cfg.setdefault("input_dimensions", [dataset.input_size])

    network = build_network(model_cfg, task_type=dataset.task_type)
    optimizer = build_optimizer(train_cfg, dataset.num_examples)
    seed = int(train_cfg.get("seed", 0))

    run_dir = _resolve_run_dir(train_cfg, dataset.name)
    run_dir.mkdir(parents=True, exist_ok=True)

    jsonl = JsonlSink(run_dir / "metrics.jsonl", split="train", seed=seed)
    csv_sink = CsvSink(run_dir / "metrics.csv", split="train")
    plots = PlotAdapter(run_dir, enable_plots=bool(train_cfg.get("enable_plots", False)))
    callbacks: List[object] = [jsonl, csv_sink, plots]
    patience = train_cfg.get("early_stopping_patience")
    if patience is not None:
        callbacks.append(EarlyStopping(patience=int(patience)))

    _print_startup_summary(
        dataset_name=dataset.name,
        input_dimensions=network.input_dimensions,
        layers=[repr(layer) for layer in network.layers],
        output_layer=repr(network.output_layer),
        optimizer=type(optimizer).__name__,
        weight_size=network.weight_size(),
    )

    objective = network.train(dataset.predictors, dataset.responses, optimizer, callbacks=callbacks)

    predictions = network.predict(
        dataset.predictors, batch_size=int(train_cfg.get("predict_batch_size", 128))
    )
    metric_names = train_cfg.get("metrics") or default_metrics(
        dataset.task_type, num_classes=dataset.num_classes
    )
    final_metrics = dict(
        compute_metrics(
            metric_names,  # type: ignore[arg-type]
            predictions,
            dataset.responses,
            task_type=dataset.task_type,
            num_classes=dataset.num_classes,
        )
    )
    final_metrics["objective"] = objective
    (run_dir / "metrics_final.json").write_text(json.dumps(final_metrics, indent=2))

    checkpoint = save_checkpoint(run_dir / "last.npz", network.state_dict())
    manifest = write_manifest(
        run_dir / "manifest.json",
        config=json.loads(json.dumps(config)),
        dataset_provenance=dataset.provenance,
        network={
            "input_dimensions": network.input_dimensions,
            "layers": [repr(layer) for layer in network.layers],
            "output_layer": repr(network.output_layer),
            "weight_size": network.weight_size(),
        },
    )
    plot_path = plots.close()

    return RunResult(
        epochs=jsonl.records,
        objective=objective,
        metrics_path=str(jsonl.path),
        manifest_path=manifest,
        checkpoint_path=checkpoint,
        plot_path=str(plot_path) if plot_path else "",
    )


def _resolve_run_dir(train_cfg: Mapping[str, object], dataset: str) -> Path:
    if "run_dir" in train_cfg:
        return Path(str(train_cfg["run_dir"]))
    timestamp = time.strftime("%Y%m%d-%H%M%S")
    return Path("runs") / timestamp / dataset


def _print_startup_summary(
    *,
    dataset_name: str,
    input_dimensions: Sequence[int],
    layers: Sequence[str],
    output_layer: str,
    optimizer: str,
    weight_size: int,
) -> None:
    print("=== ffnet run ===")
    print(f"Dataset       : {dataset_name}")
    print(f"Input dims    : {list(input_dimensions)}")
    print(f"Layers        : {', '.join(layers)}")
    print(f"Output layer  : {output_layer}")
    print(f"Optimizer     : {optimizer}")
    print(f"Parameters    : {weight_size}")
    print("=================")


__all__ = [
    "build_initializer",
    "build_layer",
    "build_network",
    "build_optimizer",
    "build_output_layer",
    "load_config",
    "load_preset",
    "presets",
    "run_pipeline",
]
