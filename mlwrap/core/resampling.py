"""
Resampling - repeated fit/score over data partitions.

This module contains:
- ResampleDesc (what kind of partitioning to do)
- ResampleInstance (concrete train/test indices for one task)
- resample() (fit the learner on every training split, score on the test split)
"""

from __future__ import annotations

import math
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

import numpy as np
import polars as pl
from sklearn.model_selection import KFold, StratifiedKFold

from mlwrap.utils.logger import logger

from .errors import ConfigurationError
from .learner import Learner, Model
from .measures import Measure, default_measure
from .prediction import Prediction
from .rng import Seed, as_generator, int_seed, spawn
from .task import Task

ResampleMethod = Literal["CV", "LOO", "Holdout", "Subsample", "Bootstrap"]


@dataclass(frozen=True)
class ResampleDesc:
    """
    Description of a resampling strategy.

    Attributes:
        method: ``CV`` (k-fold, ``iters`` = k >= 2), ``LOO``, ``Holdout``
            (one split), ``Subsample`` (``iters`` random splits) or
            ``Bootstrap`` (``iters`` out-of-bag splits).
        iters: Number of iterations (folds for CV).
        split: Training fraction for Holdout and Subsample.
        stratify: Keep class proportions in every fold (classification only).
    """

    method: ResampleMethod = "CV"
    iters: int = 10
    split: float = 2 / 3
    stratify: bool = False

    def __post_init__(self):
        if self.method not in ("CV", "LOO", "Holdout", "Subsample", "Bootstrap"):
            raise ConfigurationError(f"Método de resampling desconhecido: {self.method!r}")
        if self.method == "CV" and self.iters < 2:
            raise ConfigurationError("CV exige iters >= 2")
        if self.iters < 1:
            raise ConfigurationError("iters deve ser >= 1")
        if self.method in ("Holdout", "Subsample") and not 0.0 < self.split < 1.0:
            raise ConfigurationError("split deve estar em (0, 1)")

    @property
    def n_iters(self) -> int:
        return 1 if self.method == "Holdout" else self.iters


def make_resample_desc(method: ResampleMethod = "CV", **kwargs: Any) -> ResampleDesc:
    if method == "Holdout":
        kwargs.setdefault("iters", 1)
    return ResampleDesc(method=method, **kwargs)


@dataclass(frozen=True)
class ResampleInstance:
    desc: ResampleDesc
    size: int
    train_inds: tuple[np.ndarray, ...]
    test_inds: tuple[np.ndarray, ...]

    @property
    def iters(self) -> int:
        return len(self.train_inds)

    def check_fits(self, task: Task) -> None:
        """Indices drawn for another task cannot be applied to `task`."""
        if self.size != task.n_obs:
            raise ConfigurationError(
                f"Instância de resampling com {self.size} obs para task com {task.n_obs}"
            )


def make_resample_instance(
    desc: ResampleDesc, task: Task, seed: Seed = None
) -> ResampleInstance:
    """Draw concrete train/test indices for `task`."""
    rng = as_generator(seed)
    n = task.n_obs
    all_idx = np.arange(n)
    train: list[np.ndarray] = []
    test: list[np.ndarray] = []

    if desc.method in ("CV", "LOO"):
        k = n if desc.method == "LOO" else desc.iters
        if k > n:
            raise ConfigurationError(f"{k} folds para apenas {n} observações")
        if desc.stratify and task.type == "classif" and desc.method == "CV":
            splitter = StratifiedKFold(n_splits=k, shuffle=True, random_state=int_seed(rng))
            splits = splitter.split(np.zeros(n), task.y())
        else:
            splitter = KFold(n_splits=k, shuffle=desc.method == "CV", random_state=int_seed(rng) if desc.method == "CV" else None)
            splits = splitter.split(all_idx)
        for tr, te in splits:
            train.append(tr)
            test.append(te)
    elif desc.method in ("Holdout", "Subsample"):
        n_train = max(1, min(n - 1, int(round(desc.split * n))))
        for _ in range(desc.n_iters):
            perm = rng.permutation(n)
            train.append(np.sort(perm[:n_train]))
            test.append(np.sort(perm[n_train:]))
    else:  # Bootstrap
        for _ in range(desc.iters):
            tr = rng.integers(0, n, size=n)
            oob = np.setdiff1d(all_idx, tr)
            if oob.size == 0:
                oob = all_idx[rng.integers(0, n, size=1)]
            train.append(tr)
            test.append(oob)
    return ResampleInstance(desc, n, tuple(train), tuple(test))


@dataclass(frozen=True, eq=False)
class ResampleResult:
    learner_id: str
    task_id: str
    measures: tuple[str, ...]
    measures_test: pl.DataFrame
    aggr: dict[str, float]
    predictions: tuple[Prediction, ...] = ()
    models: tuple[Model, ...] = ()
    runtime: float = 0.0
    extra: dict[str, Any] = field(default_factory=dict)


_AGGREGATORS = {
    "mean": np.mean,
    "median": np.median,
}


def resample(
    learner: Learner,
    task: Task,
    resampling: ResampleDesc | ResampleInstance,
    measures: Measure | Sequence[Measure] | None = None,
    params: Mapping[str, Any] | None = None,
    *,
    seed: Seed = None,
    aggregation: Literal["mean", "median"] = "mean",
    keep_models: bool = False,
    keep_predictions: bool = False,
) -> ResampleResult:
    """
    Fit `learner` on each training split and score it on the matching test split.

    Errors raised while training or predicting propagate to the caller.

    Returns:
        ResampleResult with one row per iteration in `measures_test` and the
        aggregated score per measure in `aggr`.
    """
    if measures is None:
        measures = [default_measure(task.type)]
    elif isinstance(measures, Measure):
        measures = [measures]
    if aggregation not in _AGGREGATORS:
        raise ConfigurationError(f"Agregação desconhecida: {aggregation!r}")
    rng = as_generator(seed)
    instance = (
        resampling
        if isinstance(resampling, ResampleInstance)
        else make_resample_instance(resampling, task, rng)
    )
    instance.check_fits(task)

    t0 = time.perf_counter()
    rows: list[dict[str, Any]] = []
    preds: list[Prediction] = []
    models: list[Model] = []
    for it, (tr, te, child) in enumerate(
        zip(instance.train_inds, instance.test_inds, spawn(rng, instance.iters)), start=1
    ):
        model = learner.train(task.subset(rows=tr), params, seed=child)
        pred = learner.predict(model, task.subset(rows=te))
        row: dict[str, Any] = {"iter": it}
        for m in measures:
            row[m.id] = m(pred)
        rows.append(row)
        if keep_models:
            models.append(model)
        if keep_predictions:
            preds.append(pred)

    frame = pl.DataFrame(rows)
    aggr_fn = _AGGREGATORS[aggregation]
    aggr = {f"{m.id}.test.{aggregation}": float(aggr_fn(frame[m.id].to_numpy())) for m in measures}
    runtime = time.perf_counter() - t0
    logger.debug(
        f"Resampling {instance.desc.method} de '{learner.id}' em '{task.id}': "
        + ", ".join(f"{k}={v:.4f}" for k, v in aggr.items())
    )
    return ResampleResult(
        learner_id=learner.id,
        task_id=task.id,
        measures=tuple(m.id for m in measures),
        measures_test=frame,
        aggr=aggr,
        predictions=tuple(preds),
        models=tuple(models),
        runtime=runtime,
    )


def aggregated_score(result: ResampleResult, measure: Measure) -> float:
    """Aggregated score of `measure` in `result`, whatever the aggregation used."""
    for key, value in result.aggr.items():
        if key.split(".test.")[0] == measure.id:
            return value
    return math.nan


__all__ = [
    "ResampleDesc",
    "ResampleInstance",
    "ResampleResult",
    "make_resample_desc",
    "make_resample_instance",
    "resample",
    "aggregated_score",
]
