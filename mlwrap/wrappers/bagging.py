"""
Bagging Wrapper - bootstrap-aggregated ensembles around any base learner.

Each iteration trains the inner learner on a weighted bootstrap sample of the
rows and a random subset of the features. Observation weights are consumed by
the resampling, so the wrapped learner never sees them and the chain supports
weights even when the inner learner does not.
"""

from __future__ import annotations

import copy
import math
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import numpy as np
import polars as pl

from mlwrap.config import settings
from mlwrap.core.capabilities import Capability
from mlwrap.core.errors import StateError
from mlwrap.core.learner import Learner, Model, PredictType
from mlwrap.core.params import IntegerParam, LogicalParam, NumericParam, ParamSet
from mlwrap.core.prediction import Prediction
from mlwrap.core.rng import spawn
from mlwrap.core.task import Task
from mlwrap.utils.concurrency import ExecutorFactory
from mlwrap.utils.logger import logger

from .base_wrapper import BaseWrapper, WrapperModel

# default subsample fraction when drawing without replacement
_SUBSAMPLE_SIZE = 0.632


@dataclass(frozen=True, eq=False)
class BaggingModel(WrapperModel):
    next_models: tuple[Model, ...] = ()
    feature_subsets: tuple[tuple[str, ...], ...] = ()


def bagging_param_set() -> ParamSet:
    return ParamSet(
        IntegerParam("bw.iters", default=settings.BAGGING_ITERS, lower=1, upper=100_000),
        LogicalParam("bw.replace", default=True),
        NumericParam("bw.size", lower=0.0, upper=1.0, lower_open=True),
        NumericParam("bw.feats", default=2 / 3, lower=0.0, upper=1.0, lower_open=True),
    )


def _fit_bag(
    learner: Learner,
    task: Task,
    rows: np.ndarray,
    features: tuple[str, ...],
    params: dict[str, Any],
    rng: np.random.Generator,
) -> Model:
    return learner.train(task.subset(rows=rows, features=list(features)), params, seed=rng)


class BaggingWrapper(BaseWrapper):
    """
    Bagging wrapper.

    Own parameters:
        bw.iters: number of bagged models.
        bw.replace: draw rows with replacement.
        bw.size: fraction of rows per bag (default 1, or 0.632 without replacement).
        bw.feats: fraction of features per bag, ``ceil(bw.feats * p)`` features.

    Classification predictions are majority votes; ties go to the first class
    in the task's sorted class levels. ``predict_type="prob"`` returns vote
    proportions. Regression predictions are bag means; ``predict_type="se"``
    also returns the standard deviation across bags.
    """

    model_class = BaggingModel
    suffix = "bagged"

    def __init__(
        self,
        learner: Learner,
        iters: int | None = None,
        replace: bool | None = None,
        size: float | None = None,
        feats: float | None = None,
        id: str | None = None,
        predict_type: PredictType = "response",
        executor: str | None = None,
        n_jobs: int | None = None,
    ):
        if learner.predict_type != "response":
            learner = learner.set_predict_type("response")
        par_vals: dict[str, Any] = {}
        for name, value in (
            ("bw.iters", iters),
            ("bw.replace", replace),
            ("bw.size", size),
            ("bw.feats", feats),
        ):
            if value is not None:
                par_vals[name] = value
        self.executor = executor
        self.n_jobs = n_jobs
        super().__init__(
            learner,
            id=id,
            par_set=bagging_param_set(),
            par_vals=par_vals,
            predict_type=predict_type,
        )

    def _wrap_capabilities(self, inner: frozenset[Capability]) -> frozenset[Capability]:
        extra = {Capability.WEIGHTS, Capability.PROB if self.type == "classif" else Capability.SE}
        return inner | extra

    def set_predict_type(self, predict_type: PredictType) -> Learner:
        # the inner learner always predicts responses; votes are aggregated here
        self._check_predict_type(predict_type)
        new = copy.copy(self)
        new.predict_type = predict_type
        return new

    # ── train ────────────────────────────────────────────────────────────

    def _train_wrapper(
        self,
        task: Task,
        own: dict[str, Any],
        delegated: dict[str, Any],
        rng: np.random.Generator,
    ) -> Model:
        t0 = time.perf_counter()
        iters = own["bw.iters"]
        replace = own["bw.replace"]
        size = own.get("bw.size", 1.0 if replace else _SUBSAMPLE_SIZE)
        n, p = task.n_obs, task.n_features
        n_rows = max(1, int(round(size * n)))
        n_feats = max(1, math.ceil(own["bw.feats"] * p))

        prob = None
        if task.weights is not None:
            prob = np.asarray(task.weights, dtype=float) / task.weights.sum()
            if not replace:
                nonzero = int(np.count_nonzero(prob))
                if nonzero < n_rows:
                    logger.warning(
                        f"Apenas {nonzero} observações com peso > 0; bags sem reposição reduzidos"
                    )
                    n_rows = nonzero
        if not replace:
            n_rows = min(n_rows, n)

        base_task = task.drop_weights()
        feature_names = task.feature_names
        children = spawn(rng, iters)
        args = []
        subsets: list[tuple[str, ...]] = []
        for child in children:
            rows = child.choice(n, size=n_rows, replace=replace, p=prob)
            picked = np.sort(child.choice(p, size=n_feats, replace=False))
            features = tuple(feature_names[j] for j in picked)
            subsets.append(features)
            args.append((self.next_learner, base_task, rows, features, delegated, child))

        logger.debug(
            f"Bagging '{self.id}': {iters} bags, {n_rows} linhas, {n_feats}/{p} features"
        )
        with ExecutorFactory.create(self.executor, self.n_jobs) as executor:
            models = executor.map(_fit_bag, args, desc=f"Bagging {self.next_learner.id}")

        return self._make_model(
            task,
            own,
            state={"n_rows": n_rows, "n_feats": n_feats},
            t0=t0,
            next_models=tuple(models),
            feature_subsets=tuple(subsets),
        )

    # ── predict ──────────────────────────────────────────────────────────

    def _check_model(self, model: Model) -> None:
        Learner._check_model(self, model)
        if not model.next_models or len(model.next_models) != len(model.feature_subsets):
            raise StateError(f"Modelo de bagging de '{self.id}' malformado")

    def _predict(self, model: Model, frame: pl.DataFrame, truth: np.ndarray | None) -> Prediction:
        desc = model.task_desc
        responses = [
            self.next_learner.predict(sub, frame.select(list(features))).response
            for sub, features in zip(model.next_models, model.feature_subsets)
        ]
        if desc.type == "classif":
            return self._vote(desc, responses, truth)
        matrix = np.column_stack(responses).astype(float)
        se = None
        if self.predict_type == "se":
            se = matrix.std(axis=1, ddof=1) if matrix.shape[1] > 1 else np.zeros(matrix.shape[0])
        return Prediction(desc, response=matrix.mean(axis=1), se=se, truth=truth)

    def _vote(self, desc, responses: list[np.ndarray], truth: np.ndarray | None) -> Prediction:
        levels = np.asarray(desc.class_levels, dtype=object)
        index = {level: j for j, level in enumerate(desc.class_levels)}
        n = len(responses[0])
        counts = np.zeros((n, len(levels)))
        rows = np.arange(n)
        for response in responses:
            codes = np.fromiter((index[v] for v in response), dtype=np.int64, count=n)
            counts[rows, codes] += 1
        # argmax returns the first maximum: ties resolve in class-level order
        response = levels[counts.argmax(axis=1)]
        prob = counts / len(responses) if self.predict_type == "prob" else None
        return Prediction(desc, response=response, prob=prob, truth=truth)


def make_bagging_wrapper(learner: Learner, **kwargs: Any) -> BaggingWrapper:
    """Functional constructor accepting the dotted parameter names (``bw.iters`` ...)."""
    mapping: Mapping[str, str] = {
        "bw.iters": "iters",
        "bw.replace": "replace",
        "bw.size": "size",
        "bw.feats": "feats",
    }
    return BaggingWrapper(learner, **{mapping.get(k, k): v for k, v in kwargs.items()})


__all__ = ["BaggingWrapper", "BaggingModel", "bagging_param_set", "make_bagging_wrapper"]
