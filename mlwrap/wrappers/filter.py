"""
Filter Wrapper - univariate feature selection in front of the wrapped learner.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Any

import numpy as np
import polars as pl
from sklearn.feature_selection import (
    f_classif,
    f_regression,
    mutual_info_classif,
    mutual_info_regression,
)

from mlwrap.core.capabilities import Capability
from mlwrap.core.learner import Learner, Model
from mlwrap.core.params import DiscreteParam, IntegerParam, NumericParam, ParamSet
from mlwrap.core.rng import int_seed
from mlwrap.core.task import Task
from mlwrap.utils.logger import logger

from .base_wrapper import BaseWrapper, WrapperModel

FILTER_METHODS = ("anova.f", "variance", "mutual.info")


@dataclass(frozen=True, eq=False)
class FilterModel(WrapperModel):
    pass


def filter_param_set() -> ParamSet:
    return ParamSet(
        DiscreteParam("fw.method", default="anova.f", values=FILTER_METHODS),
        NumericParam("fw.perc", default=1.0, lower=0.0, upper=1.0),
        IntegerParam("fw.abs", lower=0, upper=1_000_000, special_vals=(None,)),
    )


def score_features(task: Task, method: str, rng: np.random.Generator) -> np.ndarray:
    """Higher is better; undefined scores (constant columns) become 0."""
    x, y = task.x(), task.y()
    if method == "variance":
        scores = np.var(x, axis=0)
    elif method == "anova.f":
        fun = f_classif if task.type == "classif" else f_regression
        scores, _ = fun(x, y)
    else:
        fun = mutual_info_classif if task.type == "classif" else mutual_info_regression
        scores = fun(x, y, random_state=int_seed(rng))
    return np.nan_to_num(np.asarray(scores, dtype=float), nan=0.0, posinf=np.finfo(float).max)


def select_features(names: list[str], scores: np.ndarray, perc: float, abs_n: int | None) -> tuple[str, ...]:
    """Top features by score, at least one; ties keep column order, output keeps column order."""
    n_keep = abs_n if abs_n is not None else math.ceil(perc * len(names))
    n_keep = max(1, min(len(names), n_keep))
    order = np.argsort(-scores, kind="stable")[:n_keep]
    return tuple(names[j] for j in sorted(order))


class FilterWrapper(BaseWrapper):
    """
    Feature filter wrapper.

    Own parameters:
        fw.method: scoring method (anova.f, variance, mutual.info).
        fw.perc: fraction of features to keep.
        fw.abs: absolute number of features to keep; overrides fw.perc.
    """

    model_class = FilterModel
    suffix = "filtered"

    def __init__(
        self,
        learner: Learner,
        method: str | None = None,
        perc: float | None = None,
        abs: int | None = None,
        id: str | None = None,
    ):
        par_vals: dict[str, Any] = {}
        for name, value in (("fw.method", method), ("fw.perc", perc), ("fw.abs", abs)):
            if value is not None:
                par_vals[name] = value
        super().__init__(learner, id=id, par_set=filter_param_set(), par_vals=par_vals)

    def _wrap_capabilities(self, inner: frozenset[Capability]) -> frozenset[Capability]:
        # scores are computed on the raw matrix
        return inner - {Capability.MISSINGS, Capability.FACTORS}

    def _train_wrapper(
        self,
        task: Task,
        own: dict[str, Any],
        delegated: dict[str, Any],
        rng: np.random.Generator,
    ) -> Model:
        t0 = time.perf_counter()
        names = task.feature_names
        scores = score_features(task, own["fw.method"], rng)
        kept = select_features(names, scores, own["fw.perc"], own.get("fw.abs"))
        logger.debug(f"Filtro {own['fw.method']} em '{task.id}': {len(kept)}/{len(names)} features")
        next_model = self._train_next(task.subset(features=list(kept)), delegated, rng)
        return self._make_model(
            task,
            own,
            state={"features": kept, "scores": dict(zip(names, scores.tolist()))},
            t0=t0,
            next_model=next_model,
        )

    def _transform_newdata(self, model: Model, frame: pl.DataFrame) -> pl.DataFrame:
        return frame.select(list(model.state["features"]))


__all__ = [
    "FilterWrapper",
    "FilterModel",
    "FILTER_METHODS",
    "filter_param_set",
    "score_features",
    "select_features",
]
