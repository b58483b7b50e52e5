"""
Imputation Wrapper - fills missing feature values before delegating.

Fill values are learned on the training task and stored in the model, so the
same values are used at prediction time.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

import numpy as np
import polars as pl

from mlwrap.core.capabilities import Capability
from mlwrap.core.learner import Learner, Model
from mlwrap.core.params import DiscreteParam, NumericParam, ParamSet
from mlwrap.core.task import Task, _is_factor
from mlwrap.utils.logger import logger

from .base_wrapper import BaseWrapper, WrapperModel

IMPUTE_METHODS = ("mean", "median", "min", "max", "constant")


@dataclass(frozen=True, eq=False)
class ImputeModel(WrapperModel):
    pass


def impute_param_set() -> ParamSet:
    return ParamSet(
        DiscreteParam("imp.method", default="median", values=IMPUTE_METHODS),
        NumericParam("imp.const", default=0.0, lower=-1e12, upper=1e12, tunable=False),
    )


def learn_fill_values(frame: pl.DataFrame, method: str, const: float) -> dict[str, Any]:
    """One fill value per column: the column statistic for numerics, the mode for factors."""
    fills: dict[str, Any] = {}
    for name in frame.columns:
        col = frame[name]
        if _is_factor(col.dtype):
            counts = col.drop_nulls().value_counts(sort=True)
            fills[name] = counts[name][0] if counts.height else None
            continue
        values = col.cast(pl.Float64).fill_nan(None).drop_nulls()
        if method == "constant" or values.len() == 0:
            fills[name] = const
        else:
            fills[name] = float(getattr(values, method)())
    return fills


def apply_fill_values(frame: pl.DataFrame, fills: dict[str, Any]) -> pl.DataFrame:
    exprs = []
    for name in frame.columns:
        value = fills.get(name)
        if value is None:
            continue
        col = pl.col(name)
        if frame[name].dtype.is_float():
            col = col.fill_nan(None)
        elif frame[name].dtype.is_integer():
            col = col.cast(pl.Float64)
        exprs.append(col.fill_null(value).alias(name))
    return frame.with_columns(exprs) if exprs else frame


class ImputeWrapper(BaseWrapper):
    """
    Imputation wrapper.

    Own parameters:
        imp.method: statistic used for numeric features (mean, median, min, max, constant).
        imp.const: value used by ``constant`` and for all-missing columns.
    """

    model_class = ImputeModel
    suffix = "imputed"

    def __init__(
        self,
        learner: Learner,
        method: str | None = None,
        const: float | None = None,
        id: str | None = None,
    ):
        par_vals: dict[str, Any] = {}
        if method is not None:
            par_vals["imp.method"] = method
        if const is not None:
            par_vals["imp.const"] = const
        super().__init__(learner, id=id, par_set=impute_param_set(), par_vals=par_vals)

    def _wrap_capabilities(self, inner: frozenset[Capability]) -> frozenset[Capability]:
        return inner | {Capability.MISSINGS}

    def _train_wrapper(
        self,
        task: Task,
        own: dict[str, Any],
        delegated: dict[str, Any],
        rng: np.random.Generator,
    ) -> Model:
        t0 = time.perf_counter()
        features = task.features()
        fills = learn_fill_values(features, own["imp.method"], own["imp.const"])
        filled = task.with_features(apply_fill_values(features, fills))
        n_missing = sum(features[c].null_count() for c in features.columns)
        logger.debug(f"Imputação '{own['imp.method']}' em '{task.id}': {n_missing} nulos preenchidos")
        next_model = self._train_next(filled, delegated, rng)
        return self._make_model(task, own, state={"fills": fills}, t0=t0, next_model=next_model)

    def _transform_newdata(self, model: Model, frame: pl.DataFrame) -> pl.DataFrame:
        return apply_fill_values(frame, model.state["fills"])


__all__ = [
    "ImputeWrapper",
    "ImputeModel",
    "IMPUTE_METHODS",
    "impute_param_set",
    "learn_fill_values",
    "apply_fill_values",
]
