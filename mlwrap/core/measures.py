"""
Performance measures with an explicit optimization direction.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable

import numpy as np
from sklearn.metrics import (
    accuracy_score,
    balanced_accuracy_score,
    log_loss,
    mean_absolute_error,
    mean_squared_error,
)

from .errors import ConfigurationError
from .prediction import Prediction


@dataclass(frozen=True)
class Measure:
    """
    A performance measure.

    `minimize` states the optimization direction; `best` and `worst` are the
    attainable extremes and `worst` doubles as the default penalty for failed
    tuning trials.
    """

    id: str
    fun: Callable[[Prediction], float]
    minimize: bool
    best: float
    worst: float
    task_types: frozenset[str]
    needs_prob: bool = False
    name: str = ""

    def __call__(self, pred: Prediction) -> float:
        if pred.truth is None:
            raise ConfigurationError(f"Medida '{self.id}' exige o alvo verdadeiro na predição")
        if pred.task_desc.type not in self.task_types:
            raise ConfigurationError(
                f"Medida '{self.id}' não se aplica a tasks {pred.task_desc.type}"
            )
        if self.needs_prob and pred.prob is None:
            raise ConfigurationError(f"Medida '{self.id}' exige predict_type='prob'")
        return float(self.fun(pred))

    def better(self, a: float, b: float) -> bool:
        """True if score `a` is strictly better than `b`."""
        if math.isnan(a):
            return False
        if math.isnan(b):
            return True
        return a < b if self.minimize else a > b

    def __repr__(self) -> str:
        direction = "min" if self.minimize else "max"
        return f"Measure({self.id}, {direction})"


def _mmce(pred: Prediction) -> float:
    return 1.0 - accuracy_score(pred.truth, pred.response)


def _acc(pred: Prediction) -> float:
    return accuracy_score(pred.truth, pred.response)


def _ber(pred: Prediction) -> float:
    return 1.0 - balanced_accuracy_score(pred.truth, pred.response)


def _logloss(pred: Prediction) -> float:
    return log_loss(pred.truth, pred.prob, labels=list(pred.class_levels))


def _mse(pred: Prediction) -> float:
    return mean_squared_error(pred.truth, pred.response)


def _rmse(pred: Prediction) -> float:
    return float(np.sqrt(mean_squared_error(pred.truth, pred.response)))


def _mae(pred: Prediction) -> float:
    return mean_absolute_error(pred.truth, pred.response)


_CLASSIF = frozenset({"classif"})
_REGR = frozenset({"regr"})

mmce = Measure("mmce", _mmce, True, 0.0, 1.0, _CLASSIF, name="Mean misclassification error")
acc = Measure("acc", _acc, False, 1.0, 0.0, _CLASSIF, name="Accuracy")
ber = Measure("ber", _ber, True, 0.0, 1.0, _CLASSIF, name="Balanced error rate")
logloss = Measure("logloss", _logloss, True, 0.0, math.inf, _CLASSIF, needs_prob=True, name="Logarithmic loss")
mse = Measure("mse", _mse, True, 0.0, math.inf, _REGR, name="Mean of squared errors")
rmse = Measure("rmse", _rmse, True, 0.0, math.inf, _REGR, name="Root mean squared error")
mae = Measure("mae", _mae, True, 0.0, math.inf, _REGR, name="Mean of absolute errors")

MEASURES: dict[str, Measure] = {m.id: m for m in (mmce, acc, ber, logloss, mse, rmse, mae)}


def get_measure(id: str) -> Measure:
    try:
        return MEASURES[id]
    except KeyError:
        raise ConfigurationError(
            f"Medida desconhecida: {id!r}. Disponíveis: {sorted(MEASURES)}"
        ) from None


def default_measure(task_type: str) -> Measure:
    return mmce if task_type == "classif" else mse


__all__ = [
    "Measure",
    "MEASURES",
    "get_measure",
    "default_measure",
    "mmce",
    "acc",
    "ber",
    "logloss",
    "mse",
    "rmse",
    "mae",
]
