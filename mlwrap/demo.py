"""
Demo workflow: a weighted iris task, a bagged classification tree and a
tuning layer on top of it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np
import polars as pl
from sklearn.datasets import load_iris

from mlwrap.config import settings
from mlwrap.core.learner import Model, make_learner
from mlwrap.core.params import DiscreteParam, NumericParam, ParamSet
from mlwrap.core.prediction import Prediction
from mlwrap.core.resampling import ResampleDesc
from mlwrap.core.rng import Seed, as_generator
from mlwrap.core.task import Task, make_classif_task
from mlwrap.tuning.control import TuneControlRandom
from mlwrap.utils.logger import logger, timeit
from mlwrap.wrappers.bagging import BaggingWrapper
from mlwrap.wrappers.tuning import TuneWrapper

_FEATURES = ("Sepal.Length", "Sepal.Width", "Petal.Length", "Petal.Width")
_SPECIES = ("setosa", "versicolor", "virginica")


def make_iris_task(weighted: bool = True) -> Task:
    """Iris as a classification task; weights are 1, 2, 3 by species."""
    raw = load_iris()
    frame = pl.DataFrame(
        {name: raw.data[:, j] for j, name in enumerate(_FEATURES)}
    ).with_columns(pl.Series("Species", [_SPECIES[c] for c in raw.target]))
    weights = (raw.target + 1).astype(float) if weighted else None
    return make_classif_task("iris", frame, target="Species", weights=weights)


def build_tuned_bagged_tree(
    iters: int = 100,
    feats: float = 0.5,
    maxit: int = 5,
    folds: int | None = None,
    executor: str | None = None,
    n_jobs: int | None = None,
) -> TuneWrapper:
    """Tree -> bagging -> tuning over ``minsplit`` and ``bw.feats``."""
    tree = make_learner("classif.rpart")
    bagged = BaggingWrapper(tree, iters=iters, feats=feats)
    par_set = ParamSet(
        DiscreteParam("minsplit", values=(10, 20)),
        NumericParam("bw.feats", lower=0.25, upper=1.0),
    )
    return TuneWrapper(
        bagged,
        resampling=ResampleDesc("CV", iters=folds or settings.CV_FOLDS),
        par_set=par_set,
        control=TuneControlRandom(maxit=maxit),
        executor=executor,
        n_jobs=n_jobs,
    )


@dataclass(frozen=True)
class DemoResult:
    task: Task
    learner: TuneWrapper
    model: Model
    prediction: Prediction


@timeit
def run_demo(seed: Seed = None, **build_kwargs: Any) -> DemoResult:
    """Train the tuned bagged tree on iris and predict the training data."""
    rng: np.random.Generator = as_generator(seed)
    task = make_iris_task()
    learner = build_tuned_bagged_tree(**build_kwargs)
    logger.info(f"🌱 Demo: {learner.id} em {task!r}")
    model = learner.train(task, seed=rng)
    prediction = learner.predict(model, task)
    return DemoResult(task=task, learner=learner, model=model, prediction=prediction)


__all__ = ["make_iris_task", "build_tuned_bagged_tree", "run_demo", "DemoResult"]
