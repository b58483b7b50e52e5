"""
Learner - the train/predict contract shared by base learners and wrappers.

This module contains:
- Model (the trained artifact returned by `Learner.train`)
- Learner (abstract base class)
- SklearnLearner (base learner adapting a scikit-learn estimator)
- make_learner / list_learners (registry of the built-in base learners)
"""

from __future__ import annotations

import copy
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal

import numpy as np
import polars as pl
from sklearn.base import BaseEstimator
from sklearn.linear_model import LinearRegression, LogisticRegression
from sklearn.neighbors import KNeighborsClassifier
from sklearn.tree import DecisionTreeClassifier, DecisionTreeRegressor

from mlwrap.utils.logger import logger

from .capabilities import Capability
from .errors import CapabilityError, ConfigurationError, StateError
from .params import IntegerParam, NumericParam, ParamSet
from .prediction import Prediction
from .rng import Seed, as_generator, int_seed
from .task import Task, TaskDesc, TaskType

PredictType = Literal["response", "prob", "se"]


# ══════════════════════════════════════════════════════════════════════════
# MODEL
# ══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, eq=False)
class Model:
    """
    Trained artifact produced by `Learner.train`.

    A model is never mutated after creation; it is consumed only by the
    `predict` of a learner with the same id and structure.
    """

    learner: Learner
    task_desc: TaskDesc
    features: tuple[str, ...]
    params: dict[str, Any]
    state: Any
    train_time: float
    n_train: int

    @property
    def learner_id(self) -> str:
        return self.learner.id

    def predict(self, newdata: Task | pl.DataFrame) -> Prediction:
        return self.learner.predict(self, newdata)


# ══════════════════════════════════════════════════════════════════════════
# LEARNER BASE CLASS
# ══════════════════════════════════════════════════════════════════════════


class Learner(ABC):
    """Abstract base class for base learners and wrappers."""

    model_class: type[Model] = Model

    def __init__(
        self,
        id: str,
        type: TaskType,
        par_set: ParamSet | None = None,
        par_vals: Mapping[str, Any] | None = None,
        capabilities: frozenset[Capability] | set[Capability] = frozenset(),
        predict_type: PredictType = "response",
    ):
        self.id = id
        self.type = type
        self.par_set = par_set if par_set is not None else ParamSet()
        self.par_vals: dict[str, Any] = self.par_set.validate(par_vals or {})
        self._capabilities = frozenset(capabilities)
        self.predict_type: PredictType = "response"
        if predict_type != "response":
            self._check_predict_type(predict_type)
            self.predict_type = predict_type

    @property
    def next_learner(self) -> Learner | None:
        return None

    # ── introspection ────────────────────────────────────────────────────

    def capabilities(self) -> frozenset[Capability]:
        return self._capabilities

    def get_param_set(self) -> ParamSet:
        """Effective ParamSet: every parameter declared at this point of the chain or below."""
        return self.par_set

    def get_hyperpars(self) -> dict[str, Any]:
        """Explicitly set hyperparameter values, across the whole chain."""
        return dict(self.par_vals)

    def set_hyperpars(self, **values: Any) -> Learner:
        """Return a copy with `values` set; names are validated against the own ParamSet."""
        self.par_set.validate(values)
        new = copy.copy(self)
        new.par_vals = {**self.par_vals, **values}
        return new

    def set_predict_type(self, predict_type: PredictType) -> Learner:
        self._check_predict_type(predict_type)
        new = copy.copy(self)
        new.predict_type = predict_type
        return new

    def _check_predict_type(self, predict_type: str) -> None:
        if predict_type == "response":
            return
        if predict_type == "prob" and (
            self.type != "classif" or Capability.PROB not in self.capabilities()
        ):
            raise CapabilityError(self.id, {Capability.PROB})
        if predict_type == "se" and (
            self.type != "regr" or Capability.SE not in self.capabilities()
        ):
            raise CapabilityError(self.id, {Capability.SE})
        if predict_type not in ("prob", "se"):
            raise ConfigurationError(f"predict_type inválido: {predict_type!r}")

    # ── train ────────────────────────────────────────────────────────────

    def train(
        self,
        task: Task,
        params: Mapping[str, Any] | None = None,
        *,
        seed: Seed = None,
    ) -> Model:
        """
        Fit this learner (and everything it wraps) on `task`.

        Args:
            task: The task to train on.
            params: Hyperparameter values overriding the ones set on the chain.
                Names are resolved against the effective ParamSet.
            seed: Seed or generator threaded through every stochastic step.

        Returns:
            A fresh Model; no partial model is returned on error.

        Raises:
            ConfigurationError: unknown parameter name or out-of-domain value.
            CapabilityError: the task needs something this learner lacks.
        """
        params = dict(params or {})
        self._check_train_entry(task, params)
        rng = as_generator(seed)
        with logger.contextualize(learner=self.id):
            logger.debug(f"Treinando '{self.id}' em {task!r} com {params or 'defaults'}")
            return self._train(task, params, rng)

    def _check_train_entry(self, task: Task, params: dict[str, Any]) -> None:
        self.get_param_set().validate(params)
        if task.type != self.type:
            raise ConfigurationError(
                f"Learner '{self.id}' é do tipo {self.type}, task '{task.id}' é {task.type}"
            )
        missing = task.requirements() - self.capabilities()
        if missing:
            raise CapabilityError(self.id, missing)

    @abstractmethod
    def _train(self, task: Task, params: dict[str, Any], rng: np.random.Generator) -> Model: ...

    # ── predict ──────────────────────────────────────────────────────────

    def predict(self, model: Model, newdata: Task | pl.DataFrame) -> Prediction:
        """Predict `newdata` with a model trained by this learner."""
        self._check_model(model)
        frame, truth = _split_newdata(model, newdata)
        with logger.contextualize(learner=self.id):
            return self._predict(model, frame, truth)

    def _check_model(self, model: Model) -> None:
        if not isinstance(model, Model) or type(model) is not self.model_class:
            raise StateError(
                f"'{self.id}' espera {self.model_class.__name__}, recebeu {type(model).__name__}"
            )
        if model.learner_id != self.id:
            raise StateError(
                f"Modelo treinado por '{model.learner_id}' usado em '{self.id}'"
            )

    @abstractmethod
    def _predict(self, model: Model, frame: pl.DataFrame, truth: np.ndarray | None) -> Prediction: ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r}, type={self.type!r}, predict_type={self.predict_type!r})"


def _split_newdata(model: Model, newdata: Task | pl.DataFrame) -> tuple[pl.DataFrame, np.ndarray | None]:
    """Select the model's feature columns and, when present, the target column."""
    frame = newdata.data if isinstance(newdata, Task) else newdata
    if not isinstance(frame, pl.DataFrame):
        raise ConfigurationError(f"newdata deve ser Task ou polars.DataFrame, recebeu {type(newdata).__name__}")
    missing = [f for f in model.features if f not in frame.columns]
    if missing:
        raise ConfigurationError(f"newdata sem as features {missing}")
    target = model.task_desc.target
    truth = frame[target].to_numpy() if target in frame.columns else None
    return frame.select(list(model.features)), truth


# ══════════════════════════════════════════════════════════════════════════
# SCIKIT-LEARN BASE LEARNER
# ══════════════════════════════════════════════════════════════════════════


class SklearnLearner(Learner):
    """
    Base learner backed by a scikit-learn estimator class.

    Hyperparameters are declared under their own names and translated through
    `param_map` into estimator keyword arguments; `fixed` kwargs are always
    passed. Factor features are not encoded here; wrap the learner or encode
    beforehand.
    """

    def __init__(
        self,
        id: str,
        type: TaskType,
        estimator: type[BaseEstimator],
        par_set: ParamSet | None = None,
        param_map: Mapping[str, str] | None = None,
        capabilities: frozenset[Capability] | set[Capability] = frozenset(),
        fixed: Mapping[str, Any] | None = None,
        par_vals: Mapping[str, Any] | None = None,
        predict_type: PredictType = "response",
    ):
        self.estimator = estimator
        self.param_map = dict(param_map or {})
        self.fixed = dict(fixed or {})
        super().__init__(
            id=id,
            type=type,
            par_set=par_set,
            par_vals=par_vals,
            capabilities=capabilities,
            predict_type=predict_type,
        )

    def make_estimator(self, params: Mapping[str, Any], rng: np.random.Generator) -> BaseEstimator:
        values = {**self.par_set.defaults(), **self.par_vals, **params}
        kwargs = {self.param_map.get(k, k): v for k, v in values.items()}
        kwargs.update(self.fixed)
        estimator = self.estimator(**kwargs)
        if "random_state" in estimator.get_params():
            estimator.set_params(random_state=int_seed(rng))
        return estimator

    def _train(self, task: Task, params: dict[str, Any], rng: np.random.Generator) -> Model:
        t0 = time.perf_counter()
        estimator = self.make_estimator(params, rng)
        x, y = task.x(), task.y()
        if task.weights is not None:
            estimator.fit(x, y, sample_weight=np.asarray(task.weights))
        else:
            estimator.fit(x, y)
        return Model(
            learner=self,
            task_desc=task.desc,
            features=tuple(task.feature_names),
            params={**self.par_vals, **params},
            state=estimator,
            train_time=time.perf_counter() - t0,
            n_train=task.n_obs,
        )

    def _predict(self, model: Model, frame: pl.DataFrame, truth: np.ndarray | None) -> Prediction:
        estimator = model.state
        x = frame.cast(pl.Float64).to_numpy()
        desc = model.task_desc
        if desc.type == "regr":
            return Prediction(desc, response=estimator.predict(x).astype(float), truth=truth)
        prob = None
        if self.predict_type == "prob":
            prob = _align_proba(estimator.predict_proba(x), estimator.classes_, desc.class_levels)
            response = np.asarray(desc.class_levels, dtype=object)[prob.argmax(axis=1)]
        else:
            response = np.asarray(estimator.predict(x), dtype=object)
        return Prediction(desc, response=response, prob=prob, truth=truth)


def _align_proba(proba: np.ndarray, seen: np.ndarray, levels: tuple[Any, ...]) -> np.ndarray:
    """Expand estimator probabilities to every task class; unseen classes get 0."""
    index = {level: j for j, level in enumerate(levels)}
    out = np.zeros((proba.shape[0], len(levels)))
    for j, cls in enumerate(seen):
        out[:, index[cls]] = proba[:, j]
    return out


# ══════════════════════════════════════════════════════════════════════════
# REGISTRY
# ══════════════════════════════════════════════════════════════════════════

_CLASSIF = {Capability.TWOCLASS, Capability.MULTICLASS}

_TREE_PARAMS = (
    IntegerParam("minsplit", default=20, lower=2, upper=10_000),
    IntegerParam("minbucket", default=7, lower=1, upper=10_000),
    IntegerParam("maxdepth", default=30, lower=1, upper=30),
    NumericParam("cp", default=0.0, lower=0.0, upper=1.0),
)
_TREE_MAP = {
    "minsplit": "min_samples_split",
    "minbucket": "min_samples_leaf",
    "maxdepth": "max_depth",
    "cp": "ccp_alpha",
}

_REGISTRY: dict[str, dict[str, Any]] = {
    "classif.rpart": dict(
        type="classif",
        estimator=DecisionTreeClassifier,
        par_set=ParamSet(*_TREE_PARAMS),
        param_map=_TREE_MAP,
        capabilities={Capability.NUMERICS, Capability.WEIGHTS, Capability.PROB, *_CLASSIF},
    ),
    "regr.rpart": dict(
        type="regr",
        estimator=DecisionTreeRegressor,
        par_set=ParamSet(*_TREE_PARAMS),
        param_map=_TREE_MAP,
        capabilities={Capability.NUMERICS, Capability.WEIGHTS},
    ),
    "classif.logreg": dict(
        type="classif",
        estimator=LogisticRegression,
        par_set=ParamSet(
            NumericParam("cost", default=1.0, lower=0.0, upper=1e6, lower_open=True),
            IntegerParam("maxit", default=1000, lower=1, upper=100_000, tunable=False),
        ),
        param_map={"cost": "C", "maxit": "max_iter"},
        capabilities={Capability.NUMERICS, Capability.WEIGHTS, Capability.PROB, *_CLASSIF},
    ),
    "classif.knn": dict(
        type="classif",
        estimator=KNeighborsClassifier,
        par_set=ParamSet(IntegerParam("k", default=7, lower=1, upper=1_000)),
        param_map={"k": "n_neighbors"},
        capabilities={Capability.NUMERICS, Capability.PROB, *_CLASSIF},
    ),
    "regr.lm": dict(
        type="regr",
        estimator=LinearRegression,
        par_set=ParamSet(),
        capabilities={Capability.NUMERICS, Capability.WEIGHTS},
    ),
}


def list_learners() -> list[str]:
    return sorted(_REGISTRY)


def make_learner(name: str, predict_type: PredictType = "response", **par_vals: Any) -> SklearnLearner:
    """
    Instantiate a built-in base learner.

    Args:
        name: Registry key such as ``"classif.rpart"``.
        predict_type: ``"response"`` or ``"prob"`` for classifiers.
        **par_vals: Hyperparameter values, validated against the learner's ParamSet.
    """
    try:
        spec = _REGISTRY[name]
    except KeyError:
        raise ConfigurationError(
            f"Learner desconhecido: {name!r}. Disponíveis: {list_learners()}"
        ) from None
    return SklearnLearner(id=name, predict_type=predict_type, par_vals=par_vals, **spec)


__all__ = [
    "Model",
    "Learner",
    "SklearnLearner",
    "PredictType",
    "make_learner",
    "list_learners",
]
