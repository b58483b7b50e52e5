"""
Base Wrapper - base class for learners that wrap exactly one inner learner.

This module contains:
- WrapperModel (composite model: own fitted state + the inner model)
- BaseWrapper (abstract base class)

A wrapper intercepts `train`/`predict`, runs its own logic with the
parameters it declares and delegates everything else to the learner it wraps.
The inner learner is never aware it is wrapped.
"""

from __future__ import annotations

import copy
import dataclasses
import time
from abc import abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import numpy as np
import polars as pl

from mlwrap.core.capabilities import Capability
from mlwrap.core.chain import iter_chain, param_routes
from mlwrap.core.errors import ConfigurationError, StateError
from mlwrap.core.learner import Learner, Model, PredictType
from mlwrap.core.params import ParamSet
from mlwrap.core.prediction import Prediction
from mlwrap.core.task import Task
from mlwrap.utils.logger import logger


# ══════════════════════════════════════════════════════════════════════════
# WRAPPER MODEL
# ══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, eq=False)
class WrapperModel(Model):
    """Model of a wrapper: its own fitted state plus the inner model it delegated to."""

    next_model: Model | None = None


# ══════════════════════════════════════════════════════════════════════════
# BASE WRAPPER CLASS
# ══════════════════════════════════════════════════════════════════════════


class BaseWrapper(Learner):
    """Abstract base class for all wrappers."""

    model_class: type[Model] = WrapperModel
    suffix: str = "wrapped"

    def __init__(
        self,
        next_learner: Learner,
        id: str | None = None,
        par_set: ParamSet | None = None,
        par_vals: Mapping[str, Any] | None = None,
        predict_type: PredictType | None = None,
    ):
        if not isinstance(next_learner, Learner):
            raise ConfigurationError(
                f"Wrapper precisa de um Learner interno, recebeu {type(next_learner).__name__}"
            )
        list(iter_chain(next_learner))  # rejects an already cyclic inner chain
        self._next_learner: Learner = next_learner
        super().__init__(
            id=id or f"{next_learner.id}.{self.suffix}",
            type=next_learner.type,
            par_set=par_set,
            par_vals=par_vals,
            predict_type=predict_type or next_learner.predict_type,
        )
        self._routes: dict[str, int] = param_routes(self)

    # ── chain ────────────────────────────────────────────────────────────

    @property
    def next_learner(self) -> Learner:
        return self._next_learner

    def set_next_learner(self, learner: Learner) -> None:
        """
        Replace the wrapped learner in place.

        Raises:
            ConfigurationError: the new chain would contain this wrapper (a
                cycle), has a different task type or re-declares a parameter.
        """
        if not isinstance(learner, Learner):
            raise ConfigurationError(f"Esperado Learner, recebeu {type(learner).__name__}")
        if any(layer is self for layer in iter_chain(learner)):
            raise ConfigurationError(
                f"'{self.id}' não pode envolver a si mesmo (ciclo na cadeia)"
            )
        if learner.type != self.type:
            raise ConfigurationError(
                f"Learner interno do tipo {learner.type}, wrapper é {self.type}"
            )
        previous = self._next_learner
        self._next_learner = learner
        try:
            self._routes = param_routes(self)
        except ConfigurationError:
            self._next_learner = previous
            raise

    @property
    def routes(self) -> dict[str, int]:
        """Parameter name -> depth of the declaring layer, resolved at construction."""
        return dict(self._routes)

    # ── introspection ────────────────────────────────────────────────────

    def capabilities(self) -> frozenset[Capability]:
        return self._wrap_capabilities(self.next_learner.capabilities())

    def _wrap_capabilities(self, inner: frozenset[Capability]) -> frozenset[Capability]:
        return inner

    def get_param_set(self) -> ParamSet:
        return self.par_set.union(self.next_learner.get_param_set())

    def get_hyperpars(self) -> dict[str, Any]:
        return {**self.next_learner.get_hyperpars(), **self.par_vals}

    def set_hyperpars(self, **values: Any) -> Learner:
        own, delegated = self._split(values)
        self.par_set.validate(own)
        new = copy.copy(self)
        new.par_vals = {**self.par_vals, **own}
        if delegated:
            new._next_learner = self.next_learner.set_hyperpars(**delegated)
        return new

    def set_predict_type(self, predict_type: PredictType) -> Learner:
        self._check_predict_type(predict_type)
        new = copy.copy(self)
        new._next_learner = self.next_learner.set_predict_type(predict_type)
        new.predict_type = predict_type
        return new

    def _split(self, values: Mapping[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
        """Route names to this layer or to the inner chain; unknown names are rejected."""
        unknown = [k for k in values if k not in self._routes]
        if unknown:
            raise ConfigurationError(
                f"Parâmetros {unknown} não pertencem a nenhuma camada de '{self.id}'. "
                f"Disponíveis: {sorted(self._routes)}"
            )
        own = {k: v for k, v in values.items() if self._routes[k] == 0}
        delegated = {k: v for k, v in values.items() if self._routes[k] > 0}
        return own, delegated

    # ── train ────────────────────────────────────────────────────────────

    def _check_train_entry(self, task: Task, params: dict[str, Any]) -> None:
        self._split(params)
        super()._check_train_entry(task, params)

    def _train(self, task: Task, params: dict[str, Any], rng: np.random.Generator) -> Model:
        own, delegated = self._split(params)
        own_vals = {**self.par_set.defaults(), **self.par_vals, **own}
        return self._train_wrapper(task, own_vals, delegated, rng)

    @abstractmethod
    def _train_wrapper(
        self,
        task: Task,
        own: dict[str, Any],
        delegated: dict[str, Any],
        rng: np.random.Generator,
    ) -> Model:
        """Run the wrapper's own logic and delegate to the inner learner."""

    def _train_next(self, task: Task, delegated: dict[str, Any], rng: np.random.Generator) -> Model:
        return self.next_learner.train(task, delegated, seed=rng)

    def _make_model(
        self,
        task: Task,
        own: dict[str, Any],
        state: Any,
        t0: float,
        **extra: Any,
    ) -> Model:
        model = self.model_class(
            learner=self,
            task_desc=task.desc,
            features=tuple(task.feature_names),
            params=dict(own),
            state=state,
            train_time=time.perf_counter() - t0,
            n_train=task.n_obs,
            **extra,
        )
        logger.debug(f"'{self.id}' treinado em {model.train_time:.3f}s")
        return model

    # ── predict ──────────────────────────────────────────────────────────

    def _check_model(self, model: Model) -> None:
        super()._check_model(model)
        if getattr(model, "next_model", None) is None:
            raise StateError(f"Modelo de '{self.id}' sem modelo interno")

    def _predict(self, model: Model, frame: pl.DataFrame, truth: np.ndarray | None) -> Prediction:
        pred = self.next_learner.predict(model.next_model, self._transform_newdata(model, frame))
        return dataclasses.replace(pred, task_desc=model.task_desc, truth=truth)

    def _transform_newdata(self, model: Model, frame: pl.DataFrame) -> pl.DataFrame:
        return frame

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r}, next={self.next_learner!r})"


__all__ = ["BaseWrapper", "WrapperModel"]
