"""
Helpers that walk a wrapper chain or a composite model.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING

from .errors import ConfigurationError, StateError
from .learner import Learner, Model

if TYPE_CHECKING:
    from mlwrap.tuning.result import TuneResult


def iter_chain(learner: Learner) -> Iterator[Learner]:
    """Yield the learner and every inner learner, outermost first."""
    seen: set[int] = set()
    current: Learner | None = learner
    while current is not None:
        if id(current) in seen:
            raise ConfigurationError(
                f"Ciclo detectado na cadeia de wrappers em '{current.id}'"
            )
        seen.add(id(current))
        yield current
        current = current.next_learner


def get_leaf_learner(learner: Learner) -> Learner:
    *_, leaf = iter_chain(learner)
    return leaf


def param_routes(learner: Learner) -> dict[str, int]:
    """
    Flat table mapping every parameter name in the chain to the depth of the
    layer that declares it (0 = outermost).
    """
    routes: dict[str, int] = {}
    for depth, layer in enumerate(iter_chain(learner)):
        for name in layer.par_set:
            if name in routes:
                raise ConfigurationError(
                    f"Parâmetro '{name}' declarado em mais de uma camada da cadeia"
                )
            routes[name] = depth
    return routes


def get_learner_model(model: Model, more_unwrap: bool = False) -> Model | list[Model]:
    """
    Inner model of a wrapper model. With `more_unwrap`, descend to the model
    fitted by the base learner. Bagging models yield the list of bagged models.
    """
    bagged = getattr(model, "next_models", None)
    if bagged:
        return [get_learner_model(m, True) for m in bagged] if more_unwrap else list(bagged)
    inner = getattr(model, "next_model", None)
    if inner is None:
        return model
    return get_learner_model(inner, more_unwrap) if more_unwrap else inner


def get_tune_result(model: Model) -> TuneResult:
    """Tuning result of the first tuning layer found in a composite model."""
    current: Model | None = model
    while current is not None:
        result = getattr(current, "tune_result", None)
        if result is not None:
            return result
        current = getattr(current, "next_model", None)
    raise StateError("Nenhum TuneWrapper encontrado no modelo")


__all__ = [
    "iter_chain",
    "get_leaf_learner",
    "param_routes",
    "get_learner_model",
    "get_tune_result",
]
