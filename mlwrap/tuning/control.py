"""
Search controls for the tuning wrapper.

A control is a reusable description of a search strategy. Each tuning run
asks it for a fresh `Proposer`: a finite, lazy sequence of parameter
assignments that cannot be restarted. Adaptive strategies receive the score
of every evaluated assignment through `Proposer.tell`.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np
import optuna
from optuna.distributions import (
    BaseDistribution,
    CategoricalDistribution,
    FloatDistribution,
    IntDistribution,
)
from optuna.samplers import TPESampler
from optuna.trial import TrialState

from mlwrap.core.errors import ConfigurationError
from mlwrap.core.params import (
    DiscreteParam,
    IntegerParam,
    LogicalParam,
    NumericParam,
    Param,
    ParamSet,
)
from mlwrap.core.rng import int_seed


# ══════════════════════════════════════════════════════════════════════════
# PROPOSERS
# ══════════════════════════════════════════════════════════════════════════


class Proposer(ABC):
    """One-shot stream of parameter assignments for a single tuning run."""

    def __init__(self, par_set: ParamSet, rng: np.random.Generator, minimize: bool = True):
        self.par_set = par_set
        self.rng = rng
        self.minimize = minimize
        self.n_proposed = 0
        self._done = False

    def propose(self) -> dict[str, Any] | None:
        """Next assignment, or ``None`` once the budget is exhausted."""
        if self._done:
            return None
        proposal = self._next()
        if proposal is None:
            self._done = True
            return None
        self.n_proposed += 1
        return proposal

    @abstractmethod
    def _next(self) -> dict[str, Any] | None: ...

    def tell(self, params: Mapping[str, Any], score: float | None) -> None:
        """Report the score of an assignment; ``None`` marks a failed trial."""

    @property
    def done(self) -> bool:
        return self._done

    def __iter__(self) -> Iterator[dict[str, Any]]:
        while (proposal := self.propose()) is not None:
            yield proposal


class _RandomProposer(Proposer):
    def __init__(self, par_set, rng, minimize=True, maxit: int = 100):
        super().__init__(par_set, rng, minimize)
        self.maxit = maxit

    def _next(self):
        if self.n_proposed >= self.maxit:
            return None
        return self.par_set.sample(self.rng)


class _SequenceProposer(Proposer):
    def __init__(self, par_set, rng, minimize=True, points: Sequence[dict[str, Any]] = ()):
        super().__init__(par_set, rng, minimize)
        self._points = iter(points)

    def _next(self):
        point = next(self._points, None)
        return dict(point) if point is not None else None


class _TPEProposer(Proposer):
    def __init__(self, par_set, rng, minimize=True, maxit: int = 100, n_startup_trials: int = 10):
        super().__init__(par_set, rng, minimize)
        self.maxit = maxit
        self._distributions = {k: _to_distribution(p) for k, p in par_set.items()}
        self._study = optuna.create_study(
            direction="minimize" if minimize else "maximize",
            sampler=TPESampler(seed=int_seed(rng), n_startup_trials=n_startup_trials),
        )
        self._pending: list[tuple[dict[str, Any], optuna.Trial]] = []

    def _next(self):
        if self.n_proposed >= self.maxit:
            return None
        trial = self._study.ask(self._distributions)
        params = dict(trial.params)
        self._pending.append((params, trial))
        return dict(params)

    def tell(self, params, score):
        for i, (asked, trial) in enumerate(self._pending):
            if asked == dict(params):
                del self._pending[i]
                if score is None or not math.isfinite(score):
                    self._study.tell(trial, state=TrialState.FAIL)
                else:
                    self._study.tell(trial, score)
                return


def _to_distribution(param: Param) -> BaseDistribution:
    if isinstance(param, IntegerParam):
        return IntDistribution(param.lower, param.upper)
    if isinstance(param, NumericParam):
        if not (math.isfinite(param.lower) and math.isfinite(param.upper)):
            raise ConfigurationError(f"'{param.id}' precisa de limites finitos para TPE")
        lower = float(np.nextafter(param.lower, param.upper)) if param.lower_open else param.lower
        return FloatDistribution(lower, param.upper)
    if isinstance(param, LogicalParam):
        return CategoricalDistribution([False, True])
    if isinstance(param, DiscreteParam):
        return CategoricalDistribution(list(param.values))
    raise ConfigurationError(f"Tipo de parâmetro não suportado por TPE: {type(param).__name__}")


# ══════════════════════════════════════════════════════════════════════════
# CONTROLS
# ══════════════════════════════════════════════════════════════════════════


class TuneControl(ABC):
    @abstractmethod
    def make_proposer(
        self, par_set: ParamSet, rng: np.random.Generator, minimize: bool = True
    ) -> Proposer: ...


@dataclass(frozen=True)
class TuneControlRandom(TuneControl):
    """Random search: `maxit` independent draws from the parameter domains."""

    maxit: int = 100

    def __post_init__(self):
        if not isinstance(self.maxit, int) or self.maxit < 1:
            raise ConfigurationError("maxit deve ser um inteiro >= 1")

    def make_proposer(self, par_set, rng, minimize=True):
        return _RandomProposer(par_set, rng, minimize, maxit=self.maxit)


@dataclass(frozen=True)
class TuneControlGrid(TuneControl):
    """Exhaustive search over the Cartesian product of per-parameter grids."""

    resolution: int = 10

    def __post_init__(self):
        if not isinstance(self.resolution, int) or self.resolution < 1:
            raise ConfigurationError("resolution deve ser um inteiro >= 1")

    def make_proposer(self, par_set, rng, minimize=True):
        return _SequenceProposer(par_set, rng, minimize, points=par_set.grid(self.resolution))


@dataclass(frozen=True)
class TuneControlDesign(TuneControl):
    """Evaluate a user supplied list of assignments, in order."""

    design: tuple[Mapping[str, Any], ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "design", tuple(dict(d) for d in self.design))
        if not self.design:
            raise ConfigurationError("design vazio")

    def make_proposer(self, par_set, rng, minimize=True):
        return _SequenceProposer(par_set, rng, minimize, points=self.design)


@dataclass(frozen=True)
class TuneControlTPE(TuneControl):
    """Tree-structured Parzen estimator search through optuna's ask/tell interface."""

    maxit: int = 100
    n_startup_trials: int = 10

    def __post_init__(self):
        if not isinstance(self.maxit, int) or self.maxit < 1:
            raise ConfigurationError("maxit deve ser um inteiro >= 1")

    def make_proposer(self, par_set, rng, minimize=True):
        return _TPEProposer(
            par_set, rng, minimize, maxit=self.maxit, n_startup_trials=self.n_startup_trials
        )


__all__ = [
    "Proposer",
    "TuneControl",
    "TuneControlRandom",
    "TuneControlGrid",
    "TuneControlDesign",
    "TuneControlTPE",
]
