"""
Tuning Wrapper - selects hyperparameters of the wrapped chain by empirical search.

Each trial configures the full inner chain with one proposed assignment and
estimates its performance by resampling. Trial failures (including timeouts)
are isolated: they are recorded with an imputed score and the search goes on,
unless the failure policy is ``raise``. After the budget is spent the inner
chain is retrained once on the whole task with the best assignment.
"""

from __future__ import annotations

import math
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal

import numpy as np

from mlwrap.config import settings
from mlwrap.core.errors import ConfigurationError, TrialFailure, TuningError
from mlwrap.core.learner import Learner, Model
from mlwrap.core.measures import Measure, default_measure
from mlwrap.core.params import ParamSet
from mlwrap.core.resampling import (
    ResampleDesc,
    ResampleInstance,
    aggregated_score,
    make_resample_instance,
    resample,
)
from mlwrap.core.rng import spawn
from mlwrap.core.task import Task
from mlwrap.tuning.control import TuneControl
from mlwrap.tuning.result import OptPath, TrialRecord, TuneResult
from mlwrap.utils.concurrency import ExecutorFactory, run_isolated
from mlwrap.utils.logger import logger

from .base_wrapper import BaseWrapper, WrapperModel


@dataclass(frozen=True, eq=False)
class TuneModel(WrapperModel):
    tune_result: TuneResult | None = None


def _evaluate_trial(
    learner: Learner,
    task: Task,
    resampling: ResampleInstance,
    measure: Measure,
    params: dict[str, Any],
    rng: np.random.Generator,
    aggregation: str,
) -> float:
    result = resample(
        learner, task, resampling, measure, params, seed=rng, aggregation=aggregation
    )
    score = aggregated_score(result, measure)
    if math.isnan(score):
        raise ValueError(f"{measure.id} não pôde ser calculada (NaN)")
    return score


class TuneWrapper(BaseWrapper):
    """
    Tuning wrapper.

    Args:
        learner: The chain whose parameters are tuned.
        resampling: How each trial is evaluated (e.g. ``ResampleDesc("CV", iters=3)``).
            The same instance is drawn once per tuning run and shared by all trials.
        par_set: Search domains; every name must be a tunable parameter of the chain.
        control: Search strategy; a fresh proposer is created per `train`.
        measure: Performance measure (default: mmce / mse).
        impute_val: Score recorded for failed trials (default: ``measure.worst``).
            It may not be better than ``measure.worst``, so the selected trial
            is never beaten by an imputed score in the optimization path.
        on_error: ``impute`` or ``raise``; defaults to ``settings.ON_TRIAL_ERROR``.
        trial_timeout: Deadline per trial in seconds; defaults to ``settings.TRIAL_TIMEOUT``.
        aggregation: How per-iteration scores are aggregated (``mean`` or ``median``).
    """

    model_class = TuneModel
    suffix = "tuned"

    def __init__(
        self,
        learner: Learner,
        resampling: ResampleDesc | ResampleInstance,
        par_set: ParamSet,
        control: TuneControl,
        measure: Measure | None = None,
        impute_val: float | None = None,
        on_error: Literal["impute", "raise"] | None = None,
        trial_timeout: float | None = None,
        aggregation: Literal["mean", "median"] = "mean",
        id: str | None = None,
        executor: str | None = None,
        n_jobs: int | None = None,
    ):
        super().__init__(learner, id=id)
        if not isinstance(control, TuneControl):
            raise ConfigurationError(f"control inválido: {type(control).__name__}")
        if not isinstance(resampling, (ResampleDesc, ResampleInstance)):
            raise ConfigurationError(f"resampling inválido: {type(resampling).__name__}")
        if not isinstance(par_set, ParamSet) or len(par_set) == 0:
            raise ConfigurationError("par_set de tuning vazio")
        inner = learner.get_param_set()
        for name in par_set:
            if name not in inner:
                raise ConfigurationError(
                    f"Parâmetro de tuning '{name}' não existe em '{learner.id}'. "
                    f"Disponíveis: {inner.ids}"
                )
            if not inner[name].tunable:
                raise ConfigurationError(f"Parâmetro '{name}' não é ajustável")
        measure = measure or default_measure(learner.type)
        if learner.type not in measure.task_types:
            raise ConfigurationError(f"Medida '{measure.id}' não se aplica a {learner.type}")
        if measure.needs_prob and learner.predict_type != "prob":
            raise ConfigurationError(f"Medida '{measure.id}' exige predict_type='prob'")
        on_error = on_error or settings.ON_TRIAL_ERROR
        if on_error not in ("impute", "raise"):
            raise ConfigurationError(f"on_error inválido: {on_error!r}")
        impute_val = measure.worst if impute_val is None else float(impute_val)
        if math.isnan(impute_val) or measure.better(impute_val, measure.worst):
            raise ConfigurationError(
                f"impute_val={impute_val} é melhor que o pior valor de {measure.id} ({measure.worst})"
            )
        timeout = trial_timeout if trial_timeout is not None else settings.TRIAL_TIMEOUT
        if timeout is not None and timeout <= 0:
            raise ConfigurationError("trial_timeout deve ser positivo")

        self.resampling = resampling
        self.tune_par_set = par_set
        self.control = control
        self.measure = measure
        self.impute_val = impute_val
        self.on_error = on_error
        self.trial_timeout = timeout
        self.aggregation = aggregation
        self.executor = executor
        self.n_jobs = n_jobs

    # ── train ────────────────────────────────────────────────────────────

    def _check_train_entry(self, task: Task, params: dict[str, Any]) -> None:
        fixed = sorted(set(params) & set(self.tune_par_set))
        if fixed:
            raise ConfigurationError(
                f"Parâmetros {fixed} estão sendo ajustados por '{self.id}' e não podem ser fixados"
            )
        if isinstance(self.resampling, ResampleInstance):
            self.resampling.check_fits(task)
        super()._check_train_entry(task, params)

    def _check_proposal(self, proposal: Mapping[str, Any], delegated: dict[str, Any]) -> dict[str, Any]:
        """A control proposing outside the declared domains is a configuration error."""
        unknown = [k for k in proposal if k not in self.tune_par_set]
        if unknown:
            raise ConfigurationError(f"Control propôs parâmetros desconhecidos: {unknown}")
        self.tune_par_set.validate(proposal)
        self.next_learner.get_param_set().validate({**delegated, **proposal})
        return dict(proposal)

    def _train_wrapper(
        self,
        task: Task,
        own: dict[str, Any],
        delegated: dict[str, Any],
        rng: np.random.Generator,
    ) -> Model:
        t0 = time.perf_counter()
        measure = self.measure
        control_rng, resample_rng, final_rng = spawn(rng, 3)
        instance = (
            self.resampling
            if isinstance(self.resampling, ResampleInstance)
            else make_resample_instance(self.resampling, task, resample_rng)
        )
        proposer = self.control.make_proposer(
            self.tune_par_set, control_rng, minimize=measure.minimize
        )
        logger.info(
            f"[Tune] '{self.id}' com {type(self.control).__name__}, "
            f"{instance.desc.method} ({instance.iters} iters), medida {measure.id}"
        )

        records: list[TrialRecord] = []
        failures: list[TrialFailure] = []
        with ExecutorFactory.create(self.executor, self.n_jobs) as executor:
            batch_size = max(1, executor.max_workers)
            while True:
                batch = []
                for _ in range(batch_size):
                    proposal = proposer.propose()
                    if proposal is None:
                        break
                    batch.append(self._check_proposal(proposal, delegated))
                if not batch:
                    break
                args = [
                    (self.next_learner, task, instance, measure, {**delegated, **x}, r, self.aggregation)
                    for x, r in zip(batch, spawn(rng, len(batch)))
                ]
                outcomes = run_isolated(
                    executor, _evaluate_trial, args, timeout=self.trial_timeout, first_index=len(records)
                )
                for x, outcome in zip(batch, outcomes):
                    index = outcome.index
                    if outcome.ok:
                        score, error = outcome.value, None
                        logger.info(f"[Tune-x] {index}: {_fmt_params(x)} : {measure.id}={score:.4g}")
                    else:
                        failure = TrialFailure(index, x, outcome.error)
                        if self.on_error == "raise":
                            raise failure from outcome.error
                        failures.append(failure)
                        score, error = self.impute_val, f"{type(outcome.error).__name__}: {outcome.error}"
                        logger.warning(f"[Tune-x] {index}: {_fmt_params(x)} falhou ({error}); score imputado {score}")
                    records.append(TrialRecord(index, x, float(score), error, outcome.elapsed))
                    proposer.tell(x, score if outcome.ok else None)

        best = self._select_best(records)
        if best is None:
            raise TuningError(self.id, failures)
        opt_path = OptPath(tuple(records), measure.id, measure.minimize)
        result = TuneResult(
            learner_id=self.id,
            x=dict(best.params),
            y=best.score,
            measure_id=f"{measure.id}.test.{self.aggregation}",
            opt_path=opt_path,
            best_index=best.index,
        )
        logger.success(f"[Tune] Resultado: {_fmt_params(result.x)} : {measure.id}={result.y:.4g}")

        final_model = self._train_next(task, {**delegated, **best.params}, final_rng)
        return self._make_model(
            task,
            own,
            state=None,
            t0=t0,
            next_model=final_model,
            tune_result=result,
        )

    def _select_best(self, records: list[TrialRecord]) -> TrialRecord | None:
        """Best successful trial by the measure's direction; the earliest wins ties."""
        best: TrialRecord | None = None
        for record in records:
            if record.ok and (best is None or self.measure.better(record.score, best.score)):
                best = record
        return best


def _fmt_params(params: Mapping[str, Any]) -> str:
    return "; ".join(
        f"{k}={v:.3g}" if isinstance(v, float) else f"{k}={v}" for k, v in params.items()
    )


def make_tune_wrapper(
    learner: Learner,
    resampling: ResampleDesc | ResampleInstance,
    par_set: ParamSet,
    control: TuneControl,
    measures: Measure | list[Measure] | None = None,
    **kwargs: Any,
) -> TuneWrapper:
    """Functional constructor; with several measures the first one is optimized."""
    if isinstance(measures, list):
        measures = measures[0] if measures else None
    return TuneWrapper(learner, resampling, par_set, control, measure=measures, **kwargs)


__all__ = ["TuneWrapper", "TuneModel", "make_tune_wrapper"]
