"""
Error kinds raised by learners, wrappers and the tuning engine.

Configuration and capability problems are detected at `train` entry and
propagate to the caller. `TrialFailure` is recorded by the tuning wrapper and
only escapes when the global failure policy says so; `TuningError` is raised
when no trial of a tuning run could be evaluated.
"""

from __future__ import annotations

from typing import Any


class MlwrapError(Exception):
    """Base class for every error raised by mlwrap."""


class ConfigurationError(MlwrapError, ValueError):
    """A parameter name cannot be resolved, or a value lies outside its domain."""


class CapabilityError(MlwrapError):
    """The learner chain cannot satisfy a requirement of the task."""

    def __init__(self, learner_id: str, missing: set[Any] | frozenset[Any]):
        self.learner_id = learner_id
        self.missing = frozenset(missing)
        names = ", ".join(sorted(str(m) for m in self.missing))
        super().__init__(
            f"Learner '{learner_id}' não suporta: {names}"
        )


class StateError(MlwrapError):
    """`predict` got a model whose structure does not match the calling learner."""


class TrialFailure(MlwrapError):
    """One tuning trial raised while training or scoring the inner chain."""

    def __init__(self, index: int, params: dict[str, Any], cause: BaseException):
        self.index = index
        self.params = dict(params)
        self.cause = cause
        super().__init__(
            f"Trial {index} falhou com {type(cause).__name__}: {cause} (params={self.params})"
        )

    def __reduce__(self):
        return (type(self), (self.index, self.params, self.cause))


class TuningError(MlwrapError):
    """Every trial of a tuning run failed; there is no best assignment."""

    def __init__(self, learner_id: str, failures: list[TrialFailure]):
        self.learner_id = learner_id
        self.failures = list(failures)
        last = self.failures[-1] if self.failures else None
        super().__init__(
            f"Todos os {len(self.failures)} trials de '{learner_id}' falharam"
            + (f"; último erro: {last.cause!r}" if last else "")
        )

    def __reduce__(self):
        return (type(self), (self.learner_id, self.failures))


__all__ = [
    "MlwrapError",
    "ConfigurationError",
    "CapabilityError",
    "StateError",
    "TrialFailure",
    "TuningError",
]
