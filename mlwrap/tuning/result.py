from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import polars as pl


@dataclass(frozen=True)
class TrialRecord:
    """One evaluated assignment. Failed trials carry the imputed score and the error text."""

    index: int
    params: dict[str, Any]
    score: float
    error: str | None = None
    exec_time: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class OptPath:
    """Every trial of a tuning run, in evaluation order."""

    records: tuple[TrialRecord, ...]
    measure_id: str
    minimize: bool

    def __len__(self) -> int:
        return len(self.records)

    @property
    def scores(self) -> list[float]:
        return [r.score for r in self.records]

    def successful(self) -> list[TrialRecord]:
        return [r for r in self.records if r.ok]

    def failed(self) -> list[TrialRecord]:
        return [r for r in self.records if not r.ok]

    def as_frame(self) -> pl.DataFrame:
        rows = [
            {
                "trial": r.index,
                **r.params,
                self.measure_id: r.score,
                "error": r.error,
                "exec_time": r.exec_time,
            }
            for r in self.records
        ]
        return pl.DataFrame(rows)


@dataclass(frozen=True)
class TuneResult:
    """Best assignment found by a tuning run and its estimated performance."""

    learner_id: str
    x: dict[str, Any]
    y: float
    measure_id: str
    opt_path: OptPath
    best_index: int

    def __repr__(self) -> str:
        pars = "; ".join(f"{k}={_fmt(v)}" for k, v in self.x.items())
        return f"Tune result:\nOp. pars: {pars}\n{self.measure_id}={self.y:.4g}"


def _fmt(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:.3g}"
    return str(value)


__all__ = ["TrialRecord", "OptPath", "TuneResult"]
