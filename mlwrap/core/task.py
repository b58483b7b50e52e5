"""
Task - immutable bundle of data, target and optional observation weights.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

import numpy as np
import polars as pl

from .capabilities import Capability
from .errors import ConfigurationError

TaskType = Literal["classif", "regr"]

_FACTOR_DTYPES = (pl.Utf8, pl.Categorical, pl.Boolean)


def _is_factor(dtype: pl.DataType) -> bool:
    return dtype in _FACTOR_DTYPES or isinstance(dtype, (pl.Categorical, pl.Enum))


@dataclass(frozen=True)
class TaskDesc:
    """What a trained model remembers about the task it was fitted on."""

    id: str
    type: TaskType
    target: str
    feature_names: tuple[str, ...]
    class_levels: tuple[Any, ...] = ()


@dataclass(frozen=True, eq=False)
class Task:
    id: str
    type: TaskType
    data: pl.DataFrame
    target: str
    weights: np.ndarray | None = None
    class_levels: tuple[Any, ...] = field(default=())

    def __post_init__(self):
        if self.target not in self.data.columns:
            raise ConfigurationError(
                f"Coluna alvo '{self.target}' não existe em {self.data.columns}"
            )
        if self.data.width < 2:
            raise ConfigurationError(f"Task '{self.id}' não tem features")
        if self.data[self.target].null_count() > 0:
            raise ConfigurationError(f"Alvo '{self.target}' contém valores ausentes")
        if self.weights is not None:
            w = np.array(self.weights, dtype=float, copy=True)
            if w.ndim != 1 or len(w) != self.data.height:
                raise ConfigurationError(
                    f"Pesos com tamanho {w.shape} para {self.data.height} observações"
                )
            if not np.all(np.isfinite(w)) or np.any(w < 0):
                raise ConfigurationError("Pesos devem ser finitos e não negativos")
            if w.sum() <= 0:
                raise ConfigurationError("Soma dos pesos deve ser positiva")
            w.setflags(write=False)
            object.__setattr__(self, "weights", w)
        if self.type == "classif" and not self.class_levels:
            levels = tuple(sorted(self.data[self.target].unique().to_list(), key=str))
            object.__setattr__(self, "class_levels", levels)

    # ── accessors ────────────────────────────────────────────────────────

    @property
    def feature_names(self) -> list[str]:
        return [c for c in self.data.columns if c != self.target]

    @property
    def n_obs(self) -> int:
        return self.data.height

    @property
    def n_features(self) -> int:
        return self.data.width - 1

    @property
    def has_missings(self) -> bool:
        return any(self.data[c].null_count() > 0 for c in self.feature_names) or any(
            self.data[c].dtype.is_float() and self.data[c].is_nan().any()
            for c in self.feature_names
        )

    @property
    def desc(self) -> TaskDesc:
        return TaskDesc(
            id=self.id,
            type=self.type,
            target=self.target,
            feature_names=tuple(self.feature_names),
            class_levels=self.class_levels,
        )

    def features(self) -> pl.DataFrame:
        return self.data.select(self.feature_names)

    def x(self) -> np.ndarray:
        """Feature matrix as float64; factor columns must be encoded beforehand."""
        return self.features().cast(pl.Float64).to_numpy()

    def y(self) -> np.ndarray:
        return self.data[self.target].to_numpy()

    def factor_features(self) -> list[str]:
        return [c for c in self.feature_names if _is_factor(self.data[c].dtype)]

    def requirements(self) -> frozenset[Capability]:
        """Capabilities a learner needs in order to train on this task."""
        req: set[Capability] = set()
        factors = set(self.factor_features())
        if factors:
            req.add(Capability.FACTORS)
        if len(factors) < self.n_features:
            req.add(Capability.NUMERICS)
        if self.has_missings:
            req.add(Capability.MISSINGS)
        if self.weights is not None:
            req.add(Capability.WEIGHTS)
        if self.type == "classif":
            req.add(
                Capability.TWOCLASS if len(self.class_levels) <= 2 else Capability.MULTICLASS
            )
        return frozenset(req)

    # ── derived tasks ────────────────────────────────────────────────────

    def subset(
        self,
        rows: Sequence[int] | np.ndarray | None = None,
        features: Sequence[str] | None = None,
        *,
        keep_weights: bool = True,
    ) -> Task:
        """Return a new Task restricted to `rows` and `features`; class levels are preserved."""
        data = self.data
        if features is not None:
            unknown = [f for f in features if f not in self.feature_names]
            if unknown:
                raise ConfigurationError(f"Features desconhecidas: {unknown}")
            data = data.select([*features, self.target])
        weights = self.weights if keep_weights else None
        if rows is not None:
            idx = np.asarray(rows, dtype=np.int64)
            data = data[idx]
            if weights is not None:
                weights = weights[idx]
        return Task(
            id=self.id,
            type=self.type,
            data=data,
            target=self.target,
            weights=weights,
            class_levels=self.class_levels,
        )

    def drop_weights(self) -> Task:
        return self.subset(keep_weights=False) if self.weights is not None else self

    def with_features(self, features: pl.DataFrame) -> Task:
        """Replace the feature columns, keeping target, weights and class levels."""
        if features.height != self.n_obs:
            raise ConfigurationError("Número de linhas diferente ao substituir features")
        data = features.with_columns(self.data[self.target])
        return Task(
            id=self.id,
            type=self.type,
            data=data,
            target=self.target,
            weights=self.weights,
            class_levels=self.class_levels,
        )

    def __repr__(self) -> str:
        kind = "ClassifTask" if self.type == "classif" else "RegrTask"
        extra = f", classes={len(self.class_levels)}" if self.type == "classif" else ""
        w = ", weights" if self.weights is not None else ""
        return f"{kind}(id={self.id!r}, obs={self.n_obs}, features={self.n_features}{extra}{w})"


def _as_polars(data: Any) -> pl.DataFrame:
    if isinstance(data, pl.DataFrame):
        return data
    try:
        return pl.from_pandas(data)
    except (TypeError, ValueError, ImportError):
        return pl.DataFrame(data)


def make_classif_task(
    id: str, data: Any, target: str, weights: Sequence[float] | np.ndarray | None = None
) -> Task:
    """Build a classification task; the target column is cast to strings."""
    frame = _as_polars(data)
    if target not in frame.columns:
        raise ConfigurationError(f"Coluna alvo '{target}' não existe em {frame.columns}")
    frame = frame.with_columns(pl.col(target).cast(pl.Utf8))
    return Task(
        id=id,
        type="classif",
        data=frame,
        target=target,
        weights=None if weights is None else np.asarray(weights, dtype=float),
    )


def make_regr_task(
    id: str, data: Any, target: str, weights: Sequence[float] | np.ndarray | None = None
) -> Task:
    frame = _as_polars(data)
    if target not in frame.columns:
        raise ConfigurationError(f"Coluna alvo '{target}' não existe em {frame.columns}")
    if not frame[target].dtype.is_numeric():
        raise ConfigurationError(f"Alvo de regressão '{target}' precisa ser numérico")
    frame = frame.with_columns(pl.col(target).cast(pl.Float64))
    return Task(
        id=id,
        type="regr",
        data=frame,
        target=target,
        weights=None if weights is None else np.asarray(weights, dtype=float),
    )


__all__ = ["Task", "TaskDesc", "TaskType", "make_classif_task", "make_regr_task"]
