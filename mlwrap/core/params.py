"""
Typed hyperparameter domains.

A `ParamSet` maps parameter names to domains. Learners declare their own set;
a wrapper's effective set is the union of its own with the one of the learner
it wraps, so names must be unique across a chain. Wrapper parameters use a
short prefix (``bw.``, ``imp.``, ``fw.``) for that reason.
"""

from __future__ import annotations

import itertools
import math
import numbers
from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from .errors import ConfigurationError


def _is_integral(value: Any) -> bool:
    if isinstance(value, (bool, np.bool_)):
        return False
    return isinstance(value, numbers.Integral)


def _is_real(value: Any) -> bool:
    if isinstance(value, (bool, np.bool_)):
        return False
    return isinstance(value, numbers.Real) and math.isfinite(float(value))


@dataclass(frozen=True)
class Param(ABC):
    """A single hyperparameter domain."""

    id: str
    default: Any = None
    tunable: bool = True
    special_vals: tuple[Any, ...] = field(default=(), kw_only=True)

    @abstractmethod
    def _in_domain(self, value: Any) -> bool: ...

    @abstractmethod
    def sample(self, rng: np.random.Generator) -> Any: ...

    @abstractmethod
    def grid(self, resolution: int) -> list[Any]: ...

    def contains(self, value: Any) -> bool:
        if any(value is s or (value == s and type(value) is type(s)) for s in self.special_vals):
            return True
        return self._in_domain(value)

    def check(self, value: Any) -> Any:
        """Return `value` unchanged or raise `ConfigurationError`."""
        if not self.contains(value):
            raise ConfigurationError(
                f"Valor {value!r} fora do domínio de '{self.id}': {self.describe()}"
            )
        return value

    def describe(self) -> str:
        return type(self).__name__


@dataclass(frozen=True)
class IntegerParam(Param):
    lower: int = 0
    upper: int = 2**31 - 1

    def __post_init__(self):
        if self.lower > self.upper:
            raise ConfigurationError(f"'{self.id}': lower > upper")

    def _in_domain(self, value: Any) -> bool:
        return _is_integral(value) and self.lower <= value <= self.upper

    def sample(self, rng: np.random.Generator) -> int:
        return int(rng.integers(self.lower, self.upper, endpoint=True))

    def grid(self, resolution: int) -> list[int]:
        points = np.linspace(self.lower, self.upper, num=max(resolution, 1))
        return sorted({int(round(p)) for p in points})

    def describe(self) -> str:
        return f"int[{self.lower}, {self.upper}]"


@dataclass(frozen=True)
class NumericParam(Param):
    lower: float = -math.inf
    upper: float = math.inf
    lower_open: bool = False

    def __post_init__(self):
        if self.lower > self.upper:
            raise ConfigurationError(f"'{self.id}': lower > upper")

    def _in_domain(self, value: Any) -> bool:
        if not _is_real(value):
            return False
        value = float(value)
        if self.lower_open and value <= self.lower:
            return False
        return self.lower <= value <= self.upper

    def sample(self, rng: np.random.Generator) -> float:
        if not (math.isfinite(self.lower) and math.isfinite(self.upper)):
            raise ConfigurationError(
                f"'{self.id}' precisa de limites finitos para ser amostrado"
            )
        value = float(rng.uniform(self.lower, self.upper))
        if self.lower_open and value <= self.lower:
            value = float(np.nextafter(self.lower, self.upper))
        return value

    def grid(self, resolution: int) -> list[float]:
        if not (math.isfinite(self.lower) and math.isfinite(self.upper)):
            raise ConfigurationError(
                f"'{self.id}' precisa de limites finitos para gerar grid"
            )
        points = np.linspace(self.lower, self.upper, num=max(resolution, 1))
        values = [float(p) for p in points]
        if self.lower_open:
            values = [v for v in values if v > self.lower] or [self.upper]
        return values

    def describe(self) -> str:
        left = "(" if self.lower_open else "["
        return f"num{left}{self.lower}, {self.upper}]"


@dataclass(frozen=True)
class DiscreteParam(Param):
    values: tuple[Any, ...] = ()

    def __post_init__(self):
        if not self.values:
            raise ConfigurationError(f"'{self.id}': lista de valores vazia")
        # tuples keep the dataclass hashable
        object.__setattr__(self, "values", tuple(self.values))

    def _in_domain(self, value: Any) -> bool:
        return any(value == v and type(value) is type(v) for v in self.values) or (
            _is_integral(value)
            and any(_is_integral(v) and value == v for v in self.values)
        )

    def sample(self, rng: np.random.Generator) -> Any:
        return self.values[int(rng.integers(len(self.values)))]

    def grid(self, resolution: int) -> list[Any]:
        return list(self.values)

    def describe(self) -> str:
        return "{" + ", ".join(repr(v) for v in self.values) + "}"


@dataclass(frozen=True)
class LogicalParam(Param):
    def _in_domain(self, value: Any) -> bool:
        return isinstance(value, (bool, np.bool_))

    def sample(self, rng: np.random.Generator) -> bool:
        return bool(rng.integers(2))

    def grid(self, resolution: int) -> list[bool]:
        return [False, True]

    def describe(self) -> str:
        return "logical"


class ParamSet(Mapping[str, Param]):
    """Ordered, immutable mapping from parameter name to domain."""

    def __init__(self, *params: Param):
        self._params: dict[str, Param] = {}
        for p in params:
            if p.id in self._params:
                raise ConfigurationError(f"Parâmetro duplicado no ParamSet: '{p.id}'")
            self._params[p.id] = p

    def __getitem__(self, key: str) -> Param:
        return self._params[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._params)

    def __len__(self) -> int:
        return len(self._params)

    def __repr__(self) -> str:
        inner = ", ".join(f"{k}: {p.describe()}" for k, p in self._params.items())
        return f"ParamSet({inner})"

    @property
    def ids(self) -> list[str]:
        return list(self._params)

    def union(self, *others: ParamSet) -> ParamSet:
        """Concatenate parameter sets; a name declared twice is a `ConfigurationError`."""
        merged = list(self._params.values())
        for other in others:
            merged.extend(other.values())
        return ParamSet(*merged)

    def subset(self, ids: Sequence[str]) -> ParamSet:
        unknown = [i for i in ids if i not in self._params]
        if unknown:
            raise ConfigurationError(f"Parâmetros desconhecidos: {unknown}")
        return ParamSet(*(self._params[i] for i in ids))

    def defaults(self) -> dict[str, Any]:
        return {k: p.default for k, p in self._params.items() if p.default is not None}

    def tunable_ids(self) -> list[str]:
        return [k for k, p in self._params.items() if p.tunable]

    def validate(self, values: Mapping[str, Any]) -> dict[str, Any]:
        """Check names and domains; returns a plain dict copy of `values`."""
        unknown = [k for k in values if k not in self._params]
        if unknown:
            raise ConfigurationError(
                f"Parâmetros desconhecidos: {unknown}. Disponíveis: {self.ids}"
            )
        for k, v in values.items():
            self._params[k].check(v)
        return dict(values)

    def sample(self, rng: np.random.Generator) -> dict[str, Any]:
        return {k: p.sample(rng) for k, p in self._params.items()}

    def grid(self, resolution: int) -> list[dict[str, Any]]:
        """Cartesian product of every parameter's grid, in declaration order."""
        axes = [p.grid(resolution) for p in self._params.values()]
        return [dict(zip(self._params, combo)) for combo in itertools.product(*axes)]


__all__ = [
    "Param",
    "IntegerParam",
    "NumericParam",
    "DiscreteParam",
    "LogicalParam",
    "ParamSet",
]
