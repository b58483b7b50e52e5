from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np
import polars as pl

from .task import TaskDesc


@dataclass(frozen=True, eq=False)
class Prediction:
    """
    Predictions for a batch of observations.

    `prob` columns follow `task_desc.class_levels`. `truth` is filled when the
    new data still carries the target column.
    """

    task_desc: TaskDesc
    response: np.ndarray
    prob: np.ndarray | None = None
    se: np.ndarray | None = None
    truth: np.ndarray | None = None

    def __len__(self) -> int:
        return len(self.response)

    @property
    def class_levels(self) -> tuple[Any, ...]:
        return self.task_desc.class_levels

    def as_frame(self) -> pl.DataFrame:
        cols: dict[str, Any] = {}
        if self.truth is not None:
            cols["truth"] = self.truth
        cols["response"] = self.response
        if self.prob is not None:
            for j, level in enumerate(self.class_levels):
                cols[f"prob.{level}"] = self.prob[:, j]
        if self.se is not None:
            cols["se"] = self.se
        return pl.DataFrame(cols)

    def confusion(self) -> pl.DataFrame:
        """Counts of (truth, response) pairs; classification with truth only."""
        if self.truth is None or self.task_desc.type != "classif":
            raise ValueError("Matriz de confusão exige classificação com alvo conhecido")
        return (
            pl.DataFrame({"truth": self.truth, "response": self.response})
            .group_by(["truth", "response"])
            .len()
            .sort(["truth", "response"])
        )


__all__ = ["Prediction"]
