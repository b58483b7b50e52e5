"""
Pytest configuration and shared fixtures.

This conftest.py provides:
- Environment configuration (no file logging, plain console output)
- Small classification / regression tasks built from sklearn.datasets
- A learner that fails on demand, for trial-failure scenarios
"""

import os
import time

os.environ.setdefault("LOG_TO_FILE", "0")
os.environ.setdefault("DISABLE_RICH", "1")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import numpy as np  # noqa: E402
import polars as pl  # noqa: E402
import pytest  # noqa: E402
from sklearn.datasets import load_diabetes  # noqa: E402
from sklearn.tree import DecisionTreeClassifier  # noqa: E402

from mlwrap.core import (  # noqa: E402
    Capability,
    IntegerParam,
    ParamSet,
    SklearnLearner,
    make_regr_task,
)
from mlwrap.demo import make_iris_task  # noqa: E402


# ─── Pytest Configuration ────────────────────────────────────────────


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (full wrapper chains)")
    config.addinivalue_line("markers", "slow: Slow tests (>1s execution time)")


# ─── Tasks ───────────────────────────────────────────────────────────


@pytest.fixture
def iris_task():
    """Iris com pesos 1, 2, 3 por espécie."""
    return make_iris_task()


@pytest.fixture
def iris_unweighted():
    return make_iris_task(weighted=False)


@pytest.fixture
def regr_task():
    """Primeiras 120 linhas do diabetes, alvo contínuo."""
    raw = load_diabetes()
    frame = pl.DataFrame(
        {name: raw.data[:120, j] for j, name in enumerate(raw.feature_names)}
    ).with_columns(pl.Series("y", raw.target[:120]))
    return make_regr_task("diabetes", frame, target="y")


@pytest.fixture
def missing_task(iris_unweighted):
    """Iris com alguns valores ausentes em duas features."""
    data = iris_unweighted.data
    sepal = data["Sepal.Length"].to_list()
    petal = data["Petal.Width"].to_list()
    for i in (0, 60, 120):
        sepal[i] = None
    petal[5] = None
    frame = data.with_columns(
        pl.Series("Sepal.Length", sepal, dtype=pl.Float64),
        pl.Series("Petal.Width", petal, dtype=pl.Float64),
    )
    return iris_unweighted.with_features(frame.drop("Species"))


# ─── Learners ────────────────────────────────────────────────────────


class FlakyTree(SklearnLearner):
    """Árvore que falha quando minsplit está em `fail_on`."""

    def __init__(self, fail_on=(10,), id="classif.flaky", **kwargs):
        self.fail_on = tuple(fail_on)
        super().__init__(
            id=id,
            type="classif",
            estimator=DecisionTreeClassifier,
            par_set=ParamSet(IntegerParam("minsplit", default=20, lower=2, upper=100)),
            param_map={"minsplit": "min_samples_split"},
            capabilities={
                Capability.NUMERICS,
                Capability.WEIGHTS,
                Capability.PROB,
                Capability.TWOCLASS,
                Capability.MULTICLASS,
            },
            **kwargs,
        )

    def _train(self, task, params, rng):
        minsplit = params.get("minsplit", self.par_vals.get("minsplit", 20))
        if minsplit in self.fail_on:
            raise RuntimeError(f"minsplit={minsplit} não suportado")
        return super()._train(task, params, rng)


class SlowTree(FlakyTree):
    """Árvore que demora `seconds` quando minsplit está em `slow_on`."""

    def __init__(self, slow_on=(10,), seconds=2.0):
        self.slow_on = tuple(slow_on)
        self.seconds = seconds
        super().__init__(fail_on=(), id="classif.slow")

    def _train(self, task, params, rng):
        if params.get("minsplit", self.par_vals.get("minsplit", 20)) in self.slow_on:
            time.sleep(self.seconds)
        return super()._train(task, params, rng)


@pytest.fixture
def flaky_tree():
    return FlakyTree()


@pytest.fixture
def slow_tree():
    return SlowTree()


@pytest.fixture
def rng():
    return np.random.default_rng(42)
