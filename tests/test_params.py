"""
Testes de domínios de hiperparâmetros e ParamSet.
"""

import numpy as np
import pytest

from mlwrap.core import (
    ConfigurationError,
    DiscreteParam,
    IntegerParam,
    LogicalParam,
    NumericParam,
    ParamSet,
)


@pytest.mark.unit
class TestParamDomains:
    def test_integer_param_rejects_floats_and_bools(self):
        p = IntegerParam("minsplit", lower=2, upper=100)
        assert p.contains(10)
        assert p.contains(np.int64(10))
        assert not p.contains(2.5)
        assert not p.contains(True)
        assert not p.contains(1)
        assert not p.contains(101)

    def test_numeric_param_open_lower_bound(self):
        p = NumericParam("bw.feats", lower=0.0, upper=1.0, lower_open=True)
        assert not p.contains(0.0)
        assert p.contains(0.5)
        assert p.contains(1)
        assert not p.contains(float("nan"))
        assert not p.contains("0.5")

    def test_discrete_param_matches_type(self):
        p = DiscreteParam("minsplit", values=[10, 20])
        assert p.values == (10, 20)
        assert p.contains(10)
        assert not p.contains(15)
        assert not p.contains("10")

    def test_special_values(self):
        p = IntegerParam("fw.abs", lower=0, upper=10, special_vals=(None,))
        assert p.contains(None)
        assert p.contains(3)

    def test_check_raises_configuration_error(self):
        p = LogicalParam("bw.replace", default=True)
        with pytest.raises(ConfigurationError, match="bw.replace"):
            p.check(1)

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            IntegerParam("x", lower=5, upper=1)

    def test_sampling_stays_in_domain(self):
        rng = np.random.default_rng(0)
        params = [
            IntegerParam("a", lower=1, upper=3),
            NumericParam("b", lower=0.0, upper=1.0, lower_open=True),
            DiscreteParam("c", values=("x", "y")),
            LogicalParam("d"),
        ]
        for _ in range(50):
            for p in params:
                assert p.contains(p.sample(rng))

    def test_unbounded_numeric_cannot_be_sampled(self):
        with pytest.raises(ConfigurationError):
            NumericParam("x").sample(np.random.default_rng(0))


@pytest.mark.unit
class TestParamSet:
    def test_duplicate_names_rejected(self):
        with pytest.raises(ConfigurationError, match="duplicado"):
            ParamSet(IntegerParam("k"), NumericParam("k"))

    def test_union_rejects_shared_names(self):
        a = ParamSet(IntegerParam("k"))
        with pytest.raises(ConfigurationError):
            a.union(ParamSet(IntegerParam("k")))

    def test_union_keeps_order(self):
        a = ParamSet(IntegerParam("a"), IntegerParam("b"))
        b = ParamSet(LogicalParam("c"))
        assert a.union(b).ids == ["a", "b", "c"]

    def test_validate_unknown_name(self):
        ps = ParamSet(IntegerParam("minsplit", lower=2, upper=100))
        with pytest.raises(ConfigurationError, match="desconhecidos"):
            ps.validate({"minsplt": 10})

    def test_validate_returns_copy(self):
        ps = ParamSet(IntegerParam("minsplit", lower=2, upper=100))
        values = {"minsplit": 10}
        out = ps.validate(values)
        assert out == values and out is not values

    def test_defaults_skip_missing(self):
        ps = ParamSet(
            IntegerParam("bw.iters", default=10, lower=1),
            NumericParam("bw.size", lower=0.0, upper=1.0),
        )
        assert ps.defaults() == {"bw.iters": 10}

    def test_tunable_ids(self):
        ps = ParamSet(
            NumericParam("cost", default=1.0, lower=0.0, upper=10.0),
            IntegerParam("maxit", default=100, lower=1, upper=1000, tunable=False),
        )
        assert ps.tunable_ids() == ["cost"]

    def test_grid_is_cartesian_product(self):
        ps = ParamSet(
            DiscreteParam("minsplit", values=(10, 20)),
            NumericParam("bw.feats", lower=0.0, upper=1.0),
        )
        grid = ps.grid(3)
        assert len(grid) == 6
        assert grid[0] == {"minsplit": 10, "bw.feats": 0.0}
        assert grid[-1] == {"minsplit": 20, "bw.feats": 1.0}

    def test_subset(self):
        ps = ParamSet(IntegerParam("a"), IntegerParam("b"))
        assert ps.subset(["b"]).ids == ["b"]
        with pytest.raises(ConfigurationError):
            ps.subset(["z"])

    def test_sample_is_reproducible(self):
        ps = ParamSet(
            DiscreteParam("minsplit", values=(10, 20)),
            NumericParam("bw.feats", lower=0.25, upper=1.0),
        )
        a = ps.sample(np.random.default_rng(7))
        b = ps.sample(np.random.default_rng(7))
        assert a == b
