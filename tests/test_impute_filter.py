"""
Testes dos wrappers de pré-processamento (imputação e filtro de features).
"""

import math

import numpy as np
import polars as pl
import pytest

from mlwrap.core import CapabilityError, ConfigurationError, ParamSet, ResampleDesc, make_learner
from mlwrap.core.params import NumericParam
from mlwrap.tuning import TuneControlGrid
from mlwrap.wrappers import FilterWrapper, ImputeWrapper, TuneWrapper
from mlwrap.wrappers.filter import select_features
from mlwrap.wrappers.impute import apply_fill_values, learn_fill_values


# ════════════════════════════════════════════════════════════════════════
# IMPUTAÇÃO
# ════════════════════════════════════════════════════════════════════════


@pytest.mark.unit
class TestImputeWrapper:
    def test_trains_on_missing_data(self, missing_task):
        w = ImputeWrapper(make_learner("classif.rpart"))
        model = w.train(missing_task, seed=1)
        pred = w.predict(model, missing_task)
        assert len(pred) == 150

    def test_fill_values_are_training_medians(self, missing_task):
        w = ImputeWrapper(make_learner("classif.rpart"))
        model = w.train(missing_task, seed=1)
        expected = missing_task.data["Sepal.Length"].drop_nulls().median()
        assert model.state["fills"]["Sepal.Length"] == pytest.approx(expected)

    def test_constant_method(self, missing_task):
        w = ImputeWrapper(make_learner("classif.rpart"), method="constant", const=-1.0)
        model = w.train(missing_task, seed=1)
        assert set(model.state["fills"].values()) == {-1.0}

    def test_predict_reuses_training_fills(self, missing_task):
        w = ImputeWrapper(make_learner("classif.rpart"), method="max")
        model = w.train(missing_task, seed=1)
        newdata = missing_task.features().head(3).with_columns(
            pl.lit(None, dtype=pl.Float64).alias("Petal.Length")
        )
        filled = w._transform_newdata(model, newdata)
        assert filled["Petal.Length"].to_list() == [model.state["fills"]["Petal.Length"]] * 3
        assert len(w.predict(model, newdata)) == 3

    def test_invalid_method(self):
        with pytest.raises(ConfigurationError):
            ImputeWrapper(make_learner("classif.rpart"), method="mode")

    def test_learn_fill_values(self):
        frame = pl.DataFrame(
            {
                "x": [1.0, None, 3.0, float("nan")],
                "n": [1, 2, None, 2],
                "c": ["u", "v", "v", None],
                "e": pl.Series([None, None, None, None], dtype=pl.Float64),
            }
        )
        fills = learn_fill_values(frame, "mean", 0.0)
        assert fills["x"] == 2.0
        assert fills["n"] == pytest.approx(5 / 3)
        assert fills["c"] == "v"
        assert fills["e"] == 0.0
        out = apply_fill_values(frame, fills)
        assert out["x"].to_list() == [1.0, 2.0, 3.0, 2.0]
        assert out["c"].to_list() == ["u", "v", "v", "v"]
        assert out.null_count().sum_horizontal().item() == 0


# ════════════════════════════════════════════════════════════════════════
# FILTRO
# ════════════════════════════════════════════════════════════════════════


@pytest.mark.unit
class TestFilterWrapper:
    def test_anova_keeps_petal_features(self, iris_task):
        w = FilterWrapper(make_learner("classif.rpart"), abs=2)
        model = w.train(iris_task, seed=1)
        assert model.state["features"] == ("Petal.Length", "Petal.Width")
        assert model.next_model.features == ("Petal.Length", "Petal.Width")
        assert len(w.predict(model, iris_task)) == 150

    def test_perc(self, iris_task):
        w = FilterWrapper(make_learner("classif.rpart"), method="variance", perc=0.5)
        model = w.train(iris_task, seed=1)
        assert len(model.state["features"]) == 2

    def test_keeps_at_least_one_feature(self, iris_task):
        w = FilterWrapper(make_learner("classif.rpart"), perc=0.0)
        assert len(w.train(iris_task, seed=1).state["features"]) == 1

    def test_abs_overrides_perc(self, iris_task):
        w = FilterWrapper(make_learner("classif.rpart"), perc=1.0, abs=1)
        assert len(w.train(iris_task, seed=1).state["features"]) == 1

    def test_mutual_info_regression(self, regr_task):
        w = FilterWrapper(make_learner("regr.lm"), method="mutual.info", abs=3)
        model = w.train(regr_task, seed=1)
        assert len(model.state["features"]) == 3
        assert len(model.state["scores"]) == regr_task.n_features

    def test_ties_keep_column_order(self):
        names = ["a", "b", "c", "d"]
        assert select_features(names, np.ones(4), 0.5, None) == ("a", "b")
        assert select_features(names, np.array([0.0, 2.0, 1.0, 2.0]), 1.0, 2) == ("b", "d")
        assert select_features(names, np.zeros(4), 1.0, 10) == tuple(names)

    def test_filter_rejects_missings(self, missing_task):
        with pytest.raises(CapabilityError):
            FilterWrapper(make_learner("classif.rpart")).train(missing_task)

    def test_impute_then_filter(self, missing_task):
        w = ImputeWrapper(FilterWrapper(make_learner("classif.rpart"), abs=2))
        model = w.train(missing_task, seed=1)
        assert len(w.predict(model, missing_task)) == 150

    def test_tuning_filter_fraction(self, iris_task):
        w = TuneWrapper(
            FilterWrapper(make_learner("classif.rpart")),
            ResampleDesc("CV", iters=3),
            ParamSet(NumericParam("fw.perc", lower=0.25, upper=1.0)),
            TuneControlGrid(resolution=4),
        )
        result = w.train(iris_task, seed=1).tune_result
        assert len(result.opt_path) == 4
        assert not math.isnan(result.y)
