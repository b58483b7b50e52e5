"""
Testes de Task: validação, pesos, níveis de classe e tasks derivadas.
"""

import numpy as np
import polars as pl
import pytest

from mlwrap.core import Capability, ConfigurationError, Task, make_classif_task, make_regr_task


@pytest.mark.unit
class TestTaskConstruction:
    def test_iris_shape_and_levels(self, iris_task):
        assert iris_task.n_obs == 150
        assert iris_task.n_features == 4
        assert iris_task.class_levels == ("setosa", "versicolor", "virginica")
        assert iris_task.target == "Species"

    def test_weights_are_read_only(self, iris_task):
        assert not iris_task.weights.flags.writeable
        with pytest.raises(ValueError):
            iris_task.weights[0] = 10.0

    def test_weights_copied_from_input(self):
        w = np.ones(4)
        frame = pl.DataFrame({"x": [1.0, 2.0, 3.0, 4.0], "y": ["a", "b", "a", "b"]})
        task = make_classif_task("t", frame, "y", weights=w)
        w[0] = 99.0
        assert task.weights[0] == 1.0

    @pytest.mark.parametrize(
        "weights",
        [np.ones(3), -np.ones(4), np.zeros(4), np.array([1.0, np.nan, 1.0, 1.0])],
    )
    def test_invalid_weights(self, weights):
        frame = pl.DataFrame({"x": [1.0, 2.0, 3.0, 4.0], "y": ["a", "b", "a", "b"]})
        with pytest.raises(ConfigurationError):
            make_classif_task("t", frame, "y", weights=weights)

    def test_missing_target_column(self):
        with pytest.raises(ConfigurationError, match="alvo"):
            make_classif_task("t", pl.DataFrame({"x": [1.0]}), "y")

    def test_task_without_features(self):
        with pytest.raises(ConfigurationError, match="features"):
            Task("t", "classif", pl.DataFrame({"y": ["a", "b"]}), "y")

    def test_null_target_rejected(self):
        frame = pl.DataFrame({"x": [1.0, 2.0], "y": ["a", None]})
        with pytest.raises(ConfigurationError):
            make_classif_task("t", frame, "y")

    def test_regression_target_must_be_numeric(self):
        frame = pl.DataFrame({"x": [1.0, 2.0], "y": ["a", "b"]})
        with pytest.raises(ConfigurationError):
            make_regr_task("t", frame, "y")

    def test_classif_target_cast_to_strings(self):
        frame = pl.DataFrame({"x": [1.0, 2.0, 3.0], "y": [2, 1, 2]})
        task = make_classif_task("t", frame, "y")
        assert task.class_levels == ("1", "2")


@pytest.mark.unit
class TestTaskDerived:
    def test_subset_keeps_class_levels(self, iris_task):
        sub = iris_task.subset(rows=np.arange(10))
        assert set(sub.y()) == {"setosa"}
        assert sub.class_levels == iris_task.class_levels
        assert len(sub.weights) == 10

    def test_subset_features(self, iris_task):
        sub = iris_task.subset(features=["Petal.Width"])
        assert sub.feature_names == ["Petal.Width"]
        with pytest.raises(ConfigurationError):
            iris_task.subset(features=["nope"])

    def test_drop_weights(self, iris_task):
        assert iris_task.drop_weights().weights is None
        assert Capability.WEIGHTS not in iris_task.drop_weights().requirements()

    def test_requirements(self, iris_task, missing_task, regr_task):
        assert iris_task.requirements() == {
            Capability.NUMERICS,
            Capability.WEIGHTS,
            Capability.MULTICLASS,
        }
        assert Capability.MISSINGS in missing_task.requirements()
        assert regr_task.requirements() == {Capability.NUMERICS}

    def test_factor_features(self):
        frame = pl.DataFrame({"x": [1.0, 2.0], "c": ["u", "v"], "y": ["a", "b"]})
        task = make_classif_task("t", frame, "y")
        assert task.factor_features() == ["c"]
        assert {Capability.FACTORS, Capability.NUMERICS, Capability.TWOCLASS} <= task.requirements()

    def test_desc(self, iris_task):
        desc = iris_task.desc
        assert desc.feature_names == tuple(iris_task.feature_names)
        assert desc.class_levels == iris_task.class_levels

    def test_x_is_float_matrix(self, iris_task):
        x = iris_task.x()
        assert x.shape == (150, 4)
        assert x.dtype == np.float64
