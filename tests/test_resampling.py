"""
Testes de resampling: geração de partições e avaliação repetida.
"""

import numpy as np
import pytest

from mlwrap.core import (
    CapabilityError,
    ConfigurationError,
    ResampleDesc,
    make_learner,
    make_resample_desc,
    make_resample_instance,
    resample,
)
from mlwrap.core.resampling import aggregated_score
from mlwrap.core.measures import acc, mmce


@pytest.mark.unit
class TestResampleInstance:
    def test_cv_partitions_all_rows(self, iris_task):
        inst = make_resample_instance(ResampleDesc("CV", iters=3), iris_task, seed=1)
        assert inst.iters == 3
        test_rows = np.sort(np.concatenate(inst.test_inds))
        np.testing.assert_array_equal(test_rows, np.arange(150))
        for tr, te in zip(inst.train_inds, inst.test_inds):
            assert not set(tr) & set(te)

    def test_stratified_cv(self, iris_task):
        inst = make_resample_instance(ResampleDesc("CV", iters=5, stratify=True), iris_task, seed=1)
        y = iris_task.y()
        for te in inst.test_inds:
            _, counts = np.unique(y[te], return_counts=True)
            assert list(counts) == [10, 10, 10]

    def test_holdout(self, iris_task):
        inst = make_resample_instance(make_resample_desc("Holdout"), iris_task, seed=1)
        assert inst.iters == 1
        assert len(inst.train_inds[0]) == 100
        assert len(inst.test_inds[0]) == 50

    def test_bootstrap_out_of_bag(self, iris_task):
        inst = make_resample_instance(ResampleDesc("Bootstrap", iters=4), iris_task, seed=1)
        for tr, te in zip(inst.train_inds, inst.test_inds):
            assert len(tr) == 150
            assert not set(tr) & set(te)

    def test_same_seed_same_instance(self, iris_task):
        a = make_resample_instance(ResampleDesc("CV", iters=3), iris_task, seed=5)
        b = make_resample_instance(ResampleDesc("CV", iters=3), iris_task, seed=5)
        for x, y in zip(a.test_inds, b.test_inds):
            np.testing.assert_array_equal(x, y)

    @pytest.mark.parametrize(
        "kwargs",
        [dict(method="CV", iters=1), dict(method="Holdout", split=1.5), dict(method="Jackknife")],
    )
    def test_invalid_desc(self, kwargs):
        with pytest.raises(ConfigurationError):
            ResampleDesc(**kwargs)


@pytest.mark.unit
class TestResample:
    def test_resample_scores(self, iris_task):
        res = resample(make_learner("classif.rpart"), iris_task, ResampleDesc("CV", iters=3), [mmce, acc], seed=1)
        assert res.measures_test.height == 3
        assert set(res.aggr) == {"mmce.test.mean", "acc.test.mean"}
        assert aggregated_score(res, mmce) == pytest.approx(1 - aggregated_score(res, acc))

    def test_median_aggregation(self, iris_task):
        res = resample(
            make_learner("classif.rpart"), iris_task, ResampleDesc("CV", iters=3), seed=1, aggregation="median"
        )
        assert "mmce.test.median" in res.aggr
        assert aggregated_score(res, mmce) == res.aggr["mmce.test.median"]

    def test_keep_models_and_predictions(self, iris_task):
        res = resample(
            make_learner("classif.rpart"),
            iris_task,
            ResampleDesc("CV", iters=3),
            seed=1,
            keep_models=True,
            keep_predictions=True,
        )
        assert len(res.models) == 3
        assert sum(len(p) for p in res.predictions) == 150

    def test_instance_size_mismatch(self, iris_task, regr_task):
        inst = make_resample_instance(ResampleDesc("CV", iters=3), regr_task, seed=1)
        with pytest.raises(ConfigurationError):
            resample(make_learner("classif.rpart"), iris_task, inst)

    def test_errors_propagate(self, iris_task):
        with pytest.raises(CapabilityError):
            resample(make_learner("classif.knn"), iris_task, ResampleDesc("CV", iters=3))
