"""
Learner wrappers.

Every wrapper is itself a Learner, so wrappers nest freely:

    tree = make_learner("classif.rpart")
    bagged = BaggingWrapper(tree, iters=100, feats=0.5)
    tuned = TuneWrapper(bagged, ResampleDesc("CV", iters=3), par_set, TuneControlRandom(5))
"""

from .bagging import BaggingModel, BaggingWrapper, bagging_param_set, make_bagging_wrapper
from .base_wrapper import BaseWrapper, WrapperModel
from .filter import FilterModel, FilterWrapper
from .impute import ImputeModel, ImputeWrapper
from .tuning import TuneModel, TuneWrapper, make_tune_wrapper

__all__ = [
    "BaseWrapper",
    "WrapperModel",
    "BaggingWrapper",
    "BaggingModel",
    "bagging_param_set",
    "make_bagging_wrapper",
    "TuneWrapper",
    "TuneModel",
    "make_tune_wrapper",
    "ImputeWrapper",
    "ImputeModel",
    "FilterWrapper",
    "FilterModel",
]
