from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _version

from .config import settings
from .core import (
    CapabilityError,
    ConfigurationError,
    Learner,
    Model,
    ParamSet,
    Prediction,
    ResampleDesc,
    StateError,
    Task,
    TrialFailure,
    TuningError,
    make_classif_task,
    make_learner,
    make_regr_task,
    resample,
)
from .tuning import TuneControlDesign, TuneControlGrid, TuneControlRandom, TuneControlTPE
from .wrappers import BaggingWrapper, FilterWrapper, ImputeWrapper, TuneWrapper

"""
mlwrap – Composable learner wrappers
====================================

Base learners share one train/predict contract; wrappers (bagging, tuning,
imputation, feature filtering) implement the same contract around an inner
learner, so they stack into arbitrarily deep chains.

Public objects
--------------
__version__ : str
    Semantic version string, filled at build time.
"""

__all__ = [
    "__version__",
    "settings",
    "Task",
    "make_classif_task",
    "make_regr_task",
    "ParamSet",
    "Learner",
    "Model",
    "Prediction",
    "make_learner",
    "ResampleDesc",
    "resample",
    "BaggingWrapper",
    "TuneWrapper",
    "ImputeWrapper",
    "FilterWrapper",
    "TuneControlRandom",
    "TuneControlGrid",
    "TuneControlDesign",
    "TuneControlTPE",
    "ConfigurationError",
    "CapabilityError",
    "StateError",
    "TrialFailure",
    "TuningError",
]

try:
    __version__: str = _version("mlwrap")
except PackageNotFoundError:
    __version__ = "0.1.0"
