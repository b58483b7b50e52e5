"""
Core building blocks: tasks, parameter sets, learners, measures and resampling.
"""

from .capabilities import Capability
from .chain import (
    get_leaf_learner,
    get_learner_model,
    get_tune_result,
    iter_chain,
    param_routes,
)
from .errors import (
    CapabilityError,
    ConfigurationError,
    MlwrapError,
    StateError,
    TrialFailure,
    TuningError,
)
from .learner import Learner, Model, SklearnLearner, list_learners, make_learner
from .measures import MEASURES, Measure, default_measure, get_measure
from .params import (
    DiscreteParam,
    IntegerParam,
    LogicalParam,
    NumericParam,
    Param,
    ParamSet,
)
from .prediction import Prediction
from .resampling import (
    ResampleDesc,
    ResampleInstance,
    ResampleResult,
    make_resample_desc,
    make_resample_instance,
    resample,
)
from .task import Task, TaskDesc, make_classif_task, make_regr_task

__all__ = [
    # Data
    "Task",
    "TaskDesc",
    "make_classif_task",
    "make_regr_task",
    "Prediction",
    # Parameters
    "Param",
    "IntegerParam",
    "NumericParam",
    "DiscreteParam",
    "LogicalParam",
    "ParamSet",
    # Learners
    "Capability",
    "Learner",
    "Model",
    "SklearnLearner",
    "make_learner",
    "list_learners",
    # Chain helpers
    "iter_chain",
    "get_leaf_learner",
    "param_routes",
    "get_learner_model",
    "get_tune_result",
    # Measures and resampling
    "Measure",
    "MEASURES",
    "get_measure",
    "default_measure",
    "ResampleDesc",
    "ResampleInstance",
    "ResampleResult",
    "make_resample_desc",
    "make_resample_instance",
    "resample",
    # Errors
    "MlwrapError",
    "ConfigurationError",
    "CapabilityError",
    "StateError",
    "TrialFailure",
    "TuningError",
]
