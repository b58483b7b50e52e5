"""
Hyperparameter search: controls that propose assignments and the records a
tuning run leaves behind.
"""

from .control import (
    Proposer,
    TuneControl,
    TuneControlDesign,
    TuneControlGrid,
    TuneControlRandom,
    TuneControlTPE,
)
from .result import OptPath, TrialRecord, TuneResult

__all__ = [
    "Proposer",
    "TuneControl",
    "TuneControlRandom",
    "TuneControlGrid",
    "TuneControlDesign",
    "TuneControlTPE",
    "OptPath",
    "TrialRecord",
    "TuneResult",
]
