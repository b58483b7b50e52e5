from .concurrency import (
    BaseExecutor,
    ExecutorFactory,
    Outcome,
    progress_bar,
    run_isolated,
)
from .logger import FORMAT, LOG_DIR, configure_logging, logger, quiet_third_party, timeit

__all__ = [
    "logger",
    "FORMAT",
    "LOG_DIR",
    "configure_logging",
    "quiet_third_party",
    "timeit",
    "progress_bar",
    "BaseExecutor",
    "ExecutorFactory",
    "Outcome",
    "run_isolated",
]
