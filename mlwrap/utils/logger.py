"""
Loguru logger shared by every mlwrap module.

The console sink goes through Rich unless ``DISABLE_RICH`` is set; a daily
rotating file under ``settings.LOGS_DIR`` receives DEBUG and above when
``LOG_TO_FILE`` is on. Records carry an ``extra[learner]`` field, bound with
``logger.contextualize(learner=...)`` while a learner trains or predicts, so
nested wrappers can be told apart in the output.
"""

from __future__ import annotations

import contextlib
import logging
import sys
import time
from functools import wraps
from pathlib import Path
from typing import Callable, ParamSpec, TypeVar

import optuna
from loguru import logger
from rich.logging import RichHandler

from mlwrap.config import settings

FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level:<7}</level> | "
    "<magenta>{extra[learner]:<28}</magenta> | "
    "<cyan>{name}:{line}</cyan> - "
    "<level>{message}</level>"
)
LOG_DIR: Path = settings.LOGS_DIR.expanduser()

# bibliotecas que falam pelo logging padrão
_NOISY = ("optuna", "sklearn", "joblib", "matplotlib")

# sinks instalados por configure_logging; sinks do host não são tocados
_HANDLERS: list[int] = []


def _with_learner(record) -> bool:
    record["extra"].setdefault("learner", "-")
    return True


def configure_logging(
    level: str | None = None,
    to_file: bool | None = None,
    rich: bool | None = None,
) -> list[int]:
    """
    (Re)installs the sinks and returns their loguru handler ids.

    Arguments left as ``None`` fall back to ``LOG_LEVEL``, ``LOG_TO_FILE``
    and ``not DISABLE_RICH`` from the settings.
    """
    level = (level or settings.LOG_LEVEL).upper()
    to_file = settings.LOG_TO_FILE if to_file is None else to_file
    rich = (not settings.DISABLE_RICH) if rich is None else rich

    while _HANDLERS:
        logger.remove(_HANDLERS.pop())
    # handler padrão do loguru (id 0), se ainda existir
    with contextlib.suppress(ValueError):
        logger.remove(0)

    ids = []
    if rich:
        handler = RichHandler(rich_tracebacks=True, markup=False, show_path=False)
        ids.append(
            logger.add(
                handler, level=level, format="[{extra[learner]}] {message}", filter=_with_learner
            )
        )
    else:
        ids.append(
            logger.add(sys.stderr, level=level, format=FORMAT, colorize=True, filter=_with_learner)
        )

    if to_file:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        ids.append(
            logger.add(
                LOG_DIR / "mlwrap_{time:YYYY-MM-DD}.log",
                level="DEBUG",
                format=FORMAT,
                rotation="00:00",
                retention="14 days",
                compression="zip",
                enqueue=True,
                filter=_with_learner,
            )
        )
    _HANDLERS.extend(ids)
    quiet_third_party("WARNING" if level in ("TRACE", "DEBUG") else "ERROR")
    return ids


def quiet_third_party(level: str = "WARNING") -> None:
    """Raises the stdlib-logging threshold of the chatty dependencies."""
    lvl = logging.getLevelName(level.upper())
    for name in _NOISY:
        logging.getLogger(name).setLevel(lvl)
    optuna.logging.set_verbosity(lvl)


P = ParamSpec("P")
R = TypeVar("R")


def timeit(fn: Callable[P, R]) -> Callable[P, R]:
    """Logs the wall time of each call of ``fn`` at DEBUG."""

    @wraps(fn)
    def _timed(*args: P.args, **kwargs: P.kwargs) -> R:
        start = time.perf_counter()
        try:
            return fn(*args, **kwargs)
        finally:
            elapsed = time.perf_counter() - start
            logger.debug(f"⏱️ {fn.__qualname__}: {elapsed:.2f}s")

    return _timed


configure_logging()

__all__ = ["logger", "configure_logging", "quiet_third_party", "timeit", "FORMAT", "LOG_DIR"]
