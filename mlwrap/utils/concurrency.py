from __future__ import annotations

import multiprocessing as mp
import time
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import MutableMapping
from concurrent.futures import FIRST_COMPLETED, Future, ProcessPoolExecutor, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator

import joblib
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn

from mlwrap.config import settings
from mlwrap.utils.logger import logger

Args = tuple[Any, ...]

_stderr = Console(stderr=True)


def progress_bar(
    iterable: Iterable[Any],
    *,
    total: int | None = None,
    desc: str | None = None,
    enabled: bool = True,
) -> Iterator[Any]:
    """
    Yields the items of `iterable`, drawing a Rich bar on stderr.

    Nothing is drawn when `enabled` is false or stderr is not a terminal.
    `total` defaults to ``len(iterable)`` when the iterable has one.
    """
    if total is None and hasattr(iterable, "__len__"):
        total = len(iterable)
    with Progress(
        TextColumn("{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=_stderr,
        disable=not (enabled and _stderr.is_terminal),
        transient=True,
    ) as progress:
        bar = progress.add_task(desc or "mlwrap", total=total)
        for item in iterable:
            yield item
            progress.advance(bar)


class BaseExecutor(ABC):
    max_workers: int = 1

    @abstractmethod
    def map(
        self,
        fn: Callable[..., Any],
        args_list: Iterable[Args],
        *,
        desc: str | None = None,
        **kwargs: Any,
    ) -> list[Any]: ...

    @abstractmethod
    def submit(self, fn: Callable[..., Any], *args: Any) -> Future: ...

    @abstractmethod
    def shutdown(self) -> None: ...

    def start_registry(self) -> MutableMapping[int, float]:
        """Mapping the workers fill with the wall-clock start of each unit."""
        return {}

    def restart(self) -> None:
        """Replaces the worker pool; units still running in the old one are abandoned."""

    def __enter__(self) -> BaseExecutor:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.shutdown()


class SequentialExecutor(BaseExecutor):
    """Runs every unit in the calling thread, in submission order."""

    def map(
        self, fn: Callable[..., Any], args_list: Iterable[Args], *, desc: str | None = None, **kwargs: Any
    ) -> list[Any]:
        return [
            fn(*args)
            for args in progress_bar(args_list, desc=desc, enabled=bool(desc) and settings.SHOW_PROGRESS)
        ]

    def submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        fut: Future = Future()
        try:
            fut.set_result(fn(*args))
        except Exception as exc:  # noqa: BLE001
            fut.set_exception(exc)
        return fut

    def shutdown(self) -> None:
        pass


class ThreadExecutor(BaseExecutor):
    def __init__(self, max_workers: int | None = None):
        self.max_workers = max_workers or 1
        self._pool = ThreadPoolExecutor(max_workers=self.max_workers)

    def restart(self) -> None:
        old, self._pool = self._pool, ThreadPoolExecutor(max_workers=self.max_workers)
        old.shutdown(wait=False, cancel_futures=True)

    def map(
        self, fn: Callable[..., Any], args_list: Iterable[Args], *, desc: str | None = None, **kwargs: Any
    ) -> list[Any]:
        futures = [self._pool.submit(fn, *args) for args in args_list]
        results: list[Any] = []
        for fut in progress_bar(
            futures, total=len(futures), desc=desc, enabled=bool(desc) and settings.SHOW_PROGRESS
        ):
            results.append(fut.result())
        return results

    def submit(self, fn, *args):
        return self._pool.submit(fn, *args)

    def shutdown(self):
        self._pool.shutdown(wait=True)


class ProcessExecutor(BaseExecutor):
    def __init__(self, max_workers: int | None = None):
        self._ctx = mp.get_context("spawn")
        self.max_workers = max_workers or 1
        self._pool = ProcessPoolExecutor(max_workers=self.max_workers, mp_context=self._ctx)
        self._manager = None

    def start_registry(self) -> MutableMapping[int, float]:
        # workers vivem em outros processos: o mapa é um proxy do manager
        if self._manager is None:
            self._manager = self._ctx.Manager()
        return self._manager.dict()

    def restart(self) -> None:
        old = self._pool
        self._pool = ProcessPoolExecutor(max_workers=self.max_workers, mp_context=self._ctx)
        old.shutdown(wait=False, cancel_futures=True)

    def map(
        self, fn: Callable[..., Any], args_list: Iterable[Args], *, desc: str | None = None, **kwargs: Any
    ) -> list[Any]:
        futures = [self._pool.submit(fn, *args) for args in args_list]
        return [
            fut.result()
            for fut in progress_bar(
                futures, total=len(futures), desc=desc, enabled=bool(desc) and settings.SHOW_PROGRESS
            )
        ]

    def submit(self, fn, *args):
        return self._pool.submit(fn, *args)

    def shutdown(self):
        self._pool.shutdown(wait=True)
        if self._manager is not None:
            self._manager.shutdown()
            self._manager = None


class JoblibExecutor(BaseExecutor):
    """
    Executor baseado em Joblib (loky). Não suporta `submit` assíncrono.
    """

    def __init__(self, n_jobs: int | None = None):
        self.n_jobs = n_jobs or joblib.cpu_count()
        self.max_workers = self.n_jobs

    def map(
        self,
        fn: Callable[..., Any],
        args_list: Iterable[Args],
        *,
        desc: str | None = None,
        **kwargs: Any,
    ) -> list[Any]:
        return list(
            joblib.Parallel(n_jobs=self.n_jobs)(
                joblib.delayed(fn)(*args)
                for args in progress_bar(args_list, desc=desc, enabled=bool(desc) and settings.SHOW_PROGRESS)
            )
        )

    def submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        raise NotImplementedError(
            "JoblibExecutor does not support asynchronous 'submit'."
        )

    def shutdown(self):
        pass


class ExecutorFactory:
    @staticmethod
    def create(kind: str | None = None, max_workers: int | None = None) -> BaseExecutor:
        k = (kind or settings.EXECUTOR).lower()
        workers = max_workers or settings.N_JOBS
        if k == "sequential" or (workers == 1 and k != "joblib"):
            return SequentialExecutor()
        if k == "thread":
            return ThreadExecutor(max_workers=workers)
        if k == "process":
            return ProcessExecutor(max_workers=workers)
        if k == "joblib":
            return JoblibExecutor(n_jobs=workers)
        raise ValueError(f"Executor desconhecido: {kind}")


# ══════════════════════════════════════════════════════════════════════════
# ISOLATED EXECUTION
# ══════════════════════════════════════════════════════════════════════════


@dataclass
class Outcome:
    """Result of one isolated unit of work: either a value or the error it raised."""

    index: int
    value: Any = None
    error: BaseException | None = None
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


def _call_captured(
    fn: Callable[..., Any],
    args: Args,
    started: MutableMapping[int, float] | None = None,
    index: int = 0,
) -> tuple[Any, BaseException | None, float]:
    if started is not None:
        started[index] = time.time()
    t0 = time.perf_counter()
    try:
        return fn(*args), None, time.perf_counter() - t0
    except Exception as exc:  # noqa: BLE001
        return None, exc, time.perf_counter() - t0


# intervalo de polling enquanto há unidades submetidas que ainda não começaram
_POLL = 0.05


def _next_wakeup(
    running: dict[Future, int], started: MutableMapping[int, float], timeout: float
) -> float:
    deadlines = [started[idx] + timeout for idx in running.values() if idx in started]
    wake = _POLL if len(deadlines) < len(running) else timeout
    if deadlines:
        wake = min(wake, max(0.0, min(deadlines) - time.time()))
    return wake


def _run_pooled(
    executor: ThreadExecutor | ProcessExecutor,
    fn: Callable[..., Any],
    args_list: list[Args],
    timeout: float | None,
    first_index: int,
) -> list[Outcome]:
    started = executor.start_registry() if timeout is not None else None
    queue = deque(enumerate(args_list, start=first_index))
    running: dict[Future, int] = {}
    outcomes: dict[int, Outcome] = {}

    while queue or running:
        # no máximo uma unidade por worker: nenhuma espera na fila do pool
        while queue and len(running) < executor.max_workers:
            idx, args = queue.popleft()
            running[executor.submit(_call_captured, fn, args, started, idx)] = idx

        wake = None if started is None else _next_wakeup(running, started, timeout)
        done, _ = wait(running, timeout=wake, return_when=FIRST_COMPLETED)
        for fut in done:
            idx = running.pop(fut)
            value, error, elapsed = fut.result()
            outcomes[idx] = Outcome(idx, value, error, elapsed)
        if started is None:
            continue

        now = time.time()
        expired = [
            fut
            for fut, idx in running.items()
            if not fut.done() and idx in started and now - started[idx] >= timeout
        ]
        for fut in expired:
            idx = running.pop(fut)
            fut.cancel()
            error = TimeoutError(f"unidade {idx} excedeu o prazo de {timeout}s")
            outcomes[idx] = Outcome(idx, None, error, now - started[idx])
        if expired:
            logger.warning(f"⏱️ {len(expired)} unidade(s) abandonada(s) por prazo; recriando o pool")
            executor.restart()

    return [outcomes[idx] for idx in sorted(outcomes)]


def run_isolated(
    executor: BaseExecutor,
    fn: Callable[..., Any],
    args_list: Iterable[Args],
    *,
    timeout: float | None = None,
    desc: str | None = None,
    first_index: int = 0,
) -> list[Outcome]:
    """
    Run `fn` over `args_list` so that a failing unit never aborts its siblings.

    Returns only after every unit has finished, failed or exceeded its
    deadline, one `Outcome` per unit in submission order, indexed from
    `first_index`. On thread and process pools the deadline runs from the
    moment a worker starts the unit; a unit past its deadline is abandoned
    and the pool is replaced, so later units never queue behind it. On the
    sequential and joblib executors the deadline is checked after the unit
    returns.
    """
    args_list = list(args_list)

    if isinstance(executor, (ThreadExecutor, ProcessExecutor)):
        outcomes = _run_pooled(executor, fn, args_list, timeout, first_index)
    else:
        outcomes = []
        raw = executor.map(_call_captured, [(fn, args) for args in args_list], desc=desc)
        for idx, (value, error, elapsed) in enumerate(raw, start=first_index):
            if error is None and timeout is not None and elapsed > timeout:
                error = TimeoutError(
                    f"unidade {idx} excedeu o prazo de {timeout}s ({elapsed:.2f}s)"
                )
                value = None
            outcomes.append(Outcome(idx, value, error, elapsed))

    failed = sum(1 for o in outcomes if not o.ok)
    if failed:
        logger.debug(f"{failed}/{len(outcomes)} unidades falharam")
    return outcomes


__all__ = [
    "progress_bar",
    "BaseExecutor",
    "SequentialExecutor",
    "ThreadExecutor",
    "ProcessExecutor",
    "JoblibExecutor",
    "ExecutorFactory",
    "Outcome",
    "run_isolated",
]
