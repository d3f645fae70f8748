"""Bounded-time execution of a single trial body.

Every call gets its own worker thread (no pooling), so a stuck trial can only
ever block the thread it was given. The caller waits at most ``timeout``
seconds; on overrun it requests cancellation and walks away.

Cancellation is best effort. The worker's cancel event is set (bodies may poll
:func:`cancellation_requested`) and ``TrialCancelled`` is raised asynchronously
in the worker thread. Code blocked inside a C call (``time.sleep``, a native
solver) only sees the exception once control returns to the interpreter, and
a body that never returns leaks its daemon thread until the process exits.
"""

from __future__ import annotations

import ctypes
import logging
import threading
import time
from typing import Any, Callable

from evalharness.errors import TrialCancelled
from evalharness.outcome import Failure, Outcome, Success, Timeout

logger = logging.getLogger("evalharness.executor")

_local = threading.local()


def cancellation_requested() -> bool:
    """True when the trial running on the current thread has been abandoned."""
    event = getattr(_local, "cancel_event", None)
    return event is not None and event.is_set()


def normalize_timeout(timeout: float | None) -> float | None:
    """``None`` and non-positive values mean unbounded."""
    if timeout is None or timeout <= 0:
        return None
    return float(timeout)


def timeout_from_ms(timeout_ms: int | None) -> float | None:
    if timeout_ms is None or timeout_ms <= 0:
        return None
    return timeout_ms / 1000.0


class _TrialWorker:
    def __init__(self, body: Callable[[], Any]):
        self.body = body
        self.done = threading.Event()
        self.cancel = threading.Event()
        self.value: Any = None
        self.error: BaseException | None = None
        self.finished = 0.0

    def run(self) -> None:
        _local.cancel_event = self.cancel
        try:
            try:
                self.value = self.body()
            except TrialCancelled:
                logger.debug("Abandoned worker %s stopped", threading.current_thread().name)
            except BaseException as exc:  # noqa: BLE001 - recorded as Failure
                self.error = exc
            finally:
                self.finished = time.perf_counter()
                self.done.set()
        except TrialCancelled:
            logger.debug("Cancellation arrived after %s finished", threading.current_thread().name)


def _interrupt(thread: threading.Thread) -> bool:
    ident = thread.ident
    if ident is None or not thread.is_alive():
        return False
    modified = ctypes.pythonapi.PyThreadState_SetAsyncExc(
        ctypes.c_ulong(ident), ctypes.py_object(TrialCancelled)
    )
    if modified > 1:
        # More than one thread state touched; undo.
        ctypes.pythonapi.PyThreadState_SetAsyncExc(ctypes.c_ulong(ident), None)
        return False
    return modified == 1


def run_with_timeout(
    body: Callable[[], Any],
    timeout: float | None = None,
    name: str = "trial-worker",
) -> Outcome:
    """Run ``body`` on a fresh worker thread and wait at most ``timeout`` seconds.

    Args:
        body: Zero-argument trial body.
        timeout: Seconds; ``None`` or ``<= 0`` waits indefinitely.
        name: Worker thread name (shows up in logs).

    Returns:
        Exactly one of ``Success(value, elapsed)``, ``Timeout()`` or
        ``Failure(error, elapsed)``. A body that outlives ``timeout`` is
        always reported as ``Timeout`` even if it completes while the caller
        is waking up.
    """
    limit = normalize_timeout(timeout)
    worker = _TrialWorker(body)
    thread = threading.Thread(target=worker.run, name=name, daemon=True)
    start = time.perf_counter()
    thread.start()
    finished = worker.done.wait(limit)
    if finished and (limit is None or worker.finished - start <= limit):
        elapsed = worker.finished - start
        if worker.error is not None:
            logger.error(
                "Trial %s failed after %.3fs: %s",
                name,
                elapsed,
                worker.error,
                exc_info=(type(worker.error), worker.error, worker.error.__traceback__),
            )
            return Failure(worker.error, elapsed)
        return Success(worker.value, elapsed)

    worker.cancel.set()
    interrupted = _interrupt(thread)
    logger.warning(
        "Trial %s exceeded timeout of %.3fs (interrupt delivered: %s)",
        name,
        limit,
        interrupted,
    )
    return Timeout()


class BoundedExecutor:
    """Callable wrapper around :func:`run_with_timeout` with a fixed timeout."""

    def __init__(self, timeout: float | None = None):
        self.timeout = normalize_timeout(timeout)
        self.calls = 0

    @classmethod
    def from_ms(cls, timeout_ms: int | None) -> "BoundedExecutor":
        return cls(timeout_from_ms(timeout_ms))

    def __call__(self, body: Callable[[], Any], name: str | None = None) -> Outcome:
        self.calls += 1
        return run_with_timeout(body, self.timeout, name=name or f"trial-{self.calls}")
