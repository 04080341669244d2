"""
Bounded query dispatch and deadline enforcement.

:class:`BoundedDispatcher` runs units of work on a fixed thread pool behind
an admission limit of ``max_workers + queue_size``.  When both the pool and
the queue are full, :meth:`BoundedDispatcher.submit` blocks the producer
until a slot frees up, so work is never dropped and memory never grows
without bound.

:class:`TimedExecution` waits for one unit of work with an optional deadline
and always reports an :class:`~rdfqa.models.ExecutionResult`; it never
raises for a failing query.

Usage:
    from rdfqa.dispatcher import BoundedDispatcher, TimedExecution

    with BoundedDispatcher(max_workers=8) as dispatcher:
        timed = TimedExecution(dispatcher)
        result = timed.run(runner, timeout_ms=5000)
        if result.outcome is ExecutionOutcome.TIMED_OUT:
            ...
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, Protocol

from rdfqa.errors import MalformedQueryError, QueryTimeoutError
from rdfqa.models import ExecutionOutcome, ExecutionResult, Row

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_MAX_WORKERS",
    "BoundedDispatcher",
    "TimedExecution",
    "UnitOfWork",
]

DEFAULT_MAX_WORKERS = 50


class UnitOfWork(Protocol):
    """What :class:`TimedExecution` needs from a query runner."""

    query: str

    def execute(self) -> list[Row]: ...

    def close(self) -> None: ...


class BoundedDispatcher:
    """
    Fixed-size worker pool with a bounded admission queue.

    Attributes:
        max_workers: Number of worker threads
        queue_size: Number of admitted units allowed to wait for a worker
    """

    def __init__(
        self,
        max_workers: int = DEFAULT_MAX_WORKERS,
        queue_size: int | None = None,
        *,
        thread_name_prefix: str = "rdfqa-worker",
    ) -> None:
        """
        Initialize the dispatcher.

        Args:
            max_workers: Worker thread count (default: 50)
            queue_size: Waiting slots; defaults to ``max_workers``
            thread_name_prefix: Prefix for worker thread names
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be positive, got {max_workers}")
        if queue_size is None:
            queue_size = max_workers
        if queue_size < 0:
            raise ValueError(f"queue_size must not be negative, got {queue_size}")

        self.max_workers = max_workers
        self.queue_size = queue_size
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix=thread_name_prefix
        )
        self._permits = threading.BoundedSemaphore(max_workers + queue_size)
        self._lock = threading.Lock()
        self._in_flight = 0

        logger.debug(
            f"BoundedDispatcher initialized: {max_workers} workers, {queue_size} queue slots"
        )

    @property
    def capacity(self) -> int:
        """Units that can be admitted before :meth:`submit` blocks."""
        return self.max_workers + self.queue_size

    @property
    def in_flight(self) -> int:
        """Units admitted and not yet finished (running or queued)."""
        with self._lock:
            return self._in_flight

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        """
        Admit *fn* for execution, blocking while the dispatcher is saturated.

        Returns:
            Future for the call's result
        """
        if not self._permits.acquire(blocking=False):
            logger.debug("Dispatcher saturated, waiting for a free slot")
            self._permits.acquire()

        with self._lock:
            self._in_flight += 1
        try:
            future = self._executor.submit(fn, *args, **kwargs)
        except BaseException:
            self._release()
            raise
        future.add_done_callback(lambda _: self._release())
        return future

    def _release(self) -> None:
        with self._lock:
            self._in_flight -= 1
        self._permits.release()

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work and release the worker threads."""
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> BoundedDispatcher:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.shutdown()

    def __repr__(self) -> str:
        return (
            f"BoundedDispatcher(max_workers={self.max_workers}, "
            f"queue_size={self.queue_size})"
        )


class TimedExecution:
    """Run units of work on a dispatcher with a per-query deadline."""

    def __init__(self, dispatcher: BoundedDispatcher) -> None:
        self.dispatcher = dispatcher

    def run(self, unit: UnitOfWork, timeout_ms: int | None = 0) -> ExecutionResult:
        """
        Execute *unit* and wait at most *timeout_ms* for its rows.

        A zero or missing deadline waits until the unit finishes.  On expiry
        the caller gets a ``TIMED_OUT`` result with no rows; the unit may keep
        running in its worker, and whatever it returns later is discarded.
        Any error raised by the unit gives a ``FAILED`` result with no rows.
        ``unit.close()`` is called exactly once, whatever the outcome.

        Args:
            unit: Query runner exposing ``execute()`` and ``close()``
            timeout_ms: Deadline in milliseconds (0 or None = unbounded)

        Returns:
            ExecutionResult tagged with the outcome
        """
        query = getattr(unit, "query", "")
        t0 = time.monotonic()
        future: Future | None = None
        rows: list[Row] = []
        error: BaseException | None = None

        try:
            future = self.dispatcher.submit(unit.execute)
            if timeout_ms and timeout_ms > 0:
                rows = future.result(timeout=timeout_ms / 1000)
            else:
                rows = future.result()
            outcome = ExecutionOutcome.COMPLETED
        except FutureTimeoutError as e:
            if _raised_by_unit(future, e):
                outcome = ExecutionOutcome.FAILED
                error = e
                logger.warning(f"Query failed: {e!r}: {query}")
            else:
                outcome = ExecutionOutcome.TIMED_OUT
                error = QueryTimeoutError(f"Query exceeded {timeout_ms} ms")
                logger.warning(f"Timeout query: {timeout_ms}: {query}")
                # Still queued: never start it.
                future.cancel()
                if not getattr(unit, "supports_cancellation", True):
                    logger.debug("Backend cannot cancel in-flight work; it may keep running")
        except MalformedQueryError as e:
            outcome = ExecutionOutcome.FAILED
            error = e
            logger.info(f"Malformed query skipped: {e}")
        except Exception as e:
            outcome = ExecutionOutcome.FAILED
            error = e
            logger.warning(f"Query failed: {e}: {query}")
        finally:
            self._cleanup(unit)

        duration_ms = int((time.monotonic() - t0) * 1000)
        return ExecutionResult(
            query=query,
            outcome=outcome,
            rows=list(rows) if outcome is ExecutionOutcome.COMPLETED else [],
            duration_ms=duration_ms,
            error=error,
        )

    @staticmethod
    def _cleanup(unit: UnitOfWork) -> None:
        try:
            unit.close()
        except Exception as e:
            logger.debug(f"Ignoring error while releasing query resources: {e}")


def _raised_by_unit(future: Future | None, error: BaseException) -> bool:
    """Whether *error* is a ``TimeoutError`` the unit raised rather than the deadline."""
    if future is None or not future.done() or future.cancelled():
        return False
    return future.exception() is error
