"""
Sequential pipeline stage in front of the reducer.

Events are buffered in a bounded queue and reduced one at a time by a
single worker thread, in submission order. ``submit`` blocks while the queue
is full, which pushes back on whatever is producing events.

The first event that fails halts the pipeline: the failed event and every
event queued behind it are left unapplied, and further submissions raise
PipelineHaltedError. The caller decides whether to rebuild and retry from
the failed event.
"""

import queue
import threading
from typing import Iterable, Optional

import structlog

from indexer.models.events import ChainEvent
from indexer.models.results import ReductionResult

from .reducer import EventReducer

logger = structlog.get_logger()

_STOP = object()


class PipelineHaltedError(Exception):
    """The pipeline stopped after an event failed to reduce."""

    def __init__(self, message: str, failed_event: Optional[ChainEvent] = None):
        super().__init__(message)
        self.failed_event = failed_event


class EventPipeline:
    """
    Bounded, single-consumer event stage.

    Attributes:
        reducer: Reducer every event is handed to
        maxsize: Queue capacity

    Example:
        >>> with EventPipeline(reducer) as pipeline:
        ...     for event in events:
        ...         pipeline.submit(event)
        ...     pipeline.drain()
        >>> pipeline.results
    """

    def __init__(self, reducer: EventReducer, maxsize: Optional[int] = None):
        self.reducer = reducer
        self.maxsize = maxsize or reducer.settings.pipeline_queue_size

        self._queue: queue.Queue = queue.Queue(maxsize=self.maxsize)
        self._results: list[ReductionResult] = []
        self._results_lock = threading.Lock()
        self._halted = threading.Event()
        self._error: Optional[BaseException] = None
        self._failed_event: Optional[ChainEvent] = None
        self._worker: Optional[threading.Thread] = None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        if self._worker is not None:
            return
        self._worker = threading.Thread(target=self._run, name="event-reducer", daemon=True)
        self._worker.start()
        logger.info("pipeline_started", maxsize=self.maxsize)

    def close(self) -> None:
        """Stop the worker once everything already queued is handled."""
        if self._worker is None:
            return
        self._queue.put(_STOP)
        self._worker.join()
        self._worker = None
        logger.info("pipeline_stopped", processed=len(self._results), halted=self.halted)

    def __enter__(self) -> "EventPipeline":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # =========================================================================
    # Producer side
    # =========================================================================

    def submit(self, event: ChainEvent, timeout: Optional[float] = None) -> None:
        """
        Queue an event, blocking while the queue is full.

        Raises:
            PipelineHaltedError: If an earlier event failed
            queue.Full: If ``timeout`` elapses first
        """
        self._raise_if_halted()
        if self._worker is None:
            self.start()
        self._queue.put(event, timeout=timeout)

    def drain(self) -> list[ReductionResult]:
        """
        Wait until every queued event has been handled.

        Returns:
            Results of all events reduced so far

        Raises:
            PipelineHaltedError: If an event failed
        """
        self._queue.join()
        self._raise_if_halted()
        return self.results

    def run(self, events: Iterable[ChainEvent]) -> list[ReductionResult]:
        """Submit every event, wait for completion and stop the worker."""
        with self:
            for event in events:
                self.submit(event)
            return self.drain()

    @property
    def halted(self) -> bool:
        return self._halted.is_set()

    @property
    def results(self) -> list[ReductionResult]:
        with self._results_lock:
            return list(self._results)

    def _raise_if_halted(self) -> None:
        if not self._halted.is_set():
            return
        failed = self._failed_event
        message = f"pipeline halted at event {failed.event_id if failed else 'unknown'}: {self._error}"
        raise PipelineHaltedError(message, failed_event=failed) from self._error

    # =========================================================================
    # Worker
    # =========================================================================

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                if self._halted.is_set():
                    # Events behind a failure stay unapplied
                    continue
                result = self.reducer.apply(item)
                with self._results_lock:
                    self._results.append(result)
            except Exception as e:
                self._error = e
                self._failed_event = item
                self._halted.set()
                logger.error(
                    "pipeline_halted",
                    event_id=item.event_id,
                    kind=item.event_kind.value,
                    error=str(e),
                )
            finally:
                self._queue.task_done()
