"""
The trial executor contract and an in-process, thread-based implementation.

An executor starts child runs and pushes their progress back through an event
sink. The scheduler is the sink; executors never touch scheduler state.
"""
from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, Optional

from .core.trial import TrialStatus
from .exceptions import TrialCancelled

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrialContext:
    """Everything an executor needs to know about the trial it starts."""
    run_id: str
    trial_id: int
    primary_metric_name: str
    configuration: Dict[str, Any] = field(default_factory=dict)


class TrialEventSink(ABC):
    """Receives progress of dispatched trials. Implementations must be thread-safe."""

    @abstractmethod
    def on_metric(self, handle: Hashable, interval: int, value: float) -> None:
        pass

    @abstractmethod
    def on_finished(self, handle: Hashable, status: TrialStatus, error: Optional[str] = None) -> None:
        pass


class TrialExecutor(ABC):
    """
    Abstract base class for trial executors.

    Executors are bound to an event sink before the first dispatch. They must
    deliver the metric reports of a single trial in the order they were
    emitted, and emit exactly one ``on_finished`` per trial.
    """

    sink: Optional[TrialEventSink] = None

    def bind(self, sink: TrialEventSink) -> None:
        self.sink = sink

    @abstractmethod
    def dispatch(self, context: TrialContext) -> Hashable:
        """
        Starts a trial and returns a handle identifying it in later events.
        """
        pass

    @abstractmethod
    def cancel(self, handle: Hashable) -> None:
        """
        Asks the trial to stop. Must not block waiting for it to do so.
        """
        pass

    def shutdown(self, wait: bool = True) -> None:
        pass


class Reporter:
    """
    Passed to a training function so it can report its primary metric.

    Intervals count from 1 and advance by one per report unless given
    explicitly.
    """
    def __init__(self, context: TrialContext, handle: Hashable, sink: TrialEventSink,
                 cancel_event: threading.Event):
        self.context = context
        self._handle = handle
        self._sink = sink
        self._cancel_event = cancel_event
        self._interval = 0

    @property
    def configuration(self) -> Dict[str, Any]:
        return self.context.configuration

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def report(self, value: float, interval: Optional[int] = None) -> None:
        """
        Reports the primary metric.

        Raises:
            TrialCancelled: if the scheduler has cancelled this trial.
        """
        if self.cancelled:
            raise TrialCancelled(f"Trial {self.context.trial_id} was cancelled")
        self._interval = self._interval + 1 if interval is None else int(interval)
        self._sink.on_metric(self._handle, self._interval, float(value))


TrainFunction = Callable[[Dict[str, Any], Reporter], Any]


class LocalTrialExecutor(TrialExecutor):
    """
    Runs ``train_fn(configuration, reporter)`` for each trial on a thread pool.

    A trial completes when ``train_fn`` returns, fails when it raises, and is
    acknowledged as cancelled when it raises :class:`TrialCancelled` (which
    ``reporter.report`` does after cancellation) or returns after it.
    """
    def __init__(self, train_fn: TrainFunction, max_workers: Optional[int] = None):
        self.train_fn = train_fn
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="hyperdrive-trial")
        self._cancel_events: Dict[Hashable, threading.Event] = {}
        self._lock = threading.Lock()

    def dispatch(self, context: TrialContext) -> Hashable:
        if self.sink is None:
            raise RuntimeError("Executor must be bound to an event sink before dispatching")
        handle = context.trial_id
        event = threading.Event()
        with self._lock:
            self._cancel_events[handle] = event
        self._pool.submit(self._run, context, handle, event)
        return handle

    def _run(self, context: TrialContext, handle: Hashable, cancel_event: threading.Event):
        reporter = Reporter(context, handle, self.sink, cancel_event)
        status, error = TrialStatus.COMPLETED, None
        try:
            self.train_fn(dict(context.configuration), reporter)
            if cancel_event.is_set():
                status = TrialStatus.CANCELLED
        except TrialCancelled:
            status = TrialStatus.CANCELLED
        except Exception as e:
            logger.exception("Trial %s raised an exception", context.trial_id)
            status, error = TrialStatus.FAILED, f"{type(e).__name__}: {e}"
        finally:
            with self._lock:
                self._cancel_events.pop(handle, None)
        self.sink.on_finished(handle, status, error)

    def cancel(self, handle: Hashable) -> None:
        with self._lock:
            event = self._cancel_events.get(handle)
        if event is not None:
            event.set()

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait, cancel_futures=True)
