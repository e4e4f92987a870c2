"""
The tuning run orchestrator.

A single control loop consumes the events executors push (metric reported,
trial finished, abort requested) from a queue. Every change to trial status
and to the metric history happens on that loop, so executors may call the
sink from any thread.
"""
from __future__ import annotations

import datetime
import logging
import queue
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Hashable, List, Optional, Tuple, Union

import pandas as pd

from .configuration import TuningRunConfig
from .core.history import MetricHistory, MetricReport
from .core.trial import Trial, TrialStatus
from .exceptions import Exhausted
from .executor import TrialContext, TrialEventSink, TrialExecutor
from .storage.base import BaseStorage
from .storage.sqlite import SQLiteStorage

logger = logging.getLogger(__name__)


class RunState(Enum):
    NOT_STARTED = "NOT_STARTED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    ABORTED = "ABORTED"


@dataclass(frozen=True)
class _MetricEvent:
    handle: Hashable
    interval: int
    value: float
    timestamp: float


@dataclass(frozen=True)
class _FinishedEvent:
    handle: Hashable
    status: TrialStatus
    error: Optional[str] = None


@dataclass(frozen=True)
class _AbortEvent:
    reason: str


class Scheduler(TrialEventSink):
    """
    Runs one tuning run: pulls configurations from the sampler, dispatches
    trials within the concurrency and total-run limits, records their metric
    reports, applies the early-termination policy and ranks the results.

    Args:
        config: The tuning run settings.
        executor: Starts and cancels trials; bound to this scheduler on ``run``.
        storage: Optional storage backend instance or path to an SQLite file.
        run_id: Identifier of the run; generated when omitted.
    """
    def __init__(self,
                 config: TuningRunConfig,
                 executor: TrialExecutor,
                 storage: Optional[Union[str, BaseStorage]] = None,
                 run_id: Optional[str] = None):
        self.config = config
        self.executor = executor
        self.run_id = run_id or f"HD_{uuid.uuid4().hex[:12]}"
        if isinstance(storage, str):
            self.storage: Optional[BaseStorage] = SQLiteStorage(storage)
        else:
            self.storage = storage

        self.state = RunState.NOT_STARTED
        self.history = MetricHistory()
        self.start_time: Optional[datetime.datetime] = None
        self.end_time: Optional[datetime.datetime] = None

        self._trials: Dict[int, Trial] = {}
        self._trial_by_handle: Dict[Hashable, int] = {}
        self._handle_by_trial: Dict[int, Hashable] = {}
        self._events: "queue.Queue[Any]" = queue.Queue()
        self._exhausted = False
        self._n_terminated = 0

    # --- event sink (any thread) ---

    def on_metric(self, handle: Hashable, interval: int, value: float) -> None:
        self._events.put(_MetricEvent(handle, interval, value, time.time()))

    def on_finished(self, handle: Hashable, status: TrialStatus, error: Optional[str] = None) -> None:
        self._events.put(_FinishedEvent(handle, status, error))

    def abort(self, reason: str = "aborted by caller") -> None:
        """Requests the run to stop; running trials are cancelled."""
        self._events.put(_AbortEvent(reason))

    # --- control loop ---

    @property
    def n_dispatched(self) -> int:
        return len(self._trials)

    @property
    def n_running(self) -> int:
        return sum(1 for t in self._trials.values() if t.status is TrialStatus.RUNNING)

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    def run(self) -> Optional[Trial]:
        """
        Executes the tuning run until every dispatched trial has terminated and
        no further trial may be dispatched.

        Returns:
            The best completed trial, or None if no trial completed with a value.
        """
        if self.state is not RunState.NOT_STARTED:
            raise RuntimeError(f"Run {self.run_id} has already been started")

        cfg = self.config
        cfg.search_space.freeze()
        self.executor.bind(self)
        if self.storage is not None:
            self.storage.create_run(self.run_id, cfg.primary_metric_name, cfg.goal.value, cfg.to_dict())
        self.start_time = datetime.datetime.now()
        self._set_state(RunState.RUNNING)
        logger.info("Starting run %s: sampler=%s, policy=%s, goal=%s %s, max_total_runs=%d, max_concurrent_runs=%d",
                    self.run_id, type(cfg.sampler).__name__, cfg.policy, cfg.goal.value,
                    cfg.primary_metric_name, cfg.max_total_runs, cfg.max_concurrent_runs)

        deadline = None
        if cfg.max_duration_minutes is not None:
            deadline = time.monotonic() + cfg.max_duration_minutes * 60

        try:
            while True:
                self._fill_slots()
                if self.n_running == 0:
                    break
                timeout = None if deadline is None else max(0.0, deadline - time.monotonic())
                try:
                    event = self._events.get(timeout=timeout)
                except queue.Empty:
                    self._abort(f"max_duration_minutes={cfg.max_duration_minutes} exceeded")
                    break
                if isinstance(event, _AbortEvent):
                    self._abort(event.reason)
                    break
                self._process(event)
        except BaseException:
            if self.state is RunState.RUNNING:
                self._abort("control loop interrupted")
            raise
        finally:
            self.end_time = datetime.datetime.now()

        if self.state is RunState.RUNNING:
            self._set_state(RunState.COMPLETED)

        best = self.best_trial()
        if best is not None:
            logger.info("Run %s %s. Best trial #%d: %s=%.6f",
                        self.run_id, self.state.value.lower(), best.trial_id,
                        cfg.primary_metric_name, best.final_value)
        else:
            logger.info("Run %s %s without a completed trial", self.run_id, self.state.value.lower())
        return best

    def _set_state(self, state: RunState) -> None:
        self.state = state
        if self.storage is not None:
            self.storage.update_run(self.run_id, state.value)

    def _fill_slots(self) -> None:
        cfg = self.config
        while (self.n_running < cfg.max_concurrent_runs
               and self.n_dispatched < cfg.max_total_runs
               and not self._exhausted):
            try:
                configuration = cfg.sampler.pull_next()
            except Exhausted as e:
                logger.info("Sampler exhausted after %d trials: %s", self.n_dispatched, e)
                self._exhausted = True
                break
            self._dispatch(configuration)

    def _dispatch(self, configuration: Dict[str, Any]) -> None:
        trial_id = self.n_dispatched
        trial = Trial(trial_id=trial_id, configuration=dict(configuration))
        trial.reports = self.history.register(trial_id)
        trial.start_time = datetime.datetime.now()
        self._trials[trial_id] = trial

        context = TrialContext(
            run_id=self.run_id,
            trial_id=trial_id,
            primary_metric_name=self.config.primary_metric_name,
            configuration=dict(configuration),
        )
        try:
            handle = self.executor.dispatch(context)
        except Exception as e:
            logger.exception("Dispatching trial #%d failed", trial_id)
            if self.storage is not None:
                self.storage.create_trial(self.run_id, trial)
            trial.error = f"{type(e).__name__}: {e}"
            self._finish(trial, TrialStatus.FAILED)
            return

        trial.status = TrialStatus.RUNNING
        self._trial_by_handle[handle] = trial_id
        self._handle_by_trial[trial_id] = handle
        if self.storage is not None:
            self.storage.create_trial(self.run_id, trial)
        logger.info("Dispatched trial #%d (%d/%d): %s",
                    trial_id, self.n_dispatched, self.config.max_total_runs, configuration)

    def _process(self, event: Union[_MetricEvent, _FinishedEvent]) -> None:
        trial_id = self._trial_by_handle.get(event.handle)
        if trial_id is None:
            logger.warning("Ignoring event for unknown trial handle %r", event.handle)
            return
        trial = self._trials[trial_id]
        if isinstance(event, _MetricEvent):
            self._on_metric_event(trial, event)
        else:
            self._on_finished_event(trial, event)

    def _on_metric_event(self, trial: Trial, event: _MetricEvent) -> None:
        if trial.status is not TrialStatus.RUNNING:
            logger.debug("Ignoring report from %s trial #%d", trial.status.value.lower(), trial.trial_id)
            return
        try:
            report = self.history.append(trial.trial_id, event.interval, event.value, event.timestamp)
        except ValueError as e:
            logger.warning("Dropping report from trial #%d: %s", trial.trial_id, e)
            return
        if self.storage is not None:
            self.storage.add_metric(self.run_id, trial.trial_id, report)
        logger.debug("Trial #%d reported %s=%.6f at interval %d",
                     trial.trial_id, self.config.primary_metric_name, report.value, report.interval)

        policy = self.config.policy
        if policy is not None and policy.is_evaluation_point(report.interval):
            self._apply_policy(report.interval)

    def _apply_policy(self, interval: int) -> None:
        failed = [tid for tid, t in self._trials.items() if t.status is TrialStatus.FAILED]
        running = [tid for tid, t in self._trials.items() if t.status is TrialStatus.RUNNING]
        snapshot = self.history.snapshot(exclude=failed)
        for trial_id in self.config.policy.evaluate(interval, snapshot, running, self.config.goal):
            self._cancel(self._trials[trial_id], f"{self.config.policy.name} policy at interval {interval}")

    def _cancel(self, trial: Trial, reason: str) -> None:
        logger.info("Cancelling trial #%d (%s)", trial.trial_id, reason)
        self._finish(trial, TrialStatus.CANCELLED)
        self.executor.cancel(self._handle_by_trial[trial.trial_id])

    def _on_finished_event(self, trial: Trial, event: _FinishedEvent) -> None:
        if trial.status is TrialStatus.CANCELLED:
            logger.debug("Trial #%d acknowledged cancellation", trial.trial_id)
            return
        if trial.status is not TrialStatus.RUNNING:
            logger.warning("Ignoring duplicate finish of trial #%d", trial.trial_id)
            return
        status = event.status
        if not status.is_terminal:
            logger.warning("Trial #%d finished with non-terminal status %s; marking it failed",
                           trial.trial_id, status.value)
            status = TrialStatus.FAILED
        trial.error = event.error
        self._finish(trial, status)

    def _finish(self, trial: Trial, status: TrialStatus) -> None:
        trial.status = status
        trial.end_time = datetime.datetime.now()
        trial.completion_order = self._n_terminated
        self._n_terminated += 1

        value = trial.final_value
        if status in (TrialStatus.COMPLETED, TrialStatus.CANCELLED) and value is not None:
            self.config.sampler.observe(trial.configuration, value)
        if self.storage is not None:
            self.storage.update_trial(self.run_id, trial)

        if status is TrialStatus.FAILED:
            logger.warning("Trial #%d failed: %s", trial.trial_id, trial.error)
        elif status is TrialStatus.COMPLETED:
            logger.info("Trial #%d completed. %s=%s", trial.trial_id, self.config.primary_metric_name,
                        "n/a" if value is None else f"{value:.6f}")

    def _abort(self, reason: str) -> None:
        logger.warning("Aborting run %s: %s", self.run_id, reason)
        for trial in list(self._trials.values()):
            if trial.status is TrialStatus.RUNNING:
                self._cancel(trial, reason)
        self._set_state(RunState.ABORTED)

    # --- queries ---

    def trials(self) -> List[Trial]:
        """All dispatched trials, in dispatch order."""
        return [self._trials[tid] for tid in sorted(self._trials)]

    def get_trial(self, trial_id: int) -> Trial:
        return self._trials[trial_id]

    def metric_history(self, trial_id: int) -> Tuple[MetricReport, ...]:
        """The full primary-metric history of one trial."""
        if trial_id not in self._trials:
            raise KeyError(f"Unknown trial {trial_id}")
        return self.history.series(trial_id)

    def ranked_trials(self) -> List[Trial]:
        """
        Completed trials from best to worst by final primary-metric value.
        Ties go to the trial that completed first.
        """
        completed = [t for t in self._trials.values()
                     if t.status is TrialStatus.COMPLETED and t.final_value is not None]
        sign = -1.0 if self.config.maximize else 1.0
        return sorted(completed, key=lambda t: (sign * t.final_value, t.completion_order))

    def best_trial(self) -> Optional[Trial]:
        ranked = self.ranked_trials()
        return ranked[0] if ranked else None

    def get_trials_dataframe(self) -> pd.DataFrame:
        """Returns the trials as a pandas DataFrame, one row per trial."""
        if not self._trials:
            return pd.DataFrame()

        data = []
        for trial in self.trials():
            row = {
                'trial_id': trial.trial_id,
                'status': trial.status.value,
                self.config.primary_metric_name: trial.final_value,
                'last_interval': trial.last_interval,
                'n_reports': len(trial.reports),
                'duration': trial.duration,
                **trial.configuration,
            }
            data.append(row)

        return pd.DataFrame(data)

    def summary(self) -> str:
        """Renders a human-readable summary of the run."""
        lines = ["=" * 70, f"🏆 Tuning Summary for run {self.run_id} ({self.state.value})", "=" * 70]
        best = self.best_trial()
        if best:
            lines.append(f"🎯 Best {self.config.primary_metric_name}: {best.final_value:.6f}")
            lines.append(f"🏅 Best Trial: #{best.trial_id}")
            lines.append("⚙️ Best Configuration:")
            for name, value in best.configuration.items():
                lines.append(f"   {name}: {value}")
        else:
            lines.append("❌ No completed trials with a reported metric.")

        if self._trials:
            lines.append("📊 Statistics:")
            lines.append(f"   Total Trials: {self.n_dispatched}")
            for status in TrialStatus:
                count = sum(1 for t in self._trials.values() if t.status is status)
                if count > 0:
                    lines.append(f"   {status.name}: {count}")
        return "\n".join(lines)

    def print_summary(self) -> None:
        """Prints a summary of the tuning results."""
        print("\n" + self.summary())
