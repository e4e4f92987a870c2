import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional

from .history import MetricReport


class TrialStatus(Enum):
    """
    Represents the status of a trial.
    """
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (TrialStatus.COMPLETED, TrialStatus.CANCELLED, TrialStatus.FAILED)


@dataclass
class Trial:
    """
    A dataclass representing a single child run of a tuning run.

    Attributes:
        trial_id: The unique identifier for the trial, assigned at dispatch.
        configuration: The hyperparameter values being evaluated.
        status: The current status of the trial.
        reports: The primary-metric reports received so far, ordered by interval.
            This is a read-only view owned by the scheduler's metric history.
        start_time: The time when the trial was dispatched.
        end_time: The time when the trial reached a terminal status.
        completion_order: Position of the trial among terminated trials.
        error: Error message reported for a failed trial.
    """
    trial_id: int
    configuration: Dict[str, Any]
    status: TrialStatus = TrialStatus.PENDING
    reports: List[MetricReport] = field(default_factory=list)
    start_time: Optional[datetime.datetime] = None
    end_time: Optional[datetime.datetime] = None
    completion_order: Optional[int] = None
    error: Optional[str] = None

    @property
    def final_value(self) -> Optional[float]:
        """The most recent primary-metric value, or None before the first report."""
        if not self.reports:
            return None
        return self.reports[-1].value

    @property
    def last_interval(self) -> Optional[int]:
        if not self.reports:
            return None
        return self.reports[-1].interval

    @property
    def duration(self) -> Optional[float]:
        if self.start_time and self.end_time:
            return (self.end_time - self.start_time).total_seconds()
        return None
