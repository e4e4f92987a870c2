from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional

from ..core.history import MetricReport
from ..core.trial import Trial


class BaseStorage(ABC):
    """
    Abstract base class for storage backends.

    This class defines the interface for persisting and retrieving tuning
    runs, their trials and the primary-metric reports of each trial.
    """

    @abstractmethod
    def create_run(self, run_id: str, primary_metric_name: str, goal: str,
                   declaration: Optional[Dict[str, Any]] = None) -> None:
        """
        Records a new tuning run.

        Args:
            run_id: The unique ID of the run.
            primary_metric_name: The name of the metric trials are ranked by.
            goal: The optimization goal ('minimize' or 'maximize').
            declaration: A JSON-serializable description of the run settings.
        """
        pass

    @abstractmethod
    def update_run(self, run_id: str, state: str) -> None:
        """Updates the state of a run (e.g. 'RUNNING', 'COMPLETED')."""
        pass

    @abstractmethod
    def get_run(self, run_id: str) -> Optional[Dict[str, Any]]:
        """
        Retrieves a run's record.

        Returns:
            A dictionary with the run's fields if found, otherwise None.
        """
        pass

    @abstractmethod
    def create_trial(self, run_id: str, trial: Trial) -> None:
        """
        Records a newly dispatched trial together with its configuration.
        """
        pass

    @abstractmethod
    def update_trial(self, run_id: str, trial: Trial) -> None:
        """
        Persists the status, end time and error of a trial.
        """
        pass

    @abstractmethod
    def add_metric(self, run_id: str, trial_id: int, report: MetricReport) -> None:
        """
        Appends a primary-metric report to a trial's history.
        """
        pass

    @abstractmethod
    def get_all_trials(self, run_id: str) -> List[Trial]:
        """
        Retrieves all trials of a run, with their metric reports.
        """
        pass

    @abstractmethod
    def get_metric_history(self, run_id: str, trial_id: int) -> List[MetricReport]:
        """
        Retrieves the reports of one trial, ordered by interval.
        """
        pass
