"""
Early-termination policies.

A policy is a pure decision over a snapshot of the metric history: given an
interval, the reports of every trial and the ids of the trials that may be
cancelled, it returns the ids to cancel. Trials without a report at the
interval are not evaluable there and are never flagged.
"""
from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Mapping, Optional

import numpy as np

from .core.history import Snapshot, running_average, value_at

logger = logging.getLogger(__name__)


def _maximize(goal: Any) -> bool:
    goal = getattr(goal, "value", goal)
    if goal not in ("maximize", "minimize"):
        raise ValueError(f"goal must be 'maximize' or 'minimize', got {goal!r}")
    return goal == "maximize"


class EarlyTerminationPolicy(ABC):
    """
    Base class for policies that abandon underperforming trials.

    Attributes:
        evaluation_interval (int): The policy runs only at intervals that are a
            multiple of this value.
        delay_evaluation (int): Intervals before this one are never evaluated.
    """
    name = "base"

    def __init__(self, evaluation_interval: int = 1, delay_evaluation: int = 0):
        if int(evaluation_interval) < 1:
            raise ValueError(f"evaluation_interval must be >= 1, got {evaluation_interval}")
        if int(delay_evaluation) < 0:
            raise ValueError(f"delay_evaluation must be >= 0, got {delay_evaluation}")
        self.evaluation_interval = int(evaluation_interval)
        self.delay_evaluation = int(delay_evaluation)

    def is_evaluation_point(self, interval: int) -> bool:
        return (interval >= 1
                and interval >= self.delay_evaluation
                and interval % self.evaluation_interval == 0)

    def evaluate(self, interval: int, snapshot: Snapshot, candidates: Iterable[int], goal: Any) -> List[int]:
        """
        Decides which of ``candidates`` to cancel at ``interval``.

        Args:
            interval: The interval index being evaluated.
            snapshot: Reports of every trial taking part in the comparison.
            candidates: Ids of the trials that may be cancelled (running trials).
            goal: 'maximize' or 'minimize'.

        Returns:
            list: Ids of the trials to cancel, in candidate order.
        """
        if not self.is_evaluation_point(interval):
            return []
        evaluable = [tid for tid in candidates if value_at(snapshot.get(tid, ()), interval) is not None]
        if not evaluable:
            return []
        return self._select(interval, snapshot, evaluable, _maximize(goal))

    @abstractmethod
    def _select(self, interval: int, snapshot: Snapshot, candidates: List[int], maximize: bool) -> List[int]:
        pass

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "evaluation_interval": self.evaluation_interval,
            "delay_evaluation": self.delay_evaluation,
        }

    def __repr__(self) -> str:
        args = ", ".join(f"{k}={v!r}" for k, v in self.to_dict().items() if k != "name")
        return f"{self.__class__.__name__}({args})"


class BanditPolicy(EarlyTerminationPolicy):
    """
    Cancels trials that fall outside a slack of the best trial at the interval.

    Exactly one of ``slack_amount`` (absolute distance) or ``slack_factor``
    (ratio) must be given. Under ``maximize`` a trial is cancelled when its
    value is below ``best - slack_amount`` or ``best / (1 + slack_factor)``;
    under ``minimize`` when it is above ``best + slack_amount`` or
    ``best * (1 + slack_factor)``.

    The ratio form is only meaningful for positive metric values; when the
    best value is zero or negative it cancels nothing.
    """
    name = "bandit"

    def __init__(self, slack_amount: Optional[float] = None, slack_factor: Optional[float] = None,
                 evaluation_interval: int = 1, delay_evaluation: int = 0):
        super().__init__(evaluation_interval, delay_evaluation)
        if (slack_amount is None) == (slack_factor is None):
            raise ValueError("Specify exactly one of slack_amount or slack_factor")
        slack = slack_amount if slack_amount is not None else slack_factor
        if slack < 0:
            raise ValueError(f"Slack must be non-negative, got {slack}")
        self.slack_amount = slack_amount
        self.slack_factor = slack_factor

    def threshold(self, best: float, maximize: bool) -> float:
        if self.slack_amount is not None:
            return best - self.slack_amount if maximize else best + self.slack_amount
        return best / (1 + self.slack_factor) if maximize else best * (1 + self.slack_factor)

    def _select(self, interval, snapshot, candidates, maximize):
        values = [v for v in (value_at(s, interval) for s in snapshot.values()) if v is not None]
        best = max(values) if maximize else min(values)
        if self.slack_factor is not None and best <= 0:
            logger.warning("Bandit slack_factor needs a positive best value, got %s at interval %d; skipping",
                           best, interval)
            return []
        limit = self.threshold(best, maximize)
        flagged = []
        for tid in candidates:
            value = value_at(snapshot[tid], interval)
            if (maximize and value < limit) or (not maximize and value > limit):
                flagged.append(tid)
        return flagged

    def to_dict(self):
        d = super().to_dict()
        if self.slack_amount is not None:
            d["slack_amount"] = self.slack_amount
        else:
            d["slack_factor"] = self.slack_factor
        return d


class MedianStoppingPolicy(EarlyTerminationPolicy):
    """
    Cancels trials whose running average is worse than the median of the
    running averages of all trials that reached the interval.
    """
    name = "median_stopping"

    def _select(self, interval, snapshot, candidates, maximize):
        averages = {
            tid: running_average(series, interval)
            for tid, series in snapshot.items()
            if value_at(series, interval) is not None
        }
        median = float(np.median(list(averages.values())))
        flagged = []
        for tid in candidates:
            avg = averages[tid]
            if (maximize and avg < median) or (not maximize and avg > median):
                flagged.append(tid)
        return flagged


class TruncationSelectionPolicy(EarlyTerminationPolicy):
    """
    Ranks trials by their value at the interval and cancels the worst
    ``truncation_percentage`` percent of them (rounded down).

    With ``exclude_finished_trials`` only the candidate (running) trials take
    part in the ranking; otherwise finished trials count too, and a slot that
    falls on a finished trial cancels nothing.
    """
    name = "truncation_selection"

    def __init__(self, truncation_percentage: float, evaluation_interval: int = 1,
                 delay_evaluation: int = 0, exclude_finished_trials: bool = False):
        super().__init__(evaluation_interval, delay_evaluation)
        if not 0 <= truncation_percentage <= 100:
            raise ValueError(f"truncation_percentage must be within [0, 100], got {truncation_percentage}")
        self.truncation_percentage = truncation_percentage
        self.exclude_finished_trials = bool(exclude_finished_trials)

    def _select(self, interval, snapshot, candidates, maximize):
        pool_ids = candidates if self.exclude_finished_trials else list(snapshot)
        pool = [(value_at(snapshot[tid], interval), tid) for tid in pool_ids]
        pool = [(v, tid) for v, tid in pool if v is not None]
        n_cut = max(0, math.floor(len(pool) * self.truncation_percentage / 100))
        if n_cut == 0:
            return []
        # Worst first; on ties the later trial goes first.
        if maximize:
            pool.sort(key=lambda p: (p[0], -p[1]))
        else:
            pool.sort(key=lambda p: (-p[0], -p[1]))
        worst = {tid for _, tid in pool[:n_cut]}
        return [tid for tid in candidates if tid in worst]

    def to_dict(self):
        d = super().to_dict()
        d["truncation_percentage"] = self.truncation_percentage
        d["exclude_finished_trials"] = self.exclude_finished_trials
        return d


POLICIES = {
    BanditPolicy.name: BanditPolicy,
    MedianStoppingPolicy.name: MedianStoppingPolicy,
    TruncationSelectionPolicy.name: TruncationSelectionPolicy,
}


def policy_from_dict(data: Optional[Mapping[str, Any]]) -> Optional[EarlyTerminationPolicy]:
    """Builds a policy from its declarative form, or returns None for no policy."""
    if not data:
        return None
    params = dict(data)
    name = str(params.pop("name", "")).lower()
    if name in ("", "none"):
        return None
    if name not in POLICIES:
        raise ValueError(f"Policy '{name}' is not supported. Available: {', '.join(POLICIES)}")
    return POLICIES[name](**params)
