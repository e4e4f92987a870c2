"""
Append-only ledger of primary-metric reports, keyed by trial.
"""
from __future__ import annotations

import bisect
import time
from typing import Dict, Iterable, List, Mapping, NamedTuple, Optional, Sequence, Tuple


class MetricReport(NamedTuple):
    interval: int
    value: float
    timestamp: float


Snapshot = Mapping[int, Tuple[MetricReport, ...]]


def value_at(reports: Sequence[MetricReport], interval: int) -> Optional[float]:
    """The value reported exactly at ``interval``, or None if there is none."""
    i = bisect.bisect_left(reports, interval, key=lambda r: r.interval)
    if i < len(reports) and reports[i].interval == interval:
        return reports[i].value
    return None


def running_average(reports: Sequence[MetricReport], interval: int) -> Optional[float]:
    """Mean of all values reported up to and including ``interval``."""
    values = [r.value for r in reports if r.interval <= interval]
    if not values:
        return None
    return sum(values) / len(values)


class MetricHistory:
    """
    Maps trial ids to their primary-metric reports, ordered by interval.

    Reports arriving out of order are placed by interval; a second report for
    an interval already recorded is rejected. Entries are never removed.
    """
    def __init__(self):
        self._series: Dict[int, List[MetricReport]] = {}

    def register(self, trial_id: int) -> List[MetricReport]:
        """Creates the (empty) series for a trial and returns it."""
        if trial_id in self._series:
            raise ValueError(f"Trial {trial_id} is already registered")
        series: List[MetricReport] = []
        self._series[trial_id] = series
        return series

    def append(self, trial_id: int, interval: int, value: float,
               timestamp: Optional[float] = None) -> MetricReport:
        if trial_id not in self._series:
            raise KeyError(f"Unknown trial {trial_id}")
        interval = int(interval)
        if interval < 1:
            raise ValueError(f"Intervals start at 1, got {interval}")
        series = self._series[trial_id]
        if value_at(series, interval) is not None:
            raise ValueError(f"Trial {trial_id} already reported interval {interval}")
        report = MetricReport(interval, float(value), timestamp if timestamp is not None else time.time())
        bisect.insort(series, report, key=lambda r: r.interval)
        return report

    def series(self, trial_id: int) -> Tuple[MetricReport, ...]:
        return tuple(self._series.get(trial_id, ()))

    def latest(self, trial_id: int) -> Optional[MetricReport]:
        series = self._series.get(trial_id)
        return series[-1] if series else None

    def trial_ids(self) -> List[int]:
        return list(self._series)

    def snapshot(self, exclude: Iterable[int] = ()) -> Dict[int, Tuple[MetricReport, ...]]:
        """A consistent, immutable copy of the ledger for policy evaluation."""
        excluded = set(exclude)
        return {tid: tuple(series) for tid, series in self._series.items() if tid not in excluded}

    def __contains__(self, trial_id: object) -> bool:
        return trial_id in self._series

    def __len__(self) -> int:
        return sum(len(s) for s in self._series.values())
