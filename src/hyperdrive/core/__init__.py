from .history import MetricHistory, MetricReport, running_average, value_at
from .trial import Trial, TrialStatus

__all__ = ["MetricHistory", "MetricReport", "Trial", "TrialStatus", "running_average", "value_at"]
