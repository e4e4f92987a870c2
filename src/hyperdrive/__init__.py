# hyperdrive/__init__.py

__version__ = "1.0.0"

from .configuration import Goal, TuningRunConfig, declaration_from_dict, load_declaration
from .core import MetricHistory, MetricReport, Trial, TrialStatus
from .exceptions import (
    ConflictingConfiguration,
    Exhausted,
    HyperdriveError,
    InvalidSearchSpace,
    TrialCancelled,
    UnsupportedDistribution,
    UnsupportedOperation,
)
from .executor import LocalTrialExecutor, Reporter, TrialContext, TrialEventSink, TrialExecutor
from .policies import BanditPolicy, EarlyTerminationPolicy, MedianStoppingPolicy, TruncationSelectionPolicy
from .samplers import BaseSampler, BayesianSampler, GridSampler, RandomSampler
from .scheduler import RunState, Scheduler
from .space import Distribution, HyperparameterSpec, Kind, SearchSpace
from .utils import get_logger

get_logger("hyperdrive")

__all__ = [
    "BanditPolicy",
    "BaseSampler",
    "BayesianSampler",
    "ConflictingConfiguration",
    "Distribution",
    "EarlyTerminationPolicy",
    "Exhausted",
    "Goal",
    "GridSampler",
    "HyperdriveError",
    "HyperparameterSpec",
    "InvalidSearchSpace",
    "Kind",
    "LocalTrialExecutor",
    "MedianStoppingPolicy",
    "MetricHistory",
    "MetricReport",
    "RandomSampler",
    "Reporter",
    "RunState",
    "Scheduler",
    "SearchSpace",
    "Trial",
    "TrialCancelled",
    "TrialContext",
    "TrialEventSink",
    "TrialExecutor",
    "TrialStatus",
    "TruncationSelectionPolicy",
    "TuningRunConfig",
    "UnsupportedDistribution",
    "UnsupportedOperation",
    "declaration_from_dict",
    "load_declaration",
]
