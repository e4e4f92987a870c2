"""
Tuning run configuration and the declarative (YAML) form of a tuning run.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from .exceptions import ConflictingConfiguration
from .policies import EarlyTerminationPolicy, policy_from_dict
from .samplers import BaseSampler, BayesianSampler, GridSampler, RandomSampler
from .space import SearchSpace


class Goal(Enum):
    MAXIMIZE = "maximize"
    MINIMIZE = "minimize"


@dataclass(frozen=True)
class TuningRunConfig:
    """
    Immutable settings of one tuning run.

    Attributes:
        primary_metric_name: Name of the metric trials are ranked by.
        goal: Whether the primary metric should be maximized or minimized.
        sampler: The sampling strategy, already bound to the search space.
        policy: Optional early-termination policy.
        max_total_runs: Upper bound on the number of trials dispatched.
        max_concurrent_runs: Upper bound on trials running at the same time.
        max_duration_minutes: Optional wall-clock limit for the whole run.
    """
    primary_metric_name: str
    goal: Goal
    sampler: BaseSampler
    max_total_runs: int
    max_concurrent_runs: int = 1
    policy: Optional[EarlyTerminationPolicy] = None
    max_duration_minutes: Optional[float] = None

    def __post_init__(self):
        if not isinstance(self.goal, Goal):
            try:
                object.__setattr__(self, "goal", Goal(str(self.goal).lower()))
            except ValueError:
                raise ValueError(f"goal must be 'maximize' or 'minimize', got {self.goal!r}") from None
        if not self.primary_metric_name:
            raise ValueError("primary_metric_name is required")
        if int(self.max_total_runs) < 1:
            raise ValueError(f"max_total_runs must be >= 1, got {self.max_total_runs}")
        if int(self.max_concurrent_runs) < 1:
            raise ValueError(f"max_concurrent_runs must be >= 1, got {self.max_concurrent_runs}")
        if self.max_duration_minutes is not None and self.max_duration_minutes <= 0:
            raise ValueError(f"max_duration_minutes must be positive, got {self.max_duration_minutes}")
        if self.policy is not None and not self.sampler.supports_early_termination:
            raise ConflictingConfiguration(
                f"{type(self.sampler).__name__} cannot be combined with an early-termination policy")
        sampler_maximize = getattr(self.sampler, "maximize", None)
        if sampler_maximize is not None and sampler_maximize != self.maximize:
            raise ConflictingConfiguration(
                f"{type(self.sampler).__name__} optimizes towards a different goal than the run ({self.goal.value})")

    @property
    def maximize(self) -> bool:
        return self.goal is Goal.MAXIMIZE

    @property
    def search_space(self) -> SearchSpace:
        return self.sampler.search_space

    @property
    def evaluation_interval(self) -> Optional[int]:
        return self.policy.evaluation_interval if self.policy else None

    @property
    def delay_evaluation(self) -> Optional[int]:
        return self.policy.delay_evaluation if self.policy else None

    def to_dict(self) -> Dict[str, Any]:
        """A JSON-serializable description of the run settings."""
        return {
            "primary_metric": self.primary_metric_name,
            "goal": self.goal.value,
            "max_total_runs": self.max_total_runs,
            "max_concurrent_runs": self.max_concurrent_runs,
            "max_duration_minutes": self.max_duration_minutes,
            "sampling": {"strategy": self.sampler.name},
            "search_space": self.search_space.to_dict(),
            "policy": self.policy.to_dict() if self.policy else None,
        }


SAMPLING_STRATEGIES = ("grid", "random", "bayesian")


def build_sampler(strategy: str, space: SearchSpace, goal: Union[str, Goal] = Goal.MAXIMIZE,
                  **params: Any) -> BaseSampler:
    """Instantiates the sampler named by ``strategy`` over ``space``."""
    strategy = strategy.lower()
    if strategy == "grid":
        return GridSampler(space, **params)
    if strategy == "random":
        return RandomSampler(space, **params)
    if strategy == "bayesian":
        return BayesianSampler(space, goal=getattr(goal, "value", goal), **params)
    raise ValueError(f"Sampling strategy '{strategy}' is not supported. Available: {', '.join(SAMPLING_STRATEGIES)}")


def declaration_from_dict(data: Mapping[str, Any]) -> TuningRunConfig:
    """
    Builds a :class:`TuningRunConfig` from a declaration mapping.

    The mapping holds ``primary_metric``, ``goal``, ``max_total_runs``,
    ``max_concurrent_runs``, an optional ``max_duration_minutes``, a
    ``search_space`` mapping, a ``sampling`` section naming the ``strategy``
    with its parameters, and an optional ``policy`` section.
    """
    missing = [key for key in ("primary_metric", "search_space", "max_total_runs") if key not in data]
    if missing:
        raise ValueError(f"Declaration is missing required keys: {', '.join(missing)}")
    goal = Goal(str(data.get("goal", "maximize")).lower())
    space = SearchSpace.from_dict(data["search_space"])

    sampling: Dict[str, Any] = dict(data.get("sampling") or {})
    strategy = sampling.pop("strategy", "random")
    sampler = build_sampler(strategy, space, goal, **sampling)

    return TuningRunConfig(
        primary_metric_name=data["primary_metric"],
        goal=goal,
        sampler=sampler,
        max_total_runs=int(data["max_total_runs"]),
        max_concurrent_runs=int(data.get("max_concurrent_runs", 1)),
        policy=policy_from_dict(data.get("policy")),
        max_duration_minutes=data.get("max_duration_minutes"),
    )


def load_declaration(path: Union[str, Path]) -> TuningRunConfig:
    """Reads a YAML tuning-run declaration from ``path``."""
    with open(path, "r") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Declaration '{path}' must contain a mapping at the top level")
    return declaration_from_dict(data)
