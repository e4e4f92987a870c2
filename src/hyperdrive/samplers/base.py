"""
Defines the base interface for all samplers.
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Dict

from ..space import SearchSpace


class BaseSampler(ABC):
    """
    Abstract base class for all sampling strategies.

    This class defines a standard interface for proposing new hyperparameter
    configurations (`pull_next`) and reporting the outcome of finished trials
    (`observe`). The scheduler only ever talks to a sampler through it.
    """

    name = "base"

    #: Whether the sampler may be combined with an early-termination policy.
    supports_early_termination = True

    def __init__(self, search_space: SearchSpace):
        self.search_space = search_space

    @abstractmethod
    def pull_next(self) -> Dict[str, Any]:
        """
        Propose the next configuration to evaluate.

        Returns:
            A dictionary representing the hyperparameter configuration to try.

        Raises:
            Exhausted: if the sampler has no configurations left.
        """
        pass

    def observe(self, configuration: Dict[str, Any], value: float) -> None:
        """
        Report the final primary-metric value of a finished trial.

        This is a no-op for samplers that do not learn from past results.
        """
        pass
