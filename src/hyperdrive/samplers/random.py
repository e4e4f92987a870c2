"""
A simple random sampling strategy.
"""
from __future__ import annotations
from typing import Dict, Any, Optional

import numpy as np

from .base import BaseSampler
from ..space import SearchSpace


class RandomSampler(BaseSampler):
    """
    A sampler that suggests hyperparameters completely at random.

    Each configuration draws every hyperparameter independently. The sampler
    never runs out, so the run's ``max_total_runs`` is what bounds it.
    """
    name = "random"

    def __init__(self, search_space: SearchSpace, seed: Optional[int] = None):
        super().__init__(search_space)
        self.seed = seed
        self.rng = np.random.RandomState(seed)

    def pull_next(self) -> Dict[str, Any]:
        return self.search_space.sample(self.rng)
