"""
Exhaustive grid sampling over an all-discrete search space.
"""
from __future__ import annotations

import itertools
import math
from typing import Any, Dict, Iterator

from .base import BaseSampler
from ..exceptions import Exhausted, InvalidSearchSpace
from ..space import SearchSpace


class GridSampler(BaseSampler):
    """
    Walks the Cartesian product of every hyperparameter's values.

    Hyperparameters are ordered by name and each one's values keep their
    enumeration order, so the last name in alphabetical order varies fastest.
    """
    name = "grid"

    def __init__(self, search_space: SearchSpace):
        super().__init__(search_space)
        bad = [spec.name for spec in search_space if not spec.is_enumerable]
        if bad:
            raise InvalidSearchSpace(
                f"Grid sampling needs enumerable discrete hyperparameters; not enumerable: {', '.join(bad)}")
        self._names = sorted(search_space.names)
        self._values = [search_space[name].enumerate() for name in self._names]
        self._grid: Iterator[tuple] = itertools.product(*self._values)
        self.n_pulled = 0

    @property
    def size(self) -> int:
        """Total number of configurations in the grid."""
        return math.prod(len(v) for v in self._values)

    def pull_next(self) -> Dict[str, Any]:
        try:
            point = next(self._grid)
        except StopIteration:
            raise Exhausted(f"All {self.size} grid configurations have been proposed") from None
        self.n_pulled += 1
        return dict(zip(self._names, point))
