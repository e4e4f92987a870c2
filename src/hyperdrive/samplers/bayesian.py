"""
Bayesian sampling with a Gaussian process surrogate and expected improvement.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import numpy as np
from scipy.stats import norm
from sklearn.gaussian_process import GaussianProcessRegressor
from sklearn.gaussian_process.kernels import Matern

from .base import BaseSampler
from ..exceptions import UnsupportedDistribution
from ..space import Distribution, SearchSpace

logger = logging.getLogger(__name__)

SUPPORTED_DISTRIBUTIONS = (Distribution.CHOICE, Distribution.UNIFORM, Distribution.QUNIFORM)


class BayesianSampler(BaseSampler):
    """
    Proposes the candidate maximizing expected improvement under a GP fitted
    to the observed (configuration, final value) pairs.

    Until ``n_initial_points`` observations are available configurations are
    drawn at random. Configurations are encoded into the unit hypercube, with
    ``choice`` values one-hot encoded, before fitting the surrogate.

    Observations may arrive while other proposals are still being evaluated;
    the surrogate simply uses whatever has been observed so far.
    """

    name = "bayesian"
    supports_early_termination = False

    def __init__(self,
                 search_space: SearchSpace,
                 goal: str = "maximize",
                 n_initial_points: int = 5,
                 n_candidates: int = 256,
                 xi: float = 0.01,
                 seed: Optional[int] = None):
        super().__init__(search_space)
        bad = [spec.name for spec in search_space if spec.distribution not in SUPPORTED_DISTRIBUTIONS]
        if bad:
            raise UnsupportedDistribution(
                "Bayesian sampling supports only choice, uniform and quniform; "
                f"unsupported: {', '.join(bad)}")
        goal = getattr(goal, "value", goal)
        if goal not in ("maximize", "minimize"):
            raise ValueError(f"goal must be 'maximize' or 'minimize', got {goal!r}")
        if int(n_initial_points) < 1:
            raise ValueError(f"n_initial_points must be >= 1, got {n_initial_points}")
        self.maximize = goal == "maximize"
        self.n_initial_points = int(n_initial_points)
        self.n_candidates = int(n_candidates)
        self.xi = xi
        self.seed = seed
        self.rng = np.random.RandomState(seed)

        self.X: List[np.ndarray] = []
        self.y: List[float] = []
        self._proposed = set()
        kernel = Matern(length_scale=1.0, nu=2.5)
        self.gp = GaussianProcessRegressor(kernel=kernel, alpha=1e-6, normalize_y=True,
                                           n_restarts_optimizer=3, random_state=seed)

    def encode(self, configuration: Dict[str, Any]) -> np.ndarray:
        """Maps a configuration to the unit hypercube used by the surrogate."""
        vec: List[float] = []
        for spec in self.search_space:
            value = configuration[spec.name]
            if spec.distribution is Distribution.CHOICE:
                one_hot = [0.0] * len(spec.params)
                for k, choice in enumerate(spec.params):
                    if choice == value:
                        one_hot[k] = 1.0
                        break
                vec.extend(one_hot)
            else:
                low, high = spec.params[0], spec.params[1]
                vec.append((float(value) - low) / (high - low))
        return np.asarray(vec, dtype=float)

    def _key(self, configuration: Dict[str, Any]) -> tuple:
        return tuple(repr(configuration[name]) for name in self.search_space.names)

    def observe(self, configuration: Dict[str, Any], value: float) -> None:
        if value is None or not np.isfinite(value):
            logger.debug("Ignoring non-finite observation %r for %s", value, configuration)
            return
        self.X.append(self.encode(configuration))
        self.y.append(float(value))

    def expected_improvement(self, candidates: List[Dict[str, Any]]) -> np.ndarray:
        Xc = np.vstack([self.encode(c) for c in candidates])
        mu, sigma = self.gp.predict(Xc, return_std=True)
        sigma = np.maximum(sigma, 1e-12)
        y_arr = np.asarray(self.y)
        if self.maximize:
            improvement = mu - np.max(y_arr) - self.xi
        else:
            improvement = np.min(y_arr) - mu - self.xi
        z = improvement / sigma
        return improvement * norm.cdf(z) + sigma * norm.pdf(z)

    def pull_next(self) -> Dict[str, Any]:
        if len(self.y) < self.n_initial_points:
            proposal = self.search_space.sample(self.rng)
        else:
            self.gp.fit(np.vstack(self.X), np.asarray(self.y))
            candidates = [self.search_space.sample(self.rng) for _ in range(self.n_candidates)]
            fresh = [c for c in candidates if self._key(c) not in self._proposed]
            pool = fresh or candidates
            acq = self.expected_improvement(pool)
            proposal = pool[int(np.argmax(acq))]
        self._proposed.add(self._key(proposal))
        return proposal
