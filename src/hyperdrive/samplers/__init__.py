from .base import BaseSampler
from .bayesian import BayesianSampler
from .grid import GridSampler
from .random import RandomSampler

__all__ = ["BaseSampler", "BayesianSampler", "GridSampler", "RandomSampler"]
