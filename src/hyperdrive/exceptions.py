"""
Exceptions raised by the tuning scheduler.
"""


class HyperdriveError(Exception):
    """Base class for all errors raised by hyperdrive."""
    pass


class InvalidSearchSpace(HyperdriveError):
    """The search space violates the constraints of the chosen sampler."""
    pass


class UnsupportedDistribution(InvalidSearchSpace):
    """A hyperparameter uses a distribution the sampler cannot model."""
    pass


class ConflictingConfiguration(HyperdriveError):
    """The tuning run combines options that cannot be used together."""
    pass


class UnsupportedOperation(HyperdriveError):
    """The operation is not defined for this kind of hyperparameter."""
    pass


class Exhausted(HyperdriveError):
    """Signals that a sampler has no configurations left to propose."""
    pass


class TrialCancelled(HyperdriveError):
    """Raised inside a training function once its trial has been cancelled."""
    pass
