import pytest

from hyperdrive import SearchSpace, TrialExecutor, TrialStatus


class ScriptedExecutor(TrialExecutor):
    """
    Emits a scripted metric curve for each trial as soon as it is dispatched.

    ``curve_fn(configuration, trial_id)`` returns the values reported at
    intervals 1..n. Returning None makes the trial fail after its reports.
    """
    def __init__(self, curve_fn, fail_ids=(), reject_ids=()):
        self.curve_fn = curve_fn
        self.fail_ids = set(fail_ids)
        self.reject_ids = set(reject_ids)
        self.dispatched = []
        self.cancelled = []

    def dispatch(self, context):
        if context.trial_id in self.reject_ids:
            raise RuntimeError("no capacity")
        self.dispatched.append(context)
        handle = f"h{context.trial_id}"
        for interval, value in enumerate(self.curve_fn(context.configuration, context.trial_id), start=1):
            self.sink.on_metric(handle, interval, value)
        if context.trial_id in self.fail_ids:
            self.sink.on_finished(handle, TrialStatus.FAILED, "boom")
        else:
            self.sink.on_finished(handle, TrialStatus.COMPLETED)
        return handle

    def cancel(self, handle):
        self.cancelled.append(handle)


class LockstepExecutor(TrialExecutor):
    """
    Holds dispatched trials until ``batch_size`` of them are pending, then
    emits their reports interval by interval across all of them.
    """
    def __init__(self, curves, batch_size):
        self.curves = curves
        self.batch_size = batch_size
        self.pending = []
        self.cancelled = []

    def dispatch(self, context):
        self.pending.append(context.trial_id)
        if len(self.pending) == self.batch_size:
            self._flush()
        return context.trial_id

    def _flush(self):
        batch, self.pending = self.pending, []
        n_intervals = max(len(self.curves[tid]) for tid in batch)
        for interval in range(1, n_intervals + 1):
            for tid in batch:
                if interval <= len(self.curves[tid]):
                    self.sink.on_metric(tid, interval, self.curves[tid][interval - 1])
        for tid in batch:
            self.sink.on_finished(tid, TrialStatus.COMPLETED)

    def cancel(self, handle):
        self.cancelled.append(handle)


@pytest.fixture
def discrete_space():
    """A small all-discrete search space."""
    return (SearchSpace()
            .add_choice("batch_size", [16, 32, 64])
            .add_choice("optimizer", ["adam", "sgd"])
            .add_quniform("layers", 1, 4, 1))


@pytest.fixture
def mixed_space():
    """A search space mixing discrete and continuous hyperparameters."""
    return (SearchSpace()
            .add_uniform("dropout", 0.0, 0.5)
            .add_loguniform("learning_rate", -9.0, -2.0)
            .add_choice("batch_size", [16, 32, 64]))
