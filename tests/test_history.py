import pytest

from hyperdrive import MetricHistory
from hyperdrive.core import running_average, value_at


def test_append_keeps_interval_order():
    """
    Tests that out-of-order reports are placed by interval.
    """
    history = MetricHistory()
    history.register(0)
    history.append(0, 2, 0.2)
    history.append(0, 1, 0.1)
    history.append(0, 3, 0.3)
    assert [r.interval for r in history.series(0)] == [1, 2, 3]
    assert history.latest(0).value == 0.3


def test_duplicate_interval_rejected():
    """
    Tests that a trial cannot report the same interval twice.
    """
    history = MetricHistory()
    history.register(0)
    history.append(0, 1, 0.5)
    with pytest.raises(ValueError):
        history.append(0, 1, 0.6)
    with pytest.raises(ValueError):
        history.append(0, 0, 0.6)


def test_unknown_trial_rejected():
    """
    Tests that appending for an unregistered trial fails.
    """
    history = MetricHistory()
    with pytest.raises(KeyError):
        history.append(7, 1, 0.5)
    history.register(7)
    with pytest.raises(ValueError):
        history.register(7)


def test_snapshot_is_isolated_from_later_appends():
    """
    Tests that a snapshot does not change when the ledger grows.
    """
    history = MetricHistory()
    history.register(0)
    history.register(1)
    history.append(0, 1, 0.5)
    snapshot = history.snapshot(exclude=[1])
    history.append(0, 2, 0.6)
    assert list(snapshot) == [0]
    assert len(snapshot[0]) == 1
    assert len(history) == 2


def test_value_at_and_running_average():
    """
    Tests the lookup helpers used by the policies.
    """
    history = MetricHistory()
    history.register(0)
    for interval, value in [(1, 0.2), (2, 0.4), (4, 0.9)]:
        history.append(0, interval, value)
    series = history.series(0)
    assert value_at(series, 2) == 0.4
    assert value_at(series, 3) is None
    assert running_average(series, 2) == pytest.approx(0.3)
    assert running_average(series, 3) == pytest.approx(0.3)
    assert running_average(series, 4) == pytest.approx(0.5)
    assert running_average((), 4) is None
