import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
from hyperdrive import BanditPolicy, GridSampler, Scheduler, SearchSpace, TuningRunConfig  # noqa: E402
from hyperdrive.visualization import plot_metric_history  # noqa: E402

from conftest import ScriptedExecutor  # noqa: E402


def make_scheduler(curves, policy=None):
    space = SearchSpace().add_choice("i", list(range(len(curves))))
    config = TuningRunConfig("accuracy", "maximize", GridSampler(space), max_total_runs=len(curves),
                             policy=policy)
    return Scheduler(config, ScriptedExecutor(lambda cfg, tid: curves[tid]))


def test_plot_metric_history_saves_figure(tmp_path):
    """
    Tests plotting a run with completed and cancelled trials.
    """
    scheduler = make_scheduler([[0.5, 0.8, 0.9], [0.1, 0.2, 0.3], [0.6, 0.7, 0.85]],
                               policy=BanditPolicy(slack_amount=0.3, delay_evaluation=2))
    scheduler.run()
    path = tmp_path / "history.png"
    fig = plot_metric_history(scheduler, save_path=str(path))
    assert fig is not None
    assert path.exists()
    assert len(fig.axes) == 2
    assert len(fig.axes[0].lines) == 3
    plt.close(fig)


def test_plot_without_reports(capsys):
    scheduler = make_scheduler([[], []])
    scheduler.run()
    assert plot_metric_history(scheduler) is None
    assert "No metric reports" in capsys.readouterr().out
