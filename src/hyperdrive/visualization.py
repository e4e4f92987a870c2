import matplotlib.pyplot as plt

from .core.trial import TrialStatus

_STATUS_STYLE = {
    TrialStatus.COMPLETED: dict(linestyle='-', alpha=0.9),
    TrialStatus.CANCELLED: dict(linestyle='--', alpha=0.6),
    TrialStatus.FAILED: dict(linestyle=':', alpha=0.5),
    TrialStatus.RUNNING: dict(linestyle='-', alpha=0.5),
}


def plot_metric_history(scheduler, save_path=None):
    """
    Plots the primary-metric history of a tuning run.

    The left panel draws every trial's metric curve over its reporting
    intervals, dashed for cancelled trials. The right panel shows the final
    value of each completed trial in completion order with the running best.

    Args:
        scheduler (Scheduler): The scheduler whose run should be visualized.
        save_path (str, optional): If provided, saves the plot to this file path.

    Returns:
        The matplotlib figure, or None if no trial reported a metric.
    """
    trials = [t for t in scheduler.trials() if t.reports]
    if not trials:
        print("No metric reports to plot.")
        return None

    metric = scheduler.config.primary_metric_name
    fig = plt.figure(figsize=(14, 6))
    fig.suptitle(f"Metric History for run '{scheduler.run_id}'", fontsize=16)

    # Plot 1: Per-trial curves
    ax1 = fig.add_subplot(1, 2, 1)
    for trial in trials:
        intervals = [r.interval for r in trial.reports]
        values = [r.value for r in trial.reports]
        ax1.plot(intervals, values, marker='o', markersize=3, label=f"#{trial.trial_id}",
                 **_STATUS_STYLE.get(trial.status, {}))
    ax1.set_xlabel('Interval')
    ax1.set_ylabel(metric)
    ax1.set_title('Trial Curves')
    if len(trials) <= 12:
        ax1.legend(fontsize='small')
    ax1.grid(True, alpha=0.4)

    # Plot 2: Final values and running best
    ax2 = fig.add_subplot(1, 2, 2)
    completed = sorted((t for t in trials if t.status is TrialStatus.COMPLETED),
                       key=lambda t: t.completion_order)
    if completed:
        values = [t.final_value for t in completed]
        best_values = []
        current_best = values[0]
        for value in values:
            if scheduler.config.maximize:
                current_best = max(current_best, value)
            else:
                current_best = min(current_best, value)
            best_values.append(current_best)
        order = list(range(len(values)))
        ax2.plot(order, values, 'o', alpha=0.5, markersize=4, label='Final Values')
        ax2.plot(order, best_values, 'r-', linewidth=2.5, label='Best Value')
        ax2.legend()
    else:
        ax2.text(0.5, 0.5, 'No completed trials.',
                 horizontalalignment='center', verticalalignment='center')
    ax2.set_xlabel('Completion Order')
    ax2.set_ylabel(metric)
    ax2.set_title('Completed Trials')
    ax2.grid(True, alpha=0.4)

    fig.tight_layout(rect=[0, 0.03, 1, 0.95])

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches='tight')
        print(f"Plot saved to: {save_path}")

    return fig
