import argparse
import logging
import sys
from importlib import import_module

from .configuration import load_declaration
from .executor import LocalTrialExecutor
from .exceptions import HyperdriveError
from .scheduler import Scheduler
from .storage.sqlite import SQLiteStorage
from .utils import get_logger


def resolve_entry(entry):
    """Imports ``module:function`` and returns the function."""
    module_name, sep, func_name = entry.partition(":")
    if not sep or not module_name or not func_name:
        raise ValueError(f"Entry point must look like 'module:function', got '{entry}'")
    module = import_module(module_name)
    try:
        return getattr(module, func_name)
    except AttributeError:
        raise ValueError(f"Module '{module_name}' has no attribute '{func_name}'") from None


def cmd_run(args):
    config = load_declaration(args.declaration)
    train_fn = resolve_entry(args.entry)
    executor = LocalTrialExecutor(train_fn, max_workers=args.workers)
    scheduler = Scheduler(config, executor, storage=args.storage, run_id=args.run_id)
    try:
        scheduler.run()
    finally:
        executor.shutdown(wait=False)
    scheduler.print_summary()
    if args.plot:
        from .visualization import plot_metric_history
        plot_metric_history(scheduler, save_path=args.plot)
    return 0


def cmd_trials(args):
    storage = SQLiteStorage(args.storage)
    run = storage.get_run(args.run_id)
    if run is None:
        print(f"❌ Run '{args.run_id}' not found in {args.storage}")
        return 1
    print(f"Run {run['run_id']} [{run['state']}] {run['goal']} {run['primary_metric']}")
    for trial in storage.get_all_trials(args.run_id):
        value = "n/a" if trial.final_value is None else f"{trial.final_value:.6f}"
        print(f"  #{trial.trial_id:<4} {trial.status.value:<10} {value:>12}  {trial.configuration}")
        if args.history:
            for report in trial.reports:
                print(f"        interval {report.interval:>4}: {report.value:.6f}")
    return 0


def build_parser():
    parser = argparse.ArgumentParser(
        prog="hyperdrive",
        description="🚀 Hyperparameter tuning scheduler",
        formatter_class=argparse.RawTextHelpFormatter
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug messages.")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run a tuning run from a YAML declaration.")
    run.add_argument("declaration", help="Path to the YAML declaration of the tuning run.")
    run.add_argument("--entry", required=True,
                     help="Training function as 'module:function'; it is called as\n"
                          "fn(configuration, reporter) and reports with reporter.report(value).")
    run.add_argument("--storage", default=None, help="SQLite file to record the run in.")
    run.add_argument("--run-id", default=None, help="Identifier for the run (generated by default).")
    run.add_argument("--workers", type=int, default=None, help="Thread pool size of the local executor.")
    run.add_argument("--plot", default=None, help="Save a metric history plot to this path.")
    run.set_defaults(func=cmd_run)

    trials = sub.add_parser("trials", help="List the trials of a recorded run.")
    trials.add_argument("--storage", required=True, help="SQLite file the run was recorded in.")
    trials.add_argument("--run-id", required=True, help="Identifier of the run.")
    trials.add_argument("--history", action="store_true", help="Also print each trial's metric history.")
    trials.set_defaults(func=cmd_trials)
    return parser


def main(argv=None):
    """
    Command-line interface for running and inspecting tuning runs.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    get_logger("hyperdrive", logging.DEBUG if args.verbose else logging.INFO)
    try:
        return args.func(args)
    except (HyperdriveError, ValueError, OSError) as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
