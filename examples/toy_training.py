"""
A toy "training job" for trying out the scheduler.

The accuracy curve saturates towards a ceiling that depends on the learning
rate and batch size, with a little noise on every epoch.
"""
import math
import time
import zlib

import numpy as np


def train(config, reporter):
    rng = np.random.RandomState(zlib.crc32(repr(sorted(config.items())).encode()))
    lr = config["learning_rate"]
    ceiling = 0.95 - 0.15 * abs(math.log10(lr) + 2.5) - 0.0005 * abs(config["batch_size"] - 64)
    for epoch in range(1, config.get("epochs", 20) + 1):
        accuracy = ceiling * (1 - math.exp(-epoch / 4)) + rng.normal(0, 0.01)
        reporter.report(accuracy)
        time.sleep(0.01)


if __name__ == "__main__":
    from hyperdrive import (BanditPolicy, LocalTrialExecutor, RandomSampler, Scheduler,
                            SearchSpace, TuningRunConfig)

    space = (SearchSpace()
             .add_loguniform("learning_rate", math.log(1e-4), math.log(1e-1))
             .add_choice("batch_size", [16, 32, 64, 128]))
    config = TuningRunConfig(
        primary_metric_name="accuracy",
        goal="maximize",
        sampler=RandomSampler(space, seed=0),
        policy=BanditPolicy(slack_factor=0.1, evaluation_interval=1, delay_evaluation=5),
        max_total_runs=20,
        max_concurrent_runs=4,
    )
    executor = LocalTrialExecutor(train)
    scheduler = Scheduler(config, executor)
    scheduler.run()
    executor.shutdown()
    scheduler.print_summary()
