import pytest

from hyperdrive import (
    BanditPolicy,
    BayesianSampler,
    ConflictingConfiguration,
    Goal,
    GridSampler,
    InvalidSearchSpace,
    MedianStoppingPolicy,
    RandomSampler,
    SearchSpace,
    TuningRunConfig,
    declaration_from_dict,
    load_declaration,
)


@pytest.fixture
def space():
    return SearchSpace().add_uniform("lr", 0.001, 0.1).add_choice("batch_size", [16, 32])


def test_bayesian_with_policy_conflicts(space):
    """
    Tests that Bayesian sampling cannot be paired with early termination.
    """
    with pytest.raises(ConflictingConfiguration):
        TuningRunConfig(
            primary_metric_name="accuracy",
            goal="maximize",
            sampler=BayesianSampler(space),
            policy=BanditPolicy(slack_amount=0.1),
            max_total_runs=10,
        )


def test_bayesian_without_policy_is_fine(space):
    config = TuningRunConfig("accuracy", "maximize", BayesianSampler(space), max_total_runs=10)
    assert config.policy is None
    assert config.evaluation_interval is None


def test_config_normalizes_goal_and_exposes_policy_cadence(space):
    """
    Tests goal parsing and the evaluation settings taken from the policy.
    """
    config = TuningRunConfig(
        primary_metric_name="loss",
        goal="MINIMIZE",
        sampler=RandomSampler(space),
        policy=MedianStoppingPolicy(evaluation_interval=2, delay_evaluation=4),
        max_total_runs=8,
        max_concurrent_runs=2,
    )
    assert config.goal is Goal.MINIMIZE
    assert not config.maximize
    assert config.evaluation_interval == 2
    assert config.delay_evaluation == 4
    assert config.search_space is space


@pytest.mark.parametrize("overrides", [
    {"goal": "sideways"},
    {"max_total_runs": 0},
    {"max_concurrent_runs": 0},
    {"primary_metric_name": ""},
    {"max_duration_minutes": -1},
])
def test_invalid_config_values(space, overrides):
    kwargs = dict(primary_metric_name="accuracy", goal="maximize", sampler=RandomSampler(space),
                  max_total_runs=5)
    kwargs.update(overrides)
    with pytest.raises(ValueError):
        TuningRunConfig(**kwargs)


DECLARATION = {
    "primary_metric": "accuracy",
    "goal": "maximize",
    "max_total_runs": 12,
    "max_concurrent_runs": 3,
    "sampling": {"strategy": "random", "seed": 7},
    "search_space": {
        "learning_rate": {"distribution": "loguniform", "params": [-6, -1]},
        "batch_size": {"distribution": "choice", "values": [16, 32, 64]},
    },
    "policy": {"name": "bandit", "slack_amount": 0.2, "evaluation_interval": 1, "delay_evaluation": 5},
}


def test_declaration_from_dict():
    """
    Tests building a full run configuration from a declaration mapping.
    """
    config = declaration_from_dict(DECLARATION)
    assert isinstance(config.sampler, RandomSampler)
    assert config.sampler.seed == 7
    assert isinstance(config.policy, BanditPolicy)
    assert config.policy.slack_amount == 0.2
    assert config.max_concurrent_runs == 3
    assert config.search_space.names == ["learning_rate", "batch_size"]
    assert config.to_dict()["sampling"] == {"strategy": "random"}


def test_declaration_errors():
    """
    Tests that declaration problems surface before any trial runs.
    """
    with pytest.raises(ValueError):
        declaration_from_dict({"primary_metric": "accuracy"})

    grid_over_continuous = dict(DECLARATION, sampling={"strategy": "grid"})
    with pytest.raises(InvalidSearchSpace):
        declaration_from_dict(grid_over_continuous)

    bayes_with_policy = dict(DECLARATION, search_space={
        "batch_size": {"distribution": "choice", "values": [16, 32, 64]},
    }, sampling={"strategy": "bayesian"})
    with pytest.raises(ConflictingConfiguration):
        declaration_from_dict(bayes_with_policy)

    with pytest.raises(ValueError):
        declaration_from_dict(dict(DECLARATION, sampling={"strategy": "annealing"}))


def test_load_declaration_from_yaml(tmp_path):
    """
    Tests reading a YAML declaration file.
    """
    path = tmp_path / "run.yaml"
    path.write_text(
        "primary_metric: loss\n"
        "goal: minimize\n"
        "max_total_runs: 6\n"
        "sampling:\n"
        "  strategy: grid\n"
        "search_space:\n"
        "  layers: {distribution: choice, range: [1, 4]}\n"
        "  units: {distribution: quniform, params: [32, 64, 32]}\n"
    )
    config = load_declaration(path)
    assert isinstance(config.sampler, GridSampler)
    assert config.sampler.size == 6
    assert config.goal is Goal.MINIMIZE
    assert config.policy is None
    assert config.max_concurrent_runs == 1

    bad = tmp_path / "bad.yaml"
    bad.write_text("- just\n- a list\n")
    with pytest.raises(ValueError):
        load_declaration(bad)


def test_bayesian_goal_must_match_run_goal(space):
    """
    Tests that a Bayesian sampler built for one goal cannot drive a run with the other.
    """
    with pytest.raises(ConflictingConfiguration):
        TuningRunConfig("loss", "minimize", BayesianSampler(space), max_total_runs=10)

    config = TuningRunConfig("loss", "minimize", BayesianSampler(space, goal="minimize"), max_total_runs=10)
    assert config.sampler.maximize == config.maximize


def test_declaration_passes_goal_to_bayesian_sampler():
    config = declaration_from_dict({
        "primary_metric": "loss",
        "goal": "minimize",
        "max_total_runs": 5,
        "sampling": {"strategy": "bayesian"},
        "search_space": {"x": {"distribution": "uniform", "params": [0, 1]}},
    })
    assert not config.sampler.maximize
