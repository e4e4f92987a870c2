import math

import numpy as np
import pytest

from hyperdrive import Distribution, HyperparameterSpec, Kind, SearchSpace, UnsupportedOperation


def test_spec_kinds():
    """
    Tests that each distribution maps to the right kind.
    """
    assert HyperparameterSpec("a", "choice", (1, 2)).kind is Kind.DISCRETE
    assert HyperparameterSpec("b", "quniform", (0, 10, 2)).kind is Kind.DISCRETE
    assert HyperparameterSpec("c", "qlognormal", (0.0, 1.0, 1)).kind is Kind.DISCRETE
    assert HyperparameterSpec("d", "uniform", (0.0, 1.0)).kind is Kind.CONTINUOUS
    assert HyperparameterSpec("e", "lognormal", (0.0, 1.0)).kind is Kind.CONTINUOUS


@pytest.mark.parametrize("distribution, params", [
    ("uniform", (1.0, 1.0)),
    ("uniform", (2.0, 1.0)),
    ("quniform", (0, 10, 0)),
    ("normal", (0.0, -1.0)),
    ("qnormal", (0.0, 1.0)),
    ("loguniform", ("a", "b")),
    ("choice", ()),
    ("choice", (1, 2, 1)),
    ("beta", (1, 2)),
])
def test_invalid_specs_rejected_at_construction(distribution, params):
    """
    Tests that malformed parameters fail when the spec is built, not when sampled.
    """
    with pytest.raises(ValueError):
        HyperparameterSpec("x", distribution, params)


def test_choice_from_range():
    """
    Tests that a choice can be declared as an integer range.
    """
    spec = HyperparameterSpec("units", Distribution.CHOICE, range(16, 65, 16))
    assert spec.enumerate() == (16, 32, 48, 64)


def test_choice_never_yields_values_outside_support():
    """
    Tests that sampling a choice only returns declared values.
    """
    spec = HyperparameterSpec("batch_size", "choice", (16, 32, 64))
    rng = np.random.RandomState(0)
    values = {spec.sample(rng) for _ in range(200)}
    assert values == {16, 32, 64}
    assert not spec.contains(48)


def test_quniform_sampling_matches_enumeration():
    """
    Tests that quniform samples are multiples of q within the enumerated support.
    """
    spec = HyperparameterSpec("units", "quniform", (10, 100, 10))
    support = spec.enumerate()
    assert support == tuple(range(10, 101, 10))
    rng = np.random.RandomState(1)
    for _ in range(200):
        value = spec.sample(rng)
        assert isinstance(value, int)
        assert value in support
        assert spec.contains(value)


def test_float_quniform_values_are_in_support():
    """
    Tests quantization with a fractional step.
    """
    spec = HyperparameterSpec("dropout", "quniform", (0.0, 0.5, 0.1))
    support = spec.enumerate()
    assert len(support) == 6
    rng = np.random.RandomState(2)
    for _ in range(100):
        assert spec.sample(rng) in support


def test_float_step_values_match_literals():
    """
    Tests that fractional steps produce the decimal values a user would write.
    """
    spec = HyperparameterSpec("dropout", "quniform", (0.0, 0.5, 0.1))
    assert spec.enumerate() == (0.0, 0.1, 0.2, 0.3, 0.4, 0.5)
    assert spec.contains(0.3)
    assert not spec.contains(0.35)

    space = SearchSpace().add_quniform("momentum", 0.5, 0.95, 0.05)
    assert space.validate({"momentum": 0.85}) == (True, [])


def test_qloguniform_enumeration():
    """
    Tests that qloguniform enumerates the quantized exponentiated range.
    """
    spec = HyperparameterSpec("n", "qloguniform", (0.0, math.log(8), 1))
    assert spec.enumerate() == tuple(range(1, 9))
    rng = np.random.RandomState(3)
    for _ in range(100):
        assert spec.sample(rng) in spec.enumerate()


def test_log_distributions_sample_in_log_space():
    """
    Tests that loguniform bounds are exponents and samples skew low.
    """
    spec = HyperparameterSpec("lr", "loguniform", (math.log(1e-4), math.log(1.0)))
    rng = np.random.RandomState(4)
    samples = [spec.sample(rng) for _ in range(500)]
    assert all(1e-4 <= s <= 1.0 for s in samples)
    assert sum(s < 0.01 for s in samples) > sum(s > 0.1 for s in samples)

    lognormal = HyperparameterSpec("w", "lognormal", (0.0, 1.0))
    assert all(lognormal.sample(rng) > 0 for _ in range(100))


def test_qnormal_values_are_quantized():
    """
    Tests that qnormal rounds draws to multiples of q.
    """
    spec = HyperparameterSpec("depth", "qnormal", (10, 3, 2))
    rng = np.random.RandomState(5)
    for _ in range(100):
        value = spec.sample(rng)
        assert value % 2 == 0
        assert spec.contains(value)


@pytest.mark.parametrize("distribution, params", [
    ("uniform", (0.0, 1.0)),
    ("normal", (0.0, 1.0)),
    ("lognormal", (0.0, 1.0)),
    ("loguniform", (-3.0, 0.0)),
    ("qnormal", (0.0, 1.0, 1)),
])
def test_enumerate_not_supported(distribution, params):
    """
    Tests that only bounded discrete specs can be enumerated.
    """
    spec = HyperparameterSpec("x", distribution, params)
    assert not spec.is_enumerable
    with pytest.raises(UnsupportedOperation):
        spec.enumerate()


def test_search_space_builder_and_sampling(mixed_space):
    """
    Tests chained construction and sampling of a full configuration.
    """
    assert mixed_space.names == ["dropout", "learning_rate", "batch_size"]
    config = mixed_space.sample(np.random.RandomState(0))
    assert set(config) == {"dropout", "learning_rate", "batch_size"}
    assert 0.0 <= config["dropout"] <= 0.5
    assert math.exp(-9.0) <= config["learning_rate"] <= math.exp(-2.0)
    assert config["batch_size"] in (16, 32, 64)
    valid, errors = mixed_space.validate(config)
    assert valid, errors


def test_search_space_rejects_duplicates_and_frozen_changes():
    """
    Tests that names are unique and a frozen space cannot change.
    """
    space = SearchSpace().add_uniform("x", 0.0, 1.0)
    with pytest.raises(ValueError):
        space.add_uniform("x", 0.0, 2.0)
    space.freeze()
    with pytest.raises(RuntimeError):
        space.add_choice("y", [1, 2])


def test_validate_reports_problems(discrete_space):
    """
    Tests configuration validation against the space.
    """
    valid, errors = discrete_space.validate({"batch_size": 48, "optimizer": "adam", "extra": 1})
    assert not valid
    assert any("batch_size" in e for e in errors)
    assert any("layers" in e for e in errors)
    assert any("extra" in e for e in errors)


def test_search_space_from_dict_round_trip():
    """
    Tests building a space from its declarative form.
    """
    space = SearchSpace.from_dict({
        "lr": {"distribution": "uniform", "params": [0.001, 0.1]},
        "units": {"distribution": "choice", "range": [1, 5]},
        "batch_size": {"distribution": "choice", "values": [16, 32]},
    })
    assert space["units"].enumerate() == (1, 2, 3, 4)
    assert SearchSpace.from_dict(space.to_dict()).to_dict() == space.to_dict()

    with pytest.raises(ValueError):
        SearchSpace.from_dict({"lr": {"params": [0, 1]}})
