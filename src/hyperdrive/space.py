"""
Search space model: typed hyperparameter specs and the space that holds them.

Every hyperparameter carries a distribution with parameters validated when the
spec is built, so a malformed space is rejected long before any trial runs.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .exceptions import UnsupportedOperation

Configuration = Dict[str, Any]


class Kind(Enum):
    DISCRETE = "discrete"
    CONTINUOUS = "continuous"


class Distribution(Enum):
    """The value distributions a hyperparameter can be drawn from."""
    CHOICE = "choice"
    QUNIFORM = "quniform"
    QLOGUNIFORM = "qloguniform"
    QNORMAL = "qnormal"
    QLOGNORMAL = "qlognormal"
    UNIFORM = "uniform"
    LOGUNIFORM = "loguniform"
    NORMAL = "normal"
    LOGNORMAL = "lognormal"

    @property
    def kind(self) -> Kind:
        if self in _CONTINUOUS:
            return Kind.CONTINUOUS
        return Kind.DISCRETE


_CONTINUOUS = {Distribution.UNIFORM, Distribution.LOGUNIFORM, Distribution.NORMAL, Distribution.LOGNORMAL}
_BOUNDED = {Distribution.UNIFORM, Distribution.LOGUNIFORM, Distribution.QUNIFORM, Distribution.QLOGUNIFORM}
_QUANTIZED = {Distribution.QUNIFORM, Distribution.QLOGUNIFORM, Distribution.QNORMAL, Distribution.QLOGNORMAL}
_PARAM_COUNT = {
    Distribution.UNIFORM: 2,
    Distribution.LOGUNIFORM: 2,
    Distribution.NORMAL: 2,
    Distribution.LOGNORMAL: 2,
    Distribution.QUNIFORM: 3,
    Distribution.QLOGUNIFORM: 3,
    Distribution.QNORMAL: 3,
    Distribution.QLOGNORMAL: 3,
}


def _is_number(x: Any) -> bool:
    return isinstance(x, (int, float, np.integer, np.floating)) and not isinstance(x, bool)


def _decimals(q: float) -> int:
    """Number of decimal places of a quantization step, e.g. 2 for 0.05."""
    exponent = Decimal(repr(float(q))).as_tuple().exponent
    return max(0, -exponent)


@dataclass(frozen=True)
class HyperparameterSpec:
    """
    A single tunable dimension.

    For ``choice`` the params are the ordered candidate values. For every other
    distribution they are numeric: ``(low, high)`` for the uniform family,
    ``(mu, sigma)`` for the normal family, with a trailing quantization step
    ``q`` for the ``q*`` variants. Log variants take their bounds (or mean and
    deviation) in log-space and exponentiate the draw.

    Attributes:
        name: Identifier of the hyperparameter, unique within a space.
        distribution: The distribution values are drawn from.
        params: Distribution parameters, see above.
    """
    name: str
    distribution: Distribution
    params: Tuple[Any, ...]

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name:
            raise ValueError(f"Hyperparameter name must be a non-empty string, got {self.name!r}")
        distribution = self.distribution
        if not isinstance(distribution, Distribution):
            try:
                distribution = Distribution(str(distribution).lower())
            except ValueError:
                raise ValueError(f"Unknown distribution '{self.distribution}' for '{self.name}'") from None
            object.__setattr__(self, "distribution", distribution)
        params = self.params
        if isinstance(params, range):
            params = tuple(params)
        object.__setattr__(self, "params", tuple(params))
        self._validate()

    def _validate(self):
        params = self.params
        if self.distribution is Distribution.CHOICE:
            if not params:
                raise ValueError(f"choice '{self.name}' needs at least one value")
            for value in params:
                if params.count(value) > 1:
                    raise ValueError(f"choice '{self.name}' has duplicate value {value!r}")
            return

        expected = _PARAM_COUNT[self.distribution]
        if len(params) != expected:
            raise ValueError(
                f"{self.distribution.value} '{self.name}' takes {expected} parameters, got {len(params)}")
        if not all(_is_number(p) for p in params):
            raise ValueError(f"{self.distribution.value} '{self.name}' parameters must be numeric: {params}")
        if self.distribution in _BOUNDED:
            if not params[0] < params[1]:
                raise ValueError(f"{self.distribution.value} '{self.name}' needs low < high, got {params[:2]}")
        elif params[1] <= 0:
            raise ValueError(f"{self.distribution.value} '{self.name}' needs sigma > 0, got {params[1]}")
        if self.distribution in _QUANTIZED and params[2] <= 0:
            raise ValueError(f"{self.distribution.value} '{self.name}' needs q > 0, got {params[2]}")

    @property
    def kind(self) -> Kind:
        return self.distribution.kind

    @property
    def q(self) -> Optional[Union[int, float]]:
        if self.distribution in _QUANTIZED:
            return self.params[2]
        return None

    @property
    def is_enumerable(self) -> bool:
        """True when the support is a finite, known sequence of values."""
        return self.distribution in (Distribution.CHOICE, Distribution.QUNIFORM, Distribution.QLOGUNIFORM)

    # --- sampling ---

    def _raw(self, rng: np.random.RandomState) -> float:
        a, b = self.params[0], self.params[1]
        d = self.distribution
        if d in (Distribution.UNIFORM, Distribution.QUNIFORM):
            return rng.uniform(a, b)
        if d in (Distribution.LOGUNIFORM, Distribution.QLOGUNIFORM):
            return np.exp(rng.uniform(a, b))
        if d in (Distribution.NORMAL, Distribution.QNORMAL):
            return rng.normal(a, b)
        return np.exp(rng.normal(a, b))

    def _from_index(self, k: int) -> Union[int, float]:
        value = k * self.q
        if isinstance(self.q, (int, np.integer)):
            return int(value)
        return round(float(value), _decimals(self.q))

    def _index_of(self, x: float) -> int:
        return int(np.round(x / self.q))

    def sample(self, rng: Optional[np.random.RandomState] = None) -> Any:
        """Draws one value from the distribution."""
        if rng is None:
            rng = np.random.RandomState()
        if self.distribution is Distribution.CHOICE:
            return self.params[rng.randint(len(self.params))]
        raw = self._raw(rng)
        if self.distribution in _QUANTIZED:
            return self._from_index(self._index_of(raw))
        return float(raw)

    def _index_bounds(self) -> Tuple[int, int]:
        low, high = self.params[0], self.params[1]
        if self.distribution is Distribution.QLOGUNIFORM:
            low, high = math.exp(low), math.exp(high)
        return self._index_of(low), self._index_of(high)

    def enumerate(self) -> Tuple[Any, ...]:
        """
        Returns every value the spec can produce, in order.

        Raises:
            UnsupportedOperation: for continuous specs and for the unbounded
                quantized normal variants.
        """
        if self.distribution is Distribution.CHOICE:
            return tuple(self.params)
        if self.distribution in (Distribution.QUNIFORM, Distribution.QLOGUNIFORM):
            k_low, k_high = self._index_bounds()
            return tuple(self._from_index(k) for k in range(k_low, k_high + 1))
        raise UnsupportedOperation(
            f"Cannot enumerate {self.kind.value} hyperparameter '{self.name}' ({self.distribution.value})")

    def contains(self, value: Any) -> bool:
        """Whether ``value`` lies within the support of this spec."""
        d = self.distribution
        if d is Distribution.CHOICE:
            return value in self.params
        if not _is_number(value):
            return False
        if d in _QUANTIZED:
            if not math.isfinite(value):
                return False
            k = self._index_of(value)
            if self._from_index(k) != value:
                return False
            if d in (Distribution.QUNIFORM, Distribution.QLOGUNIFORM):
                k_low, k_high = self._index_bounds()
                return k_low <= k <= k_high
            if d is Distribution.QLOGNORMAL:
                return value >= 0
            return True
        low, high = self.params[0], self.params[1]
        if d is Distribution.UNIFORM:
            return low <= value <= high
        if d is Distribution.LOGUNIFORM:
            return math.exp(low) <= value <= math.exp(high)
        if d is Distribution.LOGNORMAL:
            return value >= 0
        return math.isfinite(value)

    # --- (de)serialization ---

    def to_dict(self) -> Dict[str, Any]:
        if self.distribution is Distribution.CHOICE:
            return {"distribution": "choice", "values": list(self.params)}
        return {"distribution": self.distribution.value, "params": list(self.params)}

    @classmethod
    def from_dict(cls, name: str, data: Mapping[str, Any]) -> "HyperparameterSpec":
        """
        Builds a spec from its declarative form, e.g.
        ``{"distribution": "choice", "values": [16, 32]}``,
        ``{"distribution": "choice", "range": [1, 10, 2]}`` or
        ``{"distribution": "quniform", "params": [0, 10, 2]}``.
        """
        if "distribution" not in data:
            raise ValueError(f"Hyperparameter '{name}' is missing 'distribution'")
        distribution = str(data["distribution"]).lower()
        if distribution == Distribution.CHOICE.value:
            if "range" in data:
                return cls(name, Distribution.CHOICE, tuple(range(*data["range"])))
            return cls(name, Distribution.CHOICE, tuple(data.get("values", ())))
        return cls(name, distribution, tuple(data.get("params", ())))


class SearchSpace:
    """
    Defines the hyperparameter search space for a tuning run.

    Hyperparameters are added with the ``add_*`` builder methods, which can be
    chained. Once a run starts the space is frozen and no longer accepts
    additions.
    """
    def __init__(self, specs: Optional[Sequence[HyperparameterSpec]] = None):
        self._specs: Dict[str, HyperparameterSpec] = {}
        self._frozen = False
        for spec in specs or []:
            self.add_spec(spec)

    def add_spec(self, spec: HyperparameterSpec) -> "SearchSpace":
        if self._frozen:
            raise RuntimeError("Search space is frozen; it cannot change once a run has started")
        if spec.name in self._specs:
            raise ValueError(f"Hyperparameter '{spec.name}' is already defined")
        self._specs[spec.name] = spec
        return self

    def add(self, name: str, distribution: Union[str, Distribution], *params: Any) -> "SearchSpace":
        return self.add_spec(HyperparameterSpec(name, distribution, params))

    def add_choice(self, name: str, values: Union[Sequence[Any], range]) -> "SearchSpace":
        """
        Adds a discrete hyperparameter picked from an ordered set of values.
        A ``range`` object may be passed for integer ranges.
        """
        return self.add_spec(HyperparameterSpec(name, Distribution.CHOICE, tuple(values)))

    def add_uniform(self, name: str, low: float, high: float) -> "SearchSpace":
        return self.add(name, Distribution.UNIFORM, low, high)

    def add_quniform(self, name: str, low: float, high: float, q: float) -> "SearchSpace":
        return self.add(name, Distribution.QUNIFORM, low, high, q)

    def add_loguniform(self, name: str, min_value: float, max_value: float) -> "SearchSpace":
        return self.add(name, Distribution.LOGUNIFORM, min_value, max_value)

    def add_qloguniform(self, name: str, min_value: float, max_value: float, q: float) -> "SearchSpace":
        return self.add(name, Distribution.QLOGUNIFORM, min_value, max_value, q)

    def add_normal(self, name: str, mu: float, sigma: float) -> "SearchSpace":
        return self.add(name, Distribution.NORMAL, mu, sigma)

    def add_qnormal(self, name: str, mu: float, sigma: float, q: float) -> "SearchSpace":
        return self.add(name, Distribution.QNORMAL, mu, sigma, q)

    def add_lognormal(self, name: str, mu: float, sigma: float) -> "SearchSpace":
        return self.add(name, Distribution.LOGNORMAL, mu, sigma)

    def add_qlognormal(self, name: str, mu: float, sigma: float, q: float) -> "SearchSpace":
        return self.add(name, Distribution.QLOGNORMAL, mu, sigma, q)

    def freeze(self) -> "SearchSpace":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def names(self) -> List[str]:
        return list(self._specs)

    def __getitem__(self, name: str) -> HyperparameterSpec:
        return self._specs[name]

    def __contains__(self, name: object) -> bool:
        return name in self._specs

    def __iter__(self) -> Iterator[HyperparameterSpec]:
        return iter(self._specs.values())

    def __len__(self) -> int:
        return len(self._specs)

    def __repr__(self) -> str:
        return f"SearchSpace({', '.join(self._specs)})"

    def sample(self, rng: Optional[np.random.RandomState] = None) -> Configuration:
        """Samples a random configuration, drawing each hyperparameter independently."""
        if rng is None:
            rng = np.random.RandomState()
        return {name: spec.sample(rng) for name, spec in self._specs.items()}

    def validate(self, config: Mapping[str, Any]) -> Tuple[bool, List[str]]:
        errors: List[str] = []
        for name, spec in self._specs.items():
            if name not in config:
                errors.append(f"Missing value for {name}")
            elif not spec.contains(config[name]):
                errors.append(f"Invalid value for {name}: {config[name]!r}")
        for name in config:
            if name not in self._specs:
                errors.append(f"Unknown hyperparameter {name}")
        return (len(errors) == 0, errors)

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {name: spec.to_dict() for name, spec in self._specs.items()}

    @classmethod
    def from_dict(cls, data: Mapping[str, Mapping[str, Any]]) -> "SearchSpace":
        return cls([HyperparameterSpec.from_dict(name, spec) for name, spec in data.items()])
