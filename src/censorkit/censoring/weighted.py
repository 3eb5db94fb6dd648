"""Likelihood weighting of distributions and observations."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, NamedTuple

import numpy as np

from ..core import ArrayLike, RandomState
from ..distributions import IndependentProduct


class _Defer(Enum):
    DEFER = "defer"

    def __repr__(self) -> str:
        return "DEFER"


DEFER = _Defer.DEFER
"""Weight state meaning "take the weight from each observation"."""

WeightState = float | None | _Defer


class WeightedObservation(NamedTuple):
    value: float
    weight: float | None = None


def _check_weight(weight: float, label: str = "Weight") -> float:
    value = float(weight)
    if not np.isfinite(value):
        raise ValueError(f"{label} must be finite, got {weight}.")
    if value < 0:
        raise ValueError(f"{label} must be non-negative, got {weight}.")
    return value


def combine_weights(constructor: WeightState, observation: float | None) -> float | None:
    """Combine a constructor weight with a per-observation weight.

    Absent (``None``/``DEFER``) on both sides stays absent; one present weight passes
    through; two present weights multiply. A zero on either side returns ``0.0``
    so the caller never forms ``0 * -inf``.
    """
    own = None if constructor is DEFER else constructor
    if own is None:
        return observation
    if observation is None:
        return own
    if own == 0.0 or observation == 0.0:
        return 0.0
    return own * observation


@dataclass(frozen=True)
class Weighted:
    """Scale the log density of ``dist`` by a weight.

    ``weight`` is a non-negative float, ``None`` (unweighted), or ``DEFER`` (the
    weight must come with each observation as a ``WeightedObservation``).
    """

    dist: Any
    weight: WeightState = None

    def __post_init__(self) -> None:
        if self.weight is not None and self.weight is not DEFER:
            object.__setattr__(self, "weight", _check_weight(self.weight))  # type: ignore[arg-type]

    @property
    def params(self) -> tuple[float, ...]:
        return tuple(self.dist.params)

    def effective_weight(self, observation_weight: float | None = None) -> float | None:
        if observation_weight is not None:
            observation_weight = _check_weight(observation_weight, "Observation weight")
        final = combine_weights(self.weight, observation_weight)
        if final is None and self.weight is DEFER:
            return 0.0
        return final

    def logpdf(self, x: WeightedObservation | ArrayLike | float, weight: float | None = None) -> np.ndarray | float:
        if isinstance(x, WeightedObservation):
            if weight is not None:
                raise ValueError("Pass the observation weight either in the observation or as 'weight', not both.")
            x, weight = x.value, x.weight
        final = self.effective_weight(weight)
        if final == 0.0:
            return -np.inf if np.ndim(x) == 0 else np.full(np.shape(x), -np.inf)
        values = self.dist.logpdf(x)
        if final is None:
            return values
        return final * values

    def pdf(self, x: ArrayLike | float) -> np.ndarray | float:
        return self.dist.pdf(x)

    def cdf(self, x: ArrayLike | float) -> np.ndarray | float:
        return self.dist.cdf(x)

    def logcdf(self, x: ArrayLike | float) -> np.ndarray | float:
        return self.dist.logcdf(x)

    def ccdf(self, x: ArrayLike | float) -> np.ndarray | float:
        return self.dist.ccdf(x)

    def logccdf(self, x: ArrayLike | float) -> np.ndarray | float:
        return self.dist.logccdf(x)

    def quantile(self, p: ArrayLike | float) -> np.ndarray | float:
        return self.dist.quantile(p)

    def rand(self, size: int | None = None, random_state: RandomState = None) -> np.ndarray | float:
        return self.dist.rand(size, random_state=random_state)

    def minimum(self) -> float:
        return self.dist.minimum()

    def maximum(self) -> float:
        return self.dist.maximum()

    def insupport(self, x: ArrayLike | float) -> np.ndarray | bool:
        return self.dist.insupport(x)


def weight(dist: Any, w: WeightState | Sequence[float] | np.ndarray = DEFER) -> Weighted | IndependentProduct:
    """Attach a weight to ``dist``.

    A sequence of weights returns an ``IndependentProduct`` with one ``Weighted``
    component per weight. Without ``w`` the weight is deferred to observations.
    """
    if w is None or w is DEFER or np.ndim(w) == 0:
        return Weighted(dist, w)  # type: ignore[arg-type]
    return IndependentProduct(tuple(Weighted(dist, float(value)) for value in np.asarray(w, dtype=float)))


def weighted_product(dists: Iterable[Any], weights: Sequence[float] | np.ndarray) -> IndependentProduct:
    """Pair heterogeneous components with per-component weights."""
    components = tuple(dists)
    weights = np.asarray(weights, dtype=float)
    if weights.shape != (len(components),):
        raise ValueError("Weights must have same length as the components.")
    return IndependentProduct(
        tuple(Weighted(component, float(value)) for component, value in zip(components, weights, strict=True))
    )


def weighted_observations(values: ArrayLike, weights: ArrayLike) -> list[WeightedObservation]:
    values = np.asarray(values, dtype=float)
    weights = np.asarray(weights, dtype=float)
    if values.shape != weights.shape:
        raise ValueError("Weights must have same length as data")
    return [WeightedObservation(float(v), float(w)) for v, w in zip(values, weights, strict=True)]


__all__ = [
    "DEFER",
    "Weighted",
    "WeightedObservation",
    "WeightState",
    "combine_weights",
    "weight",
    "weighted_product",
    "weighted_observations",
]
