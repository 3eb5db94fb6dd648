"""Truncation of a univariate distribution to ``[lower, upper]``."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from functools import cached_property
from typing import Any

import numpy as np

from ..bijectors import Bijector
from ..core import ArrayLike, RandomState
from ..distributions import UnivariateMixin
from ..numerics import as_output
from .base import log_interval_mass

# Below this retained mass, sampling switches from rejection to inverse CDF.
REJECTION_MIN_MASS = 0.25


@dataclass(frozen=True)
class Truncated(UnivariateMixin):
    """``dist`` restricted to ``[lower, upper]`` and renormalised."""

    dist: Any
    lower: float | None = None
    upper: float | None = None

    def __post_init__(self) -> None:
        if self.lower is None and self.upper is None:
            raise ValueError("Truncation needs a lower or an upper bound.")
        if self.lower is not None:
            object.__setattr__(self, "lower", float(self.lower))
        if self.upper is not None:
            object.__setattr__(self, "upper", float(self.upper))
        if self.lower is not None and self.upper is not None and not self.lower < self.upper:
            raise ValueError(
                f"Truncation lower bound must be below the upper bound, got {self.lower} >= {self.upper}."
            )
        if not np.isfinite(self.log_mass):
            raise ValueError("Truncation bounds leave no probability mass.")

    @property
    def _lo(self) -> float:
        return -np.inf if self.lower is None else self.lower

    @property
    def _hi(self) -> float:
        return np.inf if self.upper is None else self.upper

    @cached_property
    def log_mass(self) -> float:
        """``log(F(upper) - F(lower))`` of the untruncated distribution."""
        return float(log_interval_mass(self.dist, self._lo, self._hi))

    @cached_property
    def _cdf_lower(self) -> float:
        return 0.0 if self.lower is None else float(self.dist.cdf(self.lower))

    @property
    def params(self) -> tuple[float, ...]:
        return tuple(self.dist.params)

    @property
    def param_names(self) -> tuple[str, ...]:
        return tuple(self.dist.param_names)

    def with_params(self, values: Iterable[float]) -> Truncated:
        return Truncated(self.dist.with_params(values), self.lower, self.upper)

    def parameter_bijector(self) -> Bijector:
        return self.dist.parameter_bijector()

    def minimum(self) -> float:
        return max(self._lo, float(self.dist.minimum()))

    def maximum(self) -> float:
        return min(self._hi, float(self.dist.maximum()))

    def logpdf(self, x: ArrayLike | float) -> np.ndarray | float:
        arr = np.asarray(x, dtype=float)
        inside = (arr >= self._lo) & (arr <= self._hi)
        values = np.asarray(self.dist.logpdf(arr), dtype=float) - self.log_mass
        return as_output(np.where(inside, values, -np.inf), x)

    def cdf(self, x: ArrayLike | float) -> np.ndarray | float:
        arr = np.asarray(x, dtype=float)
        mass = np.exp(self.log_mass)
        values = (np.asarray(self.dist.cdf(arr), dtype=float) - self._cdf_lower) / mass
        values = np.clip(values, 0.0, 1.0)
        values = np.where(arr < self._lo, 0.0, values)
        values = np.where(arr >= self._hi, 1.0, values)
        return as_output(values, x)

    def logcdf(self, x: ArrayLike | float) -> np.ndarray | float:
        arr = np.asarray(x, dtype=float)
        values = log_interval_mass(self.dist, np.full(arr.shape, self._lo), np.minimum(arr, self._hi))
        values = np.minimum(values - self.log_mass, 0.0)
        values = np.where(arr < self._lo, -np.inf, values)
        return as_output(values, x)

    def logccdf(self, x: ArrayLike | float) -> np.ndarray | float:
        arr = np.asarray(x, dtype=float)
        clipped = np.clip(arr, self._lo, self._hi)
        values = log_interval_mass(self.dist, clipped, np.full(arr.shape, self._hi))
        values = np.minimum(values - self.log_mass, 0.0)
        values = np.where(arr < self._lo, 0.0, values)
        values = np.where(arr >= self._hi, -np.inf, values)
        return as_output(values, x)

    def ccdf(self, x: ArrayLike | float) -> np.ndarray | float:
        return as_output(np.exp(np.asarray(self.logccdf(x), dtype=float)), x)

    def quantile(self, p: ArrayLike | float) -> np.ndarray | float:
        probs = np.asarray(p, dtype=float)
        if np.any((probs < 0) | (probs > 1) | np.isnan(probs)):
            raise ValueError("Probabilities must lie in [0, 1].")
        mass = np.exp(self.log_mass)
        interior = np.clip(self._cdf_lower + probs * mass, 0.0, 1.0)
        values = np.asarray(self.dist.quantile(interior), dtype=float)
        values = np.clip(values, self.minimum(), self.maximum())
        values = np.where(probs == 0.0, self.minimum(), values)
        values = np.where(probs == 1.0, self.maximum(), values)
        return as_output(values, p)

    def rand(self, size: int | None = None, random_state: RandomState = None) -> np.ndarray | float:
        rng = np.random.default_rng(random_state)
        n = 1 if size is None else int(size)
        if np.exp(self.log_mass) < REJECTION_MIN_MASS:
            draws = np.asarray(self.quantile(rng.uniform(size=n)), dtype=float)
        else:
            draws = self._rejection_sample(n, rng)
        return float(draws[0]) if size is None else draws

    def _rejection_sample(self, n: int, rng: np.random.Generator) -> np.ndarray:
        accepted: list[np.ndarray] = []
        remaining = n
        while remaining > 0:
            batch = np.atleast_1d(np.asarray(self.dist.rand(max(2 * remaining, 16), random_state=rng)))
            keep = batch[(batch >= self._lo) & (batch <= self._hi)][:remaining]
            accepted.append(keep)
            remaining -= keep.size
        return np.concatenate(accepted)


def truncated(dist: Any, lower: float | None = None, upper: float | None = None) -> Any:
    """Truncate ``dist``; returns ``dist`` unchanged when both bounds are ``None``."""
    if lower is None and upper is None:
        return dist
    return Truncated(dist, lower, upper)


__all__ = ["Truncated", "truncated", "REJECTION_MIN_MASS"]
