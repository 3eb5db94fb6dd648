"""Exponentially tilted uniform distribution, density proportional to exp(r * x)."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

import numpy as np

from ..bijectors import Bijector, Identity, Ordered, Stacked
from ..core import ArrayLike, RandomState
from ..numerics import as_output

# Below this |r| the distribution is treated as Uniform(min, max).
TILT_EPS = 1e-10


def _log_abs_expm1(z: float) -> float:
    """``log|exp(z) - 1|`` without overflow for large positive ``z``."""
    if z > 0:
        return z + float(np.log(-np.expm1(-z)))
    return float(np.log(-np.expm1(z)))


@dataclass(frozen=True)
class ExponentiallyTilted:
    """Primary-event window with exponential growth (``r > 0``) or decay (``r < 0``).

    Closed forms are written relative to ``u = x - min`` and ``d = max - min`` so
    that large ``|r * d|`` never overflows.
    """

    min: float
    max: float
    r: float

    family = "exponentially_tilted"

    def __post_init__(self) -> None:
        for name in ("min", "max", "r"):
            value = float(getattr(self, name))
            if not np.isfinite(value):
                raise ValueError(f"ExponentiallyTilted parameter '{name}' must be finite.")
            object.__setattr__(self, name, value)
        if not self.min < self.max:
            raise ValueError("ExponentiallyTilted requires min < max.")

    @property
    def params(self) -> tuple[float, float, float]:
        return (self.min, self.max, self.r)

    @property
    def param_names(self) -> tuple[str, ...]:
        return ("min", "max", "r")

    def with_params(self, values: Iterable[float]) -> ExponentiallyTilted:
        lower, upper, rate = tuple(values)
        return ExponentiallyTilted(lower, upper, rate)

    def parameter_bijector(self) -> Bijector:
        return Stacked((Ordered(2), Identity()))

    @property
    def width(self) -> float:
        return self.max - self.min

    @property
    def is_uniform(self) -> bool:
        return abs(self.r) < TILT_EPS

    def _log_norm(self) -> float:
        # log of the normaliser |r| / |exp(r d) - 1|, excluding the exp(r u) term
        return float(np.log(abs(self.r))) - _log_abs_expm1(self.r * self.width)

    def minimum(self) -> float:
        return self.min

    def maximum(self) -> float:
        return self.max

    def insupport(self, x: ArrayLike | float) -> np.ndarray | bool:
        arr = np.asarray(x, dtype=float)
        inside = (arr >= self.min) & (arr <= self.max)
        return bool(inside) if np.ndim(x) == 0 else inside

    def logpdf(self, x: ArrayLike | float) -> np.ndarray | float:
        arr = np.asarray(x, dtype=float)
        inside = (arr >= self.min) & (arr <= self.max)
        if self.is_uniform:
            values = np.full(arr.shape, -np.log(self.width))
        else:
            values = self._log_norm() + self.r * (arr - self.min)
        return as_output(np.where(inside, values, -np.inf), x)

    def pdf(self, x: ArrayLike | float) -> np.ndarray | float:
        return as_output(np.exp(np.asarray(self.logpdf(x), dtype=float)), x)

    def logcdf(self, x: ArrayLike | float) -> np.ndarray | float:
        arr = np.asarray(x, dtype=float)
        u = np.clip(arr - self.min, 0.0, self.width)
        d = self.width
        with np.errstate(divide="ignore", invalid="ignore"):
            if self.is_uniform:
                values = np.log(u / d)
            elif self.r > 0:
                values = self.r * (u - d) + np.log(-np.expm1(-self.r * u)) - np.log(-np.expm1(-self.r * d))
            else:
                values = np.log(-np.expm1(self.r * u)) - np.log(-np.expm1(self.r * d))
        values = np.where(arr >= self.max, 0.0, values)
        values = np.where(arr <= self.min, -np.inf, values)
        return as_output(values, x)

    def cdf(self, x: ArrayLike | float) -> np.ndarray | float:
        return as_output(np.exp(np.asarray(self.logcdf(x), dtype=float)), x)

    def ccdf(self, x: ArrayLike | float) -> np.ndarray | float:
        return as_output(1.0 - np.asarray(self.cdf(x), dtype=float), x)

    def logccdf(self, x: ArrayLike | float) -> np.ndarray | float:
        with np.errstate(divide="ignore"):
            return as_output(np.log1p(-np.asarray(self.cdf(x), dtype=float)), x)

    def quantile(self, p: ArrayLike | float) -> np.ndarray | float:
        prob = np.asarray(p, dtype=float)
        if np.any((prob < 0) | (prob > 1) | np.isnan(prob)):
            raise ValueError("Probabilities must lie in [0, 1].")
        d = self.width
        with np.errstate(divide="ignore"):
            if self.is_uniform:
                u = prob * d
            elif self.r > 0:
                u = d + np.log1p((1.0 - prob) * np.expm1(-self.r * d)) / self.r
            else:
                u = np.log1p(prob * np.expm1(self.r * d)) / self.r
        values = np.clip(self.min + u, self.min, self.max)
        values = np.where(prob == 0.0, self.min, np.where(prob == 1.0, self.max, values))
        return as_output(values, p)

    def rand(self, size: int | None = None, random_state: RandomState = None) -> np.ndarray | float:
        rng = np.random.default_rng(random_state)
        draws = self.quantile(rng.uniform(size=size))
        return float(draws) if size is None else np.asarray(draws)

    def mean(self) -> float:
        d = self.width
        if self.is_uniform:
            return self.min + d / 2.0
        z = self.r * d
        if abs(z) < 1e-3:
            return self.min + d * (0.5 + z / 12.0)
        if self.r > 0:
            return self.min + d / (-np.expm1(-z)) - 1.0 / self.r
        return self.min - 1.0 / self.r - d * np.exp(z) / (-np.expm1(z))

    def var(self) -> float:
        d = self.width
        if self.is_uniform:
            return d**2 / 12.0
        z = self.r * d
        if abs(z) < 1e-3:
            return d**2 * (1.0 / 12.0 - z**2 / 240.0)
        half = self.r * d / 2.0
        if abs(half) > 350.0:
            return 1.0 / self.r**2
        return 1.0 / self.r**2 - d**2 / (4.0 * np.sinh(half) ** 2)

    def std(self) -> float:
        return float(np.sqrt(self.var()))

    def mode(self) -> float:
        if self.is_uniform:
            return self.min + self.width / 2.0
        return self.max if self.r > 0 else self.min

    def entropy(self) -> float:
        if self.is_uniform:
            return float(np.log(self.width))
        # log f(x) = log_norm + r (x - min), so H = -(log_norm + r E[x - min])
        return -(self._log_norm() + self.r * (self.mean() - self.min))


__all__ = ["ExponentiallyTilted", "TILT_EPS"]
