"""Concrete univariate distributions implementing the censoring contract."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from functools import cached_property
from typing import Any

import numpy as np

from ..bijectors import Bijector, Identity
from ..core import ArrayLike, RandomState
from ..numerics import as_output, log1mexp
from .base import Family, get_family


class UnivariateMixin:
    """Derived operations shared by every distribution in the package.

    Subclasses provide ``logpdf``, ``cdf``, ``logcdf``, ``minimum`` and ``maximum``.
    """

    def pdf(self, x: ArrayLike | float) -> np.ndarray | float:
        with np.errstate(over="ignore"):
            return as_output(np.exp(np.asarray(self.logpdf(x), dtype=float)), x)  # type: ignore[attr-defined]

    def ccdf(self, x: ArrayLike | float) -> np.ndarray | float:
        return as_output(1.0 - np.asarray(self.cdf(x), dtype=float), x)  # type: ignore[attr-defined]

    def logccdf(self, x: ArrayLike | float) -> np.ndarray | float:
        return as_output(log1mexp(np.asarray(self.logcdf(x), dtype=float)), x)  # type: ignore[attr-defined]

    def insupport(self, x: ArrayLike | float) -> np.ndarray | bool:
        arr = np.asarray(x, dtype=float)
        inside = (arr >= self.minimum()) & (arr <= self.maximum())  # type: ignore[attr-defined]
        return bool(inside) if np.ndim(x) == 0 else inside


@dataclass(frozen=True)
class ParametricDistribution(UnivariateMixin):
    """A registered family frozen at a parameter tuple, evaluated through scipy."""

    family: str
    params: tuple[float, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "family", self.family.lower())
        object.__setattr__(self, "params", tuple(float(value) for value in self.params))
        self.spec.check(self.params)

    @property
    def spec(self) -> Family:
        return get_family(self.family)

    @cached_property
    def _frozen(self) -> Any:
        return self.spec.freeze(self.params)

    @property
    def param_names(self) -> tuple[str, ...]:
        return self.spec.parameters

    def named_params(self) -> dict[str, float]:
        return dict(zip(self.param_names, self.params, strict=True))

    def with_params(self, values: Iterable[float]) -> ParametricDistribution:
        return ParametricDistribution(self.family, tuple(values))

    def parameter_bijector(self) -> Bijector:
        return self.spec.bijector()

    def pdf(self, x: ArrayLike | float) -> np.ndarray | float:
        return as_output(self._frozen.pdf(np.asarray(x, dtype=float)), x)

    def logpdf(self, x: ArrayLike | float) -> np.ndarray | float:
        return as_output(self._frozen.logpdf(np.asarray(x, dtype=float)), x)

    def cdf(self, x: ArrayLike | float) -> np.ndarray | float:
        return as_output(self._frozen.cdf(np.asarray(x, dtype=float)), x)

    def logcdf(self, x: ArrayLike | float) -> np.ndarray | float:
        return as_output(self._frozen.logcdf(np.asarray(x, dtype=float)), x)

    def ccdf(self, x: ArrayLike | float) -> np.ndarray | float:
        return as_output(self._frozen.sf(np.asarray(x, dtype=float)), x)

    def logccdf(self, x: ArrayLike | float) -> np.ndarray | float:
        return as_output(self._frozen.logsf(np.asarray(x, dtype=float)), x)

    def quantile(self, p: ArrayLike | float) -> np.ndarray | float:
        return as_output(self._frozen.ppf(np.asarray(p, dtype=float)), p)

    def rand(self, size: int | None = None, random_state: RandomState = None) -> np.ndarray | float:
        rng = np.random.default_rng(random_state)
        draws = self._frozen.rvs(size=size, random_state=rng)
        return float(draws) if size is None else np.asarray(draws, dtype=float)

    def minimum(self) -> float:
        return float(self._frozen.support()[0])

    def maximum(self) -> float:
        return float(self._frozen.support()[1])

    def mean(self) -> float:
        return float(self._frozen.mean())

    def var(self) -> float:
        return float(self._frozen.var())

    def std(self) -> float:
        return float(self._frozen.std())


@dataclass(frozen=True)
class PointMass(UnivariateMixin):
    """Degenerate distribution at ``value``; a primary event with a known time."""

    value: float = 0.0

    family = "point_mass"

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", float(self.value))
        if not np.isfinite(self.value):
            raise ValueError("PointMass value must be finite.")

    @property
    def params(self) -> tuple[float, ...]:
        return (self.value,)

    @property
    def param_names(self) -> tuple[str, ...]:
        return ("value",)

    def with_params(self, values: Iterable[float]) -> PointMass:
        (value,) = tuple(values)
        return PointMass(value)

    def parameter_bijector(self) -> Bijector:
        return Identity()

    def logpdf(self, x: ArrayLike | float) -> np.ndarray | float:
        arr = np.asarray(x, dtype=float)
        return as_output(np.where(arr == self.value, 0.0, -np.inf), x)

    def cdf(self, x: ArrayLike | float) -> np.ndarray | float:
        arr = np.asarray(x, dtype=float)
        return as_output((arr >= self.value).astype(float), x)

    def logcdf(self, x: ArrayLike | float) -> np.ndarray | float:
        arr = np.asarray(x, dtype=float)
        return as_output(np.where(arr >= self.value, 0.0, -np.inf), x)

    def quantile(self, p: ArrayLike | float) -> np.ndarray | float:
        return as_output(np.full(np.shape(p), self.value), p)

    def rand(self, size: int | None = None, random_state: RandomState = None) -> np.ndarray | float:
        return self.value if size is None else np.full(size, self.value)

    def minimum(self) -> float:
        return self.value

    def maximum(self) -> float:
        return self.value

    def mean(self) -> float:
        return self.value

    def var(self) -> float:
        return 0.0


@dataclass(frozen=True)
class IndependentProduct:
    """Vector distribution of independent, possibly heterogeneous, components.

    ``logpdf`` takes one value per component and returns the summed log density.
    """

    components: tuple[Any, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "components", tuple(self.components))
        if not self.components:
            raise ValueError("IndependentProduct needs at least one component.")

    def __len__(self) -> int:
        return len(self.components)

    @property
    def params(self) -> tuple[tuple[float, ...], ...]:
        return tuple(component.params for component in self.components)

    def logpdf(self, values: Sequence[Any] | np.ndarray) -> float:
        if len(values) != len(self.components):
            raise ValueError(
                f"Expected {len(self.components)} values for the product, received {len(values)}."
            )
        total = 0.0
        for component, value in zip(self.components, values, strict=True):
            total += float(component.logpdf(value))
            if total == -np.inf:
                break
        return total

    def pdf(self, values: Sequence[Any] | np.ndarray) -> float:
        return float(np.exp(self.logpdf(values)))

    def rand(self, size: int | None = None, random_state: RandomState = None) -> np.ndarray:
        rng = np.random.default_rng(random_state)
        if size is None:
            return np.array([component.rand(random_state=rng) for component in self.components])
        return np.column_stack([component.rand(size, random_state=rng) for component in self.components])

    def minimum(self) -> np.ndarray:
        return np.array([component.minimum() for component in self.components])

    def maximum(self) -> np.ndarray:
        return np.array([component.maximum() for component in self.components])

    def insupport(self, values: ArrayLike) -> bool:
        return all(
            bool(component.insupport(value))
            for component, value in zip(self.components, values, strict=True)
        )


def product_distribution(components: Iterable[Any]) -> IndependentProduct:
    return IndependentProduct(tuple(components))


__all__ = [
    "UnivariateMixin",
    "ParametricDistribution",
    "PointMass",
    "IndependentProduct",
    "product_distribution",
]
