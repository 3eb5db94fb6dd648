"""Primary-event censored distributions: observed time = primary event + delay."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from functools import cached_property
from typing import Any

import numpy as np

from ..bijectors import Bijector, Stacked
from ..core import ArrayLike, RandomState
from ..distributions import UnivariateMixin, uniform
from ..numerics import as_output
from ..quantile import quantile_by_optimization
from .solvers import (
    AnalyticalFormula,
    SolverMethod,
    numeric_cdf,
    numeric_logccdf,
    numeric_pdf,
    resolve_formula,
)


@dataclass(frozen=True)
class PrimaryCensored(UnivariateMixin):
    """Distribution of ``S + D`` with ``S ~ primary_event`` on a bounded window.

    ``method`` selects how the CDF is resolved. ``ANALYTICAL`` uses a registered
    closed form for the (delay, primary) family pair and falls back to quadrature
    when none exists. ``NUMERIC`` always integrates.
    """

    dist: Any
    primary_event: Any
    method: SolverMethod = SolverMethod.ANALYTICAL

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", SolverMethod(self.method))
        lower = float(self.primary_event.minimum())
        upper = float(self.primary_event.maximum())
        if not (np.isfinite(lower) and np.isfinite(upper)):
            raise ValueError(
                f"Primary event distribution must have bounded support, got [{lower}, {upper}]."
            )
        if float(self.dist.minimum()) < 0:
            raise ValueError("Delay distribution must have non-negative support.")

    @cached_property
    def formula(self) -> AnalyticalFormula | None:
        return resolve_formula(self.dist, self.primary_event, self.method)

    @property
    def solver(self) -> SolverMethod:
        """Solver actually used after any fallback."""
        return SolverMethod.ANALYTICAL if self.formula is not None else SolverMethod.NUMERIC

    @property
    def shift(self) -> float | None:
        """Primary event time when the window is degenerate, else ``None``."""
        lower = float(self.primary_event.minimum())
        return lower if lower == float(self.primary_event.maximum()) else None

    @property
    def params(self) -> tuple[float, ...]:
        return tuple(self.dist.params) + tuple(self.primary_event.params)

    def minimum(self) -> float:
        return float(self.dist.minimum()) + float(self.primary_event.minimum())

    def maximum(self) -> float:
        return float(self.dist.maximum()) + float(self.primary_event.maximum())

    def mean(self) -> float:
        return float(self.dist.mean()) + _window_mean(self.primary_event)

    def cdf(self, x: ArrayLike | float) -> np.ndarray | float:
        arr = np.asarray(x, dtype=float)
        if self.shift is not None:
            return as_output(self.dist.cdf(arr - self.shift), x)
        inside = (arr > self.minimum()) & (arr < self.maximum())
        values = np.where(arr >= self.maximum(), 1.0, 0.0)
        if np.any(inside):
            solve = self.formula.cdf if self.formula is not None else numeric_cdf
            values[inside] = solve(self.dist, self.primary_event, arr[inside])
        return as_output(values, x)

    def logcdf(self, x: ArrayLike | float) -> np.ndarray | float:
        if self.shift is not None:
            return as_output(self.dist.logcdf(np.asarray(x, dtype=float) - self.shift), x)
        with np.errstate(divide="ignore"):
            return as_output(np.log(np.asarray(self.cdf(x), dtype=float)), x)

    def logccdf(self, x: ArrayLike | float) -> np.ndarray | float:
        """Log survival function, computed from the delay's survival function."""
        arr = np.asarray(x, dtype=float)
        if self.shift is not None:
            return as_output(self.dist.logccdf(arr - self.shift), x)
        inside = (arr > self.minimum()) & (arr < self.maximum())
        values = np.where(arr >= self.maximum(), -np.inf, 0.0)
        if np.any(inside):
            if self.formula is not None and self.formula.logccdf is not None:
                solve = self.formula.logccdf
            else:
                solve = numeric_logccdf
            values[inside] = solve(self.dist, self.primary_event, arr[inside])
        return as_output(values, x)

    def ccdf(self, x: ArrayLike | float) -> np.ndarray | float:
        return as_output(np.exp(np.asarray(self.logccdf(x), dtype=float)), x)

    def pdf(self, x: ArrayLike | float) -> np.ndarray | float:
        arr = np.asarray(x, dtype=float)
        if self.shift is not None:
            return as_output(self.dist.pdf(arr - self.shift), x)
        inside = (arr > self.minimum()) & (arr < self.maximum())
        values = np.zeros(arr.shape, dtype=float)
        if np.any(inside):
            if self.formula is not None and self.formula.pdf is not None:
                solve = self.formula.pdf
            else:
                solve = numeric_pdf
            values[inside] = solve(self.dist, self.primary_event, arr[inside])
        return as_output(values, x)

    def logpdf(self, x: ArrayLike | float) -> np.ndarray | float:
        if self.shift is not None:
            return as_output(self.dist.logpdf(np.asarray(x, dtype=float) - self.shift), x)
        with np.errstate(divide="ignore"):
            return as_output(np.log(np.asarray(self.pdf(x), dtype=float)), x)

    def quantile(self, p: ArrayLike | float) -> np.ndarray | float:
        probs = np.asarray(p, dtype=float)
        if self.shift is not None:
            return as_output(np.asarray(self.dist.quantile(probs)) + self.shift, p)
        out = np.empty(probs.shape, dtype=float)
        window_mean = _window_mean(self.primary_event)
        for idx, prob in np.ndenumerate(probs):
            seed = None
            if 0.0 < prob < 1.0:
                seed = float(self.dist.quantile(prob)) + window_mean
            out[idx] = quantile_by_optimization(self, prob, initial_guess=seed)
        return as_output(out, p)

    def rand(self, size: int | None = None, random_state: RandomState = None) -> np.ndarray | float:
        rng = np.random.default_rng(random_state)
        delays = self.dist.rand(size, random_state=rng)
        events = self.primary_event.rand(size, random_state=rng)
        draws = np.asarray(delays, dtype=float) + np.asarray(events, dtype=float)
        return float(draws) if size is None else draws

    @property
    def param_names(self) -> tuple[str, ...]:
        names = tuple(self.dist.param_names)
        return names + tuple(f"primary_{name}" for name in self.primary_event.param_names)

    def with_params(self, values: Iterable[float]) -> PrimaryCensored:
        values = tuple(values)
        split = len(self.dist.params)
        return PrimaryCensored(
            self.dist.with_params(values[:split]),
            self.primary_event.with_params(values[split:]),
            self.method,
        )

    def parameter_bijector(self) -> Bijector:
        return Stacked((self.dist.parameter_bijector(), self.primary_event.parameter_bijector()))


def _window_mean(primary: Any) -> float:
    mean = getattr(primary, "mean", None)
    if callable(mean):
        return float(mean())
    return 0.5 * (float(primary.minimum()) + float(primary.maximum()))


def primary_censored(
    dist: Any,
    primary_event: Any = None,
    *,
    solver: SolverMethod | str = SolverMethod.ANALYTICAL,
    force_numeric: bool = False,
) -> PrimaryCensored:
    """Censor ``dist`` by a primary event window (``Uniform(0, 1)`` by default)."""
    if primary_event is None:
        primary_event = uniform(0.0, 1.0)
    method = SolverMethod.NUMERIC if force_numeric else SolverMethod(solver)
    return PrimaryCensored(dist, primary_event, method)


__all__ = ["PrimaryCensored", "primary_censored"]
