"""Interval censoring: continuous values reported as the left edge of their interval."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np

from ..bijectors import Bijector
from ..core import ArrayLike, BoundaryError, RandomState
from ..distributions import UnivariateMixin
from ..numerics import as_output
from .base import log_interval_mass

# Tolerance when matching a query against the boundary grid; absorbs round-off only.
BOUNDARY_RTOL = 1e-12
BOUNDARY_ATOL = 1e-12


@dataclass(frozen=True)
class IntervalCensored(UnivariateMixin):
    """Discretise ``dist`` onto a regular grid (scalar width) or explicit boundaries.

    ``pdf``/``logpdf`` are the interval probability mass and only accept left edges.
    ``cdf(x)`` is the inner CDF at the left edge containing ``x``.
    """

    dist: Any
    boundaries: float | tuple[float, ...]

    def __post_init__(self) -> None:
        if np.ndim(self.boundaries) == 0:
            width = float(self.boundaries)  # type: ignore[arg-type]
            if not (np.isfinite(width) and width > 0):
                raise ValueError(f"Interval width must be positive and finite, got {width}.")
            object.__setattr__(self, "boundaries", width)
            return
        edges = tuple(float(edge) for edge in self.boundaries)  # type: ignore[union-attr]
        if len(edges) < 2:
            raise ValueError("Explicit interval boundaries need at least two points.")
        if np.any(np.isnan(edges)) or np.any(np.diff(edges) <= 0):
            raise ValueError("Interval boundaries must be strictly increasing.")
        object.__setattr__(self, "boundaries", edges)

    @property
    def is_regular(self) -> bool:
        return isinstance(self.boundaries, float)

    @property
    def _edges(self) -> np.ndarray:
        return np.asarray(self.boundaries, dtype=float)

    @property
    def params(self) -> tuple[float, ...]:
        return tuple(self.dist.params)

    @property
    def param_names(self) -> tuple[str, ...]:
        return tuple(self.dist.param_names)

    def with_params(self, values: Iterable[float]) -> IntervalCensored:
        return IntervalCensored(self.dist.with_params(values), self.boundaries)

    def parameter_bijector(self) -> Bijector:
        return self.dist.parameter_bijector()

    def left_edge(self, x: ArrayLike | float) -> np.ndarray | float:
        """Left boundary of the interval containing ``x``.

        With explicit boundaries, values outside the grid are clamped to the first
        or last boundary.
        """
        arr = np.asarray(x, dtype=float)
        if self.is_regular:
            width = float(self.boundaries)  # type: ignore[arg-type]
            with np.errstate(invalid="ignore"):
                edges = np.where(np.isfinite(arr), np.floor(arr / width) * width, arr)
            return as_output(edges, x)
        grid = self._edges
        index = np.clip(np.searchsorted(grid, arr, side="right") - 1, 0, grid.size - 1)
        return as_output(grid[index], x)

    def _observable_edge(self, x: np.ndarray) -> np.ndarray:
        """Left edge of the interval containing ``x``, never the closing boundary."""
        if self.is_regular:
            return np.asarray(self.left_edge(x), dtype=float)
        grid = self._edges
        index = np.clip(np.searchsorted(grid, x, side="right") - 1, 0, grid.size - 2)
        return grid[index]

    def _interval_bounds(self, x: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Validate ``x`` as left edges and return ``(left, right)`` arrays."""
        if self.is_regular:
            width = float(self.boundaries)  # type: ignore[arg-type]
            steps = np.round(x / width)
            left = steps * width
            valid = np.isfinite(x) & np.isclose(x, left, rtol=BOUNDARY_RTOL, atol=BOUNDARY_ATOL)
            right = (steps + 1.0) * width
        else:
            grid = self._edges
            above = np.clip(np.searchsorted(grid, x, side="left"), 0, grid.size - 1)
            below = np.clip(above - 1, 0, grid.size - 1)
            index = np.where(np.isclose(grid[above], x, rtol=BOUNDARY_RTOL, atol=BOUNDARY_ATOL), above, below)
            valid = np.isclose(grid[index], x, rtol=BOUNDARY_RTOL, atol=BOUNDARY_ATOL) & (index < grid.size - 1)
            left = grid[index]
            right = grid[np.minimum(index + 1, grid.size - 1)]
        if not np.all(valid):
            bad = np.atleast_1d(x)[~np.atleast_1d(valid)]
            raise BoundaryError(
                f"Values {bad[:5].tolist()} are not left interval boundaries of {self.boundaries}."
            )
        return left, right

    def logpdf(self, x: ArrayLike | float) -> np.ndarray | float:
        arr = np.asarray(x, dtype=float)
        left, right = self._interval_bounds(arr)
        return as_output(log_interval_mass(self.dist, left, right), x)

    def cdf(self, x: ArrayLike | float) -> np.ndarray | float:
        arr = np.asarray(x, dtype=float)
        values = np.asarray(self.dist.cdf(np.asarray(self.left_edge(arr), dtype=float)), dtype=float)
        if not self.is_regular:
            values = np.where(arr < self._edges[0], 0.0, values)
        return as_output(values, x)

    def logcdf(self, x: ArrayLike | float) -> np.ndarray | float:
        arr = np.asarray(x, dtype=float)
        values = np.asarray(self.dist.logcdf(np.asarray(self.left_edge(arr), dtype=float)), dtype=float)
        if not self.is_regular:
            values = np.where(arr < self._edges[0], -np.inf, values)
        return as_output(values, x)

    def minimum(self) -> float:
        return float(self._observable_edge(np.asarray(float(self.dist.minimum()))))

    def maximum(self) -> float:
        """Largest left edge that can be observed.

        With explicit boundaries this is at most the second-to-last boundary.
        """
        return float(self._observable_edge(np.asarray(float(self.dist.maximum()))))

    def quantile(self, p: ArrayLike | float) -> np.ndarray | float:
        probs = np.asarray(p, dtype=float)
        if np.any((probs < 0) | (probs > 1) | np.isnan(probs)):
            raise ValueError("Probabilities must lie in [0, 1].")
        inner = np.asarray(self.dist.quantile(probs), dtype=float)
        values = self._observable_edge(inner)
        values = np.where(probs == 0.0, self.minimum(), values)
        values = np.where(probs == 1.0, self.maximum(), values)
        return as_output(values, p)

    def rand(self, size: int | None = None, random_state: RandomState = None) -> np.ndarray | float:
        """Draw left edges.

        With explicit boundaries, draws outside ``[boundaries[0], boundaries[-1])``
        fall in no interval and are returned as ``nan``, matching the zero mass
        ``logpdf`` assigns there.
        """
        draws = np.asarray(self.dist.rand(size, random_state=random_state), dtype=float)
        if self.is_regular:
            edges = np.asarray(self.left_edge(draws), dtype=float)
        else:
            grid = self._edges
            outside = (draws < grid[0]) | (draws >= grid[-1])
            edges = np.where(outside, np.nan, self._observable_edge(draws))
        return float(edges) if size is None else edges


def interval_censored(dist: Any, boundaries: float | Sequence[float] | np.ndarray) -> IntervalCensored:
    """Interval-censor ``dist`` with a regular width or explicit boundaries."""
    if np.ndim(boundaries) == 0:
        return IntervalCensored(dist, float(boundaries))  # type: ignore[arg-type]
    return IntervalCensored(dist, tuple(np.asarray(boundaries, dtype=float).tolist()))


def discretise(dist: Any, interval: float) -> IntervalCensored:
    """Interval-censor ``dist`` onto a regular grid of width ``interval``."""
    if np.ndim(interval) != 0:
        raise ValueError("discretise expects a scalar interval width.")
    return IntervalCensored(dist, float(interval))


discretize = discretise


__all__ = [
    "IntervalCensored",
    "interval_censored",
    "discretise",
    "discretize",
    "BOUNDARY_RTOL",
    "BOUNDARY_ATOL",
]
