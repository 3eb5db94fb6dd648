"""Moment-based starting values for likelihood fits."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
from scipy.special import gamma as gamma_fn

EPS = 1e-6


def continuous_approximation(
    data: np.ndarray,
    interval: float | Sequence[float] | None = None,
    *,
    primary_offset: float = 0.0,
) -> np.ndarray:
    """Map interval left edges to interval midpoints, less the mean primary offset."""
    values = np.asarray(data, dtype=float)
    if interval is not None:
        if np.ndim(interval) == 0:
            values = values + float(interval) / 2.0  # type: ignore[arg-type]
        else:
            grid = np.asarray(interval, dtype=float)
            index = np.clip(np.searchsorted(grid, values, side="right") - 1, 0, grid.size - 2)
            left, right = grid[index], grid[index + 1]
            midpoints = np.where(np.isfinite(right), 0.5 * (left + right), left)
            values = np.where(np.isfinite(left), midpoints, right)
    return values - primary_offset


def initial_params_from_data(
    family: str,
    data: np.ndarray,
    *,
    interval: float | Sequence[float] | None = None,
    primary_offset: float = 0.0,
) -> tuple[float, ...]:
    """Method-of-moments initial parameters for the built-in families.

    Raises
    ------
    ValueError
        If no default exists for ``family``; pass explicit initial values instead.
    """
    values = continuous_approximation(data, interval, primary_offset=primary_offset)
    mean = float(np.mean(values))
    spread = float(np.std(values, ddof=1)) if values.size > 1 else 1.0
    spread = max(spread, EPS)
    key = family.lower()
    if key == "normal":
        return (mean, spread)
    positive = values[values > 0]
    if positive.size == 0:
        positive = np.array([1.0])
    if key == "exponential":
        return (max(float(np.mean(positive)), EPS),)
    if key == "gamma":
        m = max(float(np.mean(positive)), EPS)
        v = max(float(np.var(positive, ddof=1)) if positive.size > 1 else m, EPS)
        return (m**2 / v, v / m)
    if key == "lognormal":
        logs = np.log(positive)
        sd = float(np.std(logs, ddof=1)) if logs.size > 1 else 1.0
        return (float(np.mean(logs)), max(sd, EPS))
    if key == "weibull":
        m = max(float(np.mean(positive)), EPS)
        cv = max(float(np.std(positive, ddof=1)) / m if positive.size > 1 else 1.0, EPS)
        # Justus' approximation for the shape from the coefficient of variation
        shape = float(np.clip(cv**-1.086, 0.1, 50.0))
        return (shape, m / float(gamma_fn(1.0 + 1.0 / shape)))
    if key == "uniform":
        low, high = float(np.min(values)), float(np.max(values))
        padding = max((high - low) * 0.1, EPS)
        return (low - padding, high + padding)
    raise ValueError(
        f"Default initialization not implemented for family '{family}'. Please provide initial parameters."
    )


__all__ = ["continuous_approximation", "initial_params_from_data"]
