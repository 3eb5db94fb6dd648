"""Helpers shared by the censoring wrappers."""

from __future__ import annotations

from typing import Any

import numpy as np

from ..numerics import logsubexp

LOG_HALF = float(np.log(0.5))


def family_key(dist: Any) -> str:
    """Name used to look up analytical formulas for ``dist``."""
    family = getattr(dist, "family", None)
    if isinstance(family, str):
        return family.lower()
    return type(dist).__name__.lower()


def log_interval_mass(dist: Any, lower: np.ndarray | float, upper: np.ndarray | float) -> np.ndarray:
    """``log(F(upper) - F(lower))``, via survival functions in the upper tail."""
    lo = np.asarray(lower, dtype=float)
    hi = np.asarray(upper, dtype=float)
    log_lo = np.asarray(dist.logcdf(lo), dtype=float)
    log_hi = np.asarray(dist.logcdf(hi), dtype=float)
    lower_tail = logsubexp(log_hi, log_lo)
    upper_tail_mask = log_lo > LOG_HALF
    if not np.any(upper_tail_mask):
        return lower_tail
    upper_tail = logsubexp(
        np.asarray(dist.logccdf(lo), dtype=float),
        np.asarray(dist.logccdf(hi), dtype=float),
    )
    return np.where(upper_tail_mask, upper_tail, lower_tail)


def get_dist(dist: Any) -> Any:
    """Unwrap censoring and weighting layers down to the delay distribution.

    Products are unwrapped component-wise.
    """
    components = getattr(dist, "components", None)
    if components is not None:
        return tuple(get_dist(component) for component in components)
    while hasattr(dist, "dist"):
        dist = dist.dist
    return dist


__all__ = ["family_key", "log_interval_mass", "get_dist", "LOG_HALF"]
