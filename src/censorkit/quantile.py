"""Quantiles for distributions without a closed-form inverse CDF."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import numpy as np
from scipy.optimize import minimize

from .config import get_config
from .core import QuantileConvergenceError

logger = logging.getLogger(__name__)


def _check_probability(p: float) -> float:
    value = float(p)
    if np.isnan(value) or value < 0.0 or value > 1.0:
        raise ValueError(f"Probability must lie in [0, 1], got {p}.")
    return value


def quantile_by_optimization(
    dist: Any,
    p: float,
    *,
    initial_guess: float | None = None,
    postprocess: Callable[[float], float] | None = None,
) -> float:
    """Solve ``cdf(q) = p`` by minimising ``(cdf(q) - p) ** 2`` with Nelder-Mead.

    ``p = 0`` and ``p = 1`` return the support bounds directly. Trial points outside
    the support are penalised so the simplex is pushed back inside.

    Raises
    ------
    ValueError
        If ``p`` is not a probability.
    QuantileConvergenceError
        If the simplex search exhausts its iteration budget.
    """
    prob = _check_probability(p)
    lower = float(dist.minimum())
    upper = float(dist.maximum())
    if prob == 0.0:
        return lower
    if prob == 1.0:
        return upper

    cfg = get_config()
    if initial_guess is None or not np.isfinite(initial_guess):
        initial_guess = _default_guess(lower, upper)
    x0 = float(np.clip(initial_guess, lower, upper))
    logger.debug("Quantile search for p=%s seeded at %s", prob, x0)

    def objective(q: np.ndarray) -> float:
        value = float(q[0])
        if not bool(dist.insupport(value)):
            return cfg.penalty + (value - lower) ** 2
        return (float(dist.cdf(value)) - prob) ** 2

    result = minimize(
        objective,
        np.array([x0]),
        method="Nelder-Mead",
        options={
            "xatol": cfg.quantile_tol,
            "fatol": cfg.quantile_tol**2,
            "maxiter": cfg.quantile_maxiter,
        },
    )
    if not result.success:
        raise QuantileConvergenceError(prob)
    q = float(result.x[0])
    return postprocess(q) if postprocess is not None else q


def _default_guess(lower: float, upper: float) -> float:
    if np.isfinite(lower) and np.isfinite(upper):
        return 0.5 * (lower + upper)
    if np.isfinite(lower):
        return lower + 1.0
    if np.isfinite(upper):
        return upper - 1.0
    return 0.0


__all__ = ["quantile_by_optimization"]
