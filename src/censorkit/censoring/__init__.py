"""Primary-event, truncation, interval, and weighting layers."""

from __future__ import annotations

from .base import get_dist, log_interval_mass
from .compose import double_interval_censored
from .interval import IntervalCensored, discretise, discretize, interval_censored
from .primary import PrimaryCensored, primary_censored
from .solvers import (
    AnalyticalFormula,
    SolverMethod,
    analytical_pairs,
    get_analytical_formula,
    register_analytical_cdf,
    unregister_analytical_cdf,
)
from .truncated import Truncated, truncated
from .weighted import (
    DEFER,
    Weighted,
    WeightedObservation,
    combine_weights,
    weight,
    weighted_observations,
    weighted_product,
)

__all__ = [
    "AnalyticalFormula",
    "SolverMethod",
    "analytical_pairs",
    "get_analytical_formula",
    "register_analytical_cdf",
    "unregister_analytical_cdf",
    "PrimaryCensored",
    "primary_censored",
    "Truncated",
    "truncated",
    "IntervalCensored",
    "interval_censored",
    "discretise",
    "discretize",
    "double_interval_censored",
    "DEFER",
    "Weighted",
    "WeightedObservation",
    "combine_weights",
    "weight",
    "weighted_observations",
    "weighted_product",
    "get_dist",
    "log_interval_mass",
]
