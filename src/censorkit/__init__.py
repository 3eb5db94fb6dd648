"""Top-level package exports for censorkit."""

from __future__ import annotations

from importlib import metadata

__version__ = "0.1.0"

try:
    __version__ = metadata.version("censorkit")
except metadata.PackageNotFoundError:  # pragma: no cover - local dev fallback
    pass

from . import bijectors as bijectors  # noqa: F401
from . import censoring as censoring  # noqa: F401
from . import config as config  # noqa: F401
from . import core as core  # noqa: F401
from . import distfit as distfit  # noqa: F401
from . import distributions as distributions  # noqa: F401
from .censoring import (  # noqa: F401
    DEFER,
    IntervalCensored,
    PrimaryCensored,
    SolverMethod,
    Truncated,
    Weighted,
    WeightedObservation,
    combine_weights,
    discretise,
    discretize,
    double_interval_censored,
    get_dist,
    interval_censored,
    primary_censored,
    register_analytical_cdf,
    truncated,
    weight,
)
from .core import (  # noqa: F401
    BoundaryError,
    FitConvergenceError,
    FitResult,
    QuantileConvergenceError,
)
from .distfit import fit, fit_mle  # noqa: F401
from .distributions import (  # noqa: F401
    ExponentiallyTilted,
    IndependentProduct,
    ParametricDistribution,
    PointMass,
    exponential,
    gamma,
    lognormal,
    normal,
    uniform,
    weibull,
)
from .quantile import quantile_by_optimization  # noqa: F401

__all__ = [
    "__version__",
    "bijectors",
    "censoring",
    "config",
    "core",
    "distfit",
    "distributions",
    "DEFER",
    "IntervalCensored",
    "PrimaryCensored",
    "SolverMethod",
    "Truncated",
    "Weighted",
    "WeightedObservation",
    "combine_weights",
    "discretise",
    "discretize",
    "double_interval_censored",
    "get_dist",
    "interval_censored",
    "primary_censored",
    "register_analytical_cdf",
    "truncated",
    "weight",
    "BoundaryError",
    "FitConvergenceError",
    "FitResult",
    "QuantileConvergenceError",
    "fit",
    "fit_mle",
    "ExponentiallyTilted",
    "IndependentProduct",
    "ParametricDistribution",
    "PointMass",
    "exponential",
    "gamma",
    "lognormal",
    "normal",
    "uniform",
    "weibull",
    "quantile_by_optimization",
]
