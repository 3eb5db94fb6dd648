"""Family registry and canonical delay / primary-event distributions."""

from __future__ import annotations

import os
from pathlib import Path

import numpy as np
from scipy import stats

from ..config import FAMILY_CONFIG_ENV
from .base import (
    Family,
    clear_registry,
    get_family,
    list_families,
    load_entry_points,
    load_yaml_config,
    register_family,
    scipy_builder,
)
from .tilted import TILT_EPS, ExponentiallyTilted
from .univariate import (
    IndependentProduct,
    ParametricDistribution,
    PointMass,
    UnivariateMixin,
    product_distribution,
)

__all__ = [
    "Family",
    "ParametricDistribution",
    "PointMass",
    "IndependentProduct",
    "ExponentiallyTilted",
    "TILT_EPS",
    "UnivariateMixin",
    "STANDARD_FAMILIES",
    "get_family",
    "list_families",
    "register_family",
    "clear_registry",
    "load_entry_points",
    "load_yaml_config",
    "scipy_builder",
    "product_distribution",
    "gamma",
    "lognormal",
    "weibull",
    "exponential",
    "normal",
    "uniform",
]

POSITIVE = (0.0, None)


def _lognormal(meanlog: float, sdlog: float) -> object:
    return stats.lognorm(s=sdlog, scale=np.exp(meanlog))


def _uniform(lower: float, upper: float) -> object:
    return stats.uniform(loc=lower, scale=upper - lower)


STANDARD_FAMILIES = [
    Family(
        name="gamma",
        parameters=("shape", "scale"),
        builder=lambda shape, scale: stats.gamma(a=shape, scale=scale),
        bounds={"shape": POSITIVE, "scale": POSITIVE},
        notes="Gamma delay with shape k and scale theta.",
    ),
    Family(
        name="lognormal",
        parameters=("meanlog", "sdlog"),
        builder=_lognormal,
        bounds={"sdlog": POSITIVE},
        notes="Log-normal delay parameterised on the log scale.",
    ),
    Family(
        name="weibull",
        parameters=("shape", "scale"),
        builder=lambda shape, scale: stats.weibull_min(c=shape, scale=scale),
        bounds={"shape": POSITIVE, "scale": POSITIVE},
    ),
    Family(
        name="exponential",
        parameters=("scale",),
        builder=lambda scale: stats.expon(scale=scale),
        bounds={"scale": POSITIVE},
    ),
    Family(
        name="normal",
        parameters=("loc", "scale"),
        builder=lambda loc, scale: stats.norm(loc=loc, scale=scale),
        bounds={"scale": POSITIVE},
    ),
    Family(
        name="uniform",
        parameters=("lower", "upper"),
        builder=_uniform,
        constraint="ordered",
        notes="Primary-event window; lower < upper.",
    ),
]


def _register_builtin_families() -> None:
    for family in STANDARD_FAMILIES:
        register_family(family, overwrite=True)


def _load_config_files() -> None:
    raw = os.environ.get(FAMILY_CONFIG_ENV)
    if not raw:
        return
    for entry in raw.split(os.pathsep):
        entry = entry.strip()
        if not entry:
            continue
        load_yaml_config(Path(entry))


_register_builtin_families()
load_entry_points()
_load_config_files()


def gamma(shape: float, scale: float = 1.0) -> ParametricDistribution:
    return ParametricDistribution("gamma", (shape, scale))


def lognormal(meanlog: float = 0.0, sdlog: float = 1.0) -> ParametricDistribution:
    return ParametricDistribution("lognormal", (meanlog, sdlog))


def weibull(shape: float, scale: float = 1.0) -> ParametricDistribution:
    return ParametricDistribution("weibull", (shape, scale))


def exponential(scale: float = 1.0) -> ParametricDistribution:
    return ParametricDistribution("exponential", (scale,))


def normal(loc: float = 0.0, scale: float = 1.0) -> ParametricDistribution:
    return ParametricDistribution("normal", (loc, scale))


def uniform(lower: float = 0.0, upper: float = 1.0) -> ParametricDistribution:
    return ParametricDistribution("uniform", (lower, upper))
