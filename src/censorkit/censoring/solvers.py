"""CDF resolution for primary-event censored distributions.

Closed-form formulas live in a registry keyed by ``(delay family, primary family)``.
Pairs without a formula (or constructed with ``SolverMethod.NUMERIC``) integrate the
convolution with ``scipy.integrate.quad``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import numpy as np
from scipy import integrate, special, stats

from ..config import get_config
from ..numerics import logaddexp, logsubexp
from .base import family_key

logger = logging.getLogger(__name__)

FormulaFn = Callable[[Any, Any, np.ndarray], np.ndarray]
PartialExpectation = Callable[[Any, np.ndarray], np.ndarray]


class SolverMethod(str, Enum):
    ANALYTICAL = "analytical"
    NUMERIC = "numeric"


@dataclass(frozen=True, slots=True)
class AnalyticalFormula:
    """Closed-form ``cdf`` (optionally ``pdf`` and ``logccdf``) of ``delay + primary``.

    Every callable receives ``(delay, primary, x)`` with ``x`` a float array strictly
    inside the support and returns an array of the same shape. ``logccdf`` is the log
    survival function; without it the upper tail is integrated numerically.
    """

    cdf: FormulaFn
    pdf: FormulaFn | None = None
    logccdf: FormulaFn | None = None


_FORMULAS: dict[tuple[str, str], AnalyticalFormula] = {}


def register_analytical_cdf(
    delay_family: str,
    primary_family: str,
    cdf: FormulaFn | None = None,
    *,
    pdf: FormulaFn | None = None,
    logccdf: FormulaFn | None = None,
    overwrite: bool = False,
) -> Any:
    """Register a closed-form CDF for a (delay, primary) family pair.

    Can be used directly or as a decorator on the CDF function.
    """
    key = (delay_family.lower(), primary_family.lower())

    def _register(fn: FormulaFn) -> FormulaFn:
        if key in _FORMULAS and not overwrite:
            raise ValueError(f"Analytical formula for {key} already registered.")
        _FORMULAS[key] = AnalyticalFormula(cdf=fn, pdf=pdf, logccdf=logccdf)
        return fn

    if cdf is None:
        return _register
    return _register(cdf)


def unregister_analytical_cdf(delay_family: str, primary_family: str) -> None:
    _FORMULAS.pop((delay_family.lower(), primary_family.lower()), None)


def analytical_pairs() -> list[tuple[str, str]]:
    """Return the registered (delay, primary) family pairs."""
    return sorted(_FORMULAS)


def get_analytical_formula(delay: Any, primary: Any) -> AnalyticalFormula | None:
    return _FORMULAS.get((family_key(delay), family_key(primary)))


def resolve_formula(delay: Any, primary: Any, method: SolverMethod) -> AnalyticalFormula | None:
    """Pick the formula used by a ``PrimaryCensored`` at construction time."""
    if method is SolverMethod.NUMERIC:
        logger.debug("Numeric solver forced for %s + %s", family_key(delay), family_key(primary))
        return None
    formula = get_analytical_formula(delay, primary)
    if formula is None:
        logger.debug(
            "No analytical formula for (%s, %s); falling back to quadrature",
            family_key(delay),
            family_key(primary),
        )
    return formula


def _quad(fn: Callable[[float], float], lower: float, upper: float) -> float:
    cfg = get_config()
    value, _ = integrate.quad(
        fn,
        lower,
        upper,
        epsabs=cfg.integration_epsabs,
        epsrel=cfg.integration_epsrel,
        limit=cfg.integration_limit,
    )
    return float(value)


def _delay_range(delay: Any, primary: Any, x: float) -> tuple[float, float]:
    """Delay values ``u`` with ``x - u`` inside the primary window."""
    lower = max(x - primary.maximum(), delay.minimum())
    upper = x - primary.minimum()
    return lower, upper


def numeric_cdf(delay: Any, primary: Any, x: np.ndarray) -> np.ndarray:
    """``P(D + P <= x)`` by integrating ``D.cdf(u) * P.pdf(x - u)`` over ``u``."""
    arr = np.asarray(x, dtype=float)
    out = np.empty(arr.shape, dtype=float)
    for idx, value in np.ndenumerate(arr):
        if np.isposinf(value):
            out[idx] = 1.0
            continue
        lower, upper = _delay_range(delay, primary, value)
        if not upper > lower:
            out[idx] = 0.0
            continue

        def integrand(u: float, x_val: float = value) -> float:
            return float(np.exp(delay.logcdf(u) + primary.logpdf(x_val - u)))

        out[idx] = _quad(integrand, lower, upper)
    return np.clip(out, 0.0, 1.0)


def numeric_pdf(delay: Any, primary: Any, x: np.ndarray) -> np.ndarray:
    """Convolution density ``int D.pdf(u) * P.pdf(x - u) du``."""
    arr = np.asarray(x, dtype=float)
    out = np.zeros(arr.shape, dtype=float)
    for idx, value in np.ndenumerate(arr):
        if not np.isfinite(value):
            continue
        lower, upper = _delay_range(delay, primary, value)
        if not upper > lower:
            continue

        def integrand(u: float, x_val: float = value) -> float:
            return float(np.exp(delay.logpdf(u) + primary.logpdf(x_val - u)))

        out[idx] = _quad(integrand, lower, upper)
    return out


def numeric_logccdf(delay: Any, primary: Any, x: np.ndarray) -> np.ndarray:
    """``log P(D + P > x)`` integrated from the delay's survival function.

    Primary times that leave ``x - s`` below the delay support contribute their
    whole mass. The remainder is ``int D.ccdf(u) * P.pdf(x - u) du``, scaled by the
    largest survival value on the range so the tail keeps its relative precision.
    """
    arr = np.asarray(x, dtype=float)
    out = np.empty(arr.shape, dtype=float)
    delay_min = float(delay.minimum())
    for idx, value in np.ndenumerate(arr):
        if np.isposinf(value):
            out[idx] = -np.inf
            continue
        lower, upper = _delay_range(delay, primary, value)
        head = 0.0
        head_lower = value - primary.maximum()
        head_upper = min(delay_min, upper)
        if head_upper > head_lower:

            def window_density(u: float, x_val: float = value) -> float:
                return float(np.exp(primary.logpdf(x_val - u)))

            head = _quad(window_density, head_lower, head_upper)
        log_tail = -np.inf
        scale = float(delay.logccdf(lower)) if upper > lower else -np.inf
        if np.isfinite(scale):

            def integrand(u: float, x_val: float = value, ref: float = scale) -> float:
                return float(np.exp(delay.logccdf(u) + primary.logpdf(x_val - u) - ref))

            with np.errstate(divide="ignore"):
                log_tail = scale + np.log(_quad(integrand, lower, upper))
        with np.errstate(divide="ignore"):
            out[idx] = np.logaddexp(np.log(head), log_tail)
    return np.minimum(out, 0.0)


def uniform_primary_cdf(partial_expectation: PartialExpectation) -> FormulaFn:
    """Build the uniform-window CDF from the delay's partial expectation.

    With ``t = x - pmin``, window ``w`` and ``E(t) = int_0^t u f(u) du`` the CDF is
    ``(int_{t-w}^t F(u) du) / w``, evaluated as ``F(t)`` minus a log-space correction.
    """

    def cdf(delay: Any, primary: Any, x: np.ndarray) -> np.ndarray:
        pmin = primary.minimum()
        window = primary.maximum() - pmin
        t = np.asarray(x, dtype=float) - pmin
        out = np.zeros(t.shape, dtype=float)
        positive = t > 0
        if not np.any(positive):
            return out
        tp = t[positive]
        q = np.maximum(tp - window, 0.0)
        f_t = np.asarray(delay.cdf(tp), dtype=float)
        f_q = np.asarray(delay.cdf(q), dtype=float)
        e_t = partial_expectation(delay, tp)
        e_q = partial_expectation(delay, q)
        with np.errstate(divide="ignore", invalid="ignore"):
            late = logsubexp(np.log(e_t - e_q), np.log(q) + np.log(f_t - f_q))
            early = logaddexp(np.log(e_t), np.log(window - tp) + np.log(f_t))
            correction = np.where(tp > window, late, early)
            out[positive] = f_t - np.exp(correction - np.log(window))
        return np.clip(out, 0.0, 1.0)

    return cdf


def uniform_primary_logccdf(log_upper_expectation: PartialExpectation) -> FormulaFn:
    """Build the uniform-window log survival function.

    ``1 - CDF = (int_{t-w}^t S(u) du) / w`` with ``S = 1`` below zero. Using
    ``G(a) = int_a^inf S(u) du = Eu(a) - a S(a)``, where ``Eu(a) = int_a^inf u f(u) du``
    is supplied in log form, the survival function is
    ``(max(w - t, 0) + G(q) - G(t)) / w`` with ``q = max(t - w, 0)``.
    """

    def log_tail_area(delay: Any, a: np.ndarray) -> np.ndarray:
        log_survival = np.asarray(delay.logccdf(a), dtype=float)
        with np.errstate(divide="ignore"):
            return logsubexp(log_upper_expectation(delay, a), np.log(a) + log_survival)

    def logccdf(delay: Any, primary: Any, x: np.ndarray) -> np.ndarray:
        pmin = primary.minimum()
        window = primary.maximum() - pmin
        t = np.asarray(x, dtype=float) - pmin
        out = np.zeros(t.shape, dtype=float)
        positive = t > 0
        if not np.any(positive):
            return out
        tp = t[positive]
        q = np.maximum(tp - window, 0.0)
        with np.errstate(divide="ignore", invalid="ignore"):
            spread = logsubexp(log_tail_area(delay, q), log_tail_area(delay, tp))
            head = np.log(np.maximum(window - tp, 0.0))
            out[positive] = logaddexp(head, spread) - np.log(window)
        return np.minimum(out, 0.0)

    return logccdf


def uniform_primary_pdf(delay: Any, primary: Any, x: np.ndarray) -> np.ndarray:
    """``(F(t) - F(t - w)) / w`` for a uniform window of width ``w``."""
    pmin = primary.minimum()
    window = primary.maximum() - pmin
    t = np.asarray(x, dtype=float) - pmin
    upper = np.asarray(delay.cdf(t), dtype=float)
    lower = np.asarray(delay.cdf(t - window), dtype=float)
    return np.maximum(upper - lower, 0.0) / window


def gamma_partial_expectation(delay: Any, t: np.ndarray) -> np.ndarray:
    shape, scale = delay.params
    return shape * scale * stats.gamma.cdf(t, shape + 1.0, scale=scale)


def lognormal_partial_expectation(delay: Any, t: np.ndarray) -> np.ndarray:
    meanlog, sdlog = delay.params
    shifted = stats.lognorm.cdf(t, s=sdlog, scale=np.exp(meanlog + sdlog**2))
    return np.exp(meanlog + sdlog**2 / 2.0) * shifted


def weibull_partial_expectation(delay: Any, t: np.ndarray) -> np.ndarray:
    shape, scale = delay.params
    a = 1.0 + 1.0 / shape
    z = np.power(np.maximum(t, 0.0) / scale, shape)
    return scale * special.gamma(a) * special.gammainc(a, z)


def exponential_partial_expectation(delay: Any, t: np.ndarray) -> np.ndarray:
    (scale,) = delay.params
    return scale * stats.gamma.cdf(t, 2.0, scale=scale)


# Upper partial expectations ``log int_a^inf u f(u) du``, written with log survival
# functions so they stay finite far into the tail.


def gamma_log_upper_expectation(delay: Any, a: np.ndarray) -> np.ndarray:
    shape, scale = delay.params
    return np.log(shape * scale) + stats.gamma.logsf(a, shape + 1.0, scale=scale)


def lognormal_log_upper_expectation(delay: Any, a: np.ndarray) -> np.ndarray:
    meanlog, sdlog = delay.params
    shifted = stats.lognorm.logsf(a, s=sdlog, scale=np.exp(meanlog + sdlog**2))
    return meanlog + sdlog**2 / 2.0 + shifted


def weibull_log_upper_expectation(delay: Any, a: np.ndarray) -> np.ndarray:
    shape, scale = delay.params
    k = 1.0 + 1.0 / shape
    z = np.power(np.maximum(a, 0.0) / scale, shape)
    return np.log(scale) + special.gammaln(k) + stats.gamma.logsf(z, k)


def exponential_log_upper_expectation(delay: Any, a: np.ndarray) -> np.ndarray:
    (scale,) = delay.params
    return np.log(scale) + stats.gamma.logsf(a, 2.0, scale=scale)


def _register_builtin_formulas() -> None:
    for delay_family, partial, upper in (
        ("gamma", gamma_partial_expectation, gamma_log_upper_expectation),
        ("lognormal", lognormal_partial_expectation, lognormal_log_upper_expectation),
        ("weibull", weibull_partial_expectation, weibull_log_upper_expectation),
        ("exponential", exponential_partial_expectation, exponential_log_upper_expectation),
    ):
        register_analytical_cdf(
            delay_family,
            "uniform",
            uniform_primary_cdf(partial),
            pdf=uniform_primary_pdf,
            logccdf=uniform_primary_logccdf(upper),
            overwrite=True,
        )


_register_builtin_formulas()


__all__ = [
    "SolverMethod",
    "AnalyticalFormula",
    "register_analytical_cdf",
    "unregister_analytical_cdf",
    "analytical_pairs",
    "get_analytical_formula",
    "resolve_formula",
    "numeric_cdf",
    "numeric_pdf",
    "numeric_logccdf",
    "uniform_primary_cdf",
    "uniform_primary_logccdf",
    "uniform_primary_pdf",
    "gamma_partial_expectation",
    "lognormal_partial_expectation",
    "weibull_partial_expectation",
    "exponential_partial_expectation",
    "gamma_log_upper_expectation",
    "lognormal_log_upper_expectation",
    "weibull_log_upper_expectation",
    "exponential_log_upper_expectation",
]
