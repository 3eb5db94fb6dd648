"""Maximum-likelihood fitting of censored delay distributions."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, replace
from typing import Any

import numpy as np

from ..bijectors import Stacked
from ..censoring import (
    IntervalCensored,
    PrimaryCensored,
    SolverMethod,
    Truncated,
    Weighted,
    interval_censored,
    truncated,
)
from ..core import ArrayLike, FitResult
from ..distributions import IndependentProduct
from .initialization import continuous_approximation, initial_params_from_data
from .optimization import (
    FittingProblem,
    Optimizer,
    OptimizerResult,
    ScipyOptimizer,
    approximate_covariance,
    optimize_distribution,
)

logger = logging.getLogger(__name__)

__all__ = [
    "CensoringPlan",
    "FittingProblem",
    "Optimizer",
    "OptimizerResult",
    "ScipyOptimizer",
    "continuous_approximation",
    "fit",
    "fit_from_data",
    "fit_mle",
    "initial_params_from_data",
    "validate_data",
    "validate_weights",
]


def validate_data(data: ArrayLike) -> np.ndarray:
    """Return ``data`` as a float array, rejecting empty or non-finite input."""
    values = np.asarray(data, dtype=float).reshape(-1)
    if values.size == 0:
        raise ValueError("Data cannot be empty")
    if not np.all(np.isfinite(values)):
        raise ValueError("All data values must be finite")
    return values


def validate_weights(weights: ArrayLike | None, data: np.ndarray) -> np.ndarray | None:
    if weights is None:
        return None
    values = np.asarray(weights, dtype=float).reshape(-1)
    if values.size != data.size:
        raise ValueError("Weights must have same length as data")
    if not np.all(np.isfinite(values)):
        raise ValueError("All weights must be finite")
    if np.any(values < 0):
        raise ValueError("All weights must be non-negative")
    if not np.any(values > 0):
        raise ValueError("At least one weight must be positive")
    return values


@dataclass(slots=True)
class CensoringPlan:
    """A template distribution split into its delay and censoring layers."""

    delay: Any
    primary: Any | None = None
    method: SolverMethod = SolverMethod.ANALYTICAL
    lower: float | None = None
    upper: float | None = None
    interval: float | tuple[float, ...] | None = None

    @classmethod
    def from_template(cls, template: Any) -> CensoringPlan:
        """Decompose ``template`` assuming Primary -> Truncate -> Interval order."""
        if isinstance(template, Weighted):
            template = template.dist
        plan: dict[str, Any] = {}
        current = template
        if isinstance(current, IntervalCensored):
            plan["interval"] = current.boundaries
            current = current.dist
        if isinstance(current, Truncated):
            plan["lower"], plan["upper"] = current.lower, current.upper
            current = current.dist
        if isinstance(current, PrimaryCensored):
            plan["primary"], plan["method"] = current.primary_event, current.method
            current = current.dist
        if isinstance(current, IntervalCensored | Truncated | PrimaryCensored | Weighted | IndependentProduct):
            raise ValueError(
                "Template layers must be nested as interval(truncate(primary(delay))); "
                f"found {type(current).__name__} inside the censoring stack."
            )
        return cls(delay=current, **plan)

    def build(
        self,
        delay: Any,
        primary: Any | None,
        *,
        interval: float | tuple[float, ...] | None,
        lower: float | None,
        upper: float | None,
    ) -> Any:
        dist = delay if primary is None else PrimaryCensored(delay, primary, self.method)
        dist = truncated(dist, lower, upper)
        if interval is not None:
            dist = interval_censored(dist, interval)
        return dist


def _interval_key(value: Any) -> float | tuple[float, ...] | None:
    if value is None:
        return None
    if np.ndim(value) == 0:
        return float(value)
    return tuple(np.asarray(value, dtype=float).tolist())


def _is_scalar(value: Any) -> bool:
    if isinstance(value, Sequence):
        return False
    return np.ndim(value) == 0


def _per_observation_intervals(intervals: Any, default: Any, n: int) -> tuple[list[Any], bool]:
    if intervals is None:
        return [default] * n, False
    if _is_scalar(intervals):
        return [_interval_key(intervals)] * n, False
    items = list(intervals)
    if len(items) != n:
        raise ValueError(
            "intervals must be a scalar width or one width/boundary sequence per observation; "
            "put shared explicit boundaries on the template instead."
        )
    return [_interval_key(item) for item in items], True


def _per_observation_bounds(
    values: Any, default: float | None, n: int, name: str
) -> tuple[list[float | None], bool]:
    if values is None:
        return [default] * n, False
    if _is_scalar(values):
        return [float(values)] * n, False
    items = list(values)
    if len(items) != n:
        raise ValueError(f"{name} must be a scalar or have one entry per observation.")
    return [None if value is None else float(value) for value in items], True


def _per_observation_primaries(primary_dists: Any, default: Any, n: int) -> tuple[list[Any], bool]:
    """Return the per-observation primary events and whether they vary."""
    if primary_dists is None:
        return [default] * n, False
    if isinstance(primary_dists, Sequence) and not hasattr(primary_dists, "cdf"):
        items = list(primary_dists)
        if len(items) != n:
            raise ValueError("primary_dists must have one entry per observation.")
        return items, True
    return [primary_dists] * n, False


def _sample_log_likelihood(dist: Any, values: np.ndarray, weights: np.ndarray | None) -> float:
    """Weighted log-likelihood, evaluating each distinct value once."""
    unique, inverse = np.unique(values, return_inverse=True)
    logp = np.asarray(dist.logpdf(unique), dtype=float).reshape(-1)[inverse]
    if weights is None:
        return float(np.sum(logp))
    active = weights > 0
    return float(np.sum(weights[active] * logp[active]))


def fit(
    template: Any,
    data: ArrayLike,
    *,
    weights: ArrayLike | None = None,
    intervals: Any = None,
    lowers: Any = None,
    uppers: Any = None,
    delay_init: ArrayLike | None = None,
    primary_init: ArrayLike | None = None,
    primary_dists: Any = None,
    fit_primary: bool = False,
    optimizer: Optimizer | None = None,
    gradient: Any = None,
    on_failure: str = "raise",
    return_fit_object: bool = False,
) -> Any:
    """Fit the delay (and optionally primary-event) parameters of ``template``.

    ``template`` is a delay distribution optionally wrapped as
    ``IntervalCensored(Truncated(PrimaryCensored(delay, primary)))`` with any layer
    omitted; its current parameters are the default starting values.

    Parameters
    ----------
    template
        Distribution whose structure is kept and whose parameters are estimated.
    data
        Observations; left interval edges when the template is interval censored.
    weights
        Optional non-negative likelihood weights, one per observation. Zero-weight
        observations do not contribute to the objective.
    intervals, lowers, uppers
        Scalars override the template for all observations; sequences with one
        entry per observation build one sub-distribution per observation.
    delay_init, primary_init
        Initial (constrained) parameter values. Supplying ``primary_init`` or
        setting ``fit_primary`` frees the primary-event parameters.
    primary_dists
        Fixed primary-event distribution(s) replacing the template's.
    optimizer
        Any object with ``solve(objective, x0) -> OptimizerResult``.
    gradient
        Gradient scheme passed to the default scipy optimiser (``"2-point"``,
        ``"3-point"`` or a callable in the unconstrained space).
    on_failure
        ``"raise"`` (default) or ``"warn"`` on non-convergence.
    return_fit_object
        Also return a :class:`~censorkit.core.FitResult`.
    """
    values = validate_data(data)
    weight_values = validate_weights(weights, values)
    n = values.size

    plan = CensoringPlan.from_template(template)
    interval_specs, varying_intervals = _per_observation_intervals(intervals, plan.interval, n)
    lower_specs, varying_lowers = _per_observation_bounds(lowers, plan.lower, n, "lowers")
    upper_specs, varying_uppers = _per_observation_bounds(uppers, plan.upper, n, "uppers")
    primary_specs, varying_primaries = _per_observation_primaries(primary_dists, plan.primary, n)
    heterogeneous = varying_intervals or varying_lowers or varying_uppers or varying_primaries

    free_primary = fit_primary or primary_init is not None
    if free_primary and primary_dists is not None:
        raise ValueError("primary_dists fixes the primary events; do not combine with fit_primary/primary_init.")
    if free_primary and plan.primary is None:
        raise ValueError("Template has no primary event distribution to fit.")

    delay_theta = np.asarray(plan.delay.params if delay_init is None else delay_init, dtype=float)
    if delay_theta.size != len(plan.delay.params):
        raise ValueError(f"delay_init must have {len(plan.delay.params)} values, got {delay_theta.size}.")
    blocks = [plan.delay.parameter_bijector()]
    names = [str(name) for name in plan.delay.param_names]
    initial = delay_theta
    if free_primary:
        primary_theta = np.asarray(plan.primary.params if primary_init is None else primary_init, dtype=float)
        if primary_theta.size != len(plan.primary.params):
            raise ValueError(
                f"primary_init must have {len(plan.primary.params)} values, got {primary_theta.size}."
            )
        blocks.append(plan.primary.parameter_bijector())
        names.extend(f"primary_{name}" for name in plan.primary.param_names)
        initial = np.concatenate([delay_theta, primary_theta])
    bijector = blocks[0] if len(blocks) == 1 else Stacked(tuple(blocks))
    n_delay = delay_theta.size

    specs = list(zip(primary_specs, interval_specs, lower_specs, upper_specs, strict=True))
    groups: dict[Any, list[int]] = {}
    for index, spec in enumerate(specs):
        groups.setdefault(spec, []).append(index)
    group_index = [np.asarray(indices) for indices in groups.values()]
    group_specs = [specs[indices[0]] for indices in groups.values()]

    def build(theta: np.ndarray) -> Any:
        delay = plan.delay.with_params(theta[:n_delay])
        primary_override = plan.primary.with_params(theta[n_delay:]) if free_primary else None

        def make(spec: tuple[Any, Any, Any, Any]) -> Any:
            primary, interval, lower, upper = spec
            if primary_override is not None:
                primary = primary_override
            return plan.build(delay, primary, interval=interval, lower=lower, upper=upper)

        if not heterogeneous:
            return make(specs[0])
        built = [make(spec) for spec in group_specs]
        components: list[Any] = [None] * n
        for dist, indices in zip(built, group_index, strict=True):
            for index in indices:
                components[index] = dist
        return IndependentProduct(tuple(components))

    def log_likelihood(dist: Any) -> float:
        if not heterogeneous:
            return _sample_log_likelihood(dist, values, weight_values)
        total = 0.0
        for indices in group_index:
            group_weights = None if weight_values is None else weight_values[indices]
            total += _sample_log_likelihood(dist.components[indices[0]], values[indices], group_weights)
        return total

    if gradient is not None:
        if optimizer is None:
            optimizer = ScipyOptimizer(jac=gradient)
        elif isinstance(optimizer, ScipyOptimizer):
            optimizer = replace(optimizer, jac=gradient)
        else:
            raise ValueError("gradient can only be configured for ScipyOptimizer.")

    problem = FittingProblem(initial=initial, build=build, log_likelihood=log_likelihood, bijector=bijector)
    outcome = optimize_distribution(problem, optimizer=optimizer, on_failure=on_failure)
    fitted = build(outcome.parameters)
    logger.debug("Fitted %s with status %s", names, outcome.status)

    if not return_fit_object:
        return fitted

    covariance = approximate_covariance(problem, outcome.point) if outcome.converged else None
    result = FitResult(
        distribution=fitted,
        parameters=dict(zip(names, map(float, outcome.parameters), strict=True)),
        initial_parameters=dict(zip(names, map(float, initial), strict=True)),
        log_likelihood=log_likelihood(fitted),
        objective=outcome.objective_value,
        converged=outcome.converged,
        status=outcome.status,
        message=outcome.message,
        iterations=outcome.iterations,
        covariance=covariance,
        diagnostics={
            "n_observations": n,
            "heterogeneous": heterogeneous,
            "n_components": len(group_specs),
            "optimizer": type(optimizer or ScipyOptimizer()).__name__,
        },
        raw=outcome.raw,
    )
    return fitted, result


fit_mle = fit


def fit_from_data(template: Any, data: ArrayLike, **kwargs: Any) -> Any:
    """``fit`` with method-of-moments starting values for the delay."""
    plan = CensoringPlan.from_template(template)
    offset = 0.0
    if plan.primary is not None:
        offset = float(getattr(plan.primary, "mean", lambda: 0.0)())
    delay_init = initial_params_from_data(
        plan.delay.family,
        validate_data(data),
        interval=plan.interval,
        primary_offset=offset,
    )
    return fit(template, data, delay_init=delay_init, **kwargs)

