"""Penalised negative log-likelihood optimisation in an unconstrained space."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol
from warnings import warn

import numpy as np
from scipy.optimize import minimize

from ..bijectors import Bijector
from ..config import get_config
from ..core import BoundaryError, FitConvergenceError

logger = logging.getLogger(__name__)

Objective = Callable[[np.ndarray], float]
GRADIENT_METHODS = {"L-BFGS-B", "BFGS", "CG", "TNC", "SLSQP", "NEWTON-CG", "TRUST-CONSTR"}
FAILURE_MODES = ("raise", "warn")


@dataclass(slots=True)
class OptimizerResult:
    """What an optimiser reports back to the fit engine."""

    point: np.ndarray
    objective_value: float
    converged: bool
    status: Any = None
    message: str = ""
    iterations: int | None = None
    raw: Any = None


class Optimizer(Protocol):
    def solve(self, objective: Objective, x0: np.ndarray) -> OptimizerResult: ...


@dataclass(slots=True)
class ScipyOptimizer:
    """Adapter around ``scipy.optimize.minimize``.

    ``jac`` is only forwarded to gradient-based methods; it may be a finite
    difference scheme (``"2-point"``, ``"3-point"``) or a callable gradient.
    """

    method: str | None = None
    jac: str | Callable[[np.ndarray], np.ndarray] | None = "3-point"
    tol: float | None = None
    options: dict[str, Any] = field(default_factory=dict)

    def solve(self, objective: Objective, x0: np.ndarray) -> OptimizerResult:
        cfg = get_config()
        method = self.method or cfg.optimizer_method
        options = dict(self.options)
        if cfg.optimizer_maxiter is not None:
            options.setdefault("maxiter", cfg.optimizer_maxiter)
        kwargs: dict[str, Any] = {"method": method, "tol": self.tol, "options": options}
        if method.upper() in GRADIENT_METHODS and self.jac is not None:
            kwargs["jac"] = self.jac
        result = minimize(objective, np.asarray(x0, dtype=float), **kwargs)
        return OptimizerResult(
            point=np.asarray(result.x, dtype=float),
            objective_value=float(result.fun),
            converged=bool(result.success),
            status=getattr(result, "status", None),
            message=str(getattr(result, "message", "")),
            iterations=getattr(result, "nit", None),
            raw=result,
        )


@dataclass(slots=True)
class FittingProblem:
    """Per-call state of a likelihood fit.

    ``build`` maps constrained parameters to a trial distribution and
    ``log_likelihood`` evaluates the (weighted) log-likelihood of that
    distribution on the data.
    """

    initial: np.ndarray
    build: Callable[[np.ndarray], Any]
    log_likelihood: Callable[[Any], float]
    bijector: Bijector

    def objective(self, x: np.ndarray) -> float:
        """Negative log-likelihood plus inverse-transform Jacobian at ``x``."""
        penalty = get_config().penalty
        try:
            with np.errstate(all="ignore"):
                theta = self.bijector.inverse(x)
                dist = self.build(theta)
                value = self.log_likelihood(dist) + self.bijector.log_abs_det_jacobian(x)
        except BoundaryError:
            raise
        except (ValueError, ArithmeticError, FloatingPointError) as exc:
            logger.debug("Density evaluation failed at x=%s: %s", x, exc)
            return penalty
        if not np.isfinite(value):
            return penalty
        return -float(value)


@dataclass(slots=True)
class OptimizationOutcome:
    parameters: np.ndarray
    point: np.ndarray
    objective_value: float
    converged: bool
    status: str
    message: str
    iterations: int | None
    raw: Any


def optimize_distribution(
    problem: FittingProblem,
    *,
    optimizer: Optimizer | None = None,
    on_failure: str = "raise",
) -> OptimizationOutcome:
    """Solve ``problem`` and map the optimum back to constrained parameters.

    Raises
    ------
    FitConvergenceError
        If the optimiser does not converge and ``on_failure`` is ``"raise"``.
    """
    if on_failure not in FAILURE_MODES:
        raise ValueError(f"on_failure must be one of {FAILURE_MODES}, got '{on_failure}'.")
    optimizer = optimizer or ScipyOptimizer()

    # surface usage errors (for example off-grid interval data) before optimising
    problem.log_likelihood(problem.build(problem.initial))

    x0 = problem.bijector.forward(problem.initial)
    logger.debug("Starting optimisation from theta=%s", problem.initial)
    result = optimizer.solve(problem.objective, x0)
    logger.debug(
        "Optimiser finished: converged=%s status=%s objective=%s",
        result.converged,
        result.status,
        result.objective_value,
    )

    if not np.isfinite(result.objective_value) or not np.all(np.isfinite(result.point)):
        warn(
            "Optimisation returned a non-finite objective; falling back to the initial parameters.",
            RuntimeWarning,
            stacklevel=3,
        )
        return OptimizationOutcome(
            parameters=np.asarray(problem.initial, dtype=float).copy(),
            point=x0,
            objective_value=float(result.objective_value),
            converged=False,
            status="fallback-initial",
            message=result.message,
            iterations=result.iterations,
            raw=result.raw,
        )

    if not result.converged:
        message = f"Optimization failed to converge. Retcode: {result.status} ({result.message})"
        if on_failure == "raise":
            raise FitConvergenceError(message, status=result.status)
        warn(message + "; returning the best point found.", RuntimeWarning, stacklevel=3)
        status = "not-converged"
    else:
        status = "converged"

    return OptimizationOutcome(
        parameters=problem.bijector.inverse(result.point),
        point=result.point,
        objective_value=result.objective_value,
        converged=result.converged,
        status=status,
        message=result.message,
        iterations=result.iterations,
        raw=result.raw,
    )


def _numerical_hessian(func: Objective, x: np.ndarray, *, step: float = 1e-4) -> np.ndarray:
    """Central finite-difference Hessian."""
    n_params = x.size
    hessian = np.zeros((n_params, n_params), dtype=float)
    f0 = func(x)
    for i in range(n_params):
        ei = np.zeros(n_params, dtype=float)
        ei[i] = step
        hessian[i, i] = (func(x + ei) - 2.0 * f0 + func(x - ei)) / step**2
        for j in range(i + 1, n_params):
            ej = np.zeros(n_params, dtype=float)
            ej[j] = step
            value = (
                func(x + ei + ej) - func(x + ei - ej) - func(x - ei + ej) + func(x - ei - ej)
            ) / (4.0 * step**2)
            hessian[i, j] = value
            hessian[j, i] = value
    return hessian


def _inverse_jacobian(bijector: Bijector, x: np.ndarray, *, step: float = 1e-6) -> np.ndarray:
    """``d theta / d x`` of the inverse bijector by central differences."""
    columns = []
    for j in range(x.size):
        ej = np.zeros(x.size, dtype=float)
        ej[j] = step
        columns.append((bijector.inverse(x + ej) - bijector.inverse(x - ej)) / (2.0 * step))
    return np.column_stack(columns)


def approximate_covariance(problem: FittingProblem, point: np.ndarray) -> np.ndarray | None:
    """Delta-method covariance of the constrained parameters at ``point``.

    Returns ``None`` when the Hessian is singular or not positive definite.
    """
    penalty = get_config().penalty
    hessian = _numerical_hessian(problem.objective, np.asarray(point, dtype=float))
    if not np.all(np.isfinite(hessian)) or np.any(np.abs(hessian) >= penalty):
        return None
    try:
        inverse = np.linalg.inv(hessian)
    except np.linalg.LinAlgError:
        return None
    if np.any(np.diag(inverse) <= 0):
        return None
    jacobian = _inverse_jacobian(problem.bijector, np.asarray(point, dtype=float))
    return jacobian @ inverse @ jacobian.T


__all__ = [
    "Optimizer",
    "OptimizerResult",
    "ScipyOptimizer",
    "FittingProblem",
    "OptimizationOutcome",
    "optimize_distribution",
    "approximate_covariance",
]
