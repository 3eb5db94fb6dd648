"""Core dataclasses, protocols, and exception types shared by censorkit modules."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, TypeAlias, runtime_checkable

import numpy as np
import pandas as pd

ArrayLike: TypeAlias = np.ndarray | Sequence[float]
RandomState: TypeAlias = np.random.Generator | int | None


@runtime_checkable
class UnivariateDistribution(Protocol):
    """Contract consumed by the censoring layers.

    Density and distribution methods are vectorised and return a ``float`` for
    scalar input.
    """

    @property
    def params(self) -> tuple[float, ...]: ...

    def pdf(self, x: ArrayLike | float) -> np.ndarray | float: ...

    def logpdf(self, x: ArrayLike | float) -> np.ndarray | float: ...

    def cdf(self, x: ArrayLike | float) -> np.ndarray | float: ...

    def logcdf(self, x: ArrayLike | float) -> np.ndarray | float: ...

    def quantile(self, p: ArrayLike | float) -> np.ndarray | float: ...

    def rand(self, size: int | None = None, random_state: RandomState = None) -> np.ndarray | float: ...

    def minimum(self) -> float: ...

    def maximum(self) -> float: ...

    def insupport(self, x: ArrayLike | float) -> np.ndarray | bool: ...


class BoundaryError(ValueError):
    """Raised when an interval-censored density is queried off the boundary grid."""


class FitConvergenceError(RuntimeError):
    """Raised when the likelihood optimiser does not report convergence."""

    def __init__(self, message: str, *, status: object = None) -> None:
        super().__init__(message)
        self.status = status


class QuantileConvergenceError(RuntimeError):
    """Raised when a quantile search fails for probability ``p``."""

    def __init__(self, p: float, message: str | None = None) -> None:
        super().__init__(message or f"Quantile optimization failed to converge for p = {p}")
        self.p = p


@dataclass(slots=True)
class FitResult:
    """Container for a single maximum-likelihood fit."""

    distribution: Any
    parameters: dict[str, float]
    initial_parameters: dict[str, float]
    log_likelihood: float
    objective: float
    converged: bool
    status: str
    message: str = ""
    iterations: int | None = None
    covariance: np.ndarray | None = None
    diagnostics: dict[str, Any] = field(default_factory=dict)
    raw: Any = None

    def to_frame(self) -> pd.DataFrame:
        """Return a tidy frame with one row per parameter."""
        records: list[dict[str, Any]] = []
        errors = (
            np.sqrt(np.clip(np.diag(self.covariance), 0.0, None))
            if self.covariance is not None
            else np.full(len(self.parameters), np.nan)
        )
        for (name, value), std_error in zip(self.parameters.items(), errors, strict=True):
            records.append(
                {
                    "parameter": name,
                    "estimate": value,
                    "std_error": float(std_error),
                    "initial": self.initial_parameters.get(name, np.nan),
                    "log_likelihood": self.log_likelihood,
                    "converged": self.converged,
                    "status": self.status,
                }
            )
        return pd.DataFrame.from_records(records)


__all__ = [
    "ArrayLike",
    "RandomState",
    "UnivariateDistribution",
    "BoundaryError",
    "FitConvergenceError",
    "QuantileConvergenceError",
    "FitResult",
]
