"""Constrained <-> unconstrained parameter transforms used by the fit engine.

``forward`` maps constrained parameters ``theta`` to an unconstrained vector ``x``;
``inverse`` maps back. ``log_abs_det_jacobian(x)`` is ``log|d theta / d x|`` of the
inverse map, the correction added to the log-likelihood when optimising in ``x``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Protocol

import numpy as np
from scipy.special import expit, log_expit, logit

Bounds = tuple[float | None, float | None]


class Bijector(Protocol):
    size: int

    def forward(self, theta: np.ndarray) -> np.ndarray: ...

    def inverse(self, x: np.ndarray) -> np.ndarray: ...

    def log_abs_det_jacobian(self, x: np.ndarray) -> float: ...


def _vector(values: Sequence[float] | np.ndarray) -> np.ndarray:
    return np.atleast_1d(np.asarray(values, dtype=float))


@dataclass(frozen=True, slots=True)
class Identity:
    size: int = 1

    def forward(self, theta: np.ndarray) -> np.ndarray:
        return _vector(theta).copy()

    def inverse(self, x: np.ndarray) -> np.ndarray:
        return _vector(x).copy()

    def log_abs_det_jacobian(self, x: np.ndarray) -> float:
        return 0.0


@dataclass(frozen=True, slots=True)
class Log:
    """Map ``(lower, inf)`` to the real line via ``theta = lower + exp(x)``."""

    size: int = 1
    lower: float = 0.0

    def forward(self, theta: np.ndarray) -> np.ndarray:
        shifted = _vector(theta) - self.lower
        if np.any(shifted <= 0):
            raise ValueError(f"Log bijector requires values above {self.lower}.")
        return np.log(shifted)

    def inverse(self, x: np.ndarray) -> np.ndarray:
        return self.lower + np.exp(_vector(x))

    def log_abs_det_jacobian(self, x: np.ndarray) -> float:
        return float(np.sum(_vector(x)))


@dataclass(frozen=True, slots=True)
class Logit:
    """Map ``(lower, upper)`` to the real line with a scaled logistic."""

    lower: float
    upper: float
    size: int = 1

    def __post_init__(self) -> None:
        if not self.lower < self.upper:
            raise ValueError("Logit bijector requires lower < upper.")

    def forward(self, theta: np.ndarray) -> np.ndarray:
        unit = (_vector(theta) - self.lower) / (self.upper - self.lower)
        if np.any((unit <= 0) | (unit >= 1)):
            raise ValueError(f"Logit bijector requires values in ({self.lower}, {self.upper}).")
        return logit(unit)

    def inverse(self, x: np.ndarray) -> np.ndarray:
        return self.lower + (self.upper - self.lower) * expit(_vector(x))

    def log_abs_det_jacobian(self, x: np.ndarray) -> float:
        arr = _vector(x)
        width = np.log(self.upper - self.lower)
        return float(np.sum(width + log_expit(arr) + log_expit(-arr)))


@dataclass(frozen=True, slots=True)
class Ordered:
    """Map a strictly increasing vector to the real line.

    ``x[0] = theta[0]`` and ``x[i] = log(theta[i] - theta[i - 1])``.
    """

    size: int = 2

    def forward(self, theta: np.ndarray) -> np.ndarray:
        arr = _vector(theta)
        gaps = np.diff(arr)
        if np.any(gaps <= 0):
            raise ValueError("Ordered bijector requires strictly increasing values.")
        return np.concatenate([arr[:1], np.log(gaps)])

    def inverse(self, x: np.ndarray) -> np.ndarray:
        arr = _vector(x)
        return np.cumsum(np.concatenate([arr[:1], np.exp(arr[1:])]))

    def log_abs_det_jacobian(self, x: np.ndarray) -> float:
        return float(np.sum(_vector(x)[1:]))


@dataclass(frozen=True)
class Stacked:
    """Apply independent bijectors to contiguous blocks of one vector.

    The Jacobian is block diagonal, so its log-determinant is the sum of the
    block terms.
    """

    bijectors: tuple[Bijector, ...]

    @property
    def size(self) -> int:
        return sum(b.size for b in self.bijectors)

    def _blocks(self, values: np.ndarray) -> list[tuple[Bijector, np.ndarray]]:
        arr = _vector(values)
        if arr.size != self.size:
            raise ValueError(f"Expected {self.size} parameters, received {arr.size}.")
        blocks = []
        start = 0
        for bijector in self.bijectors:
            blocks.append((bijector, arr[start : start + bijector.size]))
            start += bijector.size
        return blocks

    def forward(self, theta: np.ndarray) -> np.ndarray:
        parts = [b.forward(block) for b, block in self._blocks(theta)]
        return np.concatenate(parts) if parts else np.empty(0)

    def inverse(self, x: np.ndarray) -> np.ndarray:
        parts = [b.inverse(block) for b, block in self._blocks(x)]
        return np.concatenate(parts) if parts else np.empty(0)

    def log_abs_det_jacobian(self, x: np.ndarray) -> float:
        return float(sum(b.log_abs_det_jacobian(block) for b, block in self._blocks(x)))


def bijector_for_bound(bound: Bounds | None) -> Bijector:
    """Pick the bijector matching a single parameter's ``(lower, upper)`` bound."""
    lower, upper = bound if bound is not None else (None, None)
    lower_finite = lower is not None and np.isfinite(lower)
    upper_finite = upper is not None and np.isfinite(upper)
    if lower_finite and upper_finite:
        return Logit(float(lower), float(upper))
    if lower_finite:
        return Log(lower=float(lower))
    if upper_finite:
        raise ValueError("Upper-bounded parameters without a lower bound are not supported.")
    return Identity()


def bijector_from_bounds(
    parameters: Sequence[str],
    bounds: Mapping[str, Bounds] | None = None,
    *,
    constraint: str | None = None,
) -> Bijector:
    """Build a (stacked) bijector for a family's parameter vector.

    ``constraint="ordered"`` treats the first two parameters as an increasing pair.
    """
    bounds = bounds or {}
    blocks: list[Bijector] = []
    names = list(parameters)
    if constraint == "ordered":
        if len(names) < 2:
            raise ValueError("Ordered constraint needs at least two parameters.")
        blocks.append(Ordered(2))
        names = names[2:]
    elif constraint is not None:
        raise ValueError(f"Unknown parameter constraint '{constraint}'.")
    blocks.extend(bijector_for_bound(bounds.get(name)) for name in names)
    if len(blocks) == 1:
        return blocks[0]
    return Stacked(tuple(blocks))


__all__ = [
    "Bijector",
    "Bounds",
    "Identity",
    "Log",
    "Logit",
    "Ordered",
    "Stacked",
    "bijector_for_bound",
    "bijector_from_bounds",
]
