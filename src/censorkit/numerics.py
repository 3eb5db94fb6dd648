"""Log-space arithmetic helpers shared by the censoring layers."""

from __future__ import annotations

import numpy as np


def logsubexp(a: np.ndarray | float, b: np.ndarray | float) -> np.ndarray:
    """Return ``log(exp(a) - exp(b))`` without cancellation.

    ``b`` is clipped to ``a`` so round-off in ``b > a`` yields ``-inf``, not ``nan``.
    """
    a_arr = np.asarray(a, dtype=float)
    b_arr = np.minimum(np.asarray(b, dtype=float), a_arr)
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        out = a_arr + log1mexp(b_arr - a_arr)
    return np.where(np.isneginf(b_arr), a_arr, out)


def log1mexp(x: np.ndarray | float) -> np.ndarray:
    """Return ``log(1 - exp(x))`` for ``x <= 0``.

    Switches between ``log(-expm1(x))`` and ``log1p(-exp(x))`` at ``-log(2)``
    (Maechler, 2012).
    """
    arr = np.asarray(x, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        near = np.log(-np.expm1(arr))
        far = np.log1p(-np.exp(arr))
    return np.where(arr > -np.log(2.0), near, far)


def logaddexp(a: np.ndarray | float, b: np.ndarray | float) -> np.ndarray:
    return np.logaddexp(np.asarray(a, dtype=float), np.asarray(b, dtype=float))


def as_output(values: np.ndarray, like: object) -> np.ndarray | float:
    """Collapse ``values`` to a float when the caller passed a scalar."""
    if np.ndim(like) == 0:
        return float(np.asarray(values).reshape(-1)[0])
    return np.asarray(values, dtype=float)


__all__ = ["logsubexp", "log1mexp", "logaddexp", "as_output"]
