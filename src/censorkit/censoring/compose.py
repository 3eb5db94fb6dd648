"""Builder for double interval censored distributions."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import numpy as np

from .interval import interval_censored
from .primary import primary_censored
from .truncated import truncated


def double_interval_censored(
    dist: Any,
    primary_event: Any = None,
    *,
    lower: float | None = None,
    upper: float | None = None,
    interval: float | Sequence[float] | np.ndarray | None = None,
    force_numeric: bool = False,
) -> Any:
    """Primary-event censor, then truncate, then interval censor ``dist``.

    The order is fixed: binning must see the renormalised truncated density, and
    truncation bounds apply to the continuous observation time.

    Parameters
    ----------
    dist
        Delay distribution.
    primary_event
        Primary event window; ``Uniform(0, 1)`` when omitted.
    lower, upper
        Optional truncation bounds on the observed time.
    interval
        Regular interval width or explicit boundaries; ``None`` keeps the result continuous.
    force_numeric
        Integrate the primary-event convolution even when a closed form is registered.
    """
    result: Any = primary_censored(dist, primary_event, force_numeric=force_numeric)
    result = truncated(result, lower, upper)
    if interval is not None:
        result = interval_censored(result, interval)
    return result


__all__ = ["double_interval_censored"]
