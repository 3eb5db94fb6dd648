"""Process-wide numerical configuration (tolerances, iteration caps, optimiser)."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, fields, replace

FAMILY_CONFIG_ENV = "CENSORKIT_FAMILY_CONFIG"


@dataclass(slots=True)
class NumericalConfig:
    """Tolerances shared by quadrature, quantile search, and likelihood fitting."""

    integration_epsrel: float = 1e-8
    integration_epsabs: float = 1e-10
    integration_limit: int = 100
    quantile_tol: float = 1e-8
    quantile_maxiter: int = 10_000
    optimizer_method: str = "L-BFGS-B"
    optimizer_maxiter: int | None = None
    penalty: float = 1e10

    def __post_init__(self) -> None:
        if self.integration_epsrel <= 0 or self.integration_epsabs < 0:
            raise ValueError("Integration tolerances must be positive.")
        if self.integration_limit < 1 or self.quantile_maxiter < 1:
            raise ValueError("Iteration limits must be at least 1.")
        if self.quantile_tol <= 0:
            raise ValueError("quantile_tol must be positive.")
        if not self.penalty > 0:
            raise ValueError("penalty must be a positive finite value.")


_CONFIG = NumericalConfig()


def get_config() -> NumericalConfig:
    """Return the active configuration."""
    return _CONFIG


def set_config(**changes: object) -> NumericalConfig:
    """Update the active configuration and return the previous one."""
    global _CONFIG
    known = {f.name for f in fields(NumericalConfig)}
    unknown = set(changes) - known
    if unknown:
        raise KeyError(f"Unknown configuration option(s): {', '.join(sorted(unknown))}.")
    previous = _CONFIG
    _CONFIG = replace(_CONFIG, **changes)  # type: ignore[arg-type]
    return previous


def reset_config() -> None:
    global _CONFIG
    _CONFIG = NumericalConfig()


@contextmanager
def numerical_config(**changes: object) -> Iterator[NumericalConfig]:
    """Temporarily override configuration values."""
    global _CONFIG
    previous = set_config(**changes)
    try:
        yield _CONFIG
    finally:
        _CONFIG = previous


__all__ = [
    "FAMILY_CONFIG_ENV",
    "NumericalConfig",
    "get_config",
    "set_config",
    "reset_config",
    "numerical_config",
]
