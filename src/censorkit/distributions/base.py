"""Family registry infrastructure for base (delay and primary-event) distributions."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from importlib import import_module, metadata
from pathlib import Path
from typing import Any

import yaml
from scipy import stats

from ..bijectors import Bijector, Bounds, bijector_from_bounds

Builder = Callable[..., Any]

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "censorkit.families"


@dataclass(slots=True)
class Family:
    """Describe a parametric family and how to freeze it as a scipy distribution.

    ``builder`` receives the parameter values positionally (in ``parameters``
    order) and returns a frozen ``scipy.stats`` distribution.
    """

    name: str
    parameters: tuple[str, ...]
    builder: Builder
    bounds: dict[str, Bounds] | None = None
    constraint: str | None = None
    notes: str | None = None

    def freeze(self, values: Iterable[float]) -> Any:
        values = tuple(values)
        if len(values) != len(self.parameters):
            raise ValueError(
                f"Family '{self.name}' expects {len(self.parameters)} parameters "
                f"{self.parameters}, received {len(values)}."
            )
        return self.builder(*values)

    def bijector(self) -> Bijector:
        return bijector_from_bounds(self.parameters, self.bounds, constraint=self.constraint)

    def check(self, values: Iterable[float]) -> None:
        """Raise ``ValueError`` when ``values`` fall outside the declared bounds."""
        values = tuple(values)
        for name, value in zip(self.parameters, values, strict=True):
            lower, upper = (self.bounds or {}).get(name, (None, None))
            if lower is not None and not value > lower:
                raise ValueError(f"Parameter '{name}' of {self.name} must exceed {lower}.")
            if upper is not None and not value < upper:
                raise ValueError(f"Parameter '{name}' of {self.name} must be below {upper}.")
        if self.constraint == "ordered" and not values[0] < values[1]:
            raise ValueError(
                f"{self.name} requires {self.parameters[0]} < {self.parameters[1]}."
            )


_REGISTRY: dict[str, Family] = {}


def list_families() -> Iterable[str]:
    """Return registered family names."""
    return sorted(_REGISTRY.keys())


def get_family(name: str) -> Family:
    """Retrieve a family by name."""
    key = name.lower()
    if key not in _REGISTRY:
        raise KeyError(f"Unknown distribution family '{name}'.")
    return _REGISTRY[key]


def register_family(family: Family, *, overwrite: bool = False) -> None:
    """Register a family in the global registry."""
    key = family.name.lower()
    if key in _REGISTRY and not overwrite:
        raise ValueError(f"Family '{family.name}' already registered.")
    _REGISTRY[key] = family


def clear_registry() -> None:
    """Reset the registry (primarily for testing)."""
    _REGISTRY.clear()


def scipy_builder(scipy_name: str, parameters: Iterable[str]) -> Builder:
    """Return a builder passing parameters to ``scipy.stats.<scipy_name>`` by keyword."""
    names = tuple(parameters)
    try:
        target = getattr(stats, scipy_name)
    except AttributeError as exc:
        raise ValueError(f"scipy.stats has no distribution named '{scipy_name}'.") from exc

    def build(*values: float) -> Any:
        return target(**dict(zip(names, values, strict=True)))

    return build


def _parse_bounds(raw: Mapping[str, Any] | None) -> dict[str, Bounds] | None:
    if not raw:
        return None
    parsed: dict[str, Bounds] = {}
    for name, pair in raw.items():
        lower, upper = pair
        parsed[str(name)] = (
            None if lower is None else float(lower),
            None if upper is None else float(upper),
        )
    return parsed


def _iter_families(candidate: Any) -> Iterable[Family]:
    if isinstance(candidate, Family):
        yield candidate
    elif isinstance(candidate, Mapping) and "name" in candidate:
        parameters = tuple(str(param) for param in candidate.get("parameters", []))
        if "builder" in candidate:
            builder = _load_object(candidate["builder"])
        elif "scipy" in candidate:
            builder = scipy_builder(str(candidate["scipy"]), parameters)
        else:
            raise ValueError(f"Family spec '{candidate['name']}' needs a 'builder' or 'scipy' key.")
        yield Family(
            name=str(candidate["name"]),
            parameters=parameters,
            builder=builder,
            bounds=_parse_bounds(candidate.get("bounds")),
            constraint=candidate.get("constraint"),
            notes=candidate.get("notes"),
        )
    elif isinstance(candidate, Iterable) and not isinstance(candidate, str | bytes):
        for item in candidate:
            yield from _iter_families(item)
    elif callable(candidate):
        yield from _iter_families(candidate())
    else:
        raise TypeError(
            "Unsupported family specification. Expected Family, iterable of Family "
            "instances, a callable returning them, or a mapping with name/builder keys."
        )


def _load_object(path: str) -> Any:
    module_name, _, attribute = path.partition(":")
    if not attribute:
        module_name, _, attribute = path.rpartition(".")
    if not module_name or not attribute:
        raise ValueError(f"Invalid import path '{path}'. Expected 'module:callable'.")
    module = import_module(module_name)
    try:
        return getattr(module, attribute)
    except AttributeError as exc:
        raise AttributeError(f"Module '{module_name}' has no attribute '{attribute}'.") from exc


def load_entry_points(group: str = ENTRY_POINT_GROUP) -> list[str]:
    """Discover third-party families via entry points."""
    loaded: list[str] = []
    try:
        candidates = metadata.entry_points().select(group=group)
    except Exception as exc:  # pragma: no cover - discovery failure
        logger.debug("Entry point discovery failed: %s", exc)
        return loaded

    for ep in candidates:
        try:
            for family in _iter_families(ep.load()):
                register_family(family, overwrite=True)
                loaded.append(family.name)
        except Exception as exc:  # pragma: no cover - plugin failure
            logger.warning("Failed to load family entry point '%s': %s", ep.name, exc)
    return loaded


def load_yaml_config(path: str | os.PathLike[str]) -> list[str]:
    """Load additional families from a YAML configuration file."""
    path = Path(path)
    if not path.exists():
        logger.debug("Skipping family config %s (file not found)", path)
        return []

    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:
        logger.warning("Failed to parse family config %s: %s", path, exc)
        return []

    registered: list[str] = []
    for item in data.get("families", []):
        try:
            if "callable" in item:
                factory = _load_object(item["callable"])
                produced = factory(*item.get("args", []), **item.get("kwargs", {}))
            else:
                produced = item
            for family in _iter_families(produced):
                register_family(family, overwrite=item.get("overwrite", True))
                registered.append(family.name)
        except Exception as exc:
            logger.warning("Failed to register family from %s (spec=%s): %s", path, item, exc)
    return registered


__all__ = [
    "Builder",
    "ENTRY_POINT_GROUP",
    "Family",
    "list_families",
    "get_family",
    "register_family",
    "clear_registry",
    "scipy_builder",
    "load_entry_points",
    "load_yaml_config",
]
