"""Evidence collectors registry."""

from __future__ import annotations

from typing import TYPE_CHECKING

from grc_evidence.evidence import Domain

if TYPE_CHECKING:
    from grc_evidence.collectors.base import BaseCollector

_REGISTRY: dict[Domain, type[BaseCollector]] = {}


def register_collector(cls: type[BaseCollector]) -> type[BaseCollector]:
    """Register a collector class by its domain."""
    _REGISTRY[cls.domain.fget(cls)] = cls  # type: ignore[attr-defined]
    return cls


def get_collector(domain: Domain) -> type[BaseCollector] | None:
    """Look up a registered collector by domain."""
    return _REGISTRY.get(domain)


def all_collectors() -> dict[Domain, type[BaseCollector]]:
    """Return all registered collectors."""
    return dict(_REGISTRY)


# Built-in collectors register themselves on import.
from grc_evidence.collectors import (  # noqa: E402,F401
    key_management,
    network,
    resource_groups,
    security_posture,
    storage,
)
