"""Custom exceptions for grc-evidence."""

from __future__ import annotations


class GrcError(Exception):
    """Base exception for all grc-evidence errors."""


class GrcConfigError(GrcError):
    """Missing or invalid configuration."""


class GrcAuthError(GrcError):
    """Authentication or credential failure."""


class GrcCollectionError(GrcError):
    """API call failure during evidence collection."""


class UnsupportedDomainError(GrcError):
    """Requested evidence domain is not one of the known domains."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unsupported resource type: {name}")
        self.name = name


class CapabilityUnavailableError(GrcError):
    """An optional capability (e.g. an SDK extra) is not installed."""
