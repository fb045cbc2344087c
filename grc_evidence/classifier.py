"""Classifies collection errors and builds operator remediation text."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from grc_evidence.exceptions import GrcAuthError, UnsupportedDomainError

REQUIRED_CREDENTIALS: tuple[str, ...] = (
    "AZURE_CLIENT_ID",
    "AZURE_CLIENT_SECRET",
    "AZURE_TENANT_ID",
)

AUTH_REMEDIATION = (
    "Azure credentials not configured. Set AZURE_CLIENT_ID, AZURE_CLIENT_SECRET, "
    "and AZURE_TENANT_ID environment variables, or run 'grc-evidence init' to "
    "store a service principal in the config file."
)

# Environment variable prefix; matched case-sensitively.
_ENV_PREFIX_MARKERS = ("AZURE_",)
# Matched against the lower-cased message.
_WORD_MARKERS = ("credential", "authentication")


class ErrorKind(StrEnum):
    AUTHENTICATION = "authentication"
    TRANSIENT = "transient"
    UNSUPPORTED_INPUT = "unsupported-input"


@dataclass(frozen=True)
class Classification:
    kind: ErrorKind
    message: str

    @property
    def authentication_failure(self) -> bool:
        return self.kind is ErrorKind.AUTHENTICATION


def error_message(error: BaseException) -> str:
    """Return the error's message, falling back to its type name."""
    return str(error) or type(error).__name__


def is_authentication_error(error: BaseException) -> bool:
    if isinstance(error, GrcAuthError):
        return True
    message = str(error)
    if any(marker in message for marker in _ENV_PREFIX_MARKERS):
        return True
    lowered = message.lower()
    return any(marker in lowered for marker in _WORD_MARKERS)


def classify(error: BaseException) -> Classification:
    """Map an error to its kind and the remediation text shown to operators."""
    if is_authentication_error(error):
        return Classification(kind=ErrorKind.AUTHENTICATION, message=AUTH_REMEDIATION)

    if isinstance(error, (UnsupportedDomainError, ValueError, TypeError)):
        kind = ErrorKind.UNSUPPORTED_INPUT
    else:
        kind = ErrorKind.TRANSIENT
    return Classification(
        kind=kind,
        message=f"Azure evidence collection failed: {error_message(error)}",
    )
