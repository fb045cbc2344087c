"""Registry of optional capabilities (SDK extras) resolved once at startup."""

from __future__ import annotations

import asyncio
import importlib.util
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from grc_evidence.evidence import AlertSummary, Recommendation, SecureScore
from grc_evidence.exceptions import CapabilityUnavailableError
from grc_evidence.utils.logging import get_logger

if TYPE_CHECKING:
    from grc_evidence.session import Session

logger = get_logger("capabilities")

SECURITY_CENTER = "security-center"
SECURITY_CENTER_PACKAGE = "azure-mgmt-security"


class SecurityPostureProvider(Protocol):
    """Reads Defender for Cloud posture data for a session's subscription."""

    async def posture(self, session: Session) -> PostureSnapshot: ...


@dataclass
class PostureSnapshot:
    """Everything read from Defender for Cloud in one pass."""

    secure_scores: list[SecureScore] = field(default_factory=list)
    recommendations: list[Recommendation] = field(default_factory=list)
    alerts: AlertSummary = field(default_factory=AlertSummary)


class CapabilityRegistry:
    """Explicit name -> provider map; absence of a name is a normal state."""

    def __init__(self) -> None:
        self._providers: dict[str, Any] = {}

    def register(self, name: str, provider: Any) -> None:
        self._providers[name] = provider

    def get(self, name: str) -> Any | None:
        return self._providers.get(name)

    def is_available(self, name: str) -> bool:
        return name in self._providers

    def require(self, name: str) -> Any:
        """Return the provider or raise CapabilityUnavailableError."""
        provider = self._providers.get(name)
        if provider is None:
            raise CapabilityUnavailableError(f"Optional capability '{name}' is not installed")
        return provider

    def names(self) -> list[str]:
        return sorted(self._providers)


class AzureSecurityCenterProvider:
    """Security posture via the azure-mgmt-security SDK.

    The SDK is synchronous, so the whole read runs in a worker thread on one
    client that is closed afterwards.
    """

    def _client(self, session: Session) -> Any:
        from azure.mgmt.security import SecurityCenter

        return SecurityCenter(session.credential, session.subject_id)

    async def posture(self, session: Session) -> PostureSnapshot:
        scope = f"/subscriptions/{session.subject_id}"

        def _read() -> PostureSnapshot:
            with self._client(session) as client:
                return PostureSnapshot(
                    secure_scores=_secure_scores(client),
                    recommendations=_recommendations(client, scope),
                    alerts=_alerts(client),
                )

        return await asyncio.to_thread(_read)


def _secure_scores(client: Any) -> list[SecureScore]:
    return [
        SecureScore(
            name=score.display_name or score.name or "",
            current=float(score.current or 0),
            max=float(score.max or 0),
            percentage=float(score.percentage or 0),
        )
        for score in client.secure_scores.list()
    ]


def _recommendations(client: Any, scope: str) -> list[Recommendation]:
    recs: list[Recommendation] = []
    for assessment in client.assessments.list(scope=scope):
        details = assessment.resource_details
        recs.append(
            Recommendation(
                name=assessment.display_name or assessment.name or "",
                status=assessment.status.code if assessment.status else None,
                resource_id=getattr(details, "source", None) if details else None,
            )
        )
    return recs


def _alerts(client: Any) -> AlertSummary:
    summary = AlertSummary()
    for alert in client.alerts.list():
        severity = (alert.severity or "low").lower()
        if severity == "high":
            summary.high += 1
        elif severity == "medium":
            summary.medium += 1
        elif severity == "low":
            summary.low += 1
    return summary


def _module_available(module: str) -> bool:
    try:
        return importlib.util.find_spec(module) is not None
    except ModuleNotFoundError:
        # parent package (e.g. azure.mgmt) missing entirely
        return False


def default_registry() -> CapabilityRegistry:
    """Resolve the installed optional capabilities."""
    registry = CapabilityRegistry()
    if _module_available("azure.mgmt.security"):
        registry.register(SECURITY_CENTER, AzureSecurityCenterProvider())
        logger.debug("Registered optional capability %s", SECURITY_CENTER)
    else:
        logger.info(
            "%s not installed; security posture will run in mock mode",
            SECURITY_CENTER_PACKAGE,
        )
    return registry
