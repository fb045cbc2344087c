"""Microsoft Defender for Cloud posture: secure score, recommendations, alerts."""

from __future__ import annotations

from grc_evidence.capabilities import (
    SECURITY_CENTER,
    SECURITY_CENTER_PACKAGE,
    SecurityPostureProvider,
)
from grc_evidence.collectors import register_collector
from grc_evidence.collectors.base import BaseCollector
from grc_evidence.evidence import (
    CollectorMockMode,
    Domain,
    Finding,
    SecureScore,
    SecurityPosturePayload,
)
from grc_evidence.exceptions import CapabilityUnavailableError
from grc_evidence.session import Session
from grc_evidence.utils.logging import get_logger

logger = get_logger("collectors.security_posture")

MISSING_SDK_REASON = (
    f"Install the {SECURITY_CENTER_PACKAGE} package "
    "(pip install 'grc-evidence[security]') for actual Security Center data"
)


@register_collector
class SecurityPostureCollector(BaseCollector):
    @property
    def domain(self) -> Domain:
        return Domain.SECURITY_POSTURE

    @property
    def display_name(self) -> str:
        return "Defender for Cloud"

    async def collect(self, session: Session) -> Finding:
        try:
            provider: SecurityPostureProvider = self._capabilities.require(SECURITY_CENTER)
        except CapabilityUnavailableError as exc:
            logger.warning("Security posture collection: %s", exc)
            return self._mock_finding()

        snapshot = await provider.posture(session)
        recommendations = snapshot.recommendations

        limit = self._settings.recommendation_limit
        return Finding(
            type=self.domain,
            payload=SecurityPosturePayload(
                secure_scores=snapshot.secure_scores,
                recommendations=recommendations[:limit],  # Cap to bound report size
                recommendation_count=len(recommendations),
                alerts=snapshot.alerts,
            ),
        )

    def _mock_finding(self) -> Finding:
        return Finding(
            type=self.domain,
            payload=SecurityPosturePayload(
                secure_scores=[SecureScore(name="placeholder", current=0.0, max=100.0)],
            ),
            collector_mock_mode=CollectorMockMode(reason=MISSING_SDK_REASON),
        )
