"""Tests for the security posture collector."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from grc_evidence.capabilities import SECURITY_CENTER, CapabilityRegistry, PostureSnapshot
from grc_evidence.collectors.security_posture import (
    MISSING_SDK_REASON,
    SecurityPostureCollector,
)
from grc_evidence.config import CollectionSettings
from grc_evidence.evidence import AlertSummary, Recommendation, SecureScore
from grc_evidence.exceptions import CapabilityUnavailableError, GrcCollectionError
from grc_evidence.session import Session


@pytest.fixture
def provider() -> MagicMock:
    provider = MagicMock()
    provider.posture = AsyncMock(
        return_value=PostureSnapshot(
            secure_scores=[SecureScore(name="ascScore", current=42.0, max=58.0, percentage=0.72)],
            recommendations=[
                Recommendation(name=f"rec-{i}", status="Unhealthy", resource_id=f"/r/{i}")
                for i in range(60)
            ],
            alerts=AlertSummary(high=2, medium=1, low=0),
        )
    )
    return provider


@pytest.fixture
def registry(provider: MagicMock) -> CapabilityRegistry:
    registry = CapabilityRegistry()
    registry.register(SECURITY_CENTER, provider)
    return registry


class TestLive:
    @pytest.mark.asyncio
    async def test_recommendations_truncated_but_counted(
        self, session: Session, registry: CapabilityRegistry
    ) -> None:
        finding = await SecurityPostureCollector(capabilities=registry).collect(session)

        assert finding.type == "security-posture"
        assert finding.count is None
        assert finding.collector_mock_mode is None
        assert len(finding.payload.recommendations) == 50
        assert finding.payload.recommendation_count == 60
        assert finding.payload.secure_scores[0].current == 42.0
        assert finding.payload.alerts.high == 2

    @pytest.mark.asyncio
    async def test_custom_limit(self, session: Session, registry: CapabilityRegistry) -> None:
        collector = SecurityPostureCollector(
            capabilities=registry, settings=CollectionSettings(recommendation_limit=5)
        )
        finding = await collector.collect(session)
        assert len(finding.payload.recommendations) == 5
        assert finding.payload.recommendation_count == 60

    @pytest.mark.asyncio
    async def test_provider_error_propagates(
        self, session: Session, registry: CapabilityRegistry, provider: MagicMock
    ) -> None:
        provider.posture.side_effect = GrcCollectionError("Defender API down")
        with pytest.raises(GrcCollectionError):
            await SecurityPostureCollector(capabilities=registry).collect(session)


class TestCollectorMockMode:
    @pytest.mark.asyncio
    async def test_missing_sdk(self, session: Session) -> None:
        finding = await SecurityPostureCollector(capabilities=CapabilityRegistry()).collect(session)

        assert finding.error is None
        assert finding.collector_mock_mode.reason == MISSING_SDK_REASON
        assert "azure-mgmt-security" in finding.collector_mock_mode.reason
        assert finding.payload.recommendations == []
        assert finding.payload.recommendation_count == 0
        assert finding.payload.alerts == AlertSummary()
        assert finding.payload.secure_scores[0].current == 0.0
        assert finding.payload.secure_scores[0].max == 100.0

    @pytest.mark.asyncio
    async def test_unavailable_capability_degrades(self, session: Session) -> None:
        registry = MagicMock(spec=CapabilityRegistry)
        registry.require.side_effect = CapabilityUnavailableError(
            "Optional capability 'security-center' is not installed"
        )

        finding = await SecurityPostureCollector(capabilities=registry).collect(session)

        registry.require.assert_called_once_with(SECURITY_CENTER)
        assert finding.error is None
        assert finding.collector_mock_mode.reason == MISSING_SDK_REASON

    def test_display_name(self) -> None:
        assert SecurityPostureCollector().display_name == "Defender for Cloud"
