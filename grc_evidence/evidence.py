"""Evidence report, finding, and per-domain payload types."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any


class Domain(StrEnum):
    RESOURCE_GROUPS = "resource-groups"
    SECURITY_POSTURE = "security-posture"
    KEY_MANAGEMENT = "key-management"
    NETWORK = "network"
    STORAGE = "storage"


# Resource groups are the unconditional baseline, so they never appear here.
DEFAULT_DOMAINS: tuple[Domain, ...] = (
    Domain.SECURITY_POSTURE,
    Domain.KEY_MANAGEMENT,
    Domain.NETWORK,
    Domain.STORAGE,
)

DOMAIN_ALIASES: dict[str, Domain] = {
    "resource_groups": Domain.RESOURCE_GROUPS,
    "security-center": Domain.SECURITY_POSTURE,
    "security_center": Domain.SECURITY_POSTURE,
    "key-vault": Domain.KEY_MANAGEMENT,
    "key_vault": Domain.KEY_MANAGEMENT,
}


def resolve_domain(name: str) -> Domain | None:
    """Map a caller-supplied domain name (or legacy alias) to a Domain."""
    key = name.strip().lower()
    if key in DOMAIN_ALIASES:
        return DOMAIN_ALIASES[key]
    try:
        return Domain(key)
    except ValueError:
        return None


@dataclass(frozen=True)
class ResourceDescriptor:
    """One listed cloud resource."""

    name: str
    location: str | None = None
    id: str | None = None
    tags: dict[str, str] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)


# -- Domain payloads --


@dataclass
class ResourceGroupsPayload:
    groups: list[ResourceDescriptor] = field(default_factory=list)


@dataclass
class SecureScore:
    name: str
    current: float = 0.0
    max: float = 0.0
    percentage: float = 0.0


@dataclass
class Recommendation:
    name: str
    status: str | None = None
    resource_id: str | None = None


@dataclass
class AlertSummary:
    high: int = 0
    medium: int = 0
    low: int = 0


@dataclass
class SecurityPosturePayload:
    secure_scores: list[SecureScore] = field(default_factory=list)
    recommendations: list[Recommendation] = field(default_factory=list)
    recommendation_count: int = 0
    alerts: AlertSummary = field(default_factory=AlertSummary)


@dataclass
class KeyManagementPayload:
    vaults: list[ResourceDescriptor] = field(default_factory=list)
    compliance_note: str = ""


@dataclass
class NetworkPayload:
    virtual_networks: list[ResourceDescriptor] = field(default_factory=list)
    network_security_groups: list[ResourceDescriptor] = field(default_factory=list)
    public_ip_addresses: list[ResourceDescriptor] = field(default_factory=list)
    compliance_note: str = ""


@dataclass
class StoragePayload:
    accounts: list[ResourceDescriptor] = field(default_factory=list)
    compliance_note: str = ""


Payload = (
    ResourceGroupsPayload
    | SecurityPosturePayload
    | KeyManagementPayload
    | NetworkPayload
    | StoragePayload
)


# -- Findings and reports --


@dataclass(frozen=True)
class CollectorMockMode:
    """A single domain could not reach live data (optional capability missing)."""

    reason: str


@dataclass
class Finding:
    """One domain's contribution to an evidence report."""

    type: str
    count: int | None = None
    payload: Payload | None = None
    error: str | None = None
    collector_mock_mode: CollectorMockMode | None = None

    def __post_init__(self) -> None:
        if self.error is not None and self.payload is not None:
            raise ValueError("A finding carries either an error or a payload, not both")

    @classmethod
    def failed(cls, finding_type: str, message: str) -> Finding:
        """Build an error-only finding."""
        return cls(type=finding_type, error=message)

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type}
        if self.count is not None:
            data["count"] = self.count
        if self.payload is not None:
            data["payload"] = asdict(self.payload)
        if self.error is not None:
            data["error"] = self.error
        if self.collector_mock_mode is not None:
            data["collector_mock_mode"] = {"reason": self.collector_mock_mode.reason}
        return data


@dataclass
class Summary:
    total_resources: int = 0
    compliant_resources: int = 0
    non_compliant_resources: int = 0


@dataclass(frozen=True)
class MockMode:
    """Whole-run degraded state, with remediation for the operator."""

    reason: str
    required_credentials: tuple[str, ...] | None = None


@dataclass
class EvidenceReport:
    """Result of one collection run.

    A report is either live (``mock_mode`` is None) or mock, in which case
    ``findings`` is empty and every summary count is zero.
    """

    service: str
    subject_id: str
    collected_at: datetime
    findings: list[Finding] = field(default_factory=list)
    summary: Summary = field(default_factory=Summary)
    mock_mode: MockMode | None = None

    @classmethod
    def mock(
        cls,
        service: str,
        subject_id: str,
        reason: str,
        required_credentials: tuple[str, ...] | None = None,
    ) -> EvidenceReport:
        return cls(
            service=service,
            subject_id=subject_id,
            collected_at=datetime.now(timezone.utc),
            mock_mode=MockMode(reason=reason, required_credentials=required_credentials),
        )

    @property
    def is_mock(self) -> bool:
        return self.mock_mode is not None

    def to_dict(self) -> dict[str, Any]:
        """Render as a JSON-ready mapping with a stable key order."""
        data: dict[str, Any] = {
            "service": self.service,
            "collected_at": self.collected_at.isoformat(),
            "subject_id": self.subject_id,
            "findings": [f.to_dict() for f in self.findings],
            "summary": asdict(self.summary),
        }
        if self.mock_mode is not None:
            mock: dict[str, Any] = {"reason": self.mock_mode.reason}
            if self.mock_mode.required_credentials is not None:
                mock["required_credentials"] = list(self.mock_mode.required_credentials)
            data["mock_mode"] = mock
        return data
