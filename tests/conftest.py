"""Shared test fixtures for grc-evidence."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import pytest

from grc_evidence.capabilities import CapabilityRegistry
from grc_evidence.config import CollectionSettings
from grc_evidence.evidence import ResourceDescriptor
from grc_evidence.orchestrator import EvidenceOrchestrator
from grc_evidence.session import Session

KEY_VAULT = "Microsoft.KeyVault/vaults"
VNET = "Microsoft.Network/virtualNetworks"
NSG = "Microsoft.Network/networkSecurityGroups"
PUBLIC_IP = "Microsoft.Network/publicIPAddresses"
STORAGE = "Microsoft.Storage/storageAccounts"
RESOURCE_GROUPS = "resourcegroups"


class FakeLister:
    """In-memory ResourceLister with optional per-type delays and failures."""

    def __init__(
        self,
        resources: dict[str, list[ResourceDescriptor]] | None = None,
        groups: list[ResourceDescriptor] | None = None,
        failures: dict[str, Exception] | None = None,
        delays: dict[str, float] | None = None,
    ) -> None:
        self.resources = resources or {}
        self.groups = groups or []
        self.failures = failures or {}
        self.delays = delays or {}
        self.calls: list[str] = []
        self.completed: list[str] = []
        self.closed = False

    async def _emit(self, key: str, items: list[ResourceDescriptor]) -> AsyncIterator[ResourceDescriptor]:
        self.calls.append(key)
        if key in self.delays:
            await asyncio.sleep(self.delays[key])
        if key in self.failures:
            raise self.failures[key]
        for item in items:
            yield item
        self.completed.append(key)

    def list_resources(self, resource_type: str) -> AsyncIterator[ResourceDescriptor]:
        return self._emit(resource_type, self.resources.get(resource_type, []))

    def list_resource_groups(self) -> AsyncIterator[ResourceDescriptor]:
        return self._emit(RESOURCE_GROUPS, self.groups)

    async def close(self) -> None:
        self.closed = True


class FakeSessionProvider:
    def __init__(self, lister: FakeLister | None = None, error: Exception | None = None) -> None:
        self.lister = lister or FakeLister()
        self.error = error
        self.requested: list[str] = []

    async def create_session(self, subject_id: str) -> Session:
        self.requested.append(subject_id)
        if self.error is not None:
            raise self.error
        return Session(subject_id=subject_id, lister=self.lister)


def resources(prefix: str, n: int, **extra: object) -> list[ResourceDescriptor]:
    return [
        ResourceDescriptor(
            name=f"{prefix}-{i}",
            location="westeurope",
            id=f"/subscriptions/sub-123/resourceGroups/rg/providers/x/{prefix}-{i}",
            extra=dict(extra),
        )
        for i in range(n)
    ]


@pytest.fixture
def lister() -> FakeLister:
    return FakeLister(
        groups=resources("rg", 2),
        resources={
            KEY_VAULT: resources("kv", 3, sku={"name": "standard"}),
            VNET: resources("vnet", 1),
            NSG: resources("nsg", 2),
            PUBLIC_IP: resources("pip", 1),
            STORAGE: resources("st", 4, kind="StorageV2"),
        },
    )


@pytest.fixture
def session(lister: FakeLister) -> Session:
    return Session(subject_id="sub-123", lister=lister)


@pytest.fixture
def empty_registry() -> CapabilityRegistry:
    return CapabilityRegistry()


@pytest.fixture
def make_orchestrator(empty_registry: CapabilityRegistry):
    def _make(
        provider: FakeSessionProvider,
        settings: CollectionSettings | None = None,
        capabilities: CapabilityRegistry | None = None,
        policy: object | None = None,
    ) -> EvidenceOrchestrator:
        return EvidenceOrchestrator(
            provider,
            capabilities=capabilities if capabilities is not None else empty_registry,
            settings=settings,
            policy=policy,  # type: ignore[arg-type]
        )

    return _make
