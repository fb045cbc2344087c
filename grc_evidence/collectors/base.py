"""Abstract base class for all evidence collectors."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from grc_evidence.capabilities import CapabilityRegistry
from grc_evidence.config import CollectionSettings
from grc_evidence.evidence import Domain, Finding, ResourceDescriptor
from grc_evidence.session import Session


class BaseCollector(ABC):
    """Base class for all evidence collectors.

    A collector produces exactly one Finding for its domain. Anticipated
    degraded states (a missing optional SDK) are reported inside the
    Finding; anything else is raised for the orchestrator to isolate.
    """

    def __init__(
        self,
        capabilities: CapabilityRegistry | None = None,
        settings: CollectionSettings | None = None,
    ) -> None:
        self._capabilities = capabilities or CapabilityRegistry()
        self._settings = settings or CollectionSettings()

    @property
    @abstractmethod
    def domain(self) -> Domain:
        """Evidence domain this collector covers."""
        ...

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Human-readable name for CLI output."""
        ...

    @abstractmethod
    async def collect(self, session: Session) -> Finding:
        """Collect evidence for this domain.

        Raises:
            GrcCollectionError: If the API call fails.
            GrcAuthError: If the credentials are rejected.
        """
        ...


async def drain(listing: AsyncIterator[ResourceDescriptor]) -> list[ResourceDescriptor]:
    """Materialise a lazy listing."""
    return [resource async for resource in listing]
