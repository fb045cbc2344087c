"""Storage account inventory."""

from __future__ import annotations

from grc_evidence.collectors import register_collector
from grc_evidence.collectors.base import BaseCollector, drain
from grc_evidence.evidence import Domain, Finding, StoragePayload
from grc_evidence.session import Session

STORAGE_ACCOUNT_TYPE = "Microsoft.Storage/storageAccounts"

_COMPLIANCE_NOTE = "Detailed storage compliance checks require the azure-mgmt-storage SDK"


@register_collector
class StorageCollector(BaseCollector):
    @property
    def domain(self) -> Domain:
        return Domain.STORAGE

    @property
    def display_name(self) -> str:
        return "Storage Accounts"

    async def collect(self, session: Session) -> Finding:
        accounts = await drain(session.lister.list_resources(STORAGE_ACCOUNT_TYPE))
        return Finding(
            type=self.domain,
            count=len(accounts),
            payload=StoragePayload(accounts=accounts, compliance_note=_COMPLIANCE_NOTE),
        )
