"""Key Vault inventory."""

from __future__ import annotations

from grc_evidence.collectors import register_collector
from grc_evidence.collectors.base import BaseCollector, drain
from grc_evidence.evidence import Domain, Finding, KeyManagementPayload
from grc_evidence.session import Session

KEY_VAULT_TYPE = "Microsoft.KeyVault/vaults"

# Soft delete, purge protection, network rules and access policies need
# per-vault data-plane reads that this inventory does not perform.
_COMPLIANCE_NOTE = "Detailed Key Vault compliance checks require additional API calls"


@register_collector
class KeyManagementCollector(BaseCollector):
    @property
    def domain(self) -> Domain:
        return Domain.KEY_MANAGEMENT

    @property
    def display_name(self) -> str:
        return "Key Vault"

    async def collect(self, session: Session) -> Finding:
        vaults = await drain(session.lister.list_resources(KEY_VAULT_TYPE))
        return Finding(
            type=self.domain,
            count=len(vaults),
            payload=KeyManagementPayload(vaults=vaults, compliance_note=_COMPLIANCE_NOTE),
        )
