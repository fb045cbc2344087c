"""Network inventory: virtual networks, NSGs and public IPs."""

from __future__ import annotations

from grc_evidence.collectors import register_collector
from grc_evidence.collectors.base import BaseCollector, drain
from grc_evidence.evidence import Domain, Finding, NetworkPayload, ResourceDescriptor
from grc_evidence.session import Session

VIRTUAL_NETWORK_TYPE = "Microsoft.Network/virtualNetworks"
NSG_TYPE = "Microsoft.Network/networkSecurityGroups"
PUBLIC_IP_TYPE = "Microsoft.Network/publicIPAddresses"

_COMPLIANCE_NOTE = (
    "Detailed network compliance checks require examining NSG rules, VNet peering, etc."
)


def _strip(resources: list[ResourceDescriptor]) -> list[ResourceDescriptor]:
    # Only identity and placement are kept for network resources
    return [ResourceDescriptor(name=r.name, location=r.location, id=r.id) for r in resources]


@register_collector
class NetworkCollector(BaseCollector):
    @property
    def domain(self) -> Domain:
        return Domain.NETWORK

    @property
    def display_name(self) -> str:
        return "Network"

    async def collect(self, session: Session) -> Finding:
        lister = session.lister
        vnets = _strip(await drain(lister.list_resources(VIRTUAL_NETWORK_TYPE)))
        nsgs = _strip(await drain(lister.list_resources(NSG_TYPE)))
        public_ips = _strip(await drain(lister.list_resources(PUBLIC_IP_TYPE)))

        return Finding(
            type=self.domain,
            count=len(vnets) + len(nsgs) + len(public_ips),
            payload=NetworkPayload(
                virtual_networks=vnets,
                network_security_groups=nsgs,
                public_ip_addresses=public_ips,
                compliance_note=_COMPLIANCE_NOTE,
            ),
        )
