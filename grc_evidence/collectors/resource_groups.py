"""Baseline inventory: the subscription's resource groups."""

from __future__ import annotations

from grc_evidence.collectors import register_collector
from grc_evidence.collectors.base import BaseCollector, drain
from grc_evidence.evidence import Domain, Finding, ResourceGroupsPayload
from grc_evidence.session import Session
from grc_evidence.utils.logging import get_logger

logger = get_logger("collectors.resource_groups")


@register_collector
class ResourceGroupsCollector(BaseCollector):
    @property
    def domain(self) -> Domain:
        return Domain.RESOURCE_GROUPS

    @property
    def display_name(self) -> str:
        return "Resource Groups"

    async def collect(self, session: Session) -> Finding:
        groups = await drain(session.lister.list_resource_groups())
        logger.info("Listed %d resource groups in %s", len(groups), session.subject_id)
        return Finding(
            type=self.domain,
            count=len(groups),
            payload=ResourceGroupsPayload(groups=groups),
        )
