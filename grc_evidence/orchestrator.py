"""Evidence collection orchestrator.

Runs the baseline inventory and every requested domain collector against one
subscription, isolates each collector's failure, and assembles a single
EvidenceReport. ``collect`` never raises: a run that cannot authenticate
degrades to a mock report carrying remediation guidance, and every other
failure is recorded on the finding of the domain that hit it.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Sequence
from datetime import datetime, timezone

from grc_evidence.capabilities import CapabilityRegistry, default_registry
from grc_evidence.classifier import REQUIRED_CREDENTIALS, classify, error_message
from grc_evidence.collectors import get_collector
from grc_evidence.collectors.base import BaseCollector
from grc_evidence.config import CollectionSettings
from grc_evidence.evidence import (
    Domain,
    EvidenceReport,
    Finding,
    Summary,
    resolve_domain,
)
from grc_evidence.exceptions import GrcAuthError, UnsupportedDomainError
from grc_evidence.policy import CompliancePolicy, NullCompliancePolicy
from grc_evidence.session import Session, SessionProvider
from grc_evidence.utils.logging import get_logger

logger = get_logger("orchestrator")

SERVICE = "azure"


class EvidenceOrchestrator:
    """Collects one EvidenceReport per call."""

    def __init__(
        self,
        session_provider: SessionProvider,
        capabilities: CapabilityRegistry | None = None,
        settings: CollectionSettings | None = None,
        policy: CompliancePolicy | None = None,
        service: str = SERVICE,
    ) -> None:
        self._session_provider = session_provider
        self._capabilities = capabilities if capabilities is not None else default_registry()
        self._settings = settings or CollectionSettings()
        self._policy = policy or NullCompliancePolicy()
        self._service = service

    async def collect(
        self, subject_id: str, domains: Sequence[str] | None = None
    ) -> EvidenceReport:
        """Collect evidence for ``subject_id``.

        Args:
            subject_id: Azure subscription ID.
            domains: Domain names to collect after the resource-group
                baseline. ``None`` means the configured default set.

        Returns:
            A live report (possibly with per-domain errors) or a mock report.
        """
        try:
            return await self._collect(subject_id, domains)
        except Exception as exc:
            logger.exception("Unexpected failure collecting evidence for %s", subject_id)
            return self._mock_report(subject_id, exc)

    async def _collect(
        self, subject_id: str, domains: Sequence[str] | None
    ) -> EvidenceReport:
        try:
            session = await self._session_provider.create_session(subject_id)
        except Exception as exc:
            return self._mock_report(subject_id, exc)

        try:
            return await self._run(session, domains)
        finally:
            try:
                await session.close()
            except Exception:
                logger.warning("Could not close session for %s", subject_id, exc_info=True)

    async def _run(self, session: Session, domains: Sequence[str] | None) -> EvidenceReport:
        findings: list[Finding] = []
        summary = Summary()

        # Baseline inventory runs alone and always comes first. A credential
        # rejection here means nothing live can be read.
        try:
            baseline = await self._guarded(
                self._build(Domain.RESOURCE_GROUPS).collect(session)
            )
        except GrcAuthError as exc:
            return self._mock_report(session.subject_id, exc)
        except Exception as exc:
            baseline = self._failed(Domain.RESOURCE_GROUPS, exc)
        self._record(baseline, findings, summary)

        requested = self._plan(domains if domains is not None else self._settings.domains)
        results = await asyncio.gather(
            *(self._run_domain(session, name, domain) for name, domain in requested)
        )
        # gather preserves request order whatever the completion order
        for finding in results:
            self._record(finding, findings, summary)

        summary.total_resources = sum(f.count or 0 for f in findings)
        failed = sum(1 for f in findings if not f.ok)
        logger.info(
            "Collected %d findings for %s (%d failed, %d resources)",
            len(findings),
            session.subject_id,
            failed,
            summary.total_resources,
        )
        return EvidenceReport(
            service=self._service,
            subject_id=session.subject_id,
            collected_at=datetime.now(timezone.utc),
            findings=findings,
            summary=summary,
        )

    def _plan(self, names: Sequence[str]) -> list[tuple[str, Domain | None]]:
        """Resolve requested names, dropping repeats and the baseline domain."""
        seen: set[str] = {Domain.RESOURCE_GROUPS.value}
        plan: list[tuple[str, Domain | None]] = []
        for name in names:
            if not isinstance(name, str):
                # not a domain name at all; reported as unsupported
                name = str(name)
                domain = None
                key = name
            else:
                domain = resolve_domain(name)
                key = domain.value if domain else name.strip().lower()
            if key in seen:
                continue
            seen.add(key)
            plan.append((name, domain))
        return plan

    async def _run_domain(self, session: Session, name: str, domain: Domain | None) -> Finding:
        if domain is None:
            error = UnsupportedDomainError(name)
            logger.warning("%s", error)
            return Finding.failed(name, str(error))

        try:
            finding = await self._guarded(self._build(domain).collect(session))
        except Exception as exc:
            return self._failed(domain, exc)

        if finding.collector_mock_mode is not None:
            logger.warning("%s ran in mock mode: %s", domain, finding.collector_mock_mode.reason)
        else:
            logger.info("Collected %s evidence (%s resources)", domain, finding.count)
        return finding

    async def _guarded(self, call: Awaitable[Finding]) -> Finding:
        timeout = self._settings.domain_timeout
        if timeout is None:
            return await call
        try:
            return await asyncio.wait_for(call, timeout)
        except TimeoutError as exc:
            raise TimeoutError(f"Collection timed out after {timeout:g}s") from exc

    def _build(self, domain: Domain) -> BaseCollector:
        collector_cls = get_collector(domain)
        if collector_cls is None:
            raise UnsupportedDomainError(domain)
        return collector_cls(capabilities=self._capabilities, settings=self._settings)

    def _failed(self, domain: Domain, exc: Exception) -> Finding:
        message = error_message(exc)
        logger.warning("Failed to collect %s evidence: %s", domain, message)
        return Finding.failed(domain, message)

    def _record(self, finding: Finding, findings: list[Finding], summary: Summary) -> None:
        findings.append(finding)
        if not finding.ok:
            summary.non_compliant_resources += 1
            return
        try:
            compliant, non_compliant = self._policy.assess(finding)
        except Exception:
            logger.warning(
                "Compliance policy failed on %s evidence; leaving it unscored",
                finding.type,
                exc_info=True,
            )
            return
        summary.compliant_resources += compliant
        summary.non_compliant_resources += non_compliant

    def _mock_report(self, subject_id: str, exc: Exception) -> EvidenceReport:
        classification = classify(exc)
        logger.warning("Azure evidence collection failed: %s", error_message(exc))
        return EvidenceReport.mock(
            service=self._service,
            subject_id=subject_id,
            reason=classification.message,
            required_credentials=(
                REQUIRED_CREDENTIALS if classification.authentication_failure else None
            ),
        )
