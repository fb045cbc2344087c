"""Compliance scoring hook applied to successful findings."""

from __future__ import annotations

from typing import Protocol

from grc_evidence.evidence import Finding


class CompliancePolicy(Protocol):
    def assess(self, finding: Finding) -> tuple[int, int]:
        """Return ``(compliant, non_compliant)`` resource counts for a finding."""
        ...


class NullCompliancePolicy:
    """Scores nothing: successful findings leave the compliance counters alone."""

    def assess(self, finding: Finding) -> tuple[int, int]:
        return 0, 0
