"""Decision policy turning scored evidence into a moderation status."""
from __future__ import annotations

from typing import Sequence

from ..models import ModerationFlag, ModerationSeverity, ModerationStatus

MULTIPLE_VIOLATIONS_PREFIX = "Multiple policy violations detected: "


def determine_severity(flags: Sequence[ModerationFlag]) -> ModerationSeverity:
    if not flags:
        return ModerationSeverity.LOW
    return max((flag.severity for flag in flags), key=lambda severity: severity.rank)


def decide(confidence: float, severity: ModerationSeverity, pii_count: int) -> ModerationStatus:
    """Map evidence onto a status.

    Any detected PII sends the content to human review regardless of the
    classifier; otherwise confident verdicts act automatically by severity and
    uncertain ones stay pending.
    """
    if pii_count > 0:
        return ModerationStatus.FLAGGED
    if confidence >= severity.auto_action_threshold:
        if severity in (ModerationSeverity.CRITICAL, ModerationSeverity.HIGH):
            return ModerationStatus.REJECTED
        if severity == ModerationSeverity.MEDIUM:
            return ModerationStatus.FLAGGED
        return ModerationStatus.APPROVED
    return ModerationStatus.PENDING


def generate_reason(flags: Sequence[ModerationFlag]) -> str | None:
    if not flags:
        return None
    if len(flags) == 1:
        return flags[0].description
    return MULTIPLE_VIOLATIONS_PREFIX + ", ".join(flag.description for flag in flags)
