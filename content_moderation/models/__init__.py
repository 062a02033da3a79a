"""Domain models for the content moderation pipeline."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Iterable, Sequence

from ..core.errors import ReviewAlreadyRecordedError


class PIIType(StrEnum):
    PHONE_NUMBER = "phone_number"
    EMAIL = "email"
    SOCIAL_MEDIA = "social_media"
    NAME = "name"
    ADDRESS = "address"
    CREDIT_CARD = "credit_card"
    SSN = "ssn"

    @property
    def description(self) -> str:
        return _PII_DESCRIPTIONS[self]


_PII_DESCRIPTIONS = {
    PIIType.PHONE_NUMBER: "Phone Number",
    PIIType.EMAIL: "Email Address",
    PIIType.SOCIAL_MEDIA: "Social Media Handle",
    PIIType.NAME: "Name",
    PIIType.ADDRESS: "Address",
    PIIType.CREDIT_CARD: "Credit Card",
    PIIType.SSN: "Social Security Number",
}


class ModerationSeverity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANKS[self]

    @property
    def auto_action_threshold(self) -> float:
        """Confidence at or above which the pipeline acts without a human."""
        return _AUTO_ACTION_THRESHOLDS[self]


_SEVERITY_RANKS = {
    ModerationSeverity.LOW: 0,
    ModerationSeverity.MEDIUM: 1,
    ModerationSeverity.HIGH: 2,
    ModerationSeverity.CRITICAL: 3,
}

_AUTO_ACTION_THRESHOLDS = {
    ModerationSeverity.LOW: 0.9,
    ModerationSeverity.MEDIUM: 0.8,
    ModerationSeverity.HIGH: 0.7,
    ModerationSeverity.CRITICAL: 0.6,
}


class ModerationFlag(StrEnum):
    INAPPROPRIATE_CONTENT = "inappropriate_content"
    HARASSMENT = "harassment"
    SPAM = "spam"
    HATE_SPEECH = "hate_speech"
    SEXUAL_CONTENT = "sexual_content"
    VIOLENT_CONTENT = "violent_content"
    MISINFORMATION = "misinformation"

    @property
    def description(self) -> str:
        return _FLAG_DESCRIPTIONS[self]

    @property
    def severity(self) -> ModerationSeverity:
        return _FLAG_SEVERITIES[self]

    @property
    def auto_action_threshold(self) -> float:
        return self.severity.auto_action_threshold


_FLAG_DESCRIPTIONS = {
    ModerationFlag.INAPPROPRIATE_CONTENT: "Inappropriate Content",
    ModerationFlag.HARASSMENT: "Harassment",
    ModerationFlag.SPAM: "Spam",
    ModerationFlag.HATE_SPEECH: "Hate Speech",
    ModerationFlag.SEXUAL_CONTENT: "Sexual Content",
    ModerationFlag.VIOLENT_CONTENT: "Violent Content",
    ModerationFlag.MISINFORMATION: "Misinformation",
}

_FLAG_SEVERITIES = {
    ModerationFlag.INAPPROPRIATE_CONTENT: ModerationSeverity.MEDIUM,
    ModerationFlag.HARASSMENT: ModerationSeverity.HIGH,
    ModerationFlag.SPAM: ModerationSeverity.LOW,
    ModerationFlag.HATE_SPEECH: ModerationSeverity.HIGH,
    ModerationFlag.SEXUAL_CONTENT: ModerationSeverity.MEDIUM,
    ModerationFlag.VIOLENT_CONTENT: ModerationSeverity.HIGH,
    ModerationFlag.MISINFORMATION: ModerationSeverity.MEDIUM,
}


def canonical_flags(flags: Iterable[ModerationFlag]) -> tuple[ModerationFlag, ...]:
    """Deduplicate ``flags`` and order them by declaration order."""
    present = set(flags)
    return tuple(flag for flag in ModerationFlag if flag in present)


class ModerationStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    FLAGGED = "flagged"


class ContentType(StrEnum):
    POST = "post"
    REVIEW = "review"
    IMAGE = "image"
    COMMENT = "comment"


class ModerationPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def sort_order(self) -> int:
        return {"critical": 0, "high": 1, "medium": 2, "low": 3}[self.value]


@dataclass(frozen=True, slots=True)
class Rect:
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def scaled(self, width: float, height: float) -> "Rect":
        """Map a normalised rect onto an image of ``width`` x ``height`` pixels."""
        return Rect(
            x=self.x * width,
            y=self.y * height,
            width=self.width * width,
            height=self.height * height,
        )

    def to_dict(self) -> dict[str, float]:
        return {
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
        }


EMPTY_RECT = Rect()


@dataclass(frozen=True, slots=True)
class PIIDetection:
    type: PIIType
    confidence: float
    text: str
    location: Rect = EMPTY_RECT

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence out of range: {self.confidence}")


@dataclass(frozen=True, slots=True)
class TextFragment:
    """A line of text recognised in an image, with a normalised top-left box."""

    text: str
    box: Rect
    confidence: float


@dataclass(frozen=True, slots=True)
class Classification:
    flags: tuple[ModerationFlag, ...] = ()
    confidence: float = 1.0


@dataclass(frozen=True, slots=True)
class ModerationResult:
    content_id: str
    content_type: ContentType
    status: ModerationStatus
    flags: tuple[ModerationFlag, ...]
    confidence: float
    severity: ModerationSeverity
    reason: str | None
    detected_pii: Sequence[PIIDetection] = ()
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    reviewed_at: datetime | None = None
    reviewed_by: str | None = None
    notes: str | None = None

    @property
    def is_reviewed(self) -> bool:
        return self.reviewed_at is not None

    @property
    def requires_human_review(self) -> bool:
        if self.confidence < self.severity.auto_action_threshold:
            return True
        return any(
            flag.severity in (ModerationSeverity.HIGH, ModerationSeverity.CRITICAL)
            for flag in self.flags
        )

    def with_review(
        self,
        *,
        reviewed_by: str,
        notes: str | None = None,
        reviewed_at: datetime | None = None,
    ) -> "ModerationResult":
        """Return a copy carrying the moderator's review; ``status`` is left untouched."""
        if self.is_reviewed:
            raise ReviewAlreadyRecordedError(f"review already recorded for {self.content_id}")
        return replace(
            self,
            reviewed_at=reviewed_at or datetime.now(timezone.utc),
            reviewed_by=reviewed_by,
            notes=notes,
        )

    def summary(self) -> dict[str, Any]:
        """Log-safe view of the verdict; matched PII text is left out."""
        return {
            "content_id": self.content_id,
            "content_type": str(self.content_type),
            "status": str(self.status),
            "flags": [str(flag) for flag in self.flags],
            "confidence": round(self.confidence, 4),
            "severity": str(self.severity),
            "pii_count": len(self.detected_pii),
        }
