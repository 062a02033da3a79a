"""Content moderation pipeline: PII detection, classification, redaction and verdicts."""
from .models import (
    Classification,
    ContentType,
    ModerationFlag,
    ModerationPriority,
    ModerationResult,
    ModerationSeverity,
    ModerationStatus,
    PIIDetection,
    PIIType,
    Rect,
    TextFragment,
)
from .services.moderation import ModerationService, SubmissionItem
from .services.queue import ModerationQueue, get_moderation_queue

__all__ = [
    "Classification",
    "ContentType",
    "ModerationFlag",
    "ModerationPriority",
    "ModerationQueue",
    "ModerationResult",
    "ModerationService",
    "ModerationSeverity",
    "ModerationStatus",
    "PIIDetection",
    "PIIType",
    "Rect",
    "SubmissionItem",
    "TextFragment",
    "get_moderation_queue",
]
