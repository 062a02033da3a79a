"""Pydantic schemas for moderation verdicts handed to the queue layer."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator
from pydantic.config import ConfigDict

from ..models import (
    ContentType,
    ModerationFlag,
    ModerationPriority,
    ModerationResult,
    ModerationSeverity,
    ModerationStatus,
    PIIDetection,
    PIIType,
    Rect,
)


class RectSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    def to_domain(self) -> Rect:
        return Rect(x=self.x, y=self.y, width=self.width, height=self.height)


class PIIDetectionSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    type: PIIType
    location: RectSchema = Field(default_factory=RectSchema)
    confidence: float = Field(ge=0.0, le=1.0)
    text: str

    def to_domain(self) -> PIIDetection:
        return PIIDetection(
            type=self.type,
            location=self.location.to_domain(),
            confidence=self.confidence,
            text=self.text,
        )


class ModerationResultSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    content_id: str
    content_type: ContentType
    status: ModerationStatus
    flags: list[ModerationFlag]
    confidence: float = Field(ge=0.0, le=1.0)
    severity: ModerationSeverity
    reason: str | None
    detected_pii: list[PIIDetectionSchema]
    created_at: datetime
    reviewed_at: datetime | None = None
    reviewed_by: str | None = None
    notes: str | None = Field(default=None, max_length=2000)

    @field_validator("flags")
    @classmethod
    def ensure_unique(cls, value: list[ModerationFlag]) -> list[ModerationFlag]:
        if len(set(value)) != len(value):
            raise ValueError("flags must be unique")
        return value

    def to_domain(self) -> ModerationResult:
        return ModerationResult(
            content_id=self.content_id,
            content_type=self.content_type,
            status=self.status,
            flags=tuple(self.flags),
            confidence=self.confidence,
            severity=self.severity,
            reason=self.reason,
            detected_pii=tuple(item.to_domain() for item in self.detected_pii),
            created_at=self.created_at,
            reviewed_at=self.reviewed_at,
            reviewed_by=self.reviewed_by,
            notes=self.notes,
        )


class QueueItemSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    content_id: str
    priority: ModerationPriority
    report_count: int = Field(default=0, ge=0)
    author_id: str | None = None
    queued: bool = True
    enqueued_at: datetime
    result: ModerationResultSchema
