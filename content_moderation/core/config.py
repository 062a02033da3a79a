"""Configuration for the content moderation pipeline."""
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ModerationSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="MODERATION_", env_file=".env", env_file_encoding="utf-8"
    )

    ocr_timeout_seconds: float = Field(
        default=5.0, gt=0, description="Per-call timeout for text recognition"
    )
    ocr_service_url: str | None = Field(
        default=None, description="Base URL of a remote OCR service"
    )
    tesseract_cmd: str | None = Field(
        default=None, description="Path to the tesseract binary when not on PATH"
    )
    ocr_min_confidence: float = Field(
        default=0.0, ge=0.0, le=1.0, description="Drop OCR fragments below this confidence"
    )
    max_concurrency: int = Field(
        default=5, ge=1, description="Concurrent submissions in batch moderation"
    )
    redaction_fill_opacity: float = Field(
        default=0.8, ge=0.8, le=1.0, description="Opacity of the redaction fill"
    )
    redaction_max_font_size: int = Field(
        default=16, ge=1, description="Upper bound for the redaction label font size"
    )
    redaction_label: str = Field(default="REDACTED", description="Label drawn over redacted regions")
    redis_url: str | None = Field(
        default=None, description="Redis URI for the moderation queue (in-memory when unset)"
    )
    queue_key_prefix: str = Field(default="moderation", description="Key prefix for queue storage")


@lru_cache()
def get_settings() -> ModerationSettings:
    """Return a cached settings instance."""
    return ModerationSettings()
