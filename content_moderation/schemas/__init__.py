from .moderation import ModerationResultSchema, PIIDetectionSchema, QueueItemSchema, RectSchema

__all__ = ["ModerationResultSchema", "PIIDetectionSchema", "QueueItemSchema", "RectSchema"]
