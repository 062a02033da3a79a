"""Exception types raised by the moderation pipeline."""


class ModerationError(Exception):
    """Base class for moderation pipeline errors."""


class RecognitionError(ModerationError):
    """Text recognition failed or returned an unusable payload."""


class RulePatternError(ModerationError):
    """A rule-table pattern failed to compile."""

    def __init__(self, family: str, pattern: str, reason: str) -> None:
        super().__init__(f"invalid pattern in {family!r}: {pattern!r} ({reason})")
        self.family = family
        self.pattern = pattern


class ReviewAlreadyRecordedError(ModerationError):
    """A human review was already written for this verdict."""


class QueueItemNotFoundError(ModerationError, LookupError):
    """No stored verdict exists for the requested content id."""
