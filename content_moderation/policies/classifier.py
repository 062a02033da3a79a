"""Keyword-driven text classification for policy violations."""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..models import Classification, ModerationFlag, canonical_flags
from .rules import (
    KEYWORD_RULES_AFTER_SPAM,
    KEYWORD_RULES_BEFORE_SPAM,
    SPAM_MAX_EXCLAMATIONS,
    SPAM_MIN_LENGTH,
    SPAM_MIN_SIGNALS,
    SPAM_MIN_TOKENS,
    SPAM_PROMOTIONAL_PHRASES,
    SPAM_UPPERCASE_RATIO,
    KeywordRule,
    spam_confidence,
)


@runtime_checkable
class TextClassifier(Protocol):
    """Scores text against the moderation flag vocabulary.

    Implementations must return confidence in [0, 1]; a learned model can
    replace the keyword classifier without touching the decision logic.
    """

    def classify(self, text: str) -> Classification:
        ...


def count_spam_signals(text: str) -> int:
    lowered = text.lower()
    signals = [
        len(text) < SPAM_MIN_LENGTH,
        sum(1 for char in text if char.isupper()) > len(text) * SPAM_UPPERCASE_RATIO,
        any(phrase in lowered for phrase in SPAM_PROMOTIONAL_PHRASES),
        text.count("!") > SPAM_MAX_EXCLAMATIONS,
        len(text.split()) < SPAM_MIN_TOKENS,
    ]
    return sum(signals)


def _count_matches(rule: KeywordRule, lowered: str) -> int:
    return sum(1 for pattern in rule.patterns if pattern.search(lowered))


class KeywordTextClassifier:
    """Reference classifier built on the fixed keyword tables.

    Confidence starts at 1.0 and every activated category can only lower it.
    """

    def __init__(
        self,
        *,
        rules_before_spam: tuple[KeywordRule, ...] = KEYWORD_RULES_BEFORE_SPAM,
        rules_after_spam: tuple[KeywordRule, ...] = KEYWORD_RULES_AFTER_SPAM,
    ) -> None:
        self._before = rules_before_spam
        self._after = rules_after_spam

    def classify(self, text: str) -> Classification:
        if not text or not text.strip():
            return Classification()

        lowered = text.lower()
        flags: list[ModerationFlag] = []
        confidence = 1.0

        for rule in self._before:
            confidence = self._apply(rule, lowered, flags, confidence)

        signals = count_spam_signals(text)
        if signals >= SPAM_MIN_SIGNALS:
            flags.append(ModerationFlag.SPAM)
            confidence = min(confidence, spam_confidence(signals))

        for rule in self._after:
            confidence = self._apply(rule, lowered, flags, confidence)

        return Classification(flags=canonical_flags(flags), confidence=confidence)

    @staticmethod
    def _apply(rule: KeywordRule, lowered: str, flags: list[ModerationFlag], confidence: float) -> float:
        matches = _count_matches(rule, lowered)
        if matches < rule.min_matches:
            return confidence
        flags.append(rule.flag)
        return min(confidence, rule.confidence_for(matches))
