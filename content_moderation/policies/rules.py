"""Rule tables for PII detection and text classification.

All confidence constants, keyword lists and regular expressions used by the
pipeline live here. Patterns are compiled once at import; a malformed pattern
raises :class:`RulePatternError` immediately instead of failing per call.
"""
from __future__ import annotations

import re
from dataclasses import dataclass

from ..core.errors import RulePatternError
from ..models import ModerationFlag, PIIType


def _compile(family: str, patterns: list[str], flags: int = 0) -> tuple[re.Pattern[str], ...]:
    compiled: list[re.Pattern[str]] = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern, flags))
        except re.error as exc:
            raise RulePatternError(family, pattern, str(exc)) from exc
    return tuple(compiled)


# ---------------------------------------------------------------------------
# PII families
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PIIFamily:
    type: PIIType
    confidence: float
    patterns: tuple[re.Pattern[str], ...]
    dedupe_spans: bool = False


PHONE_CONFIDENCE = 0.90
EMAIL_CONFIDENCE = 0.95
SOCIAL_MEDIA_CONFIDENCE = 0.85
NAME_CONFIDENCE = 0.70
ADDRESS_CONFIDENCE = 0.80
CREDIT_CARD_CONFIDENCE = 0.90
SSN_CONFIDENCE = 0.95

SOCIAL_PLATFORMS = ("instagram", "twitter", "facebook", "snapchat", "tiktok")

PHONE_FAMILY = PIIFamily(
    type=PIIType.PHONE_NUMBER,
    confidence=PHONE_CONFIDENCE,
    patterns=_compile(
        "phone",
        [
            r"\b\d{3}-\d{3}-\d{4}\b",
            r"\b\d{3}\.\d{3}\.\d{4}\b",
            r"\(\d{3}\)\s?\d{3}[-.\s]?\d{4}\b",
            r"\+1[-.\s]?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}\b",
        ],
    ),
    dedupe_spans=True,
)

EMAIL_FAMILY = PIIFamily(
    type=PIIType.EMAIL,
    confidence=EMAIL_CONFIDENCE,
    patterns=_compile("email", [r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"]),
)

SOCIAL_MEDIA_FAMILY = PIIFamily(
    type=PIIType.SOCIAL_MEDIA,
    confidence=SOCIAL_MEDIA_CONFIDENCE,
    patterns=_compile(
        "social_media",
        [
            r"(?<![\w.%+\-/@])@[a-z0-9_](?:[a-z0-9_.]{0,28}[a-z0-9_])?\b",
            r"\b(?:www\.)?(?:" + "|".join(SOCIAL_PLATFORMS) + r")\.com/(?:add/)?@?[a-z0-9_.]+",
        ],
        re.IGNORECASE,
    ),
)

_NAME = r"[A-Z][a-z]+"
NAME_FAMILY = PIIFamily(
    type=PIIType.NAME,
    confidence=NAME_CONFIDENCE,
    patterns=_compile(
        "name",
        [
            rf"\b(?i:my name is)\s+{_NAME}(?:\s+{_NAME})?",
            rf"\b(?i:i['’]m)\s+{_NAME}\s+{_NAME}",
            rf"\b(?i:call me)\s+{_NAME}",
        ],
    ),
)

_STREET_SUFFIXES = (
    "street|st|avenue|ave|road|rd|boulevard|blvd|lane|ln|drive|dr|court|ct|way|place|pl|terrace|highway|hwy"
)
ADDRESS_FAMILY = PIIFamily(
    type=PIIType.ADDRESS,
    confidence=ADDRESS_CONFIDENCE,
    patterns=_compile(
        "address",
        [
            rf"\b\d{{1,5}}\s+(?:[a-z0-9.']+\s+){{1,4}}(?:{_STREET_SUFFIXES})\b\.?",
            r"\b(?:zip|postal)(?:\s*code)?\s*:?\s*\d{5}(?:-\d{4})?\b",
        ],
        re.IGNORECASE,
    )
    # "Austin, TX 78701": state abbreviations are only recognised in capitals.
    + _compile("address", [r",\s*[A-Z]{2}\s+\d{5}(?:-\d{4})?\b"]),
)

CREDIT_CARD_FAMILY = PIIFamily(
    type=PIIType.CREDIT_CARD,
    confidence=CREDIT_CARD_CONFIDENCE,
    patterns=_compile("credit_card", [r"\b(?:\d{4}[-\s]?){3}\d{4}\b"]),
)

SSN_PATTERN = _compile("ssn", [r"\b(\d{3})(-?)(\d{2})\2(\d{4})\b"])[0]
SSN_FAMILY = PIIFamily(type=PIIType.SSN, confidence=SSN_CONFIDENCE, patterns=(SSN_PATTERN,))

# Ordered list of families applied to plain text.
TEXT_PII_FAMILIES: tuple[PIIFamily, ...] = (
    PHONE_FAMILY,
    EMAIL_FAMILY,
    SOCIAL_MEDIA_FAMILY,
    NAME_FAMILY,
    ADDRESS_FAMILY,
    CREDIT_CARD_FAMILY,
    SSN_FAMILY,
)

# Families checked against OCR fragments.
IMAGE_PII_FAMILIES: tuple[PIIFamily, ...] = (PHONE_FAMILY, EMAIL_FAMILY, SOCIAL_MEDIA_FAMILY)


def is_valid_ssn(area: str, group: str, serial: str) -> bool:
    """Structural SSN check: rules out never-issued areas, groups and serials."""
    if area in ("000", "666") or area.startswith("9"):
        return False
    return group != "00" and serial != "0000"


# ---------------------------------------------------------------------------
# Text classification
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class KeywordRule:
    """A category activated by keyword matches.

    ``confidence = ceiling - step * matches`` once ``matches >= min_matches``.
    """

    flag: ModerationFlag
    patterns: tuple[re.Pattern[str], ...]
    ceiling: float
    step: float = 0.0
    min_matches: int = 1

    def confidence_for(self, matches: int) -> float:
        return min(1.0, max(0.0, round(self.ceiling - self.step * matches, 6)))


INAPPROPRIATE_RULE = KeywordRule(
    flag=ModerationFlag.INAPPROPRIATE_CONTENT,
    patterns=_compile(
        "inappropriate_content",
        [
            r"\bfuck\w*",
            r"\bshit\w*",
            r"\bdamn\w*",
            r"\bbitch\w*",
            r"\basshole\w*",
            r"\bbastard\w*",
            r"\bcunt\w*",
            r"\bwhore\w*",
            r"\bslut\w*",
            r"\bdickhead\w*",
        ],
    ),
    ceiling=0.85,
    step=0.05,
)

HARASSMENT_RULE = KeywordRule(
    flag=ModerationFlag.HARASSMENT,
    patterns=_compile(
        "harassment",
        [
            r"\bkill (?:yo)?urself\b",
            r"\bkys\b",
            r"\b(?:go|should|hope you) die\b",
            r"\bhate you\b",
            r"\bworthless\b",
            r"\bend your life\b",
            r"\bnobody (?:will ever )?loves? you\b",
            r"\bpiece of (?:shit|trash|garbage)\b",
            r"\bi(?:'ll| will) (?:find|hurt|get) you\b",
            r"\bpathetic\b",
            r"\bugly (?:cow|pig|loser)\b",
        ],
    ),
    ceiling=0.90,
    step=0.03,
)

HATE_SPEECH_RULE = KeywordRule(
    flag=ModerationFlag.HATE_SPEECH,
    patterns=_compile(
        "hate_speech",
        [
            r"\bnazis?\b",
            r"\bterrorists?\b",
            r"\bsubhuman\b",
            r"\bwhite power\b",
            r"\bmaster race\b",
            r"\bethnic cleansing\b",
            r"\bgo back to your country\b",
            r"\bheil\b",
        ],
    ),
    ceiling=0.95,
    step=0.02,
)

SEXUAL_CONTENT_RULE = KeywordRule(
    flag=ModerationFlag.SEXUAL_CONTENT,
    patterns=_compile(
        "sexual_content",
        [
            r"\bsex\b",
            r"\bsexy\b",
            r"\bnudes?\b",
            r"\bnaked\b",
            r"\bporn\w*",
            r"\bpussy\b",
            r"\bcock\b",
            r"\bboobs?\b",
            r"\bhorny\b",
            r"\bhook ?up\b",
            r"\borgasm\w*",
        ],
    ),
    ceiling=0.80,
    min_matches=2,
)

VIOLENT_CONTENT_RULE = KeywordRule(
    flag=ModerationFlag.VIOLENT_CONTENT,
    patterns=_compile(
        "violent_content",
        [
            r"\bkill(?:s|ed|ing)?\b",
            r"\bmurder\w*",
            r"\bstab\w*",
            r"\bshoot\w*",
            r"\bblood\w*",
            r"\bknife\b",
            r"\bguns?\b",
            r"\bbomb\w*",
            r"\btortur\w*",
            r"\bstrangl\w*",
        ],
    ),
    ceiling=0.85,
    min_matches=2,
)

MISINFORMATION_RULE = KeywordRule(
    flag=ModerationFlag.MISINFORMATION,
    patterns=_compile(
        "misinformation",
        [
            r"\bvaccines? cause\b",
            r"\bflat earth\b",
            r"\bfake news\b",
            r"\bthe government is hiding\b",
            r"\bwake up,? sheeple\b",
            r"\bplandemic\b",
            r"\bchemtrails?\b",
            r"\bthey don'?t want you to know\b",
            r"\bdo your own research\b",
            r"\bit'?s all a hoax\b",
        ],
    ),
    ceiling=0.70,
)

SPAM_CEILING = 0.80
SPAM_STEP = 0.05
SPAM_MIN_SIGNALS = 2
SPAM_MIN_LENGTH = 10
SPAM_UPPERCASE_RATIO = 0.5
SPAM_MAX_EXCLAMATIONS = 3
SPAM_MIN_TOKENS = 3
SPAM_PROMOTIONAL_PHRASES = ("click here", "buy now", "limited time", "act now")


def spam_confidence(signals: int) -> float:
    return min(1.0, max(0.0, round(SPAM_CEILING - SPAM_STEP * signals, 6)))


# Evaluation order of keyword categories around the spam check.
KEYWORD_RULES_BEFORE_SPAM: tuple[KeywordRule, ...] = (INAPPROPRIATE_RULE, HARASSMENT_RULE)
KEYWORD_RULES_AFTER_SPAM: tuple[KeywordRule, ...] = (
    HATE_SPEECH_RULE,
    SEXUAL_CONTENT_RULE,
    VIOLENT_CONTENT_RULE,
    MISINFORMATION_RULE,
)


# ---------------------------------------------------------------------------
# Image heuristics
# ---------------------------------------------------------------------------

IMAGE_BASELINE_CONFIDENCE = 0.8
IMAGE_SMALL_DIMENSION = 100
IMAGE_SMALL_CONFIDENCE = 0.7
