"""Keyword intent parser."""

from .parser import (
    INTENT_PATTERNS,
    LOW_CONFIDENCE_THRESHOLD,
    IntentParser,
    IntentPattern,
    extract_entities,
)

__all__ = [
    "INTENT_PATTERNS",
    "LOW_CONFIDENCE_THRESHOLD",
    "IntentParser",
    "IntentPattern",
    "extract_entities",
]
