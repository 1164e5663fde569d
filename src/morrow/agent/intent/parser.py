"""
Intent Parser.

Keyword-scored intent detection with light entity extraction. Used when
the tool-calling loop is not in play, for example to decide which
clarifying question to ask before starting an action.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

from ..domain.entities import IntentResult

logger = logging.getLogger(__name__)

LOW_CONFIDENCE_THRESHOLD = 0.3
MULTI_MATCH_BOOST = 1.5

FALLBACK_INTENT = "chat"
FALLBACK_ACTION = "chat"


@dataclass(frozen=True)
class IntentPattern:
    """A keyword pattern mapping text to an action."""

    intent: str
    keywords: tuple[str, ...]
    action: str
    required_fields: tuple[str, ...] = ()
    optional_fields: tuple[str, ...] = ()

    def score(self, text: str) -> float:
        """Sum ``len/10 + 1`` per keyword found, boosted when several match."""
        total = 0.0
        matched = 0
        for keyword in self.keywords:
            if keyword in text:
                total += len(keyword) / 10 + 1
                matched += 1
        if matched > 1:
            total *= MULTI_MATCH_BOOST
        return total


INTENT_PATTERNS: tuple[IntentPattern, ...] = (
    IntentPattern(
        intent="seo_analysis",
        keywords=("seo", "search", "ranking", "optimize", "google", "visibility"),
        action="performSEOAnalysis",
        required_fields=("businessName",),
        optional_fields=("website", "location", "industry"),
    ),
    IntentPattern(
        intent="social_content",
        keywords=("social", "post", "content", "facebook", "instagram", "twitter", "linkedin"),
        action="generateSocialContent",
        required_fields=("businessName", "topic"),
        optional_fields=("platform", "tone", "includeImage"),
    ),
    IntentPattern(
        intent="start_audit",
        keywords=("audit", "check", "review", "analyze", "assessment"),
        action="startAudit",
        optional_fields=("businessName", "website", "scope"),
    ),
    IntentPattern(
        intent="competitor_analysis",
        keywords=("competitor", "competition", "rival", "compare"),
        action="analyzeCompetitors",
        required_fields=("businessName", "location"),
        optional_fields=("industry",),
    ),
    IntentPattern(
        intent="content_calendar",
        keywords=("calendar", "schedule", "plan", "content plan"),
        action="createContentCalendar",
        required_fields=("businessName",),
        optional_fields=("industry", "timeframe", "platforms"),
    ),
    IntentPattern(
        intent="generate_report",
        keywords=("report", "summary", "document", "findings"),
        action="generateReport",
        optional_fields=("auditId", "format"),
    ),
    IntentPattern(
        intent="capabilities",
        keywords=("help", "what can", "features", "capabilities", "do for me"),
        action="explainCapabilities",
    ),
    IntentPattern(
        intent="chat",
        keywords=("hi", "hello", "hey", "thanks", "bye"),
        action="chat",
    ),
)

INDUSTRIES = ("plumbing", "restaurant", "dentist", "lawyer", "bakery", "gym", "salon")
PLATFORMS = ("facebook", "instagram", "twitter", "linkedin", "tiktok")

LOCATION_RE = re.compile(r"in ([a-z\s]+?)(?:\s|,|$)")
TIMEFRAME_RE = re.compile(r"(\d+)\s*(day|week|month)")
TIMEFRAME_DAYS = {"day": 1, "week": 7, "month": 30}

CLARIFICATION_QUESTIONS = {
    "businessName": "What's your business name?",
    "website": "What's your website URL?",
    "location": "What city are you in?",
    "industry": "What industry are you in?",
    "topic": "What topic should I focus on?",
}

ACTION_DESCRIPTIONS = {
    "performSEOAnalysis": "run an SEO analysis",
    "generateSocialContent": "create social media content",
    "startAudit": "start a business audit",
    "analyzeCompetitors": "analyze your competitors",
    "createContentCalendar": "build a content calendar",
    "generateReport": "generate a report",
    "chat": "chat",
}


def extract_entities(text: str) -> dict[str, Any]:
    """Pull location, industry, timeframe and platforms out of normalized text.

    Args:
        text: Lower-cased, stripped input

    Returns:
        Dict of found entities. ``platforms`` is always present.
    """
    entities: dict[str, Any] = {}

    location = LOCATION_RE.search(text)
    if location:
        entities["location"] = location.group(1).strip()

    for industry in INDUSTRIES:
        if industry in text:
            entities["industry"] = industry
            break

    timeframe = TIMEFRAME_RE.search(text)
    if timeframe:
        days = int(timeframe.group(1)) * TIMEFRAME_DAYS[timeframe.group(2)]
        entities["timeframe"] = str(days)

    entities["platforms"] = [p for p in PLATFORMS if p in text]
    return entities


class IntentParser:
    """Scores text against intent patterns.

    Caller-supplied context wins over freshly extracted entities on key
    collisions: extraction only fills keys the caller left unset.

    Usage:
        parser = IntentParser()
        result = parser.parse("Run an audit for my bakery in austin")
        question = parser.clarification_question(result)
    """

    examples: tuple[dict[str, Any], ...] = (
        {"input": "Run an audit", "intent": "start_audit", "missing_fields": []},
        {"input": "Hey, what can you do?", "intent": "capabilities", "missing_fields": []},
        {
            "input": "Who are my competitors in austin, tx",
            "intent": "competitor_analysis",
            "missing_fields": ["businessName"],
        },
        {
            "input": "Plan a 2 week calendar for instagram",
            "intent": "content_calendar",
            "missing_fields": ["businessName"],
        },
        {"input": "thanks!", "intent": "chat", "missing_fields": []},
    )

    def __init__(self, patterns: tuple[IntentPattern, ...] = INTENT_PATTERNS):
        self.patterns = patterns

    def match(self, text: str) -> tuple[Optional[IntentPattern], float]:
        """Return the best pattern and its score; earlier patterns win ties."""
        best: Optional[IntentPattern] = None
        best_score = 0.0
        for pattern in self.patterns:
            score = pattern.score(text)
            if score > best_score:
                best, best_score = pattern, score
        return best, best_score

    def parse(self, text: str, context: Optional[dict[str, Any]] = None) -> IntentResult:
        """Parse free text into an intent.

        Args:
            text: User input
            context: Known entities (e.g. businessName from the profile)

        Returns:
            IntentResult with parameters and missing required fields
        """
        context = dict(context or {})
        normalized = (text or "").lower().strip()

        pattern, score = self.match(normalized)
        if pattern is None or score < LOW_CONFIDENCE_THRESHOLD:
            return IntentResult(
                intent=FALLBACK_INTENT,
                action=FALLBACK_ACTION,
                confidence=round(score, 4),
                parameters={},
                missing_fields=[],
                raw_input=text or "",
            )

        entities = extract_entities(normalized)
        merged = {**entities, **{k: v for k, v in context.items() if v is not None}}

        fields = pattern.required_fields + pattern.optional_fields
        parameters = {f: merged[f] for f in fields if merged.get(f) is not None}
        missing = [f for f in pattern.required_fields if merged.get(f) is None]

        logger.debug(
            f"Parsed intent {pattern.intent} (score={score:.2f}, missing={missing})"
        )
        return IntentResult(
            intent=pattern.intent,
            action=pattern.action,
            confidence=min(score, 1.0),
            parameters=parameters,
            missing_fields=missing,
            raw_input=text or "",
        )

    def clarification_question(self, result: IntentResult) -> Optional[str]:
        """Question for the first missing field, or None when nothing is missing."""
        if not result.missing_fields:
            return None
        field = result.missing_fields[0]
        return CLARIFICATION_QUESTIONS.get(field, f"I need to know: {field}")

    def to_confirmation(self, result: IntentResult) -> str:
        """Render ``I'll <action> (k: v, ...)`` listing the non-empty parameters."""
        description = ACTION_DESCRIPTIONS.get(result.action, "help you")
        shown = []
        for key, value in result.parameters.items():
            if not value:
                continue
            if isinstance(value, (list, tuple)):
                value = ",".join(str(v) for v in value)
            shown.append(f"{key}: {value}")
        if not shown:
            return f"I'll {description}"
        return f"I'll {description} ({', '.join(shown)})"
