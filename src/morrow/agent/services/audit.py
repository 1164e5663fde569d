"""
Audit Engine.

Runs a local SEO audit: collects website intel and places data, scores
the business, lists issues and recommendations, and persists the result.

When an analysis provider is configured, the model fills a structured
``audit_result`` tool call; otherwise (or if that fails) a templated
analysis is used.
"""

from __future__ import annotations

import logging
import random
import string
import time
from typing import Any, Optional

from ..domain.entities import Message, ToolDefinition, utc_now_iso
from ..domain.errors import MorrowError
from ..domain.ports import IAuditRunner, IAuditStore, IPlacesProvider, IProviderAdapter
from ..tools.website import WebsiteIntelFetcher
from .places import analyze_market_position

logger = logging.getLogger(__name__)

AUDIT_ID_ALPHABET = string.digits + string.ascii_lowercase
MAX_ISSUES = 10
MAX_RECOMMENDATIONS = 7

ANALYSIS_SYSTEM_PROMPT = (
    "You ARE Morrow.AI. Analyze the business data and provide a comprehensive local SEO "
    "audit with scores, issues, and specific actionable recommendations. Be thorough, "
    "specific, and practical."
)

AUDIT_RESULT_TOOL = ToolDefinition(
    name="audit_result",
    description="Structured audit analysis with scores and recommendations",
    parameters={
        "type": "object",
        "properties": {
            "scores": {
                "type": "object",
                "properties": {
                    key: {"type": "number"}
                    for key in ("overall", "website", "gbp", "citations", "reviews", "social")
                },
                "required": ["overall", "website", "gbp", "citations", "reviews", "social"],
            },
            "issues": {"type": "array", "items": {"type": "object"}},
            "recommendations": {"type": "array", "items": {"type": "object"}},
            "summary": {"type": "string"},
            "nextSteps": {"type": "array", "items": {"type": "string"}},
        },
        "required": ["scores", "issues", "recommendations", "summary", "nextSteps"],
    },
)


def new_audit_id() -> str:
    suffix = "".join(random.choices(AUDIT_ID_ALPHABET, k=7))
    return f"aud_{int(time.time() * 1000)}_{suffix}"


def _issue(category, severity, title, description, impact, effort) -> dict[str, str]:
    return {
        "category": category,
        "severity": severity,
        "title": title,
        "description": description,
        "impact": impact,
        "effort": effort,
    }


def _recommendation(priority, title, description, impact, effort, category) -> dict[str, Any]:
    return {
        "priority": priority,
        "title": title,
        "description": description,
        "expectedImpact": impact,
        "effort": effort,
        "category": category,
    }


def template_analysis(
    business_name: str, website: Optional[str], data: dict[str, Any]
) -> dict[str, Any]:
    """Rule-based scores, issues and recommendations."""
    website_content = data.get("websiteContent")
    places = data.get("placesData")

    scores = {
        "website": 60 if website_content else 0,
        "gbp": 70 if places else 0,
        "citations": 30,
        "reviews": 65 if places and (places.get("user_ratings_total") or 0) > 10 else 40,
        "social": 25,
    }
    scores = {"overall": round(sum(scores.values()) / 5), **scores}

    issues: list[dict[str, Any]] = []
    recs: list[dict[str, Any]] = []

    if not website_content and website:
        issues.append(_issue(
            "website", "high", "Website not accessible",
            "Could not fetch website content for analysis",
            "Unable to assess on-page SEO, content quality, or user experience", "low",
        ))
        recs.append(_recommendation(
            1, "Verify website is online and accessible",
            "Check if website is up and not blocking automated access",
            "Enable full SEO audit", "low", "website",
        ))
    elif not website:
        issues.append(_issue(
            "website", "critical", "No website provided",
            "Business does not have a website URL",
            "Missing critical online presence foundation", "high",
        ))
        recs.append(_recommendation(
            1, "Create a professional website",
            "Build a mobile-responsive website with clear NAP, services, and CTAs",
            "Establish online credibility and SEO foundation", "high", "website",
        ))

    if website_content:
        title = website_content.get("title") or ""
        if len(title) < 30:
            issues.append(_issue(
                "website", "medium", "Page title is missing or too short",
                f'Current title: "{title}"' if title else "No title tag found",
                "Weak SEO signal and poor click-through in search results", "low",
            ))
            recs.append(_recommendation(
                2, "Optimize page title tag",
                "Include primary keyword and business name in 50-60 characters",
                "Improve search rankings and click-through rate", "low", "website",
            ))
        if not website_content.get("h1"):
            issues.append(_issue(
                "website", "high", "Missing H1 heading", "No H1 tag found on homepage",
                "Poor SEO structure and unclear page hierarchy", "low",
            ))
            recs.append(_recommendation(
                3, "Add H1 heading with primary keyword",
                "Place a single H1 tag at the top of the page with your main service/product",
                "Strengthen page SEO and improve readability", "low", "website",
            ))

    if not places:
        issues.append(_issue(
            "gbp", "high", "Google Business Profile not found",
            "Could not locate business on Google Maps/Search",
            "Missing from local search results and Google Maps", "medium",
        ))
        recs.append(_recommendation(
            1, "Claim or create Google Business Profile",
            "Set up GBP with complete NAP, categories, photos, and business hours",
            "Appear in local search and Google Maps results", "medium", "gbp",
        ))

    if len(recs) < 5:
        recs.append(_recommendation(
            4, "Build citation consistency",
            "List business on Yelp, BBB, Apple Maps, and industry directories with consistent NAP",
            "Improve local SEO authority and trust signals", "medium", "citations",
        ))
        recs.append(_recommendation(
            5, "Implement review generation strategy",
            "Ask 2-3 happy customers per week to leave Google reviews",
            "Boost ratings, build social proof, improve local rankings", "low", "reviews",
        ))

    key_issue = f"Key issues: {issues[0]['title']}." if issues else "No critical issues found."
    focus = recs[0]["title"].lower() if recs else "improving online presence"
    return {
        "scores": scores,
        "issues": issues[:MAX_ISSUES],
        "recommendations": recs[:MAX_RECOMMENDATIONS],
        "summary": f"{business_name} scored {scores['overall']}/100. {key_issue} Focus on {focus}.",
        "nextSteps": [r["title"] for r in recs[:3]],
    }


def build_analysis_prompt(
    business_name: str,
    website: Optional[str],
    location: Optional[str],
    industry: Optional[str],
    data: dict[str, Any],
) -> str:
    parts = ["Analyze this local business and provide a comprehensive SEO audit:", ""]
    parts.append(f"**Business**: {business_name}")
    if website:
        parts.append(f"**Website**: {website}")
    if location:
        parts.append(f"**Location**: {location}")
    if industry:
        parts.append(f"**Industry**: {industry}")
    parts += ["", "**Data Collected**:"]

    content = data.get("websiteContent")
    if content:
        parts.append(f"- Website Title: {content.get('title') or 'N/A'}")
        parts.append(f"- Meta Description: {content.get('description') or 'N/A'}")
        if content.get("h1"):
            parts.append(f"- H1 Tags: {', '.join(content['h1'][:3])}")
        if content.get("h2"):
            parts.append(f"- H2 Tags: {', '.join(content['h2'][:5])}")
    elif website:
        parts.append("- Website: Could not fetch (may be down or blocking scraper)")
    else:
        parts.append("- Website: Not provided")

    places = data.get("placesData")
    if places:
        parts.append(
            f"- Google Rating: {places.get('rating') or 'N/A'} "
            f"({places.get('user_ratings_total') or 0} reviews)"
        )
        parts.append(f"- Business Status: {places.get('business_status') or 'Unknown'}")
    else:
        parts.append("- Google Business Profile: Not found or not checked")

    parts += [
        "",
        "**Your Task**:",
        "1. Score each category (website, gbp, citations, reviews, social) from 0-100",
        "2. Calculate overall score as weighted average",
        "3. Identify specific issues with severity (critical/high/medium/low)",
        "4. Provide actionable recommendations prioritized by impact",
        "5. Be specific and practical, avoid generic advice",
        "6. If data is missing, note it as an issue and recommend collecting it",
    ]
    return "\n".join(parts)


class AuditEngine(IAuditRunner):
    """Audit runner.

    Usage:
        engine = AuditEngine(store, website=WebsiteIntelFetcher(), places=places)
        audit = await engine.run_full_audit("Sunset Plumbing", website="https://...")
    """

    def __init__(
        self,
        store: Optional[IAuditStore] = None,
        website: Optional[WebsiteIntelFetcher] = None,
        places: Optional[IPlacesProvider] = None,
        analyzer: Optional[IProviderAdapter] = None,
    ):
        """Initialize the engine.

        Args:
            store: Where finished audits are persisted (None = not persisted)
            website: Website fetcher
            places: Places provider (None or unconfigured = skipped)
            analyzer: Provider used for structured analysis (None = templated only)
        """
        self.store = store
        self.website = website or WebsiteIntelFetcher()
        self.places = places
        self.analyzer = analyzer

    async def run_full_audit(
        self,
        business_name: str,
        website: Optional[str] = None,
        location: Optional[str] = None,
        industry: Optional[str] = None,
        profile_id: Optional[str] = None,
        owner_id: Optional[str] = None,
        persist: bool = True,
    ) -> dict[str, Any]:
        """Run and (optionally) persist a full audit.

        Returns:
            The audit document
        """
        audit_id = new_audit_id()
        started = time.monotonic()

        data = await self._collect_data(business_name, website, location, industry)
        analysis = await self._analyze(business_name, website, location, industry, data)

        audit: dict[str, Any] = {
            "auditId": audit_id,
            "profileId": profile_id,
            "businessName": business_name,
            "website": website,
            "location": location,
            "industry": industry,
            "timestamp": utc_now_iso(),
            "duration": int((time.monotonic() - started) * 1000),
            "scores": analysis["scores"],
            "data": {
                "websiteContent": data.get("websiteContent"),
                "placesData": data.get("placesData"),
                "citations": [],
                "social": {},
            },
            "issues": analysis["issues"],
            "recommendations": analysis["recommendations"],
            "competitors": data.get("competitors", []),
            "summary": analysis["summary"] or "Audit completed.",
            "nextSteps": analysis["nextSteps"],
        }
        if data.get("marketPosition"):
            audit["marketPosition"] = data["marketPosition"]

        if persist and self.store is not None:
            try:
                audit["storeId"] = await self.store.save_audit(audit, owner_id)
            except Exception as e:
                logger.error(f"Failed to persist audit {audit_id}: {e}")

        logger.info(
            f"Audit {audit_id} for {business_name}: overall {audit['scores'].get('overall')}"
        )
        return audit

    async def _collect_data(
        self,
        business_name: str,
        website: Optional[str],
        location: Optional[str],
        industry: Optional[str],
    ) -> dict[str, Any]:
        data: dict[str, Any] = {"websiteContent": None, "placesData": None, "competitors": []}

        if website:
            try:
                data["websiteContent"] = await self.website.fetch(website)
            except MorrowError as e:
                logger.warning(f"Failed to fetch website {website}: {e.message}")

        if self.places is not None and self.places.is_configured:
            place = await self.places.find_business(business_name, location)
            data["placesData"] = place
            if place:
                competitors = await self.places.find_competitors(place, industry)
                data["competitors"] = competitors
                data["marketPosition"] = analyze_market_position(place, competitors)
        elif self.places is None:
            logger.debug("No places provider, skipping business lookup")

        return data

    async def _analyze(
        self,
        business_name: str,
        website: Optional[str],
        location: Optional[str],
        industry: Optional[str],
        data: dict[str, Any],
    ) -> dict[str, Any]:
        if self.analyzer is None or not self.analyzer.is_configured():
            return template_analysis(business_name, website, data)

        messages = [
            Message.system(ANALYSIS_SYSTEM_PROMPT),
            Message.user(build_analysis_prompt(business_name, website, location, industry, data)),
        ]
        try:
            response = await self.analyzer.send_message(
                messages, [AUDIT_RESULT_TOOL], temperature=0.3
            )
        except MorrowError as e:
            logger.error(f"AI analysis failed, using template: {e.message}")
            return template_analysis(business_name, website, data)

        if not response.tool_calls:
            return template_analysis(business_name, website, data)

        result = response.tool_calls[0].parse_arguments()
        if not isinstance(result.get("scores"), dict):
            logger.warning("AI analysis returned no scores, using template")
            return template_analysis(business_name, website, data)

        return {
            "scores": result["scores"],
            "issues": list(result.get("issues") or [])[:MAX_ISSUES],
            "recommendations": list(result.get("recommendations") or [])[:MAX_RECOMMENDATIONS],
            "summary": str(result.get("summary") or ""),
            "nextSteps": [str(s) for s in result.get("nextSteps") or []],
        }
