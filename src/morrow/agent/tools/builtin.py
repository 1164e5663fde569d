"""
Built-in toolbox.

Defines the tools the brain loop exposes to the model (knowledge
search, website intel, leads, audits, outreach, places, CRM) and binds
each one to the collaborator that does the work.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from ..domain.entities import ToolDefinition
from ..domain.errors import ToolExecutionError
from ..domain.ports import (
    IAuditRunner,
    IAuditStore,
    INotificationProvider,
    IPlacesProvider,
)
from ..knowledge.store import KnowledgeStore
from ..knowledge.vectors import VectorStore
from ..services.report import render_markdown_report
from .registry import RegisteredTool, ToolRegistry
from .website import WebsiteIntelFetcher

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 3
DEFAULT_SEMANTIC_K = 5
MAX_RESULTS = 10
SNIPPET_CHARS = 800

DEMO_LEADS: tuple[dict[str, str], ...] = (
    {
        "id": "lead1",
        "name": "Downtown Pizza",
        "location": "Riverside, CA",
        "website": "https://downtownpizza.example",
    },
    {
        "id": "lead2",
        "name": "Sunset Plumbing",
        "location": "San Diego, CA",
        "website": "https://sunsetplumbing.example",
    },
)


def _schema(properties: dict[str, Any], required: Optional[list[str]] = None) -> dict[str, Any]:
    return {"type": "object", "properties": properties, "required": required or []}


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _result_count(value: Any, default: int) -> int:
    """Model-supplied result count, clamped to 1..MAX_RESULTS."""
    return max(1, min(_as_int(value, default), MAX_RESULTS))


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value else []
    return [str(v) for v in value if v]


# ============================================
# Tool Definitions
# ============================================

SEARCH_KNOWLEDGE = ToolDefinition(
    name="search_knowledge",
    description="Search internal knowledge for relevant facts and playbooks.",
    parameters=_schema(
        {
            "query": {"type": "string", "description": "What to look for"},
            "limit": {"type": "integer", "default": DEFAULT_SEARCH_LIMIT},
        },
        ["query"],
    ),
)

SEMANTIC_SEARCH = ToolDefinition(
    name="semantic_search",
    description="Find knowledge passages by meaning using the embedding index.",
    parameters=_schema(
        {
            "query": {"type": "string"},
            "k": {"type": "integer", "default": DEFAULT_SEMANTIC_K},
        },
        ["query"],
    ),
)

WEBSITE_INTEL = ToolDefinition(
    name="website_intel",
    description="Fetch a public website and extract title, description and headings.",
    parameters=_schema(
        {"url": {"type": "string", "description": "Absolute http(s) URL"}},
        ["url"],
    ),
)

LEADS_LIST = ToolDefinition(
    name="leads_list",
    description="List current leads.",
    parameters=_schema({}),
)

AUDIT_START = ToolDefinition(
    name="audit_start",
    description="Start a local SEO audit for a business.",
    parameters=_schema(
        {
            "businessName": {"type": "string"},
            "website": {"type": "string"},
            "scope": {"type": "array", "items": {"type": "string"}},
        },
        ["businessName"],
    ),
)

REPORT_GENERATE = ToolDefinition(
    name="report_generate",
    description="Generate a report from a stored audit.",
    parameters=_schema(
        {
            "auditId": {"type": "string"},
            "format": {"type": "string", "enum": ["markdown", "json"], "default": "markdown"},
        },
        ["auditId"],
    ),
)

RUN_AUDIT = ToolDefinition(
    name="run_audit",
    description="Run a full audit (website, listings, reviews, competitors) and store it.",
    parameters=_schema(
        {
            "businessName": {"type": "string"},
            "website": {"type": "string"},
            "location": {"type": "string"},
            "industry": {"type": "string"},
            "profileId": {"type": "string"},
        },
        ["businessName"],
    ),
)

SEND_EMAIL = ToolDefinition(
    name="send_email",
    description="Send an outreach email.",
    parameters=_schema(
        {
            "subject": {"type": "string"},
            "body": {"type": "string"},
            "to": {"type": "array", "items": {"type": "string"}},
        }
    ),
)

SEND_SMS = ToolDefinition(
    name="send_sms",
    description="Send an SMS message.",
    parameters=_schema(
        {"to": {"type": "string"}, "body": {"type": "string"}},
        ["to", "body"],
    ),
)

SEARCH_PLACES = ToolDefinition(
    name="search_places",
    description="Look up a business and nearby competitors by query and location.",
    parameters=_schema(
        {
            "query": {"type": "string"},
            "location": {"type": "string"},
            "radiusMeters": {"type": "integer", "default": 5000},
        },
        ["query", "location"],
    ),
)

UPDATE_CRM = ToolDefinition(
    name="update_crm",
    description="Update fields on a CRM lead record.",
    parameters=_schema(
        {"leadId": {"type": "string"}, "fields": {"type": "object"}},
        ["leadId"],
    ),
)


# ============================================
# Toolbox
# ============================================


class MorrowToolbox:
    """Handlers for the built-in tools.

    Each handler takes the parsed argument dict and returns a
    JSON-serializable result, or raises with a readable message.

    Usage:
        toolbox = MorrowToolbox(knowledge=store, website=WebsiteIntelFetcher())
        registry = toolbox.build_registry()
    """

    def __init__(
        self,
        knowledge: KnowledgeStore,
        website: Optional[WebsiteIntelFetcher] = None,
        vectors: Optional[VectorStore] = None,
        audit_runner: Optional[IAuditRunner] = None,
        audit_store: Optional[IAuditStore] = None,
        notifier: Optional[INotificationProvider] = None,
        places: Optional[IPlacesProvider] = None,
    ):
        self.knowledge = knowledge
        self.website = website or WebsiteIntelFetcher()
        self.vectors = vectors
        self.audit_runner = audit_runner
        self.audit_store = audit_store
        self.notifier = notifier
        self.places = places

    def registered_tools(self) -> list[RegisteredTool]:
        tools = [
            RegisteredTool(SEARCH_KNOWLEDGE, self.search_knowledge),
            RegisteredTool(WEBSITE_INTEL, self.website_intel),
            RegisteredTool(LEADS_LIST, self.leads_list),
            RegisteredTool(AUDIT_START, self.audit_start),
            RegisteredTool(REPORT_GENERATE, self.report_generate),
            RegisteredTool(RUN_AUDIT, self.run_audit),
            RegisteredTool(SEND_EMAIL, self.send_email),
            RegisteredTool(SEND_SMS, self.send_sms),
            RegisteredTool(SEARCH_PLACES, self.search_places),
            RegisteredTool(UPDATE_CRM, self.update_crm),
        ]
        if self.vectors is not None and self.vectors.has_embedder:
            tools.insert(1, RegisteredTool(SEMANTIC_SEARCH, self.semantic_search))
        return tools

    def build_registry(self) -> ToolRegistry:
        return ToolRegistry(self.registered_tools())

    # ------------------------------------------------------------------
    # Knowledge
    # ------------------------------------------------------------------

    async def search_knowledge(self, args: dict[str, Any]) -> dict[str, Any]:
        query = str(args.get("query") or "")
        limit = _result_count(args.get("limit"), DEFAULT_SEARCH_LIMIT)
        results = self.knowledge.search(query, limit=limit, max_chars=SNIPPET_CHARS)
        return {"results": results, "count": len(results), "query": query}

    async def semantic_search(self, args: dict[str, Any]) -> dict[str, Any]:
        query = str(args.get("query") or "")
        k = _result_count(args.get("k"), DEFAULT_SEMANTIC_K)
        results = await self.vectors.query(query, k=k)
        return {"results": results, "count": len(results), "query": query}

    # ------------------------------------------------------------------
    # Web & leads
    # ------------------------------------------------------------------

    async def website_intel(self, args: dict[str, Any]) -> dict[str, Any]:
        return await self.website.fetch(str(args["url"]))

    async def leads_list(self, args: dict[str, Any]) -> dict[str, Any]:
        return {"leads": [dict(lead) for lead in DEMO_LEADS]}

    # ------------------------------------------------------------------
    # Audits
    # ------------------------------------------------------------------

    def _require_audit_runner(self) -> IAuditRunner:
        if self.audit_runner is None:
            raise ToolExecutionError("Audit engine not configured")
        return self.audit_runner

    async def audit_start(self, args: dict[str, Any]) -> dict[str, Any]:
        runner = self._require_audit_runner()
        business_name = str(args["businessName"])
        scope = _as_list(args.get("scope"))
        audit = await runner.run_full_audit(
            business_name=business_name,
            website=args.get("website") or None,
        )
        return {
            "auditId": audit["auditId"],
            "businessName": business_name,
            "scope": scope,
            "status": "completed",
            "scores": audit.get("scores", {}),
            "summary": audit.get("summary", ""),
        }

    async def run_audit(self, args: dict[str, Any]) -> dict[str, Any]:
        runner = self._require_audit_runner()
        audit = await runner.run_full_audit(
            business_name=str(args["businessName"]),
            website=args.get("website") or None,
            location=args.get("location") or None,
            industry=args.get("industry") or None,
            profile_id=args.get("profileId") or None,
        )
        # Raw page content is large and already summarized in the issues.
        slim = dict(audit)
        slim["data"] = {
            key: value
            for key, value in (audit.get("data") or {}).items()
            if key != "websiteContent"
        }
        return slim

    async def report_generate(self, args: dict[str, Any]) -> dict[str, Any]:
        if self.audit_store is None:
            raise ToolExecutionError("Audit store not configured")
        audit_id = str(args["auditId"])
        fmt = str(args.get("format") or "markdown").lower()

        audit = await self.audit_store.get_audit(audit_id)
        if audit is None:
            raise ToolExecutionError(f"Audit not found: {audit_id}")

        report: Any = render_markdown_report(audit) if fmt == "markdown" else audit
        return {"auditId": audit_id, "format": fmt, "report": report}

    # ------------------------------------------------------------------
    # Outreach
    # ------------------------------------------------------------------

    def _require_notifier(self) -> INotificationProvider:
        if self.notifier is None:
            raise ToolExecutionError("Notification provider not configured")
        return self.notifier

    async def send_email(self, args: dict[str, Any]) -> dict[str, Any]:
        notifier = self._require_notifier()
        recipients = _as_list(args.get("to"))
        if not recipients:
            raise ToolExecutionError("No recipients provided in 'to'")

        subject = args.get("subject") or None
        body = args.get("body") or ""
        results = []
        for recipient in recipients:
            results.append(
                await notifier.send("email", recipient, None, message=body, subject=subject)
            )
        return {
            "ok": all(r.get("ok") for r in results),
            "sent": len(results),
            "simulated": any(r.get("simulated") for r in results),
            "results": results,
        }

    async def send_sms(self, args: dict[str, Any]) -> dict[str, Any]:
        notifier = self._require_notifier()
        return await notifier.send("sms", str(args["to"]), None, message=str(args["body"]))

    # ------------------------------------------------------------------
    # Places & CRM
    # ------------------------------------------------------------------

    async def search_places(self, args: dict[str, Any]) -> dict[str, Any]:
        if self.places is None or not self.places.is_configured:
            return {
                "ok": False,
                "error": "search_places is not configured in this environment. "
                "Provide a Places API integration to enable.",
            }

        radius = _as_int(args.get("radiusMeters"), 5000)
        place = await self.places.find_business(str(args["query"]), str(args["location"]))
        if place is None:
            return {"ok": True, "place": None, "competitors": []}

        competitors = await self.places.find_competitors(place, radius_meters=radius)
        return {"ok": True, "place": place, "competitors": competitors}

    async def update_crm(self, args: dict[str, Any]) -> dict[str, Any]:
        return {"ok": False, "error": "CRM integration not configured"}
