"""Collaborators: audits, audit storage, notifications, places."""

from .audit import AuditEngine, template_analysis
from .audit_store import InMemoryAuditStore, JsonFileAuditStore
from .notifications import NotificationService
from .places import GooglePlacesService, analyze_market_position
from .report import render_markdown_report

__all__ = [
    "AuditEngine",
    "template_analysis",
    "InMemoryAuditStore",
    "JsonFileAuditStore",
    "NotificationService",
    "GooglePlacesService",
    "analyze_market_position",
    "render_markdown_report",
]
