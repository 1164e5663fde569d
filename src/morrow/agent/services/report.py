"""Markdown rendering of stored audits."""

from __future__ import annotations

from typing import Any

SCORE_LABELS = (
    ("overall", "Overall"),
    ("website", "Website"),
    ("gbp", "Google Business Profile"),
    ("citations", "Citations"),
    ("reviews", "Reviews"),
    ("social", "Social"),
)


def render_markdown_report(audit: dict[str, Any]) -> str:
    """Render an audit as a markdown report."""
    lines = [
        f"# Audit Report: {audit.get('businessName') or 'Unknown business'}",
        "",
        f"ID: {audit.get('auditId') or 'N/A'}",
    ]
    for key, label in (("website", "Website"), ("location", "Location"), ("industry", "Industry")):
        if audit.get(key):
            lines.append(f"{label}: {audit[key]}")
    if audit.get("timestamp"):
        lines.append(f"Date: {audit['timestamp']}")

    lines += ["", "## Summary", "", audit.get("summary") or "Audit completed."]

    scores = audit.get("scores") or {}
    if scores:
        lines += ["", "## Scores", "", "| Category | Score |", "|---|---|"]
        for key, label in SCORE_LABELS:
            if key in scores:
                lines.append(f"| {label} | {scores[key]}/100 |")

    issues = audit.get("issues") or []
    if issues:
        lines += ["", "## Issues", ""]
        for issue in issues:
            lines.append(
                f"- **{issue.get('title')}** ({issue.get('severity', 'n/a')}, "
                f"{issue.get('category', 'general')}): {issue.get('description', '')}"
            )

    recommendations = audit.get("recommendations") or []
    if recommendations:
        lines += ["", "## Recommendations", ""]
        for index, rec in enumerate(recommendations, start=1):
            lines.append(
                f"{index}. **{rec.get('title')}** - {rec.get('description', '')} "
                f"(impact: {rec.get('expectedImpact', 'n/a')}, effort: {rec.get('effort', 'n/a')})"
            )

    market = audit.get("marketPosition")
    if market and market.get("insights"):
        lines += ["", "## Market Position", "", f"Position: {market.get('marketPosition')}", ""]
        lines += [f"- {insight}" for insight in market["insights"]]

    next_steps = audit.get("nextSteps") or []
    if next_steps:
        lines += ["", "## Next Steps", ""]
        lines += [f"- {step}" for step in next_steps]

    lines += ["", "Generated by Morrow.AI."]
    return "\n".join(lines)
