"""
Tests for the audit engine, audit stores, places, notifications and reports.

External APIs are replaced with httpx.MockTransport handlers.
"""

import json
import re
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from src.morrow.agent.domain.entities import ProviderResponse, ToolCall
from src.morrow.agent.domain.errors import MorrowError, ProviderError, ToolExecutionError
from src.morrow.agent.services import (
    AuditEngine,
    GooglePlacesService,
    InMemoryAuditStore,
    JsonFileAuditStore,
    NotificationService,
    analyze_market_position,
    render_markdown_report,
    template_analysis,
)

PAGE_INTEL = {
    "url": "https://sunsetplumbing.example",
    "title": "Sunset Plumbing | San Diego",
    "description": "24/7 plumbers",
    "h1": ["Sunset Plumbing"],
    "h2": ["Services"],
    "contentSample": [],
}

PLACE = {
    "place_id": "place_sunset",
    "name": "Sunset Plumbing",
    "rating": 4.8,
    "user_ratings_total": 120,
    "business_status": "OPERATIONAL",
    "types": ["point_of_interest", "plumber"],
    "geometry": {"location": {"lat": 32.7, "lng": -117.1}},
}

COMPETITORS = [
    {"name": "Alpha Pipes", "placeId": "p_a", "rating": 4.2, "userRatingsTotal": 50},
    {"name": "Bay Drains", "placeId": "p_b", "rating": 4.4, "userRatingsTotal": 200},
]


@pytest.fixture
def website():
    fetcher = MagicMock()
    fetcher.fetch = AsyncMock(return_value=PAGE_INTEL)
    return fetcher


@pytest.fixture
def places():
    provider = MagicMock()
    provider.is_configured = True
    provider.find_business = AsyncMock(return_value=PLACE)
    provider.find_competitors = AsyncMock(return_value=COMPETITORS)
    return provider


@pytest.fixture
def audit_store():
    return InMemoryAuditStore()


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# ============================================
# Audits
# ============================================


class TestTemplateAnalysis:
    """Tests for the rule-based analysis."""

    def test_nothing_collected(self):
        """No website and no listing score low and flag both."""
        result = template_analysis("Sunset Plumbing", None, {})

        assert result["scores"] == {
            "overall": 19,
            "website": 0,
            "gbp": 0,
            "citations": 30,
            "reviews": 40,
            "social": 25,
        }
        assert [i["title"] for i in result["issues"]] == [
            "No website provided",
            "Google Business Profile not found",
        ]
        assert len(result["recommendations"]) == 4
        assert result["summary"] == (
            "Sunset Plumbing scored 19/100. Key issues: No website provided. "
            "Focus on create a professional website."
        )
        assert result["nextSteps"] == [r["title"] for r in result["recommendations"][:3]]

    def test_short_title_flagged(self):
        data = {
            "websiteContent": {"title": "Plumbing", "h1": ["Plumbing"]},
            "placesData": {"user_ratings_total": 42},
        }
        result = template_analysis("Sunset Plumbing", "https://x.example", data)

        assert result["scores"]["overall"] == 50
        assert result["scores"]["reviews"] == 65
        assert [i["title"] for i in result["issues"]] == ["Page title is missing or too short"]

    def test_unreachable_website(self):
        result = template_analysis("Sunset Plumbing", "https://down.example", {"placesData": {}})
        assert result["issues"][0]["title"] == "Website not accessible"


class TestAuditEngine:
    """Tests for run_full_audit."""

    @pytest.mark.asyncio
    async def test_full_audit_persisted(self, audit_store, website, places):
        """Data is collected, analyzed and saved under the audit id."""
        engine = AuditEngine(audit_store, website=website, places=places)

        audit = await engine.run_full_audit(
            "Sunset Plumbing",
            website="https://sunsetplumbing.example",
            location="San Diego, CA",
            industry="plumber",
            profile_id="client_7",
        )

        assert re.match(r"^aud_\d+_[0-9a-z]{7}$", audit["auditId"])
        assert audit["storeId"] == audit["auditId"]
        assert audit["data"]["websiteContent"] == PAGE_INTEL
        assert audit["competitors"] == COMPETITORS
        assert audit["marketPosition"]["marketPosition"] == "leading"
        places.find_business.assert_awaited_once_with("Sunset Plumbing", "San Diego, CA")
        places.find_competitors.assert_awaited_once_with(PLACE, "plumber")

        stored = await audit_store.get_audit(audit["auditId"])
        assert stored["clientId"] == "client_7"
        assert stored["businessName"] == "Sunset Plumbing"

    @pytest.mark.asyncio
    async def test_website_failure_is_an_issue(self, audit_store, website):
        website.fetch.side_effect = ToolExecutionError("Failed to fetch website: HTTP 503")
        engine = AuditEngine(audit_store, website=website)

        audit = await engine.run_full_audit("Sunset Plumbing", website="https://down.example")

        assert audit["data"]["websiteContent"] is None
        assert audit["issues"][0]["title"] == "Website not accessible"
        assert "marketPosition" not in audit

    @pytest.mark.asyncio
    async def test_store_failure_still_returns_audit(self, website):
        store = MagicMock()
        store.save_audit = AsyncMock(side_effect=OSError("read-only"))
        engine = AuditEngine(store, website=website)

        audit = await engine.run_full_audit("Sunset Plumbing")

        assert "storeId" not in audit
        assert audit["summary"]

    @pytest.mark.asyncio
    async def test_model_analysis_used(self, audit_store, website):
        """A configured analyzer fills the structured audit_result call."""
        analysis = {
            "scores": {"overall": 72, "website": 80, "gbp": 70, "citations": 60, "reviews": 75, "social": 40},
            "issues": [{"title": "Few citations"}],
            "recommendations": [{"title": "List on Yelp"}],
            "summary": "Solid foundation.",
            "nextSteps": ["List on Yelp"],
        }
        analyzer = MagicMock()
        analyzer.is_configured.return_value = True
        analyzer.send_message = AsyncMock(
            return_value=ProviderResponse(
                tool_calls=[ToolCall("call_1", "audit_result", json.dumps(analysis))]
            )
        )
        engine = AuditEngine(audit_store, website=website, analyzer=analyzer)

        audit = await engine.run_full_audit("Sunset Plumbing", website="https://sunsetplumbing.example")

        assert audit["scores"]["overall"] == 72
        assert audit["summary"] == "Solid foundation."
        tools = analyzer.send_message.await_args.args[1]
        assert [t.name for t in tools] == ["audit_result"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "reply",
        [
            ProviderResponse(content="Here is my analysis in prose."),
            ProviderError("upstream 500"),
        ],
    )
    async def test_model_failure_falls_back(self, audit_store, reply):
        analyzer = MagicMock()
        analyzer.is_configured.return_value = True
        if isinstance(reply, Exception):
            analyzer.send_message = AsyncMock(side_effect=reply)
        else:
            analyzer.send_message = AsyncMock(return_value=reply)
        engine = AuditEngine(audit_store, analyzer=analyzer)

        audit = await engine.run_full_audit("Sunset Plumbing")

        assert audit["scores"]["overall"] == 19


class TestAuditStores:
    """Tests for audit persistence."""

    @pytest.mark.asyncio
    async def test_json_store_round_trip(self, tmp_path):
        store = JsonFileAuditStore(tmp_path / "audits")
        audit_id = await store.save_audit(
            {"auditId": "aud_1_abc", "businessName": "Sunset Plumbing", "timestamp": "2026-01-01"},
            owner_id="user_1",
        )

        stored = await store.get_audit(audit_id)

        assert stored["ownerId"] == "user_1"
        assert stored["createdAt"] == stored["updatedAt"]
        assert (tmp_path / "audits" / "aud_1_abc.json").exists()

    @pytest.mark.asyncio
    async def test_list_newest_first(self, tmp_path):
        store = JsonFileAuditStore(tmp_path)
        for audit_id, ts in [("aud_1", "2026-01-01"), ("aud_2", "2026-03-01"), ("aud_3", "2026-02-01")]:
            await store.save_audit({"auditId": audit_id, "businessName": "Sunset", "timestamp": ts})
        await store.save_audit({"auditId": "aud_4", "businessName": "Other", "timestamp": "2026-04-01"})

        listed = await store.list_audits_by_business("Sunset", limit=2)

        assert [a["auditId"] for a in listed] == ["aud_2", "aud_3"]

    @pytest.mark.asyncio
    async def test_unsafe_ids(self, tmp_path):
        """Path-like ids are never read or written."""
        store = JsonFileAuditStore(tmp_path)
        assert await store.get_audit("../secrets") is None
        with pytest.raises(MorrowError, match="Invalid audit id"):
            await store.save_audit({"auditId": "../../etc/passwd"})

    @pytest.mark.asyncio
    async def test_missing_audit(self, tmp_path, audit_store):
        assert await JsonFileAuditStore(tmp_path).get_audit("aud_missing") is None
        assert await audit_store.get_audit("aud_missing") is None


# ============================================
# Places
# ============================================


class TestGooglePlacesService:
    """Tests for the Places client."""

    @pytest.mark.asyncio
    async def test_find_business(self):
        """Text search then details, with the key on every request."""
        seen = []

        def handler(request):
            seen.append(request)
            if request.url.path.endswith("/textsearch/json"):
                return httpx.Response(200, json={"results": [{"place_id": "place_sunset"}]})
            return httpx.Response(200, json={"result": {"name": "Sunset Plumbing", "rating": 4.8}})

        places = GooglePlacesService(api_key="test-key", client=_client(handler))
        place = await places.find_business("Sunset Plumbing", "San Diego, CA")

        assert place == {"name": "Sunset Plumbing", "rating": 4.8, "place_id": "place_sunset"}
        assert seen[0].url.params["query"] == "Sunset Plumbing San Diego, CA"
        assert seen[1].url.params["place_id"] == "place_sunset"
        assert all(r.url.params["key"] == "test-key" for r in seen)

    @pytest.mark.asyncio
    async def test_unconfigured_returns_none(self):
        def handler(request):
            raise AssertionError("no request expected")

        places = GooglePlacesService(client=_client(handler))
        assert places.is_configured is False
        assert await places.find_business("Sunset Plumbing") is None
        assert await places.find_competitors(PLACE) == []

    @pytest.mark.asyncio
    async def test_api_error_returns_none(self):
        places = GooglePlacesService(
            api_key="bad",
            client=_client(lambda r: httpx.Response(403, json={"error_message": "denied"})),
        )
        assert await places.find_business("Sunset Plumbing") is None

    @pytest.mark.asyncio
    async def test_find_competitors_excludes_self(self):
        seen = {}

        def handler(request):
            seen.update(request.url.params)
            return httpx.Response(200, json={"results": [
                {"place_id": "place_sunset", "name": "Sunset Plumbing"},
                {
                    "place_id": "p_a",
                    "name": "Alpha Pipes",
                    "rating": 4.2,
                    "user_ratings_total": 50,
                    "photos": [{"photo_reference": "ph_1"}],
                },
            ]})

        places = GooglePlacesService(api_key="test-key", client=_client(handler))
        competitors = await places.find_competitors(PLACE)

        assert seen["type"] == "plumber"
        assert seen["location"] == "32.7,-117.1"
        assert [c["name"] for c in competitors] == ["Alpha Pipes"]
        assert competitors[0]["userRatingsTotal"] == 50
        assert competitors[0]["photoReference"] == "ph_1"


class TestMarketPosition:
    """Tests for analyze_market_position."""

    def test_leading_business(self):
        market = analyze_market_position(PLACE, COMPETITORS)

        assert market["marketPosition"] == "leading"
        assert market["insights"] == [
            "Rating (4.8) is above local average (4.3) - strong reputation advantage",
            "Top local competitor: Bay Drains (4.4/5, 200 reviews)",
        ]
        assert market["benchmarks"] == {
            "avgRating": 4.3,
            "avgReviewCount": 125,
            "totalCompetitors": 2,
            "topCompetitor": "Bay Drains",
        }

    def test_lagging_with_low_volume(self):
        market = analyze_market_position({"rating": 3.5, "user_ratings_total": 10}, COMPETITORS)
        assert market["marketPosition"] == "lagging"
        assert "need more customer engagement" in market["insights"][1]

    def test_insufficient_data(self):
        assert analyze_market_position(PLACE, [])["marketPosition"] == "insufficient-data"
        assert analyze_market_position(None, COMPETITORS)["benchmarks"] == {}


# ============================================
# Notifications
# ============================================


class TestNotificationService:
    """Tests for email and SMS sends."""

    @pytest.mark.asyncio
    async def test_simulated_without_credentials(self):
        notifier = NotificationService()
        result = await notifier.send("email", "owner@example.com", "https://portal.example/c/1")
        assert result == {
            "ok": True,
            "channel": "email",
            "target": "owner@example.com",
            "link": "https://portal.example/c/1",
            "simulated": True,
        }

    @pytest.mark.asyncio
    async def test_email_via_sendgrid(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(202)

        notifier = NotificationService(sendgrid_api_key="SG.test", client=_client(handler))
        result = await notifier.send("EMAIL", "owner@example.com", "https://portal.example/c/1")

        assert "simulated" not in result
        assert seen["auth"] == "Bearer SG.test"
        assert seen["body"]["personalizations"] == [{"to": [{"email": "owner@example.com"}]}]
        assert seen["body"]["content"][0]["value"] == (
            "Welcome! Access your portal here: https://portal.example/c/1"
        )

    @pytest.mark.asyncio
    async def test_sms_via_twilio(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["form"] = dict(httpx.QueryParams(request.content.decode()))
            return httpx.Response(201, json={"sid": "SM1"})

        notifier = NotificationService(
            twilio_sid="AC123",
            twilio_token="token",
            twilio_from="+15550000000",
            client=_client(handler),
        )
        await notifier.send("sms", "+15551234567", None, message="Your report is ready")

        assert seen["url"] == "https://api.twilio.com/2010-04-01/Accounts/AC123/Messages.json"
        assert seen["form"] == {"From": "+15550000000", "To": "+15551234567", "Body": "Your report is ready"}

    @pytest.mark.asyncio
    async def test_upstream_error_raises(self):
        notifier = NotificationService(
            sendgrid_api_key="SG.test",
            client=_client(lambda r: httpx.Response(400, text="bad from address")),
        )
        with pytest.raises(ToolExecutionError, match="SendGrid error: 400"):
            await notifier.send("email", "owner@example.com", "https://x.example")

    @pytest.mark.asyncio
    async def test_invalid_requests(self):
        notifier = NotificationService()
        with pytest.raises(ToolExecutionError, match="Unsupported notification channel"):
            await notifier.send("fax", "+1555", None)
        with pytest.raises(ToolExecutionError, match="No sms target provided"):
            await notifier.send("sms", "", None)


# ============================================
# Reports
# ============================================


class TestMarkdownReport:
    """Tests for render_markdown_report."""

    def test_sections(self):
        audit = {
            "auditId": "aud_1_abc",
            "businessName": "Sunset Plumbing",
            "location": "San Diego, CA",
            **template_analysis("Sunset Plumbing", None, {}),
            "marketPosition": analyze_market_position(PLACE, COMPETITORS),
        }

        report = render_markdown_report(audit)

        assert report.startswith("# Audit Report: Sunset Plumbing")
        assert "Location: San Diego, CA" in report
        assert "| Overall | 19/100 |" in report
        assert "- **No website provided** (critical, website)" in report
        assert "1. **Create a professional website**" in report
        assert "Position: leading" in report
        assert report.endswith("Generated by Morrow.AI.")

    def test_minimal_audit(self):
        report = render_markdown_report({})
        assert "# Audit Report: Unknown business" in report
        assert "Audit completed." in report
