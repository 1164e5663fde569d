"""
Google Places business data.

Finds a business and its nearby competitors, and benchmarks the
business against its local market. Every lookup degrades to ``None`` or
``[]`` when the service is unconfigured or the API fails.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Optional

import httpx

from ..domain.ports import IPlacesProvider

logger = logging.getLogger(__name__)

PLACES_BASE_URL = "https://maps.googleapis.com/maps/api/place"
DETAIL_FIELDS = (
    "name,formatted_address,formatted_phone_number,international_phone_number,website,"
    "rating,user_ratings_total,reviews,opening_hours,photos,types,price_level,"
    "business_status,geometry,vicinity,place_id"
)
GENERIC_TYPES = frozenset({"establishment", "point_of_interest", "premise", "store"})
MAX_COMPETITORS = 10


class GooglePlacesService(IPlacesProvider):
    """Places API client over httpx.

    Usage:
        places = GooglePlacesService(api_key="...")
        place = await places.find_business("Sunset Plumbing", "San Diego, CA")
        competitors = await places.find_competitors(place)
        market = analyze_market_position(place, competitors)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        base_url: str = PLACES_BASE_URL,
        timeout: float = 10.0,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._client = client
        self._owns_client = client is None
        self.timeout = timeout
        if not api_key:
            logger.warning("Google Places API not configured - set GOOGLE_PLACES_API_KEY")

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def _get_json(self, endpoint: str, params: dict[str, Any]) -> dict[str, Any]:
        response = await self._get_client().get(
            f"{self.base_url}/{endpoint}/json",
            params={**params, "key": self.api_key},
        )
        data = response.json()
        if response.status_code >= 400:
            raise httpx.HTTPStatusError(
                f"Places API error: {data.get('error_message') or response.status_code}",
                request=response.request,
                response=response,
            )
        return data

    async def find_business(
        self, name: str, location: Optional[str] = None
    ) -> Optional[dict[str, Any]]:
        """Text search for the business, then fetch its details.

        Returns:
            Place details, or None if unconfigured, not found, or on error
        """
        if not self.is_configured:
            return None

        query = f"{name} {location}" if location else name
        try:
            search = await self._get_json("textsearch", {"query": query})
            results = search.get("results") or []
            if not results:
                logger.info(f"No Places results for: {query}")
                return None

            place_id = results[0].get("place_id")
            details = await self._get_json(
                "details", {"place_id": place_id, "fields": DETAIL_FIELDS}
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Google Places lookup failed: {e}")
            return None

        result = details.get("result")
        if result is not None and "place_id" not in result:
            result["place_id"] = place_id
        return result

    async def find_competitors(
        self,
        place: dict[str, Any],
        business_type: Optional[str] = None,
        radius_meters: int = 5000,
    ) -> list[dict[str, Any]]:
        """Nearby businesses of the same type, excluding the business itself."""
        location = ((place or {}).get("geometry") or {}).get("location")
        if not self.is_configured or not location:
            return []

        search_type = business_type
        types = place.get("types") or []
        if not search_type and types:
            search_type = next((t for t in types if t not in GENERIC_TYPES), types[0])

        try:
            data = await self._get_json(
                "nearbysearch",
                {
                    "location": f"{location['lat']},{location['lng']}",
                    "radius": radius_meters,
                    "type": search_type or "establishment",
                },
            )
        except (httpx.HTTPError, ValueError, KeyError) as e:
            logger.error(f"Competitor search failed: {e}")
            return []

        competitors = []
        for candidate in data.get("results") or []:
            if candidate.get("place_id") == place.get("place_id"):
                continue
            photos = candidate.get("photos") or []
            competitors.append(
                {
                    "name": candidate.get("name"),
                    "placeId": candidate.get("place_id"),
                    "rating": candidate.get("rating") or 0,
                    "userRatingsTotal": candidate.get("user_ratings_total") or 0,
                    "priceLevel": candidate.get("price_level"),
                    "businessStatus": candidate.get("business_status"),
                    "types": candidate.get("types") or [],
                    "vicinity": candidate.get("vicinity"),
                    "photoReference": photos[0].get("photo_reference") if photos else None,
                }
            )
        return competitors[:MAX_COMPETITORS]

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()


def _competitor_strength(competitor: dict[str, Any]) -> float:
    return (competitor.get("rating") or 0) * math.log(1 + (competitor.get("userRatingsTotal") or 0))


def analyze_market_position(
    business: Optional[dict[str, Any]], competitors: list[dict[str, Any]]
) -> dict[str, Any]:
    """Benchmark a business against local competitors.

    Rating more than 0.3 above the competitor average is 'leading', more
    than 0.3 below is 'lagging'. Review volume is compared at 1.5x and
    0.5x the average. The top competitor maximizes rating * ln(1 + reviews).
    """
    if not business or not competitors:
        return {
            "marketPosition": "insufficient-data",
            "insights": ["Not enough competitor data available for analysis"],
            "benchmarks": {},
        }

    ratings = [c["rating"] for c in competitors if (c.get("rating") or 0) > 0]
    review_counts = [
        c["userRatingsTotal"] for c in competitors if (c.get("userRatingsTotal") or 0) > 0
    ]
    avg_rating = sum(ratings) / len(ratings) if ratings else 0.0
    avg_reviews = sum(review_counts) / len(review_counts) if review_counts else 0.0

    rating = business.get("rating") or 0
    reviews = business.get("user_ratings_total") or 0

    position = "average"
    insights = []
    if rating > avg_rating + 0.3:
        position = "leading"
        insights.append(
            f"Rating ({rating}) is above local average ({avg_rating:.1f}) - strong reputation advantage"
        )
    elif rating < avg_rating - 0.3:
        position = "lagging"
        insights.append(
            f"Rating ({rating}) is below local average ({avg_rating:.1f}) - reputation improvement needed"
        )

    if reviews > avg_reviews * 1.5:
        insights.append(
            f"Review volume ({reviews}) significantly higher than average ({round(avg_reviews)}) "
            "- strong online presence"
        )
    elif reviews < avg_reviews * 0.5:
        insights.append(
            f"Review volume ({reviews}) below average ({round(avg_reviews)}) "
            "- need more customer engagement"
        )

    top = competitors[0]
    for competitor in competitors[1:]:
        if _competitor_strength(competitor) > _competitor_strength(top):
            top = competitor
    insights.append(
        f"Top local competitor: {top.get('name')} "
        f"({top.get('rating')}/5, {top.get('userRatingsTotal')} reviews)"
    )

    return {
        "marketPosition": position,
        "insights": insights,
        "benchmarks": {
            "avgRating": round(avg_rating, 1),
            "avgReviewCount": round(avg_reviews),
            "totalCompetitors": len(competitors),
            "topCompetitor": top.get("name"),
        },
    }
