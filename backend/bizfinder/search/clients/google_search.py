"""Google Custom Search API client for finding business websites.

Google Custom Search API documentation:
https://developers.google.com/custom-search/v1/overview
"""

import logging
from typing import Any
from urllib.parse import urlparse

import httpx

from bizfinder.config import get_settings
from bizfinder.search.exceptions import SearchError, SearchNotConfiguredError
from bizfinder.search.filters import passes_filters
from bizfinder.search.schemas import QueryResult, SearchFilters, SearchResultItem

logger = logging.getLogger(__name__)

# Google CSE returns at most 10 results per request
MAX_RESULTS_PER_REQUEST = 10

BYPASS_HEADER = "x-vercel-protection-bypass"

DATE_METATAGS = ("article:published_time", "date", "og:updated_time")


class GoogleSearchClient:
    """Client for Google Custom Search API."""

    def __init__(
        self,
        api_key: str,
        cx: str,
        base_url: str = "https://www.googleapis.com/customsearch/v1",
        bypass_secret: str = "",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize Google Search client.

        Args:
            api_key: Google API key
            cx: Custom Search Engine ID
            base_url: Search endpoint (overridable for proxies)
            bypass_secret: Sent as the deployment-protection bypass header when set
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self._api_key = api_key
        self._cx = cx
        self._base_url = base_url
        self._bypass_secret = bypass_secret
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def search_engine_id(self) -> str:
        return self._cx

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key and self._cx)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {"Accept": "application/json"}
            if self._bypass_secret:
                headers[BYPASS_HEADER] = self._bypass_secret
            self._client = httpx.AsyncClient(timeout=30.0, headers=headers, transport=self._transport)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def search(
        self,
        query: str,
        filters: SearchFilters | None = None,
        limit: int = MAX_RESULTS_PER_REQUEST,
        page: int = 1,
        max_age_days: int = 365,
        require_date_filtering: bool = True,
    ) -> QueryResult:
        """Run one query and return its filtered results.

        Args:
            query: Search query
            filters: Category filters applied to the hits
            limit: Results per page (1-10)
            page: 1-based page number
            max_age_days: Maximum content age when date filtering is on
            require_date_filtering: Whether to send ``dateRestrict``

        Returns:
            QueryResult with position-numbered hits

        Raises:
            SearchNotConfiguredError: API key or CX missing
            SearchError: Provider unreachable or non-200 response
        """
        if not self.is_configured:
            raise SearchNotConfiguredError()

        params: dict[str, Any] = {
            "q": query,
            "key": self._api_key,
            "cx": self._cx,
            "num": limit,
        }
        if require_date_filtering and max_age_days > 0:
            params["dateRestrict"] = f"{max_age_days}d"
        if page > 1:
            params["start"] = (page - 1) * limit + 1

        logger.info(f"Google Search query: '{query}' (page {page}, limit {limit})")

        try:
            client = await self._get_client()
            response = await client.get(self._base_url, params=params)
        except httpx.HTTPError as e:
            logger.error(f"Google Search API request failed for '{query}': {e}")
            raise SearchError(f"Google API request failed: {e}")

        if response.status_code == 403:
            logger.error("Google Search API: Quota exceeded or invalid API key")
        elif response.status_code == 429:
            logger.warning("Google Search API: Rate limit exceeded")

        if response.status_code != 200:
            raise SearchError(f"Google API error: {response.status_code} {response.reason_phrase}")

        data = response.json()
        items = data.get("items", [])
        search_information = data.get("searchInformation", {})
        logger.info(f"Google returned {len(items)} results for '{query}'")

        filters = filters or SearchFilters()
        kept = [item for item in items if passes_filters(item.get("link", ""), filters)]
        results = [self._parse_result(item, index + 1, query) for index, item in enumerate(kept)]

        try:
            total_results = int(search_information.get("totalResults", 0))
        except (TypeError, ValueError):
            total_results = 0

        return QueryResult(
            success=True,
            results=results,
            total_results=total_results or len(results),
            search_time=float(search_information.get("searchTime", 0) or 0),
        )

    def _parse_result(self, item: dict[str, Any], position: int, query: str) -> SearchResultItem:
        """Parse a Google Search result item."""
        link = item.get("link", "")

        hostname = urlparse(link).hostname if link else None
        display_url = hostname.replace("www.", "") if hostname else (item.get("displayLink") or "Unknown domain")

        return SearchResultItem(
            position=position,
            title=item.get("title") or "No title",
            url=link,
            display_url=display_url,
            description=item.get("snippet") or "No description available",
            cache_id=item.get("cacheId"),
            query=query,
            date=self._extract_date(item),
        )

    def _extract_date(self, item: dict[str, Any]) -> str | None:
        metatags = item.get("pagemap", {}).get("metatags") or [{}]
        first = metatags[0] if isinstance(metatags[0], dict) else {}
        for key in DATE_METATAGS:
            if first.get(key):
                return str(first[key])
        return None


# =============================================================================
# Singleton instance
# =============================================================================

_google_search_client: GoogleSearchClient | None = None


def get_google_search_client() -> GoogleSearchClient:
    """Get singleton Google Search client instance."""
    global _google_search_client
    if _google_search_client is None:
        settings = get_settings()
        _google_search_client = GoogleSearchClient(
            api_key=settings.google_search_api_key,
            cx=settings.google_search_cx,
            base_url=settings.google_search_base_url,
            bypass_secret=settings.search_bypass_secret,
        )
    return _google_search_client


async def close_google_search_client() -> None:
    """Close the singleton client, if created."""
    if _google_search_client is not None:
        await _google_search_client.close()
