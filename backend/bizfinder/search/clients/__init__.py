"""External API clients for web search."""

from bizfinder.search.clients.google_search import (
    GoogleSearchClient,
    close_google_search_client,
    get_google_search_client,
)

__all__ = [
    "GoogleSearchClient",
    "get_google_search_client",
    "close_google_search_client",
]
