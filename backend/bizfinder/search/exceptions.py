"""Search module exceptions."""


class SearchError(Exception):
    """Base exception for search provider operations."""

    def __init__(self, message: str = "Search error occurred"):
        self.message = message
        super().__init__(self.message)


class SearchNotConfiguredError(SearchError):
    """Raised when the search provider key or engine ID is missing."""

    def __init__(self):
        super().__init__("Missing search API key or search engine ID")


class NoQueriesError(SearchError):
    """Raised when a search request carries no non-empty query."""

    def __init__(self):
        super().__init__("No search queries provided")
