"""Extraction module exceptions."""


class ExtractionError(Exception):
    """Raised when the batch classification exhausts its retries."""

    def __init__(self, message: str = "Extraction failed", attempts: int = 0):
        self.message = message
        self.attempts = attempts
        super().__init__(self.message)


class NoSearchResultsError(ExtractionError):
    """Raised when a request has no search results to classify."""

    def __init__(self, message: str = "No search results to process"):
        super().__init__(message)
