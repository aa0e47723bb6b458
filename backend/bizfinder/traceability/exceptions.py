"""Traceability module exceptions."""


class TraceabilityError(Exception):
    """Base exception for traceability operations."""

    def __init__(self, message: str = "Traceability error occurred"):
        self.message = message
        super().__init__(self.message)


class SearchSessionNotFoundError(TraceabilityError):
    """Raised when a search session does not exist."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Search session {session_id} not found")
