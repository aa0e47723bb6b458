"""LLM module exceptions."""


class LLMError(Exception):
    """Base exception for LLM operations."""

    def __init__(self, message: str = "LLM error occurred"):
        self.message = message
        super().__init__(self.message)


class LLMNotConfiguredError(LLMError):
    """Raised when no API key is configured for the LLM provider."""

    def __init__(self):
        super().__init__("LLM API key not configured")


class LLMCallError(LLMError):
    """Raised when the LLM provider call fails (network, HTTP status, payload)."""

    def __init__(self, message: str = "LLM call failed"):
        super().__init__(message)


class LLMResponseParseError(LLMError):
    """Raised when no JSON object can be recovered from an LLM response."""

    def __init__(self, message: str = "Model did not return valid JSON"):
        super().__init__(message)
