"""LLM module Pydantic schemas."""

from pydantic import BaseModel


class LLMResponse(BaseModel):
    """Raw text returned by the model."""

    content: str
    model: str | None = None
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
