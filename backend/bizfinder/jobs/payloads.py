"""Typed views over the result payloads returned by the external job API.

Completed jobs carry whatever the external system produced. The payload is
classified once into a tagged union instead of probing its shape at every
call site.
"""

import json
import logging
from typing import Any, Literal

from pydantic import BaseModel

logger = logging.getLogger(__name__)

KEYWORD_LIST_FIELDS = (
    "search_terms",
    "subindustries",
    "service_queries",
    "transactional_modifiers",
    "negative_keywords",
)


class _Payload(BaseModel):
    """Fields every payload variant reports about embedded failures."""
    errors: list[str] = []
    reported_failure: bool = False

    @property
    def has_errors(self) -> bool:
        return bool(self.errors) or self.reported_failure

    @property
    def error_message(self) -> str:
        return self.errors[0] if self.errors else ""


class KeywordPayload(_Payload):
    kind: Literal["keywords"] = "keywords"
    keywords: list[str]
    search_terms: list[str] = []
    subindustries: list[str] = []
    service_queries: list[str] = []
    transactional_modifiers: list[str] = []
    negative_keywords: list[str] = []


class EnrichmentPayload(_Payload):
    kind: Literal["enrichment"] = "enrichment"
    success: bool | None = None
    data: dict[str, Any] | None = None
    error: str | None = None
    raw: dict[str, Any]


class UnrecognizedPayload(_Payload):
    kind: Literal["unrecognized"] = "unrecognized"
    raw: Any = None


JobPayload = KeywordPayload | EnrichmentPayload | UnrecognizedPayload


def decode_result(value: Any) -> Any:
    """Decode a result that arrived as a JSON string; other values pass through."""
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except ValueError:
        logger.warning("Job result is a non-JSON string, keeping it as is")
        return value


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None]


def _nested_dict(payload: dict[str, Any], *keys: str) -> dict[str, Any] | None:
    current: Any = payload
    for key in keys:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current if isinstance(current, dict) else None


def _embedded_errors(payload: dict[str, Any]) -> list[str]:
    errors = []
    for candidate in (
        payload,
        _nested_dict(payload, "result", "data"),
        _nested_dict(payload, "data"),
    ):
        if candidate and candidate.get("error"):
            errors.append(str(candidate["error"]))

    listed = payload.get("errors")
    if isinstance(listed, list):
        errors.extend(str(item) for item in listed if item)
    return errors


def _reports_failure(payload: dict[str, Any]) -> bool:
    return any(
        candidate and candidate.get("success") is False
        for candidate in (
            payload,
            _nested_dict(payload, "result"),
            _nested_dict(payload, "result", "data"),
        )
    )


def parse_job_result(payload: Any) -> JobPayload:
    """Classify a job result payload.

    Keyword results have a ``keywords`` list. Enrichment results carry a
    ``data`` object, either at the top level or under ``result``. Every
    variant records the error messages and ``success: false`` flags found
    anywhere in the payload.
    """
    payload = decode_result(payload)

    if not isinstance(payload, dict):
        return UnrecognizedPayload(raw=payload)

    failures = {
        "errors": _embedded_errors(payload),
        "reported_failure": _reports_failure(payload),
    }

    if isinstance(payload.get("keywords"), list):
        return KeywordPayload(
            keywords=_string_list(payload["keywords"]),
            **{field: _string_list(payload.get(field)) for field in KEYWORD_LIST_FIELDS},
            **failures,
        )

    data = _nested_dict(payload, "data") or _nested_dict(payload, "result", "data")
    if data is not None or "success" in payload:
        nested = _nested_dict(payload, "result") or {}
        success = payload.get("success", nested.get("success"))
        return EnrichmentPayload(
            success=success if isinstance(success, bool) else None,
            data=data,
            error=failures["errors"][0] if failures["errors"] else None,
            raw=payload,
            **failures,
        )

    return UnrecognizedPayload(raw=payload, **failures)


def result_error_message(payload: Any) -> str:
    """Find the first error message embedded in a result payload."""
    return parse_job_result(payload).error_message


def result_has_errors(payload: Any) -> bool:
    """Whether a completed job's payload reports a downstream failure."""
    return parse_job_result(payload).has_errors
