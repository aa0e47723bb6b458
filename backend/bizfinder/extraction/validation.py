"""Structural validation of a single-result classification returned by the LLM."""

import logging
from typing import Any

from bizfinder.extraction.website import normalize_website

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.5
DEFAULT_EXTRACTED_FROM = "title"
MAX_CATEGORIES = 10


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _coerce_confidence(value: Any) -> float:
    if isinstance(value, bool):
        return DEFAULT_CONFIDENCE
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return DEFAULT_CONFIDENCE
    if confidence != confidence:  # NaN
        return DEFAULT_CONFIDENCE
    return min(max(confidence, 0.0), 1.0)


def _coerce_categories(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    categories: list[str] = []
    for item in value:
        label = _optional_str(item)
        if label and label not in categories:
            categories.append(label)
        if len(categories) >= MAX_CATEGORIES:
            break
    return categories


def unwrap_classification(data: dict[str, Any]) -> dict[str, Any]:
    """Accept either a single classification or a batch-shaped ``{"businesses": [...]}``."""
    businesses = data.get("businesses")
    if isinstance(businesses, list) and businesses and isinstance(businesses[0], dict):
        return businesses[0]
    return data


def coerce_classification(data: dict[str, Any] | None) -> dict[str, Any] | None:
    """Validate and normalize one classification.

    Only ``website`` (non-empty string) and ``isCompanyWebsite`` (bool) are
    required; everything else is defaulted.

    Args:
        data: Parsed JSON object from the model

    Returns:
        Normalized snake_case fields, or None if the required fields are missing
    """
    if not isinstance(data, dict):
        return None

    data = unwrap_classification(data)

    website = data.get("website")
    is_company_website = data.get("isCompanyWebsite")

    if not isinstance(website, str) or not website.strip():
        logger.debug("Classification missing 'website'")
        return None
    if not isinstance(is_company_website, bool):
        logger.debug("Classification missing boolean 'isCompanyWebsite'")
        return None

    normalized_website = normalize_website(website)
    if not normalized_website:
        logger.debug(f"Classification website '{website}' has no domain")
        return None

    return {
        "website": normalized_website,
        "company_name": _optional_str(data.get("companyName")),
        "is_company_website": is_company_website,
        "confidence": _coerce_confidence(data.get("confidence", DEFAULT_CONFIDENCE)),
        "extracted_from": _optional_str(data.get("extractedFrom")) or DEFAULT_EXTRACTED_FROM,
        "city": _optional_str(data.get("city")),
        "state_province": _optional_str(data.get("stateProvince")),
        "country": _optional_str(data.get("country")),
        "categories": _coerce_categories(data.get("categories")),
    }


def is_valid_batch_output(data: Any) -> bool:
    """Check the shape of a whole-batch response (``businesses`` + ``summary``)."""
    if not isinstance(data, dict):
        return False
    if not isinstance(data.get("businesses"), list):
        return False
    if not isinstance(data.get("summary"), dict):
        return False

    for business in data["businesses"]:
        if not isinstance(business, dict):
            return False
        if not isinstance(business.get("website"), str) or not business["website"]:
            return False
        if not isinstance(business.get("isCompanyWebsite"), bool):
            return False
        confidence = business.get("confidence")
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            return False
        if confidence < 0 or confidence > 1:
            return False

    return True
