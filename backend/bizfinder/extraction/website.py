"""Website normalization used as the business de-duplication key."""

import re

_SCHEME_PATTERN = re.compile(r"^[a-z][a-z0-9+.-]*://")


def normalize_website(url: str) -> str:
    """Reduce a URL to its bare lowercase domain.

    Strips scheme, ``www.``, path, query string, fragment and port.

    >>> normalize_website("https://WWW.Example.com/path?x=1")
    'example.com'
    """
    if not url:
        return ""

    normalized = url.strip().lower()
    normalized = _SCHEME_PATTERN.sub("", normalized)
    if normalized.startswith("//"):
        normalized = normalized[2:]

    for separator in ("/", "?", "#"):
        normalized = normalized.split(separator, 1)[0]

    normalized = normalized.split(":", 1)[0]

    if normalized.startswith("www."):
        normalized = normalized[4:]

    return normalized.strip(".")
