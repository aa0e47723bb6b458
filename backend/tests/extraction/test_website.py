"""Tests for website normalization."""

import pytest

from bizfinder.extraction.website import normalize_website


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://WWW.Example.com/path?x=1", "example.com"),
        ("http://acme.co.uk", "acme.co.uk"),
        ("acme.com/contact#form", "acme.com"),
        ("www.acme.com:8080/home", "acme.com"),
        ("//cdn.acme.com/asset", "cdn.acme.com"),
        ("  Acme.COM  ", "acme.com"),
        ("", ""),
    ],
)
def test_normalize_website(url, expected):
    """Should reduce URLs to a bare lowercase domain."""
    assert normalize_website(url) == expected


def test_normalize_website_is_stable():
    """Should return the same value when applied twice."""
    once = normalize_website("https://www.Example.com/a/b")

    assert normalize_website(once) == once
