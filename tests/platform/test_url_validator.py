import pytest

from app.platform.utils.url_validator import is_same_origin, normalize_url, origin_of, validate_url


@pytest.mark.parametrize(
    "url,base,expected",
    [
        ("https://Example.ORG", None, "https://example.org/"),
        ("/about", "https://example.org/", "https://example.org/about"),
        ("team", "https://example.org/about/", "https://example.org/about/team"),
        ("https://example.org/a#section", None, "https://example.org/a"),
        ("https://example.org/search?q=1", None, "https://example.org/search?q=1"),
        ("  /padded  ", "https://example.org/", "https://example.org/padded"),
    ],
)
def test_normalize_url(url, base, expected):
    assert normalize_url(url, base) == expected


@pytest.mark.parametrize(
    "url",
    ["", "   ", "mailto:team@example.org", "javascript:void(0)", "tel:+15551234", "ftp://example.org/"],
)
def test_normalize_rejects_non_http(url):
    assert normalize_url(url, "https://example.org/") is None


def test_fragment_only_link_resolves_to_page():
    assert normalize_url("#top", "https://example.org/a") == "https://example.org/a"


def test_same_origin():
    origin = origin_of("https://Example.org/start")

    assert origin == "https://example.org"
    assert is_same_origin("https://example.org/x", origin)
    assert not is_same_origin("http://example.org/x", origin)
    assert not is_same_origin("https://example.org:8443/x", origin)
    assert not is_same_origin("https://sub.example.org/x", origin)
    assert not is_same_origin("/relative", origin)


def test_validate_url():
    assert validate_url("https://example.org") == (True, "https://example.org", "")

    ok, _, error = validate_url("")
    assert not ok and "empty" in error

    ok, _, error = validate_url("example.org")
    assert not ok and "scheme" in error

    ok, _, error = validate_url("https://")
    assert not ok and "domain" in error
