from typing import Optional, Tuple
from urllib.parse import urldefrag, urljoin, urlparse


def normalize_url(url: str, base: Optional[str] = None) -> Optional[str]:
    """
    Resolve `url` against `base` and return the canonical absolute form used
    as the crawler's visited key. Fragments are dropped, scheme and host are
    lower-cased. Returns None for non-http(s) or malformed links.
    """
    if not url or not url.strip():
        return None

    try:
        absolute = urljoin(base, url.strip()) if base else url.strip()
        absolute, _ = urldefrag(absolute)
        parsed = urlparse(absolute)
    except ValueError:
        return None

    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None

    path = parsed.path or "/"
    return parsed._replace(
        scheme=parsed.scheme.lower(), netloc=parsed.netloc.lower(), path=path
    ).geturl()


def origin_of(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme.lower()}://{parsed.netloc.lower()}"


def is_same_origin(url: str, origin: str) -> bool:
    """
    Check if URL belongs to the same origin (scheme + host + port) as base.
    """
    try:
        parsed = urlparse(url)
        if not parsed.scheme or not parsed.netloc:
            return False
        return origin_of(url) == origin
    except ValueError:
        return False


def validate_url(url: str) -> Tuple[bool, str, str]:
    if not url or not url.strip():
        return False, "", "URL cannot be empty"

    normalized = url.strip()
    try:
        parsed = urlparse(normalized)

        if parsed.scheme not in ['http', 'https']:
            return False, normalized, f"Invalid URL scheme: {parsed.scheme or 'missing'} (must be http or https)"

        if not parsed.netloc:
            return False, normalized, "Invalid URL format: missing domain"

        return True, normalized, ""

    except ValueError as e:
        return False, normalized, f"URL parsing error: {str(e)}"
