"""
Text, URL and timestamp helpers shared by the source adapters.
"""
import html
import re
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Optional
from urllib.parse import urljoin, urlparse

from newsfilter.core.clock import as_naive_utc

_CDATA_RE = re.compile(r"<!\[CDATA\[|\]\]>")
_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")


def collapse_whitespace(text: str) -> str:
    return _WS_RE.sub(" ", text).strip()


def strip_markup(text: Optional[str]) -> str:
    """Remove CDATA wrappers and HTML tags, decode entities, normalize whitespace."""
    if not text:
        return ""
    if not isinstance(text, str):
        text = str(text)

    clean = _CDATA_RE.sub("", text)
    clean = _TAG_RE.sub(" ", clean)
    clean = html.unescape(clean)
    return collapse_whitespace(clean)


def truncate(text: Optional[str], limit: int) -> Optional[str]:
    """Cut text to `limit` characters; empty text becomes None."""
    if not text:
        return None
    return text[:limit]


def resolve_url(url: Optional[str], base: str) -> str:
    """Resolve `url` against `base`. Absolute URLs pass through unchanged."""
    if not url:
        return ""
    url = url.strip()
    if urlparse(url).scheme:
        return url
    try:
        return urljoin(base, url)
    except ValueError:
        return url


def is_http_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an RFC 822 or ISO 8601 timestamp into naive UTC.

    Returns None for empty or malformed input; never substitutes "now".
    """
    if not value or not isinstance(value, str):
        return None
    value = value.strip()
    if not value:
        return None

    try:
        return as_naive_utc(parsedate_to_datetime(value))
    except (TypeError, ValueError, IndexError):
        pass

    try:
        return as_naive_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        return None
