from __future__ import annotations

from typing import Mapping
from urllib.parse import quote, urlparse

_UNRESERVED = "-_.!~*'()"


def append_query(url: str, params: Mapping[str, object]) -> str:
    """Appends URL-encoded query parameters, keeping any existing query string."""

    pairs = []
    for key, value in params.items():
        if value is None or value is False or value == "":
            value = ""
        pairs.append(f"{quote(str(key), safe=_UNRESERVED)}={quote(str(value), safe=_UNRESERVED)}")
    if not pairs:
        return url
    separator = "&" if "?" in url else "?"
    return url + separator + "&".join(pairs)


def parse_cookies(cookie_header: str, url: str) -> list[dict[str, str]]:
    """Splits a ``name=value; other=value`` string into WebDriver cookie dicts."""

    if not cookie_header:
        return []
    hostname = urlparse(url).hostname or ""
    cookies: list[dict[str, str]] = []
    for pair in cookie_header.split(";"):
        if not pair.strip():
            continue
        name, _, value = pair.strip().partition("=")
        cookies.append(
            {
                "name": name.strip(),
                "value": value.strip(),
                "domain": hostname,
                "path": "/",
            }
        )
    return cookies


def page_label(url: str) -> str:
    return urlparse(url).path or "/"
