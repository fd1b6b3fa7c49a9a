"""
URL utilities for the web-server flow.

This module handles:
- Extracting provider hosts from loosely formatted URLs
- Canonicalizing custom ("my domain") hosts
- Reading repeated query parameters
- Computing the public origin used in redirect URIs
"""

import re
from typing import List, Optional
from urllib.parse import parse_qsl, urlsplit

from starlette.requests import Request

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)


def parse_domain(url: Optional[str] = None) -> Optional[str]:
    """
    Extract the host from a URL that may omit the scheme or carry a path.

    Args:
        url: e.g. "https://my.domain/some/path" or "my.domain/some/path"

    Returns:
        Host name, or None if no host can be extracted

    Example:
        >>> parse_domain("my.domain/some/path")
        'my.domain'
        >>> parse_domain("/invalid/url") is None
        True
    """
    if url is None:
        return None

    url = str(url).strip()
    if not _SCHEME_RE.match(url):
        url = "https://" + url

    try:
        host = urlsplit(url).hostname
    except ValueError:
        return None

    if host is None or not host.strip():
        return None
    return host.strip()


def sanitize_mydomain(mydomain: Optional[str], suffix: str) -> Optional[str]:
    """
    Canonicalize a custom domain to ``<subdomain><suffix>``.

    Args:
        mydomain: Value of the ``mydomain`` request parameter
        suffix: Canonical custom-domain suffix, e.g. ".my.salesforce.com"

    Returns:
        Canonical host, or None if no host can be extracted
    """
    host = parse_domain(mydomain)
    if host is None:
        return None
    suffix = suffix.lower()
    return host.split(suffix)[0] + suffix


def param_repeated(url: Optional[str], param_name: Optional[str]) -> Optional[List[str]]:
    """
    Collect every value of a (possibly repeated) query parameter.

    Returns:
        Values in the order they appear, or None for a blank url or name
    """
    if not url or not url.strip() or not param_name:
        return None
    query = urlsplit(url).query
    return [value for name, value in parse_qsl(query, keep_blank_values=True) if name == param_name]


def full_host(request: Request, origin: Optional[str] = None) -> str:
    """
    Public scheme and host of this application, without a trailing slash.

    A configured origin wins. Otherwise the request URL is used, switching
    to https when a proxy reports ``X-Forwarded-Proto: https``.
    """
    if origin and origin.strip():
        return origin.strip().rstrip("/")

    scheme = request.url.scheme
    if request.headers.get("x-forwarded-proto") == "https":
        scheme = "https"
    return f"{scheme}://{request.url.netloc}"
