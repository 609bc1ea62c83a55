"""Request classification and canonical request identity.

:func:`classify` maps every intercepted request onto exactly one
:class:`~stowaway.models.RequestClass`. It is pure and total: it never
raises and never looks at the cache or the network.

Rules, in order:

1. **API** -- the URL path starts with the reserved API prefix, or the URL
   host equals the origin service host.
2. **DOCUMENT** -- the destination tag is ``"document"`` (a top-level
   navigation).
3. **STATIC** -- everything else.
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import urljoin, urlsplit

import httpx

from stowaway.models import InterceptedRequest, RequestClass

DOCUMENT_DESTINATION = "document"


def classify(
    request: InterceptedRequest,
    api_prefix: str = "/v1/",
    api_host: Optional[str] = None,
) -> RequestClass:
    """Return the request class that selects the retrieval strategy.

    Args:
        request: The intercepted request.
        api_prefix: Path prefix reserved for API calls. An empty prefix
            disables prefix matching.
        api_host: Hostname of the origin API service, compared
            case-insensitively. ``None`` disables host matching.
    """
    try:
        parts = urlsplit(request.url)
        path, host = parts.path or "/", parts.hostname or ""
    except ValueError:
        # Malformed netloc (e.g. an unclosed IPv6 bracket): no host to match.
        path, host = request.url, ""
    if api_prefix and path.startswith(api_prefix):
        return RequestClass.API
    if api_host and host.lower() == api_host.lower():
        return RequestClass.API
    if request.destination == DOCUMENT_DESTINATION:
        return RequestClass.DOCUMENT
    return RequestClass.STATIC


def absolute_url(url: str, base_url: Optional[str] = None) -> str:
    """Resolve *url* against *base_url* when it is relative.

    Absolute URLs are returned unchanged, as are relative URLs when no base
    is configured and URLs too malformed to split.
    """
    try:
        relative = not urlsplit(url).scheme
    except ValueError:
        return url
    if base_url and relative:
        return urljoin(base_url, url)
    return url


def request_identity(method: str, url: str) -> str:
    """Return the canonical ``METHOD|URL`` identity used as the cache key.

    A URL httpx cannot parse keeps its raw spelling.
    """
    try:
        normalised = str(httpx.URL(url))
    except (httpx.InvalidURL, ValueError):
        normalised = url
    return f"{method.upper()}|{normalised}"
