"""
Product URL canonicalization.

Maps a raw anchor href to the canonical identifier of a product
(``scheme://host/discover/{org}/{product}``) or None when the href does
not point at a product page.
"""

from typing import Optional, Tuple
from urllib.parse import urljoin, urlsplit, urlunsplit

RESERVED_SEGMENTS: Tuple[str, ...] = ("search",)
REJECT_FRAGMENTS: Tuple[str, ...] = ("/discover/search", "/search?")


def canonicalize(raw_href: Optional[str], page_origin: str) -> Optional[str]:
    """
    Canonicalize an anchor href.

    Args:
        raw_href: href attribute as found in the document (may be relative)
        page_origin: URL of the page the href was found on

    Returns:
        Canonical product URL, or None if the href is not a product link
    """
    if not raw_href:
        return None
    href = raw_href.strip()
    if not href or any(fragment in href for fragment in REJECT_FRAGMENTS):
        return None

    try:
        parts = urlsplit(urljoin(page_origin, href))
        port = parts.port
    except ValueError:
        return None

    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    if scheme not in ("http", "https") or not host:
        return None

    path = parts.path
    if path.endswith("/"):
        path = path[:-1]
    segments = path.split("/")
    if len(segments) != 4 or segments[0] != "" or segments[1] != "discover":
        return None

    org, product = segments[2], segments[3]
    if not org or not product:
        return None
    if org in RESERVED_SEGMENTS or product in RESERVED_SEGMENTS:
        return None

    netloc = f"{host}:{port}" if port else host
    canonical = urlunsplit((scheme, netloc, f"/discover/{org}/{product}", "", ""))
    # A relative href can resolve into the reserved namespace
    if any(fragment in canonical for fragment in REJECT_FRAGMENTS):
        return None
    return canonical


def is_product_url(raw_href: Optional[str], page_origin: str) -> bool:
    return canonicalize(raw_href, page_origin) is not None
