"""
Detail Extractor
Visits a product page and pulls the product name, creator and creator
social links.

Extraction order:
    1. Name: first <h1>, else the document title without the site suffix
    2. Creator name: brand.name of the first JSON-LD Product entry
    3. Creator handle: first non-house profile link (whop.com/@handle)
    4. Social links: first link per platform, house accounts skipped
    5. Fallback: creator profile page when the product page had no socials
"""

import json
import logging
import re
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urljoin, urlsplit

from .config import CrawlerConfig, SOCIAL_FIELDS, SiteConfig
from .exceptions import SessionError
from .models import ProductRecord
from .scripts import ALL_HREFS, DETAIL_SNAPSHOT
from .session import BrowserSession

logger = logging.getLogger(__name__)

# Category -> registrable domains (subdomains match too)
SOCIAL_DOMAINS: Dict[str, tuple] = {
    "twitter": ("twitter.com", "x.com"),
    "instagram": ("instagram.com",),
    "youtube": ("youtube.com", "youtu.be"),
    "tiktok": ("tiktok.com",),
    "discord": ("discord.gg", "discord.com"),
    "linkedin": ("linkedin.com",),
    "telegram": ("t.me", "telegram.me"),
}

HANDLE_PATTERN = re.compile(r"^@([A-Za-z0-9_]+)$")


# ============================================================================
# Pure parsing helpers
# ============================================================================

def parse_display_name(heading: str, title: str, title_suffix: str = "") -> str:
    heading = (heading or "").strip()
    if heading:
        return heading
    title = (title or "").strip()
    if title_suffix and title.endswith(title_suffix):
        title = title[:-len(title_suffix)]
    return title.strip()


def _iter_json_ld_nodes(data: Any) -> Iterable[Dict[str, Any]]:
    if isinstance(data, list):
        for item in data:
            yield from _iter_json_ld_nodes(item)
    elif isinstance(data, dict):
        yield data
        if "@graph" in data:
            yield from _iter_json_ld_nodes(data["@graph"])


def _is_product(node: Dict[str, Any]) -> bool:
    node_type = node.get("@type")
    if isinstance(node_type, list):
        return "Product" in node_type
    return node_type == "Product"


def parse_creator_name(json_ld_blocks: Iterable[str]) -> str:
    """brand.name of the first Product entry; malformed blocks are skipped."""
    for block in json_ld_blocks or []:
        try:
            data = json.loads(block)
        except (TypeError, ValueError):
            logger.debug("Skipping malformed JSON-LD block")
            continue
        for node in _iter_json_ld_nodes(data):
            if not _is_product(node):
                continue
            brand = node.get("brand")
            if isinstance(brand, list):
                brand = brand[0] if brand else None
            if isinstance(brand, dict) and isinstance(brand.get("name"), str) and brand["name"].strip():
                return brand["name"].strip()
            if isinstance(brand, str) and brand.strip():
                return brand.strip()
    return ""


def _host(url: str) -> str:
    try:
        return (urlsplit(url).hostname or "").lower()
    except ValueError:
        return ""


def _host_matches(host: str, domain: str) -> bool:
    return host == domain or host.endswith("." + domain)


def is_house_link(href: str, site: SiteConfig) -> bool:
    """True when any path segment of the link names a platform-owned account."""
    house = {h.lower() for h in site.house_handles}
    try:
        path = urlsplit(href).path
    except ValueError:
        return False
    for segment in path.split("/"):
        if segment.lstrip("@").lower() in house:
            return True
    return False


def find_creator_handle(hrefs: Iterable[str], site: SiteConfig, page_url: str = "") -> str:
    """First non-house profile handle among the links, formatted as @handle."""
    base = page_url or site.base_url
    house = {h.lower() for h in site.house_handles}
    for href in hrefs or []:
        try:
            absolute = urljoin(base, href)
            parts = urlsplit(absolute)
        except ValueError:
            continue
        if not _host_matches((parts.hostname or "").lower(), site.profile_host):
            continue
        first_segment = parts.path.strip("/").split("/")[0]
        match = HANDLE_PATTERN.match(first_segment)
        if not match:
            continue
        handle = match.group(1)
        if handle.lower() in house:
            continue
        return f"@{handle}"
    return ""


def classify_social_link(href: str) -> Optional[str]:
    host = _host(href)
    if not host:
        return None
    for category in SOCIAL_FIELDS:
        if any(_host_matches(host, domain) for domain in SOCIAL_DOMAINS[category]):
            return category
    return None


def classify_social_links(hrefs: Iterable[str], site: SiteConfig) -> Dict[str, str]:
    """First link per social category; house-account links never count."""
    found: Dict[str, str] = {}
    for href in hrefs or []:
        if not href or is_house_link(href, site):
            continue
        category = classify_social_link(href)
        if category and category not in found:
            found[category] = href
    return found


# ============================================================================
# Extractor
# ============================================================================

class DetailExtractor:
    """Extracts a ProductRecord from a product page."""

    def __init__(self, session: BrowserSession, config: CrawlerConfig):
        self.session = session
        self.config = config
        self.site = config.site_config

    async def _snapshot(self, url: str) -> Dict[str, Any]:
        await self.session.navigate(url, wait_until="networkidle", timeout=self.config.detail_nav_timeout)
        snapshot = await self.session.evaluate(DETAIL_SNAPSHOT)
        return snapshot if isinstance(snapshot, dict) else {}

    async def _profile_socials(self, handle: str) -> Dict[str, str]:
        """Social links from the creator's profile page; empty on any failure."""
        url = self.site.profile_url(handle)
        logger.info(f"Checking creator profile {url}")
        try:
            await self.session.navigate(url, wait_until="networkidle", timeout=self.config.profile_nav_timeout)
            hrefs = await self.session.evaluate(ALL_HREFS)
        except SessionError as e:
            logger.warning(f"Profile page failed for {handle}: {e}")
            return {}
        return classify_social_links(hrefs, self.site)

    def _needs_profile(self, record: ProductRecord) -> bool:
        return bool(record.creator_handle) and not any(
            getattr(record, name) for name in self.config.profile_fallback_when_missing
        )

    async def extract(self, product_url: str) -> ProductRecord:
        """
        Extract one product page.

        Navigation and evaluation failures yield a record with only the URL
        set. SessionClosedError propagates.

        Args:
            product_url: Canonical product URL

        Returns:
            ProductRecord
        """
        try:
            snapshot = await self._snapshot(product_url)
        except SessionError as e:
            logger.error(f"Error extracting {product_url}: {e}")
            return ProductRecord(product_url=product_url)

        hrefs: List[str] = snapshot.get("hrefs") or []
        record = ProductRecord(
            product_url=product_url,
            product_name=parse_display_name(
                snapshot.get("heading", ""), snapshot.get("title", ""), self.site.title_suffix
            ),
            creator_name=parse_creator_name(snapshot.get("json_ld") or []),
            creator_handle=find_creator_handle(hrefs, self.site, product_url),
        ).merge_socials(classify_social_links(hrefs, self.site))

        if self._needs_profile(record):
            record = record.merge_socials(await self._profile_socials(record.creator_handle))

        return record
