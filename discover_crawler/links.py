"""
Product link extraction from the live search document.

LinkExtractor runs the layered anchor scans; MutationAccumulator keeps an
in-page MutationObserver that records product links as they are attached.
"""

import logging
from typing import Iterable, List, Tuple

from .canonicalize import canonicalize
from .config import SiteConfig
from .exceptions import SessionClosedError, SessionError
from .scripts import (
    ALL_HREFS,
    ANCHOR_HREFS,
    CONTAINER_HREFS,
    DISCONNECT_OBSERVER,
    DRAIN_OBSERVED,
    INSTALL_OBSERVER,
)
from .session import BrowserSession

logger = logging.getLogger(__name__)

LAYER_ANCHORS = "anchors"
LAYER_CONTAINERS = "containers"
LAYER_ALL = "all_anchors"


def canonicalize_all(hrefs: Iterable[str], page_origin: str) -> List[str]:
    """Canonicalize hrefs, dropping non-products and duplicates, keeping order."""
    seen = set()
    urls = []
    for href in hrefs or []:
        url = canonicalize(href, page_origin)
        if url and url not in seen:
            seen.add(url)
            urls.append(url)
    return urls


class LinkExtractor:
    """Extracts canonical product URLs from the current document."""

    def __init__(self, session: BrowserSession, site: SiteConfig):
        self.session = session
        self.site = site

    @property
    def page_origin(self) -> str:
        return self.session.url or self.site.base_url

    async def _hrefs(self, script: str, arg=None) -> List[str]:
        try:
            hrefs = await self.session.evaluate(script, arg)
        except SessionError as e:
            logger.warning(f"Link scan failed: {e}")
            return []
        return canonicalize_all(hrefs, self.page_origin)

    async def anchor_layer(self) -> List[str]:
        """Anchors whose href contains the product path prefix."""
        return await self._hrefs(ANCHOR_HREFS, self.site.product_link_selector)

    async def container_layer(self) -> List[str]:
        """First inner anchor of every card/item-like container."""
        return await self._hrefs(CONTAINER_HREFS, list(self.site.container_selectors))

    async def unfiltered_layer(self) -> List[str]:
        """Every anchor in the document."""
        return await self._hrefs(ALL_HREFS)

    async def collect_layered(self) -> Tuple[List[str], str]:
        """
        Run the extraction layers in order and keep the first non-empty one.

        Returns:
            (urls, layer name); urls is empty when every layer came back empty
        """
        layers = [
            (LAYER_ANCHORS, self.anchor_layer),
            (LAYER_CONTAINERS, self.container_layer),
            (LAYER_ALL, self.unfiltered_layer),
        ]
        for name, scan in layers:
            urls = await scan()
            if urls:
                logger.info(f"Extraction layer '{name}' found {len(urls)} products")
                return urls, name
            logger.debug(f"Extraction layer '{name}' found nothing")
        return [], ""

    async def count(self) -> int:
        """Number of distinct canonical product links currently in the document."""
        return len(await self.anchor_layer())


class MutationAccumulator:
    """
    Collects product links attached to the document between drains.

    Owned by a single discovery run: installed after the search page loads
    and disposed when the run ends. If installation fails the run falls back
    to plain polling and drain() returns nothing.
    """

    def __init__(self, session: BrowserSession, site: SiteConfig):
        self.session = session
        self.site = site
        self.installed = False

    async def install(self) -> bool:
        try:
            self.installed = bool(await self.session.evaluate(INSTALL_OBSERVER, self.site.product_path_prefix))
        except SessionError as e:
            logger.warning(f"Mutation observer unavailable, relying on polling: {e}")
            self.installed = False
        return self.installed

    async def drain(self) -> List[str]:
        """Canonical product URLs observed since the previous drain."""
        if not self.installed:
            return []
        try:
            hrefs = await self.session.evaluate(DRAIN_OBSERVED)
        except SessionError as e:
            logger.debug(f"Mutation drain failed: {e}")
            return []
        return canonicalize_all(hrefs, self.session.url or self.site.base_url)

    async def dispose(self) -> None:
        if not self.installed:
            return
        self.installed = False
        try:
            await self.session.evaluate(DISCONNECT_OBSERVER)
        except (SessionError, SessionClosedError) as e:
            logger.debug(f"Mutation observer disconnect failed: {e}")

    async def __aenter__(self) -> "MutationAccumulator":
        await self.install()
        return self

    async def __aexit__(self, *args) -> None:
        await self.dispose()
