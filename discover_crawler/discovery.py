"""
Discovery Loop
Scrolls an infinite-scroll search page until enough product URLs are found
or the result stream is exhausted.

States:
    INITIAL_SCAN -> INTERACTING -> EXTRACTING -> (INTERACTING | TARGET_REACHED | CONVERGED)
    ITERATION_LIMIT ends the loop when the hard interaction cap is hit.

Usage:
    loop = DiscoveryLoop(session, config)
    result = await loop.run("TRADING", max_products=50)
"""

import asyncio
import logging
import os
import random
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional

from .config import CrawlerConfig
from .exceptions import SessionError
from .links import LinkExtractor, MutationAccumulator
from .readiness import ReadinessDetector
from .scripts import BODY_TEXT, PAGE_STATS
from .session import BrowserSession

logger = logging.getLogger(__name__)


class CrawlState(str, Enum):
    INITIAL_SCAN = "initial_scan"
    INTERACTING = "interacting"
    EXTRACTING = "extracting"
    TARGET_REACHED = "target_reached"
    CONVERGED = "converged"
    ITERATION_LIMIT = "iteration_limit"


class DiagnosticCategory(str, Enum):
    """Best guess at why a crawl found nothing."""
    LIKELY_BLOCKED = "likely_blocked"
    NO_RESULTS = "no_results"
    STRUCTURE_CHANGED = "structure_changed"


DIAGNOSTIC_MESSAGES = {
    DiagnosticCategory.LIKELY_BLOCKED: "The page shows blocking or challenge markers (captcha, Cloudflare)",
    DiagnosticCategory.NO_RESULTS: "The search query returned no results",
    DiagnosticCategory.STRUCTURE_CHANGED: "No product links matched any extraction layer; the page structure may have changed",
}


class DiscoveredSet:
    """Insertion-ordered set of canonical product URLs."""

    def __init__(self, urls: Iterable[str] = ()):
        self._urls: Dict[str, None] = {}
        self.update(urls)

    def add(self, url: str) -> bool:
        if url in self._urls:
            return False
        self._urls[url] = None
        return True

    def update(self, urls: Iterable[str]) -> int:
        """Add urls in order; returns how many were new."""
        return sum(1 for url in urls if self.add(url))

    def first(self, n: int) -> List[str]:
        return list(self._urls)[:max(0, n)]

    def __len__(self) -> int:
        return len(self._urls)

    def __contains__(self, url: object) -> bool:
        return url in self._urls

    def __iter__(self) -> Iterator[str]:
        return iter(self._urls)


@dataclass
class DiscoveryResult:
    """Outcome of a discovery run."""
    urls: List[str]
    state: CrawlState
    iterations: int = 0
    layer: str = ""
    diagnostic: Optional[DiagnosticCategory] = None
    history: List[int] = field(default_factory=list)

    @property
    def diagnostic_message(self) -> Optional[str]:
        return DIAGNOSTIC_MESSAGES.get(self.diagnostic) if self.diagnostic else None


class DiscoveryLoop:
    """
    Drives one search page to collect product URLs.

    The session is used strictly sequentially; nothing here runs concurrently
    with another page operation except the armed response wait inside the
    readiness detector.
    """

    def __init__(
        self,
        session: BrowserSession,
        config: CrawlerConfig,
        rng: Optional[random.Random] = None
    ):
        self.session = session
        self.config = config
        self.site = config.site_config
        self.links = LinkExtractor(session, self.site)
        self.detector = ReadinessDetector(session, self.links, config, rng=rng)
        self.state = CrawlState.INITIAL_SCAN

    # =========================================================================
    # Initial scan
    # =========================================================================

    async def _open_search_page(self, query: str) -> None:
        url = self.site.search_url(query)
        logger.info(f"Navigating to {url}")
        try:
            await self.session.navigate(url, wait_until="networkidle", timeout=self.config.search_nav_timeout)
        except SessionError as e:
            # Infinite-scroll pages often never reach networkidle; keep whatever rendered
            logger.warning(f"Search page did not settle: {e}")

        if self.config.initial_settle > 0:
            await asyncio.sleep(self.config.initial_settle)

        try:
            found = await self.session.wait_for_selector(self.site.ready_selector, self.config.initial_link_timeout)
        except SessionError as e:
            logger.warning(f"Product link wait failed: {e}")
            found = False
        if not found:
            logger.warning("No product links appeared yet, continuing anyway")

        await self._log_blocking_markers()
        await self._log_page_stats()
        if self.config.debug:
            await self._capture_screenshot("search")

    async def _page_text(self) -> str:
        """Visible body text, lowercased; markup and script sources are excluded."""
        try:
            text = await self.session.evaluate(BODY_TEXT)
        except SessionError as e:
            logger.debug(f"Could not read page text: {e}")
            return ""
        return (text or "").lower()

    async def _log_blocking_markers(self) -> None:
        text = await self._page_text()
        markers = self.site.matching_markers(self.site.blocking_markers, text)
        if markers:
            logger.warning(f"Page may be blocking automated access (markers: {', '.join(markers)})")

    async def _log_page_stats(self) -> None:
        try:
            stats = await self.session.evaluate(PAGE_STATS, self.site.product_path_prefix)
        except SessionError as e:
            logger.debug(f"Page stats unavailable: {e}")
            return
        if not stats:
            return
        logger.info(f"Page has {stats.get('total', 0)} links, {stats.get('matching', 0)} under {self.site.product_path_prefix}")
        for href in stats.get("sample", []):
            logger.debug(f"  sample: {href}")

    async def _capture_screenshot(self, label: str) -> None:
        os.makedirs(self.config.output_dir, exist_ok=True)
        path = os.path.join(
            self.config.output_dir,
            f"debug-{label}-{datetime.now().strftime('%Y%m%d-%H%M%S')}.png"
        )
        try:
            await self.session.screenshot(path)
            logger.info(f"Debug screenshot saved: {path}")
        except SessionError as e:
            logger.warning(f"Screenshot failed: {e}")

    # =========================================================================
    # Loop
    # =========================================================================

    async def _final_settle(self) -> None:
        try:
            await self.session.wait_for_network_idle(self.config.final_idle_quiet, self.config.final_idle_timeout)
            await self.session.scroll_to_bottom()
        except SessionError as e:
            logger.debug(f"Final settle interrupted: {e}")
        if self.config.final_settle > 0:
            await asyncio.sleep(self.config.final_settle)

    async def _diagnose(self) -> DiagnosticCategory:
        text = await self._page_text()
        if self.site.matching_markers(self.site.blocking_markers, text):
            return DiagnosticCategory.LIKELY_BLOCKED
        if self.site.matching_markers(self.site.no_results_markers, text):
            return DiagnosticCategory.NO_RESULTS
        return DiagnosticCategory.STRUCTURE_CHANGED

    async def run(self, query: Optional[str] = None, max_products: Optional[int] = None) -> DiscoveryResult:
        """
        Collect up to max_products canonical product URLs for a query.

        Args:
            query: Search query (defaults to config.search_query)
            max_products: Target count (defaults to config.max_products)

        Returns:
            DiscoveryResult with URLs in discovery order, never more than max_products

        Raises:
            SessionClosedError: the browser went away
        """
        query = query or self.config.search_query
        target = max_products or self.config.max_products
        config = self.config.with_overrides(max_products=target)

        discovered = DiscoveredSet()
        history: List[int] = []
        iterations = 0
        empty_streak = 0

        self.state = CrawlState.INITIAL_SCAN
        await self._open_search_page(query)

        async with MutationAccumulator(self.session, self.site) as accumulator:
            initial, layer = await self.links.collect_layered()
            discovered.update(initial)
            history.append(len(discovered))
            logger.info(f"Initial scan found {len(discovered)} products")

            while True:
                if len(discovered) >= target:
                    self.state = CrawlState.TARGET_REACHED
                    break
                if iterations >= config.max_scroll_attempts:
                    self.state = CrawlState.ITERATION_LIMIT
                    logger.info(f"Stopped after {iterations} scroll attempts")
                    break

                iterations += 1
                self.state = CrawlState.INTERACTING
                baseline = await self.links.count()
                report = await self.detector.wait_for_new_content(
                    baseline, near_target=config.is_near_target(len(discovered))
                )

                self.state = CrawlState.EXTRACTING
                found = await self.links.anchor_layer()
                found += await accumulator.drain()
                added = discovered.update(found)
                history.append(len(discovered))

                if added:
                    empty_streak = 0
                    logger.info(f"Scroll {iterations}: +{added} products ({len(discovered)}/{target})")
                else:
                    empty_streak += 1
                    logger.info(
                        f"Scroll {iterations}: no new products "
                        f"({empty_streak} in a row, network={report.network_matched})"
                    )

                if len(discovered) >= target:
                    self.state = CrawlState.TARGET_REACHED
                    break
                tolerance = config.empty_tolerance(len(discovered))
                if empty_streak >= tolerance:
                    self.state = CrawlState.CONVERGED
                    logger.info(
                        f"No new products after {empty_streak} scrolls, likely reached the end of results"
                    )
                    break

            await self._final_settle()
            late = await self.links.anchor_layer()
            late += await accumulator.drain()
            if not late and not discovered:
                late, layer = await self.links.collect_layered()
            added = discovered.update(late)
            if added:
                logger.info(f"Final pass found {added} more products")
                history.append(len(discovered))

        urls = discovered.first(target)
        result = DiscoveryResult(
            urls=urls,
            state=self.state,
            iterations=iterations,
            layer=layer,
            history=history,
        )

        if not urls:
            result.diagnostic = await self._diagnose()
            logger.warning(f"No products discovered for '{query}': {result.diagnostic_message}")
            if self.config.debug:
                await self._capture_screenshot("empty")
        else:
            logger.info(f"Discovered {len(urls)} products ({self.state.value}, {iterations} scrolls)")

        return result
