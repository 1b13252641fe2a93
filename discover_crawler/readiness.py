"""
Readiness detection for infinite-scroll result pages.

After each scroll interaction three independent signals are awaited, each
under its own bound: a listing-endpoint network response, growth of the
product link count (authoritative), and network quiescence. None of them
failing is an error; the discovery loop interprets repeated absence of
growth as the end of the results.
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Optional

from .config import CrawlerConfig, ReadinessBudget
from .exceptions import SessionError
from .links import LinkExtractor
from .session import BrowserSession, NetworkExchange

logger = logging.getLogger(__name__)


@dataclass
class ReadinessReport:
    """Outcome of one interact-and-detect cycle."""
    network_matched: bool = False
    dom_grew: bool = False
    settled: bool = False
    elapsed: float = 0.0
    matched_url: Optional[str] = None

    @property
    def new_content(self) -> bool:
        return self.dom_grew


class ReadinessDetector:
    """Issues one scroll interaction and waits for evidence of new results."""

    def __init__(
        self,
        session: BrowserSession,
        links: LinkExtractor,
        config: CrawlerConfig,
        rng: Optional[random.Random] = None
    ):
        self.session = session
        self.links = links
        self.config = config
        self.site = config.site_config
        self.rng = rng or random.Random()

    def is_listing_response(self, exchange: NetworkExchange) -> bool:
        if exchange.status != 200:
            return False
        return any(pattern in exchange.url for pattern in self.site.listing_endpoint_patterns)

    async def _pause(self, bounds) -> None:
        low, high = bounds
        if high > 0:
            await asyncio.sleep(self.rng.uniform(low, high))

    async def interact(self, budget: ReadinessBudget) -> None:
        """Pointer move to the viewport centre, wheel scroll, then scroll to bottom."""
        width, height = self.session.viewport
        try:
            await self.session.mouse_move(width / 2, height / 2, steps=self.config.pointer_steps)
            await self._pause(budget.pointer_settle)

            low, high = self.config.wheel_delta
            await self.session.mouse_wheel(0, self.rng.randint(low, high))
            await self._pause(budget.wheel_settle)

            await self.session.scroll_to_bottom()
        except SessionError as e:
            logger.warning(f"Scroll interaction failed: {e}")

    async def _wait_for_listing_response(self, timeout: float) -> Optional[NetworkExchange]:
        try:
            return await self.session.wait_for_response(self.is_listing_response, timeout)
        except SessionError as e:
            logger.debug(f"Response wait failed: {e}")
            return None

    async def _grew(self, baseline: int) -> bool:
        return await self.links.count() > baseline

    async def wait_for_new_content(self, baseline: int, near_target: bool = False) -> ReadinessReport:
        """
        Interact with the page and wait for the product link count to grow.

        Args:
            baseline: Product link count captured just before the interaction
            near_target: Use the shorter near-target budget

        Returns:
            ReadinessReport describing which signals fired
        """
        budget = self.config.near_budget if near_target else self.config.far_budget
        started = time.monotonic()
        report = ReadinessReport()

        # Armed before interacting so a fast response is not missed
        response_wait = asyncio.ensure_future(self._wait_for_listing_response(budget.response_timeout))
        try:
            await self.interact(budget)
            exchange = await response_wait
        finally:
            if not response_wait.done():
                response_wait.cancel()

        if exchange is not None:
            report.network_matched = True
            report.matched_url = exchange.url
            logger.debug(f"Listing response observed: {exchange.url}")
            await self._pause(budget.dom_settle_after_response)
        elif budget.delay_without_response > 0:
            await asyncio.sleep(budget.delay_without_response)

        report.dom_grew = await self.session.wait_for_predicate(
            lambda: self._grew(baseline),
            timeout=budget.growth_timeout,
            poll_interval=self.config.poll_interval,
        )

        try:
            report.settled = await self.session.wait_for_network_idle(budget.idle_quiet, budget.idle_timeout)
        except SessionError as e:
            logger.debug(f"Network idle wait failed: {e}")

        report.elapsed = time.monotonic() - started
        logger.debug(
            f"Readiness: network={report.network_matched} dom={report.dom_grew} "
            f"settled={report.settled} ({report.elapsed:.1f}s)"
        )
        return report
