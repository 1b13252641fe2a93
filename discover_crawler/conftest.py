"""
Shared test fixtures: a scripted browser session and a zero-delay config.
"""

import asyncio
import re
from collections import deque
from typing import Any, Dict, Iterable, List, Optional

import pytest

from discover_crawler import scripts
from discover_crawler.config import CrawlerConfig, ReadinessBudget
from discover_crawler.exceptions import SessionClosedError
from discover_crawler.session import BrowserSession, NetworkExchange

ORIGIN = "https://whop.com"
SEARCH_URL = "https://whop.com/discover/search/?q=TRADING"
LISTING_RESPONSE = NetworkExchange(url="https://segapi.whop.com/graphql", status=200)

ZERO_BUDGET = ReadinessBudget(
    pointer_settle=(0.0, 0.0),
    wheel_settle=(0.0, 0.0),
    response_timeout=0.0,
    dom_settle_after_response=(0.0, 0.0),
    delay_without_response=0.0,
    growth_timeout=0.0,
    idle_timeout=0.0,
    idle_quiet=0.0,
)


def make_test_config(**overrides) -> CrawlerConfig:
    """CrawlerConfig with every wait and delay set to zero."""
    defaults = dict(
        initial_settle=0.0,
        initial_link_timeout=0.0,
        final_idle_quiet=0.0,
        final_idle_timeout=0.0,
        final_settle=0.0,
        item_delay=0.0,
        poll_interval=0.01,
        far_budget=ZERO_BUDGET,
        near_budget=ZERO_BUDGET,
    )
    defaults.update(overrides)
    return CrawlerConfig(**defaults)


def product_links(*slugs: str) -> List[str]:
    return [f"{ORIGIN}/discover/{slug}" for slug in slugs]


def visible_text(html: str) -> str:
    """Rough innerText: drops script and style bodies, tags and attributes."""
    html = re.sub(r"<(script|style)\b.*?</\1>", " ", html, flags=re.S | re.I)
    return re.sub(r"<[^>]+>", " ", html)


class FakeSession(BrowserSession):
    """
    Scripted stand-in for a browser page.

    The search page starts with `initial` links; every wheel interaction
    releases the next batch from `batches` (and a matching listing response
    when the batch is non-empty). Product and profile pages are served from
    dicts keyed by URL; an Exception value is raised on navigation.
    """

    def __init__(
        self,
        initial: Iterable[str] = (),
        batches: Iterable[Iterable[str]] = (),
        container_links: Iterable[str] = (),
        other_links: Iterable[str] = (),
        product_pages: Optional[Dict[str, Any]] = None,
        profile_pages: Optional[Dict[str, Any]] = None,
        page_content: str = "<html><body></body></html>",
        navigation_errors: Optional[Dict[str, Exception]] = None,
        observer_supported: bool = True,
    ):
        self.search_links: List[str] = list(initial)
        self.batches = deque(list(b) for b in batches)
        self.container_links = list(container_links)
        self.other_links = list(other_links)
        self.product_pages = product_pages or {}
        self.profile_pages = profile_pages or {}
        self.page_content = page_content
        self.navigation_errors = navigation_errors or {}
        self.observer_supported = observer_supported

        self.observer_installed = False
        self.observer_disposed = False
        self.observed: List[str] = []
        self.pending_responses: deque = deque()

        self.interactions = 0
        self.pointer_moves = 0
        self.scrolls = 0
        self.navigations: List[str] = []
        self.screenshots: List[str] = []
        self.closed = False
        self._url = ""

    # -- helpers -------------------------------------------------------------

    def _check_open(self) -> None:
        if self.closed:
            raise SessionClosedError("page closed")

    @property
    def on_search_page(self) -> bool:
        return "/discover/search" in self._url

    # -- BrowserSession ------------------------------------------------------

    @property
    def url(self) -> str:
        return self._url

    async def navigate(self, url: str, wait_until: str = "load", timeout: float = 30.0) -> None:
        self._check_open()
        self.navigations.append(url)
        self._url = url
        error = self.navigation_errors.get(url)
        if error is not None:
            raise error
        page = self.product_pages.get(url, self.profile_pages.get(url))
        if isinstance(page, Exception):
            raise page

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        self._check_open()
        if script is scripts.ANCHOR_HREFS:
            return [h for h in self.search_links if "/discover/" in h] if self.on_search_page else []
        if script is scripts.CONTAINER_HREFS:
            return list(self.container_links) if self.on_search_page else []
        if script is scripts.ALL_HREFS:
            if self._url in self.profile_pages:
                return list(self.profile_pages[self._url])
            return self.search_links + self.container_links + self.other_links
        if script is scripts.PAGE_STATS:
            matching = [h for h in self.search_links if arg in h]
            return {"total": len(self.search_links) + len(self.other_links),
                    "matching": len(matching), "sample": matching[:5]}
        if script is scripts.INSTALL_OBSERVER:
            self.observer_installed = self.observer_supported
            return self.observer_supported
        if script is scripts.DRAIN_OBSERVED:
            drained, self.observed = self.observed, []
            return drained
        if script is scripts.DISCONNECT_OBSERVER:
            self.observer_installed = False
            self.observer_disposed = True
            return True
        if script is scripts.SCROLL_TO_BOTTOM:
            self.scrolls += 1
            return None
        if script is scripts.BODY_TEXT:
            return visible_text(self.page_content)
        if script is scripts.DETAIL_SNAPSHOT:
            page = self.product_pages.get(self._url)
            return dict(page) if isinstance(page, dict) else page
        raise AssertionError(f"Unexpected script: {script[:40]}")

    async def wait_for_response(self, predicate, timeout: float) -> Optional[NetworkExchange]:
        self._check_open()
        await asyncio.sleep(0)
        while self.pending_responses:
            exchange = self.pending_responses.popleft()
            if predicate(exchange):
                return exchange
        return None

    async def wait_for_selector(self, selector: str, timeout: float) -> bool:
        self._check_open()
        return any("/discover/" in h for h in self.search_links)

    async def wait_for_network_idle(self, idle: float, timeout: float) -> bool:
        self._check_open()
        return True

    async def mouse_move(self, x: float, y: float, steps: int = 1) -> None:
        self._check_open()
        self.pointer_moves += 1

    async def mouse_wheel(self, delta_x: float, delta_y: float) -> None:
        self._check_open()
        self.interactions += 1
        if not self.batches:
            return
        batch = self.batches.popleft()
        self.search_links.extend(batch)
        if self.observer_installed:
            self.observed.extend(batch)
        if batch:
            self.pending_responses.append(LISTING_RESPONSE)

    async def title(self) -> str:
        self._check_open()
        return ""

    async def screenshot(self, path: str) -> None:
        self._check_open()
        self.screenshots.append(path)


@pytest.fixture
def make_config():
    return make_test_config


@pytest.fixture
def make_session():
    return FakeSession
