"""
Playwright Browser Session
Chromium page with stealth settings, wrapped in the BrowserSession interface.

Usage:
    async with PlaywrightSession.launch(config) as session:
        await session.navigate("https://whop.com/discover/search/?q=AI")
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Optional

from playwright.async_api import (
    async_playwright,
    Browser,
    Error as PlaywrightError,
    Page,
    Request,
    Response,
    TimeoutError as PlaywrightTimeout,
)

from .config import CrawlerConfig
from .exceptions import BrowserLaunchError, NavigationTimeout, SessionClosedError, SessionError
from .session import BrowserSession, NetworkExchange

logger = logging.getLogger(__name__)

LAUNCH_ARGS = [
    '--disable-blink-features=AutomationControlled',
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-dev-shm-usage',
    '--disable-web-security',
    '--disable-features=IsolateOrigins,site-per-process',
]

EXTRA_HEADERS = {
    "Accept-Language": "en-US,en;q=0.9",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8",
    "Accept-Encoding": "gzip, deflate, br",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
}

STEALTH_SCRIPT = """
    Object.defineProperty(navigator, 'webdriver', {
        get: () => undefined
    });

    window.chrome = {
        runtime: {}
    };

    const originalQuery = window.navigator.permissions.query;
    window.navigator.permissions.query = (parameters) => (
        parameters.name === 'notifications' ?
            Promise.resolve({ state: Notification.permission }) :
            originalQuery(parameters)
    );

    Object.defineProperty(navigator, 'plugins', {
        get: () => [1, 2, 3, 4, 5]
    });

    Object.defineProperty(navigator, 'languages', {
        get: () => ['en-US', 'en']
    });
"""

CLOSED_MARKERS = ("has been closed", "Target closed", "Browser closed", "Connection closed")


class PlaywrightSession(BrowserSession):
    """BrowserSession backed by a Playwright page."""

    def __init__(self, page: Page, viewport=(1920, 1080)):
        self._page = page
        self._viewport = tuple(viewport)
        self._inflight = 0
        self._last_activity = 0.0
        page.on("request", self._on_request_started)
        page.on("requestfinished", self._on_request_done)
        page.on("requestfailed", self._on_request_done)

    @classmethod
    @asynccontextmanager
    async def launch(cls, config: CrawlerConfig) -> AsyncIterator["PlaywrightSession"]:
        """
        Launch Chromium and open a single stealth-configured page.

        Args:
            config: Crawler configuration (headless mode, viewport, user agent)

        Yields:
            PlaywrightSession bound to the new page
        """
        playwright = await async_playwright().start()
        browser: Optional[Browser] = None
        try:
            try:
                browser = await playwright.chromium.launch(headless=config.headless, args=LAUNCH_ARGS)
            except PlaywrightError as e:
                raise BrowserLaunchError(f"Could not launch Chromium: {e}") from e

            width, height = config.viewport
            context = await browser.new_context(
                viewport={'width': width, 'height': height},
                user_agent=config.user_agent,
                locale='en-US',
                timezone_id='America/New_York',
                java_script_enabled=True,
            )
            await context.set_extra_http_headers(EXTRA_HEADERS)
            await context.add_init_script(STEALTH_SCRIPT)

            page = await context.new_page()
            logger.info(f"Browser launched (headless={config.headless})")
            yield cls(page, viewport=config.viewport)
        finally:
            if browser:
                await browser.close()
            await playwright.stop()
            logger.info("Browser closed")

    # =========================================================================
    # Network tracking
    # =========================================================================

    def _on_request_started(self, request: Request) -> None:
        self._inflight += 1
        self._last_activity = time.monotonic()

    def _on_request_done(self, request: Request) -> None:
        self._inflight = max(0, self._inflight - 1)
        self._last_activity = time.monotonic()

    def _translate(self, exc: Exception, action: str) -> Exception:
        """Map a Playwright exception onto the crawler hierarchy."""
        if isinstance(exc, PlaywrightTimeout):
            return NavigationTimeout(f"{action} timed out: {exc}")
        if self._page.is_closed() or any(marker in str(exc) for marker in CLOSED_MARKERS):
            return SessionClosedError(f"{action} failed, page is closed: {exc}")
        return SessionError(f"{action} failed: {exc}")

    # =========================================================================
    # BrowserSession implementation
    # =========================================================================

    @property
    def url(self) -> str:
        return self._page.url

    @property
    def viewport(self):
        return self._viewport

    async def navigate(self, url: str, wait_until: str = "load", timeout: float = 30.0) -> None:
        try:
            await self._page.goto(url, wait_until=wait_until, timeout=timeout * 1000)
        except PlaywrightError as e:
            raise self._translate(e, f"Navigation to {url}") from e

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        try:
            if arg is None:
                return await self._page.evaluate(script)
            return await self._page.evaluate(script, arg)
        except PlaywrightError as e:
            raise self._translate(e, "Evaluation") from e

    async def wait_for_response(
        self,
        predicate: Callable[[NetworkExchange], bool],
        timeout: float
    ) -> Optional[NetworkExchange]:
        def _matches(response: Response) -> bool:
            return predicate(NetworkExchange(url=response.url, status=response.status))

        try:
            response = await self._page.wait_for_event("response", predicate=_matches, timeout=timeout * 1000)
        except PlaywrightTimeout:
            return None
        except PlaywrightError as e:
            raise self._translate(e, "Response wait") from e
        return NetworkExchange(url=response.url, status=response.status)

    async def wait_for_selector(self, selector: str, timeout: float) -> bool:
        try:
            await self._page.wait_for_selector(selector, timeout=timeout * 1000)
            return True
        except PlaywrightTimeout:
            return False
        except PlaywrightError as e:
            raise self._translate(e, f"Selector wait '{selector}'") from e

    async def wait_for_network_idle(self, idle: float, timeout: float) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if self._page.is_closed():
                raise SessionClosedError("Page closed while waiting for network idle")
            now = time.monotonic()
            if self._inflight == 0 and now - self._last_activity >= idle:
                return True
            await asyncio.sleep(0.1)
        return False

    async def mouse_move(self, x: float, y: float, steps: int = 1) -> None:
        try:
            await self._page.mouse.move(x, y, steps=steps)
        except PlaywrightError as e:
            raise self._translate(e, "Pointer move") from e

    async def mouse_wheel(self, delta_x: float, delta_y: float) -> None:
        try:
            await self._page.mouse.wheel(delta_x, delta_y)
        except PlaywrightError as e:
            raise self._translate(e, "Wheel") from e

    async def title(self) -> str:
        try:
            return await self._page.title()
        except PlaywrightError as e:
            raise self._translate(e, "Title read") from e

    async def screenshot(self, path: str) -> None:
        try:
            await self._page.screenshot(path=path, full_page=True)
        except PlaywrightError as e:
            raise self._translate(e, "Screenshot") from e
