"""
Browser Session Interface
The capabilities the crawler needs from a live browser page.

PlaywrightSession (playwright_session.py) is the production implementation;
tests drive the crawler through a scripted fake.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple

from .exceptions import SessionError
from .scripts import SCROLL_TO_BOTTOM

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NetworkExchange:
    """A completed network response as seen by the page."""
    url: str
    status: int


class BrowserSession(ABC):
    """
    One browser page.

    Failure contract for every method:
        NavigationTimeout / SessionError: the step failed, the page is still usable
        SessionClosedError: the page or browser is gone
    Waits that merely time out return False/None instead of raising.
    """

    @property
    @abstractmethod
    def url(self) -> str:
        """URL of the current document."""

    @property
    def viewport(self) -> Tuple[int, int]:
        return (1920, 1080)

    @abstractmethod
    async def navigate(self, url: str, wait_until: str = "load", timeout: float = 30.0) -> None:
        """Navigate the page and wait for the given load state."""

    @abstractmethod
    async def evaluate(self, script: str, arg: Any = None) -> Any:
        """Evaluate a function expression in the page and return its JSON value."""

    @abstractmethod
    async def wait_for_response(
        self,
        predicate: Callable[[NetworkExchange], bool],
        timeout: float
    ) -> Optional[NetworkExchange]:
        """Wait for a response matching predicate; None on timeout."""

    @abstractmethod
    async def wait_for_selector(self, selector: str, timeout: float) -> bool:
        """Wait for selector to attach; False on timeout."""

    @abstractmethod
    async def wait_for_network_idle(self, idle: float, timeout: float) -> bool:
        """Wait until no request has been in flight for `idle` seconds; False on timeout."""

    @abstractmethod
    async def mouse_move(self, x: float, y: float, steps: int = 1) -> None:
        ...

    @abstractmethod
    async def mouse_wheel(self, delta_x: float, delta_y: float) -> None:
        ...

    @abstractmethod
    async def title(self) -> str:
        ...

    @abstractmethod
    async def screenshot(self, path: str) -> None:
        ...

    async def scroll_to_bottom(self) -> None:
        await self.evaluate(SCROLL_TO_BOTTOM)

    async def wait_for_predicate(
        self,
        predicate: Callable[[], Awaitable[bool]],
        timeout: float,
        poll_interval: float = 0.5
    ) -> bool:
        """
        Poll an async predicate until it holds or the timeout elapses.

        A SessionError raised by the predicate counts as "not yet".

        Args:
            predicate: Zero-argument coroutine function returning bool
            timeout: Overall budget in seconds
            poll_interval: Delay between evaluations in seconds

        Returns:
            True if the predicate held within the budget
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            try:
                if await predicate():
                    return True
            except SessionError as e:
                logger.debug(f"Predicate evaluation failed: {e}")

            remaining = deadline - loop.time()
            if remaining <= 0:
                return False
            await asyncio.sleep(min(poll_interval, remaining))
