"""
Scrape Service
Runs the crawler for an API request and turns its progress into
server-sent events.
"""

import asyncio
import logging
import uuid
from typing import AsyncIterator, Awaitable, Callable, Optional

from discover_crawler import CrawlerConfig, CrawlerError, ProgressEvent, RunResult, run_scraper

from models.schemas import ScrapeRequest, StreamEvent, StreamEventType
from services.supabase import SupabaseService

logger = logging.getLogger(__name__)

ScrapeRunner = Callable[..., Awaitable[RunResult]]

_DONE = object()


class ScrapeService:
    """Bridges one scrape run to an event stream."""

    def __init__(
        self,
        db: Optional[SupabaseService] = None,
        runner: Optional[ScrapeRunner] = None,
        base_config: Optional[CrawlerConfig] = None
    ):
        self.db = db
        self.runner = runner or run_scraper
        self.base_config = base_config or CrawlerConfig.from_env()

    def build_config(self, request: ScrapeRequest) -> CrawlerConfig:
        return self.base_config.with_overrides(
            search_query=request.search_query,
            max_products=request.max_products,
        )

    async def _persist(self, result: RunResult) -> Optional[str]:
        if self.db is None:
            return None
        try:
            scrape_id = await self.db.save_scrape_result(result)
            return str(scrape_id) if scrape_id else None
        except Exception as e:
            logger.error(f"Failed to save scrape result (continuing): {e}")
            return None

    async def stream(self, request: ScrapeRequest) -> AsyncIterator[str]:
        """
        Run a scrape and yield SSE frames.

        Frames: connected, progress (one per product), then complete or error.
        Closing the generator cancels the crawl.
        """
        session_id = str(uuid.uuid4())
        queue: asyncio.Queue = asyncio.Queue()
        config = self.build_config(request)

        def on_progress(event: ProgressEvent) -> None:
            queue.put_nowait(StreamEvent(type=StreamEventType.PROGRESS, data=event.to_dict()))

        async def run() -> None:
            try:
                result = await self.runner(config, on_progress=on_progress)
                scrape_id = await self._persist(result)
                data = result.to_dict()
                data["scrape_id"] = scrape_id
                queue.put_nowait(StreamEvent(type=StreamEventType.COMPLETE, data=data))
            except CrawlerError as e:
                logger.error(f"Scrape {session_id} failed: {e}")
                queue.put_nowait(StreamEvent(type=StreamEventType.ERROR, data={"error": str(e)}))
            except Exception as e:
                logger.error(f"Scrape {session_id} crashed: {e}", exc_info=True)
                queue.put_nowait(StreamEvent(type=StreamEventType.ERROR, data={"error": str(e)}))
            finally:
                queue.put_nowait(_DONE)

        logger.info(f"Scrape {session_id} started: '{config.search_query}' (max {config.max_products})")
        yield StreamEvent(type=StreamEventType.CONNECTED, data={"session_id": session_id}).to_sse()

        task = asyncio.create_task(run())
        try:
            while True:
                item = await queue.get()
                if item is _DONE:
                    break
                yield item.to_sse()
        finally:
            if not task.done():
                logger.info(f"Client disconnected, cancelling scrape {session_id}")
                task.cancel()
