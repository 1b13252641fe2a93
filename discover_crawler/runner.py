"""
Scrape Runner
Discovery followed by sequential detail extraction, with per-item progress.

Usage:
    result = await run_scraper(CrawlerConfig(search_query="TRADING", max_products=20))
    print(result.csv)
"""

import asyncio
import inspect
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from .config import CrawlerConfig
from .discovery import DiscoveryLoop
from .extractor import DetailExtractor
from .models import RunResult
from .playwright_session import PlaywrightSession
from .report import Aggregator, ProgressCallback, suggest_filename, to_csv
from .session import BrowserSession

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _open_session(config: CrawlerConfig, session: Optional[BrowserSession]) -> AsyncIterator[BrowserSession]:
    if session is not None:
        yield session
        return
    async with PlaywrightSession.launch(config) as launched:
        yield launched


async def _notify(on_progress: Optional[ProgressCallback], event) -> None:
    if on_progress is None:
        return
    outcome = on_progress(event)
    if inspect.isawaitable(outcome):
        await outcome


async def run_scraper(
    config: CrawlerConfig,
    on_progress: Optional[ProgressCallback] = None,
    session: Optional[BrowserSession] = None,
) -> RunResult:
    """
    Run a complete scrape.

    Args:
        config: Crawl configuration (query, target count, pacing)
        on_progress: Called (sync or async) after every product with a ProgressEvent
        session: Existing browser session; a Playwright browser is launched when None

    Returns:
        RunResult with records in discovery order

    Raises:
        BrowserLaunchError: the browser could not start
        SessionClosedError: the browser went away mid-run
    """
    query = config.search_query
    logger.info(f"Starting scrape: query='{query}' max_products={config.max_products}")

    async with _open_session(config, session) as active:
        discovery = await DiscoveryLoop(active, config).run(query, config.max_products)

        if not discovery.urls:
            return RunResult(
                search_query=query,
                max_products=config.max_products,
                csv=to_csv([]),
                state=discovery.state.value,
                diagnostic=discovery.diagnostic.value if discovery.diagnostic else None,
            )

        extractor = DetailExtractor(active, config)
        aggregator = Aggregator(total=len(discovery.urls))

        for index, url in enumerate(discovery.urls, start=1):
            logger.info(f"[{index}/{len(discovery.urls)}] {url}")
            record = await extractor.extract(url)
            found = [name for name, value in record.socials.items() if value]
            logger.info(f"  {record.product_name or '(no name)'}: {', '.join(found) if found else 'no socials'}")

            await _notify(on_progress, aggregator.add(record))

            if index < len(discovery.urls) and config.item_delay > 0:
                await asyncio.sleep(config.item_delay)

    stats = aggregator.stats
    logger.info(
        f"Scrape complete: {stats.total} products, twitter={stats.with_twitter} "
        f"instagram={stats.with_instagram} discord={stats.with_discord} telegram={stats.with_telegram}"
    )
    return RunResult(
        search_query=query,
        max_products=config.max_products,
        records=tuple(aggregator.records),
        stats=stats,
        csv=aggregator.to_csv(),
        filename=suggest_filename(query),
        state=discovery.state.value,
    )
