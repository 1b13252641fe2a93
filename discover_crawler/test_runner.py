"""
End-to-end tests for run_scraper on a scripted session.
"""

import pytest

from discover_crawler.conftest import product_links
from discover_crawler.discovery import CrawlState
from discover_crawler.exceptions import SessionClosedError, SessionError
from discover_crawler.report import from_csv
from discover_crawler.runner import run_scraper


def pages_for(urls, **extra):
    pages = {}
    for i, url in enumerate(urls, start=1):
        pages[url] = {
            "heading": f"Product {i}",
            "title": f"Product {i} | Whop",
            "json_ld": [],
            "hrefs": [f"https://x.com/creator{i}"] if i % 2 else [],
        }
    pages.update(extra)
    return pages


@pytest.mark.asyncio
async def test_trading_scenario_reaches_target(make_config, make_session):
    first = product_links("alpha/one", "alpha/two", "beta/three")
    second = product_links("gamma/four", "delta/five")
    session = make_session(
        batches=[first, second, [], [], []],
        product_pages=pages_for(first + second),
    )
    config = make_config(search_query="TRADING", max_products=5)
    events = []

    result = await run_scraper(config, on_progress=events.append, session=session)

    assert len(result.records) == 5
    assert result.state == CrawlState.TARGET_REACHED.value
    assert session.interactions == 2
    assert [r.product_url for r in result.records] == first + second
    assert [e.position for e in events] == [1, 2, 3, 4, 5]
    assert events[-1].stats == result.stats
    assert result.stats.total == 5
    assert result.stats.with_twitter == 3
    assert from_csv(result.csv) == list(result.records)
    assert result.filename.startswith("whop-scrape-TRADING-")
    assert session.navigations[0] == "https://whop.com/discover/search/?q=TRADING"


@pytest.mark.asyncio
async def test_async_progress_callback_is_awaited(make_config, make_session):
    urls = product_links("a/1", "a/2")
    session = make_session(initial=urls, product_pages=pages_for(urls))
    seen = []

    async def on_progress(event):
        seen.append(event.record.product_name)

    await run_scraper(make_config(max_products=2), on_progress=on_progress, session=session)

    assert seen == ["Product 1", "Product 2"]


@pytest.mark.asyncio
async def test_failed_product_page_does_not_abort_batch(make_config, make_session):
    urls = product_links("a/1", "a/2", "a/3")
    pages = pages_for(urls, **{urls[1]: SessionError("net::ERR_FAILED")})
    session = make_session(initial=urls, product_pages=pages)

    result = await run_scraper(make_config(max_products=3), session=session)

    assert [r.product_url for r in result.records] == urls
    assert result.records[1].product_name == ""
    assert result.records[2].product_name == "Product 3"


@pytest.mark.asyncio
async def test_zero_products_is_a_valid_result(make_config, make_session):
    session = make_session(batches=[[]] * 10, page_content="<p>No results found</p>")

    result = await run_scraper(make_config(max_products=5, empty_tolerance_far=2), session=session)

    assert result.records == ()
    assert not result.success
    assert result.filename is None
    assert result.diagnostic == "no_results"
    assert result.csv.startswith("Product Name,")


@pytest.mark.asyncio
async def test_session_loss_propagates(make_config, make_session):
    urls = product_links("a/1", "a/2")
    pages = pages_for(urls, **{urls[1]: SessionClosedError("Target closed")})
    session = make_session(initial=urls, product_pages=pages)
    events = []

    with pytest.raises(SessionClosedError):
        await run_scraper(make_config(max_products=2), on_progress=events.append, session=session)

    assert len(events) == 1


@pytest.mark.asyncio
async def test_malformed_link_on_a_page_keeps_the_batch(make_config, make_session):
    urls = product_links("a/1", "a/2")
    pages = pages_for(urls)
    pages[urls[0]]["hrefs"] = ["http://[broken", "https://x.com/creator1"]
    session = make_session(initial=urls, product_pages=pages)

    result = await run_scraper(make_config(max_products=2), session=session)

    assert [r.product_url for r in result.records] == urls
    assert result.records[0].twitter == "https://x.com/creator1"
    assert result.records[1].product_name == "Product 2"
