"""
Tests for the discovery loop against a scripted infinite-scroll page.

Run from the project root:
    pytest discover_crawler/test_discovery.py
"""

import pytest

from discover_crawler.config import SITE_CONFIGS
from discover_crawler.conftest import SEARCH_URL, product_links
from discover_crawler.discovery import CrawlState, DiagnosticCategory, DiscoveredSet, DiscoveryLoop
from discover_crawler.exceptions import SessionClosedError, SessionError


# =============================================================================
# DiscoveredSet
# =============================================================================

def test_discovered_set_keeps_first_seen_order():
    discovered = DiscoveredSet(["a", "b"])
    assert discovered.update(["c", "a", "d", "b"]) == 2
    assert list(discovered) == ["a", "b", "c", "d"]
    assert discovered.first(3) == ["a", "b", "c"]
    assert discovered.first(10) == ["a", "b", "c", "d"]
    assert "c" in discovered
    assert len(discovered) == 4


def test_discovered_set_add_reports_novelty():
    discovered = DiscoveredSet()
    assert discovered.add("x") is True
    assert discovered.add("x") is False
    assert discovered.first(0) == []


# =============================================================================
# Termination
# =============================================================================

@pytest.mark.asyncio
async def test_converges_after_empty_tolerance_below_target(make_config, make_session):
    session = make_session(initial=product_links("a/one", "a/two"), batches=[[]] * 20)
    config = make_config(max_products=10, empty_tolerance_far=5, empty_tolerance_near=3)

    result = await DiscoveryLoop(session, config).run("TRADING")

    assert result.state == CrawlState.CONVERGED
    assert session.interactions == 5
    assert len(result.urls) == 2
    assert result.diagnostic is None


@pytest.mark.asyncio
async def test_near_target_uses_lower_tolerance(make_config, make_session):
    initial = product_links(*[f"org/p{i}" for i in range(9)])
    session = make_session(initial=initial, batches=[[]] * 20)
    config = make_config(max_products=10, empty_tolerance_far=5, empty_tolerance_near=3)

    result = await DiscoveryLoop(session, config).run("TRADING")

    assert result.state == CrawlState.CONVERGED
    assert session.interactions == 3
    assert len(result.urls) == 9


@pytest.mark.asyncio
async def test_empty_streak_resets_when_products_arrive(make_config, make_session):
    batches = [[], [], product_links("b/one"), [], [], []]
    session = make_session(initial=product_links("a/one"), batches=batches)
    config = make_config(max_products=50, empty_tolerance_far=3)

    result = await DiscoveryLoop(session, config).run("TRADING")

    assert result.state == CrawlState.CONVERGED
    assert session.interactions == 6
    assert len(result.urls) == 2


@pytest.mark.asyncio
async def test_target_reached_mid_iteration_stops_interacting(make_config, make_session):
    batches = [
        product_links("a/1", "a/2", "a/3", "a/4"),
        product_links("b/1", "b/2", "b/3"),
        product_links("c/1", "c/2"),
    ]
    session = make_session(batches=batches)
    config = make_config(max_products=5)

    result = await DiscoveryLoop(session, config).run("TRADING")

    assert result.state == CrawlState.TARGET_REACHED
    assert session.interactions == 2
    assert len(session.batches) == 1
    assert result.urls == product_links("a/1", "a/2", "a/3", "a/4", "b/1")


@pytest.mark.asyncio
async def test_target_already_met_by_initial_scan(make_config, make_session):
    session = make_session(initial=product_links("a/1", "a/2", "a/3"), batches=[product_links("z/9")])
    config = make_config(max_products=3)

    result = await DiscoveryLoop(session, config).run("TRADING")

    assert result.state == CrawlState.TARGET_REACHED
    assert session.interactions == 0
    assert result.urls == product_links("a/1", "a/2", "a/3")


@pytest.mark.asyncio
async def test_iteration_cap_bounds_the_loop(make_config, make_session):
    batches = [product_links(f"org/p{i}") for i in range(20)]
    session = make_session(batches=batches)
    config = make_config(max_products=100, max_scroll_attempts=4)

    result = await DiscoveryLoop(session, config).run("TRADING")

    assert result.state == CrawlState.ITERATION_LIMIT
    assert session.interactions == 4
    assert result.iterations == 4
    assert len(result.urls) == 4


@pytest.mark.asyncio
async def test_size_bounded_and_monotonic(make_config, make_session):
    batches = [product_links(*[f"b{n}/p{i}" for i in range(3)]) for n in range(6)]
    session = make_session(initial=product_links("a/1"), batches=batches)
    config = make_config(max_products=7)

    result = await DiscoveryLoop(session, config).run("TRADING")

    assert len(result.urls) == 7
    assert result.history == sorted(result.history)
    assert len(set(result.urls)) == len(result.urls)


# =============================================================================
# Extraction details
# =============================================================================

@pytest.mark.asyncio
async def test_duplicates_and_search_links_are_ignored(make_config, make_session):
    initial = [
        "https://whop.com/discover/acme/bot",
        "/discover/acme/bot/",
        "https://whop.com/discover/acme/bot?ref=1",
        "https://whop.com/discover/search/?q=more",
    ]
    session = make_session(initial=initial, batches=[["/discover/acme/bot#x"], []])
    config = make_config(max_products=10, empty_tolerance_far=2)

    result = await DiscoveryLoop(session, config).run("TRADING")

    assert result.urls == ["https://whop.com/discover/acme/bot"]
    assert result.state == CrawlState.CONVERGED


@pytest.mark.asyncio
async def test_container_layer_used_when_anchor_scan_is_empty(make_config, make_session):
    session = make_session(container_links=["../acme/bot", "../acme/tool"])
    config = make_config(max_products=2)

    result = await DiscoveryLoop(session, config).run("TRADING")

    assert result.layer == "containers"
    assert result.urls == product_links("acme/bot", "acme/tool")
    assert result.state == CrawlState.TARGET_REACHED


@pytest.mark.asyncio
async def test_mutation_accumulator_is_disposed(make_config, make_session):
    session = make_session(initial=product_links("a/1"), batches=[product_links("a/2")])
    config = make_config(max_products=2)

    await DiscoveryLoop(session, config).run("TRADING")

    assert session.observer_disposed
    assert not session.observer_installed


@pytest.mark.asyncio
async def test_polling_alone_finds_products_without_observer(make_config, make_session):
    session = make_session(batches=[product_links("a/1", "a/2")], observer_supported=False)
    config = make_config(max_products=2)

    result = await DiscoveryLoop(session, config).run("TRADING")

    assert result.state == CrawlState.TARGET_REACHED
    assert len(result.urls) == 2
    assert not session.observer_disposed


@pytest.mark.asyncio
async def test_search_navigation_failure_is_not_fatal(make_config, make_session):
    session = make_session(
        initial=product_links("a/1"),
        navigation_errors={SEARCH_URL: SessionError("networkidle timeout")},
    )
    config = make_config(max_products=1)

    result = await DiscoveryLoop(session, config).run("TRADING")

    assert result.urls == product_links("a/1")


@pytest.mark.asyncio
async def test_closed_session_propagates(make_config, make_session):
    session = make_session(initial=product_links("a/1"))
    session.closed = True

    with pytest.raises(SessionClosedError):
        await DiscoveryLoop(session, make_config(max_products=5)).run("TRADING")


# =============================================================================
# Empty results
# =============================================================================

@pytest.mark.asyncio
@pytest.mark.parametrize("content, expected", [
    ("<html><body>Checking your browser - Cloudflare</body></html>", DiagnosticCategory.LIKELY_BLOCKED),
    ("<html><body>Please solve this CAPTCHA</body></html>", DiagnosticCategory.LIKELY_BLOCKED),
    ("<html><body>No results for TRADING</body></html>", DiagnosticCategory.NO_RESULTS),
    ("<html><body><div class='grid'></div></body></html>", DiagnosticCategory.STRUCTURE_CHANGED),
    (
        "<html><head><script src='https://cdnjs.cloudflare.com/ajax/libs/lodash.js'></script></head>"
        "<body><div class='blocked-banner'></div></body></html>",
        DiagnosticCategory.STRUCTURE_CHANGED,
    ),
    ("<html><body>Showing 10 results</body></html>", DiagnosticCategory.STRUCTURE_CHANGED),
    ("<html><body>0 results for TRADING</body></html>", DiagnosticCategory.NO_RESULTS),
])
async def test_empty_result_diagnostics(make_config, make_session, content, expected):
    session = make_session(page_content=content, batches=[[]] * 10)
    config = make_config(max_products=5, empty_tolerance_far=2)

    result = await DiscoveryLoop(session, config).run("TRADING")

    assert result.urls == []
    assert result.state == CrawlState.CONVERGED
    assert result.diagnostic == expected
    assert result.diagnostic_message


@pytest.mark.asyncio
async def test_debug_mode_captures_screenshots(make_config, make_session, tmp_path):
    session = make_session(batches=[[]] * 3)
    config = make_config(max_products=5, empty_tolerance_far=1, debug=True, output_dir=str(tmp_path))

    await DiscoveryLoop(session, config).run("TRADING")

    assert len(session.screenshots) == 2
    assert all(path.startswith(str(tmp_path)) for path in session.screenshots)


def test_numeric_marker_needs_a_count_boundary():
    site = SITE_CONFIGS["whop"]
    assert site.matching_markers(site.no_results_markers, "0 results found") == ["0 results"]
    assert site.matching_markers(site.no_results_markers, "showing 10 results") == []
    assert site.matching_markers(site.no_results_markers, "1,000 results") == []
    assert site.matching_markers(site.blocking_markers, "attention required! | cloudflare") == ["cloudflare"]
