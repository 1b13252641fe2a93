"""
Tests for stats folding and CSV reporting.
"""

from datetime import datetime

import pytest

from discover_crawler.models import CrawlStats, ProductRecord
from discover_crawler.report import CSV_HEADER, Aggregator, from_csv, suggest_filename, to_csv


def test_header_is_fixed():
    text = to_csv([])
    assert text == (
        "Product Name,Product URL,Creator Name,Creator Handle,Twitter/X,"
        "Instagram,YouTube,TikTok,Discord,LinkedIn,Telegram\n"
    )


def test_quoted_name_round_trips():
    name = 'O\'Brien, "Pro"'
    record = ProductRecord(product_url="https://whop.com/discover/ob/pro", product_name=name)

    text = to_csv([record])

    assert '"O\'Brien, ""Pro"""' in text
    assert from_csv(text) == [record]


def test_newline_in_field_round_trips():
    record = ProductRecord(product_url="https://whop.com/discover/a/b", creator_name="Line one\nLine two")
    assert from_csv(to_csv([record])) == [record]


def test_empty_fields_are_empty_tokens():
    record = ProductRecord(product_url="https://whop.com/discover/a/b", product_name="Bot", telegram="https://t.me/x")
    row = to_csv([record]).splitlines()[1]
    assert row == "Bot,https://whop.com/discover/a/b,,,,,,,,,https://t.me/x"


def test_from_csv_rejects_unknown_header():
    with pytest.raises(ValueError):
        from_csv("Name,URL\nx,y\n")


def test_stats_fold():
    records = [
        ProductRecord(product_url="u1", twitter="t", discord="d"),
        ProductRecord(product_url="u2", twitter="t2"),
        ProductRecord(product_url="u3"),
    ]
    stats = CrawlStats.from_records(records)
    assert stats.total == 3
    assert stats.with_twitter == 2
    assert stats.with_discord == 1
    assert stats.with_instagram == 0
    assert CrawlStats.from_records([]) == CrawlStats()


def test_aggregator_stats_cover_exactly_first_k_records():
    aggregator = Aggregator(total=3)
    records = [
        ProductRecord(product_url="u1", instagram="i"),
        ProductRecord(product_url="u2"),
        ProductRecord(product_url="u3", instagram="i3", tiktok="t"),
    ]
    events = [aggregator.add(r) for r in records]

    assert [e.position for e in events] == [1, 2, 3]
    assert all(e.total == 3 for e in events)
    assert [e.stats.with_instagram for e in events] == [1, 1, 2]
    assert [e.stats.total for e in events] == [1, 2, 3]
    assert events[2].stats == CrawlStats.from_records(records)
    assert events[1].to_dict()["progress"] == {"current": 2, "total": 3}


def test_merge_socials_only_fills_empty_fields():
    record = ProductRecord(product_url="u", twitter="A")
    merged = record.merge_socials({"twitter": "B", "youtube": "Y", "unknown": "Z"})
    assert merged.twitter == "A"
    assert merged.youtube == "Y"
    assert record.youtube == ""


def test_suggested_filename():
    when = datetime(2026, 1, 8, 10, 30, 0)
    assert suggest_filename("TRADING", when) == "whop-scrape-TRADING-2026-01-08T10-30-00.csv"
    assert suggest_filename("AI / tools?", when) == "whop-scrape-AI-tools-2026-01-08T10-30-00.csv"
    assert CSV_HEADER[0] == "Product Name"
