"""
Result aggregation and CSV reporting.
"""

import csv
import io
import logging
import re
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Sequence, Union

from .models import CrawlStats, ProductRecord, ProgressEvent

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
    ("Product Name", "product_name"),
    ("Product URL", "product_url"),
    ("Creator Name", "creator_name"),
    ("Creator Handle", "creator_handle"),
    ("Twitter/X", "twitter"),
    ("Instagram", "instagram"),
    ("YouTube", "youtube"),
    ("TikTok", "tiktok"),
    ("Discord", "discord"),
    ("LinkedIn", "linkedin"),
    ("Telegram", "telegram"),
]
CSV_HEADER = [title for title, _ in CSV_COLUMNS]

ProgressCallback = Callable[[ProgressEvent], Union[None, Awaitable[None]]]


def to_csv(records: Sequence[ProductRecord]) -> str:
    """
    Serialize records to CSV text with the fixed report header.

    Fields containing a comma, quote or newline are quoted with inner
    quotes doubled; empty fields stay empty.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for record in records:
        writer.writerow([getattr(record, attr) for _, attr in CSV_COLUMNS])
    return buffer.getvalue()


def from_csv(text: str) -> List[ProductRecord]:
    """Parse CSV text written by to_csv back into records."""
    reader = csv.reader(io.StringIO(text))
    header = next(reader, None)
    if header != CSV_HEADER:
        raise ValueError(f"Unexpected CSV header: {header}")
    records = []
    for row in reader:
        if not row:
            continue
        records.append(ProductRecord(**{attr: value for (_, attr), value in zip(CSV_COLUMNS, row)}))
    return records


def suggest_filename(query: str, when: Optional[datetime] = None) -> str:
    """Suggested report filename, e.g. whop-scrape-TRADING-2026-01-08T10-30-00.csv"""
    when = when or datetime.now()
    safe_query = re.sub(r"[^A-Za-z0-9_]+", "-", query).strip("-") or "query"
    return f"whop-scrape-{safe_query}-{when.strftime('%Y-%m-%dT%H-%M-%S')}.csv"


class Aggregator:
    """
    Accumulates records in discovery order.

    Stats are refolded from the full record list on every add, so the stats
    reported with record k cover exactly the first k records.
    """

    def __init__(self, total: int):
        self.total = total
        self.records: List[ProductRecord] = []

    @property
    def stats(self) -> CrawlStats:
        return CrawlStats.from_records(self.records)

    def add(self, record: ProductRecord) -> ProgressEvent:
        self.records.append(record)
        return ProgressEvent(
            record=record,
            position=len(self.records),
            total=self.total,
            stats=self.stats,
        )

    def to_csv(self) -> str:
        return to_csv(self.records)
