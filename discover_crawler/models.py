"""
Data models for crawl results.
"""

from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, Optional, Sequence, Tuple

from .config import SOCIAL_FIELDS


@dataclass(frozen=True)
class ProductRecord:
    """One discovered product with its creator and social links."""
    product_url: str
    product_name: str = ""
    creator_name: str = ""
    creator_handle: str = ""
    twitter: str = ""
    instagram: str = ""
    youtube: str = ""
    tiktok: str = ""
    discord: str = ""
    linkedin: str = ""
    telegram: str = ""

    @property
    def socials(self) -> Dict[str, str]:
        return {name: getattr(self, name) for name in SOCIAL_FIELDS}

    def merge_socials(self, found: Dict[str, str]) -> "ProductRecord":
        """Fill empty social fields from found; populated fields are kept."""
        updates = {
            name: value
            for name, value in found.items()
            if name in SOCIAL_FIELDS and value and not getattr(self, name)
        }
        return replace(self, **updates) if updates else self

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass(frozen=True)
class CrawlStats:
    """Counts of records carrying each social link."""
    total: int = 0
    with_twitter: int = 0
    with_instagram: int = 0
    with_youtube: int = 0
    with_tiktok: int = 0
    with_discord: int = 0
    with_linkedin: int = 0
    with_telegram: int = 0

    @classmethod
    def from_records(cls, records: Sequence[ProductRecord]) -> "CrawlStats":
        counts = {f"with_{name}": sum(1 for r in records if getattr(r, name)) for name in SOCIAL_FIELDS}
        return cls(total=len(records), **counts)

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class ProgressEvent:
    """Delivered to the progress callback after each product is processed."""
    record: ProductRecord
    position: int
    total: int
    stats: CrawlStats

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product": self.record.to_dict(),
            "progress": {"current": self.position, "total": self.total},
            "stats": self.stats.to_dict(),
        }


@dataclass(frozen=True)
class RunResult:
    """Everything a finished crawl produced."""
    search_query: str
    max_products: int
    records: Tuple[ProductRecord, ...] = ()
    stats: CrawlStats = field(default_factory=CrawlStats)
    csv: str = ""
    filename: Optional[str] = None
    state: str = ""
    diagnostic: Optional[str] = None

    @property
    def success(self) -> bool:
        return len(self.records) > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "search_query": self.search_query,
            "max_products": self.max_products,
            "results": [r.to_dict() for r in self.records],
            "stats": self.stats.to_dict(),
            "csv": self.csv,
            "filename": self.filename,
            "state": self.state,
            "diagnostic": self.diagnostic,
        }
