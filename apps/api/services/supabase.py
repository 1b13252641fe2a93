"""
Supabase Service for the Discover Crawler API
Stores completed scrape results in the scrape_results table
"""

import os
import logging
from datetime import datetime
from typing import Optional, List, Dict, Any, Tuple
from uuid import UUID

from supabase import create_client, Client

from discover_crawler.models import RunResult
from models.schemas import ScrapeSummary, ScrapeDetail, ScrapeStats, ProductRecordOut

logger = logging.getLogger(__name__)

SUMMARY_COLUMNS = "id, search_query, max_products, stats, filename, state, diagnostic, created_at"


class SupabaseService:
    """
    Service for interacting with Supabase database.

    Table scrape_results:
        id uuid, search_query text, max_products int, products jsonb,
        stats jsonb, csv_data text, filename text, state text,
        diagnostic text, created_at timestamptz
    """

    TABLE = "scrape_results"

    def __init__(self):
        """Initialize Supabase client settings."""
        self._client: Optional[Client] = None
        self.SUPABASE_URL = os.environ.get("SUPABASE_URL", "")

    @property
    def client(self) -> Client:
        """Get or create Supabase client."""
        if self._client is None:
            supabase_key = os.environ.get("SUPABASE_KEY") or os.environ.get("SUPABASE_SERVICE_KEY")
            if not self.SUPABASE_URL:
                raise ValueError("SUPABASE_URL environment variable is required")
            if not supabase_key:
                raise ValueError("SUPABASE_KEY or SUPABASE_SERVICE_KEY environment variable is required")

            self._client = create_client(self.SUPABASE_URL, supabase_key)
            logger.info(f"Supabase client initialized for {self.SUPABASE_URL}")

        return self._client

    def is_connected(self) -> bool:
        """Check if Supabase is connected."""
        try:
            self.client.table(self.TABLE).select("id").limit(1).execute()
            return True
        except Exception as e:
            logger.error(f"Supabase connection check failed: {e}")
            return False

    # =========================================================================
    # Scrape Result Operations
    # =========================================================================

    async def save_scrape_result(self, result: RunResult) -> Optional[UUID]:
        """Store a completed scrape. Returns the new row id."""
        try:
            row = {
                "search_query": result.search_query,
                "max_products": result.max_products,
                "products": [r.to_dict() for r in result.records],
                "stats": result.stats.to_dict(),
                "csv_data": result.csv,
                "filename": result.filename,
                "state": result.state,
                "diagnostic": result.diagnostic,
            }
            response = self.client.table(self.TABLE).insert(row).execute()
            if response.data:
                scrape_id = UUID(response.data[0]["id"])
                logger.info(f"Saved scrape {scrape_id} ({len(result.records)} products)")
                return scrape_id
            raise Exception("Insert returned no data")
        except Exception as e:
            logger.error(f"Error saving scrape result: {e}")
            raise

    async def list_scrape_results(self, limit: int = 20, skip: int = 0) -> Tuple[List[ScrapeSummary], int]:
        """List scrapes newest first. Returns (page, total)."""
        try:
            response = (
                self.client.table(self.TABLE)
                .select(SUMMARY_COLUMNS, count="exact")
                .order("created_at", desc=True)
                .range(skip, skip + limit - 1)
                .execute()
            )
            scrapes = [self._parse_summary(row) for row in response.data or []]
            total = response.count if response.count is not None else len(scrapes)
            return scrapes, total
        except Exception as e:
            logger.error(f"Error listing scrape results: {e}")
            raise

    async def get_scrape_result(self, scrape_id: UUID) -> Optional[ScrapeDetail]:
        """Get a stored scrape by ID."""
        try:
            response = self.client.table(self.TABLE).select("*").eq("id", str(scrape_id)).limit(1).execute()
            if response.data:
                return self._parse_detail(response.data[0])
            return None
        except Exception as e:
            logger.error(f"Error fetching scrape {scrape_id}: {e}")
            raise

    async def delete_scrape_result(self, scrape_id: UUID) -> bool:
        """Delete a stored scrape. Returns False if it did not exist."""
        try:
            response = self.client.table(self.TABLE).delete().eq("id", str(scrape_id)).execute()
            deleted = bool(response.data)
            if deleted:
                logger.info(f"Deleted scrape {scrape_id}")
            return deleted
        except Exception as e:
            logger.error(f"Error deleting scrape {scrape_id}: {e}")
            raise

    # =========================================================================
    # Parsing
    # =========================================================================

    def _parse_summary(self, data: Dict[str, Any]) -> ScrapeSummary:
        """Parse a summary row from the database."""
        return ScrapeSummary(
            id=UUID(data["id"]),
            search_query=data["search_query"],
            max_products=data["max_products"],
            stats=ScrapeStats(**(data.get("stats") or {})),
            filename=data.get("filename"),
            state=data.get("state"),
            diagnostic=data.get("diagnostic"),
            created_at=datetime.fromisoformat(data["created_at"].replace("Z", "+00:00")),
        )

    def _parse_detail(self, data: Dict[str, Any]) -> ScrapeDetail:
        """Parse a full row from the database."""
        summary = self._parse_summary(data)
        return ScrapeDetail(
            **summary.model_dump(),
            products=[ProductRecordOut(**p) for p in data.get("products") or []],
            csv_data=data.get("csv_data") or "",
        )


# Global instance for dependency injection
_supabase_service: Optional[SupabaseService] = None


def get_supabase_service() -> SupabaseService:
    """Get or create Supabase service instance."""
    global _supabase_service
    if _supabase_service is None:
        _supabase_service = SupabaseService()
    return _supabase_service
