"""
Pydantic models for the Discover Crawler API
"""

import json
from datetime import datetime
from enum import Enum
from typing import Optional, List, Any, Dict
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Enums
# =============================================================================

class StreamEventType(str, Enum):
    CONNECTED = "connected"
    PROGRESS = "progress"
    COMPLETE = "complete"
    ERROR = "error"


# =============================================================================
# Scrape Schemas
# =============================================================================

class ScrapeRequest(BaseModel):
    """Start a scrape. Accepts camelCase keys as sent by the web client."""
    model_config = ConfigDict(populate_by_name=True)

    search_query: str = Field(..., alias="searchQuery", min_length=1, max_length=200)
    max_products: int = Field(default=100, alias="maxProducts", ge=1, le=500)

    @field_validator("search_query")
    @classmethod
    def strip_query(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Search query is required")
        return v


class ProductRecordOut(BaseModel):
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


class ScrapeStats(BaseModel):
    total: int = 0
    with_twitter: int = 0
    with_instagram: int = 0
    with_youtube: int = 0
    with_tiktok: int = 0
    with_discord: int = 0
    with_linkedin: int = 0
    with_telegram: int = 0


class ScrapeSummary(BaseModel):
    """Stored scrape without its product list or CSV"""
    id: UUID
    search_query: str
    max_products: int
    stats: ScrapeStats = Field(default_factory=ScrapeStats)
    filename: Optional[str] = None
    state: Optional[str] = None
    diagnostic: Optional[str] = None
    created_at: datetime


class ScrapeDetail(ScrapeSummary):
    """Stored scrape with products and CSV"""
    products: List[ProductRecordOut] = Field(default_factory=list)
    csv_data: str = ""


class ScrapeListResponse(BaseModel):
    success: bool = True
    scrapes: List[ScrapeSummary]
    total: int
    limit: int
    skip: int


class ScrapeDetailResponse(BaseModel):
    success: bool = True
    scrape: ScrapeDetail


class DeleteResponse(BaseModel):
    success: bool = True
    message: str


# =============================================================================
# Stream Events
# =============================================================================

class StreamEvent(BaseModel):
    """One server-sent event frame"""
    type: StreamEventType
    data: Dict[str, Any] = Field(default_factory=dict)

    def to_sse(self) -> str:
        payload = {"type": self.type.value, **self.data}
        return f"data: {json.dumps(payload, default=str)}\n\n"


# =============================================================================
# Health
# =============================================================================

class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    supabase_connected: bool
    timestamp: datetime


class ErrorResponse(BaseModel):
    """Standard error response"""
    detail: str
    error_code: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)
