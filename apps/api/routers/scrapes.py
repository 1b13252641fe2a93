"""
Scrapes Router for the Discover Crawler API
Starts scrapes (streamed as server-sent events) and manages stored results
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse

from models.schemas import (
    ScrapeRequest,
    ScrapeListResponse,
    ScrapeDetailResponse,
    DeleteResponse,
)
from services.supabase import SupabaseService, get_supabase_service
from services.scraper import ScrapeService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Scrapes"])


def get_scrape_service(db: SupabaseService = Depends(get_supabase_service)) -> ScrapeService:
    """Scrape service bound to the shared database service."""
    return ScrapeService(db=db)


# =============================================================================
# Scrape Execution
# =============================================================================

@router.post("/scrape")
async def start_scrape(
    request: ScrapeRequest,
    service: ScrapeService = Depends(get_scrape_service)
):
    """
    Run a scrape and stream progress.

    Responds with text/event-stream. Each frame is `data: {json}` where
    `type` is one of:
    - **connected**: session id
    - **progress**: product, progress {current, total}, stats
    - **complete**: results, stats, csv, filename, state, diagnostic, scrape_id
    - **error**: error message
    """
    return StreamingResponse(
        service.stream(request),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


# =============================================================================
# Stored Results
# =============================================================================

@router.get("/scrapes", response_model=ScrapeListResponse)
async def list_scrapes(
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    skip: int = Query(0, ge=0, description="Items to skip"),
    db: SupabaseService = Depends(get_supabase_service)
):
    """
    List stored scrapes, newest first.

    Product lists and CSV data are omitted; fetch a single scrape for those.
    """
    try:
        scrapes, total = await db.list_scrape_results(limit=limit, skip=skip)
    except Exception as e:
        logger.error(f"Error listing scrapes: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return ScrapeListResponse(scrapes=scrapes, total=total, limit=limit, skip=skip)


@router.get("/scrapes/{scrape_id}", response_model=ScrapeDetailResponse)
async def get_scrape(
    scrape_id: UUID,
    db: SupabaseService = Depends(get_supabase_service)
):
    """Get a stored scrape with its products and CSV data."""
    try:
        scrape = await db.get_scrape_result(scrape_id)
    except Exception as e:
        logger.error(f"Error fetching scrape {scrape_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    if not scrape:
        raise HTTPException(status_code=404, detail="Scrape not found")
    return ScrapeDetailResponse(scrape=scrape)


@router.get("/scrapes/{scrape_id}/csv")
async def download_scrape_csv(
    scrape_id: UUID,
    db: SupabaseService = Depends(get_supabase_service)
):
    """Download the CSV report of a stored scrape."""
    try:
        scrape = await db.get_scrape_result(scrape_id)
    except Exception as e:
        logger.error(f"Error fetching scrape {scrape_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    if not scrape:
        raise HTTPException(status_code=404, detail="Scrape not found")

    filename = scrape.filename or f"scrape-{scrape_id}.csv"
    return StreamingResponse(
        iter([scrape.csv_data]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )


@router.delete("/scrapes/{scrape_id}", response_model=DeleteResponse)
async def delete_scrape(
    scrape_id: UUID,
    db: SupabaseService = Depends(get_supabase_service)
):
    """Delete a stored scrape."""
    try:
        deleted = await db.delete_scrape_result(scrape_id)
    except Exception as e:
        logger.error(f"Error deleting scrape {scrape_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    if not deleted:
        raise HTTPException(status_code=404, detail="Scrape not found")
    return DeleteResponse(message="Scrape deleted successfully")
