"""
Discover Crawler API
FastAPI Backend Entry Point

Run from this directory:
    uvicorn main:app --reload
    python main.py
"""

import logging
import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

# Add project root to path for discover_crawler import
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

# Import routers
from routers.scrapes import router as scrapes_router
from routers.health import router as health_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s | %(levelname)s | %(name)s | %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)


# =============================================================================
# Application Lifespan
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info("=" * 60)
    logger.info("DISCOVER CRAWLER API")
    logger.info("=" * 60)
    logger.info(f"Environment: {os.environ.get('PYTHON_ENV', 'development')}")
    logger.info(f"Port: {os.environ.get('PORT', '8000')}")

    supabase_key = os.environ.get("SUPABASE_KEY") or os.environ.get("SUPABASE_SERVICE_KEY")
    if not supabase_key:
        logger.warning("SUPABASE_KEY not set - scrape results will not be saved")
    else:
        logger.info("Supabase key configured")

    logger.info("API started successfully")
    logger.info("=" * 60)

    yield

    # Shutdown
    logger.info("Shutting down API...")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Discover Crawler API",
    description="""
    ## Discover Catalog Scraper API

    Searches the Whop discover catalog, scrolls the infinite result list
    until enough products are found, and collects each product's creator
    and social links.

    ### Features
    - Streamed scrape progress (server-sent events)
    - CSV reports
    - Stored scrape history
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan
)


# =============================================================================
# CORS Middleware
# =============================================================================

def get_cors_origins() -> list:
    """Allowed origins from CORS_ORIGINS; everything in development, nothing in production."""
    configured = os.environ.get("CORS_ORIGINS", "")
    if configured and configured != "*":
        return [origin.strip() for origin in configured.split(",") if origin.strip()]
    if os.environ.get("PYTHON_ENV", "").lower() in ("production", "prod"):
        logger.warning("CORS: No origins configured for production. Set CORS_ORIGINS.")
        return []
    logger.info("CORS: Development mode - allowing all origins")
    return ["*"]


CORS_ORIGINS = get_cors_origins()

# The web client reads the event stream cross-origin; credentials are impossible with "*"
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=CORS_ORIGINS != ["*"],
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Accept", "Cache-Control"],
    expose_headers=["Content-Disposition"],
)


# =============================================================================
# Exception Handlers
# =============================================================================

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors with detailed messages."""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"]
        })

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "Validation error",
            "errors": errors
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected errors."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    if os.environ.get("PYTHON_ENV") == "production":
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"}
        )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": str(exc),
            "type": type(exc).__name__
        }
    )


# =============================================================================
# Include Routers
# =============================================================================

app.include_router(health_router)
app.include_router(scrapes_router)


# =============================================================================
# Root Endpoint
# =============================================================================

@app.get("/", include_in_schema=False)
async def root():
    return {
        "name": "Discover Crawler API",
        "version": "1.0.0",
        "documentation": "/docs",
        "health": "/api/health"
    }


# =============================================================================
# Run with Uvicorn (for local development)
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", 8000))
    host = os.environ.get("HOST", "0.0.0.0")
    reload = os.environ.get("PYTHON_ENV") != "production"

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info"
    )
