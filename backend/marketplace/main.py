"""
Job Marketplace API - Main Application Entry Point

This module initializes the FastAPI application with:
- Database connection and schema initialization
- Daily scheduler for expiring stale applications
- Prometheus metrics middleware and /metrics endpoint
- Domain error to HTTP response mapping
- API router registration

Architecture:
    FastAPI App
    ├── Lifespan Management (startup/shutdown)
    ├── CORS Middleware (localhost:3000)
    ├── Prometheus Middleware
    └── API Router
        ├── /jobs - Job postings, moderation and applying
        └── /applications - Application lifecycle
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from marketplace.api import api_router
from marketplace.config import get_settings
from marketplace.database import init_db
from marketplace.errors import MarketplaceError
from marketplace.middleware import setup_metrics
from marketplace.scheduler import start_scheduler, stop_scheduler
from marketplace.services.cache import get_cache

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle events.

    Startup:
        1. Initialize database tables
        2. Start the expiry scheduler

    Shutdown:
        1. Stop the scheduler
        2. Close the Redis connection pool
    """
    await init_db()
    start_scheduler()
    yield
    stop_scheduler()
    cache = await get_cache()
    await cache.close()


app = FastAPI(
    title="Job Marketplace API",
    description="Job postings and application lifecycle API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_metrics(app)


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(api_router)


@app.get("/health")
async def health_check():
    cache = await get_cache()
    cache_ok = await cache.health_check()
    return {"status": "healthy", "cache": "ok" if cache_ok else "unavailable"}
