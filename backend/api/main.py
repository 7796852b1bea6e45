"""
LogiBill API — FastAPI Application Entry Point
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import get_settings

settings = get_settings()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info(
        "LogiBill API starting up",
        version=settings.app_version,
        slab_table=settings.slab_table,
        outbound_dedup_policy=settings.outbound_dedup_policy,
    )
    yield
    logger.info("LogiBill API shutting down")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Warehouse MIS ingestion, revenue slabs and monthly billing",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Import and register routers
from api.v1.routers import billing, data, rejected_rows, reports, uploads

app.include_router(uploads.router)
app.include_router(rejected_rows.router)
app.include_router(data.router)
app.include_router(reports.router)
app.include_router(billing.router)


@app.get("/health")
async def health_check():
    """Health check endpoint for load balancers."""
    return {"status": "healthy", "version": settings.app_version}
