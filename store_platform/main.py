"""
Store Provisioning Platform — API

Main entrypoint. Sets up FastAPI with:
  - Store orchestrator owned by the app lifespan (reconciler start/stop)
  - CORS for dashboard access
  - Rate limiting (slowapi)
  - Prometheus metrics (/metrics)
  - Health check (/health) with Redis status
  - Store routes (/api/stores)
"""

import logging
import uvicorn
from datetime import datetime, timezone
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .config import settings
from .database import init_db
from .metrics import update_gauges
from .routers.stores import router as stores_router, limiter
from .services.events import redis_status
from .services.orchestrator import StoreOrchestrator

VERSION = "1.0.0"

# --- Logging ---
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("store-platform")


# --- Lifespan ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Store Provisioning Platform starting...")
    init_db()
    orchestrator = getattr(app.state, "orchestrator", None) or StoreOrchestrator()
    app.state.orchestrator = orchestrator
    await orchestrator.start()
    yield
    await orchestrator.stop()
    logger.info("Store Provisioning Platform shutting down...")


# --- FastAPI app ---
app = FastAPI(
    title="Store Provisioning Platform API",
    description="Provisions isolated per-tenant stores (namespace + Helm release) and reconciles their status",
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()],
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)

# --- Rate Limiting ---
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# --- Include stores router ---
app.include_router(stores_router, prefix="/api")


# --- Health check ---
@app.get("/health")
async def health(request: Request):
    """Health check with reconciler and Redis status."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        "reconciler": "running" if orchestrator and orchestrator.running else "stopped",
        "redis": redis_status(),
        "version": VERSION,
    }


# --- Prometheus metrics endpoint ---
@app.get("/metrics", response_class=PlainTextResponse)
async def metrics(request: Request):
    """Expose Prometheus metrics."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is not None:
        update_gauges(orchestrator.repository.count_by_status())
    return PlainTextResponse(
        content=generate_latest().decode("utf-8"),
        media_type=CONTENT_TYPE_LATEST,
    )


# --- Global exception handler ---
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


def run():
    uvicorn.run(
        "store_platform.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_level=settings.LOG_LEVEL.lower(),
        reload=False,
    )


# --- Entry point ---
if __name__ == "__main__":
    run()
