"""
Main FastAPI application for the BabyPeek API.
Serves uploads, status polling, results, purchases, worker callbacks,
payment webhooks, share pages, HD downloads, signed files, health and metrics.
"""
import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from babypeek.core.config import settings
from babypeek.core.logging import configure_logging
from babypeek.api.routes import (
    callbacks,
    data,
    downloads,
    files,
    health,
    preferences,
    purchases,
    results,
    retry,
    share,
    status,
    uploads,
    webhooks,
)
from babypeek.utils.metrics import router as metrics_router

configure_logging()
logger = logging.getLogger("babypeek.http")

app = FastAPI(
    title="BabyPeek API",
    description="Ultrasound to portrait job lifecycle API",
    version="1.0.0",
)

# CORS
origins = settings.cors_origins_list
if not origins:
    origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log non-2xx responses and slow requests, skipping preflight and probes."""
    if request.method == "OPTIONS" or request.url.path in ("/health", "/ready", "/metrics"):
        return await call_next(request)
    started = time.monotonic()
    response = await call_next(request)
    latency_ms = int((time.monotonic() - started) * 1000)
    if response.status_code >= 400 or latency_ms > 1000:
        logger.info(
            "http_request",
            extra={
                "request_id": request.headers.get(settings.request_id_header),
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "latency_ms": latency_ms,
            },
        )
    return response


# Routers
app.include_router(health.router, tags=["health"])
app.include_router(uploads.router)
app.include_router(status.router)
app.include_router(results.router)
app.include_router(retry.router)
app.include_router(preferences.router)
app.include_router(purchases.router)
app.include_router(data.router)
app.include_router(callbacks.router)
app.include_router(webhooks.router)
app.include_router(files.router)
app.include_router(share.router)
app.include_router(downloads.router)
app.include_router(metrics_router)
