"""FastAPI application for the commerce access-control and settlement API."""
from __future__ import annotations

import base64
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, Response

from .core.config import settings
from .routers import payments, rtc, webhooks

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Creator Commerce Core API", version="0.1.0")

if settings.cors_allow_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(rtc.router, prefix="/api/rtc", tags=["rtc"])
app.include_router(payments.router, prefix="/api/payments", tags=["payments"])
app.include_router(webhooks.router, prefix="/api/webhooks", tags=["webhooks"])


FAVICON_BYTES = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR4nGMAAQAABQABDQottAAAAABJRU5ErkJggg=="
)


@app.get("/api/health", tags=["meta"])
async def health() -> dict[str, str]:
    """Simple liveness probe."""

    return {"status": "ok"}


@app.head("/api/health", tags=["meta"])
async def health_head() -> Response:
    """Allow HEAD for uptime monitors that only need the status code."""

    return Response(status_code=200)


@app.get("/robots.txt", response_class=PlainTextResponse, include_in_schema=False)
async def robots() -> PlainTextResponse:
    """Serve a minimal robots.txt to avoid 404 noise."""

    return PlainTextResponse("User-agent: *\nDisallow:")


@app.get("/favicon.ico", include_in_schema=False)
async def favicon() -> Response:
    """Return a tiny placeholder favicon."""

    return Response(content=FAVICON_BYTES, media_type="image/png")
