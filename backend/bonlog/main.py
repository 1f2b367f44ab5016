"""BON-LOG Premium — FastAPI application entry point."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bonlog.api.v1.admin import router as admin_router
from bonlog.api.v1.billing import router as billing_router
from bonlog.api.v1.cron import router as cron_router
from bonlog.api.v1.scheduled_posts import router as scheduled_posts_router
from bonlog.api.v1.webhooks import router as webhooks_router
from bonlog.config import settings

# Configure root logger so all bonlog.* loggers output to stderr (captured by Docker).
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler for startup and shutdown events."""
    yield
    from bonlog.billing.stripe_client import reset_stripe_client
    from bonlog.database import engine

    reset_stripe_client()
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Premium membership, Stripe billing and entitlement sync for BON-LOG.",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(billing_router)
app.include_router(scheduled_posts_router)
app.include_router(admin_router)
app.include_router(cron_router)
app.include_router(webhooks_router)


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": settings.app_name}


@app.get("/", tags=["root"])
async def root() -> dict[str, str]:
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }
