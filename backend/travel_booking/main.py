"""
Travel Booking API - Main Application Entry Point

Customers browse travel packages, get discounted quotes, and book through a
multi-step flow that ends in one atomic commit:
- Login throttling with short and long lockouts
- Pure, Decimal-exact pricing with early-bird and bulk discounts
- Optimistic-locking slot reservation (no overbooking under concurrency)
- Redis for listing cache, login counters and booking drafts
- Structured logging with request correlation and Prometheus metrics
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from travel_booking.core.config import get_settings
from travel_booking.core.logging import setup_logging, get_logger
from travel_booking.core.metrics import metrics_endpoint
from travel_booking.api.router import api_router
from travel_booking.api.middleware import RequestLoggingMiddleware
from travel_booking.infrastructure import get_redis, close_redis
from travel_booking.services.cache_service import get_cache_stats

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        attempt_store=settings.ATTEMPT_STORE,
        draft_store=settings.DRAFT_STORE,
        payment_gateway="stripe" if settings.STRIPE_SECRET_KEY else "offline",
    )

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    elif settings.REDIS_ENABLED:
        logger.warning("redis_unavailable", message="Running with in-process stores and no cache")

    yield

    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Travel package booking API with throttled login and atomic booking commits",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": cache_stats,
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
