import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ticket_allocation.api.v1 import admin, orders, payments, raffles
from ticket_allocation.core.config import settings
from ticket_allocation.core.exceptions import ServiceError
from ticket_allocation.core.redis import close_redis
from ticket_allocation.middleware.metrics import PrometheusMiddleware, metrics_endpoint

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info("Starting application...")

    # Shared outbound client for gateway confirm calls
    app.state.http = httpx.AsyncClient(timeout=settings.PAYMENT_GATEWAY_TIMEOUT)

    if not settings.WEBHOOK_SECRET:
        logger.warning("WEBHOOK_SECRET is not set; every webhook call will be rejected")
    if not settings.PAYMENT_GATEWAY_TOKEN:
        logger.warning("PAYMENT_GATEWAY_TOKEN is not set; buyer confirmations will stay pending")

    yield

    logger.info("Shutting down...")
    await app.state.http.aclose()
    await close_redis()


app = FastAPI(
    title="Ticket Allocation Service",
    version="1.0.0",
    description="Payment-confirmed raffle number allocation",
    lifespan=lifespan,
)

# Prometheus Metrics Middleware (must be first to capture all requests)
app.add_middleware(PrometheusMiddleware)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Render domain errors as {ok: false, code, error}."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code} {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"ok": False, "code": exc.code, "error": exc.message},
    )


# Include API routers
app.include_router(orders.router, prefix="/api/v1/orders", tags=["orders"])
app.include_router(payments.router, prefix="/api/v1/payments", tags=["payments"])
app.include_router(admin.router, prefix="/api/v1/admin", tags=["admin"])
app.include_router(raffles.router, prefix="/api/v1/raffles", tags=["raffles"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


# Prometheus metrics endpoint
app.add_route("/metrics", metrics_endpoint)
