"""AIO Pulse Core API - Main Application."""

import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request

from pulse_core.api.deps import client_identifier
from pulse_core.api.routes import metrics as metrics_routes
from pulse_core.api.routes import monitoring as monitoring_routes
from pulse_core.api.routes import providers as providers_routes
from pulse_core.config import get_settings
from pulse_core.domain.services.alert_dispatch import AlertDispatcher
from pulse_core.domain.services.monitoring import MonitoringService
from pulse_core.domain.services.router import ProviderRouter
from pulse_core.infrastructure.rate_limiter import FixedWindowRateLimiter
from pulse_core.observability.logging import RequestContext, configure_logging, get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    settings = get_settings()
    configure_logging(settings.log_level, json_format=settings.log_json)

    missing = settings.missing_provider_keys()
    if missing:
        logger.warning(
            f"Text-generation providers without an API key: {', '.join(missing)}",
            missing_providers=missing,
        )

    provider_router = ProviderRouter.from_settings(settings)
    rate_limiter = FixedWindowRateLimiter()
    rate_limiter.start_sweeper(settings.rate_limit_sweep_seconds)

    app.state.settings = settings
    app.state.provider_router = provider_router
    app.state.monitoring = MonitoringService(provider_router, settings)
    app.state.alert_dispatcher = AlertDispatcher(settings)
    app.state.rate_limiter = rate_limiter
    yield
    # Shutdown
    await rate_limiter.stop_sweeper()
    await provider_router.aclose()


app = FastAPI(
    title="AIO Pulse Core API",
    description="AI search visibility monitoring: engine simulation, brand analysis and alerts",
    version="0.1.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Tag each request with an id and log its outcome."""
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
    context = RequestContext(request_id=request_id, client_ip=client_identifier(request))
    started = time.monotonic()

    response = await call_next(request)

    response.headers["X-Request-ID"] = request_id
    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code}",
        context,
        duration_ms=round((time.monotonic() - started) * 1000, 1),
    )
    return response


# Include API routers
app.include_router(metrics_routes.router)
app.include_router(monitoring_routes.router)
app.include_router(providers_routes.router)


@app.get("/healthz")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"ok": True, "service": "aio-pulse-core"}
