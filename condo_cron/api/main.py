"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from condo_cron.api.middleware import RequestIDMiddleware, MetricsMiddleware
from condo_cron.api.v1 import automation, cron
from condo_cron.infrastructure.observability.logging import setup_logging
from condo_cron.config import get_settings


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    settings = get_settings()

    # Setup structured logging
    setup_logging(settings.log_level, settings.service_name)

    app = FastAPI(
        title="Condo Cron",
        description="Scheduled payment reconciliation and notification dispatch",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Liveness only; dependency checks live in /v1/cron/health-check
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(cron.router, prefix="/v1", tags=["cron"])
    app.include_router(automation.router, prefix="/v1", tags=["automation"])

    return app


app = create_app()
