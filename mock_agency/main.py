"""
Mock Delivery Agency - Main FastAPI Application
"""
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mock_agency import __version__
from mock_agency.core.config import settings
from mock_agency.core.logging import setup_logging, get_logger
from mock_agency.core.middleware import setup_middleware, setup_exception_handlers
from mock_agency.api.routes import router as api_router
from mock_agency.runtime import AgencyRuntime, build_runtime

# Setup logging before anything else
setup_logging(
    level="DEBUG" if settings.DEBUG else "INFO",
    json_format=not settings.DEBUG,
    app_name=settings.APP_NAME
)

logger = get_logger(__name__)


def _parse_allowed_origins(raw: str) -> list[str]:
    """Parse comma-separated CORS origins string into a clean list."""
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


_OPENAPI_TAGS = [
    {
        "name": "Parcels",
        "description": "Parcel creation, tracking, manual status updates and simulated delivery flows.",
    },
    {"name": "Health", "description": "Liveness probe for containers and load balancers."},
]


def create_app(runtime: Optional[AgencyRuntime] = None) -> FastAPI:
    """
    Build the application around one AgencyRuntime.

    The runtime is attached immediately (not in a startup hook) so that
    in-process clients that skip the lifespan still see it.
    """
    app = FastAPI(
        title=settings.APP_NAME,
        version=__version__,
        description=(
            "Simulates a third-party delivery agency for testing cash-on-delivery "
            "order flows, including webhook notifications on every status change."
        ),
        openapi_tags=_OPENAPI_TAGS,
    )
    app.state.runtime = runtime or build_runtime(settings)

    setup_middleware(app)
    setup_exception_handlers(app)

    allowed_origins = _parse_allowed_origins(settings.ALLOWED_ORIGINS)
    if allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=allowed_origins,
            allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            allow_headers=["Content-Type", "X-Correlation-ID"],
        )

    app.include_router(api_router, prefix="/api")

    @app.on_event("startup")
    async def startup() -> None:
        logger.info(
            "Starting application",
            extra_data={"app_name": settings.APP_NAME, "port": settings.PORT},
        )

    @app.on_event("shutdown")
    async def shutdown() -> None:
        """Cancel running simulations and wait for in-flight webhooks"""
        logger.info("Shutting down application")
        await app.state.runtime.aclose()

    @app.get(
        "/health",
        summary="Liveness probe",
        tags=["Health"],
    )
    async def health_check() -> dict:
        runtime: AgencyRuntime = app.state.runtime
        return {
            "status": "healthy",
            "parcels": len(runtime.store),
            "active_simulations": len(runtime.scheduler.active_runs()),
            "webhooks": {
                **runtime.notifier.stats.to_dict(),
                "pending": runtime.notifier.pending_count,
            },
        }

    return app


app = create_app()
