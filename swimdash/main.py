"""
SwimDash API application.

Serves the local dashboard: logging swims, statistics, export and
import. create_app() builds a fresh application so tests can swap in
their own session store through dependency overrides.

Run locally with:
    uvicorn swimdash.main:app --reload
or through the console script:
    swimdash
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .api.dependencies import get_session_store
from .api.routes import data, health, sessions, stats
from .config.settings import Settings, get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

logging.basicConfig(format=LOG_FORMAT, level=logging.INFO)

logger = logging.getLogger(__name__)

# (router module, mount prefix, OpenAPI tag)
ROUTERS = (
    (health, "/health", "Health"),
    (sessions, "/api/v1/sessions", "Sessions"),
    (stats, "/api/v1/stats", "Statistics"),
    (data, "/api/v1/data", "Data"),
)

DESCRIPTION = """
Local API behind the SwimDash swim logger.

Log a swim with distance, time and notes and the pace is worked out for
you. Browse recent swims or a date range, follow weekly and monthly
distance, the calendar heatmap and goal progress, and keep backups with
JSON export and import. Everything stays on this machine.
"""


def configure_logging(settings: Settings) -> None:
    """Apply the configured level to the root logger."""
    logging.getLogger().setLevel(settings.log_level.upper())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup and shutdown.

    Loading the store here means a corrupt or unreadable history is
    reported in the log before the first request arrives.
    """
    settings = get_settings()
    configure_logging(settings)

    logger.info(
        "Starting SwimDash API",
        extra={
            "version": __version__,
            "storage_dir": str(settings.storage_path),
            "storage_mock_mode": settings.storage_mock_mode,
        }
    )

    for problem in settings.validate_required_fields():
        logger.error("Configuration problem", extra={"problem": problem})

    if get_session_store not in app.dependency_overrides:
        store = get_session_store(settings)
        logger.info("Session history ready", extra={"session_count": len(store)})

    yield

    logger.info("Stopping SwimDash API")


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    """Log anything no route handled and answer with a generic 500."""
    logger.error(
        "Unhandled error",
        extra={"method": request.method, "path": request.url.path, "error": str(exc)},
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error. Your data was not changed."},
    )


def create_app() -> FastAPI:
    """Build the FastAPI application from the current settings."""
    settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=__version__,
        description=DESCRIPTION,
        lifespan=lifespan,
    )

    # The dashboard frontend is served from its own dev-server port
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

    for module, prefix, tag in ROUTERS:
        app.include_router(module.router, prefix=prefix, tags=[tag])

    app.add_exception_handler(Exception, handle_unexpected_error)

    @app.get("/", include_in_schema=False)
    async def index():
        return {
            "name": settings.api_title,
            "version": __version__,
            "api": "/api/v1",
            "docs": app.docs_url,
        }

    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "swimdash.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
