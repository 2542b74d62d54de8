"""
File storage API

Accepts named byte streams on POST /files/<name> and returns them on
GET /files/<name>, backed by a local directory or a GridFS bucket.

    curl --data-binary "@/path/to/beautiful.png" http://localhost:9090/files/beautiful.png
    curl -O http://localhost:9090/files/beautiful.png
"""
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI

from api.config import Settings, get_settings
from api.routers import files
from api.utils.logger import setup_logging
from api.utils.metrics import start_metrics_server
from storage.factory import create_storage_backend
from storage.repository import Repository

logger = structlog.get_logger()


def build_repository(config: Settings) -> Repository:
    """Create the repository for the configured backend."""
    return Repository(create_storage_backend(config.storage_backend_config))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown."""
    config: Settings = app.state.settings

    # Startup
    logger.info("Starting file storage API", version=config.VERSION)

    if app.state.repository is None:
        app.state.repository = build_repository(config)

    # Initialization errors propagate and abort startup
    await app.state.repository.initialize()

    logger.info(
        "Configuration loaded",
        api_host=config.API_HOST,
        api_port=config.API_PORT,
        storage_backend=config.STORAGE_BACKEND,
        max_upload_size=config.MAX_UPLOAD_SIZE,
    )

    yield

    # Shutdown
    logger.info("Shutting down file storage API")
    await app.state.repository.close()


def create_application(
    config: Optional[Settings] = None,
    repository: Optional[Repository] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Settings to use instead of the environment
        repository: Pre-built repository; built from config at startup if
            omitted
    """
    config = config or get_settings()

    application = FastAPI(
        title="File Storage API",
        description="Stores and serves named binary objects",
        version=config.VERSION,
        docs_url="/docs" if config.DEBUG else None,
        redoc_url=None,
        openapi_url="/openapi.json" if config.DEBUG else None,
        lifespan=lifespan,
    )
    application.state.settings = config
    application.state.repository = repository

    application.include_router(files.router, tags=["files"])

    return application


def main() -> None:
    """Main entry point for production server."""
    import uvicorn

    config = get_settings()
    setup_logging(config)

    if config.ENABLE_METRICS:
        start_metrics_server(config.METRICS_PORT)
        logger.info("Metrics server started", port=config.METRICS_PORT)

    logger.info("Starting webserver", host=config.API_HOST, port=config.API_PORT)
    uvicorn.run(
        create_application(config),
        host=config.API_HOST,
        port=config.API_PORT,
        log_config=None,  # Use structured logging
        access_log=False,  # Dispatcher logs every request
        server_header=False,
    )


if __name__ == "__main__":
    main()
