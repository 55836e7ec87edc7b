"""Main application entry point for the menu sync service.

This module provides the FastAPI application factory for running the
service locally or behind a long-running server.
"""

import logging
import os

from fastapi import FastAPI

from lambda_dependencies import get_api_keys, get_sync_service
from menu_sync_service.handlers.api_handler import create_app
from menu_sync_service.observability import configure_logging, setup_observability

logger = logging.getLogger(__name__)

DEVELOPMENT_API_KEY = "dev-sync-key"


def resolve_api_keys() -> list[str]:
    """Read the configured bearer secrets, with a fixed key in development.

    Returns:
        List of accepted secrets

    Raises:
        ValueError: If no secret is configured outside development
    """
    try:
        return get_api_keys()
    except ValueError:
        if os.getenv("ENVIRONMENT", "development") != "development":
            raise
        logger.warning(f"SYNC_API_KEYS not set - accepting development key '{DEVELOPMENT_API_KEY}'")
        return [DEVELOPMENT_API_KEY]


def create_application() -> FastAPI:
    """Create and configure the FastAPI application with all dependencies.

    This factory function:
    1. Configures logging
    2. Builds repositories, adapters and the sync service
    3. Creates the FastAPI app with the sync endpoints
    4. Sets up observability

    Returns:
        Configured FastAPI application instance
    """
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))
    logger.info("Initializing menu sync service...")

    app = create_app(sync_service=get_sync_service(), api_keys=resolve_api_keys())
    setup_observability(app)

    logger.info("Menu sync service initialized successfully")
    return app


# Create the FastAPI application instance (only when not in test mode)
if os.getenv("ENVIRONMENT") != "test":  # noqa: SIM108
    app = create_application()
else:
    # Placeholder app for test imports
    app = FastAPI()


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", "8001"))
    host = os.getenv("HOST", "0.0.0.0")

    logger.info(f"Starting development server on {host}:{port}")
    logger.info(f"API documentation available at http://{host}:{port}/docs")

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=True,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )
