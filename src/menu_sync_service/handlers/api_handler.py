"""FastAPI application for sync trigger and status endpoints."""

import logging

from fastapi import Depends, FastAPI, Header, HTTPException, Query
from pydantic import BaseModel

from menu_sync_service.auth.api_dependencies import get_bearer_token_from_header
from menu_sync_service.auth.api_key_validator import APIKeyValidator
from menu_sync_service.models.sync_models import MenuSource, SyncConfig, SyncResult
from menu_sync_service.repositories.sync_repositories import RepositoryError
from menu_sync_service.services.sync_service import MenuSyncService, summarize_results

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str


class SyncAllResponse(BaseModel):
    """Response model for batch sync triggers."""

    total: int
    summary: dict[str, int]
    results: list[SyncResult]


def create_app(sync_service: MenuSyncService, api_keys: list[str]) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        sync_service: Service orchestrating menu syncs
        api_keys: List of valid bearer secrets for authentication

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="External Menu Sync API",
        description="Trigger and inspect menu synchronization from external sources",
        version="1.0.0",
    )

    # Store services in app state for access in route handlers
    app.state.sync_service = sync_service
    app.state.api_key_validator = APIKeyValidator(api_keys=api_keys)

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(status="healthy")

    def validate_bearer_token(authorization: str | None = Header(None)) -> str:
        """Dependency to validate the bearer secret."""
        return get_bearer_token_from_header(
            authorization=authorization, validator=app.state.api_key_validator
        )

    @app.post(
        "/admin/sync/{restaurant_id}",
        response_model=SyncResult,
        tags=["Sync"],
    )
    async def trigger_restaurant_sync(
        restaurant_id: str,
        source: MenuSource | None = None,
        force: bool = False,
        _token: str = Depends(validate_bearer_token),
    ) -> SyncResult:
        """Sync one restaurant's menu.

        The outcome (success, error or skipped) is reported in the body;
        the status code is 200 whenever the caller is authorized.

        Args:
            restaurant_id: The restaurant to sync
            source: Optional source, defaults to the restaurant's configured source
            force: Bypass the sync interval check

        Returns:
            The SyncResult of the run
        """
        logger.info(f"Manual sync triggered for restaurant {restaurant_id} (force={force})")

        result: SyncResult = await app.state.sync_service.sync_restaurant(
            restaurant_id, source=source, force=force
        )
        return result

    @app.post("/admin/sync-all", response_model=SyncAllResponse, tags=["Sync"])
    async def trigger_sync_all(
        force: bool = False,
        _token: str = Depends(validate_bearer_token),
    ) -> SyncAllResponse:
        """Sync every restaurant with an enabled config.

        Args:
            force: Bypass the sync interval check for every restaurant

        Returns:
            One result per enabled config and a count per status

        Raises:
            HTTPException: 503 if the enabled configs cannot be listed
        """
        logger.info(f"Manual sync-all triggered (force={force})")

        try:
            results: list[SyncResult] = await app.state.sync_service.sync_all_restaurants(
                force=force
            )
        except RepositoryError as e:
            raise HTTPException(status_code=503, detail=str(e)) from e

        return SyncAllResponse(
            total=len(results),
            summary=summarize_results(results),
            results=results,
        )

    @app.get(
        "/admin/sync-results/{restaurant_id}",
        response_model=list[SyncResult],
        tags=["Sync Status"],
    )
    async def get_sync_results(
        restaurant_id: str,
        source: MenuSource | None = None,
        limit: int = Query(50, ge=1, le=500),
        _token: str = Depends(validate_bearer_token),
    ) -> list[SyncResult]:
        """Get recorded sync results for a restaurant, most recent first."""
        results: list[SyncResult] = await app.state.sync_service.get_recent_results(
            restaurant_id, source=source.value if source else None, limit=limit
        )
        return results

    @app.get(
        "/admin/sync-config/{restaurant_id}",
        response_model=SyncConfig,
        tags=["Sync Status"],
    )
    async def get_sync_config(
        restaurant_id: str,
        source: MenuSource | None = None,
        _token: str = Depends(validate_bearer_token),
    ) -> SyncConfig:
        """Get the enabled sync config for a restaurant.

        Raises:
            HTTPException: 404 if no enabled config exists
            HTTPException: 503 if the config store cannot be read
        """
        try:
            config: SyncConfig | None = await app.state.sync_service.get_sync_config(
                restaurant_id, source
            )
        except RepositoryError as e:
            raise HTTPException(status_code=503, detail=str(e)) from e

        if config is None:
            raise HTTPException(
                status_code=404,
                detail=f"No enabled sync config for restaurant {restaurant_id}",
            )
        return config

    return app
