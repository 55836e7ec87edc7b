"""Shared dependency factory for Lambda handlers.

This module provides cached dependency initialization to optimize Lambda cold starts.
Dependencies are created once and reused across invocations within the same Lambda container.
"""

import logging
import os
from typing import Any

import boto3
from fastapi import FastAPI

from menu_sync_service.adapters.base_adapter import MenuSourceAdapter
from menu_sync_service.adapters.documenu_adapter import DocumenuAdapter
from menu_sync_service.adapters.yelp_adapter import YelpAdapter
from menu_sync_service.adapters.zomato_adapter import ZomatoAdapter
from menu_sync_service.handlers.api_handler import create_app
from menu_sync_service.handlers.event_handler import SyncEventHandler
from menu_sync_service.models.sync_models import MenuSource
from menu_sync_service.observability import configure_logging, setup_observability
from menu_sync_service.repositories.sync_repositories import (
    MenuItemRepository,
    SyncConfigRepository,
    SyncResultRepository,
)
from menu_sync_service.services.result_log import SyncResultLog
from menu_sync_service.services.source_client import ExternalSourceClient
from menu_sync_service.services.sync_service import MenuSyncService

logger = logging.getLogger(__name__)

# Module-level caches for Lambda container reuse
_dynamodb_resource: Any | None = None
_source_adapters: dict[MenuSource, MenuSourceAdapter] | None = None
_sync_service: MenuSyncService | None = None
_event_handler: SyncEventHandler | None = None
_fastapi_app: FastAPI | None = None

_ADAPTER_CLASSES: dict[MenuSource, tuple[str, type[MenuSourceAdapter]]] = {
    MenuSource.DOCUMENU: ("DOCUMENU_API_KEY", DocumenuAdapter),
    MenuSource.YELP: ("YELP_API_KEY", YelpAdapter),
    MenuSource.ZOMATO: ("ZOMATO_API_KEY", ZomatoAdapter),
}


def get_dynamodb_resource() -> Any:
    """Create or retrieve cached DynamoDB resource.

    Returns:
        Boto3 DynamoDB resource configured for environment
    """
    global _dynamodb_resource

    if _dynamodb_resource is not None:
        return _dynamodb_resource

    endpoint_url = os.getenv("DYNAMODB_ENDPOINT")
    region = os.getenv("AWS_REGION", "us-east-1")

    if endpoint_url:
        # Local DynamoDB - use environment variables
        logger.info(f"Using local DynamoDB at {endpoint_url}")
        _dynamodb_resource = boto3.resource(
            "dynamodb",
            endpoint_url=endpoint_url,
            region_name=region,
            aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
        )
    else:
        logger.info(f"Using AWS DynamoDB in region {region}")
        _dynamodb_resource = boto3.resource("dynamodb", region_name=region)

    return _dynamodb_resource


def get_source_adapters() -> dict[MenuSource, MenuSourceAdapter]:
    """Create or retrieve cached source adapters.

    A source gets an adapter only when its API key is configured.

    Returns:
        Dictionary mapping sources to their configured adapters
    """
    global _source_adapters

    if _source_adapters is not None:
        return _source_adapters

    timeout = float(os.getenv("FETCH_TIMEOUT_SECONDS", "30"))
    adapters: dict[MenuSource, MenuSourceAdapter] = {}

    for source, (key_variable, adapter_class) in _ADAPTER_CLASSES.items():
        api_key = os.getenv(key_variable)
        if api_key:
            adapters[source] = adapter_class(api_key=api_key, timeout_seconds=timeout)  # type: ignore[call-arg]
            logger.info(f"{source.value} adapter configured")
        else:
            logger.warning(f"{key_variable} not set, {source.value} syncs will fail")

    _source_adapters = adapters
    return _source_adapters


def get_sync_service() -> MenuSyncService:
    """Create or retrieve cached sync service.

    Returns:
        Configured MenuSyncService instance
    """
    global _sync_service

    if _sync_service is not None:
        return _sync_service

    dynamodb_resource = get_dynamodb_resource()

    config_repository = SyncConfigRepository(
        dynamodb_resource=dynamodb_resource,
        table_name=os.getenv("DYNAMODB_SYNC_CONFIG_TABLE", "menu-sync-configs"),
    )
    menu_item_repository = MenuItemRepository(
        dynamodb_resource=dynamodb_resource,
        table_name=os.getenv("DYNAMODB_MENU_ITEMS_TABLE", "menu-items"),
    )
    result_repository = SyncResultRepository(
        dynamodb_resource=dynamodb_resource,
        table_name=os.getenv("DYNAMODB_SYNC_RESULTS_TABLE", "menu-sync-results"),
    )

    _sync_service = MenuSyncService(
        config_repository=config_repository,
        menu_item_repository=menu_item_repository,
        source_client=ExternalSourceClient(get_source_adapters()),
        result_log=SyncResultLog(result_repository),
        max_concurrency=int(os.getenv("SYNC_MAX_CONCURRENCY", "5")),
        fetch_timeout_seconds=float(os.getenv("FETCH_TIMEOUT_SECONDS", "30")),
        apply_timeout_seconds=float(os.getenv("APPLY_TIMEOUT_SECONDS", "60")),
        lease_ttl_seconds=int(os.getenv("SYNC_LEASE_SECONDS", "900")),
        legacy_id_fallback=os.getenv("LEGACY_EXTERNAL_ID_FALLBACK", "true").lower() == "true",
    )

    logger.info("Sync service initialized")
    return _sync_service


def get_event_handler() -> SyncEventHandler:
    """Create or retrieve cached event handler.

    Returns:
        Configured SyncEventHandler instance
    """
    global _event_handler

    if _event_handler is not None:
        return _event_handler

    _event_handler = SyncEventHandler(sync_service=get_sync_service())

    logger.info("Event handler initialized")
    return _event_handler


def get_api_keys() -> list[str]:
    """Read the bearer secrets accepted by the sync endpoints.

    Returns:
        List of secrets from SYNC_API_KEYS (comma-separated)

    Raises:
        ValueError: If no secret is configured
    """
    api_keys = [key.strip() for key in os.getenv("SYNC_API_KEYS", "").split(",") if key.strip()]
    if not api_keys:
        raise ValueError("SYNC_API_KEYS must be set in environment")
    return api_keys


def get_fastapi_app() -> FastAPI:
    """Create or retrieve cached FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    global _fastapi_app

    if _fastapi_app is not None:
        return _fastapi_app

    _fastapi_app = create_app(sync_service=get_sync_service(), api_keys=get_api_keys())

    logger.info("FastAPI application initialized")
    return _fastapi_app


def initialize_lambda_environment() -> None:
    """Initialize Lambda environment with logging and observability.

    Should be called once during Lambda cold start.
    """
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))
    setup_observability()

    logger.info("Lambda environment initialized")
