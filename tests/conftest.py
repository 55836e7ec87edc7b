"""Shared pytest fixtures and configuration for all tests."""

import os
from datetime import UTC, datetime
from decimal import Decimal

import pytest

# Composition roots skip building real AWS clients in test mode
os.environ.setdefault("ENVIRONMENT", "test")

from menu_sync_service.models.menu_models import ExternalMenuRecord, MenuItem  # noqa: E402
from menu_sync_service.models.sync_models import MenuSource, SyncConfig  # noqa: E402


@pytest.fixture
def mock_restaurant_id() -> str:
    """Fixture providing a standard test restaurant ID."""
    return "rest_123456"


@pytest.fixture
def mock_source() -> MenuSource:
    """Fixture providing a standard test menu source."""
    return MenuSource.DOCUMENU


@pytest.fixture
def fixed_now() -> datetime:
    """Fixture providing a fixed reconciliation timestamp."""
    return datetime(2024, 1, 15, 10, 30, tzinfo=UTC)


@pytest.fixture
def mock_sync_config(mock_restaurant_id: str) -> SyncConfig:
    """Fixture providing an enabled config that has never synced."""
    return SyncConfig(
        restaurant_id=mock_restaurant_id,
        source=MenuSource.DOCUMENU,
        enabled=True,
        sync_interval_hours=24,
    )


@pytest.fixture
def mock_external_records() -> list[ExternalMenuRecord]:
    """Fixture providing a fetched snapshot of two items."""
    return [
        ExternalMenuRecord(
            external_id="dm_1",
            name="Cheeseburger",
            description="Classic beef cheeseburger",
            price=Decimal("12.99"),
            category="Burgers",
        ),
        ExternalMenuRecord(
            external_id="dm_2",
            name="Caesar Salad",
            description="Fresh romaine with caesar dressing",
            price=Decimal("9.99"),
            category="Salads",
        ),
    ]


@pytest.fixture
def mock_stored_items(mock_restaurant_id: str, fixed_now: datetime) -> list[MenuItem]:
    """Fixture providing stored items for the documenu scope."""
    return [
        MenuItem(
            id="item_a",
            restaurant_id=mock_restaurant_id,
            source="documenu",
            external_id="dm_1",
            name="Cheeseburger",
            price=Decimal("11.99"),
            category="Burgers",
            created_at=fixed_now,
            updated_at=fixed_now,
            synced_at=fixed_now,
        ),
        MenuItem(
            id="item_b",
            restaurant_id=mock_restaurant_id,
            source="documenu",
            external_id="dm_3",
            name="Onion Rings",
            price=Decimal("4.50"),
            category="Sides",
            created_at=fixed_now,
            updated_at=fixed_now,
            synced_at=fixed_now,
        ),
    ]
