"""Unit tests for MenuSyncService."""

import asyncio
import threading
import time
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from unittest.mock import ANY, AsyncMock, MagicMock, patch

import pytest

from menu_sync_service.adapters.base_adapter import FetchResult
from menu_sync_service.models.menu_models import ExternalMenuRecord, MenuItem
from menu_sync_service.models.sync_models import MenuSource, SyncConfig, SyncResultStatus
from menu_sync_service.repositories.sync_repositories import RepositoryError
from menu_sync_service.services.batch_applier import BatchApplier, BatchApplyResult
from menu_sync_service.services.result_log import SyncResultLog, skipped_result
from menu_sync_service.services.sync_service import MenuSyncService, summarize_results


@pytest.fixture
def mock_config_repository(mock_sync_config: SyncConfig) -> MagicMock:
    """Fixture providing a config repository with one due config and a free lease."""
    repository = MagicMock()
    repository.get_enabled_config.return_value = mock_sync_config
    repository.acquire_lease.return_value = True
    repository.release_lease.return_value = True
    repository.touch_last_sync.return_value = True
    return repository


@pytest.fixture
def mock_item_repository(mock_stored_items: list[MenuItem]) -> MagicMock:
    repository = MagicMock()
    repository.list_items_for_scope.return_value = mock_stored_items
    repository.write_batch.return_value = True
    return repository


@pytest.fixture
def mock_result_repository() -> MagicMock:
    repository = MagicMock()
    repository.append_result.return_value = True
    return repository


@pytest.fixture
def mock_source_client(mock_external_records: list[ExternalMenuRecord]) -> MagicMock:
    client = MagicMock()
    client.fetch = AsyncMock(return_value=FetchResult.ok(mock_external_records))
    return client


@pytest.fixture
def sync_service(
    mock_config_repository: MagicMock,
    mock_item_repository: MagicMock,
    mock_result_repository: MagicMock,
    mock_source_client: MagicMock,
) -> MenuSyncService:
    """Fixture providing a service wired to mocked collaborators."""
    return MenuSyncService(
        config_repository=mock_config_repository,
        menu_item_repository=mock_item_repository,
        source_client=mock_source_client,
        result_log=SyncResultLog(mock_result_repository),
        fetch_timeout_seconds=0.5,
        apply_timeout_seconds=0.5,
    )


@pytest.mark.unit
class TestSyncRestaurant:
    """Test suite for MenuSyncService.sync_restaurant."""

    @pytest.mark.asyncio
    async def test_successful_sync(
        self,
        sync_service: MenuSyncService,
        mock_config_repository: MagicMock,
        mock_item_repository: MagicMock,
        mock_result_repository: MagicMock,
        mock_restaurant_id: str,
    ) -> None:
        """Test the full flow: fetch, reconcile, apply, record."""
        result = await sync_service.sync_restaurant(mock_restaurant_id)

        assert result.status == SyncResultStatus.SUCCESS
        assert result.source == "documenu"
        # dm_1 updated, dm_2 created, dm_3 removed
        assert (result.items_added, result.items_updated, result.items_removed) == (1, 1, 1)
        assert result.result_id is not None

        puts, deletes = mock_item_repository.write_batch.call_args.args
        assert {item.external_id for item in puts} == {"dm_1", "dm_2"}
        assert [item.id for item in deletes] == ["item_b"]

        mock_config_repository.touch_last_sync.assert_called_once()
        mock_result_repository.append_result.assert_called_once_with(result)

    @pytest.mark.asyncio
    async def test_releases_lease_after_run(
        self, sync_service: MenuSyncService, mock_config_repository: MagicMock
    ) -> None:
        """Test that the lease taken for the run is released with the same owner."""
        await sync_service.sync_restaurant("rest_123456")

        acquire_args = mock_config_repository.acquire_lease.call_args.args
        release_args = mock_config_repository.release_lease.call_args.args
        assert acquire_args[:3] == release_args
        assert acquire_args[4] == 900

    @pytest.mark.asyncio
    async def test_no_config_is_skipped_and_not_recorded(
        self,
        sync_service: MenuSyncService,
        mock_config_repository: MagicMock,
        mock_result_repository: MagicMock,
        mock_source_client: MagicMock,
    ) -> None:
        mock_config_repository.get_enabled_config.return_value = None

        result = await sync_service.sync_restaurant("rest_unknown")

        assert result.status == SyncResultStatus.SKIPPED
        assert result.error == "No enabled sync config for restaurant rest_unknown"
        mock_source_client.fetch.assert_not_called()
        mock_result_repository.append_result.assert_not_called()

    @pytest.mark.asyncio
    async def test_recent_sync_is_skipped(
        self,
        sync_service: MenuSyncService,
        mock_config_repository: MagicMock,
        mock_result_repository: MagicMock,
        mock_source_client: MagicMock,
    ) -> None:
        """Test that a sync one hour into a 24h interval is skipped and not logged."""
        mock_config_repository.get_enabled_config.return_value = SyncConfig(
            restaurant_id="rest_123456",
            source=MenuSource.DOCUMENU,
            sync_interval_hours=24,
            last_sync=datetime.now(UTC) - timedelta(hours=1),
        )

        result = await sync_service.sync_restaurant("rest_123456")

        assert result.status == SyncResultStatus.SKIPPED
        assert result.error.startswith("Sync not due: last synced 1.0h ago")
        assert "interval is 24h" in result.error
        mock_source_client.fetch.assert_not_called()
        mock_config_repository.acquire_lease.assert_not_called()
        mock_result_repository.append_result.assert_not_called()

    @pytest.mark.asyncio
    async def test_force_bypasses_interval(
        self,
        sync_service: MenuSyncService,
        mock_config_repository: MagicMock,
        mock_source_client: MagicMock,
    ) -> None:
        mock_config_repository.get_enabled_config.return_value = SyncConfig(
            restaurant_id="rest_123456",
            source=MenuSource.DOCUMENU,
            last_sync=datetime.now(UTC) - timedelta(hours=1),
        )

        result = await sync_service.sync_restaurant("rest_123456", force=True)

        assert result.status == SyncResultStatus.SUCCESS
        mock_source_client.fetch.assert_awaited_once_with("documenu", "rest_123456")

    @pytest.mark.asyncio
    async def test_held_lease_is_skipped(
        self,
        sync_service: MenuSyncService,
        mock_config_repository: MagicMock,
        mock_source_client: MagicMock,
        mock_result_repository: MagicMock,
    ) -> None:
        """Test that a concurrent run for the same restaurant is skipped."""
        mock_config_repository.acquire_lease.return_value = False

        result = await sync_service.sync_restaurant("rest_123456")

        assert result.status == SyncResultStatus.SKIPPED
        assert result.error == "Sync already in progress"
        mock_source_client.fetch.assert_not_called()
        mock_config_repository.release_lease.assert_not_called()
        mock_result_repository.append_result.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_source_is_skipped(
        self, sync_service: MenuSyncService, mock_config_repository: MagicMock
    ) -> None:
        result = await sync_service.sync_restaurant("rest_123456", source="grubhub")

        assert result.status == SyncResultStatus.SKIPPED
        assert result.error == "Unknown menu source: grubhub"
        mock_config_repository.get_enabled_config.assert_not_called()

    @pytest.mark.asyncio
    async def test_fetch_failure_is_recorded_and_nothing_written(
        self,
        sync_service: MenuSyncService,
        mock_source_client: MagicMock,
        mock_item_repository: MagicMock,
        mock_config_repository: MagicMock,
        mock_result_repository: MagicMock,
    ) -> None:
        """Test that a failed fetch records an error and leaves items alone."""
        mock_source_client.fetch.return_value = FetchResult.failure("documenu API returned status 500")

        result = await sync_service.sync_restaurant("rest_123456")

        assert result.status == SyncResultStatus.ERROR
        assert result.error == "documenu API returned status 500"
        assert result.total_changes == 0
        mock_item_repository.write_batch.assert_not_called()
        mock_config_repository.touch_last_sync.assert_not_called()
        mock_config_repository.release_lease.assert_called_once()
        mock_result_repository.append_result.assert_called_once_with(result)

    @pytest.mark.asyncio
    async def test_adapter_exception_is_contained(
        self, sync_service: MenuSyncService, mock_source_client: MagicMock
    ) -> None:
        mock_source_client.fetch.side_effect = RuntimeError("socket closed")

        result = await sync_service.sync_restaurant("rest_123456")

        assert result.status == SyncResultStatus.ERROR
        assert result.error == "Fetch from documenu failed: socket closed"

    @pytest.mark.asyncio
    async def test_fetch_timeout(
        self, sync_service: MenuSyncService, mock_source_client: MagicMock
    ) -> None:
        """Test that a hung fetch is cut off by the fetch timeout."""

        async def hang(*_args: object) -> FetchResult:
            await asyncio.sleep(5)
            return FetchResult.ok([])

        mock_source_client.fetch = hang

        result = await sync_service.sync_restaurant("rest_123456")

        assert result.status == SyncResultStatus.ERROR
        assert result.error == "Fetch from documenu timed out after 0.5s"

    @pytest.mark.asyncio
    async def test_scope_read_failure_is_error(
        self, sync_service: MenuSyncService, mock_item_repository: MagicMock
    ) -> None:
        """Test that an unreadable scope never turns into deletes."""
        mock_item_repository.list_items_for_scope.return_value = None

        result = await sync_service.sync_restaurant("rest_123456")

        assert result.status == SyncResultStatus.ERROR
        assert result.error == "Failed to load stored menu items for documenu"
        mock_item_repository.write_batch.assert_not_called()

    @pytest.mark.asyncio
    async def test_write_failure_is_error(
        self,
        sync_service: MenuSyncService,
        mock_item_repository: MagicMock,
        mock_config_repository: MagicMock,
    ) -> None:
        mock_item_repository.write_batch.return_value = False

        result = await sync_service.sync_restaurant("rest_123456")

        assert result.status == SyncResultStatus.ERROR
        assert result.error.startswith("Batch write failed on chunk 1 of 1")
        mock_config_repository.touch_last_sync.assert_not_called()

    @pytest.mark.asyncio
    async def test_unexpected_error_is_recorded(
        self,
        sync_service: MenuSyncService,
        mock_config_repository: MagicMock,
        mock_result_repository: MagicMock,
    ) -> None:
        """Test that an exception anywhere in the run becomes an error result."""
        mock_config_repository.get_enabled_config.side_effect = RuntimeError("boom")

        result = await sync_service.sync_restaurant("rest_123456")

        assert result.status == SyncResultStatus.ERROR
        assert result.error == "Unexpected error: boom"
        mock_result_repository.append_result.assert_called_once()

    @pytest.mark.asyncio
    async def test_config_store_failure_is_error_not_skip(
        self,
        sync_service: MenuSyncService,
        mock_config_repository: MagicMock,
        mock_result_repository: MagicMock,
        mock_source_client: MagicMock,
    ) -> None:
        """Test that an unreadable config store is recorded, not skipped as missing."""
        mock_config_repository.get_enabled_config.side_effect = RepositoryError(
            "Failed to read sync config for rest_123456: ProvisionedThroughputExceededException"
        )

        result = await sync_service.sync_restaurant("rest_123456", source="documenu")

        assert result.status == SyncResultStatus.ERROR
        assert result.error.startswith("Sync store unavailable: Failed to read sync config")
        assert result.source == "documenu"
        mock_source_client.fetch.assert_not_called()
        mock_result_repository.append_result.assert_called_once_with(result)

    @pytest.mark.asyncio
    async def test_lease_store_failure_is_error_not_in_progress(
        self,
        sync_service: MenuSyncService,
        mock_config_repository: MagicMock,
        mock_result_repository: MagicMock,
        mock_source_client: MagicMock,
    ) -> None:
        mock_config_repository.acquire_lease.side_effect = RepositoryError("throttled")

        result = await sync_service.sync_restaurant("rest_123456")

        assert result.status == SyncResultStatus.ERROR
        assert result.error == "Sync store unavailable: throttled"
        mock_source_client.fetch.assert_not_called()
        mock_config_repository.release_lease.assert_not_called()
        mock_result_repository.append_result.assert_called_once_with(result)

    @pytest.mark.asyncio
    async def test_apply_timeout_keeps_lease_until_expiry(
        self,
        mock_config_repository: MagicMock,
        mock_item_repository: MagicMock,
        mock_result_repository: MagicMock,
        mock_source_client: MagicMock,
    ) -> None:
        """Test that a write still running after the timeout keeps the scope locked."""
        write_finished = threading.Event()

        def slow_apply(_plan: object) -> BatchApplyResult:
            time.sleep(0.3)
            write_finished.set()
            return BatchApplyResult(success=True)

        batch_applier = MagicMock()
        batch_applier.apply.side_effect = slow_apply
        service = MenuSyncService(
            config_repository=mock_config_repository,
            menu_item_repository=mock_item_repository,
            source_client=mock_source_client,
            result_log=SyncResultLog(mock_result_repository),
            batch_applier=batch_applier,
            apply_timeout_seconds=0.05,
        )

        result = await service.sync_restaurant("rest_123456")

        assert result.status == SyncResultStatus.ERROR
        assert result.error == "Batch write timed out after 0.05s; outcome unknown"
        assert not write_finished.is_set()
        mock_config_repository.release_lease.assert_not_called()
        mock_config_repository.touch_last_sync.assert_not_called()
        mock_result_repository.append_result.assert_called_once_with(result)

        assert write_finished.wait(timeout=2)
        mock_config_repository.release_lease.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_run_duration_is_recorded(
        self, sync_service: MenuSyncService, mock_source_client: MagicMock
    ) -> None:
        mock_source_client.fetch.return_value = FetchResult.failure("documenu API returned status 500")

        with patch("menu_sync_service.services.sync_service.metrics.record_sync_duration") as record:
            await sync_service.sync_restaurant("rest_123456")

        record.assert_called_once_with("documenu", "error", ANY)

    @pytest.mark.asyncio
    async def test_unchanged_menu_still_touches_last_sync(
        self,
        sync_service: MenuSyncService,
        mock_item_repository: MagicMock,
        mock_source_client: MagicMock,
        mock_config_repository: MagicMock,
    ) -> None:
        """Test that an empty source and empty scope still count as a sync."""
        mock_item_repository.list_items_for_scope.return_value = []
        mock_source_client.fetch.return_value = FetchResult.ok([])

        result = await sync_service.sync_restaurant("rest_123456")

        assert result.status == SyncResultStatus.SUCCESS
        assert result.total_changes == 0
        mock_item_repository.write_batch.assert_not_called()
        mock_config_repository.touch_last_sync.assert_called_once()


@pytest.mark.unit
class TestSyncAllRestaurants:
    """Test suite for MenuSyncService.sync_all_restaurants."""

    @staticmethod
    def configs() -> list[SyncConfig]:
        return [
            SyncConfig(restaurant_id="rest_a", source=MenuSource.DOCUMENU),
            SyncConfig(restaurant_id="rest_b", source=MenuSource.ZOMATO),
            SyncConfig(restaurant_id="rest_c", source=MenuSource.DOCUMENU),
        ]

    @pytest.mark.asyncio
    async def test_failure_is_isolated(
        self,
        sync_service: MenuSyncService,
        mock_config_repository: MagicMock,
        mock_source_client: MagicMock,
    ) -> None:
        """Test that one failing restaurant does not affect the others."""
        configs = self.configs()
        by_id = {config.restaurant_id: config for config in configs}
        mock_config_repository.list_enabled_configs.return_value = configs
        mock_config_repository.get_enabled_config.side_effect = lambda rid, _source: by_id[rid]

        async def fetch(source: str, restaurant_id: str) -> FetchResult:
            if restaurant_id == "rest_b":
                raise ConnectionError("zomato unreachable")
            return FetchResult.ok(
                [ExternalMenuRecord(external_id="x", name="Soup", price=Decimal("3"))]
            )

        mock_source_client.fetch = fetch

        results = await sync_service.sync_all_restaurants()

        assert [r.restaurant_id for r in results] == ["rest_a", "rest_b", "rest_c"]
        assert [r.status for r in results] == [
            SyncResultStatus.SUCCESS,
            SyncResultStatus.ERROR,
            SyncResultStatus.SUCCESS,
        ]
        assert results[1].source == "zomato"

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(
        self,
        mock_config_repository: MagicMock,
        mock_item_repository: MagicMock,
        mock_result_repository: MagicMock,
        mock_source_client: MagicMock,
    ) -> None:
        """Test that no more than max_concurrency runs are in flight."""
        configs = [SyncConfig(restaurant_id=f"rest_{i}", source="documenu") for i in range(6)]
        mock_config_repository.list_enabled_configs.return_value = configs
        mock_config_repository.get_enabled_config.side_effect = lambda rid, _source: next(
            c for c in configs if c.restaurant_id == rid
        )
        in_flight = 0
        peak = 0

        async def fetch(source: str, restaurant_id: str) -> FetchResult:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return FetchResult.ok([])

        mock_source_client.fetch = fetch
        service = MenuSyncService(
            config_repository=mock_config_repository,
            menu_item_repository=mock_item_repository,
            source_client=mock_source_client,
            result_log=SyncResultLog(mock_result_repository),
            batch_applier=BatchApplier(mock_item_repository),
            max_concurrency=2,
        )

        results = await service.sync_all_restaurants(force=True)

        assert len(results) == 6
        assert peak <= 2

    @pytest.mark.asyncio
    async def test_slow_store_call_does_not_block_other_runs(
        self,
        mock_config_repository: MagicMock,
        mock_item_repository: MagicMock,
        mock_result_repository: MagicMock,
        mock_source_client: MagicMock,
    ) -> None:
        """Test that blocking DynamoDB calls run off the event loop."""
        configs = self.configs()
        by_id = {config.restaurant_id: config for config in configs}
        mock_config_repository.list_enabled_configs.return_value = configs
        mock_config_repository.get_enabled_config.side_effect = lambda rid, _source: by_id[rid]

        def slow_acquire(*_args: object) -> bool:
            time.sleep(0.3)
            return True

        mock_config_repository.acquire_lease.side_effect = slow_acquire
        service = MenuSyncService(
            config_repository=mock_config_repository,
            menu_item_repository=mock_item_repository,
            source_client=mock_source_client,
            result_log=SyncResultLog(mock_result_repository),
            max_concurrency=5,
        )

        started = time.monotonic()
        results = await service.sync_all_restaurants(force=True)
        elapsed = time.monotonic() - started

        assert [r.status for r in results] == [SyncResultStatus.SUCCESS] * 3
        assert elapsed < 0.75

    @pytest.mark.asyncio
    async def test_config_listing_failure_raises(
        self, sync_service: MenuSyncService, mock_config_repository: MagicMock
    ) -> None:
        """Test that an unreadable config table is not reported as an empty batch."""
        mock_config_repository.list_enabled_configs.side_effect = RepositoryError("scan failed")

        with pytest.raises(RepositoryError, match="scan failed"):
            await sync_service.sync_all_restaurants()

    @pytest.mark.asyncio
    async def test_no_configs(self, sync_service: MenuSyncService, mock_config_repository: MagicMock) -> None:
        mock_config_repository.list_enabled_configs.return_value = []

        assert await sync_service.sync_all_restaurants() == []


@pytest.mark.unit
class TestQueries:
    """Test suite for the read-only service methods."""

    @pytest.mark.asyncio
    async def test_get_sync_config(
        self, sync_service: MenuSyncService, mock_config_repository: MagicMock, mock_sync_config: SyncConfig
    ) -> None:
        config = await sync_service.get_sync_config("rest_123456", "documenu")

        assert config == mock_sync_config
        mock_config_repository.get_enabled_config.assert_called_once_with("rest_123456", "documenu")

    @pytest.mark.asyncio
    async def test_get_recent_results(
        self, sync_service: MenuSyncService, mock_result_repository: MagicMock
    ) -> None:
        mock_result_repository.list_results_for_restaurant.return_value = []

        assert await sync_service.get_recent_results("rest_123456", limit=5) == []
        mock_result_repository.list_results_for_restaurant.assert_called_once_with(
            restaurant_id="rest_123456", source=None, limit=5
        )


@pytest.mark.unit
def test_invalid_max_concurrency() -> None:
    with pytest.raises(ValueError):
        MenuSyncService(MagicMock(), MagicMock(), MagicMock(), MagicMock(), max_concurrency=0)


@pytest.mark.unit
def test_summarize_results_counts_every_status(mock_restaurant_id: str) -> None:
    """Test that the summary reports all statuses, including zero counts."""
    results = [skipped_result(mock_restaurant_id, "documenu", "Sync already in progress")]

    assert summarize_results(results) == {"success": 0, "error": 0, "skipped": 1}
