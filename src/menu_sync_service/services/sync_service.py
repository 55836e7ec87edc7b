"""Sync service orchestrating external menu synchronization."""

import asyncio
import logging
import time
import uuid
from datetime import UTC, datetime

from menu_sync_service.models.sync_models import (
    MenuSource,
    SyncConfig,
    SyncResult,
    SyncResultStatus,
)
from menu_sync_service.observability import metrics
from menu_sync_service.observability.decorators import traced
from menu_sync_service.repositories.sync_repositories import (
    MenuItemRepository,
    RepositoryError,
    SyncConfigRepository,
)
from menu_sync_service.services.batch_applier import BatchApplier
from menu_sync_service.services.reconciler import reconcile
from menu_sync_service.services.result_log import SyncResultLog, skipped_result
from menu_sync_service.services.source_client import ExternalSourceClient

logger = logging.getLogger(__name__)


class ApplyTimeoutError(Exception):
    """Raised when committing a plan outlives the apply timeout.

    The worker thread running the write cannot be cancelled, so the write
    may still commit after this is raised.
    """


class MenuSyncService:
    """Service for synchronizing restaurant menus from external sources.

    This service coordinates loading the sync config, enforcing the sync
    cadence, fetching the external snapshot, reconciling it against the
    stored items, committing the changes and recording the outcome.

    A run for one restaurant never raises: every failure becomes an error
    SyncResult, so batch runs always complete. Blocking DynamoDB calls run
    in worker threads so one slow restaurant does not hold up the others.
    """

    def __init__(
        self,
        config_repository: SyncConfigRepository,
        menu_item_repository: MenuItemRepository,
        source_client: ExternalSourceClient,
        result_log: SyncResultLog,
        batch_applier: BatchApplier | None = None,
        max_concurrency: int = 5,
        fetch_timeout_seconds: float = 30.0,
        apply_timeout_seconds: float = 60.0,
        lease_ttl_seconds: int = 900,
        legacy_id_fallback: bool = True,
    ) -> None:
        """Initialize the MenuSyncService.

        Args:
            config_repository: Repository for sync configs and leases
            menu_item_repository: Repository for synced menu items
            source_client: Client dispatching fetches to source adapters
            result_log: Log that executed runs are recorded in
            batch_applier: Applier for reconciliation plans
            max_concurrency: Maximum restaurants synced at once by sync_all_restaurants
            fetch_timeout_seconds: Timeout for one external fetch
            apply_timeout_seconds: Timeout for committing one plan
            lease_ttl_seconds: Lifetime of a per-restaurant sync lease
            legacy_id_fallback: Match stored items lacking an external id on their storage id
        """
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")

        self.config_repository = config_repository
        self.menu_item_repository = menu_item_repository
        self.source_client = source_client
        self.result_log = result_log
        self.batch_applier = batch_applier or BatchApplier(menu_item_repository)
        self.max_concurrency = max_concurrency
        self.fetch_timeout_seconds = fetch_timeout_seconds
        self.apply_timeout_seconds = apply_timeout_seconds
        self.lease_ttl_seconds = lease_ttl_seconds
        self.legacy_id_fallback = legacy_id_fallback

    @traced("sync_restaurant_menu", service_name="menu-sync-svc")
    async def sync_restaurant(
        self,
        restaurant_id: str,
        source: MenuSource | str | None = None,
        force: bool = False,
    ) -> SyncResult:
        """Sync one restaurant's menu from its external source.

        This method orchestrates the complete sync flow:
        1. Load the enabled sync config (skip if none)
        2. Enforce the sync interval unless forced (skip if not due)
        3. Take the per-restaurant lease (skip if another run holds it)
        4. Fetch, reconcile and apply the external snapshot
        5. Update last_sync and record the result

        Skips are returned but not recorded in the result log. A store
        failure while loading the config or taking the lease is an error,
        not a skip.

        Args:
            restaurant_id: The restaurant to sync
            source: Optional source; defaults to the config's source
            force: Bypass the sync interval check

        Returns:
            SyncResult describing the outcome
        """
        try:
            source_value = MenuSource(source).value if source else None
        except ValueError:
            metrics.record_sync_run(None, SyncResultStatus.SKIPPED.value)
            return skipped_result(restaurant_id, str(source), f"Unknown menu source: {source}")

        try:
            return await self._sync_restaurant(restaurant_id, source_value, force)
        except RepositoryError as e:
            return await self._record_error(
                restaurant_id, source_value, f"Sync store unavailable: {e}"
            )
        except Exception as e:
            logger.exception(f"Unexpected error syncing restaurant {restaurant_id}: {e}")
            return await self._record_error(restaurant_id, source_value, f"Unexpected error: {e}")

    @traced("sync_all_restaurant_menus", service_name="menu-sync-svc")
    async def sync_all_restaurants(self, force: bool = False) -> list[SyncResult]:
        """Sync every restaurant with an enabled config.

        Runs are executed concurrently, at most max_concurrency at a time.
        An exception escaping one run is turned into an error result for
        that config, so the returned list always has one entry per config,
        in config order.

        Args:
            force: Bypass the sync interval check for every restaurant

        Returns:
            List of SyncResult, one per enabled config

        Raises:
            RepositoryError: If the enabled configs cannot be listed
        """
        configs = await asyncio.to_thread(self.config_repository.list_enabled_configs)
        logger.info(f"Starting sync for {len(configs)} enabled configs (force={force})")

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def run(config: SyncConfig) -> SyncResult:
            async with semaphore:
                try:
                    return await self.sync_restaurant(
                        config.restaurant_id, config.source, force=force
                    )
                except Exception as e:
                    logger.exception(
                        f"Sync for restaurant {config.restaurant_id} raised: {e}"
                    )  # pragma: no cover
                    return SyncResult(
                        restaurant_id=config.restaurant_id,
                        source=config.source.value,
                        status=SyncResultStatus.ERROR,
                        error=f"Unexpected error: {e}",
                        timestamp=datetime.now(UTC),
                    )

        results = list(await asyncio.gather(*(run(config) for config in configs)))

        summary = summarize_results(results)
        logger.info(f"Finished sync for {len(results)} configs: {summary}")
        return results

    async def get_sync_config(
        self, restaurant_id: str, source: MenuSource | str | None = None
    ) -> SyncConfig | None:
        """Get the enabled sync config for a restaurant.

        Args:
            restaurant_id: The restaurant ID
            source: Optional source filter

        Returns:
            SyncConfig if found, None otherwise
        """
        return await asyncio.to_thread(
            self.config_repository.get_enabled_config, restaurant_id, source
        )

    async def get_recent_results(
        self, restaurant_id: str, source: str | None = None, limit: int = 50
    ) -> list[SyncResult]:
        """Get recorded results for a restaurant, most recent first."""
        return await asyncio.to_thread(
            self.result_log.recent_results, restaurant_id, source=source, limit=limit
        )

    async def _sync_restaurant(
        self, restaurant_id: str, source: str | None, force: bool
    ) -> SyncResult:
        config = await asyncio.to_thread(
            self.config_repository.get_enabled_config, restaurant_id, source
        )
        if config is None:
            metrics.record_sync_run(source, SyncResultStatus.SKIPPED.value)
            return skipped_result(
                restaurant_id, source, f"No enabled sync config for restaurant {restaurant_id}"
            )

        effective_source = source or config.source.value
        now = datetime.now(UTC)

        if not force and not config.is_due(now):
            elapsed = config.hours_since_last_sync(now) or 0.0
            metrics.record_sync_run(effective_source, SyncResultStatus.SKIPPED.value)
            return skipped_result(
                restaurant_id,
                effective_source,
                f"Sync not due: last synced {elapsed:.1f}h ago, "
                f"interval is {config.sync_interval_hours}h",
            )

        lease_owner = uuid.uuid4().hex
        acquired = await asyncio.to_thread(
            self.config_repository.acquire_lease,
            restaurant_id,
            effective_source,
            lease_owner,
            now,
            self.lease_ttl_seconds,
        )
        if not acquired:
            metrics.record_sync_run(effective_source, SyncResultStatus.SKIPPED.value)
            return skipped_result(restaurant_id, effective_source, "Sync already in progress")

        started = time.monotonic()
        status = SyncResultStatus.ERROR
        release_lease = True
        try:
            result = await self._run_sync(restaurant_id, effective_source)
            status = result.status
            return result
        except ApplyTimeoutError as e:
            # The write may still commit; the lease is left to expire
            release_lease = False
            logger.warning(
                f"Keeping sync lease for {restaurant_id}/{effective_source} until it expires "
                f"in {self.lease_ttl_seconds}s"
            )
            return await self._record_error(restaurant_id, effective_source, str(e))
        finally:
            metrics.record_sync_duration(
                effective_source, status.value, time.monotonic() - started
            )
            if release_lease:
                await asyncio.to_thread(
                    self.config_repository.release_lease,
                    restaurant_id,
                    effective_source,
                    lease_owner,
                )

    async def _run_sync(self, restaurant_id: str, source: str) -> SyncResult:
        # Step 1: Fetch the external snapshot
        try:
            fetch_result = await asyncio.wait_for(
                self.source_client.fetch(source, restaurant_id),
                timeout=self.fetch_timeout_seconds,
            )
        except TimeoutError:
            return await self._record_error(
                restaurant_id,
                source,
                f"Fetch from {source} timed out after {self.fetch_timeout_seconds}s",
            )
        except Exception as e:
            logger.exception(f"Adapter for {source} raised: {e}")
            return await self._record_error(
                restaurant_id, source, f"Fetch from {source} failed: {e}"
            )

        if not fetch_result.success:
            return await self._record_error(
                restaurant_id, source, fetch_result.error or f"Fetch from {source} failed"
            )

        # Step 2: Load the stored scope and reconcile
        existing_items = await asyncio.to_thread(
            self.menu_item_repository.list_items_for_scope, restaurant_id, source
        )
        if existing_items is None:
            return await self._record_error(
                restaurant_id, source, f"Failed to load stored menu items for {source}"
            )

        plan = reconcile(
            existing_items,
            fetch_result.data,
            restaurant_id=restaurant_id,
            source=source,
            legacy_id_fallback=self.legacy_id_fallback,
        )

        # Step 3: Commit the plan
        try:
            apply_result = await asyncio.wait_for(
                asyncio.to_thread(self.batch_applier.apply, plan),
                timeout=self.apply_timeout_seconds,
            )
        except TimeoutError as e:
            raise ApplyTimeoutError(
                f"Batch write timed out after {self.apply_timeout_seconds}s; outcome unknown"
            ) from e

        if not apply_result.success:
            return await self._record_error(
                restaurant_id, source, apply_result.error_message or "Batch write failed"
            )

        # Step 4: Record completion, whether or not anything changed
        touched = await asyncio.to_thread(
            self.config_repository.touch_last_sync, restaurant_id, source, datetime.now(UTC)
        )
        if not touched:
            logger.warning(f"Could not update last sync time for {restaurant_id}/{source}")

        result = await asyncio.to_thread(
            self.result_log.record_success,
            restaurant_id,
            source,
            items_added=apply_result.items_added,
            items_updated=apply_result.items_updated,
            items_removed=apply_result.items_removed,
        )

        metrics.record_sync_run(source, SyncResultStatus.SUCCESS.value)
        metrics.record_item_operations(
            source, result.items_added, result.items_updated, result.items_removed
        )

        logger.info(
            f"Synced restaurant {restaurant_id} from {source}: "
            f"+{result.items_added} ~{result.items_updated} -{result.items_removed}"
        )
        return result

    async def _record_error(
        self, restaurant_id: str, source: str | None, error: str
    ) -> SyncResult:
        logger.error(f"Sync failed for restaurant {restaurant_id} ({source}): {error}")
        metrics.record_sync_run(source, SyncResultStatus.ERROR.value)
        return await asyncio.to_thread(self.result_log.record_error, restaurant_id, source, error)


def summarize_results(results: list[SyncResult]) -> dict[str, int]:
    """Count results by status.

    Args:
        results: Results of a batch run

    Returns:
        Dictionary with a count for every status
    """
    summary = {status.value: 0 for status in SyncResultStatus}
    for result in results:
        summary[result.status.value] += 1
    return summary
