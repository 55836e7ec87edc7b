"""Sync result log: records executed runs and builds result envelopes."""

import logging
import uuid
from datetime import UTC, datetime

from menu_sync_service.models.sync_models import SyncResult, SyncResultStatus
from menu_sync_service.repositories.sync_repositories import SyncResultRepository

logger = logging.getLogger(__name__)


def skipped_result(restaurant_id: str, source: str | None, reason: str) -> SyncResult:
    """Build a skipped result. Skips are returned, never recorded."""
    logger.info(f"Skipping sync for restaurant {restaurant_id} ({source or 'any source'}): {reason}")
    return SyncResult(
        restaurant_id=restaurant_id,
        source=source,
        status=SyncResultStatus.SKIPPED,
        error=reason,
        timestamp=datetime.now(UTC),
    )


class SyncResultLog:
    """Append-only audit log of executed sync runs.

    Only success and error outcomes are written. A failure to write the
    log is logged and does not change the outcome returned to the caller.
    """

    def __init__(self, result_repository: SyncResultRepository) -> None:
        """Initialize the SyncResultLog.

        Args:
            result_repository: Repository for storing sync results
        """
        self.result_repository = result_repository

    def record_success(
        self,
        restaurant_id: str,
        source: str,
        items_added: int,
        items_updated: int,
        items_removed: int,
    ) -> SyncResult:
        """Record and return a successful run."""
        return self._record(
            SyncResult(
                restaurant_id=restaurant_id,
                source=source,
                status=SyncResultStatus.SUCCESS,
                items_added=items_added,
                items_updated=items_updated,
                items_removed=items_removed,
                timestamp=datetime.now(UTC),
            )
        )

    def record_error(self, restaurant_id: str, source: str | None, error: str) -> SyncResult:
        """Record and return a failed run with zero counts."""
        return self._record(
            SyncResult(
                restaurant_id=restaurant_id,
                source=source,
                status=SyncResultStatus.ERROR,
                error=error,
                timestamp=datetime.now(UTC),
            )
        )

    def recent_results(
        self, restaurant_id: str, source: str | None = None, limit: int = 50
    ) -> list[SyncResult]:
        """Get recent results for a restaurant, optionally filtered by source.

        Args:
            restaurant_id: The restaurant ID
            source: Optional source to filter by
            limit: Maximum number of results to return

        Returns:
            List of SyncResult objects, most recent first
        """
        return self.result_repository.list_results_for_restaurant(
            restaurant_id=restaurant_id, source=source or None, limit=limit
        )

    def _record(self, result: SyncResult) -> SyncResult:
        result.result_id = f"res_{uuid.uuid4().hex[:12]}"

        if not self.result_repository.append_result(result):
            logger.error(
                f"Could not record {result.status.value} result for restaurant "
                f"{result.restaurant_id}"
            )

        return result
