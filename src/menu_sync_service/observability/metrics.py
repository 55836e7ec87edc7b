"""Custom metrics for the menu sync service."""

from opentelemetry import metrics

# Get meter for sync service
meter = metrics.get_meter("menu-sync-svc")

# Sync runs by outcome
sync_run_counter = meter.create_counter(
    name="menu_sync_runs_total",
    description="Total number of menu sync runs by source and status",
    unit="1",
)

# Item operations applied by successful runs
sync_item_counter = meter.create_counter(
    name="menu_sync_items_total",
    description="Total number of menu item operations applied by source and operation",
    unit="1",
)

# Menu sync duration histogram
sync_duration_histogram = meter.create_histogram(
    name="menu_sync_duration_seconds",
    description="Duration of executed menu sync runs by source",
    unit="s",
)


def record_sync_run(source: str | None, status: str) -> None:
    """Record the outcome of a sync run.

    Args:
        source: The source that was synced, None if unresolved
        status: Run status (success, error, skipped)
    """
    sync_run_counter.add(1, {"source": source or "unknown", "status": status})


def record_item_operations(source: str, added: int, updated: int, removed: int) -> None:
    """Record the item operations applied by a successful run.

    Args:
        source: The source that was synced
        added: Number of items created
        updated: Number of items updated
        removed: Number of items deleted
    """
    for operation, count in (("add", added), ("update", updated), ("remove", removed)):
        if count:
            sync_item_counter.add(count, {"source": source, "operation": operation})


def record_sync_duration(source: str, status: str, duration_seconds: float) -> None:
    """Record the duration of an executed sync run, failed runs included.

    Args:
        source: The source that was synced
        status: Run status (success, error)
        duration_seconds: Duration in seconds
    """
    sync_duration_histogram.record(duration_seconds, {"source": source, "status": status})
