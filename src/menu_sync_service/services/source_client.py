"""Client for fetching menu snapshots from external sources."""

import logging

from menu_sync_service.adapters.base_adapter import FetchResult, MenuSourceAdapter
from menu_sync_service.models.sync_models import MenuSource

logger = logging.getLogger(__name__)


class ExternalSourceClient:
    """Dispatches menu fetches to the adapter configured for each source.

    Sources without a configured adapter (usually a missing API key) are
    reported through a failure envelope, like any other fetch failure.
    """

    def __init__(self, adapters: dict[MenuSource, MenuSourceAdapter]) -> None:
        """Initialize the source client.

        Args:
            adapters: Dictionary mapping sources to their configured adapters
        """
        self.adapters = adapters

    @property
    def configured_sources(self) -> list[MenuSource]:
        """Sources that have an adapter."""
        return list(self.adapters.keys())

    async def fetch(self, source: MenuSource | str, restaurant_id: str) -> FetchResult:
        """Fetch the current menu snapshot for a restaurant from a source.

        Args:
            source: The external source to read from
            restaurant_id: The restaurant to fetch

        Returns:
            FetchResult: Normalized records on success, the reason otherwise
        """
        try:
            source = MenuSource(source)
        except ValueError:
            logger.error(f"Unknown menu source {source!r} for restaurant {restaurant_id}")
            return FetchResult.failure(f"Unknown menu source: {source}")

        adapter = self.adapters.get(source)
        if adapter is None:
            logger.error(f"No adapter configured for source {source.value}")
            return FetchResult.failure(f"No adapter configured for source {source.value}")

        return await adapter.fetch_menu(restaurant_id)
