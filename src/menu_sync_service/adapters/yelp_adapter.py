"""Yelp source adapter.

Yelp Fusion exposes business details but no menu items. The adapter still
looks the business up, so an unknown business and a business without a menu
are reported differently, and always ends in a failure envelope. A Yelp run
therefore never deletes local items.
"""

from typing import Any

from menu_sync_service.adapters.base_adapter import MenuSourceAdapter, SourceRequest
from menu_sync_service.adapters.field_mappings import MalformedRecordError
from menu_sync_service.models.sync_models import MenuSource


class YelpAdapter(MenuSourceAdapter):
    """Adapter for the Yelp Fusion business API."""

    BASE_URL = "https://api.yelp.com/v3"

    def __init__(self, api_key: str, timeout_seconds: float = 30.0) -> None:
        """Initialize Yelp adapter.

        Args:
            api_key: Yelp Fusion API key, sent as a bearer token
            timeout_seconds: HTTP timeout for a single fetch
        """
        super().__init__(MenuSource.YELP, timeout_seconds=timeout_seconds)
        self.api_key = api_key

    def build_request(self, restaurant_id: str) -> SourceRequest:
        return SourceRequest(
            url=f"{self.BASE_URL}/businesses/{restaurant_id}",
            headers={"Authorization": f"Bearer {self.api_key}"},
        )

    def extract_records(self, payload: Any) -> list[Any]:
        name = payload.get("name") if isinstance(payload, dict) else None
        raise MalformedRecordError(
            f"Yelp business {name or 'unknown'} does not expose menu items"
        )
