"""Documenu source adapter.

Reads a restaurant's menu items from the Documenu v2 API.
"""

from typing import Any

from menu_sync_service.adapters.base_adapter import MenuSourceAdapter, SourceRequest
from menu_sync_service.adapters.field_mappings import MalformedRecordError
from menu_sync_service.models.sync_models import MenuSource


class DocumenuAdapter(MenuSourceAdapter):
    """Adapter for the Documenu menu item API.

    Authenticates with an API key sent in the X-API-KEY header.
    """

    BASE_URL = "https://api.documenu.com/v2"

    def __init__(self, api_key: str, timeout_seconds: float = 30.0) -> None:
        """Initialize Documenu adapter.

        Args:
            api_key: Documenu API key
            timeout_seconds: HTTP timeout for a single fetch
        """
        super().__init__(MenuSource.DOCUMENU, timeout_seconds=timeout_seconds)
        self.api_key = api_key

    def build_request(self, restaurant_id: str) -> SourceRequest:
        return SourceRequest(
            url=f"{self.BASE_URL}/restaurant/{restaurant_id}/menuitems",
            headers={"X-API-KEY": self.api_key},
        )

    def extract_records(self, payload: Any) -> list[Any]:
        """Documenu wraps menu items in a top-level ``data`` list."""
        if not isinstance(payload, dict):
            raise MalformedRecordError("Documenu response is not an object")
        if "data" not in payload:
            raise MalformedRecordError("Documenu response has no 'data' field")

        records = payload["data"]
        if records is None:
            return []
        if not isinstance(records, list):
            raise MalformedRecordError("Documenu 'data' is not a list")
        return records
