"""Zomato source adapter.

Reads a restaurant's dishes from the Zomato daily menu endpoint.
"""

from typing import Any

from menu_sync_service.adapters.base_adapter import MenuSourceAdapter, SourceRequest
from menu_sync_service.adapters.field_mappings import MalformedRecordError
from menu_sync_service.models.sync_models import MenuSource


class ZomatoAdapter(MenuSourceAdapter):
    """Adapter for the Zomato v2.1 API.

    Dishes are nested under daily menus; the daily menu name becomes the
    dish category.
    """

    BASE_URL = "https://developers.zomato.com/api/v2.1"

    def __init__(self, api_key: str, timeout_seconds: float = 30.0) -> None:
        """Initialize Zomato adapter.

        Args:
            api_key: Zomato user key
            timeout_seconds: HTTP timeout for a single fetch
        """
        super().__init__(MenuSource.ZOMATO, timeout_seconds=timeout_seconds)
        self.api_key = api_key

    def build_request(self, restaurant_id: str) -> SourceRequest:
        return SourceRequest(
            url=f"{self.BASE_URL}/dailymenu",
            headers={"user-key": self.api_key, "Accept": "application/json"},
            params={"res_id": restaurant_id},
        )

    def extract_records(self, payload: Any) -> list[Any]:
        """Flatten ``daily_menus[].daily_menu.dishes[].dish`` into one list."""
        if not isinstance(payload, dict) or not isinstance(payload.get("daily_menus"), list):
            raise MalformedRecordError("Zomato response has no 'daily_menus' list")

        records: list[Any] = []
        for entry in payload["daily_menus"]:
            daily_menu = entry.get("daily_menu", {}) if isinstance(entry, dict) else {}
            category = daily_menu.get("name")

            for dish_entry in daily_menu.get("dishes") or []:
                dish = dish_entry.get("dish") if isinstance(dish_entry, dict) else None
                if not isinstance(dish, dict):
                    raise MalformedRecordError("Zomato dish entry has no 'dish' object")
                if category and "category" not in dish:
                    dish = {**dish, "category": category}
                records.append(dish)

        return records
