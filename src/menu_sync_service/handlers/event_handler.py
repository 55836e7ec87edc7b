"""EventBridge handler for scheduled and on-demand sync events."""

import json
import logging
from typing import Any

from pydantic import BaseModel, ValidationError

from menu_sync_service.models.sync_models import MenuSource
from menu_sync_service.repositories.sync_repositories import RepositoryError
from menu_sync_service.services.sync_service import MenuSyncService, summarize_results

logger = logging.getLogger(__name__)

SCHEDULED_EVENT_SOURCE = "aws.events"
SCHEDULED_EVENT_DETAIL_TYPE = "Scheduled Event"
SYNC_EVENT_SOURCE = "com.restaurant.menu-sync"
SYNC_EVENT_DETAIL_TYPE = "MenuSyncRequested"


class MenuSyncRequestedEvent(BaseModel):
    """Detail of an on-demand sync event.

    Attributes:
        restaurant_id: Restaurant to sync; None syncs every enabled config
        source: Optional source for a single-restaurant sync
        force: Bypass the sync interval check
    """

    restaurant_id: str | None = None
    source: MenuSource | None = None
    force: bool = False


def parse_sync_event(event: dict[str, Any]) -> MenuSyncRequestedEvent | None:
    """Parse an EventBridge event into a MenuSyncRequestedEvent.

    Scheduled events carry a detail that is either empty or the static
    input configured on the rule, so both shapes are accepted.

    Args:
        event: Raw EventBridge event dictionary

    Returns:
        MenuSyncRequestedEvent if parsing succeeds, None otherwise
    """
    try:
        detail = event.get("detail") or {}
        return MenuSyncRequestedEvent(**detail)
    except (ValidationError, TypeError) as e:
        logger.error(f"Failed to parse sync event: {e}")
        return None


class SyncEventHandler:
    """Handler running syncs triggered through EventBridge.

    A scheduled rule triggers the periodic sync-all; custom events trigger
    a sync for one restaurant or for all of them.
    """

    def __init__(self, sync_service: MenuSyncService) -> None:
        """Initialize the event handler.

        Args:
            sync_service: Service orchestrating menu syncs
        """
        self.sync_service = sync_service

    async def handle_sync_requested(self, event: MenuSyncRequestedEvent) -> dict[str, Any]:
        """Run the sync an event asks for.

        Args:
            event: The parsed sync request

        Returns:
            Dictionary with statusCode and body for the Lambda response
        """
        if event.restaurant_id:
            result = await self.sync_service.sync_restaurant(
                event.restaurant_id, source=event.source, force=event.force
            )
            logger.info(
                f"Event sync for restaurant {event.restaurant_id} finished: {result.status.value}"
            )
            return {"statusCode": 200, "body": result.model_dump_json()}

        try:
            results = await self.sync_service.sync_all_restaurants(force=event.force)
        except RepositoryError as e:
            logger.error(f"Scheduled sync could not start: {e}")
            return {"statusCode": 503, "body": f"Could not list sync configs: {e}"}

        summary = summarize_results(results)
        logger.info(f"Scheduled sync finished for {len(results)} configs: {summary}")
        return {
            "statusCode": 200,
            "body": json.dumps({"total": len(results), "summary": summary}),
        }

    async def handle_eventbridge_event(
        self, event: dict[str, Any], _context: Any
    ) -> dict[str, Any]:
        """Entry point for EventBridge invocations.

        Args:
            event: EventBridge event dictionary
            _context: Lambda context object (unused)

        Returns:
            Dictionary with statusCode and body for Lambda response
        """
        source = event.get("source", "")
        detail_type = event.get("detail-type", "")

        is_schedule = source == SCHEDULED_EVENT_SOURCE and detail_type == SCHEDULED_EVENT_DETAIL_TYPE
        is_request = source == SYNC_EVENT_SOURCE and detail_type == SYNC_EVENT_DETAIL_TYPE
        if not (is_schedule or is_request):
            logger.warning(f"Unsupported event type: {source}/{detail_type}")
            return {"statusCode": 400, "body": f"Unsupported event type: {source}/{detail_type}"}

        sync_event = parse_sync_event(event)
        if sync_event is None:
            return {"statusCode": 400, "body": "Invalid event format"}

        return await self.handle_sync_requested(sync_event)
