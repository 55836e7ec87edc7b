"""Lambda entry point for the menu sync service.

One function serves three kinds of invocation:
- the EventBridge schedule rule that runs the periodic sync of every restaurant
- MenuSyncRequested events asking for a sync of one restaurant or all of them
- API Gateway requests to the admin endpoints, served by FastAPI via Mangum
"""

import asyncio
import logging
import os
from typing import Any

from mangum import Mangum

from lambda_dependencies import get_event_handler, get_fastapi_app, initialize_lambda_environment

logger = logging.getLogger(__name__)

# Cold start wiring, cached for warm invocations (skipped in test mode)
if os.getenv("ENVIRONMENT") != "test":
    initialize_lambda_environment()
    app = get_fastapi_app()
    mangum_handler = Mangum(app, lifespan="off")
else:
    app = None  # type: ignore
    mangum_handler = None  # type: ignore


def is_eventbridge_event(event: dict[str, Any]) -> bool:
    """Whether the payload is an EventBridge envelope rather than an HTTP request.

    Scheduled rule events may arrive without a ``detail``, so only
    ``source`` and ``detail-type`` are required.
    """
    return "source" in event and "detail-type" in event


def _request_id(context: Any) -> str:
    return getattr(context, "aws_request_id", None) or "local"


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """Route an invocation to the event handler or the HTTP API.

    Args:
        event: EventBridge event or API Gateway request
        context: The Lambda context object

    Returns:
        Response dict with statusCode and body
    """
    request_id = _request_id(context)

    try:
        if is_eventbridge_event(event):
            logger.info(
                f"[{request_id}] EventBridge event {event.get('source')}/{event.get('detail-type')}"
            )
            return handle_eventbridge_event(event, context)

        route = event.get("rawPath") or event.get("path") or "unknown"
        logger.info(f"[{request_id}] API Gateway request for {route}")
        result: dict[str, Any] = mangum_handler(event, context)
        return result

    except Exception as e:
        logger.exception(f"[{request_id}] Unhandled error in Lambda handler: {e}")
        return {"statusCode": 500, "body": f"Internal server error: {e}"}


def handle_eventbridge_event(event: dict[str, Any], context: Any = None) -> dict[str, Any]:
    """Run the sync a scheduled or on-demand event asks for.

    Args:
        event: The EventBridge event payload
        context: The Lambda context object

    Returns:
        Response dict with statusCode and body; 500 if the run could not start
    """
    try:
        response = asyncio.run(get_event_handler().handle_eventbridge_event(event, context))
    except Exception as e:
        logger.exception(f"Error processing EventBridge event: {e}")
        return {"statusCode": 500, "body": f"Error processing event: {e}"}

    logger.info(f"EventBridge event handled with status {response.get('statusCode')}")
    return response
