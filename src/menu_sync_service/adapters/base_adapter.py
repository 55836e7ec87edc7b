"""Base adapter for external menu sources.

This module defines the abstract base class that all source adapters must
implement. Following the pattern of the repositories, expected failures
(HTTP errors, network issues, malformed payloads) are reported through a
failure FetchResult rather than raised.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import httpx

from menu_sync_service.adapters.field_mappings import normalize_records
from menu_sync_service.models.menu_models import ExternalMenuRecord
from menu_sync_service.models.sync_models import MenuSource

logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    """Envelope returned by every menu fetch.

    Attributes:
        success: Whether the snapshot was fetched and parsed
        data: Normalized menu records (empty on failure)
        error: Failure description, None on success
    """

    success: bool
    data: list[ExternalMenuRecord] = field(default_factory=list)
    error: str | None = None

    @classmethod
    def ok(cls, data: list[ExternalMenuRecord]) -> "FetchResult":
        return cls(success=True, data=data)

    @classmethod
    def failure(cls, error: str) -> "FetchResult":
        return cls(success=False, error=error)


@dataclass
class SourceRequest:
    """HTTP request an adapter issues to fetch a menu snapshot."""

    url: str
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, str] = field(default_factory=dict)


class MenuSourceAdapter(ABC):
    """Abstract base class for external menu source adapters.

    Subclasses describe the request for a restaurant and where the item
    records live in the response; fetching, status handling and field
    normalization are shared.

    The adapter follows a simple error handling pattern:
    - fetch_menu never raises for HTTP, network or payload problems
    - a failure FetchResult carries the reason
    - the orchestration layer decides what to record
    """

    def __init__(self, source: MenuSource, timeout_seconds: float = 30.0) -> None:
        """Initialize the source adapter.

        Args:
            source: The external source this adapter reads from
            timeout_seconds: HTTP timeout for a single fetch
        """
        self.source = source
        self.timeout_seconds = timeout_seconds

    @abstractmethod
    def build_request(self, restaurant_id: str) -> SourceRequest:
        """Describe the HTTP request that fetches a restaurant's menu.

        Args:
            restaurant_id: Restaurant identifier at the source

        Returns:
            SourceRequest: URL, headers and query parameters
        """
        pass

    @abstractmethod
    def extract_records(self, payload: Any) -> list[Any]:
        """Pull the raw item records out of a decoded response payload.

        Args:
            payload: Decoded JSON response body

        Returns:
            list: Raw records, in source order, for field mapping

        Raises:
            ValueError: If the payload does not have the expected shape
        """
        pass

    async def fetch_menu(self, restaurant_id: str) -> FetchResult:
        """Fetch and normalize the current menu snapshot for a restaurant.

        Args:
            restaurant_id: Restaurant identifier at the source

        Returns:
            FetchResult: Normalized records on success, the reason otherwise
        """
        request = self.build_request(restaurant_id)

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.get(
                    request.url, headers=request.headers, params=request.params or None
                )

            if response.status_code != 200:
                error = f"{self.source.value} API returned status {response.status_code}"
                logger.error(f"{error} for restaurant {restaurant_id}")
                return FetchResult.failure(error)

            records = normalize_records(self.source, self.extract_records(response.json()))

        except httpx.HTTPError as e:
            logger.error(f"{self.source.value} fetch failed for restaurant {restaurant_id}: {e}")
            return FetchResult.failure(f"{self.source.value} request failed: {e}")

        except ValueError as e:
            logger.error(
                f"Malformed {self.source.value} payload for restaurant {restaurant_id}: {e}"
            )
            return FetchResult.failure(f"Malformed {self.source.value} payload: {e}")

        logger.info(
            f"Fetched {len(records)} items from {self.source.value} for restaurant {restaurant_id}"
        )
        return FetchResult.ok(records)
