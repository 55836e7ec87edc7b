"""Sync configuration and result models.

These models represent per-restaurant sync configuration and the audit
records written for every executed sync run, for DynamoDB storage and
retrieval.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class MenuSource(str, Enum):
    """External systems a restaurant menu can be synced from."""

    DOCUMENU = "documenu"
    YELP = "yelp"
    ZOMATO = "zomato"


class SyncResultStatus(str, Enum):
    """Enumeration of sync outcome values."""

    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"


class SyncConfig(BaseModel):
    """Sync configuration for a restaurant-source pair.

    Stored in DynamoDB with (restaurant_id, source) as composite key.
    Only last_sync and the lease fields are written by the sync engine;
    everything else is owned by the admin surface.
    """

    restaurant_id: str = Field(..., description="Restaurant identifier")
    source: MenuSource = Field(..., description="External menu source")
    enabled: bool = Field(default=True, description="Whether sync runs for this pair")
    sync_interval_hours: int = Field(default=24, description="Minimum hours between syncs", gt=0)
    last_sync: datetime | None = Field(None, description="Timestamp of last successful sync")
    auto_update: bool = Field(default=False, description="Reserved for future update policy")
    lease_owner: str | None = Field(None, description="Token of the run holding the sync lease")
    lease_expires_at: datetime | None = Field(None, description="When the sync lease lapses")

    @field_validator("sync_interval_hours")
    @classmethod
    def validate_sync_interval_hours(cls, v: int) -> int:
        """Validate that sync_interval_hours is positive."""
        if v <= 0:
            raise ValueError("sync_interval_hours must be positive")
        return v

    @property
    def config_id(self) -> str:
        """Identifier of the config, unique per restaurant-source pair."""
        return f"{self.restaurant_id}#{self.source.value}"

    def hours_since_last_sync(self, now: datetime) -> float | None:
        """Elapsed hours between last_sync and now, None if never synced."""
        if self.last_sync is None:
            return None
        return (now - self.last_sync).total_seconds() / 3600

    def is_due(self, now: datetime) -> bool:
        """Whether enough time has passed since the last sync."""
        elapsed = self.hours_since_last_sync(now)
        return elapsed is None or elapsed >= self.sync_interval_hours

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format.

        Returns:
            dict: DynamoDB-compatible representation
        """
        item: dict[str, Any] = {
            "restaurant_id": self.restaurant_id,
            "source": self.source.value,
            "enabled": self.enabled,
            "sync_interval_hours": self.sync_interval_hours,
            "auto_update": self.auto_update,
        }

        if self.last_sync is not None:
            item["last_sync"] = self.last_sync.isoformat()

        if self.lease_owner is not None:
            item["lease_owner"] = self.lease_owner

        if self.lease_expires_at is not None:
            item["lease_expires_at"] = self.lease_expires_at.isoformat()

        return item

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "SyncConfig":
        """Create SyncConfig from DynamoDB item.

        Args:
            item: DynamoDB item dictionary

        Returns:
            SyncConfig: Parsed model instance
        """
        data: dict[str, Any] = {
            "restaurant_id": item["restaurant_id"],
            "source": MenuSource(item["source"]),
            "enabled": bool(item.get("enabled", False)),
            "sync_interval_hours": int(item.get("sync_interval_hours", 24)),
            "auto_update": bool(item.get("auto_update", False)),
        }

        if "last_sync" in item:
            data["last_sync"] = datetime.fromisoformat(item["last_sync"])

        if "lease_owner" in item:
            data["lease_owner"] = item["lease_owner"]

        if "lease_expires_at" in item:
            data["lease_expires_at"] = datetime.fromisoformat(item["lease_expires_at"])

        return cls(**data)


class SyncResult(BaseModel):
    """Outcome of one sync run for a restaurant-source pair.

    Executed runs are appended to DynamoDB with (result_id, timestamp) as
    composite key and never modified afterwards. Skipped runs are returned
    to the caller but not stored.
    """

    result_id: str | None = Field(None, description="Unique result identifier, set when logged")
    restaurant_id: str = Field(..., description="Restaurant identifier")
    source: str | None = Field(None, description="External menu source")
    status: SyncResultStatus = Field(..., description="Outcome of the run")
    items_added: int = Field(default=0, description="Number of items created", ge=0)
    items_updated: int = Field(default=0, description="Number of items updated", ge=0)
    items_removed: int = Field(default=0, description="Number of items deleted", ge=0)
    error: str | None = Field(None, description="Error or skip reason")
    timestamp: datetime = Field(..., description="When the run finished")

    @property
    def total_changes(self) -> int:
        """Total number of item operations applied by the run."""
        return self.items_added + self.items_updated + self.items_removed

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format.

        Returns:
            dict: DynamoDB-compatible representation
        """
        item: dict[str, Any] = {
            "result_id": self.result_id,
            "timestamp": self.timestamp.isoformat(),
            "restaurant_id": self.restaurant_id,
            "status": self.status.value,
            "items_added": self.items_added,
            "items_updated": self.items_updated,
            "items_removed": self.items_removed,
        }

        if self.source is not None:
            item["source"] = self.source

        if self.error is not None:
            item["error"] = self.error

        return item

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "SyncResult":
        """Create SyncResult from DynamoDB item.

        Args:
            item: DynamoDB item dictionary

        Returns:
            SyncResult: Parsed model instance
        """
        return cls(
            result_id=item["result_id"],
            timestamp=datetime.fromisoformat(item["timestamp"]),
            restaurant_id=item["restaurant_id"],
            source=item.get("source"),
            status=SyncResultStatus(item["status"]),
            items_added=int(item.get("items_added", 0)),
            items_updated=int(item.get("items_updated", 0)),
            items_removed=int(item.get("items_removed", 0)),
            error=item.get("error"),
        )
