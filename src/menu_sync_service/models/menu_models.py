"""Menu data models.

ExternalMenuRecord is the normalized shape every source adapter produces.
MenuItem is the persisted item owned by the sync engine for one
(restaurant, source) scope. Items without a source belong to the manual
menu surface and never pass through these models.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

DEFAULT_CATEGORY = "Other"


class ExternalMenuRecord(BaseModel):
    """Menu item as fetched from an external source, after field mapping."""

    external_id: str = Field(..., min_length=1, description="Stable identifier at the source")
    name: str = Field(..., description="Item name")
    description: str | None = Field(None, description="Item description")
    price: Decimal = Field(default=Decimal("0"), description="Item price", ge=0)
    category: str = Field(default=DEFAULT_CATEGORY, description="Menu category name")
    image: str | None = Field(None, description="URL to item image")
    available: bool = Field(default=True, description="Whether item is currently available")


class MenuItem(BaseModel):
    """Menu item persisted for a (restaurant_id, source) scope."""

    id: str = Field(..., description="Storage identifier")
    restaurant_id: str = Field(..., description="Restaurant this item belongs to")
    source: str = Field(..., description="External source that owns this item")
    external_id: str | None = Field(None, description="Identifier at the external source")
    name: str = Field(..., description="Item name")
    description: str | None = Field(None, description="Item description")
    price: Decimal = Field(default=Decimal("0"), description="Item price", ge=0)
    category: str = Field(default=DEFAULT_CATEGORY, description="Menu category name")
    image: str | None = Field(None, description="URL to item image")
    available: bool = Field(default=True, description="Whether item is currently available")
    created_at: datetime | None = Field(None, description="When the item was first synced")
    updated_at: datetime | None = Field(None, description="When the item was last written")
    synced_at: datetime | None = Field(None, description="When the item was last seen at the source")

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format.

        Returns:
            dict: DynamoDB-compatible representation
        """
        item: dict[str, Any] = {
            "id": self.id,
            "restaurant_id": self.restaurant_id,
            "source": self.source,
            "name": self.name,
            "price": self.price,
            "category": self.category,
            "available": self.available,
        }

        optional: dict[str, Any] = {
            "external_id": self.external_id,
            "description": self.description,
            "image": self.image,
        }
        item.update({key: value for key, value in optional.items() if value is not None})

        for field_name in ("created_at", "updated_at", "synced_at"):
            value = getattr(self, field_name)
            if value is not None:
                item[field_name] = value.isoformat()

        return item

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "MenuItem":
        """Create MenuItem from DynamoDB item.

        Args:
            item: DynamoDB item dictionary

        Returns:
            MenuItem: Parsed model instance
        """
        data: dict[str, Any] = {
            "id": item["id"],
            "restaurant_id": item["restaurant_id"],
            "source": item["source"],
            "name": item["name"],
            "price": Decimal(str(item.get("price", "0"))),
            "category": item.get("category") or DEFAULT_CATEGORY,
            "available": item.get("available", True),
        }

        for field_name in ("external_id", "description", "image"):
            if item.get(field_name) is not None:
                data[field_name] = item[field_name]

        for field_name in ("created_at", "updated_at", "synced_at"):
            if field_name in item:
                data[field_name] = datetime.fromisoformat(item[field_name])

        return cls(**data)
