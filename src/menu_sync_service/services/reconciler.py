"""Reconciliation of a stored menu scope against an external snapshot.

The reconciler joins the stored items of one (restaurant, source) scope with
a freshly fetched snapshot on the external id and partitions the result into
items to create, update and delete. It is pure: it reads nothing and writes
nothing, and the caller supplies the timestamp.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime

from menu_sync_service.models.menu_models import ExternalMenuRecord, MenuItem

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationPlan:
    """Disjoint write sets produced by reconcile."""

    to_create: list[MenuItem] = field(default_factory=list)
    to_update: list[MenuItem] = field(default_factory=list)
    to_delete: list[MenuItem] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.to_create or self.to_update or self.to_delete)

    @property
    def operation_count(self) -> int:
        return len(self.to_create) + len(self.to_update) + len(self.to_delete)

    @property
    def summary(self) -> dict[str, int]:
        return {
            "create": len(self.to_create),
            "update": len(self.to_update),
            "delete": len(self.to_delete),
        }


def new_storage_id() -> str:
    return f"item_{uuid.uuid4().hex[:16]}"


def join_key(item: MenuItem, legacy_id_fallback: bool = True) -> str | None:
    """Key an existing item is matched on.

    Items synced before external ids were recorded fall back to their
    storage id when legacy_id_fallback is set; otherwise they have no key.
    """
    if item.external_id:
        return item.external_id
    return item.id if legacy_id_fallback else None


def _to_menu_item(
    record: ExternalMenuRecord,
    storage_id: str,
    restaurant_id: str,
    source: str,
    created_at: datetime | None,
    now: datetime,
) -> MenuItem:
    return MenuItem(
        id=storage_id,
        restaurant_id=restaurant_id,
        source=source,
        external_id=record.external_id,
        name=record.name,
        description=record.description,
        price=record.price,
        category=record.category,
        image=record.image,
        available=record.available,
        created_at=created_at,
        updated_at=now,
        synced_at=now,
    )


def reconcile(
    existing_items: list[MenuItem],
    external_items: list[ExternalMenuRecord],
    restaurant_id: str,
    source: str,
    now: datetime | None = None,
    legacy_id_fallback: bool = True,
) -> ReconciliationPlan:
    """Compute the create, update and delete sets for one menu scope.

    Args:
        existing_items: Stored items of the (restaurant_id, source) scope
        external_items: Snapshot fetched from the source
        restaurant_id: Restaurant the scope belongs to
        source: Source the scope belongs to
        now: Timestamp stamped on written items (defaults to current UTC time)
        legacy_id_fallback: Match stored items lacking an external id on
            their storage id

    Returns:
        ReconciliationPlan: Disjoint lists; every distinct external id of
        both inputs appears in exactly one of them. When the snapshot holds
        the same external id more than once, the last occurrence wins.
    """
    now = now or datetime.now(UTC)

    existing_by_key: dict[str, MenuItem] = {}
    for item in existing_items:
        key = join_key(item, legacy_id_fallback)
        if key is None:
            logger.warning(
                f"Stored item {item.id} for restaurant {restaurant_id} has no external id "
                "and is left untouched until backfilled"
            )
            continue
        if not item.external_id:
            logger.warning(f"Matching stored item {item.id} on its storage id (no external id)")
        if key in existing_by_key:
            logger.warning(f"Duplicate stored items for external id {key}, keeping {item.id}")
        existing_by_key[key] = item

    creates: dict[str, MenuItem] = {}
    updates: dict[str, MenuItem] = {}

    for record in external_items:
        key = record.external_id
        existing = existing_by_key.get(key)

        if existing is not None:
            updates[key] = _to_menu_item(
                record, existing.id, restaurant_id, source, existing.created_at or now, now
            )
        else:
            previous = creates.get(key)
            storage_id = previous.id if previous is not None else new_storage_id()
            creates[key] = _to_menu_item(record, storage_id, restaurant_id, source, now, now)

    processed = creates.keys() | updates.keys()
    to_delete = [item for key, item in existing_by_key.items() if key not in processed]

    plan = ReconciliationPlan(
        to_create=list(creates.values()),
        to_update=list(updates.values()),
        to_delete=to_delete,
    )
    logger.debug(f"Reconciled restaurant {restaurant_id} ({source}): {plan.summary}")
    return plan
