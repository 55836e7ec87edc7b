"""DynamoDB repository classes for sync configs, menu items and results.

Following the convention of the rest of the service, we use simple return
values (None/False/[]) for expected failures rather than raising exceptions.
Reads that decide whether a run happens at all (config lookup, config scan,
lease claim) raise RepositoryError instead, so a store outage is never
mistaken for a missing config or a held lease.
"""

import logging
from datetime import datetime, timedelta
from typing import Any

from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError
from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource, Table

from menu_sync_service.models.menu_models import MenuItem
from menu_sync_service.models.sync_models import MenuSource, SyncConfig, SyncResult

logger = logging.getLogger(__name__)

# DynamoDB rejects transactions with more operations than this
MAX_TRANSACTION_ITEMS = 100


class RepositoryError(Exception):
    """Raised when DynamoDB fails a read the caller cannot treat as empty."""


def _is_conditional_check_failure(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") in (
        "ConditionalCheckFailedException",
        "TransactionCanceledException",
    )


class SyncConfigRepository:
    """Repository for sync configuration records.

    Manages configs in DynamoDB with composite key (restaurant_id, source).
    """

    def __init__(self, dynamodb_resource: DynamoDBServiceResource, table_name: str) -> None:
        """Initialize repository.

        Args:
            dynamodb_resource: Boto3 DynamoDB resource
            table_name: Name of the DynamoDB table
        """
        self.dynamodb = dynamodb_resource
        self.table_name = table_name
        self.table: Table = dynamodb_resource.Table(table_name)

    def get_config(self, restaurant_id: str, source: MenuSource | str) -> SyncConfig | None:
        """Retrieve the config for a restaurant-source pair.

        Args:
            restaurant_id: Restaurant identifier
            source: Menu source

        Returns:
            SyncConfig if found, None otherwise

        Raises:
            RepositoryError: If the read fails
        """
        try:
            response = self.table.get_item(
                Key={"restaurant_id": restaurant_id, "source": MenuSource(source).value}
            )
        except ClientError as e:
            logger.error(f"Failed to get sync config: {e}")
            raise RepositoryError(f"Failed to read sync config for {restaurant_id}: {e}") from e

        if "Item" not in response:
            return None

        return SyncConfig.from_dynamodb_item(response["Item"])

    def get_enabled_config(
        self, restaurant_id: str, source: MenuSource | str | None = None
    ) -> SyncConfig | None:
        """Retrieve the enabled config for a restaurant.

        Without a source, the first enabled config of the restaurant (in
        source order) is returned.

        Args:
            restaurant_id: Restaurant identifier
            source: Optional menu source filter

        Returns:
            SyncConfig if an enabled config exists, None otherwise

        Raises:
            RepositoryError: If the read fails
        """
        if source is not None:
            config = self.get_config(restaurant_id, source)
            return config if config is not None and config.enabled else None

        try:
            response = self.table.query(
                KeyConditionExpression="restaurant_id = :rid",
                FilterExpression="#enabled = :enabled",
                ExpressionAttributeNames={"#enabled": "enabled"},
                ExpressionAttributeValues={":rid": restaurant_id, ":enabled": True},
            )
        except ClientError as e:
            logger.error(f"Failed to query sync configs: {e}")
            raise RepositoryError(f"Failed to read sync config for {restaurant_id}: {e}") from e

        items = response.get("Items", [])
        if not items:
            return None

        if len(items) > 1:
            logger.warning(
                f"Restaurant {restaurant_id} has {len(items)} enabled sync configs, "
                f"using {items[0]['source']}"
            )

        return SyncConfig.from_dynamodb_item(items[0])

    def list_enabled_configs(self) -> list[SyncConfig]:
        """List every enabled config.

        Returns:
            list: Enabled SyncConfig objects (empty list if none found)

        Raises:
            RepositoryError: If any scan page fails
        """
        configs: list[SyncConfig] = []
        scan_kwargs: dict[str, Any] = {
            "FilterExpression": "#enabled = :enabled",
            "ExpressionAttributeNames": {"#enabled": "enabled"},
            "ExpressionAttributeValues": {":enabled": True},
        }

        try:
            while True:
                response = self.table.scan(**scan_kwargs)
                configs.extend(
                    SyncConfig.from_dynamodb_item(item) for item in response.get("Items", [])
                )

                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    break
                scan_kwargs["ExclusiveStartKey"] = last_key

        except ClientError as e:
            logger.error(f"Failed to list enabled sync configs: {e}")
            raise RepositoryError(f"Failed to list enabled sync configs: {e}") from e

        return configs

    def touch_last_sync(
        self, restaurant_id: str, source: MenuSource | str, timestamp: datetime
    ) -> bool:
        """Record the time of the last completed sync.

        Args:
            restaurant_id: Restaurant identifier
            source: Menu source
            timestamp: Completion time

        Returns:
            bool: True if update succeeded, False otherwise
        """
        try:
            self.table.update_item(
                Key={"restaurant_id": restaurant_id, "source": MenuSource(source).value},
                UpdateExpression="SET last_sync = :ts",
                ExpressionAttributeValues={":ts": timestamp.isoformat()},
            )
            return True

        except ClientError as e:
            logger.error(f"Failed to update last sync time: {e}")  # pragma: no cover
            return False

    def acquire_lease(
        self,
        restaurant_id: str,
        source: MenuSource | str,
        owner: str,
        now: datetime,
        ttl_seconds: int,
    ) -> bool:
        """Claim the sync lease for a restaurant-source pair.

        The conditional update only succeeds when no lease is held or the
        held lease has expired.

        Args:
            restaurant_id: Restaurant identifier
            source: Menu source
            owner: Token identifying the run taking the lease
            now: Current time
            ttl_seconds: Lease lifetime

        Returns:
            bool: True if the lease was acquired, False if another run holds it

        Raises:
            RepositoryError: If the update fails for any other reason
        """
        try:
            self.table.update_item(
                Key={"restaurant_id": restaurant_id, "source": MenuSource(source).value},
                UpdateExpression="SET lease_owner = :owner, lease_expires_at = :expires",
                ConditionExpression=(
                    "attribute_exists(restaurant_id) AND "
                    "(attribute_not_exists(lease_expires_at) OR lease_expires_at < :now)"
                ),
                ExpressionAttributeValues={
                    ":owner": owner,
                    ":expires": (now + timedelta(seconds=ttl_seconds)).isoformat(),
                    ":now": now.isoformat(),
                },
            )
            return True

        except ClientError as e:
            if _is_conditional_check_failure(e):
                logger.info(f"Sync lease for {restaurant_id}/{source} is held by another run")
                return False
            logger.error(f"Failed to acquire sync lease: {e}")
            raise RepositoryError(
                f"Failed to acquire sync lease for {restaurant_id}/{source}: {e}"
            ) from e

    def release_lease(self, restaurant_id: str, source: MenuSource | str, owner: str) -> bool:
        """Release a sync lease held by owner.

        Args:
            restaurant_id: Restaurant identifier
            source: Menu source
            owner: Token the lease was acquired with

        Returns:
            bool: True if released, False if not held by owner or on error
        """
        try:
            self.table.update_item(
                Key={"restaurant_id": restaurant_id, "source": MenuSource(source).value},
                UpdateExpression="REMOVE lease_owner, lease_expires_at",
                ConditionExpression="lease_owner = :owner",
                ExpressionAttributeValues={":owner": owner},
            )
            return True

        except ClientError as e:
            logger.error(f"Failed to release sync lease: {e}")  # pragma: no cover
            return False


class MenuItemRepository:
    """Repository for menu items owned by the sync engine.

    Manages items in DynamoDB with id as partition key. Scoped reads use a
    Global Secondary Index on restaurant_id and filter on source, so items
    without a source (manually managed) are never returned.
    """

    def __init__(self, dynamodb_resource: DynamoDBServiceResource, table_name: str) -> None:
        """Initialize repository.

        Args:
            dynamodb_resource: Boto3 DynamoDB resource
            table_name: Name of the DynamoDB table
        """
        self.dynamodb = dynamodb_resource
        self.table_name = table_name
        self.table: Table = dynamodb_resource.Table(table_name)
        self.serializer = TypeSerializer()

    def list_items_for_scope(
        self, restaurant_id: str, source: MenuSource | str
    ) -> list[MenuItem] | None:
        """List the items of one restaurant synced from one source.

        Args:
            restaurant_id: Restaurant identifier
            source: Menu source

        Returns:
            list: MenuItem objects (empty list if none), None on failure.
            Failure is distinct from empty so callers never diff against
            a scope they could not read.
        """
        items: list[MenuItem] = []
        query_kwargs: dict[str, Any] = {
            "IndexName": "restaurant_id-index",
            "KeyConditionExpression": "restaurant_id = :rid",
            "FilterExpression": "#source = :source",
            "ExpressionAttributeNames": {"#source": "source"},
            "ExpressionAttributeValues": {
                ":rid": restaurant_id,
                ":source": MenuSource(source).value,
            },
        }

        try:
            while True:
                response = self.table.query(**query_kwargs)
                items.extend(MenuItem.from_dynamodb_item(item) for item in response.get("Items", []))

                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    break
                query_kwargs["ExclusiveStartKey"] = last_key

        except ClientError as e:
            logger.error(f"Failed to list menu items for {restaurant_id}/{source}: {e}")
            return None

        return items

    def write_batch(self, puts: list[MenuItem], deletes: list[MenuItem]) -> bool:
        """Write puts and deletes as a single DynamoDB transaction.

        Args:
            puts: Items to create or overwrite
            deletes: Items to delete

        Returns:
            bool: True if the transaction committed, False otherwise

        Raises:
            ValueError: If the batch exceeds the transaction size limit
        """
        if len(puts) + len(deletes) > MAX_TRANSACTION_ITEMS:
            raise ValueError(
                f"Transaction of {len(puts) + len(deletes)} operations exceeds "
                f"the limit of {MAX_TRANSACTION_ITEMS}"
            )

        transact_items: list[dict[str, Any]] = [
            {"Put": {"TableName": self.table_name, "Item": self._serialize(item.to_dynamodb_item())}}
            for item in puts
        ]
        transact_items.extend(
            {"Delete": {"TableName": self.table_name, "Key": self._serialize({"id": item.id})}}
            for item in deletes
        )

        if not transact_items:
            return True

        try:
            self.dynamodb.meta.client.transact_write_items(TransactItems=transact_items)
            return True

        except ClientError as e:
            logger.error(f"Failed to write menu item batch: {e}")
            return False

    def _serialize(self, item: dict[str, Any]) -> dict[str, Any]:
        return {key: self.serializer.serialize(value) for key, value in item.items()}


class SyncResultRepository:
    """Repository for the append-only sync result log.

    Manages results in DynamoDB with composite key (result_id, timestamp).
    """

    def __init__(self, dynamodb_resource: DynamoDBServiceResource, table_name: str) -> None:
        """Initialize repository.

        Args:
            dynamodb_resource: Boto3 DynamoDB resource
            table_name: Name of the DynamoDB table
        """
        self.dynamodb = dynamodb_resource
        self.table_name = table_name
        self.table: Table = dynamodb_resource.Table(table_name)

    def append_result(self, result: SyncResult) -> bool:
        """Append a result; an existing record is never overwritten.

        Args:
            result: SyncResult to append (result_id must be set)

        Returns:
            bool: True if append succeeded, False otherwise
        """
        try:
            self.table.put_item(
                Item=result.to_dynamodb_item(),
                ConditionExpression="attribute_not_exists(result_id)",
            )
            return True

        except ClientError as e:
            logger.error(f"Failed to append sync result: {e}")  # pragma: no cover
            return False

    def list_results_for_restaurant(
        self, restaurant_id: str, source: MenuSource | str | None = None, limit: int = 50
    ) -> list[SyncResult]:
        """List recent results for a restaurant.

        Uses a Global Secondary Index on restaurant_id sorted by timestamp.
        DynamoDB applies Limit before FilterExpression, so a source filter
        keeps reading pages until limit matches are found or the index is
        exhausted.

        Args:
            restaurant_id: Restaurant identifier
            source: Optional menu source filter
            limit: Maximum number of results to return

        Returns:
            list: SyncResult objects, most recent first (empty list if none found)
        """
        results: list[SyncResult] = []
        query_kwargs: dict[str, Any] = {
            "IndexName": "restaurant_id-index",
            "KeyConditionExpression": "restaurant_id = :rid",
            "ExpressionAttributeValues": {":rid": restaurant_id},
            "Limit": limit,
            "ScanIndexForward": False,  # Most recent first
        }
        if source is not None:
            query_kwargs["FilterExpression"] = "#source = :source"
            query_kwargs["ExpressionAttributeNames"] = {"#source": "source"}
            query_kwargs["ExpressionAttributeValues"][":source"] = MenuSource(source).value

        try:
            while len(results) < limit:
                response = self.table.query(**query_kwargs)
                results.extend(
                    SyncResult.from_dynamodb_item(item) for item in response.get("Items", [])
                )

                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    break
                query_kwargs["ExclusiveStartKey"] = last_key

        except ClientError as e:
            logger.error(f"Failed to list sync results: {e}")  # pragma: no cover
            return []

        return results[:limit]
