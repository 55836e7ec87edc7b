"""Batch applier committing a reconciliation plan to the menu store."""

import logging
from dataclasses import dataclass

from menu_sync_service.models.menu_models import MenuItem
from menu_sync_service.repositories.sync_repositories import (
    MAX_TRANSACTION_ITEMS,
    MenuItemRepository,
)
from menu_sync_service.services.reconciler import ReconciliationPlan

logger = logging.getLogger(__name__)


@dataclass
class BatchApplyResult:
    """Result of applying a reconciliation plan.

    Attributes:
        success: Whether every operation committed
        items_added: Number of items in the create set
        items_updated: Number of items in the update set
        items_removed: Number of items in the delete set
        chunks_committed: Transactions committed before any failure
        error_message: Failure description, None on success
    """

    success: bool
    items_added: int = 0
    items_updated: int = 0
    items_removed: int = 0
    chunks_committed: int = 0
    error_message: str | None = None


class BatchApplier:
    """Writes a reconciliation plan as DynamoDB transactions.

    A plan that fits in one transaction is all-or-nothing. Larger plans are
    split into transaction-sized chunks; if any chunk fails the whole apply
    is reported as a failure, including how many chunks were already
    committed, rather than as a partial success.
    """

    def __init__(
        self,
        menu_item_repository: MenuItemRepository,
        max_batch_size: int = MAX_TRANSACTION_ITEMS,
    ) -> None:
        """Initialize the BatchApplier.

        Args:
            menu_item_repository: Repository the items are written through
            max_batch_size: Maximum operations per transaction
        """
        if not 0 < max_batch_size <= MAX_TRANSACTION_ITEMS:
            raise ValueError(f"max_batch_size must be between 1 and {MAX_TRANSACTION_ITEMS}")

        self.menu_item_repository = menu_item_repository
        self.max_batch_size = max_batch_size

    def apply(self, plan: ReconciliationPlan) -> BatchApplyResult:
        """Commit the create, update and delete sets of a plan.

        Args:
            plan: Output of the reconciler

        Returns:
            BatchApplyResult with the sizes of the plan's sets as counts
        """
        counts = {
            "items_added": len(plan.to_create),
            "items_updated": len(plan.to_update),
            "items_removed": len(plan.to_delete),
        }

        if plan.is_empty:
            return BatchApplyResult(success=True, **counts)

        operations: list[tuple[str, MenuItem]] = [
            ("put", item) for item in plan.to_create + plan.to_update
        ]
        operations.extend(("delete", item) for item in plan.to_delete)

        chunks = [
            operations[start : start + self.max_batch_size]
            for start in range(0, len(operations), self.max_batch_size)
        ]

        for committed, chunk in enumerate(chunks):
            puts = [item for kind, item in chunk if kind == "put"]
            deletes = [item for kind, item in chunk if kind == "delete"]

            if not self.menu_item_repository.write_batch(puts, deletes):
                error_msg = (
                    f"Batch write failed on chunk {committed + 1} of {len(chunks)}; "
                    f"{committed} chunk(s) already committed"
                )
                logger.error(error_msg)
                return BatchApplyResult(
                    success=False,
                    chunks_committed=committed,
                    error_message=error_msg,
                    **counts,
                )

        if len(chunks) > 1:
            logger.info(f"Applied {len(operations)} operations in {len(chunks)} transactions")

        return BatchApplyResult(success=True, chunks_committed=len(chunks), **counts)
