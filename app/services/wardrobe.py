"""
Wardrobe item manager: one user's clothes, partitioned into fresh / wearing / dirty.

Every write is followed by a full re-read of the store rather than a local
patch of the previous listing, so what the caller gets back always matches
the store after the write completed.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import ValidationError

from app.connectors.protocols import RecordStore
from app.core.errors import (
    InputValidationError,
    ItemNotFoundError,
    OperationError,
    RecordNotFoundError,
    RecordStoreError,
)
from app.models.auth import AuthSession
from app.models.wardrobe import Category, ClothItem, ClothItemFields, MutationResult, WardrobeListing

logger = logging.getLogger(__name__)

CLOTHES = "clothes"


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class WardrobeItemManager:
    def __init__(self, store: RecordStore, session: AuthSession):
        self.store = store
        self.session = session

    def list_items(self) -> WardrobeListing:
        """All items owned by the session user, newest first, split by category."""
        try:
            rows = self.store.read(CLOTHES, filters={"user_id": self.session.user_id}, order_by="created_at")
        except RecordStoreError as e:
            logger.warning("Failed to fetch clothes", extra={"error": e.message})
            raise OperationError("Failed to load items") from e

        listing = WardrobeListing()
        for row in rows:
            try:
                item = ClothItem.model_validate(row)
            except ValidationError as e:
                logger.error("Malformed clothes row", extra={"item_id": row.get("id")})
                raise OperationError("Failed to load items") from e
            listing.partition(item.category).append(item)
        return listing

    def _reload(self, message: str) -> MutationResult:
        return MutationResult(message=message, wardrobe=self.list_items())

    @staticmethod
    def _checked(fields: ClothItemFields) -> Dict[str, Any]:
        if not fields.name.strip():
            raise InputValidationError("Name is required")
        return fields.model_dump()

    def _write(self, operation: str, item_id: Optional[str], call) -> None:
        try:
            call()
        except RecordNotFoundError as e:
            raise ItemNotFoundError("Item not found") from e
        except RecordStoreError as e:
            logger.warning(
                "Clothes write failed",
                extra={"operation": operation, "item_id": item_id, "error": e.message},
            )
            raise OperationError(f"Failed to {operation} item") from e

    def add(self, category: Category, fields: ClothItemFields) -> MutationResult:
        record = self._checked(fields)
        record.update(category=Category(category).value, user_id=self.session.user_id)
        self._write("add", None, lambda: self.store.create(CLOTHES, record))
        return self._reload("Item added successfully")

    def edit(self, item_id: str, fields: ClothItemFields) -> MutationResult:
        """Overwrite the descriptive fields. Category is left alone; use move for that."""
        changes = self._checked(fields)
        changes["updated_at"] = _timestamp()
        self._write("update", item_id, lambda: self.store.update(CLOTHES, item_id, changes))
        return self._reload("Item updated successfully")

    def delete(self, item_id: str) -> MutationResult:
        self._write("delete", item_id, lambda: self.store.delete(CLOTHES, item_id))
        return self._reload("Item deleted successfully")

    def move(self, item_id: str, category: Category) -> MutationResult:
        """
        Put an item in `category`. Moving to the category the item is already in
        is accepted and rewrites the same value.
        """
        category = Category(category)
        changes = {"category": category.value, "updated_at": _timestamp()}
        self._write("move", item_id, lambda: self.store.update(CLOTHES, item_id, changes))
        return self._reload(f"Item moved to {category.value}")
