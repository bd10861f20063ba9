"""Foreground inventory operations."""

from __future__ import annotations

import logging

from stora.errors import TransportError, ValidationError
from stora.mapping.inventory import inventory_to_request
from stora.mapping.photos import local_photo_file
from stora.schema.base import Family
from stora.schema.inventory import InventoryItem
from stora.schema.wire import InventoryPayload
from stora.storage import views
from stora.repositories.base import Repository

logger = logging.getLogger(__name__)


class InventoryRepository(Repository):
    family = Family.INVENTORY

    async def _check_code(self, item: InventoryItem) -> None:
        if not item.code.strip():
            raise ValidationError("Inventory code is required")
        if await self.store.code_exists(self.owner_id, item.code, exclude_id=item.id):
            raise ValidationError(f"Inventory code '{item.code}' is already used")

    async def _require_item(self, local_id: str) -> InventoryItem:
        item = await self.store.get(Family.INVENTORY, local_id)
        if item is None or item.is_deleted or item.owner_id != self.owner_id:
            raise ValidationError(f"Inventory item {local_id} not found")
        return item

    async def create_item(self, item: InventoryItem) -> InventoryItem:
        """
        Create an item. Online, the server is asked first and a rejection is
        raised with the server's message; if the server cannot be reached the
        item is saved locally and queued.
        """
        self.session.require()
        await self._check_code(item)

        item.owner_id = self.owner_id
        item.remote_id = None
        item.is_deleted = False
        item.mark_dirty()

        if await self.is_online():
            try:
                envelope = await self.remote.create_inventory(
                    inventory_to_request(item, self.owner_id),
                    photo=local_photo_file(item.photo_uri),
                )
            except TransportError as e:
                logger.info("Saving %s locally, server unreachable: %s", item.code, e)
            else:
                remote_id = InventoryPayload.model_validate(envelope.record()).remote_id
                if remote_id is not None:
                    item.mark_clean(remote_id)

        await self.store.upsert(item)
        return item

    async def update_item(self, item: InventoryItem) -> InventoryItem:
        """Save local edits and queue them."""
        self.session.require()
        current = await self._require_item(item.id)
        await self._check_code(item)

        item.owner_id = self.owner_id
        item.remote_id = current.remote_id
        item.is_deleted = False
        item.mark_dirty()
        await self.store.upsert(item)
        return item

    async def delete_item(self, local_id: str) -> None:
        """Soft delete; the next push removes it remotely, then it is purged."""
        self.session.require()
        item = await self._require_item(local_id)
        item.soft_delete()
        await self.store.upsert(item)

    async def get_item(self, local_id: str) -> InventoryItem | None:
        item = await self.store.get(Family.INVENTORY, local_id)
        if item is None or item.is_deleted or item.owner_id != self.owner_id:
            return None
        return item

    async def items(self) -> list[InventoryItem]:
        return await views.inventory_items(self.store, self.owner_id)

    async def search(self, query: str) -> list[InventoryItem]:
        return await views.search_inventory(self.store, self.owner_id, query)

    async def total_quantity(self) -> int:
        return await views.total_quantity(self.store, self.owner_id)
