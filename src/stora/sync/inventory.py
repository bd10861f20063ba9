"""Inventory family sync."""

from __future__ import annotations

from typing import Any

from stora.mapping.inventory import inventory_from_wire, inventory_to_request
from stora.mapping.photos import local_photo_file
from stora.schema.base import Family
from stora.schema.inventory import InventoryItem
from stora.schema.wire import InventoryPayload
from stora.sync.engine import SyncEngine


class InventorySync(SyncEngine):
    """Inventory items; creates go out as multipart when a local photo file exists."""

    family = Family.INVENTORY
    payload_type = InventoryPayload

    async def fetch_remote(self) -> list[dict[str, Any]]:
        return await self.remote.fetch_all_inventory()

    def from_wire(self, payload: InventoryPayload, existing: InventoryItem | None) -> InventoryItem:
        return inventory_from_wire(payload, self.owner_id, self.remote.settings.server_origin, existing)

    async def remote_create(self, entity: InventoryItem) -> int | None:
        envelope = await self.remote.create_inventory(
            inventory_to_request(entity, self.owner_id),
            photo=local_photo_file(entity.photo_uri),
        )
        return self.remote_id_of(envelope.record())

    async def remote_update(self, entity: InventoryItem) -> None:
        await self.remote.update_inventory(
            entity.remote_id,
            inventory_to_request(entity, self.owner_id),
            photo=local_photo_file(entity.photo_uri),
        )

    async def remote_delete(self, entity: InventoryItem) -> None:
        await self.remote.delete_inventory(entity.remote_id)
