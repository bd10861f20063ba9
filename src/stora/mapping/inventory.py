"""Inventory wire <-> local mapping."""

from __future__ import annotations

from stora.mapping.dates import to_display_date, to_wire_date
from stora.mapping.photos import qualify_photo_path
from stora.schema.base import new_local_id
from stora.schema.inventory import InventoryItem, ItemCondition
from stora.schema.wire import InventoryPayload, InventoryRequest


def assign_local_id(existing: InventoryItem | None) -> str:
    """Reuse the id of the row already mapped to a remote id, else mint one."""
    return existing.id if existing is not None else new_local_id()


def inventory_from_wire(
    payload: InventoryPayload,
    owner_id: int,
    origin: str,
    existing: InventoryItem | None = None,
) -> InventoryItem:
    """Hydrate a clean local item from a server payload."""
    first_photo = payload.photos[0].path if payload.photos else None
    photo = qualify_photo_path(first_photo, origin)
    if photo is None and existing is not None:
        photo = existing.photo_uri

    return InventoryItem(
        id=assign_local_id(existing),
        remote_id=payload.remote_id,
        owner_id=owner_id,
        name=payload.name or "",
        code=payload.code or "",
        quantity=payload.quantity or 0,
        category=payload.category or "",
        condition=ItemCondition.parse(payload.condition),
        location=payload.location or "",
        description=payload.description or "",
        acquired_on=to_display_date(payload.acquired_on),
        photo_uri=photo,
        needs_sync=False,
        is_synced=True,
    )


def inventory_to_request(item: InventoryItem, owner_id: int) -> InventoryRequest:
    return InventoryRequest(
        name=item.name,
        code=item.code,
        quantity=item.quantity,
        category=item.category,
        location=item.location,
        condition=item.condition.value,
        acquired_on=to_wire_date(item.acquired_on),
        description=item.description,
        owner_id=owner_id,
    )
