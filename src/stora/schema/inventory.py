"""Inventory item schema."""

from __future__ import annotations

from enum import Enum
from typing import ClassVar

from stora.schema.base import Family, SyncedEntity


class ItemCondition(str, Enum):
    """Physical condition of an item (values are the backend's labels)."""

    GOOD = "Baik"
    LIGHTLY_DAMAGED = "Rusak Ringan"
    HEAVILY_DAMAGED = "Rusak Berat"

    @classmethod
    def parse(cls, value: str | None) -> ItemCondition:
        for member in cls:
            if value in (member.value, member.name):
                return member
        return cls.GOOD


class InventoryItem(SyncedEntity):
    """A borrowable item owned by a user. ``code`` is unique per owner."""

    family: ClassVar[Family] = Family.INVENTORY

    name: str = ""
    code: str = ""
    quantity: int = 0
    category: str = ""
    condition: ItemCondition = ItemCondition.GOOD
    location: str = ""
    description: str = ""
    acquired_on: str = ""  # Display format dd/MM/yyyy
    photo_uri: str | None = None
