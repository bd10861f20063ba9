"""Loan aggregate: a loan and its line items."""

from __future__ import annotations

from enum import Enum
from typing import ClassVar

from pydantic import BaseModel, Field

from stora.schema.base import Family, SyncedEntity, new_local_id


class LoanStatus(str, Enum):
    """Loan lifecycle (values are the backend's labels)."""

    WAITING = "Menunggu"
    BORROWED = "Dipinjam"
    COMPLETED = "Selesai"
    OVERDUE = "Terlambat"
    REJECTED = "Ditolak"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @classmethod
    def parse(cls, value: str | None) -> LoanStatus:
        for member in cls:
            if value in (member.value, member.name):
                return member
        return cls.BORROWED


TERMINAL_STATUSES = frozenset(
    {LoanStatus.COMPLETED, LoanStatus.OVERDUE, LoanStatus.REJECTED}
)


def can_transition(current: LoanStatus, target: LoanStatus) -> bool:
    """Monotonic transitions: open states move forward, terminal states stay."""
    if current.is_terminal:
        return False
    if target.is_terminal:
        return True
    return current == LoanStatus.WAITING and target == LoanStatus.BORROWED


class LoanItem(BaseModel):
    """One borrowed line, with a name/code snapshot of the inventory item."""

    id: str = Field(default_factory=new_local_id)
    loan_id: str = ""
    inventory_remote_id: int | None = None
    item_name: str = ""
    item_code: str = ""
    quantity: int = 0
    borrow_photo_uri: str | None = None
    return_photo_uri: str | None = None
    remote_id: int | None = None

    model_config = {"frozen": False}


class Loan(SyncedEntity):
    """A loan record; ``items`` always refer back to this loan's id."""

    family: ClassVar[Family] = Family.LOANS

    borrower_name: str = ""
    borrower_phone: str = ""
    loan_date: str = ""  # Display format, optionally with HH:mm
    due_date: str = ""
    returned_at: str | None = None
    status: LoanStatus = LoanStatus.BORROWED

    items: list[LoanItem] = Field(default_factory=list)

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.items)

    def attach_items(self) -> None:
        """Point every line item at this loan."""
        for item in self.items:
            item.loan_id = self.id
