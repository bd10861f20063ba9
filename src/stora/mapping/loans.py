"""Loan aggregate wire <-> local mapping."""

from __future__ import annotations

from stora.mapping.dates import to_display_date, to_wire_date
from stora.mapping.inventory import assign_local_id
from stora.mapping.photos import qualify_photo_path
from stora.schema.base import new_local_id
from stora.schema.loan import Loan, LoanItem, LoanStatus
from stora.schema.wire import (
    LoanCreateRequest,
    LoanItemPayload,
    LoanItemRequest,
    LoanPayload,
    LoanStatusRequest,
    LoanUpdateRequest,
)


def _match_existing_item(payload: LoanItemPayload, existing: Loan | None) -> LoanItem | None:
    if existing is None:
        return None
    if payload.remote_id is not None:
        for item in existing.items:
            if item.remote_id == payload.remote_id:
                return item
    if payload.inventory_remote_id is not None:
        for item in existing.items:
            if item.remote_id is None and item.inventory_remote_id == payload.inventory_remote_id:
                return item
    return None


def loan_item_from_wire(
    payload: LoanItemPayload,
    loan_id: str,
    origin: str,
    existing: LoanItem | None = None,
) -> LoanItem:
    """Flatten one nested item; its first photo record supplies both photos."""
    photo = payload.photos[0] if payload.photos else None
    borrow_photo = qualify_photo_path(photo.borrow_photo if photo else None, origin)
    return_photo = qualify_photo_path(photo.return_photo if photo else None, origin)

    # Keep local images the server has not received yet
    if existing is not None:
        borrow_photo = borrow_photo or existing.borrow_photo_uri
        return_photo = return_photo or existing.return_photo_uri

    inventory = payload.inventory
    return LoanItem(
        id=existing.id if existing is not None else new_local_id(),
        loan_id=loan_id,
        inventory_remote_id=payload.inventory_remote_id
        if payload.inventory_remote_id is not None
        else (inventory.remote_id if inventory else None),
        item_name=(inventory.name if inventory else None) or (existing.item_name if existing else ""),
        item_code=(inventory.code if inventory else None) or (existing.item_code if existing else ""),
        quantity=payload.quantity or 0,
        borrow_photo_uri=borrow_photo,
        return_photo_uri=return_photo,
        remote_id=payload.remote_id,
    )


def loan_from_wire(
    payload: LoanPayload,
    owner_id: int,
    origin: str,
    existing: Loan | None = None,
) -> Loan:
    """Hydrate a clean local loan, reusing local ids for known items."""
    loan_id = assign_local_id(existing)
    items = [
        loan_item_from_wire(item, loan_id, origin, _match_existing_item(item, existing))
        for item in payload.items or []
    ]
    returned_at = to_display_date(payload.returned_at) if payload.returned_at else None

    return Loan(
        id=loan_id,
        remote_id=payload.remote_id,
        owner_id=owner_id,
        borrower_name=payload.borrower_name or "",
        borrower_phone=payload.borrower_phone or "",
        loan_date=to_display_date(payload.loan_date),
        due_date=to_display_date(payload.due_date),
        returned_at=returned_at,
        status=LoanStatus.parse(payload.status),
        items=items,
        needs_sync=False,
        is_synced=True,
    )


def loan_item_requests(loan: Loan) -> list[LoanItemRequest]:
    """Line items that can be sent; items without an inventory server id are left out."""
    return [
        LoanItemRequest(inventory_remote_id=item.inventory_remote_id, quantity=item.quantity)
        for item in loan.items
        if item.inventory_remote_id is not None
    ]


def loan_to_request(loan: Loan, owner_id: int) -> LoanCreateRequest:
    return LoanCreateRequest(
        borrower_name=loan.borrower_name,
        borrower_phone=loan.borrower_phone,
        loan_date=to_wire_date(loan.loan_date),
        due_date=to_wire_date(loan.due_date),
        owner_id=owner_id,
        items=loan_item_requests(loan),
    )


def loan_status_request(loan: Loan) -> LoanStatusRequest:
    return LoanStatusRequest(
        status=loan.status.value,
        returned_at=to_wire_date(loan.returned_at) if loan.returned_at else None,
    )


def loan_update_request(loan: Loan) -> LoanUpdateRequest:
    return LoanUpdateRequest(
        due_date=to_wire_date(loan.due_date),
        items=loan_item_requests(loan) or None,
    )
