"""Loan family sync."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import pydantic

from stora.errors import ValidationError
from stora.mapping.loans import loan_from_wire, loan_status_request, loan_to_request, loan_update_request
from stora.mapping.photos import local_photo_file
from stora.schema.base import Family
from stora.schema.loan import Loan, LoanItem, LoanStatus
from stora.schema.wire import LoanPayload
from stora.sync.engine import ROW_ERRORS, SyncEngine
from stora.sync.inventory import InventorySync

logger = logging.getLogger(__name__)


class LoanSync(SyncEngine):
    """
    Loans and their line items.

    Before a create, items missing an inventory server id are resolved by
    code from local inventory, pushing that inventory item first when it has
    never reached the server.
    """

    family = Family.LOANS
    payload_type = LoanPayload

    def __init__(self, *args: Any, inventory: InventorySync | None = None, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.inventory = inventory

    async def fetch_remote(self) -> list[dict[str, Any]]:
        return await self.remote.fetch_all_loans()

    def from_wire(self, payload: LoanPayload, existing: Loan | None) -> Loan:
        return loan_from_wire(payload, self.owner_id, self.remote.settings.server_origin, existing)

    async def resolve_inventory(self, loan: Loan) -> None:
        """Fill ``inventory_remote_id`` on items from local inventory, by code."""
        unresolved = [item for item in loan.items if item.inventory_remote_id is None]
        if not unresolved:
            return
        by_code = {
            item.code: item
            for item in await self.store.list(Family.INVENTORY, self.owner_id)
        }
        for line in unresolved:
            stock = by_code.get(line.item_code)
            if stock is None:
                continue
            if stock.remote_id is None and self.inventory is not None:
                await self.inventory.push_entity(stock)
            line.inventory_remote_id = stock.remote_id

    async def remote_create(self, entity: Loan) -> int | None:
        await self.resolve_inventory(entity)
        request = loan_to_request(entity, self.owner_id)
        if not request.items:
            raise ValidationError("Loan has no items with an inventory server id")

        sent = [item for item in entity.items if item.inventory_remote_id is not None]
        photos = [local_photo_file(item.borrow_photo_uri) for item in sent]
        if any(photos):
            envelope = await self.remote.create_loan_with_photos(
                request, [photo for photo in photos if photo is not None]
            )
        else:
            envelope = await self.remote.create_loan(request)

        record = envelope.record()
        remote_id = self.remote_id_of(record)
        try:
            self._assign_item_ids(sent, LoanPayload.model_validate(record))
        except pydantic.ValidationError as e:
            logger.warning("Loan %s created but its items could not be read: %s", entity.id, e)

        if remote_id is not None and self._changed_since_create(entity):
            await self._push_status_after_create(entity, remote_id)
        return remote_id

    def _changed_since_create(self, loan: Loan) -> bool:
        # The server creates every loan as borrowed
        return loan.status != LoanStatus.BORROWED or loan.returned_at is not None

    async def _push_status_after_create(self, loan: Loan, remote_id: int) -> None:
        """
        Carry a status set offline (returned, rejected) over to the new server
        row. On failure the server id is stored with the row still pending, so
        the next push retries the status update instead of creating again.
        """
        loan.remote_id = remote_id
        try:
            await self.remote.update_loan_status(remote_id, loan_status_request(loan))
            if loan.status.is_terminal:
                await self._upload_return_photos(loan)
        except ROW_ERRORS:
            await self.store.upsert(loan)
            raise

    def _assign_item_ids(self, sent: list[LoanItem], payload: LoanPayload) -> None:
        # The server echoes items in request order
        for item, echoed in zip(sent, payload.items or []):
            item.remote_id = echoed.remote_id

    async def remote_update(self, entity: Loan) -> None:
        await self.remote.update_loan_status(entity.remote_id, loan_status_request(entity))
        if entity.status.is_terminal:
            await self._upload_return_photos(entity)
        else:
            await self.remote.update_loan(entity.remote_id, loan_update_request(entity))

    async def _upload_return_photos(self, loan: Loan) -> None:
        photos: list[tuple[int, Path]] = []
        for item in loan.items:
            path = local_photo_file(item.return_photo_uri)
            if path is not None and item.remote_id is not None:
                photos.append((item.remote_id, path))
        if photos:
            await self.remote.upload_return_photos(loan.remote_id, photos)

    async def remote_delete(self, entity: Loan) -> None:
        await self.remote.delete_loan(entity.remote_id)
