"""Foreground loan operations."""

from __future__ import annotations

import logging

from stora.errors import ValidationError
from stora.mapping.dates import is_late, now_display
from stora.schema.base import Family
from stora.schema.loan import Loan, LoanStatus, can_transition
from stora.storage import views
from stora.repositories.base import Repository
from stora.sync.loans import LoanSync

logger = logging.getLogger(__name__)


class LoanRepository(Repository):
    """
    Loans are always saved locally first; when online the change is then
    pushed through the loan engine and a server rejection is raised.
    """

    family = Family.LOANS

    def __init__(self, *args, sync: LoanSync | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.sync = sync

    async def _require_loan(self, loan_id: str) -> Loan:
        loan = await self.store.get(Family.LOANS, loan_id)
        if loan is None or loan.is_deleted or loan.owner_id != self.owner_id:
            raise ValidationError(f"Loan {loan_id} not found")
        return loan

    async def _push(self, loan: Loan) -> Loan:
        if self.sync is not None and await self.is_online():
            await self.sync.push_entity(loan, surface=True)
        return loan

    async def create_loan(self, loan: Loan) -> Loan:
        self.session.require()
        if not loan.items:
            raise ValidationError("A loan needs at least one item")
        if any(item.quantity <= 0 for item in loan.items):
            raise ValidationError("Loan item quantities must be positive")

        stock = {item.code: item for item in await views.inventory_items(self.store, self.owner_id)}
        for line in loan.items:
            known = stock.get(line.item_code)
            if known is None:
                continue
            if line.inventory_remote_id is None:
                line.inventory_remote_id = known.remote_id
            line.item_name = line.item_name or known.name

        loan.owner_id = self.owner_id
        loan.remote_id = None
        loan.is_deleted = False
        loan.loan_date = loan.loan_date or now_display()
        loan.attach_items()
        loan.mark_dirty()
        await self.store.upsert(loan)
        return await self._push(loan)

    def _transition(self, loan: Loan, target: LoanStatus) -> None:
        if not can_transition(loan.status, target):
            raise ValidationError(
                f"Cannot change loan status from {loan.status.value} to {target.value}"
            )
        loan.status = target

    async def return_loan(
        self,
        loan_id: str,
        returned_at: str | None = None,
        return_photos: dict[str, str] | None = None,
    ) -> Loan:
        """
        Close a loan as Completed, or Overdue when returned after the due date.
        ``return_photos`` maps loan item ids to photo references.
        """
        self.session.require()
        loan = await self._require_loan(loan_id)
        returned_at = returned_at or now_display()
        target = LoanStatus.OVERDUE if is_late(returned_at, loan.due_date) else LoanStatus.COMPLETED
        self._transition(loan, target)

        loan.returned_at = returned_at
        for item in loan.items:
            if return_photos and item.id in return_photos:
                item.return_photo_uri = return_photos[item.id]
        loan.mark_dirty()
        await self.store.upsert(loan)
        return await self._push(loan)

    async def approve_loan(self, loan_id: str) -> Loan:
        self.session.require()
        loan = await self._require_loan(loan_id)
        self._transition(loan, LoanStatus.BORROWED)
        loan.mark_dirty()
        await self.store.upsert(loan)
        return await self._push(loan)

    async def reject_loan(self, loan_id: str) -> Loan:
        self.session.require()
        loan = await self._require_loan(loan_id)
        self._transition(loan, LoanStatus.REJECTED)
        loan.mark_dirty()
        await self.store.upsert(loan)
        return await self._push(loan)

    async def extend_loan(self, loan_id: str, due_date: str) -> Loan:
        """Move the deadline of an open loan."""
        self.session.require()
        loan = await self._require_loan(loan_id)
        if loan.status.is_terminal:
            raise ValidationError("Only open loans can be extended")
        loan.due_date = due_date
        loan.mark_dirty()
        await self.store.upsert(loan)
        return await self._push(loan)

    async def delete_loan(self, loan_id: str) -> None:
        self.session.require()
        loan = await self._require_loan(loan_id)
        loan.soft_delete()
        await self.store.upsert(loan)

    async def get_loan(self, loan_id: str) -> Loan | None:
        loan = await self.store.get(Family.LOANS, loan_id)
        if loan is None or loan.is_deleted or loan.owner_id != self.owner_id:
            return None
        return loan

    async def active_loans(self) -> list[Loan]:
        return await views.active_loans(self.store, self.owner_id)

    async def loan_history(self) -> list[Loan]:
        return await views.loan_history(self.store, self.owner_id)

    async def borrowed_quantity(self, code: str) -> int:
        return await views.borrowed_quantity(self.store, self.owner_id, code)
