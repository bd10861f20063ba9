"""Foreground, offline-first operations."""

from stora.repositories.inventory import InventoryRepository
from stora.repositories.loans import LoanRepository
from stora.repositories.notifications import NotificationRepository

__all__ = ["InventoryRepository", "LoanRepository", "NotificationRepository"]
