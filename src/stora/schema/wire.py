"""
Wire payloads exchanged with the REST backend.

Aliases are the backend's JSON keys. Every field is optional so that a
partial payload always parses; the mappers turn missing values into local
defaults.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator


class WireModel(BaseModel):
    """Base for backend payloads: populate by alias or name, ignore extras."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    def to_wire(self) -> dict[str, Any]:
        """Serialize using backend keys, dropping unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class Pagination(WireModel):
    current_page: int = Field(1, alias="currentPage")
    total_pages: int = Field(1, alias="totalPages")
    total_items: int = Field(0, alias="totalItems")
    has_next: bool = Field(False, alias="hasNext")
    has_prev: bool = Field(False, alias="hasPrev")


class ApiEnvelope(WireModel):
    """Response wrapper: ``{success, message?, data?, pagination?}``."""

    success: bool = False
    message: str | None = None
    data: Any = None
    pagination: Pagination | None = None

    def records(self) -> list[dict[str, Any]]:
        """The ``data`` field as a list of objects."""
        if isinstance(self.data, list):
            return [row for row in self.data if isinstance(row, dict)]
        if isinstance(self.data, dict):
            return [self.data]
        return []

    def record(self) -> dict[str, Any]:
        """The ``data`` field as a single object (empty when absent)."""
        if isinstance(self.data, dict):
            return self.data
        if isinstance(self.data, list) and self.data and isinstance(self.data[0], dict):
            return self.data[0]
        return {}


def _as_list(value: Any) -> Any:
    if isinstance(value, dict):
        return [value]
    return value


# Inventory

class PhotoPayload(WireModel):
    photo_id: int | None = Field(None, alias="ID_Foto_Inventaris")
    path: str | None = Field(None, alias="Foto")


class InventoryPayload(WireModel):
    remote_id: int | None = Field(None, alias="ID_Inventaris")
    name: str | None = Field(None, alias="Nama_Barang")
    code: str | None = Field(None, alias="Kode_Barang")
    quantity: int | None = Field(None, alias="Jumlah")
    category: str | None = Field(None, alias="Kategori")
    location: str | None = Field(None, alias="Lokasi")
    condition: str | None = Field(None, alias="Kondisi")
    acquired_on: str | None = Field(None, alias="Tanggal_Pengadaan")
    description: str | None = Field(None, alias="Deskripsi")
    owner_id: int | None = Field(None, alias="ID_User")
    photos: list[PhotoPayload] | None = Field(None, alias="foto")

    @field_validator("photos", mode="before")
    @classmethod
    def wrap_photos(cls, value: Any) -> Any:
        return _as_list(value)


class InventoryRequest(WireModel):
    name: str = Field(alias="Nama_Barang")
    code: str = Field(alias="Kode_Barang")
    quantity: int = Field(alias="Jumlah")
    category: str = Field(alias="Kategori")
    location: str = Field(alias="Lokasi")
    condition: str = Field(alias="Kondisi")
    acquired_on: str = Field(alias="Tanggal_Pengadaan")
    description: str | None = Field(None, alias="Deskripsi")
    owner_id: int | None = Field(None, alias="ID_User")


# Loans

class LoanInventoryRef(WireModel):
    remote_id: int | None = Field(None, alias="ID_Inventaris")
    name: str | None = Field(None, alias="Nama_Barang")
    code: str | None = Field(None, alias="Kode_Barang")
    condition: str | None = Field(None, alias="Kondisi")


class LoanPhotoPayload(WireModel):
    photo_id: int | None = Field(None, alias="ID_Foto_Peminjaman")
    borrow_photo: str | None = Field(None, alias="Foto_Peminjaman")
    return_photo: str | None = Field(None, alias="Foto_Pengembalian")


class LoanItemPayload(WireModel):
    remote_id: int | None = Field(None, alias="ID_Peminjaman_Barang")
    loan_remote_id: int | None = Field(None, alias="ID_Peminjaman")
    inventory_remote_id: int | None = Field(None, alias="ID_Inventaris")
    quantity: int | None = Field(None, alias="Jumlah")
    inventory: LoanInventoryRef | None = Field(None, alias="inventaris")
    photos: list[LoanPhotoPayload] | None = Field(None, alias="foto")

    @field_validator("photos", mode="before")
    @classmethod
    def wrap_photos(cls, value: Any) -> Any:
        return _as_list(value)


class LoanPayload(WireModel):
    remote_id: int | None = Field(None, alias="ID_Peminjaman")
    borrower_name: str | None = Field(None, alias="Nama_Peminjam")
    borrower_phone: str | None = Field(None, alias="NoHP_Peminjam")
    loan_date: str | None = Field(None, alias="Tanggal_Pinjam")
    due_date: str | None = Field(None, alias="Tanggal_Kembali")
    returned_at: str | None = Field(None, alias="Tanggal_Dikembalikan")
    status: str | None = Field(None, alias="Status")
    owner_id: int | None = Field(None, alias="ID_User")
    items: list[LoanItemPayload] | None = Field(None, alias="barang")


class LoanItemRequest(WireModel):
    inventory_remote_id: int = Field(alias="ID_Inventaris")
    quantity: int = Field(alias="Jumlah")


class LoanCreateRequest(WireModel):
    borrower_name: str = Field(alias="Nama_Peminjam")
    borrower_phone: str = Field(alias="NoHP_Peminjam")
    loan_date: str = Field(alias="Tanggal_Pinjam")
    due_date: str = Field(alias="Tanggal_Kembali")
    owner_id: int | None = Field(None, alias="ID_User")
    items: list[LoanItemRequest] = Field(default_factory=list, alias="barangList")


class LoanStatusRequest(WireModel):
    status: str = Field(alias="Status")
    returned_at: str | None = Field(None, alias="Tanggal_Dikembalikan")


class LoanUpdateRequest(WireModel):
    due_date: str | None = Field(None, alias="Tanggal_Kembali")
    items: list[LoanItemRequest] | None = Field(None, alias="barangList")


# Reminders and notification history

class ReminderPayload(WireModel):
    remote_id: int | None = Field(None, alias="ID_Reminder")
    owner_id: int | None = Field(None, alias="ID_User")
    reminder_type: str | None = None
    title: str | None = None
    periodic_months: int | None = None
    scheduled_datetime: str | None = None
    fcm_token: str | None = None
    is_active: bool | None = None
    last_notified: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class ReminderRequest(WireModel):
    reminder_type: str
    title: str | None = None
    periodic_months: int | None = None
    scheduled_datetime: str | None = None
    fcm_token: str | None = None
    is_active: bool | None = None


class NotificationPayload(WireModel):
    remote_id: int | None = Field(None, alias="ID_Notifikasi")
    title: str | None = Field(None, alias="Judul")
    message: str | None = Field(None, alias="Pesan")
    fired_at: str | int | None = Field(None, alias="Tanggal")
    status: str | None = Field(None, alias="Status")
    owner_id: int | None = Field(None, alias="ID_User")
    loan_remote_id: int | None = Field(None, alias="ID_Peminjaman")
    reminder_remote_id: int | None = Field(None, alias="ID_Reminder")


class NotificationHistoryRequest(WireModel):
    """Typed body for posting a locally fired notification."""

    title: str = Field(alias="Judul")
    message: str = Field(alias="Pesan")
    timestamp: str
    status: str = Field(alias="Status")
    reminder_remote_id: int | None = Field(None, alias="ID_Reminder")
