"""
HTTP client for the STORA REST backend.

Every call returns the parsed response envelope or raises
``TransportError`` (the server could not be reached) or
``RemoteRejectedError`` (non-2xx status or ``success=false``).
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import httpx

from stora.config import Settings
from stora.errors import RemoteRejectedError, TransportError
from stora.schema.wire import (
    ApiEnvelope,
    InventoryRequest,
    LoanCreateRequest,
    LoanStatusRequest,
    LoanUpdateRequest,
    NotificationHistoryRequest,
    ReminderRequest,
)

logger = logging.getLogger(__name__)

JPEG = "image/jpeg"


def _photo_part(field: str, path: Path, index: int | None = None) -> tuple[str, tuple[str, bytes, str]]:
    name = f"photo_{index}.jpg" if index is not None else path.name
    return field, (name, path.read_bytes(), JPEG)


def _form_fields(body: dict[str, Any]) -> dict[str, str]:
    """Flatten a request body into multipart text fields."""
    fields = {}
    for key, value in body.items():
        if isinstance(value, (list, dict)):
            fields[key] = json.dumps(value)
        else:
            fields[key] = str(value)
    return fields


class RemoteClient:
    """
    Thin async wrapper over the backend's REST routes.

    Usage:
        async with RemoteClient(settings, token) as remote:
            rows = await remote.fetch_all_inventory()
    """

    def __init__(
        self,
        settings: Settings,
        token: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings
        self._client = httpx.AsyncClient(
            base_url=settings.api_base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
            },
            timeout=httpx.Timeout(settings.timeout_seconds),
            transport=transport,
        )

    async def __aenter__(self) -> RemoteClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
        data: dict[str, str] | None = None,
        files: list[tuple[str, tuple[str, bytes, str]]] | None = None,
    ) -> ApiEnvelope:
        try:
            response = await self._client.request(
                method,
                path,
                params=params,
                json=json_body,
                data=data,
                files=files,
            )
        except httpx.TransportError as e:
            logger.debug("%s %s failed: %s", method, path, e)
            raise TransportError(f"Cannot reach server: {e.__class__.__name__}") from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict):
            envelope = ApiEnvelope.model_validate(body)
        else:
            envelope = ApiEnvelope(success=response.is_success, data=body)

        if response.is_error or not envelope.success:
            message = envelope.message or f"Server returned HTTP {response.status_code}"
            raise RemoteRejectedError(message, status_code=response.status_code)
        return envelope

    async def _fetch_all(self, path: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Follow ``pagination.hasNext`` until exhausted; any failure aborts the whole fetch."""
        rows: list[dict[str, Any]] = []
        page = 1
        while True:
            query = {"page": page, "limit": self.settings.page_size, **(params or {})}
            envelope = await self._request("GET", path, params=query)
            rows.extend(envelope.records())
            if envelope.pagination is None or not envelope.pagination.has_next:
                return rows
            page += 1

    # Inventory

    async def list_inventory(self, page: int = 1, limit: int | None = None) -> ApiEnvelope:
        return await self._request(
            "GET", "inventaris", params={"page": page, "limit": limit or self.settings.page_size}
        )

    async def fetch_all_inventory(self) -> list[dict[str, Any]]:
        return await self._fetch_all("inventaris")

    async def get_inventory(self, remote_id: int) -> ApiEnvelope:
        return await self._request("GET", f"inventaris/{remote_id}")

    async def create_inventory(self, request: InventoryRequest, photo: Path | None = None) -> ApiEnvelope:
        """Create an item; sent as multipart when a local photo file is given."""
        if photo is None:
            return await self._request("POST", "inventaris", json_body=request.to_wire())
        return await self._request(
            "POST",
            "inventaris",
            data=_form_fields(request.to_wire()),
            files=[_photo_part("foto", photo)],
        )

    async def update_inventory(
        self,
        remote_id: int,
        request: InventoryRequest,
        photo: Path | None = None,
    ) -> ApiEnvelope:
        if photo is None:
            return await self._request("PUT", f"inventaris/{remote_id}", json_body=request.to_wire())
        return await self._request(
            "PUT",
            f"inventaris/{remote_id}",
            data=_form_fields(request.to_wire()),
            files=[_photo_part("foto", photo)],
        )

    async def delete_inventory(self, remote_id: int) -> ApiEnvelope:
        return await self._request("DELETE", f"inventaris/{remote_id}")

    # Loans

    async def list_loans(
        self,
        page: int = 1,
        limit: int | None = None,
        status: str | None = None,
    ) -> ApiEnvelope:
        params: dict[str, Any] = {"page": page, "limit": limit or self.settings.page_size}
        if status:
            params["status"] = status
        return await self._request("GET", "peminjaman", params=params)

    async def fetch_all_loans(self, status: str | None = None) -> list[dict[str, Any]]:
        return await self._fetch_all("peminjaman", {"status": status} if status else None)

    async def get_loan(self, remote_id: int) -> ApiEnvelope:
        return await self._request("GET", f"peminjaman/{remote_id}")

    async def create_loan(self, request: LoanCreateRequest) -> ApiEnvelope:
        return await self._request("POST", "peminjaman", json_body=request.to_wire())

    async def create_loan_with_photos(
        self,
        request: LoanCreateRequest,
        photos: list[Path],
    ) -> ApiEnvelope:
        """Multipart create: loan fields, ``barangList`` as JSON and ``photos`` files."""
        return await self._request(
            "POST",
            "peminjaman/with-photos",
            data=_form_fields(request.to_wire()),
            files=[_photo_part("photos", path, index) for index, path in enumerate(photos)],
        )

    async def update_loan_status(self, remote_id: int, request: LoanStatusRequest) -> ApiEnvelope:
        return await self._request("PATCH", f"peminjaman/{remote_id}/status", json_body=request.to_wire())

    async def update_loan(self, remote_id: int, request: LoanUpdateRequest) -> ApiEnvelope:
        return await self._request("PUT", f"peminjaman/{remote_id}", json_body=request.to_wire())

    async def delete_loan(self, remote_id: int) -> ApiEnvelope:
        return await self._request("DELETE", f"peminjaman/{remote_id}")

    async def upload_return_photos(
        self,
        remote_id: int,
        photos: list[tuple[int, Path]],
    ) -> ApiEnvelope:
        """Attach return photos; each pair is (loan item server id, local file)."""
        mapping = [
            {"ID_Peminjaman_Barang": item_remote_id, "index": index}
            for index, (item_remote_id, _) in enumerate(photos)
        ]
        return await self._request(
            "PATCH",
            f"peminjaman/{remote_id}/return-photos",
            data={"photoMapping": json.dumps(mapping)},
            files=[_photo_part("photos", path, index) for index, (_, path) in enumerate(photos)],
        )

    # Reminders

    async def list_reminders(self) -> ApiEnvelope:
        return await self._request("GET", "notifications/reminders")

    async def fetch_all_reminders(self) -> list[dict[str, Any]]:
        return (await self.list_reminders()).records()

    async def create_reminder(self, request: ReminderRequest) -> ApiEnvelope:
        return await self._request("POST", "notifications/reminders", json_body=request.to_wire())

    async def update_reminder(self, remote_id: int, request: ReminderRequest) -> ApiEnvelope:
        return await self._request(
            "PUT", f"notifications/reminders/{remote_id}", json_body=request.to_wire()
        )

    async def delete_reminder(self, remote_id: int) -> ApiEnvelope:
        return await self._request("DELETE", f"notifications/reminders/{remote_id}")

    async def toggle_reminder(self, remote_id: int) -> ApiEnvelope:
        return await self._request("PATCH", f"notifications/reminders/{remote_id}/toggle")

    async def register_push_token(self, push_token: str) -> ApiEnvelope:
        return await self._request(
            "POST", "notifications/register-token", json_body={"fcm_token": push_token}
        )

    # Notification history

    async def list_notifications(self) -> ApiEnvelope:
        return await self._request("GET", "notifications/history")

    async def fetch_all_notifications(self) -> list[dict[str, Any]]:
        return (await self.list_notifications()).records()

    async def create_notification(self, request: NotificationHistoryRequest) -> ApiEnvelope:
        return await self._request("POST", "notifications/history", json_body=request.to_wire())
