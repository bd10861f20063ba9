"""
Pytest configuration and shared fixtures for STORA tests.
"""

import itertools
import json
import re
import tempfile
from collections.abc import AsyncGenerator, Generator
from datetime import datetime
from pathlib import Path
from typing import Any

import httpx
import pytest

API_BASE = "http://stora.test/api/v1/"
OWNER_ID = 7


def _parse_multipart(request: httpx.Request) -> tuple[dict[str, str], list[str]]:
    """Text fields and uploaded file names of a multipart body."""
    content_type = request.headers.get("content-type", "")
    boundary = content_type.split("boundary=")[-1]
    fields: dict[str, str] = {}
    files: list[str] = []
    for part in request.content.split(f"--{boundary}".encode()):
        head, _, body = part.partition(b"\r\n\r\n")
        header = head.decode(errors="ignore")
        name = re.search(r'name="([^"]+)"', header)
        if not name:
            continue
        filename = re.search(r'filename="([^"]+)"', header)
        if filename:
            files.append(filename.group(1))
        else:
            fields[name.group(1)] = body.rstrip(b"\r\n").decode()
    return fields, files


class FakeBackend:
    """
    In-memory stand-in for the STORA REST API, served through
    ``httpx.MockTransport``.

    Set ``offline`` to make every call fail at the transport level, or add
    ``(method, path)`` pairs to ``fail`` to answer them with HTTP 500.
    """

    def __init__(self, owner_id: int = OWNER_ID):
        self.owner_id = owner_id
        self.inventory: dict[int, dict[str, Any]] = {}
        self.loans: dict[int, dict[str, Any]] = {}
        self.reminders: dict[int, dict[str, Any]] = {}
        self.notifications: dict[int, dict[str, Any]] = {}
        self.requests: list[httpx.Request] = []
        self.offline = False
        self.fail: set[tuple[str, str]] = set()
        self._ids = itertools.count(101)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def calls(self, method: str, path: str | None = None) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method and (path is None or self._path(r) == path)
        ]

    @staticmethod
    def _path(request: httpx.Request) -> str:
        return request.url.path.removeprefix("/api/v1/").strip("/")

    # Seeding helpers

    def add_inventory(self, code: str, name: str = "Proyektor", quantity: int = 1, **extra: Any) -> int:
        remote_id = next(self._ids)
        self.inventory[remote_id] = {
            "ID_Inventaris": remote_id,
            "Nama_Barang": name,
            "Kode_Barang": code,
            "Jumlah": quantity,
            "Kategori": "Elektronik",
            "Lokasi": "Gudang",
            "Kondisi": "Baik",
            "Tanggal_Pengadaan": "2024-01-15",
            "Deskripsi": None,
            "ID_User": self.owner_id,
            "foto": [],
            **extra,
        }
        return remote_id

    def add_loan(self, items: list[tuple[int, int]], **extra: Any) -> int:
        remote_id = next(self._ids)
        self.loans[remote_id] = {
            "ID_Peminjaman": remote_id,
            "Nama_Peminjam": "Budi",
            "NoHP_Peminjam": "0812",
            "Tanggal_Pinjam": "2024-03-01 09:00:00",
            "Tanggal_Kembali": "2024-03-08",
            "Tanggal_Dikembalikan": None,
            "Status": "Dipinjam",
            "ID_User": self.owner_id,
            "barang": self._loan_items(remote_id, items),
            **extra,
        }
        return remote_id

    def add_reminder(self, **fields: Any) -> int:
        remote_id = next(self._ids)
        self.reminders[remote_id] = {
            "ID_Reminder": remote_id,
            "ID_User": self.owner_id,
            "reminder_type": "periodic",
            "title": "Pengingat Pengecekan Inventory",
            "periodic_months": 3,
            "scheduled_datetime": None,
            "fcm_token": None,
            "is_active": True,
            "last_notified": None,
            "created_at": "2024-01-01T00:00:00.000Z",
            "updated_at": None,
            **fields,
        }
        return remote_id

    def add_notification(self, **fields: Any) -> int:
        remote_id = next(self._ids)
        self.notifications[remote_id] = {
            "ID_Notifikasi": remote_id,
            "Judul": "Pengingat",
            "Pesan": "Pesan",
            "Tanggal": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            "Status": "Terkirim",
            "ID_User": self.owner_id,
            "ID_Peminjaman": None,
            "ID_Reminder": None,
            **fields,
        }
        return remote_id

    def _loan_items(self, loan_id: int, items: list[tuple[int, int]]) -> list[dict[str, Any]]:
        rows = []
        for inventory_id, quantity in items:
            stock = self.inventory.get(inventory_id, {})
            rows.append({
                "ID_Peminjaman_Barang": next(self._ids),
                "ID_Peminjaman": loan_id,
                "ID_Inventaris": inventory_id,
                "Jumlah": quantity,
                "inventaris": {
                    "ID_Inventaris": inventory_id,
                    "Nama_Barang": stock.get("Nama_Barang"),
                    "Kode_Barang": stock.get("Kode_Barang"),
                    "Kondisi": stock.get("Kondisi"),
                },
                "foto": None,
            })
        return rows

    # Request handling

    @staticmethod
    def ok(data: Any = None, status_code: int = 200, **extra: Any) -> httpx.Response:
        return httpx.Response(status_code, json={"success": True, "message": "OK", "data": data, **extra})

    @staticmethod
    def error(message: str, status_code: int = 400) -> httpx.Response:
        return httpx.Response(status_code, json={"success": False, "message": message})

    def _body(self, request: httpx.Request) -> dict[str, Any]:
        if request.headers.get("content-type", "").startswith("multipart/"):
            fields, _ = _parse_multipart(request)
            return fields
        return json.loads(request.content) if request.content else {}

    def _page(self, request: httpx.Request, rows: list[dict[str, Any]]) -> httpx.Response:
        page = int(request.url.params.get("page", 1))
        limit = int(request.url.params.get("limit", 100))
        total_pages = max(1, -(-len(rows) // limit))
        chunk = rows[(page - 1) * limit: page * limit]
        return self.ok(chunk, pagination={
            "currentPage": page,
            "totalPages": total_pages,
            "totalItems": len(rows),
            "hasNext": page < total_pages,
            "hasPrev": page > 1,
        })

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.offline:
            raise httpx.ConnectError("connection refused", request=request)

        path = self._path(request)
        if (request.method, path) in self.fail:
            return self.error("Internal server error", 500)
        if request.url.path in ("", "/") or request.method == "HEAD":
            return httpx.Response(200)
        if request.headers.get("authorization") != "Bearer test-token":
            return self.error("Unauthorized", 401)

        parts = path.split("/")
        if parts[0] == "inventaris":
            return self._inventory(request, parts[1:])
        if parts[0] == "peminjaman":
            return self._loans(request, parts[1:])
        if parts[:2] == ["notifications", "reminders"]:
            return self._reminders(request, parts[2:])
        if parts[:2] == ["notifications", "history"]:
            return self._history(request)
        if parts[:2] == ["notifications", "register-token"]:
            return self.ok()
        return self.error("Not found", 404)

    def _inventory(self, request: httpx.Request, rest: list[str]) -> httpx.Response:
        if not rest:
            if request.method == "GET":
                return self._page(request, list(self.inventory.values()))
            body = self._body(request)
            if any(row["Kode_Barang"] == body.get("Kode_Barang") for row in self.inventory.values()):
                return self.error("Kode barang sudah digunakan")
            fields = {k: v for k, v in body.items() if k != "ID_User"}
            fields["Jumlah"] = int(fields.get("Jumlah", 0))
            remote_id = self.add_inventory(fields.pop("Kode_Barang"), fields.pop("Nama_Barang", ""), **fields)
            return self.ok(self.inventory[remote_id], 201)

        remote_id = int(rest[0])
        if remote_id not in self.inventory:
            return self.error("Inventaris tidak ditemukan", 404)
        if request.method == "GET":
            return self.ok(self.inventory[remote_id])
        if request.method == "PUT":
            self.inventory[remote_id].update(self._body(request))
            return self.ok(self.inventory[remote_id])
        del self.inventory[remote_id]
        return self.ok()

    def _loans(self, request: httpx.Request, rest: list[str]) -> httpx.Response:
        if not rest or rest == ["with-photos"]:
            if request.method == "GET":
                rows = list(self.loans.values())
                status = request.url.params.get("status")
                if status:
                    rows = [row for row in rows if row["Status"] == status]
                return self._page(request, rows)
            body = self._body(request)
            items = body.pop("barangList", [])
            if isinstance(items, str):
                items = json.loads(items)
            if not items:
                return self.error("barangList wajib diisi")
            remote_id = self.add_loan(
                [(item["ID_Inventaris"], item["Jumlah"]) for item in items],
                **{k: v for k, v in body.items() if k != "ID_User"},
            )
            return self.ok(self.loans[remote_id], 201)

        remote_id = int(rest[0])
        if remote_id not in self.loans:
            return self.error("Peminjaman tidak ditemukan", 404)
        loan = self.loans[remote_id]
        if request.method == "GET":
            return self.ok(loan)
        if request.method == "DELETE":
            del self.loans[remote_id]
            return self.ok()
        if rest[1:] == ["status"]:
            body = self._body(request)
            loan["Status"] = body["Status"]
            loan["Tanggal_Dikembalikan"] = body.get("Tanggal_Dikembalikan")
            return self.ok(loan)
        if rest[1:] == ["return-photos"]:
            return self.ok(loan)
        body = self._body(request)
        if "Tanggal_Kembali" in body:
            loan["Tanggal_Kembali"] = body["Tanggal_Kembali"]
        return self.ok(loan)

    def _reminders(self, request: httpx.Request, rest: list[str]) -> httpx.Response:
        if not rest:
            if request.method == "GET":
                return self.ok(list(self.reminders.values()))
            remote_id = self.add_reminder(**self._body(request))
            return self.ok(self.reminders[remote_id], 201)

        remote_id = int(rest[0])
        if remote_id not in self.reminders:
            return self.error("Reminder not found", 404)
        if request.method == "DELETE":
            del self.reminders[remote_id]
            return self.ok()
        if rest[1:] == ["toggle"]:
            self.reminders[remote_id]["is_active"] = not self.reminders[remote_id]["is_active"]
        else:
            self.reminders[remote_id].update(self._body(request))
        return self.ok(self.reminders[remote_id])

    def _history(self, request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return self.ok(list(self.notifications.values()))
        body = self._body(request)
        fired = datetime.fromtimestamp(int(body["timestamp"]) / 1000)
        remote_id = self.add_notification(
            Judul=body["Judul"],
            Pesan=body["Pesan"],
            Status=body["Status"],
            ID_Reminder=body.get("ID_Reminder"),
            Tanggal=fired.strftime("%Y-%m-%d %H:%M:%S"),
        )
        return self.ok(self.notifications[remote_id], 201)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def settings(temp_dir: Path):
    """Settings pointing at the fake backend; small pages to exercise paging."""
    from stora.config import Settings

    return Settings(
        api_base_url=API_BASE,
        db_path=temp_dir / "stora.sqlite",
        log_path=temp_dir / "sync.log",
        page_size=2,
    )


@pytest.fixture
def session():
    from stora.schema import Session

    return Session(owner_id=OWNER_ID, token="test-token")


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def dict_store():
    """Create a DictStore instance for testing."""
    from stora.storage import DictStore

    return DictStore()


@pytest.fixture
async def sqlite_store(temp_dir: Path) -> AsyncGenerator:
    """Create a SQLiteStore instance for testing."""
    from stora.storage import SQLiteStore

    store = SQLiteStore(temp_dir / "test.db")
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture(params=["dict", "sqlite"])
async def store(request, temp_dir: Path) -> AsyncGenerator:
    """Each local store implementation in turn."""
    from stora.storage import DictStore, SQLiteStore

    if request.param == "dict":
        backend_store = DictStore()
    else:
        backend_store = SQLiteStore(temp_dir / "param.db")
    await backend_store.initialize()
    yield backend_store
    await backend_store.close()


@pytest.fixture
async def remote(settings, backend: FakeBackend) -> AsyncGenerator:
    from stora.remote import RemoteClient

    client = RemoteClient(settings, "test-token", transport=backend.transport())
    yield client
    await client.close()


@pytest.fixture
def online():
    from stora.remote import StaticConnectivity

    return StaticConnectivity(True)


@pytest.fixture
def offline():
    from stora.remote import StaticConnectivity

    return StaticConnectivity(False)


@pytest.fixture
def manager(session, store, remote, online):
    from stora.sync import SyncManager

    return SyncManager(session, store, remote, online)


def make_item(code: str = "INV-001", quantity: int = 5, **fields: Any):
    from stora.schema import InventoryItem

    return InventoryItem(name=fields.pop("name", "Proyektor"), code=code, quantity=quantity, **fields)


@pytest.fixture
def item_factory():
    return make_item
