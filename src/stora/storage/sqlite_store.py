"""
SQLite store for the durable local database.

One table per entity family. Sync bookkeeping lives in real columns so the
sync queries can use indexes; the rest of the entity is kept as a JSON body.
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from stora.errors import LocalStorageError
from stora.schema.base import Family, SyncedEntity
from stora.schema.loan import Loan, LoanItem
from stora.storage.base import ENTITY_TYPES, BaseStore

TABLES: dict[Family, str] = {
    Family.INVENTORY: "inventory",
    Family.LOANS: "loans",
    Family.REMINDERS: "reminders",
    Family.NOTIFICATIONS: "notifications",
}

SYNC_COLUMNS = ("id", "owner_id", "remote_id", "needs_sync", "is_synced", "is_deleted", "last_modified")


class SQLiteStore(BaseStore):
    """
    SQLite-based local store.

    Features:
    - WAL journal for concurrent readers
    - Loan items in a child table removed by ``ON DELETE CASCADE``
    - Indexes on (owner_id, remote_id) and (owner_id, needs_sync)
    """

    def __init__(self, db_path: str | Path):
        self._db_path = Path(db_path).expanduser()
        self._conn: sqlite3.Connection | None = None

    @property
    def db_path(self) -> Path:
        return self._db_path

    async def initialize(self) -> None:
        """Initialize SQLite database and tables."""
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self._db_path))
        except (OSError, sqlite3.Error) as e:
            raise LocalStorageError(f"Cannot open local database {self._db_path}: {e}") from e

        self._conn.row_factory = sqlite3.Row

        with self._transaction() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA foreign_keys=ON")

            for table in TABLES.values():
                conn.execute(f"""
                    CREATE TABLE IF NOT EXISTS {table} (
                        id TEXT PRIMARY KEY,
                        owner_id INTEGER NOT NULL,
                        remote_id INTEGER,
                        needs_sync INTEGER NOT NULL DEFAULT 1,
                        is_synced INTEGER NOT NULL DEFAULT 0,
                        is_deleted INTEGER NOT NULL DEFAULT 0,
                        last_modified INTEGER NOT NULL,
                        body TEXT NOT NULL
                    )
                """)
                conn.execute(
                    f"CREATE INDEX IF NOT EXISTS idx_{table}_remote ON {table}(owner_id, remote_id)"
                )
                conn.execute(
                    f"CREATE INDEX IF NOT EXISTS idx_{table}_pending ON {table}(owner_id, needs_sync)"
                )

            conn.execute("""
                CREATE TABLE IF NOT EXISTS loan_items (
                    id TEXT PRIMARY KEY,
                    loan_id TEXT NOT NULL REFERENCES loans(id) ON DELETE CASCADE,
                    position INTEGER NOT NULL,
                    body TEXT NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_loan_items_loan ON loan_items(loan_id)")

    async def close(self) -> None:
        """Close SQLite connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        if not self._conn:
            raise RuntimeError("Store not initialized")
        try:
            yield self._conn
            self._conn.commit()
        except sqlite3.Error as e:
            self._conn.rollback()
            raise LocalStorageError(f"Local database error: {e}") from e

    def _query(self, sql: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
        with self._transaction() as conn:
            return conn.execute(sql, params).fetchall()

    # Row conversion

    def _to_entity(self, family: Family, row: sqlite3.Row) -> SyncedEntity:
        data = json.loads(row["body"])
        data.update(
            id=row["id"],
            owner_id=row["owner_id"],
            remote_id=row["remote_id"],
            needs_sync=bool(row["needs_sync"]),
            is_synced=bool(row["is_synced"]),
            is_deleted=bool(row["is_deleted"]),
            last_modified=row["last_modified"],
        )
        if family == Family.LOANS:
            items = self._query(
                "SELECT body FROM loan_items WHERE loan_id = ? ORDER BY position",
                (row["id"],),
            )
            data["items"] = [json.loads(item["body"]) for item in items]
        return ENTITY_TYPES[family].model_validate(data)

    def _rows_to_entities(self, family: Family, rows: list[sqlite3.Row]) -> list[SyncedEntity]:
        return [self._to_entity(family, row) for row in rows]

    # CRUD operations

    async def get(self, family: Family, local_id: str) -> SyncedEntity | None:
        rows = self._query(f"SELECT * FROM {TABLES[family]} WHERE id = ?", (local_id,))
        return self._to_entity(family, rows[0]) if rows else None

    async def get_by_remote_id(
        self,
        family: Family,
        owner_id: int,
        remote_id: int,
    ) -> SyncedEntity | None:
        rows = self._query(
            f"SELECT * FROM {TABLES[family]} WHERE owner_id = ? AND remote_id = ? LIMIT 1",
            (owner_id, remote_id),
        )
        return self._to_entity(family, rows[0]) if rows else None

    async def upsert(self, entity: SyncedEntity) -> SyncedEntity:
        family = entity.family
        table = TABLES[family]
        exclude = set(SYNC_COLUMNS)
        if family == Family.LOANS:
            entity.attach_items()
            exclude.add("items")
        body = json.dumps(entity.model_dump(mode="json", exclude=exclude), sort_keys=True)

        with self._transaction() as conn:
            conn.execute(
                f"""
                INSERT INTO {table} (
                    id, owner_id, remote_id, needs_sync, is_synced, is_deleted, last_modified, body
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    owner_id = excluded.owner_id,
                    remote_id = excluded.remote_id,
                    needs_sync = excluded.needs_sync,
                    is_synced = excluded.is_synced,
                    is_deleted = excluded.is_deleted,
                    last_modified = excluded.last_modified,
                    body = excluded.body
                """,
                (
                    entity.id,
                    entity.owner_id,
                    entity.remote_id,
                    int(entity.needs_sync),
                    int(entity.is_synced),
                    int(entity.is_deleted),
                    entity.last_modified,
                    body,
                ),
            )
            if isinstance(entity, Loan):
                self._replace_items(conn, entity.id, entity.items)
        return entity

    def _replace_items(self, conn: sqlite3.Connection, loan_id: str, items: list[LoanItem]) -> None:
        conn.execute("DELETE FROM loan_items WHERE loan_id = ?", (loan_id,))
        conn.executemany(
            "INSERT INTO loan_items (id, loan_id, position, body) VALUES (?, ?, ?, ?)",
            [
                (item.id, loan_id, position, json.dumps(item.model_dump(mode="json"), sort_keys=True))
                for position, item in enumerate(items)
            ],
        )

    async def purge(self, family: Family, local_id: str) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute(f"DELETE FROM {TABLES[family]} WHERE id = ?", (local_id,))
            return cursor.rowcount > 0

    async def list(
        self,
        family: Family,
        owner_id: int,
        include_deleted: bool = False,
    ) -> list[SyncedEntity]:
        sql = f"SELECT * FROM {TABLES[family]} WHERE owner_id = ?"
        if not include_deleted:
            sql += " AND is_deleted = 0"
        sql += " ORDER BY last_modified, rowid"
        return self._rows_to_entities(family, self._query(sql, (owner_id,)))

    # Indexed overrides of the default sync queries

    async def pending(self, family: Family, owner_id: int) -> list[SyncedEntity]:
        rows = self._query(
            f"SELECT * FROM {TABLES[family]} WHERE owner_id = ? AND needs_sync = 1 "
            "ORDER BY last_modified, rowid",
            (owner_id,),
        )
        return self._rows_to_entities(family, rows)

    async def with_remote_id(self, family: Family, owner_id: int) -> list[SyncedEntity]:
        rows = self._query(
            f"SELECT * FROM {TABLES[family]} WHERE owner_id = ? AND remote_id IS NOT NULL "
            "AND is_deleted = 0 ORDER BY last_modified, rowid",
            (owner_id,),
        )
        return self._rows_to_entities(family, rows)

    async def unsynced_count(self, family: Family, owner_id: int) -> int:
        rows = self._query(
            f"SELECT COUNT(*) AS n FROM {TABLES[family]} WHERE owner_id = ? AND needs_sync = 1",
            (owner_id,),
        )
        return rows[0]["n"]

    async def count_loan_items(self, loan_id: str | None = None) -> int:
        """Number of stored loan item rows, optionally for a single loan."""
        if loan_id is None:
            rows = self._query("SELECT COUNT(*) AS n FROM loan_items")
        else:
            rows = self._query("SELECT COUNT(*) AS n FROM loan_items WHERE loan_id = ?", (loan_id,))
        return rows[0]["n"]
