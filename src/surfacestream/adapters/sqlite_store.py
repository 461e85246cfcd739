"""SQLite-backed adapters for surfaces, segments, visitors and impressions."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from ..domain.impressions import TERMINAL_ACTIONS, ImpressionAction, ImpressionRecord
from ..domain.surfaces import DeliverableSurface, Segment, SurfaceKind, SurfaceStatus
from ..domain.visitors import VisitorRecord

_TERMINAL_SQL = ", ".join(f"'{action.value}'" for action in sorted(TERMINAL_ACTIONS, key=lambda a: a.value))

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS surfaces (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        surface_id TEXT NOT NULL UNIQUE,
        workspace_id TEXT NOT NULL,
        status TEXT NOT NULL,
        kind TEXT NOT NULL,
        payload TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_surfaces_workspace ON surfaces (workspace_id, status, kind)",
    """
    CREATE TABLE IF NOT EXISTS segments (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        segment_id TEXT NOT NULL UNIQUE,
        workspace_id TEXT NOT NULL,
        payload TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_segments_workspace ON segments (workspace_id)",
    """
    CREATE TABLE IF NOT EXISTS visitors (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        visitor_id TEXT NOT NULL UNIQUE,
        workspace_id TEXT NOT NULL,
        payload TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_visitors_workspace ON visitors (workspace_id)",
    """
    CREATE TABLE IF NOT EXISTS impressions (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        impression_id TEXT NOT NULL UNIQUE,
        surface_id TEXT NOT NULL,
        visitor_id TEXT NOT NULL,
        session_id TEXT,
        action TEXT NOT NULL,
        screen_index INTEGER,
        button_index INTEGER,
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_impressions_surface_visitor ON impressions (surface_id, visitor_id)",
    "CREATE INDEX IF NOT EXISTS idx_impressions_visitor ON impressions (visitor_id)",
    # At most one terminal impression per (surface, visitor), enforced by the database.
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_impressions_terminal "
    f"ON impressions (surface_id, visitor_id) WHERE action IN ({_TERMINAL_SQL})",
)


class SqliteDatabase:
    """Owns the database file, its schema and connection settings."""

    def __init__(self, db_path: str, timeout: float = 30.0) -> None:
        self._db_path = db_path
        self._timeout = timeout
        self._ensure_parent_dir()
        self._init_schema()

    @property
    def path(self) -> str:
        return self._db_path

    def _ensure_parent_dir(self) -> None:
        path = Path(self._db_path)
        if path.parent.exists():
            return
        path.parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        # Autocommit mode; multi-statement writes open their own transaction.
        conn = sqlite3.connect(self._db_path, timeout=self._timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self.connect() as conn:
            for statement in _SCHEMA:
                conn.execute(statement)


class SqliteSurfaceStore:
    """SurfaceStorePort over the ``surfaces`` table; ``seq`` is catalog order."""

    def __init__(self, db: SqliteDatabase) -> None:
        self._db = db

    def get(self, surface_id: str) -> DeliverableSurface | None:
        with self._db.connect() as conn:
            row = conn.execute("SELECT payload FROM surfaces WHERE surface_id = ?", (surface_id,)).fetchone()
        return DeliverableSurface.model_validate_json(row["payload"]) if row else None

    def list_by_workspace(
        self,
        workspace_id: str,
        status: SurfaceStatus | None = None,
        kind: SurfaceKind | None = None,
    ) -> list[DeliverableSurface]:
        clauses = ["workspace_id = ?"]
        params: list[object] = [workspace_id]
        if status is not None:
            clauses.append("status = ?")
            params.append(SurfaceStatus(status).value)
        if kind is not None:
            clauses.append("kind = ?")
            params.append(SurfaceKind(kind).value)
        query = "SELECT payload FROM surfaces WHERE " + " AND ".join(clauses) + " ORDER BY seq"
        with self._db.connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [DeliverableSurface.model_validate_json(row["payload"]) for row in rows]

    def insert(self, surface: DeliverableSurface) -> None:
        with self._db.connect() as conn:
            conn.execute(
                """
                INSERT INTO surfaces (surface_id, workspace_id, status, kind, payload)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    surface.surface_id,
                    surface.workspace_id,
                    surface.status.value,
                    surface.kind.value,
                    surface.model_dump_json(),
                ),
            )

    def save(self, surface: DeliverableSurface) -> None:
        with self._db.connect() as conn:
            cursor = conn.execute(
                "UPDATE surfaces SET status = ?, kind = ?, payload = ? WHERE surface_id = ?",
                (surface.status.value, surface.kind.value, surface.model_dump_json(), surface.surface_id),
            )
        if cursor.rowcount == 0:
            raise KeyError(surface.surface_id)

    def delete(self, surface_id: str) -> bool:
        with self._db.connect() as conn:
            cursor = conn.execute("DELETE FROM surfaces WHERE surface_id = ?", (surface_id,))
        return cursor.rowcount > 0


class SqliteSegmentStore:
    """SegmentStorePort over the ``segments`` table."""

    def __init__(self, db: SqliteDatabase) -> None:
        self._db = db

    def get(self, segment_id: str) -> Segment | None:
        with self._db.connect() as conn:
            row = conn.execute("SELECT payload FROM segments WHERE segment_id = ?", (segment_id,)).fetchone()
        return Segment.model_validate_json(row["payload"]) if row else None

    def insert(self, segment: Segment) -> None:
        with self._db.connect() as conn:
            conn.execute(
                "INSERT INTO segments (segment_id, workspace_id, payload) VALUES (?, ?, ?)",
                (segment.segment_id, segment.workspace_id, segment.model_dump_json()),
            )

    def delete(self, segment_id: str) -> bool:
        with self._db.connect() as conn:
            cursor = conn.execute("DELETE FROM segments WHERE segment_id = ?", (segment_id,))
        return cursor.rowcount > 0

    def list_by_workspace(self, workspace_id: str) -> list[Segment]:
        with self._db.connect() as conn:
            rows = conn.execute(
                "SELECT payload FROM segments WHERE workspace_id = ? ORDER BY seq", (workspace_id,)
            ).fetchall()
        return [Segment.model_validate_json(row["payload"]) for row in rows]


class SqliteVisitorStore:
    """VisitorStorePort over the ``visitors`` table."""

    def __init__(self, db: SqliteDatabase) -> None:
        self._db = db

    def get(self, visitor_id: str) -> VisitorRecord | None:
        with self._db.connect() as conn:
            row = conn.execute("SELECT payload FROM visitors WHERE visitor_id = ?", (visitor_id,)).fetchone()
        return VisitorRecord.model_validate_json(row["payload"]) if row else None

    def upsert(self, record: VisitorRecord) -> None:
        with self._db.connect() as conn:
            conn.execute(
                """
                INSERT INTO visitors (visitor_id, workspace_id, payload) VALUES (?, ?, ?)
                ON CONFLICT (visitor_id) DO UPDATE SET
                    workspace_id = excluded.workspace_id,
                    payload = excluded.payload
                """,
                (record.visitor_id, record.workspace_id, record.model_dump_json()),
            )

    def list_by_workspace(self, workspace_id: str) -> list[VisitorRecord]:
        with self._db.connect() as conn:
            rows = conn.execute(
                "SELECT payload FROM visitors WHERE workspace_id = ? ORDER BY seq", (workspace_id,)
            ).fetchall()
        return [VisitorRecord.model_validate_json(row["payload"]) for row in rows]


def _row_to_impression(row: sqlite3.Row) -> ImpressionRecord:
    return ImpressionRecord(
        impression_id=row["impression_id"],
        surface_id=row["surface_id"],
        visitor_id=row["visitor_id"],
        session_id=row["session_id"],
        action=ImpressionAction(row["action"]),
        screen_index=row["screen_index"],
        button_index=row["button_index"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


class SqliteImpressionLog:
    """ImpressionLogPort over the ``impressions`` table."""

    _INSERT = """
        INSERT INTO impressions (
            impression_id, surface_id, visitor_id, session_id, action,
            screen_index, button_index, created_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
    """
    _SELECT_TERMINAL = (
        "SELECT * FROM impressions WHERE surface_id = ? AND visitor_id = ? "
        f"AND action IN ({_TERMINAL_SQL}) ORDER BY seq LIMIT 1"
    )

    def __init__(self, db: SqliteDatabase) -> None:
        self._db = db

    @staticmethod
    def _params(record: ImpressionRecord) -> tuple:
        return (
            record.impression_id,
            record.surface_id,
            record.visitor_id,
            record.session_id,
            record.action.value,
            record.screen_index,
            record.button_index,
            record.created_at.astimezone(timezone.utc).isoformat(),
        )

    def insert(self, record: ImpressionRecord) -> None:
        with self._db.connect() as conn:
            conn.execute(self._INSERT, self._params(record))

    def insert_terminal_if_absent(self, record: ImpressionRecord) -> ImpressionRecord:
        with self._db.connect() as conn:
            # IMMEDIATE takes the write lock up front so the check and the insert
            # cannot interleave with another writer.
            conn.execute("BEGIN IMMEDIATE")
            try:
                row = conn.execute(self._SELECT_TERMINAL, (record.surface_id, record.visitor_id)).fetchone()
                if row is not None:
                    conn.execute("COMMIT")
                    return _row_to_impression(row)
                conn.execute(self._INSERT, self._params(record))
                conn.execute("COMMIT")
                return record
            except sqlite3.IntegrityError:
                conn.execute("ROLLBACK")
            except BaseException:
                conn.execute("ROLLBACK")
                raise
        existing = self.find_terminal(record.surface_id, record.visitor_id)
        if existing is None:
            raise RuntimeError(
                f"terminal impression conflict for {record.surface_id}/{record.visitor_id} without a winner"
            )
        return existing

    def find_terminal(self, surface_id: str, visitor_id: str) -> ImpressionRecord | None:
        with self._db.connect() as conn:
            row = conn.execute(self._SELECT_TERMINAL, (surface_id, visitor_id)).fetchone()
        return _row_to_impression(row) if row else None

    def list_for_visitor(self, visitor_id: str) -> list[ImpressionRecord]:
        with self._db.connect() as conn:
            rows = conn.execute(
                "SELECT * FROM impressions WHERE visitor_id = ? ORDER BY seq", (visitor_id,)
            ).fetchall()
        return [_row_to_impression(row) for row in rows]

    def list_for_surface(self, surface_id: str) -> list[ImpressionRecord]:
        with self._db.connect() as conn:
            rows = conn.execute(
                "SELECT * FROM impressions WHERE surface_id = ? ORDER BY seq", (surface_id,)
            ).fetchall()
        return [_row_to_impression(row) for row in rows]

    def delete_for_surface(self, surface_id: str) -> int:
        with self._db.connect() as conn:
            cursor = conn.execute("DELETE FROM impressions WHERE surface_id = ?", (surface_id,))
        return cursor.rowcount

    def delete(self, impression_id: str) -> bool:
        with self._db.connect() as conn:
            cursor = conn.execute("DELETE FROM impressions WHERE impression_id = ?", (impression_id,))
        return cursor.rowcount > 0
