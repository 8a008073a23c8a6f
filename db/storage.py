from __future__ import annotations

import asyncio
import os
import sqlite3
from pathlib import Path
from typing import Any, Callable, TypeVar

from db.migrate import apply_sqlite_migrations


T = TypeVar("T")


def default_migrations_dir() -> str:
    return str(Path(__file__).resolve().parents[1] / "migrations")


class Storage:
    """One sqlite connection plus the lock that serializes access to it.

    Every component receives the same Storage at construction time; sync store
    functions are run through `run`, which holds the lock and offloads the call
    to a worker thread.
    """

    def __init__(self, conn: sqlite3.Connection, *, db_path: str) -> None:
        self.conn: sqlite3.Connection | None = conn
        self.db_path = db_path
        self.lock = asyncio.Lock()

    @classmethod
    def open(cls, db_path: str, *, migrations_dir: str | None = None) -> "Storage":
        # check_same_thread=False because the connection is used from asyncio.to_thread workers
        conn = sqlite3.connect(db_path, check_same_thread=False)
        try:
            cur = conn.cursor()
            if db_path != ":memory:":
                cur.execute("PRAGMA journal_mode=WAL;")
            cur.execute("PRAGMA synchronous=NORMAL;")
            cur.execute("PRAGMA foreign_keys=ON;")
            ran = apply_sqlite_migrations(conn, migrations_dir or default_migrations_dir())
        except Exception:
            conn.close()
            raise
        if ran:
            print(f"[DB] applied {len(ran)} migration(s): {', '.join(ran)}")
        if db_path != ":memory:":
            print(f"[DB] Using DB_PATH={db_path} exists={os.path.exists(db_path)}")
        return cls(conn, db_path=db_path)

    @property
    def is_open(self) -> bool:
        return self.conn is not None

    def _require_conn(self) -> sqlite3.Connection:
        if self.conn is None:
            raise RuntimeError("Storage is closed")
        return self.conn

    async def run(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        conn = self._require_conn()
        async with self.lock:
            return await asyncio.to_thread(fn, conn, *args, **kwargs)

    def close(self) -> None:
        if self.conn is None:
            return
        try:
            self.conn.commit()
        finally:
            self.conn.close()
            self.conn = None
        print("[DB] connection closed")
