from __future__ import annotations

import sqlite3


def _has_table(conn: sqlite3.Connection, table: str) -> bool:
    cur = conn.cursor()
    cur.execute("SELECT 1 FROM sqlite_master WHERE type='table' AND name=? LIMIT 1", (table,))
    return cur.fetchone() is not None


def _collapse_duplicate_pending(cur: sqlite3.Cursor, table: str) -> int:
    # Older rows written without the index may hold several pending entries per member.
    # Keep the newest one pending and deny the rest.
    cur.execute(
        f"""
        SELECT guild_id, user_id, MAX(id)
        FROM {table}
        WHERE status = 'pending'
        GROUP BY guild_id, user_id
        HAVING COUNT(*) > 1
        """
    )
    collapsed = 0
    for guild_id, user_id, keep_id in cur.fetchall():
        cur.execute(
            f"""
            UPDATE {table}
            SET status = 'denied', denial_reason = 'superseded by a newer request'
            WHERE guild_id = ? AND user_id = ? AND status = 'pending' AND id <> ?
            """,
            (int(guild_id), int(user_id), int(keep_id)),
        )
        collapsed += int(cur.rowcount or 0)
    return collapsed


def upgrade(conn: sqlite3.Connection) -> None:
    cur = conn.cursor()
    for table, index_name in (
        ("staff_applications", "uq_staff_applications_one_pending"),
        ("staff_loa_requests", "uq_staff_loa_one_pending"),
    ):
        if not _has_table(conn, table):
            continue
        collapsed = _collapse_duplicate_pending(cur, table)
        if collapsed:
            print(f"[DB] {table}: collapsed {collapsed} duplicate pending rows")
        cur.execute(
            f"""
            CREATE UNIQUE INDEX IF NOT EXISTS {index_name}
            ON {table} (guild_id, user_id)
            WHERE status = 'pending'
            """
        )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS sweep_runs (
            job_name TEXT NOT NULL,
            run_key TEXT NOT NULL,
            ran_at_utc TEXT NOT NULL,
            PRIMARY KEY (job_name, run_key)
        )
        """
    )
    conn.commit()
