from __future__ import annotations

import sqlite3
from typing import Any

from staff.errors import AlreadyExists
from staff.models import ActivityLogRecord
from staff.models import FeedbackRecord
from staff.models import OnCallRecord
from staff.models import TagRecord
from staff.models import WarningRecord


# -------------------------
# warnings
# -------------------------
def insert_warning_sync(
    conn: sqlite3.Connection,
    *,
    guild_id: int,
    user_id: int,
    reason: str,
    proof: str | None,
    issued_by: int,
    issued_at_utc: str,
) -> WarningRecord:
    cur = conn.execute(
        """
        INSERT INTO staff_warnings (guild_id, user_id, reason, proof, issued_by, issued_at_utc)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (int(guild_id), int(user_id), reason, proof, int(issued_by), issued_at_utc),
    )
    conn.commit()
    return WarningRecord(
        id=int(cur.lastrowid),
        guild_id=int(guild_id),
        user_id=int(user_id),
        reason=reason,
        proof=proof,
        issued_by=int(issued_by),
        issued_at_utc=issued_at_utc,
    )


def count_warnings_sync(conn: sqlite3.Connection, *, guild_id: int, user_id: int) -> int:
    cur = conn.cursor()
    cur.execute(
        "SELECT COUNT(*) FROM staff_warnings WHERE guild_id = ? AND user_id = ?",
        (int(guild_id), int(user_id)),
    )
    row = cur.fetchone()
    return int(row[0] or 0) if row else 0


def list_warnings_sync(conn: sqlite3.Connection, *, guild_id: int, user_id: int, limit: int = 10) -> list[WarningRecord]:
    cur = conn.cursor()
    cur.execute(
        """
        SELECT id, guild_id, user_id, reason, proof, issued_by, issued_at_utc
        FROM staff_warnings
        WHERE guild_id = ? AND user_id = ?
        ORDER BY issued_at_utc DESC, id DESC
        LIMIT ?
        """,
        (int(guild_id), int(user_id), max(1, int(limit))),
    )
    return [
        WarningRecord(
            id=int(r[0]),
            guild_id=int(r[1]),
            user_id=int(r[2]),
            reason=r[3],
            proof=r[4],
            issued_by=int(r[5]),
            issued_at_utc=r[6],
        )
        for r in cur.fetchall()
    ]


def clear_warnings_sync(conn: sqlite3.Connection, *, guild_id: int, user_id: int) -> int:
    cur = conn.execute(
        "DELETE FROM staff_warnings WHERE guild_id = ? AND user_id = ?",
        (int(guild_id), int(user_id)),
    )
    conn.commit()
    return int(cur.rowcount or 0)


# -------------------------
# tags
# -------------------------
def _row_to_tag(row: tuple[Any, ...] | None) -> TagRecord | None:
    if row is None:
        return None
    return TagRecord(
        id=int(row[0]),
        guild_id=int(row[1]),
        name=row[2],
        content=row[3],
        created_by=int(row[4]),
        created_at_utc=row[5],
    )


def insert_tag_sync(
    conn: sqlite3.Connection,
    *,
    guild_id: int,
    name: str,
    content: str,
    created_by: int,
    created_at_utc: str,
) -> TagRecord:
    try:
        cur = conn.execute(
            """
            INSERT INTO staff_tags (guild_id, name, content, created_by, created_at_utc)
            VALUES (?, ?, ?, ?, ?)
            """,
            (int(guild_id), name, content, int(created_by), created_at_utc),
        )
    except sqlite3.IntegrityError as exc:
        conn.rollback()
        raise AlreadyExists(f"A tag named `{name}` already exists.") from exc
    conn.commit()
    return TagRecord(
        id=int(cur.lastrowid),
        guild_id=int(guild_id),
        name=name,
        content=content,
        created_by=int(created_by),
        created_at_utc=created_at_utc,
    )


def fetch_tag_sync(conn: sqlite3.Connection, *, guild_id: int, name: str) -> TagRecord | None:
    cur = conn.cursor()
    cur.execute(
        """
        SELECT id, guild_id, name, content, created_by, created_at_utc
        FROM staff_tags
        WHERE guild_id = ? AND name = ?
        LIMIT 1
        """,
        (int(guild_id), name),
    )
    return _row_to_tag(cur.fetchone())


def delete_tag_sync(conn: sqlite3.Connection, *, guild_id: int, name: str) -> bool:
    cur = conn.execute("DELETE FROM staff_tags WHERE guild_id = ? AND name = ?", (int(guild_id), name))
    conn.commit()
    return bool(cur.rowcount)


def list_tags_sync(conn: sqlite3.Connection, *, guild_id: int) -> list[TagRecord]:
    cur = conn.cursor()
    cur.execute(
        """
        SELECT id, guild_id, name, content, created_by, created_at_utc
        FROM staff_tags
        WHERE guild_id = ?
        ORDER BY name ASC
        """,
        (int(guild_id),),
    )
    return [t for t in (_row_to_tag(r) for r in cur.fetchall()) if t is not None]


# -------------------------
# activity
# -------------------------
def insert_activity_sync(
    conn: sqlite3.Connection,
    *,
    guild_id: int,
    user_id: int,
    activity: str,
    hours: int,
    logged_at_utc: str,
) -> ActivityLogRecord:
    cur = conn.execute(
        """
        INSERT INTO staff_activity (guild_id, user_id, activity, hours, logged_at_utc)
        VALUES (?, ?, ?, ?, ?)
        """,
        (int(guild_id), int(user_id), activity, int(hours), logged_at_utc),
    )
    conn.commit()
    return ActivityLogRecord(
        id=int(cur.lastrowid),
        guild_id=int(guild_id),
        user_id=int(user_id),
        activity=activity,
        hours=int(hours),
        logged_at_utc=logged_at_utc,
    )


def fetch_activity_since_sync(
    conn: sqlite3.Connection,
    *,
    guild_id: int,
    since_utc: str,
    user_id: int | None = None,
) -> list[ActivityLogRecord]:
    where = ["guild_id = ?", "logged_at_utc >= ?"]
    params: list[Any] = [int(guild_id), since_utc]
    if user_id is not None:
        where.append("user_id = ?")
        params.append(int(user_id))
    cur = conn.cursor()
    cur.execute(
        f"""
        SELECT id, guild_id, user_id, activity, hours, logged_at_utc
        FROM staff_activity
        WHERE {' AND '.join(where)}
        ORDER BY logged_at_utc ASC, id ASC
        """,
        tuple(params),
    )
    return [
        ActivityLogRecord(
            id=int(r[0]),
            guild_id=int(r[1]),
            user_id=int(r[2]),
            activity=r[3],
            hours=int(r[4] or 0),
            logged_at_utc=r[5],
        )
        for r in cur.fetchall()
    ]


# -------------------------
# on-call roster
# -------------------------
def set_oncall_sync(conn: sqlite3.Connection, *, guild_id: int, user_id: int, set_at_utc: str) -> tuple[OnCallRecord, bool]:
    """Upsert an active entry. Returns (record, changed); re-setting while active keeps set_at_utc."""
    existing = fetch_oncall_sync(conn, guild_id=guild_id, user_id=user_id)
    if existing is not None and existing.active:
        return existing, False
    conn.execute(
        """
        INSERT INTO staff_oncall (guild_id, user_id, active, set_at_utc, unset_at_utc)
        VALUES (?, ?, 1, ?, NULL)
        ON CONFLICT(guild_id, user_id) DO UPDATE SET
            active = 1,
            set_at_utc = excluded.set_at_utc,
            unset_at_utc = NULL
        """,
        (int(guild_id), int(user_id), set_at_utc),
    )
    conn.commit()
    record = fetch_oncall_sync(conn, guild_id=guild_id, user_id=user_id)
    if record is None:
        raise RuntimeError("Failed to upsert on-call entry")
    return record, True


def unset_oncall_sync(conn: sqlite3.Connection, *, guild_id: int, user_id: int, unset_at_utc: str) -> bool:
    cur = conn.execute(
        """
        UPDATE staff_oncall
        SET active = 0, unset_at_utc = ?
        WHERE guild_id = ? AND user_id = ? AND active = 1
        """,
        (unset_at_utc, int(guild_id), int(user_id)),
    )
    conn.commit()
    return bool(cur.rowcount)


def fetch_oncall_sync(conn: sqlite3.Connection, *, guild_id: int, user_id: int) -> OnCallRecord | None:
    cur = conn.cursor()
    cur.execute(
        """
        SELECT guild_id, user_id, active, set_at_utc, unset_at_utc
        FROM staff_oncall
        WHERE guild_id = ? AND user_id = ?
        LIMIT 1
        """,
        (int(guild_id), int(user_id)),
    )
    r = cur.fetchone()
    if r is None:
        return None
    return OnCallRecord(
        guild_id=int(r[0]),
        user_id=int(r[1]),
        active=bool(r[2]),
        set_at_utc=r[3],
        unset_at_utc=r[4],
    )


def list_active_oncall_sync(conn: sqlite3.Connection, *, guild_id: int) -> list[OnCallRecord]:
    cur = conn.cursor()
    cur.execute(
        """
        SELECT guild_id, user_id, active, set_at_utc, unset_at_utc
        FROM staff_oncall
        WHERE guild_id = ? AND active = 1
        ORDER BY set_at_utc ASC, user_id ASC
        """,
        (int(guild_id),),
    )
    return [
        OnCallRecord(guild_id=int(r[0]), user_id=int(r[1]), active=bool(r[2]), set_at_utc=r[3], unset_at_utc=r[4])
        for r in cur.fetchall()
    ]


# -------------------------
# feedback
# -------------------------
def insert_feedback_sync(
    conn: sqlite3.Connection,
    *,
    guild_id: int,
    message: str,
    anonymous: bool,
    submitted_by: int | None,
    submitted_at_utc: str,
) -> FeedbackRecord:
    submitter = None if anonymous else (int(submitted_by) if submitted_by is not None else None)
    cur = conn.execute(
        """
        INSERT INTO staff_feedback (guild_id, message, anonymous, submitted_by, submitted_at_utc)
        VALUES (?, ?, ?, ?, ?)
        """,
        (int(guild_id), message, 1 if anonymous else 0, submitter, submitted_at_utc),
    )
    conn.commit()
    return FeedbackRecord(
        id=int(cur.lastrowid),
        guild_id=int(guild_id),
        message=message,
        anonymous=bool(anonymous),
        submitted_by=submitter,
        submitted_at_utc=submitted_at_utc,
    )


def list_feedback_sync(conn: sqlite3.Connection, *, guild_id: int, limit: int = 25) -> list[FeedbackRecord]:
    cur = conn.cursor()
    cur.execute(
        """
        SELECT id, guild_id, message, anonymous, submitted_by, submitted_at_utc
        FROM staff_feedback
        WHERE guild_id = ?
        ORDER BY id DESC
        LIMIT ?
        """,
        (int(guild_id), max(1, int(limit))),
    )
    return [
        FeedbackRecord(
            id=int(r[0]),
            guild_id=int(r[1]),
            message=r[2],
            anonymous=bool(r[3]),
            submitted_by=int(r[4]) if r[4] is not None else None,
            submitted_at_utc=r[5],
        )
        for r in cur.fetchall()
    ]


# -------------------------
# sweep runs
# -------------------------
def claim_sweep_run_sync(conn: sqlite3.Connection, *, job_name: str, run_key: str, ran_at_utc: str) -> bool:
    """True when (job_name, run_key) had not run before and is now recorded."""
    cur = conn.execute(
        "INSERT OR IGNORE INTO sweep_runs (job_name, run_key, ran_at_utc) VALUES (?, ?, ?)",
        (job_name, run_key, ran_at_utc),
    )
    conn.commit()
    return bool(cur.rowcount)


def has_sweep_run_sync(conn: sqlite3.Connection, *, job_name: str, run_key: str) -> bool:
    cur = conn.cursor()
    cur.execute(
        "SELECT 1 FROM sweep_runs WHERE job_name = ? AND run_key = ? LIMIT 1",
        (job_name, run_key),
    )
    return cur.fetchone() is not None
