from __future__ import annotations

import json
import sqlite3
from typing import Any

from staff.errors import DuplicatePending
from staff.models import ApplicationForm
from staff.models import ApplicationRecord
from staff.models import AuditEntry
from staff.models import LoaRecord
from staff.models import TerminationRecord


_APPLICATION_COLS = (
    "id, guild_id, user_id, name, age, experience, motivation, availability, submitted_at_utc, "
    "status, approved_by, approved_at_utc, approved_tier, denied_by, denied_at_utc, denial_reason"
)
_LOA_COLS = (
    "id, guild_id, user_id, duration, reason, requested_at_utc, status, approved_by, approved_at_utc, "
    "denied_by, denied_at_utc, denial_reason, expired_at_utc"
)


def _dumps(value: Any, fallback: str = "{}") -> str:
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError):
        return fallback


def _row_to_application(row: tuple[Any, ...] | None) -> ApplicationRecord | None:
    if row is None:
        return None
    return ApplicationRecord(
        id=int(row[0]),
        guild_id=int(row[1]),
        user_id=int(row[2]),
        name=row[3],
        age=row[4],
        experience=row[5],
        motivation=row[6],
        availability=row[7],
        submitted_at_utc=row[8],
        status=row[9],
        approved_by=int(row[10]) if row[10] is not None else None,
        approved_at_utc=row[11],
        approved_tier=row[12],
        denied_by=int(row[13]) if row[13] is not None else None,
        denied_at_utc=row[14],
        denial_reason=row[15],
    )


def _row_to_loa(row: tuple[Any, ...] | None) -> LoaRecord | None:
    if row is None:
        return None
    return LoaRecord(
        id=int(row[0]),
        guild_id=int(row[1]),
        user_id=int(row[2]),
        duration=row[3],
        reason=row[4],
        requested_at_utc=row[5],
        status=row[6],
        approved_by=int(row[7]) if row[7] is not None else None,
        approved_at_utc=row[8],
        denied_by=int(row[9]) if row[9] is not None else None,
        denied_at_utc=row[10],
        denial_reason=row[11],
        expired_at_utc=row[12],
    )


# -------------------------
# applications
# -------------------------
def fetch_application_by_id_sync(conn: sqlite3.Connection, application_id: int) -> ApplicationRecord | None:
    cur = conn.cursor()
    cur.execute(f"SELECT {_APPLICATION_COLS} FROM staff_applications WHERE id = ? LIMIT 1", (int(application_id),))
    return _row_to_application(cur.fetchone())


def fetch_pending_application_sync(conn: sqlite3.Connection, *, guild_id: int, user_id: int) -> ApplicationRecord | None:
    cur = conn.cursor()
    cur.execute(
        f"""
        SELECT {_APPLICATION_COLS}
        FROM staff_applications
        WHERE guild_id = ? AND user_id = ? AND status = 'pending'
        ORDER BY id DESC
        LIMIT 1
        """,
        (int(guild_id), int(user_id)),
    )
    return _row_to_application(cur.fetchone())


def insert_application_sync(
    conn: sqlite3.Connection,
    *,
    guild_id: int,
    user_id: int,
    form: ApplicationForm,
    submitted_at_utc: str,
) -> ApplicationRecord:
    try:
        cur = conn.execute(
            """
            INSERT INTO staff_applications (
                guild_id, user_id, name, age, experience, motivation, availability,
                submitted_at_utc, status
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, 'pending')
            """,
            (
                int(guild_id),
                int(user_id),
                form.name,
                form.age,
                form.experience,
                form.motivation,
                form.availability,
                submitted_at_utc,
            ),
        )
    except sqlite3.IntegrityError as exc:
        conn.rollback()
        raise DuplicatePending("You already have a pending application.") from exc
    conn.commit()
    record = fetch_application_by_id_sync(conn, int(cur.lastrowid))
    if record is None:
        raise RuntimeError("Failed to create/fetch staff application")
    return record


def approve_application_sync(
    conn: sqlite3.Connection,
    *,
    application_id: int,
    actor_id: int,
    tier: str,
    approved_at_utc: str,
) -> ApplicationRecord | None:
    """Returns None when the record is no longer pending."""
    cur = conn.execute(
        """
        UPDATE staff_applications
        SET status = 'approved', approved_by = ?, approved_at_utc = ?, approved_tier = ?
        WHERE id = ? AND status = 'pending'
        """,
        (int(actor_id), approved_at_utc, tier, int(application_id)),
    )
    conn.commit()
    if not cur.rowcount:
        return None
    return fetch_application_by_id_sync(conn, int(application_id))


def deny_application_sync(
    conn: sqlite3.Connection,
    *,
    application_id: int,
    actor_id: int,
    reason: str,
    denied_at_utc: str,
) -> ApplicationRecord | None:
    cur = conn.execute(
        """
        UPDATE staff_applications
        SET status = 'denied', denied_by = ?, denied_at_utc = ?, denial_reason = ?
        WHERE id = ? AND status = 'pending'
        """,
        (int(actor_id), denied_at_utc, reason, int(application_id)),
    )
    conn.commit()
    if not cur.rowcount:
        return None
    return fetch_application_by_id_sync(conn, int(application_id))


def list_applications_sync(
    conn: sqlite3.Connection,
    *,
    guild_id: int,
    user_id: int | None = None,
    status: str | None = None,
    limit: int = 25,
) -> list[ApplicationRecord]:
    where = ["guild_id = ?"]
    params: list[Any] = [int(guild_id)]
    if user_id is not None:
        where.append("user_id = ?")
        params.append(int(user_id))
    if status:
        where.append("status = ?")
        params.append(status)
    params.append(max(1, min(int(limit), 200)))
    cur = conn.cursor()
    cur.execute(
        f"""
        SELECT {_APPLICATION_COLS}
        FROM staff_applications
        WHERE {' AND '.join(where)}
        ORDER BY id DESC
        LIMIT ?
        """,
        tuple(params),
    )
    return [r for r in (_row_to_application(row) for row in cur.fetchall()) if r is not None]


# -------------------------
# leave of absence
# -------------------------
def fetch_loa_by_id_sync(conn: sqlite3.Connection, loa_id: int) -> LoaRecord | None:
    cur = conn.cursor()
    cur.execute(f"SELECT {_LOA_COLS} FROM staff_loa_requests WHERE id = ? LIMIT 1", (int(loa_id),))
    return _row_to_loa(cur.fetchone())


def fetch_pending_loa_sync(conn: sqlite3.Connection, *, guild_id: int, user_id: int) -> LoaRecord | None:
    cur = conn.cursor()
    cur.execute(
        f"""
        SELECT {_LOA_COLS}
        FROM staff_loa_requests
        WHERE guild_id = ? AND user_id = ? AND status = 'pending'
        ORDER BY id DESC
        LIMIT 1
        """,
        (int(guild_id), int(user_id)),
    )
    return _row_to_loa(cur.fetchone())


def insert_loa_sync(
    conn: sqlite3.Connection,
    *,
    guild_id: int,
    user_id: int,
    duration: str,
    reason: str,
    requested_at_utc: str,
) -> LoaRecord:
    try:
        cur = conn.execute(
            """
            INSERT INTO staff_loa_requests (guild_id, user_id, duration, reason, requested_at_utc, status)
            VALUES (?, ?, ?, ?, ?, 'pending')
            """,
            (int(guild_id), int(user_id), duration, reason, requested_at_utc),
        )
    except sqlite3.IntegrityError as exc:
        conn.rollback()
        raise DuplicatePending("You already have a pending LOA request.") from exc
    conn.commit()
    record = fetch_loa_by_id_sync(conn, int(cur.lastrowid))
    if record is None:
        raise RuntimeError("Failed to create/fetch LOA request")
    return record


def approve_loa_sync(conn: sqlite3.Connection, *, loa_id: int, actor_id: int, approved_at_utc: str) -> LoaRecord | None:
    cur = conn.execute(
        """
        UPDATE staff_loa_requests
        SET status = 'approved', approved_by = ?, approved_at_utc = ?
        WHERE id = ? AND status = 'pending'
        """,
        (int(actor_id), approved_at_utc, int(loa_id)),
    )
    conn.commit()
    if not cur.rowcount:
        return None
    return fetch_loa_by_id_sync(conn, int(loa_id))


def deny_loa_sync(
    conn: sqlite3.Connection,
    *,
    loa_id: int,
    actor_id: int,
    reason: str,
    denied_at_utc: str,
) -> LoaRecord | None:
    cur = conn.execute(
        """
        UPDATE staff_loa_requests
        SET status = 'denied', denied_by = ?, denied_at_utc = ?, denial_reason = ?
        WHERE id = ? AND status = 'pending'
        """,
        (int(actor_id), denied_at_utc, reason, int(loa_id)),
    )
    conn.commit()
    if not cur.rowcount:
        return None
    return fetch_loa_by_id_sync(conn, int(loa_id))


def list_loa_sync(conn: sqlite3.Connection, *, status: str, guild_id: int | None = None) -> list[LoaRecord]:
    cur = conn.cursor()
    if guild_id is None:
        cur.execute(
            f"SELECT {_LOA_COLS} FROM staff_loa_requests WHERE status = ? ORDER BY guild_id, id",
            (status,),
        )
    else:
        cur.execute(
            f"SELECT {_LOA_COLS} FROM staff_loa_requests WHERE status = ? AND guild_id = ? ORDER BY id",
            (status, int(guild_id)),
        )
    return [r for r in (_row_to_loa(row) for row in cur.fetchall()) if r is not None]


def expire_loa_sync(conn: sqlite3.Connection, *, loa_ids: list[int], expired_at_utc: str) -> list[int]:
    """Flip approved rows to expired; rows already moved on are left alone."""
    expired: list[int] = []
    for loa_id in loa_ids:
        cur = conn.execute(
            """
            UPDATE staff_loa_requests
            SET status = 'expired', expired_at_utc = ?
            WHERE id = ? AND status = 'approved'
            """,
            (expired_at_utc, int(loa_id)),
        )
        if cur.rowcount:
            expired.append(int(loa_id))
    conn.commit()
    return expired


# -------------------------
# terminations
# -------------------------
def insert_termination_sync(
    conn: sqlite3.Connection,
    *,
    guild_id: int,
    user_id: int,
    reason: str,
    terminated_by: int,
    terminated_at_utc: str,
    roles_removed: list[int],
) -> TerminationRecord:
    removed = sorted({int(r) for r in roles_removed})
    cur = conn.execute(
        """
        INSERT INTO staff_terminations (
            guild_id, user_id, reason, terminated_by, terminated_at_utc, roles_removed_json
        )
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (int(guild_id), int(user_id), reason, int(terminated_by), terminated_at_utc, _dumps(removed, "[]")),
    )
    conn.commit()
    return TerminationRecord(
        id=int(cur.lastrowid),
        guild_id=int(guild_id),
        user_id=int(user_id),
        reason=reason,
        terminated_by=int(terminated_by),
        terminated_at_utc=terminated_at_utc,
        roles_removed=removed,
    )


def list_terminations_sync(conn: sqlite3.Connection, *, guild_id: int, user_id: int) -> list[TerminationRecord]:
    cur = conn.cursor()
    cur.execute(
        """
        SELECT id, guild_id, user_id, reason, terminated_by, terminated_at_utc, roles_removed_json
        FROM staff_terminations
        WHERE guild_id = ? AND user_id = ?
        ORDER BY id DESC
        """,
        (int(guild_id), int(user_id)),
    )
    out: list[TerminationRecord] = []
    for row in cur.fetchall():
        try:
            removed = [int(r) for r in json.loads(row[6] or "[]")]
        except (TypeError, ValueError):
            removed = []
        out.append(
            TerminationRecord(
                id=int(row[0]),
                guild_id=int(row[1]),
                user_id=int(row[2]),
                reason=row[3],
                terminated_by=int(row[4]),
                terminated_at_utc=row[5],
                roles_removed=removed,
            )
        )
    return out


# -------------------------
# audit log
# -------------------------
def insert_audit_log_sync(
    conn: sqlite3.Connection,
    *,
    guild_id: int,
    action: str,
    subject_user_id: int | None,
    actor_user_id: int | None,
    reason: str | None,
    payload: dict[str, Any] | None,
    created_at_utc: str,
) -> int:
    cur = conn.execute(
        """
        INSERT INTO staff_audit_log (
            guild_id, action, subject_user_id, actor_user_id, reason, payload_json, created_at_utc
        )
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (
            int(guild_id),
            action,
            int(subject_user_id) if subject_user_id is not None else None,
            int(actor_user_id) if actor_user_id is not None else None,
            reason,
            _dumps(payload or {}),
            created_at_utc,
        ),
    )
    conn.commit()
    return int(cur.lastrowid)


def fetch_audit_log_sync(
    conn: sqlite3.Connection,
    *,
    guild_id: int,
    subject_user_id: int | None = None,
    limit: int = 50,
) -> list[AuditEntry]:
    where = ["guild_id = ?"]
    params: list[Any] = [int(guild_id)]
    if subject_user_id is not None:
        where.append("subject_user_id = ?")
        params.append(int(subject_user_id))
    params.append(max(1, min(int(limit), 500)))
    cur = conn.cursor()
    cur.execute(
        f"""
        SELECT id, guild_id, action, subject_user_id, actor_user_id, reason, payload_json, created_at_utc
        FROM staff_audit_log
        WHERE {' AND '.join(where)}
        ORDER BY id DESC
        LIMIT ?
        """,
        tuple(params),
    )
    out: list[AuditEntry] = []
    for row in cur.fetchall():
        try:
            payload = json.loads(row[6] or "{}")
        except ValueError:
            payload = {}
        out.append(
            AuditEntry(
                id=int(row[0]),
                guild_id=int(row[1]),
                action=row[2],
                subject_user_id=int(row[3]) if row[3] is not None else None,
                actor_user_id=int(row[4]) if row[4] is not None else None,
                reason=row[5],
                payload=payload if isinstance(payload, dict) else {},
                created_at_utc=row[7],
            )
        )
    return out
