from __future__ import annotations

import re
from datetime import datetime, timedelta

from config.defaults import DEFAULT_LOA_RETENTION_DAYS
from staff.clock import parse_iso_utc
from staff.models import LoaRecord


_UNIT_DAYS = {
    "h": 1 / 24,
    "hr": 1 / 24,
    "hrs": 1 / 24,
    "hour": 1 / 24,
    "hours": 1 / 24,
    "d": 1,
    "day": 1,
    "days": 1,
    "w": 7,
    "wk": 7,
    "wks": 7,
    "week": 7,
    "weeks": 7,
    "m": 30,
    "mo": 30,
    "month": 30,
    "months": 30,
}
_WORD_NUMBERS = {"a": 1, "an": 1, "one": 1, "two": 2, "three": 3, "four": 4, "five": 5, "six": 6}
_DURATION_RE = re.compile(r"^(\d{1,3}|a|an|one|two|three|four|five|six)\s*([a-z]+)$")


def parse_leave_duration(text: str | None) -> timedelta | None:
    """Parse free-text like "1 week", "2 days", "12h" or "a month"; None when unrecognized."""
    value = " ".join((text or "").strip().lower().split())
    match = _DURATION_RE.match(value)
    if not match:
        return None
    amount_raw, unit = match.group(1), match.group(2)
    days_per_unit = _UNIT_DAYS.get(unit)
    if days_per_unit is None:
        return None
    amount = int(amount_raw) if amount_raw.isdigit() else _WORD_NUMBERS[amount_raw]
    if amount <= 0:
        return None
    return timedelta(days=amount * days_per_unit)


class LoaExpiryPolicy:
    """Approved leave ends after its stated duration, or after `retention_days` when the duration is not parseable."""

    def __init__(self, retention_days: int = DEFAULT_LOA_RETENTION_DAYS) -> None:
        self.retention = timedelta(days=max(1, int(retention_days)))

    def expires_at(self, record: LoaRecord) -> datetime | None:
        approved_at = parse_iso_utc(record.approved_at_utc)
        if approved_at is None:
            return None
        return approved_at + (parse_leave_duration(record.duration) or self.retention)

    def is_expired(self, record: LoaRecord, now: datetime) -> bool:
        if record.status != "approved":
            return False
        expires = self.expires_at(record)
        return expires is not None and expires <= now
