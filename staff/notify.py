from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from config.defaults import EMBED_COLORS
from staff.clock import Clock, utc_iso, utc_now
from staff.lifecycle_store import insert_audit_log_sync


DELIVERED = "delivered"
UNDELIVERABLE = "undeliverable"
SKIPPED = "skipped"


@dataclass(slots=True)
class Notice:
    title: str
    description: str = ""
    fields: list[tuple[str, str]] = field(default_factory=list)
    color: int = EMBED_COLORS["info"]
    footer: str | None = None

    def add_field(self, name: str, value: Any) -> "Notice":
        self.fields.append((str(name), str(value) if value not in (None, "") else "-"))
        return self


class NotificationSink(Protocol):
    """Best-effort delivery. Implementations return an outcome and never raise on delivery failure."""

    async def direct(self, user_id: int, notice: Notice) -> str: ...

    async def channel(self, channel_id: int, notice: Notice, *, content: str | None = None, view: Any = None) -> str: ...


def log_outcome(outcome: str, *, what: str, guild_id: int | None = None, target_id: int | None = None) -> None:
    if outcome == UNDELIVERABLE:
        print(f"[Notify] undeliverable {what} guild={guild_id} target={target_id}")


class AuditTrail:
    """Persists an audit row and mirrors it to the guild's staff log channel."""

    def __init__(self, *, storage, config_store, notifier: NotificationSink, clock: Clock | None = None) -> None:
        self.storage = storage
        self.config_store = config_store
        self.notifier = notifier
        self.clock = clock or utc_now

    async def record(
        self,
        *,
        guild_id: int,
        action: str,
        subject_user_id: int | None,
        actor_user_id: int | None,
        reason: str | None = None,
        details: dict[str, Any] | None = None,
        color: int = EMBED_COLORS["info"],
    ) -> str:
        payload = dict(details or {})
        await self.storage.run(
            insert_audit_log_sync,
            guild_id=int(guild_id),
            action=action,
            subject_user_id=subject_user_id,
            actor_user_id=actor_user_id,
            reason=reason,
            payload=payload,
            created_at_utc=utc_iso(self.clock()),
        )

        cfg = await self.config_store.get(guild_id)
        log_channel_id = cfg.channels.staff_log
        if log_channel_id is None:
            return SKIPPED

        notice = Notice(title=action, color=color)
        if subject_user_id is not None:
            notice.add_field("User", f"<@{int(subject_user_id)}>")
        notice.add_field("By", f"<@{int(actor_user_id)}>" if actor_user_id is not None else "System")
        if reason:
            notice.add_field("Reason", reason)
        for key, value in payload.items():
            notice.add_field(str(key).replace("_", " ").title(), value)

        outcome = await self.notifier.channel(int(log_channel_id), notice)
        log_outcome(outcome, what=f"audit:{action}", guild_id=guild_id, target_id=log_channel_id)
        return outcome
