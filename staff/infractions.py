from __future__ import annotations

from config.defaults import EMBED_COLORS
from config.defaults import INFRACTIONS_PAGE_SIZE
from staff.clock import Clock, utc_iso, utc_now
from staff.errors import InvalidInput
from staff.models import WarningRecord
from staff.notify import AuditTrail
from staff.notify import Notice
from staff.notify import NotificationSink
from staff.notify import log_outcome
from staff.records_store import clear_warnings_sync
from staff.records_store import count_warnings_sync
from staff.records_store import insert_warning_sync
from staff.records_store import list_warnings_sync


class InfractionService:
    def __init__(self, *, storage, notifier: NotificationSink, audit: AuditTrail, clock: Clock | None = None) -> None:
        self.storage = storage
        self.notifier = notifier
        self.audit = audit
        self.clock = clock or utc_now

    async def warn(
        self,
        *,
        guild_id: int,
        user_id: int,
        reason: str,
        proof: str | None,
        actor_id: int,
    ) -> tuple[WarningRecord, int]:
        """Store a warning; returns (record, total warnings for the member)."""
        reason = (reason or "").strip()
        if not reason:
            raise InvalidInput("A warning reason is required.")
        proof = (proof or "").strip() or None
        record = await self.storage.run(
            insert_warning_sync,
            guild_id=guild_id,
            user_id=user_id,
            reason=reason,
            proof=proof,
            issued_by=actor_id,
            issued_at_utc=utc_iso(self.clock()),
        )
        total = await self.storage.run(count_warnings_sync, guild_id=guild_id, user_id=user_id)

        notice = (
            Notice(
                title="Staff Warning Issued",
                description="You have received a formal warning.",
                color=EMBED_COLORS["warning"],
            )
            .add_field("Reason", reason)
            .add_field("Total Warnings", total)
        )
        if proof:
            notice.add_field("Evidence", proof)
        outcome = await self.notifier.direct(user_id, notice)
        log_outcome(outcome, what="warning_dm", guild_id=guild_id, target_id=user_id)

        await self.audit.record(
            guild_id=guild_id,
            action="Warning Issued",
            subject_user_id=user_id,
            actor_user_id=actor_id,
            reason=reason,
            details={"warning_count": total, "proof": proof or "None provided"},
            color=EMBED_COLORS["warning"],
        )
        return record, total

    async def infractions(self, *, guild_id: int, user_id: int) -> list[WarningRecord]:
        return await self.storage.run(
            list_warnings_sync,
            guild_id=guild_id,
            user_id=user_id,
            limit=INFRACTIONS_PAGE_SIZE,
        )

    async def clear(self, *, guild_id: int, user_id: int, actor_id: int) -> int:
        cleared = await self.storage.run(clear_warnings_sync, guild_id=guild_id, user_id=user_id)
        await self.audit.record(
            guild_id=guild_id,
            action="Infractions Cleared",
            subject_user_id=user_id,
            actor_user_id=actor_id,
            details={"warnings_cleared": cleared},
            color=EMBED_COLORS["success"],
        )
        return cleared
