from __future__ import annotations

from staff.clock import Clock, utc_iso, utc_now
from staff.models import OnCallRecord
from staff.records_store import list_active_oncall_sync
from staff.records_store import set_oncall_sync
from staff.records_store import unset_oncall_sync


class OnCallRoster:
    def __init__(self, *, storage, clock: Clock | None = None) -> None:
        self.storage = storage
        self.clock = clock or utc_now

    async def set(self, *, guild_id: int, user_id: int) -> tuple[OnCallRecord, bool]:
        """Mark on-call. Returns (entry, changed); re-setting while active changes nothing."""
        return await self.storage.run(set_oncall_sync, guild_id=guild_id, user_id=user_id, set_at_utc=utc_iso(self.clock()))

    async def unset(self, *, guild_id: int, user_id: int) -> bool:
        return await self.storage.run(
            unset_oncall_sync,
            guild_id=guild_id,
            user_id=user_id,
            unset_at_utc=utc_iso(self.clock()),
        )

    async def list_active(self, guild_id: int) -> list[OnCallRecord]:
        return await self.storage.run(list_active_oncall_sync, guild_id=guild_id)
