from __future__ import annotations

from config.defaults import EMBED_COLORS
from staff.clock import Clock, utc_iso, utc_now
from staff.errors import InvalidInput
from staff.models import FeedbackRecord
from staff.notify import SKIPPED
from staff.notify import Notice
from staff.notify import NotificationSink
from staff.notify import log_outcome
from staff.records_store import insert_feedback_sync


FEEDBACK_MAX_CHARS = 2000


class FeedbackBox:
    def __init__(self, *, storage, config_store, notifier: NotificationSink, clock: Clock | None = None) -> None:
        self.storage = storage
        self.config_store = config_store
        self.notifier = notifier
        self.clock = clock or utc_now

    async def submit(self, *, guild_id: int, user_id: int, message: str, anonymous: bool = False) -> tuple[FeedbackRecord, str]:
        """Store feedback and forward it to the feedback channel. Returns (record, delivery outcome)."""
        text = (message or "").strip()
        if not text:
            raise InvalidInput("Feedback cannot be empty.")
        if len(text) > FEEDBACK_MAX_CHARS:
            raise InvalidInput(f"Feedback is limited to {FEEDBACK_MAX_CHARS} characters.")
        record = await self.storage.run(
            insert_feedback_sync,
            guild_id=guild_id,
            message=text,
            anonymous=bool(anonymous),
            submitted_by=user_id,
            submitted_at_utc=utc_iso(self.clock()),
        )

        cfg = await self.config_store.get(guild_id)
        channel_id = cfg.channels.feedback
        if channel_id is None:
            return record, SKIPPED
        notice = Notice(
            title="New Staff Feedback",
            description=text,
            color=EMBED_COLORS["feedback"],
        ).add_field("Submitted By", "Anonymous" if record.anonymous else f"<@{int(user_id)}>")
        outcome = await self.notifier.channel(int(channel_id), notice)
        log_outcome(outcome, what="feedback", guild_id=guild_id, target_id=channel_id)
        return record, outcome
