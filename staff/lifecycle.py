from __future__ import annotations

from datetime import datetime
from typing import Protocol

from config.defaults import APPLICATION_TIERS
from config.defaults import EMBED_COLORS
from staff.clock import Clock, parse_iso_utc, utc_iso, utc_now
from staff.errors import DuplicatePending
from staff.errors import FeatureDisabled
from staff.errors import GrantFailed
from staff.errors import InvalidInput
from staff.errors import NotFound
from staff.errors import RoleNotConfigured
from staff.lifecycle_store import approve_application_sync
from staff.lifecycle_store import approve_loa_sync
from staff.lifecycle_store import deny_application_sync
from staff.lifecycle_store import deny_loa_sync
from staff.lifecycle_store import expire_loa_sync
from staff.lifecycle_store import fetch_application_by_id_sync
from staff.lifecycle_store import fetch_pending_application_sync
from staff.lifecycle_store import fetch_pending_loa_sync
from staff.lifecycle_store import insert_application_sync
from staff.lifecycle_store import insert_loa_sync
from staff.lifecycle_store import list_loa_sync
from staff.loa_policy import LoaExpiryPolicy
from staff.models import ApplicationForm
from staff.models import ApplicationRecord
from staff.models import LoaRecord
from staff.notify import AuditTrail
from staff.notify import Notice
from staff.notify import NotificationSink
from staff.notify import log_outcome


class Membership(Protocol):
    async def role_ids(self, guild_id: int, user_id: int) -> set[int]: ...

    async def add_roles(self, guild_id: int, user_id: int, role_ids: list[int], *, reason: str) -> None: ...

    async def remove_roles(self, guild_id: int, user_id: int, role_ids: list[int], *, reason: str) -> None: ...


def _require_text(value: str | None, label: str) -> str:
    text = (value or "").strip()
    if not text:
        raise InvalidInput(f"{label} is required.")
    return text


class LifecycleEngine:
    """Application and LOA state machines.

    Applications: pending -> approved | denied.
    LOA: pending -> approved | denied, approved -> expired (sweep only).
    """

    def __init__(
        self,
        *,
        storage,
        config_store,
        membership: Membership,
        notifier: NotificationSink,
        audit: AuditTrail,
        clock: Clock | None = None,
        loa_policy: LoaExpiryPolicy | None = None,
    ) -> None:
        self.storage = storage
        self.config_store = config_store
        self.membership = membership
        self.notifier = notifier
        self.audit = audit
        self.clock = clock or utc_now
        self.loa_policy = loa_policy or LoaExpiryPolicy()

    async def _dm(self, guild_id: int, user_id: int, notice: Notice, what: str) -> str:
        outcome = await self.notifier.direct(int(user_id), notice)
        log_outcome(outcome, what=what, guild_id=guild_id, target_id=user_id)
        return outcome

    async def _revoke_stale_grant(self, application_id: int, *, guild_id: int, user_id: int, role_id: int) -> None:
        """The application was resolved elsewhere between the pending check and the status write."""
        current = await self.storage.run(fetch_application_by_id_sync, application_id)
        if current is not None and current.status == "approved":
            print(f"[Applications] id={application_id} approved concurrently; keeping role guild={guild_id} user={user_id}")
            return
        print(f"[Applications] id={application_id} resolved concurrently; revoking role={role_id} guild={guild_id} user={user_id}")
        try:
            await self.membership.remove_roles(guild_id, user_id, [role_id], reason="Application already resolved")
        except (GrantFailed, NotFound) as e:
            print(f"[Applications] revoke failed guild={guild_id} user={user_id} role={role_id}: {e!r}")

    # -------------------------
    # applications
    # -------------------------
    async def submit_application(self, *, guild_id: int, user_id: int, form: ApplicationForm) -> ApplicationRecord:
        cfg = await self.config_store.get(guild_id)
        if not cfg.features.applications_enabled:
            raise FeatureDisabled("Staff applications are currently closed.")
        clean = ApplicationForm(
            name=_require_text(form.name, "Name"),
            age=_require_text(form.age, "Age"),
            experience=_require_text(form.experience, "Experience"),
            motivation=_require_text(form.motivation, "Motivation"),
            availability=_require_text(form.availability, "Availability"),
        )
        existing = await self.storage.run(fetch_pending_application_sync, guild_id=guild_id, user_id=user_id)
        if existing is not None:
            raise DuplicatePending("You already have a pending application.")
        record = await self.storage.run(
            insert_application_sync,
            guild_id=guild_id,
            user_id=user_id,
            form=clean,
            submitted_at_utc=utc_iso(self.clock()),
        )
        print(f"[Applications] submitted guild={guild_id} user={user_id} id={record.id}")
        return record

    async def approve_application(self, *, guild_id: int, user_id: int, tier: str, actor_id: int) -> ApplicationRecord:
        tier = (tier or "").strip().lower()
        if tier not in APPLICATION_TIERS:
            raise InvalidInput(f"Applications can be approved as: {', '.join(APPLICATION_TIERS)}.")
        pending = await self.storage.run(fetch_pending_application_sync, guild_id=guild_id, user_id=user_id)
        if pending is None:
            raise NotFound("No pending application found for this user.")
        cfg = await self.config_store.get(guild_id)
        role_id = cfg.roles.role_for(tier)
        if role_id is None:
            raise RoleNotConfigured(tier)

        # grant first; a failed grant leaves the application pending
        try:
            await self.membership.add_roles(guild_id, user_id, [role_id], reason=f"Application approved by {actor_id}")
        except NotFound as exc:
            raise GrantFailed(f"Could not grant the {tier} role: {exc.user_message}") from exc

        record = await self.storage.run(
            approve_application_sync,
            application_id=pending.id,
            actor_id=actor_id,
            tier=tier,
            approved_at_utc=utc_iso(self.clock()),
        )
        if record is None:
            await self._revoke_stale_grant(pending.id, guild_id=guild_id, user_id=user_id, role_id=role_id)
            raise NotFound("This application was already resolved.")

        await self._dm(
            guild_id,
            user_id,
            Notice(
                title="Application Approved",
                description=f"Congratulations! Your staff application has been approved. You have been given the {tier} role.",
                color=EMBED_COLORS["success"],
            ),
            "application_approved_dm",
        )
        await self.audit.record(
            guild_id=guild_id,
            action="Application Approved",
            subject_user_id=user_id,
            actor_user_id=actor_id,
            details={"role": tier},
            color=EMBED_COLORS["success"],
        )
        return record

    async def deny_application(self, *, guild_id: int, user_id: int, reason: str, actor_id: int) -> ApplicationRecord:
        reason = _require_text(reason, "A denial reason")
        pending = await self.storage.run(fetch_pending_application_sync, guild_id=guild_id, user_id=user_id)
        if pending is None:
            raise NotFound("No pending application found for this user.")
        record = await self.storage.run(
            deny_application_sync,
            application_id=pending.id,
            actor_id=actor_id,
            reason=reason,
            denied_at_utc=utc_iso(self.clock()),
        )
        if record is None:
            raise NotFound("This application was already resolved.")

        await self._dm(
            guild_id,
            user_id,
            Notice(
                title="Application Denied",
                description="Unfortunately, your staff application has been denied.",
                color=EMBED_COLORS["danger"],
            ).add_field("Reason", reason),
            "application_denied_dm",
        )
        await self.audit.record(
            guild_id=guild_id,
            action="Application Denied",
            subject_user_id=user_id,
            actor_user_id=actor_id,
            reason=reason,
            color=EMBED_COLORS["danger"],
        )
        return record

    # -------------------------
    # leave of absence
    # -------------------------
    async def request_loa(self, *, guild_id: int, user_id: int, duration: str, reason: str) -> LoaRecord:
        cfg = await self.config_store.get(guild_id)
        if not cfg.features.loa_enabled:
            raise FeatureDisabled("LOA requests are currently disabled.")
        duration = _require_text(duration, "Duration")
        reason = _require_text(reason, "Reason")
        existing = await self.storage.run(fetch_pending_loa_sync, guild_id=guild_id, user_id=user_id)
        if existing is not None:
            raise DuplicatePending("You already have a pending LOA request.")
        record = await self.storage.run(
            insert_loa_sync,
            guild_id=guild_id,
            user_id=user_id,
            duration=duration,
            reason=reason,
            requested_at_utc=utc_iso(self.clock()),
        )
        await self.audit.record(
            guild_id=guild_id,
            action="LOA Requested",
            subject_user_id=user_id,
            actor_user_id=user_id,
            reason=reason,
            details={"duration": duration},
            color=EMBED_COLORS["loa"],
        )
        return record

    async def approve_loa(self, *, guild_id: int, user_id: int, actor_id: int) -> LoaRecord:
        pending = await self.storage.run(fetch_pending_loa_sync, guild_id=guild_id, user_id=user_id)
        if pending is None:
            raise NotFound("No pending LOA request found for this user.")
        record = await self.storage.run(
            approve_loa_sync,
            loa_id=pending.id,
            actor_id=actor_id,
            approved_at_utc=utc_iso(self.clock()),
        )
        if record is None:
            raise NotFound("This LOA request was already resolved.")

        expires = self.loa_policy.expires_at(record)
        notice = Notice(
            title="LOA Approved",
            description="Your leave of absence request has been approved.",
            color=EMBED_COLORS["success"],
        ).add_field("Duration", record.duration)
        if expires is not None:
            notice.add_field("Ends", f"<t:{int(expires.timestamp())}:D>")
        await self._dm(guild_id, user_id, notice, "loa_approved_dm")
        await self.audit.record(
            guild_id=guild_id,
            action="LOA Approved",
            subject_user_id=user_id,
            actor_user_id=actor_id,
            details={"duration": record.duration},
            color=EMBED_COLORS["success"],
        )
        return record

    async def deny_loa(self, *, guild_id: int, user_id: int, reason: str, actor_id: int) -> LoaRecord:
        reason = _require_text(reason, "A denial reason")
        pending = await self.storage.run(fetch_pending_loa_sync, guild_id=guild_id, user_id=user_id)
        if pending is None:
            raise NotFound("No pending LOA request found for this user.")
        record = await self.storage.run(
            deny_loa_sync,
            loa_id=pending.id,
            actor_id=actor_id,
            reason=reason,
            denied_at_utc=utc_iso(self.clock()),
        )
        if record is None:
            raise NotFound("This LOA request was already resolved.")

        await self._dm(
            guild_id,
            user_id,
            Notice(
                title="LOA Denied",
                description="Your leave of absence request has been denied.",
                color=EMBED_COLORS["danger"],
            ).add_field("Reason", reason),
            "loa_denied_dm",
        )
        await self.audit.record(
            guild_id=guild_id,
            action="LOA Denied",
            subject_user_id=user_id,
            actor_user_id=actor_id,
            reason=reason,
            color=EMBED_COLORS["danger"],
        )
        return record

    async def list_active_loas(self, guild_id: int) -> list[LoaRecord]:
        return await self.storage.run(list_loa_sync, status="approved", guild_id=guild_id)

    async def list_pending_loas(self, guild_id: int) -> list[LoaRecord]:
        return await self.storage.run(list_loa_sync, status="pending", guild_id=guild_id)

    async def sweep_loa_expirations(self, now: datetime | None = None) -> list[LoaRecord]:
        """Move every approved LOA past its expiry to `expired`. Safe to re-run."""
        now = parse_iso_utc(utc_iso(now or self.clock()))
        approved = await self.storage.run(list_loa_sync, status="approved")
        by_guild: dict[int, list[LoaRecord]] = {}
        for record in approved:
            by_guild.setdefault(record.guild_id, []).append(record)

        expired_all: list[LoaRecord] = []
        for guild_id, candidates in by_guild.items():
            try:
                records = [r for r in candidates if self.loa_policy.is_expired(r, now)]
                if not records:
                    continue
                expired_ids = set(
                    await self.storage.run(
                        expire_loa_sync,
                        loa_ids=[r.id for r in records],
                        expired_at_utc=utc_iso(now),
                    )
                )
                for record in records:
                    if record.id not in expired_ids:
                        continue
                    record.status = "expired"
                    record.expired_at_utc = utc_iso(now)
                    expired_all.append(record)
                    await self._dm(
                        guild_id,
                        record.user_id,
                        Notice(
                            title="LOA Ended",
                            description="Your leave of absence has ended. Welcome back!",
                            color=EMBED_COLORS["loa"],
                        ).add_field("Duration", record.duration),
                        "loa_expired_dm",
                    )
                    await self.audit.record(
                        guild_id=guild_id,
                        action="LOA Expired",
                        subject_user_id=record.user_id,
                        actor_user_id=None,
                        details={"duration": record.duration},
                        color=EMBED_COLORS["loa"],
                    )
            except Exception as e:
                print(f"[Sweep] loa expiry failed guild={guild_id}: {e!r}")
        if expired_all:
            print(f"[Sweep] expired {len(expired_all)} LOA record(s)")
        return expired_all
