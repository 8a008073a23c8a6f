from __future__ import annotations

from dataclasses import dataclass, field

from config.defaults import EMBED_COLORS
from config.defaults import STAFF_TIERS
from staff.clock import Clock, utc_iso, utc_now
from staff.errors import GrantFailed
from staff.errors import InvalidInput
from staff.errors import NotFound
from staff.errors import RoleNotConfigured
from staff.lifecycle import Membership
from staff.lifecycle_store import insert_termination_sync
from staff.models import TerminationRecord
from staff.notify import AuditTrail
from staff.notify import Notice
from staff.notify import NotificationSink
from staff.notify import log_outcome
from staff.permissions import held_staff_roles


@dataclass(slots=True)
class RoleChange:
    user_id: int
    granted: list[str] = field(default_factory=list)
    revoked: list[str] = field(default_factory=list)


class StaffRoleService:
    """Promote, demote and terminate act on live membership; terminations are also recorded."""

    def __init__(
        self,
        *,
        storage,
        config_store,
        membership: Membership,
        notifier: NotificationSink,
        audit: AuditTrail,
        clock: Clock | None = None,
    ) -> None:
        self.storage = storage
        self.config_store = config_store
        self.membership = membership
        self.notifier = notifier
        self.audit = audit
        self.clock = clock or utc_now

    async def _mutate(self, action, guild_id: int, user_id: int, role_ids: list[int], *, reason: str) -> None:
        if not role_ids:
            return
        try:
            await action(guild_id, user_id, role_ids, reason=reason)
        except NotFound as exc:
            raise GrantFailed(f"Role update failed: {exc.user_message}") from exc

    async def _undo_grant(self, guild_id: int, user_id: int, role_id: int, *, reason: str) -> None:
        try:
            await self.membership.remove_roles(guild_id, user_id, [role_id], reason=reason)
        except (GrantFailed, NotFound) as e:
            print(f"[Roles] rollback failed guild={guild_id} user={user_id} role={role_id}: {e!r}")

    async def promote(self, *, guild_id: int, user_id: int, target: str, actor_id: int) -> RoleChange:
        target = (target or "").strip().lower()
        if target not in STAFF_TIERS:
            raise InvalidInput(f"Promotion target must be one of: {', '.join(STAFF_TIERS)}.")
        cfg = await self.config_store.get(guild_id)
        target_role = cfg.roles.role_for(target)
        if target_role is None:
            raise RoleNotConfigured(target)

        current = await self.membership.role_ids(guild_id, user_id)
        lower = STAFF_TIERS[: STAFF_TIERS.index(target)]
        to_revoke = held_staff_roles(current, cfg, lower)
        # a lower tier sharing the target's role id must not be stripped
        to_revoke = {t: r for t, r in to_revoke.items() if r != target_role}

        reason = f"Promoted to {target} by {actor_id}"
        # grant before revoking; a failed promote leaves roles as they were
        newly_granted = target_role not in current
        if newly_granted:
            await self._mutate(self.membership.add_roles, guild_id, user_id, [target_role], reason=reason)
        try:
            await self._mutate(self.membership.remove_roles, guild_id, user_id, list(to_revoke.values()), reason=reason)
        except GrantFailed:
            if newly_granted:
                await self._undo_grant(guild_id, user_id, target_role, reason=f"Promotion to {target} rolled back")
            raise

        change = RoleChange(user_id=user_id, granted=[target], revoked=sorted(to_revoke))
        await self.audit.record(
            guild_id=guild_id,
            action="Staff Promoted",
            subject_user_id=user_id,
            actor_user_id=actor_id,
            details={"new_role": target, "roles_removed": ", ".join(change.revoked) or "none"},
            color=EMBED_COLORS["success"],
        )
        return change

    async def demote(self, *, guild_id: int, user_id: int, actor_id: int) -> RoleChange:
        cfg = await self.config_store.get(guild_id)
        current = await self.membership.role_ids(guild_id, user_id)
        to_revoke = held_staff_roles(current, cfg, ("admin", "hr"))
        reason = f"Demoted by {actor_id}"

        change = RoleChange(user_id=user_id, revoked=sorted(to_revoke))
        if to_revoke:
            await self._mutate(self.membership.remove_roles, guild_id, user_id, list(to_revoke.values()), reason=reason)
            staff_role = cfg.roles.staff
            if staff_role is not None and staff_role not in current:
                await self._mutate(self.membership.add_roles, guild_id, user_id, [staff_role], reason=reason)
                change.granted.append("staff")

        await self.audit.record(
            guild_id=guild_id,
            action="Staff Demoted",
            subject_user_id=user_id,
            actor_user_id=actor_id,
            details={"roles_removed": len(change.revoked)},
            color=EMBED_COLORS["warning"],
        )
        return change

    async def terminate(self, *, guild_id: int, user_id: int, reason: str, actor_id: int) -> TerminationRecord:
        reason = (reason or "").strip()
        if not reason:
            raise InvalidInput("A termination reason is required.")
        cfg = await self.config_store.get(guild_id)
        current = await self.membership.role_ids(guild_id, user_id)
        to_revoke = held_staff_roles(current, cfg, STAFF_TIERS)
        role_ids = sorted(set(to_revoke.values()))

        await self._mutate(
            self.membership.remove_roles,
            guild_id,
            user_id,
            role_ids,
            reason=f"Terminated by {actor_id}: {reason}"[:500],
        )
        now = self.clock()
        record = await self.storage.run(
            insert_termination_sync,
            guild_id=guild_id,
            user_id=user_id,
            reason=reason,
            terminated_by=actor_id,
            terminated_at_utc=utc_iso(now),
            roles_removed=role_ids,
        )

        outcome = await self.notifier.direct(
            user_id,
            Notice(
                title="Staff Termination Notice",
                description="Your staff position has been terminated.",
                color=EMBED_COLORS["danger"],
            )
            .add_field("Reason", reason)
            .add_field("Date", f"<t:{int(now.timestamp())}:f>"),
        )
        log_outcome(outcome, what="termination_dm", guild_id=guild_id, target_id=user_id)
        await self.audit.record(
            guild_id=guild_id,
            action="Staff Terminated",
            subject_user_id=user_id,
            actor_user_id=actor_id,
            reason=reason,
            details={"roles_removed": len(role_ids)},
            color=EMBED_COLORS["danger"],
        )
        return record
