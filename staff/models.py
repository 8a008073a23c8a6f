from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class RolesConfig:
    staff: int | None = None
    hr: int | None = None
    admin: int | None = None
    owner: int | None = None

    def role_for(self, tier: str) -> int | None:
        return getattr(self, tier, None)


@dataclass(slots=True)
class ChannelsConfig:
    applications: int | None = None
    staff_log: int | None = None
    announcements: int | None = None
    feedback: int | None = None


@dataclass(slots=True)
class FeaturesConfig:
    applications_enabled: bool = True
    loa_enabled: bool = True
    reminders_enabled: bool = True


@dataclass(slots=True)
class GuildConfig:
    guild_id: int
    prefix: str = "-"
    roles: RolesConfig = field(default_factory=RolesConfig)
    channels: ChannelsConfig = field(default_factory=ChannelsConfig)
    features: FeaturesConfig = field(default_factory=FeaturesConfig)

    @classmethod
    def from_dict(cls, guild_id: int, data: dict[str, Any]) -> "GuildConfig":
        roles = data.get("roles") or {}
        channels = data.get("channels") or {}
        features = data.get("features") or {}
        return cls(
            guild_id=int(guild_id),
            prefix=str(data.get("prefix") or "-"),
            roles=RolesConfig(**{k: _opt_int(roles.get(k)) for k in ("staff", "hr", "admin", "owner")}),
            channels=ChannelsConfig(
                **{k: _opt_int(channels.get(k)) for k in ("applications", "staff_log", "announcements", "feedback")}
            ),
            features=FeaturesConfig(
                **{
                    k: bool(features.get(k, True))
                    for k in ("applications_enabled", "loa_enabled", "reminders_enabled")
                }
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "prefix": self.prefix,
            "roles": {
                "staff": self.roles.staff,
                "hr": self.roles.hr,
                "admin": self.roles.admin,
                "owner": self.roles.owner,
            },
            "channels": {
                "applications": self.channels.applications,
                "staff_log": self.channels.staff_log,
                "announcements": self.channels.announcements,
                "feedback": self.channels.feedback,
            },
            "features": {
                "applications_enabled": self.features.applications_enabled,
                "loa_enabled": self.features.loa_enabled,
                "reminders_enabled": self.features.reminders_enabled,
            },
        }


def _opt_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


@dataclass(slots=True)
class ApplicationForm:
    name: str
    age: str
    experience: str
    motivation: str
    availability: str


@dataclass(slots=True)
class ApplicationRecord:
    id: int
    guild_id: int
    user_id: int
    name: str
    age: str
    experience: str
    motivation: str
    availability: str
    submitted_at_utc: str
    status: str = "pending"
    approved_by: int | None = None
    approved_at_utc: str | None = None
    approved_tier: str | None = None
    denied_by: int | None = None
    denied_at_utc: str | None = None
    denial_reason: str | None = None


@dataclass(slots=True)
class WarningRecord:
    id: int
    guild_id: int
    user_id: int
    reason: str
    proof: str | None
    issued_by: int
    issued_at_utc: str


@dataclass(slots=True)
class TerminationRecord:
    id: int
    guild_id: int
    user_id: int
    reason: str
    terminated_by: int
    terminated_at_utc: str
    roles_removed: list[int] = field(default_factory=list)


@dataclass(slots=True)
class LoaRecord:
    id: int
    guild_id: int
    user_id: int
    duration: str
    reason: str
    requested_at_utc: str
    status: str = "pending"
    approved_by: int | None = None
    approved_at_utc: str | None = None
    denied_by: int | None = None
    denied_at_utc: str | None = None
    denial_reason: str | None = None
    expired_at_utc: str | None = None


@dataclass(slots=True)
class TagRecord:
    id: int
    guild_id: int
    name: str
    content: str
    created_by: int
    created_at_utc: str


@dataclass(slots=True)
class ActivityLogRecord:
    id: int
    guild_id: int
    user_id: int
    activity: str
    hours: int
    logged_at_utc: str


@dataclass(slots=True)
class OnCallRecord:
    guild_id: int
    user_id: int
    active: bool
    set_at_utc: str
    unset_at_utc: str | None = None


@dataclass(slots=True)
class FeedbackRecord:
    id: int
    guild_id: int
    message: str
    anonymous: bool
    submitted_by: int | None
    submitted_at_utc: str


@dataclass(slots=True)
class AuditEntry:
    id: int
    guild_id: int
    action: str
    subject_user_id: int | None
    actor_user_id: int | None
    reason: str | None
    payload: dict[str, Any]
    created_at_utc: str
