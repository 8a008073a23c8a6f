from __future__ import annotations


class StaffError(Exception):
    """Base for failures the invoking user should see (rendered as an ephemeral reply)."""

    kind = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.user_message = message


class Unauthorized(StaffError):
    kind = "unauthorized"

    def __init__(self, tier: str, message: str | None = None) -> None:
        self.tier = tier
        super().__init__(message or f"You need {tier} permissions to use this command.")


class DuplicatePending(StaffError):
    kind = "duplicate_pending"


class NotFound(StaffError):
    kind = "not_found"


class AlreadyExists(StaffError):
    kind = "already_exists"


class RoleNotConfigured(StaffError):
    kind = "role_not_configured"

    def __init__(self, tier: str) -> None:
        self.tier = tier
        super().__init__(f"The {tier} role is not configured. Set it with `/config set roles.{tier} <role>`.")


class GrantFailed(StaffError):
    kind = "grant_failed"


class FeatureDisabled(StaffError):
    kind = "feature_disabled"


class InvalidInput(StaffError, ValueError):
    kind = "invalid_input"
