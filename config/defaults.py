from __future__ import annotations

# Tiers in ascending rank; authorization scans upward from the required tier.
TIER_ORDER = ("staff", "hr", "admin", "owner")
STAFF_TIERS = ("staff", "hr", "admin")
APPLICATION_TIERS = ("staff", "hr")

DEFAULT_PREFIX = "-"

DEFAULT_GUILD_CONFIG = {
    "prefix": DEFAULT_PREFIX,
    "roles": {
        "staff": None,
        "hr": None,
        "admin": None,
        "owner": None,
    },
    "channels": {
        "applications": None,
        "staff_log": None,
        "announcements": None,
        "feedback": None,
    },
    "features": {
        "applications_enabled": True,
        "loa_enabled": True,
        "reminders_enabled": True,
    },
}

DEFAULT_TIMEZONE = "UTC"
DEFAULT_SCHEDULER_TICK_SECONDS = 30
DEFAULT_SWEEP_GRACE_MINUTES = 120

# LOA records without a parseable duration expire this many days after approval.
DEFAULT_LOA_RETENTION_DAYS = 30

DAILY_REMINDER_TIME_LOCAL = "09:00"
WEEKLY_DIGEST_TIME_LOCAL = "18:00"
WEEKLY_DIGEST_WEEKDAY = 6  # Sunday (datetime.weekday)
LOA_EXPIRY_TIME_LOCAL = "00:00"

INFRACTIONS_PAGE_SIZE = 10
REPORT_ACTIVITY_LIMIT = 10
REPORT_PERIODS = ("today", "week", "month")

EMBED_COLORS = {
    "info": 0x3498DB,
    "success": 0x00FF00,
    "danger": 0xFF0000,
    "warning": 0xFF9900,
    "loa": 0xFFAA00,
    "report": 0x2ECC71,
    "feedback": 0x9B59B6,
    "oncall": 0xE74C3C,
}
