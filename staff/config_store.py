from __future__ import annotations

import copy
import json
import re
import sqlite3
from datetime import datetime, timezone
from typing import Any

from config.defaults import DEFAULT_GUILD_CONFIG
from staff.errors import InvalidInput
from staff.models import GuildConfig


# path -> value kind; anything outside this schema is rejected
CONFIG_SCHEMA: dict[str, str] = {
    "prefix": "prefix",
    "roles.staff": "role",
    "roles.hr": "role",
    "roles.admin": "role",
    "roles.owner": "role",
    "channels.applications": "channel",
    "channels.staff_log": "channel",
    "channels.announcements": "channel",
    "channels.feedback": "channel",
    "features.applications_enabled": "bool",
    "features.loa_enabled": "bool",
    "features.reminders_enabled": "bool",
}

_CLEAR_TOKENS = {"none", "null", "unset", "-"}
_TRUE_TOKENS = {"true", "yes", "on", "1", "enable", "enabled"}
_FALSE_TOKENS = {"false", "no", "off", "0", "disable", "disabled"}
_ID_RE = re.compile(r"^(?:<(?:@&|#)(\d+)>|(\d+))$")


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _snake(segment: str) -> str:
    return re.sub(r"(?<!^)([A-Z])", r"_\1", segment.strip()).lower()


def normalize_config_key(key: str) -> str:
    """`channels.staffLog` -> `channels.staff_log`; raises InvalidInput for unknown keys."""
    parts = [_snake(p) for p in str(key or "").strip().split(".") if p.strip()]
    path = ".".join(parts)
    if path not in CONFIG_SCHEMA:
        known = ", ".join(sorted(CONFIG_SCHEMA))
        raise InvalidInput(f"Unknown config key `{key}`. Known keys: {known}")
    return path


def parse_config_value(path: str, raw: Any) -> Any:
    kind = CONFIG_SCHEMA[path]
    if kind == "bool" and isinstance(raw, bool):
        return raw
    text = str(raw if raw is not None else "").strip()
    if not text:
        raise InvalidInput(f"A value is required for `{path}`.")

    if kind == "prefix":
        if len(text) > 5 or any(ch.isspace() for ch in text):
            raise InvalidInput("Prefix must be 1-5 characters without spaces.")
        return text

    if kind == "bool":
        low = text.lower()
        if low in _TRUE_TOKENS:
            return True
        if low in _FALSE_TOKENS:
            return False
        raise InvalidInput(f"`{path}` expects true/false, got `{text}`.")

    if text.lower() in _CLEAR_TOKENS:
        return None
    m = _ID_RE.match(text)
    if not m or not int(m.group(1) or m.group(2)):
        raise InvalidInput(f"`{path}` expects a {kind} mention or id, got `{text}`.")
    return int(m.group(1) or m.group(2))


def build_path_update(path: str, value: Any) -> dict[str, Any]:
    update: dict[str, Any] = {}
    cursor = update
    parts = path.split(".")
    for part in parts[:-1]:
        cursor[part] = {}
        cursor = cursor[part]
    cursor[parts[-1]] = value
    return update


def deep_merge(base: dict[str, Any], update: dict[str, Any]) -> dict[str, Any]:
    out = copy.deepcopy(base)
    for key, value in (update or {}).items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = deep_merge(out[key], value)
        else:
            out[key] = copy.deepcopy(value)
    return out


def _validate_partial(partial: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    clean: dict[str, Any] = {}
    for key, value in (partial or {}).items():
        seg = _snake(str(key))
        path = f"{prefix}.{seg}" if prefix else seg
        if isinstance(value, dict):
            clean[seg] = _validate_partial(value, path)
            continue
        path = normalize_config_key(path)
        if value is None and CONFIG_SCHEMA[path] in {"role", "channel"}:
            clean[seg] = None
        else:
            clean[seg] = parse_config_value(path, value)
    return clean


def _load_stored_sync(conn: sqlite3.Connection, guild_id: int) -> dict[str, Any] | None:
    cur = conn.cursor()
    cur.execute("SELECT config_json FROM guild_configs WHERE guild_id = ? LIMIT 1", (int(guild_id),))
    row = cur.fetchone()
    if row is None:
        return None
    try:
        data = json.loads(row[0] or "{}")
    except json.JSONDecodeError:
        print(f"[Config] guild={guild_id} stored config is not valid JSON; using defaults")
        return {}
    return data if isinstance(data, dict) else {}


def fetch_guild_config_sync(conn: sqlite3.Connection, guild_id: int) -> GuildConfig:
    stored = _load_stored_sync(conn, guild_id) or {}
    return GuildConfig.from_dict(int(guild_id), deep_merge(DEFAULT_GUILD_CONFIG, stored))


def upsert_guild_config_sync(conn: sqlite3.Connection, guild_id: int, update: dict[str, Any]) -> GuildConfig:
    stored = _load_stored_sync(conn, guild_id) or {}
    merged = deep_merge(stored, update)
    now = _utc_now_iso()
    conn.execute(
        """
        INSERT INTO guild_configs (guild_id, config_json, created_at_utc, updated_at_utc)
        VALUES (?, ?, ?, ?)
        ON CONFLICT(guild_id) DO UPDATE SET
            config_json = excluded.config_json,
            updated_at_utc = excluded.updated_at_utc
        """,
        (int(guild_id), json.dumps(merged, ensure_ascii=False, sort_keys=True), now, now),
    )
    conn.commit()
    return GuildConfig.from_dict(int(guild_id), deep_merge(DEFAULT_GUILD_CONFIG, merged))


def list_configured_guild_ids_sync(conn: sqlite3.Connection) -> list[int]:
    cur = conn.cursor()
    cur.execute("SELECT guild_id FROM guild_configs ORDER BY guild_id")
    return [int(r[0]) for r in cur.fetchall()]


class ConfigStore:
    def __init__(self, storage) -> None:
        self.storage = storage

    async def get(self, guild_id: int) -> GuildConfig:
        return await self.storage.run(fetch_guild_config_sync, int(guild_id))

    async def set(self, guild_id: int, partial: dict[str, Any]) -> GuildConfig:
        clean = _validate_partial(partial)
        return await self.storage.run(upsert_guild_config_sync, int(guild_id), clean)

    async def set_path(self, guild_id: int, key: str, raw_value: Any) -> tuple[str, GuildConfig]:
        path = normalize_config_key(key)
        value = parse_config_value(path, raw_value)
        cfg = await self.storage.run(upsert_guild_config_sync, int(guild_id), build_path_update(path, value))
        return path, cfg

    async def all_guild_ids(self) -> list[int]:
        return await self.storage.run(list_configured_guild_ids_sync)
