from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass(slots=True)
class SweepTemplates:
    version: str = "sweep_templates_v1"
    daily_reminder_title: str = "Daily Staff Reminder"
    daily_reminder_lines: list[str] = field(default_factory=list)
    weekly_digest_title: str = "Weekly Activity Report"
    weekly_digest_description: str = "Staff activity summary for the past week"

    def daily_reminder_text(self) -> str:
        lines = ["Good morning staff! Don't forget to:", ""]
        lines.extend(f"- {item}" for item in self.daily_reminder_lines)
        return "\n".join(lines)


def default_sweep_templates() -> SweepTemplates:
    return SweepTemplates(
        daily_reminder_lines=[
            "Log your daily activity with `/logactivity`",
            "Check for any pending tasks",
            "Review staff channels for updates",
        ],
    )


def default_templates_path() -> str:
    here = Path(__file__).resolve().parents[1]
    return os.path.join(here, "config", "sweep_templates.yml")


def _as_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    out: list[str] = []
    for item in value:
        text = str(item or "").strip()
        if text:
            out.append(text)
    return out


def _as_text(value: Any, fallback: str) -> str:
    text = str(value or "").strip()
    return text or fallback


def load_sweep_templates(path: str | Path | None) -> tuple[SweepTemplates, str | None]:
    """
    Returns (templates, warning_message). warning_message is None on clean load.
    """
    defaults = default_sweep_templates()
    if not path:
        return (defaults, "Sweep templates path missing; using built-in defaults.")

    p = Path(path)
    if not p.exists():
        return (defaults, f"Sweep templates file not found at {p}; using built-in defaults.")

    try:
        payload = yaml.safe_load(p.read_text(encoding="utf-8"))
    except Exception as exc:
        return (defaults, f"Failed to read sweep templates from {p}: {exc}; using built-in defaults.")

    if not isinstance(payload, dict):
        return (defaults, f"Invalid sweep templates format in {p}; using built-in defaults.")

    daily = payload.get("daily_reminder") if isinstance(payload.get("daily_reminder"), dict) else {}
    weekly = payload.get("weekly_digest") if isinstance(payload.get("weekly_digest"), dict) else {}
    templates = SweepTemplates(
        version=_as_text(payload.get("version"), defaults.version),
        daily_reminder_title=_as_text(daily.get("title"), defaults.daily_reminder_title),
        daily_reminder_lines=_as_list(daily.get("lines")) or defaults.daily_reminder_lines,
        weekly_digest_title=_as_text(weekly.get("title"), defaults.weekly_digest_title),
        weekly_digest_description=_as_text(weekly.get("description"), defaults.weekly_digest_description),
    )
    return (templates, None)
