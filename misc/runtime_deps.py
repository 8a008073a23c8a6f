from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable


@dataclass(frozen=True)
class RuntimeBootDeps:
    # persistent components (review buttons) re-attached on every start
    dynamic_items: tuple[type, ...] = field(default_factory=tuple)
    sync_commands: bool = True
    sweeps_enabled: bool = True
    scheduler_loop_func: Callable[[], Any] | None = None
