"""Centralized application configuration."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional
import os
import sys


def get_default_data_dir(
    app_name: str,
    *,
    platform: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> Path:
    """Return an OS-specific user data directory for ``app_name``.

    ``DAYLINE_DATA_DIR`` in ``env`` wins over the platform defaults.
    """

    platform_id = (platform or sys.platform).lower()
    environ = dict(os.environ if env is None else env)
    override = environ.get("DAYLINE_DATA_DIR")
    if override:
        return Path(override).expanduser()

    home_dir = Path(home or Path.home())
    sanitized = app_name.strip() or "app"
    sanitized = sanitized.replace("/", "-").replace("\\", "-")

    if platform_id.startswith("win"):
        base = Path(environ.get("APPDATA") or home_dir / "AppData" / "Roaming")
    elif platform_id == "darwin":
        base = Path(environ.get("APPDATA") or home_dir / "Library" / "Application Support")
    else:
        base = Path(environ.get("XDG_DATA_HOME") or home_dir / ".local" / "share")

    return (base.expanduser() / sanitized)


APP_NAME = "Dayline"


DATA_DIR = get_default_data_dir(APP_NAME)
LOG_DIR = DATA_DIR / "logs"

for _dir in (DATA_DIR, LOG_DIR):
    _dir.mkdir(parents=True, exist_ok=True)


DB_PATH = DATA_DIR / "dayline.db"
SESSION_PATH = DATA_DIR / "session.json"
SYNC_LOG_PATH = LOG_DIR / "sync.log"


@dataclass(frozen=True)
class RemoteTables:
    tasks: str = "tasks"
    sessions: str = "sessions"
    sleep_entries: str = "sleep_entries"
    templates: str = "repeating_tasks"


@dataclass(frozen=True)
class RemoteSettings:
    url: str = field(default_factory=lambda: os.environ.get("DAYLINE_SUPABASE_URL", ""))
    anon_key: str = field(default_factory=lambda: os.environ.get("DAYLINE_SUPABASE_ANON_KEY", ""))
    timeout_sec: float = 10.0
    probe_timeout_sec: float = 3.0
    tables: RemoteTables = RemoteTables()

    @property
    def configured(self) -> bool:
        return bool(self.url and self.anon_key)


REMOTE = RemoteSettings()


@dataclass(frozen=True)
class SyncSettings:
    enabled: bool = True
    history_limit: int = 365
    default_min_completion: int = 60
    fighter_threshold: int = 100
    error_display_limit: int = 5
    day_timezone: str = "Asia/Kolkata"
    local_owner: str = "local"


SYNC = SyncSettings()


__all__ = [
    "APP_NAME",
    "DATA_DIR",
    "LOG_DIR",
    "DB_PATH",
    "SESSION_PATH",
    "SYNC_LOG_PATH",
    "REMOTE",
    "SYNC",
    "RemoteSettings",
    "RemoteTables",
    "SyncSettings",
    "get_default_data_dir",
]
