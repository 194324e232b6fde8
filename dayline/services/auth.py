"""Persisted authentication session.

Signing in happens elsewhere; this module only keeps the resulting user id
and access token between runs.
"""
from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from dayline.core.settings import SESSION_PATH


@dataclass(frozen=True)
class AuthSession:
    user_id: str
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[str] = None


def _load_raw(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


class SessionStore:
    def __init__(self, path: Path | str | None = None) -> None:
        self.path = Path(path or SESSION_PATH)

    def load(self) -> Optional[AuthSession]:
        data = _load_raw(self.path)
        user_id = data.get("user_id")
        token = data.get("access_token")
        if not user_id or not token:
            return None
        return AuthSession(
            user_id=str(user_id),
            access_token=str(token),
            refresh_token=data.get("refresh_token"),
            expires_at=data.get("expires_at"),
        )

    def save(self, session: AuthSession) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(asdict(session), ensure_ascii=False, indent=2, sort_keys=True)
        tmp = self.path.with_suffix(".tmp")
        try:
            tmp.write_text(payload, encoding="utf-8")
            tmp.replace(self.path)
        finally:
            if tmp.exists():
                tmp.unlink()

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()


__all__ = ["AuthSession", "SessionStore"]
