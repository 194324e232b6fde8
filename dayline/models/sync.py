"""Sync state shared by every syncable entity, plus per-kind sync metadata."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel


class SyncState(str, Enum):
    PENDING = "pending"
    SYNCED = "synced"
    ERROR = "error"


# States that Push uploads and Prune must never delete.
UNCONFIRMED_STATES = (SyncState.PENDING.value, SyncState.ERROR.value)


class EntityKind(str, Enum):
    TASK = "task"
    SESSION = "session"
    SLEEP = "sleep"


class SyncMeta(SQLModel, table=True):
    """Last successful phase timestamps for one entity kind."""

    __tablename__ = "sync_meta"

    kind: str = Field(primary_key=True)
    last_push_at: Optional[datetime] = None
    last_pull_at: Optional[datetime] = None
    last_prune_at: Optional[datetime] = None
    last_error: Optional[str] = None


__all__ = ["EntityKind", "SyncMeta", "SyncState", "UNCONFIRMED_STATES"]
