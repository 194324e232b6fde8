"""Translation between local SQLModel rows and remote table rows.

Every function here is pure: no I/O, and every remote column that may be
missing or ``null`` falls back to an explicit local default.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from dayline.core.settings import REMOTE
from dayline.models import EntityKind, SleepEntry, SyncState, Task, WorkSession
from dayline.models.remote import RemoteSession, RemoteSleepEntry, RemoteTask
from dayline.models.task import TASK_STATUSES
from dayline.storage.local_store import natural_key
from dayline.utils.datetime_utils import parse_rfc3339, to_rfc3339_utc, utc_now


def _clock(value: Optional[str]) -> Optional[str]:
    """``HH:MM`` from ``HH:MM`` or ``HH:MM:SS``."""
    if not value:
        return None
    return str(value).strip()[:5]


def _day(value: str) -> str:
    return str(value).strip()[:10]


def _timestamp(value: Optional[str]):
    return parse_rfc3339(value) or utc_now()


# ----- tasks -----
def task_to_remote(task: Task, user_id: str) -> Dict[str, Any]:
    row = RemoteTask(
        user_id=user_id,
        date=task.date,
        name=task.name,
        status=task.status,
        priority=task.priority,
        target_time=task.target_time,
        description=task.description,
        completed_description=task.completed_description,
        progress=task.progress,
        is_repeating=task.is_repeating,
        is_deleted=task.is_deleted,
        created_at=to_rfc3339_utc(task.created_at),
        updated_at=to_rfc3339_utc(task.updated_at),
        template_id=task.template_id,
        achiever_strike=task.achiever_streak,
        fighter_strike=task.fighter_streak,
    )
    return row.model_dump(exclude={"id"})


def task_from_remote(data: Dict[str, Any]) -> Task:
    row = RemoteTask.model_validate(data)
    status = row.status if row.status in TASK_STATUSES else "lagging"
    return Task(
        date=_day(row.date),
        name=row.name,
        status=status,
        priority=row.priority,
        target_time=row.target_time or 0,
        description=row.description or "",
        completed_description=row.completed_description or "",
        progress=row.progress or 0,
        is_repeating=bool(row.is_repeating),
        template_id=row.template_id,
        achiever_streak=row.achiever_strike or 0,
        fighter_streak=row.fighter_strike or 0,
        created_at=_timestamp(row.created_at),
        updated_at=_timestamp(row.updated_at or row.created_at),
        sync_state=SyncState.SYNCED.value,
        owner_id=row.user_id,
        is_deleted=bool(row.is_deleted),
    )


# ----- sessions -----
def session_to_remote(session: WorkSession, user_id: str) -> Dict[str, Any]:
    row = RemoteSession(
        user_id=user_id,
        date=session.date,
        start_time=session.start_time,
        end_time=session.end_time,
        task_id=None,  # local ids mean nothing remotely
        custom_name=session.custom_name,
        category=session.category,
        category_type=session.category_type,
        description=session.description,
        is_deleted=session.is_deleted,
        created_at=to_rfc3339_utc(session.created_at),
    )
    return row.model_dump(exclude={"id"})


def session_from_remote(data: Dict[str, Any]) -> WorkSession:
    row = RemoteSession.model_validate(data)
    category_type = row.category_type if row.category_type in ("work", "life") else None
    return WorkSession(
        date=_day(row.date),
        start_time=_clock(row.start_time) or "00:00",
        end_time=_clock(row.end_time) or "00:00",
        category=row.category or "",
        category_type=category_type,
        task_id=None,
        custom_name=row.custom_name,
        description=row.description or "",
        created_at=_timestamp(row.created_at),
        sync_state=SyncState.SYNCED.value,
        owner_id=row.user_id,
        is_deleted=bool(row.is_deleted),
    )


# ----- sleep -----
def sleep_to_remote(entry: SleepEntry, user_id: str) -> Dict[str, Any]:
    row = RemoteSleepEntry(
        user_id=user_id,
        date=entry.date,
        wake_up_time=entry.wake_up_time,
        bed_time=entry.bed_time,
        created_at=to_rfc3339_utc(entry.created_at),
    )
    return row.model_dump(exclude={"id"})


def sleep_from_remote(data: Dict[str, Any]) -> SleepEntry:
    row = RemoteSleepEntry.model_validate(data)
    return SleepEntry(
        date=_day(row.date),
        wake_up_time=_clock(row.wake_up_time),
        bed_time=_clock(row.bed_time),
        created_at=_timestamp(row.created_at),
        sync_state=SyncState.SYNCED.value,
        owner_id=row.user_id,
    )


# ----- registry -----
@dataclass(frozen=True)
class EntitySpec:
    kind: EntityKind
    table: str
    on_conflict: Tuple[str, ...]
    to_remote: Callable[[Any, str], Dict[str, Any]]
    from_remote: Callable[[Dict[str, Any]], Any]
    describe: Callable[[Any], str]

    def remote_key(self, data: Dict[str, Any]) -> Tuple:
        return natural_key(self.kind, self.from_remote(data))


ENTITY_SPECS: Dict[EntityKind, EntitySpec] = {
    EntityKind.TASK: EntitySpec(
        kind=EntityKind.TASK,
        table=REMOTE.tables.tasks,
        on_conflict=("user_id", "date", "name"),
        to_remote=task_to_remote,
        from_remote=task_from_remote,
        describe=lambda task: f'Task "{task.name}"',
    ),
    EntityKind.SESSION: EntitySpec(
        kind=EntityKind.SESSION,
        table=REMOTE.tables.sessions,
        on_conflict=("user_id", "date", "start_time", "end_time"),
        to_remote=session_to_remote,
        from_remote=session_from_remote,
        describe=lambda session: f"Session at {session.start_time}",
    ),
    EntityKind.SLEEP: EntitySpec(
        kind=EntityKind.SLEEP,
        table=REMOTE.tables.sleep_entries,
        on_conflict=("user_id", "date"),
        to_remote=sleep_to_remote,
        from_remote=sleep_from_remote,
        describe=lambda entry: f"Sleep entry {entry.date}",
    ),
}

SYNC_ORDER = (EntityKind.TASK, EntityKind.SESSION, EntityKind.SLEEP)


__all__ = [
    "ENTITY_SPECS",
    "EntitySpec",
    "SYNC_ORDER",
    "session_from_remote",
    "session_to_remote",
    "sleep_from_remote",
    "sleep_to_remote",
    "task_from_remote",
    "task_to_remote",
]
