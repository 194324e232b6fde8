"""Local writes for activity sessions and sleep entries."""
from __future__ import annotations

from typing import List, Optional

from sqlmodel import select
from sqlalchemy import and_

from dayline.models import SleepEntry, SyncState, WorkSession
from dayline.models.session import CATEGORY_TYPES
from dayline.storage.db import get_session
from dayline.utils.datetime_utils import day_key, minutes_of


def _clock(value: str) -> str:
    """Validate ``HH:MM`` and return it zero-padded."""
    try:
        total = minutes_of(value)
    except (AttributeError, ValueError) as exc:
        raise ValueError(f"Invalid time: {value!r}") from exc
    if not 0 <= total < 24 * 60:
        raise ValueError(f"Invalid time: {value!r}")
    return f"{total // 60:02d}:{total % 60:02d}"


class SessionService:
    def __init__(self, session_factory=get_session) -> None:
        self._session_factory = session_factory

    def add(
        self,
        date: str,
        start_time: str,
        end_time: str,
        *,
        category: str = "",
        category_type: Optional[str] = None,
        task_id: Optional[int] = None,
        custom_name: Optional[str] = None,
        description: str = "",
    ) -> WorkSession:
        """Log a session. A slot (date, start, end) holds one live session at most."""

        date = day_key(date)
        start_time, end_time = _clock(start_time), _clock(end_time)
        if category_type is not None and category_type not in CATEGORY_TYPES:
            raise ValueError(f"Unsupported category type: {category_type}")
        with self._session_factory() as s:
            stmt = select(WorkSession).where(
                and_(
                    WorkSession.date == date,
                    WorkSession.start_time == start_time,
                    WorkSession.end_time == end_time,
                )
            )
            existing = s.exec(stmt).first()
            if existing is not None and not existing.is_deleted:
                raise ValueError(f"A session already occupies {date} {start_time}-{end_time}")
            record = existing or WorkSession(date=date, start_time=start_time, end_time=end_time)
            record.category = category
            record.category_type = category_type
            record.task_id = task_id
            record.custom_name = custom_name
            record.description = description
            record.is_deleted = False
            record.sync_state = SyncState.PENDING.value
            s.add(record)
            s.commit()
            s.refresh(record)
            return record

    def get(self, session_id: int) -> Optional[WorkSession]:
        with self._session_factory() as s:
            return s.get(WorkSession, session_id)

    def list_for_date(self, date: str, *, include_deleted: bool = False) -> List[WorkSession]:
        with self._session_factory() as s:
            stmt = select(WorkSession).where(WorkSession.date == day_key(date))
            if not include_deleted:
                stmt = stmt.where(WorkSession.is_deleted == False)  # noqa: E712
            return list(s.exec(stmt.order_by(WorkSession.start_time.asc())))

    def update(
        self,
        session_id: int,
        *,
        category: Optional[str] = None,
        category_type: Optional[str] = None,
        custom_name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Optional[WorkSession]:
        if category_type is not None and category_type not in CATEGORY_TYPES:
            raise ValueError(f"Unsupported category type: {category_type}")
        with self._session_factory() as s:
            record = s.get(WorkSession, session_id)
            if not record:
                return None
            if category is not None:
                record.category = category
            if category_type is not None:
                record.category_type = category_type
            if custom_name is not None:
                record.custom_name = custom_name
            if description is not None:
                record.description = description
            record.sync_state = SyncState.PENDING.value
            s.add(record)
            s.commit()
            s.refresh(record)
            return record

    def soft_delete(self, session_id: int) -> bool:
        with self._session_factory() as s:
            record = s.get(WorkSession, session_id)
            if not record:
                return False
            record.is_deleted = True
            record.sync_state = SyncState.PENDING.value
            s.add(record)
            s.commit()
            return True


class SleepService:
    def __init__(self, session_factory=get_session) -> None:
        self._session_factory = session_factory

    def record(
        self,
        date: str,
        *,
        wake_up_time: Optional[str] = None,
        bed_time: Optional[str] = None,
    ) -> SleepEntry:
        """Create or replace the sleep entry of ``date``."""

        date = day_key(date)
        with self._session_factory() as s:
            entry = s.exec(select(SleepEntry).where(SleepEntry.date == date)).first()
            if entry is None:
                entry = SleepEntry(date=date)
            entry.wake_up_time = _clock(wake_up_time) if wake_up_time else None
            entry.bed_time = _clock(bed_time) if bed_time else None
            entry.sync_state = SyncState.PENDING.value
            s.add(entry)
            s.commit()
            s.refresh(entry)
            return entry

    def get(self, date: str) -> Optional[SleepEntry]:
        with self._session_factory() as s:
            return s.exec(select(SleepEntry).where(SleepEntry.date == day_key(date))).first()


__all__ = ["SessionService", "SleepService"]
