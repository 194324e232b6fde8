# dayline/services/tasks.py
from __future__ import annotations

import math
from typing import Callable, Dict, List, Optional, Set

from sqlmodel import select
from sqlalchemy import and_, or_

from dayline.core.log import ensure_logger
from dayline.core.settings import SYNC
from dayline.models import HabitTemplate, SyncState, Task, WorkSession
from dayline.storage.db import get_session
from dayline.utils.datetime_utils import day_key, duration_minutes, utc_now


EVENTS = ("after_create", "after_update", "after_delete", "progress_changed")


def derive_status(progress: int, threshold: int = SYNC.default_min_completion) -> str:
    if progress > SYNC.fighter_threshold:
        return "overachiever"
    if progress >= threshold:
        return "on-track"
    return "lagging"


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _touch(task: Task) -> None:
    task.sync_state = SyncState.PENDING.value
    task.updated_at = utc_now()


class TaskService:
    """Optimistic local task writes. Every write leaves the row ``pending``."""

    def __init__(self, session_factory=get_session) -> None:
        self._session_factory = session_factory
        self._listeners: Dict[str, Set[Callable[[int], None]]] = {event: set() for event in EVENTS}
        self.logger = ensure_logger("dayline.sync.tasks")

    def subscribe(self, event: str, callback):
        if event not in self._listeners:
            raise ValueError(f"Unsupported event: {event}")
        self._listeners[event].add(callback)

    def unsubscribe(self, event: str, callback):
        if event not in self._listeners:
            return
        self._listeners[event].discard(callback)

    def _emit(self, event: str, task_id: int):
        for listener in list(self._listeners.get(event, [])):
            try:
                listener(task_id)
            except Exception:
                self.logger.exception("Listener for %s failed on task %s", event, task_id)

    # ------------------------------------------------------------------
    # Writes
    def add(
        self,
        date: str,
        name: str,
        *,
        target_time: int = 0,
        priority: Optional[str] = None,
        description: str = "",
        is_repeating: bool = False,
        template_id: Optional[str] = None,
        emit: bool = True,
    ) -> Task:
        name = (name or "").strip()
        if not name:
            raise ValueError("Task name must not be empty")
        if target_time < 0:
            raise ValueError("Target time must not be negative")
        date = day_key(date)
        with self._session_factory() as s:
            existing = s.exec(select(Task).where(and_(Task.date == date, Task.name == name))).first()
            if existing is not None and not existing.is_deleted:
                raise ValueError(f'Task "{name}" already exists on {date}')
            t = existing or Task(date=date, name=name)
            t.target_time = target_time
            t.priority = priority
            t.description = description
            t.is_repeating = is_repeating
            t.template_id = template_id
            t.is_deleted = False
            _touch(t)
            s.add(t)
            s.commit()
            s.refresh(t)
        if emit:
            self._emit("after_create", t.id)
        return t

    def get(self, task_id: int) -> Optional[Task]:
        with self._session_factory() as s:
            return s.get(Task, task_id)

    def list_for_date(self, date: str, *, include_deleted: bool = False) -> List[Task]:
        with self._session_factory() as s:
            stmt = select(Task).where(Task.date == day_key(date))
            if not include_deleted:
                stmt = stmt.where(Task.is_deleted == False)  # noqa: E712
            return list(s.exec(stmt.order_by(Task.created_at.asc(), Task.id.asc())))

    def update(
        self,
        task_id: int,
        *,
        name: Optional[str] = None,
        priority: Optional[str] = None,
        target_time: Optional[int] = None,
        description: Optional[str] = None,
        completed_description: Optional[str] = None,
        emit: bool = True,
    ) -> Optional[Task]:
        with self._session_factory() as s:
            t = s.get(Task, task_id)
            if not t:
                return None
            if name is not None:
                name = name.strip()
                if not name:
                    raise ValueError("Task name must not be empty")
                if name != t.name:
                    self._rename(s, t, name)
            if priority is not None:
                t.priority = priority
            if target_time is not None:
                if target_time < 0:
                    raise ValueError("Target time must not be negative")
                t.target_time = target_time
            if description is not None:
                t.description = description
            if completed_description is not None:
                t.completed_description = completed_description
            _touch(t)
            s.add(t)
            s.commit()
            s.refresh(t)
        if emit:
            self._emit("after_update", t.id)
        return t

    def set_progress(self, task_id: int, progress: int, *, emit: bool = True) -> Optional[Task]:
        if progress < 0:
            raise ValueError("Progress must not be negative")
        with self._session_factory() as s:
            t = s.get(Task, task_id)
            if not t:
                return None
            changed = t.progress != progress
            t.progress = progress
            t.status = derive_status(progress, self._threshold(s, t))
            _touch(t)
            s.add(t)
            s.commit()
            s.refresh(t)
        if emit:
            self._emit("after_update", t.id)
            if changed:
                self._emit("progress_changed", t.id)
        return t

    def refresh_progress(self, task_id: int, *, emit: bool = True) -> Optional[Task]:
        """Recompute progress from the task's logged sessions."""
        if self.get(task_id) is None:
            return None
        return self.set_progress(task_id, self.calculate_task_progress(task_id), emit=emit)

    def soft_delete(self, task_id: int, *, emit: bool = True) -> bool:
        with self._session_factory() as s:
            t = s.get(Task, task_id)
            if not t:
                return False
            t.is_deleted = True
            _touch(t)
            s.add(t)
            s.commit()
        if emit:
            self._emit("after_delete", task_id)
        return True

    def restore(self, task_id: int, *, emit: bool = True) -> Optional[Task]:
        with self._session_factory() as s:
            t = s.get(Task, task_id)
            if not t:
                return None
            t.is_deleted = False
            _touch(t)
            s.add(t)
            s.commit()
            s.refresh(t)
        if emit:
            self._emit("after_update", t.id)
        return t

    def _rename(self, s, t: Task, name: str) -> None:
        """Move ``t`` to a new (date, name) key.

        A task that already reached the remote leaves a deleted copy under its
        old name, so the next push retires the remote row instead of a pull
        bringing it back.
        """
        taken = s.exec(select(Task).where(and_(Task.date == t.date, Task.name == name))).first()
        if taken is not None:
            if not taken.is_deleted:
                raise ValueError(f'Task "{name}" already exists on {t.date}')
            s.delete(taken)
            s.flush()

        old_name = t.name
        uploaded = t.owner_id != SYNC.local_owner
        t.name = name
        s.add(t)
        s.flush()
        if uploaded:
            tombstone = Task(
                date=t.date,
                name=old_name,
                status=t.status,
                priority=t.priority,
                target_time=t.target_time,
                description=t.description,
                completed_description=t.completed_description,
                progress=t.progress,
                is_repeating=t.is_repeating,
                template_id=t.template_id,
                achiever_streak=t.achiever_streak,
                fighter_streak=t.fighter_streak,
                created_at=t.created_at,
                owner_id=t.owner_id,
                is_deleted=True,
            )
            _touch(tombstone)
            s.add(tombstone)
        self.logger.info("Renamed task %s on %s: %r -> %r", t.id, t.date, old_name, name)

    # ------------------------------------------------------------------
    # Progress
    def calculate_task_progress(self, task_id: int) -> int:
        with self._session_factory() as s:
            t = s.get(Task, task_id)
            if not t or not t.target_time:
                return 0
            linked = or_(
                WorkSession.task_id == t.id,
                and_(WorkSession.task_id == None, WorkSession.custom_name == t.name),  # noqa: E711
            )
            stmt = select(WorkSession).where(
                and_(WorkSession.date == t.date, WorkSession.is_deleted == False, linked)  # noqa: E712
            )
            minutes = sum(
                max(0, duration_minutes(session.start_time, session.end_time))
                for session in s.exec(stmt)
            )
            return _round_half_up(minutes / t.target_time * 100)

    def _threshold(self, s, task: Task) -> int:
        if not task.template_id:
            return SYNC.default_min_completion
        template = s.exec(select(HabitTemplate).where(HabitTemplate.remote_id == task.template_id)).first()
        return template.min_completion_target if template else SYNC.default_min_completion


__all__ = ["EVENTS", "TaskService", "derive_status"]
