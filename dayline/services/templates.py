# dayline/services/templates.py
from __future__ import annotations

from typing import Iterable, List, Optional

from sqlmodel import select
from sqlalchemy import and_

from dayline.core.log import ensure_logger
from dayline.core.settings import SYNC
from dayline.models import HabitTemplate, SyncState, Task
from dayline.models.template import REPEAT_PATTERNS, days_to_mask
from dayline.services.streaks import update_template_streaks
from dayline.storage.db import get_session
from dayline.utils.datetime_utils import day_key, utc_now, weekday_sunday_first


def is_scheduled(template: HabitTemplate, day: str) -> bool:
    if template.repeat_pattern == "daily":
        return True
    if template.repeat_pattern in ("weekly", "custom"):
        return bool(template.repeat_days & (1 << weekday_sunday_first(day)))
    return False


class TemplateService:
    def __init__(self, session_factory=get_session) -> None:
        self._session_factory = session_factory
        self.logger = ensure_logger("dayline.sync.templates")

    def add(
        self,
        name: str,
        *,
        repeat_pattern: str = "daily",
        repeat_days: Iterable[int] = (),
        priority: Optional[str] = None,
        target_time: int = 0,
        description: str = "",
        category: str = "",
        category_type: Optional[str] = None,
        remote_id: Optional[str] = None,
        min_completion_target: int = SYNC.default_min_completion,
    ) -> HabitTemplate:
        name = (name or "").strip()
        if not name:
            raise ValueError("Template name must not be empty")
        if repeat_pattern not in REPEAT_PATTERNS:
            raise ValueError(f"Unsupported repeat pattern: {repeat_pattern}")
        mask = days_to_mask(repeat_days)
        if repeat_pattern != "daily" and not mask:
            raise ValueError("Weekly and custom templates need at least one weekday")
        with self._session_factory() as s:
            template = HabitTemplate(
                name=name,
                repeat_pattern=repeat_pattern,
                repeat_days=mask,
                priority=priority,
                target_time=target_time,
                description=description,
                category=category,
                category_type=category_type,
                remote_id=remote_id,
                min_completion_target=min_completion_target,
            )
            s.add(template)
            s.commit()
            s.refresh(template)
            return template

    def get(self, template_id: int) -> Optional[HabitTemplate]:
        with self._session_factory() as s:
            return s.get(HabitTemplate, template_id)

    def set_active(self, template_id: int, active: bool) -> Optional[HabitTemplate]:
        with self._session_factory() as s:
            template = s.get(HabitTemplate, template_id)
            if not template:
                return None
            template.is_active = active
            template.updated_at = utc_now()
            s.add(template)
            s.commit()
            s.refresh(template)
            return template

    def list_active(self) -> List[HabitTemplate]:
        with self._session_factory() as s:
            stmt = select(HabitTemplate).where(HabitTemplate.is_active == True)  # noqa: E712
            return list(s.exec(stmt.order_by(HabitTemplate.id)))

    def generate_tasks_from_templates(self, date: str) -> List[Task]:
        """Create the day's tasks for every active template scheduled on ``date``.

        A task with the same name on that day, even a soft-deleted one, blocks
        generation.
        """

        day = day_key(date)
        created: List[Task] = []
        with self._session_factory() as s:
            templates = list(s.exec(select(HabitTemplate).where(HabitTemplate.is_active == True)))  # noqa: E712
            for template in templates:
                if not is_scheduled(template, day):
                    continue
                existing = s.exec(
                    select(Task).where(and_(Task.date == day, Task.name == template.name))
                ).first()
                if existing is not None:
                    continue
                task = Task(
                    date=day,
                    name=template.name,
                    status="lagging",
                    priority=template.priority,
                    target_time=template.target_time,
                    description=template.description,
                    progress=0,
                    is_repeating=True,
                    template_id=template.remote_id,
                    sync_state=SyncState.PENDING.value,
                )
                s.add(task)
                created.append(task)
            s.commit()
            for task in created:
                s.refresh(task)
        if created:
            self.logger.info("Generated %d task(s) from templates for %s", len(created), day)
        return created

    def record_progress(self, task: Task) -> Optional[HabitTemplate]:
        """Advance the template-level streaks from a task's progress change."""

        if not task.template_id or not task.progress:
            return None
        with self._session_factory() as s:
            template = s.exec(select(HabitTemplate).where(HabitTemplate.remote_id == task.template_id)).first()
            if template is None:
                return None
            update = update_template_streaks(template, task.date, task.progress)
            template.achiever_streak = update.achiever_streak
            template.fighter_streak = update.fighter_streak
            template.last_completed_date = update.last_completed_date
            template.updated_at = utc_now()
            s.add(template)
            s.commit()
            s.refresh(template)
            return template


__all__ = ["TemplateService", "is_scheduled"]
