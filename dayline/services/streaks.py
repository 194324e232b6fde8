"""Achiever and fighter streaks derived from remote task history.

Streaks are never read back from stored counters: each computation walks
the raw per-day progress of the habit, so a wrong stored value heals itself
on the next run.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple

from dayline.core.log import ensure_logger
from dayline.core.settings import REMOTE, SYNC, SyncSettings
from dayline.models import EntityKind, SyncState, Task
from dayline.models.template import HabitTemplate
from dayline.services.remote_store import (
    RemoteAuthError,
    RemoteRequestError,
    RemoteStore,
    RemoteUnavailableError,
)
from dayline.storage.local_store import LocalStore
from dayline.utils.datetime_utils import day_key, days_between, previous_day, to_rfc3339_utc, utc_now


@dataclass(frozen=True)
class HabitKey:
    """Identifies one habit: the template id when known, else the task name."""

    template_id: Optional[str] = None
    name: Optional[str] = None

    @classmethod
    def for_task(cls, task: Task) -> "HabitKey":
        return cls(template_id=task.template_id or None, name=task.name or None)

    def __bool__(self) -> bool:
        return bool(self.template_id or self.name)

    def filters(self) -> Dict[str, Any]:
        if self.template_id:
            return {"template_id": self.template_id}
        return {"name": self.name}


@dataclass(frozen=True)
class TemplateStreaks:
    achiever_streak: int
    fighter_streak: int
    last_completed_date: str


def _progress(row: Dict[str, Any]) -> int:
    return int(row.get("progress") or 0)


def today_only(progress: int, threshold: int, fighter_threshold: int = SYNC.fighter_threshold) -> Tuple[int, int]:
    return (1 if progress >= threshold else 0, 1 if progress > fighter_threshold else 0)


def walk_history(
    history: Iterable[Dict[str, Any]],
    target_date: str,
    threshold: int,
    fighter_threshold: int = SYNC.fighter_threshold,
) -> Tuple[int, int]:
    """Count consecutive qualifying days before ``target_date``.

    ``history`` is newest first. Any row whose date is not the expected day
    ends both chains.
    """

    achiever = fighter = 0
    achiever_alive = fighter_alive = True
    expected = previous_day(target_date)
    for row in history:
        if not achiever_alive and not fighter_alive:
            break
        if day_key(row["date"]) != expected:
            break
        progress = _progress(row)
        if achiever_alive:
            if progress >= threshold:
                achiever += 1
            else:
                achiever_alive = False
        if fighter_alive:
            if progress > fighter_threshold:
                fighter += 1
            else:
                fighter_alive = False
        expected = previous_day(expected)
    return achiever, fighter


def update_template_streaks(template: HabitTemplate, day: str, progress: int) -> TemplateStreaks:
    """Template-level streak bookkeeping for one completion on ``day``."""

    if template.last_completed_date == day:
        return TemplateStreaks(template.achiever_streak, template.fighter_streak, day)

    if progress < template.min_completion_target:
        return TemplateStreaks(0, 0, day)

    is_fighter = progress > SYNC.fighter_threshold
    consecutive = bool(template.last_completed_date) and days_between(template.last_completed_date, day) == 1
    if not consecutive:
        return TemplateStreaks(1, 1 if is_fighter else 0, day)

    return TemplateStreaks(
        template.achiever_streak + 1,
        template.fighter_streak + 1 if is_fighter else 0,
        day,
    )


class StreakCalculator:
    def __init__(
        self,
        remote: RemoteStore,
        local: Optional[LocalStore] = None,
        *,
        settings: SyncSettings = SYNC,
        tasks_table: str = REMOTE.tables.tasks,
        templates_table: str = REMOTE.tables.templates,
    ) -> None:
        self.remote = remote
        self.local = local or LocalStore()
        self.settings = settings
        self.tasks_table = tasks_table
        self.templates_table = templates_table
        self.logger = ensure_logger("dayline.sync.streaks")

    async def min_completion_target(self, owner: str, template_id: Optional[str]) -> int:
        default = self.settings.default_min_completion
        if not template_id:
            return default
        try:
            rows = await self.remote.select(
                self.templates_table,
                {"user_id": owner, "id": template_id},
                columns="min_completion_target",
                limit=1,
            )
        except RemoteRequestError as exc:
            self.logger.warning("Template %s threshold unavailable: %s", template_id, exc)
            return default
        if not rows or rows[0].get("min_completion_target") is None:
            return default
        return int(rows[0]["min_completion_target"])

    async def compute_streaks(
        self,
        owner: str,
        habit_key: Optional[HabitKey],
        target_date: str,
        target_progress: int,
    ) -> Tuple[int, int]:
        if not habit_key:
            return 0, 0

        target_date = day_key(target_date)
        threshold = await self.min_completion_target(owner, habit_key.template_id)
        filters: Dict[str, Any] = {"user_id": owner, "date": ("lt", target_date)}
        filters.update(habit_key.filters())
        try:
            history = await self.remote.select(
                self.tasks_table,
                filters,
                columns="date,progress,status",
                order="date.desc",
                limit=self.settings.history_limit,
            )
        except RemoteRequestError as exc:
            self.logger.warning("History fetch failed for %s: %s", habit_key, exc)
            return today_only(target_progress, threshold, self.settings.fighter_threshold)

        achiever, fighter = walk_history(history, target_date, threshold, self.settings.fighter_threshold)
        today_achiever, today_fighter = today_only(target_progress, threshold, self.settings.fighter_threshold)
        self.logger.debug(
            "Streaks for %s on %s: base %d/%d, threshold %d",
            habit_key,
            target_date,
            achiever,
            fighter,
            threshold,
        )
        return achiever + today_achiever, fighter + today_fighter

    async def recalculate_chain(self, owner: str, habit_key: Optional[HabitKey]) -> int:
        """Recompute every stored counter of the habit, oldest first. Returns the rows corrected."""

        if not owner or not habit_key:
            return 0

        filters: Dict[str, Any] = {"user_id": owner}
        filters.update(habit_key.filters())
        try:
            rows = await self.remote.select(
                self.tasks_table,
                filters,
                columns="id,date,name,progress,template_id,achiever_strike,fighter_strike",
                order="date.asc",
            )
        except RemoteRequestError as exc:
            self.logger.warning("Chain fetch failed for %s: %s", habit_key, exc)
            return 0
        if not rows:
            return 0

        threshold = await self.min_completion_target(owner, habit_key.template_id)
        achiever = fighter = 0
        last_day: Optional[str] = None
        corrected = 0
        for row in rows:
            day = day_key(row["date"])
            if last_day is not None and days_between(last_day, day) != 1:
                achiever = fighter = 0
            progress = _progress(row)
            achiever = achiever + 1 if progress >= threshold else 0
            fighter = fighter + 1 if progress > self.settings.fighter_threshold else 0
            last_day = day

            if row.get("achiever_strike") == achiever and row.get("fighter_strike") == fighter:
                continue
            values = {
                "achiever_strike": achiever,
                "fighter_strike": fighter,
                "updated_at": to_rfc3339_utc(utc_now()),
            }
            try:
                await self.remote.update(
                    self.tasks_table,
                    values,
                    {"user_id": owner, "date": day, "name": row["name"]},
                )
            except RemoteRequestError as exc:
                self.logger.warning("Could not correct %s on %s: %s", row["name"], day, exc)
                continue
            self._store_local(owner, day, row["name"], achiever, fighter)
            corrected += 1

        self.logger.info("Corrected %d row(s) in chain %s", corrected, habit_key)
        return corrected

    def _store_local(self, owner: str, day: str, name: str, achiever: int, fighter: int) -> None:
        task = self.local.find_by_key(EntityKind.TASK, owner, (day, name))
        if task is None:
            return
        task.achiever_streak = achiever
        task.fighter_streak = fighter
        self.local.put(task)

    async def refresh_task(self, task_id: int, owner: str) -> Optional[Task]:
        """Recompute and store the counters of one local task after its progress changed."""

        task = self.local.get(Task, task_id)
        if task is None:
            return None
        try:
            achiever, fighter = await self.compute_streaks(
                owner, HabitKey.for_task(task), task.date, task.progress
            )
        except (RemoteUnavailableError, RemoteAuthError) as exc:
            self.logger.info("Streak refresh for task %s deferred: %s", task_id, exc)
            return task

        if (achiever, fighter) == (task.achiever_streak, task.fighter_streak):
            return task
        task.achiever_streak = achiever
        task.fighter_streak = fighter
        task.sync_state = SyncState.PENDING.value
        task.updated_at = utc_now()
        return self.local.put(task)


__all__ = [
    "HabitKey",
    "StreakCalculator",
    "TemplateStreaks",
    "today_only",
    "update_template_streaks",
    "walk_history",
]
