# dayline/app.py
"""Entry point for hosts embedding the Dayline core."""
from __future__ import annotations

from typing import Optional, Tuple

from dayline.core.settings import REMOTE, SYNC, RemoteSettings
from dayline.models import Task, WorkSession
from dayline.services.auth import AuthSession, SessionStore
from dayline.services.connectivity import ConnectivityProbe, HttpConnectivityProbe
from dayline.services.migration import MigrationResult, migrate_local_data
from dayline.services.remote_store import RemoteStore, SupabaseRemoteStore
from dayline.services.sessions import SessionService, SleepService
from dayline.services.streaks import HabitKey, StreakCalculator
from dayline.services.sync_engine import SyncEngine, SyncResult
from dayline.services.tasks import TaskService
from dayline.services.templates import TemplateService
from dayline.storage.db import get_session, init_db
from dayline.storage.local_store import LocalStore
from dayline.utils.datetime_utils import today_key


class Dayline:
    """Wires the local services, the sync engine and the streak calculator together."""

    def __init__(
        self,
        *,
        session_factory=get_session,
        remote: Optional[RemoteStore] = None,
        connectivity: Optional[ConnectivityProbe] = None,
        session_store: Optional[SessionStore] = None,
        settings: RemoteSettings = REMOTE,
    ) -> None:
        self.session_store = session_store or SessionStore()
        session = self.session_store.load()
        self.remote = remote or SupabaseRemoteStore(
            settings, access_token=session.access_token if session else None
        )
        self.connectivity = connectivity or HttpConnectivityProbe(settings)
        self.local = LocalStore(session_factory)
        self.tasks = TaskService(session_factory)
        self.sessions = SessionService(session_factory)
        self.sleep = SleepService(session_factory)
        self.templates = TemplateService(session_factory)
        self.engine = SyncEngine(self.local, self.remote, self.connectivity, self.current_session)
        self.streaks = StreakCalculator(self.remote, self.local)
        self.tasks.subscribe("progress_changed", self._on_progress_changed)

    # ------------------------------------------------------------------
    # Authentication
    def current_session(self) -> Optional[AuthSession]:
        session = self.session_store.load()
        if session is not None and isinstance(self.remote, SupabaseRemoteStore):
            self.remote.access_token = session.access_token
        return session

    def sign_in(self, session: AuthSession) -> None:
        self.session_store.save(session)
        self.current_session()

    def sign_out(self) -> None:
        self.session_store.clear()
        if isinstance(self.remote, SupabaseRemoteStore):
            self.remote.access_token = None

    # ------------------------------------------------------------------
    # Sync
    async def run_full_cycle(self) -> SyncResult:
        if not SYNC.enabled:
            return SyncResult()
        return await self.engine.run_full_cycle()

    async def fetch_for_date(self, date: str) -> SyncResult:
        return await self.engine.fetch_for_date(date)

    async def migrate_local_data(self) -> MigrationResult:
        return await migrate_local_data(self.engine)

    def status(self) -> dict:
        return self.engine.status()

    # ------------------------------------------------------------------
    # Streaks
    async def compute_streaks(
        self, owner: str, habit_key: Optional[HabitKey], date: str, progress: int
    ) -> Tuple[int, int]:
        return await self.streaks.compute_streaks(owner, habit_key, date, progress)

    async def recalculate_chain(self, owner: str, habit_key: Optional[HabitKey]) -> int:
        return await self.streaks.recalculate_chain(owner, habit_key)

    async def set_task_progress(self, task_id: int, progress: int) -> Optional[Task]:
        task = self.tasks.set_progress(task_id, progress)
        if task is None:
            return None
        return await self._refresh_streaks(task)

    async def log_session(self, date: str, start_time: str, end_time: str, **fields) -> WorkSession:
        """Record a session and bring the linked task's progress and streaks up to date."""

        record = self.sessions.add(date, start_time, end_time, **fields)
        for task in self.tasks.list_for_date(record.date):
            if task.id == record.task_id or (record.task_id is None and task.name == record.custom_name):
                updated = self.tasks.refresh_progress(task.id)
                if updated is not None:
                    await self._refresh_streaks(updated)
        return record

    async def _refresh_streaks(self, task: Task) -> Task:
        session = self.current_session()
        if session is None:
            return task
        refreshed = await self.streaks.refresh_task(task.id, session.user_id)
        return refreshed or task

    def _on_progress_changed(self, task_id: int) -> None:
        task = self.tasks.get(task_id)
        if task is not None:
            self.templates.record_progress(task)

    # ------------------------------------------------------------------
    # Templates
    def generate_tasks_from_templates(self, date: Optional[str] = None):
        return self.templates.generate_tasks_from_templates(date or today_key(SYNC.day_timezone))

    async def aclose(self) -> None:
        self.tasks.unsubscribe("progress_changed", self._on_progress_changed)
        for client in (self.remote, self.connectivity):
            close = getattr(client, "aclose", None)
            if close is not None:
                await close()


def create_app(**kwargs) -> Dayline:
    init_db()
    return Dayline(**kwargs)


__all__ = ["Dayline", "create_app"]
