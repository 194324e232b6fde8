# dayline/models/task.py
from typing import Optional
from datetime import datetime

from sqlalchemy import Index, UniqueConstraint
from sqlmodel import SQLModel, Field

from dayline.core.settings import SYNC
from dayline.models.sync import SyncState
from dayline.utils.datetime_utils import utc_now


TASK_STATUSES = ("lagging", "on-track", "overachiever")


class Task(SQLModel, table=True):
    __tablename__ = "tasks"
    __table_args__ = (
        UniqueConstraint("owner_id", "date", "name", name="ux_tasks_owner_date_name"),
        Index("ix_tasks_date_name", "date", "name"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    date: str = Field(index=True)                  # day key YYYY-MM-DD
    name: str
    status: str = "lagging"                        # lagging / on-track / overachiever
    priority: Optional[str] = None
    target_time: int = 0                           # minutes
    description: str = ""
    completed_description: str = ""
    progress: int = 0                              # percent, may exceed 100
    is_repeating: bool = False
    template_id: Optional[str] = None
    achiever_streak: int = 0
    fighter_streak: int = 0
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    sync_state: str = Field(default=SyncState.PENDING.value, index=True)
    owner_id: str = Field(default=SYNC.local_owner, index=True)
    is_deleted: bool = False
    last_sync_error: Optional[str] = None
