# dayline/models/session.py
from typing import Optional
from datetime import datetime

from sqlalchemy import Index, UniqueConstraint
from sqlmodel import SQLModel, Field

from dayline.core.settings import SYNC
from dayline.models.sync import SyncState
from dayline.utils.datetime_utils import utc_now


CATEGORY_TYPES = ("work", "life")


class WorkSession(SQLModel, table=True):
    """A time-boxed activity block. Named to stay clear of ``sqlmodel.Session``."""

    __tablename__ = "sessions"
    __table_args__ = (
        UniqueConstraint(
            "owner_id", "date", "start_time", "end_time", name="ux_sessions_owner_slot"
        ),
        Index("ix_sessions_date_name", "date", "custom_name"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    date: str = Field(index=True)
    start_time: str                                # HH:MM
    end_time: str                                  # HH:MM
    category: str = ""
    category_type: Optional[str] = None            # work / life
    task_id: Optional[int] = Field(default=None, index=True)
    custom_name: Optional[str] = None
    description: str = ""
    created_at: datetime = Field(default_factory=utc_now)
    sync_state: str = Field(default=SyncState.PENDING.value, index=True)
    owner_id: str = Field(default=SYNC.local_owner, index=True)
    is_deleted: bool = False
    last_sync_error: Optional[str] = None
