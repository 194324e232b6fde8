# dayline/models/sleep.py
from typing import Optional
from datetime import datetime

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field

from dayline.core.settings import SYNC
from dayline.models.sync import SyncState
from dayline.utils.datetime_utils import utc_now


class SleepEntry(SQLModel, table=True):
    __tablename__ = "sleep_entries"
    __table_args__ = (UniqueConstraint("owner_id", "date", name="ux_sleep_owner_date"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    date: str = Field(index=True)
    wake_up_time: Optional[str] = None             # HH:MM
    bed_time: Optional[str] = None                 # HH:MM
    created_at: datetime = Field(default_factory=utc_now)
    sync_state: str = Field(default=SyncState.PENDING.value, index=True)
    owner_id: str = Field(default=SYNC.local_owner, index=True)
    last_sync_error: Optional[str] = None
