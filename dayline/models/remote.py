"""Row shapes of the remote PostgREST tables.

These are plain (non-table) SQLModel schemas: every column the remote may
omit or return as ``null`` is optional here, and the mapping layer decides
the local default.
"""

from __future__ import annotations

from typing import Optional, Union

from sqlmodel import SQLModel


RemoteId = Union[int, str]


class RemoteTask(SQLModel):
    id: Optional[RemoteId] = None
    user_id: str
    date: str
    name: str
    status: Optional[str] = None
    priority: Optional[str] = None
    target_time: Optional[int] = None
    description: Optional[str] = None
    completed_description: Optional[str] = None
    progress: Optional[int] = None
    is_repeating: Optional[bool] = None
    is_deleted: Optional[bool] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    template_id: Optional[str] = None
    achiever_strike: Optional[int] = None
    fighter_strike: Optional[int] = None


class RemoteSession(SQLModel):
    id: Optional[RemoteId] = None
    user_id: str
    date: str
    start_time: str
    end_time: str
    task_id: Optional[RemoteId] = None
    custom_name: Optional[str] = None
    category: Optional[str] = None
    category_type: Optional[str] = None
    description: Optional[str] = None
    is_deleted: Optional[bool] = None
    created_at: Optional[str] = None


class RemoteSleepEntry(SQLModel):
    id: Optional[RemoteId] = None
    user_id: str
    date: str
    wake_up_time: Optional[str] = None
    bed_time: Optional[str] = None
    created_at: Optional[str] = None


__all__ = ["RemoteSession", "RemoteSleepEntry", "RemoteTask"]
