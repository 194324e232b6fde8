# dayline/models/template.py
from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional

from sqlmodel import Field, SQLModel

from dayline.core.settings import SYNC
from dayline.utils.datetime_utils import utc_now


REPEAT_PATTERNS = ("daily", "weekly", "custom")


def days_to_mask(days: Iterable[int]) -> int:
    """Pack weekday numbers (0=Sunday ... 6=Saturday) into a bitmask."""
    mask = 0
    for day in days:
        day = int(day)
        if not 0 <= day <= 6:
            raise ValueError(f"Weekday out of range: {day}")
        mask |= 1 << day
    return mask


def mask_to_days(mask: int) -> List[int]:
    return [day for day in range(7) if mask & (1 << day)]


class HabitTemplate(SQLModel, table=True):
    __tablename__ = "habit_templates"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    priority: Optional[str] = None
    target_time: int = 0
    description: str = ""
    repeat_pattern: str = "daily"
    repeat_days: int = 0                           # bitmask, bit 0 = Sunday
    category: str = ""
    category_type: Optional[str] = None
    is_active: bool = True
    remote_id: Optional[str] = Field(default=None, index=True)
    min_completion_target: int = SYNC.default_min_completion
    achiever_streak: int = 0
    fighter_streak: int = 0
    last_completed_date: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def weekdays(self) -> List[int]:
        return mask_to_days(self.repeat_days)


__all__ = ["HabitTemplate", "REPEAT_PATTERNS", "days_to_mask", "mask_to_days"]
