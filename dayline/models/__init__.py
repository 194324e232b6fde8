"""ORM models exposed by the Dayline core."""
from .task import Task
from .session import WorkSession
from .sleep import SleepEntry
from .template import HabitTemplate
from .sync import EntityKind, SyncMeta, SyncState

__all__ = [
    "EntityKind",
    "HabitTemplate",
    "SleepEntry",
    "SyncMeta",
    "SyncState",
    "Task",
    "WorkSession",
]
