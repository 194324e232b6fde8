"""Local embedded store for syncable Dayline records."""
from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple, Type

from sqlmodel import SQLModel, select

from dayline.core.settings import SYNC
from dayline.models import EntityKind, SleepEntry, SyncMeta, Task, WorkSession
from dayline.storage.db import get_session


MODELS: Dict[EntityKind, Type[SQLModel]] = {
    EntityKind.TASK: Task,
    EntityKind.SESSION: WorkSession,
    EntityKind.SLEEP: SleepEntry,
}

NATURAL_KEYS: Dict[EntityKind, Tuple[str, ...]] = {
    EntityKind.TASK: ("date", "name"),
    EntityKind.SESSION: ("date", "start_time", "end_time"),
    EntityKind.SLEEP: ("date",),
}

PHASES = ("push", "pull", "prune")


def natural_key(kind: EntityKind, record) -> Tuple:
    """Natural key of ``record`` without the owner component."""
    if isinstance(record, dict):
        return tuple(record.get(field) for field in NATURAL_KEYS[kind])
    return tuple(getattr(record, field) for field in NATURAL_KEYS[kind])


class LocalStore:
    """Thin repository over the SQLModel tables.

    Rows written before sign-in carry the local owner placeholder; lookups
    for a user therefore consider both the user id and that placeholder.
    """

    def __init__(self, session_factory=get_session) -> None:
        self._session_factory = session_factory

    # ------------------------------------------------------------------
    # Primary-key access
    def get(self, model: Type[SQLModel], pk: int):
        with self._session_factory() as session:
            return session.get(model, pk)

    def put(self, record):
        with self._session_factory() as session:
            session.add(record)
            session.commit()
            session.refresh(record)
            return record

    def put_many(self, records: Iterable) -> int:
        count = 0
        with self._session_factory() as session:
            for record in records:
                session.add(record)
                count += 1
            session.commit()
        return count

    def delete(self, model: Type[SQLModel], pk: int) -> bool:
        with self._session_factory() as session:
            record = session.get(model, pk)
            if record is None:
                return False
            session.delete(record)
            session.commit()
            return True

    # ------------------------------------------------------------------
    # Index queries
    def query(
        self,
        model: Type[SQLModel],
        *,
        date: Optional[str] = None,
        name: Optional[str] = None,
        sync_states: Optional[Sequence[str]] = None,
        owners: Optional[Sequence[str]] = None,
        include_deleted: bool = True,
    ) -> List:
        stmt = select(model)
        if date is not None:
            stmt = stmt.where(model.date == date)
        if name is not None:
            stmt = stmt.where(model.name == name)
        if sync_states is not None:
            stmt = stmt.where(model.sync_state.in_([getattr(s, "value", s) for s in sync_states]))
        if owners is not None:
            stmt = stmt.where(model.owner_id.in_(list(owners)))
        if not include_deleted and hasattr(model, "is_deleted"):
            stmt = stmt.where(model.is_deleted == False)  # noqa: E712
        stmt = stmt.order_by(model.id)
        with self._session_factory() as session:
            return list(session.exec(stmt).all())

    def find_by_key(self, kind: EntityKind, owner: str, key: Sequence):
        """Return the row of ``kind`` with natural key ``key`` for ``owner``, deleted or not."""
        model = MODELS[kind]
        fields = NATURAL_KEYS[kind]
        if len(key) != len(fields):
            raise ValueError(f"{kind.value} key needs {len(fields)} parts, got {len(key)}")
        stmt = select(model).where(model.owner_id.in_(owner_scope(owner)))
        for field, value in zip(fields, key):
            stmt = stmt.where(getattr(model, field) == value)
        with self._session_factory() as session:
            return session.exec(stmt).first()

    def keys(self, kind: EntityKind, owner: str, *, date: Optional[str] = None) -> Set[Tuple]:
        rows = self.query(MODELS[kind], date=date, owners=owner_scope(owner))
        return {natural_key(kind, row) for row in rows}

    # ------------------------------------------------------------------
    # Sync metadata
    def get_meta(self, kind: EntityKind) -> SyncMeta:
        with self._session_factory() as session:
            meta = session.get(SyncMeta, kind.value)
            return meta or SyncMeta(kind=kind.value)

    def mark_phase(self, kind: EntityKind, phase: str, at: datetime, error: Optional[str] = None) -> None:
        if phase not in PHASES:
            raise ValueError(f"Unsupported phase: {phase}")
        with self._session_factory() as session:
            meta = session.get(SyncMeta, kind.value) or SyncMeta(kind=kind.value)
            setattr(meta, f"last_{phase}_at", at)
            meta.last_error = error
            session.add(meta)
            session.commit()


def owner_scope(owner: str) -> Tuple[str, ...]:
    if owner == SYNC.local_owner:
        return (owner,)
    return (owner, SYNC.local_owner)


__all__ = ["LocalStore", "MODELS", "NATURAL_KEYS", "natural_key", "owner_scope"]
