"""One-shot upload of data recorded before cloud sync was set up."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from sqlalchemy.exc import SQLAlchemyError

from dayline.core.log import ensure_logger
from dayline.core.settings import SYNC
from dayline.models import EntityKind
from dayline.services.mapping import SYNC_ORDER
from dayline.services.remote_store import RemoteAuthError, RemoteUnavailableError
from dayline.services.sync_engine import SyncEngine, UNAUTHENTICATED_MESSAGE


LABELS = {
    EntityKind.TASK: "Tasks synced",
    EntityKind.SESSION: "Sessions synced",
    EntityKind.SLEEP: "Sleep entries synced",
}


@dataclass
class MigrationResult:
    success: bool = False
    synced: Dict[str, int] = field(default_factory=lambda: {kind.value: 0 for kind in SYNC_ORDER})
    errors: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(self.synced.values())


async def migrate_local_data(engine: SyncEngine) -> MigrationResult:
    """Push every unsynced, non-deleted local record of every kind."""

    logger = ensure_logger("dayline.sync.migration")
    result = MigrationResult()
    session = engine.session_provider()
    if session is None:
        result.errors.append(UNAUTHENTICATED_MESSAGE)
        return result

    logger.info("Starting migration for user %s", session.user_id)
    try:
        for kind in SYNC_ORDER:
            pushed = await engine.push(kind, include_deleted=False)
            result.synced[kind.value] = pushed.pushed
            result.errors.extend(pushed.errors)
    except (RemoteUnavailableError, RemoteAuthError, SQLAlchemyError) as exc:
        logger.error("Migration failed: %s", exc)
        result.errors.append(f"Migration failed: {exc}")
        return result

    result.success = True
    logger.info("Migration complete: %d record(s), %d error(s)", result.total, len(result.errors))
    return result


def format_migration_result(result: MigrationResult, *, limit: int = SYNC.error_display_limit) -> str:
    if not result.success:
        return "Migration failed:\n" + "\n".join(result.errors)

    lines = ["Migration successful!", ""]
    for kind in SYNC_ORDER:
        lines.append(f"{LABELS[kind]}: {result.synced.get(kind.value, 0)}")

    if result.errors:
        lines.append("")
        lines.append(f"{len(result.errors)} errors occurred:")
        lines.extend(result.errors[:limit])
        if len(result.errors) > limit:
            lines.append(f"...and {len(result.errors) - limit} more")
    return "\n".join(lines)


__all__ = ["MigrationResult", "format_migration_result", "migrate_local_data"]
