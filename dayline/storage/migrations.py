"""Ad-hoc database migrations for Dayline."""

from __future__ import annotations

from sqlalchemy import text


SYNC_COLUMNS = {
    "sync_state": "TEXT NOT NULL DEFAULT 'pending'",
    "owner_id": "TEXT NOT NULL DEFAULT 'local'",
    "last_sync_error": "TEXT",
}


def _column_exists(conn, table: str, column: str) -> bool:
    result = conn.execute(text(f"PRAGMA table_info('{table}')"))
    return any(row[1] == column for row in result)


def _table_exists(conn, table: str) -> bool:
    result = conn.execute(
        text("SELECT name FROM sqlite_master WHERE type='table' AND name=:name"),
        {"name": table},
    )
    return result.first() is not None


def _add_missing(conn, table: str, columns: dict) -> None:
    for name, ddl_type in columns.items():
        if not _column_exists(conn, table, name):
            conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {name} {ddl_type}"))


def ensure_sync_columns(conn) -> None:
    for table in ("tasks", "sessions", "sleep_entries"):
        if not _table_exists(conn, table):
            continue
        _add_missing(conn, table, SYNC_COLUMNS)
        if table != "sleep_entries":
            _add_missing(conn, table, {"is_deleted": "BOOLEAN NOT NULL DEFAULT 0"})
        conn.execute(
            text(
                f"""
                UPDATE {table}
                SET sync_state = 'pending'
                WHERE sync_state IS NULL OR sync_state = ''
                """
            )
        )


def ensure_streak_columns(conn) -> None:
    if _table_exists(conn, "tasks"):
        _add_missing(
            conn,
            "tasks",
            {
                "template_id": "TEXT",
                "achiever_streak": "INTEGER NOT NULL DEFAULT 0",
                "fighter_streak": "INTEGER NOT NULL DEFAULT 0",
            },
        )
    if _table_exists(conn, "habit_templates"):
        _add_missing(
            conn,
            "habit_templates",
            {
                "remote_id": "TEXT",
                "min_completion_target": "INTEGER NOT NULL DEFAULT 60",
                "achiever_streak": "INTEGER NOT NULL DEFAULT 0",
                "fighter_streak": "INTEGER NOT NULL DEFAULT 0",
                "last_completed_date": "TEXT",
            },
        )


def ensure_indexes(conn) -> None:
    statements = (
        ("tasks", "CREATE INDEX IF NOT EXISTS ix_tasks_sync_state ON tasks(sync_state)"),
        ("tasks", "CREATE INDEX IF NOT EXISTS ix_tasks_date_name ON tasks(date, name)"),
        ("sessions", "CREATE INDEX IF NOT EXISTS ix_sessions_sync_state ON sessions(sync_state)"),
        ("sessions", "CREATE INDEX IF NOT EXISTS ix_sessions_date ON sessions(date)"),
        ("sleep_entries", "CREATE INDEX IF NOT EXISTS ix_sleep_entries_sync_state ON sleep_entries(sync_state)"),
    )
    for table, statement in statements:
        if _table_exists(conn, table):
            conn.execute(text(statement))


def run_all(engine) -> None:
    with engine.begin() as conn:
        ensure_sync_columns(conn)
        ensure_streak_columns(conn)
        ensure_indexes(conn)


__all__ = ["run_all"]
