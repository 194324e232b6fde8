from sqlalchemy import create_engine, text

from dayline.models import EntityKind, SyncMeta, Task
from dayline.services.auth import AuthSession, SessionStore
from dayline.storage import migrations
from dayline.utils.datetime_utils import utc_now


def test_legacy_tasks_table_gains_sync_columns(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'legacy.db'}")
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE tasks (id INTEGER PRIMARY KEY, date TEXT, name TEXT, progress INTEGER)"))
        conn.execute(text("INSERT INTO tasks (date, name, progress) VALUES ('2024-01-10', 'Read', 40)"))

    migrations.run_all(engine)
    migrations.run_all(engine)

    with engine.connect() as conn:
        columns = {row[1] for row in conn.execute(text("PRAGMA table_info('tasks')"))}
        row = conn.execute(text("SELECT sync_state, owner_id, is_deleted, achiever_streak FROM tasks")).one()
        indexes = {r[1] for r in conn.execute(text("PRAGMA index_list('tasks')"))}

    assert {"sync_state", "owner_id", "last_sync_error", "template_id", "fighter_streak"} <= columns
    assert tuple(row) == ("pending", "local", 0, 0)
    assert "ix_tasks_sync_state" in indexes


def test_find_by_key_spans_local_placeholder_owner(local):
    local.put(Task(date="2024-01-10", name="Read"))
    local.put(Task(date="2024-01-10", name="Run", owner_id="someone-else"))

    assert local.find_by_key(EntityKind.TASK, "u1", ("2024-01-10", "Read")).name == "Read"
    assert local.find_by_key(EntityKind.TASK, "u1", ("2024-01-10", "Run")) is None
    assert local.keys(EntityKind.TASK, "u1") == {("2024-01-10", "Read")}


def test_query_by_index(local):
    local.put(Task(date="2024-01-10", name="Read"))
    local.put(Task(date="2024-01-10", name="Run", is_deleted=True))
    local.put(Task(date="2024-01-11", name="Read", sync_state="synced"))

    assert [t.name for t in local.query(Task, date="2024-01-10", include_deleted=False)] == ["Read"]
    assert [t.date for t in local.query(Task, name="Read", sync_states=["synced"])] == ["2024-01-11"]


def test_mark_phase_records_timestamp(local):
    moment = utc_now()
    local.mark_phase(EntityKind.SLEEP, "pull", moment)

    meta = local.get_meta(EntityKind.SLEEP)
    assert isinstance(meta, SyncMeta)
    assert meta.last_pull_at is not None
    assert meta.last_push_at is None


def test_session_store_round_trip(tmp_path):
    store = SessionStore(tmp_path / "session.json")
    assert store.load() is None

    store.save(AuthSession(user_id="u1", access_token="tok"))
    assert store.load() == AuthSession(user_id="u1", access_token="tok")

    store.clear()
    assert store.load() is None


def test_session_store_ignores_corrupt_file(tmp_path):
    path = tmp_path / "session.json"
    path.write_text("{not json", encoding="utf-8")

    assert SessionStore(path).load() is None
