import pytest

from dayline.models import SyncState, Task
from dayline.services.sessions import SessionService, SleepService
from dayline.services.tasks import TaskService, derive_status
from dayline.services.templates import TemplateService, is_scheduled


@pytest.fixture()
def tasks(session_factory):
    return TaskService(session_factory)


@pytest.fixture()
def sessions(session_factory):
    return SessionService(session_factory)


@pytest.fixture()
def templates(session_factory):
    return TemplateService(session_factory)


def test_add_rejects_duplicate_name_on_same_day(tasks):
    tasks.add("2024-01-10", "Read", target_time=60)

    with pytest.raises(ValueError):
        tasks.add("2024-01-10", " Read ", target_time=30)
    assert tasks.add("2024-01-11", "Read").date == "2024-01-11"


def test_add_revives_soft_deleted_task(tasks):
    task = tasks.add("2024-01-10", "Read", target_time=60)
    tasks.soft_delete(task.id)

    again = tasks.add("2024-01-10", "Read", target_time=45)

    assert again.id == task.id
    assert again.is_deleted is False
    assert again.target_time == 45


def test_rename_to_taken_name_is_rejected(tasks):
    tasks.add("2025-01-10", "Run", target_time=30)
    jog = tasks.add("2025-01-10", "Jog", target_time=30)

    with pytest.raises(ValueError):
        tasks.update(jog.id, name=" Run ")
    assert tasks.get(jog.id).name == "Jog"


def test_rename_replaces_soft_deleted_task_of_that_name(tasks):
    old = tasks.add("2025-01-10", "Run", target_time=30)
    tasks.soft_delete(old.id)
    jog = tasks.add("2025-01-10", "Jog", target_time=30)

    renamed = tasks.update(jog.id, name="Run")

    assert renamed.name == "Run"
    assert tasks.get(old.id) is None
    assert [t.name for t in tasks.list_for_date("2025-01-10", include_deleted=True)] == ["Run"]


def test_rename_of_local_only_task_leaves_no_copy(tasks):
    task = tasks.add("2025-01-10", "Run", target_time=30)

    tasks.update(task.id, name="Jog")

    assert [t.name for t in tasks.list_for_date("2025-01-10", include_deleted=True)] == ["Jog"]


def test_rename_of_uploaded_task_keeps_deleted_copy_pending(tasks, local):
    task = tasks.add("2025-01-10", "Run", target_time=30)
    stored = local.get(Task, task.id)
    stored.owner_id = "user-1"
    stored.sync_state = SyncState.SYNCED.value
    local.put(stored)

    tasks.update(task.id, name="Jog")

    [old] = [t for t in tasks.list_for_date("2025-01-10", include_deleted=True) if t.name == "Run"]
    assert old.is_deleted is True
    assert old.owner_id == "user-1"
    assert old.sync_state == SyncState.PENDING
    assert [t.name for t in tasks.list_for_date("2025-01-10")] == ["Jog"]


def test_restore_brings_back_soft_deleted_task(tasks, local):
    events = []
    tasks.subscribe("after_update", events.append)
    task = tasks.add("2024-01-10", "Read", target_time=60)
    tasks.soft_delete(task.id)
    stored = local.get(Task, task.id)
    stored.sync_state = SyncState.SYNCED.value
    local.put(stored)

    restored = tasks.restore(task.id)

    assert restored.is_deleted is False
    assert restored.sync_state == SyncState.PENDING
    assert [t.name for t in tasks.list_for_date("2024-01-10")] == ["Read"]
    assert events == [task.id]
    assert tasks.restore(9999) is None


def test_writes_mark_rows_pending_and_emit(tasks, local):
    events = []
    for event in ("after_create", "after_update", "after_delete", "progress_changed"):
        tasks.subscribe(event, lambda task_id, event=event: events.append(event))

    task = tasks.add("2024-01-10", "Read", target_time=60)
    stored = local.get(Task, task.id)
    stored.sync_state = SyncState.SYNCED.value
    local.put(stored)

    tasks.set_progress(task.id, 75)
    assert local.get(Task, task.id).sync_state == SyncState.PENDING
    tasks.set_progress(task.id, 75)
    tasks.soft_delete(task.id)

    assert events == [
        "after_create",
        "after_update",
        "progress_changed",
        "after_update",
        "after_delete",
    ]


def test_failing_listener_does_not_break_writes(tasks):
    def boom(task_id):
        raise RuntimeError("listener failed")

    tasks.subscribe("after_create", boom)

    assert tasks.add("2024-01-10", "Read").id is not None
    with pytest.raises(ValueError):
        tasks.subscribe("after_sync", boom)


def test_progress_from_linked_and_named_sessions(tasks, sessions):
    task = tasks.add("2024-01-10", "Read", target_time=90)
    sessions.add("2024-01-10", "09:00", "09:45", task_id=task.id)
    sessions.add("2024-01-10", "13:00", "13:30", custom_name="Read")
    sessions.add("2024-01-10", "15:00", "16:00", custom_name="Run")
    sessions.add("2024-01-11", "09:00", "10:00", custom_name="Read")

    assert tasks.calculate_task_progress(task.id) == 83

    updated = tasks.refresh_progress(task.id)
    assert updated.progress == 83
    assert updated.status == "on-track"


def test_progress_without_target_is_zero(tasks, sessions):
    task = tasks.add("2024-01-10", "Read")
    sessions.add("2024-01-10", "09:00", "10:00", custom_name="Read")

    assert tasks.calculate_task_progress(task.id) == 0


def test_status_follows_progress():
    assert derive_status(0) == "lagging"
    assert derive_status(59) == "lagging"
    assert derive_status(60) == "on-track"
    assert derive_status(100) == "on-track"
    assert derive_status(101) == "overachiever"
    assert derive_status(70, threshold=80) == "lagging"


def test_session_slot_is_unique(sessions):
    first = sessions.add("2024-01-10", "9:00", "10:00", category_type="work")

    assert first.start_time == "09:00"
    with pytest.raises(ValueError):
        sessions.add("2024-01-10", "09:00", "10:00")
    with pytest.raises(ValueError):
        sessions.add("2024-01-10", "25:00", "26:00")
    with pytest.raises(ValueError):
        sessions.add("2024-01-10", "11:00", "12:00", category_type="play")

    sessions.soft_delete(first.id)
    assert sessions.add("2024-01-10", "09:00", "10:00").id == first.id


def test_sleep_is_one_entry_per_day(session_factory):
    sleep = SleepService(session_factory)

    first = sleep.record("2024-01-10", wake_up_time="07:00")
    second = sleep.record("2024-01-10", wake_up_time="06:30", bed_time="23:00")

    assert first.id == second.id
    assert sleep.get("2024-01-10").wake_up_time == "06:30"


def test_generate_tasks_from_templates(templates, tasks):
    templates.add("Read", target_time=30, remote_id="tpl-1")
    templates.add("Gym", repeat_pattern="weekly", repeat_days=[1, 3])
    templates.add("Swim", repeat_pattern="custom", repeat_days=[0])
    paused = templates.add("Paint")
    templates.set_active(paused.id, False)

    # 2024-01-08 is a Monday
    created = templates.generate_tasks_from_templates("2024-01-08")

    assert sorted(t.name for t in created) == ["Gym", "Read"]
    read = next(t for t in created if t.name == "Read")
    assert read.is_repeating is True
    assert read.template_id == "tpl-1"
    assert read.sync_state == SyncState.PENDING
    assert templates.generate_tasks_from_templates("2024-01-08") == []


def test_soft_deleted_task_blocks_generation(templates, tasks):
    templates.add("Read")
    [task] = templates.generate_tasks_from_templates("2024-01-08")
    tasks.soft_delete(task.id)

    assert templates.generate_tasks_from_templates("2024-01-08") == []


def test_template_validation(templates):
    with pytest.raises(ValueError):
        templates.add("Gym", repeat_pattern="weekly")
    with pytest.raises(ValueError):
        templates.add("Gym", repeat_pattern="monthly")
    with pytest.raises(ValueError):
        templates.add("Gym", repeat_pattern="custom", repeat_days=[7])


def test_is_scheduled_uses_sunday_first_weekdays(templates):
    sunday_only = templates.add("Swim", repeat_pattern="weekly", repeat_days=[0])

    assert is_scheduled(sunday_only, "2024-01-07")
    assert not is_scheduled(sunday_only, "2024-01-08")


def test_template_streaks_follow_task_progress(templates, tasks):
    template = templates.add("Read", remote_id="tpl-1", min_completion_target=50)
    monday = tasks.add("2024-01-08", "Read", template_id="tpl-1")
    tuesday = tasks.add("2024-01-09", "Read", template_id="tpl-1")

    tasks.set_progress(monday.id, 120)
    templates.record_progress(tasks.get(monday.id))
    tasks.set_progress(tuesday.id, 80)
    updated = templates.record_progress(tasks.get(tuesday.id))

    assert (updated.achiever_streak, updated.fighter_streak) == (2, 0)
    assert updated.last_completed_date == "2024-01-09"
    assert tasks.get(tuesday.id).status == "on-track"

    tasks.set_progress(tuesday.id, 0)
    assert templates.record_progress(tasks.get(tuesday.id)) is None
    assert templates.get(template.id).achiever_streak == 2
