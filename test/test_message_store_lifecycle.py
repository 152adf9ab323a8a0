import asyncio
from datetime import datetime, timedelta

from chat_assistant.models import LinkMetadata, LinkPreview
from storage.message_store import MessageStore

from conftest import FakeCalendar, FakeScheduler

WHEN = datetime(2030, 5, 1, 15, 0)


def run(coro):
    return asyncio.run(coro)


def test_add_message_is_newest_first_and_unread(store, badge):
    async def scenario():
        first = await store.add_message("First", "note")
        second = await store.add_message("Second", "todo")
        await asyncio.sleep(0)
        return first, second

    first, second = run(scenario())
    assert [m.id for m in store.messages] == [second.id, first.id]
    assert store.unread_count() == 2
    assert badge.counts[-1] == 2


def test_set_reminder_schedules_notification_and_calendar(store, scheduler, calendar):
    async def scenario():
        m = await store.add_message("Call mom", "reminder")
        return await store.set_reminder_date(m.id, WHEN)

    updated = run(scenario())
    assert updated.reminder_date == WHEN
    assert updated.notification_id in scheduler.active
    assert scheduler.active[updated.notification_id] == ("Reminder", "Call mom", WHEN)

    event = calendar.events[updated.calendar_event_id]
    assert event.start == WHEN
    assert event.end == WHEN + timedelta(minutes=30)
    assert event.lead_minutes == 15


def test_rescheduling_tears_down_previous_handles_once(store, scheduler, calendar):
    async def scenario():
        m = await store.add_message("Dentist", "reminder")
        first = await store.set_reminder_date(m.id, WHEN)
        second = await store.set_reminder_date(m.id, WHEN + timedelta(hours=1))
        return first, second

    first, second = run(scenario())
    current = store.get_message(second.id)
    assert current.notification_id == second.notification_id != first.notification_id
    assert current.calendar_event_id == second.calendar_event_id != first.calendar_event_id
    assert scheduler.cancelled == [first.notification_id]
    assert calendar.removed == [first.calendar_event_id]
    assert list(scheduler.active) == [second.notification_id]


def test_concurrent_reschedules_leave_one_live_alert(store, scheduler, calendar):
    async def scenario():
        m = await store.add_message("Gym", "reminder")
        await asyncio.gather(
            store.set_reminder_date(m.id, WHEN),
            store.set_reminder_date(m.id, WHEN + timedelta(days=1)),
        )
        return store.get_message(m.id)

    final = run(scenario())
    assert list(scheduler.active) == [final.notification_id]
    assert list(calendar.events) == [final.calendar_event_id]


def test_calendar_failure_does_not_block_notification(scheduler, badge):
    store = MessageStore(notifier=scheduler, calendar=FakeCalendar(fail_add=True), badge=badge)

    async def scenario():
        m = await store.add_message("Pay rent", "reminder")
        return await store.set_reminder_date(m.id, WHEN)

    updated = run(scenario())
    assert updated.notification_id is not None
    assert updated.reminder_date == WHEN
    assert updated.calendar_event_id is None


def test_scheduler_failure_leaves_reminder_unscheduled(calendar):
    store = MessageStore(notifier=FakeScheduler(fail=True), calendar=calendar)

    async def scenario():
        m = await store.add_message("Pay rent", "reminder")
        return await store.set_reminder_date(m.id, WHEN)

    updated = run(scenario())
    assert updated.reminder_date is None
    assert updated.notification_id is None
    assert updated.calendar_event_id is None
    assert calendar.events == {}


def test_set_reminder_on_unknown_id_is_noop(store, scheduler):
    assert run(store.set_reminder_date("missing", WHEN)) is None
    assert scheduler.active == {}


def test_cancel_reminder_clears_all_fields(store, scheduler, calendar):
    async def scenario():
        m = await store.add_message("Call mom", "reminder")
        await store.set_reminder_date(m.id, WHEN)
        return await store.cancel_reminder(m.id)

    cleared = run(scenario())
    assert cleared.reminder_date is None
    assert cleared.notification_id is None
    assert cleared.calendar_event_id is None
    assert scheduler.active == {}
    assert calendar.events == {}


def test_cancel_without_reminder_is_noop(store, scheduler):
    async def scenario():
        m = await store.add_message("Call mom", "reminder")
        return m, await store.cancel_reminder(m.id)

    original, result = run(scenario())
    assert result == original
    assert scheduler.cancelled == []
    assert run(store.cancel_reminder("missing")) is None


def test_delete_message_removes_external_resources(store, scheduler, calendar, badge):
    async def scenario():
        m = await store.add_message("Call mom", "reminder")
        await store.set_reminder_date(m.id, WHEN)
        deleted = await store.delete_message(m.id)
        await asyncio.sleep(0)
        return deleted

    assert run(scenario()) is True
    assert store.messages == []
    assert scheduler.active == {}
    assert calendar.events == {}
    assert badge.counts[-1] == 0


def test_delete_survives_calendar_failure(scheduler):
    store = MessageStore(notifier=scheduler, calendar=FakeCalendar(fail_remove=True))

    async def scenario():
        m = await store.add_message("Call mom", "reminder")
        await store.set_reminder_date(m.id, WHEN)
        return await store.delete_message(m.id)

    assert run(scenario()) is True
    assert store.messages == []
    assert scheduler.active == {}


def test_delete_unknown_id_is_noop(store):
    assert run(store.delete_message("missing")) is False


def test_delete_all_todos_leaves_other_types(store, scheduler, calendar):
    async def scenario():
        todo = await store.add_message("Buy milk", "todo")
        note = await store.add_message("Idea", "note")
        reminder = await store.add_message("Dentist", "reminder")
        await store.set_reminder_date(reminder.id, WHEN)
        deleted = await store.delete_all_messages("todo")
        return todo, note, reminder, deleted

    todo, note, reminder, deleted = run(scenario())
    assert deleted == 1
    assert store.get_message(todo.id) is None
    assert {m.id for m in store.messages} == {note.id, reminder.id}
    assert len(scheduler.active) == 1
    assert len(calendar.events) == 1


def test_delete_all_tears_down_every_reminder(store, scheduler, calendar):
    async def scenario():
        for i in range(3):
            m = await store.add_message(f"Reminder {i}", "reminder")
            await store.set_reminder_date(m.id, WHEN + timedelta(minutes=i))
        return await store.delete_all_messages()

    assert run(scenario()) == 3
    assert store.messages == []
    assert scheduler.active == {}
    assert calendar.events == {}


def test_mark_as_read_is_idempotent(store, badge):
    async def scenario():
        m = await store.add_message("Hello", "note")
        store.mark_as_read(m.id)
        store.mark_as_read(m.id)
        await asyncio.sleep(0)
        return m

    m = run(scenario())
    assert store.get_message(m.id).is_read is True
    assert store.unread_count() == 0
    assert badge.counts == [1, 0]


def test_toggle_completed(store):
    async def scenario():
        m = await store.add_message("Buy milk", "todo")
        store.toggle_completed(m.id)
        return m

    m = run(scenario())
    assert store.get_message(m.id).is_completed is True
    store.toggle_completed(m.id)
    assert store.get_message(m.id).is_completed is False
    assert store.toggle_completed("missing") is None


def test_filtered_messages(store):
    async def scenario():
        await store.add_message("a", "todo")
        await store.add_message("b", "note")
        await store.add_message("c", "todo")

    run(scenario())
    assert [m.text for m in store.get_filtered_messages("todo")] == ["c", "a"]
    assert len(store.get_filtered_messages()) == 3


def test_observers_receive_snapshots(store):
    seen = []
    unsubscribe = store.subscribe(lambda snapshot: seen.append(len(snapshot)))

    async def scenario():
        m = await store.add_message("a", "note")
        unsubscribe()
        await store.delete_message(m.id)

    run(scenario())
    assert seen == [1]


def test_link_previews_are_enriched(store, fetcher):
    fetcher.results["https://good.com"] = LinkMetadata(
        title="Good", description="A page", image_url="https://good.com/i.png"
    )

    async def scenario():
        m = await store.add_message("see https://good.com and https://bad.org", "note")
        assert all(link.loading for link in m.links)
        await store.wait_for_pending()
        return store.get_message(m.id)

    m = run(scenario())
    good, bad = m.links
    assert good.url == "https://good.com"
    assert (good.title, good.image, good.loading, good.error) == (
        "Good",
        "https://good.com/i.png",
        False,
        False,
    )
    assert bad.loading is False and bad.error is True


def test_preview_after_delete_is_dropped(store):
    async def scenario():
        m = await store.add_message("see https://slow.net", "note")
        await store.delete_message(m.id)
        await store.wait_for_pending()
        return m

    m = run(scenario())
    result = store.update_link_preview(m.id, LinkPreview(url="https://slow.net", title="Late"))
    assert result is None
    assert store.messages == []


def test_resolved_preview_never_goes_back(store):
    async def scenario():
        m = await store.add_message("see https://x.org", "note")
        await store.wait_for_pending()
        return m

    m = run(scenario())
    store.update_link_preview(m.id, LinkPreview(url="https://x.org", loading=True))
    link = store.get_message(m.id).links[0]
    assert link.loading is False and link.error is True


def test_no_fetcher_means_no_previews(scheduler):
    store = MessageStore(notifier=scheduler)
    m = run(store.add_message("see https://x.org", "note"))
    assert m.links == []
