"""Tests for calendar task orchestration."""

import threading
from datetime import datetime, timezone

import pytest

from conftest import FakeCalendarStore, FakeDataSource, ProgressRecorder
from sky_calendars.calendars.registry import calendar_names
from sky_calendars.errors import PermissionDenied, TaskAlreadyRunning
from sky_calendars.models.calendar import ReminderMethod, TaskAction, TaskItem
from sky_calendars.models.location import Location
from sky_calendars.preferences import NOTE_LOCATION_NAME, CalendarSettings
from sky_calendars.reminders import ReminderManager
from sky_calendars.task import (
    MESSAGE_CLEARING,
    CalendarTask,
    CalendarTaskRunner,
    pending_items,
)

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_task(
    calendar_settings: CalendarSettings,
    store: FakeCalendarStore,
    data_source: FakeDataSource,
    progress: ProgressRecorder,
):
    def factory(clear: bool = False, source=None) -> CalendarTask:
        return CalendarTask(
            calendar_settings,
            store,
            source or data_source,
            clear=clear,
            listener=progress,
        )
    return factory


class TestPendingItems:
    def test_last_item_per_calendar_wins(self):
        items = [
            TaskItem(calendar="daylight"),
            TaskItem(calendar="civil"),
            TaskItem(calendar="daylight", action=TaskAction.DELETE),
        ]
        pending = pending_items(items)

        assert set(pending) == {"daylight", "civil"}
        assert pending["daylight"].action == TaskAction.DELETE


class TestUpdate:
    """Tests for generating calendars."""

    def test_generates_calendar(self, make_task, store: FakeCalendarStore):
        result = make_task().run([TaskItem(calendar="daylight")], now=NOW)

        assert result.success
        assert store.has_calendar("daylight")
        calendar_id = store.query_calendar_id("daylight")
        assert len(store.written[calendar_id]) == 30  # 10 rows x 3 flags
        assert {r.minutes for r in store.reminders[calendar_id]} == {0}
        assert len(store.reminders[calendar_id]) == 30

    def test_window_from_settings(
        self, make_task, calendar_settings: CalendarSettings, data_source: FakeDataSource
    ):
        calendar_settings.set_window(0, 0)
        result = make_task().run([TaskItem(calendar="daylight")], now=NOW)

        assert result.window.start == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert result.window.end == datetime(2025, 1, 1, tzinfo=timezone.utc)
        _, start, end, _ = data_source.queries[0]
        assert (start, end) == (result.window.start, result.window.end)

    def test_records_sync(self, make_task, calendar_settings: CalendarSettings):
        make_task().run([TaskItem(calendar="daylight")], now=NOW)

        assert calendar_settings.last_sync_time() == NOW
        assert calendar_settings.is_first_launch() is False

    def test_calendars_processed_in_name_order(self, make_task, data_source: FakeDataSource):
        items = [TaskItem(calendar="solstice"), TaskItem(calendar="daylight")]
        make_task().run(items, now=NOW)

        assert [q[0] for q in data_source.queries] == ["sun", "season"]

    def test_existing_calendar_pruned_then_refused(self, make_task, store: FakeCalendarStore):
        calendar_id = store.add_calendar("daylight", event_count=3)

        result = make_task().run([TaskItem(calendar="daylight")], now=NOW)

        assert not result.success
        assert "already exists" in result.last_error
        assert store.pruned == [(calendar_id, datetime(2023, 1, 1, tzinfo=timezone.utc))]

    def test_missing_location(self, make_task, store: FakeCalendarStore):
        result = make_task(source=FakeDataSource(location=None)).run(
            [TaskItem(calendar="daylight")], now=NOW
        )

        assert not result.success
        assert "location" in result.last_error
        assert not store.has_calendar("daylight")

    def test_failure_does_not_stop_other_calendars(self, make_task, store: FakeCalendarStore):
        store.add_calendar("civil")
        items = [TaskItem(calendar="civil"), TaskItem(calendar="daylight")]

        result = make_task().run(items, now=NOW)

        assert not result.success
        assert store.written[store.query_calendar_id("daylight")]

    def test_failed_run_does_not_record_sync(
        self, make_task, store: FakeCalendarStore, calendar_settings: CalendarSettings
    ):
        store.add_calendar("daylight")
        make_task().run([TaskItem(calendar="daylight")], now=NOW)
        assert calendar_settings.last_sync_time() is None

    def test_progress_ends_with_done(self, make_task, progress: ProgressRecorder):
        make_task().run([TaskItem(calendar="daylight"), TaskItem(calendar="civil")], now=NOW)

        outer, inner = progress.updates[-1]
        assert outer.current == outer.total == 2
        assert inner is None


class TestUnknownCalendars:
    """Tests for calendar names with no generator."""

    def test_sole_unknown_item_fails(self, make_task):
        result = make_task().run([TaskItem(calendar="rainbow")], now=NOW)

        assert not result.success
        assert result.last_error == "Unrecognized calendar rainbow"

    def test_unknown_last_item_aborts(self, make_task, store: FakeCalendarStore):
        items = [TaskItem(calendar="daylight"), TaskItem(calendar="zodiac")]
        result = make_task().run(items, now=NOW)

        assert not result.success
        assert store.has_calendar("daylight")

    def test_unknown_middle_item_skipped(self, make_task, store: FakeCalendarStore):
        items = [TaskItem(calendar="civil"), TaskItem(calendar="comet")]
        items.append(TaskItem(calendar="daylight"))

        result = make_task().run(items, now=NOW)

        assert result.success
        assert "Unrecognized calendar comet" in result.errors
        assert store.has_calendar("civil")
        assert store.has_calendar("daylight")


class TestDelete:
    """Tests for removing calendars."""

    def test_removes_reminders_calendar_and_notes(
        self,
        make_task,
        store: FakeCalendarStore,
        calendar_settings: CalendarSettings,
    ):
        make_task().run([TaskItem(calendar="daylight")], now=NOW)
        assert calendar_settings.calendar_note("daylight", NOTE_LOCATION_NAME)

        result = make_task().run(
            [TaskItem(calendar="daylight", action=TaskAction.DELETE)], now=NOW
        )

        assert result.success
        assert not store.has_calendar("daylight")
        assert calendar_settings.calendar_note("daylight", NOTE_LOCATION_NAME) is None

    def test_reminders_removed_in_event_chunks(
        self,
        make_task,
        store: FakeCalendarStore,
        calendar_settings: CalendarSettings,
        data_source: FakeDataSource,
    ):
        """40 events with 2 reminders each: one chunk of 40 event ids."""
        ReminderManager(calendar_settings).add("moonphase", 15, ReminderMethod.ALERT)
        data_source.row_count = 10  # 4 phases per row
        make_task().run([TaskItem(calendar="moonphase")], now=NOW)
        assert store.reminder_count("moonphase") == 80

        make_task().run([TaskItem(calendar="moonphase", action=TaskAction.DELETE)], now=NOW)

        assert store.removed_reminder_batches == [40]
        assert store.removed_calendars == ["moonphase"]

    def test_missing_calendar_fails(self, make_task):
        result = make_task().run(
            [TaskItem(calendar="daylight", action=TaskAction.DELETE)], now=NOW
        )
        assert not result.success


class TestReminderActions:
    """Tests for reminder-only actions."""

    def test_reminders_update_rewrites(
        self, make_task, store: FakeCalendarStore, calendar_settings: CalendarSettings
    ):
        make_task().run([TaskItem(calendar="daylight")], now=NOW)
        assert store.reminder_count("daylight") == 30

        ReminderManager(calendar_settings).add("daylight", 15, ReminderMethod.ALERT)
        result = make_task().run(
            [TaskItem(calendar="daylight", action=TaskAction.REMINDERS_UPDATE)], now=NOW
        )

        assert result.success
        assert store.reminder_count("daylight") == 60

    def test_reminders_update_needs_calendar(self, make_task):
        result = make_task().run(
            [TaskItem(calendar="daylight", action=TaskAction.REMINDERS_UPDATE)], now=NOW
        )
        assert not result.success

    def test_reminders_delete(self, make_task, store: FakeCalendarStore):
        make_task().run([TaskItem(calendar="daylight")], now=NOW)

        result = make_task().run(
            [TaskItem(calendar="daylight", action=TaskAction.REMINDERS_DELETE)], now=NOW
        )

        assert result.success
        assert store.reminder_count("daylight") == 0
        assert store.has_calendar("daylight")


class TestClear:
    """Tests for clearing every calendar before a run."""

    def test_clear_then_regenerate(
        self, make_task, store: FakeCalendarStore, progress: ProgressRecorder
    ):
        old_id = store.add_calendar("daylight", event_count=5)
        store.add_calendar("civil", event_count=5)

        result = make_task(clear=True).run([TaskItem(calendar="daylight")], now=NOW)

        assert result.success
        assert "civil" in store.removed_calendars
        assert store.query_calendar_id("daylight") != old_id
        clearing = [o for o, _ in progress.updates if o.message == MESSAGE_CLEARING]
        assert clearing[-1].current == clearing[-1].total == len(calendar_names())

    def test_clear_removes_foreign_calendars(self, make_task, store: FakeCalendarStore):
        store.add_calendar("leftover")
        make_task(clear=True).run([], now=NOW)
        assert not store.has_calendar("leftover")


class TestErrors:
    """Tests for run-level failures."""

    def test_permission_denied_aborts(self, make_task, store: FakeCalendarStore):
        store.fail_events = PermissionDenied("token revoked")
        items = [TaskItem(calendar="daylight"), TaskItem(calendar="solstice")]

        result = make_task().run(items, now=NOW)

        assert not result.success
        assert result.last_error.startswith("Unable to access calendar store!")
        assert not store.has_calendar("solstice")

    def test_cancelled_before_start(self, make_task, store: FakeCalendarStore):
        from sky_calendars.context import CancelToken

        cancel = CancelToken()
        cancel.cancel()
        result = make_task().run([TaskItem(calendar="daylight")], cancel=cancel, now=NOW)

        assert not result.success
        assert result.cancelled
        assert not store.has_calendar("daylight")


class BlockingDataSource(FakeDataSource):
    """Data source that waits until released, to hold a run open."""

    def __init__(self, location: Location):
        super().__init__(location=location)
        self.started = threading.Event()
        self.release = threading.Event()

    def query(self, resource, start, end, projection):
        self.started.set()
        self.release.wait(timeout=5)
        return super().query(resource, start, end, projection)


class TestCalendarTaskRunner:
    """Tests for the single background worker."""

    def test_runs_in_background(self, make_task):
        with CalendarTaskRunner() as runner:
            future = runner.submit(make_task(), [TaskItem(calendar="daylight")], now=NOW)
            result = future.result(timeout=10)

        assert result.success
        assert not runner.running

    def test_rejects_second_run(self, make_task, sample_location: Location):
        source = BlockingDataSource(sample_location)
        task = make_task(source=source)

        with CalendarTaskRunner() as runner:
            future = runner.submit(task, [TaskItem(calendar="daylight")], now=NOW)
            assert source.started.wait(timeout=5)

            with pytest.raises(TaskAlreadyRunning):
                runner.submit(task, [TaskItem(calendar="civil")], now=NOW)

            source.release.set()
            future.result(timeout=10)

    def test_cancel(self, make_task, sample_location: Location, store: FakeCalendarStore):
        source = BlockingDataSource(sample_location)
        items = [TaskItem(calendar="daylight"), TaskItem(calendar="solstice")]

        with CalendarTaskRunner() as runner:
            future = runner.submit(make_task(source=source), items, now=NOW)
            assert source.started.wait(timeout=5)
            assert runner.cancel()
            source.release.set()
            result = future.result(timeout=10)

        assert not result.success
        assert result.cancelled
        assert not store.has_calendar("solstice")

    def test_cancel_without_run(self):
        with CalendarTaskRunner() as runner:
            assert runner.cancel() is False
