"""Calendar task orchestration.

A task run takes a set of (calendar, action) items and applies them to the
calendar store, one calendar at a time.

## Run

1. Optionally clear everything: for every known calendar, clear its notes
   and, if it is in the store, remove its reminders and the calendar.
2. Compute the window and resolve the location, once for the whole run.
3. Process the items in sorted calendar-name order:
   - `DELETE`: remove reminders, remove the calendar, clear notes
   - `REMINDERS_DELETE`: remove reminders
   - `REMINDERS_UPDATE`: remove reminders, then create them again
   - `UPDATE`: generate the calendar (needs a location; an existing
     calendar is pruned to the window first and then refused)

One failing calendar fails the run without stopping the others. A refused
store permission aborts the run at once. An unrecognized calendar name is
recorded and skipped, except when it is the only or the last item, which
ends the run as a failure.

Cancellation is checked before clearing, before each calendar, and inside
every write loop; a cancelled run reports failure.

## Progress

Listeners receive `(outer, inner)`: the outer level counts calendars, the
inner level rows or events of the current calendar.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sky_calendars.astronomy.source import DataSource
from sky_calendars.calendars.base import EventGenerator
from sky_calendars.calendars.registry import CALENDARS, calendar_names, create_generator
from sky_calendars.context import (
    CancelToken,
    ProgressListener,
    TaskContext,
    TaskProgress,
)
from sky_calendars.errors import (
    CalendarError,
    CalendarNotFound,
    PermissionDenied,
    TaskAlreadyRunning,
    TaskCancelled,
)
from sky_calendars.models.calendar import CalendarWindow, TaskAction, TaskItem
from sky_calendars.preferences import CalendarSettings
from sky_calendars.reminders import ReminderManager
from sky_calendars.store.base import CalendarStore
from sky_calendars.window import compute_window

logger = logging.getLogger(__name__)

MESSAGE_CLEARING = "Clearing calendars"
MESSAGE_UPDATING = "Updating calendars"
MESSAGE_REMINDERS = "Updating reminders"
MESSAGE_DONE = "Done"


@dataclass
class TaskResult:
    """Outcome of a task run."""

    success: bool = True
    last_error: str | None = None
    errors: list[str] = field(default_factory=list)
    cancelled: bool = False
    window: CalendarWindow | None = None

    def fail(self, message: str | None = None) -> None:
        self.success = False
        if message:
            self.last_error = message
            self.errors.append(message)


def pending_items(items: Iterable[TaskItem]) -> dict[str, TaskItem]:
    """Key items by calendar name; a later item for the same name wins."""
    pending: dict[str, TaskItem] = {}
    for item in items:
        pending[item.calendar] = item
    return pending


class CalendarTask:
    """Applies task items to a calendar store.

    Example:
        ```python
        task = CalendarTask(settings, store, data_source)
        result = task.run([TaskItem(calendar="daylight")])
        if not result.success:
            print(result.last_error)
        ```
    """

    def __init__(
        self,
        settings: CalendarSettings,
        store: CalendarStore,
        data_source: DataSource,
        clear: bool = False,
        listener: ProgressListener | None = None,
    ):
        """Initialize the task.

        Args:
            settings: Calendar settings, read for the whole run
            store: Calendar store to write to
            data_source: Astronomical data source
            clear: Remove every known calendar before processing items
            listener: Receives (outer, inner) progress
        """
        self.settings = settings
        self.store = store
        self.data_source = data_source
        self.clear = clear
        self.listener = listener

    def run(
        self,
        items: Iterable[TaskItem],
        cancel: CancelToken | None = None,
        now: datetime | None = None,
    ) -> TaskResult:
        """Run the task.

        Args:
            items: Calendar/action pairs; the last one per calendar wins
            cancel: Token to request cancellation from another thread
            now: Reference time for the window (default: current time)

        Returns:
            TaskResult; `success` is False on any failure or cancellation
        """
        ctx = TaskContext(
            settings=self.settings,
            store=self.store,
            data_source=self.data_source,
            cancel=cancel or CancelToken(),
            listener=self.listener,
        )
        pending = pending_items(items)
        result = TaskResult()
        now = now or datetime.now(timezone.utc)
        started = time.perf_counter()

        try:
            ctx.cancel.raise_if_cancelled()
            if self.clear:
                self._clear_all(ctx, result)

            result.window = compute_window(
                now, self.settings.window_past_ms(), self.settings.window_future_ms()
            )
            ctx.location = self.data_source.query_location()
            logger.info(
                f"Processing {len(pending)} calendars for window "
                f"{result.window.start.isoformat()} - {result.window.end.isoformat()}"
            )
            self._process_all(ctx, pending, result)

        except TaskCancelled:
            logger.info("Calendar task cancelled")
            result.cancelled = True
            result.fail("Cancelled")
        except PermissionDenied as e:
            logger.error(f"Unable to access calendar store! {e}")
            result.fail(f"Unable to access calendar store! {e}")
        except CalendarError as e:
            logger.exception("Calendar task failed")
            result.fail(str(e))

        elapsed = (time.perf_counter() - started) * 1000
        logger.info(f"Calendar task finished in {elapsed:.1f} ms (success={result.success})")

        if result.success:
            self.settings.save_last_sync_time(now)
            self.settings.save_first_launch()
        return result

    def _clear_all(self, ctx: TaskContext, result: TaskResult) -> None:
        names = calendar_names()
        total = len(names)
        reminders = ReminderManager(self.settings)
        ctx.publish(TaskProgress(0, total, MESSAGE_CLEARING))

        for i, name in enumerate(names):
            ctx.cancel.raise_if_cancelled()
            self.settings.clear_notes(name)
            if not ctx.store.has_calendar(name):
                continue

            outer = TaskProgress(i, total, CALENDARS[name].title)
            ctx.publish(outer)
            if not reminders.remove_reminders(ctx, name, outer, MESSAGE_CLEARING):
                result.fail(f"Failed to remove reminders of {name}")
            ctx.store.remove_calendar(name)

        removed = ctx.store.remove_calendars()
        if removed:
            logger.info(f"Removed {removed} remaining calendars")
        ctx.publish(TaskProgress(total, total, MESSAGE_CLEARING))

    def _process_all(
        self,
        ctx: TaskContext,
        pending: dict[str, TaskItem],
        result: TaskResult,
    ) -> None:
        names = sorted(pending)
        total = len(names)
        ctx.publish(TaskProgress(0, total, MESSAGE_UPDATING))

        for c, name in enumerate(names):
            ctx.cancel.raise_if_cancelled()

            item = pending[name]
            generator = create_generator(name)
            if generator is None:
                error = str(CalendarNotFound(name))
                logger.warning(error)
                result.last_error = error
                result.errors.append(error)
                if total == 1 or c == total - 1:
                    result.success = False
                    return
                continue

            generator.init(self.settings)
            outer = TaskProgress(c, total, generator.descriptor().title)
            ctx.publish(outer, TaskProgress(0, 1, outer.message))

            try:
                ok = self._process(ctx, generator, item.action, result.window, outer)
            except PermissionDenied:
                raise
            except CalendarError as e:
                logger.exception(f"Failed to {item.action.value} {name}")
                generator.last_error = str(e)
                ok = False

            if not ok:
                result.fail(generator.last_error or f"Failed to {item.action.value} {name}")

        ctx.cancel.raise_if_cancelled()
        ctx.publish(TaskProgress(total, total, MESSAGE_DONE))

    def _process(
        self,
        ctx: TaskContext,
        generator: EventGenerator,
        action: TaskAction,
        window: CalendarWindow,
        outer: TaskProgress,
    ) -> bool:
        name = generator.calendar_name
        reminders = ReminderManager(self.settings)

        if action == TaskAction.DELETE:
            ok = reminders.remove_reminders(ctx, name, outer, MESSAGE_CLEARING)
            removed = ctx.store.remove_calendar(name)
            self.settings.clear_notes(name)
            if not removed:
                generator.last_error = f"Failed to remove calendar {name}"
            return ok and removed

        if action == TaskAction.REMINDERS_DELETE:
            return reminders.remove_reminders(ctx, name, outer, MESSAGE_REMINDERS)

        if action == TaskAction.REMINDERS_UPDATE:
            calendar_id = ctx.store.query_calendar_id(name)
            if calendar_id is None:
                generator.last_error = f"Calendar {name} does not exist"
                return False
            ok = reminders.remove_reminders(ctx, name, outer, MESSAGE_REMINDERS)
            return reminders.create_reminders(
                ctx, name, calendar_id, outer, MESSAGE_REMINDERS
            ) and ok

        return self._update(ctx, generator, window, outer)

    def _update(
        self,
        ctx: TaskContext,
        generator: EventGenerator,
        window: CalendarWindow,
        outer: TaskProgress,
    ) -> bool:
        name = generator.calendar_name
        if ctx.location is None:
            generator.last_error = f"Unable to generate {name}: location unavailable"
            logger.error(generator.last_error)
            return False

        calendar_id = ctx.store.query_calendar_id(name)
        if calendar_id is not None:
            pruned = ctx.store.remove_calendar_events_before(calendar_id, window.start)
            logger.info(f"Removed {pruned} events of {name} before {window.start.isoformat()}")

        started = time.perf_counter()
        ok = generator.init_calendar(ctx, window, outer)
        elapsed = (time.perf_counter() - started) * 1000
        logger.info(f"Generated {name} in {elapsed:.1f} ms")
        return ok


class CalendarTaskRunner:
    """Runs calendar tasks on a single background worker, one at a time.

    Example:
        ```python
        with CalendarTaskRunner() as runner:
            future = runner.submit(task, items)
            ...
            runner.cancel()
            result = future.result()
        ```
    """

    def __init__(self):
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="sky-calendars")
        self._lock = threading.Lock()
        self._future: Future[TaskResult] | None = None
        self._cancel: CancelToken | None = None

    @property
    def running(self) -> bool:
        return self._future is not None and not self._future.done()

    def submit(
        self,
        task: CalendarTask,
        items: Iterable[TaskItem],
        now: datetime | None = None,
    ) -> Future[TaskResult]:
        """Start a task run in the background.

        Raises:
            TaskAlreadyRunning: If a previous run has not finished
        """
        with self._lock:
            if self.running:
                raise TaskAlreadyRunning("A calendar task is already running")
            self._cancel = CancelToken()
            self._future = self._executor.submit(task.run, list(items), self._cancel, now)
            return self._future

    def cancel(self) -> bool:
        """Request cancellation of the active run. Returns False if none is active."""
        with self._lock:
            if not self.running or self._cancel is None:
                return False
            self._cancel.cancel()
            return True

    def shutdown(self, wait: bool = True) -> None:
        self.cancel()
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> CalendarTaskRunner:
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()
