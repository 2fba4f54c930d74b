"""Command-line interface for astronomical calendars."""

from __future__ import annotations

import argparse
import logging
import sys
from concurrent.futures import Future

from sky_calendars.astronomy.source import AstronomyDataSource
from sky_calendars.calendars.registry import CALENDARS, calendar_names
from sky_calendars.config import Settings, get_settings
from sky_calendars.context import TaskProgress
from sky_calendars.models.calendar import ReminderMethod, TaskAction, TaskItem
from sky_calendars.preferences import NOTE_LOCATION_NAME, CalendarSettings, SqlPreferenceStore
from sky_calendars.reminders import ReminderManager
from sky_calendars.store.base import CalendarStore
from sky_calendars.store.google_calendar import GoogleCalendarStore
from sky_calendars.store.sql import SqlCalendarStore
from sky_calendars.task import CalendarTask, CalendarTaskRunner, TaskResult

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sky-calendars",
        description="Sky Calendars - Write sun and moon events into a calendar store",
    )
    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s 0.1.0",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # List command
    subparsers.add_parser("list", help="List calendars and their state")

    # Sync command
    sync_parser = subparsers.add_parser("sync", help="Generate calendars")
    sync_parser.add_argument(
        "calendars",
        nargs="*",
        metavar="CALENDAR",
        help="Calendars to generate (default: the enabled ones)",
    )
    sync_parser.add_argument(
        "--clear",
        action="store_true",
        help="Remove every calendar before generating",
    )

    # Delete command
    delete_parser = subparsers.add_parser("delete", help="Remove calendars")
    delete_parser.add_argument(
        "calendars",
        nargs="+",
        metavar="CALENDAR",
        help="Calendars to remove",
    )

    # Enable / disable commands
    enable_parser = subparsers.add_parser(
        "enable", help="Enable calendars for 'sync' (default: all)"
    )
    enable_parser.add_argument("calendars", nargs="*", metavar="CALENDAR")
    disable_parser = subparsers.add_parser(
        "disable", help="Disable calendars (default: turn every calendar off)"
    )
    disable_parser.add_argument("calendars", nargs="*", metavar="CALENDAR")

    # Reminders command
    reminders_parser = subparsers.add_parser("reminders", help="Manage calendar reminders")
    reminders_parser.add_argument(
        "action",
        choices=["list", "add", "remove", "clear", "update"],
        help="list slots, add a slot, remove the last slot, clear all slots, "
        "or rewrite the reminders of a generated calendar",
    )
    reminders_parser.add_argument("calendar", choices=calendar_names(), help="Calendar name")
    reminders_parser.add_argument(
        "--minutes",
        type=int,
        default=0,
        help="Minutes before the event (negative = after), for 'add'",
    )
    reminders_parser.add_argument(
        "--method",
        choices=[m.name.lower() for m in ReminderMethod if m != ReminderMethod.DISABLED],
        default="default",
        help="Reminder method, for 'add'",
    )

    return parser


def create_store(settings: Settings, sql_store: SqlCalendarStore) -> CalendarStore:
    """The calendar store selected by the settings."""
    if settings.store == "google":
        if not settings.google_store_configured:
            raise SystemExit("SKY_GOOGLE_TOKEN_FILE is required for the google store")
        return GoogleCalendarStore.from_token_file(settings.google_token_file)
    return sql_store


def print_progress(outer: TaskProgress, inner: TaskProgress | None) -> None:
    line = f"[{outer.current}/{outer.total}] {outer.message}"
    if inner is not None and inner.total:
        line += f" {inner.current}/{inner.total}"
    print(line.ljust(72), end="\r", file=sys.stderr, flush=True)


def wait_for(runner: CalendarTaskRunner, future: Future[TaskResult]) -> TaskResult:
    """Wait for a run; Ctrl-C cancels it and waits for it to stop."""
    try:
        return future.result()
    except KeyboardInterrupt:
        print("\nCancelling...", file=sys.stderr)
        runner.cancel()
        return future.result()


def run_task(
    settings: Settings,
    calendar_settings: CalendarSettings,
    store: CalendarStore,
    items: list[TaskItem],
    clear: bool = False,
) -> int:
    task = CalendarTask(
        calendar_settings,
        store,
        AstronomyDataSource(settings.location),
        clear=clear,
        listener=print_progress if sys.stderr.isatty() else None,
    )
    with CalendarTaskRunner() as runner:
        result = wait_for(runner, runner.submit(task, items))

    if sys.stderr.isatty():
        print(file=sys.stderr)
    if result.success:
        print("Done.")
        return 0
    for error in result.errors:
        print(f"Error: {error}", file=sys.stderr)
    return 1


def list_calendars(calendar_settings: CalendarSettings, store: CalendarStore) -> int:
    reminders = ReminderManager(calendar_settings)
    enabled = set(calendar_settings.enabled_calendars(calendar_names()))
    for name in calendar_names():
        state = "present" if store.has_calendar(name) else "-"
        switch = "on" if name in enabled else "off"
        location = calendar_settings.calendar_note(name, NOTE_LOCATION_NAME) or ""
        print(
            f"{name:<14} {CALENDARS[name].title:<26} {switch:<4}"
            f"{state:<8} {len(reminders.active_reminders(name))} reminders  {location}"
        )
    last_sync = calendar_settings.last_sync_time()
    print(f"Last sync: {last_sync.isoformat() if last_sync else 'never'}")
    return 0


def set_enabled(calendar_settings: CalendarSettings, names: list[str], enabled: bool) -> int:
    """Enable or disable calendars for `sync` without arguments.

    `enable` with no names enables every calendar; `disable` with no names
    turns calendars off globally and keeps the per-calendar choices.
    """
    unknown = [name for name in names if name not in CALENDARS]
    if unknown:
        print(f"Error: Unrecognized calendar {', '.join(unknown)}", file=sys.stderr)
        return 1

    if enabled:
        for name in names or calendar_names():
            calendar_settings.set_calendar_enabled(name, True)
        calendar_settings.set_calendars_enabled(True)
    elif names:
        for name in names:
            calendar_settings.set_calendar_enabled(name, False)
    else:
        calendar_settings.set_calendars_enabled(False)

    current = calendar_settings.enabled_calendars(calendar_names())
    print(f"Enabled: {', '.join(current) if current else 'none'}")
    return 0


def sync_calendars(calendar_settings: CalendarSettings, names: list[str]) -> list[str]:
    """Calendars a `sync` run covers: the named ones, else the enabled ones."""
    return names or calendar_settings.enabled_calendars(calendar_names())


def manage_reminders(
    args: argparse.Namespace,
    settings: Settings,
    calendar_settings: CalendarSettings,
    store: CalendarStore,
) -> int:
    reminders = ReminderManager(calendar_settings)
    calendar = args.calendar

    if args.action == "add":
        reminders.add(calendar, args.minutes, ReminderMethod[args.method.upper()])
    elif args.action == "remove":
        reminders.remove_last(calendar)
    elif args.action == "clear":
        reminders.remove_all(calendar)
    elif args.action == "update":
        items = [TaskItem(calendar=calendar, action=TaskAction.REMINDERS_UPDATE)]
        return run_task(settings, calendar_settings, store, items)

    for reminder in reminders.reminders(calendar):
        print(f"{reminder.index}: {reminder.minutes:>5} min  {reminder.method.name.lower()}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    sql_store = SqlCalendarStore.from_url(settings.database_url, echo=settings.database_echo)
    calendar_settings = CalendarSettings(SqlPreferenceStore(sql_store.session_factory))

    try:
        store = create_store(settings, sql_store)
        if args.command == "list":
            return list_calendars(calendar_settings, store)

        if args.command in ("enable", "disable"):
            return set_enabled(calendar_settings, args.calendars, args.command == "enable")

        if args.command == "sync":
            names = sync_calendars(calendar_settings, args.calendars)
            if not names:
                print(
                    "Error: No calendars enabled; run 'sky-calendars enable' or name them",
                    file=sys.stderr,
                )
                return 1
            if settings.location is None:
                print("Error: SKY_LATITUDE and SKY_LONGITUDE must be set", file=sys.stderr)
                return 1
            items = [TaskItem(calendar=name) for name in names]
            return run_task(settings, calendar_settings, store, items, clear=args.clear)

        if args.command == "delete":
            items = [TaskItem(calendar=name, action=TaskAction.DELETE) for name in args.calendars]
            return run_task(settings, calendar_settings, store, items)

        if args.command == "reminders":
            return manage_reminders(args, settings, calendar_settings, store)
    finally:
        sql_store.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
