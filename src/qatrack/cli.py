"""qatrack CLI: run comparison and trigger scheduling commands."""

import argparse
import logging
import sys
from datetime import datetime, timezone
from importlib.metadata import version as get_version, PackageNotFoundError
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _parse_instant(value: str) -> datetime:
    """argparse type for ISO 8601 instants; naive values are taken as UTC."""
    try:
        moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an ISO 8601 instant: {value!r}") from None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def _configure_logging(args, settings) -> None:
    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.ERROR
    else:
        level = logging.getLevelName(settings.log_level)
    logging.basicConfig(level=level, format=LOG_FORMAT)


def main():
    """Main CLI entry point for qatrack commands."""
    try:
        qatrack_version = get_version("qatrack")
    except PackageNotFoundError:
        qatrack_version = "dev"

    parser = argparse.ArgumentParser(
        prog="qatrack",
        description="qatrack: test-run comparison and scheduled trigger tooling"
    )
    parser.add_argument("--version", action="version", version=f"qatrack {qatrack_version}")
    # Common arguments
    parent_parser = argparse.ArgumentParser(add_help=False)
    parent_parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress all non-error output."
    )
    parent_parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging."
    )
    parent_parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a JSON settings file (QATRACK_* environment variables override it)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # compare command
    compare_parser = subparsers.add_parser(
        "compare",
        help="Compare a baseline test run against another run",
        parents=[parent_parser]
    )
    compare_parser.add_argument(
        "--baseline",
        type=Path,
        required=True,
        help="Path to baseline run results JSON"
    )
    compare_parser.add_argument(
        "--compare",
        dest="compare_run",
        type=Path,
        required=True,
        help="Path to compare run results JSON"
    )
    compare_parser.add_argument(
        "--out",
        type=Path,
        default=None,
        help="Output directory for comparison.md and comparison.json (prints to stdout if omitted)"
    )
    compare_parser.add_argument(
        "--report-mode",
        choices=["full", "core", "off"],
        default="full",
        help="Report mode: full (markdown+json), core (summary json only), off (exit code only)"
    )

    # next command
    next_parser = subparsers.add_parser(
        "next",
        help="Compute the next occurrence of a schedule",
        parents=[parent_parser]
    )
    next_parser.add_argument(
        "--kind",
        choices=["hourly", "daily", "weekly"],
        required=True,
        help="Recurrence kind"
    )
    next_parser.add_argument(
        "--time",
        dest="time_of_day",
        default=None,
        help="Time of day as HH:MM (defaults to the configured default)"
    )
    next_parser.add_argument(
        "--day-of-week",
        type=int,
        default=None,
        help="Day of week for weekly schedules (0 = Sunday; defaults to the configured default)"
    )
    next_parser.add_argument(
        "--timezone",
        default=None,
        help="IANA timezone (defaults to the configured default)"
    )
    next_parser.add_argument(
        "--now",
        type=_parse_instant,
        default=None,
        help="Current instant as ISO 8601 (defaults to the system clock)"
    )

    # verify command group
    verify_parser = subparsers.add_parser(
        "verify",
        help="Verification commands"
    )
    verify_subparsers = verify_parser.add_subparsers(dest="verify_command", help="Available verify commands")
    verify_trigger_parser = verify_subparsers.add_parser(
        "trigger",
        help="Verify a trigger definition",
        parents=[parent_parser]
    )
    verify_trigger_parser.add_argument(
        "trigger_path",
        type=Path,
        help="Path to trigger JSON"
    )

    # dispatch command
    dispatch_parser = subparsers.add_parser(
        "dispatch",
        help="Fire every due schedule trigger in a store file",
        parents=[parent_parser]
    )
    dispatch_parser.add_argument(
        "--store",
        type=Path,
        required=True,
        help="Path to the JSON store file"
    )
    dispatch_parser.add_argument(
        "--now",
        type=_parse_instant,
        default=None,
        help="Current instant as ISO 8601 (defaults to the system clock)"
    )

    # fire command
    fire_parser = subparsers.add_parser(
        "fire",
        help="Fire one trigger manually",
        parents=[parent_parser]
    )
    fire_parser.add_argument(
        "--store",
        type=Path,
        required=True,
        help="Path to the JSON store file"
    )
    fire_parser.add_argument(
        "--trigger",
        dest="trigger_id",
        required=True,
        help="Trigger id"
    )

    # history command
    history_parser = subparsers.add_parser(
        "history",
        help="Show the execution history of a trigger",
        parents=[parent_parser]
    )
    history_parser.add_argument(
        "--store",
        type=Path,
        required=True,
        help="Path to the JSON store file"
    )
    history_parser.add_argument(
        "--trigger",
        dest="trigger_id",
        required=True,
        help="Trigger id"
    )
    history_parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Maximum number of executions (defaults to the configured limit)"
    )

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "verify" and not args.verify_command:
        verify_parser.print_help()
        sys.exit(1)

    from .config import load_settings

    try:
        settings = load_settings(args.config)
    except (OSError, ValueError) as e:
        print(f"Error: invalid settings: {e}", file=sys.stderr)
        sys.exit(1)
    _configure_logging(args, settings)

    if args.command == "compare":
        from .report import run_compare

        try:
            output_dir: Optional[Path] = Path(args.out).resolve() if args.out else None
            return_content = output_dir is None

            exit_code, report_md, report_json = run_compare(
                Path(args.baseline).resolve(),
                Path(args.compare_run).resolve(),
                output_dir=output_dir,
                return_content=return_content,
                report_mode=args.report_mode,
                baseline_label=args.baseline.stem,
                compare_label=args.compare_run.stem,
            )

            if return_content and not args.quiet:
                if args.report_mode == "full":
                    print(report_md)
                elif args.report_mode == "core":
                    print(report_json)

            if not args.quiet:
                if output_dir and args.report_mode != "off":
                    print("[OK] Comparison complete")
                    if args.report_mode == "full":
                        print(f"  Markdown: {report_md}")
                    print(f"  JSON: {report_json}")
                status = "REGRESSED" if exit_code else "OK"
                print(f"  Status: {status}")

            sys.exit(exit_code)
        except FileNotFoundError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(2)
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(2)
    elif args.command == "next":
        from .kernel.trigger import Trigger, describe_schedule, next_occurrence_for
        from .dispatch import system_clock

        day_of_week = args.day_of_week
        if day_of_week is None and args.kind == "weekly":
            day_of_week = settings.default_day_of_week

        try:
            trigger = Trigger(
                id="cli",
                recurrence_kind=args.kind,
                time_of_day=args.time_of_day or settings.default_time_of_day,
                day_of_week=day_of_week,
                timezone=args.timezone or settings.default_timezone,
            )
            now = args.now or system_clock()
            next_at = next_occurrence_for(trigger, now)
            if not args.quiet:
                print(f"  Schedule: {describe_schedule(trigger)}")
                print(f"  Now: {now.isoformat()}")
            print(next_at.isoformat())
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
    elif args.command == "verify" and args.verify_command == "trigger":
        from .api import validate_trigger

        result = validate_trigger(Path(args.trigger_path).resolve())
        if not args.quiet:
            status = "OK" if result.ok else "FAILED"
            print(f"[{status}] Verification complete")
            print(f"  Status: {status}")
            if result.description:
                print(f"  Schedule: {result.description}")
            print(f"  Errors: {len(result.errors)}")
            for issue in result.errors:
                print(f"    {issue.code}: {issue.message}")
            print(f"  Warnings: {len(result.warnings)}")
            for issue in result.warnings:
                print(f"    {issue.code}: {issue.message}")
        if not result.ok:
            sys.exit(1)
    elif args.command == "dispatch":
        from .dispatch import run_due_triggers, system_clock
        from ._internal.io.store import JsonFileStore

        try:
            store = JsonFileStore(args.store)
            now = args.now or system_clock()
            outcomes = run_due_triggers(store, store, clock=lambda: now, settings=settings)
            if not args.quiet:
                print(f"[OK] Processed {len(outcomes)} scheduled trigger(s)")
                for outcome in outcomes:
                    line = f"  {outcome.trigger_id}: {outcome.status} ({outcome.jobs_created} job(s))"
                    if outcome.error:
                        line += f" - {outcome.error}"
                    print(line)
            if any(o.status == "failed" for o in outcomes):
                sys.exit(1)
        except (OSError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
    elif args.command == "fire":
        from .dispatch import DispatchError, fire_manual, system_clock
        from ._internal.io.store import JsonFileStore

        try:
            store = JsonFileStore(args.store)
            outcome = fire_manual(args.trigger_id, store, store, system_clock(), settings)
            if not args.quiet:
                print(f"[{'OK' if outcome.status == 'success' else 'FAILED'}] Trigger {outcome.trigger_id} executed")
                print(f"  Jobs: {outcome.jobs_created}")
                if outcome.error:
                    print(f"  Error: {outcome.error}")
            if outcome.status != "success":
                sys.exit(1)
        except (DispatchError, OSError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
    elif args.command == "history":
        from .api import execution_history
        from ._internal.io.store import JsonFileStore

        try:
            store = JsonFileStore(args.store)
            limit = args.limit or settings.execution_history_limit
            records = execution_history(store, args.trigger_id, limit=limit)
            if not records:
                print("No executions yet")
            for record in records:
                line = f"{record.fired_at.isoformat()}  {record.source.value:<8}  {record.status.value:<9}"
                if record.error_message:
                    line += f"  {record.error_message}"
                print(line)
        except (OSError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
