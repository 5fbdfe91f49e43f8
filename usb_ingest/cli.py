"""Command-line interface for usb ingest."""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from tqdm import tqdm

from . import __version__
from .config import DEFAULT_CONFIG_PATH, load_rules_or_default
from .copier import CopyOrchestrator
from .db import DEFAULT_HISTORY_PATH, HistoryDB
from .errors import GlobCompileError
from .models import CopyProgress, CopyStatus, DuplicatePolicy, RulesConfig
from .progress import format_event
from .rules import apply_rules_to_files, build_copy_tasks, preview_pattern
from .scanner import HASH_ALGORITHMS, scan_directory
from .stages import build_stages


def format_timestamp(timestamp: str) -> str:
    """Format an ISO timestamp as a human-readable string."""
    return datetime.fromisoformat(timestamp).strftime("%Y-%m-%d %H:%M:%S")


def format_size(size: float) -> str:
    """Format file size in human-readable form."""
    for unit in ['B', 'KB', 'MB', 'GB']:
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="usb-ingest",
        description="Copy files off removable media according to glob rules.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s scan /media/CARD
  %(prog)s copy /media/CARD --on-duplicate rename
  %(prog)s test-pattern /media/CARD "DCIM/**/*.{jpg,jpeg}"
  %(prog)s history --stats
        """
    )

    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to the YAML rules file (default: {DEFAULT_CONFIG_PATH})"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable DEBUG logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    commands = parser.add_subparsers(dest="command", required=True)

    scan = commands.add_parser("scan", help="List source files and where the rules send them")
    scan.add_argument("source", type=Path, help="Source folder (usually a mount point)")

    copy = commands.add_parser("copy", help="Copy matched files to their destinations")
    copy.add_argument("source", type=Path, help="Source folder (usually a mount point)")
    copy.add_argument(
        "--on-duplicate",
        choices=[p.value for p in DuplicatePolicy],
        default=DuplicatePolicy.SKIP.value,
        help="What to do when a destination file already exists (default: skip)"
    )
    copy.add_argument(
        "--events",
        action="store_true",
        help="Print progress as text event stream messages instead of a progress bar"
    )
    copy.add_argument(
        "--db", "-d",
        type=Path,
        default=DEFAULT_HISTORY_PATH,
        help=f"Path to the SQLite copy history (default: {DEFAULT_HISTORY_PATH})"
    )
    copy.add_argument("--no-history", action="store_true", help="Do not record this run")
    copy.add_argument(
        "--hash-algorithm",
        choices=HASH_ALGORITHMS,
        default="sha256",
        help="Hash used by the content duplicate check (default: sha256)"
    )

    pattern = commands.add_parser("test-pattern", help="Show which files a rule pattern would match")
    pattern.add_argument("source", type=Path, help="Source folder (usually a mount point)")
    pattern.add_argument("pattern", help="Glob pattern to try")

    history = commands.add_parser("history", help="Show past copy runs")
    history.add_argument(
        "--db", "-d",
        type=Path,
        default=DEFAULT_HISTORY_PATH,
        help=f"Path to the SQLite copy history (default: {DEFAULT_HISTORY_PATH})"
    )
    history.add_argument("--stats", action="store_true", help="Show totals instead of entries")
    history.add_argument("--clear", action="store_true", help="Delete all history entries")
    history.add_argument("--limit", "-n", type=int, default=20, help="Entries to show (default: 20)")

    return parser.parse_args(argv)


def validate_source(source: Path) -> None:
    """Exit with an error if source is not an existing directory."""
    if not source.exists():
        print(f"Error: Source does not exist: {source}")
        sys.exit(1)
    if not source.is_dir():
        print(f"Error: Source is not a directory: {source}")
        sys.exit(1)


def cmd_scan(args: argparse.Namespace, config: RulesConfig) -> None:
    validate_source(args.source)
    entries = scan_directory(args.source.absolute(), config.exclusions)
    matched_files = apply_rules_to_files(entries, config.rules)

    matched = 0
    for matched_file in matched_files:
        if matched_file.matched_rule is not None:
            matched += 1
            target = str(matched_file.matched_rule.destination)
        elif config.unmatched_destination:
            target = f"{config.unmatched_destination} (unmatched)"
        else:
            target = "(unmatched, skipped)"
        print(f"  {matched_file.entry.relative_path} -> {target}")

    print("-" * 20)
    print(f"Files found: {len(matched_files)}")
    print(f"Matched by a rule: {matched}")
    print(f"Unmatched: {len(matched_files) - matched}")


def _report_progress(snapshots, events: bool) -> CopyProgress:
    """Drain a run's snapshots, showing them on stdout. Returns the last one."""
    final = None
    if events:
        for snapshot in snapshots:
            print(format_event(snapshot), end="", flush=True)
            final = snapshot
        return final

    with tqdm(total=0, desc="Copying", unit="B", unit_scale=True) as pbar:
        for snapshot in snapshots:
            if final is None:
                pbar.reset(total=snapshot.total_bytes)
            pbar.update(snapshot.copied_bytes - pbar.n)
            if snapshot.current_file:
                pbar.set_postfix_str(Path(snapshot.current_file).name)
            final = snapshot
    return final


def cmd_copy(args: argparse.Namespace, config: RulesConfig) -> None:
    validate_source(args.source)
    source = args.source.absolute()

    entries = scan_directory(source, config.exclusions)
    tasks = build_copy_tasks(apply_rules_to_files(entries, config.rules), config.unmatched_destination)

    print("=" * 60)
    print("USB INGEST")
    print("=" * 60)
    print(f"Source:       {source}")
    print(f"Files to copy: {len(tasks)}")
    print(f"On duplicate: {args.on_duplicate}")

    history_db = None
    if config.features.copy_history and not args.no_history:
        history_db = HistoryDB(args.db)

    stages = build_stages(config, history_db, mount_path=source, hash_algorithm=args.hash_algorithm)
    orchestrator = CopyOrchestrator.from_stages(stages)

    try:
        final = _report_progress(orchestrator.run(tasks, args.on_duplicate), args.events)
    except KeyboardInterrupt:
        print("\n\nInterrupted! Files copied so far have been kept.")
        sys.exit(1)
    finally:
        if history_db is not None:
            history_db.close()

    print("\n" + "=" * 60)
    if final.status is CopyStatus.ERROR:
        print("COPY FAILED")
    else:
        print("COPY COMPLETE!")
    print("=" * 60)
    print(f"Copied:  {final.copied_files}")
    print(f"Skipped: {final.skipped_files}")
    print(f"Total:   {final.total_files} files, {format_size(final.total_bytes)}")
    if final.status is CopyStatus.ERROR:
        print(f"Error:   {final.error}")
        sys.exit(1)


def cmd_test_pattern(args: argparse.Namespace, config: RulesConfig) -> None:
    validate_source(args.source)
    entries = scan_directory(args.source.absolute(), config.exclusions)
    try:
        result = preview_pattern(args.pattern, entries)
    except GlobCompileError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(f"Pattern {args.pattern!r} matches {result.count} files")
    for sample in result.samples:
        print(f"  {sample}")
    if result.count > len(result.samples):
        print(f"  ... and {result.count - len(result.samples)} more")


def cmd_history(args: argparse.Namespace, config: RulesConfig) -> None:
    db = HistoryDB(args.db)
    try:
        if args.clear:
            db.clear()
            print("History cleared.")
            return

        if args.stats:
            stats = db.get_stats()
            print(f"Copies:        {stats.total_copies}")
            print(f"  Successful:  {stats.successful_copies}")
            print(f"  Failed:      {stats.failed_copies}")
            print(f"Files copied:  {stats.total_files}")
            print(f"Bytes copied:  {format_size(stats.total_bytes)}")
            print(f"Avg duration:  {stats.average_duration:.1f}s")
            return

        entries = db.get_entries(limit=args.limit)
        if not entries:
            print("No copies recorded yet.")
            return
        for entry in entries:
            print(f"{format_timestamp(entry.timestamp)}  {entry.status:<9}  "
                  f"{entry.copied_files} copied, {entry.skipped_files} skipped, "
                  f"{format_size(entry.copied_bytes)} in {entry.duration:.1f}s  [{entry.id}]")
            if entry.error:
                print(f"    {entry.error}")
    finally:
        db.close()


COMMANDS = {
    "scan": cmd_scan,
    "copy": cmd_copy,
    "test-pattern": cmd_test_pattern,
    "history": cmd_history,
}


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    config = load_rules_or_default(args.config)
    COMMANDS[args.command](args, config)
