"""Application entry point: wires services and runs archival commands.

Usage:
    python main.py backup <source> <dir> [<dir> ...]
    python main.py validate <dir> [<dir> ...]
    python main.py check <source> <dir> [<dir> ...] [--update]
    python main.py zip <source> <output.zip> [--password PW] [--level N]
    python main.py extract "<container>::<entry>" <output> [--password PW]
    python main.py verify <container.zip>
"""

from __future__ import annotations

import argparse
import shutil
import sys
from pathlib import Path

from linkvault.config import Config, get_config
from linkvault.context import AppContext
from linkvault.core.archive_codec import ArchiveCodec
from linkvault.core.backup import BackupOrchestrator
from linkvault.core.directory_validator import DirectoryValidator
from linkvault.core.freshness import FreshnessDetector
from linkvault.logger import setup_logger
from linkvault.models.archive import ExtractStatus
from linkvault.models.freshness import BackupItemType, TrackedItem
from linkvault.utils import format_size


def create_context(config: Config | None = None) -> AppContext:
    """Wire all services and return an AppContext."""
    config = config or get_config()

    # Logger
    setup_logger(config.data_dir / "logs", config.log_level)

    validator = DirectoryValidator()
    return AppContext(
        config=config,
        archive_codec=ArchiveCodec(
            max_entry_size=config.max_entry_size,
            compression_level=config.compression_level,
        ),
        backup_orchestrator=BackupOrchestrator(
            validator=validator,
            preserve_timestamps=config.preserve_timestamps,
            validate_before_backup=config.validate_before_backup,
            max_workers=config.max_workers,
        ),
        directory_validator=validator,
        freshness_detector=FreshnessDetector(
            tolerance_seconds=config.freshness_tolerance,
            step_delay=config.freshness_step_delay,
        ),
    )


def _cmd_backup(ctx: AppContext, args: argparse.Namespace) -> int:
    summary = ctx.backup_orchestrator.backup_file(args.source, args.destinations)
    for result in summary.results:
        if result.success:
            print(f"  OK    {result.destination} ({format_size(result.bytes_copied or 0)})")
        else:
            print(f"  FAIL  {result.destination}: {result.error_message}")
    print(f"{summary.success_count} succeeded, {summary.failure_count} failed ({summary.status})")
    return 0 if summary.all_successful else 1


def _cmd_validate(ctx: AppContext, args: argparse.Namespace) -> int:
    results = ctx.directory_validator.validate_many(args.directories)
    for directory, check in results.items():
        if check.is_valid:
            free = ctx.directory_validator.free_space(directory)
            suffix = f" ({format_size(free)} free)" if free is not None else ""
            print(f"  Valid    {directory}{suffix}")
        else:
            print(f"  Invalid  {directory}: {check.reason}")
    return 0 if all(c.is_valid for c in results.values()) else 1


def _cmd_check(ctx: AppContext, args: argparse.Namespace) -> int:
    source = Path(args.source)
    item_type = BackupItemType.ARCHIVE if source.suffix.lower() == ".zip" else BackupItemType.CATEGORY
    item = TrackedItem(source.name, item_type, str(source), list(args.destinations))
    outdated = ctx.freshness_detector.scan([item])
    if not outdated:
        print("All backups are up to date")
        return 0

    for backup in outdated:
        print(f"  {backup.backup_path}: {backup.describe_lag()}")
    if not args.update:
        return 1

    def report(index: int, total: int, name: str) -> None:
        print(f"  [{index}/{total}] Copying: {name}")

    succeeded, failed = ctx.freshness_detector.update_selected(outdated, progress=report)
    print(f"{succeeded} updated, {failed} failed")
    return 0 if failed == 0 else 1


def _cmd_zip(ctx: AppContext, args: argparse.Namespace) -> int:
    result = ctx.archive_codec.create_encrypted(
        args.source,
        args.output,
        password=args.password,
        compression_level=args.level,
    )
    if not result.success:
        print(f"Error: {result.error}")
        return 1
    print(f"Created {result.output_path} with {result.entries_written} entries")
    for name in result.skipped:
        print(f"  skipped: {name}")
    return 0


def _cmd_extract(ctx: AppContext, args: argparse.Namespace) -> int:
    result = ctx.archive_codec.extract_address(args.address, password=args.password)
    if result.status is ExtractStatus.NEEDS_PASSWORD:
        print("Error: archive is password protected, pass --password")
        return 2
    if not result.ok or result.stream is None:
        print(f"Error: {result.status}: {result.message}")
        return 1
    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    with open(output, "wb") as f:
        shutil.copyfileobj(result.stream, f)
    print(f"Extracted {result.entry_name} -> {output}")
    return 0


def _cmd_verify(ctx: AppContext, args: argparse.Namespace) -> int:
    if not ctx.archive_codec.validate(args.container):
        print(f"Invalid archive: {args.container}")
        return 1
    entries = ctx.archive_codec.list_entries(args.container)
    encrypted = sum(1 for e in entries if e.is_encrypted)
    print(f"{args.container}: {len(entries)} entries, {encrypted} encrypted")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Back up and archive link manager data.")
    parser.add_argument("--data-dir", type=Path, help="Configuration/log directory")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("backup", help="Copy a file into backup directories")
    p.add_argument("source")
    p.add_argument("destinations", nargs="+")
    p.set_defaults(func=_cmd_backup)

    p = sub.add_parser("validate", help="Probe backup directories for write access")
    p.add_argument("directories", nargs="+")
    p.set_defaults(func=_cmd_validate)

    p = sub.add_parser("check", help="Report backups that are older than their source")
    p.add_argument("source")
    p.add_argument("destinations", nargs="+")
    p.add_argument("--update", action="store_true", help="Refresh every outdated backup")
    p.set_defaults(func=_cmd_check)

    p = sub.add_parser("zip", help="Create a zip, AES-256 encrypted when a password is given")
    p.add_argument("source")
    p.add_argument("output")
    p.add_argument("--password")
    p.add_argument("--level", type=int, default=None, help="Compression level 0-9")
    p.set_defaults(func=_cmd_zip)

    p = sub.add_parser("extract", help="Extract one entry addressed as <container>::<entry>")
    p.add_argument("address")
    p.add_argument("output")
    p.add_argument("--password")
    p.set_defaults(func=_cmd_extract)

    p = sub.add_parser("verify", help="Check that a zip container is readable")
    p.add_argument("container")
    p.set_defaults(func=_cmd_verify)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Application entry point."""
    args = build_parser().parse_args(argv)
    config = Config(args.data_dir) if args.data_dir else None
    ctx = create_context(config)
    return args.func(ctx, args)


if __name__ == "__main__":
    sys.exit(main())
