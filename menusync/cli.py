"""
Command-line interface.

Usage:
    menusync check menu.xlsx
    menusync import menu.xlsx --branch <id> --clear
    menusync import menu.csv --dry-run --verbose
    menusync template menu_template.xlsx

Exit Codes:
    0 - Success
    1 - Partial success (rows with errors were skipped)
    2 - Failure (nothing, or not everything, was imported)
    3 - Invalid arguments, unreadable file or missing configuration
"""

import argparse
import json
import logging
import sys

from .config import load_config
from .exceptions import CatalogFileError
from .ingest import CatalogImporter, ImportStatus
from .parser import default_parser
from .store import InMemoryCatalogStore
from .sync import GLOBAL_SCOPE, SyncBroadcaster

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_PARTIAL = 1
EXIT_FAILURE = 2
EXIT_INVALID_ARGS = 3

DRY_RUN_BRANCH = "dry-run"


def _print_validation(validation, limit: int = 50) -> None:
    if validation is None or not validation.errors:
        return
    print(f"\n{len(validation.errors)} problems found:")
    for error in validation.errors[:limit]:
        print(f"  - {error}")
    if len(validation.errors) > limit:
        print(f"  ... and {len(validation.errors) - limit} more")


def _print_mapping(mapping) -> None:
    if not mapping:
        return
    print("Column mapping:")
    for standard, originals in mapping["mapped"].items():
        print(f"  {', '.join(repr(h) for h in originals)} -> {standard}")
    for standard, original in mapping["inferred"].items():
        print(f"  {original!r} -> {standard} (inferred from values)")
    if mapping["unmapped"]:
        print(f"  ignored: {', '.join(repr(h) for h in mapping['unmapped'])}")


def cmd_check(args) -> int:
    importer = CatalogImporter(InMemoryCatalogStore())
    try:
        report = importer.check(args.file)
    except CatalogFileError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_INVALID_ARGS

    if args.json:
        print(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
    else:
        _print_mapping(report.mapping)
        print(report.message)
        _print_validation(report.validation)
    return EXIT_SUCCESS if report.status == ImportStatus.SUCCESS else EXIT_FAILURE


def _open_store(args, config, branch_id):
    if args.dry_run:
        store = InMemoryCatalogStore()
        store.add_branch(branch_id or DRY_RUN_BRANCH, "Dry run")
        return store

    if not config.has_database:
        raise ValueError(
            "No database configured. Set SUPABASE_DB_URL (or the SUPABASE_DB_* "
            "variables) or use --dry-run."
        )
    from .store.supabase_client import SupabaseCatalogStore
    return SupabaseCatalogStore.from_config(config)


def cmd_import(args, config) -> int:
    if args.dry_run:
        print("=" * 60)
        print("DRY RUN - the catalog store will not be modified")
        print("=" * 60)

    branch_id = args.branch or config.default_branch
    try:
        store = _open_store(args, config, branch_id)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_INVALID_ARGS

    broadcaster = SyncBroadcaster()
    if args.verbose:
        broadcaster.subscribe(
            GLOBAL_SCOPE,
            lambda event: print(f"[sync] {event.scope} #{event.sequence}: {len(event.payload.items)} items"),
            name="cli",
        )

    importer = CatalogImporter(
        store,
        broadcaster=broadcaster,
        on_status=(lambda status: print(f"... {status.value}")) if args.verbose else None,
        debug=args.verbose,
    )
    try:
        report = importer.import_file(
            args.file,
            branch_id=branch_id,
            clear=args.clear or config.clear_before_import,
            allow_partial=args.allow_partial or config.allow_partial,
        )
        broadcaster.flush(timeout=5)
    finally:
        broadcaster.close()
        store.close()

    if args.json:
        print(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
    else:
        print(report.message)
        _print_validation(report.validation)
        if report.result is not None and report.result.diff is not None:
            print(f"Changes: {report.result.diff.summary()}")

    if isinstance(report.error, CatalogFileError):
        return EXIT_INVALID_ARGS
    if not report.succeeded:
        return EXIT_FAILURE
    if report.validation is not None and report.validation.has_errors:
        return EXIT_PARTIAL
    return EXIT_SUCCESS


def cmd_template(args) -> int:
    try:
        path = default_parser().export_template(args.path, format=args.format)
    except (ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_INVALID_ARGS
    print(f"Template written to {path}")
    return EXIT_SUCCESS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="menusync",
        description="Import and check menu catalog spreadsheets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s check menu.xlsx                    # Show column mapping and row problems
  %(prog)s import menu.xlsx --clear           # Replace the first branch's menu
  %(prog)s import menu.csv --dry-run -v       # Import into memory only
  %(prog)s template menu_template.xlsx        # Write an empty template
        """,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-v", "--verbose", action="store_true", help="Show detailed progress")
    common.add_argument("--env-file", help="Path to a .env file (default: ./.env)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    check = subparsers.add_parser("check", parents=[common], help="Parse and validate a file without importing it")
    check.add_argument("file", help="Spreadsheet (.xlsx) or CSV file")
    check.add_argument("--json", action="store_true", help="Print the report as JSON")

    imp = subparsers.add_parser("import", parents=[common], help="Import a file into a branch")
    imp.add_argument("file", help="Spreadsheet (.xlsx) or CSV file")
    imp.add_argument("--branch", help="Target branch id (default: MENUSYNC_DEFAULT_BRANCH or the first branch)")
    imp.add_argument("--clear", action="store_true", help="Delete the branch's catalog before importing (default: update items with matching keys, add the rest)")
    imp.add_argument(
        "--allow-partial",
        action="store_true",
        help="Import the valid rows even if some rows have errors",
    )
    imp.add_argument("--dry-run", action="store_true", help="Import into an in-memory store")
    imp.add_argument("--json", action="store_true", help="Print the report as JSON")

    template = subparsers.add_parser("template", parents=[common], help="Write an empty catalog template")
    template.add_argument("path", help="Output path (.xlsx or .csv)")
    template.add_argument("--format", choices=["csv", "excel"], help="Output format (default: from extension)")

    return parser


def main(args=None) -> int:
    """Main CLI entry point."""
    parsed_args = build_parser().parse_args(args)

    try:
        config = load_config(parsed_args.env_file)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_INVALID_ARGS

    level = logging.DEBUG if parsed_args.verbose else getattr(logging, config.log_level, logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if parsed_args.command == "check":
        return cmd_check(parsed_args)
    if parsed_args.command == "import":
        return cmd_import(parsed_args, config)
    return cmd_template(parsed_args)


if __name__ == "__main__":
    sys.exit(main())
