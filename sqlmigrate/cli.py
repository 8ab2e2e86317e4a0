"""Command-line interface for the SQLite migration toolkit."""

import argparse
import logging
import sys
from typing import List, Optional

from .exceptions import MigrationError, SourceNotFoundError
from .models.migration import MigrationConfig, MigrationStatus
from .orchestrator import MigrationOrchestrator
from .services.connections import check_source
from .services.environment import check_client_libraries, odbc_drivers
from .services.relocator import FileRelocator

logger = logging.getLogger(__name__)


def _split_tables(value: Optional[str]) -> Optional[List[str]]:
    if value is None:
        return None
    return [name.strip() for name in value.split(",") if name.strip()]


def _add_migration_arguments(parser: argparse.ArgumentParser) -> None:
    """Options shared by run, export, import and verify."""
    parser.add_argument("--config", help="Path to a JSON migration config file")
    parser.add_argument("--source", help="Path to the source SQLite database file")
    parser.add_argument("--server", help="Destination SQL Server instance (e.g. localhost\\SQLEXPRESS)")
    parser.add_argument("--database", help="Destination database name")
    parser.add_argument("--destination-url", help="Destination SQLAlchemy URL (overrides --server/--database)")
    parser.add_argument("--export-dir", help="Folder for exported CSV files and schema.json")
    parser.add_argument("--tables", help="Comma-separated list of tables (default: all)")
    parser.add_argument("--verify-tables", help="Comma-separated list of tables to verify")
    parser.add_argument("--join-query", help="SQL query used for the join check")
    parser.add_argument("--batch-size", type=int, help="Rows per batch")
    parser.add_argument("--drop-existing", action="store_true", default=None,
                        help="Drop destination tables that already exist")
    parser.add_argument("--no-report", action="store_true", help="Do not write a JSON run report")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")


def build_config(args: argparse.Namespace) -> MigrationConfig:
    """Load the config file (if any) and apply command-line overrides."""
    config = MigrationConfig.from_json_file(args.config) if args.config else MigrationConfig()

    overrides = {
        "source_path": args.source,
        "destination_server": args.server,
        "destination_database": args.database,
        "destination_url": args.destination_url,
        "export_dir": args.export_dir,
        "tables": _split_tables(args.tables),
        "verify_tables": _split_tables(args.verify_tables),
        "join_query": args.join_query,
        "batch_size": args.batch_size,
        "drop_existing": args.drop_existing,
    }
    for name, value in overrides.items():
        if value is not None:
            setattr(config, name, value)

    if args.no_report:
        config.save_report = False
    return config


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="SQLite migration tool - export, import and verify a SQLite database"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    run_parser = subparsers.add_parser("run", help="Export, import and verify")
    _add_migration_arguments(run_parser)

    export_parser = subparsers.add_parser("export", help="Export the source to CSV files and schema.json")
    _add_migration_arguments(export_parser)

    import_parser = subparsers.add_parser("import", help="Import an export folder into the destination")
    _add_migration_arguments(import_parser)

    verify_parser = subparsers.add_parser("verify", help="Compare source and destination")
    _add_migration_arguments(verify_parser)

    organize_parser = subparsers.add_parser("organize", help="Move loose files into a project folder")
    organize_parser.add_argument("--root", default=".", help="Directory holding the loose files")
    organize_parser.add_argument("--project-dir", required=True, help="Project folder to move files into")
    organize_parser.add_argument("--dry-run", action="store_true", help="Show planned moves only")
    organize_parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")

    check_parser = subparsers.add_parser("check", help="Report installed database client libraries")
    check_parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")

    args = parser.parse_args(argv)

    # Set up logging
    log_level = logging.DEBUG if getattr(args, "verbose", False) else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    if args.command in ("run", "export", "import", "verify"):
        return run_migration_command(args)
    elif args.command == "organize":
        return run_organize(args)
    elif args.command == "check":
        return run_check(args)

    parser.print_help()
    return 1


def run_migration_command(args: argparse.Namespace) -> int:
    """Run one of the migration phases, or all of them."""
    try:
        config = build_config(args)
    except (OSError, ValueError) as e:
        print(f"Error loading config: {e}")
        return 1

    # Missing source is fatal and checked before any connection is made
    if args.command != "import":
        try:
            check_source(config.source_path)
        except SourceNotFoundError as e:
            print(f"\n{e}")
            print("Nothing was migrated; no database connection was attempted.")
            return 1

    orchestrator = MigrationOrchestrator(config)
    try:
        if args.command == "run":
            orchestrator.run_migration()
        elif args.command == "export":
            orchestrator.run_export()
        elif args.command == "import":
            orchestrator.run_import()
        else:
            orchestrator.run_verify()
    except MigrationError as e:
        print(f"\nMigration error: {e}")
        return 1

    print_summary(orchestrator)
    return 0 if orchestrator.succeeded else 1


def print_summary(orchestrator: MigrationOrchestrator) -> None:
    """Print the human-readable report of a run."""
    run = orchestrator.run

    print("\n" + "=" * 60)
    print(f"MIGRATION {run.status.value.upper()}")
    print("=" * 60)
    print(f"Source: {run.source_path or '-'}")
    if run.destination:
        print(f"Destination: {run.destination}")
    print(f"Export folder: {run.export_dir}")

    if orchestrator.extraction_results:
        print("\nExport:")
        for result in orchestrator.extraction_results:
            if result.success:
                print(f"  {result.table}: {result.rows_extracted} rows -> {result.data_file}")
            else:
                print(f"  {result.table}: SKIPPED ({result.errors[0]['message']})")

    if orchestrator.load_results:
        print("\nImport:")
        for table_name, result in orchestrator.load_results.items():
            if result.success:
                print(f"  {table_name}: {result.rows_loaded} rows loaded")
            else:
                print(f"  {table_name}: FAILED ({result.errors[0]['error']})")

    if orchestrator.verification:
        print("\nVerification:")
        for result in orchestrator.verification.results:
            print(f"  {result.describe()}")

        join = orchestrator.verification.join_check
        if join:
            outcome = "PASS" if join.passed else "FAIL"
            print(f"\nJoin check: {outcome}")
            print(f"  {join.query}")
            if join.error:
                print(f"  Error: {join.error}")
            else:
                print(f"  Destination rows: {join.destination_rows}")
                if join.source_rows is not None:
                    print(f"  Source rows: {join.source_rows}")

    for error in run.errors:
        print(f"\nError ({error['phase']}): {error['error']}")

    if run.status == MigrationStatus.COMPLETED and orchestrator.verification:
        if orchestrator.succeeded:
            print("\nAll verified tables match.")
        else:
            print("\nVerification found differences; see above.")

    if run.duration_seconds is not None:
        print(f"Duration: {run.duration_seconds:.2f} seconds")


def run_organize(args: argparse.Namespace) -> int:
    """Move loose files into the project folder structure."""
    relocator = FileRelocator(args.root, args.project_dir, dry_run=args.dry_run)
    try:
        results = relocator.relocate()
    except OSError as e:
        print(f"Error: {e}")
        return 1

    print("\n=== File Relocation ===")
    for result in results:
        if result.moved:
            print(f"  moved   {result.source.name} -> {result.destination}")
        elif result.reason == "dry run":
            print(f"  would move {result.source.name} -> {result.destination}")
        else:
            print(f"  kept    {result.source.name} ({result.reason})")

    moved = sum(1 for r in results if r.moved)
    print(f"\n{moved} file(s) moved")
    return 0


def run_check(args: argparse.Namespace) -> int:
    """Print installed client library versions."""
    report = check_client_libraries()

    print("\n=== Database Client Libraries ===")
    for name, version in report.items():
        print(f"  {name}: {version or 'NOT INSTALLED'}")

    drivers = odbc_drivers()
    if drivers:
        print("\nODBC drivers:")
        for driver in drivers:
            print(f"  {driver}")

    return 0 if report.get("SQLAlchemy") else 1


if __name__ == "__main__":
    sys.exit(main())
