#!/usr/bin/env python3
"""
Vividbooks Legacy Content Migrator - Main CLI Entry Point

Imports selected lessons and worksheets of legacy Vividbooks books into one
category of the documentation platform, rehosting their media and merging
the synthesized menu items into the category menu.
"""

import argparse
import json
import logging
import sys
from typing import Optional

import yaml

from . import __version__
from .config_loader import ConfigLoader, get_nested
from .importers.platform_client import AuthenticationError
from .logger import log_config, log_section, setup_logging
from .orchestrator import ImportInProgressError, MigrationOrchestrator, MigrationReport

DEFAULT_REPORT_PATH = 'migration_report.json'


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for CLI."""
    parser = argparse.ArgumentParser(
        description="Migrate legacy Vividbooks books into the documentation platform",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Import two books into the physics category
  vividbooks-migrate --config config.yaml --book-ids 44,45 --category fyzika

  # Import only selected items under an existing menu folder
  vividbooks-migrate --select k-101 --select cb-7-doc-12 --destination group-8-rocnik

  # Re-run and overwrite pages that already exist
  vividbooks-migrate --overwrite --yes

  # Preview the selection without writing anything
  vividbooks-migrate --dry-run

  # Index animations of already imported lessons
  vividbooks-migrate --backfill-assets

  # Verbose logging
  vividbooks-migrate -vv
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        '--config',
        type=str,
        default='config.yaml',
        help='Path to configuration YAML file (default: config.yaml)'
    )

    parser.add_argument(
        '--book-ids',
        type=str,
        help='Comma-separated legacy book IDs (e.g., 44,45)'
    )

    parser.add_argument(
        '--category',
        type=str,
        help='Target category slug (e.g., fyzika)'
    )

    parser.add_argument(
        '--user-code',
        type=str,
        help='Legacy API user code'
    )

    parser.add_argument(
        '--download-files',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='Copy images, animations and PDFs into platform storage (default: on)'
    )

    parser.add_argument(
        '--overwrite',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='Overwrite pages that already exist (default: off)'
    )

    parser.add_argument(
        '--import-boards',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='Re-import linked legacy boards (default: on)'
    )

    parser.add_argument(
        '--select',
        action='append',
        metavar='ITEM_ID',
        help="Item to import: k-{id}, cb-{block}-doc-{doc} or 'all' (repeatable)"
    )

    parser.add_argument(
        '--destination',
        type=str,
        help='Menu item ID to insert under (default: menu root)'
    )

    parser.add_argument(
        '-y', '--yes',
        action='store_true',
        help='Skip the target category confirmation'
    )

    parser.add_argument(
        '--dry-run',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='Fetch the books and preview the selection without making changes'
    )

    parser.add_argument(
        '--backfill-assets',
        action='store_true',
        help='Index the animations of pages already in the category, then exit'
    )

    parser.add_argument(
        '--report-path',
        type=str,
        help=f'Where to write the JSON report (default: {DEFAULT_REPORT_PATH})'
    )

    parser.add_argument(
        '--log-file',
        type=str,
        help='Also log to this rotating file'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='count',
        default=0,
        help='Increase verbosity (-v for INFO, -vv for DEBUG)'
    )

    return parser


def confirm_category(category: str, item_count: Optional[int]) -> bool:
    """Ask on the terminal whether the target category is the right one."""
    count = 'všechny' if item_count is None else str(item_count)
    print("")
    print("POZOR: Data budou importována do kategorie:")
    print("")
    print(f"   {category.upper()}")
    print("")
    print(f"Počet položek k importu: {count}")
    answer = input("Je toto SPRÁVNÁ kategorie? [y/N] ")
    return answer.strip().lower() in ('y', 'yes', 'a', 'ano')


def _print_preview(preview: dict) -> None:
    """Print the dry-run selection preview."""
    print("\n" + "=" * 60)
    print("MIGRATION PREVIEW (DRY RUN)")
    print("=" * 60)
    print(f"\nCategory: {preview['category']}")
    print(f"Books fetched: {preview['books_fetched']}/{preview['books_requested']}")
    print(f"Lessons: {preview['lessons']}")
    print(f"Worksheets: {preview['worksheets']}")

    print("\nBook Breakdown:")
    print("-" * 60)
    for book in preview['books']:
        containers = []
        if book['lessons_folder']:
            containers.append('lessons folder')
        if book['workbook']:
            containers.append('workbook')
        suffix = f" -> {', '.join(containers)}" if containers else ''
        print(f"  {book['id']}: {book['name']} ({book['lessons']} lessons, {book['worksheets']} worksheets){suffix}")

    print("\n" + "=" * 60)


def run_migration(config: dict, args: argparse.Namespace, logger: logging.Logger) -> int:
    """Execute one import run, a dry run, or an asset backfill."""
    dry_run = args.dry_run if args.dry_run is not None else get_nested(config, 'migration.dry_run', False)

    try:
        orchestrator = MigrationOrchestrator(
            config,
            logger,
            confirm=None if args.yes else confirm_category
        )

        if args.backfill_assets:
            stats = orchestrator.backfill_assets()
            print(json.dumps(stats, indent=2))
            return 0 if stats['failed'] == 0 else 1

        if dry_run:
            logger.info("Dry-run mode: displaying migration preview")
            _print_preview(orchestrator.preview())
            logger.info("Dry-run complete. No changes made.")
            return 0

        stats = orchestrator.run()
        if stats['cancelled']:
            print("Import zrušen - zkontrolujte cílovou kategorii")
            return 0

        report_generator = MigrationReport(logger)
        report = report_generator.generate_report(stats, orchestrator.statuses)
        print("\n" + report_generator.format_console_report(report))

        report_path = get_nested(config, 'migration.report_path', DEFAULT_REPORT_PATH)
        try:
            report_generator.export_json_report(report, report_path)
        except OSError as e:
            logger.warning(f"Failed to export JSON report: {str(e)}")

        errors = report['summary']['total_errors']
        if errors > 0:
            logger.warning(f"Migration completed with {errors} errors")
            return 1
        logger.info("Migration completed successfully")
        return 0

    except AuthenticationError as e:
        logger.error(f"Authentication failed: {e}")
        return 1
    except ImportInProgressError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.error("Migration interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"Migration failed: {str(e)}", exc_info=True)
        return 1


def main() -> int:
    """Main entry point for the CLI."""
    parser = create_argument_parser()
    args = parser.parse_args()

    try:
        logger = setup_logging(verbosity=args.verbose)

        log_section("Vividbooks Legacy Content Migrator")
        logger.info(f"Version: {__version__}")

        logger.info(f"Loading configuration from {args.config}")
        config = ConfigLoader.load(args.config)

        # CLI takes precedence
        config = ConfigLoader.merge_with_args(config, args)
        ConfigLoader.validate(config)

        logger = setup_logging(
            verbosity=args.verbose,
            log_file=get_nested(config, 'logging.file'),
            level=None if args.verbose else get_nested(config, 'logging.level')
        )
        log_config(config)

        return run_migration(config, args, logger)

    except FileNotFoundError as e:
        print(f"ERROR: File not found: {e}", file=sys.stderr)
        return 2
    except ValueError as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        return 2
    except yaml.YAMLError as e:
        print(f"ERROR: Invalid YAML in configuration: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        print("\nMigration interrupted by user", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"ERROR: Unexpected error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
