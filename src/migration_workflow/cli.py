#!/usr/bin/env python
"""Drive a migration import or export from the command line.

Usage:
    migration-workflow import \
        --template TEMPLATE_ID \
        --file path/to/data.csv \
        [--template-name NAME] \
        [--acknowledge-warnings] \
        [--resolve-all skip|update|create_new] \
        [--skip-errors] [--update-existing] [--dry-run]

    migration-workflow export \
        --category buildings --category residents \
        [--anonymize-personal-data] [--mask-financial-data] \
        [--exclude-document-contents] [--hash-identifiers] \
        [--output export.zip]

Examples:
    # Import a CSV, accepting warnings and skipping every duplicate
    migration-workflow import --template buildings-v2 --file buildings.csv \
        --acknowledge-warnings --resolve-all skip

    # Export all categories with personal data anonymized
    migration-workflow export --all --anonymize-personal-data --output export.zip
"""

import argparse
import asyncio
import sys
from pathlib import Path

from migration_workflow.clients.migration_api import MigrationApiClient
from migration_workflow.config import Settings, get_settings
from migration_workflow.core.formatting import format_expires_in, format_file_size
from migration_workflow.core.logging import get_logger, setup_logging
from migration_workflow.schemas.exports import ExportCategory, ExportPrivacyOptions
from migration_workflow.schemas.imports import ImportJobStatus, ImportOptions
from migration_workflow.schemas.validation import Resolution
from migration_workflow.stores.export_history import ExportHistoryStore
from migration_workflow.workflows.export_workflow import (
    ExportStep,
    ExportWorkflowController,
    archive_categories,
)
from migration_workflow.workflows.import_workflow import ImportStep, ImportWorkflowController
from migration_workflow.workflows.uploads import UploadCandidate

logger = get_logger(__name__)


async def run_import(args: argparse.Namespace, settings: Settings) -> bool:
    """Upload, preview, approve and follow one import.

    Args:
        args: Parsed ``import`` arguments.
        settings: Application settings.

    Returns:
        bool: True if the import completed (fully or partially).
    """
    options = ImportOptions(
        skip_errors=args.skip_errors,
        update_existing=args.update_existing,
        dry_run=args.dry_run,
        key_field=args.key_field,
    )

    async with MigrationApiClient(settings) as client:
        async with ImportWorkflowController(client, settings) as workflow:
            workflow.select_template(args.template, args.template_name or args.template)

            if not workflow.choose_file(UploadCandidate.from_path(args.file)):
                logger.error(f"File rejected: {workflow.error}")
                return False

            logger.info(f"Uploading {args.file}...")
            if not await workflow.upload(options):
                logger.error(f"Upload failed: {workflow.error}")
                return False

            validation = workflow.validation
            assert validation is not None
            preview = validation.preview
            logger.info(
                f"Preview: {preview.total_rows} rows, {preview.importable_rows} importable, "
                f"{preview.error_rows} with errors, {preview.warning_rows} with warnings"
            )
            for issue in validation.top_issues(settings.issue_preview_limit):
                row = f"row {issue.row_number}" if issue.row_number is not None else "file"
                logger.info(f"  [{issue.severity.value}] {row}: {issue.message}")
            if validation.has_more_issues:
                logger.info(f"  ... {preview.total_issue_count} issues in total")

            if workflow.duplicate_policy is not None:
                if args.resolve_all:
                    workflow.resolve_all_duplicates(Resolution(args.resolve_all))
                summary = workflow.duplicate_policy.summary()
                logger.info(
                    "Duplicates: "
                    + ", ".join(f"{count} {resolution.value}" for resolution, count in summary.items())
                )

            workflow.acknowledge_warnings(args.acknowledge_warnings)
            if not await workflow.approve():
                logger.error(f"Import not approved: {workflow.error}")
                return False

            logger.info("Import approved, waiting for the job to finish...")
            job = await workflow.wait_for_job()
            logger.info(workflow.describe_progress())

            if workflow.step == ImportStep.COMPLETE:
                logger.info(f"✓ Import complete: {job.successful_rows if job else 0} rows imported")
                return True

            if workflow.outcome == ImportJobStatus.PARTIALLY_COMPLETED:
                logger.warning("Import partially completed; first failed rows:")
                errors_page = await workflow.load_errors()
                for row_error in errors_page.errors if errors_page else []:
                    logger.warning(f"  row {row_error.row_number}: {row_error.message}")
                return True

            logger.error(f"✗ {workflow.error}")
            return False


async def run_export(args: argparse.Namespace, settings: Settings) -> bool:
    """Request an export, wait until it is ready and download the archive.

    Args:
        args: Parsed ``export`` arguments.
        settings: Application settings.

    Returns:
        bool: True if the archive was downloaded.
    """
    history = ExportHistoryStore(settings.export_history_path)
    history.load()

    async with MigrationApiClient(settings) as client:
        async with ExportWorkflowController(client, settings, history=history) as workflow:
            if not await workflow.load_categories():
                logger.error(workflow.error)
                return False

            if args.all:
                workflow.select_all()
            else:
                for category in dict.fromkeys(args.category or []):
                    if not workflow.toggle_category(ExportCategory(category)):
                        logger.warning(workflow.error)
            if not workflow.selected_categories:
                logger.error("Select at least one category (--category or --all)")
                return False

            privacy = ExportPrivacyOptions(
                anonymize_personal_data=args.anonymize_personal_data,
                mask_financial_data=args.mask_financial_data,
                exclude_document_contents=args.exclude_document_contents,
                hash_identifiers=args.hash_identifiers,
            )
            if privacy.any_enabled:
                workflow.set_privacy_options(privacy)

            logger.info(
                f"Exporting {', '.join(c.value for c in workflow.selected_categories)} "
                f"({workflow.total_records:,} records)"
            )
            if not await workflow.start_export():
                logger.error(workflow.error)
                return False

            job = await workflow.wait_for_export()
            if workflow.step != ExportStep.COMPLETE or job is None:
                logger.error(f"✗ {workflow.error}")
                return False

            if job.expires_at:
                logger.info(f"Download link expires in {format_expires_in(job.expires_at)}")
            data = await workflow.download()
            if data is None:
                logger.error(f"✗ {workflow.error}")
                return False

    output = Path(args.output)
    output.write_bytes(data)
    logger.info(f"✓ Saved {format_file_size(len(data))} to {output}")
    logger.info(f"Archive contains: {', '.join(archive_categories(data))}")
    return True


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="migration-workflow",
        description="Import data into or export data out of the migration service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    import_parser = subparsers.add_parser("import", help="Upload and import a spreadsheet")
    import_parser.add_argument("--template", required=True, help="Import template ID")
    import_parser.add_argument("--template-name", help="Template display name")
    import_parser.add_argument("--file", required=True, help="Path to a CSV or Excel file")
    import_parser.add_argument(
        "--acknowledge-warnings",
        action="store_true",
        help="Proceed even though the preview reported warnings",
    )
    import_parser.add_argument(
        "--resolve-all",
        choices=[resolution.value for resolution in Resolution],
        help="Apply one resolution to every detected duplicate",
    )
    import_parser.add_argument(
        "--skip-errors", action="store_true", help="Skip rows with errors instead of failing"
    )
    import_parser.add_argument(
        "--update-existing", action="store_true", help="Update existing records by key field"
    )
    import_parser.add_argument("--key-field", help="Field used to match existing records")
    import_parser.add_argument("--dry-run", action="store_true", help="Validate only, don't import")

    export_parser = subparsers.add_parser("export", help="Export data categories as a ZIP archive")
    export_parser.add_argument(
        "--category",
        action="append",
        choices=[category.value for category in ExportCategory],
        help="Category to export (repeatable)",
    )
    export_parser.add_argument("--all", action="store_true", help="Export every category")
    export_parser.add_argument("--anonymize-personal-data", action="store_true")
    export_parser.add_argument("--mask-financial-data", action="store_true")
    export_parser.add_argument("--exclude-document-contents", action="store_true")
    export_parser.add_argument("--hash-identifiers", action="store_true")
    export_parser.add_argument(
        "--output", default="migration-export.zip", help="Where to save the archive"
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Entry point."""
    args = build_parser().parse_args(argv)
    setup_logging("DEBUG" if args.verbose else None)
    settings = get_settings()

    runner = run_import if args.command == "import" else run_export
    try:
        ok = asyncio.run(runner(args, settings))
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        sys.exit(130)
    except Exception as e:
        logger.error(f"✗ {args.command.capitalize()} failed: {e}", exc_info=True)
        sys.exit(1)

    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
