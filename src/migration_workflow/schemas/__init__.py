"""Pydantic payload models for the migration API."""

from migration_workflow.schemas.exports import (
    ExportCategory,
    ExportCategoryInfo,
    ExportHistoryEntry,
    ExportJob,
    ExportPrivacyOptions,
    ExportStatus,
    StartExportResult,
)
from migration_workflow.schemas.imports import (
    ApproveResult,
    ImportErrorsPage,
    ImportJob,
    ImportJobStatus,
    ImportOptions,
    RowError,
    UploadResult,
)
from migration_workflow.schemas.validation import (
    ColumnMappingStatus,
    DuplicateRecord,
    FieldDifference,
    ImportPreview,
    RecordTypeCounts,
    Resolution,
    ValidationIssue,
    ValidationSeverity,
)

__all__ = [
    # Imports
    "ApproveResult",
    "ImportErrorsPage",
    "ImportJob",
    "ImportJobStatus",
    "ImportOptions",
    "RowError",
    "UploadResult",
    # Validation
    "ColumnMappingStatus",
    "DuplicateRecord",
    "FieldDifference",
    "ImportPreview",
    "RecordTypeCounts",
    "Resolution",
    "ValidationIssue",
    "ValidationSeverity",
    # Exports
    "ExportCategory",
    "ExportCategoryInfo",
    "ExportHistoryEntry",
    "ExportJob",
    "ExportPrivacyOptions",
    "ExportStatus",
    "StartExportResult",
]
