"""Validation preview and duplicate detection schemas."""

from enum import Enum
from typing import Any

from pydantic import Field, model_validator

from migration_workflow.schemas.base import MigrationModel


class ValidationSeverity(str, Enum):
    """Validation result severity."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"

    @property
    def rank(self) -> int:
        """Ordinal used for gating and sorting (error > warning > info)."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    ValidationSeverity.ERROR: 2,
    ValidationSeverity.WARNING: 1,
    ValidationSeverity.INFO: 0,
}


class ValidationIssue(MigrationModel):
    """A validation issue found during import preview.

    ``row_number`` is None for file-level issues.
    """

    severity: ValidationSeverity
    code: str
    message: str
    row_number: int | None = None
    column: str | None = None
    original_value: str | None = None
    suggested_value: str | None = None


class RecordTypeCounts(MigrationModel):
    """Count of records by the action the import will take."""

    new_records: int = 0
    updates: int = 0
    skipped: int = 0


class ColumnMappingStatus(MigrationModel):
    """Status of a column mapping."""

    source_column: str
    target_field: str | None = None
    is_mapped: bool = False
    is_required: bool = False
    sample_values: list[str] = Field(default_factory=list)


class FieldDifference(MigrationModel):
    """Difference between the imported value and the existing record."""

    field: str
    import_value: str | None = None
    existing_value: str | None = None


class Resolution(str, Enum):
    """How a detected duplicate is handled on import."""

    SKIP = "skip"
    UPDATE = "update"
    CREATE_NEW = "create_new"


class DuplicateRecord(MigrationModel):
    """Duplicate detection result for one row of the import file."""

    import_row: int
    existing_id: str
    matched_fields: frozenset[str] = Field(default_factory=frozenset)
    confidence: int = Field(..., ge=0, le=100)
    differences: list[FieldDifference] = Field(default_factory=list)


class ImportPreview(MigrationModel):
    """Import preview/validation result.

    ``is_valid`` is always derived from ``error_rows``; ``issues`` may be a
    truncated page of ``total_issue_count``.
    """

    job_id: str | None = None
    is_valid: bool = True
    total_rows: int = 0
    importable_rows: int = 0
    error_rows: int = 0
    warning_rows: int = 0
    record_counts: RecordTypeCounts = Field(default_factory=RecordTypeCounts)
    issues: list[ValidationIssue] = Field(default_factory=list)
    total_issue_count: int | None = None
    duplicates: list[DuplicateRecord] = Field(default_factory=list)
    sample_records: list[dict[str, Any]] = Field(default_factory=list)
    column_mapping: list[ColumnMappingStatus] = Field(default_factory=list)

    @model_validator(mode="after")
    def _derive_counts(self) -> "ImportPreview":
        self.is_valid = self.error_rows == 0
        if self.total_issue_count is None or self.total_issue_count < len(self.issues):
            self.total_issue_count = len(self.issues)
        return self
