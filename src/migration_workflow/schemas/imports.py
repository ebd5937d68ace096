"""Import job schemas.

Example status payload:
```json
{
    "id": "5c1f...",
    "status": "importing",
    "filename": "buildings.csv",
    "templateName": "Buildings Import",
    "progressPercent": 40,
    "totalRows": 150,
    "processedRows": 60,
    "successfulRows": 59,
    "failedRows": 1,
    "skippedRows": 0,
    "errorSummary": [
        {"rowNumber": 45, "column": "email", "errorCode": "INVALID_EMAIL",
         "message": "Invalid email format", "originalValue": "not-an-email"}
    ]
}
```
"""

from datetime import datetime
from enum import Enum

from pydantic import AliasChoices, ConfigDict, Field

from migration_workflow.schemas.base import MigrationModel
from migration_workflow.schemas.validation import ImportPreview


class ImportJobStatus(str, Enum):
    """Import job status enum."""

    PENDING = "pending"
    VALIDATING = "validating"
    VALIDATED = "validated"
    VALIDATION_FAILED = "validation_failed"
    IMPORTING = "importing"
    COMPLETED = "completed"
    PARTIALLY_COMPLETED = "partially_completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """No further change is expected without a new job (preview states included)."""
        return self in _TERMINAL

    @property
    def is_import_terminal(self) -> bool:
        return self in _IMPORT_TERMINAL

    @property
    def is_validation_terminal(self) -> bool:
        return self in _VALIDATION_TERMINAL

    @property
    def is_retryable(self) -> bool:
        return self in (ImportJobStatus.FAILED, ImportJobStatus.CANCELLED)


_IMPORT_TERMINAL = frozenset(
    {
        ImportJobStatus.COMPLETED,
        ImportJobStatus.PARTIALLY_COMPLETED,
        ImportJobStatus.FAILED,
        ImportJobStatus.CANCELLED,
    }
)
_VALIDATION_TERMINAL = frozenset(
    {
        ImportJobStatus.VALIDATED,
        ImportJobStatus.VALIDATION_FAILED,
        ImportJobStatus.FAILED,
        ImportJobStatus.CANCELLED,
    }
)
_TERMINAL = _IMPORT_TERMINAL | _VALIDATION_TERMINAL


class RowError(MigrationModel):
    """An error for a specific row (row numbers are 1-indexed)."""

    row_number: int
    column: str | None = None
    code: str = Field(
        ...,
        validation_alias=AliasChoices("code", "errorCode", "error_code"),
        serialization_alias="errorCode",
    )
    message: str
    original_value: str | None = None


class ImportJob(MigrationModel):
    """Snapshot of an import job as reported by the status endpoint.

    Snapshots are frozen: the poller replaces the whole object on every fetch.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    status: ImportJobStatus
    filename: str | None = None
    template_name: str | None = None
    progress_percent: int = Field(0, ge=0, le=100)
    total_rows: int | None = None
    processed_rows: int = 0
    successful_rows: int = 0
    failed_rows: int = 0
    skipped_rows: int = 0
    error_summary: list[RowError] = Field(default_factory=list)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    estimated_remaining_seconds: int | None = None

    @property
    def counts_balanced(self) -> bool:
        """Whether processed rows equal successful + failed + skipped."""
        return self.processed_rows == (
            self.successful_rows + self.failed_rows + self.skipped_rows
        )


class ImportOptions(MigrationModel):
    """Options for import behavior."""

    skip_errors: bool = False  # Skip rows with validation errors instead of failing
    update_existing: bool = False  # Update existing records found by key field
    dry_run: bool = False  # Validate only, don't import
    key_field: str | None = None
    batch_size: int | None = None


class UploadResult(MigrationModel):
    """Response of the upload-and-validate operation."""

    job_id: str = Field(..., validation_alias=AliasChoices("job_id", "jobId", "id"))
    preview: ImportPreview | None = None


class ApproveResult(MigrationModel):
    """Import approval response."""

    job_id: str
    status: ImportJobStatus = ImportJobStatus.IMPORTING
    message: str | None = None
    estimated_seconds: int | None = None


class ImportErrorsPage(MigrationModel):
    """One page of per-row errors for the full error browser."""

    job_id: str
    total_errors: int = 0
    errors: list[RowError] = Field(default_factory=list)
    page: int = 1
    per_page: int = 50

    @property
    def has_next(self) -> bool:
        return self.page * self.per_page < self.total_errors
