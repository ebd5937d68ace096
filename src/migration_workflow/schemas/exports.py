"""Migration export schemas."""

from datetime import datetime
from enum import Enum

from pydantic import AliasChoices, ConfigDict, Field

from migration_workflow.schemas.base import MigrationModel


class ExportStatus(str, Enum):
    """Migration export status enum."""

    PENDING = "pending"
    PROCESSING = "processing"
    READY = "ready"
    DOWNLOADED = "downloaded"
    EXPIRED = "expired"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (
            ExportStatus.READY,
            ExportStatus.DOWNLOADED,
            ExportStatus.EXPIRED,
            ExportStatus.FAILED,
        )


class ExportCategory(str, Enum):
    """Data categories available for export."""

    BUILDINGS = "buildings"
    UNITS = "units"
    RESIDENTS = "residents"
    FINANCIALS = "financials"
    FAULTS = "faults"
    DOCUMENTS = "documents"
    VOTES = "votes"
    ANNOUNCEMENTS = "announcements"
    METERS = "meters"
    LEASES = "leases"
    VENDORS = "vendors"
    WORK_ORDERS = "work_orders"


class ExportCategoryInfo(MigrationModel):
    """Information about an export category."""

    id: ExportCategory
    name: str
    description: str = ""
    record_count: int = 0  # Approximate record count for the organization
    contains_personal_data: bool = False


class ExportPrivacyOptions(MigrationModel):
    """Privacy/anonymization options for export."""

    anonymize_personal_data: bool = False  # Names, emails, phones
    mask_financial_data: bool = False  # Account numbers
    exclude_document_contents: bool = False  # Export metadata only
    hash_identifiers: bool = False  # Hashes instead of real IDs

    @property
    def any_enabled(self) -> bool:
        return any(self.model_dump().values())


class ExportJob(MigrationModel):
    """Snapshot of a migration export as reported by the status endpoint."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., validation_alias=AliasChoices("id", "exportId", "export_id"))
    status: ExportStatus
    categories: list[str] = Field(default_factory=list)
    download_url: str | None = None
    file_size_bytes: int | None = None
    expires_at: datetime | None = None
    error_message: str | None = None
    record_counts: dict[str, int] | None = None


class StartExportResult(MigrationModel):
    """Response for a migration export request."""

    export_id: str = Field(..., validation_alias=AliasChoices("export_id", "exportId", "id"))
    status: ExportStatus = ExportStatus.PENDING
    estimated_time: str | None = None
    categories: list[str] = Field(default_factory=list)


class ExportHistoryEntry(MigrationModel):
    """A past export as remembered by the local history store."""

    export_id: str
    categories: list[str] = Field(default_factory=list)
    status: ExportStatus
    requested_at: datetime
    downloaded_at: datetime | None = None
    file_size_bytes: int | None = None
