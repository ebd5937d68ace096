"""Human-readable labels and formatting for job progress."""

from datetime import UTC, datetime
from typing import Final

from migration_workflow.schemas.exports import ExportStatus
from migration_workflow.schemas.imports import ImportJobStatus

IMPORT_STATUS_LABELS: Final[dict[ImportJobStatus, str]] = {
    ImportJobStatus.PENDING: "Pending",
    ImportJobStatus.VALIDATING: "Validating...",
    ImportJobStatus.VALIDATED: "Validated",
    ImportJobStatus.VALIDATION_FAILED: "Validation Failed",
    ImportJobStatus.IMPORTING: "Importing...",
    ImportJobStatus.COMPLETED: "Completed",
    ImportJobStatus.PARTIALLY_COMPLETED: "Partially Completed",
    ImportJobStatus.FAILED: "Failed",
    ImportJobStatus.CANCELLED: "Cancelled",
}

EXPORT_STATUS_LABELS: Final[dict[ExportStatus, str]] = {
    ExportStatus.PENDING: "Preparing export...",
    ExportStatus.PROCESSING: "Generating export files...",
    ExportStatus.READY: "Export ready",
    ExportStatus.DOWNLOADED: "Downloaded",
    ExportStatus.EXPIRED: "Expired",
    ExportStatus.FAILED: "Export failed",
}


def format_duration(seconds: int) -> str:
    """Format seconds as ``45s`` or ``2m 5s``."""
    if seconds < 60:
        return f"{seconds}s"
    minutes, secs = divmod(seconds, 60)
    return f"{minutes}m {secs}s"


def format_file_size(size_bytes: int) -> str:
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    return f"{size_bytes / 1024 / 1024:.1f} MB"


def format_expires_in(expires_at: datetime, now: datetime | None = None) -> str:
    """Describe how long until a download link expires."""
    now = now or datetime.now(UTC)
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=UTC)
    remaining = (expires_at - now).total_seconds()
    if remaining <= 0:
        return "Expired"
    days, rest = divmod(int(remaining), 24 * 3600)
    hours = rest // 3600
    if days > 0:
        return f"{days} days"
    if hours > 0:
        return f"{hours} hours"
    return "Less than an hour"
