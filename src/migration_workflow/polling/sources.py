"""Status sources consumed by the job status poller."""

from typing import TYPE_CHECKING, Protocol, TypeVar

from migration_workflow.schemas.exports import ExportJob
from migration_workflow.schemas.imports import ImportJob

if TYPE_CHECKING:
    from migration_workflow.clients.base import MigrationBackend

StatusT = TypeVar("StatusT")


class JobStatusSource(Protocol[StatusT]):
    """Protocol for anything the poller can ask for a job's status.

    Implementations may poll, long-poll or read from a subscription; the
    poller only needs one status per call and a terminal-state predicate.
    """

    async def fetch_status(self, job_id: str) -> StatusT:
        """Fetch the current status of a job.

        Args:
            job_id: Job identifier.

        Returns:
            StatusT: The newest status snapshot.
        """
        ...

    def is_terminal(self, status: StatusT) -> bool:
        """Whether polling should stop after observing ``status``."""
        ...


class ImportValidationSource:
    """Import job status, terminal once validation has an outcome."""

    def __init__(self, backend: "MigrationBackend"):
        self.backend = backend

    async def fetch_status(self, job_id: str) -> ImportJob:
        return await self.backend.get_import_status(job_id)

    def is_terminal(self, status: ImportJob) -> bool:
        return status.status.is_validation_terminal


class ImportProgressSource:
    """Import job status, terminal once the approved import has an outcome."""

    def __init__(self, backend: "MigrationBackend"):
        self.backend = backend

    async def fetch_status(self, job_id: str) -> ImportJob:
        return await self.backend.get_import_status(job_id)

    def is_terminal(self, status: ImportJob) -> bool:
        return status.status.is_import_terminal


class ExportStatusSource:
    """Export job status, terminal on ready, downloaded, expired or failed."""

    def __init__(self, backend: "MigrationBackend"):
        self.backend = backend

    async def fetch_status(self, job_id: str) -> ExportJob:
        return await self.backend.get_export_status(job_id)

    def is_terminal(self, status: ExportJob) -> bool:
        return status.status.is_terminal
