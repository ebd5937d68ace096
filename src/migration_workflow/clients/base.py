"""Interface of the backend job service the workflows orchestrate."""

from typing import Protocol

from migration_workflow.schemas.exports import (
    ExportCategory,
    ExportCategoryInfo,
    ExportJob,
    ExportPrivacyOptions,
    StartExportResult,
)
from migration_workflow.schemas.imports import (
    ApproveResult,
    ImportErrorsPage,
    ImportJob,
    ImportOptions,
    UploadResult,
)
from migration_workflow.schemas.validation import ImportPreview, Resolution
from migration_workflow.workflows.uploads import UploadCandidate


class MigrationBackend(Protocol):
    """Protocol for the migration job service.

    Every method is a suspension point; implementations raise
    ``MigrationApiError`` (or a subclass) on failure.
    """

    async def upload_import(
        self, template_id: str, file: UploadCandidate, options: ImportOptions
    ) -> UploadResult: ...

    async def get_import_status(self, job_id: str) -> ImportJob: ...

    async def get_import_preview(self, job_id: str) -> ImportPreview: ...

    async def approve_import(self, job_id: str, acknowledge_warnings: bool) -> ApproveResult: ...

    async def resolve_duplicates(self, job_id: str, mapping: dict[int, Resolution]) -> None: ...

    async def retry_import(self, job_id: str) -> ImportJob: ...

    async def cancel_import(self, job_id: str) -> ImportJob: ...

    async def get_import_errors(self, job_id: str, page: int, per_page: int) -> ImportErrorsPage: ...

    async def list_export_categories(self) -> list[ExportCategoryInfo]: ...

    async def start_export(
        self, categories: list[ExportCategory], privacy_options: ExportPrivacyOptions
    ) -> StartExportResult: ...

    async def get_export_status(self, export_id: str) -> ExportJob: ...

    async def download_export(self, download_url: str) -> bytes: ...


class JobDuplicateResolver:
    """Binds ``resolve_duplicates`` to one job so the policy can submit to it."""

    def __init__(self, backend: MigrationBackend, job_id: str):
        self.backend = backend
        self.job_id = job_id

    async def resolve(self, mapping: dict[int, Resolution]) -> None:
        await self.backend.resolve_duplicates(self.job_id, mapping)
