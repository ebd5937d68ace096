"""Import workflow: select template, upload, preview, import, complete."""

from dataclasses import dataclass
from enum import Enum
from types import TracebackType

from migration_workflow.clients.base import JobDuplicateResolver, MigrationBackend
from migration_workflow.config import Settings, get_settings
from migration_workflow.core.exceptions import UnknownDuplicateRowError, describe_error
from migration_workflow.core.formatting import IMPORT_STATUS_LABELS, format_duration
from migration_workflow.core.logging import get_logger
from migration_workflow.duplicates.policy import DuplicateResolutionPolicy
from migration_workflow.polling.poller import JobStatusPoller
from migration_workflow.polling.sources import ImportProgressSource, ImportValidationSource
from migration_workflow.schemas.imports import (
    ImportErrorsPage,
    ImportJob,
    ImportJobStatus,
    ImportOptions,
)
from migration_workflow.schemas.validation import ImportPreview, Resolution
from migration_workflow.validation.model import ValidationModel
from migration_workflow.workflows.uploads import FileUploader, UploadCandidate

logger = get_logger(__name__)


class ImportStep(str, Enum):
    """Import workflow steps."""

    SELECT_TEMPLATE = "select_template"
    UPLOAD = "upload"
    PREVIEW = "preview"
    IMPORTING = "importing"
    COMPLETE = "complete"


@dataclass(frozen=True)
class ImportProgress:
    """Progress of a running import, ready for display."""

    status_label: str
    percent: int
    processed_rows: int
    total_rows: int | None
    successful_rows: int
    failed_rows: int
    remaining: str | None = None


class ImportWorkflowController:
    """Drives one import from template selection to completion.

    The controller exclusively owns its job state. Backend failures are
    caught here and rendered as ``error``; actions that do not belong to the
    current step are logged and return False. Every transition bumps an
    operation epoch so a suspended request whose epoch went stale has its
    result dropped.
    """

    def __init__(
        self,
        backend: MigrationBackend,
        settings: Settings | None = None,
        *,
        uploader: FileUploader | None = None,
        poll_interval: float | None = None,
    ):
        """Initialize the controller.

        Args:
            backend: Migration job service.
            settings: Application settings; defaults to ``get_settings()``.
            uploader: File gate; defaults to one built from settings.
            poll_interval: Seconds between status fetches (overrides settings).
        """
        self.settings = settings or get_settings()
        self.backend = backend
        self.uploader = uploader or FileUploader.from_settings(self.settings)

        interval = (
            poll_interval if poll_interval is not None else self.settings.import_poll_interval_seconds
        )
        self._validation_poller: JobStatusPoller[ImportJob] = JobStatusPoller(
            ImportValidationSource(backend),
            interval,
            on_update=self._on_job_update,
            error_backoff_factor=self.settings.poll_error_backoff_factor,
            max_interval=self.settings.poll_max_interval_seconds,
            name="import validation",
        )
        self._import_poller: JobStatusPoller[ImportJob] = JobStatusPoller(
            ImportProgressSource(backend),
            interval,
            on_update=self._on_job_update,
            on_complete=self._on_import_finished,
            error_backoff_factor=self.settings.poll_error_backoff_factor,
            max_interval=self.settings.poll_max_interval_seconds,
            name="import",
        )

        self._epoch = 0
        self.closed = False
        self._reset_state()

    def _reset_state(self) -> None:
        self.step = ImportStep.SELECT_TEMPLATE
        self.template_id: str | None = None
        self.template_name: str | None = None
        self.selected_file: UploadCandidate | None = None
        self.options = ImportOptions()
        self.job_id: str | None = None
        self.job: ImportJob | None = None
        self.preview: ImportPreview | None = None
        self.validation: ValidationModel | None = None
        self.duplicate_policy: DuplicateResolutionPolicy | None = None
        self.submitted_resolutions: dict[int, Resolution] | None = None
        self.acknowledged_warnings = False
        self.errors_page: ImportErrorsPage | None = None
        self.error: str | None = None
        self.busy = False

    # ---------------- Lifecycle ----------------

    async def __aenter__(self) -> "ImportWorkflowController":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    def close(self) -> None:
        """Deactivate the workflow: stop polling and drop in-flight results."""
        if self.closed:
            return
        self.closed = True
        self._invalidate()
        self._validation_poller.stop()
        self._import_poller.stop()
        logger.info(f"Import workflow closed (step: {self.step.value})")

    async def aclose(self) -> None:
        self.close()
        await self._validation_poller.aclose()
        await self._import_poller.aclose()

    async def wait_for_job(self) -> ImportJob | None:
        """Wait until import polling ends (terminal status or cancellation)."""
        await self._import_poller.wait()
        return self.job

    # ---------------- Helpers ----------------

    def _invalidate(self) -> None:
        self._epoch += 1

    def _is_stale(self, epoch: int) -> bool:
        if epoch != self._epoch or self.closed:
            logger.debug("Discarding result of a superseded import operation")
            return True
        return False

    def _guard(self, action: str, *steps: ImportStep) -> bool:
        if self.closed:
            logger.warning(f"Ignoring {action}: workflow is closed")
            return False
        if self.step not in steps:
            logger.warning(f"Ignoring {action} in step {self.step.value}")
            return False
        return True

    def _fail(self, action: str, exc: Exception) -> None:
        self.error = f"{action}: {describe_error(exc)}"
        logger.error(f"{action} (job {self.job_id}): {exc}", exc_info=True)

    # ---------------- Template & upload ----------------

    def select_template(self, template_id: str, template_name: str) -> bool:
        if not self._guard("template selection", ImportStep.SELECT_TEMPLATE):
            return False
        self._invalidate()
        self.template_id = template_id
        self.template_name = template_name
        self.error = None
        self.step = ImportStep.UPLOAD
        logger.info(f"Selected import template {template_name} ({template_id})")
        return True

    def choose_file(self, candidate: UploadCandidate) -> bool:
        """Run the client-side file gate; a rejected file leaves the state unchanged."""
        if not self._guard("file selection", ImportStep.UPLOAD) or self.busy:
            return False
        rejection = self.uploader.validate(candidate)
        if rejection:
            self.error = rejection
            logger.info(f"Rejected {candidate.filename}: {rejection}")
            return False
        self.selected_file = candidate
        self.error = None
        return True

    async def upload(self, options: ImportOptions | None = None) -> bool:
        """Upload the chosen file and wait for its validation preview.

        Args:
            options: Import options (skip errors, update existing, dry run).

        Returns:
            bool: True if the workflow entered the preview step.
        """
        if not self._guard("upload", ImportStep.UPLOAD) or self.busy:
            return False
        if self.selected_file is None:
            self.error = "Select a file to upload"
            return False
        rejection = self.uploader.validate(self.selected_file)
        if rejection:
            self.error = rejection
            return False

        if options is not None:
            self.options = options
        epoch = self._epoch
        self.busy = True
        self.error = None
        try:
            result = await self.backend.upload_import(
                self.template_id or "", self.selected_file, self.options
            )
            if self._is_stale(epoch):
                return False
            self.job_id = result.job_id
            logger.info(f"Upload accepted as import job {result.job_id}")

            preview = result.preview
            if preview is None:
                preview = await self._wait_for_preview(result.job_id, epoch)
                if preview is None:
                    return False
        except Exception as e:
            if self._is_stale(epoch):
                return False
            self._fail("Upload failed", e)
            return False
        finally:
            if epoch == self._epoch:
                self.busy = False

        self._enter_preview(preview)
        return True

    async def _wait_for_preview(self, job_id: str, epoch: int) -> ImportPreview | None:
        self._validation_poller.start(job_id)
        job = await self._validation_poller.wait()
        if self._is_stale(epoch):
            return None
        if job is None or not job.status.is_validation_terminal:
            self.error = "Validation did not finish"
            return None
        if job.status in (ImportJobStatus.FAILED, ImportJobStatus.CANCELLED):
            self.error = f"Validation {IMPORT_STATUS_LABELS[job.status].lower()}"
            logger.warning(f"Import job {job_id} ended validation as {job.status.value}")
            return None

        preview = await self.backend.get_import_preview(job_id)
        if self._is_stale(epoch):
            return None
        return preview

    def cancel_upload(self) -> bool:
        if not self._guard("upload cancel", ImportStep.UPLOAD):
            return False
        self._invalidate()
        self._validation_poller.stop()
        self.template_id = None
        self.template_name = None
        self.selected_file = None
        self.job_id = None
        self.job = None
        self.error = None
        self.busy = False
        self.step = ImportStep.SELECT_TEMPLATE
        return True

    # ---------------- Preview ----------------

    def _enter_preview(self, preview: ImportPreview) -> None:
        self._invalidate()
        self.preview = preview
        self.validation = ValidationModel(preview)
        self.duplicate_policy = (
            DuplicateResolutionPolicy(preview.duplicates, self.settings.duplicate_skip_threshold)
            if preview.duplicates
            else None
        )
        self.acknowledged_warnings = False
        self.step = ImportStep.PREVIEW
        logger.info(
            f"Preview for job {self.job_id}: {preview.total_rows} rows, "
            f"{preview.error_rows} with errors, {preview.warning_rows} with warnings, "
            f"{len(preview.duplicates)} duplicates"
        )

    def acknowledge_warnings(self, acknowledged: bool = True) -> bool:
        if not self._guard("warning acknowledgement", ImportStep.PREVIEW):
            return False
        self.acknowledged_warnings = acknowledged
        return True

    @property
    def can_approve(self) -> bool:
        return (
            self.step == ImportStep.PREVIEW
            and not self.busy
            and self.validation is not None
            and self.validation.can_approve(self.acknowledged_warnings)
        )

    def resolve_duplicate(self, import_row: int, resolution: Resolution) -> bool:
        if not self._guard("duplicate resolution", ImportStep.PREVIEW):
            return False
        if self.duplicate_policy is None:
            return False
        try:
            self.duplicate_policy.set_resolution(import_row, resolution)
        except UnknownDuplicateRowError as e:
            self.error = e.message
            return False
        return True

    def resolve_all_duplicates(self, resolution: Resolution) -> bool:
        if not self._guard("bulk duplicate resolution", ImportStep.PREVIEW):
            return False
        if self.duplicate_policy is None:
            return False
        self.duplicate_policy.apply_to_all(resolution)
        return True

    async def approve(self) -> bool:
        """Submit duplicate resolutions, approve the import and start polling it.

        Returns:
            bool: True if the workflow entered the importing step.
        """
        if not self._guard("approval", ImportStep.PREVIEW) or self.busy:
            return False
        if not self.can_approve or self.job_id is None:
            reason = self.validation.blocking_reason(self.acknowledged_warnings) if self.validation else None
            self.error = reason or "Import cannot be approved"
            return False

        job_id = self.job_id
        epoch = self._epoch
        self.busy = True
        self.error = None
        submitted: dict[int, Resolution] | None = None
        try:
            if self.duplicate_policy is not None and len(self.duplicate_policy):
                submitted = await self.duplicate_policy.submit(
                    JobDuplicateResolver(self.backend, job_id)
                )
                if self._is_stale(epoch):
                    return False

            await self.backend.approve_import(job_id, self.acknowledged_warnings)
            if self._is_stale(epoch):
                return False
        except Exception as e:
            if self._is_stale(epoch):
                return False
            self._fail("Approval failed", e)
            return False
        finally:
            if epoch == self._epoch:
                self.busy = False

        self._invalidate()
        self.submitted_resolutions = submitted
        self.duplicate_policy = None
        self.job = None
        self.step = ImportStep.IMPORTING
        logger.info(f"Approved import job {job_id} (warnings acknowledged: {self.acknowledged_warnings})")
        self._import_poller.start(job_id)
        return True

    def cancel_preview(self) -> bool:
        """Drop the preview and go back to upload with the same template."""
        if not self._guard("preview cancel", ImportStep.PREVIEW):
            return False
        self._invalidate()
        self.preview = None
        self.validation = None
        self.duplicate_policy = None
        self.acknowledged_warnings = False
        self.job_id = None
        self.job = None
        self.error = None
        self.busy = False
        self.step = ImportStep.UPLOAD
        return True

    # ---------------- Importing ----------------

    def _on_job_update(self, job: ImportJob) -> None:
        self.job = job
        logger.debug(f"Import job {job.id}: {job.status.value} {job.progress_percent}%")

    def _on_import_finished(self, job: ImportJob) -> None:
        if self.step != ImportStep.IMPORTING:
            return
        self.job = job
        if job.status == ImportJobStatus.COMPLETED:
            self.step = ImportStep.COMPLETE
            self.error = None
            logger.info(f"Import job {job.id} completed: {job.successful_rows} rows imported")
        elif job.status == ImportJobStatus.PARTIALLY_COMPLETED:
            logger.warning(
                f"Import job {job.id} partially completed: "
                f"{job.successful_rows} imported, {job.failed_rows} failed"
            )
        else:
            self.error = f"Import {IMPORT_STATUS_LABELS[job.status].lower()}"
            logger.warning(f"Import job {job.id} ended as {job.status.value}")

    @property
    def outcome(self) -> ImportJobStatus | None:
        """Terminal status of the import, None while it runs."""
        if self.job is not None and self.job.status.is_import_terminal:
            return self.job.status
        return None

    @property
    def can_cancel_import(self) -> bool:
        return self.step == ImportStep.IMPORTING and self.outcome is None and not self.busy

    @property
    def can_retry(self) -> bool:
        return (
            self.step == ImportStep.IMPORTING
            and not self.busy
            and self.outcome is not None
            and self.outcome.is_retryable
        )

    @property
    def can_start_new(self) -> bool:
        return self.step == ImportStep.COMPLETE or (
            self.step == ImportStep.IMPORTING and self.outcome is not None
        )

    async def cancel_import(self) -> bool:
        """Ask the service to cancel the running import."""
        if not self._guard("import cancel", ImportStep.IMPORTING) or not self.can_cancel_import:
            return False
        assert self.job_id is not None
        job_id = self.job_id
        self._import_poller.stop()
        self._invalidate()
        epoch = self._epoch
        self.busy = True
        try:
            job = await self.backend.cancel_import(job_id)
            if self._is_stale(epoch):
                return False
        except Exception as e:
            if self._is_stale(epoch):
                return False
            self._fail("Could not cancel import", e)
            self._import_poller.start(job_id, self.job)
            return False
        finally:
            if epoch == self._epoch:
                self.busy = False

        self.job = job
        if job.status.is_import_terminal:
            self._on_import_finished(job)
        else:
            self._import_poller.start(job_id, job)
        return True

    async def retry(self) -> bool:
        """Retry a failed or cancelled import and poll the returned job."""
        if not self._guard("retry", ImportStep.IMPORTING) or not self.can_retry:
            return False
        assert self.job_id is not None
        epoch = self._epoch
        self.busy = True
        try:
            job = await self.backend.retry_import(self.job_id)
            if self._is_stale(epoch):
                return False
        except Exception as e:
            if self._is_stale(epoch):
                return False
            self._fail("Retry failed", e)
            return False
        finally:
            if epoch == self._epoch:
                self.busy = False

        self._invalidate()
        logger.info(f"Retrying import job {self.job_id} as {job.id}")
        self.job_id = job.id
        self.job = job
        self.error = None
        self._import_poller.start(job.id, job)
        return True

    async def load_errors(self, page: int = 1, per_page: int | None = None) -> ImportErrorsPage | None:
        """Fetch one page of per-row errors for the current job."""
        if not self._guard("error listing", ImportStep.IMPORTING, ImportStep.COMPLETE):
            return None
        if self.job_id is None:
            return None
        epoch = self._epoch
        try:
            errors_page = await self.backend.get_import_errors(
                self.job_id, page, per_page or self.settings.error_page_size
            )
        except Exception as e:
            if self._is_stale(epoch):
                return None
            self._fail("Could not load errors", e)
            return None
        if self._is_stale(epoch):
            return None
        self.errors_page = errors_page
        return errors_page

    @property
    def progress(self) -> ImportProgress | None:
        job = self.job
        if job is None:
            return None
        remaining = (
            format_duration(job.estimated_remaining_seconds)
            if job.estimated_remaining_seconds
            else None
        )
        return ImportProgress(
            status_label=IMPORT_STATUS_LABELS[job.status],
            percent=job.progress_percent,
            processed_rows=job.processed_rows,
            total_rows=job.total_rows,
            successful_rows=job.successful_rows,
            failed_rows=job.failed_rows,
            remaining=remaining,
        )

    def describe_progress(self) -> str:
        progress = self.progress
        if progress is None:
            return "Waiting for status..."
        total = progress.total_rows if progress.total_rows is not None else "-"
        text = (
            f"{progress.status_label} {progress.percent}% "
            f"({progress.processed_rows}/{total} rows, "
            f"{progress.successful_rows} ok, {progress.failed_rows} failed)"
        )
        if progress.remaining:
            text += f", {progress.remaining} remaining"
        return text

    # ---------------- Complete ----------------

    def start_new(self) -> bool:
        """Reset every piece of transient state and return to template selection."""
        if self.closed or not self.can_start_new:
            logger.warning(f"Ignoring start new in step {self.step.value}")
            return False
        self._invalidate()
        self._validation_poller.stop()
        self._import_poller.stop()
        self._reset_state()
        return True
