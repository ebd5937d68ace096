"""Export workflow: select categories, export, download."""

import io
import zipfile
from enum import Enum
from pathlib import PurePosixPath
from types import TracebackType

from migration_workflow.clients.base import MigrationBackend
from migration_workflow.config import Settings, get_settings
from migration_workflow.core.exceptions import describe_error
from migration_workflow.core.formatting import EXPORT_STATUS_LABELS
from migration_workflow.core.logging import get_logger
from migration_workflow.polling.poller import JobStatusPoller
from migration_workflow.polling.sources import ExportStatusSource
from migration_workflow.schemas.exports import (
    ExportCategory,
    ExportCategoryInfo,
    ExportJob,
    ExportPrivacyOptions,
    ExportStatus,
)
from migration_workflow.stores.export_history import ExportHistoryStore

logger = get_logger(__name__)


class ExportStep(str, Enum):
    """Export workflow steps."""

    SELECT = "select"
    EXPORTING = "exporting"
    COMPLETE = "complete"


def archive_categories(data: bytes) -> list[str]:
    """List the category files in an export archive.

    Args:
        data: ZIP archive bytes as returned by the download endpoint.

    Returns:
        list[str]: Category names, one per CSV member, in archive order.

    Raises:
        zipfile.BadZipFile: If ``data`` is not a ZIP archive.
    """
    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        return [
            PurePosixPath(name).stem
            for name in archive.namelist()
            if name.lower().endswith(".csv")
        ]


class ExportWorkflowController:
    """Drives one data export from category selection to download.

    Backend failures become ``error``; actions outside their step are logged
    and return False. Status polling starts once the export is requested and
    stops as soon as the export is ready, expired or failed.
    """

    def __init__(
        self,
        backend: MigrationBackend,
        settings: Settings | None = None,
        *,
        history: ExportHistoryStore | None = None,
        poll_interval: float | None = None,
    ):
        """Initialize the controller.

        Args:
            backend: Migration job service.
            settings: Application settings; defaults to ``get_settings()``.
            history: Optional store that remembers requested exports.
            poll_interval: Seconds between status fetches (overrides settings).
        """
        self.settings = settings or get_settings()
        self.backend = backend
        self.history = history

        interval = (
            poll_interval if poll_interval is not None else self.settings.export_poll_interval_seconds
        )
        self._poller: JobStatusPoller[ExportJob] = JobStatusPoller(
            ExportStatusSource(backend),
            interval,
            on_update=self._on_export_update,
            on_complete=self._on_export_finished,
            error_backoff_factor=self.settings.poll_error_backoff_factor,
            max_interval=self.settings.poll_max_interval_seconds,
            name="export",
        )

        self._epoch = 0
        self.closed = False
        self.available: list[ExportCategoryInfo] = []
        self.selected: set[ExportCategory] = set()
        self.privacy_options = ExportPrivacyOptions()
        self._reset_job()

    def _reset_job(self) -> None:
        self.step = ExportStep.SELECT
        self.export_id: str | None = None
        self.estimated_time: str | None = None
        self.job: ExportJob | None = None
        self.archive: bytes | None = None
        self.error: str | None = None
        self.busy = False

    async def __aenter__(self) -> "ExportWorkflowController":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._epoch += 1
        self._poller.stop()
        logger.info(f"Export workflow closed (step: {self.step.value})")

    async def aclose(self) -> None:
        self.close()
        await self._poller.aclose()

    async def wait_for_export(self) -> ExportJob | None:
        """Wait until status polling ends."""
        await self._poller.wait()
        return self.job

    def _is_stale(self, epoch: int) -> bool:
        if epoch != self._epoch or self.closed:
            logger.debug("Discarding result of a superseded export operation")
            return True
        return False

    def _guard(self, action: str, *steps: ExportStep) -> bool:
        if self.closed:
            logger.warning(f"Ignoring {action}: workflow is closed")
            return False
        if self.step not in steps:
            logger.warning(f"Ignoring {action} in step {self.step.value}")
            return False
        return True

    def _fail(self, action: str, exc: Exception) -> None:
        self.error = f"{action}: {describe_error(exc)}"
        logger.error(f"{action} (export {self.export_id}): {exc}", exc_info=True)

    def _save_history(self) -> None:
        if self.history is None:
            return
        try:
            self.history.save()
        except OSError as e:
            logger.warning(f"Could not save export history: {e}")

    # ---------------- Selection ----------------

    async def load_categories(self) -> bool:
        """Fetch the exportable categories and their record counts."""
        if not self._guard("category loading", ExportStep.SELECT):
            return False
        epoch = self._epoch
        try:
            categories = await self.backend.list_export_categories()
        except Exception as e:
            if self._is_stale(epoch):
                return False
            self._fail("Could not load export categories", e)
            return False
        if self._is_stale(epoch):
            return False
        self.set_available(categories)
        return True

    def set_available(self, categories: list[ExportCategoryInfo]) -> None:
        self.available = list(categories)
        known = {info.id for info in self.available}
        self.selected &= known
        self._sync_privacy_options()

    def _info(self, category: ExportCategory) -> ExportCategoryInfo | None:
        return next((info for info in self.available if info.id == category), None)

    def toggle_category(self, category: ExportCategory) -> bool:
        if not self._guard("category toggle", ExportStep.SELECT):
            return False
        category = ExportCategory(category)
        if self._info(category) is None:
            self.error = f"Unknown export category: {category.value}"
            return False
        if category in self.selected:
            self.selected.discard(category)
        else:
            self.selected.add(category)
        self.error = None
        self._sync_privacy_options()
        return True

    def select_all(self) -> bool:
        if not self._guard("select all", ExportStep.SELECT):
            return False
        self.selected = {info.id for info in self.available}
        self._sync_privacy_options()
        return True

    def clear_selection(self) -> bool:
        if not self._guard("clear selection", ExportStep.SELECT):
            return False
        self.selected = set()
        self._sync_privacy_options()
        return True

    @property
    def selected_categories(self) -> list[ExportCategory]:
        """Selected categories in the order the service lists them."""
        return [info.id for info in self.available if info.id in self.selected]

    @property
    def total_records(self) -> int:
        return sum(info.record_count for info in self.available if info.id in self.selected)

    @property
    def privacy_options_available(self) -> bool:
        """Privacy options only apply when a selected category holds personal data."""
        return any(
            info.contains_personal_data for info in self.available if info.id in self.selected
        )

    def _sync_privacy_options(self) -> None:
        if not self.privacy_options_available and self.privacy_options.any_enabled:
            logger.debug("No personal data selected; resetting privacy options")
            self.privacy_options = ExportPrivacyOptions()

    def set_privacy_options(self, options: ExportPrivacyOptions) -> bool:
        if not self._guard("privacy options", ExportStep.SELECT):
            return False
        if not self.privacy_options_available:
            logger.warning("Ignoring privacy options: no selected category contains personal data")
            return False
        self.privacy_options = options
        return True

    # ---------------- Exporting ----------------

    async def start_export(self) -> bool:
        """Request the export of the selected categories and start polling it.

        Returns:
            bool: True if the workflow entered the exporting step.
        """
        if not self._guard("export start", ExportStep.SELECT) or self.busy:
            return False
        categories = self.selected_categories
        if not categories:
            self.error = "Select at least one category to export"
            return False

        epoch = self._epoch
        self.busy = True
        self.error = None
        try:
            result = await self.backend.start_export(categories, self.privacy_options)
        except Exception as e:
            if self._is_stale(epoch):
                return False
            self._fail("Could not start export", e)
            return False
        finally:
            if epoch == self._epoch:
                self.busy = False
        if self._is_stale(epoch):
            return False

        self._epoch += 1
        self.export_id = result.export_id
        self.estimated_time = result.estimated_time
        self.job = None
        self.archive = None
        self.step = ExportStep.EXPORTING
        logger.info(
            f"Requested export {result.export_id} of {len(categories)} categories "
            f"({self.total_records} records)"
        )
        if self.history is not None:
            self.history.record_requested(result.export_id, [category.value for category in categories])
            self._save_history()
        self._poller.start(result.export_id)
        return True

    def _on_export_update(self, job: ExportJob) -> None:
        self.job = job
        logger.debug(f"Export {job.id}: {job.status.value}")

    def _on_export_finished(self, job: ExportJob) -> None:
        if self.step != ExportStep.EXPORTING:
            return
        self.job = job
        if job.status in (ExportStatus.READY, ExportStatus.DOWNLOADED):
            self.step = ExportStep.COMPLETE
            self.error = None
            logger.info(f"Export {job.id} is ready ({job.file_size_bytes or 0} bytes)")
        elif job.status == ExportStatus.EXPIRED:
            self.error = "The export expired before it was downloaded"
            logger.warning(f"Export {job.id} expired")
        else:
            self.error = job.error_message or EXPORT_STATUS_LABELS[job.status]
            logger.warning(f"Export {job.id} failed: {self.error}")
        if self.history is not None:
            self.history.record_status(job)
            self._save_history()

    @property
    def outcome(self) -> ExportStatus | None:
        if self.job is not None and self.job.status.is_terminal:
            return self.job.status
        return None

    @property
    def can_retry(self) -> bool:
        return self.step == ExportStep.EXPORTING and self.outcome in (
            ExportStatus.EXPIRED,
            ExportStatus.FAILED,
        )

    async def retry(self) -> bool:
        """Request a fresh export of the same selection after failure or expiry.

        The failed export is dropped first, so a rejected request leaves the
        workflow in selection with ``error`` set.
        """
        if not self._guard("retry", ExportStep.EXPORTING) or not self.can_retry:
            return False
        self._epoch += 1
        self._poller.stop()
        self._reset_job()
        return await self.start_export()

    def cancel(self) -> bool:
        """Stop following the export and go back to selection."""
        if not self._guard("export cancel", ExportStep.EXPORTING):
            return False
        self._epoch += 1
        self._poller.stop()
        self._reset_job()
        return True

    # ---------------- Complete ----------------

    async def download(self) -> bytes | None:
        """Download the export archive.

        The export is marked downloaded locally before the archive is
        fetched; status is not polled again. A failed transfer keeps the
        downloaded mark and records ``error`` so the user can try again.

        Returns:
            bytes | None: Archive contents, None on failure.
        """
        if not self._guard("download", ExportStep.COMPLETE) or self.busy:
            return None
        job = self.job
        if job is None or not job.download_url:
            self.error = "Export has no download link"
            return None

        if job.status != ExportStatus.DOWNLOADED:
            self.job = job.model_copy(update={"status": ExportStatus.DOWNLOADED})
            if self.history is not None:
                self.history.record_status(self.job)
                self._save_history()

        epoch = self._epoch
        self.busy = True
        self.error = None
        try:
            data = await self.backend.download_export(job.download_url)
        except Exception as e:
            if self._is_stale(epoch):
                return None
            self._fail("Download failed", e)
            return None
        finally:
            if epoch == self._epoch:
                self.busy = False
        if self._is_stale(epoch):
            return None

        self.archive = data
        return data

    def reset(self) -> bool:
        """Return to category selection, keeping the loaded categories and selection."""
        if not self._guard("reset", ExportStep.EXPORTING, ExportStep.COMPLETE):
            return False
        if self.step == ExportStep.EXPORTING and self.outcome is None:
            logger.warning("Ignoring reset while the export is still running")
            return False
        self._epoch += 1
        self._poller.stop()
        self._reset_job()
        return True
