"""JSON-file backed history of migration exports."""

from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from migration_workflow.core.logging import get_logger
from migration_workflow.schemas.exports import ExportHistoryEntry, ExportJob, ExportStatus

logger = get_logger(__name__)


class _HistoryFile(BaseModel):
    entries: list[ExportHistoryEntry] = Field(default_factory=list)


class ExportHistoryStore:
    """Remembers requested and downloaded exports across sessions.

    State is held in memory between an explicit ``load()`` and ``save()``;
    nothing touches the file implicitly.
    """

    def __init__(self, path: str | Path, max_entries: int = 100):
        self.path = Path(path)
        self.max_entries = max_entries
        self._entries: dict[str, ExportHistoryEntry] = {}
        self.loaded = False

    def load(self) -> list[ExportHistoryEntry]:
        """Read the history file; a missing or corrupt file yields an empty history."""
        self._entries = {}
        if self.path.exists():
            try:
                history = _HistoryFile.model_validate_json(self.path.read_text(encoding="utf-8"))
            except (OSError, ValidationError) as e:
                logger.warning(f"Ignoring unreadable export history {self.path}: {e}")
            else:
                # Stored newest first; keep insertion order oldest first.
                self._entries = {entry.export_id: entry for entry in reversed(history.entries)}
        self.loaded = True
        return self.entries()

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        history = _HistoryFile(entries=self.entries()[: self.max_entries])
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(history.model_dump_json(indent=2), encoding="utf-8")
        tmp_path.replace(self.path)
        logger.debug(f"Saved {len(history.entries)} export history entries to {self.path}")

    def entries(self) -> list[ExportHistoryEntry]:
        """Entries newest first."""
        return sorted(
            reversed(list(self._entries.values())),
            key=lambda entry: entry.requested_at,
            reverse=True,
        )

    def get(self, export_id: str) -> ExportHistoryEntry | None:
        return self._entries.get(export_id)

    def record_requested(self, export_id: str, categories: list[str]) -> ExportHistoryEntry:
        entry = ExportHistoryEntry(
            export_id=export_id,
            categories=list(categories),
            status=ExportStatus.PENDING,
            requested_at=datetime.now(UTC),
        )
        self._entries[export_id] = entry
        return entry

    def record_status(self, job: ExportJob) -> ExportHistoryEntry:
        """Update the entry for ``job`` with its latest status, creating it if needed."""
        current = self._entries.get(job.id)
        if current is None:
            current = self.record_requested(job.id, job.categories)

        update: dict[str, object] = {"status": job.status}
        if job.file_size_bytes is not None:
            update["file_size_bytes"] = job.file_size_bytes
        if job.status == ExportStatus.DOWNLOADED and current.downloaded_at is None:
            update["downloaded_at"] = datetime.now(UTC)

        entry = current.model_copy(update=update)
        self._entries[job.id] = entry
        return entry
