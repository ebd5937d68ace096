"""Tests for the export history store."""

from pathlib import Path

import pytest

from migration_workflow.schemas.exports import ExportJob, ExportStatus
from migration_workflow.stores.export_history import ExportHistoryStore


@pytest.fixture
def history_path(tmp_path: Path) -> Path:
    return tmp_path / "history" / "exports.json"


def test_missing_file_loads_empty(history_path: Path):
    """Test that a fresh store is empty."""
    store = ExportHistoryStore(history_path)

    assert store.load() == []
    assert store.loaded is True


def test_corrupt_file_loads_empty(history_path: Path):
    """Test that an unreadable file is ignored."""
    history_path.parent.mkdir(parents=True)
    history_path.write_text("{not json", encoding="utf-8")

    assert ExportHistoryStore(history_path).load() == []


def test_save_and_reload(history_path: Path):
    """Test persistence across store instances."""
    store = ExportHistoryStore(history_path)
    store.load()
    store.record_requested("exp-1", ["buildings"])
    store.record_requested("exp-2", ["residents", "units"])
    store.save()

    reloaded = ExportHistoryStore(history_path)
    entries = reloaded.load()

    assert [entry.export_id for entry in entries] == ["exp-2", "exp-1"]
    assert entries[0].categories == ["residents", "units"]
    assert entries[0].status == ExportStatus.PENDING


def test_record_status_tracks_download(history_path: Path):
    """Test status updates and download timestamp."""
    store = ExportHistoryStore(history_path)
    store.record_requested("exp-1", ["buildings"])

    ready = ExportJob(id="exp-1", status=ExportStatus.READY, file_size_bytes=2048)
    entry = store.record_status(ready)
    assert entry.status == ExportStatus.READY
    assert entry.file_size_bytes == 2048
    assert entry.downloaded_at is None

    entry = store.record_status(ready.model_copy(update={"status": ExportStatus.DOWNLOADED}))
    assert entry.status == ExportStatus.DOWNLOADED
    assert entry.downloaded_at is not None
    assert entry.file_size_bytes == 2048


def test_record_status_for_unknown_export(history_path: Path):
    """Test that a status for an unrecorded export creates its entry."""
    store = ExportHistoryStore(history_path)
    store.record_status(ExportJob(id="exp-9", status=ExportStatus.FAILED, categories=["faults"]))

    entry = store.get("exp-9")
    assert entry is not None
    assert entry.categories == ["faults"]
    assert entry.status == ExportStatus.FAILED


def test_save_keeps_newest_entries(history_path: Path):
    """Test that the file is capped at max_entries."""
    store = ExportHistoryStore(history_path, max_entries=2)
    for index in range(3):
        store.record_requested(f"exp-{index}", ["buildings"])
    store.save()

    ids = [entry.export_id for entry in ExportHistoryStore(history_path).load()]
    assert len(ids) == 2
    assert "exp-2" in ids
