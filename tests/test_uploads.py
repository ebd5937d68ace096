"""Tests for the client-side upload gate."""

from pathlib import Path

import pytest

from migration_workflow.config import Settings
from migration_workflow.core.exceptions import FileRejectedError
from migration_workflow.workflows.uploads import FileUploader, UploadCandidate

MB = 1024 * 1024


@pytest.mark.parametrize(
    ("filename", "content_type"),
    [
        ("buildings.csv", "text/csv"),
        ("units.xlsx", None),
        ("legacy.XLS", None),
        ("export", "application/vnd.ms-excel"),
    ],
)
def test_accepts_csv_and_excel(filename: str, content_type: str | None):
    """Test acceptance by extension or MIME type."""
    candidate = UploadCandidate(filename=filename, size_bytes=1024, content_type=content_type)
    assert FileUploader().validate(candidate) is None


def test_rejects_other_types():
    """Test rejection of unsupported files."""
    candidate = UploadCandidate(filename="report.pdf", size_bytes=1024, content_type="application/pdf")

    assert FileUploader().validate(candidate) == "Invalid file type. Accepted: CSV, Excel (.xlsx, .xls)"
    with pytest.raises(FileRejectedError):
        FileUploader().check(candidate)


def test_rejects_oversized_file():
    """Test the size limit."""
    candidate = UploadCandidate(filename="big.csv", size_bytes=100 * MB + 1, content_type="text/csv")

    assert FileUploader().validate(candidate) == "File too large. Maximum size: 100MB"
    assert FileUploader().validate(UploadCandidate("ok.csv", 100 * MB, "text/csv")) is None


def test_limits_from_settings():
    """Test building the gate from settings."""
    uploader = FileUploader.from_settings(
        Settings(max_upload_size_bytes=5 * MB, accepted_upload_types=[".csv"])
    )

    assert uploader.validate(UploadCandidate("a.xlsx", 10)) is not None
    assert uploader.validate(UploadCandidate("a.csv", 6 * MB)) == "File too large. Maximum size: 5MB"


def test_candidate_from_path(tmp_path: Path):
    """Test reading a candidate from disk."""
    path = tmp_path / "residents.csv"
    path.write_text("name,email\nAda,ada@example.com\n", encoding="utf-8")

    candidate = UploadCandidate.from_path(path)

    assert candidate.filename == "residents.csv"
    assert candidate.size_bytes == path.stat().st_size
    assert candidate.content_type == "text/csv"
    assert candidate.read_bytes() == path.read_bytes()


def test_candidate_from_bytes():
    """Test an in-memory candidate."""
    candidate = UploadCandidate.from_bytes("units.csv", b"unit\n1A\n")

    assert candidate.size_bytes == 8
    assert candidate.extension == ".csv"
    assert candidate.read_bytes() == b"unit\n1A\n"


def test_candidate_without_content():
    """Test that a metadata-only candidate cannot be read."""
    with pytest.raises(FileRejectedError):
        UploadCandidate(filename="a.csv", size_bytes=3).read_bytes()
