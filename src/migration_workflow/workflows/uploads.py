"""Client-side gate for import files, applied before any request is made."""

import mimetypes
from dataclasses import dataclass
from pathlib import Path

from migration_workflow.config import DEFAULT_ACCEPTED_UPLOAD_TYPES, Settings
from migration_workflow.core.exceptions import FileRejectedError

DEFAULT_MAX_SIZE_BYTES = 100 * 1024 * 1024


@dataclass(frozen=True)
class UploadCandidate:
    """A file the user picked for import."""

    filename: str
    size_bytes: int
    content_type: str | None = None
    path: Path | None = None
    data: bytes | None = None

    @classmethod
    def from_path(cls, path: str | Path) -> "UploadCandidate":
        path = Path(path)
        content_type, _ = mimetypes.guess_type(path.name)
        return cls(
            filename=path.name,
            size_bytes=path.stat().st_size,
            content_type=content_type,
            path=path,
        )

    @classmethod
    def from_bytes(
        cls, filename: str, data: bytes, content_type: str | None = None
    ) -> "UploadCandidate":
        if content_type is None:
            content_type, _ = mimetypes.guess_type(filename)
        return cls(filename=filename, size_bytes=len(data), content_type=content_type, data=data)

    @property
    def extension(self) -> str:
        return Path(self.filename).suffix.lower()

    def read_bytes(self) -> bytes:
        if self.data is not None:
            return self.data
        if self.path is None:
            raise FileRejectedError(f"No content available for {self.filename}")
        return self.path.read_bytes()


class FileUploader:
    """Accepts CSV/Excel files by extension or MIME type, up to a size limit."""

    def __init__(
        self,
        accepted_types: list[str] | None = None,
        max_size_bytes: int = DEFAULT_MAX_SIZE_BYTES,
    ):
        types = accepted_types if accepted_types is not None else DEFAULT_ACCEPTED_UPLOAD_TYPES
        self.accepted_types = {value.lower() for value in types}
        self.max_size_bytes = max_size_bytes

    @classmethod
    def from_settings(cls, settings: Settings) -> "FileUploader":
        return cls(
            accepted_types=settings.accepted_upload_types,
            max_size_bytes=settings.max_upload_size_bytes,
        )

    def validate(self, candidate: UploadCandidate) -> str | None:
        """Check type and size.

        Args:
            candidate: The picked file.

        Returns:
            str | None: User-facing rejection message, None if accepted.
        """
        content_type = (candidate.content_type or "").lower()
        if content_type not in self.accepted_types and candidate.extension not in self.accepted_types:
            return "Invalid file type. Accepted: CSV, Excel (.xlsx, .xls)"

        if candidate.size_bytes > self.max_size_bytes:
            max_mb = round(self.max_size_bytes / 1024 / 1024)
            return f"File too large. Maximum size: {max_mb}MB"

        return None

    def check(self, candidate: UploadCandidate) -> None:
        error = self.validate(candidate)
        if error:
            raise FileRejectedError(error)
