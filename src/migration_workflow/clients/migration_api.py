"""aiohttp client for the migration job service."""

import json
from types import TracebackType
from typing import Any, BinaryIO

import aiohttp
from pydantic import BaseModel, TypeAdapter, ValidationError

from migration_workflow.config import Settings
from migration_workflow.core.exceptions import MigrationApiError, NotFoundException
from migration_workflow.core.logging import get_logger
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

logger = get_logger(__name__)

_CATEGORY_LIST = TypeAdapter(list[ExportCategoryInfo])


class MigrationApiClient:
    """Async HTTP client implementing ``MigrationBackend``.

    Owns its ``aiohttp.ClientSession`` unless one is injected. Use as an async
    context manager or call ``aclose()``.
    """

    def __init__(self, settings: Settings, session: aiohttp.ClientSession | None = None):
        """Initialize the client.

        Args:
            settings: Application settings (base URL, prefix, token, timeout).
            session: Optional pre-built session; the caller keeps ownership.
        """
        self.settings = settings
        self.base_url = settings.api_base_url.rstrip("/") + settings.api_prefix
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "MigrationApiClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            headers = {"Accept": "application/json"}
            if self.settings.api_token:
                headers["Authorization"] = f"Bearer {self.settings.api_token}"
            self._session = aiohttp.ClientSession(
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.settings.request_timeout_seconds),
            )
            self._owns_session = True
        return self._session

    async def aclose(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
            logger.debug("Migration API session closed")

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        if path.startswith(self.settings.api_prefix):
            return self.settings.api_base_url.rstrip("/") + path
        return f"{self.base_url}{path}"

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request and decode the JSON body.

        Returns:
            Any: Decoded JSON, or None for empty responses.

        Raises:
            NotFoundException: On HTTP 404.
            MigrationApiError: On any other HTTP error, transport failure or bad JSON.
        """
        url = self._url(path)
        try:
            async with self.session.request(method, url, **kwargs) as response:
                body = await response.text()
                self._raise_for_status(method, url, response.status, body)
                if not body:
                    return None
                return json.loads(body)
        except (NotFoundException, MigrationApiError):
            raise
        except json.JSONDecodeError as e:
            raise MigrationApiError(f"Invalid JSON from {method} {url}: {e}") from e
        except aiohttp.ClientError as e:
            logger.error(f"Request {method} {url} failed: {e}")
            raise MigrationApiError(f"Migration service unreachable: {e}") from e

    def _raise_for_status(self, method: str, url: str, status: int, body: str) -> None:
        if status < 400:
            return
        detail = body
        try:
            payload = json.loads(body)
            if isinstance(payload, dict):
                detail = payload.get("detail") or payload.get("message") or body
        except json.JSONDecodeError:
            pass
        logger.warning(f"{method} {url} returned HTTP {status}: {detail}")
        if status == 404:
            raise NotFoundException(str(detail) or "Resource not found")
        raise MigrationApiError(str(detail) or f"HTTP {status}", status_code=status)

    @staticmethod
    def _parse(model: type[BaseModel], payload: Any) -> Any:
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise MigrationApiError(f"Unexpected {model.__name__} payload: {e}") from e

    # ---------------- Import ----------------

    async def upload_import(
        self, template_id: str, file: UploadCandidate, options: ImportOptions
    ) -> UploadResult:
        logger.info(f"Uploading {file.filename} ({file.size_bytes} bytes) with template {template_id}")
        if file.data is None and file.path is not None:
            # Path-backed files stream from disk
            with file.path.open("rb") as handle:
                form = self._upload_form(template_id, file, options, handle)
                payload = await self._request("POST", "/import/upload", data=form)
        else:
            form = self._upload_form(template_id, file, options, file.read_bytes())
            payload = await self._request("POST", "/import/upload", data=form)
        return self._parse(UploadResult, payload)

    @staticmethod
    def _upload_form(
        template_id: str, file: UploadCandidate, options: ImportOptions, content: bytes | BinaryIO
    ) -> aiohttp.FormData:
        form = aiohttp.FormData()
        form.add_field("template_id", template_id)
        form.add_field("options", options.model_dump_json(by_alias=True))
        form.add_field(
            "file",
            content,
            filename=file.filename,
            content_type=file.content_type or "application/octet-stream",
        )
        return form

    async def get_import_status(self, job_id: str) -> ImportJob:
        payload = await self._request("GET", f"/import/jobs/{job_id}")
        return self._parse(ImportJob, payload)

    async def get_import_preview(self, job_id: str) -> ImportPreview:
        payload = await self._request("GET", f"/import/jobs/{job_id}/preview")
        return self._parse(ImportPreview, payload)

    async def approve_import(self, job_id: str, acknowledge_warnings: bool) -> ApproveResult:
        payload = await self._request(
            "POST",
            f"/import/jobs/{job_id}/approve",
            json={"jobId": job_id, "acknowledgeWarnings": acknowledge_warnings},
        )
        if payload is None:
            return ApproveResult(job_id=job_id)
        return self._parse(ApproveResult, payload)

    async def resolve_duplicates(self, job_id: str, mapping: dict[int, Resolution]) -> None:
        resolutions = [
            {"importRow": row, "resolution": Resolution(resolution).value}
            for row, resolution in sorted(mapping.items())
        ]
        await self._request(
            "POST", f"/import/jobs/{job_id}/duplicates", json={"resolutions": resolutions}
        )

    async def retry_import(self, job_id: str) -> ImportJob:
        payload = await self._request("POST", f"/import/jobs/{job_id}/retry")
        return self._parse(ImportJob, payload)

    async def cancel_import(self, job_id: str) -> ImportJob:
        payload = await self._request("POST", f"/import/jobs/{job_id}/cancel")
        return self._parse(ImportJob, payload)

    async def get_import_errors(self, job_id: str, page: int, per_page: int) -> ImportErrorsPage:
        payload = await self._request(
            "GET",
            f"/import/jobs/{job_id}/errors",
            params={"page": page, "per_page": per_page},
        )
        return self._parse(ImportErrorsPage, payload)

    # ---------------- Export ----------------

    async def list_export_categories(self) -> list[ExportCategoryInfo]:
        payload = await self._request("GET", "/categories/export")
        if isinstance(payload, dict):
            payload = payload.get("categories", [])
        try:
            return _CATEGORY_LIST.validate_python(payload)
        except ValidationError as e:
            raise MigrationApiError(f"Unexpected export categories payload: {e}") from e

    async def start_export(
        self, categories: list[ExportCategory], privacy_options: ExportPrivacyOptions
    ) -> StartExportResult:
        body = {
            "categories": [ExportCategory(category).value for category in categories],
            "privacyOptions": privacy_options.model_dump(by_alias=True),
        }
        payload = await self._request("POST", "/export", json=body)
        return self._parse(StartExportResult, payload)

    async def get_export_status(self, export_id: str) -> ExportJob:
        payload = await self._request("GET", f"/export/{export_id}")
        return self._parse(ExportJob, payload)

    async def download_export(self, download_url: str) -> bytes:
        url = self._url(download_url)
        try:
            async with self.session.get(url) as response:
                if response.status >= 400:
                    self._raise_for_status("GET", url, response.status, await response.text())
                data = await response.read()
        except aiohttp.ClientError as e:
            logger.error(f"Download {url} failed: {e}")
            raise MigrationApiError(f"Download failed: {e}") from e
        logger.info(f"Downloaded export archive ({len(data)} bytes)")
        return data
