"""Custom exceptions for the migration workflow."""

from http import HTTPStatus


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class MigrationApiError(AppException):
    """The migration API answered with an error or could not be reached."""

    def __init__(self, message: str, status_code: int = HTTPStatus.BAD_GATEWAY):
        super().__init__(message, status_code=status_code)


class NotFoundException(MigrationApiError):
    """Job, export or resource not found."""

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, status_code=HTTPStatus.NOT_FOUND)


class ValidationException(AppException):
    """Validation error exception."""

    def __init__(self, message: str = "Validation error"):
        super().__init__(message, status_code=HTTPStatus.UNPROCESSABLE_ENTITY)


class FileRejectedError(ValidationException):
    """A candidate upload failed the client-side type or size check."""


class UnknownDuplicateRowError(ValidationException):
    """A resolution was given for a row outside the duplicate set."""

    def __init__(self, import_row: int):
        self.import_row = import_row
        super().__init__(f"Row {import_row} is not a detected duplicate")


class IncompleteResolutionError(ValidationException):
    """Some detected duplicates have no resolution."""

    def __init__(self, missing_rows: list[int]):
        self.missing_rows = missing_rows
        rows = ", ".join(str(row) for row in missing_rows)
        super().__init__(f"Missing duplicate resolutions for rows: {rows}")


def describe_error(exc: BaseException) -> str:
    """Turn an exception into a message suitable for showing to the user.

    Args:
        exc: The exception caught at a workflow boundary.

    Returns:
        str: Human-readable message.
    """
    if isinstance(exc, AppException):
        return exc.message
    if isinstance(exc, TimeoutError):
        return "The migration service did not respond in time"
    return "Unexpected error, please try again"
