"""Aggregation, approval gating and filtering of import validation issues."""

from collections import Counter
from dataclasses import dataclass

from migration_workflow.schemas.validation import (
    ColumnMappingStatus,
    ImportPreview,
    ValidationIssue,
    ValidationSeverity,
)


@dataclass(frozen=True)
class IssueFilter:
    """Issue browser filter; every field that is set must match (logical AND).

    ``text`` is matched case-insensitively against the issue's message, code
    and original value.
    """

    severity: ValidationSeverity | None = None
    column: str | None = None
    text: str | None = None

    def matches(self, issue: ValidationIssue) -> bool:
        if self.severity is not None and issue.severity != self.severity:
            return False
        if self.column is not None and issue.column != self.column:
            return False
        if self.text:
            needle = self.text.strip().lower()
            haystack = (issue.message, issue.code, issue.original_value or "")
            if not any(needle in value.lower() for value in haystack):
                return False
        return True


class ValidationModel:
    """Read-only view over an import preview. Performs no I/O."""

    def __init__(self, preview: ImportPreview):
        self.preview = preview
        self._counts = Counter(issue.severity for issue in preview.issues)

    @property
    def is_valid(self) -> bool:
        return self.preview.error_rows == 0

    @property
    def error_count(self) -> int:
        return self._counts[ValidationSeverity.ERROR]

    @property
    def warning_count(self) -> int:
        return self._counts[ValidationSeverity.WARNING]

    @property
    def info_count(self) -> int:
        return self._counts[ValidationSeverity.INFO]

    @property
    def has_warnings(self) -> bool:
        """Whether any row carries a warning, counting rows beyond the returned page."""
        return self.warning_count > 0 or self.preview.warning_rows > 0

    @property
    def has_more_issues(self) -> bool:
        """Whether the preview returned only a page of all issues."""
        return (self.preview.total_issue_count or 0) > len(self.preview.issues)

    def can_approve(self, acknowledge_warnings: bool) -> bool:
        """Whether the import may be approved.

        Errors always block. Warnings block until acknowledged. Info never
        blocks.

        Args:
            acknowledge_warnings: The user's explicit opt-in to proceed despite warnings.

        Returns:
            bool: True if approval is allowed.
        """
        return self.is_valid and (not self.has_warnings or acknowledge_warnings)

    def blocking_reason(self, acknowledge_warnings: bool) -> str | None:
        """Explain why approval is blocked, or None if it is not."""
        if not self.is_valid:
            return f"{self.preview.error_rows} rows have errors that must be fixed before importing"
        if self.has_warnings and not acknowledge_warnings:
            count = max(self.preview.warning_rows, self.warning_count)
            return f"Acknowledge {count} warnings to continue"
        return None

    def filter_issues(self, issue_filter: IssueFilter | None = None) -> list[ValidationIssue]:
        if issue_filter is None:
            return list(self.preview.issues)
        return [issue for issue in self.preview.issues if issue_filter.matches(issue)]

    def issues_by_severity(self) -> list[ValidationIssue]:
        """Issues ordered error first, then by row (file-level issues first)."""
        return sorted(
            self.preview.issues,
            key=lambda issue: (
                -issue.severity.rank,
                issue.row_number is not None,
                issue.row_number or 0,
            ),
        )

    def top_issues(self, limit: int = 5) -> list[ValidationIssue]:
        return self.preview.issues[:limit]

    def columns(self) -> list[str]:
        """Distinct issue columns in first-seen order."""
        seen: dict[str, None] = {}
        for issue in self.preview.issues:
            if issue.column:
                seen.setdefault(issue.column, None)
        return list(seen)

    def missing_required_columns(self) -> list[ColumnMappingStatus]:
        return [
            mapping
            for mapping in self.preview.column_mapping
            if mapping.is_required and not mapping.is_mapped
        ]
