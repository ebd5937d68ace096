"""Tests for validation issue aggregation and approval gating."""

import pytest

from migration_workflow.schemas.validation import (
    ColumnMappingStatus,
    ImportPreview,
    ValidationIssue,
    ValidationSeverity,
)
from migration_workflow.validation.model import IssueFilter, ValidationModel


def _issue(severity: str, code: str, message: str, **fields) -> ValidationIssue:
    return ValidationIssue(severity=ValidationSeverity(severity), code=code, message=message, **fields)


@pytest.fixture
def issues() -> list[ValidationIssue]:
    """A mixed set of issues across rows and columns."""
    return [
        _issue("warning", "DATE_FORMAT", "Ambiguous date", row_number=12, column="move_in"),
        _issue("info", "TRIMMED", "Whitespace trimmed", row_number=3, column="name"),
        _issue(
            "error",
            "INVALID_EMAIL",
            "Invalid email format",
            row_number=45,
            column="email",
            original_value="not-an-email",
        ),
        _issue("warning", "MISSING_PHONE", "Phone number missing", row_number=7, column="phone"),
        _issue("error", "MISSING_HEADER", "Column 'unit' not found"),
    ]


def test_counts_by_severity(issues: list[ValidationIssue]):
    """Test partitioning issues by severity."""
    model = ValidationModel(ImportPreview(total_rows=50, error_rows=2, issues=issues))

    assert model.error_count == 2
    assert model.warning_count == 2
    assert model.info_count == 1


def test_errors_block_regardless_of_acknowledgement():
    """Test that error rows always block approval."""
    preview = ImportPreview(total_rows=150, error_rows=3, warning_rows=7)
    model = ValidationModel(preview)

    assert model.is_valid is False
    assert model.can_approve(False) is False
    assert model.can_approve(True) is False
    assert "3 rows have errors" in (model.blocking_reason(True) or "")


def test_warnings_block_until_acknowledged():
    """Test that warnings only block until the user acknowledges them."""
    warnings = [_issue("warning", "W", f"warning {i}", row_number=i) for i in range(1, 8)]
    model = ValidationModel(ImportPreview(total_rows=150, warning_rows=7, issues=warnings))

    assert model.can_approve(False) is False
    assert model.blocking_reason(False) == "Acknowledge 7 warnings to continue"
    assert model.can_approve(True) is True
    assert model.blocking_reason(True) is None


def test_warning_rows_block_when_page_has_no_warnings():
    """Test that warnings beyond the returned page of issues still block."""
    info = [_issue("info", "TRIMMED", "Whitespace trimmed", row_number=3)]
    model = ValidationModel(
        ImportPreview(total_rows=150, warning_rows=7, issues=info, total_issue_count=8)
    )

    assert model.has_more_issues is True
    assert model.warning_count == 0
    assert model.has_warnings is True
    assert model.can_approve(False) is False
    assert model.blocking_reason(False) == "Acknowledge 7 warnings to continue"
    assert model.can_approve(True) is True


def test_info_never_blocks():
    """Test that info issues do not gate approval."""
    info = [_issue("info", "NOTE", "FYI")]
    model = ValidationModel(ImportPreview(total_rows=10, issues=info))

    assert model.can_approve(False) is True


def test_filter_by_severity(issues: list[ValidationIssue]):
    """Test filtering by severity."""
    model = ValidationModel(ImportPreview(error_rows=2, issues=issues))

    errors = model.filter_issues(IssueFilter(severity=ValidationSeverity.ERROR))
    assert [issue.code for issue in errors] == ["INVALID_EMAIL", "MISSING_HEADER"]


def test_filter_text_matches_message_code_and_value(issues: list[ValidationIssue]):
    """Test case-insensitive free text search."""
    model = ValidationModel(ImportPreview(error_rows=2, issues=issues))

    assert [i.code for i in model.filter_issues(IssueFilter(text="AMBIGUOUS"))] == ["DATE_FORMAT"]
    assert [i.code for i in model.filter_issues(IssueFilter(text="missing_"))] == [
        "MISSING_PHONE",
        "MISSING_HEADER",
    ]
    assert [i.code for i in model.filter_issues(IssueFilter(text="not-an"))] == ["INVALID_EMAIL"]


def test_filters_compose_with_and(issues: list[ValidationIssue]):
    """Test that every set field must match."""
    model = ValidationModel(ImportPreview(error_rows=2, issues=issues))

    combined = IssueFilter(severity=ValidationSeverity.WARNING, column="phone", text="phone")
    assert [issue.code for issue in model.filter_issues(combined)] == ["MISSING_PHONE"]

    mismatch = IssueFilter(severity=ValidationSeverity.ERROR, column="phone")
    assert model.filter_issues(mismatch) == []
    assert len(model.filter_issues()) == len(issues)


def test_issues_by_severity_orders_errors_first(issues: list[ValidationIssue]):
    """Test ordering by severity, then file-level first, then row."""
    model = ValidationModel(ImportPreview(error_rows=2, issues=issues))

    ordered = [issue.code for issue in model.issues_by_severity()]
    assert ordered == ["MISSING_HEADER", "INVALID_EMAIL", "MISSING_PHONE", "DATE_FORMAT", "TRIMMED"]


def test_truncated_issue_list(issues: list[ValidationIssue]):
    """Test detection of issues beyond the returned page."""
    model = ValidationModel(ImportPreview(error_rows=2, issues=issues, total_issue_count=40))

    assert model.has_more_issues is True
    assert len(model.top_issues(3)) == 3
    assert model.columns() == ["move_in", "name", "email", "phone"]


def test_missing_required_columns():
    """Test the required-field completeness check."""
    preview = ImportPreview(
        column_mapping=[
            ColumnMappingStatus(source_column="Name", target_field="name", is_mapped=True, is_required=True),
            ColumnMappingStatus(source_column="Unit", is_mapped=False, is_required=True),
            ColumnMappingStatus(source_column="Notes", is_mapped=False, is_required=False),
        ]
    )

    missing = ValidationModel(preview).missing_required_columns()
    assert [column.source_column for column in missing] == ["Unit"]
