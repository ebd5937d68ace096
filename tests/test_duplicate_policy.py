"""Tests for duplicate resolution defaults and overrides."""

from unittest.mock import AsyncMock

import pytest

from migration_workflow.core.exceptions import IncompleteResolutionError, UnknownDuplicateRowError
from migration_workflow.duplicates.policy import DuplicateResolutionPolicy, default_resolution
from migration_workflow.schemas.validation import DuplicateRecord, Resolution


def _duplicate(row: int, confidence: int) -> DuplicateRecord:
    return DuplicateRecord(
        import_row=row,
        existing_id=f"rec-{row}",
        matched_fields=frozenset({"email"}),
        confidence=confidence,
    )


@pytest.fixture
def policy() -> DuplicateResolutionPolicy:
    """Policy for one certain and one uncertain duplicate."""
    return DuplicateResolutionPolicy([_duplicate(1, 95), _duplicate(2, 60)])


def test_threshold_boundary():
    """Test that confidence 90 is skipped and 89 is created as new."""
    assert default_resolution(_duplicate(1, 90)) == Resolution.SKIP
    assert default_resolution(_duplicate(1, 89)) == Resolution.CREATE_NEW
    assert default_resolution(_duplicate(1, 100)) == Resolution.SKIP
    assert default_resolution(_duplicate(1, 0)) == Resolution.CREATE_NEW


def test_custom_threshold():
    """Test a configured skip threshold."""
    policy = DuplicateResolutionPolicy([_duplicate(1, 80)], skip_threshold=75)
    assert policy.resolution_for(1) == Resolution.SKIP


def test_defaults(policy: DuplicateResolutionPolicy):
    """Test confidence-based defaults."""
    assert policy.resolutions == {1: Resolution.SKIP, 2: Resolution.CREATE_NEW}
    assert policy.is_complete is True
    assert policy.summary() == {Resolution.SKIP: 1, Resolution.UPDATE: 0, Resolution.CREATE_NEW: 1}


def test_override_single_row(policy: DuplicateResolutionPolicy):
    """Test overriding one resolution."""
    policy.set_resolution(2, Resolution.UPDATE)
    assert policy.resolutions == {1: Resolution.SKIP, 2: Resolution.UPDATE}


def test_unknown_row_rejected(policy: DuplicateResolutionPolicy):
    """Test that the policy never invents rows."""
    with pytest.raises(UnknownDuplicateRowError) as exc_info:
        policy.set_resolution(7, Resolution.SKIP)
    assert exc_info.value.import_row == 7
    assert 7 not in policy.resolutions


def test_apply_to_all_overwrites_overrides(policy: DuplicateResolutionPolicy):
    """Test that bulk apply replaces every earlier choice."""
    policy.set_resolution(2, Resolution.UPDATE)
    policy.apply_to_all(Resolution.CREATE_NEW)
    assert policy.resolutions == {1: Resolution.CREATE_NEW, 2: Resolution.CREATE_NEW}

    policy.reset_to_defaults()
    assert policy.resolutions == {1: Resolution.SKIP, 2: Resolution.CREATE_NEW}


def test_repeated_rows_keep_first():
    """Test that a row listed twice is tracked once."""
    policy = DuplicateResolutionPolicy([_duplicate(1, 95), _duplicate(1, 10)])
    assert len(policy) == 1
    assert policy.resolution_for(1) == Resolution.SKIP


@pytest.mark.asyncio
async def test_submit_hands_off_copy(policy: DuplicateResolutionPolicy):
    """Test that submission passes the mapping as a copy."""
    sink = AsyncMock()
    policy.set_resolution(2, Resolution.UPDATE)

    submitted = await policy.submit(sink)

    sink.resolve.assert_awaited_once_with({1: Resolution.SKIP, 2: Resolution.UPDATE})
    assert submitted == {1: Resolution.SKIP, 2: Resolution.UPDATE}

    handed = sink.resolve.await_args.args[0]
    handed[1] = Resolution.UPDATE
    assert policy.resolution_for(1) == Resolution.SKIP


@pytest.mark.asyncio
async def test_submit_incomplete_mapping_fails(policy: DuplicateResolutionPolicy):
    """Test that a mapping missing a duplicate is refused."""
    sink = AsyncMock()

    with pytest.raises(IncompleteResolutionError) as exc_info:
        await policy.submit(sink, {1: Resolution.SKIP})

    assert exc_info.value.missing_rows == [2]
    sink.resolve.assert_not_awaited()


@pytest.mark.asyncio
async def test_submit_mapping_with_foreign_row_fails(policy: DuplicateResolutionPolicy):
    """Test that a mapping naming a non-duplicate row is refused."""
    sink = AsyncMock()

    with pytest.raises(UnknownDuplicateRowError):
        await policy.submit(sink, {1: Resolution.SKIP, 2: Resolution.SKIP, 3: Resolution.SKIP})

    sink.resolve.assert_not_awaited()
