"""Default resolutions and user overrides for detected duplicates."""

from collections import Counter
from collections.abc import Iterable, Mapping
from typing import Protocol

from migration_workflow.core.exceptions import (
    IncompleteResolutionError,
    UnknownDuplicateRowError,
)
from migration_workflow.core.logging import get_logger
from migration_workflow.schemas.validation import DuplicateRecord, Resolution

logger = get_logger(__name__)

DEFAULT_SKIP_THRESHOLD = 90


class ResolutionSink(Protocol):
    """Receives the final duplicate mapping on submission."""

    async def resolve(self, mapping: dict[int, Resolution]) -> None:
        """Submit resolutions keyed by import row.

        Args:
            mapping: Resolution per duplicate row.
        """
        ...


def default_resolution(
    record: DuplicateRecord, skip_threshold: int = DEFAULT_SKIP_THRESHOLD
) -> Resolution:
    """Confidence at or above the threshold is a certain duplicate and is skipped;
    anything lower may be a distinct record and is kept as new."""
    if record.confidence >= skip_threshold:
        return Resolution.SKIP
    return Resolution.CREATE_NEW


class DuplicateResolutionPolicy:
    """Tracks one resolution per duplicate row for the duration of a preview.

    Every row starts with its confidence-based default; the user can override
    single rows or bulk-apply one resolution to all of them. Rows outside the
    duplicate set are never accepted.
    """

    def __init__(
        self,
        duplicates: Iterable[DuplicateRecord],
        skip_threshold: int = DEFAULT_SKIP_THRESHOLD,
    ):
        self.skip_threshold = skip_threshold
        self.duplicates: dict[int, DuplicateRecord] = {}
        for record in duplicates:
            if record.import_row in self.duplicates:
                logger.warning(f"Duplicate set lists row {record.import_row} twice; keeping the first")
                continue
            self.duplicates[record.import_row] = record

        self._resolutions: dict[int, Resolution] = {}
        self.reset_to_defaults()

    def __len__(self) -> int:
        return len(self.duplicates)

    @property
    def resolutions(self) -> dict[int, Resolution]:
        """A copy of the current mapping."""
        return dict(self._resolutions)

    @property
    def is_complete(self) -> bool:
        return not self.missing_rows(self._resolutions)

    def defaults(self) -> dict[int, Resolution]:
        return {
            row: default_resolution(record, self.skip_threshold)
            for row, record in self.duplicates.items()
        }

    def reset_to_defaults(self) -> None:
        self._resolutions = self.defaults()

    def resolution_for(self, import_row: int) -> Resolution:
        if import_row not in self.duplicates:
            raise UnknownDuplicateRowError(import_row)
        return self._resolutions[import_row]

    def set_resolution(self, import_row: int, resolution: Resolution) -> None:
        if import_row not in self.duplicates:
            raise UnknownDuplicateRowError(import_row)
        self._resolutions[import_row] = Resolution(resolution)

    def apply_to_all(self, resolution: Resolution) -> None:
        """Overwrite every row's resolution, including earlier overrides."""
        resolution = Resolution(resolution)
        self._resolutions = {row: resolution for row in self.duplicates}

    def missing_rows(self, mapping: Mapping[int, Resolution]) -> list[int]:
        return sorted(row for row in self.duplicates if row not in mapping)

    def validate_mapping(self, mapping: Mapping[int, Resolution]) -> None:
        """Reject mappings with rows outside the set or without a resolution for every row."""
        for row in mapping:
            if row not in self.duplicates:
                raise UnknownDuplicateRowError(row)
        missing = self.missing_rows(mapping)
        if missing:
            raise IncompleteResolutionError(missing)

    def summary(self) -> dict[Resolution, int]:
        counts = Counter(self._resolutions.values())
        return {resolution: counts.get(resolution, 0) for resolution in Resolution}

    async def submit(
        self, sink: ResolutionSink, mapping: Mapping[int, Resolution] | None = None
    ) -> dict[int, Resolution]:
        """Hand the mapping off to ``sink``.

        Args:
            sink: Receiver of the mapping (usually bound to the import job).
            mapping: Externally built mapping; defaults to the policy's own.

        Returns:
            dict[int, Resolution]: The mapping that was submitted.

        Raises:
            UnknownDuplicateRowError: The mapping names a row outside the set.
            IncompleteResolutionError: A duplicate has no resolution.
        """
        submitted = dict(mapping) if mapping is not None else self.resolutions
        self.validate_mapping(submitted)
        logger.info(f"Submitting resolutions for {len(submitted)} duplicates")
        await sink.resolve(submitted)
        return submitted
