# conftest.py
import pytest
from fakes import FakeMigrationBackend

from migration_workflow.config import Settings


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings with immediate polling and an isolated history file."""
    return Settings(
        api_base_url="http://migration.test",
        api_token="test-token",
        import_poll_interval_seconds=0,
        export_poll_interval_seconds=0,
        poll_max_interval_seconds=0,
        export_history_path=str(tmp_path / "export_history.json"),
    )


@pytest.fixture
def backend() -> FakeMigrationBackend:
    """In-memory migration backend."""
    return FakeMigrationBackend()
