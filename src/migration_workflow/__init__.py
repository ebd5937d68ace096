"""Bulk data migration workflow: import and export orchestration."""

from migration_workflow.clients.base import MigrationBackend
from migration_workflow.clients.migration_api import MigrationApiClient
from migration_workflow.config import Settings, get_settings
from migration_workflow.duplicates.policy import DuplicateResolutionPolicy
from migration_workflow.polling.poller import JobStatusPoller
from migration_workflow.stores.export_history import ExportHistoryStore
from migration_workflow.validation.model import IssueFilter, ValidationModel
from migration_workflow.workflows.export_workflow import ExportStep, ExportWorkflowController
from migration_workflow.workflows.import_workflow import ImportStep, ImportWorkflowController
from migration_workflow.workflows.uploads import FileUploader, UploadCandidate

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Backend
    "MigrationBackend",
    "MigrationApiClient",
    # Building blocks
    "DuplicateResolutionPolicy",
    "ExportHistoryStore",
    "FileUploader",
    "IssueFilter",
    "JobStatusPoller",
    "UploadCandidate",
    "ValidationModel",
    # Workflows
    "ExportStep",
    "ExportWorkflowController",
    "ImportStep",
    "ImportWorkflowController",
]
