"""
Exceptions raised by the synchronization core.

Schema errors and fidelity warnings are not exceptions: the integrity
validator accumulates them as strings in a ValidationResult and never raises.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import ValidationResult


class WorkflowSyncError(Exception):
    """Base class for synchronization failures."""


class MergeError(WorkflowSyncError):
    """Raised when querying the registry fails during a merge. Fatal to save."""

    def __init__(self, cause: str):
        self.cause = cause
        super().__init__(f"Workflow data merge failed: {cause}")


class RestoreError(WorkflowSyncError):
    """
    Raised when repopulating the registry fails. Fatal to load.

    The registry is left empty; callers must start over rather than treat
    the load as partially successful.
    """

    def __init__(self, cause: str):
        self.cause = cause
        super().__init__(f"NodeDataManager state restoration failed: {cause}")


class IntegrityValidationError(WorkflowSyncError):
    """Raised by the save flow when a snapshot has schema errors."""

    def __init__(self, validation: "ValidationResult"):
        self.validation = validation
        summary = "; ".join(validation.errors[:3])
        if len(validation.errors) > 3:
            summary += f" (+{len(validation.errors) - 3} more)"
        super().__init__(f"Workflow data integrity check failed: {summary}")


class WorkflowNotFoundError(WorkflowSyncError, KeyError):
    """Raised when a workflow id is not in the document store."""

    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(f"Workflow with ID {workflow_id} not found")

    def __str__(self) -> str:
        return f"Workflow with ID {self.workflow_id} not found"
