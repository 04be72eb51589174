"""Exception hierarchy for the order workflow"""
from typing import Any, Dict, Optional


class WorkflowError(Exception):
    """Base class for expected workflow failures.

    ``retryable`` tells the engine whether a task that failed with this error
    may be attempted again.
    """

    retryable: bool = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class OrderNotFoundError(WorkflowError):
    """No order with the given identifier"""


class InvalidTransitionError(WorkflowError):
    """The requested status change is not allowed for the actor"""


class OrderNotEditableError(WorkflowError):
    """Order fields can only be edited while the order is submitted"""


class ConditionFailedError(WorkflowError):
    """A workflow condition attached to the task did not hold"""


class ActiveTaskExistsError(WorkflowError):
    """Another task for the same order is still pending or executing"""


class DependencyNotMetError(WorkflowError):
    """A prerequisite task has not completed"""
    retryable = True


class StoreConflictError(WorkflowError):
    """The backing store rejected or aborted a write"""
    retryable = True


class OrderLockedError(WorkflowError):
    """Another engine instance holds the execution lock for the order"""
    retryable = True


class TaskTimeoutError(WorkflowError):
    """Task execution exceeded the configured deadline"""
    retryable = True


class TaskInterruptedError(WorkflowError):
    """The engine stopped while the task was executing"""
    retryable = True
