"""Error taxonomy for the LifeGit core."""

from __future__ import annotations


class LifeGitError(RuntimeError):
    """Base class for errors surfaced by the LifeGit core."""


class InvalidInputError(LifeGitError):
    """Raised when caller-supplied input fails validation (empty message, empty title)."""


class InvalidBranchStateError(LifeGitError):
    """Raised when a branch is not in the status a transition requires."""


class InvalidOperationError(LifeGitError):
    """Raised when an operation is not permitted, e.g. transitioning the master branch."""


class PersistenceError(LifeGitError):
    """Wraps a repository failure together with the operation that triggered it."""

    def __init__(self, operation: str, entity: str, cause: BaseException) -> None:
        self.operation = operation
        self.entity = entity
        self.cause = cause
        super().__init__(f"Failed to {operation} {entity}: {cause}")


class CreationFailedError(LifeGitError):
    """Raised when branch creation fails after part of it was persisted.

    ``branch_id`` identifies the partially persisted branch, if any, so callers
    can repair or delete it.
    """

    def __init__(self, message: str, *, branch_id: str | None = None) -> None:
        self.branch_id = branch_id
        super().__init__(message)


class NotFoundError(LifeGitError):
    """Base class for missing entities; callers may offer a repair action."""


class MasterBranchNotFoundError(NotFoundError):
    """Raised when no master branch exists."""


class BranchNotFoundError(NotFoundError):
    """Raised when a branch id does not resolve."""


class NoTaskPlanError(NotFoundError):
    """Raised when a branch has no task plan yet."""


class TaskItemNotFoundError(NotFoundError):
    """Raised when a task item id is not part of the plan."""


class UserNotFoundError(NotFoundError):
    """Raised when no user profile has been stored."""


__all__ = [
    "BranchNotFoundError",
    "CreationFailedError",
    "InvalidBranchStateError",
    "InvalidInputError",
    "InvalidOperationError",
    "LifeGitError",
    "MasterBranchNotFoundError",
    "NoTaskPlanError",
    "NotFoundError",
    "PersistenceError",
    "TaskItemNotFoundError",
    "UserNotFoundError",
]
