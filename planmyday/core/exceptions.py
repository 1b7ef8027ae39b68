"""
Custom exceptions for the scheduling engine.
"""

from typing import Any, Optional

from planmyday.models.enums import SchedulingErrorKind


class PlanMyDayError(Exception):
    """Base exception for planmyday."""

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class BusinessLogicError(PlanMyDayError):
    """Business logic constraint violation."""

    pass


class SchedulingError(PlanMyDayError):
    """A placement could not be computed.

    Carries a ``kind`` so the public service layer can turn it into a
    structured result instead of letting it escape.
    """

    kind: SchedulingErrorKind = SchedulingErrorKind.NO_SLOT_FOUND

    def __init__(
        self,
        message: str,
        details: Optional[Any] = None,
        kind: Optional[SchedulingErrorKind] = None,
    ):
        super().__init__(message, details)
        if kind is not None:
            self.kind = kind


class NoDurationSetError(SchedulingError):
    """Task has no duration and cannot be placed."""

    kind = SchedulingErrorKind.NO_DURATION_SET


class NoSlotFoundError(SchedulingError):
    """Search exhausted its horizon without a feasible interval."""

    kind = SchedulingErrorKind.NO_SLOT_FOUND


class DependencyUnresolvedError(SchedulingError):
    """An incomplete prerequisite is itself unscheduled."""

    kind = SchedulingErrorKind.DEPENDENCY_UNRESOLVED

    def __init__(self, message: str, dependency_id: str):
        super().__init__(message, details={"dependency_id": dependency_id})
        self.dependency_id = dependency_id


class DependencyAfterDeadlineError(SchedulingError):
    """Prerequisites finish after the requested due date."""

    kind = SchedulingErrorKind.DEPENDENCY_AFTER_DEADLINE


class UnknownModeError(SchedulingError):
    """Unrecognized scheduling mode."""

    kind = SchedulingErrorKind.UNKNOWN_MODE

    def __init__(self, mode: str, valid_modes: list[str]):
        super().__init__(
            f"Invalid mode '{mode}'. Must be one of: {', '.join(valid_modes)}",
            details={"mode": mode, "valid_modes": valid_modes},
        )
        self.mode = mode


class InvalidTaskStateError(SchedulingError):
    """Task status does not allow the requested operation."""

    kind = SchedulingErrorKind.INVALID_TASK_STATE
