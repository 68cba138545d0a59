"""Status transition hooks for features and sprints.

Feature and sprint status updates accept any member of their enumeration
by default (``allow_any_transition``). The lifecycle matrices below document
the intended flow:

    planned → in progress / active → completed / done
    cancelled reachable from any non-terminal state

``strict_transition_validator`` turns the matrices into a validator that rejects
anything else, and can be plugged into the app via
``create_app(transition_validator=...)``.
"""
import enum
import logging
from typing import Callable, Mapping

from .models import FeatureStatus, SprintStatus

logger = logging.getLogger("oneplan-core.state_machine")

# (current_status, requested_status) -> None, raises StateTransitionError
TransitionValidator = Callable[[enum.Enum, enum.Enum], None]


class StateTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(
        self,
        message: str,
        current_status: enum.Enum,
        requested_status: enum.Enum,
        allowed_transitions: list[enum.Enum]
    ):
        super().__init__(message)
        self.current_status = current_status
        self.requested_status = requested_status
        self.allowed_transitions = allowed_transitions


# Maps current status → list of allowed next statuses
FEATURE_TRANSITIONS: dict[FeatureStatus, list[FeatureStatus]] = {
    FeatureStatus.PLANNED: [
        FeatureStatus.IN_PROGRESS,
        FeatureStatus.CANCELLED,
    ],
    FeatureStatus.IN_PROGRESS: [
        FeatureStatus.COMPLETED,
        FeatureStatus.CANCELLED,
    ],
    FeatureStatus.COMPLETED: [],  # Terminal
    FeatureStatus.CANCELLED: [],  # Terminal
}

SPRINT_TRANSITIONS: dict[SprintStatus, list[SprintStatus]] = {
    SprintStatus.PLANNED: [
        SprintStatus.ACTIVE,
        SprintStatus.CANCELLED,
    ],
    SprintStatus.ACTIVE: [
        SprintStatus.DONE,
        SprintStatus.CANCELLED,
    ],
    SprintStatus.DONE: [],        # Terminal
    SprintStatus.CANCELLED: [],   # Terminal
}

# Feature and sprint statuses share names (PLANNED, CANCELLED), so matrices
# are kept per enumeration type.
DEFAULT_MATRICES: dict[type, dict] = {
    FeatureStatus: FEATURE_TRANSITIONS,
    SprintStatus: SPRINT_TRANSITIONS,
}


def allow_any_transition(current_status: enum.Enum, requested_status: enum.Enum) -> None:
    """Default hook: every enumeration member is accepted."""
    return None


def is_transition_valid(
    current_status: enum.Enum,
    new_status: enum.Enum,
    matrix: Mapping[enum.Enum, list[enum.Enum]],
) -> bool:
    """
    Check if a status transition is valid under a matrix.

    No-op transitions (same status) are always valid.
    """
    if current_status == new_status:
        return True
    return new_status in matrix.get(current_status, [])


def get_allowed_transitions(
    current_status: enum.Enum,
    matrix: Mapping[enum.Enum, list[enum.Enum]],
) -> list[enum.Enum]:
    """
    Get list of allowed transitions from current status.

    Returns:
        List of allowed next statuses (excluding no-op same status)
    """
    return [s for s in matrix.get(current_status, []) if s != current_status]


def strict_transition_validator(
    matrices: Mapping[type, Mapping[enum.Enum, list[enum.Enum]]] = DEFAULT_MATRICES,
) -> TransitionValidator:
    """
    Build a validator enforcing the transition matrices.

    Args:
        matrices: Maps status enum type → (current status → allowed next statuses)

    Returns:
        Validator raising StateTransitionError for blocked transitions
    """

    def validate(current_status: enum.Enum, requested_status: enum.Enum) -> None:
        matrix = matrices.get(type(current_status))
        if matrix is None or is_transition_valid(current_status, requested_status, matrix):
            logger.debug(f"Valid transition: {current_status.value} → {requested_status.value}")
            return

        allowed = get_allowed_transitions(current_status, matrix)
        allowed_names = ", ".join(s.value for s in allowed) or "none (terminal state)"
        error_msg = (
            f"Invalid status transition: {current_status.value} → {requested_status.value}. "
            f"From {current_status.value}, you can only transition to: {allowed_names}."
        )
        logger.warning(f"Blocked transition: {error_msg}")
        raise StateTransitionError(
            message=error_msg,
            current_status=current_status,
            requested_status=requested_status,
            allowed_transitions=allowed,
        )

    return validate
