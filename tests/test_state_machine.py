"""Tests for state machine validation."""
import pytest
from oneplan_core.models import FeatureStatus, SprintStatus
from oneplan_core.state_machine import (
    FEATURE_TRANSITIONS,
    SPRINT_TRANSITIONS,
    StateTransitionError,
    allow_any_transition,
    get_allowed_transitions,
    is_transition_valid,
    strict_transition_validator,
)


class TestMatrices:
    """Test the documented lifecycle matrices."""

    def test_feature_forward_transitions(self):
        """Planned features move to in progress, then completed."""
        assert is_transition_valid(FeatureStatus.PLANNED, FeatureStatus.IN_PROGRESS, FEATURE_TRANSITIONS)
        assert is_transition_valid(FeatureStatus.IN_PROGRESS, FeatureStatus.COMPLETED, FEATURE_TRANSITIONS)

    def test_sprint_forward_transitions(self):
        """Planned sprints move to active, then done."""
        assert is_transition_valid(SprintStatus.PLANNED, SprintStatus.ACTIVE, SPRINT_TRANSITIONS)
        assert is_transition_valid(SprintStatus.ACTIVE, SprintStatus.DONE, SPRINT_TRANSITIONS)

    def test_cancel_from_non_terminal(self):
        for status in (FeatureStatus.PLANNED, FeatureStatus.IN_PROGRESS):
            assert is_transition_valid(status, FeatureStatus.CANCELLED, FEATURE_TRANSITIONS)
        for status in (SprintStatus.PLANNED, SprintStatus.ACTIVE):
            assert is_transition_valid(status, SprintStatus.CANCELLED, SPRINT_TRANSITIONS)

    def test_skipping_is_invalid(self):
        assert not is_transition_valid(FeatureStatus.PLANNED, FeatureStatus.COMPLETED, FEATURE_TRANSITIONS)
        assert not is_transition_valid(SprintStatus.PLANNED, SprintStatus.DONE, SPRINT_TRANSITIONS)

    def test_same_status_is_noop(self):
        """No-op transitions are always valid, terminal states included."""
        for status in FeatureStatus:
            assert is_transition_valid(status, status, FEATURE_TRANSITIONS)

    @pytest.mark.parametrize("status", [FeatureStatus.COMPLETED, FeatureStatus.CANCELLED])
    def test_terminal_feature_states(self, status):
        assert get_allowed_transitions(status, FEATURE_TRANSITIONS) == []

    def test_allowed_transitions(self):
        assert get_allowed_transitions(SprintStatus.ACTIVE, SPRINT_TRANSITIONS) == [
            SprintStatus.DONE,
            SprintStatus.CANCELLED,
        ]


class TestValidators:
    """Test the pluggable transition hooks."""

    def test_allow_any_transition(self):
        """The default hook accepts every member, even leaving a terminal state."""
        allow_any_transition(FeatureStatus.COMPLETED, FeatureStatus.PLANNED)
        allow_any_transition(SprintStatus.DONE, SprintStatus.ACTIVE)

    def test_strict_accepts_valid(self):
        validate = strict_transition_validator()

        validate(FeatureStatus.PLANNED, FeatureStatus.IN_PROGRESS)
        validate(SprintStatus.ACTIVE, SprintStatus.DONE)

    def test_strict_rejects_invalid(self):
        validate = strict_transition_validator()

        with pytest.raises(StateTransitionError) as exc_info:
            validate(FeatureStatus.PLANNED, FeatureStatus.COMPLETED)

        error = exc_info.value
        assert error.current_status == FeatureStatus.PLANNED
        assert error.requested_status == FeatureStatus.COMPLETED
        assert error.allowed_transitions == [FeatureStatus.IN_PROGRESS, FeatureStatus.CANCELLED]
        assert "IN_PROGRESS, CANCELLED" in str(error)

    def test_strict_uses_matrix_per_type(self):
        """Sprint PLANNED → ACTIVE is checked against the sprint matrix, not the feature one."""
        validate = strict_transition_validator()

        validate(SprintStatus.PLANNED, SprintStatus.ACTIVE)
        with pytest.raises(StateTransitionError):
            validate(FeatureStatus.PLANNED, FeatureStatus.COMPLETED)

    def test_strict_terminal_message(self):
        validate = strict_transition_validator()

        with pytest.raises(StateTransitionError) as exc_info:
            validate(SprintStatus.DONE, SprintStatus.ACTIVE)

        assert "none (terminal state)" in str(exc_info.value)
        assert exc_info.value.allowed_transitions == []

    def test_custom_matrices(self):
        validate = strict_transition_validator({FeatureStatus: {FeatureStatus.PLANNED: [FeatureStatus.COMPLETED]}})

        validate(FeatureStatus.PLANNED, FeatureStatus.COMPLETED)
        # Types without a matrix are unrestricted
        validate(SprintStatus.DONE, SprintStatus.PLANNED)
