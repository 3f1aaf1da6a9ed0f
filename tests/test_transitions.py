"""
Transition table tests.
"""

from enum import Enum

import pytest

from src.config import SubmissionStatus, EscalationStatus
from src.core import ConfigurationException, InvalidTransitionError, UnknownStatusError
from src.workflow.domain import (
    TransitionTable, SUBMISSION_TRANSITIONS, ROLE_ESCALATION_TRANSITIONS
)

S = SubmissionStatus

EXPECTED_SUBMISSION_FLOW = {
    S.NEW: {S.DESK_REJECT, S.UNDER_REVIEW},
    S.DESK_REJECT: set(),
    S.UNDER_REVIEW: {S.REVISION, S.ACCEPTED, S.REJECTED},
    S.REVISION: {S.UNDER_REVIEW, S.ACCEPTED, S.REJECTED},
    S.ACCEPTED: {S.IN_PRODUCTION},
    S.REJECTED: set(),
    S.IN_PRODUCTION: {S.PUBLISHED},
    S.PUBLISHED: set(),
}


class TestSubmissionTransitions:
    """Manuscript lifecycle table."""

    @pytest.mark.parametrize("current", list(SubmissionStatus))
    @pytest.mark.parametrize("proposed", list(SubmissionStatus))
    def test_every_pair_matches_the_editorial_flow(self, current, proposed):
        expected = proposed in EXPECTED_SUBMISSION_FLOW[current]
        assert SUBMISSION_TRANSITIONS.is_valid_transition(current, proposed) is expected

    @pytest.mark.parametrize("status", list(SubmissionStatus))
    def test_self_transition_is_never_allowed(self, status):
        assert not SUBMISSION_TRANSITIONS.is_valid_transition(status, status)

    def test_terminal_states(self):
        assert SUBMISSION_TRANSITIONS.terminal_states == {S.DESK_REJECT, S.REJECTED, S.PUBLISHED}
        for status in SUBMISSION_TRANSITIONS.terminal_states:
            assert SUBMISSION_TRANSITIONS.is_terminal(status)
            assert SUBMISSION_TRANSITIONS.allowed_transitions(status) == frozenset()

    def test_initial_status_is_new(self):
        assert SUBMISSION_TRANSITIONS.initial == S.NEW

    def test_accepts_raw_string_values(self):
        assert SUBMISSION_TRANSITIONS.is_valid_transition("NEW", "UNDER_REVIEW")
        assert SUBMISSION_TRANSITIONS.allowed_transitions("ACCEPTED") == {S.IN_PRODUCTION}

    def test_unknown_status_raises(self):
        with pytest.raises(UnknownStatusError) as exc_info:
            SUBMISSION_TRANSITIONS.is_valid_transition("NEW", "ARCHIVED")
        assert exc_info.value.value == "ARCHIVED"

        with pytest.raises(UnknownStatusError):
            SUBMISSION_TRANSITIONS.allowed_transitions("DRAFT")

    def test_ensure_transition_returns_enum_member(self):
        assert SUBMISSION_TRANSITIONS.ensure_transition(S.NEW, "UNDER_REVIEW") is S.UNDER_REVIEW

    def test_ensure_transition_rejects_skipping_review(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            SUBMISSION_TRANSITIONS.ensure_transition(S.NEW, S.PUBLISHED)
        assert exc_info.value.current == S.NEW
        assert exc_info.value.proposed == S.PUBLISHED
        assert "Cannot transition from NEW to PUBLISHED" in exc_info.value.message

    def test_ensure_transition_out_of_terminal_status_names_the_reason(self):
        with pytest.raises(InvalidTransitionError, match="terminal status"):
            SUBMISSION_TRANSITIONS.ensure_transition(S.PUBLISHED, S.IN_PRODUCTION)

    def test_as_dict(self):
        flow = SUBMISSION_TRANSITIONS.as_dict()
        assert flow["NEW"] == ["DESK_REJECT", "UNDER_REVIEW"]
        assert flow["PUBLISHED"] == []
        assert set(flow) == {s.value for s in SubmissionStatus}


class TestRoleEscalationTransitions:
    """Role escalation request table."""

    def test_pending_can_reach_every_outcome(self):
        assert ROLE_ESCALATION_TRANSITIONS.allowed_transitions(EscalationStatus.PENDING) == {
            EscalationStatus.APPROVED,
            EscalationStatus.REJECTED,
            EscalationStatus.CANCELLED,
        }

    @pytest.mark.parametrize(
        "status",
        [EscalationStatus.APPROVED, EscalationStatus.REJECTED, EscalationStatus.CANCELLED]
    )
    def test_decided_requests_are_final(self, status):
        assert ROLE_ESCALATION_TRANSITIONS.is_terminal(status)
        with pytest.raises(InvalidTransitionError):
            ROLE_ESCALATION_TRANSITIONS.ensure_transition(status, EscalationStatus.PENDING)

    def test_submission_status_is_not_an_escalation_status(self):
        with pytest.raises(UnknownStatusError):
            ROLE_ESCALATION_TRANSITIONS.is_valid_transition("PENDING", "PUBLISHED")

    def test_member_of_another_enum_is_rejected_even_when_values_match(self):
        # SubmissionStatus.REJECTED and EscalationStatus.REJECTED share the value "REJECTED"
        with pytest.raises(UnknownStatusError):
            ROLE_ESCALATION_TRANSITIONS.is_valid_transition(
                EscalationStatus.PENDING, SubmissionStatus.REJECTED
            )
        with pytest.raises(UnknownStatusError):
            SUBMISSION_TRANSITIONS.allowed_transitions(EscalationStatus.REJECTED)


class TestTableConstruction:
    """Building a table from an enum."""

    class Light(str, Enum):
        RED = "RED"
        GREEN = "GREEN"
        AMBER = "AMBER"

    def test_missing_member_fails_construction(self):
        with pytest.raises(ConfigurationException, match="AMBER"):
            TransitionTable(
                self.Light,
                {self.Light.RED: [self.Light.GREEN], self.Light.GREEN: [self.Light.RED]},
                initial=self.Light.RED,
            )

    def test_unknown_target_fails_construction(self):
        with pytest.raises(ConfigurationException, match="BLUE"):
            TransitionTable(
                self.Light,
                {
                    self.Light.RED: ["BLUE"],
                    self.Light.GREEN: [],
                    self.Light.AMBER: [],
                },
                initial=self.Light.RED,
            )

    def test_table_is_read_only(self):
        table = TransitionTable(
            self.Light,
            {
                self.Light.RED: [self.Light.GREEN],
                self.Light.GREEN: [self.Light.AMBER],
                self.Light.AMBER: [self.Light.RED],
            },
            initial=self.Light.RED,
        )
        with pytest.raises(TypeError):
            table._table[self.Light.RED] = frozenset()
        assert table.terminal_states == frozenset()
