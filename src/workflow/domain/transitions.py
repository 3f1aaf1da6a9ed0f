"""
Finite Transition Tables
========================

A small immutable abstraction over "which status may follow which".

Two independent tables are built from it: the manuscript lifecycle and the
role escalation request flow. They share the mechanism, not the alphabet.
"""

from types import MappingProxyType
from typing import Generic, Iterable, Mapping, Type, TypeVar
from enum import Enum

from src.config import SubmissionStatus, EscalationStatus
from src.core import ConfigurationException, InvalidTransitionError, UnknownStatusError

S = TypeVar("S", bound=Enum)


class TransitionTable(Generic[S]):
    """
    Allowed-transition table over a closed enumeration.

    Construction is exhaustive: every member of ``enum_type`` must appear as
    a key (terminal members map to an empty collection) and every target
    must be a member. Adding a status without deciding its transitions
    therefore fails at import time instead of silently allowing nothing.
    """

    def __init__(
        self,
        enum_type: Type[S],
        transitions: Mapping[S, Iterable[S]],
        initial: S,
    ):
        self._enum_type = enum_type

        missing = [m for m in enum_type if m not in transitions]
        if missing:
            raise ConfigurationException(
                f"Transition table for {enum_type.__name__} has no entry for "
                f"{', '.join(m.value for m in missing)}"
            )

        table = {}
        try:
            for source, targets in transitions.items():
                source = self._coerce(source)
                table[source] = frozenset(self._coerce(t) for t in targets)
        except UnknownStatusError as e:
            raise ConfigurationException(
                f"Transition table for {enum_type.__name__} names a non-member: {e.message}"
            ) from e

        self._table = MappingProxyType(table)
        self._initial = self._coerce(initial)

    def _coerce(self, value) -> S:
        """Map a raw value onto the enumeration or fail loudly."""
        if isinstance(value, self._enum_type):
            return value
        if isinstance(value, Enum):
            # A member of another enumeration never matches, even by value
            raise UnknownStatusError(value, self._enum_type.__name__)
        try:
            return self._enum_type(value)
        except ValueError:
            raise UnknownStatusError(value, self._enum_type.__name__) from None

    @property
    def enum_type(self) -> Type[S]:
        return self._enum_type

    @property
    def initial(self) -> S:
        """Status every new record starts in."""
        return self._initial

    @property
    def terminal_states(self) -> frozenset:
        """Statuses with no outgoing transition."""
        return frozenset(s for s, targets in self._table.items() if not targets)

    def allowed_transitions(self, current) -> frozenset:
        """Statuses reachable in one step from ``current``."""
        return self._table[self._coerce(current)]

    def is_terminal(self, status) -> bool:
        return not self.allowed_transitions(status)

    def is_valid_transition(self, current, proposed) -> bool:
        """
        True iff ``proposed`` is in the allowed set of ``current``.

        Pure and total over the enumeration. Self-transitions are only
        valid when listed explicitly.

        Raises:
            UnknownStatusError: either value is not a member of the enum
        """
        return self._coerce(proposed) in self.allowed_transitions(current)

    def ensure_transition(self, current, proposed) -> S:
        """
        Validate a transition and return the proposed status as an enum member.

        Raises:
            InvalidTransitionError: the transition is not in the table
        """
        current = self._coerce(current)
        proposed = self._coerce(proposed)
        if proposed not in self._table[current]:
            reason = "terminal status" if not self._table[current] else None
            raise InvalidTransitionError(current, proposed, reason)
        return proposed

    def as_dict(self) -> dict:
        """Plain ``{status: [next, ...]}`` mapping for API responses."""
        return {
            source.value: sorted(t.value for t in targets)
            for source, targets in self._table.items()
        }


SUBMISSION_TRANSITIONS = TransitionTable(
    SubmissionStatus,
    {
        SubmissionStatus.NEW: [SubmissionStatus.DESK_REJECT, SubmissionStatus.UNDER_REVIEW],
        SubmissionStatus.DESK_REJECT: [],
        SubmissionStatus.UNDER_REVIEW: [
            SubmissionStatus.REVISION,
            SubmissionStatus.ACCEPTED,
            SubmissionStatus.REJECTED,
        ],
        SubmissionStatus.REVISION: [
            SubmissionStatus.UNDER_REVIEW,
            SubmissionStatus.ACCEPTED,
            SubmissionStatus.REJECTED,
        ],
        SubmissionStatus.ACCEPTED: [SubmissionStatus.IN_PRODUCTION],
        SubmissionStatus.REJECTED: [],
        SubmissionStatus.IN_PRODUCTION: [SubmissionStatus.PUBLISHED],
        SubmissionStatus.PUBLISHED: [],
    },
    initial=SubmissionStatus.NEW,
)

ROLE_ESCALATION_TRANSITIONS = TransitionTable(
    EscalationStatus,
    {
        EscalationStatus.PENDING: [
            EscalationStatus.APPROVED,
            EscalationStatus.REJECTED,
            EscalationStatus.CANCELLED,
        ],
        EscalationStatus.APPROVED: [],
        EscalationStatus.REJECTED: [],
        EscalationStatus.CANCELLED: [],
    },
    initial=EscalationStatus.PENDING,
)
