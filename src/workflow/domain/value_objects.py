"""
SLA Value Objects
==================

SLA policy and the calculator built on it.

The policy is a value object loaded from YAML (or defaulted); the
calculator is constructed with a policy so callers and tests can swap
policies without touching module state.
"""

from datetime import datetime, timedelta
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from src.config import SubmissionStatus, SLAStanding, SLA_BADGE_COLORS
from src.core import UnknownStatusError
from src.workflow.domain.transitions import SUBMISSION_TRANSITIONS

ONE_DAY = timedelta(days=1)

DEFAULT_SLA_DAYS = {
    SubmissionStatus.NEW: 7,
    SubmissionStatus.DESK_REJECT: 0,
    SubmissionStatus.UNDER_REVIEW: 21,
    SubmissionStatus.REVISION: 14,
    SubmissionStatus.ACCEPTED: 7,
    SubmissionStatus.REJECTED: 0,
    SubmissionStatus.IN_PRODUCTION: 14,
    SubmissionStatus.PUBLISHED: 0,
}


class SLAPolicy(BaseModel):
    """
    SLA policy loaded from YAML.

    Days allotted per status, the warning window and the reminder cadence.
    Immutable once built, including the nested day tables.
    """
    model_config = ConfigDict(frozen=True)

    sla_days: Mapping[SubmissionStatus, int] = Field(
        default_factory=lambda: dict(DEFAULT_SLA_DAYS),
        validate_default=True,
        description="Calendar days allotted per status (0 = no deadline)"
    )
    warning_days: int = Field(
        default=3, ge=0,
        description="Days remaining (inclusive) at which a deadline turns to warning"
    )
    reminder_days: Tuple[int, ...] = Field(
        default=(7, 3, 1),
        description="Days before the deadline at which reminders fire, in order"
    )
    max_reminders: int = Field(default=3, ge=0, description="Reminder cap per deadline")
    reminder_catch_up: bool = Field(
        default=False,
        description="Fire a missed reminder on a later run instead of skipping it"
    )

    @field_validator("sla_days")
    @classmethod
    def validate_sla_days(cls, v: Mapping[SubmissionStatus, int]) -> Mapping[SubmissionStatus, int]:
        """Every status needs a non-negative entry, and terminal statuses must be 0."""
        missing = [s.value for s in SubmissionStatus if s not in v]
        if missing:
            raise ValueError(f"sla_days is missing statuses: {', '.join(missing)}")
        negative = [s.value for s, days in v.items() if days < 0]
        if negative:
            raise ValueError(f"sla_days cannot be negative: {', '.join(negative)}")
        open_ended = [
            s.value for s in SUBMISSION_TRANSITIONS.terminal_states if v[s] != 0
        ]
        if open_ended:
            raise ValueError(f"terminal statuses cannot have a deadline: {', '.join(sorted(open_ended))}")
        return MappingProxyType(dict(v))

    @field_validator("reminder_days")
    @classmethod
    def validate_reminder_days(cls, v: Tuple[int, ...]) -> Tuple[int, ...]:
        """Cadence must count down towards the deadline."""
        if any(later >= earlier for earlier, later in zip(v, v[1:])):
            raise ValueError("reminder_days must be strictly decreasing")
        if any(day < 0 for day in v):
            raise ValueError("reminder_days cannot be negative")
        return v

    @model_validator(mode="after")
    def validate_reminder_cap(self) -> "SLAPolicy":
        if self.max_reminders > len(self.reminder_days):
            raise ValueError("max_reminders cannot exceed the number of reminder_days")
        return self

    def days_for(self, status) -> int:
        """
        SLA days for a status.

        Raises:
            UnknownStatusError: status is not a SubmissionStatus member
        """
        try:
            return self.sla_days[SubmissionStatus(status)]
        except ValueError:
            raise UnknownStatusError(status, SubmissionStatus.__name__) from None


class SLACalculator:
    """
    Deadline, standing and reminder calculations for one SLA policy.

    Stateless apart from the injected policy; all methods are pure and take
    the reference time explicitly.
    """

    def __init__(self, policy: Optional[SLAPolicy] = None):
        self._policy = policy or SLAPolicy()

    @property
    def policy(self) -> SLAPolicy:
        return self._policy

    def compute_deadline(self, status, reference_time: datetime) -> Optional[datetime]:
        """
        Deadline for a status entered at ``reference_time``.

        Returns None for statuses with no SLA (the terminal ones).
        """
        days = self._policy.days_for(status)
        if days == 0:
            return None
        return reference_time + timedelta(days=days)

    @staticmethod
    def days_until_deadline(deadline: datetime, now: datetime) -> int:
        """Whole days left, floored (negative once the deadline has passed)."""
        return (deadline - now) // ONE_DAY

    @staticmethod
    def days_in_status(last_status_change_at: datetime, now: datetime) -> int:
        """Whole days since the last status change."""
        return (now - last_status_change_at) // ONE_DAY

    def classify(self, deadline: Optional[datetime], now: datetime) -> SLAStanding:
        """
        Classify a deadline as on-time, warning or overdue.

        The warning window is inclusive: exactly ``warning_days`` remaining
        is already a warning.
        """
        if deadline is None:
            return SLAStanding.ON_TIME

        days_remaining = self.days_until_deadline(deadline, now)
        if days_remaining < 0:
            return SLAStanding.OVERDUE
        if days_remaining <= self._policy.warning_days:
            return SLAStanding.WARNING
        return SLAStanding.ON_TIME

    def should_send_reminder(
        self,
        deadline: Optional[datetime],
        reminders_sent: int,
        now: datetime,
        max_reminders: Optional[int] = None,
    ) -> bool:
        """
        Decide whether the next reminder for a deadline is due.

        Reminders are consumed in cadence order, indexed by ``reminders_sent``.
        By default a reminder fires only on the exact day it is scheduled for;
        a dispatcher run that misses that day loses the reminder for good.
        With ``reminder_catch_up`` enabled the reminder fires on any later day
        up to the deadline instead.
        """
        if deadline is None:
            return False

        cap = self._policy.max_reminders if max_reminders is None else max_reminders
        cadence = self._policy.reminder_days
        if reminders_sent >= cap or reminders_sent >= len(cadence):
            return False

        days_left = self.days_until_deadline(deadline, now)
        target = cadence[reminders_sent]

        if self._policy.reminder_catch_up:
            return 0 <= days_left <= target
        return days_left == target

    @staticmethod
    def badge_color(standing: SLAStanding) -> str:
        return SLA_BADGE_COLORS[standing]
