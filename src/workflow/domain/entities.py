"""
Workflow Domain Entities
========================

Pure Python domain entities for the editorial workflow.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from src.config import SubmissionStatus, EscalationStatus, SLAStanding


@dataclass
class Submission:
    """
    A manuscript under editorial processing.

    ``status`` only changes through a validated transition; the SLA fields
    (``deadline``, ``reminders_sent``) follow every status change.
    """

    id: str
    title: str
    status: SubmissionStatus
    created_at: datetime
    last_status_change_at: datetime

    author_id: Optional[str] = None
    deadline: Optional[datetime] = None
    reminders_sent: int = 0

    def __post_init__(self):
        if self.last_status_change_at < self.created_at:
            raise ValueError("last_status_change_at cannot be before created_at")
        if self.reminders_sent < 0:
            raise ValueError("reminders_sent cannot be negative")


@dataclass(frozen=True)
class StatusHistoryEntry:
    """
    One recorded status transition.

    Append-only: entries are created once per transition and never changed.
    """

    submission_id: str
    status: SubmissionStatus
    changed_at: datetime
    changed_by: Optional[str] = None
    notes: Optional[str] = None
    id: Optional[str] = None


@dataclass
class RoleEscalationRequest:
    """A user's request to be granted a more privileged role."""

    id: str
    user_id: str
    current_role: str
    requested_role: str
    status: EscalationStatus
    created_at: datetime

    reason: Optional[str] = None
    decided_by: Optional[str] = None
    decided_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.status == EscalationStatus.PENDING


@dataclass(frozen=True)
class ReminderNotice:
    """
    Payload handed to the notifier when a deadline reminder fires.

    ``sequence`` is 1-based: the first reminder for a deadline is 1.
    """

    submission_id: str
    title: str
    status: SubmissionStatus
    deadline: datetime
    days_until_deadline: int
    sequence: int
    recipient_id: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for the webhook body."""
        return {
            "submission_id": self.submission_id,
            "title": self.title,
            "status": self.status.value,
            "deadline": self.deadline.isoformat(),
            "days_until_deadline": self.days_until_deadline,
            "sequence": self.sequence,
            "recipient_id": self.recipient_id,
        }


@dataclass(frozen=True)
class SLASnapshot:
    """SLA standing of a submission at one point in time."""

    submission_id: str
    status: SubmissionStatus
    deadline: Optional[datetime]
    days_remaining: Optional[int]
    days_in_status: int
    standing: SLAStanding
    badge_color: str

    @property
    def is_tracked(self) -> bool:
        """False once the submission sits in a status without a deadline."""
        return self.deadline is not None
