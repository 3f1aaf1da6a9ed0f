"""
Workflow Application DTOs
=========================

Data Transfer Objects for the workflow API layer.

These Pydantic models handle serialization/deserialization and validation
for API requests and responses. Following YAGNI - only what's needed.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from src.config import STATUS_LABELS


# ========== Type Aliases for Literals ==========
SubmissionStatusStr = Literal[
    "NEW", "DESK_REJECT", "UNDER_REVIEW", "REVISION",
    "ACCEPTED", "REJECTED", "IN_PRODUCTION", "PUBLISHED"
]
EscalationStatusStr = Literal["PENDING", "APPROVED", "REJECTED", "CANCELLED"]
EscalationActionStr = Literal["approve", "reject", "cancel"]
SLAStandingStr = Literal["on-time", "warning", "overdue"]
BadgeColorStr = Literal["green", "yellow", "red"]


# ========== Request DTOs ==========

class SubmissionCreateRequest(BaseModel):
    """Request model for registering a manuscript."""
    title: str = Field(..., min_length=1, max_length=500, description="Manuscript title")
    author_id: Optional[str] = Field(None, description="Submitting author reference")


class TransitionRequest(BaseModel):
    """Request model for a status change."""
    status: SubmissionStatusStr = Field(..., description="Target status")
    changed_by: Optional[str] = Field(None, description="Acting editor reference")
    notes: Optional[str] = Field(None, max_length=2000, description="Decision notes")


class RoleEscalationCreateRequest(BaseModel):
    """Request model for asking a role upgrade."""
    user_id: str = Field(..., min_length=1)
    current_role: str = Field(..., min_length=1)
    requested_role: str = Field(..., min_length=1)
    reason: Optional[str] = Field(None, max_length=2000)


class RoleEscalationDecisionRequest(BaseModel):
    """Request model for an administrator decision."""
    action: EscalationActionStr
    decided_by: Optional[str] = None
    rejection_reason: Optional[str] = Field(None, max_length=2000)

    @model_validator(mode="after")
    def reason_only_on_reject(self) -> "RoleEscalationDecisionRequest":
        if self.rejection_reason and self.action != "reject":
            raise ValueError("rejection_reason is only accepted with action 'reject'")
        return self


# ========== Response DTOs ==========

class SLAStatusResponse(BaseModel):
    """SLA standing of a submission."""
    deadline: Optional[datetime] = Field(None, description="Current deadline (null when untracked)")
    days_remaining: Optional[int] = Field(None, description="Whole days left, negative when overdue")
    days_in_status: int = Field(..., description="Whole days since the last status change")
    standing: SLAStandingStr
    badge_color: BadgeColorStr

    @classmethod
    def from_snapshot(cls, snapshot) -> "SLAStatusResponse":
        return cls(
            deadline=snapshot.deadline,
            days_remaining=snapshot.days_remaining,
            days_in_status=snapshot.days_in_status,
            standing=snapshot.standing.value,
            badge_color=snapshot.badge_color,
        )


class SubmissionResponse(BaseModel):
    """Response model for a submission with its SLA standing."""
    id: str
    title: str
    author_id: Optional[str] = None
    status: SubmissionStatusStr
    status_label: str
    created_at: datetime
    last_status_change_at: datetime
    reminders_sent: int
    allowed_transitions: List[SubmissionStatusStr] = Field(default_factory=list)
    sla: SLAStatusResponse

    @classmethod
    def build(cls, submission, snapshot, allowed) -> "SubmissionResponse":
        return cls(
            id=submission.id,
            title=submission.title,
            author_id=submission.author_id,
            status=submission.status.value,
            status_label=STATUS_LABELS[submission.status],
            created_at=submission.created_at,
            last_status_change_at=submission.last_status_change_at,
            reminders_sent=submission.reminders_sent,
            allowed_transitions=[s.value for s in allowed],
            sla=SLAStatusResponse.from_snapshot(snapshot),
        )


class StatusHistoryResponse(BaseModel):
    """One entry of a submission's status history."""
    submission_id: str
    status: SubmissionStatusStr
    changed_at: datetime
    changed_by: Optional[str] = None
    notes: Optional[str] = None


class AllowedTransitionsResponse(BaseModel):
    """Next statuses available to an editor."""
    submission_id: str
    status: SubmissionStatusStr
    allowed: List[SubmissionStatusStr]
    is_terminal: bool


class DashboardSummary(BaseModel):
    """Summary statistics for dashboard."""
    total_submissions: int
    on_time_count: int
    warning_count: int
    overdue_count: int
    overdue_rate: float = Field(..., description="Percentage of submissions overdue")


class DashboardResponse(BaseModel):
    """Response model for dashboard."""
    submissions: List[SubmissionResponse]
    total_count: int
    summary: DashboardSummary


class ReminderRunResponse(BaseModel):
    """Result of one reminder dispatch run."""
    evaluated: int
    reminders_sent: int
    failed: int = 0


class RoleEscalationResponse(BaseModel):
    """Response model for a role escalation request."""
    id: str
    user_id: str
    current_role: str
    requested_role: str
    status: EscalationStatusStr
    reason: Optional[str] = None
    created_at: datetime
    decided_by: Optional[str] = None
    decided_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None

    @classmethod
    def from_domain(cls, request) -> "RoleEscalationResponse":
        return cls(
            id=request.id,
            user_id=request.user_id,
            current_role=request.current_role,
            requested_role=request.requested_role,
            status=request.status.value,
            reason=request.reason,
            created_at=request.created_at,
            decided_by=request.decided_by,
            decided_at=request.decided_at,
            rejection_reason=request.rejection_reason,
        )
