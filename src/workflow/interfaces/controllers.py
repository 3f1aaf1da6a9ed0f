"""
Workflow Controllers (API Routes)
=================================

FastAPI routes for the editorial workflow.

Controllers are thin - they delegate to application services. Domain
errors are turned into HTTP responses by the application exception handler.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import SubmissionStatus, EscalationStatus, SLAStanding
from src.infrastructure.database import get_session
from src.shared.infrastructure.logging import get_context_logger
from src.workflow.application import (
    SubmissionWorkflowService, ReminderService, RoleEscalationService,
    StaticPolicyProvider, IPolicyProvider, INotifier,
    SubmissionCreateRequest, TransitionRequest,
    RoleEscalationCreateRequest, RoleEscalationDecisionRequest,
    SubmissionResponse, StatusHistoryResponse, AllowedTransitionsResponse,
    DashboardResponse, DashboardSummary, ReminderRunResponse,
    RoleEscalationResponse,
)
from src.workflow.application.dto import (
    EscalationStatusStr, SLAStandingStr, SubmissionStatusStr
)
from src.workflow.infrastructure import (
    SQLAlchemySubmissionRepository,
    SQLAlchemyRoleEscalationRepository,
    WebhookNotifier,
)

router = APIRouter(prefix="/workflow", tags=["Editorial Workflow"])


# ========== Dependencies ==========

def get_policy_provider(request: Request) -> IPolicyProvider:
    """Hot-reloading policy manager when the app started one, defaults otherwise."""
    manager = getattr(request.app.state, "policy_manager", None)
    return manager or StaticPolicyProvider()


def get_notifier(request: Request) -> INotifier:
    notifier = getattr(request.app.state, "notifier", None)
    return notifier or WebhookNotifier()


async def get_workflow_service(
    session: AsyncSession = Depends(get_session),
    policy_provider: IPolicyProvider = Depends(get_policy_provider),
) -> SubmissionWorkflowService:
    return SubmissionWorkflowService(
        SQLAlchemySubmissionRepository(session), policy_provider
    )


async def get_reminder_service(
    session: AsyncSession = Depends(get_session),
    policy_provider: IPolicyProvider = Depends(get_policy_provider),
    notifier: INotifier = Depends(get_notifier),
) -> ReminderService:
    return ReminderService(
        SQLAlchemySubmissionRepository(session), policy_provider, notifier
    )


async def get_escalation_service(
    session: AsyncSession = Depends(get_session),
) -> RoleEscalationService:
    return RoleEscalationService(SQLAlchemyRoleEscalationRepository(session))


def _submission_response(
    service: SubmissionWorkflowService,
    submission,
    snapshot=None,
) -> SubmissionResponse:
    return SubmissionResponse.build(
        submission,
        snapshot or service.describe_sla(submission),
        sorted(
            service.transitions.allowed_transitions(submission.status),
            key=lambda s: list(SubmissionStatus).index(s),
        ),
    )


# ========== Submissions ==========

@router.post(
    "/submissions",
    response_model=SubmissionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a submission",
)
async def create_submission(
    payload: SubmissionCreateRequest,
    service: SubmissionWorkflowService = Depends(get_workflow_service),
):
    """Create a manuscript in status NEW with its first SLA deadline."""
    submission = await service.create_submission(payload.title, payload.author_id)
    return _submission_response(service, submission)


@router.get(
    "/submissions/{submission_id}",
    response_model=SubmissionResponse,
    summary="Get a submission with its SLA standing",
    responses={404: {"description": "Submission not found"}},
)
async def get_submission(
    submission_id: str,
    service: SubmissionWorkflowService = Depends(get_workflow_service),
):
    submission = await service.get_submission(submission_id)
    return _submission_response(service, submission)


@router.post(
    "/submissions/{submission_id}/transitions",
    response_model=SubmissionResponse,
    summary="Change the status of a submission",
    description="""
    Move a submission to a new status.

    The transition is checked against the submission's stored status at the
    time of writing. Invalid transitions, including attempts that lose a race
    with another editor, return **400** and change nothing.

    A successful transition appends a history entry, restarts the SLA clock
    and resets the reminder count.
    """,
    responses={
        400: {"description": "Transition not allowed from the current status"},
        404: {"description": "Submission not found"},
    },
)
async def record_transition(
    submission_id: str,
    payload: TransitionRequest,
    request: Request,
    service: SubmissionWorkflowService = Depends(get_workflow_service),
):
    log = get_context_logger(__name__, getattr(request.state, "correlation_id", None))
    log.info(f"Transition requested: {submission_id} -> {payload.status}")
    submission = await service.record_transition(
        submission_id, payload.status, payload.changed_by, payload.notes
    )
    return _submission_response(service, submission)


@router.get(
    "/submissions/{submission_id}/history",
    response_model=List[StatusHistoryResponse],
    summary="Status history of a submission",
)
async def get_history(
    submission_id: str,
    service: SubmissionWorkflowService = Depends(get_workflow_service),
):
    entries = await service.get_history(submission_id)
    return [
        StatusHistoryResponse(
            submission_id=entry.submission_id,
            status=entry.status.value,
            changed_at=entry.changed_at,
            changed_by=entry.changed_by,
            notes=entry.notes,
        )
        for entry in entries
    ]


@router.get(
    "/submissions/{submission_id}/allowed-transitions",
    response_model=AllowedTransitionsResponse,
    summary="Statuses a submission may move to next",
)
async def get_allowed_transitions(
    submission_id: str,
    service: SubmissionWorkflowService = Depends(get_workflow_service),
):
    submission = await service.get_submission(submission_id)
    allowed = await service.allowed_transitions(submission_id)
    return AllowedTransitionsResponse(
        submission_id=submission.id,
        status=submission.status.value,
        allowed=[s.value for s in allowed],
        is_terminal=not allowed,
    )


@router.get(
    "/dashboard",
    response_model=DashboardResponse,
    summary="SLA dashboard",
    description="""
    Submissions with their SLA standing and summary counts.

    **Standings:** `on-time` (green), `warning` (yellow, 3 days or fewer
    remaining), `overdue` (red).
    """,
)
async def get_dashboard(
    submission_status: Optional[SubmissionStatusStr] = Query(None, alias="status"),
    standing: Optional[SLAStandingStr] = Query(None, description="Filter by SLA standing"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    service: SubmissionWorkflowService = Depends(get_workflow_service),
):
    result = await service.dashboard(
        status=SubmissionStatus(submission_status) if submission_status else None,
        standing=SLAStanding(standing) if standing else None,
        limit=limit,
        offset=offset,
    )

    submissions = [
        _submission_response(service, submission, snapshot)
        for submission, snapshot in result["items"]
    ]
    counts = result["counts"]
    tracked = sum(counts.values())
    overdue_rate = (counts[SLAStanding.OVERDUE] / tracked * 100) if tracked > 0 else 0.0

    return DashboardResponse(
        submissions=submissions,
        total_count=result["total"],
        summary=DashboardSummary(
            total_submissions=tracked,
            on_time_count=counts[SLAStanding.ON_TIME],
            warning_count=counts[SLAStanding.WARNING],
            overdue_count=counts[SLAStanding.OVERDUE],
            overdue_rate=round(overdue_rate, 2),
        ),
    )


# ========== Reminders ==========

@router.post(
    "/reminders/run",
    response_model=ReminderRunResponse,
    summary="Run the deadline reminder dispatcher once",
)
async def run_reminders(
    service: ReminderService = Depends(get_reminder_service),
):
    summary = await service.dispatch_due_reminders()
    return ReminderRunResponse(**summary)


# ========== Role escalation ==========

@router.post(
    "/role-escalations",
    response_model=RoleEscalationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request a role escalation",
)
async def create_role_escalation(
    payload: RoleEscalationCreateRequest,
    service: RoleEscalationService = Depends(get_escalation_service),
):
    created = await service.submit_request(
        payload.user_id, payload.current_role, payload.requested_role, payload.reason
    )
    return RoleEscalationResponse.from_domain(created)


@router.get(
    "/role-escalations",
    response_model=List[RoleEscalationResponse],
    summary="List role escalation requests",
)
async def list_role_escalations(
    request_status: Optional[EscalationStatusStr] = Query(None, alias="status"),
    service: RoleEscalationService = Depends(get_escalation_service),
):
    requests = await service.list_requests(
        EscalationStatus(request_status) if request_status else None
    )
    return [RoleEscalationResponse.from_domain(r) for r in requests]


@router.patch(
    "/role-escalations/{request_id}",
    response_model=RoleEscalationResponse,
    summary="Approve, reject or cancel a role escalation request",
    responses={
        400: {"description": "Request already processed"},
        404: {"description": "Request not found"},
    },
)
async def decide_role_escalation(
    request_id: str,
    payload: RoleEscalationDecisionRequest,
    service: RoleEscalationService = Depends(get_escalation_service),
):
    updated = await service.decide(
        request_id, payload.action, payload.decided_by, payload.rejection_reason
    )
    return RoleEscalationResponse.from_domain(updated)


# Export router for inclusion in main app
workflow_router = router
