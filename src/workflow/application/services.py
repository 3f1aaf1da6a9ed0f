"""
Workflow Application Services
=============================

Application services orchestrate the workflow rules and coordinate between
domain objects, repositories and the notifier.

Following SOLID principles:
- Single Responsibility: Each service has one clear purpose
- Dependency Inversion: Depend on abstractions (repositories), not concrete implementations
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional
from uuid import uuid4

from src.config import (
    SubmissionStatus, EscalationStatus, EscalationAction, SLAStanding
)
from src.core import (
    ExternalServiceException, InvalidTransitionError, ResourceNotFoundException,
    ValidationException
)
from src.shared.infrastructure.logging import audit, get_logger
from src.workflow.domain import (
    Submission, StatusHistoryEntry, RoleEscalationRequest, ReminderNotice,
    SLASnapshot, SLACalculator, SLAPolicy, TransitionTable,
    SUBMISSION_TRANSITIONS, ROLE_ESCALATION_TRANSITIONS
)

logger = get_logger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ========== Repository Interfaces (Dependency Inversion) ==========

class ISubmissionRepository(ABC):
    """Interface for submission and status history data access."""

    @abstractmethod
    async def get_by_id(self, submission_id: str) -> Optional[Submission]:
        """Get submission by ID."""

    @abstractmethod
    async def create(self, submission: Submission, entry: StatusHistoryEntry) -> Submission:
        """Persist a new submission together with its first history entry."""

    @abstractmethod
    async def apply_transition(
        self,
        submission_id: str,
        expected_status: SubmissionStatus,
        entry: StatusHistoryEntry,
        deadline: Optional[datetime],
    ) -> Submission:
        """
        Atomically move a submission out of ``expected_status``.

        Sets status, last_status_change_at, deadline, resets reminders_sent
        and appends ``entry``. Must raise InvalidTransitionError without
        writing anything if the stored status is no longer ``expected_status``.
        """

    @abstractmethod
    async def increment_reminders(
        self,
        submission_id: str,
        expected_status: SubmissionStatus,
        expected_count: int,
        expected_deadline: datetime,
    ) -> bool:
        """Bump reminders_sent if the submission is unchanged since the read; report success."""

    @abstractmethod
    async def commit(self) -> None:
        """Make the work done so far durable."""

    @abstractmethod
    async def get_history(self, submission_id: str) -> List[StatusHistoryEntry]:
        """History entries of a submission, oldest first."""

    @abstractmethod
    async def list(
        self,
        filters: dict,
        limit: Optional[int] = 100,
        offset: int = 0
    ) -> List[Submission]:
        """List submissions with filters; limit=None returns every match."""

    @abstractmethod
    async def list_with_deadline(
        self,
        statuses: List[SubmissionStatus],
    ) -> List[Submission]:
        """Submissions in ``statuses`` that carry a deadline."""


class IRoleEscalationRepository(ABC):
    """Interface for role escalation request data access."""

    @abstractmethod
    async def create(self, request: RoleEscalationRequest) -> RoleEscalationRequest:
        """Persist a new request."""

    @abstractmethod
    async def get_by_id(self, request_id: str) -> Optional[RoleEscalationRequest]:
        """Get request by ID."""

    @abstractmethod
    async def list(self, status: Optional[EscalationStatus] = None) -> List[RoleEscalationRequest]:
        """List requests, newest first."""

    @abstractmethod
    async def apply_decision(
        self,
        request_id: str,
        expected_status: EscalationStatus,
        new_status: EscalationStatus,
        decided_by: Optional[str],
        decided_at: datetime,
        rejection_reason: Optional[str] = None,
    ) -> RoleEscalationRequest:
        """Guarded status update; raises InvalidTransitionError on a stale read."""


class IPolicyProvider(ABC):
    """Interface for SLA policy access."""

    @abstractmethod
    def get_policy(self) -> SLAPolicy:
        """Get current SLA policy."""


class INotifier(ABC):
    """Interface for handing reminder notices to the delivery channel."""

    @abstractmethod
    async def send_reminder(self, notice: ReminderNotice) -> bool:
        """Deliver a notice; True when accepted by the channel."""


class StaticPolicyProvider(IPolicyProvider):
    """Policy provider over a fixed policy object."""

    def __init__(self, policy: Optional[SLAPolicy] = None):
        self._policy = policy or SLAPolicy()

    def get_policy(self) -> SLAPolicy:
        return self._policy


# ========== Application Services ==========

class SubmissionWorkflowService:
    """
    Service for submission lifecycle changes and SLA tracking.

    Every status change goes through ``record_transition``, which re-checks
    the transition against the stored status and persists it with a guarded
    update so two concurrent editors cannot both move the same submission.
    """

    def __init__(
        self,
        submission_repository: ISubmissionRepository,
        policy_provider: IPolicyProvider,
        transitions: TransitionTable = SUBMISSION_TRANSITIONS,
        clock: Clock = utc_now,
    ):
        self._repo = submission_repository
        self._policy_provider = policy_provider
        self._transitions = transitions
        self._clock = clock

    @property
    def transitions(self) -> TransitionTable:
        return self._transitions

    def _calculator(self) -> SLACalculator:
        # Built per call so a hot-reloaded policy applies immediately
        return SLACalculator(self._policy_provider.get_policy())

    async def create_submission(
        self,
        title: str,
        author_id: Optional[str] = None,
    ) -> Submission:
        """Register a new manuscript in the initial status."""
        if not title or not title.strip():
            raise ValidationException("Submission title cannot be empty")

        now = self._clock()
        status = self._transitions.initial
        submission = Submission(
            id=str(uuid4()),
            title=title.strip(),
            status=status,
            created_at=now,
            last_status_change_at=now,
            author_id=author_id,
            deadline=self._calculator().compute_deadline(status, now),
            reminders_sent=0,
        )
        entry = StatusHistoryEntry(
            submission_id=submission.id,
            status=status,
            changed_at=now,
            changed_by=author_id,
            notes="Submission received",
        )

        created = await self._repo.create(submission, entry)
        audit(
            logger, "submission_created",
            submission_id=created.id, status=status.value, changed_by=author_id
        )
        return created

    async def get_submission(self, submission_id: str) -> Submission:
        submission = await self._repo.get_by_id(submission_id)
        if submission is None:
            raise ResourceNotFoundException("Submission", submission_id)
        return submission

    async def record_transition(
        self,
        submission_id: str,
        new_status,
        changed_by: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Submission:
        """
        Move a submission to ``new_status``.

        Raises:
            ResourceNotFoundException: no such submission
            InvalidTransitionError: the move is not allowed from the stored
                status, or the stored status changed concurrently
            UnknownStatusError: ``new_status`` is not a SubmissionStatus
        """
        submission = await self.get_submission(submission_id)
        target = self._transitions.ensure_transition(submission.status, new_status)

        now = self._clock()
        deadline = self._calculator().compute_deadline(target, now)
        entry = StatusHistoryEntry(
            submission_id=submission.id,
            status=target,
            changed_at=now,
            changed_by=changed_by,
            notes=notes,
        )

        updated = await self._repo.apply_transition(
            submission.id, submission.status, entry, deadline
        )

        audit(
            logger, "submission_status_changed",
            submission_id=submission.id,
            from_status=submission.status.value,
            to_status=target.value,
            changed_by=changed_by,
        )
        return updated

    async def get_history(self, submission_id: str) -> List[StatusHistoryEntry]:
        await self.get_submission(submission_id)
        return await self._repo.get_history(submission_id)

    async def allowed_transitions(self, submission_id: str) -> List[SubmissionStatus]:
        """Statuses the submission may move to next (drives the action buttons)."""
        submission = await self.get_submission(submission_id)
        allowed = self._transitions.allowed_transitions(submission.status)
        return sorted(allowed, key=lambda s: list(SubmissionStatus).index(s))

    def describe_sla(
        self,
        submission: Submission,
        now: Optional[datetime] = None,
    ) -> SLASnapshot:
        """SLA standing of a submission at ``now`` (defaults to the clock)."""
        now = now or self._clock()
        calculator = self._calculator()
        standing = calculator.classify(submission.deadline, now)
        days_remaining = None
        if submission.deadline is not None:
            days_remaining = calculator.days_until_deadline(submission.deadline, now)

        return SLASnapshot(
            submission_id=submission.id,
            status=submission.status,
            deadline=submission.deadline,
            days_remaining=days_remaining,
            days_in_status=calculator.days_in_status(submission.last_status_change_at, now),
            standing=standing,
            badge_color=calculator.badge_color(standing),
        )

    async def dashboard(
        self,
        status: Optional[SubmissionStatus] = None,
        standing: Optional[SLAStanding] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> Dict:
        """
        Submissions with their SLA standing plus summary counts.

        Counts cover every submission matching the status filter, whatever
        the standing filter and page. Standing is computed at read time, so
        the standing filter and pagination are applied after classifying.

        Returns:
            {
                "items": [(Submission, SLASnapshot), ...],  # the requested page
                "counts": {standing: n},
                "total": number of items matching both filters,
            }
        """
        filters = {}
        if status is not None:
            filters["status"] = status

        submissions = await self._repo.list(filters, limit=None)
        now = self._clock()

        counts = {s: 0 for s in SLAStanding}
        matching = []
        for submission in submissions:
            snapshot = self.describe_sla(submission, now)
            counts[snapshot.standing] += 1
            if standing is None or snapshot.standing == standing:
                matching.append((submission, snapshot))

        return {
            "items": matching[offset:offset + limit],
            "counts": counts,
            "total": len(matching),
        }


class ReminderService:
    """
    Dispatches deadline reminders.

    Run periodically: each run checks every submission that still has a
    deadline and sends the reminders that are due. Each delivered reminder
    is committed on its own so a later failure in the run cannot roll it back.
    """

    def __init__(
        self,
        submission_repository: ISubmissionRepository,
        policy_provider: IPolicyProvider,
        notifier: INotifier,
        transitions: TransitionTable = SUBMISSION_TRANSITIONS,
        clock: Clock = utc_now,
    ):
        self._repo = submission_repository
        self._policy_provider = policy_provider
        self._notifier = notifier
        self._transitions = transitions
        self._clock = clock

    async def dispatch_due_reminders(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Send every reminder due at ``now``.

        Returns:
            Summary with counts of evaluated submissions, sent reminders and
            failed deliveries.
        """
        now = now or self._clock()
        calculator = SLACalculator(self._policy_provider.get_policy())

        open_statuses = [
            s for s in self._transitions.enum_type
            if not self._transitions.is_terminal(s)
        ]
        submissions = await self._repo.list_with_deadline(open_statuses)

        sent = 0
        failed = 0
        for submission in submissions:
            if not calculator.should_send_reminder(
                submission.deadline, submission.reminders_sent, now
            ):
                continue

            notice = ReminderNotice(
                submission_id=submission.id,
                title=submission.title,
                status=submission.status,
                deadline=submission.deadline,
                days_until_deadline=calculator.days_until_deadline(submission.deadline, now),
                sequence=submission.reminders_sent + 1,
                recipient_id=submission.author_id,
            )

            try:
                delivered = await self._notifier.send_reminder(notice)
            except ExternalServiceException as e:
                logger.error(
                    "Reminder delivery failed",
                    extra={"submission_id": submission.id, "error": str(e)}
                )
                delivered = False

            if not delivered:
                failed += 1
                continue

            recorded = await self._repo.increment_reminders(
                submission.id, submission.status, submission.reminders_sent, submission.deadline
            )
            # The notice is already out; persist the count before the next delivery
            await self._repo.commit()
            if not recorded:
                logger.warning(
                    "Submission changed while sending reminder",
                    extra={"submission_id": submission.id}
                )
                continue

            sent += 1
            audit(
                logger, "deadline_reminder_sent",
                submission_id=submission.id,
                sequence=notice.sequence,
                days_until_deadline=notice.days_until_deadline,
            )

        summary = {
            "evaluated": len(submissions),
            "reminders_sent": sent,
            "failed": failed,
        }
        logger.info("Reminder run complete", extra=summary)
        return summary


class RoleEscalationService:
    """Handles role escalation requests and administrator decisions."""

    _ACTION_TARGETS = {
        EscalationAction.APPROVE: EscalationStatus.APPROVED,
        EscalationAction.REJECT: EscalationStatus.REJECTED,
        EscalationAction.CANCEL: EscalationStatus.CANCELLED,
    }

    def __init__(
        self,
        repository: IRoleEscalationRepository,
        transitions: TransitionTable = ROLE_ESCALATION_TRANSITIONS,
        clock: Clock = utc_now,
    ):
        self._repo = repository
        self._transitions = transitions
        self._clock = clock

    async def submit_request(
        self,
        user_id: str,
        current_role: str,
        requested_role: str,
        reason: Optional[str] = None,
    ) -> RoleEscalationRequest:
        if current_role == requested_role:
            raise ValidationException(
                "Requested role must differ from the current role",
                {"role": requested_role}
            )

        request = RoleEscalationRequest(
            id=str(uuid4()),
            user_id=user_id,
            current_role=current_role,
            requested_role=requested_role,
            status=self._transitions.initial,
            created_at=self._clock(),
            reason=reason,
        )
        created = await self._repo.create(request)
        audit(
            logger, "role_escalation_requested",
            request_id=created.id, user_id=user_id,
            from_role=current_role, to_role=requested_role,
        )
        return created

    async def list_requests(
        self,
        status: Optional[EscalationStatus] = None,
    ) -> List[RoleEscalationRequest]:
        return await self._repo.list(status)

    async def decide(
        self,
        request_id: str,
        action,
        decided_by: Optional[str] = None,
        rejection_reason: Optional[str] = None,
    ) -> RoleEscalationRequest:
        """
        Approve, reject or cancel a pending request.

        Raises:
            ResourceNotFoundException: no such request
            ValidationException: unknown action, or a rejection without a reason
            InvalidTransitionError: the request was already processed
        """
        try:
            action = EscalationAction(action)
        except ValueError:
            raise ValidationException(f"Invalid action: {action!r}") from None

        if action == EscalationAction.REJECT and not (rejection_reason or "").strip():
            raise ValidationException("Rejection reason is required", {"request_id": request_id})

        request = await self._repo.get_by_id(request_id)
        if request is None:
            raise ResourceNotFoundException("RoleEscalationRequest", request_id)

        target = self._ACTION_TARGETS[action]
        try:
            self._transitions.ensure_transition(request.status, target)
        except InvalidTransitionError as e:
            raise InvalidTransitionError(
                request.status, target, "request already processed"
            ) from e

        updated = await self._repo.apply_decision(
            request.id,
            request.status,
            target,
            decided_by=decided_by,
            decided_at=self._clock(),
            rejection_reason=rejection_reason if target == EscalationStatus.REJECTED else None,
        )
        audit(
            logger, f"role_escalation_{target.value.lower()}",
            request_id=request.id, user_id=request.user_id,
            decided_by=decided_by, to_role=request.requested_role,
        )
        return updated
