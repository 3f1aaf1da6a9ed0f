"""
Workflow Infrastructure Repositories
====================================

Concrete implementations of repository interfaces using SQLAlchemy.

Status changes are written with conditional UPDATE statements guarded by the
status the caller read, so the read-check-write of a transition behaves as a
single atomic step even with several editors acting at once.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional
from uuid import UUID

import yaml
from pydantic import ValidationError
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import SubmissionStatus, EscalationStatus
from src.core import ConfigurationException, InvalidTransitionError, RepositoryException
from src.shared.infrastructure.logging import get_logger
from src.workflow.application.services import (
    ISubmissionRepository, IRoleEscalationRepository
)
from src.workflow.domain import (
    Submission, StatusHistoryEntry, RoleEscalationRequest, SLAPolicy
)
from src.workflow.infrastructure.models import (
    SubmissionModel, StatusHistoryModel, RoleEscalationRequestModel
)

logger = get_logger(__name__)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive timestamps (SQLite drops tzinfo on the way back)."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _parse_uuid(value: str) -> Optional[UUID]:
    try:
        return UUID(str(value))
    except ValueError:
        return None


class SQLAlchemySubmissionRepository(ISubmissionRepository):
    """
    SQLAlchemy implementation of the submission repository.

    Handles persistence of Submission entities and their status history.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _to_domain(model: SubmissionModel) -> Submission:
        return Submission(
            id=str(model.id),
            title=model.title,
            status=SubmissionStatus(model.status),
            created_at=_as_utc(model.created_at),
            last_status_change_at=_as_utc(model.last_status_change_at),
            author_id=model.author_id,
            deadline=_as_utc(model.deadline),
            reminders_sent=model.reminders_sent,
        )

    async def _load(self, submission_uuid: UUID) -> Optional[SubmissionModel]:
        stmt = (
            select(SubmissionModel)
            .where(SubmissionModel.id == submission_uuid)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_id(self, submission_id: str) -> Optional[Submission]:
        """Get submission by ID."""
        submission_uuid = _parse_uuid(submission_id)
        if submission_uuid is None:
            return None

        model = await self._load(submission_uuid)
        return self._to_domain(model) if model else None

    async def create(self, submission: Submission, entry: StatusHistoryEntry) -> Submission:
        """Persist a new submission and its first history entry."""
        model = SubmissionModel(
            id=UUID(submission.id),
            title=submission.title,
            author_id=submission.author_id,
            status=submission.status.value,
            created_at=submission.created_at,
            last_status_change_at=submission.last_status_change_at,
            deadline=submission.deadline,
            reminders_sent=submission.reminders_sent,
        )
        self._session.add(model)
        self._session.add(self._history_model(entry))
        await self._session.flush()

        return self._to_domain(model)

    @staticmethod
    def _history_model(entry: StatusHistoryEntry) -> StatusHistoryModel:
        return StatusHistoryModel(
            submission_id=UUID(entry.submission_id),
            status=entry.status.value,
            changed_by=entry.changed_by,
            notes=entry.notes,
            changed_at=entry.changed_at,
        )

    async def apply_transition(
        self,
        submission_id: str,
        expected_status: SubmissionStatus,
        entry: StatusHistoryEntry,
        deadline: Optional[datetime],
    ) -> Submission:
        """Guarded status update plus history append in the current transaction."""
        submission_uuid = _parse_uuid(submission_id)
        if submission_uuid is None:
            raise RepositoryException(f"Invalid submission ID: {submission_id}")

        stmt = (
            update(SubmissionModel)
            .where(
                SubmissionModel.id == submission_uuid,
                SubmissionModel.status == expected_status.value,
            )
            .values(
                status=entry.status.value,
                last_status_change_at=entry.changed_at,
                deadline=deadline,
                reminders_sent=0,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)

        if result.rowcount != 1:
            logger.warning(
                "Stale status on transition",
                extra={
                    "submission_id": submission_id,
                    "expected_status": expected_status.value,
                    "target_status": entry.status.value,
                }
            )
            raise InvalidTransitionError(
                expected_status, entry.status, "status changed concurrently"
            )

        self._session.add(self._history_model(entry))
        await self._session.flush()

        model = await self._load(submission_uuid)
        return self._to_domain(model)

    async def increment_reminders(
        self,
        submission_id: str,
        expected_status: SubmissionStatus,
        expected_count: int,
        expected_deadline: datetime,
    ) -> bool:
        """Bump reminders_sent only if nothing moved since the dispatcher's read."""
        submission_uuid = _parse_uuid(submission_id)
        if submission_uuid is None:
            return False

        stmt = (
            update(SubmissionModel)
            .where(
                SubmissionModel.id == submission_uuid,
                SubmissionModel.status == expected_status.value,
                SubmissionModel.reminders_sent == expected_count,
                SubmissionModel.deadline == expected_deadline,
            )
            .values(reminders_sent=expected_count + 1)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        await self._session.flush()
        return result.rowcount == 1

    async def commit(self) -> None:
        await self._session.commit()

    async def get_history(self, submission_id: str) -> List[StatusHistoryEntry]:
        """History entries, oldest first."""
        submission_uuid = _parse_uuid(submission_id)
        if submission_uuid is None:
            return []

        stmt = (
            select(StatusHistoryModel)
            .where(StatusHistoryModel.submission_id == submission_uuid)
            .order_by(StatusHistoryModel.changed_at.asc())
        )
        result = await self._session.execute(stmt)

        return [
            StatusHistoryEntry(
                id=str(model.id),
                submission_id=str(model.submission_id),
                status=SubmissionStatus(model.status),
                changed_at=_as_utc(model.changed_at),
                changed_by=model.changed_by,
                notes=model.notes,
            )
            for model in result.scalars().all()
        ]

    async def list(
        self,
        filters: dict,
        limit: Optional[int] = 100,
        offset: int = 0
    ) -> List[Submission]:
        """List submissions with filters, most recently changed first."""
        stmt = select(SubmissionModel)

        if "status" in filters:
            status = filters["status"]
            if isinstance(status, list):
                stmt = stmt.where(SubmissionModel.status.in_([SubmissionStatus(s).value for s in status]))
            else:
                stmt = stmt.where(SubmissionModel.status == SubmissionStatus(status).value)

        if "author_id" in filters:
            stmt = stmt.where(SubmissionModel.author_id == filters["author_id"])

        stmt = stmt.order_by(SubmissionModel.last_status_change_at.desc())
        stmt = stmt.limit(limit).offset(offset).execution_options(populate_existing=True)

        result = await self._session.execute(stmt)
        return [self._to_domain(m) for m in result.scalars().all()]

    async def list_with_deadline(
        self,
        statuses: List[SubmissionStatus],
    ) -> List[Submission]:
        stmt = (
            select(SubmissionModel)
            .where(
                SubmissionModel.deadline.is_not(None),
                SubmissionModel.status.in_([s.value for s in statuses]),
            )
            .order_by(SubmissionModel.deadline.asc())
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return [self._to_domain(m) for m in result.scalars().all()]


class SQLAlchemyRoleEscalationRepository(IRoleEscalationRepository):
    """SQLAlchemy implementation of the role escalation repository."""

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _to_domain(model: RoleEscalationRequestModel) -> RoleEscalationRequest:
        return RoleEscalationRequest(
            id=str(model.id),
            user_id=model.user_id,
            current_role=model.current_role,
            requested_role=model.requested_role,
            status=EscalationStatus(model.status),
            created_at=_as_utc(model.created_at),
            reason=model.reason,
            decided_by=model.decided_by,
            decided_at=_as_utc(model.decided_at),
            rejection_reason=model.rejection_reason,
        )

    async def _load(self, request_uuid: UUID) -> Optional[RoleEscalationRequestModel]:
        stmt = (
            select(RoleEscalationRequestModel)
            .where(RoleEscalationRequestModel.id == request_uuid)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, request: RoleEscalationRequest) -> RoleEscalationRequest:
        model = RoleEscalationRequestModel(
            id=UUID(request.id),
            user_id=request.user_id,
            current_role=request.current_role,
            requested_role=request.requested_role,
            reason=request.reason,
            status=request.status.value,
            created_at=request.created_at,
        )
        self._session.add(model)
        await self._session.flush()
        return self._to_domain(model)

    async def get_by_id(self, request_id: str) -> Optional[RoleEscalationRequest]:
        request_uuid = _parse_uuid(request_id)
        if request_uuid is None:
            return None
        model = await self._load(request_uuid)
        return self._to_domain(model) if model else None

    async def list(self, status: Optional[EscalationStatus] = None) -> List[RoleEscalationRequest]:
        stmt = select(RoleEscalationRequestModel)
        if status is not None:
            stmt = stmt.where(RoleEscalationRequestModel.status == EscalationStatus(status).value)
        stmt = stmt.order_by(RoleEscalationRequestModel.created_at.desc())
        stmt = stmt.execution_options(populate_existing=True)

        result = await self._session.execute(stmt)
        return [self._to_domain(m) for m in result.scalars().all()]

    async def apply_decision(
        self,
        request_id: str,
        expected_status: EscalationStatus,
        new_status: EscalationStatus,
        decided_by: Optional[str],
        decided_at: datetime,
        rejection_reason: Optional[str] = None,
    ) -> RoleEscalationRequest:
        request_uuid = _parse_uuid(request_id)
        if request_uuid is None:
            raise RepositoryException(f"Invalid request ID: {request_id}")

        stmt = (
            update(RoleEscalationRequestModel)
            .where(
                RoleEscalationRequestModel.id == request_uuid,
                RoleEscalationRequestModel.status == expected_status.value,
            )
            .values(
                status=new_status.value,
                decided_by=decided_by,
                decided_at=decided_at,
                rejection_reason=rejection_reason,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount != 1:
            raise InvalidTransitionError(
                expected_status, new_status, "request already processed"
            )

        await self._session.flush()
        model = await self._load(request_uuid)
        return self._to_domain(model)


def load_policy_file(path: Path) -> SLAPolicy:
    """
    Parse an SLA policy YAML file.

    A missing file yields the default policy; an invalid one is a
    configuration error.
    """
    if not path.exists():
        logger.warning(f"SLA policy file not found: {path}, using defaults")
        return SLAPolicy()

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationException(f"Malformed SLA policy file {path}: {e}") from e

    try:
        return SLAPolicy(**data)
    except (ValidationError, TypeError) as e:
        raise ConfigurationException(f"Invalid SLA policy in {path}: {e}") from e
