"""
Workflow Infrastructure Layer
=============================

Infrastructure implementations for the editorial workflow:
- Models: SQLAlchemy ORM models
- Repositories: Data access layer and YAML policy loading
- External: Policy file watcher, notification webhook, reminder scheduler
"""

from src.workflow.infrastructure.models import (
    SubmissionModel,
    StatusHistoryModel,
    RoleEscalationRequestModel,
)
from src.workflow.infrastructure.repositories import (
    SQLAlchemySubmissionRepository,
    SQLAlchemyRoleEscalationRepository,
    load_policy_file,
)
from src.workflow.infrastructure.external import (
    PolicyConfigManager,
    WebhookNotifier,
    ReminderScheduler,
    CircuitBreaker,
)

__all__ = [
    "SubmissionModel",
    "StatusHistoryModel",
    "RoleEscalationRequestModel",
    "SQLAlchemySubmissionRepository",
    "SQLAlchemyRoleEscalationRepository",
    "load_policy_file",
    "PolicyConfigManager",
    "WebhookNotifier",
    "ReminderScheduler",
    "CircuitBreaker",
]
