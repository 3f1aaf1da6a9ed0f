"""
Workflow Domain Layer
=====================

Domain layer for the editorial workflow module.

Contains:
- Entities: Submission, StatusHistoryEntry, RoleEscalationRequest, ReminderNotice
- Transition tables: the manuscript lifecycle and the role escalation flow
- Value Objects & Services: SLAPolicy, SLACalculator

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from src.workflow.domain.entities import (
    Submission,
    StatusHistoryEntry,
    RoleEscalationRequest,
    ReminderNotice,
    SLASnapshot,
)
from src.workflow.domain.transitions import (
    TransitionTable,
    SUBMISSION_TRANSITIONS,
    ROLE_ESCALATION_TRANSITIONS,
)
from src.workflow.domain.value_objects import (
    SLAPolicy,
    SLACalculator,
    DEFAULT_SLA_DAYS,
)

__all__ = [
    # Entities
    "Submission",
    "StatusHistoryEntry",
    "RoleEscalationRequest",
    "ReminderNotice",
    "SLASnapshot",
    # Transition tables
    "TransitionTable",
    "SUBMISSION_TRANSITIONS",
    "ROLE_ESCALATION_TRANSITIONS",
    # Value Objects & Services
    "SLAPolicy",
    "SLACalculator",
    "DEFAULT_SLA_DAYS",
]
