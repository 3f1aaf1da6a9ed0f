"""
Workflow Application Layer
==========================

Application layer for the editorial workflow module.

Contains:
- Services: Orchestrate business logic and coordinate with repositories
- DTOs: Data transfer objects for API serialization

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from src.workflow.application.dto import (
    SubmissionCreateRequest,
    TransitionRequest,
    RoleEscalationCreateRequest,
    RoleEscalationDecisionRequest,
    SLAStatusResponse,
    SubmissionResponse,
    StatusHistoryResponse,
    AllowedTransitionsResponse,
    DashboardSummary,
    DashboardResponse,
    ReminderRunResponse,
    RoleEscalationResponse,
)
from src.workflow.application.services import (
    SubmissionWorkflowService,
    ReminderService,
    RoleEscalationService,
    StaticPolicyProvider,
    ISubmissionRepository,
    IRoleEscalationRepository,
    IPolicyProvider,
    INotifier,
    utc_now,
)

__all__ = [
    # DTOs
    "SubmissionCreateRequest",
    "TransitionRequest",
    "RoleEscalationCreateRequest",
    "RoleEscalationDecisionRequest",
    "SLAStatusResponse",
    "SubmissionResponse",
    "StatusHistoryResponse",
    "AllowedTransitionsResponse",
    "DashboardSummary",
    "DashboardResponse",
    "ReminderRunResponse",
    "RoleEscalationResponse",
    # Services
    "SubmissionWorkflowService",
    "ReminderService",
    "RoleEscalationService",
    "StaticPolicyProvider",
    "utc_now",
    # Interfaces
    "ISubmissionRepository",
    "IRoleEscalationRepository",
    "IPolicyProvider",
    "INotifier",
]
