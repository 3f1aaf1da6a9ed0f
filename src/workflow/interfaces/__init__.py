"""
Workflow Interfaces Layer
=========================

Interface adapters (controllers) for the editorial workflow module.

This is the outermost layer - handles HTTP requests/responses and
delegates to application services.
"""

from src.workflow.interfaces.controllers import workflow_router

__all__ = ["workflow_router"]
