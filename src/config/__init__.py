"""
Configuration Module
====================

Application settings and workflow constants.

Settings are loaded from the environment (and `.env`) with pydantic-settings.
The closed enumerations used across the editorial workflow live here so the
domain, persistence and API layers all share one definition.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="editorial-workflow", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/editorial",
        description="Relational store connection URL (async driver)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== SLA Policy ==========
    sla_policy_path: Path = Field(
        default=Path("sla_policy.yaml"),
        description="Path to the SLA policy YAML file"
    )
    reminder_interval_seconds: int = Field(
        default=3600,
        description="Seconds between reminder dispatch runs (0 disables the job)",
        ge=0
    )

    # ========== Notifications ==========
    notification_webhook_url: Optional[str] = Field(
        default=None,
        description="Webhook that receives reminder notices for email/push delivery"
    )
    notification_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for notification webhook calls",
        ge=0.1,
        le=30
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of {allowed}")
        return v.upper()


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class SubmissionStatus(str, Enum):
    """Manuscript lifecycle statuses."""
    NEW = "NEW"
    DESK_REJECT = "DESK_REJECT"
    UNDER_REVIEW = "UNDER_REVIEW"
    REVISION = "REVISION"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    IN_PRODUCTION = "IN_PRODUCTION"
    PUBLISHED = "PUBLISHED"


class EscalationStatus(str, Enum):
    """Role escalation request statuses."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class EscalationAction(str, Enum):
    """Decisions an administrator can take on an escalation request."""
    APPROVE = "approve"
    REJECT = "reject"
    CANCEL = "cancel"


class SLAStanding(str, Enum):
    """Deadline standing shown as a badge next to a submission."""
    ON_TIME = "on-time"
    WARNING = "warning"
    OVERDUE = "overdue"


# ========== Presentation ==========

SLA_BADGE_COLORS = {
    SLAStanding.ON_TIME: "green",
    SLAStanding.WARNING: "yellow",
    SLAStanding.OVERDUE: "red",
}

STATUS_LABELS = {
    SubmissionStatus.NEW: "Newly submitted",
    SubmissionStatus.DESK_REJECT: "Desk rejected",
    SubmissionStatus.UNDER_REVIEW: "Under review",
    SubmissionStatus.REVISION: "Revision requested",
    SubmissionStatus.ACCEPTED: "Accepted",
    SubmissionStatus.REJECTED: "Rejected",
    SubmissionStatus.IN_PRODUCTION: "In production",
    SubmissionStatus.PUBLISHED: "Published",
}
