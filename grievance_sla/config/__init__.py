"""
Configuration Module
====================

Application settings and configuration management using Pydantic.

Process-level settings (server, database, scheduler cadence) come from the
environment. The working calendar and SLA budget table live in the YAML
file pointed to by ``sla_config_path`` and are loaded once at startup by
``SLAConfigManager``.
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
    app_name: str = Field(default="grievance-sla-engine", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/grievances",
        description="PostgreSQL connection URL (async)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== SLA Configuration ==========
    sla_config_path: Path = Field(
        default=Path("sla_config.yaml"),
        description="Path to the working calendar / SLA policy YAML file"
    )
    escalation_interval_seconds: int = Field(
        default=180,
        description="Seconds between escalation cycles (0 disables the scheduler)",
        ge=0
    )
    escalation_cycle_timeout_seconds: float = Field(
        default=120.0,
        description="Upper bound for a single escalation cycle",
        gt=0
    )
    sla_summary_cache_ttl_seconds: int = Field(
        default=300,
        description="TTL for the cached SLA summary",
        ge=0
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins"
    )

    # ========== Grafana OTLP Metrics ==========
    grafana_host: Optional[str] = Field(
        default=None,
        description="Grafana OTLP gateway URL (e.g., https://otlp-gateway-prod-ap-south-1.grafana.net)"
    )
    grafana_api_key: Optional[str] = Field(
        default=None,
        description="Grafana API key for OTLP authentication"
    )
    grafana_instance_id: Optional[str] = Field(
        default=None,
        description="Grafana instance ID for OTLP authentication"
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
        allowed = {"development", "staging", "production", "testing"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class Priority(str, Enum):
    """Issue priority levels, ordered low < medium < high < critical."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return PRIORITY_ORDER.index(self)

    def next_higher(self) -> "Priority":
        """One tier up, saturating at critical."""
        return PRIORITY_ORDER[min(self.rank + 1, len(PRIORITY_ORDER) - 1)]

    def __lt__(self, other):
        if not isinstance(other, Priority):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, Priority):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, Priority):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, Priority):
            return NotImplemented
        return self.rank >= other.rank


class IssueStatus(str, Enum):
    """Grievance lifecycle statuses."""
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    PENDING = "pending"
    ESCALATED = "escalated"
    RESOLVED = "resolved"
    CLOSED = "closed"


class SLAStatus(str, Enum):
    """SLA status states."""
    PENDING = "pending"
    AT_RISK = "at_risk"
    BREACHED = "breached"
    ON_TIME = "on_time"


# ========== Lists for validation ==========

PRIORITY_ORDER = [Priority.LOW, Priority.MEDIUM, Priority.HIGH, Priority.CRITICAL]
OPEN_STATUSES = [
    IssueStatus.OPEN, IssueStatus.IN_PROGRESS,
    IssueStatus.PENDING, IssueStatus.ESCALATED
]
CLOSED_STATUSES = [IssueStatus.RESOLVED, IssueStatus.CLOSED]
VALID_SLA_STATUSES = [
    SLAStatus.PENDING, SLAStatus.AT_RISK,
    SLAStatus.BREACHED, SLAStatus.ON_TIME
]

AUDIT_REASON_SLA_ESCALATION = "sla_escalation"
