"""
SLA Infrastructure Models
==========================

SQLAlchemy ORM models for the SLA engine.

The ``issues`` table belongs to the grievance CRUD layer; the engine maps
only the columns it reads and the SLA columns it writes. ``audit_logs`` is
shared with the rest of the system.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, String, DateTime, Integer, Float, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from grievance_sla.infrastructure.database import Base
from grievance_sla.config import Priority, IssueStatus


class IssueModel(Base):
    """
    Database model for a grievance issue.

    Maps to the 'issues' table.
    """
    __tablename__ = "issues"

    # Primary key (owned by the CRUD layer)
    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    # Classification inputs
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default=Priority.MEDIUM.value, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=IssueStatus.OPEN.value, index=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Engine-owned SLA state
    escalation_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    escalated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    sla_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True, index=True)
    sla_deadline: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    sla_working_hours: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    sla_outcome: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    # Optimistic-lock counter, bumped on every engine write
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class AuditLogModel(Base):
    """
    Database model for an audit trail entry.

    Maps to the 'audit_logs' table.
    """
    __tablename__ = "audit_logs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    changes: Mapped[dict] = mapped_column(JSON, nullable=False)

    performed_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    performed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
