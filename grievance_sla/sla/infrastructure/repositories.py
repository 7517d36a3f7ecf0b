"""
SLA Infrastructure Repositories
=================================

Concrete implementations of repository interfaces using SQLAlchemy.

This layer contains the data access logic - how the engine reads issue
snapshots and writes SLA state and audit entries. Each call opens its own
short session from the shared session factory, so one repository instance
can serve the scheduler job and request handlers alike.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from grievance_sla.config import Priority, IssueStatus, SLAStatus, OPEN_STATUSES
from grievance_sla.core import (
    ConcurrentModificationException,
    RepositoryException,
    StorageUnavailableException,
)
from grievance_sla.shared.infrastructure.logging import get_logger
from grievance_sla.sla.application import IIssueStore
from grievance_sla.sla.domain import AuditEntry, IssueSnapshot, SLAEvaluation
from grievance_sla.sla.infrastructure.models import IssueModel, AuditLogModel

logger = get_logger(__name__)

AUDIT_ENTITY_TYPE = "issue"
AUDIT_PERFORMED_BY = "system"


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime for storage and comparison.

    Drivers without timezone support hand back naive values; those are UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class _SessionMixin:
    """Opens sessions and maps driver failures onto repository exceptions."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession, None]:
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    yield session
        except (OperationalError, InterfaceError, OSError) as e:
            raise StorageUnavailableException(str(e)) from e
        except SQLAlchemyError as e:
            raise RepositoryException(f"Database error: {e}") from e


class SQLAlchemyIssueStore(_SessionMixin, IIssueStore):
    """
    SQLAlchemy implementation of the issue store.

    Writes are compare-and-swap on the ``version`` column: an update only
    lands if nobody touched the row since the snapshot was read.
    """

    async def list_open_issues(self) -> List[IssueSnapshot]:
        """Get every issue in an open status, oldest first."""
        stmt = (
            select(IssueModel)
            .where(IssueModel.status.in_([s.value for s in OPEN_STATUSES]))
            .order_by(IssueModel.created_at.asc())
        )
        return await self._fetch(stmt)

    async def list_issues(self) -> List[IssueSnapshot]:
        """Get every issue."""
        return await self._fetch(select(IssueModel).order_by(IssueModel.created_at.asc()))

    async def get_by_id(self, issue_id: str) -> Optional[IssueSnapshot]:
        """Get issue by ID."""
        async with self._session() as session:
            model = await session.get(IssueModel, issue_id)
            if model is None:
                return None
            return self._to_snapshot(model)

    async def apply_evaluation(
        self,
        issue_id: str,
        evaluation: SLAEvaluation,
        expected_version: Optional[int] = None,
        audit_entry: Optional[AuditEntry] = None
    ) -> None:
        """
        Persist SLA status, level and (when recommended) priority in one UPDATE.

        The audit row, when given, is inserted in the same transaction, so a
        failed insert rolls the update back too.

        Raises:
            ConcurrentModificationException: If the row changed since it was read
            RepositoryException: If the issue no longer exists
        """
        values = {
            "sla_status": evaluation.status.value,
            "sla_deadline": _as_utc(evaluation.deadline),
            "sla_working_hours": evaluation.working_hours_elapsed,
            "escalation_level": evaluation.recommended_escalation_level,
            "escalated_at": _as_utc(evaluation.escalated_at),
            "updated_at": datetime.now(timezone.utc),
            "version": IssueModel.version + 1,
        }
        if evaluation.recommended_priority is not None:
            values["priority"] = evaluation.recommended_priority.value

        await self._update(issue_id, values, expected_version, audit_entry)

    async def save_outcome(self, issue_id: str, evaluation: SLAEvaluation) -> None:
        """Persist the frozen terminal outcome of a closed issue."""
        values = {
            "sla_outcome": evaluation.to_dict(),
            "sla_status": evaluation.status.value,
            "sla_deadline": _as_utc(evaluation.deadline),
            "sla_working_hours": evaluation.working_hours_elapsed,
            "updated_at": datetime.now(timezone.utc),
            "version": IssueModel.version + 1,
        }
        await self._update(issue_id, values, None)

    async def _update(
        self,
        issue_id: str,
        values: dict,
        expected_version: Optional[int],
        audit_entry: Optional[AuditEntry] = None
    ) -> None:
        stmt = update(IssueModel).where(IssueModel.id == issue_id).values(**values)
        if expected_version is not None:
            stmt = stmt.where(IssueModel.version == expected_version)

        async with self._session() as session:
            result = await session.execute(stmt)
            if result.rowcount:
                if audit_entry is not None:
                    session.add(self._to_audit_model(audit_entry))
                    await session.flush()
                return

            exists = await session.scalar(select(IssueModel.id).where(IssueModel.id == issue_id))

        if exists is None:
            raise RepositoryException(f"Issue {issue_id} not found", {"issue_id": issue_id})
        raise ConcurrentModificationException(issue_id, expected_version)

    async def _fetch(self, stmt) -> List[IssueSnapshot]:
        async with self._session() as session:
            result = await session.execute(stmt)
            models = result.scalars().all()

        snapshots = []
        for model in models:
            try:
                snapshots.append(self._to_snapshot(model))
            except ValueError as e:
                logger.warning(
                    "Skipping issue with unrecognised values",
                    extra={"issue_id": model.id, "error": str(e)}
                )
        return snapshots

    @staticmethod
    def _to_snapshot(model: IssueModel) -> IssueSnapshot:
        """Convert database model to domain snapshot."""
        return IssueSnapshot(
            id=model.id,
            priority=Priority(model.priority),
            status=IssueStatus(model.status),
            created_at=_as_utc(model.created_at),
            closed_at=_as_utc(model.closed_at),
            sla_status=SLAStatus(model.sla_status) if model.sla_status else None,
            escalation_level=model.escalation_level or 0,
            escalated_at=_as_utc(model.escalated_at),
            sla_outcome=SLAEvaluation.from_dict(model.sla_outcome) if model.sla_outcome else None,
            version=model.version,
        )

    @staticmethod
    def _to_audit_model(entry: AuditEntry) -> AuditLogModel:
        """Convert an audit entry to a row of the shared ``audit_logs`` table."""
        return AuditLogModel(
            entity_type=AUDIT_ENTITY_TYPE,
            entity_id=entry.issue_id,
            action=entry.reason,
            changes=entry.to_changes(),
            performed_by=AUDIT_PERFORMED_BY,
            performed_at=_as_utc(entry.at),
        )
