"""
SLA Application Services
=========================

Application services orchestrate business logic and coordinate between
domain entities and repositories.

Following SOLID principles:
- Single Responsibility: Each service has one clear purpose
- Dependency Inversion: Depend on abstractions (repositories), not concrete implementations

The EscalationScheduler only computes: it reads open issues and returns the
mutations they need. EscalationService is the effectful side that persists
those mutations, each together with its audit entry.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, List, Optional

from grievance_sla.config import Priority, SLAStatus
from grievance_sla.core import (
    RepositoryException,
    ResourceNotFoundException,
    StorageUnavailableException,
    ValidationException,
)
from grievance_sla.shared.infrastructure.logging import get_logger, log_latency
from grievance_sla.sla.application.cache import TTLCache
from grievance_sla.sla.domain import (
    AuditEntry,
    CycleReport,
    IssueSnapshot,
    SLAClassifier,
    SLAEvaluation,
    SLAMutation,
    SLAPolicy,
    WorkingCalendar,
)

logger = get_logger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default wall clock; always injected, never read inside the domain."""
    return datetime.now(timezone.utc)


# ========== Repository Interfaces (Dependency Inversion) ==========

class IIssueStore(ABC):
    """Interface for the grievance store owned by the CRUD layer."""

    @abstractmethod
    async def list_open_issues(self) -> List[IssueSnapshot]:
        """Get every issue whose status still counts against its SLA."""

    @abstractmethod
    async def list_issues(self) -> List[IssueSnapshot]:
        """Get every issue, open or closed."""

    @abstractmethod
    async def get_by_id(self, issue_id: str) -> Optional[IssueSnapshot]:
        """Get a single issue snapshot."""

    @abstractmethod
    async def apply_evaluation(
        self,
        issue_id: str,
        evaluation: SLAEvaluation,
        expected_version: Optional[int] = None,
        audit_entry: Optional[AuditEntry] = None
    ) -> None:
        """
        Persist an evaluation as one atomic row update.

        When ``audit_entry`` is given it is written in the same transaction:
        either both land or neither does.

        Raises:
            ConcurrentModificationException: If ``expected_version`` no longer matches
        """

    @abstractmethod
    async def save_outcome(self, issue_id: str, evaluation: SLAEvaluation) -> None:
        """Persist the frozen terminal outcome of a closed issue."""


class ISLAConfigProvider(ABC):
    """Interface for the calendar/policy configuration loaded at startup."""

    @property
    @abstractmethod
    def calendar(self) -> WorkingCalendar:
        """Get the working calendar."""

    @property
    @abstractmethod
    def policy(self) -> SLAPolicy:
        """Get the SLA policy."""


class ICycleMetricsExporter(ABC):
    """Interface for pushing per-cycle metrics."""

    @abstractmethod
    async def export_cycle_metrics(self, report: CycleReport) -> bool:
        """Export the metrics of a finished cycle."""


# ========== Application Services ==========

class EscalationScheduler:
    """
    Reclassifies every open issue and returns the ones that changed.

    Does not write anything. Re-running it for the same ``now`` over the
    same stored state always yields the same mutations.
    """

    def __init__(
        self,
        issue_store: IIssueStore,
        config_provider: ISLAConfigProvider,
        list_timeout_seconds: Optional[float] = None
    ):
        self._issue_store = issue_store
        self._config_provider = config_provider
        self._list_timeout = list_timeout_seconds

    async def run_cycle(
        self,
        now: datetime,
        cancel_event: Optional[asyncio.Event] = None,
        report: Optional[CycleReport] = None
    ) -> List[SLAMutation]:
        """
        Evaluate all open issues at ``now``.

        Args:
            now: Injected evaluation instant
            cancel_event: When set, enumeration stops; mutations already
                computed are still returned
            report: Optional report whose evaluated-issue count is updated

        Returns:
            Mutations for issues whose status, priority or level changed

        Raises:
            StorageUnavailableException: If open issues cannot be listed
        """
        issues = await self._list_open_issues()

        calendar = self._config_provider.calendar
        policy = self._config_provider.policy
        mutations = []

        for issue in issues:
            if cancel_event is not None and cancel_event.is_set():
                logger.info(
                    "Escalation cycle cancelled",
                    extra={"mutations_so_far": len(mutations)}
                )
                break

            evaluation = SLAClassifier.classify(calendar, policy, issue, now)
            if report is not None:
                report.issues_evaluated += 1
            if SLAClassifier.differs_from_stored(issue, evaluation):
                mutations.append(SLAMutation(
                    issue_id=issue.id,
                    evaluation=evaluation,
                    previous=issue
                ))

            # Let timers and request handlers run between issues
            await asyncio.sleep(0)

        return mutations

    async def _list_open_issues(self) -> List[IssueSnapshot]:
        try:
            if self._list_timeout is not None:
                return await asyncio.wait_for(
                    self._issue_store.list_open_issues(), timeout=self._list_timeout
                )
            return await self._issue_store.list_open_issues()
        except StorageUnavailableException:
            raise
        except (RepositoryException, OSError, asyncio.TimeoutError) as e:
            raise StorageUnavailableException(str(e) or type(e).__name__) from e


class EscalationService:
    """
    Runs escalation cycles and persists their mutations.

    This is what the periodic job and the manual "force recompute" action
    call. Overlapping cycles are skipped, not queued.
    """

    def __init__(
        self,
        scheduler: EscalationScheduler,
        issue_store: IIssueStore,
        cycle_timeout_seconds: float = 120.0,
        summary_cache: Optional[TTLCache] = None,
        metrics_exporter: Optional[ICycleMetricsExporter] = None
    ):
        self._scheduler = scheduler
        self._issue_store = issue_store
        self._cycle_timeout = cycle_timeout_seconds
        self._summary_cache = summary_cache
        self._metrics_exporter = metrics_exporter
        self._cycle_in_progress = False

    @property
    def cycle_in_progress(self) -> bool:
        return self._cycle_in_progress

    async def run_once(
        self,
        now: datetime,
        cancel_event: Optional[asyncio.Event] = None
    ) -> CycleReport:
        """
        Run one cycle at ``now`` and apply its mutations.

        A failed write is logged and left for the next cycle to recompute;
        nothing is retried here.

        The timeout covers the whole cycle. If it fires while issues are
        still being enumerated, the mutations computed so far are applied.
        If it fires while applying, the remaining writes are dropped and
        recomputed by the next cycle.

        Returns:
            CycleReport describing what happened
        """
        report = CycleReport(started_at=now)

        if self._cycle_in_progress:
            logger.info("Escalation cycle already in progress, skipping")
            report.skipped = True
            return report

        self._cycle_in_progress = True
        start = time.perf_counter()
        cancel_event = cancel_event or asyncio.Event()
        timer = asyncio.get_running_loop().call_later(self._cycle_timeout, cancel_event.set)

        try:
            try:
                mutations = await self._scheduler.run_cycle(now, cancel_event, report)
            except StorageUnavailableException as e:
                logger.warning(
                    "Escalation cycle aborted, issue store unavailable",
                    extra={"error": e.message}
                )
                report.aborted = True
                report.errors.append(e.message)
                return report

            report.cancelled = cancel_event.is_set()
            report.mutations = len(mutations)

            for mutation in mutations:
                if not report.cancelled and cancel_event.is_set():
                    logger.info(
                        "Escalation cycle cancelled while applying",
                        extra={"applied_so_far": report.applied}
                    )
                    report.cancelled = True
                    break
                if await self._apply(mutation, now, report):
                    report.applied += 1
                else:
                    report.failed += 1

            if report.applied and self._summary_cache is not None:
                self._summary_cache.invalidate()

            return report

        finally:
            timer.cancel()
            self._cycle_in_progress = False
            report.duration_ms = int((time.perf_counter() - start) * 1000)
            logger.info(
                "Escalation cycle finished",
                extra=report.to_dict()
            )
            if self._metrics_exporter is not None and not report.skipped:
                await self._metrics_exporter.export_cycle_metrics(report)

    async def _apply(self, mutation: SLAMutation, now: datetime, report: CycleReport) -> bool:
        """Persist one mutation and its audit entry in a single transaction."""
        entry = mutation.to_audit_entry(now)
        try:
            await self._issue_store.apply_evaluation(
                mutation.issue_id,
                mutation.evaluation,
                expected_version=mutation.previous.version,
                audit_entry=entry
            )
        except (RepositoryException, OSError) as e:
            logger.warning(
                "Failed to persist SLA evaluation",
                extra={"issue_id": mutation.issue_id, "error": str(e)}
            )
            report.errors.append(f"{mutation.issue_id}: {e}")
            return False

        if mutation.evaluation.recommended_priority is not None:
            logger.info(
                "Issue priority escalated",
                extra={
                    "issue_id": mutation.issue_id,
                    "from_priority": entry.previous_priority.value,
                    "to_priority": entry.new_priority.value,
                    "escalation_level": entry.new_escalation_level
                }
            )
        return True


class SLAClosureService:
    """Freezes the SLA outcome of an issue at closure."""

    def __init__(self, issue_store: IIssueStore, config_provider: ISLAConfigProvider):
        self._issue_store = issue_store
        self._config_provider = config_provider

    async def freeze(self, issue_id: str) -> SLAEvaluation:
        """
        Compute and persist the terminal outcome of a closed issue.

        Idempotent: an already frozen outcome is returned untouched.

        Raises:
            ResourceNotFoundException: If the issue does not exist
            ValidationException: If the issue is not closed
        """
        issue = await self._issue_store.get_by_id(issue_id)
        if issue is None:
            raise ResourceNotFoundException("Issue", issue_id)
        if not issue.is_closed:
            raise ValidationException(
                f"Issue {issue_id} is not closed",
                {"issue_id": issue_id, "status": issue.status.value}
            )
        return await self.freeze_snapshot(issue)

    async def freeze_snapshot(self, issue: IssueSnapshot) -> SLAEvaluation:
        """Freeze a closed snapshot already in hand, unless it is frozen."""
        if issue.sla_outcome is not None:
            return issue.sla_outcome

        outcome = SLAClassifier.freeze_outcome(
            self._config_provider.calendar, self._config_provider.policy, issue
        )
        await self._issue_store.save_outcome(issue.id, outcome)
        logger.info(
            "SLA outcome frozen",
            extra={"issue_id": issue.id, "status": outcome.status.value}
        )
        return outcome


class SLAReportService:
    """
    SLA summary across all issues.

    Closed issues contribute their frozen outcome; a closed issue seen
    without one is frozen on the spot, so a later calendar change cannot
    move it. Open issues are classified live. Results are cached until the
    TTL runs out or a cycle applies mutations.
    """

    CACHE_KEY = "sla_summary"

    def __init__(
        self,
        issue_store: IIssueStore,
        config_provider: ISLAConfigProvider,
        cache: TTLCache
    ):
        self._issue_store = issue_store
        self._config_provider = config_provider
        self._cache = cache
        self._closure = SLAClosureService(issue_store, config_provider)

    async def summary(self, now: datetime) -> dict:
        """
        Counts per SLA status, breach rate and mean resolution time.

        Returns:
            Dict with ``total``, one count per status, ``breach_rate``
            (percent), ``average_resolution_hours`` and the same figures
            per priority under ``by_priority``
        """
        cached = self._cache.get(self.CACHE_KEY)
        if cached is not None:
            return cached

        calendar = self._config_provider.calendar
        policy = self._config_provider.policy
        overall = _SummaryTally()
        by_priority = {priority: _SummaryTally() for priority in Priority}

        with log_latency(logger, "sla_summary"):
            issues = await self._issue_store.list_issues()
            for issue in issues:
                if issue.is_closed:
                    evaluation = await self._closure.freeze_snapshot(issue)
                else:
                    evaluation = SLAClassifier.classify(calendar, policy, issue, now)
                overall.add(evaluation)
                by_priority[issue.priority].add(evaluation)

        result = {
            **overall.to_dict(),
            "by_priority": {
                priority.value: tally.to_dict() for priority, tally in by_priority.items()
            },
            "generated_at": now.isoformat(),
        }
        self._cache.set(self.CACHE_KEY, result)
        return result


class _SummaryTally:
    """Status counts and resolution times for one slice of issues."""

    def __init__(self):
        self.counts = {status.value: 0 for status in SLAStatus}
        self.resolution_hours: List[float] = []

    def add(self, evaluation: SLAEvaluation) -> None:
        self.counts[evaluation.status.value] += 1
        if evaluation.is_final:
            self.resolution_hours.append(evaluation.working_hours_elapsed)

    def to_dict(self) -> dict:
        total = sum(self.counts.values())
        breached = self.counts[SLAStatus.BREACHED.value]
        return {
            "total": total,
            **self.counts,
            "breach_rate": round(breached / total * 100, 2) if total else 0.0,
            "average_resolution_hours": (
                round(sum(self.resolution_hours) / len(self.resolution_hours), 2)
                if self.resolution_hours else None
            ),
        }
