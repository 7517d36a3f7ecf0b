"""
SLA External Service Integrations
==================================

External services for the SLA engine:
- YAML working calendar / SLA policy loader
- APScheduler for the periodic escalation cycle
- Grafana export of per-cycle metrics
"""

from pathlib import Path
from typing import Optional

import yaml
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from pydantic import ValidationError

from grievance_sla.core import ConfigurationException, InvalidCalendarConfigException
from grievance_sla.shared.infrastructure.grafana import Gauge, GrafanaOTLPExporter
from grievance_sla.shared.infrastructure.logging import get_logger
from grievance_sla.sla.application import (
    Clock, EscalationService, ICycleMetricsExporter, ISLAConfigProvider, utc_now
)
from grievance_sla.sla.domain import CycleReport, SLAEngineConfig, SLAPolicy, WorkingCalendar

logger = get_logger(__name__)


class SLAConfigManager(ISLAConfigProvider):
    """
    Loads the working calendar and SLA policy from YAML once at startup.

    The configuration is immutable for the life of the process: changing the
    calendar or budgets requires a restart, so every evaluation in a run sees
    the same rules.
    """

    def __init__(self):
        self._config: Optional[SLAEngineConfig] = None
        self._calendar: Optional[WorkingCalendar] = None
        self._path: Optional[Path] = None

    def load(self, path: Path) -> SLAEngineConfig:
        """
        Initial configuration load.

        A missing file means the built-in defaults.

        Raises:
            InvalidCalendarConfigException: If the calendar section is invalid
            ConfigurationException: If the file cannot be parsed
        """
        self._path = path
        config = self._load_from_file(path)
        # Build the calendar eagerly so a bad calendar fails startup
        self._calendar = config.calendar.to_calendar()
        self._config = config

        logger.info(
            "SLA configuration loaded",
            extra={
                "path": str(path),
                "timezone": config.calendar.timezone,
                "working_weekdays": sorted(self._calendar.working_weekdays),
                "holidays": len(self._calendar.holidays),
            }
        )
        return config

    def load_from_dict(self, data: dict) -> SLAEngineConfig:
        """Load configuration from an already parsed mapping."""
        config = self._parse(data, source="<dict>")
        self._calendar = config.calendar.to_calendar()
        self._config = config
        return config

    def _load_from_file(self, path: Path) -> SLAEngineConfig:
        """Load and parse YAML config file."""
        if not path.exists():
            logger.warning(f"SLA config file not found: {path}, using defaults")
            return SLAEngineConfig()

        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationException(
                f"Invalid YAML in SLA config: {path}", {"error": str(e)}
            ) from e

        return self._parse(data, source=str(path))

    @staticmethod
    def _parse(data: dict, source: str) -> SLAEngineConfig:
        try:
            return SLAEngineConfig(**data)
        except ValidationError as e:
            errors = e.errors()
            exc_class = ConfigurationException
            if any(err["loc"] and err["loc"][0] == "calendar" for err in errors):
                exc_class = InvalidCalendarConfigException
            raise exc_class(
                f"Invalid SLA configuration in {source}",
                {"errors": [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in errors]}
            ) from e

    @property
    def config(self) -> SLAEngineConfig:
        """Get current configuration."""
        if self._config is None:
            raise RuntimeError("SLA configuration not loaded")
        return self._config

    @property
    def calendar(self) -> WorkingCalendar:
        if self._calendar is None:
            raise RuntimeError("SLA configuration not loaded")
        return self._calendar

    @property
    def policy(self) -> SLAPolicy:
        return self.config.policy

    @property
    def is_loaded(self) -> bool:
        return self._config is not None


class SLAScheduler:
    """
    Wrapper for APScheduler running the escalation cycle.

    Manages the lifecycle of the scheduler and its single job. The service
    itself skips overlapping cycles; ``max_instances=1`` keeps APScheduler
    from even trying.
    """

    JOB_ID = "sla_escalation"

    def __init__(
        self,
        service: EscalationService,
        interval_seconds: int = 180,
        clock: Clock = utc_now
    ):
        self.interval_seconds = interval_seconds
        self._service = service
        self._clock = clock
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    async def run_job(self) -> None:
        """One scheduled tick."""
        await self._service.run_once(self._clock())

    async def start(self) -> None:
        """Start the scheduler."""
        if self._running:
            logger.warning("SLA scheduler already running")
            return

        self._scheduler = AsyncIOScheduler()

        self._scheduler.add_job(
            self.run_job,
            "interval",
            seconds=self.interval_seconds,
            id=self.JOB_ID,
            name="SLA Escalation Cycle",
            misfire_grace_time=60,
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )

        self._scheduler.start()
        self._running = True

        logger.info(
            "SLA scheduler started",
            extra={"interval_seconds": self.interval_seconds}
        )

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)

        self._running = False
        logger.info("SLA scheduler stopped")

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._running


class GrafanaCycleMetricsExporter(ICycleMetricsExporter):
    """Publishes each escalation cycle's report as Grafana gauges."""

    def __init__(self, exporter: GrafanaOTLPExporter):
        self._exporter = exporter

    @staticmethod
    def to_gauges(report: CycleReport) -> list:
        return [
            Gauge("sla_cycle_issues_evaluated", report.issues_evaluated,
                  description="Open issues classified in the cycle"),
            Gauge("sla_cycle_mutations", report.mutations,
                  description="Issues whose SLA state changed"),
            Gauge("sla_cycle_applied", report.applied,
                  description="Mutations persisted"),
            Gauge("sla_cycle_failed", report.failed,
                  description="Mutations that failed to persist"),
            Gauge("sla_cycle_duration_ms", report.duration_ms, unit="ms",
                  description="Wall time of the cycle"),
        ]

    async def export_cycle_metrics(self, report: CycleReport) -> bool:
        return await self._exporter.export_gauges(
            self.to_gauges(report),
            attributes={
                "cancelled": str(report.cancelled).lower(),
                "aborted": str(report.aborted).lower(),
            }
        )
