"""
SLA Controllers (API Routes)
=============================

FastAPI routes for the SLA engine.

Controllers are thin - they delegate to application services. Application
exceptions propagate to the handler registered in ``main``, which maps them
onto 404/409/422/503.

Services are built once at startup and kept on ``app.state``; the dependency
functions below only look them up, so tests can override them.
"""

from fastapi import APIRouter, Depends, Request

from grievance_sla.config import Priority
from grievance_sla.shared.infrastructure.logging import get_context_logger, get_logger
from grievance_sla.sla.application import (
    Clock,
    EscalationService,
    ISLAConfigProvider,
    SLAClosureService,
    SLAReportService,
    WorkingHoursRequest,
    WorkingHoursResponse,
    ClassifyRequest,
    SLAEvaluationResponse,
    CycleReportResponse,
    SLASummaryResponse,
    CalendarResponse,
)
from grievance_sla.sla.domain import SLAClassifier, WorkingTimeCalculator

logger = get_logger(__name__)
router = APIRouter(prefix="/sla", tags=["SLA Engine"])


# ========== Example payloads for Swagger ==========

EVALUATION_RESPONSE_EXAMPLE = {
    "issue_id": "1042",
    "working_hours_elapsed": 5.0,
    "deadline": "2024-06-03T13:00:00+05:30",
    "status": "breached",
    "recommended_priority": "medium",
    "recommended_escalation_level": 2,
    "escalated_at": "2024-06-03T14:00:00+05:30",
    "is_final": False
}

CYCLE_REPORT_EXAMPLE = {
    "started_at": "2024-06-03T08:30:00+00:00",
    "issues_evaluated": 120,
    "mutations": 4,
    "applied": 4,
    "failed": 0,
    "cancelled": False,
    "aborted": False,
    "skipped": False,
    "duration_ms": 85,
    "errors": []
}


# ========== Dependencies ==========

def get_clock(request: Request) -> Clock:
    """Get the injected wall clock."""
    return request.app.state.clock


def get_config_provider(request: Request) -> ISLAConfigProvider:
    """Get the loaded calendar/policy configuration."""
    return request.app.state.sla_config


def get_escalation_service(request: Request) -> EscalationService:
    """Get the escalation service instance."""
    return request.app.state.escalation_service


def get_report_service(request: Request) -> SLAReportService:
    """Get the SLA report service instance."""
    return request.app.state.report_service


def get_closure_service(request: Request) -> SLAClosureService:
    """Get the SLA closure service instance."""
    return request.app.state.closure_service


# ========== Route Handlers ==========

@router.get(
    "/calendar",
    response_model=CalendarResponse,
    summary="Get the working calendar and SLA budgets",
)
async def get_calendar(config: ISLAConfigProvider = Depends(get_config_provider)):
    calendar = config.calendar
    policy = config.policy
    return CalendarResponse(
        timezone=str(calendar.timezone),
        day_start_hour=calendar.day_start_hour,
        day_end_hour=calendar.day_end_hour,
        working_weekdays=sorted(calendar.working_weekdays),
        holidays=sorted(calendar.holidays),
        budgets={p.value: hours for p, hours in policy.budgets.items()},
        critical_soft_cap_hours=policy.critical_soft_cap_hours,
        at_risk_ratio=policy.at_risk_ratio,
    )


@router.post(
    "/working-hours",
    response_model=WorkingHoursResponse,
    summary="Working hours between two instants",
    description="""
    Count the working hours between `start` and `end` (default: now) on the
    configured calendar. When `priority` is given, the SLA deadline of an
    issue created at `start` is returned as well (null for tiers without a
    hard budget).

    Naive timestamps are taken as calendar-local time.
    """,
)
async def working_hours(
    request: WorkingHoursRequest,
    config: ISLAConfigProvider = Depends(get_config_provider),
    clock: Clock = Depends(get_clock)
):
    end = request.end or clock()
    elapsed = WorkingTimeCalculator.elapsed_working_hours(config.calendar, request.start, end)

    deadline = None
    if request.priority is not None:
        budget = config.policy.budget_for(Priority(request.priority))
        if not budget.soft:
            deadline = WorkingTimeCalculator.add_working_hours(
                config.calendar, request.start, budget.hours
            )

    return WorkingHoursResponse(
        start=request.start,
        end=end,
        working_hours=elapsed,
        deadline=deadline,
    )


@router.post(
    "/classify",
    response_model=SLAEvaluationResponse,
    summary="Classify one issue",
    description="""
    Run the SLA classifier on an issue snapshot without persisting anything.

    Returns the SLA status (`pending`, `at_risk`, `breached` for open issues,
    `on_time` / `breached` for closed ones), the deadline, and the escalation
    the next cycle would apply.
    """,
    responses={
        200: {
            "description": "SLA evaluation",
            "content": {"application/json": {"example": EVALUATION_RESPONSE_EXAMPLE}}
        }
    }
)
async def classify_issue(
    request: ClassifyRequest,
    config: ISLAConfigProvider = Depends(get_config_provider),
    clock: Clock = Depends(get_clock)
):
    evaluation = SLAClassifier.classify(
        config.calendar,
        config.policy,
        request.issue.to_domain(config.calendar),
        config.calendar.localize(request.now or clock())
    )
    return SLAEvaluationResponse.from_domain(evaluation)


@router.post(
    "/escalation/run",
    response_model=CycleReportResponse,
    summary="Force an escalation cycle",
    description="""
    Recompute SLA status for every open issue now and persist the changes.

    Same code path as the periodic job. If a cycle is already running, the
    request returns immediately with `skipped: true`.
    """,
    responses={
        200: {
            "description": "Cycle report",
            "content": {"application/json": {"example": CYCLE_REPORT_EXAMPLE}}
        }
    }
)
async def run_escalation(
    http_request: Request,
    service: EscalationService = Depends(get_escalation_service),
    clock: Clock = Depends(get_clock)
):
    request_logger = get_context_logger(
        __name__, getattr(http_request.state, "correlation_id", None)
    )
    request_logger.info("Manual escalation cycle requested")

    report = await service.run_once(clock())
    return CycleReportResponse(**report.to_dict())


@router.get(
    "/summary",
    response_model=SLASummaryResponse,
    summary="SLA summary across all issues",
    description="""
    Counts per SLA status, breach rate (percent) and mean working hours to
    closure. Cached; the cache is dropped whenever an escalation cycle
    changes stored state.
    """,
)
async def get_summary(
    service: SLAReportService = Depends(get_report_service),
    clock: Clock = Depends(get_clock)
):
    summary = await service.summary(clock())
    return SLASummaryResponse(**summary)


@router.post(
    "/issues/{issue_id}/freeze",
    response_model=SLAEvaluationResponse,
    summary="Freeze the SLA outcome of a closed issue",
    description="""
    Compute and store the terminal `on_time` / `breached` outcome of a
    closed issue. Called by the issue workflow at closure. Idempotent: once
    frozen, the stored outcome is returned unchanged.
    """,
    responses={
        404: {"description": "Issue not found"},
        422: {"description": "Issue is not closed"},
        503: {"description": "Issue store unavailable"}
    }
)
async def freeze_outcome(
    issue_id: str,
    service: SLAClosureService = Depends(get_closure_service)
):
    outcome = await service.freeze(issue_id)
    return SLAEvaluationResponse.from_domain(outcome)


# Export router for inclusion in main app
sla_router = router
