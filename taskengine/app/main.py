"""FastAPI application exposing the task engine over HTTP."""

import logging
from datetime import timedelta
from typing import Optional

from fastapi import FastAPI
from pydantic import BaseModel

from taskengine.analytics import (
    PerformanceCalculator,
    TeamAnalyticsCalculator,
    TimeAnalytics,
    VelocityCalculator,
)
from taskengine.app.config import settings
from taskengine.app.models.analytics import (
    PerformanceMetrics,
    PriorityStatistics,
    ReportingPeriod,
    TeamAnalytics,
    TeamVelocity,
)
from taskengine.app.models.common import CompletionTrend, SessionAction, TaskPriority, TaskStatus
from taskengine.app.models.results import MutationResult
from taskengine.app.models.task import Record, Task, TaskDependency, Team, dependencies_from_tasks
from taskengine.orchestrator.critical_path import CriticalPathAnalyzer, CriticalPathResult
from taskengine.orchestrator.state_machine import TaskStateMachine
from taskengine.orchestrator.work_sessions import WorkSessionAggregator

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


class TransitionRequest(Record):
    task: Task
    from_status: TaskStatus
    to_status: TaskStatus
    actor_id: str
    team_leader_id: str
    proof_url: Optional[str] = None
    rejection_reason: Optional[str] = None
    new_assignee_id: Optional[str] = None
    team_id: Optional[str] = None


class WorkSessionRequest(Record):
    task: Task
    action: SessionAction
    user_id: str
    session_id: Optional[str] = None


class CriticalPathRequest(Record):
    tasks: list[Task]
    dependencies: Optional[list[TaskDependency]] = None  # None: derive from depends_on


class PerformanceRequest(Record):
    user_id: str
    tasks: list[Task]
    period: ReportingPeriod


class EstimateRequest(Record):
    task: Task
    historical_tasks: list[Task]


class EstimateResponse(BaseModel):
    estimated_seconds: float


class TrendRequest(Record):
    tasks: list[Task]


class TrendResponse(BaseModel):
    trend: CompletionTrend
    description: str


class VelocityRequest(Record):
    team_id: str
    tasks: list[Task]
    sprint_days: Optional[int] = None


class TeamRequest(Record):
    team: Team
    tasks: list[Task]


class TeamReport(BaseModel):
    analytics: TeamAnalytics
    priority_statistics: dict[TaskPriority, PriorityStatistics]
    average_completion_time: float
    efficiency: float


app = FastAPI(
    title="Task Engine API",
    description="Task state machine, critical path and velocity analytics",
    version="0.1.0",
)

state_machine = TaskStateMachine()
sessions = WorkSessionAggregator()


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Task Engine API",
        "version": "0.1.0",
        "status": "running"
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.post("/transitions/validate", response_model=MutationResult)
async def validate_transition(request: TransitionRequest) -> MutationResult:
    """Validate a status transition and return the patch to persist."""
    return state_machine.validate_transition(
        request.task,
        request.from_status,
        request.to_status,
        request.actor_id,
        request.team_leader_id,
        proof_url=request.proof_url,
        rejection_reason=request.rejection_reason,
        new_assignee_id=request.new_assignee_id,
        team_id=request.team_id,
    )


@app.post("/work-sessions", response_model=MutationResult)
async def work_session(request: WorkSessionRequest) -> MutationResult:
    """Start or end a work session."""
    return sessions.apply(
        request.task, request.action, request.user_id, session_id=request.session_id
    )


@app.post("/analysis/critical-path", response_model=CriticalPathResult)
async def critical_path(request: CriticalPathRequest) -> CriticalPathResult:
    """Schedule figures and critical path of a snapshot."""
    dependencies = request.dependencies
    if dependencies is None:
        dependencies = dependencies_from_tasks(request.tasks)
    return CriticalPathAnalyzer().analyze(request.tasks, dependencies)


@app.post("/analysis/performance", response_model=PerformanceMetrics)
async def performance(request: PerformanceRequest) -> PerformanceMetrics:
    """Completion metrics for one user."""
    return PerformanceCalculator().calculate(request.user_id, request.tasks, request.period)


@app.post("/analysis/estimate", response_model=EstimateResponse)
async def estimate(request: EstimateRequest) -> EstimateResponse:
    """Predicted duration of a task."""
    seconds = TimeAnalytics(request.historical_tasks).estimate_completion_time(request.task)
    return EstimateResponse(estimated_seconds=seconds)


@app.post("/analysis/trend", response_model=TrendResponse)
async def trend(request: TrendRequest) -> TrendResponse:
    """Direction of recent completion times."""
    result = TimeAnalytics(request.tasks).get_completion_trend()
    return TrendResponse(trend=result, description=result.description)


@app.post("/analysis/velocity", response_model=TeamVelocity)
async def velocity(request: VelocityRequest) -> TeamVelocity:
    """Team velocity over the trailing sprint."""
    sprint = timedelta(days=request.sprint_days) if request.sprint_days else None
    return VelocityCalculator().calculate_current_velocity(
        request.team_id, request.tasks, sprint_duration=sprint
    )


@app.post("/analysis/team", response_model=TeamReport)
async def team_report(request: TeamRequest) -> TeamReport:
    """Team-wide completion summary with per-priority time figures."""
    team_tasks = [t for t in request.tasks if not request.team.id or t.team_id == request.team.id]
    analytics = TimeAnalytics(team_tasks)
    return TeamReport(
        analytics=TeamAnalyticsCalculator().calculate(request.team, request.tasks),
        priority_statistics=analytics.priority_statistics(),
        average_completion_time=analytics.average_completion_time,
        efficiency=analytics.efficiency(),
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
