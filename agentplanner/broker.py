"""HTTP broker exposing the plan lifecycle of a workspace."""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse

from agentplanner import __version__
from agentplanner.driver import PlanDriver
from agentplanner.errors import (
    AgentPlannerError,
    InvalidPlanShapeError,
    MissingCredentialError,
    NetworkTimeoutError,
    NoPlanAvailableError,
    PlannerError,
)
from agentplanner.schemas import (
    CreatePlanRequest,
    ErrorResponse,
    HealthResponse,
    LaunchResult,
    PlanSlot,
    SavePlanRequest,
    WorkspaceRequest,
)

logger = logging.getLogger(__name__)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

app = FastAPI(
    title="Agent Planner Broker",
    description="HTTP broker for generating, reviewing and dispatching task plans",
    version=__version__,
)

# Most specific first
ERROR_STATUS: list[tuple[type[AgentPlannerError], int]] = [
    (NoPlanAvailableError, 404),
    (InvalidPlanShapeError, 400),
    (MissingCredentialError, 400),
    (NetworkTimeoutError, 504),
    (PlannerError, 502),
]

_driver: PlanDriver | None = None


def get_driver() -> PlanDriver:
    """Get or create the broker's driver."""
    global _driver
    if _driver is None:
        _driver = PlanDriver()
    return _driver


def _status_for(exc: AgentPlannerError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status
    return 500


# --- HTTP Endpoints ---


@app.post("/plans", response_model=PlanSlot)
async def create_plan(request: CreatePlanRequest) -> PlanSlot:
    """Generate a plan for a task and store it as the workspace draft."""
    logger.info(f"Received plan request for {request.workspace}")
    try:
        return await get_driver().create_plan(request.workspace, request.task)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


@app.get("/plans", response_model=PlanSlot)
async def current_plan(workspace: str) -> PlanSlot:
    """Return the current plan slot for a workspace."""
    return get_driver().current(workspace)


@app.post("/plans/approve", response_model=PlanSlot)
async def approve_plan(request: WorkspaceRequest) -> PlanSlot:
    """Mark the current plan as approved."""
    return get_driver().approve(request.workspace)


@app.put("/plans", response_model=PlanSlot)
async def save_plan(request: SavePlanRequest) -> PlanSlot:
    """Replace the current plan with an edited document."""
    return get_driver().save_edited(request.workspace, request.plan)


@app.post("/plans/run", response_model=LaunchResult)
async def run_plan(request: WorkspaceRequest) -> LaunchResult:
    """Send the current plan to the configured agent."""
    result = await get_driver().execute(request.workspace)
    logger.info(f"Run finished for {request.workspace}: status={result.status.value}")
    return result


@app.delete("/plans", response_model=PlanSlot)
async def clear_plan(workspace: str) -> PlanSlot:
    """Empty the current plan slot."""
    driver = get_driver()
    driver.clear(workspace)
    return driver.current(workspace)


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Check broker health."""
    return HealthResponse(
        broker="healthy",
        version=__version__,
        state_db=str(get_driver().store.db_path),
    )


@app.exception_handler(AgentPlannerError)
async def agent_planner_exception_handler(request, exc: AgentPlannerError) -> JSONResponse:
    """Map typed errors to HTTP statuses."""
    status = _status_for(exc)
    logger.warning(f"Request failed with {exc.error_code}: {exc}")
    return JSONResponse(
        status_code=status,
        content=ErrorResponse(detail=str(exc), error_code=exc.error_code).model_dump(),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            detail=str(exc),
            error_code="INTERNAL_ERROR",
        ).model_dump(),
    )
