"""Pydantic schemas for plans, plan slots and broker contracts."""

from __future__ import annotations

import secrets
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def new_step_id() -> str:
    """Generate a step id: epoch milliseconds plus a random suffix."""
    return f"{int(time.time() * 1000)}-{secrets.token_hex(3)}"


class PlanState(str, Enum):
    """States of the current-plan slot."""

    EMPTY = "empty"
    DRAFT = "draft"
    APPROVED = "approved"
    EDITED_JSON = "edited_json"
    SAVED = "saved"


class LaunchStatus(str, Enum):
    """Outcome of handing a plan to an agent."""

    LAUNCHED = "launched"
    FAILED_WITH_FALLBACK = "failed_with_fallback"


# --- Plan Model ---


class PlanStep(BaseModel):
    """A single actionable step. Edits replace the whole step."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_step_id, min_length=1)
    title: str
    detail: str | None = None

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("step title must not be empty")
        return value


class Plan(BaseModel):
    """A task plus its ordered steps."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    task: str
    steps: list[PlanStep]
    created_at: str = Field(default_factory=utc_now_iso, alias="createdAt")

    @field_validator("task")
    @classmethod
    def _task_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("task must not be empty")
        return value

    @field_validator("steps")
    @classmethod
    def _step_ids_unique(cls, steps: list[PlanStep]) -> list[PlanStep]:
        seen: set[str] = set()
        for step in steps:
            if step.id in seen:
                raise ValueError(f"duplicate step id: {step.id}")
            seen.add(step.id)
        return steps

    @property
    def is_executable(self) -> bool:
        """True when there is at least one step to run."""
        return len(self.steps) > 0


class PlanSlot(BaseModel):
    """The single current plan held for a workspace."""

    workspace: str
    state: PlanState = PlanState.EMPTY
    plan: Plan | None = None
    updated_at: str | None = None


class LaunchResult(BaseModel):
    """Result of executing a plan with an agent provider."""

    status: LaunchStatus
    agent: str
    executable: str
    args: list[str] = Field(default_factory=list)
    plan_file: str
    message: str
    error: str | None = None
    artifact_opened: bool | None = None

    @property
    def launched(self) -> bool:
        """True when the agent process was started."""
        return self.status == LaunchStatus.LAUNCHED


# --- Request Schemas ---


class WorkspaceRequest(BaseModel):
    """Request addressing a workspace's plan slot."""

    workspace: str = Field(..., min_length=1, description="Workspace root path")


class CreatePlanRequest(WorkspaceRequest):
    """Request to generate a new plan for a workspace."""

    task: str = Field(..., min_length=1, description="Free-text task description")


class SavePlanRequest(WorkspaceRequest):
    """Request to replace the current plan with a human-edited document."""

    plan: dict[str, Any] = Field(..., description="Edited plan JSON document")


# --- Response Schemas ---


class ErrorResponse(BaseModel):
    """Error response for failed requests."""

    detail: str
    error_code: str | None = None


class HealthResponse(BaseModel):
    """Health check response."""

    broker: Literal["healthy", "unhealthy"] = "healthy"
    version: str
    state_db: str
