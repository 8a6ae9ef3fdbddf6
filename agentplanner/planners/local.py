"""Local heuristic planner: a fixed engineering checklist, no I/O."""

from __future__ import annotations

from agentplanner.planners.base import CredentialSource
from agentplanner.schemas import Plan, PlanStep, new_step_id

# (title, detail) in execution order
DEFAULT_STEPS: tuple[tuple[str, str], ...] = (
    ("Understand requirements and constraints", "Clarify scope, inputs/outputs, and edge cases."),
    ("Locate affected code and entry points", "Search project for relevant modules, routes, or components."),
    ("Design the change", "Define data structures, APIs, and update strategy with minimal risk."),
    ("Implement changes", "Write code with clear naming and small, testable units."),
    ("Add/Update tests", "Cover happy paths and critical edge cases."),
    ("Run and fix issues", "Build/lint/test; iterate until all pass."),
    ("Refactor and document", "Improve readability and add necessary docs."),
    ("Prepare for merge", "Update changelog, ensure CI passes, and request review."),
)


def generate_plan_from_task(task: str) -> Plan:
    """Build the default checklist plan for a non-empty task."""
    seen: set[str] = set()
    steps = []
    for title, detail in DEFAULT_STEPS:
        step_id = new_step_id()
        while step_id in seen:
            step_id = new_step_id()
        seen.add(step_id)
        steps.append(PlanStep(id=step_id, title=title, detail=detail))

    return Plan(task=task.strip(), steps=steps)


class LocalPlanner:
    """Default planner. Never fails and never touches the network."""

    name = "Local"

    async def generate_plan(
        self,
        task: str,
        workspace_hint: str | None = None,
        credentials: CredentialSource | None = None,
    ) -> Plan:
        return generate_plan_from_task(task)
