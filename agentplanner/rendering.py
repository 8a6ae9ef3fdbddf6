"""Markdown and JSON renderings of a Plan."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from agentplanner.errors import InvalidPlanShapeError
from agentplanner.schemas import Plan


def plan_to_markdown(plan: Plan) -> str:
    """Render a plan as a markdown checklist.

    The output depends only on the plan, so the same plan always renders to
    the same bytes. It is used for the preview and for the agent artifact.
    """
    lines = [
        f"# Plan for: {plan.task}",
        "",
        f"Created: {plan.created_at}",
        "",
        "## Steps",
    ]
    for i, step in enumerate(plan.steps, 1):
        lines.append(f"- [ ] {i}. {step.title}")
        if step.detail:
            lines.append(f"  - {step.detail}")
    return "\n".join(lines)


def plan_to_dict(plan: Plan) -> dict[str, Any]:
    """Plan as a JSON-ready dict using the wire key names."""
    return plan.model_dump(by_alias=True, exclude_none=True)


def plan_to_json(plan: Plan) -> str:
    """Serialize a plan to indented JSON."""
    return json.dumps(plan_to_dict(plan), indent=2, ensure_ascii=False)


def plan_from_json(source: str | Mapping[str, Any]) -> Plan:
    """Parse a plan document, raising InvalidPlanShapeError if it is not one.

    Args:
        source: JSON text or an already decoded mapping

    Returns:
        The validated Plan. A plan with zero steps is accepted here; the
        driver refuses to execute it.
    """
    if isinstance(source, str):
        try:
            data = json.loads(source)
        except json.JSONDecodeError as e:
            raise InvalidPlanShapeError(f"Plan is not valid JSON: {e}") from e
    else:
        data = source

    if not isinstance(data, Mapping):
        raise InvalidPlanShapeError("Invalid plan JSON. Expected { task: string, steps: [] }.")

    task = data.get("task")
    if not isinstance(task, str) or not task.strip():
        raise InvalidPlanShapeError("Invalid plan JSON. 'task' must be a non-empty string.")
    if not isinstance(data.get("steps"), list):
        raise InvalidPlanShapeError("Invalid plan JSON. 'steps' must be an array.")

    try:
        return Plan.model_validate(dict(data))
    except ValidationError as e:
        raise InvalidPlanShapeError(f"Invalid plan JSON: {e}") from e
