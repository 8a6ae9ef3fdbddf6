"""Prompt construction for the LLM planner."""

from __future__ import annotations

MIN_STEPS = 5
MAX_STEPS = 12

PLAN_SHAPE = """{
"task": string,
"createdAt": string,
"steps": Array<{ "id": string, "title": string, "detail"?: string }>
}"""


def build_system_prompt(workspace_hint: str | None = None) -> str:
    """Build the system instruction describing the expected JSON plan."""
    lines = [
        "You are a senior software engineer planning coding tasks.",
        f"Create a concise, safe, actionable plan with {MIN_STEPS}-{MAX_STEPS} steps.",
        "Return ONLY a compact JSON object, no markdown fences, matching this TypeScript type:",
        PLAN_SHAPE,
    ]
    if workspace_hint:
        lines.append(f"Workspace path: {workspace_hint}")
    return "\n".join(lines)


def build_user_prompt(task: str) -> str:
    """Build the user instruction carrying the literal task text."""
    return f"Task: {task}\nGenerate the JSON plan now."


def build_messages(task: str, workspace_hint: str | None = None) -> list[dict[str, str]]:
    """Chat messages for a plan request.

    Args:
        task: The task text, passed through verbatim
        workspace_hint: Workspace path given to the model as context, if known

    Returns:
        System and user messages in chat-completion format
    """
    return [
        {"role": "system", "content": build_system_prompt(workspace_hint)},
        {"role": "user", "content": build_user_prompt(task)},
    ]
