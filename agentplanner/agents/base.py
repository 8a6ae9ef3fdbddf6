"""Agent provider interface."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from agentplanner.schemas import LaunchResult, Plan


class AgentProvider(Protocol):
    """Hands an approved Plan to an external coding agent."""

    name: str

    async def execute_plan(self, plan: Plan, workspace_root: Path | str) -> LaunchResult:
        ...
