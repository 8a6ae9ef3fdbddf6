"""Planner provider interface."""

from __future__ import annotations

from typing import Protocol

from agentplanner.schemas import Plan


class CredentialSource(Protocol):
    def get(self, key: str) -> str | None:
        ...


class PlannerProvider(Protocol):
    """Turns a task description into a Plan."""

    name: str

    async def generate_plan(
        self,
        task: str,
        workspace_hint: str | None,
        credentials: CredentialSource,
    ) -> Plan:
        ...
