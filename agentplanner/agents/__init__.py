"""Agent providers, selectable by the 'agent' setting."""

from __future__ import annotations

import logging
from typing import Callable

from agentplanner.agents.base import AgentProvider
from agentplanner.agents.external_cli import ExternalCliAgent
from agentplanner.settings import DEFAULT_AGENT, PlannerSettings

logger = logging.getLogger(__name__)

AGENTS: dict[str, Callable[[PlannerSettings], AgentProvider]] = {
    "cursor": lambda settings: ExternalCliAgent(settings, name="Cursor", default_executable="cursor"),
}


def get_agent(settings: PlannerSettings) -> AgentProvider:
    """Agent for the configured id; unknown ids get the Cursor agent."""
    factory = AGENTS.get(settings.agent)
    if factory is None:
        logger.warning(f"Unknown agent '{settings.agent}', using '{DEFAULT_AGENT}'")
        factory = AGENTS[DEFAULT_AGENT]
    return factory(settings)


__all__ = ["AgentProvider", "ExternalCliAgent", "AGENTS", "get_agent"]
