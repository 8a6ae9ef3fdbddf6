"""Planner providers, selectable by the 'planning_mode' setting."""

from __future__ import annotations

import logging
from typing import Callable

from agentplanner.planners.base import CredentialSource, PlannerProvider
from agentplanner.planners.llm import LLMPlanner
from agentplanner.planners.local import LocalPlanner
from agentplanner.settings import DEFAULT_PLANNING_MODE, PlannerSettings

logger = logging.getLogger(__name__)

PLANNERS: dict[str, Callable[[PlannerSettings], PlannerProvider]] = {
    "local": lambda settings: LocalPlanner(),
    "llm": lambda settings: LLMPlanner(settings),
}


def get_planner(settings: PlannerSettings) -> PlannerProvider:
    """Planner for the configured mode; unknown modes get the local planner."""
    factory = PLANNERS.get(settings.planning_mode)
    if factory is None:
        logger.warning(f"Unknown planning mode '{settings.planning_mode}', using '{DEFAULT_PLANNING_MODE}'")
        factory = PLANNERS[DEFAULT_PLANNING_MODE]
    return factory(settings)


__all__ = ["CredentialSource", "PlannerProvider", "LocalPlanner", "LLMPlanner", "PLANNERS", "get_planner"]
