"""Orchestration driver: owns the current-plan slot of each workspace.

Lifecycle of the slot::

    empty -> draft -> approved | edited_json -> saved

A new generation restarts at draft. Execution needs a non-empty slot and
leaves its state unchanged.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from agentplanner.agents import get_agent
from agentplanner.errors import InvalidPlanShapeError, NoPlanAvailableError
from agentplanner.planners import get_planner
from agentplanner.rendering import plan_from_json, plan_to_dict, plan_to_json
from agentplanner.schemas import LaunchResult, Plan, PlanSlot, PlanState, utc_now_iso
from agentplanner.settings import PlannerSettings, load_settings
from agentplanner.store import SecretStore, StateStore, get_store, workspace_scope

logger = logging.getLogger(__name__)

PLAN_STATE_KEY = "agentplanner.current_plan"


class PlanDriver:
    """Sequences generate, review, save and execute for a workspace."""

    def __init__(
        self,
        store: StateStore | None = None,
        secrets: SecretStore | None = None,
        settings: PlannerSettings | None = None,
    ):
        """Initialize the driver.

        Args:
            store: State store holding the plan slots
            secrets: Credential source handed to planners
            settings: Fixed settings; when None they are read per workspace
        """
        self.store = store or get_store()
        self.secrets = secrets or SecretStore(self.store)
        self._settings = settings

    def settings_for(self, workspace: Path | str) -> PlannerSettings:
        return self._settings or load_settings(workspace)

    # --- Slot access ---

    def current(self, workspace: Path | str) -> PlanSlot:
        """Current slot for a workspace; state is 'empty' when nothing is stored."""
        scope = workspace_scope(workspace)
        stored = self.store.get(scope, PLAN_STATE_KEY)
        if not stored:
            return PlanSlot(workspace=scope)
        return PlanSlot(
            workspace=scope,
            state=PlanState(stored["state"]),
            plan=plan_from_json(stored["plan"]),
            updated_at=stored.get("updated_at"),
        )

    def _write(self, workspace: Path | str, plan: Plan, state: PlanState) -> PlanSlot:
        scope = workspace_scope(workspace)
        updated_at = utc_now_iso()
        self.store.set(
            scope,
            PLAN_STATE_KEY,
            {"state": state.value, "plan": plan_to_dict(plan), "updated_at": updated_at},
        )
        return PlanSlot(workspace=scope, state=state, plan=plan, updated_at=updated_at)

    def _require_plan(self, workspace: Path | str) -> PlanSlot:
        slot = self.current(workspace)
        if slot.plan is None:
            raise NoPlanAvailableError("No plan found. Create or save a plan first.")
        return slot

    def clear(self, workspace: Path | str) -> None:
        """Empty the slot."""
        self.store.delete(workspace_scope(workspace), PLAN_STATE_KEY)

    # --- Lifecycle ---

    async def create_plan(self, workspace: Path | str, task: str) -> PlanSlot:
        """Generate a plan and store it as the workspace's draft.

        Planner errors propagate unchanged and leave the slot as it was.
        """
        if not task or not task.strip():
            raise ValueError("Task description must not be empty")

        settings = self.settings_for(workspace)
        planner = get_planner(settings)
        scope = workspace_scope(workspace)

        logger.info(f"Generating plan with {planner.name} planner for {scope}")
        plan = await planner.generate_plan(task, scope, self.secrets)

        slot = self._write(workspace, plan, PlanState.DRAFT)
        logger.info(f"Stored draft plan with {len(plan.steps)} steps")
        return slot

    def approve(self, workspace: Path | str) -> PlanSlot:
        slot = self._require_plan(workspace)
        return self._write(workspace, slot.plan, PlanState.APPROVED)

    def begin_edit(self, workspace: Path | str) -> str:
        """Return the current plan as JSON for a human to edit."""
        slot = self._require_plan(workspace)
        self._write(workspace, slot.plan, PlanState.EDITED_JSON)
        return plan_to_json(slot.plan)

    def save_edited(self, workspace: Path | str, document: str | Mapping[str, Any]) -> PlanSlot:
        """Validate an edited plan document and store it as saved.

        An invalid document raises InvalidPlanShapeError before anything is
        written, so the stored plan is never replaced by a broken one. The
        original creation time is kept.
        """
        plan = plan_from_json(document)

        previous = self.current(workspace).plan
        if previous is not None:
            plan = plan.model_copy(update={"created_at": previous.created_at})

        slot = self._write(workspace, plan, PlanState.SAVED)
        logger.info(f"Saved edited plan with {len(plan.steps)} steps")
        return slot

    async def execute(self, workspace: Path | str) -> LaunchResult:
        """Hand the current plan to the configured agent."""
        slot = self._require_plan(workspace)
        if not slot.plan.is_executable:
            raise InvalidPlanShapeError("Plan has no steps to execute.")

        agent = get_agent(self.settings_for(workspace))
        logger.info(f"Sending {slot.state.value} plan to {agent.name}")
        return await agent.execute_plan(slot.plan, slot.workspace)
