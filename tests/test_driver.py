"""Tests for the orchestration driver and the plan slot lifecycle."""

import asyncio
import json

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from agentplanner.driver import PlanDriver
from agentplanner.errors import InvalidPlanShapeError, MissingCredentialError, NoPlanAvailableError
from agentplanner.rendering import plan_to_dict
from agentplanner.schemas import LaunchResult, LaunchStatus, PlanState
from agentplanner.settings import PlannerSettings, settings_path
from agentplanner.store import workspace_scope


def _fake_agent():
    agent = MagicMock()
    agent.name = "Fake"
    agent.execute_plan = AsyncMock(
        return_value=LaunchResult(
            status=LaunchStatus.LAUNCHED,
            agent="Fake",
            executable="fake",
            plan_file="/ws/.agent-plans/plan.md",
            message="ok",
        )
    )
    return agent


class TestSlotLifecycle:
    """Test state transitions of the current-plan slot."""

    def test_initially_empty(self, driver, tmp_workspace):
        """A fresh workspace has no plan."""
        slot = driver.current(tmp_workspace)
        assert slot.state == PlanState.EMPTY
        assert slot.plan is None
        assert slot.workspace == workspace_scope(tmp_workspace)

    def test_create_stores_draft(self, driver, tmp_workspace):
        """Generation stores the plan as a draft."""
        slot = asyncio.run(driver.create_plan(tmp_workspace, "  Add dark mode  "))

        assert slot.state == PlanState.DRAFT
        assert slot.plan.task == "Add dark mode"
        assert len(slot.plan.steps) == 8
        assert driver.current(tmp_workspace) == slot

    def test_blank_task_rejected(self, driver, tmp_workspace):
        """An empty task never reaches a planner."""
        with pytest.raises(ValueError):
            asyncio.run(driver.create_plan(tmp_workspace, "   "))
        assert driver.current(tmp_workspace).state == PlanState.EMPTY

    def test_approve(self, driver, tmp_workspace):
        """Approving keeps the plan and changes the state."""
        created = asyncio.run(driver.create_plan(tmp_workspace, "task"))
        slot = driver.approve(tmp_workspace)
        assert slot.state == PlanState.APPROVED
        assert slot.plan == created.plan

    def test_approve_without_plan(self, driver, tmp_workspace):
        """Nothing to approve in an empty slot."""
        with pytest.raises(NoPlanAvailableError):
            driver.approve(tmp_workspace)

    def test_begin_edit_returns_json(self, driver, tmp_workspace):
        """Editing exposes the plan JSON and marks the slot."""
        created = asyncio.run(driver.create_plan(tmp_workspace, "task"))

        text = driver.begin_edit(tmp_workspace)

        assert json.loads(text) == plan_to_dict(created.plan)
        assert driver.current(tmp_workspace).state == PlanState.EDITED_JSON

    def test_save_edited(self, driver, tmp_workspace):
        """A valid edit replaces the plan and keeps createdAt."""
        created = asyncio.run(driver.create_plan(tmp_workspace, "task"))
        document = json.loads(driver.begin_edit(tmp_workspace))
        document["steps"] = document["steps"][:2] + [{"title": "Extra step"}]
        document["createdAt"] = "1999-01-01T00:00:00Z"

        slot = driver.save_edited(tmp_workspace, json.dumps(document))

        assert slot.state == PlanState.SAVED
        assert [s.title for s in slot.plan.steps][-1] == "Extra step"
        assert len(slot.plan.steps) == 3
        assert slot.plan.created_at == created.plan.created_at
        assert driver.current(tmp_workspace).plan == slot.plan

    def test_invalid_edit_keeps_previous_plan(self, driver, tmp_workspace):
        """A broken document never overwrites the stored plan."""
        asyncio.run(driver.create_plan(tmp_workspace, "task"))
        driver.begin_edit(tmp_workspace)
        before = driver.current(tmp_workspace)

        with pytest.raises(InvalidPlanShapeError):
            driver.save_edited(tmp_workspace, '{"task": "", "steps": "nope"}')

        assert driver.current(tmp_workspace) == before

    def test_duplicate_step_ids_keep_previous_plan(self, driver, tmp_workspace):
        """An edit that reuses a step id is rejected and the slot survives."""
        asyncio.run(driver.create_plan(tmp_workspace, "task"))
        before = driver.current(tmp_workspace)
        document = {"task": "t", "steps": [{"id": "a", "title": "one"}, {"id": "a", "title": "two"}]}

        with pytest.raises(InvalidPlanShapeError):
            driver.save_edited(tmp_workspace, document)

        assert driver.current(tmp_workspace) == before

    def test_save_into_empty_slot(self, driver, tmp_workspace):
        """A hand-written plan can be saved without a generated one."""
        slot = driver.save_edited(tmp_workspace, {"task": "manual", "steps": [{"title": "one"}]})
        assert slot.state == PlanState.SAVED
        assert slot.plan.task == "manual"

    def test_new_generation_supersedes(self, driver, tmp_workspace):
        """Last write wins and the cycle restarts at draft."""
        asyncio.run(driver.create_plan(tmp_workspace, "first"))
        driver.approve(tmp_workspace)

        slot = asyncio.run(driver.create_plan(tmp_workspace, "second"))

        assert slot.state == PlanState.DRAFT
        assert driver.current(tmp_workspace).plan.task == "second"

    def test_workspaces_are_separate(self, driver, tmp_path):
        """Each workspace has its own slot."""
        ws_a = tmp_path / "a"
        ws_b = tmp_path / "b"
        ws_a.mkdir()
        ws_b.mkdir()

        asyncio.run(driver.create_plan(ws_a, "task a"))

        assert driver.current(ws_a).plan.task == "task a"
        assert driver.current(ws_b).state == PlanState.EMPTY

    def test_clear(self, driver, tmp_workspace):
        """Clearing empties the slot."""
        asyncio.run(driver.create_plan(tmp_workspace, "task"))
        driver.clear(tmp_workspace)
        assert driver.current(tmp_workspace).state == PlanState.EMPTY


class TestPlannerFailures:
    """Test that planner errors leave the slot alone."""

    def test_failed_generation_keeps_previous_plan(self, store, secrets, tmp_workspace):
        """MissingCredentialError propagates and stores nothing."""
        local = PlanDriver(store=store, secrets=secrets, settings=PlannerSettings())
        asyncio.run(local.create_plan(tmp_workspace, "kept"))

        llm = PlanDriver(store=store, secrets=secrets, settings=PlannerSettings(planning_mode="llm"))
        with pytest.raises(MissingCredentialError):
            asyncio.run(llm.create_plan(tmp_workspace, "replacement"))

        assert llm.current(tmp_workspace).plan.task == "kept"

    def test_settings_read_from_workspace(self, store, secrets, tmp_workspace):
        """Without fixed settings the workspace file selects the planner."""
        settings_path(tmp_workspace).write_text('{"planning_mode": "llm"}')
        driver = PlanDriver(store=store, secrets=secrets)

        with pytest.raises(MissingCredentialError):
            asyncio.run(driver.create_plan(tmp_workspace, "task"))

    def test_invalid_settings_file_uses_defaults(self, store, secrets, tmp_workspace):
        """A settings file with unusable values still plans with defaults."""
        settings_path(tmp_workspace).write_text('{"llm_temperature": 5}')
        driver = PlanDriver(store=store, secrets=secrets)

        slot = asyncio.run(driver.create_plan(tmp_workspace, "task"))

        assert slot.state == PlanState.DRAFT
        assert len(slot.plan.steps) == 8


class TestExecute:
    """Test dispatching the current plan."""

    def test_no_plan_no_side_effects(self, driver, tmp_workspace):
        """Empty slot: NoPlanAvailableError, no file written, no agent used."""
        with patch("agentplanner.driver.get_agent") as mock_get_agent:
            with pytest.raises(NoPlanAvailableError):
                asyncio.run(driver.execute(tmp_workspace))

        mock_get_agent.assert_not_called()
        assert list(tmp_workspace.iterdir()) == []

    def test_zero_step_plan_rejected(self, driver, tmp_workspace):
        """A saved plan without steps is not executed."""
        driver.save_edited(tmp_workspace, {"task": "x", "steps": []})

        with patch("agentplanner.driver.get_agent") as mock_get_agent:
            with pytest.raises(InvalidPlanShapeError):
                asyncio.run(driver.execute(tmp_workspace))

        mock_get_agent.assert_not_called()

    def test_execute_hands_plan_to_agent(self, driver, tmp_workspace):
        """The agent receives the stored plan and workspace; state is unchanged."""
        asyncio.run(driver.create_plan(tmp_workspace, "task"))
        slot = driver.approve(tmp_workspace)
        agent = _fake_agent()

        with patch("agentplanner.driver.get_agent", return_value=agent):
            result = asyncio.run(driver.execute(tmp_workspace))

        assert result.status == LaunchStatus.LAUNCHED
        agent.execute_plan.assert_awaited_once_with(slot.plan, slot.workspace)
        assert driver.current(tmp_workspace).state == PlanState.APPROVED

    def test_execute_with_launch_failure(self, store, secrets, tmp_workspace):
        """A missing agent executable degrades to opening the artifact."""
        settings = PlannerSettings(agent_path=str(tmp_workspace / "missing-agent"))
        driver = PlanDriver(store=store, secrets=secrets, settings=settings)
        asyncio.run(driver.create_plan(tmp_workspace, "task"))

        with patch("agentplanner.agents.external_cli.open_artifact", return_value=True) as mock_open:
            result = asyncio.run(driver.execute(tmp_workspace))

        assert result.status == LaunchStatus.FAILED_WITH_FALLBACK
        assert result.artifact_opened is True
        mock_open.assert_called_once()
