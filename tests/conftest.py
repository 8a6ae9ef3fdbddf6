"""Pytest configuration and fixtures for Agent Planner tests."""

import pytest
from pathlib import Path

from agentplanner.driver import PlanDriver
from agentplanner.schemas import Plan, PlanStep
from agentplanner.settings import PlannerSettings
from agentplanner.store import SecretStore, StateStore


@pytest.fixture
def tmp_workspace(tmp_path: Path) -> Path:
    """Create a temporary workspace directory for tests."""
    workspace = tmp_path / "workspace"
    workspace.mkdir()
    return workspace


@pytest.fixture
def state_db_path(tmp_path: Path) -> Path:
    """Create a temporary path for the state database."""
    return tmp_path / "state.db"


@pytest.fixture
def store(state_db_path: Path) -> StateStore:
    """State store backed by a temporary database."""
    return StateStore(db_path=state_db_path)


@pytest.fixture
def secrets(store: StateStore) -> SecretStore:
    """Credential source sharing the temporary database."""
    return SecretStore(store)


@pytest.fixture
def driver(store: StateStore, secrets: SecretStore) -> PlanDriver:
    """Driver with default settings (local planner, cursor agent)."""
    return PlanDriver(store=store, secrets=secrets, settings=PlannerSettings())


@pytest.fixture
def sample_plan() -> Plan:
    """Small fixed plan."""
    return Plan(
        task="Add dark mode",
        steps=[
            PlanStep(id="s1", title="Design", detail="Pick colors"),
            PlanStep(id="s2", title="Implement"),
        ],
        created_at="2024-05-01T10:00:00.000Z",
    )


@pytest.fixture
def mock_chat_response() -> dict:
    """Mock chat-completion API response carrying a plan."""
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "choices": [
            {
                "index": 0,
                "message": {
                    "role": "assistant",
                    "content": (
                        '{"task": "Add dark mode", "createdAt": "2024-05-01T10:00:00.000Z", '
                        '"steps": [{"id": "1", "title": "Design", "detail": "Pick colors"}, '
                        '{"id": "2", "title": "Implement"}]}'
                    ),
                },
                "finish_reason": "stop",
            }
        ],
    }
