"""Workspace settings for planner and agent selection."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

SETTINGS_FILENAME = ".agentplanner.json"

DEFAULT_PLANNING_MODE = "local"
DEFAULT_AGENT = "cursor"
DEFAULT_LLM_PROVIDER = "openai"
DEFAULT_LLM_BASE_URL = "https://api.openai.com"
DEFAULT_LLM_MODEL = "gpt-4o-mini"
DEFAULT_LLM_TEMPERATURE = 0.2
DEFAULT_LLM_TIMEOUT = 60.0  # seconds
DEFAULT_AZURE_API_VERSION = "2024-08-01-preview"
DEFAULT_AGENT_ARGS_TEMPLATE = "{workspace} {planFile}"


class PlannerSettings(BaseModel):
    """Plain key/value settings. Missing keys take the documented default."""

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    planning_mode: str = Field(DEFAULT_PLANNING_MODE, description="Planner id: 'local' or 'llm'")
    agent: str = Field(DEFAULT_AGENT, description="Agent provider id")

    llm_provider: str = Field(DEFAULT_LLM_PROVIDER, description="'openai' or 'azure'")
    llm_base_url: str = DEFAULT_LLM_BASE_URL
    llm_model: str = DEFAULT_LLM_MODEL
    llm_temperature: float = Field(DEFAULT_LLM_TEMPERATURE, ge=0.0, le=2.0)
    llm_timeout: float = Field(DEFAULT_LLM_TIMEOUT, gt=0, description="Seconds before the LLM call is aborted")

    azure_deployment: str = ""
    azure_api_version: str = DEFAULT_AZURE_API_VERSION

    agent_path: str = Field("", description="Agent executable; empty means the agent's default command")
    agent_args_template: str = DEFAULT_AGENT_ARGS_TEMPLATE

    @field_validator("planning_mode", "agent", "llm_provider")
    @classmethod
    def _normalize_id(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("llm_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.strip().rstrip("/")

    @field_validator("llm_model", "azure_deployment", "azure_api_version", "agent_path", "agent_args_template")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()


def settings_path(workspace: Path | str) -> Path:
    """Location of the settings file for a workspace."""
    return Path(workspace) / SETTINGS_FILENAME


def _read_settings_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        logger.warning(f"Ignoring unreadable settings file {path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring settings file {path}: expected a JSON object")
        return {}
    # Empty values mean "use the default"
    return {k: v for k, v in data.items() if v is not None and v != ""}


def load_settings(workspace: Path | str | None = None) -> PlannerSettings:
    """Load settings for a workspace, falling back to defaults.

    Args:
        workspace: Workspace root; None yields pure defaults

    Returns:
        PlannerSettings
    """
    if workspace is None:
        return PlannerSettings()

    path = settings_path(workspace)
    data = _read_settings_file(path)
    try:
        return PlannerSettings.model_validate(data)
    except ValidationError as e:
        # Unusable values fall back to their defaults
        bad_keys = {str(err["loc"][0]) for err in e.errors() if err["loc"]}
        logger.warning(f"Ignoring invalid settings in {path}: {sorted(bad_keys)}")
        cleaned = {k: v for k, v in data.items() if k not in bad_keys}
        try:
            return PlannerSettings.model_validate(cleaned)
        except ValidationError:
            return PlannerSettings()


def save_settings(workspace: Path | str, **updates: Any) -> PlannerSettings:
    """Merge updates into the workspace settings file and return the result."""
    path = settings_path(workspace)
    data = _read_settings_file(path)
    data.update(updates)

    # Validate before writing so a bad value never reaches disk
    settings = PlannerSettings.model_validate(data)
    stored = settings.model_dump(include=set(data) & set(PlannerSettings.model_fields))

    path.write_text(json.dumps(stored, indent=2) + "\n", encoding="utf-8")
    logger.info(f"Updated settings in {path}: {sorted(updates)}")
    return settings
