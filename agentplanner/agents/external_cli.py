"""External CLI agent: writes the plan artifact and launches a detached program."""

from __future__ import annotations

import asyncio
import logging
import os
import re
import shutil
import subprocess
from pathlib import Path
from typing import Callable

import click

from agentplanner.errors import ProcessLaunchError
from agentplanner.rendering import plan_to_markdown
from agentplanner.schemas import LaunchResult, LaunchStatus, Plan, utc_now_iso
from agentplanner.settings import DEFAULT_AGENT_ARGS_TEMPLATE, PlannerSettings

logger = logging.getLogger(__name__)

# Per-workspace directory for plan artifacts
PLAN_DIR_NAME = ".agent-plans"

# Double-quoted span, single-quoted span, or a run of non-whitespace
ARG_TOKEN = re.compile(r"\"[^\"]*\"|'[^']*'|\S+")

_WHITESPACE = re.compile(r"\s")


def write_plan_artifact(plan: Plan, workspace_root: Path | str) -> Path:
    """Write the plan markdown under the workspace's plan directory.

    Args:
        plan: Plan to serialize
        workspace_root: Workspace root directory

    Returns:
        Path of the written file, named after the current UTC time
    """
    plan_dir = Path(workspace_root) / PLAN_DIR_NAME
    plan_dir.mkdir(parents=True, exist_ok=True)

    stamp = re.sub(r"[:.]", "-", utc_now_iso())
    plan_file = plan_dir / f"plan-{stamp}.md"
    counter = 1
    while plan_file.exists():
        plan_file = plan_dir / f"plan-{stamp}-{counter}.md"
        counter += 1

    plan_file.write_text(plan_to_markdown(plan), encoding="utf-8")
    logger.info(f"Wrote plan artifact {plan_file}")
    return plan_file


def _quote_if_needed(value: str) -> str:
    return f'"{value}"' if _WHITESPACE.search(value) else value


def render_args_template(template: str, workspace: str, plan_file: str) -> str:
    """Substitute {workspace} and {planFile}, quoting values that contain whitespace."""
    return (
        template.replace("{workspace}", _quote_if_needed(workspace))
        .replace("{planFile}", _quote_if_needed(plan_file))
    )


def split_args(rendered: str) -> list[str]:
    """Split a rendered template into arguments, stripping surrounding quotes."""
    args = []
    for token in ARG_TOKEN.findall(rendered):
        if len(token) >= 2 and token[0] == token[-1] and token[0] in "\"'":
            token = token[1:-1]
        args.append(token)
    return args


def build_args(template: str, workspace: str, plan_file: str) -> list[str]:
    """Render and tokenize an argument template."""
    return split_args(render_args_template(template, workspace, plan_file))


def resolve_executable(command: str) -> str:
    """Full path of a command on PATH, or the command unchanged."""
    return shutil.which(command) or command


def spawn_detached(executable: str, args: list[str], cwd: str | None = None) -> int:
    """Start a process in its own session with no stdio, without waiting on it.

    Returns:
        The child's pid

    Raises:
        ProcessLaunchError: if the process could not be started
    """
    kwargs: dict = {}
    if os.name == "nt":
        kwargs["creationflags"] = subprocess.DETACHED_PROCESS | subprocess.CREATE_NEW_PROCESS_GROUP
    else:
        kwargs["start_new_session"] = True

    try:
        process = subprocess.Popen(
            [executable, *args],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            cwd=cwd,
            close_fds=True,
            **kwargs,
        )
    except OSError as e:
        raise ProcessLaunchError(f"Could not start {executable}: {e}") from e

    return process.pid


def open_artifact(path: Path) -> bool:
    """Open a file with the desktop's default application."""
    return click.launch(str(path)) == 0


class ExternalCliAgent:
    """Agent that launches an external program on the plan artifact.

    The launch is fire-and-forget: a started process counts as success even
    though its own outcome is never observed.
    """

    def __init__(
        self,
        settings: PlannerSettings | None = None,
        name: str = "Cursor",
        default_executable: str = "cursor",
        spawner: Callable[[str, list[str], str | None], int] | None = None,
        opener: Callable[[Path], bool] | None = None,
    ):
        self.settings = settings or PlannerSettings()
        self.name = name
        self.default_executable = default_executable
        self._spawner = spawner or spawn_detached
        self._opener = opener or open_artifact

    async def execute_plan(self, plan: Plan, workspace_root: Path | str) -> LaunchResult:
        workspace = str(workspace_root)
        plan_file = write_plan_artifact(plan, workspace)

        executable = resolve_executable(self.settings.agent_path or self.default_executable)
        template = self.settings.agent_args_template or DEFAULT_AGENT_ARGS_TEMPLATE
        args = build_args(template, workspace, str(plan_file))

        logger.info(f"[{self.name}] exec: {executable}")
        logger.info(f"[{self.name}] args: {args}")

        try:
            pid = await asyncio.to_thread(self._spawner, executable, args, workspace)
        except ProcessLaunchError as e:
            logger.warning(f"[{self.name}] launch error: {e}")
            opened = self._open_fallback(plan_file)
            return LaunchResult(
                status=LaunchStatus.FAILED_WITH_FALLBACK,
                agent=self.name,
                executable=executable,
                args=args,
                plan_file=str(plan_file),
                message=(
                    f"Could not launch {self.name}. Plan opened for manual use. "
                    "Configure agent_path and agent_args_template if needed."
                ),
                error=str(e),
                artifact_opened=opened,
            )

        logger.info(f"[{self.name}] launched pid {pid}")
        return LaunchResult(
            status=LaunchStatus.LAUNCHED,
            agent=self.name,
            executable=executable,
            args=args,
            plan_file=str(plan_file),
            message=f"Opened plan in {self.name} (if its CLI is available).",
        )

    def _open_fallback(self, plan_file: Path) -> bool:
        try:
            return self._opener(plan_file)
        except OSError as e:
            logger.warning(f"[{self.name}] could not open {plan_file}: {e}")
            return False
