"""CLI for Agent Planner - plan coding tasks and hand them to an agent."""

from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from typing import Iterator

import click

from agentplanner import __version__
from agentplanner.driver import PlanDriver
from agentplanner.errors import AgentPlannerError
from agentplanner.planners.llm import API_KEY_SECRET
from agentplanner.rendering import plan_to_json, plan_to_markdown
from agentplanner.settings import load_settings, save_settings, settings_path
from agentplanner.store import SecretStore, StateStore

workspace_option = click.option(
    "--workspace", "-w",
    default=".",
    type=click.Path(exists=True, file_okay=False, dir_okay=True, resolve_path=True),
    help="Workspace root (defaults to current directory)",
)


def _get_driver() -> PlanDriver:
    return PlanDriver(store=StateStore())


@contextmanager
def _reported_errors() -> Iterator[None]:
    """Turn agentplanner errors into CLI errors (exit code 1)."""
    try:
        yield
    except AgentPlannerError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.version_option(version=__version__, prog_name="agentplanner")
@click.option("--verbose", "-v", is_flag=True, help="Log progress to stderr")
def main(verbose: bool) -> None:
    """Agent Planner - turn a task into a step plan for a coding agent.

    Create a plan, review or edit it, then run it with the configured agent.
    """
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _edit_plan(driver: PlanDriver, workspace: str) -> None:
    """Open the plan JSON in $EDITOR and save the result."""
    text = driver.begin_edit(workspace)
    edited = click.edit(text, extension=".json")
    if edited is None:
        click.echo("Plan left unchanged.")
        return
    slot = driver.save_edited(workspace, edited)
    click.echo(f"Edited plan saved ({len(slot.plan.steps)} steps). You can now run: agentplanner run")


@main.command()
@click.argument("task")
@workspace_option
@click.option("--yes", "-y", is_flag=True, help="Approve the plan without prompting")
def create(task: str, workspace: str, yes: bool) -> None:
    """Generate a plan for TASK.

    \b
    Example:
        agentplanner create "Add dark mode toggle to settings and update tests"
    """
    driver = _get_driver()

    with _reported_errors():
        try:
            slot = asyncio.run(driver.create_plan(workspace, task))
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="TASK") from e

        click.echo(plan_to_markdown(slot.plan))
        click.echo()

        if yes:
            choice = "approve"
        else:
            choice = click.prompt(
                "Plan created. Approve, edit as JSON, or cancel?",
                type=click.Choice(["approve", "edit", "cancel"]),
                default="approve",
            )

        if choice == "approve":
            driver.approve(workspace)
            click.echo("Plan approved. You can now run: agentplanner run")
        elif choice == "edit":
            _edit_plan(driver, workspace)
        else:
            click.echo("Plan kept as draft.")


@main.command()
@workspace_option
@click.option("--json", "as_json", is_flag=True, help="Output the plan as JSON")
def show(workspace: str, as_json: bool) -> None:
    """Show the current plan."""
    slot = _get_driver().current(workspace)
    if slot.plan is None:
        click.echo("No plan found. Create or save a plan first.")
        return

    if as_json:
        click.echo(plan_to_json(slot.plan))
        return

    click.echo(f"State: {slot.state.value}\n")
    click.echo(plan_to_markdown(slot.plan))


@main.command()
@workspace_option
def approve(workspace: str) -> None:
    """Approve the current plan."""
    with _reported_errors():
        _get_driver().approve(workspace)
    click.echo("Plan approved. You can now run: agentplanner run")


@main.command()
@workspace_option
def edit(workspace: str) -> None:
    """Edit the current plan as JSON in your editor."""
    with _reported_errors():
        _edit_plan(_get_driver(), workspace)


@main.command()
@click.argument("plan_file", type=click.File("r", encoding="utf-8"))
@workspace_option
def save(plan_file, workspace: str) -> None:
    """Save an edited plan JSON from PLAN_FILE ('-' for stdin).

    The current plan is kept if the document is not a valid plan.
    """
    with _reported_errors():
        slot = _get_driver().save_edited(workspace, plan_file.read())
    click.echo(f"Edited plan saved ({len(slot.plan.steps)} steps). You can now run: agentplanner run")


@main.command()
@workspace_option
def run(workspace: str) -> None:
    """Send the current plan to the configured agent."""
    with _reported_errors():
        result = asyncio.run(_get_driver().execute(workspace))

    if result.launched:
        click.echo(result.message)
    else:
        click.secho(f"Warning: {result.message}", fg="yellow", err=True)
        click.echo(f"Launch error: {result.error}", err=True)
    click.echo(f"Plan file: {result.plan_file}")


@main.command()
@workspace_option
def clear(workspace: str) -> None:
    """Discard the current plan."""
    _get_driver().clear(workspace)
    click.echo("Plan cleared.")


@main.command("set-api-key")
@click.option(
    "--api-key",
    prompt="API key for LLM planner",
    hide_input=True,
    help="API key (prompted when omitted)",
)
def set_api_key(api_key: str) -> None:
    """Store the LLM API key in the local credential store."""
    value = api_key.strip()
    if not value:
        raise click.BadParameter("API key must not be empty", param_hint="--api-key")
    SecretStore(StateStore()).set(API_KEY_SECRET, value)
    click.echo("LLM API key saved.")


@main.command()
@workspace_option
@click.option("--mode", type=click.Choice(["local", "llm"]), default=None, help="Planning mode")
@click.option("--provider", type=click.Choice(["openai", "azure"]), default=None, help="LLM provider")
@click.option("--base-url", default=None, help="LLM base URL")
@click.option("--model", default=None, help="LLM model name")
@click.option("--temperature", type=float, default=None, help="Sampling temperature")
@click.option("--timeout", type=float, default=None, help="LLM request timeout in seconds")
@click.option("--deployment", default=None, help="Azure deployment name")
@click.option("--api-version", default=None, help="Azure API version")
@click.option("--agent", default=None, help="Agent provider id")
@click.option("--agent-path", default=None, help="Agent executable path")
@click.option("--agent-args-template", default=None, help="Agent arguments, e.g. '{workspace} {planFile}'")
def configure(
    workspace: str,
    mode: str | None,
    provider: str | None,
    base_url: str | None,
    model: str | None,
    temperature: float | None,
    timeout: float | None,
    deployment: str | None,
    api_version: str | None,
    agent: str | None,
    agent_path: str | None,
    agent_args_template: str | None,
) -> None:
    """Configure planner and agent settings for a workspace.

    Without options, prints the effective settings.

    \b
    Example:
        agentplanner configure --provider azure \\
            --base-url https://my-resource.openai.azure.com --deployment gpt-4o-mini
    """
    updates = {
        "planning_mode": mode,
        "llm_provider": provider,
        "llm_base_url": base_url,
        "llm_model": model,
        "llm_temperature": temperature,
        "llm_timeout": timeout,
        "azure_deployment": deployment,
        "azure_api_version": api_version,
        "agent": agent,
        "agent_path": agent_path,
        "agent_args_template": agent_args_template,
    }
    updates = {k: v for k, v in updates.items() if v is not None}

    if not updates:
        for key, value in load_settings(workspace).model_dump().items():
            click.echo(f"{key} = {value}")
        return

    # Choosing a provider implies LLM planning
    if provider and not mode:
        updates["planning_mode"] = "llm"

    try:
        save_settings(workspace, **updates)
    except ValueError as e:
        raise click.ClickException(f"Invalid setting: {e}") from e

    click.echo(f"Updated {settings_path(workspace)}")
    if updates.get("planning_mode") == "llm":
        click.echo("Set the API key via: agentplanner set-api-key")


@main.command()
@click.option("--port", default=8000, help="Port to run the broker on")
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
def serve(port: int, host: str, reload: bool) -> None:
    """Start the Agent Planner HTTP broker server."""
    import uvicorn

    click.echo(f"Starting Agent Planner broker on {host}:{port}")
    uvicorn.run(
        "agentplanner.broker:app",
        host=host,
        port=port,
        reload=reload,
    )


@main.command()
def mcp() -> None:
    """Run the MCP server exposing plan tools.

    The MCP tools forward to the HTTP broker, so run 'agentplanner serve' too.

    \b
    Configure in .mcp.json:
        {
            "mcpServers": {
                "agentplanner": {
                    "command": "agentplanner",
                    "args": ["mcp"]
                }
            }
        }
    """
    from mcp_agentplanner.server import mcp as mcp_server
    mcp_server.run()


if __name__ == "__main__":
    main()
