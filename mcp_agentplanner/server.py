"""MCP server exposing Agent Planner tools to Claude."""

from mcp.server.fastmcp import FastMCP
import httpx

mcp = FastMCP("agentplanner")
BROKER = "http://localhost:8000"


@mcp.tool()
async def create_plan(task: str, workspace: str) -> dict:
    """Generate a step plan for a coding task and store it as the workspace draft.

    Uses the planner configured for the workspace (local checklist or LLM).
    """
    async with httpx.AsyncClient(timeout=90.0) as client:
        r = await client.post(f"{BROKER}/plans", json={"workspace": workspace, "task": task})
        return r.json()


@mcp.tool()
async def show_plan(workspace: str) -> dict:
    """Show the current plan and its review state for a workspace."""
    async with httpx.AsyncClient(timeout=10.0) as client:
        r = await client.get(f"{BROKER}/plans", params={"workspace": workspace})
        return r.json()


@mcp.tool()
async def run_plan(workspace: str, approve: bool = False) -> dict:
    """Hand the current plan to the configured coding agent.

    Args:
        workspace: Workspace root path
        approve: Also approve the plan first if it is still a draft

    Returns:
        Launch result, including the plan artifact path
    """
    async with httpx.AsyncClient(timeout=30.0) as client:
        if approve:
            slot = (await client.get(f"{BROKER}/plans", params={"workspace": workspace})).json()
            if slot.get("state") == "draft":
                await client.post(f"{BROKER}/plans/approve", json={"workspace": workspace})
        r = await client.post(f"{BROKER}/plans/run", json={"workspace": workspace})
        return r.json()


if __name__ == "__main__":
    mcp.run()
