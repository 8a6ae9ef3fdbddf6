"""MCP server package for Agent Planner."""
