"""Agent Planner.

Turns a free-text task into a reviewable step plan, then hands the approved
plan to an external coding agent (Cursor by default) as a markdown artifact.
"""

__version__ = "0.1.0"
