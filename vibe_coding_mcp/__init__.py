"""Vibe Coding MCP toolkit: session history, git context, templates, tagging and batch execution."""

__version__ = "1.0.0"
