"""MCP tools for the Vibe Coding toolkit.

Each module exposes a plain async function (used by the batch engine) and a
``register_*_tools`` function that wraps it as an MCP tool.
"""

from typing import Any

from ..batch import ToolRegistry
from .auto_tag_tools import auto_tag
from .auto_tag_tools import register_auto_tag_tools
from .batch_tools import register_batch_tools
from .git_tools import git_tool
from .git_tools import register_git_tools
from .session_tools import export_session
from .session_tools import register_session_tools
from .session_tools import session_history
from .session_tools import session_stats
from .template_tools import register_template_tools
from .template_tools import template_tool

# Tools callable from inside a batch, keyed by their MCP names
BATCH_TOOLS = {
    "muse_session_history": session_history,
    "muse_session_stats": session_stats,
    "muse_export_session": export_session,
    "muse_git": git_tool,
    "muse_template": template_tool,
    "muse_auto_tag": auto_tag,
}


def _params_adapter(func):
    async def tool(params: dict[str, Any]) -> Any:
        return await func(**params)

    tool.__name__ = func.__name__
    tool.__doc__ = func.__doc__
    return tool


def build_tool_registry() -> ToolRegistry:
    """Registry of every toolkit tool that a batch may invoke."""
    registry = ToolRegistry()
    for name, func in BATCH_TOOLS.items():
        registry.register(name, _params_adapter(func))
    return registry


__all__ = [
    "BATCH_TOOLS",
    "build_tool_registry",
    "register_auto_tag_tools",
    "register_batch_tools",
    "register_git_tools",
    "register_session_tools",
    "register_template_tools",
]
