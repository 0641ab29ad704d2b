"""Registry mapping tool names to the callables the batch engine dispatches to."""

import functools
import inspect
from collections.abc import Awaitable
from collections.abc import Callable
from typing import Any

from ..exceptions import UnknownToolError

ToolFunction = Callable[[dict[str, Any]], Awaitable[Any]]


class ToolRegistry:
    """Name to async tool function mapping.

    Every tool takes a single parameters mapping. Synchronous callables are
    wrapped so the engine can always ``await`` them.
    """

    def __init__(self):
        self._tools: dict[str, ToolFunction] = {}

    def register(self, name: str, func: Callable[[dict[str, Any]], Any]) -> None:
        """Register ``func`` under ``name``, replacing any previous entry."""
        if inspect.iscoroutinefunction(func):
            self._tools[name] = func
            return

        @functools.wraps(func)
        async def async_tool(params: dict[str, Any]) -> Any:
            result = func(params)
            if inspect.isawaitable(result):
                result = await result
            return result

        self._tools[name] = async_tool

    def get(self, name: str) -> ToolFunction:
        """Return the tool registered under ``name``.

        Raises:
            UnknownToolError: if no tool has that name
        """
        try:
            return self._tools[name]
        except KeyError:
            raise UnknownToolError(name) from None

    def names(self) -> list[str]:
        return list(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
