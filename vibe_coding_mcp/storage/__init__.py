"""Storage layer for the Vibe Coding MCP toolkit.

Sessions and templates are JSON documents kept under the configured storage
directory through a ``StorageBackend``.

Usage:
    from vibe_coding_mcp.storage import SessionStore

    store = SessionStore()
    session = await store.save(title="Auth refactor", summary="Moved to JWT")
"""

from .base import StorageBackend
from .factory import get_storage
from .factory import reset_storage
from .session_store import SessionStore
from .template_store import TemplateStore

__all__ = ["StorageBackend", "get_storage", "reset_storage", "SessionStore", "TemplateStore"]
