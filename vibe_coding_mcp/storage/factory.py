"""Storage Backend Factory.

Builds the process-wide storage backend rooted at the configured storage
directory.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..config import get_settings

if TYPE_CHECKING:
    from .base import StorageBackend


def create_storage_backend(root_dir: str | None = None) -> StorageBackend:
    """Create a storage backend instance.

    Args:
        root_dir: Storage root, defaulting to ``Settings.storage_dir``
    """
    from .local import LocalStorageBackend

    return LocalStorageBackend(root_dir or get_settings().storage_path)


# Singleton instance for the application
_storage_instance: StorageBackend | None = None


def get_storage(**kwargs) -> StorageBackend:
    """Get the global storage backend instance.

    Creates the instance on first call; later calls return the same instance
    and ignore ``kwargs``.
    """
    global _storage_instance

    if _storage_instance is None:
        _storage_instance = create_storage_backend(**kwargs)

    return _storage_instance


def reset_storage() -> None:
    """Reset the global storage instance (for testing)."""
    global _storage_instance
    _storage_instance = None


def get_storage_info() -> dict:
    """Get information about the current storage configuration."""
    storage = get_storage()
    return {
        "backend_type": storage.backend_type,
        "root_path": storage.root_path,
    }
