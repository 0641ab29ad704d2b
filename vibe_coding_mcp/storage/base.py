"""Abstract Base Class for Storage Backends.

Defines the interface the session and template stores are written against.
"""

from __future__ import annotations

from abc import ABC
from abc import abstractmethod
from dataclasses import dataclass
from datetime import datetime


@dataclass
class FileInfo:
    """Metadata about a stored file."""

    path: str
    size: int
    last_modified: datetime
    content_type: str = "application/json"


class StorageBackend(ABC):
    """Abstract base class for storage backends.

    Paths are always relative to the backend root, using ``/`` separators.
    """

    @property
    @abstractmethod
    def backend_type(self) -> str:
        """Return the backend type identifier (e.g., 'local')."""

    @property
    @abstractmethod
    def root_path(self) -> str:
        """Return the root path for storage."""

    # === File Operations ===

    @abstractmethod
    async def read_file(self, path: str) -> str:
        """Read file content as text.

        Raises:
            FileNotFoundError: If file does not exist
        """

    @abstractmethod
    async def write_file(self, path: str, content: str) -> None:
        """Write content to a file, creating parent directories as needed."""

    @abstractmethod
    async def delete_file(self, path: str) -> bool:
        """Delete a file. Returns False if it didn't exist."""

    @abstractmethod
    async def file_exists(self, path: str) -> bool:
        """Check if a file exists."""

    @abstractmethod
    async def get_file_info(self, path: str) -> FileInfo | None:
        """Get metadata about a file, or None if it does not exist."""

    # === Directory Operations ===

    @abstractmethod
    async def list_files(self, path: str = "", pattern: str = "*.json") -> list[str]:
        """List files in ``path`` matching a glob pattern.

        Returns:
            Sorted file paths relative to storage root
        """
