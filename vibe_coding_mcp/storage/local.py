"""Local Filesystem Storage Backend.

Implements the StorageBackend interface using the local filesystem. This is
the only backend the toolkit ships.
"""

from __future__ import annotations

import fnmatch
import os
from datetime import datetime
from datetime import timezone
from pathlib import Path

from .base import FileInfo
from .base import StorageBackend


class LocalStorageBackend(StorageBackend):
    """Storage backend using the local filesystem.

    Args:
        root_dir: Root directory for sessions and templates.
    """

    def __init__(self, root_dir: str | Path):
        self._root = Path(root_dir).expanduser().resolve()
        self._root.mkdir(parents=True, exist_ok=True)

    @property
    def backend_type(self) -> str:
        return "local"

    @property
    def root_path(self) -> str:
        return str(self._root)

    def _full_path(self, path: str) -> Path:
        """Convert a relative path to an absolute path inside the root."""
        full_path = (self._root / path).resolve()
        if full_path != self._root and self._root not in full_path.parents:
            raise ValueError(f"Path escapes storage root: {path}")
        return full_path

    # === File Operations ===

    async def read_file(self, path: str) -> str:
        full_path = self._full_path(path)
        if not full_path.is_file():
            raise FileNotFoundError(f"File not found: {path}")
        return full_path.read_text(encoding="utf-8")

    async def write_file(self, path: str, content: str) -> None:
        full_path = self._full_path(path)
        full_path.parent.mkdir(parents=True, exist_ok=True)
        # Write-then-rename so readers never see a half-written JSON file
        tmp_path = full_path.with_name(f".{full_path.name}.tmp")
        tmp_path.write_text(content, encoding="utf-8")
        os.replace(tmp_path, full_path)

    async def delete_file(self, path: str) -> bool:
        full_path = self._full_path(path)
        if full_path.is_file():
            full_path.unlink()
            return True
        return False

    async def file_exists(self, path: str) -> bool:
        return self._full_path(path).is_file()

    async def get_file_info(self, path: str) -> FileInfo | None:
        full_path = self._full_path(path)
        if not full_path.is_file():
            return None

        stat = full_path.stat()
        return FileInfo(
            path=path,
            size=stat.st_size,
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            content_type=self._get_content_type(path),
        )

    def _get_content_type(self, path: str) -> str:
        """Determine content type from file extension."""
        content_types = {
            ".md": "text/markdown",
            ".json": "application/json",
            ".yaml": "text/yaml",
            ".yml": "text/yaml",
        }
        return content_types.get(Path(path).suffix.lower(), "application/octet-stream")

    # === Directory Operations ===

    async def list_files(self, path: str = "", pattern: str = "*.json") -> list[str]:
        full_path = self._full_path(path)
        if not full_path.is_dir():
            return []

        files = []
        for item in full_path.iterdir():
            # Skip hidden and temporary files
            if item.name.startswith("."):
                continue
            if item.is_file() and fnmatch.fnmatch(item.name, pattern):
                files.append(f"{path}/{item.name}" if path else item.name)
        return sorted(files)
