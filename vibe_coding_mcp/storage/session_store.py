"""JSON-file persistence for coding sessions.

Each session is stored as ``sessions/<session_id>.json`` in the storage
backend. Listing reads every file; files that fail to parse are skipped and
logged rather than failing the whole listing.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

import pydantic

from ..exceptions import SessionNotFoundError
from ..exceptions import ValidationError
from ..helpers import generate_id
from ..helpers import utc_now
from ..models import Session
from ..models import SessionSummary
from ..models import StorageStats
from .base import StorageBackend
from .factory import get_storage

logger = logging.getLogger(__name__)

SESSIONS_DIR = "sessions"
SORT_FIELDS = ("created_at", "updated_at", "title")
SEARCH_FIELDS = ("title", "summary", "tags")

_SESSION_ID_RE = re.compile(r"^[A-Za-z0-9_.-]+$")
_UPDATABLE_FIELDS = ("title", "summary", "tags", "code_contexts", "design_decisions", "metadata")


def _validation_error(e: pydantic.ValidationError) -> ValidationError:
    first = e.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    return ValidationError(f"Invalid session data: {location}: {first['msg']}", field=location or None)


class SessionStore:
    """CRUD, listing and search over stored sessions."""

    def __init__(self, storage: StorageBackend | None = None):
        self.storage = storage or get_storage()

    def _path(self, session_id: str) -> str:
        if not session_id or not _SESSION_ID_RE.match(session_id) or session_id.startswith("."):
            raise ValidationError(f"Invalid session id: {session_id}", field="session_id", value=session_id)
        return f"{SESSIONS_DIR}/{session_id}.json"

    async def _write(self, session: Session) -> None:
        await self.storage.write_file(self._path(session.id), session.model_dump_json(indent=2))

    # --- CRUD ---

    async def save(
        self,
        title: str,
        summary: str,
        tags: list[str] | None = None,
        code_contexts: list[dict[str, Any]] | None = None,
        design_decisions: list[dict[str, Any]] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Session:
        """Create and persist a new session with a generated id."""
        now = utc_now()
        session_id = generate_id("session")
        try:
            session = Session.model_validate(
                {
                    "id": session_id,
                    "title": title,
                    "summary": summary,
                    "tags": tags or [],
                    "code_contexts": code_contexts or [],
                    "design_decisions": design_decisions or [],
                    "metadata": metadata or {},
                    "created_at": now,
                    "updated_at": now,
                }
            )
        except pydantic.ValidationError as e:
            raise _validation_error(e) from e

        self._fill_defaults(session)
        await self._write(session)
        logger.info("Session saved: %s (%s)", session.id, session.title)
        return session

    async def get(self, session_id: str) -> Session | None:
        path = self._path(session_id)
        try:
            content = await self.storage.read_file(path)
        except FileNotFoundError:
            return None
        return Session.model_validate_json(content)

    async def require(self, session_id: str) -> Session:
        """Like ``get`` but raises ``SessionNotFoundError``."""
        session = await self.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def update(self, session_id: str, updates: dict[str, Any]) -> Session:
        """Replace the given fields of a session and bump ``updated_at``.

        Raises:
            SessionNotFoundError: if the session does not exist
        """
        existing = await self.require(session_id)
        data = existing.model_dump()
        data.update({key: value for key, value in updates.items() if key in _UPDATABLE_FIELDS})
        data["updated_at"] = utc_now()
        try:
            session = Session.model_validate(data)
        except pydantic.ValidationError as e:
            raise _validation_error(e) from e

        self._fill_defaults(session)
        await self._write(session)
        logger.info("Session updated: %s", session_id)
        return session

    async def delete(self, session_id: str) -> bool:
        deleted = await self.storage.delete_file(self._path(session_id))
        if deleted:
            logger.info("Session deleted: %s", session_id)
        return deleted

    # --- Queries ---

    async def all(self) -> list[Session]:
        """Load every readable session."""
        sessions = []
        for path in await self.storage.list_files(SESSIONS_DIR, "*.json"):
            try:
                sessions.append(Session.model_validate_json(await self.storage.read_file(path)))
            except (pydantic.ValidationError, json.JSONDecodeError, FileNotFoundError) as e:
                logger.warning("Skipping unreadable session file %s: %s", path, e)
        return sessions

    async def list(
        self,
        limit: int = 50,
        offset: int = 0,
        tags: list[str] | None = None,
        sort_by: str = "updated_at",
        sort_order: str = "desc",
    ) -> tuple[list[SessionSummary], int]:
        """Return a page of session summaries and the total match count.

        ``tags`` keeps sessions carrying at least one of the given tags.
        """
        if sort_by not in SORT_FIELDS:
            raise ValidationError(f"sort_by must be one of {', '.join(SORT_FIELDS)}", field="sort_by", value=sort_by)
        if sort_order not in ("asc", "desc"):
            raise ValidationError("sort_order must be 'asc' or 'desc'", field="sort_order", value=sort_order)

        sessions = await self.all()
        if tags:
            sessions = [s for s in sessions if any(tag in s.tags for tag in tags)]

        sessions.sort(key=lambda s: getattr(s, sort_by), reverse=sort_order == "desc")
        total = len(sessions)
        page = sessions[offset : offset + limit]
        return [SessionSummary.from_session(s) for s in page], total

    async def search(
        self,
        keyword: str,
        limit: int = 20,
        search_in: list[str] | tuple[str, ...] = SEARCH_FIELDS,
    ) -> list[SessionSummary]:
        """Case-insensitive substring search over title, summary and tags."""
        needle = keyword.lower()
        summaries, _ = await self.list(limit=10_000)

        def matches(s: SessionSummary) -> bool:
            if "title" in search_in and needle in s.title.lower():
                return True
            if "summary" in search_in and needle in s.summary.lower():
                return True
            return "tags" in search_in and any(needle in tag.lower() for tag in s.tags)

        return [s for s in summaries if matches(s)][:limit]

    async def stats(self) -> StorageStats:
        sessions = await self.all()
        created = sorted(s.created_at for s in sessions)
        return StorageStats(
            total_sessions=len(sessions),
            total_code_contexts=sum(len(s.code_contexts) for s in sessions),
            total_design_decisions=sum(len(s.design_decisions) for s in sessions),
            storage_dir=f"{self.storage.root_path}/{SESSIONS_DIR}",
            oldest_session=created[0] if created else None,
            newest_session=created[-1] if created else None,
        )

    @staticmethod
    def _fill_defaults(session: Session) -> None:
        for context in session.code_contexts:
            if not context.session_id:
                context.session_id = session.id
        for index, decision in enumerate(session.design_decisions):
            if not decision.id:
                decision.id = f"decision_{index + 1}"
