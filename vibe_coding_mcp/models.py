"""Pydantic models for the Vibe Coding MCP toolkit.

This module contains the data models shared by storage and tools: stored
coding sessions, document templates, tag suggestions and parsed git output.
Batch engine models live in ``vibe_coding_mcp.batch.models``.
"""

import datetime
from typing import Any

from pydantic import BaseModel
from pydantic import Field

from .helpers import utc_now

# === Session Models ===


class CodeBlock(BaseModel):
    language: str = ""
    code: str = ""
    filename: str | None = None


class CodeContext(BaseModel):
    """Code captured during a session together with the conversation around it."""

    session_id: str = ""
    timestamp: datetime.datetime = Field(default_factory=utc_now)
    code_blocks: list[CodeBlock] = Field(default_factory=list)
    conversation_summary: str = ""


class DesignDecision(BaseModel):
    id: str = ""
    title: str
    description: str = ""
    rationale: str = ""
    category: str = "other"
    timestamp: datetime.datetime = Field(default_factory=utc_now)


class Session(BaseModel):
    """A stored vibe coding session."""

    id: str
    title: str
    summary: str
    tags: list[str] = Field(default_factory=list)
    code_contexts: list[CodeContext] = Field(default_factory=list)
    design_decisions: list[DesignDecision] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime.datetime = Field(default_factory=utc_now)
    updated_at: datetime.datetime = Field(default_factory=utc_now)

    @property
    def code_blocks(self) -> list[CodeBlock]:
        return [block for context in self.code_contexts for block in context.code_blocks]


class SessionSummary(BaseModel):
    """Session listing entry without code contexts or decisions."""

    id: str
    title: str
    summary: str
    tags: list[str] = Field(default_factory=list)
    created_at: datetime.datetime
    updated_at: datetime.datetime
    code_context_count: int = 0
    design_decision_count: int = 0
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_session(cls, session: Session) -> "SessionSummary":
        return cls(
            id=session.id,
            title=session.title,
            summary=session.summary,
            tags=session.tags,
            created_at=session.created_at,
            updated_at=session.updated_at,
            code_context_count=len(session.code_contexts),
            design_decision_count=len(session.design_decisions),
            metadata=session.metadata,
        )


class StorageStats(BaseModel):
    total_sessions: int
    total_code_contexts: int
    total_design_decisions: int
    storage_dir: str
    oldest_session: datetime.datetime | None = None
    newest_session: datetime.datetime | None = None


# === Template Models ===


class TemplateVariable(BaseModel):
    name: str
    type: str = "string"
    required: bool = False
    default: Any = None
    description: str | None = None


class Template(BaseModel):
    """A document template with ``{{variable}}`` placeholders."""

    id: str
    name: str
    type: str
    content: str
    description: str | None = None
    variables: list[TemplateVariable] = Field(default_factory=list)
    builtin: bool = False
    created_at: datetime.datetime = Field(default_factory=utc_now)
    updated_at: datetime.datetime = Field(default_factory=utc_now)


# === Tagging Models ===


class TagSuggestion(BaseModel):
    tag: str
    confidence: float
    reason: str
    category: str


class TagPattern(BaseModel):
    """A user-supplied regular expression that implies one or more tags."""

    pattern: str
    tags: list[str]


# === Git Models ===


class GitFileStatus(BaseModel):
    path: str
    status: str  # modified, added, deleted, renamed, copied, untracked, unmerged
    staged: bool = False
    old_path: str | None = None


class GitStatus(BaseModel):
    branch: str = "HEAD"
    upstream: str | None = None
    ahead: int = 0
    behind: int = 0
    staged: list[GitFileStatus] = Field(default_factory=list)
    unstaged: list[GitFileStatus] = Field(default_factory=list)
    untracked: list[GitFileStatus] = Field(default_factory=list)
    conflicts: list[GitFileStatus] = Field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not (self.staged or self.unstaged or self.conflicts)


class GitCommit(BaseModel):
    hash: str
    short_hash: str
    author: str
    author_email: str
    date: str
    message: str
    body: str | None = None


class DiffFileStat(BaseModel):
    path: str
    additions: int = 0
    deletions: int = 0
    binary: bool = False


class GitDiff(BaseModel):
    files: list[DiffFileStat] = Field(default_factory=list)
    total_additions: int = 0
    total_deletions: int = 0
    patch: str | None = None


class BranchInfo(BaseModel):
    name: str
    current: bool = False
    upstream: str | None = None
    ahead: int | None = None
    behind: int | None = None
    last_commit: str | None = None


class StashEntry(BaseModel):
    index: int
    message: str
    date: str


class GitDecision(BaseModel):
    """A design decision recovered from a commit message."""

    commit_hash: str
    short_hash: str
    date: str
    author: str
    title: str
    description: str
    category: str
    importance: str
    related_files: list[str] = Field(default_factory=list)
