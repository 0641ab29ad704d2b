"""Pattern-based tag suggestion for sessions.

Tags are detected from session text and code with a fixed pattern table,
user patterns added through ``train``/``config``, and the languages of code
blocks. Custom patterns live in memory for the lifetime of the process.
"""

import logging
import re
from typing import Any

from pydantic import BaseModel
from pydantic import Field

from ..exceptions import ValidationError
from ..helpers import error_response
from ..helpers import require
from ..logger_config import log_mcp_call
from ..models import CodeBlock
from ..models import Session
from ..models import TagPattern
from ..models import TagSuggestion
from ..storage import SessionStore

logger = logging.getLogger(__name__)

AUTO_TAG_ACTIONS = ("suggest", "apply", "train", "config")

PATTERN_CONFIDENCE = 0.8
CUSTOM_PATTERN_CONFIDENCE = 0.9
CODE_LANGUAGE_CONFIDENCE = 1.0

# (regex, tags, category)
DEFAULT_PATTERNS: list[tuple[str, list[str], str]] = [
    # Languages and frameworks
    (r"typescript|\.ts\b", ["typescript"], "language"),
    (r"javascript|\.js\b", ["javascript"], "language"),
    (r"python|\.py\b", ["python"], "language"),
    (r"go\s+|golang|\.go\b", ["go"], "language"),
    (r"rust|\.rs\b", ["rust"], "language"),
    (r"react|jsx|tsx", ["react"], "framework"),
    (r"vue|\.vue\b", ["vue"], "framework"),
    (r"angular", ["angular"], "framework"),
    (r"next\.?js|nextjs", ["nextjs"], "framework"),
    (r"express", ["express"], "framework"),
    (r"fastapi", ["fastapi"], "framework"),
    (r"django", ["django"], "framework"),
    (r"flask", ["flask"], "framework"),
    # Concepts
    (r"auth|authentication|login|oauth|jwt", ["authentication"], "feature"),
    (r"api|endpoint|rest|graphql", ["api"], "feature"),
    (r"database|sql|mongodb|postgres|mysql", ["database"], "feature"),
    (r"test|testing|jest|pytest|unittest", ["testing"], "practice"),
    (r"deploy|ci/cd|docker|kubernetes", ["devops"], "practice"),
    (r"security|vulnerability|xss|csrf|injection", ["security"], "concern"),
    (r"performance|optimization|cache|speed", ["performance"], "concern"),
    (r"refactor|clean\s*code|improve", ["refactoring"], "activity"),
    (r"bug|fix|issue|error|debug", ["bugfix"], "activity"),
    (r"feature|implement|add|new", ["feature"], "activity"),
    (r"design|architecture|pattern|structure", ["design"], "activity"),
    (r"documentation|readme|docs", ["documentation"], "activity"),
    # Korean
    (r"인증|로그인|OAuth", ["authentication"], "feature"),
    (r"데이터베이스|DB|쿼리", ["database"], "feature"),
    (r"테스트|검증", ["testing"], "practice"),
    (r"배포|CI/CD", ["devops"], "practice"),
    (r"보안|취약점", ["security"], "concern"),
    (r"성능|최적화|캐시", ["performance"], "concern"),
    (r"리팩토링|개선", ["refactoring"], "activity"),
    (r"버그|수정|오류", ["bugfix"], "activity"),
    (r"기능|구현|추가", ["feature"], "activity"),
    (r"설계|아키텍처|패턴", ["design"], "activity"),
]

_COMPILED_DEFAULTS = [(re.compile(pattern, re.IGNORECASE), tags, category) for pattern, tags, category in DEFAULT_PATTERNS]


class TagConfig(BaseModel):
    enable_auto_tag: bool = True
    default_categories: list[str] = Field(
        default_factory=lambda: ["language", "framework", "feature", "practice", "concern", "activity"]
    )
    custom_patterns: list[TagPattern] = Field(default_factory=list)


class AutoTagger:
    """Suggests tags from text and code blocks."""

    def __init__(self, config: TagConfig | None = None):
        self.config = config or TagConfig()

    def detect(
        self,
        content: str,
        code_blocks: list[CodeBlock] | None = None,
        categories: list[str] | None = None,
    ) -> list[TagSuggestion]:
        """Return suggestions ordered by confidence, one per tag."""
        code_blocks = code_blocks or []
        full_text = " ".join([content] + [f"{b.language} {b.code}" for b in code_blocks])
        found: dict[str, TagSuggestion] = {}

        def add(tag: str, confidence: float, reason: str, category: str) -> None:
            # A tag keeps its first position but takes the strongest evidence
            if tag not in found or confidence > found[tag].confidence:
                found[tag] = TagSuggestion(tag=tag, confidence=confidence, reason=reason, category=category)

        for regex, tags, category in _COMPILED_DEFAULTS:
            if categories and category not in categories:
                continue
            if regex.search(full_text):
                for tag in tags:
                    add(tag, PATTERN_CONFIDENCE, f"Detected from pattern: {regex.pattern}", category)

        for custom in self.config.custom_patterns:
            try:
                matched = re.search(custom.pattern, full_text, re.IGNORECASE)
            except re.error as e:
                logger.warning("Skipping invalid custom tag pattern %r: %s", custom.pattern, e)
                continue
            if matched:
                for tag in custom.tags:
                    add(tag, CUSTOM_PATTERN_CONFIDENCE, f"Matched custom pattern: {custom.pattern}", "custom")

        for block in code_blocks:
            if block.language:
                add(block.language.lower(), CODE_LANGUAGE_CONFIDENCE, "Detected from code block language", "language")

        # Stable sort keeps detection order among equal confidences
        return sorted(found.values(), key=lambda s: s.confidence, reverse=True)

    def train(self, examples: list[dict[str, Any]]) -> int:
        """Turn examples into custom patterns; returns how many were added.

        Each example's first five words longer than three characters become
        an alternation pattern mapped to the example's tags.
        """
        added = 0
        for example in examples:
            words = [w for w in str(example.get("content", "")).lower().split() if len(w) > 3][:5]
            tags = example.get("tags") or []
            if words and tags:
                pattern = "|".join(re.escape(word) for word in words)
                self.config.custom_patterns.append(TagPattern(pattern=pattern, tags=tags))
                added += 1
        return added


_auto_tagger = AutoTagger()


def get_auto_tagger() -> AutoTagger:
    return _auto_tagger


def reset_auto_tagger() -> None:
    """Forget custom patterns and configuration (primarily for testing)."""
    global _auto_tagger
    _auto_tagger = AutoTagger()


def _session_text(session: Session) -> tuple[str, list[CodeBlock]]:
    text = "\n".join([session.title, session.summary] + [c.conversation_summary for c in session.code_contexts])
    return text, session.code_blocks


async def auto_tag(
    action: str,
    session_id: str | None = None,
    content: str | None = None,
    code_blocks: list[dict[str, Any]] | None = None,
    max_tags: int = 5,
    min_confidence: float = 0.7,
    include_existing: bool = True,
    categories: list[str] | None = None,
    examples: list[dict[str, Any]] | None = None,
    enable_auto_tag: bool | None = None,
    default_categories: list[str] | None = None,
    custom_patterns: list[dict[str, Any]] | None = None,
    store: SessionStore | None = None,
    tagger: AutoTagger | None = None,
) -> dict[str, Any]:
    """Suggest, apply, train or configure session tags."""
    tagger = tagger or get_auto_tagger()
    categories = categories or tagger.config.default_categories

    if action == "suggest":
        text = content or ""
        blocks = [CodeBlock.model_validate(b) for b in code_blocks or []]
        if session_id:
            session = await (store or SessionStore()).require(session_id)
            text, blocks = _session_text(session)
        if not text and not blocks:
            raise ValidationError(
                "No content provided for tagging. Provide content, code_blocks, or session_id.", field="content"
            )

        suggestions = [s for s in tagger.detect(text, blocks, categories) if s.confidence >= min_confidence]
        suggestions = suggestions[:max_tags]
        return {
            "success": True,
            "action": action,
            "session_id": session_id,
            "suggestions": [s.model_dump() for s in suggestions],
            "message": f"Found {len(suggestions)} tag suggestions",
        }

    if action == "apply":
        require({"session_id": session_id}, "session_id", action=action)
        store = store or SessionStore()
        session = await store.require(session_id)
        text, blocks = _session_text(session)
        suggestions = tagger.detect(text, blocks, categories)
        new_tags = [s.tag for s in suggestions if s.confidence >= min_confidence][:max_tags]

        base = session.tags if include_existing else []
        applied = list(dict.fromkeys(base + new_tags))
        await store.update(session_id, {"tags": applied})
        return {
            "success": True,
            "action": action,
            "session_id": session_id,
            "suggestions": [s.model_dump() for s in suggestions],
            "applied_tags": applied,
            "message": f"Applied {len(new_tags)} new tags to session",
        }

    if action == "train":
        if not examples:
            raise ValidationError("examples are required for train action", field="examples")
        added = tagger.train(examples)
        return {
            "success": True,
            "action": action,
            "trained": True,
            "patterns_added": added,
            "message": f"Added {added} new patterns from {len(examples)} examples",
        }

    if action == "config":
        if enable_auto_tag is not None:
            tagger.config.enable_auto_tag = enable_auto_tag
        if default_categories:
            tagger.config.default_categories = default_categories
        if custom_patterns is not None:
            tagger.config.custom_patterns = [TagPattern.model_validate(p) for p in custom_patterns]
        return {
            "success": True,
            "action": action,
            "config": tagger.config.model_dump(),
            "message": "Configuration updated successfully",
        }

    raise ValidationError(f"Unknown action: {action}", field="action", value=action)


def register_auto_tag_tools(mcp_server):
    """Register the auto-tagging tool with the MCP server."""

    @mcp_server.tool()
    @log_mcp_call
    async def muse_auto_tag(
        action: str,
        session_id: str | None = None,
        content: str | None = None,
        code_blocks: list[dict[str, Any]] | None = None,
        max_tags: int = 5,
        min_confidence: float = 0.7,
        include_existing: bool = True,
        categories: list[str] | None = None,
        examples: list[dict[str, Any]] | None = None,
        enable_auto_tag: bool | None = None,
        default_categories: list[str] | None = None,
        custom_patterns: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        """Suggest and apply tags to coding sessions.

        Actions:
            suggest: recommend tags for ``content``/``code_blocks`` or a stored session
            apply: add suggested tags to a session (merging existing tags unless
                include_existing is false)
            train: learn custom patterns from ``examples`` ([{"content", "tags"}])
            config: update enable_auto_tag, default_categories or custom_patterns
        """
        try:
            return await auto_tag(
                action,
                session_id=session_id,
                content=content,
                code_blocks=code_blocks,
                max_tags=max_tags,
                min_confidence=min_confidence,
                include_existing=include_existing,
                categories=categories,
                examples=examples,
                enable_auto_tag=enable_auto_tag,
                default_categories=default_categories,
                custom_patterns=custom_patterns,
            )
        except Exception as e:
            return error_response(action, e)
