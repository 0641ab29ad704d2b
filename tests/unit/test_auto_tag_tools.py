"""Unit tests for pattern-based auto-tagging."""

import pytest

from vibe_coding_mcp.exceptions import SessionNotFoundError
from vibe_coding_mcp.exceptions import ValidationError
from vibe_coding_mcp.models import CodeBlock
from vibe_coding_mcp.models import TagPattern
from vibe_coding_mcp.tools.auto_tag_tools import AutoTagger
from vibe_coding_mcp.tools.auto_tag_tools import TagConfig
from vibe_coding_mcp.tools.auto_tag_tools import auto_tag
from vibe_coding_mcp.tools.auto_tag_tools import get_auto_tagger
from vibe_coding_mcp.tools.session_tools import session_history


def tags_of(suggestions):
    return [s.tag if hasattr(s, "tag") else s["tag"] for s in suggestions]


class TestAutoTagger:
    def test_default_patterns(self):
        suggestions = AutoTagger().detect("Set up FastAPI login with JWT")
        tags = tags_of(suggestions)
        assert "fastapi" in tags
        assert "authentication" in tags
        assert all(s.confidence == 0.8 for s in suggestions)

    def test_korean_patterns(self):
        assert "authentication" in tags_of(AutoTagger().detect("로그인 화면 구현"))

    def test_code_block_language_has_highest_confidence(self):
        suggestions = AutoTagger().detect("small tweak", [CodeBlock(language="Rust", code="fn main() {}")])
        assert suggestions[0].tag == "rust"
        assert suggestions[0].confidence == 1.0

    def test_each_tag_suggested_once(self):
        tags = tags_of(AutoTagger().detect("python python .py", [CodeBlock(language="python", code="")]))
        assert tags.count("python") == 1

    def test_category_filter(self):
        suggestions = AutoTagger().detect("fix the django login bug", categories=["framework"])
        assert tags_of(suggestions) == ["django"]

    def test_custom_patterns(self):
        tagger = AutoTagger(TagConfig(custom_patterns=[TagPattern(pattern=r"kafka|rabbitmq", tags=["messaging"])]))
        suggestions = tagger.detect("consume from kafka")
        assert suggestions[0].tag == "messaging"
        assert suggestions[0].confidence == 0.9
        assert suggestions[0].category == "custom"

    def test_invalid_custom_pattern_skipped(self):
        tagger = AutoTagger(TagConfig(custom_patterns=[TagPattern(pattern="(unclosed", tags=["x"])]))
        assert "x" not in tags_of(tagger.detect("(unclosed"))

    def test_train_builds_patterns_from_long_words(self):
        tagger = AutoTagger()
        added = tagger.train(
            [
                {"content": "Tuned the Redis eviction policy for sessions today", "tags": ["caching"]},
                {"content": "no tags here", "tags": []},
            ]
        )

        assert added == 1
        assert tagger.config.custom_patterns[0].pattern == "tuned|redis|eviction|policy|sessions"
        assert "caching" in tags_of(tagger.detect("redis is slow"))


class TestAutoTagActions:
    @pytest.mark.asyncio
    async def test_suggest_respects_limits(self):
        response = await auto_tag(
            "suggest", content="React frontend calling a REST api backed by postgres", max_tags=2
        )
        assert response["success"] is True
        assert len(response["suggestions"]) == 2
        assert response["message"] == "Found 2 tag suggestions"

    @pytest.mark.asyncio
    async def test_suggest_min_confidence(self):
        response = await auto_tag(
            "suggest",
            content="django",
            code_blocks=[{"language": "python", "code": "x = 1"}],
            min_confidence=0.95,
        )
        assert tags_of(response["suggestions"]) == ["python"]

    @pytest.mark.asyncio
    async def test_suggest_requires_content(self):
        with pytest.raises(ValidationError, match="No content provided"):
            await auto_tag("suggest")

    @pytest.mark.asyncio
    async def test_suggest_from_stored_session(self):
        saved = await session_history("save", title="Docker deploy", summary="Shipped via kubernetes")
        response = await auto_tag("suggest", session_id=saved["session"]["id"])
        assert "devops" in tags_of(response["suggestions"])

    @pytest.mark.asyncio
    async def test_apply_merges_existing_tags(self):
        saved = await session_history("save", title="Flask api", summary="endpoints", tags=["backend"])
        session_id = saved["session"]["id"]

        response = await auto_tag("apply", session_id=session_id)
        assert response["applied_tags"][0] == "backend"
        assert "flask" in response["applied_tags"]

        stored = await session_history("get", session_id=session_id)
        assert stored["session"]["tags"] == response["applied_tags"]

    @pytest.mark.asyncio
    async def test_apply_can_replace_existing_tags(self):
        saved = await session_history("save", title="Flask api", summary="endpoints", tags=["backend"])
        response = await auto_tag("apply", session_id=saved["session"]["id"], include_existing=False)
        assert "backend" not in response["applied_tags"]

    @pytest.mark.asyncio
    async def test_apply_missing_session(self):
        with pytest.raises(SessionNotFoundError):
            await auto_tag("apply", session_id="session_missing")

    @pytest.mark.asyncio
    async def test_train_and_config(self):
        trained = await auto_tag("train", examples=[{"content": "graphql federation gateway", "tags": ["graph"]}])
        assert trained["patterns_added"] == 1
        assert len(get_auto_tagger().config.custom_patterns) == 1

        configured = await auto_tag(
            "config",
            enable_auto_tag=False,
            default_categories=["language"],
            custom_patterns=[{"pattern": "terraform", "tags": ["iac"]}],
        )
        assert configured["config"]["enable_auto_tag"] is False
        assert configured["config"]["default_categories"] == ["language"]
        assert configured["config"]["custom_patterns"] == [{"pattern": "terraform", "tags": ["iac"]}]

    @pytest.mark.asyncio
    async def test_train_requires_examples(self):
        with pytest.raises(ValidationError, match="examples are required"):
            await auto_tag("train")

    @pytest.mark.asyncio
    async def test_unknown_action(self):
        with pytest.raises(ValidationError, match="Unknown action: guess"):
            await auto_tag("guess")
