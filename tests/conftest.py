"""The pytest configuration for Vibe Coding MCP testing.

Every test gets its own storage directory; the settings, storage, batch
executor and auto-tagger singletons are reset around each test.
"""

import asyncio

import pytest

from vibe_coding_mcp.batch import BatchExecutor
from vibe_coding_mcp.batch import JobStore
from vibe_coding_mcp.batch import ToolRegistry
from vibe_coding_mcp.batch.global_registry import reset_batch_executor
from vibe_coding_mcp.config import Settings
from vibe_coding_mcp.config import reset_settings
from vibe_coding_mcp.storage import SessionStore
from vibe_coding_mcp.storage import TemplateStore
from vibe_coding_mcp.storage import reset_storage
from vibe_coding_mcp.tools.auto_tag_tools import reset_auto_tagger


def _reset_singletons():
    reset_settings()
    reset_storage()
    reset_batch_executor()
    reset_auto_tagger()


@pytest.fixture(autouse=True)
def storage_dir(tmp_path, monkeypatch):
    """Point the toolkit at a temporary storage directory."""
    root = tmp_path / "vibe-storage"
    monkeypatch.setenv("VIBE_STORAGE_DIR", str(root))
    _reset_singletons()
    yield root
    _reset_singletons()


@pytest.fixture
def session_store():
    return SessionStore()


@pytest.fixture
def template_store():
    return TemplateStore()


@pytest.fixture
def call_log():
    """Names of operations in the order their tool calls started."""
    return []


@pytest.fixture
def tool_registry(call_log):
    """Registry of small deterministic tools for exercising the engine."""
    registry = ToolRegistry()

    async def echo(params):
        call_log.append(params.get("name", "echo"))
        return params

    async def fail(params):
        call_log.append(params.get("name", "fail"))
        raise RuntimeError(params.get("message", "boom"))

    async def slow(params):
        call_log.append(params.get("name", "slow"))
        await asyncio.sleep(params.get("delay", 0.05))
        return params.get("value")

    def add(params):
        return params["a"] + params["b"]

    registry.register("echo", echo)
    registry.register("fail", fail)
    registry.register("slow", slow)
    registry.register("add", add)
    return registry


@pytest.fixture
def job_store():
    return JobStore(max_history=100)


@pytest.fixture
def engine_settings():
    return Settings(batch_default_timeout_ms=2_000, batch_max_timeout_ms=10_000)


@pytest.fixture
def executor(tool_registry, job_store, engine_settings):
    return BatchExecutor(tool_registry, job_store, engine_settings)


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "git: tests that need a git executable")
