"""Unit tests for the muse_batch action surface."""

import pytest

from vibe_coding_mcp.batch import BatchExecutor
from vibe_coding_mcp.batch import JobStatus
from vibe_coding_mcp.config import Settings
from vibe_coding_mcp.tools.batch_tools import batch_tool
from vibe_coding_mcp.tools.batch_tools import register_batch_tools


def echo(op_id, depends_on=None):
    return {"id": op_id, "tool": "echo", "params": {"name": op_id}, "dependsOn": depends_on or []}


def failing(op_id):
    return {"id": op_id, "tool": "fail", "params": {"message": f"{op_id} broke"}}


class TestExecuteAction:
    @pytest.mark.asyncio
    async def test_successful_batch(self, executor):
        response = await batch_tool("execute", operations=[echo("a"), echo("b", ["a"])], executor=executor)

        assert response.success is True
        assert response.action == "execute"
        assert response.message == "Batch completed: 2 succeeded, 0 failed"
        assert [r.id for r in response.results] == ["a", "b"]
        assert response.job.status == JobStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_failed_batch(self, executor):
        response = await batch_tool(
            "execute", operations=[failing("a"), echo("b")], stop_on_error=False, executor=executor
        )

        assert response.success is False
        assert response.message == "Batch failed: 1 succeeded, 1 failed"
        assert response.results[0].error == "a broke"

    @pytest.mark.asyncio
    async def test_missing_operations(self, executor):
        response = await batch_tool("execute", executor=executor)
        assert response.success is False
        assert response.error == "operations are required"

    @pytest.mark.asyncio
    async def test_unknown_tool_reported(self, executor):
        response = await batch_tool("execute", operations=[{"tool": "teleport"}], executor=executor)
        assert response.success is False
        assert response.error == "Unknown tool: teleport"

    @pytest.mark.asyncio
    async def test_cycle_reported(self, executor, job_store):
        response = await batch_tool(
            "execute", operations=[echo("a", ["b"]), echo("b", ["a"])], executor=executor
        )
        assert response.success is False
        assert response.error == "Circular dependency detected in batch operations"
        assert len(job_store) == 0

    @pytest.mark.asyncio
    async def test_results_and_errors_can_be_stripped(self, executor, job_store):
        response = await batch_tool(
            "execute",
            operations=[echo("a"), failing("b")],
            stop_on_error=False,
            include_results=False,
            include_errors=False,
            executor=executor,
        )

        assert all(r.result is None and r.error is None for r in response.results)
        stored = job_store.get(response.job.id)
        assert stored.operations[0].result == {"name": "a"}
        assert stored.operations[1].error == "b broke"


class TestOtherActions:
    @pytest.mark.asyncio
    async def test_preview(self, executor, call_log):
        response = await batch_tool("preview", operations=[echo("b", ["a"]), echo("a")], mode="parallel",
                                    executor=executor)

        assert response.success is True
        assert response.message == "Preview: 2 operations will be executed in parallel mode"
        assert [r.id for r in response.results] == ["a", "b"]
        assert call_log == []

    @pytest.mark.asyncio
    async def test_status_of_finished_job(self, executor):
        executed = await batch_tool("execute", operations=[echo("a")], executor=executor)
        response = await batch_tool("status", job_id=executed.job.id, executor=executor)

        assert response.success is True
        assert response.message == "Job completed"
        assert response.job.id == executed.job.id

    @pytest.mark.asyncio
    async def test_status_of_unknown_job(self, executor):
        response = await batch_tool("status", job_id="batch_missing", executor=executor)
        assert response.success is False
        assert response.error == "Job not found: batch_missing"

    @pytest.mark.asyncio
    async def test_status_requires_job_id(self, executor):
        response = await batch_tool("status", executor=executor)
        assert response.error == "job_id is required"

    @pytest.mark.asyncio
    async def test_cancel_unknown_or_finished_job(self, executor):
        executed = await batch_tool("execute", operations=[echo("a")], executor=executor)

        for job_id in (executed.job.id, "batch_missing"):
            response = await batch_tool("cancel", job_id=job_id, executor=executor)
            assert response.success is False
            assert response.error == f"Job not found or already completed: {job_id}"

    @pytest.mark.asyncio
    async def test_cancel_running_job(self, executor, job_store):
        from vibe_coding_mcp.batch import Job

        job = Job(id="batch_live", status=JobStatus.RUNNING)
        job_store.start(job)

        response = await batch_tool("cancel", job_id="batch_live", executor=executor)
        assert response.success is True
        assert response.message == "Job batch_live cancellation requested"
        assert job_store.is_cancelled("batch_live")

    @pytest.mark.asyncio
    async def test_history_newest_first_with_limit(self, executor):
        job_ids = []
        for index in range(3):
            executed = await batch_tool("execute", operations=[echo(f"op{index}")], executor=executor)
            job_ids.append(executed.job.id)

        response = await batch_tool("history", limit=2, executor=executor)

        assert response.success is True
        assert response.message == "Found 3 batch jobs"
        assert response.total == 3
        assert [job.id for job in response.jobs] == [job_ids[2], job_ids[1]]

    @pytest.mark.asyncio
    async def test_history_page_size_defaults_to_setting(self, tool_registry, job_store):
        executor = BatchExecutor(tool_registry, job_store, Settings(batch_history_limit=2))
        for index in range(3):
            await batch_tool("execute", operations=[echo(f"op{index}")], executor=executor)

        response = await batch_tool("history", executor=executor)

        assert response.total == 3
        assert len(response.jobs) == 2

    @pytest.mark.asyncio
    async def test_history_status_filter(self, executor):
        await batch_tool("execute", operations=[echo("a")], executor=executor)
        await batch_tool("execute", operations=[failing("b")], executor=executor)

        response = await batch_tool("history", status="failed", executor=executor)
        assert response.total == 1
        assert response.jobs[0].status == JobStatus.FAILED

    @pytest.mark.asyncio
    async def test_history_invalid_status(self, executor):
        response = await batch_tool("history", status="exploded", executor=executor)
        assert response.success is False
        assert response.error == "Invalid status: exploded"

    @pytest.mark.asyncio
    async def test_unknown_action(self, executor):
        response = await batch_tool("explode", executor=executor)
        assert response.success is False
        assert response.action == "explode"
        assert response.error == "Unknown action: explode"


class TestMcpRegistration:
    @pytest.mark.asyncio
    async def test_registered_tool_returns_json_dict(self):
        registered = {}

        class FakeServer:
            def tool(self):
                def decorator(func):
                    registered[func.__name__] = func
                    return func

                return decorator

        register_batch_tools(FakeServer())
        response = await registered["muse_batch"]("history")

        assert response == {"success": True, "action": "history", "message": "Found 0 batch jobs", "jobs": [],
                            "total": 0}
