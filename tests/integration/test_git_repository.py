"""Integration tests for muse_git against a real temporary repository."""

import shutil
import subprocess

import pytest

from vibe_coding_mcp.exceptions import NotAGitRepositoryError
from vibe_coding_mcp.exceptions import ValidationError
from vibe_coding_mcp.tools.git_tools import git_tool

pytestmark = [
    pytest.mark.git,
    pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed"),
]


def run_git(repo, *args):
    return subprocess.run(["git", *args], cwd=repo, check=True, capture_output=True, text=True).stdout


@pytest.fixture
def repo(tmp_path):
    path = tmp_path / "repo"
    path.mkdir()
    run_git(path, "init")
    run_git(path, "symbolic-ref", "HEAD", "refs/heads/main")
    run_git(path, "config", "user.name", "Test User")
    run_git(path, "config", "user.email", "test@example.com")
    run_git(path, "config", "commit.gpgsign", "false")

    (path / "README.md").write_text("# Demo\n")
    run_git(path, "add", "README.md")
    run_git(path, "commit", "-m", "Initial commit")

    (path / "auth.py").write_text("TOKEN_TTL = 3600\n")
    run_git(path, "add", "auth.py")
    run_git(path, "commit", "-m", "refactor: switch to JWT auth", "-m", "because: sessions did not scale")
    return path


class TestGitActions:
    @pytest.mark.asyncio
    async def test_status_detects_changes(self, repo):
        clean = await git_tool("status", repo_path=str(repo))
        assert clean["message"] == "Working tree clean"
        assert clean["status"]["branch"] == "main"

        (repo / "notes.txt").write_text("todo\n")
        (repo / "README.md").write_text("# Demo\n\nMore.\n")
        dirty = await git_tool("status", repo_path=str(repo))

        assert dirty["message"] == "Changes detected"
        assert [f["path"] for f in dirty["status"]["untracked"]] == ["notes.txt"]
        assert [f["path"] for f in dirty["status"]["unstaged"]] == ["README.md"]
        assert dirty["repo_path"] == str(repo.resolve())

    @pytest.mark.asyncio
    async def test_log_with_bodies(self, repo):
        response = await git_tool("log", repo_path=str(repo))

        assert response["message"] == "Found 2 commits"
        latest = response["commits"][0]
        assert latest["message"] == "refactor: switch to JWT auth"
        assert latest["body"] == "because: sessions did not scale"
        assert latest["author"] == "Test User"

    @pytest.mark.asyncio
    async def test_log_limit_validated(self, repo):
        with pytest.raises(ValidationError, match="limit must be between 1 and 500"):
            await git_tool("log", repo_path=str(repo), limit=501)

    @pytest.mark.asyncio
    async def test_diff_against_head(self, repo):
        (repo / "auth.py").write_text("TOKEN_TTL = 3600\nREFRESH_TTL = 86400\n")
        response = await git_tool("diff", repo_path=str(repo))

        assert [f["path"] for f in response["diff"]["files"]] == ["auth.py"]
        assert response["diff"]["total_additions"] == 1
        assert response["message"] == "1 files changed, +1 -0"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["from_ref", "to_ref"])
    async def test_diff_rejects_option_like_refs(self, repo, tmp_path, field):
        target = tmp_path / "written-by-git.txt"
        refs = {"from_ref": "HEAD~1", "to_ref": "HEAD"}
        refs[field] = f"--output={target}"

        with pytest.raises(ValidationError, match=f"Invalid {field}"):
            await git_tool("diff", repo_path=str(repo), **refs)
        assert not target.exists()

    @pytest.mark.asyncio
    async def test_diff_between_refs(self, repo):
        response = await git_tool("diff", repo_path=str(repo), from_ref="HEAD~1", to_ref="HEAD")
        assert [f["path"] for f in response["diff"]["files"]] == ["auth.py"]

    @pytest.mark.asyncio
    async def test_branch(self, repo):
        run_git(repo, "branch", "feature/x")
        response = await git_tool("branch", repo_path=str(repo), include_remote=False)

        assert response["message"] == "Current branch: main"
        assert sorted(b["name"] for b in response["branch"]["local"]) == ["feature/x", "main"]

    @pytest.mark.asyncio
    async def test_snapshot_of_clean_tree(self, repo):
        response = await git_tool("snapshot", repo_path=str(repo), log_limit=1)
        snapshot = response["snapshot"]

        assert snapshot["status"]["is_clean"]
        assert snapshot["current_diff"] is None
        assert len(snapshot["recent_commits"]) == 1
        assert snapshot["repository"]["remote_url"] is None

    @pytest.mark.asyncio
    async def test_extract_decisions(self, repo):
        response = await git_tool("extract_decisions", repo_path=str(repo))

        assert response["message"] == "Extracted 1 design decisions"
        decision = response["decisions"][0]
        assert decision["title"] == "refactor: switch to JWT auth"
        assert decision["category"] == "implementation"
        assert decision["importance"] == "medium"
        assert decision["related_files"] == ["auth.py"]

    @pytest.mark.asyncio
    async def test_link_to_session(self, repo, session_store):
        session = await session_store.save(title="Auth", summary="JWT")
        head = run_git(repo, "rev-parse", "HEAD").strip()

        response = await git_tool("link_to_session", repo_path=str(repo), session_id=session.id, store=session_store)

        assert response["git_context"]["branch"] == "main"
        assert response["git_context"]["commit_hash"] == head
        stored = await session_store.require(session.id)
        assert stored.metadata["git_context"]["is_clean"] is True

    @pytest.mark.asyncio
    async def test_not_a_repository(self, tmp_path):
        plain = tmp_path / "plain"
        plain.mkdir()
        with pytest.raises(NotAGitRepositoryError):
            await git_tool("status", repo_path=str(plain))
