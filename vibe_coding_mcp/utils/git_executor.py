"""Run git as a subprocess without a shell.

Arguments are passed straight to ``git``, so user-provided refs and paths are
never interpreted by a shell. Callers still have to keep user values from
being read as git options (refs starting with "-", paths placed before "--").
Prompts are disabled so a command needing credentials fails instead of
hanging.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from ..config import get_settings
from ..exceptions import GitCommandError
from ..exceptions import NotAGitRepositoryError

logger = logging.getLogger(__name__)


@dataclass
class GitExecResult:
    stdout: str
    stderr: str
    exit_code: int

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


async def exec_git(args: list[str], cwd: str | Path | None = None, timeout: float | None = None) -> GitExecResult:
    """Run ``git <args>`` in ``cwd`` and capture its output.

    A non-zero exit code is returned, not raised; callers decide which codes
    are errors.

    Raises:
        GitCommandError: git is missing or the command exceeded its timeout
    """
    timeout = timeout if timeout is not None else get_settings().git_timeout_seconds
    env = {**os.environ, "GIT_TERMINAL_PROMPT": "0", "LC_ALL": "C.UTF-8"}

    try:
        proc = await asyncio.create_subprocess_exec(
            "git",
            *args,
            cwd=str(cwd) if cwd else None,
            env=env,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise GitCommandError("Git is not installed or not in PATH.", args=args) from e

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        raise GitCommandError(f"git {args[0]} timed out after {timeout:g}s", args=args) from None

    result = GitExecResult(
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
        exit_code=proc.returncode if proc.returncode is not None else 0,
    )
    logger.debug("git %s exited with %d", " ".join(args), result.exit_code)
    return result


async def is_git_repository(repo_path: str | Path) -> bool:
    try:
        result = await exec_git(["rev-parse", "--git-dir"], cwd=repo_path)
    except (GitCommandError, OSError):
        return False
    return result.ok


async def get_remote_url(repo_path: str | Path) -> str | None:
    result = await exec_git(["remote", "get-url", "origin"], cwd=repo_path)
    return result.stdout.strip() if result.ok else None


async def validate_repo_path(input_path: str | None = None) -> str:
    """Resolve ``input_path`` (default: the working directory) to a git repository.

    Raises:
        NotAGitRepositoryError: if the path is not inside a git work tree
    """
    repo_path = str(Path(input_path).expanduser().resolve()) if input_path else os.getcwd()
    if not Path(repo_path).is_dir() or not await is_git_repository(repo_path):
        raise NotAGitRepositoryError(repo_path)
    return repo_path
