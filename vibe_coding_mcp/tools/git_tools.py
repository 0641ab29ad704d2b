"""Git repository context for coding sessions.

Every action validates ``repo_path`` first and runs git through
``exec_git``; parsing lives in ``utils.git_parsers``.
"""

import logging
import re
import time
from typing import Any

from ..exceptions import GitCommandError
from ..exceptions import ValidationError
from ..helpers import error_response
from ..helpers import iso_now
from ..helpers import require
from ..logger_config import log_mcp_call
from ..models import GitCommit
from ..models import GitDecision
from ..models import GitDiff
from ..storage import SessionStore
from ..utils.git_executor import exec_git
from ..utils.git_executor import get_remote_url
from ..utils.git_executor import validate_repo_path
from ..utils.git_parsers import BRANCH_FORMAT
from ..utils.git_parsers import LOG_FORMAT_FULL
from ..utils.git_parsers import LOG_FORMAT_ONELINE
from ..utils.git_parsers import calculate_commit_importance
from ..utils.git_parsers import detect_language
from ..utils.git_parsers import infer_category
from ..utils.git_parsers import parse_branch_output
from ..utils.git_parsers import parse_diff_stat
from ..utils.git_parsers import parse_log_output
from ..utils.git_parsers import parse_stash_list
from ..utils.git_parsers import parse_status_porcelain_v2

logger = logging.getLogger(__name__)

GIT_ACTIONS = ("status", "log", "diff", "branch", "snapshot", "extract_decisions", "link_to_session")
DIFF_TYPES = ("all", "staged", "unstaged")
SNAPSHOT_TYPES = ("minimal", "full")
MAX_LOG_LIMIT = 500
MAX_RELATED_FILES = 10

DECISION_PATTERNS = [
    re.compile(r"(?:refactor|redesign|migrate|switch(?:ed)? to|implement|introduce)", re.IGNORECASE),
    re.compile(r"(?:architecture|design decision|tech debt)", re.IGNORECASE),
    re.compile(r"(?:breaking change|major change)", re.IGNORECASE),
    re.compile(r"\b(?:why|because|reason|rationale):", re.IGNORECASE),
    re.compile(r"feat:|fix:|refactor:|perf:|BREAKING CHANGE", re.IGNORECASE),
    re.compile(r"(?:리팩토링|재설계|마이그레이션|전환|도입)"),
    re.compile(r"(?:아키텍처|설계 결정|기술 부채)"),
    re.compile(r"(?:이유|배경|근거):"),
]


def _check(result, command: str, args: list[str], allowed: tuple[int, ...] = (0,)) -> None:
    if result.exit_code not in allowed:
        raise GitCommandError(f"Git {command} failed: {result.stderr.strip()}", args=args, stderr=result.stderr)


def _validate_ref(field: str, ref: str | None) -> None:
    # A leading dash would be parsed by git as an option, not a revision
    if ref is not None and ref.startswith("-"):
        raise ValidationError(f"Invalid {field}: refs must not start with '-'", field=field, value=ref)


async def get_status(repo_path: str, include_untracked: bool = True) -> dict[str, Any]:
    args = ["status", "--porcelain=v2", "--branch"]
    args.append("--untracked-files=all" if include_untracked else "--untracked-files=no")
    result = await exec_git(args, cwd=repo_path)
    _check(result, "status", args)

    status = parse_status_porcelain_v2(result.stdout)
    return {
        **status.model_dump(),
        "is_clean": status.is_clean,
        "is_detached": status.branch == "(detached)",
    }


async def get_log(
    repo_path: str,
    limit: int = 20,
    author: str | None = None,
    since: str | None = None,
    until: str | None = None,
    grep: str | None = None,
    oneline: bool = False,
    path: str | None = None,
) -> list[GitCommit]:
    if limit < 1 or limit > MAX_LOG_LIMIT:
        raise ValidationError(f"limit must be between 1 and {MAX_LOG_LIMIT}", field="limit", value=limit)

    log_format = LOG_FORMAT_ONELINE if oneline else LOG_FORMAT_FULL
    args = ["log", f"--format={log_format}", f"-n{limit}", "--no-merges"]
    if author:
        args.append(f"--author={author}")
    if since:
        args.append(f"--since={since}")
    if until:
        args.append(f"--until={until}")
    if grep:
        args.extend([f"--grep={grep}", "-i"])
    if path:
        args.extend(["--", path])

    result = await exec_git(args, cwd=repo_path)
    # A repository without commits has nothing to log
    if not result.ok and "does not have any commits" in result.stderr:
        return []
    _check(result, "log", args)
    return parse_log_output(result.stdout, include_body=not oneline)


async def get_diff(
    repo_path: str,
    diff_type: str = "all",
    from_ref: str | None = None,
    to_ref: str | None = None,
    path: str | None = None,
    context_lines: int = 3,
    stat: bool = True,
) -> GitDiff:
    if diff_type not in DIFF_TYPES:
        raise ValidationError(f"Invalid diff_type: {diff_type}", field="diff_type", value=diff_type)
    _validate_ref("from_ref", from_ref)
    _validate_ref("to_ref", to_ref)

    args = ["diff"]
    if from_ref and to_ref:
        args.extend([from_ref, to_ref])
    elif from_ref:
        args.append(from_ref)
    elif diff_type == "staged":
        args.append("--cached")
    elif diff_type == "all":
        args.append("HEAD")
    args.append(f"-U{context_lines}")
    if stat:
        args.append("--stat")
    if path:
        args.extend(["--", path])

    result = await exec_git(args, cwd=repo_path)
    # Exit code 1 only signals that differences exist
    _check(result, "diff", args, allowed=(0, 1))

    diff = parse_diff_stat(result.stdout) if stat else GitDiff()
    if not stat:
        diff.patch = result.stdout
    return diff


async def get_branches(repo_path: str, include_remote: bool = True) -> dict[str, Any]:
    current_result = await exec_git(["branch", "--show-current"], cwd=repo_path)
    current = current_result.stdout.strip() or "HEAD"
    is_detached = current == "HEAD"

    local_result = await exec_git(["branch", f"--format={BRANCH_FORMAT}"], cwd=repo_path)
    local = parse_branch_output(local_result.stdout, current)

    remote = []
    if include_remote:
        remote_result = await exec_git(["branch", "-r", "--format=%(refname:short)|%(objectname:short)"], cwd=repo_path)
        if remote_result.ok:
            for line in filter(str.strip, remote_result.stdout.split("\n")):
                name, _, last_commit = line.partition("|")
                remote.append({"name": name.strip(), "last_commit": last_commit.strip() or None})

    return {
        "current": "HEAD (detached)" if is_detached else current,
        "is_detached": is_detached,
        "local": [b.model_dump() for b in local],
        "remote": remote,
    }


async def capture_snapshot(
    repo_path: str,
    include_diff: bool = True,
    include_log: bool = True,
    log_limit: int = 10,
    include_stash: bool = False,
) -> dict[str, Any]:
    """Collect status, branches and optionally log, diff and stashes in one payload."""
    remote_url = await get_remote_url(repo_path)
    status = await get_status(repo_path, include_untracked=True)
    branch = await get_branches(repo_path, include_remote=True)

    snapshot: dict[str, Any] = {
        "timestamp": iso_now(),
        "repository": {"path": repo_path, "remote_url": remote_url},
        "status": status,
        "branch": branch,
        "recent_commits": None,
        "current_diff": None,
        "stashes": None,
    }
    if include_log:
        snapshot["recent_commits"] = [c.model_dump() for c in await get_log(repo_path, limit=log_limit)]
    if include_diff and not status["is_clean"]:
        snapshot["current_diff"] = (await get_diff(repo_path, diff_type="all")).model_dump()
    if include_stash:
        stash_result = await exec_git(["stash", "list", "--format=%gd|%s|%ci"], cwd=repo_path)
        if stash_result.ok and stash_result.stdout.strip():
            snapshot["stashes"] = [s.model_dump() for s in parse_stash_list(stash_result.stdout)]
    return snapshot


async def _related_files(repo_path: str, commit_hash: str) -> list[str]:
    result = await exec_git(["diff-tree", "--no-commit-id", "--name-only", "-r", commit_hash], cwd=repo_path)
    if not result.ok:
        return []
    return [f for f in result.stdout.split("\n") if f.strip()][:MAX_RELATED_FILES]


async def extract_decisions(
    repo_path: str,
    limit: int = 50,
    since: str | None = None,
    author: str | None = None,
    path: str | None = None,
    patterns: list[str] | None = None,
    language: str = "auto",
) -> list[GitDecision]:
    """Find commits whose messages look like design decisions."""
    if patterns:
        try:
            compiled = [re.compile(p, re.IGNORECASE) for p in patterns]
        except re.error as e:
            raise ValidationError(f"Invalid pattern: {e}", field="patterns") from e
    else:
        compiled = DECISION_PATTERNS

    decisions = []
    for commit in await get_log(repo_path, limit=limit, since=since, author=author, path=path):
        full_message = f"{commit.message}\n{commit.body or ''}"
        if not any(p.search(full_message) for p in compiled):
            continue
        lang = detect_language(full_message) if language == "auto" else language
        decisions.append(
            GitDecision(
                commit_hash=commit.hash,
                short_hash=commit.short_hash,
                date=commit.date,
                author=commit.author,
                title=commit.message.split("\n")[0],
                description=commit.body or commit.message,
                category=infer_category(full_message, lang),
                importance=calculate_commit_importance(full_message),
                related_files=await _related_files(repo_path, commit.hash),
            )
        )
    return decisions


async def link_to_session(
    session_id: str,
    repo_path: str,
    snapshot_type: str = "minimal",
    store: SessionStore | None = None,
) -> dict[str, Any]:
    """Store git context under ``metadata["git_context"]`` of a session."""
    if snapshot_type not in SNAPSHOT_TYPES:
        raise ValidationError(f"Invalid snapshot_type: {snapshot_type}", field="snapshot_type", value=snapshot_type)
    store = store or SessionStore()
    session = await store.require(session_id)

    full = snapshot_type == "full"
    snapshot = await capture_snapshot(repo_path, include_diff=full, include_log=True, log_limit=10 if full else 1)
    if full:
        git_context = snapshot
    else:
        status = snapshot["status"]
        commits = snapshot["recent_commits"] or []
        git_context = {
            "linked_at": iso_now(),
            "repository": snapshot["repository"],
            "branch": snapshot["branch"]["current"],
            "commit_hash": commits[0]["hash"] if commits else None,
            "is_clean": status["is_clean"],
            "modified_count": len(status["staged"]) + len(status["unstaged"]),
        }

    await store.update(session_id, {"metadata": {**session.metadata, "git_context": git_context}})
    logger.info("Linked %s git context of %s to session %s", snapshot_type, repo_path, session_id)
    return git_context


async def git_tool(
    action: str,
    repo_path: str | None = None,
    include_untracked: bool = True,
    limit: int | None = None,
    author: str | None = None,
    since: str | None = None,
    until: str | None = None,
    grep: str | None = None,
    oneline: bool = False,
    path: str | None = None,
    diff_type: str = "all",
    from_ref: str | None = None,
    to_ref: str | None = None,
    context_lines: int = 3,
    stat: bool = True,
    include_remote: bool = True,
    include_diff: bool = True,
    include_log: bool = True,
    log_limit: int = 10,
    include_stash: bool = False,
    patterns: list[str] | None = None,
    language: str = "auto",
    session_id: str | None = None,
    snapshot_type: str = "minimal",
    store: SessionStore | None = None,
) -> dict[str, Any]:
    """Run one git action against ``repo_path`` (default: working directory)."""
    if action not in GIT_ACTIONS:
        raise ValidationError(f"Unknown action: {action}", field="action", value=action)

    started = time.monotonic()
    resolved = await validate_repo_path(repo_path)
    logger.debug("Git %s requested for %s", action, resolved)

    def respond(**payload) -> dict[str, Any]:
        return {
            "success": True,
            "action": action,
            "repo_path": resolved,
            "execution_time_ms": round((time.monotonic() - started) * 1000, 2),
            **payload,
        }

    if action == "status":
        status = await get_status(resolved, include_untracked)
        return respond(status=status, message="Working tree clean" if status["is_clean"] else "Changes detected")

    if action == "log":
        commits = await get_log(
            resolved,
            limit=limit or 20,
            author=author,
            since=since,
            until=until,
            grep=grep,
            oneline=oneline,
            path=path,
        )
        return respond(commits=[c.model_dump() for c in commits], message=f"Found {len(commits)} commits")

    if action == "diff":
        diff = await get_diff(
            resolved,
            diff_type=diff_type,
            from_ref=from_ref,
            to_ref=to_ref,
            path=path,
            context_lines=context_lines,
            stat=stat,
        )
        return respond(
            diff=diff.model_dump(),
            message=f"{len(diff.files)} files changed, +{diff.total_additions} -{diff.total_deletions}",
        )

    if action == "branch":
        branch = await get_branches(resolved, include_remote)
        return respond(branch=branch, message=f"Current branch: {branch['current']}")

    if action == "snapshot":
        snapshot = await capture_snapshot(
            resolved,
            include_diff=include_diff,
            include_log=include_log,
            log_limit=log_limit,
            include_stash=include_stash,
        )
        return respond(snapshot=snapshot, message=f"Snapshot captured for {snapshot['branch']['current']}")

    if action == "extract_decisions":
        decisions = await extract_decisions(
            resolved,
            limit=limit or 50,
            since=since,
            author=author,
            path=path,
            patterns=patterns,
            language=language,
        )
        return respond(
            decisions=[d.model_dump() for d in decisions],
            message=f"Extracted {len(decisions)} design decisions",
        )

    require({"session_id": session_id}, "session_id", action=action)
    git_context = await link_to_session(session_id, resolved, snapshot_type, store=store)
    return respond(
        linked_session_id=session_id,
        git_context=git_context,
        message=f"Git context linked to session {session_id}",
    )


def register_git_tools(mcp_server):
    """Register the git integration tool with the MCP server."""

    @mcp_server.tool()
    @log_mcp_call
    async def muse_git(
        action: str,
        repo_path: str | None = None,
        include_untracked: bool = True,
        limit: int | None = None,
        author: str | None = None,
        since: str | None = None,
        until: str | None = None,
        grep: str | None = None,
        oneline: bool = False,
        path: str | None = None,
        diff_type: str = "all",
        from_ref: str | None = None,
        to_ref: str | None = None,
        context_lines: int = 3,
        stat: bool = True,
        include_remote: bool = True,
        include_diff: bool = True,
        include_log: bool = True,
        log_limit: int = 10,
        include_stash: bool = False,
        patterns: list[str] | None = None,
        language: str = "auto",
        session_id: str | None = None,
        snapshot_type: str = "minimal",
    ) -> dict[str, Any]:
        """Git integration for coding sessions.

        Actions:
            status: working tree state (staged, unstaged, untracked, conflicts)
            log: commit history filtered by author, since, until, grep or path
            diff: change statistics (diff_type all|staged|unstaged, or from_ref/to_ref)
            branch: current, local and remote branches
            snapshot: status, branches, recent commits, diff and stashes together
            extract_decisions: commits whose messages record design decisions
            link_to_session: store minimal or full git context in a session
        """
        try:
            return await git_tool(
                action,
                repo_path=repo_path,
                include_untracked=include_untracked,
                limit=limit,
                author=author,
                since=since,
                until=until,
                grep=grep,
                oneline=oneline,
                path=path,
                diff_type=diff_type,
                from_ref=from_ref,
                to_ref=to_ref,
                context_lines=context_lines,
                stat=stat,
                include_remote=include_remote,
                include_diff=include_diff,
                include_log=include_log,
                log_limit=log_limit,
                include_stash=include_stash,
                patterns=patterns,
                language=language,
                session_id=session_id,
                snapshot_type=snapshot_type,
            )
        except Exception as e:
            return error_response(action, e)
