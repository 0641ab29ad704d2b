"""Parsers for git command output, plus commit classification heuristics.

Every parser is a pure function over captured stdout so it can be tested
without a repository.
"""

import re

from ..models import BranchInfo
from ..models import DiffFileStat
from ..models import GitCommit
from ..models import GitDiff
from ..models import GitFileStatus
from ..models import GitStatus
from ..models import StashEntry

LOG_FORMAT_ONELINE = "%H|%h|%an|%ae|%aI|%s"
LOG_FORMAT_FULL = "%H|%h|%an|%ae|%aI|%s|%b|END_COMMIT"
BRANCH_FORMAT = "%(refname:short)|%(objectname:short)|%(upstream:short)|%(upstream:track,nobracket)"

_STATUS_CODES = {
    "M": "modified",
    "A": "added",
    "D": "deleted",
    "R": "renamed",
    "C": "copied",
    "U": "unmerged",
}


def _map_status_code(code: str) -> str:
    return _STATUS_CODES.get(code, "modified")


def parse_status_porcelain_v2(output: str) -> GitStatus:
    """Parse ``git status --porcelain=v2 --branch``."""
    status = GitStatus()

    for line in filter(None, output.split("\n")):
        if line.startswith("# branch.oid"):
            continue
        if line.startswith("# branch.head"):
            parts = line.split(" ")
            status.branch = parts[2] if len(parts) > 2 else "HEAD"
            continue
        if line.startswith("# branch.upstream"):
            parts = line.split(" ")
            status.upstream = parts[2] if len(parts) > 2 else None
            continue
        if line.startswith("# branch.ab"):
            match = re.search(r"\+(\d+) -(\d+)", line)
            if match:
                status.ahead = int(match.group(1))
                status.behind = int(match.group(2))
            continue

        if line.startswith("?"):
            status.untracked.append(GitFileStatus(path=line[2:], status="untracked"))
        elif line.startswith("!"):
            continue
        elif line.startswith(("1 ", "2 ")):
            # "1 XY sub mH mI mW hH hI path" or "2 XY sub mH mI mW hH hI Xscore path\torigPath"
            old_path = None
            if line.startswith("2"):
                head, _, old_path = line.partition("\t")
                fields = head.split(" ", 9)
            else:
                fields = line.split(" ", 8)
            xy, path = fields[1], fields[-1]

            if xy[0] != ".":
                status.staged.append(
                    GitFileStatus(path=path, status=_map_status_code(xy[0]), staged=True, old_path=old_path)
                )
            if xy[1] != ".":
                status.unstaged.append(GitFileStatus(path=path, status=_map_status_code(xy[1])))
        elif line.startswith("u "):
            path = line.split(" ", 10)[-1]
            status.conflicts.append(GitFileStatus(path=path, status="unmerged"))

    return status


def parse_log_output(output: str, include_body: bool = False) -> list[GitCommit]:
    """Parse ``git log`` produced with ``LOG_FORMAT_ONELINE`` or ``LOG_FORMAT_FULL``.

    In full format the subject and body are followed by ``END_COMMIT``.
    """
    if not output.strip():
        return []

    separator = "END_COMMIT\n" if include_body else "\n"
    if include_body and not output.endswith("\n"):
        output += "\n"

    commits = []
    for entry in output.split(separator):
        entry = entry.strip()
        if include_body and entry.endswith("|"):
            entry = entry[:-1]
        if not entry:
            continue
        lines = entry.split("\n")
        parts = lines[0].split("|")
        if len(parts) < 6:
            continue

        if include_body:
            # First line: hash|short|author|email|date|subject|<first body line>
            message = parts[5]
            body = "\n".join(["|".join(parts[6:])] + lines[1:]).strip()
        else:
            message = "|".join(parts[5:])
            body = ""

        commits.append(
            GitCommit(
                hash=parts[0],
                short_hash=parts[1],
                author=parts[2],
                author_email=parts[3],
                date=parts[4],
                message=message,
                body=body or None,
            )
        )
    return commits


_DIFF_STAT_LINE = re.compile(r"^\s*(.+?)\s*\|\s*(\d+|Bin)")
_DIFF_SUMMARY = re.compile(r"(\d+) files? changed(?:, (\d+) insertions?\(\+\))?(?:, (\d+) deletions?\(-\))?")


def parse_diff_stat(output: str) -> GitDiff:
    """Parse ``git diff --stat``; the summary line's totals win when present."""
    diff = GitDiff()

    for line in output.split("\n"):
        match = _DIFF_STAT_LINE.match(line)
        if match:
            binary = match.group(2) == "Bin"
            graph = line[match.end() :]
            additions = 0 if binary else graph.count("+")
            deletions = 0 if binary else graph.count("-")
            diff.files.append(
                DiffFileStat(path=match.group(1).strip(), additions=additions, deletions=deletions, binary=binary)
            )
            diff.total_additions += additions
            diff.total_deletions += deletions
            continue

        summary = _DIFF_SUMMARY.search(line)
        if summary:
            diff.total_additions = int(summary.group(2) or 0)
            diff.total_deletions = int(summary.group(3) or 0)

    return diff


def parse_branch_output(output: str, current_branch: str) -> list[BranchInfo]:
    """Parse ``git branch --format=BRANCH_FORMAT``."""
    branches = []
    for line in output.split("\n"):
        if not line.strip():
            continue
        parts = line.split("|")
        if len(parts) < 2:
            continue

        name = parts[0].strip()
        track = parts[3].strip() if len(parts) > 3 else ""
        ahead = re.search(r"ahead (\d+)", track)
        behind = re.search(r"behind (\d+)", track)
        branches.append(
            BranchInfo(
                name=name,
                current=name == current_branch,
                upstream=(parts[2].strip() or None) if len(parts) > 2 else None,
                ahead=int(ahead.group(1)) if ahead else None,
                behind=int(behind.group(1)) if behind else None,
                last_commit=parts[1].strip() or None,
            )
        )
    return branches


def parse_stash_list(output: str) -> list[StashEntry]:
    """Parse ``git stash list --format=%gd|%s|%ci``."""
    stashes = []
    for line in output.split("\n"):
        parts = line.split("|")
        if len(parts) < 3:
            continue
        match = re.search(r"stash@\{(\d+)\}", parts[0])
        if match:
            stashes.append(StashEntry(index=int(match.group(1)), message=parts[1], date=parts[2]))
    return stashes


# --- Commit classification ---

_HANGUL = re.compile(r"[가-힣]")

_CATEGORY_PATTERNS = {
    "architecture": {
        "en": re.compile(r"architecture|system design|infrastructure|microservice|monolith", re.IGNORECASE),
        "ko": re.compile(r"아키텍처|시스템 설계|인프라|마이크로서비스"),
    },
    "library": {
        "en": re.compile(r"library|package|dependency|npm|pip|framework|sdk", re.IGNORECASE),
        "ko": re.compile(r"라이브러리|패키지|의존성|프레임워크"),
    },
    "pattern": {
        "en": re.compile(r"pattern|design pattern|singleton|factory|observer|mvc|mvvm", re.IGNORECASE),
        "ko": re.compile(r"패턴|디자인 패턴|싱글톤|팩토리"),
    },
    "implementation": {
        "en": re.compile(r"implement|feature|refactor|fix|optimize|improve", re.IGNORECASE),
        "ko": re.compile(r"구현|기능|리팩토링|수정|최적화|개선"),
    },
}

_HIGH_IMPORTANCE = re.compile(r"breaking|major|critical|important|architecture|migrate|security", re.IGNORECASE)
_MEDIUM_IMPORTANCE = re.compile(r"refactor|redesign|feature|implement|add|update", re.IGNORECASE)


def detect_language(text: str) -> str:
    """``"ko"`` when the text contains Hangul, otherwise ``"en"``."""
    return "ko" if _HANGUL.search(text) else "en"


def infer_category(text: str, language: str = "en") -> str:
    for category, patterns in _CATEGORY_PATTERNS.items():
        if patterns.get(language, patterns["en"]).search(text):
            return category
    return "other"


def calculate_commit_importance(full_message: str) -> str:
    if _HIGH_IMPORTANCE.search(full_message):
        return "high"
    if _MEDIUM_IMPORTANCE.search(full_message):
        return "medium"
    return "low"
