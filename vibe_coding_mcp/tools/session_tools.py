"""Session history, statistics and export tools.

Tools:
- muse_session_history: save, get, update, delete, list, search, stats
- muse_session_stats: overview, languages, tags, timeline, productivity
- muse_export_session: render one session as Markdown (with frontmatter) or JSON
"""

import datetime
import json
from collections import Counter
from collections import defaultdict
from pathlib import Path
from typing import Any

from ..exceptions import SessionNotFoundError
from ..exceptions import ValidationError
from ..helpers import error_response
from ..helpers import parse_date_expression
from ..helpers import require
from ..helpers import utc_now
from ..logger_config import log_mcp_call
from ..models import Session
from ..storage import SessionStore
from ..utils.frontmatter import write_frontmatter

SESSION_HISTORY_ACTIONS = ("save", "get", "update", "delete", "list", "search", "stats")
SESSION_STATS_ACTIONS = ("overview", "languages", "tags", "timeline", "productivity")
PERIODS = ("day", "week", "month", "year", "all")
EXPORT_FORMATS = ("markdown", "json")

_WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def _unknown_action(action: str, allowed: tuple[str, ...]) -> ValidationError:
    return ValidationError(f"Unknown action: {action}", field="action", value=action, details={"allowed": allowed})


# =============================================================================
# muse_session_history
# =============================================================================


async def session_history(
    action: str,
    session_id: str | None = None,
    title: str | None = None,
    summary: str | None = None,
    tags: list[str] | None = None,
    code_contexts: list[dict[str, Any]] | None = None,
    design_decisions: list[dict[str, Any]] | None = None,
    metadata: dict[str, Any] | None = None,
    limit: int | None = None,
    offset: int = 0,
    filter_tags: list[str] | None = None,
    sort_by: str = "updated_at",
    sort_order: str = "desc",
    keyword: str | None = None,
    search_in: list[str] | None = None,
    store: SessionStore | None = None,
) -> dict[str, Any]:
    """Manage stored coding sessions.

    Raises:
        ValidationError: missing required fields or an unknown action
        SessionNotFoundError: get/update/delete of a missing session
    """
    store = store or SessionStore()
    params = {"session_id": session_id, "title": title, "summary": summary, "keyword": keyword}

    if action == "save":
        require(params, "title", "summary", action=action)
        session = await store.save(
            title=title,
            summary=summary,
            tags=tags,
            code_contexts=code_contexts,
            design_decisions=design_decisions,
            metadata=metadata,
        )
        return {
            "success": True,
            "action": action,
            "session": session.model_dump(mode="json"),
            "message": f"Session saved: {session.id}",
        }

    if action == "get":
        require(params, "session_id", action=action)
        session = await store.require(session_id)
        return {
            "success": True,
            "action": action,
            "session": session.model_dump(mode="json"),
            "message": f"Session retrieved: {session.title}",
        }

    if action == "update":
        require(params, "session_id", action=action)
        updates = {
            key: value
            for key, value in {
                "title": title,
                "summary": summary,
                "tags": tags,
                "code_contexts": code_contexts,
                "design_decisions": design_decisions,
                "metadata": metadata,
            }.items()
            if value is not None
        }
        session = await store.update(session_id, updates)
        return {
            "success": True,
            "action": action,
            "session": session.model_dump(mode="json"),
            "message": f"Session updated: {session.id}",
        }

    if action == "delete":
        require(params, "session_id", action=action)
        if not await store.delete(session_id):
            raise SessionNotFoundError(session_id)
        return {"success": True, "action": action, "message": f"Session deleted: {session_id}"}

    if action == "list":
        sessions, total = await store.list(
            limit=limit or 50,
            offset=offset,
            tags=filter_tags,
            sort_by=sort_by,
            sort_order=sort_order,
        )
        return {
            "success": True,
            "action": action,
            "sessions": [s.model_dump(mode="json") for s in sessions],
            "total": total,
            "message": f"Found {total} session(s)",
        }

    if action == "search":
        require(params, "keyword", action=action)
        sessions = await store.search(keyword, limit=limit or 20, search_in=search_in or ("title", "summary", "tags"))
        return {
            "success": True,
            "action": action,
            "sessions": [s.model_dump(mode="json") for s in sessions],
            "total": len(sessions),
            "message": f'Found {len(sessions)} session(s) matching "{keyword}"',
        }

    if action == "stats":
        stats = await store.stats()
        return {
            "success": True,
            "action": action,
            "stats": stats.model_dump(mode="json"),
            "message": f"Storage contains {stats.total_sessions} session(s)",
        }

    raise _unknown_action(action, SESSION_HISTORY_ACTIONS)


# =============================================================================
# muse_session_stats
# =============================================================================


def period_start(period: str, now: datetime.datetime | None = None) -> datetime.datetime:
    """Start of the current calendar period (weeks start on Monday)."""
    now = now or utc_now()
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "day":
        return midnight
    if period == "week":
        return midnight - datetime.timedelta(days=midnight.weekday())
    if period == "month":
        return midnight.replace(day=1)
    if period == "year":
        return midnight.replace(month=1, day=1)
    return datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)


def period_label(date: datetime.datetime, period: str) -> str:
    if period == "day":
        return date.date().isoformat()
    if period == "week":
        return f"Week of {(date.date() - datetime.timedelta(days=date.weekday())).isoformat()}"
    if period == "year":
        return str(date.year)
    return f"{date.year}-{date.month:02d}"


def _language_stats(sessions: list[Session]) -> list[dict[str, Any]]:
    counts: Counter[str] = Counter()
    lines: Counter[str] = Counter()
    for session in sessions:
        for block in session.code_blocks:
            language = block.language or "unknown"
            counts[language] += 1
            lines[language] += len(block.code.split("\n")) if block.code else 0

    total = sum(counts.values())
    return [
        {
            "language": language,
            "count": count,
            "lines_of_code": lines[language],
            "percentage": count / total * 100 if total else 0.0,
        }
        for language, count in counts.most_common()
    ]


def _tag_stats(sessions: list[Session]) -> list[dict[str, Any]]:
    counts: Counter[str] = Counter()
    related: dict[str, Counter[str]] = defaultdict(Counter)
    for session in sessions:
        unique_tags = list(dict.fromkeys(session.tags))
        for tag in unique_tags:
            counts[tag] += 1
            related[tag].update(other for other in unique_tags if other != tag)

    total = sum(counts.values())
    return [
        {
            "tag": tag,
            "count": count,
            "percentage": count / total * 100 if total else 0.0,
            "related_tags": [other for other, _ in related[tag].most_common(3)],
        }
        for tag, count in counts.most_common()
    ]


def _productivity(sessions: list[Session]) -> dict[str, Any]:
    day_counts: Counter[str] = Counter()
    hour_counts: Counter[int] = Counter()
    coding_days = set()
    for session in sessions:
        day_counts[_WEEKDAYS[session.created_at.weekday()]] += 1
        hour_counts[session.created_at.hour] += 1
        coding_days.add(session.created_at.date())

    count = len(sessions)
    total_blocks = sum(len(s.code_blocks) for s in sessions)
    total_decisions = sum(len(s.design_decisions) for s in sessions)
    return {
        "average_sessions_per_day": count / len(coding_days) if coding_days else 0.0,
        "average_code_blocks_per_session": total_blocks / count if count else 0.0,
        "average_decisions_per_session": total_decisions / count if count else 0.0,
        "most_productive_day": day_counts.most_common(1)[0][0] if day_counts else None,
        "most_productive_hour": hour_counts.most_common(1)[0][0] if hour_counts else None,
        "total_coding_days": len(coding_days),
    }


def _productivity_insights(
    languages: list[dict[str, Any]], tags: list[dict[str, Any]], productivity: dict[str, Any]
) -> list[str]:
    insights = []
    if languages:
        top = languages[0]
        insights.append(f"Your primary language is {top['language']} ({top['percentage']:.1f}% of code blocks)")
        if len(languages) > 3:
            insights.append(f"You work with {len(languages)} different languages")
    if productivity["most_productive_day"]:
        insights.append(f"You're most productive on {productivity['most_productive_day']}s")
    hour = productivity["most_productive_hour"]
    if hour is not None:
        part = "morning" if hour < 12 else "afternoon" if hour < 17 else "evening"
        insights.append(f"Peak coding time is in the {part} around {hour}:00 UTC")
    if tags:
        insights.append(f"Most common focus areas: {', '.join(t['tag'] for t in tags[:3])}")
    if productivity["average_decisions_per_session"] > 2:
        insights.append("Design decisions are documented consistently")
    return insights


async def session_stats(
    action: str,
    period: str = "all",
    since: str | None = None,
    until: str | None = None,
    tags: list[str] | None = None,
    languages: list[str] | None = None,
    include_insights: bool = True,
    store: SessionStore | None = None,
) -> dict[str, Any]:
    """Aggregate statistics over sessions created in a date range.

    The range is ``since``..``until`` when given (ISO dates or expressions like
    ``"2 weeks ago"``), otherwise the current ``period``.
    """
    if action not in SESSION_STATS_ACTIONS:
        raise _unknown_action(action, SESSION_STATS_ACTIONS)
    if period not in PERIODS:
        raise ValidationError(f"period must be one of {', '.join(PERIODS)}", field="period", value=period)

    store = store or SessionStore()
    start = parse_date_expression(since) if since else period_start(period)
    end = parse_date_expression(until) if until else utc_now()

    sessions = [s for s in await store.all() if start <= s.created_at <= end]
    if tags:
        sessions = [s for s in sessions if any(tag in s.tags for tag in tags)]

    response: dict[str, Any] = {
        "success": True,
        "action": action,
        "period": period,
        "date_range": {"from": start.isoformat(), "to": end.isoformat()},
        "generated_at": utc_now().isoformat(),
    }

    if action == "overview":
        count = len(sessions)
        total_blocks = sum(len(s.code_blocks) for s in sessions)
        total_decisions = sum(len(s.design_decisions) for s in sessions)
        all_languages = {b.language for s in sessions for b in s.code_blocks if b.language}
        all_tags = {tag for s in sessions for tag in s.tags}
        response["overview"] = {
            "total_sessions": count,
            "total_code_blocks": total_blocks,
            "total_design_decisions": total_decisions,
            "total_languages": len(all_languages),
            "total_tags": len(all_tags),
            "averages": {
                "code_blocks_per_session": total_blocks / count if count else 0.0,
                "decisions_per_session": total_decisions / count if count else 0.0,
                "tags_per_session": sum(len(s.tags) for s in sessions) / count if count else 0.0,
            },
        }
        response["message"] = f"{count} session(s) in range"

    elif action == "languages":
        stats = _language_stats(sessions)
        if languages:
            stats = [entry for entry in stats if entry["language"] in languages]
        response["languages"] = stats
        if include_insights:
            response["insights"] = [
                f"Top language: {stats[0]['language']} with {stats[0]['count']} code blocks"
                if stats
                else "No code blocks found",
                f"Total lines of code: {sum(entry['lines_of_code'] for entry in stats)}",
            ]
        response["message"] = f"Found {len(stats)} language(s)"

    elif action == "tags":
        response["tags"] = _tag_stats(sessions)
        response["message"] = f"Found {len(response['tags'])} tag(s)"

    elif action == "timeline":
        bucket_period = "month" if period == "all" else period
        buckets: dict[str, dict[str, int]] = defaultdict(lambda: {"sessions": 0, "code_blocks": 0, "decisions": 0})
        for session in sessions:
            bucket = buckets[period_label(session.created_at, bucket_period)]
            bucket["sessions"] += 1
            bucket["code_blocks"] += len(session.code_blocks)
            bucket["decisions"] += len(session.design_decisions)
        response["timeline"] = [
            {
                "period": label,
                "session_count": values["sessions"],
                "code_block_count": values["code_blocks"],
                "decision_count": values["decisions"],
            }
            for label, values in sorted(buckets.items())
        ]
        response["message"] = f"Timeline has {len(buckets)} period(s)"

    else:
        productivity = _productivity(sessions)
        response["productivity"] = productivity
        if include_insights:
            response["insights"] = _productivity_insights(
                _language_stats(sessions), _tag_stats(sessions), productivity
            )
        response["message"] = f"Productivity across {productivity['total_coding_days']} coding day(s)"

    return response


# =============================================================================
# muse_export_session
# =============================================================================


def session_to_markdown(session: Session, include_code: bool = True, include_decisions: bool = True) -> str:
    """Render a session as Markdown with a YAML frontmatter header."""
    lines = [f"# {session.title}", "", "## Summary", "", session.summary, ""]

    if include_code and session.code_contexts:
        lines += ["## Code Contexts", ""]
        for index, context in enumerate(session.code_contexts, start=1):
            lines += [f"### Context {index} ({context.timestamp.isoformat()})", ""]
            if context.conversation_summary:
                lines += [context.conversation_summary, ""]
            for block in context.code_blocks:
                if block.filename:
                    lines.append(f"**{block.filename}**")
                    lines.append("")
                lines += [f"```{block.language}", block.code.rstrip("\n"), "```", ""]

    if include_decisions and session.design_decisions:
        lines += ["## Design Decisions", ""]
        for decision in session.design_decisions:
            lines += [f"### {decision.title}", ""]
            if decision.description:
                lines += [decision.description, ""]
            if decision.rationale:
                lines += [f"**Rationale**: {decision.rationale}", ""]
            lines += [f"**Category**: {decision.category}", ""]

    metadata = {
        "id": session.id,
        "title": session.title,
        "tags": session.tags,
        "created_at": session.created_at.isoformat(),
        "updated_at": session.updated_at.isoformat(),
    }
    return write_frontmatter("\n".join(lines), metadata)


async def export_session(
    session_id: str | None = None,
    format: str = "markdown",
    output_path: str | None = None,
    include_code: bool = True,
    include_decisions: bool = True,
    store: SessionStore | None = None,
) -> dict[str, Any]:
    """Export one session, optionally writing the result to ``output_path``."""
    require({"session_id": session_id}, "session_id", action="export")
    if format not in EXPORT_FORMATS:
        raise ValidationError(f"format must be one of {', '.join(EXPORT_FORMATS)}", field="format", value=format)

    store = store or SessionStore()
    session = await store.require(session_id)

    if format == "json":
        data = session.model_dump(mode="json")
        if not include_code:
            data.pop("code_contexts")
        if not include_decisions:
            data.pop("design_decisions")
        content = json.dumps(data, indent=2, ensure_ascii=False)
    else:
        content = session_to_markdown(session, include_code=include_code, include_decisions=include_decisions)

    response: dict[str, Any] = {
        "success": True,
        "action": "export",
        "session_id": session.id,
        "format": format,
        "content": content,
        "message": f"Session exported as {format}",
    }
    if output_path:
        path = Path(output_path).expanduser().resolve()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        response["output_path"] = str(path)
        response["message"] = f"Session exported to {path}"
    return response


# =============================================================================
# MCP registration
# =============================================================================


def register_session_tools(mcp_server):
    """Register all session-related tools with the MCP server."""

    @mcp_server.tool()
    @log_mcp_call
    async def muse_session_history(
        action: str,
        session_id: str | None = None,
        title: str | None = None,
        summary: str | None = None,
        tags: list[str] | None = None,
        code_contexts: list[dict[str, Any]] | None = None,
        design_decisions: list[dict[str, Any]] | None = None,
        metadata: dict[str, Any] | None = None,
        limit: int | None = None,
        offset: int = 0,
        filter_tags: list[str] | None = None,
        sort_by: str = "updated_at",
        sort_order: str = "desc",
        keyword: str | None = None,
        search_in: list[str] | None = None,
    ) -> dict[str, Any]:
        """Manage vibe coding session history.

        Actions:
            save: create a session (requires title and summary)
            get / update / delete: operate on one session (requires session_id)
            list: page through sessions (limit, offset, filter_tags, sort_by, sort_order)
            search: keyword search over title, summary and tags (requires keyword)
            stats: storage statistics

        Each code context is ``{"timestamp", "code_blocks": [{"language", "code", "filename"}],
        "conversation_summary"}``; each design decision is ``{"title", "description",
        "rationale", "category"}``.

        Returns:
            Dict with success, action, message and the action's payload
            (session, sessions/total or stats), or success=False and error.
        """
        try:
            return await session_history(
                action,
                session_id=session_id,
                title=title,
                summary=summary,
                tags=tags,
                code_contexts=code_contexts,
                design_decisions=design_decisions,
                metadata=metadata,
                limit=limit,
                offset=offset,
                filter_tags=filter_tags,
                sort_by=sort_by,
                sort_order=sort_order,
                keyword=keyword,
                search_in=search_in,
            )
        except Exception as e:
            return error_response(action, e)

    @mcp_server.tool()
    @log_mcp_call
    async def muse_session_stats(
        action: str,
        period: str = "all",
        since: str | None = None,
        until: str | None = None,
        tags: list[str] | None = None,
        languages: list[str] | None = None,
        include_insights: bool = True,
    ) -> dict[str, Any]:
        """Analytics over stored sessions.

        Actions: overview, languages, tags, timeline, productivity.
        Sessions are filtered by ``period`` (day, week, month, year, all) or by
        ``since``/``until`` (ISO date or "N days/weeks/months/years ago"), and
        optionally by ``tags``.
        """
        try:
            return await session_stats(
                action,
                period=period,
                since=since,
                until=until,
                tags=tags,
                languages=languages,
                include_insights=include_insights,
            )
        except Exception as e:
            return error_response(action, e)

    @mcp_server.tool()
    @log_mcp_call
    async def muse_export_session(
        session_id: str,
        format: str = "markdown",
        output_path: str | None = None,
        include_code: bool = True,
        include_decisions: bool = True,
    ) -> dict[str, Any]:
        """Export a session as Markdown (with YAML frontmatter) or JSON.

        When ``output_path`` is given the export is also written to that file.
        """
        try:
            return await export_session(
                session_id=session_id,
                format=format,
                output_path=output_path,
                include_code=include_code,
                include_decisions=include_decisions,
            )
        except Exception as e:
            return error_response("export", e)

