"""Document template tool.

Templates hold ``{{name}}``, ``${name}`` or ``{name}`` placeholders. Values
come from the caller's data, then from variable defaults, then from the
built-in date variables; anything still unresolved is left untouched.
"""

import datetime
import json
import re
import time
from pathlib import Path
from typing import Any

from ..exceptions import ValidationError
from ..helpers import error_response
from ..helpers import require
from ..logger_config import log_mcp_call
from ..models import Template
from ..models import TemplateVariable
from ..storage import TemplateStore

TEMPLATE_ACTIONS = ("create", "get", "update", "delete", "list", "preview", "apply", "export", "import")
EXPORT_FORMATS = ("json", "yaml")

# Applied in order; "{{x}}" is consumed before the bare "{x}" form sees it
PLACEHOLDER_PATTERNS = (
    re.compile(r"\{\{(\w+)\}\}"),
    re.compile(r"\$\{(\w+)\}"),
    re.compile(r"\{(\w+)\}"),
)


def _builtin_value(name: str, now: datetime.datetime) -> str | None:
    if name == "date":
        return now.date().isoformat()
    if name == "datetime":
        return now.isoformat()
    if name == "timestamp":
        return str(int(time.time() * 1000))
    if name == "year":
        return str(now.year)
    if name == "month":
        return f"{now.month:02d}"
    if name == "day":
        return f"{now.day:02d}"
    return None


def _format_value(value: Any) -> str:
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    if isinstance(value, dict):
        return json.dumps(value)
    return str(value)


def render_template(
    content: str,
    data: dict[str, Any] | None = None,
    variables: list[TemplateVariable] | None = None,
    now: datetime.datetime | None = None,
) -> tuple[str, list[str]]:
    """Fill placeholders in ``content``.

    Returns:
        The rendered text and the names of required variables that had
        neither a value nor a default.
    """
    data = data or {}
    now = now or datetime.datetime.now(datetime.timezone.utc)

    values: dict[str, Any] = {}
    missing = []
    for variable in variables or []:
        if data.get(variable.name) is not None:
            values[variable.name] = data[variable.name]
        elif variable.default is not None:
            values[variable.name] = variable.default
        elif variable.required:
            missing.append(variable.name)

    # Data keys without a declared variable still render
    for key, value in data.items():
        values.setdefault(key, value)

    def substitute(match: re.Match) -> str:
        name = match.group(1)
        if values.get(name) is not None:
            return _format_value(values[name])
        builtin = _builtin_value(name, now)
        return builtin if builtin is not None else match.group(0)

    rendered = content
    for pattern in PLACEHOLDER_PATTERNS:
        rendered = pattern.sub(substitute, rendered)
    return rendered, missing


def _dump(template: Template) -> dict[str, Any]:
    return template.model_dump(mode="json")


def _parse_import(raw: str) -> list[dict[str, Any]]:
    try:
        items = json.loads(raw)
    except json.JSONDecodeError:
        raise ValidationError("Invalid template data format", field="content") from None
    if isinstance(items, dict):
        items = [items]
    if not isinstance(items, list):
        raise ValidationError("Invalid template data format", field="content")
    return items


async def template_tool(
    action: str,
    template_id: str | None = None,
    name: str | None = None,
    type: str | None = None,
    content: str | None = None,
    description: str | None = None,
    variables: list[dict[str, Any]] | None = None,
    data: dict[str, Any] | None = None,
    format: str = "json",
    file_path: str | None = None,
    filter_type: str | None = None,
    limit: int | None = None,
    offset: int = 0,
    store: TemplateStore | None = None,
) -> dict[str, Any]:
    """Manage templates and render documents from them."""
    store = store or TemplateStore()

    if action == "create":
        require({"name": name, "type": type, "content": content}, "name", "type", "content", action=action)
        template = await store.create(name, type, content, description=description, variables=variables)
        return {
            "success": True,
            "action": action,
            "template": _dump(template),
            "message": f'Template "{name}" created successfully',
        }

    if action == "get":
        if not template_id and not name:
            raise ValidationError("template_id or name is required", field="template_id")
        template = await store.get(template_id) if template_id else await store.find_by_name(name)
        return {"success": True, "action": action, "template": _dump(template), "message": f"Template: {template.name}"}

    if action == "update":
        require({"template_id": template_id}, "template_id", action=action)
        updates = {
            "name": name,
            "type": type,
            "content": content,
            "description": description,
            "variables": variables,
        }
        template = await store.update(template_id, updates)
        return {
            "success": True,
            "action": action,
            "template": _dump(template),
            "message": f'Template "{template.name}" updated successfully',
        }

    if action == "delete":
        require({"template_id": template_id}, "template_id", action=action)
        if not await store.delete(template_id):
            raise ValidationError(f"Template not found: {template_id}", field="template_id", value=template_id)
        return {"success": True, "action": action, "template_id": template_id, "message": "Template deleted successfully"}

    if action == "list":
        templates, total = await store.list(filter_type=filter_type, limit=limit, offset=offset)
        return {
            "success": True,
            "action": action,
            "templates": [_dump(t) for t in templates],
            "total": total,
            "message": f"Found {total} template(s)",
        }

    if action in ("preview", "apply"):
        if not template_id and not name:
            raise ValidationError("template_id or name is required", field="template_id")
        template = await store.get(template_id) if template_id else await store.find_by_name(name)
        rendered, missing = render_template(template.content, data, template.variables)

        if action == "preview":
            message = f"Preview ready with {len(missing)} missing variables" if missing else "Preview ready"
            return {
                "success": True,
                "action": action,
                "rendered": rendered,
                "missing_variables": missing,
                "template": _dump(template),
                "message": message,
            }

        if missing:
            raise ValidationError(
                f"Missing required variables: {', '.join(missing)}",
                field="data",
                details={"missing_variables": missing},
            )
        if file_path:
            Path(file_path).expanduser().write_text(rendered, encoding="utf-8")
        return {
            "success": True,
            "action": action,
            "rendered": rendered,
            "template": _dump(template),
            "file_path": file_path,
            "message": "Template applied successfully",
        }

    if action == "export":
        if format not in EXPORT_FORMATS:
            raise ValidationError(f"Invalid format: {format}", field="format", value=format)
        templates = await store.stored()
        if not templates:
            raise ValidationError("No templates to export")

        dumped = [_dump(t) for t in templates]
        if format == "json":
            exported = json.dumps(dumped, indent=2, ensure_ascii=False)
        else:
            exported = "\n".join(f"---\n{json.dumps(t, indent=2, ensure_ascii=False)}\n" for t in dumped)

        if file_path:
            Path(file_path).expanduser().write_text(exported, encoding="utf-8")
            return {
                "success": True,
                "action": action,
                "file_path": file_path,
                "exported_count": len(dumped),
                "message": f"Exported {len(dumped)} templates to {file_path}",
            }
        return {
            "success": True,
            "action": action,
            "rendered": exported,
            "exported_count": len(dumped),
            "message": f"Exported {len(dumped)} templates",
        }

    if action == "import":
        if not file_path and not content:
            raise ValidationError("file_path or content is required", field="content")
        raw = Path(file_path).expanduser().read_text(encoding="utf-8") if file_path else content
        imported = await store.import_templates(_parse_import(raw))
        return {
            "success": True,
            "action": action,
            "imported_count": len(imported),
            "templates": [_dump(t) for t in imported],
            "message": f"Imported {len(imported)} templates",
        }

    raise ValidationError(f"Unknown action: {action}", field="action", value=action)


def register_template_tools(mcp_server):
    """Register the template tool with the MCP server."""

    @mcp_server.tool()
    @log_mcp_call
    async def muse_template(
        action: str,
        template_id: str | None = None,
        name: str | None = None,
        type: str | None = None,
        content: str | None = None,
        description: str | None = None,
        variables: list[dict[str, Any]] | None = None,
        data: dict[str, Any] | None = None,
        format: str = "json",
        file_path: str | None = None,
        filter_type: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> dict[str, Any]:
        """Create, manage and render document templates.

        Built-in templates ("Basic README", "Session Summary", "Weekly Report")
        are always available under ids such as ``builtin_basic_readme``.

        Actions:
            create, get, update, delete, list: template CRUD
            preview: render with ``data`` and report missing required variables
            apply: render with ``data``; fails when required variables are missing
            export: dump user templates as JSON (or ``---`` separated with format="yaml")
            import: load templates from ``file_path`` or ``content``
        """
        try:
            return await template_tool(
                action,
                template_id=template_id,
                name=name,
                type=type,
                content=content,
                description=description,
                variables=variables,
                data=data,
                format=format,
                file_path=file_path,
                filter_type=filter_type,
                limit=limit,
                offset=offset,
            )
        except Exception as e:
            return error_response(action, e)
