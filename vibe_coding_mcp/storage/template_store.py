"""Persistence for document templates plus the read-only built-in templates."""

from __future__ import annotations

import datetime
import logging
import re
from typing import Any

import pydantic

from ..exceptions import TemplateNotFoundError
from ..exceptions import ValidationError
from ..helpers import generate_id
from ..helpers import slugify
from ..helpers import utc_now
from ..models import Template
from .base import StorageBackend
from .factory import get_storage

logger = logging.getLogger(__name__)

TEMPLATES_DIR = "templates"

_TEMPLATE_ID_RE = re.compile(r"^[A-Za-z0-9_.-]+$")
_EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)

BUILTIN_TEMPLATES: list[dict[str, Any]] = [
    {
        "name": "Basic README",
        "type": "document",
        "description": "A simple README template",
        "content": """# {{project_name}}

{{description}}

## Installation

```bash
pip install {{package_name}}
```

## Usage

{{usage}}

## License

{{license}}

---
Generated on {{date}}
""",
        "variables": [
            {"name": "project_name", "required": True, "description": "Project name"},
            {"name": "description", "required": True, "description": "Project description"},
            {"name": "package_name", "default": "", "description": "Package name on the index"},
            {"name": "usage", "default": "See documentation.", "description": "Usage instructions"},
            {"name": "license", "default": "MIT", "description": "License type"},
        ],
    },
    {
        "name": "Session Summary",
        "type": "session-log",
        "description": "Template for session documentation",
        "content": """# Session: {{title}}

**Date**: {{date}}
**Duration**: {{duration}} minutes
**Tags**: {{tags}}

## Summary

{{summary}}

## Code Changes

{{code_changes}}

## Design Decisions

{{decisions}}

## Next Steps

{{next_steps}}
""",
        "variables": [
            {"name": "title", "required": True, "description": "Session title"},
            {"name": "duration", "type": "number", "default": 0, "description": "Duration in minutes"},
            {"name": "tags", "type": "array", "default": [], "description": "Session tags"},
            {"name": "summary", "required": True, "description": "Session summary"},
            {"name": "code_changes", "default": "No code changes recorded.", "description": "Code changes"},
            {"name": "decisions", "default": "No design decisions recorded.", "description": "Design decisions"},
            {"name": "next_steps", "default": "TBD", "description": "Next steps"},
        ],
    },
    {
        "name": "Weekly Report",
        "type": "report",
        "description": "Weekly progress report template",
        "content": """# Weekly Report: {{week_of}}

## Overview

- **Sessions Completed**: {{session_count}}
- **Code Blocks Written**: {{code_block_count}}
- **Design Decisions Made**: {{decision_count}}

## Highlights

{{highlights}}

## Challenges

{{challenges}}

## Goals for Next Week

{{goals}}

---
Report generated on {{datetime}}
""",
        "variables": [
            {"name": "week_of", "required": True, "description": "Week starting date"},
            {"name": "session_count", "type": "number", "default": 0},
            {"name": "code_block_count", "type": "number", "default": 0},
            {"name": "decision_count", "type": "number", "default": 0},
            {"name": "highlights", "default": "None noted."},
            {"name": "challenges", "default": "None noted."},
            {"name": "goals", "default": "TBD"},
        ],
    },
]


def builtin_template_id(name: str) -> str:
    return f"builtin_{slugify(name)}"


def builtin_templates() -> list[Template]:
    return [
        Template.model_validate(
            {
                **definition,
                "id": builtin_template_id(definition["name"]),
                "builtin": True,
                "created_at": _EPOCH,
                "updated_at": _EPOCH,
            }
        )
        for definition in BUILTIN_TEMPLATES
    ]


class TemplateStore:
    """User templates stored as ``templates/<template_id>.json``."""

    def __init__(self, storage: StorageBackend | None = None):
        self.storage = storage or get_storage()

    def _path(self, template_id: str) -> str:
        if not template_id or not _TEMPLATE_ID_RE.match(template_id) or template_id.startswith("."):
            raise ValidationError(f"Invalid template id: {template_id}", field="template_id", value=template_id)
        return f"{TEMPLATES_DIR}/{template_id}.json"

    async def _write(self, template: Template) -> None:
        await self.storage.write_file(self._path(template.id), template.model_dump_json(indent=2))

    async def create(
        self,
        name: str,
        type: str,
        content: str,
        description: str | None = None,
        variables: list[dict[str, Any]] | None = None,
    ) -> Template:
        now = utc_now()
        try:
            template = Template.model_validate(
                {
                    "id": generate_id("template"),
                    "name": name,
                    "type": type,
                    "content": content,
                    "description": description,
                    "variables": variables or [],
                    "created_at": now,
                    "updated_at": now,
                }
            )
        except pydantic.ValidationError as e:
            first = e.errors()[0]
            raise ValidationError(f"Invalid template: {first['msg']}", field="template") from e
        await self._write(template)
        logger.info("Template created: %s (%s)", template.id, name)
        return template

    async def get(self, template_id: str) -> Template:
        """Return a stored or built-in template.

        Raises:
            TemplateNotFoundError: if neither exists
        """
        for builtin in builtin_templates():
            if builtin.id == template_id:
                return builtin
        try:
            content = await self.storage.read_file(self._path(template_id))
        except FileNotFoundError:
            raise TemplateNotFoundError(template_id) from None
        return Template.model_validate_json(content)

    async def find_by_name(self, name: str) -> Template:
        """Stored templates win over built-ins with the same name."""
        for template in await self.stored():
            if template.name == name:
                return template
        for builtin in builtin_templates():
            if builtin.name == name:
                return builtin
        raise TemplateNotFoundError(name)

    async def update(self, template_id: str, updates: dict[str, Any]) -> Template:
        if template_id.startswith("builtin_"):
            raise ValidationError("Built-in templates cannot be modified", field="template_id", value=template_id)
        template = await self.get(template_id)
        data = template.model_dump()
        data.update({k: v for k, v in updates.items() if v is not None and k in Template.model_fields})
        data["id"] = template.id
        data["updated_at"] = utc_now()
        updated = Template.model_validate(data)
        await self._write(updated)
        logger.info("Template updated: %s", template_id)
        return updated

    async def delete(self, template_id: str) -> bool:
        if template_id.startswith("builtin_"):
            raise ValidationError("Built-in templates cannot be deleted", field="template_id", value=template_id)
        return await self.storage.delete_file(self._path(template_id))

    async def stored(self) -> list[Template]:
        """Every user template, skipping unreadable files."""
        templates = []
        for path in await self.storage.list_files(TEMPLATES_DIR, "*.json"):
            try:
                templates.append(Template.model_validate_json(await self.storage.read_file(path)))
            except (pydantic.ValidationError, FileNotFoundError) as e:
                logger.warning("Skipping unreadable template file %s: %s", path, e)
        return templates

    async def list(
        self,
        filter_type: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> tuple[list[Template], int]:
        """Stored and built-in templates sorted by name."""
        templates = await self.stored() + builtin_templates()
        if filter_type:
            templates = [t for t in templates if t.type == filter_type]
        templates.sort(key=lambda t: t.name.lower())
        total = len(templates)
        end = offset + limit if limit else None
        return templates[offset:end], total

    async def import_templates(self, items: list[dict[str, Any]]) -> list[Template]:
        """Store each item as a new template with a fresh id."""
        imported = []
        for item in items:
            if not isinstance(item, dict):
                raise ValidationError("Invalid template data format", field="content")
            imported.append(
                await self.create(
                    name=item.get("name", ""),
                    type=item.get("type", "document"),
                    content=item.get("content", ""),
                    description=item.get("description"),
                    variables=item.get("variables"),
                )
            )
        return imported
