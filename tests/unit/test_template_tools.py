"""Unit tests for template rendering and the muse_template actions."""

import datetime
import json

import pytest

from vibe_coding_mcp.exceptions import TemplateNotFoundError
from vibe_coding_mcp.exceptions import ValidationError
from vibe_coding_mcp.models import TemplateVariable
from vibe_coding_mcp.storage.template_store import builtin_template_id
from vibe_coding_mcp.tools.template_tools import register_template_tools
from vibe_coding_mcp.tools.template_tools import render_template
from vibe_coding_mcp.tools.template_tools import template_tool

NOW = datetime.datetime(2026, 3, 7, 8, 5, tzinfo=datetime.timezone.utc)


class TestRenderTemplate:
    def test_all_placeholder_styles(self):
        rendered, missing = render_template("{{a}} ${b} {c}", {"a": 1, "b": "two", "c": 3.5})
        assert rendered == "1 two 3.5"
        assert missing == []

    def test_defaults_and_missing_required(self):
        variables = [
            TemplateVariable(name="name", required=True),
            TemplateVariable(name="license", default="MIT"),
        ]
        rendered, missing = render_template("{{name}} / {{license}}", {}, variables)
        assert rendered == "{{name}} / MIT"
        assert missing == ["name"]

    def test_data_overrides_default(self):
        rendered, _ = render_template("{{license}}", {"license": "BSD"}, [TemplateVariable(name="license", default="MIT")])
        assert rendered == "BSD"

    def test_value_formatting(self):
        rendered, _ = render_template("{{tags}} | {{meta}}", {"tags": ["a", "b"], "meta": {"k": 1}})
        assert rendered == 'a, b | {"k": 1}'

    def test_builtin_date_variables(self):
        rendered, _ = render_template("{{date}} {year}-{month}-${day}", now=NOW)
        assert rendered == "2026-03-07 2026-03-07"

    def test_unknown_placeholders_left_alone(self):
        rendered, _ = render_template("{{mystery}} and {also}", {})
        assert rendered == "{{mystery}} and {also}"


class TestTemplateCrud:
    @pytest.mark.asyncio
    async def test_create_get_update_delete(self):
        created = await template_tool(
            "create",
            name="Changelog",
            type="document",
            content="## {{version}}",
            variables=[{"name": "version", "required": True}],
        )
        template_id = created["template"]["id"]
        assert created["message"] == 'Template "Changelog" created successfully'
        assert template_id.startswith("template_")

        fetched = await template_tool("get", template_id=template_id)
        assert fetched["template"]["content"] == "## {{version}}"

        by_name = await template_tool("get", name="Changelog")
        assert by_name["template"]["id"] == template_id

        updated = await template_tool("update", template_id=template_id, content="### {{version}}")
        assert updated["template"]["content"] == "### {{version}}"
        assert updated["template"]["name"] == "Changelog"

        deleted = await template_tool("delete", template_id=template_id)
        assert deleted["success"] is True
        with pytest.raises(TemplateNotFoundError):
            await template_tool("get", template_id=template_id)

    @pytest.mark.asyncio
    async def test_create_requires_fields(self):
        with pytest.raises(ValidationError, match="content is required for create"):
            await template_tool("create", name="x", type="document")

    @pytest.mark.asyncio
    async def test_builtins_listed_and_read_only(self):
        listed = await template_tool("list")
        names = [t["name"] for t in listed["templates"]]
        assert {"Basic README", "Session Summary", "Weekly Report"} <= set(names)
        assert names == sorted(names, key=str.lower)

        readme_id = builtin_template_id("Basic README")
        assert readme_id == "builtin_basic_readme"
        with pytest.raises(ValidationError, match="cannot be modified"):
            await template_tool("update", template_id=readme_id, content="x")
        with pytest.raises(ValidationError, match="cannot be deleted"):
            await template_tool("delete", template_id=readme_id)

    @pytest.mark.asyncio
    async def test_list_filter_type(self):
        response = await template_tool("list", filter_type="report")
        assert [t["name"] for t in response["templates"]] == ["Weekly Report"]
        assert response["total"] == 1


class TestPreviewAndApply:
    @pytest.mark.asyncio
    async def test_preview_reports_missing_variables(self):
        response = await template_tool("preview", template_id="builtin_basic_readme", data={"project_name": "Demo"})

        assert response["success"] is True
        assert response["missing_variables"] == ["description"]
        assert response["message"] == "Preview ready with 1 missing variables"
        assert response["rendered"].startswith("# Demo")

    @pytest.mark.asyncio
    async def test_apply_fails_on_missing_variables(self):
        with pytest.raises(ValidationError, match="Missing required variables: description") as exc_info:
            await template_tool("apply", name="Basic README", data={"project_name": "Demo"})
        assert exc_info.value.details["missing_variables"] == ["description"]

    @pytest.mark.asyncio
    async def test_apply_writes_file(self, tmp_path):
        target = tmp_path / "README.md"
        response = await template_tool(
            "apply",
            template_id="builtin_basic_readme",
            data={"project_name": "Demo", "description": "A demo"},
            file_path=str(target),
        )

        assert response["message"] == "Template applied successfully"
        text = target.read_text(encoding="utf-8")
        assert "# Demo" in text
        assert "A demo" in text
        assert "MIT" in text

    @pytest.mark.asyncio
    async def test_missing_template(self):
        with pytest.raises(TemplateNotFoundError):
            await template_tool("preview", name="Nope")


class TestExportImport:
    @pytest.mark.asyncio
    async def test_export_requires_user_templates(self):
        with pytest.raises(ValidationError, match="No templates to export"):
            await template_tool("export")

    @pytest.mark.asyncio
    async def test_export_then_import_creates_fresh_ids(self):
        created = await template_tool("create", name="Note", type="document", content="{{body}}")
        original_id = created["template"]["id"]

        exported = await template_tool("export")
        assert exported["exported_count"] == 1
        items = json.loads(exported["rendered"])
        assert items[0]["id"] == original_id

        imported = await template_tool("import", content=exported["rendered"])
        assert imported["imported_count"] == 1
        assert imported["templates"][0]["id"] != original_id

        stored = await template_tool("list", filter_type="document")
        assert [t["name"] for t in stored["templates"]].count("Note") == 2

    @pytest.mark.asyncio
    async def test_yaml_style_export_to_file(self, tmp_path):
        await template_tool("create", name="Note", type="document", content="x")
        target = tmp_path / "templates.txt"

        response = await template_tool("export", format="yaml", file_path=str(target))
        assert response["message"] == f"Exported 1 templates to {target}"
        assert target.read_text(encoding="utf-8").startswith("---\n")

    @pytest.mark.asyncio
    async def test_import_single_object(self):
        payload = json.dumps({"name": "Solo", "type": "document", "content": "hi"})
        response = await template_tool("import", content=payload)
        assert response["imported_count"] == 1

    @pytest.mark.asyncio
    async def test_import_rejects_garbage(self):
        with pytest.raises(ValidationError, match="Invalid template data format"):
            await template_tool("import", content="not json at all")


class TestMcpWrapper:
    @pytest.mark.asyncio
    async def test_errors_become_failed_responses(self):
        registered = {}

        class FakeServer:
            def tool(self):
                def decorator(func):
                    registered[func.__name__] = func
                    return func

                return decorator

        register_template_tools(FakeServer())
        response = await registered["muse_template"]("apply", name="Basic README", data={})

        assert response["success"] is False
        assert response["action"] == "apply"
        assert response["error_code"] == "VALIDATION_ERROR"
        assert response["details"]["missing_variables"] == ["project_name", "description"]
