"""YAML frontmatter parsing and writing utilities.

Exported sessions are Markdown documents that start with a frontmatter block:

---
id: session_18f2c3a41b0_9f2e1a
title: Auth refactor
tags: [auth, jwt]
---

# Auth refactor
...
"""

import re
from typing import Any

import yaml  # type: ignore[import-untyped]

# Regex pattern for YAML frontmatter (--- delimited block at start of file)
FRONTMATTER_PATTERN = re.compile(r"^---\s*\n(.*?)\n---\s*\n?", re.DOTALL)


def parse_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    """Split Markdown content into ``(metadata, body)``.

    Returns an empty dict when there is no frontmatter or it is not valid YAML.
    """
    if not content or not content.startswith("---"):
        return {}, content

    match = FRONTMATTER_PATTERN.match(content)
    if not match:
        return {}, content

    try:
        metadata = yaml.safe_load(match.group(1))
    except yaml.YAMLError:
        return {}, content

    if not isinstance(metadata, dict):
        return {}, content
    return metadata, content[match.end() :]


def write_frontmatter(content: str, metadata: dict[str, Any]) -> str:
    """Prefix ``content`` with ``metadata`` as frontmatter, replacing any existing block."""
    _, body = parse_frontmatter(content)
    if not metadata:
        return body

    yaml_str = yaml.safe_dump(metadata, default_flow_style=False, allow_unicode=True, sort_keys=False)
    return f"---\n{yaml_str}---\n\n{body.lstrip()}"


def has_frontmatter(content: str) -> bool:
    if not content or not content.startswith("---"):
        return False
    return bool(FRONTMATTER_PATTERN.match(content))
