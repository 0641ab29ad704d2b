"""Utility helpers: YAML frontmatter, git execution and git output parsing."""
