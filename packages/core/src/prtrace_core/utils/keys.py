"""Jira key extraction from free text."""

from __future__ import annotations

import re


def compile_key_pattern(pattern: str) -> re.Pattern:
    return re.compile(pattern, re.IGNORECASE)


def find_issue_keys(text: str | None, pattern: re.Pattern) -> set[str]:
    if not text or not text.strip():
        return set()
    return {m.group(0).upper() for m in pattern.finditer(text)}


def extract_issue_keys(texts, pattern: re.Pattern) -> list[str]:
    """Union of keys across all texts, uppercased and sorted."""
    keys: set[str] = set()
    for text in texts:
        keys |= find_issue_keys(text, pattern)
    return sorted(keys)
