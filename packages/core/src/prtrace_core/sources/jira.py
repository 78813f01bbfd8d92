from __future__ import annotations

import logging
import re
from collections import deque
from typing import Optional
from urllib.parse import quote

import requests

from prtrace_core.errors import SourceError
from prtrace_core.models import JiraIssue
from prtrace_core.sources.base import JiraSource
from prtrace_core.sources.http import JsonClient
from prtrace_core.utils.keys import compile_key_pattern
from prtrace_core.utils.links import unique_strings

logger = logging.getLogger(__name__)

MAX_ISSUES = 200
ISSUE_FIELDS = "summary,description,parent,subtasks,issuelinks"
DEFAULT_KEY_PATTERN = r"[A-Z][A-Z0-9]+-\d+"

_DEFAULT_KEY_RE = compile_key_pattern(DEFAULT_KEY_PATTERN)

_URL_RE = re.compile(r"https?://[^\s)]+", re.IGNORECASE)
_BULLET_RE = re.compile(r"^[-*]\s+")

# Heading line prefix -> JiraIssue field.
_SECTION_HEADINGS = [
    (re.compile(r"^acceptance criteria:?"), "acceptance_criteria"),
    (re.compile(r"^(nfr|non-functional requirements?):?"), "nfr"),
    (re.compile(r"^risks?:?"), "risks"),
    (re.compile(r"^(testing requirements?|tests?):?"), "testing_requirements"),
]


def resolve_jira_api_base(domain: str) -> str:
    normalized = domain.strip().rstrip("/")
    if re.search(r"/rest/api/\d+$", normalized):
        return normalized
    return f"{normalized}/rest/api/2"


def adf_to_text(value) -> str:
    """Flatten an Atlassian document format tree (or a plain string) to text."""
    if not value:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return "\n".join(t for t in (adf_to_text(v) for v in value) if t)
    if isinstance(value, dict):
        if value.get("type") == "text":
            return value.get("text") or ""
        return "\n".join(adf_to_text(v) for v in value.get("content") or [])
    return ""


def _heading_tail(line: str) -> Optional[str]:
    if ":" not in line:
        return None
    return line.split(":", 1)[1].strip() or None


def extract_sections(text: str) -> dict[str, list[str]]:
    """Split a description into requirement sections keyed by JiraIssue field name.

    A heading line starts a section; text after its colon is the first item.
    Following lines belong to that section until the next heading, with
    leading bullet markers stripped.
    """
    sections: dict[str, list[str]] = {name: [] for _, name in _SECTION_HEADINGS}
    current = None
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        lowered = line.lower()
        for pattern, name in _SECTION_HEADINGS:
            if pattern.match(lowered):
                current = name
                tail = _heading_tail(line)
                if tail:
                    sections[name].append(tail)
                break
        else:
            if current:
                cleaned = _BULLET_RE.sub("", line).strip()
                if cleaned:
                    sections[current].append(cleaned)
    return sections


def linked_issue_keys(raw: dict, key_pattern: re.Pattern = _DEFAULT_KEY_RE) -> list[str]:
    """Keys of the parent, subtasks and linked issues of a raw issue that match ``key_pattern``."""
    fields = raw.get("fields") or {}
    keys = []

    parent = (fields.get("parent") or {}).get("key")
    if parent:
        keys.append(parent)
    for subtask in fields.get("subtasks") or []:
        if subtask.get("key"):
            keys.append(subtask["key"])
    for link in fields.get("issuelinks") or []:
        for direction in ("outwardIssue", "inwardIssue"):
            key = (link.get(direction) or {}).get("key")
            if key:
                keys.append(key)

    return unique_strings(k.upper() for k in keys if key_pattern.search(k.upper()))


def map_issue(raw: dict, remote_links: list[str]) -> JiraIssue:
    fields = raw.get("fields") or {}
    description = adf_to_text(fields.get("description"))
    sections = extract_sections(description)
    return JiraIssue(
        key=str(raw.get("key", "")),
        summary=fields.get("summary") or "",
        description=description,
        links=unique_strings(_URL_RE.findall(description) + remote_links),
        **sections,
    )


class RestJiraSource(JiraSource):
    """Jira source backed by the REST API v2."""

    def __init__(
        self,
        domain: str,
        token: Optional[str] = None,
        email: Optional[str] = None,
        session: Optional[requests.Session] = None,
        key_pattern: str = DEFAULT_KEY_PATTERN,
    ):
        self._key_pattern = compile_key_pattern(key_pattern)
        self._client = JsonClient("Jira", resolve_jira_api_base(domain), token=token, email=email, session=session)

    def _fetch_issue(self, key: str) -> Optional[dict]:
        return self._client.get_json(f"issue/{quote(key)}", params={"fields": ISSUE_FIELDS}, allow_missing=True)

    def _fetch_remote_links(self, key: str) -> list[str]:
        try:
            response = self._client.get_json(f"issue/{quote(key)}/remotelink")
        except SourceError as e:
            logger.debug("Remote links unavailable for %s: %s", key, e)
            return []
        if not isinstance(response, list):
            return []
        urls = [((item or {}).get("object") or {}).get("url") or "" for item in response]
        return [url for url in urls if url.startswith(("http://", "https://"))]

    def fetch_issues(self, keys: list[str], expand_depth: int = 0) -> list[JiraIssue]:
        requested = unique_strings(k.upper() for k in keys)
        if not requested:
            return []

        max_depth = max(0, expand_depth)
        queue = deque((key, 0) for key in requested)
        visited: set[str] = set()
        issues: list[JiraIssue] = []

        while queue and len(issues) < MAX_ISSUES:
            key, depth = queue.popleft()
            if key in visited:
                continue
            visited.add(key)

            raw = self._fetch_issue(key)
            if raw is None:
                logger.info("Jira issue %s not found, skipping", key)
                continue

            issues.append(map_issue(raw, self._fetch_remote_links(key)))

            if depth >= max_depth:
                continue
            for linked in linked_issue_keys(raw, self._key_pattern):
                if linked not in visited:
                    queue.append((linked, depth + 1))

        if not issues:
            raise SourceError(f"No Jira issues were found for keys: {', '.join(requested)}")

        logger.debug("Resolved %d Jira issue(s) from %d requested key(s)", len(issues), len(requested))
        return issues
