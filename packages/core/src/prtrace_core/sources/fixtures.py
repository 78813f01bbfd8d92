"""In-memory sources backed by fixture data.

Used by the test suite and by ``sources.mode: fixture`` for offline demos.
A single YAML or JSON document can describe all three systems::

    github:
      acme/platform#42:
        metadata: {title: ..., body: ..., author: ..., base_branch: ..., head_branch: ..., url: ...}
        files: [{path: ..., patch: ...}]
        commits: [{sha: ..., message: ...}]
        checks: [{name: ..., status: completed, conclusion: success}]
        comments: [{author: ..., body: ...}]
    jira:
      - {key: PROJ-1, summary: ..., acceptance_criteria: [...], links: [...]}
    confluence:
      by_url: {"https://...": {id: ..., title: ..., url: ..., content: ...}}
      by_query: {retry: [{id: ..., title: ..., url: ..., content: ...}]}
"""

from __future__ import annotations

import itertools
import json
from dataclasses import replace
from pathlib import Path

import yaml

from prtrace_core.errors import ConfigurationError
from prtrace_core.models import (
    ConfluencePage,
    JiraIssue,
    PrReference,
    PublishedComment,
    PullRequestCheck,
    PullRequestComment,
    PullRequestCommit,
    PullRequestMetadata,
    PullRequestPayload,
    RawPullRequestFile,
)
from prtrace_core.sources.base import ConfluenceSource, GithubSource, JiraSource, Sources


class FixtureGithubSource(GithubSource):
    def __init__(self, dataset: dict[str, PullRequestPayload]):
        self._dataset = dataset
        self._comment_ids = itertools.count(1)
        self.published: list[PublishedComment] = []

    def fetch_change(self, reference: PrReference) -> PullRequestPayload:
        payload = self._dataset.get(reference.slug)
        if payload is None:
            raise LookupError(f"No fixture pull request found for {reference.slug}")
        return payload

    def publish_comment(self, reference: PrReference, body: str) -> PublishedComment:
        comment_id = str(next(self._comment_ids))
        comment = PublishedComment(
            id=comment_id,
            url=(
                f"https://github.com/{reference.owner}/{reference.repo}/pull/{reference.pr_number}"
                f"#issuecomment-{comment_id}"
            ),
            body=body,
        )
        self.published.append(comment)
        return comment


class FixtureJiraSource(JiraSource):
    def __init__(self, issues: list[JiraIssue]):
        self._issues = issues

    def fetch_issues(self, keys: list[str], expand_depth: int = 0) -> list[JiraIssue]:
        wanted = {k.upper() for k in keys}
        return [issue for issue in self._issues if issue.key.upper() in wanted]


class FixtureConfluenceSource(ConfluenceSource):
    def __init__(
        self,
        by_url: dict[str, ConfluencePage] | None = None,
        by_query: dict[str, list[ConfluencePage]] | None = None,
    ):
        self._by_url = by_url or {}
        self._by_query = {q.lower().strip(): pages for q, pages in (by_query or {}).items()}

    def fetch_by_urls(self, urls: list[str], expand_depth: int = 0) -> list[ConfluencePage]:
        return [replace(self._by_url[url], source="pr-link") for url in urls if url in self._by_url]

    def search(self, query: str, top_k: int, expand_depth: int = 0) -> list[ConfluencePage]:
        pages = self._by_query.get(query.lower().strip(), [])
        return [replace(page, source="keyword-query") for page in pages[:top_k]]


# ---------------------------------------------------------------------------
# Loading from a file
# ---------------------------------------------------------------------------


def _payload_from_dict(raw: dict) -> PullRequestPayload:
    return PullRequestPayload(
        metadata=PullRequestMetadata(**raw["metadata"]),
        files=[RawPullRequestFile(**f) for f in raw.get("files", [])],
        commits=[PullRequestCommit(**c) for c in raw.get("commits", [])],
        checks=[PullRequestCheck(**c) for c in raw.get("checks", [])],
        comments=[PullRequestComment(**c) for c in raw.get("comments", [])],
    )


def _page_from_dict(raw: dict) -> ConfluencePage:
    return ConfluencePage(
        id=str(raw.get("id", "")),
        title=raw.get("title", ""),
        url=raw.get("url", ""),
        content=raw.get("content", ""),
    )


def load_fixture_sources(path: str) -> Sources:
    """Build fixture sources for all three systems from one YAML/JSON file."""
    fixture_path = Path(path)
    if not fixture_path.exists():
        raise ConfigurationError(f"Fixture file not found: {path}")

    text = fixture_path.read_text()
    data = json.loads(text) if fixture_path.suffix == ".json" else yaml.safe_load(text)
    data = data or {}

    try:
        github = {slug: _payload_from_dict(raw) for slug, raw in (data.get("github") or {}).items()}
        issues = [JiraIssue(**raw) for raw in data.get("jira") or []]
        confluence = data.get("confluence") or {}
        by_url = {url: _page_from_dict(raw) for url, raw in (confluence.get("by_url") or {}).items()}
        by_query = {
            query: [_page_from_dict(raw) for raw in pages] for query, pages in (confluence.get("by_query") or {}).items()
        }
    except (KeyError, TypeError) as e:
        raise ConfigurationError(f"Malformed fixture file {path}: {e}") from e

    return Sources(
        github=FixtureGithubSource(github),
        jira=FixtureJiraSource(issues),
        confluence=FixtureConfluenceSource(by_url=by_url, by_query=by_query),
    )
