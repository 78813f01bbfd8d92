"""Capability contracts for the three upstream systems.

The pipeline depends only on these interfaces. Real REST implementations
and in-memory fixtures are interchangeable and chosen by configuration
(``sources.mode``), never by the stages themselves.

Implementations either return a typed payload or raise; the pipeline does
not inspect HTTP status codes and does not retry.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from prtrace_core.models import ConfluencePage, JiraIssue, PrReference, PublishedComment, PullRequestPayload


class GithubSource(ABC):
    @abstractmethod
    def fetch_change(self, reference: PrReference) -> PullRequestPayload:
        """Return metadata, files, commits, checks and comments for one pull request."""

    @abstractmethod
    def publish_comment(self, reference: PrReference, body: str) -> PublishedComment:
        """Post ``body`` as a comment on the pull request."""


class JiraSource(ABC):
    @abstractmethod
    def fetch_issues(self, keys: list[str], expand_depth: int = 0) -> list[JiraIssue]:
        """Resolve issue keys, optionally expanding through linked issues up to ``expand_depth``."""


class ConfluenceSource(ABC):
    @abstractmethod
    def fetch_by_urls(self, urls: list[str], expand_depth: int = 0) -> list[ConfluencePage]:
        """Resolve strong links (URLs carrying a page id) to pages."""

    @abstractmethod
    def search(self, query: str, top_k: int, expand_depth: int = 0) -> list[ConfluencePage]:
        """Return at most ``top_k`` pages matching a free-text query."""


@dataclass(frozen=True)
class Sources:
    github: GithubSource
    jira: JiraSource
    confluence: ConfluenceSource
