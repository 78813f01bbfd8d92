"""Typed records passed between pipeline stages.

Every record is produced by exactly one stage and handed forward by value.
Records are frozen; a later stage that needs a changed copy (ranking, for
example) builds one with dataclasses.replace instead of mutating.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field

REVIEW_PROFILES = ("default", "security", "performance", "compliance")

# Provenance tags, strongest first.
PAGE_SOURCES = ("issue-link", "pr-link", "jira-query", "keyword-query")

CONFIDENCE_LEVELS = ("low", "medium", "high")


class _Record:
    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ReviewRequest(_Record):
    pr_link: str
    profile: str | None = None
    additional_keywords: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class PrReference(_Record):
    owner: str
    repo: str
    pr_number: int

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}#{self.pr_number}"


# ---------------------------------------------------------------------------
# GitHub
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PullRequestMetadata(_Record):
    title: str
    body: str
    author: str
    base_branch: str
    head_branch: str
    url: str


@dataclass(frozen=True)
class RawPullRequestFile(_Record):
    path: str
    patch: str = ""


@dataclass(frozen=True)
class PullRequestFile(_Record):
    path: str
    patch: str
    truncated: bool = False


@dataclass(frozen=True)
class PullRequestCommit(_Record):
    sha: str
    message: str


@dataclass(frozen=True)
class PullRequestCheck(_Record):
    name: str
    status: str  # "queued" | "in_progress" | "completed"
    conclusion: str | None = None  # "success" | "failure" | "cancelled" | "timed_out" | "neutral" | None


@dataclass(frozen=True)
class PullRequestComment(_Record):
    author: str
    body: str


@dataclass(frozen=True)
class PullRequestPayload(_Record):
    """Raw pull request data as returned by a GitHub source."""

    metadata: PullRequestMetadata
    files: list[RawPullRequestFile] = field(default_factory=list)
    commits: list[PullRequestCommit] = field(default_factory=list)
    checks: list[PullRequestCheck] = field(default_factory=list)
    comments: list[PullRequestComment] = field(default_factory=list)


@dataclass(frozen=True)
class GithubSignals(_Record):
    confluence_links: list[str] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class GithubContext(_Record):
    """Normalized, size-bounded pull request context."""

    metadata: PullRequestMetadata
    files: list[PullRequestFile] = field(default_factory=list)
    commits: list[PullRequestCommit] = field(default_factory=list)
    checks: list[PullRequestCheck] = field(default_factory=list)
    comments: list[PullRequestComment] = field(default_factory=list)
    signals: GithubSignals = field(default_factory=GithubSignals)


@dataclass(frozen=True)
class PublishedComment(_Record):
    id: str
    url: str
    body: str


@dataclass(frozen=True)
class PublishCommentRequest(_Record):
    pr_link: str
    comment_body: str
    confirmed: bool = False


@dataclass(frozen=True)
class PublishCommentResult(_Record):
    published: bool
    used_edited_body: bool
    comment: PublishedComment


# ---------------------------------------------------------------------------
# Jira
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class JiraIssue(_Record):
    key: str
    summary: str
    description: str = ""
    acceptance_criteria: list[str] = field(default_factory=list)
    nfr: list[str] = field(default_factory=list)
    risks: list[str] = field(default_factory=list)
    testing_requirements: list[str] = field(default_factory=list)
    links: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class JiraContext(_Record):
    requested_keys: list[str] = field(default_factory=list)
    issues: list[JiraIssue] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Confluence
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConfluencePage(_Record):
    id: str
    title: str
    url: str
    content: str = ""
    source: str = "keyword-query"  # one of PAGE_SOURCES
    relevance_score: int | None = None
    matched_jira_keys: list[str] = field(default_factory=list)
    matched_keywords: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ConfluenceContext(_Record):
    strong_linked_urls: list[str] = field(default_factory=list)
    search_queries: list[str] = field(default_factory=list)
    pages: list[ConfluencePage] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Aggregate, score, draft
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReviewContext(_Record):
    pr_reference: PrReference
    profile: str
    github: GithubContext
    jira: JiraContext
    confluence: ConfluenceContext
    # Every requested Jira key is present, possibly mapped to an empty list.
    traceability: dict[str, list[str]] = field(default_factory=dict)


@dataclass(frozen=True)
class ScoreBreakdownItem(_Record):
    dimension: str
    score: int
    weight: float
    rationale: str


@dataclass(frozen=True)
class ScoreEvidence(_Record):
    file: str | None = None
    snippet: str | None = None


@dataclass(frozen=True)
class ScoreResult(_Record):
    overall_score: int
    score_breakdown: list[ScoreBreakdownItem]
    evidence: list[ScoreEvidence] = field(default_factory=list)
    confidence: str = "low"  # one of CONFIDENCE_LEVELS


@dataclass(frozen=True)
class DraftComment(_Record):
    markdown: str


@dataclass(frozen=True)
class RunMetadata(_Record):
    duration_ms: int
    used_llm: bool


@dataclass(frozen=True)
class ReviewResult(_Record):
    """Everything a completed pipeline run hands back to the caller."""

    context: ReviewContext
    score: ScoreResult
    draft: DraftComment
    meta: RunMetadata
    warnings: list[str] = field(default_factory=list)
