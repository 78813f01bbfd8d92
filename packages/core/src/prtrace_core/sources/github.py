from __future__ import annotations

import logging

from github import Github, GithubException

from prtrace_core.models import (
    PrReference,
    PublishedComment,
    PullRequestCheck,
    PullRequestComment,
    PullRequestCommit,
    PullRequestMetadata,
    PullRequestPayload,
    RawPullRequestFile,
)
from prtrace_core.sources.base import GithubSource

logger = logging.getLogger(__name__)

_CHECK_STATUSES = {"queued", "in_progress", "completed"}
_CHECK_CONCLUSIONS = {"success", "failure", "cancelled", "timed_out", "neutral"}

DEFAULT_GITHUB_API = "https://api.github.com"


def get_pull(repo, pr_number: int):
    return repo.get_pull(pr_number)


def _login(user) -> str:
    return getattr(user, "login", None) or "unknown"


def _map_check_run(run) -> PullRequestCheck:
    status = run.status if run.status in _CHECK_STATUSES else "completed"
    conclusion = run.conclusion if run.conclusion in _CHECK_CONCLUSIONS else None
    return PullRequestCheck(name=run.name or "check-run", status=status, conclusion=conclusion)


def get_checks(repo, head_sha: str) -> list[PullRequestCheck]:
    """Return check runs for the head commit, or [] when they cannot be read."""
    if not head_sha:
        return []
    try:
        return [_map_check_run(run) for run in repo.get_commit(head_sha).get_check_runs()]
    except GithubException as e:
        # Tokens without checks:read still allow a full review.
        logger.warning("Could not fetch check runs for %s: %s", head_sha[:7], e)
        return []


class RestGithubSource(GithubSource):
    """GitHub source backed by PyGithub."""

    def __init__(self, token: str | None, base_url: str = DEFAULT_GITHUB_API, client: Github | None = None):
        self._client = client or Github(token, base_url=base_url)

    def _get_pull(self, reference: PrReference):
        repo = self._client.get_repo(f"{reference.owner}/{reference.repo}")
        return repo, get_pull(repo, reference.pr_number)

    def fetch_change(self, reference: PrReference) -> PullRequestPayload:
        repo, pr = self._get_pull(reference)
        head_sha = pr.head.sha or ""

        metadata = PullRequestMetadata(
            title=pr.title or f"PR #{reference.pr_number}",
            body=pr.body or "",
            author=_login(pr.user),
            base_branch=pr.base.ref or "unknown",
            head_branch=pr.head.ref or "unknown",
            url=pr.html_url
            or f"https://github.com/{reference.owner}/{reference.repo}/pull/{reference.pr_number}",
        )
        logger.debug("Fetched %s at %s", reference.slug, head_sha[:7])

        return PullRequestPayload(
            metadata=metadata,
            files=[RawPullRequestFile(path=f.filename or "unknown", patch=f.patch or "") for f in pr.get_files()],
            commits=[PullRequestCommit(sha=c.sha, message=c.commit.message or "") for c in pr.get_commits()],
            checks=get_checks(repo, head_sha),
            comments=[PullRequestComment(author=_login(c.user), body=c.body or "") for c in pr.get_issue_comments()],
        )

    def publish_comment(self, reference: PrReference, body: str) -> PublishedComment:
        _, pr = self._get_pull(reference)
        comment = pr.create_issue_comment(body)
        return PublishedComment(
            id=str(comment.id),
            url=comment.html_url
            or f"https://github.com/{reference.owner}/{reference.repo}/pull/{reference.pr_number}",
            body=comment.body or body,
        )
