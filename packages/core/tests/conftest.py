"""Shared fixtures: one pull request, two Jira issues, three Confluence pages."""

import json

import pytest

from prtrace_core.config import DEFAULT_CONFIG, merge_config
from prtrace_core.models import (
    ConfluencePage,
    JiraIssue,
    PullRequestCheck,
    PullRequestComment,
    PullRequestCommit,
    PullRequestMetadata,
    PullRequestPayload,
    RawPullRequestFile,
)
from prtrace_core.providers.base import BaseLlmProvider
from prtrace_core.sources.base import Sources
from prtrace_core.sources.fixtures import FixtureConfluenceSource, FixtureGithubSource, FixtureJiraSource
from prtrace_core.stages.base import StageContext

PR_LINK = "https://github.com/acme/platform/pull/42"
PAGE_101 = "https://example.atlassian.net/wiki/spaces/ENG/pages/101"
PAGE_102 = "https://example.atlassian.net/wiki/spaces/ENG/pages/102"
PAGE_205 = "https://example.atlassian.net/wiki/spaces/SRE/pages/205"

SCORE_PAYLOAD = {
    "overallScore": 82,
    "scoreBreakdown": [
        {"dimension": "Correctness", "score": 84, "rationale": "ok"},
        {"dimension": "Maintainability", "score": 81, "rationale": "ok"},
        {"dimension": "Reliability", "score": 83, "rationale": "ok"},
        {"dimension": "Security", "score": 80, "rationale": "ok"},
        {"dimension": "Performance", "score": 79, "rationale": "ok"},
        {"dimension": "Test Quality", "score": 86, "rationale": "ok"},
        {"dimension": "Traceability", "score": 82, "rationale": "ok"},
    ],
    "evidence": [{"snippet": "llm-evidence"}],
    "confidence": "high",
}

DRAFT_MARKDOWN = "## PR Review Draft\n\n- PROJ-123 from llm\n\n### Confluence Context"


class ScriptedLlm(BaseLlmProvider):
    """Answers score prompts with SCORE_PAYLOAD and draft prompts with DRAFT_MARKDOWN."""

    MAX_RETRIES = 1

    def __init__(self, score=None, draft=None):
        self.score_response = json.dumps(SCORE_PAYLOAD) if score is None else score
        self.draft_response = json.dumps({"markdown": DRAFT_MARKDOWN}) if draft is None else draft
        self.prompts: list[str] = []

    def _call_api(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if "Generate a PR review markdown draft" in prompt:
            return self.draft_response
        return self.score_response


@pytest.fixture
def pull_request():
    return PullRequestPayload(
        metadata=PullRequestMetadata(
            title="PROJ-123 Add order retry policy",
            body=f"Implements retry policy for payment callback. Linked docs: {PAGE_101}",
            author="alice",
            base_branch="main",
            head_branch="feature/order-retry",
            url=PR_LINK,
        ),
        files=[
            RawPullRequestFile(
                path="src/order/retry.py",
                patch="+++ add retry policy\n+ def should_retry():\n+     return True\n",
            ),
            RawPullRequestFile(
                path="tests/order/test_retry.py",
                patch="+++ add tests\n+ def test_retry():\n+     assert should_retry()\n",
            ),
        ],
        commits=[
            PullRequestCommit(sha="a1", message="PROJ-123 add retry policy logic"),
            PullRequestCommit(sha="a2", message="PROJ-124 improve timeout handling"),
        ],
        checks=[
            PullRequestCheck(name="unit-tests", status="completed", conclusion="success"),
            PullRequestCheck(name="lint", status="completed", conclusion="success"),
        ],
        comments=[PullRequestComment(author="reviewer", body="Please confirm rollback plan.")],
    )


@pytest.fixture
def issues():
    return [
        JiraIssue(
            key="PROJ-123",
            summary="Implement retry policy",
            description="Need retry policy for callback failures",
            acceptance_criteria=["Retries max 3 times", "Log retries"],
            nfr=["No P99 regression"],
            risks=["Potential duplicate callback"],
            testing_requirements=["Unit tests for retry count"],
            links=[PAGE_101],
        ),
        JiraIssue(
            key="PROJ-124",
            summary="Timeout handling",
            description="Improve timeout edge case handling",
            acceptance_criteria=["Timeout is configurable"],
            nfr=["No memory leak"],
            risks=["Timeout too small can fail fast"],
            testing_requirements=["Timeout integration tests"],
            links=[PAGE_102],
        ),
    ]


@pytest.fixture
def pages():
    return [
        ConfluencePage(
            id="101",
            title="PROJ-123 Callback Retry Design",
            url=PAGE_101,
            content="Scope, API contract, security and rollback strategy for PROJ-123.",
            source="issue-link",
        ),
        ConfluencePage(
            id="102",
            title="Timeout Handling for PROJ-124",
            url=PAGE_102,
            content="Requirements and monitoring plan for timeout behavior.",
            source="issue-link",
        ),
        ConfluencePage(
            id="205",
            title="Retry Monitoring Runbook",
            url=PAGE_205,
            content="Monitoring and rollback checklist for retry incidents.",
            source="keyword-query",
        ),
    ]


@pytest.fixture
def sources(pull_request, issues, pages):
    return Sources(
        github=FixtureGithubSource({"acme/platform#42": pull_request}),
        jira=FixtureJiraSource(issues),
        confluence=FixtureConfluenceSource(
            by_url={PAGE_101: pages[0], PAGE_102: pages[1]},
            by_query={"retry": [pages[2]]},
        ),
    )


@pytest.fixture
def llm():
    return ScriptedLlm()


@pytest.fixture
def make_context(sources, llm):
    """Build a StageContext, optionally with config overrides or a different LLM."""

    def _make(overrides=None, llm_provider=llm, stage_sources=sources):
        return StageContext(config=merge_config(DEFAULT_CONFIG, overrides), sources=stage_sources, llm=llm_provider)

    return _make
