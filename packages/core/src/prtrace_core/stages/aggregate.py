from __future__ import annotations

from dataclasses import dataclass, replace

from prtrace_core.models import (
    ConfluenceContext,
    ConfluencePage,
    GithubContext,
    JiraContext,
    PrReference,
    ReviewContext,
)
from prtrace_core.stages.base import Stage, StageContext
from prtrace_core.utils.links import unique_strings

SOURCE_BOOST = {"issue-link": 45, "pr-link": 38, "jira-query": 25, "keyword-query": 18}
STRONG_LINK_BOOST = 15
MAX_KEY_BOOST = 25
KEY_BOOST = 12
MAX_KEYWORD_BOOST = 20
KEYWORD_BOOST = 2


@dataclass(frozen=True)
class AggregateInput:
    pr_reference: PrReference
    profile: str
    github: GithubContext
    jira: JiraContext
    confluence: ConfluenceContext


def score_page(page: ConfluencePage, jira_keys: list[str], keywords: list[str], strong_links: set[str]) -> ConfluencePage:
    """Return a copy of ``page`` with relevance score and matches filled in."""
    combined = f"{page.title}\n{page.content}\n{page.url}".lower()
    matched_keys = [key for key in jira_keys if key.lower() in combined]
    matched_keywords = [kw for kw in keywords if kw in combined]

    relevance = (
        SOURCE_BOOST.get(page.source, SOURCE_BOOST["keyword-query"])
        + (STRONG_LINK_BOOST if page.url in strong_links else 0)
        + min(MAX_KEY_BOOST, KEY_BOOST * len(matched_keys))
        + min(MAX_KEYWORD_BOOST, KEYWORD_BOOST * len(matched_keywords))
    )
    return replace(
        page,
        relevance_score=max(0, min(100, relevance)),
        matched_jira_keys=matched_keys,
        matched_keywords=matched_keywords,
    )


def rank_pages(
    pages: list[ConfluencePage],
    jira_keys: list[str],
    keywords: list[str],
    strong_links: list[str],
    top_k: int,
) -> list[ConfluencePage]:
    """Score, sort by relevance (title breaks ties) and keep the best ``top_k``."""
    lowered = [kw.lower() for kw in keywords]
    strong = set(strong_links)
    scored = [score_page(page, jira_keys, lowered, strong) for page in pages]
    scored.sort(key=lambda p: (-(p.relevance_score or 0), p.title))
    return scored[:top_k]


def build_traceability(jira_keys: list[str], pages: list[ConfluencePage]) -> dict[str, list[str]]:
    return {key: unique_strings(p.url for p in pages if key in p.matched_jira_keys) for key in jira_keys}


class AggregateContextStage(Stage):
    id = "aggregate-context"
    description = "Build normalized review context with relevance ranking and traceability mapping."

    def run(self, input: AggregateInput, context: StageContext) -> ReviewContext:
        jira_keys = input.jira.requested_keys
        ranked = rank_pages(
            input.confluence.pages,
            jira_keys,
            input.github.signals.keywords,
            input.confluence.strong_linked_urls,
            context.config["top_k"],
        )
        return ReviewContext(
            pr_reference=input.pr_reference,
            profile=input.profile,
            github=input.github,
            jira=input.jira,
            confluence=replace(input.confluence, pages=ranked),
            traceability=build_traceability(jira_keys, ranked),
        )
