from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace

from prtrace_core.models import ConfluenceContext, GithubContext, JiraContext
from prtrace_core.stages.base import Stage, StageContext
from prtrace_core.utils.keys import compile_key_pattern
from prtrace_core.utils.links import (
    dedupe_pages,
    extract_confluence_links,
    has_confluence_page_id,
    is_confluence_url,
    unique_strings,
)

logger = logging.getLogger(__name__)

MAX_SEARCH_WORKERS = 8
MIN_SEARCH_QUERIES = 12
MIN_QUERY_LENGTH = 3


@dataclass(frozen=True)
class FetchConfluenceInput:
    github: GithubContext
    jira: JiraContext


def build_search_queries(github: GithubContext, jira: JiraContext, top_k: int) -> list[str]:
    candidates = unique_strings(
        jira.requested_keys
        + [issue.summary for issue in jira.issues]
        + [criterion for issue in jira.issues for criterion in issue.acceptance_criteria]
        + github.signals.keywords
    )
    queries = [q for q in candidates if len(q) >= MIN_QUERY_LENGTH]
    return queries[: max(top_k, MIN_SEARCH_QUERIES)]


class FetchConfluenceContextStage(Stage):
    id = "fetch-confluence-context"
    description = "Fetch Confluence pages via strong links first, then query expansion with Jira and keywords."

    def run(self, input: FetchConfluenceInput, context: StageContext) -> ConfluenceContext:
        config = context.config
        confluence = context.sources.confluence

        issue_links = [link for issue in input.jira.issues for link in issue.links]
        issue_link_set = set(issue_links)
        candidates = unique_strings(
            url for url in issue_links + input.github.signals.confluence_links if is_confluence_url(url)
        )
        strong_links = [url for url in candidates if has_confluence_page_id(url)]

        direct_pages = [
            replace(page, source="issue-link" if page.url in issue_link_set else "pr-link")
            for page in confluence.fetch_by_urls(strong_links, expand_depth=config["expand_depth"])
        ]

        search_queries: list[str] = []
        searched_pages = []
        if config["providers"]["confluence"].get("enable_expanded_search"):
            top_k = config["top_k"]
            search_queries = build_search_queries(input.github, input.jira, top_k)
            per_query = max(top_k // 2, 3)
            key_pattern = compile_key_pattern(config["jira_key_pattern"])

            logger.debug("Running %d Confluence search queries", len(search_queries))
            with ThreadPoolExecutor(max_workers=MAX_SEARCH_WORKERS) as pool:
                results = list(
                    pool.map(
                        lambda q: confluence.search(q, per_query, expand_depth=config["expand_depth"]),
                        search_queries,
                    )
                )

            for query, pages in zip(search_queries, results):
                tag = "jira-query" if key_pattern.search(query) else "keyword-query"
                searched_pages.extend(replace(page, source=tag) for page in pages)

        return ConfluenceContext(
            strong_linked_urls=unique_strings(extract_confluence_links(strong_links)),
            search_queries=search_queries,
            pages=dedupe_pages(direct_pages + searched_pages),
        )
