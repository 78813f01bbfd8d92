from __future__ import annotations

import logging
from dataclasses import dataclass, field

from prtrace_core.models import GithubContext, GithubSignals, PrReference
from prtrace_core.stages.base import Stage, StageContext
from prtrace_core.utils.links import collect_keywords, extract_confluence_links, parse_pr_link, trim_pull_request_files

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchGithubInput:
    pr_link: str
    additional_keywords: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class FetchGithubOutput:
    pr_reference: PrReference
    github: GithubContext


class FetchGithubContextStage(Stage):
    id = "fetch-github-context"
    description = "Fetch PR metadata, files, commits, checks and comments, and extract Confluence links and keywords."

    def run(self, input: FetchGithubInput, context: StageContext) -> FetchGithubOutput:
        reference = parse_pr_link(input.pr_link)
        payload = context.sources.github.fetch_change(reference)

        files = trim_pull_request_files(
            payload.files,
            context.config["max_files"],
            context.config["max_patch_chars_per_file"],
        )
        if len(payload.files) > len(files):
            logger.info("Keeping %d of %d changed files for %s", len(files), len(payload.files), reference.slug)

        text_chunks = [payload.metadata.title, payload.metadata.body] + [c.body for c in payload.comments]
        signals = GithubSignals(
            confluence_links=extract_confluence_links(text_chunks),
            keywords=collect_keywords(text_chunks, input.additional_keywords),
        )

        return FetchGithubOutput(
            pr_reference=reference,
            github=GithubContext(
                metadata=payload.metadata,
                files=files,
                commits=list(payload.commits),
                checks=list(payload.checks),
                comments=list(payload.comments),
                signals=signals,
            ),
        )
