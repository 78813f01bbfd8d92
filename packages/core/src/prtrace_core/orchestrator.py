"""Core review pipeline orchestration."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, TypeVar

from prtrace_core.config import DEFAULT_CONFIG, merge_config
from prtrace_core.errors import ConfigurationError
from prtrace_core.models import (
    REVIEW_PROFILES,
    ConfluenceContext,
    PublishCommentRequest,
    PublishCommentResult,
    ReviewRequest,
    ReviewResult,
    RunMetadata,
)
from prtrace_core.observability import BaseObserver, NoOpObserver, ReviewEvent
from prtrace_core.providers.anthropic import AnthropicProvider
from prtrace_core.providers.base import BaseLlmProvider
from prtrace_core.providers.openai import OpenAIProvider
from prtrace_core.providers.tracing import TracingLlmProvider
from prtrace_core.sources.base import ConfluenceSource, GithubSource, JiraSource, Sources
from prtrace_core.stages.aggregate import AggregateContextStage, AggregateInput
from prtrace_core.stages.base import StageContext
from prtrace_core.stages.draft import DraftCommentStage, DraftInput
from prtrace_core.stages.extract_keys import ExtractJiraKeysStage
from prtrace_core.stages.fetch_confluence import FetchConfluenceContextStage, FetchConfluenceInput
from prtrace_core.stages.fetch_github import FetchGithubContextStage, FetchGithubInput
from prtrace_core.stages.fetch_jira import FetchJiraContextStage
from prtrace_core.stages.publish import PublishCommentStage, PublishInput
from prtrace_core.stages.score import ScorePrStage, ScoreInput
from prtrace_core.utils.links import parse_pr_link

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEGRADED_MESSAGE = "Confluence retrieval failed; continue with empty Confluence context."

_PROVIDERS = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
}


def get_llm_provider(config: dict) -> BaseLlmProvider:
    """Instantiate the provider named by ``llm.model`` with its API key from config."""
    model = config["llm"]["model"]
    provider_cls = _PROVIDERS.get(model)
    if provider_cls is None:
        raise ConfigurationError(f"Unknown model provider: {model!r}. Choose 'anthropic' or 'openai'.")
    api_key = config.get(f"{model}_api_key")
    if not api_key:
        raise ConfigurationError(f"No API key configured for the {model!r} provider.")
    return provider_cls(api_key=api_key, model=config["llm"].get("name"))


def _resolve_profile(requested: Optional[str]) -> str:
    if requested in REVIEW_PROFILES:
        return requested
    if requested:
        logger.warning("Unknown review profile %r, using 'default'", requested)
    return "default"


class ReviewOrchestrator:
    """Runs the review stages in order and reports each step to an observer.

    ``config`` is a partial override merged over DEFAULT_CONFIG once, here.
    When ``llm`` is omitted the provider named by ``llm.model`` is built from
    the API key in config; without a key the run fails at scoring.
    """

    def __init__(
        self,
        github: GithubSource,
        jira: JiraSource,
        confluence: ConfluenceSource,
        llm: Optional[BaseLlmProvider] = None,
        observer: Optional[BaseObserver] = None,
        config: Optional[dict] = None,
    ):
        self.config = merge_config(DEFAULT_CONFIG, config)
        self.observer = observer or NoOpObserver()

        if llm is None and self.config.get(f"{self.config['llm']['model']}_api_key"):
            llm = get_llm_provider(self.config)
        if llm is not None:
            llm = TracingLlmProvider(llm, self._emit)

        self.context = StageContext(
            config=self.config,
            sources=Sources(github=github, jira=jira, confluence=confluence),
            llm=llm,
        )

        self.fetch_github = FetchGithubContextStage()
        self.extract_keys = ExtractJiraKeysStage()
        self.fetch_jira = FetchJiraContextStage()
        self.fetch_confluence = FetchConfluenceContextStage()
        self.aggregate = AggregateContextStage()
        self.score = ScorePrStage()
        self.draft = DraftCommentStage()
        self.publish = PublishCommentStage()

    def run(self, request: ReviewRequest) -> ReviewResult:
        started = time.monotonic()
        warnings: list[str] = []
        self._emit(ReviewEvent("pipeline_started"))

        try:
            profile = _resolve_profile(request.profile)
            fetched = self._run_step(
                self.fetch_github.id,
                lambda: self.fetch_github.run(
                    FetchGithubInput(request.pr_link, list(request.additional_keywords)), self.context
                ),
                lambda out: f"{out.pr_reference.slug}: {len(out.github.files)} file(s), "
                f"{len(out.github.commits)} commit(s)",
            )
            github = fetched.github

            keys = self._run_step(
                self.extract_keys.id,
                lambda: self.extract_keys.run(github, self.context),
                lambda out: ", ".join(out),
            )
            jira = self._run_step(
                self.fetch_jira.id,
                lambda: self.fetch_jira.run(keys, self.context),
                lambda out: f"{len(out.issues)} issue(s)",
            )

            try:
                confluence = self._run_step(
                    self.fetch_confluence.id,
                    lambda: self.fetch_confluence.run(FetchConfluenceInput(github, jira), self.context),
                    lambda out: f"{len(out.pages)} page(s), {len(out.search_queries)} query(ies)",
                )
            except Exception as e:
                if not self.config["resilience"]["continue_on_knowledge_base_error"]:
                    raise
                message = f"{DEGRADED_MESSAGE} ({e})"
                warnings.append(message)
                self._emit(ReviewEvent("degraded", step=self.fetch_confluence.id, message=message))
                confluence = ConfluenceContext()

            review_context = self._run_step(
                self.aggregate.id,
                lambda: self.aggregate.run(
                    AggregateInput(fetched.pr_reference, profile, github, jira, confluence), self.context
                ),
                lambda out: f"{len(out.confluence.pages)} ranked page(s)",
            )
            score = self._run_step(
                self.score.id,
                lambda: self.score.run(
                    ScoreInput(profile, review_context.github, review_context.jira, review_context.confluence),
                    self.context,
                ),
                lambda out: f"overall {out.overall_score}/100, {out.confidence} confidence",
            )
            drafted = self._run_step(
                self.draft.id,
                lambda: self.draft.run(DraftInput(review_context, score), self.context),
                lambda out: f"{len(out.draft.markdown)} chars",
            )
        except Exception as e:
            self._emit(ReviewEvent("pipeline_failed", message=str(e) or e.__class__.__name__))
            raise

        duration_ms = int((time.monotonic() - started) * 1000)
        self._emit(ReviewEvent("pipeline_completed", duration_ms=duration_ms))

        return ReviewResult(
            context=review_context,
            score=score,
            draft=drafted.draft,
            meta=RunMetadata(duration_ms=duration_ms, used_llm=drafted.used_llm),
            warnings=warnings,
        )

    def publish_edited_comment(self, request: PublishCommentRequest) -> PublishCommentResult:
        reference = parse_pr_link(request.pr_link)
        return self._run_step(
            self.publish.id,
            lambda: self.publish.run(PublishInput(reference, request.comment_body, request.confirmed), self.context),
            lambda out: out.comment.url,
        )

    def _run_step(self, step: str, runner: Callable[[], T], summarize: Optional[Callable[[T], str]] = None) -> T:
        started = time.monotonic()
        self._emit(ReviewEvent("step_started", step=step))
        try:
            result = runner()
        except Exception as e:
            self._emit(
                ReviewEvent(
                    "step_failed",
                    step=step,
                    message=str(e) or e.__class__.__name__,
                    duration_ms=int((time.monotonic() - started) * 1000),
                )
            )
            raise

        self._emit(
            ReviewEvent(
                "step_succeeded",
                step=step,
                message=self._summarize(step, summarize, result),
                duration_ms=int((time.monotonic() - started) * 1000),
            )
        )
        return result

    def _summarize(self, step: str, summarize: Optional[Callable[[T], str]], result: T) -> Optional[str]:
        if summarize is None or not self.config["observability"]["enabled"]:
            return None
        try:
            return summarize(result)
        except Exception as e:
            logger.debug("Could not summarize %s: %s", step, e)
            return None

    def _emit(self, event: ReviewEvent) -> None:
        if not self.config["observability"]["enabled"]:
            return
        try:
            self.observer.emit(event)
        except Exception as e:
            logger.debug("Observer failed on %s: %s", event.name, e)
