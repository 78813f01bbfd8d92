from __future__ import annotations

import logging
from dataclasses import dataclass

from prtrace_core.errors import ConfigurationError
from prtrace_core.models import ConfluenceContext, GithubContext, JiraContext, ScoreResult
from prtrace_core.prompts import build_score_prompt
from prtrace_core.scoring import validate_score_payload
from prtrace_core.stages.base import Stage, StageContext
from prtrace_core.utils.llm_json import parse_json_from_llm

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoreInput:
    profile: str
    github: GithubContext
    jira: JiraContext
    confluence: ConfluenceContext


class ScorePrStage(Stage):
    id = "score-pr"
    description = "Score the PR on seven fixed dimensions with the LLM and validate the result."

    def run(self, input: ScoreInput, context: StageContext) -> ScoreResult:
        if context.llm is None:
            raise ConfigurationError("LLM provider is required for scoring. Configure an LLM provider and retry.")

        prompt = build_score_prompt(input.profile, input.github, input.jira, input.confluence)
        raw = context.llm.generate(prompt)
        result = validate_score_payload(parse_json_from_llm(raw), context.config["scoring"]["weights"])
        logger.debug("LLM score %d (%s confidence)", result.overall_score, result.confidence)
        return result
