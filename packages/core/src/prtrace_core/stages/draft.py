from __future__ import annotations

from dataclasses import dataclass

from prtrace_core.errors import ConfigurationError, LlmResponseParseError
from prtrace_core.models import DraftComment, ReviewContext, ScoreResult
from prtrace_core.prompts import build_draft_prompt
from prtrace_core.stages.base import Stage, StageContext
from prtrace_core.utils.llm_json import parse_json_from_llm


@dataclass(frozen=True)
class DraftInput:
    review_context: ReviewContext
    score: ScoreResult


@dataclass(frozen=True)
class DraftOutput:
    draft: DraftComment
    used_llm: bool


def parse_draft_markdown(raw: str) -> str:
    """Accept ``{"markdown": "..."}`` or a bare markdown document starting with a heading."""
    try:
        parsed = parse_json_from_llm(raw)
    except LlmResponseParseError:
        parsed = None

    if isinstance(parsed, dict):
        markdown = parsed.get("markdown")
        if isinstance(markdown, str) and markdown.strip():
            return markdown.strip()

    stripped = (raw or "").strip()
    if stripped.startswith("#"):
        return stripped

    raise LlmResponseParseError("LLM draft response is invalid: expected JSON with a non-empty markdown field.")


class DraftCommentStage(Stage):
    id = "draft-comment"
    description = "Generate a structured markdown draft for manual review and editing."

    def run(self, input: DraftInput, context: StageContext) -> DraftOutput:
        if context.llm is None:
            raise ConfigurationError("LLM provider is required for drafting. Configure an LLM provider and retry.")

        raw = context.llm.generate(build_draft_prompt(input.review_context, input.score))
        return DraftOutput(draft=DraftComment(markdown=parse_draft_markdown(raw)), used_llm=True)
