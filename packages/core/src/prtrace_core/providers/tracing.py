from __future__ import annotations

import time
from typing import Callable

from prtrace_core.observability import ReviewEvent
from prtrace_core.providers.base import BaseLlmProvider

DEFAULT_PREVIEW_CHARS = 2000


def classify_operation(prompt: str) -> str:
    """Name the pipeline operation a prompt belongs to, from its output schema.

    The draft prompt carries the score keys inside its context payload, so it
    is checked first.
    """
    if '"markdown"' in prompt and "review markdown draft" in prompt.lower():
        return "draft-comment"
    if '"overallScore"' in prompt and '"scoreBreakdown"' in prompt and '"confidence"' in prompt:
        return "score-pr"
    return "unknown"


def preview(text: str, max_chars: int = DEFAULT_PREVIEW_CHARS) -> str:
    if len(text) <= max_chars:
        return text
    return f"{text[: max(max_chars - 20, 20)]}\n...[TRUNCATED {len(text) - max_chars} chars]"


class TracingLlmProvider(BaseLlmProvider):
    """Wraps another provider and reports every prompt, response and error.

    ``emit`` receives ``llm_prompt``, ``llm_response`` and ``llm_error``
    events whose ``step`` is the classified operation. Retry stays with the
    wrapped provider; this wrapper calls it exactly once per prompt.
    """

    def __init__(
        self,
        inner: BaseLlmProvider,
        emit: Callable[[ReviewEvent], None],
        max_preview_chars: int = DEFAULT_PREVIEW_CHARS,
    ):
        self.inner = inner
        self._emit = emit
        self.max_preview_chars = max_preview_chars

    def describe(self) -> str:
        return self.inner.describe()

    def generate(self, prompt: str) -> str:
        operation = classify_operation(prompt)
        self._emit(ReviewEvent("llm_prompt", step=operation, message=preview(prompt, self.max_preview_chars)))

        started = time.monotonic()
        try:
            output = self.inner.generate(prompt)
        except Exception as e:
            self._emit(
                ReviewEvent(
                    "llm_error",
                    step=operation,
                    message=str(e) or "Unknown LLM error",
                    duration_ms=int((time.monotonic() - started) * 1000),
                )
            )
            raise

        self._emit(
            ReviewEvent(
                "llm_response",
                step=operation,
                message=preview(output, self.max_preview_chars),
                duration_ms=int((time.monotonic() - started) * 1000),
            )
        )
        return output

    def _call_api(self, prompt: str) -> str:
        return self.inner.generate(prompt)
