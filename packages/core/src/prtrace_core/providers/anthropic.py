from __future__ import annotations

from anthropic import Anthropic
from anthropic.types import TextBlock

from prtrace_core.providers.base import BaseLlmProvider


class AnthropicProvider(BaseLlmProvider):
    MODEL = "claude-sonnet-4-20250514"
    # Scores must be reproducible between runs on the same PR.
    TEMPERATURE = 0.2
    SYSTEM_PROMPT = "You are a strict senior reviewer. Follow the output format instructions exactly."

    def __init__(self, api_key: str, model: str | None = None):
        self.client = Anthropic(api_key=api_key)
        self.model = model or self.MODEL

    def describe(self) -> str:
        return f"provider=anthropic model={self.model}"

    def _call_api(self, prompt: str) -> str:
        response = self.client.messages.create(
            model=self.model,
            system=self.SYSTEM_PROMPT,
            messages=[{"role": "user", "content": prompt}],
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
        )
        text_blocks = [block.text for block in response.content if isinstance(block, TextBlock)]
        return "".join(text_blocks).strip()
