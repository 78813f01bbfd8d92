from __future__ import annotations

from openai import OpenAI

from prtrace_core.providers.base import BaseLlmProvider


class OpenAIProvider(BaseLlmProvider):
    MODEL = "gpt-4o"
    TEMPERATURE = 0.2

    def __init__(self, api_key: str, model: str | None = None):
        self.client = OpenAI(api_key=api_key)
        self.model = model or self.MODEL

    def describe(self) -> str:
        return f"provider=openai model={self.model}"

    def _call_api(self, prompt: str) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
        )
        return response.choices[0].message.content or ""
