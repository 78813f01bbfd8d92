"""Base LLM provider implementing the Template Method pattern.

All providers share the same algorithm:
    generate(prompt) → _call_with_retry() → _call_api()   ← only this differs per provider

Subclasses implement two things only:
  - __init__: validate and store the SDK client
  - _call_api: make one raw API call and return the text response

Prompt construction and response validation belong to the pipeline stages,
not to the provider, so every provider sees exactly the same prompt.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)

_MAX_RETRIES = 3
_MAX_TOKENS = 4096


class BaseLlmProvider(ABC):
    MAX_RETRIES: int = _MAX_RETRIES
    MAX_TOKENS: int = _MAX_TOKENS

    def generate(self, prompt: str) -> str:
        """Send one prompt and return the model's raw text."""
        return self._call_with_retry(prompt)

    def describe(self) -> str:
        return f"provider={self.__class__.__name__}"

    @abstractmethod
    def _call_api(self, prompt: str) -> str:
        """Make a single API call and return the raw text response.

        It should raise on failure; _call_with_retry handles retries and logging.
        """

    def _call_with_retry(self, prompt: str) -> str:
        """Retry _call_api up to MAX_RETRIES times with exponential backoff.

        The last error is re-raised so the calling stage fails visibly.
        """
        for attempt in range(self.MAX_RETRIES):
            try:
                return self._call_api(prompt)
            except Exception as e:
                if attempt == self.MAX_RETRIES - 1:
                    logger.error(
                        "%s API failed after %d attempts: %s",
                        self.__class__.__name__,
                        self.MAX_RETRIES,
                        e,
                    )
                    raise
                delay = 2**attempt
                logger.warning(
                    "%s API error (attempt %d/%d): %s. Retrying in %ds...",
                    self.__class__.__name__,
                    attempt + 1,
                    self.MAX_RETRIES,
                    e,
                    delay,
                )
                time.sleep(delay)
        raise RuntimeError("unreachable")
