"""Stage contract shared by every pipeline step.

A stage is a class with a stable ``id``, a human-readable ``description`` and
a ``run(input, context)`` method. Stages keep no per-run state: everything a
run needs arrives through ``input`` and ``context``, so one instance can
serve any number of runs.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from prtrace_core.providers.base import BaseLlmProvider
    from prtrace_core.sources.base import Sources


@dataclass(frozen=True)
class StageContext:
    config: dict
    sources: Sources
    llm: Optional[BaseLlmProvider] = None


class Stage(ABC):
    id: str = ""
    description: str = ""

    @abstractmethod
    def run(self, input: Any, context: StageContext) -> Any:
        """Execute the stage and return its output record."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.id}>"
