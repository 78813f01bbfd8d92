"""Exception hierarchy for the review pipeline.

Callers get either a complete ReviewResult or exactly one of these errors.
Upstream failures raised by sources and LLM providers are propagated as-is
and are not wrapped here.
"""

from __future__ import annotations


class PrTraceError(Exception):
    """Base class for every error raised by prtrace itself."""


class ConfigurationError(PrTraceError):
    """Raised when the resolved configuration cannot drive a run."""


class PrLinkParseError(PrTraceError, ValueError):
    """Raised when a pull request link is not a recognised GitHub PR URL."""


class NoIssueKeysError(PrTraceError, ValueError):
    """Raised when no Jira key can be found anywhere in the pull request."""


class SourceError(PrTraceError):
    """Raised by the bundled REST sources when an upstream system fails."""


class ValidationError(PrTraceError):
    """Raised when LLM output violates the expected structure."""


class ScoreValidationError(ValidationError):
    """Raised when a score payload breaks the seven-dimension rubric."""


class LlmResponseParseError(ValidationError):
    """Raised when an LLM response cannot be parsed into the expected shape."""


class PublishPolicyError(PrTraceError):
    """Raised when the publish gate refuses to post a comment."""
