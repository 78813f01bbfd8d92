"""GitHub token resolution with gh CLI fallback.

Resolution order (stops at first success):
  1. providers.github.credential.token from the config file
  2. GITHUB_TOKEN environment variable
  3. `gh auth token` (GitHub CLI session, works after `gh auth login`)

Jira and Confluence credentials have no CLI session to fall back on; they
come from the config file or JIRA_* / CONFLUENCE_* variables (see load_config).
"""

from __future__ import annotations

import logging
import os
import subprocess

logger = logging.getLogger(__name__)


def resolve_github_token(configured: str | None = None) -> str | None:
    """Return a GitHub token or None if no valid source is available.

    Never raises; callers decide whether a missing token is fatal.
    """
    if configured:
        return configured

    token = os.environ.get("GITHUB_TOKEN")
    if token:
        return token

    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0:
            gh_token = result.stdout.strip()
            if gh_token:
                logger.debug("Resolved GitHub token via gh CLI session.")
                return gh_token
    except (FileNotFoundError, subprocess.TimeoutExpired):
        # gh is not installed or timed out.
        pass

    return None


def missing_llm_key_message(config: dict) -> str | None:
    """Return a usage message when the selected LLM has no API key, else None."""
    model = config["llm"]["model"]
    env_var = {"anthropic": "ANTHROPIC_API_KEY", "openai": "OPENAI_API_KEY"}.get(model)
    if env_var is None:
        return f"Unknown model provider: {model!r}. Choose 'anthropic' or 'openai'."
    if not config.get(f"{model}_api_key"):
        return f"{env_var} environment variable is not set."
    return None
