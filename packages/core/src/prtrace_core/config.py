from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any, Optional

import yaml

from prtrace_core.errors import ConfigurationError

DEFAULT_CONFIG: dict = {
    "expand_depth": 1,
    "top_k": 20,
    "max_files": 80,
    "max_patch_chars_per_file": 4000,
    "jira_key_pattern": r"[A-Z][A-Z0-9]+-\d+",
    "sources": {
        "mode": "rest",  # "rest" | "fixture"
        "fixture_path": None,
    },
    "providers": {
        "github": {
            "domain": "https://api.github.com",
            "credential": {"token": None},
        },
        "jira": {
            "domain": "https://your-domain.atlassian.net",
            "credential": {"token": None, "email": None},
        },
        "confluence": {
            "domain": "https://your-domain.atlassian.net/wiki",
            "credential": {"token": None, "email": None},
            "enable_expanded_search": False,
        },
    },
    "llm": {
        "model": "anthropic",  # "anthropic" | "openai"
        "name": None,  # provider model id; None uses the provider default
    },
    "post": {
        "enabled": True,
        "require_confirmation": True,
    },
    "resilience": {
        "continue_on_knowledge_base_error": True,
    },
    "observability": {
        "enabled": True,
        "verbose_logs": False,
    },
    "scoring": {
        "weights": {
            "Correctness": 0.24,
            "Maintainability": 0.14,
            "Reliability": 0.18,
            "Security": 0.14,
            "Performance": 0.1,
            "Test Quality": 0.1,
            "Traceability": 0.1,
        },
    },
}

# Environment variables folded into provider credentials when the config
# file leaves them unset.
_CREDENTIAL_ENV = {
    ("github", "token"): "GITHUB_TOKEN",
    ("jira", "token"): "JIRA_TOKEN",
    ("jira", "email"): "JIRA_EMAIL",
    ("confluence", "token"): "CONFLUENCE_TOKEN",
    ("confluence", "email"): "CONFLUENCE_EMAIL",
}


def merge_config(base: dict, patch: Optional[dict]) -> dict:
    """Fold a deep-partial ``patch`` over ``base`` and return a new dict.

    Nested dicts merge key by key at every depth, so overriding a single
    scoring weight or a single provider credential keeps every sibling value.
    Any non-dict value (lists included) replaces the base value outright.
    ``None`` in the patch means "not set" and leaves the base value alone.
    Neither argument is mutated.
    """
    merged = copy.deepcopy(base)
    for key, value in (patch or {}).items():
        if value is None:
            continue
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = merge_config(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _read_config_file(path: Path) -> dict:
    with open(path) as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Could not parse config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping at the top level.")
    return data


def load_config(config_path: str = ".prtrace.yml", cli_overrides: Optional[dict[str, Any]] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .prtrace.yml in the current directory
      3. CLI argument overrides
    Credentials missing from the file are then resolved from the environment.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    path = Path(config_path)
    if path.exists():
        config = merge_config(config, _read_config_file(path))

    if cli_overrides:
        config = merge_config(config, cli_overrides)

    for (provider, field_name), env_var in _CREDENTIAL_ENV.items():
        credential = config["providers"][provider]["credential"]
        if not credential.get(field_name):
            credential[field_name] = os.environ.get(env_var)

    config["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY")
    config["openai_api_key"] = os.environ.get("OPENAI_API_KEY")

    return config
