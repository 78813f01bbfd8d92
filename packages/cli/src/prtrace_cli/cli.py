"""CLI entry point for prtrace.

Commands:
  review   gather PR/Jira/Confluence context, score it and draft a review comment
  publish  post an edited review comment through the publish gate
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from prtrace_cli.commands.publish import publish_cmd
from prtrace_cli.commands.review import review_cmd

console = Console()


def build_sources(config: dict):
    """Instantiate the GitHub, Jira and Confluence sources selected by ``sources.mode``.

    Source selection:
      sources.mode: fixture → in-memory sources loaded from sources.fixture_path
      sources.mode: rest    → PyGithub and Atlassian REST clients (default)

    This factory lives in cli.py so prtrace_core never reads the CLI config
    format to decide which implementation to use.
    """
    from prtrace_core.errors import ConfigurationError
    from prtrace_core.sources.base import Sources

    mode = config["sources"]["mode"]

    if mode == "fixture":
        from prtrace_core.sources.fixtures import load_fixture_sources

        path = config["sources"].get("fixture_path")
        if not path:
            raise ConfigurationError("sources.mode 'fixture' requires sources.fixture_path.")
        return load_fixture_sources(path)

    if mode == "rest":
        from prtrace_core.sources.confluence import RestConfluenceSource
        from prtrace_core.sources.github import RestGithubSource
        from prtrace_core.sources.jira import RestJiraSource

        providers = config["providers"]
        github, jira, confluence = providers["github"], providers["jira"], providers["confluence"]
        return Sources(
            github=RestGithubSource(github["credential"]["token"], base_url=github["domain"]),
            jira=RestJiraSource(
                jira["domain"],
                token=jira["credential"].get("token"),
                email=jira["credential"].get("email"),
                key_pattern=config["jira_key_pattern"],
            ),
            confluence=RestConfluenceSource(
                confluence["domain"],
                token=confluence["credential"].get("token"),
                email=confluence["credential"].get("email"),
            ),
        )

    raise ConfigurationError(f"Unknown sources.mode: {mode!r}. Choose 'rest' or 'fixture'.")


def build_orchestrator(config: dict, observer=None):
    from prtrace_core.orchestrator import ReviewOrchestrator

    sources = build_sources(config)
    return ReviewOrchestrator(
        github=sources.github,
        jira=sources.jira,
        confluence=sources.confluence,
        observer=observer,
        config=config,
    )


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # Third-party HTTP clients are noisy at DEBUG.
    for name in ("urllib3", "httpx", "github"):
        logging.getLogger(name).setLevel(logging.WARNING)


@click.group()
@click.version_option(
    version=importlib.metadata.version("prtrace"),
    prog_name="prtrace",
)
@click.option(
    "--config",
    "config_path",
    default=".prtrace.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="PRTRACE_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Log debug output, including LLM prompts.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Trace a GitHub PR to its Jira issues and Confluence pages, then score and draft a review."""
    from prtrace_core.config import load_config
    from prtrace_core.errors import ConfigurationError
    from prtrace_cli.auth import resolve_github_token

    ctx.ensure_object(dict)

    try:
        config = load_config(config_path)
    except ConfigurationError as e:
        raise click.ClickException(str(e))

    _configure_logging(verbose or config["observability"]["verbose_logs"])

    # Resolve token early so all subcommands share the same resolution.
    credential = config["providers"]["github"]["credential"]
    credential["token"] = resolve_github_token(credential.get("token"))

    ctx.obj["config"] = config


main.add_command(review_cmd)
main.add_command(publish_cmd)
