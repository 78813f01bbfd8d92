"""review command: build PR context, score it and draft a review comment."""

from __future__ import annotations

import json

import anthropic
import click
import openai
from github import GithubException
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from prtrace_core.errors import PrTraceError
from prtrace_core.models import REVIEW_PROFILES, PublishCommentRequest, ReviewRequest, ReviewResult
from prtrace_core.observability import ConsoleObserver, LoggingObserver
from prtrace_core.scoring import weighted_overall_score

console = Console()

# Errors a pipeline run may surface; anything else is a bug and keeps its traceback.
PIPELINE_ERRORS = (PrTraceError, GithubException, LookupError, anthropic.APIError, openai.APIError)


def check_credentials(config: dict) -> None:
    from prtrace_cli.auth import missing_llm_key_message

    if config["sources"]["mode"] == "rest" and not config["providers"]["github"]["credential"].get("token"):
        raise click.UsageError(
            "No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.\n"
            "Create a token at https://github.com/settings/tokens"
        )
    message = missing_llm_key_message(config)
    if message:
        raise click.UsageError(message)


def _render_result(result: ReviewResult) -> None:
    score = result.score
    context = result.context

    console.print(f"\n[bold]{context.github.metadata.title}[/bold]  [dim]{context.github.metadata.url}[/dim]")
    console.print(
        f"Profile: {context.profile}  ·  Jira: {', '.join(context.jira.requested_keys)}  ·  "
        f"Confluence pages: {len(context.confluence.pages)}"
    )

    table = Table(title="Score Breakdown", show_header=True, header_style="bold cyan")
    table.add_column("Dimension")
    table.add_column("Score", justify="right")
    table.add_column("Weight", justify="right")
    table.add_column("Rationale")
    for item in score.score_breakdown:
        color = "green" if item.score >= 80 else "yellow" if item.score >= 60 else "red"
        table.add_row(item.dimension, f"[{color}]{item.score}[/{color}]", f"{item.weight:.2f}", item.rationale)
    console.print(table)

    weighted = weighted_overall_score(score.score_breakdown)
    console.print(
        f"Overall: [bold]{score.overall_score}/100[/bold] ({score.confidence} confidence)  "
        f"[dim]weighted breakdown: {weighted}/100[/dim]"
    )

    for warning in result.warnings:
        console.print(f"[yellow]⚠ {warning}[/yellow]")

    console.rule("Draft comment")
    console.print(Markdown(result.draft.markdown))
    console.rule()
    console.print(f"[dim]Completed in {result.meta.duration_ms} ms[/dim]")


@click.command("review")
@click.argument("pr_link")
@click.option(
    "--keyword",
    "-k",
    "keywords",
    multiple=True,
    help="Extra keyword for Confluence matching. Repeatable.",
)
@click.option(
    "--profile",
    type=click.Choice(REVIEW_PROFILES),
    default=None,
    help="Review profile passed to the LLM. Defaults to 'default'.",
)
@click.option("--json", "json_output", is_flag=True, help="Print the full result as JSON.")
@click.option("--edit", is_flag=True, help="Open the draft in $EDITOR before publishing.")
@click.option("--publish", is_flag=True, help="Post the (edited) draft as a PR comment.")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompts.")
@click.pass_context
def review_cmd(
    ctx,
    pr_link: str,
    keywords: tuple[str, ...],
    profile: str | None,
    json_output: bool,
    edit: bool,
    publish: bool,
    yes: bool,
):
    """Review the pull request at PR_LINK.

    Fetches the PR, resolves the Jira issues it mentions, finds related
    Confluence pages, asks the LLM for a seven-dimension score and prints a
    markdown draft you can edit and publish.

    \b
    Required environment variables:
      GITHUB_TOKEN         GitHub token (or use gh CLI)
      JIRA_TOKEN           Jira API token (JIRA_EMAIL for Atlassian Cloud)
      CONFLUENCE_TOKEN     Confluence API token (CONFLUENCE_EMAIL for Atlassian Cloud)
      ANTHROPIC_API_KEY    Required when llm.model is anthropic
      OPENAI_API_KEY       Required when llm.model is openai
    """
    from prtrace_cli.cli import build_orchestrator

    config = ctx.obj["config"]
    check_credentials(config)

    observer = LoggingObserver() if json_output else ConsoleObserver()
    try:
        orchestrator = build_orchestrator(config, observer=observer)
        result = orchestrator.run(ReviewRequest(pr_link=pr_link, profile=profile, additional_keywords=list(keywords)))
    except PIPELINE_ERRORS as e:
        raise click.ClickException(str(e))

    if json_output:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        _render_result(result)

    body = result.draft.markdown
    if edit:
        edited = click.edit(body, extension=".md")
        if edited is not None:
            body = edited

    if not publish:
        return

    if not yes and not click.confirm("Publish this comment to the pull request?", default=False):
        console.print("[yellow]Not published.[/yellow]")
        return

    try:
        published = orchestrator.publish_edited_comment(
            PublishCommentRequest(pr_link=pr_link, comment_body=body, confirmed=True)
        )
    except PIPELINE_ERRORS as e:
        raise click.ClickException(str(e))
    console.print(f"[green]Published:[/green] {published.comment.url}")
