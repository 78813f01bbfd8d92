"""publish command: post an edited review comment to a pull request."""

from __future__ import annotations

from pathlib import Path

import click
from rich.console import Console

from prtrace_core.models import PublishCommentRequest

console = Console()


@click.command("publish")
@click.argument("pr_link")
@click.option(
    "--body-file",
    "body_file",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Markdown file holding the comment body.",
)
@click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt.")
@click.pass_context
def publish_cmd(ctx, pr_link: str, body_file: Path, yes: bool):
    """Publish the comment in BODY_FILE to the pull request at PR_LINK.

    The post.enabled and post.require_confirmation settings still apply;
    without --yes you are asked to confirm before anything is posted.
    """
    from prtrace_cli.cli import build_orchestrator
    from prtrace_cli.commands.review import PIPELINE_ERRORS

    config = ctx.obj["config"]
    if config["sources"]["mode"] == "rest" and not config["providers"]["github"]["credential"].get("token"):
        raise click.UsageError("No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.")

    body = body_file.read_text()
    confirmed = yes or click.confirm(f"Publish {body_file.name} to {pr_link}?", default=False)

    try:
        orchestrator = build_orchestrator(config)
        result = orchestrator.publish_edited_comment(
            PublishCommentRequest(pr_link=pr_link, comment_body=body, confirmed=confirmed)
        )
    except PIPELINE_ERRORS as e:
        raise click.ClickException(str(e))

    console.print(f"[green]Published:[/green] {result.comment.url}")
