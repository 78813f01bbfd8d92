"""Prompt templates for the scoring and drafting calls.

Templates use ``{{name}}`` placeholders. Rendering is strict: a placeholder
without a value is an error rather than a silently broken prompt. Values are
inserted verbatim in one pass, so PR text that happens to contain ``{{...}}``
is never re-expanded.
"""

from __future__ import annotations

import json
import re

from prtrace_core.models import ConfluenceContext, GithubContext, JiraContext, ReviewContext, ScoreResult

SCORE_OUTPUT_SCHEMA = (
    '{"overallScore":number(0-100),"scoreBreakdown":[{"dimension":"Correctness|Maintainability|Reliability|'
    'Security|Performance|Test Quality|Traceability","score":number(0-100),"weight":number,"rationale":string}],'
    '"evidence":[{"file":string?,"snippet":string?}],"confidence":"low|medium|high"}'
)

DRAFT_OUTPUT_SCHEMA = '{"markdown":"..."}'

SCORE_TEMPLATE = """You are a strict PR reviewer.
Review profile: {{profile}}
Use only the supplied PR/Jira/Confluence context.
Return JSON only. No markdown.
JSON schema:
{{output_schema}}
Ensure all 7 dimensions are present exactly once in scoreBreakdown.
Context:
{{context_json}}"""

DRAFT_TEMPLATE = """Generate a PR review markdown draft for human editing.
Review profile: {{profile}}
Use concise sections: Summary, Score Breakdown, Jira/Confluence Traceability, Risks, Suggested Actions.
Output JSON only: {{output_schema}}.
Context:
{{context_json}}"""

_PLACEHOLDER_RE = re.compile(r"{{\s*([a-zA-Z0-9_]+)\s*}}")

_SCORE_MAX_FILES = 10
_SCORE_MAX_PAGES = 12
_DRAFT_MAX_PAGES = 6
_DRAFT_MAX_EVIDENCE = 8
_SNIPPET_CHARS = 1200


def render_template(template: str, values: dict[str, str]) -> str:
    def _substitute(match: re.Match) -> str:
        key = match.group(1)
        if key not in values:
            raise KeyError(f"Missing prompt template variable: {key}")
        return values[key]

    return _PLACEHOLDER_RE.sub(_substitute, template)


def build_score_prompt(
    profile: str,
    github: GithubContext,
    jira: JiraContext,
    confluence: ConfluenceContext,
) -> str:
    metadata = github.metadata
    context = {
        "profile": profile,
        "pr": {
            "title": metadata.title,
            "body": metadata.body,
            "url": metadata.url,
            "files": [
                {"path": f.path, "patch": f.patch[:_SNIPPET_CHARS], "truncated": f.truncated}
                for f in github.files[:_SCORE_MAX_FILES]
            ],
            "checks": [c.to_dict() for c in github.checks],
            "commits": [c.to_dict() for c in github.commits],
        },
        "jira": {
            "requestedKeys": jira.requested_keys,
            "issues": [issue.to_dict() for issue in jira.issues],
        },
        "confluence": {
            "pages": [
                {
                    "title": page.title,
                    "url": page.url,
                    "relevanceScore": page.relevance_score or 0,
                    "source": page.source,
                    "content": page.content[:_SNIPPET_CHARS],
                }
                for page in confluence.pages[:_SCORE_MAX_PAGES]
            ]
        },
    }
    return render_template(
        SCORE_TEMPLATE,
        {"profile": profile, "output_schema": SCORE_OUTPUT_SCHEMA, "context_json": json.dumps(context)},
    )


def build_draft_prompt(context: ReviewContext, score: ScoreResult) -> str:
    payload = {
        "pr": context.github.metadata.url,
        "profile": context.profile,
        "overallScore": score.overall_score,
        "confidence": score.confidence,
        "scoreBreakdown": [item.to_dict() for item in score.score_breakdown],
        "jira": [{"key": issue.key, "summary": issue.summary} for issue in context.jira.issues],
        "confluence": [
            {"title": page.title, "url": page.url, "relevanceScore": page.relevance_score or 0}
            for page in context.confluence.pages[:_DRAFT_MAX_PAGES]
        ],
        "traceability": context.traceability,
        "evidence": [e.to_dict() for e in score.evidence[:_DRAFT_MAX_EVIDENCE]],
    }
    return render_template(
        DRAFT_TEMPLATE,
        {"profile": context.profile, "output_schema": DRAFT_OUTPUT_SCHEMA, "context_json": json.dumps(payload)},
    )
