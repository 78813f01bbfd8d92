from __future__ import annotations

from prtrace_core.models import JiraContext
from prtrace_core.stages.base import Stage, StageContext
from prtrace_core.utils.links import unique_strings


class FetchJiraContextStage(Stage):
    id = "fetch-jira-context"
    description = "Fetch Jira issues for the extracted keys, expanding linked issues to the configured depth."

    def run(self, input: list[str], context: StageContext) -> JiraContext:
        keys = sorted(unique_strings(k.upper() for k in input))
        issues = context.sources.jira.fetch_issues(keys, expand_depth=context.config["expand_depth"])
        return JiraContext(requested_keys=keys, issues=sorted(issues, key=lambda issue: issue.key))
