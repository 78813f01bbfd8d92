from __future__ import annotations

from prtrace_core.errors import NoIssueKeysError
from prtrace_core.models import GithubContext
from prtrace_core.stages.base import Stage, StageContext
from prtrace_core.utils.keys import compile_key_pattern, extract_issue_keys


class ExtractJiraKeysStage(Stage):
    id = "extract-jira-keys"
    description = "Extract Jira keys from PR title, branch names, comments and commit messages."

    def run(self, input: GithubContext, context: StageContext) -> list[str]:
        pattern = compile_key_pattern(context.config["jira_key_pattern"])
        metadata = input.metadata
        texts = [metadata.title, metadata.base_branch, metadata.head_branch]
        texts += [c.body for c in input.comments]
        texts += [c.message for c in input.commits]

        keys = extract_issue_keys(texts, pattern)
        if not keys:
            raise NoIssueKeysError("No Jira keys found in PR title, branch, comments, or commits.")
        return keys
