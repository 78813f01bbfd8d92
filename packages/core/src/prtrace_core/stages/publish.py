from __future__ import annotations

import logging
from dataclasses import dataclass

from prtrace_core.errors import PublishPolicyError
from prtrace_core.models import PrReference, PublishCommentResult
from prtrace_core.stages.base import Stage, StageContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PublishInput:
    pr_reference: PrReference
    comment_body: str
    confirmed: bool = False


class PublishCommentStage(Stage):
    id = "publish-comment"
    description = "Publish edited PR comment with confirmation gate."

    def run(self, input: PublishInput, context: StageContext) -> PublishCommentResult:
        post = context.config["post"]
        if not post["enabled"]:
            raise PublishPolicyError("Publishing is disabled by configuration.")
        if post["require_confirmation"] and not input.confirmed:
            raise PublishPolicyError("Publishing requires explicit confirmation.")
        if not input.comment_body.strip():
            raise PublishPolicyError("Edited comment body cannot be empty.")

        comment = context.sources.github.publish_comment(input.pr_reference, input.comment_body)
        logger.info("Published comment %s on %s", comment.id, input.pr_reference.slug)
        return PublishCommentResult(published=True, used_edited_body=True, comment=comment)
