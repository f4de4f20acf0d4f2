from __future__ import annotations

import logging
from typing import Final, Protocol

from hookpilot.context import as_object_dict
from hookpilot.errors import RemoteError
from hookpilot.models import EntityContext
from hookpilot.observability import log_event, log_warning


LOGGER = logging.getLogger("hookpilot.tracking")
TRACKING_COMMENT_BODY: Final[str] = "Working on a response."


class CommentWriter(Protocol):
    def create_issue_comment(self, issue_number: int, body: str) -> int: ...

    def create_review_comment_reply(self, pr_number: int, comment_id: int, body: str) -> int: ...


def create_tracking_comment(client: CommentWriter, context: EntityContext) -> int:
    """Post the placeholder comment the agent updates while it works.

    Review-comment events get a threaded reply; if that reply cannot be
    created, or for any other event, a plain comment goes on the issue or
    pull request. Returns the new comment id.
    """
    number = context.entity_number
    review_comment_id = _review_comment_id(context)
    if review_comment_id is not None:
        try:
            comment_id = client.create_review_comment_reply(
                number, review_comment_id, TRACKING_COMMENT_BODY
            )
        except RemoteError as exc:
            log_warning(
                LOGGER,
                "tracking_reply_failed",
                entity_number=number,
                review_comment_id=review_comment_id,
                error_type=type(exc).__name__,
            )
        else:
            log_event(
                LOGGER,
                "tracking_comment_created",
                entity_number=number,
                comment_id=comment_id,
                threaded=True,
            )
            return comment_id

    try:
        comment_id = client.create_issue_comment(number, TRACKING_COMMENT_BODY)
    except RemoteError as exc:
        raise RemoteError(f"Failed to create tracking comment on #{number}: {exc}") from exc
    log_event(
        LOGGER,
        "tracking_comment_created",
        entity_number=number,
        comment_id=comment_id,
        threaded=False,
    )
    return comment_id


def _review_comment_id(context: EntityContext) -> int | None:
    if context.event_name != "pull_request_review_comment":
        return None
    comment = as_object_dict(context.payload.get("comment"))
    comment_id = comment.get("id") if comment is not None else None
    if isinstance(comment_id, bool) or not isinstance(comment_id, int):
        return None
    return comment_id
