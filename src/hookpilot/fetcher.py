from __future__ import annotations

from dataclasses import replace
import logging
from typing import Protocol

from hookpilot.actor_filter import filter_comments_by_actor
from hookpilot.errors import RemoteError
from hookpilot.models import ChangedFile, Comment, EntityContext, EntityData
from hookpilot.observability import log_event, log_warning


LOGGER = logging.getLogger("hookpilot.fetcher")


class EntityReader(Protocol):
    def get_pull_request(self, pr_number: int) -> EntityData: ...

    def get_issue(self, issue_number: int) -> EntityData: ...

    def list_issue_comments(self, issue_number: int) -> tuple[Comment, ...]: ...

    def list_pull_request_files(self, pr_number: int) -> tuple[ChangedFile, ...]: ...


def fetch_entity_data(client: EntityReader, context: EntityContext) -> EntityData:
    number = context.entity_number
    kind = "PR" if context.is_pr else "issue"
    try:
        data = client.get_pull_request(number) if context.is_pr else client.get_issue(number)
    except RemoteError as exc:
        raise RemoteError(f"Failed to fetch {kind} data for #{number}: {exc}") from exc

    comments = _fetch_comments(client, context)
    changed_files: tuple[ChangedFile, ...] = ()
    if context.is_pr:
        changed_files = _fetch_changed_files(client, number)

    log_event(
        LOGGER,
        "entity_data_fetched",
        entity_number=number,
        is_pr=context.is_pr,
        state=data.state,
        comment_count=len(comments),
        changed_file_count=len(changed_files),
    )
    return replace(data, comments=comments, changed_files=changed_files)


def _fetch_comments(client: EntityReader, context: EntityContext) -> tuple[Comment, ...]:
    try:
        comments = client.list_issue_comments(context.entity_number)
    except RemoteError as exc:
        log_warning(
            LOGGER,
            "comment_fetch_failed",
            entity_number=context.entity_number,
            error_type=type(exc).__name__,
        )
        return ()
    return tuple(
        filter_comments_by_actor(
            comments,
            context.inputs.include_comments_by_actor,
            context.inputs.exclude_comments_by_actor,
        )
    )


def _fetch_changed_files(client: EntityReader, pr_number: int) -> tuple[ChangedFile, ...]:
    try:
        return client.list_pull_request_files(pr_number)
    except RemoteError as exc:
        log_warning(
            LOGGER,
            "changed_files_fetch_failed",
            pr_number=pr_number,
            error_type=type(exc).__name__,
        )
        return ()
