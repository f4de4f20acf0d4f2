from __future__ import annotations

import logging
from typing import Protocol

from hookpilot.errors import RemoteError
from hookpilot.models import NormalizedContext, RepoMetadata
from hookpilot.observability import log_event, log_warning


LOGGER = logging.getLogger("hookpilot.permissions")


class RepositoryReader(Protocol):
    def get_repository(self) -> RepoMetadata: ...


def check_write_permissions(client: RepositoryReader, context: NormalizedContext) -> bool:
    return has_write_access(load_repository_metadata(client, context), context)


def load_repository_metadata(client: RepositoryReader, context: NormalizedContext) -> RepoMetadata:
    try:
        return client.get_repository()
    except RemoteError as exc:
        log_warning(
            LOGGER,
            "permission_check_failed",
            actor=context.actor,
            repo_full_name=context.repository.full_name,
            error_type=type(exc).__name__,
        )
        raise RemoteError(f"Failed to check permissions for {context.actor}: {exc}") from exc


def has_write_access(metadata: RepoMetadata, context: NormalizedContext) -> bool:
    actor = context.actor
    permissions = metadata.permissions
    if permissions is None:
        # Workflow tokens on Gitea-style hosts omit the field and always carry
        # full repository access.
        log_event(
            LOGGER,
            "permission_checked",
            actor=actor,
            allowed=True,
            reason="permissions_field_absent",
        )
        return True

    if permissions.admin or permissions.push:
        log_event(
            LOGGER,
            "permission_checked",
            actor=actor,
            allowed=True,
            admin=permissions.admin,
            push=permissions.push,
        )
        return True

    log_warning(
        LOGGER,
        "permission_checked",
        actor=actor,
        allowed=False,
        admin=permissions.admin,
        push=permissions.push,
        pull=permissions.pull,
    )
    return False
