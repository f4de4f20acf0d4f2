from __future__ import annotations

import logging

from hookpilot.config import FetchDepths
from hookpilot.errors import BranchNotFoundError, BranchSetupError, ValidationError
from hookpilot.git_ops import GitRepo
from hookpilot.models import BranchInfo, EntityContext, EntityData, NormalizedContext
from hookpilot.observability import log_event
from hookpilot.refs import ValidRef, validate_ref_name


LOGGER = logging.getLogger("hookpilot.branch")


def setup_branch(
    git: GitRepo,
    context: NormalizedContext,
    entity_data: EntityData | None,
    default_branch: str,
    *,
    fetch_depths: FetchDepths = FetchDepths(),
) -> BranchInfo:
    """Check out the branch the agent should start from.

    Open pull requests are worked on in place. Issues, automation events and
    closed or merged pull requests start from the base branch; the agent
    creates its own working branch through the tool gateway later.
    """
    source = validate_ref_name(context.inputs.base_branch or default_branch)

    if isinstance(context, EntityContext) and context.is_pr:
        if entity_data is None:
            raise ValidationError(f"PR #{context.entity_number} has no fetched data")
        if entity_data.state == "OPEN":
            return _checkout_open_pull_request(git, context, entity_data, fetch_depths)
        log_event(
            LOGGER,
            "branch_pr_not_open",
            pr_number=context.entity_number,
            state=entity_data.state,
        )

    return _checkout_source_branch(git, source, fetch_depths)


def suggest_agent_branch(context: NormalizedContext, prefix: str) -> ValidRef | None:
    if not isinstance(context, EntityContext):
        return None
    kind = "pr" if context.is_pr else "issue"
    return validate_ref_name(f"{prefix}{kind}-{context.entity_number}")


def _checkout_open_pull_request(
    git: GitRepo, context: EntityContext, data: EntityData, fetch_depths: FetchDepths
) -> BranchInfo:
    if not data.head_ref_name or not data.base_ref_name:
        raise ValidationError(f"PR #{context.entity_number} is missing its head or base ref")
    # Both names come from the pull request and can be chosen by its author.
    head = validate_ref_name(data.head_ref_name)
    base = validate_ref_name(data.base_ref_name)

    _require_remote_branch(git, base)
    git.fetch(head, depth=fetch_depths.open_pr)
    git.checkout(head)
    _verify_current_branch(git, head)

    log_event(
        LOGGER,
        "branch_setup_completed",
        pr_number=context.entity_number,
        base_branch=base.name,
        current_branch=head.name,
    )
    return BranchInfo(base_branch=base.name, current_branch=head.name)


def _checkout_source_branch(git: GitRepo, source: ValidRef, fetch_depths: FetchDepths) -> BranchInfo:
    git.ensure_work_tree()
    _require_remote_branch(git, source)
    git.fetch(source, depth=fetch_depths.issue)
    git.checkout(source)
    git.pull(source)
    _verify_current_branch(git, source)

    log_event(
        LOGGER,
        "branch_setup_completed",
        base_branch=source.name,
        current_branch=source.name,
    )
    return BranchInfo(base_branch=source.name, current_branch=source.name)


def _require_remote_branch(git: GitRepo, branch: ValidRef) -> None:
    if not git.remote_branch_exists(branch):
        raise BranchNotFoundError(f"Branch {branch.name!r} does not exist on the remote")


def _verify_current_branch(git: GitRepo, expected: ValidRef) -> None:
    current = git.current_branch()
    if current != expected.name:
        raise BranchSetupError(
            f"Branch checkout failed. Expected {expected.name}, got {current or '<detached>'}"
        )
