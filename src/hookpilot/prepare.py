from __future__ import annotations

from dataclasses import dataclass
import json
import logging
import sys

from hookpilot.branch import setup_branch, suggest_agent_branch
from hookpilot.ci_output import StepOutputs
from hookpilot.config import RunConfig
from hookpilot.context import load_event_payload, normalize_event
from hookpilot.errors import PermissionDeniedError
from hookpilot.fetcher import fetch_entity_data
from hookpilot.git_ops import GitRepo
from hookpilot.github_gateway import GitHubGateway
from hookpilot.models import BranchInfo, EntityContext, NormalizedContext
from hookpilot.observability import log_event
from hookpilot.permissions import has_write_access, load_repository_metadata
from hookpilot.tool_gateway import SERVER_NAME, qualified_tool_names
from hookpilot.tracking import create_tracking_comment
from hookpilot.trigger import should_trigger


LOGGER = logging.getLogger("hookpilot.prepare")


@dataclass(frozen=True)
class PrepareResult:
    context: NormalizedContext
    contains_trigger: bool
    branch_info: BranchInfo | None = None
    suggested_branch: str | None = None
    tracking_comment_id: int | None = None
    allowed_tools: tuple[str, ...] = ()
    mcp_config: str | None = None


def run_prepare(
    config: RunConfig,
    *,
    github: GitHubGateway | None = None,
    git: GitRepo | None = None,
    outputs: StepOutputs | None = None,
) -> PrepareResult:
    """Run every phase up to handing the gateway definition to the agent runner.

    Each phase only starts once the previous one succeeded; failures propagate
    to the caller, which owns process exit.
    """
    github = github if github is not None else _build_github(config)
    git = git if git is not None else GitRepo(config.workspace)
    outputs = outputs if outputs is not None else StepOutputs(config.output_path)

    payload = load_event_payload(config.event_path)
    context = normalize_event(config.event_name, payload, config)

    repository = load_repository_metadata(github, context)
    if not has_write_access(repository, context):
        raise PermissionDeniedError(
            f"Actor {context.actor} does not have write permissions to the repository"
        )

    contains_trigger = should_trigger(context)
    outputs.set("contains_trigger", "true" if contains_trigger else "false")
    if not contains_trigger:
        log_event(
            LOGGER,
            "prepare_skipped",
            event_name=context.event_name,
            mode=context.inputs.mode,
        )
        return PrepareResult(context=context, contains_trigger=False)

    entity_data = None
    tracking_comment_id = None
    if isinstance(context, EntityContext):
        if context.inputs.mode == "tag":
            tracking_comment_id = create_tracking_comment(github, context)
            outputs.set("claude_comment_id", str(tracking_comment_id))
        entity_data = fetch_entity_data(github, context)

    branch_info = setup_branch(
        git,
        context,
        entity_data,
        repository.default_branch,
        fetch_depths=config.fetch_depths,
    )
    outputs.set("BASE_BRANCH", branch_info.base_branch)
    outputs.set("CURRENT_BRANCH", branch_info.current_branch)
    if branch_info.agent_branch:
        outputs.set("AGENT_BRANCH", branch_info.agent_branch)

    suggested = suggest_agent_branch(context, context.inputs.branch_prefix)
    if suggested is not None:
        outputs.set("suggested_branch", suggested.name)

    allowed_tools = resolve_allowed_tools(
        context.inputs.allowed_tools, context.inputs.disallowed_tools
    )
    outputs.set("allowed_tools", ",".join(allowed_tools))

    mcp_config = build_mcp_config(config, branch_info)
    outputs.set("mcp_config", mcp_config)

    log_event(
        LOGGER,
        "prepare_completed",
        event_name=context.event_name,
        base_branch=branch_info.base_branch,
        current_branch=branch_info.current_branch,
        allowed_tool_count=len(allowed_tools),
    )
    return PrepareResult(
        context=context,
        contains_trigger=True,
        branch_info=branch_info,
        suggested_branch=suggested.name if suggested is not None else None,
        tracking_comment_id=tracking_comment_id,
        allowed_tools=allowed_tools,
        mcp_config=mcp_config,
    )


def resolve_allowed_tools(
    allowed: tuple[str, ...], disallowed: tuple[str, ...]
) -> tuple[str, ...]:
    merged: list[str] = []
    for name in (*qualified_tool_names(), *allowed):
        if name not in merged and name not in disallowed:
            merged.append(name)
    return tuple(merged)


def build_mcp_config(config: RunConfig, branch_info: BranchInfo) -> str:
    server = {
        "command": sys.executable,
        "args": ["-m", "hookpilot", "gateway"],
        "env": {
            "REPO_OWNER": config.repository.owner,
            "REPO_NAME": config.repository.name,
            "BRANCH_NAME": branch_info.current_branch,
            "BASE_BRANCH": branch_info.base_branch,
            "REPO_DIR": str(config.workspace),
            "GITHUB_TOKEN": config.token,
            "GITHUB_API_URL": config.api_url,
            "BOT_GIT_NAME": config.git_identity.name,
            "BOT_GIT_EMAIL": config.git_identity.email,
        },
    }
    return json.dumps({"mcpServers": {SERVER_NAME: server}}, indent=2)


def _build_github(config: RunConfig) -> GitHubGateway:
    return GitHubGateway(
        owner=config.repository.owner,
        name=config.repository.name,
        token=config.token,
        api_url=config.api_url,
    )
