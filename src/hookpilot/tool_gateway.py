from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import logging
import threading
from typing import Any, Protocol

from hookpilot.config import GatewayConfig
from hookpilot.errors import BranchNotFoundError, ConfigurationError, HookpilotError, ValidationError
from hookpilot.git_ops import GitRepo, normalize_repo_path
from hookpilot.github_gateway import GitHubGateway
from hookpilot.models import PullRequest
from hookpilot.observability import log_event, log_warning
from hookpilot.refs import ValidRef, validate_ref_name
from hookpilot.shell import CommandError


LOGGER = logging.getLogger("hookpilot.tool_gateway")
SERVER_NAME = "local_git_ops"


TOOL_METADATA: dict[str, dict[str, Any]] = {
    "create_branch": {
        "description": "Create a new branch from a base branch using local git operations",
        "inputSchema": {
            "type": "object",
            "required": ["branch_name", "base_branch"],
            "properties": {
                "branch_name": {"type": "string", "description": "Name of the branch to create"},
                "base_branch": {
                    "type": "string",
                    "description": "Base branch to create from (e.g., 'main')",
                },
            },
            "additionalProperties": False,
        },
    },
    "checkout_branch": {
        "description": "Checkout an existing branch using local git operations",
        "inputSchema": {
            "type": "object",
            "required": ["branch_name"],
            "properties": {
                "branch_name": {
                    "type": "string",
                    "description": "Name of the existing branch to checkout",
                },
                "create_if_missing": {
                    "type": "boolean",
                    "default": False,
                    "description": "Create the branch if it exists neither locally nor on the remote",
                },
                "fetch_remote": {
                    "type": "boolean",
                    "default": True,
                    "description": "Fetch from the remote if the branch does not exist locally",
                },
            },
            "additionalProperties": False,
        },
    },
    "commit_files": {
        "description": "Commit one or more files to the current branch using local git operations",
        "inputSchema": {
            "type": "object",
            "required": ["files", "message"],
            "properties": {
                "files": {
                    "type": "array",
                    "minItems": 1,
                    "items": {"type": "string"},
                    "description": "File paths relative to the repository root",
                },
                "message": {"type": "string", "description": "Commit message"},
            },
            "additionalProperties": False,
        },
    },
    "delete_files": {
        "description": "Delete one or more files and commit the deletion using local git operations",
        "inputSchema": {
            "type": "object",
            "required": ["files", "message"],
            "properties": {
                "files": {
                    "type": "array",
                    "minItems": 1,
                    "items": {"type": "string"},
                    "description": "File paths relative to the repository root",
                },
                "message": {"type": "string", "description": "Commit message for the deletion"},
            },
            "additionalProperties": False,
        },
    },
    "push_branch": {
        "description": "Push the current branch to remote origin",
        "inputSchema": {
            "type": "object",
            "properties": {
                "force": {"type": "boolean", "default": False, "description": "Force push"},
            },
            "additionalProperties": False,
        },
    },
    "create_pull_request": {
        "description": "Create a pull request using the hosting platform API",
        "inputSchema": {
            "type": "object",
            "required": ["title", "body", "base_branch"],
            "properties": {
                "title": {"type": "string", "description": "Pull request title"},
                "body": {"type": "string", "description": "Pull request body"},
                "base_branch": {"type": "string", "description": "Base branch (e.g., 'main')"},
                "head_branch": {
                    "type": "string",
                    "description": "Head branch (defaults to the current branch)",
                },
            },
            "additionalProperties": False,
        },
    },
    "git_status": {
        "description": "Get the current git status",
        "inputSchema": {"type": "object", "properties": {}, "additionalProperties": False},
    },
}


def qualified_tool_names() -> tuple[str, ...]:
    """Names the agent runner uses to allow-list the gateway's tools."""
    return tuple(f"mcp__{SERVER_NAME}__{name}" for name in TOOL_METADATA)


@dataclass(frozen=True)
class ToolResult:
    text: str
    is_error: bool = False
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"content": [{"type": "text", "text": self.text}]}
        if self.is_error:
            out["isError"] = True
            out["error"] = self.error
        return out


class PullRequestCreator(Protocol):
    def create_pull_request(self, title: str, head: str, base: str, body: str) -> PullRequest: ...


class ToolGateway:
    def __init__(
        self,
        config: GatewayConfig,
        *,
        git: GitRepo | None = None,
        github: PullRequestCreator | None = None,
    ) -> None:
        self.config = config
        self.git = git if git is not None else GitRepo(config.repo_dir)
        if github is None and config.token:
            github = GitHubGateway(
                owner=config.repository.owner,
                name=config.repository.name,
                token=config.token,
                api_url=config.api_url,
            )
        self.github = github
        # Serializes tool calls against the shared working tree.
        self._lock = threading.Lock()
        self._handlers: dict[str, Callable[[dict[str, Any]], str]] = {
            "create_branch": self._create_branch,
            "checkout_branch": self._checkout_branch,
            "commit_files": self._commit_files,
            "delete_files": self._delete_files,
            "push_branch": self._push_branch,
            "create_pull_request": self._create_pull_request,
            "git_status": self._git_status,
        }

    def dispatch(self, name: str, arguments: dict[str, Any] | None) -> ToolResult:
        handler = self._handlers.get(name)
        if handler is None:
            return _error_result(name, f"Unknown tool: {name}")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            return _error_result(name, "Tool arguments must be an object")

        log_event(LOGGER, "gateway_tool_called", tool=name)
        with self._lock:
            try:
                text = handler(arguments)
            except CommandError as exc:
                detail = exc.stderr.strip() or exc.stdout.strip() or f"exit code {exc.exit_code}"
                return _error_result(name, f"{_describe_command(exc.argv)} failed: {detail}")
            except HookpilotError as exc:
                return _error_result(name, str(exc))
            except Exception as exc:  # noqa: BLE001
                # Failures become error results.
                LOGGER.exception("event=gateway_tool_crashed tool=%s", name)
                return _error_result(name, f"{type(exc).__name__}: {exc}")
        log_event(LOGGER, "gateway_tool_succeeded", tool=name)
        return ToolResult(text=text)

    def _create_branch(self, arguments: dict[str, Any]) -> str:
        branch = validate_ref_name(_require_str(arguments, "branch_name"))
        base = validate_ref_name(_require_str(arguments, "base_branch"))
        self.git.checkout(base)
        self.git.pull(base)
        self.git.checkout_new(branch)
        return f"Successfully created and checked out branch: {branch.name}"

    def _checkout_branch(self, arguments: dict[str, Any]) -> str:
        branch = validate_ref_name(_require_str(arguments, "branch_name"))
        create_if_missing = _optional_bool(arguments, "create_if_missing", False)
        fetch_remote = _optional_bool(arguments, "fetch_remote", True)

        exists = self.git.local_branch_exists(branch)
        if not exists and fetch_remote:
            try:
                self.git.fetch_to_local(branch)
                exists = True
            except CommandError:
                log_event(LOGGER, "gateway_remote_branch_missing", branch=branch.name)

        if not exists:
            if create_if_missing:
                self.git.checkout_new(branch)
                return f"Successfully created and checked out new branch: {branch.name}"
            raise BranchNotFoundError(
                f"Branch '{branch.name}' does not exist locally or on remote. "
                "Use create_if_missing=true to create it."
            )

        self.git.checkout(branch)
        return f"Successfully checked out branch: {branch.name}"

    def _commit_files(self, arguments: dict[str, Any]) -> str:
        files = _require_paths(arguments, "files")
        message = _require_str(arguments, "message")
        self.git.ensure_identity(self.config.git_identity)
        self.git.add(files)
        self.git.commit(message)
        return f"Successfully committed {len(files)} file(s): {', '.join(files)}"

    def _delete_files(self, arguments: dict[str, Any]) -> str:
        files = _require_paths(arguments, "files")
        message = _require_str(arguments, "message")
        self.git.ensure_identity(self.config.git_identity)
        self.git.remove(files)
        self.git.commit(message)
        return f"Successfully deleted and committed {len(files)} file(s): {', '.join(files)}"

    def _push_branch(self, arguments: dict[str, Any]) -> str:
        force = _optional_bool(arguments, "force", False)
        branch = self._head_branch()
        self.git.push(branch, force=force)
        return f"Successfully pushed branch: {branch.name}"

    def _create_pull_request(self, arguments: dict[str, Any]) -> str:
        if self.github is None:
            raise ConfigurationError("GITHUB_TOKEN environment variable is required for PR creation")
        title = _require_str(arguments, "title")
        body = _optional_str(arguments, "body") or ""
        base = validate_ref_name(_require_str(arguments, "base_branch"))
        head_arg = _optional_str(arguments, "head_branch")
        head = validate_ref_name(head_arg) if head_arg else self._head_branch()
        pr = self.github.create_pull_request(title=title, head=head.name, base=base.name, body=body)
        return f"Successfully created pull request #{pr.number}: {pr.html_url}"

    def _head_branch(self) -> ValidRef:
        name = self.git.head_branch()
        if name == "HEAD":
            raise ValidationError("Not on a branch (detached HEAD)")
        return validate_ref_name(name)

    def _git_status(self, arguments: dict[str, Any]) -> str:
        _ = arguments
        status = self.git.status_porcelain()
        branch = self.git.head_branch()
        return f"Current branch: {branch}\nStatus:\n{status or 'Working tree clean'}"


def _error_result(tool: str, message: str) -> ToolResult:
    log_warning(LOGGER, "gateway_tool_failed", tool=tool, error=message)
    return ToolResult(text=f"Error in {tool}: {message}", is_error=True, error=message)


def _describe_command(argv: tuple[str, ...]) -> str:
    # Drop "-C <repo_dir>" from reported commands.
    if len(argv) > 3 and argv[:2] == ("git", "-C"):
        return " ".join(("git", *argv[3:]))
    return " ".join(argv)


def _require_str(arguments: dict[str, Any], key: str) -> str:
    value = arguments.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{key} must be a non-empty string")
    return value


def _optional_str(arguments: dict[str, Any], key: str) -> str | None:
    value = arguments.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    return value


def _optional_bool(arguments: dict[str, Any], key: str, default: bool) -> bool:
    value = arguments.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ValidationError(f"{key} must be a boolean")
    return value


def _require_paths(arguments: dict[str, Any], key: str) -> list[str]:
    value = arguments.get(key)
    if not isinstance(value, list) or not value:
        raise ValidationError(f"{key} must be a non-empty array of file paths")
    paths: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise ValidationError(f"{key} must contain only strings")
        paths.append(normalize_repo_path(item))
    return paths
