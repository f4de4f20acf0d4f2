from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
import os
from typing import cast

from hookpilot.errors import ConfigurationError, InvalidRefNameError
from hookpilot.models import ModeName, RepositoryRef, RunInputs
from hookpilot.refs import validate_ref_name


DEFAULT_API_URL = "https://api.github.com"
DEFAULT_BOT_NAME = "hookpilot[bot]"
DEFAULT_BOT_EMAIL = "hookpilot[bot]@users.noreply.github.com"
_VALID_MODES: tuple[ModeName, ...] = ("tag", "agent")


@dataclass(frozen=True)
class GitIdentity:
    name: str
    email: str


@dataclass(frozen=True)
class FetchDepths:
    issue: int = 1
    open_pr: int = 20


@dataclass(frozen=True)
class RunConfig:
    event_name: str
    event_path: Path
    repository: RepositoryRef
    actor: str
    run_id: str
    inputs: RunInputs
    token: str
    api_url: str
    workspace: Path
    output_path: Path | None
    git_identity: GitIdentity
    fetch_depths: FetchDepths = FetchDepths()

    def __repr__(self) -> str:
        # Keep the credential out of tracebacks and logs.
        return (
            f"RunConfig(event_name={self.event_name!r}, repository={self.repository.full_name!r}, "
            f"actor={self.actor!r}, run_id={self.run_id!r}, mode={self.inputs.mode!r})"
        )


@dataclass(frozen=True)
class GatewayConfig:
    repository: RepositoryRef
    branch_name: str
    repo_dir: Path
    token: str | None
    api_url: str
    git_identity: GitIdentity

    def __repr__(self) -> str:
        return (
            f"GatewayConfig(repository={self.repository.full_name!r}, "
            f"branch_name={self.branch_name!r}, repo_dir={str(self.repo_dir)!r})"
        )


def load_run_config(environ: Mapping[str, str] | None = None) -> RunConfig:
    env = os.environ if environ is None else environ

    inputs = RunInputs(
        mode=_mode_with_default(env, "MODE", "tag"),
        trigger_phrase=_str_with_default(env, "TRIGGER_PHRASE", "@claude"),
        assignee_trigger=_str_with_default(env, "ASSIGNEE_TRIGGER", ""),
        label_trigger=_str_with_default(env, "LABEL_TRIGGER", ""),
        allowed_tools=parse_multiline_input(env.get("ALLOWED_TOOLS", "")),
        disallowed_tools=parse_multiline_input(env.get("DISALLOWED_TOOLS", "")),
        base_branch=_optional_str(env, "BASE_BRANCH"),
        branch_prefix=_branch_prefix(env),
        additional_permissions=parse_additional_permissions(env.get("ADDITIONAL_PERMISSIONS", "")),
        include_comments_by_actor=_str_with_default(env, "INCLUDE_COMMENTS_BY_ACTOR", ""),
        exclude_comments_by_actor=_str_with_default(env, "EXCLUDE_COMMENTS_BY_ACTOR", ""),
    )
    fetch_depths = FetchDepths(
        issue=_positive_int_with_default(env, "ISSUE_FETCH_DEPTH", 1),
        open_pr=_positive_int_with_default(env, "PR_FETCH_DEPTH", 20),
    )
    output_path = _optional_str(env, "GITHUB_OUTPUT")

    return RunConfig(
        event_name=_require_str(env, "GITHUB_EVENT_NAME"),
        event_path=Path(_require_str(env, "GITHUB_EVENT_PATH")),
        repository=parse_repository(_require_str(env, "GITHUB_REPOSITORY")),
        actor=_str_with_default(env, "GITHUB_ACTOR", ""),
        run_id=_str_with_default(env, "GITHUB_RUN_ID", ""),
        inputs=inputs,
        token=resolve_token(env),
        api_url=_str_with_default(env, "GITHUB_API_URL", DEFAULT_API_URL).rstrip("/"),
        workspace=Path(_str_with_default(env, "GITHUB_WORKSPACE", os.getcwd())),
        output_path=Path(output_path) if output_path else None,
        git_identity=_git_identity(env),
        fetch_depths=fetch_depths,
    )


def load_gateway_config(environ: Mapping[str, str] | None = None) -> GatewayConfig:
    env = os.environ if environ is None else environ
    return GatewayConfig(
        repository=RepositoryRef(
            owner=_require_str(env, "REPO_OWNER"),
            name=_require_str(env, "REPO_NAME"),
        ),
        branch_name=_require_str(env, "BRANCH_NAME"),
        repo_dir=Path(_str_with_default(env, "REPO_DIR", os.getcwd())),
        token=_optional_str(env, "GITHUB_TOKEN"),
        api_url=_str_with_default(env, "GITHUB_API_URL", DEFAULT_API_URL).rstrip("/"),
        git_identity=_git_identity(env),
    )


def resolve_token(env: Mapping[str, str]) -> str:
    for key in ("OVERRIDE_GITHUB_TOKEN", "GITHUB_TOKEN"):
        value = env.get(key, "").strip()
        if value:
            return value
    raise ConfigurationError(
        "No GitHub token available. Provide OVERRIDE_GITHUB_TOKEN or make GITHUB_TOKEN "
        "available in the workflow environment."
    )


def parse_repository(value: str) -> RepositoryRef:
    owner, sep, name = value.strip().partition("/")
    if not sep or not owner or not name or "/" in name:
        raise ConfigurationError(f"Invalid repository {value!r}; expected 'owner/repo'")
    return RepositoryRef(owner=owner, name=name)


def parse_multiline_input(text: str) -> tuple[str, ...]:
    """Parse a comma/newline separated list, dropping ``# comments`` and blanks."""
    items: list[str] = []
    for raw in _split_items(text):
        hash_index = raw.find("#")
        if hash_index >= 0:
            raw = raw[:hash_index]
        item = raw.strip()
        if item:
            items.append(item)
    return tuple(items)


def parse_additional_permissions(text: str) -> tuple[tuple[str, str], ...]:
    permissions: dict[str, str] = {}
    if not text or not text.strip():
        return ()
    for line in text.strip().splitlines():
        key, sep, value = line.strip().partition(":")
        if not sep:
            continue
        key = key.strip()
        # Only the first two colon-separated parts count, as in "actions: read".
        value = value.split(":", 1)[0].strip()
        if key and value:
            permissions[key] = value
    return tuple(permissions.items())


def _split_items(text: str) -> list[str]:
    parts: list[str] = []
    for line in text.replace("\r", "\n").split("\n"):
        parts.extend(line.split(","))
    return parts


def _git_identity(env: Mapping[str, str]) -> GitIdentity:
    return GitIdentity(
        name=_str_with_default(env, "BOT_GIT_NAME", DEFAULT_BOT_NAME),
        email=_str_with_default(env, "BOT_GIT_EMAIL", DEFAULT_BOT_EMAIL),
    )


def _require_str(env: Mapping[str, str], key: str) -> str:
    value = env.get(key)
    if value is None or not value.strip():
        raise ConfigurationError(f"{key} environment variable is required")
    return value.strip()


def _optional_str(env: Mapping[str, str], key: str) -> str | None:
    value = env.get(key)
    if value is None or not value.strip():
        return None
    return value.strip()


def _str_with_default(env: Mapping[str, str], key: str, default: str) -> str:
    value = _optional_str(env, key)
    return default if value is None else value


def _positive_int_with_default(env: Mapping[str, str], key: str, default: int) -> int:
    value = _optional_str(env, key)
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be an integer, got {value!r}") from exc
    if parsed < 1:
        raise ConfigurationError(f"{key} must be >= 1")
    return parsed


def _branch_prefix(env: Mapping[str, str]) -> str:
    prefix = _str_with_default(env, "BRANCH_PREFIX", "claude/")
    # Suggested names are "<prefix>issue-N" or "<prefix>pr-N".
    try:
        validate_ref_name(f"{prefix}issue-1")
    except InvalidRefNameError as exc:
        raise ConfigurationError(
            f"BRANCH_PREFIX {prefix!r} cannot start a valid branch name: {exc}"
        ) from exc
    return prefix


def _mode_with_default(env: Mapping[str, str], key: str, default: ModeName) -> ModeName:
    value = _optional_str(env, key)
    if value is None:
        return default
    normalized = value.lower()
    if normalized not in _VALID_MODES:
        raise ConfigurationError(
            f"Invalid mode: {value!r}. Expected one of: {', '.join(_VALID_MODES)}"
        )
    return cast(ModeName, normalized)
