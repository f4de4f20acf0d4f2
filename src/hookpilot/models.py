from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Union


ModeName = Literal["tag", "agent"]
EntityEventName = Literal[
    "issues",
    "issue_comment",
    "pull_request",
    "pull_request_review",
    "pull_request_review_comment",
]
AutomationEventName = Literal["workflow_run", "workflow_dispatch", "schedule"]
EntityState = Literal["OPEN", "CLOSED", "MERGED"]

ENTITY_EVENT_NAMES: tuple[EntityEventName, ...] = (
    "issues",
    "issue_comment",
    "pull_request",
    "pull_request_review",
    "pull_request_review_comment",
)
AUTOMATION_EVENT_NAMES: tuple[AutomationEventName, ...] = (
    "workflow_run",
    "workflow_dispatch",
    "schedule",
)


@dataclass(frozen=True)
class RepositoryRef:
    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass(frozen=True)
class RunInputs:
    mode: ModeName = "tag"
    trigger_phrase: str = "@claude"
    assignee_trigger: str = ""
    label_trigger: str = ""
    allowed_tools: tuple[str, ...] = ()
    disallowed_tools: tuple[str, ...] = ()
    base_branch: str | None = None
    branch_prefix: str = "claude/"
    additional_permissions: tuple[tuple[str, str], ...] = ()
    include_comments_by_actor: str = ""
    exclude_comments_by_actor: str = ""


@dataclass(frozen=True)
class EntityContext:
    event_name: EntityEventName
    event_action: str | None
    run_id: str
    repository: RepositoryRef
    actor: str
    inputs: RunInputs
    payload: dict[str, object] = field(repr=False, compare=False)
    entity_number: int
    is_pr: bool


@dataclass(frozen=True)
class AutomationContext:
    event_name: AutomationEventName
    event_action: str | None
    run_id: str
    repository: RepositoryRef
    actor: str
    inputs: RunInputs
    payload: dict[str, object] = field(repr=False, compare=False)


NormalizedContext = Union[EntityContext, AutomationContext]


@dataclass(frozen=True)
class RepoPermissions:
    admin: bool
    push: bool
    pull: bool


@dataclass(frozen=True)
class RepoMetadata:
    full_name: str
    default_branch: str
    permissions: RepoPermissions | None


@dataclass(frozen=True)
class Comment:
    comment_id: int
    body: str
    author_login: str
    created_at: str


@dataclass(frozen=True)
class ChangedFile:
    path: str
    additions: int
    deletions: int
    change_type: str


@dataclass(frozen=True)
class EntityData:
    title: str
    body: str
    author_login: str
    state: EntityState
    labels: tuple[str, ...] = ()
    base_ref_name: str | None = None
    head_ref_name: str | None = None
    comments: tuple[Comment, ...] = ()
    changed_files: tuple[ChangedFile, ...] = ()


@dataclass(frozen=True)
class PullRequest:
    number: int
    html_url: str


@dataclass(frozen=True)
class BranchInfo:
    base_branch: str
    current_branch: str
    agent_branch: str | None = None
