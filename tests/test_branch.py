from __future__ import annotations

import pytest

from hookpilot.branch import setup_branch, suggest_agent_branch
from hookpilot.config import FetchDepths
from hookpilot.errors import (
    BranchNotFoundError,
    BranchSetupError,
    InvalidRefNameError,
    ValidationError,
)
from hookpilot.git_ops import GitRepo
from hookpilot.models import (
    AutomationContext,
    BranchInfo,
    EntityContext,
    EntityData,
    EntityState,
    RepositoryRef,
    RunInputs,
)
from hookpilot.refs import ValidRef


class FakeGitRepo:
    def __init__(
        self, *, remote_branches: set[str] | None = None, stuck_on: str | None = None
    ) -> None:
        self.remote_branches = remote_branches if remote_branches is not None else {"main"}
        self.stuck_on = stuck_on
        self.current = "detached"
        self.calls: list[tuple[object, ...]] = []

    def ensure_work_tree(self) -> None:
        self.calls.append(("ensure_work_tree",))

    def remote_branch_exists(self, branch: ValidRef) -> bool:
        self.calls.append(("remote_branch_exists", branch.name))
        return branch.name in self.remote_branches

    def fetch(self, branch: ValidRef, *, depth: int) -> None:
        self.calls.append(("fetch", branch.name, depth))

    def checkout(self, branch: ValidRef) -> None:
        self.calls.append(("checkout", branch.name))
        self.current = branch.name

    def pull(self, branch: ValidRef) -> None:
        self.calls.append(("pull", branch.name))

    def current_branch(self) -> str:
        return self.stuck_on if self.stuck_on is not None else self.current


def _as_git(fake: FakeGitRepo) -> GitRepo:
    return fake  # type: ignore[return-value]


def _entity(*, is_pr: bool, inputs: RunInputs | None = None, number: int = 7) -> EntityContext:
    return EntityContext(
        event_name="issue_comment",
        event_action="created",
        run_id="1",
        repository=RepositoryRef(owner="octo", name="widgets"),
        actor="alice",
        inputs=inputs or RunInputs(),
        payload={},
        entity_number=number,
        is_pr=is_pr,
    )


def _pr_data(
    state: EntityState = "OPEN", head: str | None = "feature/x", base: str | None = "main"
) -> EntityData:
    return EntityData(
        title="PR",
        body="",
        author_login="alice",
        state=state,
        base_ref_name=base,
        head_ref_name=head,
    )


def test_issue_checks_out_default_branch_shallowly() -> None:
    git = FakeGitRepo()

    info = setup_branch(_as_git(git), _entity(is_pr=False), None, "main")

    assert info == BranchInfo(base_branch="main", current_branch="main")
    assert git.calls == [
        ("ensure_work_tree",),
        ("remote_branch_exists", "main"),
        ("fetch", "main", 1),
        ("checkout", "main"),
        ("pull", "main"),
    ]


def test_base_branch_input_overrides_default() -> None:
    git = FakeGitRepo(remote_branches={"develop"})
    context = _entity(is_pr=False, inputs=RunInputs(base_branch="develop"))

    info = setup_branch(_as_git(git), context, None, "main")

    assert info.base_branch == "develop"
    assert ("checkout", "develop") in git.calls


def test_open_pull_request_checks_out_head_with_deeper_fetch() -> None:
    git = FakeGitRepo(remote_branches={"main", "feature/x"})

    info = setup_branch(
        _as_git(git),
        _entity(is_pr=True),
        _pr_data(),
        "main",
        fetch_depths=FetchDepths(issue=1, open_pr=30),
    )

    assert info == BranchInfo(base_branch="main", current_branch="feature/x")
    assert git.calls == [
        ("remote_branch_exists", "main"),
        ("fetch", "feature/x", 30),
        ("checkout", "feature/x"),
    ]


@pytest.mark.parametrize("state", ["CLOSED", "MERGED"])
def test_closed_or_merged_pull_request_falls_back_to_base(state: EntityState) -> None:
    git = FakeGitRepo()

    info = setup_branch(_as_git(git), _entity(is_pr=True), _pr_data(state=state), "main")

    assert info == BranchInfo(base_branch="main", current_branch="main")
    assert ("checkout", "feature/x") not in git.calls


def test_automation_context_uses_base_branch() -> None:
    git = FakeGitRepo()
    context = AutomationContext(
        event_name="workflow_dispatch",
        event_action=None,
        run_id="1",
        repository=RepositoryRef(owner="octo", name="widgets"),
        actor="alice",
        inputs=RunInputs(mode="agent"),
        payload={},
    )

    info = setup_branch(_as_git(git), context, None, "main")

    assert info.current_branch == "main"


def test_malicious_head_ref_never_reaches_git() -> None:
    git = FakeGitRepo()

    with pytest.raises(InvalidRefNameError):
        setup_branch(
            _as_git(git), _entity(is_pr=True), _pr_data(head="--upload-pack=evil"), "main"
        )

    assert git.calls == []


def test_invalid_default_branch_rejected_before_git() -> None:
    git = FakeGitRepo()

    with pytest.raises(InvalidRefNameError):
        setup_branch(_as_git(git), _entity(is_pr=False), None, "main;rm -rf /")

    assert git.calls == []


def test_pull_request_without_data_or_refs() -> None:
    git = FakeGitRepo()

    with pytest.raises(ValidationError, match="no fetched data"):
        setup_branch(_as_git(git), _entity(is_pr=True), None, "main")
    with pytest.raises(ValidationError, match="missing its head or base ref"):
        setup_branch(_as_git(git), _entity(is_pr=True), _pr_data(head=None), "main")


def test_missing_remote_base_branch() -> None:
    git = FakeGitRepo(remote_branches=set())

    with pytest.raises(BranchNotFoundError, match="'main' does not exist on the remote"):
        setup_branch(_as_git(git), _entity(is_pr=False), None, "main")

    assert not any(call[0] == "checkout" for call in git.calls)


def test_checkout_mismatch_is_fatal() -> None:
    git = FakeGitRepo(stuck_on="other")

    with pytest.raises(BranchSetupError, match="Expected main, got other"):
        setup_branch(_as_git(git), _entity(is_pr=False), None, "main")


def test_suggest_agent_branch() -> None:
    assert suggest_agent_branch(_entity(is_pr=False), "claude/") == ValidRef("claude/issue-7")
    assert suggest_agent_branch(_entity(is_pr=True, number=12), "bot/") == ValidRef("bot/pr-12")
    automation = AutomationContext(
        event_name="schedule",
        event_action=None,
        run_id="1",
        repository=RepositoryRef(owner="octo", name="widgets"),
        actor="alice",
        inputs=RunInputs(),
        payload={},
    )
    assert suggest_agent_branch(automation, "claude/") is None
    with pytest.raises(InvalidRefNameError):
        suggest_agent_branch(_entity(is_pr=False), "-bad/")
