from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path, PurePosixPath
import logging

from hookpilot.config import GitIdentity
from hookpilot.errors import ValidationError
from hookpilot.observability import log_event
from hookpilot.refs import ValidRef, refspec
from hookpilot.shell import CommandError, run


LOGGER = logging.getLogger("hookpilot.git_ops")
_REMOTE = "origin"

# Exit codes git documents for "not found" on the existence checks below.
_REV_PARSE_MISSING = 1
_LS_REMOTE_NO_MATCH = 2
_CONFIG_KEY_MISSING = 1


def normalize_repo_path(path: str) -> str:
    normalized = path[1:] if path.startswith("/") else path
    if not normalized.strip():
        raise ValidationError("File path cannot be empty")
    if "\x00" in normalized:
        raise ValidationError(f"Invalid file path: {path!r}")
    if ".." in PurePosixPath(normalized).parts:
        raise ValidationError(f"Invalid file path: {path!r}. Paths cannot contain '..'")
    return normalized


class GitRepo:
    """Every git invocation against the run's working tree goes through here.

    Ref positions only accept ValidRef and are terminated with ``--`` where git
    would otherwise fall back to reading them as paths. File paths are passed as
    separate argv entries after ``--`` with pathspec magic disabled.
    """

    def __init__(self, repo_dir: Path) -> None:
        self.repo_dir = repo_dir

    def ensure_work_tree(self) -> None:
        self._git("rev-parse", "--is-inside-work-tree")

    def fetch(self, branch: ValidRef, *, depth: int) -> None:
        log_event(LOGGER, "git_fetch", branch=branch.name, depth=depth)
        self._git("fetch", _REMOTE, f"--depth={depth}", branch.name)

    def fetch_to_local(self, branch: ValidRef) -> None:
        log_event(LOGGER, "git_fetch_to_local", branch=branch.name)
        self._git("fetch", _REMOTE, refspec(branch, branch))

    def checkout(self, branch: ValidRef) -> None:
        log_event(LOGGER, "git_checkout", branch=branch.name)
        self._git("checkout", branch.name, "--")

    def checkout_new(self, branch: ValidRef) -> None:
        log_event(LOGGER, "git_checkout_new", branch=branch.name)
        self._git("checkout", "-b", branch.name)

    def pull(self, branch: ValidRef) -> None:
        log_event(LOGGER, "git_pull", branch=branch.name)
        self._git("pull", _REMOTE, branch.name)

    def current_branch(self) -> str:
        return self._git("branch", "--show-current").strip()

    def head_branch(self) -> str:
        return self._git("rev-parse", "--abbrev-ref", "HEAD").strip()

    def local_branch_exists(self, branch: ValidRef) -> bool:
        try:
            self._git("rev-parse", "--verify", "--quiet", f"refs/heads/{branch.name}")
        except CommandError as exc:
            if exc.exit_code == _REV_PARSE_MISSING:
                return False
            raise
        return True

    def remote_branch_exists(self, branch: ValidRef) -> bool:
        try:
            self._git("ls-remote", "--exit-code", "--heads", _REMOTE, branch.name)
        except CommandError as exc:
            if exc.exit_code == _LS_REMOTE_NO_MATCH:
                return False
            raise
        return True

    def get_config(self, key: str) -> str | None:
        try:
            value = self._git("config", "--get", key).strip()
        except CommandError as exc:
            if exc.exit_code == _CONFIG_KEY_MISSING:
                return None
            raise
        return value or None

    def set_config(self, key: str, value: str) -> None:
        self._git("config", key, value)

    def ensure_identity(self, identity: GitIdentity) -> None:
        if self.get_config("user.email") is None:
            log_event(LOGGER, "git_identity_configured", key="user.email")
            self.set_config("user.email", identity.email)
        if self.get_config("user.name") is None:
            log_event(LOGGER, "git_identity_configured", key="user.name")
            self.set_config("user.name", identity.name)

    def add(self, paths: Sequence[str]) -> None:
        for path in paths:
            self._git("--literal-pathspecs", "add", "--", path)

    def remove(self, paths: Sequence[str]) -> None:
        for path in paths:
            self._git("--literal-pathspecs", "rm", "--", path)

    def commit(self, message: str) -> None:
        log_event(LOGGER, "git_commit", has_message=bool(message.strip()))
        self._git("commit", "-m", message)

    def push(self, branch: ValidRef, *, force: bool = False) -> None:
        log_event(LOGGER, "git_push", branch=branch.name, force=force)
        argv = ["push"]
        if force:
            argv.append("--force")
        argv.extend([_REMOTE, branch.name])
        try:
            self._git(*argv)
        except CommandError as exc:
            log_event(
                LOGGER,
                "git_push_failed",
                branch=branch.name,
                exit_code=exc.exit_code,
            )
            raise

    def status_porcelain(self) -> str:
        return self._git("status", "--porcelain").rstrip()

    def _git(self, *args: str) -> str:
        return run(["git", "-C", str(self.repo_dir), *args])
