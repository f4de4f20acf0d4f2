from __future__ import annotations

from dataclasses import dataclass
import json
import logging
import time
from typing import Final

import httpx

from hookpilot.context import as_object_dict
from hookpilot.errors import RemoteError
from hookpilot.models import (
    ChangedFile,
    Comment,
    EntityData,
    EntityState,
    PullRequest,
    RepoMetadata,
    RepoPermissions,
)
from hookpilot.observability import log_event


LOGGER = logging.getLogger("hookpilot.github_gateway")
_MAX_READ_ATTEMPTS: Final[int] = 3
_MAX_BACKOFF_SECONDS: Final[float] = 4.0
_REQUEST_TIMEOUT_SECONDS: Final[float] = 30.0


class GitHubApiError(RemoteError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class GitHubGateway:
    """Blocking REST client for the hosting platform.

    Works against api.github.com and GitHub-compatible APIs (Gitea, GHES):
    only the base URL differs. Reads are retried a bounded number of times,
    writes never are.
    """

    owner: str
    name: str
    token: str
    api_url: str = "https://api.github.com"
    transport: httpx.BaseTransport | None = None

    def __repr__(self) -> str:
        return f"GitHubGateway(owner={self.owner!r}, name={self.name!r}, api_url={self.api_url!r})"

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    def get_repository(self) -> RepoMetadata:
        payload = _require_object(self._api_json("GET", self._repo_path()), "repository")
        permissions_obj = as_object_dict(payload.get("permissions"))
        permissions = None
        if permissions_obj is not None:
            permissions = RepoPermissions(
                admin=permissions_obj.get("admin") is True,
                push=permissions_obj.get("push") is True,
                pull=permissions_obj.get("pull") is True,
            )
        metadata = RepoMetadata(
            full_name=_as_string(payload.get("full_name")) or self.full_name,
            default_branch=_as_string(payload.get("default_branch")),
            permissions=permissions,
        )
        log_event(
            LOGGER,
            "github_read",
            endpoint="repository",
            repo_full_name=self.full_name,
            has_permissions=permissions is not None,
        )
        return metadata

    def get_pull_request(self, pr_number: int) -> EntityData:
        payload = _require_object(
            self._api_json("GET", f"{self._repo_path()}/pulls/{pr_number}"), "pull request"
        )
        head = as_object_dict(payload.get("head"))
        base = as_object_dict(payload.get("base"))
        if head is None or base is None:
            raise GitHubApiError("Unexpected GitHub response: missing pull request head/base")

        state: EntityState
        if payload.get("merged") is True:
            state = "MERGED"
        elif _as_string(payload.get("state")).strip().lower() == "open":
            state = "OPEN"
        else:
            state = "CLOSED"

        data = EntityData(
            title=_as_string(payload.get("title")),
            body=_as_string(payload.get("body")),
            author_login=_as_login(payload.get("user")),
            state=state,
            labels=_label_names(payload.get("labels")),
            base_ref_name=_as_string(base.get("ref")),
            head_ref_name=_as_string(head.get("ref")),
        )
        log_event(LOGGER, "github_read", endpoint="pull_request", pr_number=pr_number, state=state)
        return data

    def get_issue(self, issue_number: int) -> EntityData:
        payload = _require_object(
            self._api_json("GET", f"{self._repo_path()}/issues/{issue_number}"), "issue"
        )
        state: EntityState = (
            "OPEN" if _as_string(payload.get("state")).strip().lower() == "open" else "CLOSED"
        )
        data = EntityData(
            title=_as_string(payload.get("title")),
            body=_as_string(payload.get("body")),
            author_login=_as_login(payload.get("user")),
            state=state,
            labels=_label_names(payload.get("labels")),
        )
        log_event(LOGGER, "github_read", endpoint="issue", issue_number=issue_number, state=state)
        return data

    def list_issue_comments(self, issue_number: int) -> tuple[Comment, ...]:
        payload = self._api_json("GET", f"{self._repo_path()}/issues/{issue_number}/comments")
        if not isinstance(payload, list):
            raise GitHubApiError("Unexpected GitHub response: expected list for issue comments")
        comments: list[Comment] = []
        for item in payload:
            item_obj = as_object_dict(item)
            if item_obj is None:
                continue
            comments.append(
                Comment(
                    comment_id=_as_int(item_obj.get("id"), field="id"),
                    body=_as_string(item_obj.get("body")),
                    author_login=_as_login(item_obj.get("user")),
                    created_at=_as_string(item_obj.get("created_at")),
                )
            )
        log_event(
            LOGGER,
            "github_read",
            endpoint="issue_comments",
            issue_number=issue_number,
            count=len(comments),
        )
        return tuple(comments)

    def list_pull_request_files(self, pr_number: int) -> tuple[ChangedFile, ...]:
        payload = self._api_json("GET", f"{self._repo_path()}/pulls/{pr_number}/files")
        if not isinstance(payload, list):
            raise GitHubApiError("Unexpected GitHub response: expected list for pull request files")
        files: list[ChangedFile] = []
        for item in payload:
            item_obj = as_object_dict(item)
            if item_obj is None:
                continue
            files.append(
                ChangedFile(
                    path=_as_string(item_obj.get("filename")),
                    additions=_as_optional_int(item_obj.get("additions")) or 0,
                    deletions=_as_optional_int(item_obj.get("deletions")) or 0,
                    change_type=_as_string(item_obj.get("status")) or "modified",
                )
            )
        log_event(
            LOGGER,
            "github_read",
            endpoint="pull_request_files",
            pr_number=pr_number,
            count=len(files),
        )
        return tuple(files)

    def create_issue_comment(self, issue_number: int, body: str) -> int:
        payload = _require_object(
            self._api_json(
                "POST",
                f"{self._repo_path()}/issues/{issue_number}/comments",
                payload={"body": body},
            ),
            "issue comment",
        )
        comment_id = _as_int(payload.get("id"), field="id")
        log_event(
            LOGGER,
            "github_comment_created",
            issue_number=issue_number,
            comment_id=comment_id,
        )
        return comment_id

    def create_review_comment_reply(self, pr_number: int, comment_id: int, body: str) -> int:
        payload = _require_object(
            self._api_json(
                "POST",
                f"{self._repo_path()}/pulls/{pr_number}/comments/{comment_id}/replies",
                payload={"body": body},
            ),
            "review comment reply",
        )
        reply_id = _as_int(payload.get("id"), field="id")
        log_event(
            LOGGER,
            "github_review_reply_created",
            pr_number=pr_number,
            in_reply_to=comment_id,
            comment_id=reply_id,
        )
        return reply_id

    def create_pull_request(self, title: str, head: str, base: str, body: str) -> PullRequest:
        path = f"{self._repo_path()}/pulls"
        try:
            payload = _require_object(
                self._api_json(
                    "POST",
                    path,
                    payload={"title": title, "head": head, "base": base, "body": body},
                ),
                "pull request",
            )
            number = _as_int(payload.get("number"), field="number")
            html_url = _as_string(payload.get("html_url"))
        except Exception as exc:  # noqa: BLE001
            log_event(
                LOGGER,
                "github_pr_create_failed",
                repo_full_name=self.full_name,
                base=base,
                head=head,
                error_type=type(exc).__name__,
            )
            raise
        log_event(
            LOGGER,
            "github_pr_created",
            repo_full_name=self.full_name,
            pr_number=number,
            pr_url=html_url,
            base=base,
            head=head,
        )
        return PullRequest(number=number, html_url=html_url)

    def _repo_path(self) -> str:
        return f"/repos/{self.owner}/{self.name}"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"token {self.token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    def _api_json(self, method: str, path: str, payload: dict[str, object] | None = None) -> object:
        method_upper = method.upper()
        url = f"{self.api_url.rstrip('/')}{path}"
        # Only reads are safe to replay.
        max_attempts = _MAX_READ_ATTEMPTS if method_upper == "GET" else 1

        with httpx.Client(
            timeout=_REQUEST_TIMEOUT_SECONDS,
            follow_redirects=False,
            transport=self.transport,
        ) as client:
            for attempt in range(1, max_attempts + 1):
                try:
                    response = client.request(method_upper, url, headers=self._headers(), json=payload)
                except httpx.TransportError as exc:
                    if attempt < max_attempts:
                        _log_retry(method_upper, path, attempt, error_type=type(exc).__name__)
                        time.sleep(_backoff_seconds(attempt))
                        continue
                    raise GitHubApiError(
                        f"GitHub API {method_upper} {path} failed: {type(exc).__name__}: {exc}"
                    ) from exc

                status = response.status_code
                if (status == 429 or status >= 500) and attempt < max_attempts:
                    _log_retry(method_upper, path, attempt, status_code=status)
                    time.sleep(_backoff_seconds(attempt))
                    continue
                if status < 200 or status >= 300:
                    message = response.text.strip() or "<empty>"
                    raise GitHubApiError(
                        f"GitHub API {method_upper} {path} failed with status {status}: "
                        f"{_preview_for_log(message)}",
                        status_code=status,
                    )
                try:
                    return response.json()
                except json.JSONDecodeError as exc:
                    raise GitHubApiError(
                        f"GitHub API {method_upper} {path} returned invalid JSON",
                        status_code=status,
                    ) from exc

        raise GitHubApiError(f"GitHub API {method_upper} {path} failed")


def _backoff_seconds(attempt: int) -> float:
    return min(_MAX_BACKOFF_SECONDS, 0.5 * (2 ** (attempt - 1)))


def _log_retry(method: str, path: str, attempt: int, **fields: object) -> None:
    log_event(LOGGER, "github_request_retry", method=method, path=path, attempt=attempt, **fields)


def _require_object(payload: object, what: str) -> dict[str, object]:
    payload_obj = as_object_dict(payload)
    if payload_obj is None:
        raise GitHubApiError(f"Unexpected GitHub response: expected object for {what}")
    return payload_obj


def _label_names(value: object) -> tuple[str, ...]:
    names: list[str] = []
    if isinstance(value, list):
        for entry in value:
            entry_obj = as_object_dict(entry)
            if entry_obj is None:
                continue
            name = entry_obj.get("name")
            if isinstance(name, str):
                names.append(name)
    return tuple(names)


def _preview_for_log(text: str, *, limit: int = 240) -> str:
    compact = text.replace("\n", "\\n").strip()
    if not compact:
        return "<empty>"
    if len(compact) <= limit:
        return compact
    return f"{compact[:limit]}..."


def _as_string(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def _as_login(user: object) -> str:
    user_obj = as_object_dict(user)
    login = user_obj.get("login") if user_obj else None
    if not isinstance(login, str):
        return ""
    return login.strip()


def _as_int(value: object, *, field: str) -> int:
    if isinstance(value, bool):
        raise GitHubApiError(f"Unexpected GitHub response type for {field}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError as exc:
            raise GitHubApiError(f"Unexpected GitHub response value for {field}: {value}") from exc
    raise GitHubApiError(f"Unexpected GitHub response type for {field}")


def _as_optional_int(value: object) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    return None
