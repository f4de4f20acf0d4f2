from __future__ import annotations

from collections.abc import Iterable, Sequence
import re
from typing import Protocol, TypeVar


class _Authored(Protocol):
    @property
    def author_login(self) -> str: ...


T = TypeVar("T", bound=_Authored)


def parse_actor_filter(text: str) -> tuple[str, ...]:
    """Split a comma-separated list of login patterns, e.g. ``"alice, *[bot]"``."""
    if not text or not text.strip():
        return ()
    return tuple(part.strip() for part in text.split(",") if part.strip())


def should_include_actor(
    login: str, include_patterns: Sequence[str], exclude_patterns: Sequence[str]
) -> bool:
    # Exclusions win regardless of what the include list says.
    if any(_matches(login, pattern) for pattern in exclude_patterns):
        return False
    if not include_patterns:
        return True
    return any(_matches(login, pattern) for pattern in include_patterns)


def filter_comments_by_actor(
    comments: Iterable[T], include_actors: str = "", exclude_actors: str = ""
) -> list[T]:
    include = parse_actor_filter(include_actors)
    exclude = parse_actor_filter(exclude_actors)
    if not include and not exclude:
        return list(comments)
    return [
        comment
        for comment in comments
        if should_include_actor(comment.author_login, include, exclude)
    ]


def _matches(login: str, pattern: str) -> bool:
    if "*" not in pattern:
        return login == pattern
    regex = "^" + ".*".join(re.escape(part) for part in pattern.split("*")) + "$"
    return re.match(regex, login) is not None
