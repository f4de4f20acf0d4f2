from __future__ import annotations

from hookpilot.actor_filter import (
    filter_comments_by_actor,
    parse_actor_filter,
    should_include_actor,
)
from hookpilot.models import Comment


def _comment(comment_id: int, author: str) -> Comment:
    return Comment(comment_id=comment_id, body="b", author_login=author, created_at="")


def test_parse_actor_filter() -> None:
    assert parse_actor_filter("") == ()
    assert parse_actor_filter("  ") == ()
    assert parse_actor_filter("alice, *[bot] ,,bob") == ("alice", "*[bot]", "bob")


def test_exclude_wins_over_include() -> None:
    assert should_include_actor("alice", ("alice",), ("alice",)) is False


def test_empty_include_allows_everything_not_excluded() -> None:
    assert should_include_actor("bob", (), ("alice",)) is True
    assert should_include_actor("alice", (), ("alice",)) is False


def test_include_list_restricts() -> None:
    assert should_include_actor("alice", ("alice", "bob"), ()) is True
    assert should_include_actor("carol", ("alice", "bob"), ()) is False


def test_wildcards_are_anchored_and_literal_otherwise() -> None:
    assert should_include_actor("dependabot[bot]", (), ("*[bot]",)) is False
    assert should_include_actor("renovate[bot]x", (), ("*[bot]",)) is True
    assert should_include_actor("team-alpha", ("team-*",), ()) is True
    assert should_include_actor("my-team-alpha", ("team-*",), ()) is False
    assert should_include_actor("a.c", ("a.c",), ()) is True
    assert should_include_actor("abc", ("a.c",), ()) is False


def test_filter_comments_by_actor() -> None:
    comments = [
        _comment(1, "alice"),
        _comment(2, "dependabot[bot]"),
        _comment(3, "bob"),
    ]

    assert filter_comments_by_actor(comments) == comments
    assert [c.comment_id for c in filter_comments_by_actor(comments, "", "*[bot]")] == [1, 3]
    assert [c.comment_id for c in filter_comments_by_actor(comments, "bob", "")] == [3]
    assert filter_comments_by_actor(comments, "", "alice,bob,*[bot]") == []
