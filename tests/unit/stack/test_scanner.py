"""Tests for commit tag scanning."""

import pytest

from stackpr.core.errors import StackInvariantError
from stackpr.core.git.abc import CommitRecord
from stackpr.stack.scanner import Group, find_tags, scan_commits, strip_tags


def _records(*messages: str) -> list[CommitRecord]:
    records: list[CommitRecord] = []
    parent = "base0000"
    for i, message in enumerate(messages):
        sha = f"c{i:07d}"
        records.append(CommitRecord(sha=sha, parent=parent, message=message))
        parent = sha
    return records


def test_find_tags_is_case_insensitive_on_prefix() -> None:
    assert find_tags("Fix PR:Alpha and stuff") == ["Alpha"]
    assert find_tags("no marker here") == []


def test_strip_tags_removes_markers() -> None:
    assert strip_tags("Add parser pr:a").strip() == "Add parser"


def test_groups_start_at_markers_and_absorb_untagged_commits() -> None:
    result = scan_commits(
        _records("Add parser pr:a", "follow-up", "Add lexer pr:b"),
        "ignore",
    )

    assert [g.tag for g in result.groups] == ["a", "b"]
    assert result.groups[0].commits == ("c0000000", "c0000001")
    assert result.groups[0].base_commit == "base0000"
    assert result.groups[1].base_commit == "c0000001"
    assert result.leading_ignored == ()


def test_ignore_block_attaches_to_open_group() -> None:
    result = scan_commits(
        _records("Add parser pr:a", "debug pr:ignore", "more debug", "Add lexer pr:b"),
        "ignore",
    )

    a, b = result.groups
    assert a.commits == ("c0000000",)
    assert a.ignored_after == ("c0000001", "c0000002")
    assert b.commits == ("c0000003",)


def test_ignore_block_before_first_group_is_leading() -> None:
    result = scan_commits(_records("wip pr:ignore", "still wip", "Add parser pr:a"), "ignore")

    assert result.leading_ignored == ("c0000000", "c0000001")
    assert [g.tag for g in result.groups] == ["a"]


def test_custom_ignore_tag() -> None:
    result = scan_commits(_records("Add parser pr:a", "local pr:skip"), "skip")

    assert result.groups[0].ignored_after == ("c0000001",)


def test_untagged_commit_before_first_group_fails() -> None:
    with pytest.raises(StackInvariantError, match="precedes the first"):
        scan_commits(_records("stray", "Add parser pr:a"), "ignore")


def test_multiple_markers_in_one_commit_fail() -> None:
    with pytest.raises(StackInvariantError, match="multiple markers"):
        scan_commits(_records("Add pr:a and pr:b"), "ignore")


def test_duplicate_tags_fail_case_insensitively() -> None:
    with pytest.raises(StackInvariantError, match="Duplicate group tag"):
        scan_commits(_records("Add pr:a", "Again pr:A"), "ignore")


def test_grouping_is_deterministic() -> None:
    records = _records("Add parser pr:a", "x", "debug pr:ignore", "Add lexer pr:b")

    assert scan_commits(records, "ignore") == scan_commits(records, "ignore")


def test_pr_title_and_body_strip_markers() -> None:
    group = Group(
        tag="a",
        commits=("c1",),
        subjects=("Add parser pr:a",),
        first_message="Add parser pr:a\n\nLonger description\nmentions pr:a too\n",
        base_commit="base",
    )

    assert group.pr_title == "Add parser"
    assert group.pr_body_base == "Longer description\nmentions  too"


def test_pr_title_falls_back_to_tag() -> None:
    group = Group(
        tag="a", commits=("c1",), subjects=("pr:a",), first_message="pr:a", base_commit=None
    )

    assert group.pr_title == "a"


def test_squash_message_requires_matching_marker() -> None:
    group = Group(
        tag="a",
        commits=("c1", "c2"),
        subjects=("Add parser pr:b", "x"),
        first_message="Add parser pr:b",
        base_commit=None,
    )

    with pytest.raises(StackInvariantError, match="tag mismatch"):
        _ = group.squash_message
