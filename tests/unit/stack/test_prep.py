"""Tests for prep (squash, publish, flag)."""

import pytest

from stackpr.core.context import StackContext
from stackpr.core.errors import ValidationError
from stackpr.core.github.fake import FakeGitHub, make_pr
from stackpr.stack.conflict import RollbackPolicy
from stackpr.stack.model import load_stack
from stackpr.stack.prep import PARENT_CHANGED_WARNING, plan_prep, prep, targeted_groups
from tests.test_utils.stacks import (
    BRANCH,
    REPO_ROOT,
    branch,
    build_stack,
    stack_settings,
    three_group_stack,
)


def _stack():
    repo = three_group_stack()
    ctx = StackContext.for_test(git=repo.git())
    return repo, load_stack(ctx, REPO_ROOT, stack_settings())


def test_targeted_groups_selectors() -> None:
    _, stack = _stack()

    assert targeted_groups(stack, until=None, exact=None) == [1, 2, 3]
    assert targeted_groups(stack, until=0, exact=None) == [1, 2, 3]
    assert targeted_groups(stack, until=2, exact=None) == [1, 2]
    assert targeted_groups(stack, until=9, exact=None) == [1, 2, 3]
    assert targeted_groups(stack, until=None, exact=3) == [3]


def test_targeted_groups_rejects_bad_selectors() -> None:
    _, stack = _stack()

    with pytest.raises(ValidationError, match="mutually exclusive"):
        targeted_groups(stack, until=1, exact=1)
    with pytest.raises(ValidationError, match="out of range"):
        targeted_groups(stack, until=None, exact=4)
    with pytest.raises(ValidationError):
        targeted_groups(stack, until=-1, exact=None)


def test_plan_prep_squashes_only_multi_commit_groups() -> None:
    repo, stack = _stack()

    plan = plan_prep(stack, [1, 2, 3])

    assert plan is not None
    assert plan.target_base == repo.base.sha
    assert [step.kind for step in plan.steps] == ["squash", "pick", "pick", "pick", "pick"]
    assert plan.steps[0].commits == (repo.sha(0), repo.sha(1))
    assert plan.steps[0].message == "Add parser pr:a\n\nParser body"


def test_plan_prep_returns_none_when_nothing_to_squash() -> None:
    _, stack = _stack()

    assert plan_prep(stack, [2, 3]) is None


def test_prep_squashes_and_publishes_whole_stack() -> None:
    repo = three_group_stack()
    git = repo.git()
    github = FakeGitHub()
    ctx = StackContext.for_test(git=git, github=github)

    outcome = prep(ctx, REPO_ROOT, stack_settings(), policy=RollbackPolicy())

    assert outcome.rebuild is not None
    assert outcome.rebuild.status == "completed"
    assert outcome.warned_pr is None
    assert git.messages_between("origin/main", BRANCH) == [
        "Add parser pr:a\n\nParser body",
        "Add lexer pr:b",
        "Local debug hook pr:ignore",
        "More debug",
        "Add printer pr:c",
    ]
    assert git.files_at(BRANCH)["a.txt"] == "a2\n"
    assert [created[1] for created in github.created_prs] == [
        branch("a"),
        branch("b"),
        branch("c"),
    ]


def test_prep_squashes_every_targeted_group() -> None:
    repo = build_stack(
        [
            ("Add parser pr:a", {"a.txt": "a1\n"}),
            ("parser fixup", {"a.txt": "a2\n"}),
            ("Add lexer pr:b", {"b.txt": "b1\n"}),
            ("lexer fixup", {"b.txt": "b2\n"}),
        ]
    )
    git = repo.git()
    ctx = StackContext.for_test(git=git)

    prep(ctx, REPO_ROOT, stack_settings(), policy=RollbackPolicy())

    assert git.messages_between("origin/main", BRANCH) == ["Add parser pr:a", "Add lexer pr:b"]
    assert git.files_at(BRANCH) == {"README.md": "hello\n", "a.txt": "a2\n", "b.txt": "b2\n"}


def test_prep_until_flags_next_pr() -> None:
    repo = three_group_stack()
    git = repo.git()
    github = FakeGitHub(prs=[make_pr(7, branch("b"), branch("a"), body="Lexer notes")])
    ctx = StackContext.for_test(git=git, github=github)

    outcome = prep(ctx, REPO_ROOT, stack_settings(), until=1, policy=RollbackPolicy())

    assert outcome.warned_pr == 7
    assert github.pr(7).body == f"{PARENT_CHANGED_WARNING}\n\nLexer notes"
    assert [created[1] for created in github.created_prs] == [branch("a")]


def test_prep_does_not_repeat_warning() -> None:
    repo = three_group_stack()
    github = FakeGitHub(
        prs=[make_pr(7, branch("b"), branch("a"), body=f"{PARENT_CHANGED_WARNING}\n\nNotes")]
    )
    ctx = StackContext.for_test(git=repo.git(), github=github)

    prep(ctx, REPO_ROOT, stack_settings(), exact=1, policy=RollbackPolicy())

    assert [number for number, _ in github.updated_bodies if number == 7] == []
    assert github.pr(7).body == f"{PARENT_CHANGED_WARNING}\n\nNotes"


def test_prep_without_multi_commit_group_makes_no_mutation() -> None:
    repo = three_group_stack()
    git = repo.git()
    github = FakeGitHub()
    ctx = StackContext.for_test(git=git, github=github)

    outcome = prep(ctx, REPO_ROOT, stack_settings(), exact=2, policy=RollbackPolicy())

    assert outcome.rebuild is None
    assert git.created_workspaces == []
    assert git.pushes == []
    assert github.mutation_count == 0
