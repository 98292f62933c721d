"""CLI tests for the stackpr commands, run against fake gateways."""

from click.testing import CliRunner

from stackpr.cli.cli import cli
from stackpr.core.config import FakeConfigStore, StackConfigFile
from stackpr.core.context import StackContext
from stackpr.core.git.fake import FakeGit, make_commit
from stackpr.core.github.abc import GitHub
from stackpr.core.github.fake import FakeGitHub, make_pr
from stackpr.core.github.types import PullRequestStatus
from tests.test_utils.stacks import BRANCH, PREFIX, branch, three_group_stack


def _ctx(git: FakeGit, github: GitHub | None = None) -> StackContext:
    store = FakeConfigStore(repo_config=StackConfigFile(base="origin/main", prefix=PREFIX))
    return StackContext.for_test(git=git, github=github, config_store=store)


def test_list_prs_numbers_from_bottom() -> None:
    repo = three_group_stack()
    github = FakeGitHub(prs=[make_pr(1, branch("a"), "main")])
    runner = CliRunner()

    result = runner.invoke(cli, ["list"], obj=_ctx(repo.git(), github))

    assert result.exit_code == 0, result.output
    assert f"LPR #1 - {repo.sha(0)[:8]} : {branch('a')} (#1) - 2 commits" in result.output
    assert f"LPR #3 - {repo.sha(5)[:8]} : {branch('c')} - 1 commit" in result.output
    assert "CI status" in result.output


def test_list_commits_shows_ignored_commits() -> None:
    repo = three_group_stack()
    runner = CliRunner()

    result = runner.invoke(cli, ["list", "commit"], obj=_ctx(repo.git()))

    assert result.exit_code == 0, result.output
    assert f"   4  {repo.sha(3)[:8]} [ignored] - Local debug hook pr:ignore" in result.output


def test_update_prints_created_prs() -> None:
    repo = three_group_stack()
    git = repo.git()
    github = FakeGitHub()
    runner = CliRunner()

    result = runner.invoke(cli, ["update"], obj=_ctx(git, github))

    assert result.exit_code == 0, result.output
    assert "#100 Add parser https://github.com/owner/repo/pull/100" in result.output
    assert "#102 Add printer https://github.com/owner/repo/pull/102" in result.output
    assert len(git.pushes) == 1


def test_update_rejects_both_extents() -> None:
    repo = three_group_stack()
    git = repo.git()
    runner = CliRunner()

    result = runner.invoke(cli, ["update", "--until", "1", "--commits", "2"], obj=_ctx(git))

    assert result.exit_code == 1
    assert "mutually exclusive" in result.output
    assert git.pushes == []


def test_dry_run_update_changes_nothing() -> None:
    repo = three_group_stack()
    git = repo.git()
    github = FakeGitHub()
    runner = CliRunner()

    result = runner.invoke(cli, ["--dry-run", "update"], obj=_ctx(git, github))

    assert result.exit_code == 0, result.output
    assert "[DRY RUN] Would run: git push origin" in result.output
    assert git.pushes == []
    assert github.mutation_count == 0


def test_move_reorders_groups() -> None:
    repo = three_group_stack()
    git = repo.git()
    runner = CliRunner()

    result = runner.invoke(cli, ["move", "1", "--after", "top"], obj=_ctx(git))

    assert result.exit_code == 0, result.output
    assert "Reordered stack" in result.output
    assert git.messages_between("origin/main", BRANCH)[-2:] == [
        "Add parser pr:a\n\nParser body",
        "Parser follow-up",
    ]


def test_invalid_move_exits_without_touching_branch() -> None:
    repo = three_group_stack()
    git = repo.git()
    runner = CliRunner()

    result = runner.invoke(cli, ["move", "1..2", "--after", "2"], obj=_ctx(git))

    assert result.exit_code == 1
    assert "Error:" in result.output
    assert git.branch_head(BRANCH) == repo.tip.sha
    assert git.created_workspaces == []


def test_restack_conflict_rolls_back_and_exits_1() -> None:
    repo = three_group_stack()
    upstream = make_commit(repo.base, "upstream edit", {"a.txt": "upstream\n"})
    repo.extra_commits.append(upstream)
    git = repo.git(remote_branches={"main": upstream.sha})
    runner = CliRunner()

    result = runner.invoke(cli, ["restack"], obj=_ctx(git))

    assert result.exit_code == 1
    assert "a.txt" in result.output
    assert "Rolled back; your branch is unchanged." in result.output
    assert git.branch_head(BRANCH) == repo.tip.sha


def test_restack_halt_prints_resume_instructions() -> None:
    repo = three_group_stack()
    upstream = make_commit(repo.base, "upstream edit", {"a.txt": "upstream\n"})
    repo.extra_commits.append(upstream)
    git = repo.git(remote_branches={"main": upstream.sha})
    runner = CliRunner()

    result = runner.invoke(cli, ["restack", "--on-conflict", "halt"], obj=_ctx(git))

    assert result.exit_code == 1
    assert "stackpr resume" in result.output
    assert len(git.active_workspaces) == 1


def test_relink_reports_corrections() -> None:
    repo = three_group_stack()
    github = FakeGitHub(
        prs=[
            make_pr(1, branch("a"), "main"),
            make_pr(2, branch("b"), "main"),
            make_pr(3, branch("c"), branch("b")),
        ]
    )
    runner = CliRunner()

    result = runner.invoke(cli, ["relink"], obj=_ctx(repo.git(), github))

    assert result.exit_code == 0, result.output
    assert "Updated 1 PR base(s)" in result.output
    assert github.updated_bases == [(2, branch("a"))]


def test_land_incomplete_prints_report_and_exits_1() -> None:
    repo = three_group_stack()
    approved = PullRequestStatus(ci_state="SUCCESS", review_decision="APPROVED")
    github = FakeGitHub(
        prs=[
            make_pr(1, branch("a"), "main"),
            make_pr(2, branch("b"), branch("a")),
            make_pr(3, branch("c"), branch("b")),
        ],
        statuses={1: approved, 2: approved, 3: approved},
        fail_on={"merge_pr:3"},
    )
    runner = CliRunner()

    result = runner.invoke(cli, ["land", "--no-restack"], obj=_ctx(repo.git(), github))

    assert result.exit_code == 1
    assert "Landing Incomplete" in result.output
    assert "Landing stopped at 'squash-merge #3'" in result.output
    assert github.updated_bases == [(3, "main")]


def test_abort_without_halted_operation_fails() -> None:
    repo = three_group_stack()
    runner = CliRunner()

    result = runner.invoke(cli, ["abort"], obj=_ctx(repo.git()))

    assert result.exit_code == 1
    assert f"No halted operation for {BRANCH}" in result.output


def test_base_override_reaches_settings() -> None:
    repo = three_group_stack()
    runner = CliRunner()

    result = runner.invoke(cli, ["--base", "origin/nowhere", "list"], obj=_ctx(repo.git()))

    assert result.exit_code == 1
    assert "No merge base between origin/nowhere and HEAD" in result.output


def test_outside_repository_fails() -> None:
    runner = CliRunner()

    result = runner.invoke(cli, ["list"], obj=_ctx(FakeGit()))

    assert result.exit_code == 1
    assert "Not a git repository" in result.output


def test_version_option() -> None:
    runner = CliRunner()

    result = runner.invoke(cli, ["--version"], obj=_ctx(FakeGit()))

    assert result.exit_code == 0
    assert "version" in result.output
