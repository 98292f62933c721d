"""Real GitHub implementation using gh CLI.

This module provides a real implementation of the GitHub interface that uses
the gh CLI for all operations. It requires gh to be installed and
authenticated.
"""

import json
from pathlib import Path

from stackpr.core.github.abc import GitHub
from stackpr.core.github.parsing import (
    PR_JSON_FIELDS,
    parse_comment_bodies,
    parse_pr_number_from_url,
    parse_pr_status,
    parse_pull_request,
)
from stackpr.core.github.types import MergeMethod, PullRequest, PullRequestStatus
from stackpr.core.subprocess import execute_gh_command, run_subprocess_with_context

_STATUS_QUERY = """query($owner: String!, $name: String!, $number: Int!) {
  repository(owner: $owner, name: $name) {
    pullRequest(number: $number) {
      reviewDecision
      reviews(last: 50, states: [APPROVED, CHANGES_REQUESTED]) { nodes { state } }
      commits(last: 1) { nodes { commit { statusCheckRollup { state } } } }
    }
  }
}"""


class RealGitHub(GitHub):
    """Real implementation using gh CLI."""

    def get_open_pr_for_head(self, repo_root: Path, head: str) -> PullRequest | None:
        stdout = execute_gh_command(
            [
                "gh",
                "pr",
                "list",
                "--head",
                head,
                "--state",
                "open",
                "--limit",
                "1",
                "--json",
                PR_JSON_FIELDS,
            ],
            repo_root,
            f"look up open PR for {head}",
        )
        data = json.loads(stdout or "[]")
        if not data:
            return None
        return parse_pull_request(data[0])

    def get_pr(self, repo_root: Path, number: int) -> PullRequest | None:
        result = run_subprocess_with_context(
            ["gh", "pr", "view", str(number), "--json", PR_JSON_FIELDS],
            operation_context=f"view PR #{number}",
            cwd=repo_root,
            check=False,
        )
        if result.returncode != 0:
            return None
        return parse_pull_request(json.loads(result.stdout))

    def list_open_pr_heads(self, repo_root: Path) -> set[str]:
        stdout = execute_gh_command(
            [
                "gh",
                "pr",
                "list",
                "--state",
                "open",
                "--limit",
                "1000",
                "--json",
                "headRefName",
            ],
            repo_root,
            "list open PRs",
        )
        return {pr["headRefName"] for pr in json.loads(stdout or "[]")}

    def get_pr_status(self, repo_root: Path, number: int) -> PullRequestStatus:
        stdout = execute_gh_command(
            [
                "gh",
                "api",
                "graphql",
                "-f",
                f"query={_STATUS_QUERY}",
                "-F",
                "owner={owner}",
                "-F",
                "name={repo}",
                "-F",
                f"number={number}",
            ],
            repo_root,
            f"fetch CI and review status of PR #{number}",
        )
        data = json.loads(stdout)
        pr_data = ((data.get("data") or {}).get("repository") or {}).get("pullRequest")
        return parse_pr_status(pr_data)

    def list_comment_bodies(self, repo_root: Path, number: int) -> list[str]:
        stdout = execute_gh_command(
            ["gh", "pr", "view", str(number), "--json", "comments"],
            repo_root,
            f"list comments on PR #{number}",
        )
        return parse_comment_bodies(json.loads(stdout or "{}"))

    def create_pr(self, repo_root: Path, *, head: str, base: str, title: str, body: str) -> int:
        result = run_subprocess_with_context(
            [
                "gh",
                "pr",
                "create",
                "--head",
                head,
                "--base",
                base,
                "--title",
                title,
                "--body-file",
                "-",
            ],
            operation_context=f"create PR for {head}",
            cwd=repo_root,
            input_text=body,
        )
        lines = [line for line in result.stdout.splitlines() if line.strip()]
        if not lines:
            msg = f"gh pr create returned no URL for {head}"
            raise RuntimeError(msg)
        return parse_pr_number_from_url(lines[-1])

    def update_pr_base(self, repo_root: Path, number: int, base: str) -> None:
        execute_gh_command(
            ["gh", "pr", "edit", str(number), "--base", base],
            repo_root,
            f"set base of PR #{number} to {base}",
        )

    def update_pr_body(self, repo_root: Path, number: int, body: str) -> None:
        run_subprocess_with_context(
            ["gh", "pr", "edit", str(number), "--body-file", "-"],
            operation_context=f"update description of PR #{number}",
            cwd=repo_root,
            input_text=body,
        )

    def add_comment(self, repo_root: Path, number: int, body: str) -> None:
        execute_gh_command(
            ["gh", "pr", "comment", str(number), "--body", body],
            repo_root,
            f"comment on PR #{number}",
        )

    def close_pr(self, repo_root: Path, number: int) -> None:
        execute_gh_command(
            ["gh", "pr", "close", str(number)],
            repo_root,
            f"close PR #{number}",
        )

    def merge_pr(self, repo_root: Path, number: int, method: MergeMethod) -> None:
        execute_gh_command(
            ["gh", "pr", "merge", str(number), f"--{method}"],
            repo_root,
            f"merge PR #{number} ({method})",
        )
