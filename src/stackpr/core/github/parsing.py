"""Parsing helpers for gh CLI JSON output."""

from typing import Any, cast

from stackpr.core.github.types import PRState, PullRequest, PullRequestStatus

PR_JSON_FIELDS = "number,headRefName,baseRefName,title,body,state,url"


def parse_pull_request(data: dict[str, Any]) -> PullRequest:
    """Build a PullRequest from a `gh pr ... --json` object."""
    return PullRequest(
        number=int(data["number"]),
        head=data.get("headRefName", ""),
        base=data.get("baseRefName", ""),
        title=data.get("title") or "",
        body=data.get("body") or "",
        state=cast(PRState, data.get("state", "OPEN")),
        url=data.get("url", ""),
    )


def parse_pr_number_from_url(url: str) -> int:
    """Extract the PR number from a URL like https://github.com/o/r/pull/42."""
    tail = url.strip().rstrip("/").rsplit("/", 1)[-1]
    if not tail.isdigit():
        msg = f"Could not parse PR number from: {url.strip()}"
        raise RuntimeError(msg)
    return int(tail)


def parse_pr_status(pr_data: dict[str, Any] | None) -> PullRequestStatus:
    """Derive CI and review state from a GraphQL pullRequest node.

    No status rollup means no CI is configured, which counts as passing.
    Without a reviewDecision (no branch protection), the latest reviews
    decide: any CHANGES_REQUESTED wins, then any APPROVED.
    """
    if pr_data is None:
        return PullRequestStatus(ci_state="SUCCESS", review_decision="REVIEW_REQUIRED")

    ci_state = "SUCCESS"
    commit_nodes = (pr_data.get("commits") or {}).get("nodes") or []
    if commit_nodes:
        rollup = (commit_nodes[0].get("commit") or {}).get("statusCheckRollup")
        if rollup is not None and rollup.get("state"):
            ci_state = rollup["state"]

    review = pr_data.get("reviewDecision") or ""
    if not review:
        review_states = {
            node.get("state") for node in (pr_data.get("reviews") or {}).get("nodes") or []
        }
        if "CHANGES_REQUESTED" in review_states:
            review = "CHANGES_REQUESTED"
        elif "APPROVED" in review_states:
            review = "APPROVED"
        else:
            review = "REVIEW_REQUIRED"

    return PullRequestStatus(ci_state=ci_state, review_decision=review)


def parse_comment_bodies(data: dict[str, Any]) -> list[str]:
    """Comment bodies from a `gh pr view --json comments` object."""
    return [comment.get("body") or "" for comment in data.get("comments") or []]
