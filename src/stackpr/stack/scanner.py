"""Commit tag scanning.

Classifies the commits of `merge_base..HEAD` into PR groups using `pr:<tag>`
markers in commit messages. A marker whose tag equals the ignore tag opens an
ignore block: those commits stay in local history but belong to no PR, and
travel with the group that was open when the block started.
"""

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass

from stackpr.core.errors import StackInvariantError
from stackpr.core.git.abc import CommitRecord

logger = logging.getLogger(__name__)

TAG_PATTERN = re.compile(r"\bpr:([A-Za-z0-9._\-]+)\b", re.IGNORECASE)


def find_tags(message: str) -> list[str]:
    """Return every marker tag in a commit message, in order of appearance."""
    return TAG_PATTERN.findall(message)


def strip_tags(text: str) -> str:
    return TAG_PATTERN.sub("", text)


@dataclass(frozen=True)
class Group:
    """Consecutive commits that make up one PR, oldest first."""

    tag: str
    commits: tuple[str, ...]
    subjects: tuple[str, ...]
    first_message: str
    base_commit: str | None
    ignored_after: tuple[str, ...] = ()

    @property
    def last_commit(self) -> str:
        return self.commits[-1]

    @property
    def pr_title(self) -> str:
        """First subject with markers removed, or the tag if nothing is left."""
        title = strip_tags(self.subjects[0]).strip() if self.subjects else ""
        return title or self.tag

    @property
    def pr_body_base(self) -> str:
        """First message minus its subject line, markers removed, trimmed."""
        lines = self.first_message.splitlines()
        return strip_tags("\n".join(lines[1:])).strip()

    @property
    def squash_message(self) -> str:
        """Message for the single commit that replaces this group in prep.

        Raises:
            StackInvariantError: If the first message does not carry this
                group's marker
        """
        tags = find_tags(self.first_message)
        if not tags:
            msg = f"First commit of group '{self.tag}' is missing its pr:{self.tag} marker"
            raise StackInvariantError(msg)
        if tags[0].lower() != self.tag.lower():
            msg = (
                f"First commit tag mismatch for group '{self.tag}': "
                f"expected pr:{self.tag}, found pr:{tags[0]}"
            )
            raise StackInvariantError(msg)
        return self.first_message.rstrip()


@dataclass(frozen=True)
class ScanResult:
    """Scanner output: ignore block before the first group, then the groups."""

    leading_ignored: tuple[str, ...]
    groups: tuple[Group, ...]


@dataclass
class _OpenGroup:
    tag: str
    commits: list[str]
    subjects: list[str]
    first_message: str
    base_commit: str | None
    ignored_after: list[str]

    def freeze(self) -> Group:
        return Group(
            tag=self.tag,
            commits=tuple(self.commits),
            subjects=tuple(self.subjects),
            first_message=self.first_message,
            base_commit=self.base_commit,
            ignored_after=tuple(self.ignored_after),
        )


def scan_commits(commits: Sequence[CommitRecord], ignore_tag: str) -> ScanResult:
    """Partition commits (oldest first) into groups and ignore blocks.

    Args:
        commits: Commits of merge_base..HEAD, oldest first
        ignore_tag: Tag that opens an ignore block. Compared case-sensitively.

    Returns:
        ScanResult with groups bottom to top

    Raises:
        StackInvariantError: If a commit carries more than one marker, an
            untagged commit precedes every group outside an ignore block, or
            two groups share a tag
    """
    groups: list[_OpenGroup] = []
    leading_ignored: list[str] = []
    ignoring = False

    for commit in commits:
        tags = find_tags(commit.message)
        if len(tags) > 1:
            msg = (
                f"Commit {commit.sha[:8]} carries multiple markers "
                f"({', '.join('pr:' + t for t in tags)}): {commit.subject}"
            )
            raise StackInvariantError(msg)

        if tags and tags[0] == ignore_tag:
            logger.debug("Commit %s opens an ignore block", commit.sha[:8])
            ignoring = True
            _attach_ignored(groups, leading_ignored, commit.sha)
            continue

        if tags:
            tag = tags[0]
            for existing in groups:
                if existing.tag.lower() == tag.lower():
                    msg = (
                        f"Duplicate group tag pr:{tag} at commit {commit.sha[:8]}; "
                        f"already used by an earlier group"
                    )
                    raise StackInvariantError(msg)
            ignoring = False
            groups.append(
                _OpenGroup(
                    tag=tag,
                    commits=[commit.sha],
                    subjects=[commit.subject],
                    first_message=commit.message,
                    base_commit=commit.parent,
                    ignored_after=[],
                )
            )
            continue

        if ignoring:
            _attach_ignored(groups, leading_ignored, commit.sha)
        elif groups:
            groups[-1].commits.append(commit.sha)
            groups[-1].subjects.append(commit.subject)
        else:
            msg = (
                f"Untagged commit {commit.sha[:8]} precedes the first pr:<tag> marker: "
                f"{commit.subject}. Add a marker or move it into a pr:{ignore_tag} block."
            )
            raise StackInvariantError(msg)

    return ScanResult(
        leading_ignored=tuple(leading_ignored),
        groups=tuple(g.freeze() for g in groups),
    )


def _attach_ignored(groups: list[_OpenGroup], leading: list[str], sha: str) -> None:
    if groups:
        groups[-1].ignored_after.append(sha)
    else:
        leading.append(sha)
