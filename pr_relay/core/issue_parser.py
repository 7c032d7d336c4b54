"""Parse linked issue references from PR descriptions."""

import re
from dataclasses import dataclass

LINKED_ISSUE_PATTERN = re.compile(
    r"\b(?:close|closes|closed|fix|fixes|fixed|resolve|resolves|resolved"
    r"|address|addresses|addressed)\s+#(\d+)",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class IssueChanges:
    """Issues added to and removed from a PR description."""

    added: list[str]
    removed: list[str]

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)


def extract_linked_issues(description: str | None) -> list[str]:
    """
    Extract linked issue numbers from a PR description.

    Supported formats (case-insensitive):
    - Closes #123 / Closed #123
    - Fixes #456 / Fixed #456
    - Resolves #789 / Resolved #789
    - Addresses #101 / Addressed #101

    Returns de-duplicated issue numbers sorted numerically.
    """
    if not description:
        return []

    issues = {match.group(1) for match in LINKED_ISSUE_PATTERN.finditer(description)}
    return sorted(issues, key=int)


def diff_linked_issues(old: list[str], new: list[str]) -> IssueChanges:
    """Compare two linked issue lists."""
    return IssueChanges(
        added=[issue for issue in new if issue not in old],
        removed=[issue for issue in old if issue not in new],
    )


def format_issue_links(issues: list[str], owner: str, repo: str) -> str:
    """Format issues as comma-separated markdown links with embeds suppressed."""
    return ", ".join(
        f"[#{issue}](<https://github.com/{owner}/{repo}/issues/{issue}>)" for issue in issues
    )
