"""Shared library utilities."""

from pr_relay.core.issue_parser import diff_linked_issues, extract_linked_issues, format_issue_links

__all__ = [
    "diff_linked_issues",
    "extract_linked_issues",
    "format_issue_links",
]
