"""Notification service - builds chat messages for PR events."""

from datetime import datetime, timezone

from pr_relay.core.issue_parser import IssueChanges, format_issue_links
from pr_relay.schemas.pr_state import PRState, PRStatus, Review, ReviewVerdict
from pr_relay.services.chat.schemas import MessageContent
from pr_relay.services.notifications.templates import TemplateService
from pr_relay.services.notifications.user_mapping import UserMapping

STATUS_COLORS = {
    PRStatus.DRAFT: 0x6E7681,
    PRStatus.READY_FOR_REVIEW: 0x1F6FEB,
    PRStatus.CHANGES_REQUESTED: 0xDA3633,
    PRStatus.APPROVED: 0x2DA44E,
    PRStatus.MERGED: 0x8250DF,
    PRStatus.CLOSED: 0x6E7681,
}

THREAD_NAME_TITLE_LIMIT = 80

VERDICT_TEMPLATES = {
    ReviewVerdict.APPROVED: "review_approved",
    ReviewVerdict.CHANGES_REQUESTED: "review_changes_requested",
    ReviewVerdict.COMMENTED: "review_commented",
}


def thread_name(pr_number: int, title: str) -> str:
    """Thread name for a PR, keeping within Discord's 100 character limit."""
    if len(title) > THREAD_NAME_TITLE_LIMIT:
        title = title[: THREAD_NAME_TITLE_LIMIT - 3] + "..."
    return f"PR #{pr_number}: {title}"


class NotificationBuilder:
    """Renders the PR message and thread texts from templates."""

    def __init__(self, templates: TemplateService, users: UserMapping) -> None:
        self.templates = templates
        self.users = users

    def _thread_text(self, key: str, **variables) -> str:
        return self.templates.render("thread_messages", variables)[key]

    def status_text(self, state: PRState) -> str:
        status = state.status
        if status == PRStatus.APPROVED:
            reviewers = state.reviewers_with(ReviewVerdict.APPROVED)
        elif status == PRStatus.CHANGES_REQUESTED:
            reviewers = state.reviewers_with(ReviewVerdict.CHANGES_REQUESTED)
        else:
            reviewers = []

        messages = self.templates.render(
            "status_messages",
            {
                "reviewers": self.users.mentions(reviewers),
                "closer": self.users.mention(state.closed_by) if state.closed_by else "unknown",
            },
        )
        return messages.get(status.value, f"Status: {status.value}")

    def pr_message(self, state: PRState) -> MessageContent:
        """Main PR message, re-rendered in full on every update."""
        if state.reviewers:
            reviewers_mentions = self.users.mentions(state.reviewers)
        else:
            reviewers_mentions = self.templates.render("warnings")["no_reviewers"]

        rendered = self.templates.render(
            "pr_message",
            {
                "title": state.title,
                "pr_number": state.pr_number,
                "url": state.url,
                "description": state.description or "_No description provided_",
                "color": STATUS_COLORS.get(state.status, STATUS_COLORS[PRStatus.READY_FOR_REVIEW]),
                "branch_name": state.branch_name,
                "base_branch": state.base_branch,
                "author_mention": self.users.mention(state.author),
                "reviewers_mentions": reviewers_mentions,
                "status": self.status_text(state),
                "linked_issues": format_issue_links(state.linked_issues, state.owner, state.repo),
                "repo": state.repo_full_name,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )

        # Chat platforms reject embed fields with empty values
        for embed in rendered.get("embeds", []):
            embed["fields"] = [f for f in embed.get("fields", []) if str(f.get("value", "")).strip()]

        return MessageContent.model_validate(rendered)

    def thread_created(self, state: PRState) -> str:
        return self._thread_text("pr_created", pr_number=state.pr_number, title=state.title, url=state.url)

    def reviewer_added(self, reviewer: str) -> str:
        return self._thread_text("reviewer_added", reviewer_mention=self.users.mention(reviewer))

    def reviewer_removed(self, reviewer: str) -> str:
        return self._thread_text("reviewer_removed", reviewer_mention=self.users.mention(reviewer))

    def review_submitted(self, state: PRState, review: Review) -> str | None:
        key = VERDICT_TEMPLATES.get(review.state)
        if key is None:
            return None
        return self._thread_text(
            key,
            reviewer_mention=self.users.mention(review.reviewer),
            author_mention=self.users.mention(state.author),
            comment_suffix=f"\n\n> {review.comment}" if review.comment else "",
        )

    def review_dismissed(self, reviewer: str, previous_state: ReviewVerdict | None) -> str:
        review_state = previous_state.value.replace("_", " ") if previous_state else "previous"
        return self._thread_text(
            "review_dismissed",
            reviewer_mention=self.users.mention(reviewer),
            review_state=review_state,
        )

    def pr_closed(self, state: PRState, closed_by: str, merged: bool) -> str:
        return self._thread_text(
            "pr_merged" if merged else "pr_closed",
            pr_number=state.pr_number,
            author_mention=self.users.mention(state.author),
            closer_mention=self.users.mention(closed_by),
        )

    def pr_reopened(self, state: PRState) -> str:
        return self._thread_text(
            "pr_reopened",
            pr_number=state.pr_number,
            author_mention=self.users.mention(state.author),
        )

    def issues_updated(self, state: PRState, changes: IssueChanges) -> str:
        added = (
            f"\nAdded: {format_issue_links(changes.added, state.owner, state.repo)}" if changes.added else ""
        )
        removed = (
            f"\nRemoved: {format_issue_links(changes.removed, state.owner, state.repo)}"
            if changes.removed
            else ""
        )
        return self._thread_text("issues_updated", added=added, removed=removed)
