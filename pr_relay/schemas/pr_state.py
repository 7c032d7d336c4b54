"""PR shadow state schemas."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PRStatus(str, Enum):
    DRAFT = "draft"
    READY_FOR_REVIEW = "ready_for_review"
    CHANGES_REQUESTED = "changes_requested"
    APPROVED = "approved"
    MERGED = "merged"
    CLOSED = "closed"


class ReviewVerdict(str, Enum):
    APPROVED = "approved"
    CHANGES_REQUESTED = "changes_requested"
    COMMENTED = "commented"
    DISMISSED = "dismissed"


class TerminalState(str, Enum):
    NONE = "none"
    CLOSED = "closed"
    MERGED = "merged"


TERMINAL_STATUSES = frozenset({PRStatus.MERGED, PRStatus.CLOSED})


class Review(BaseModel):
    """One reviewer's latest verdict."""

    id: int
    reviewer: str
    state: ReviewVerdict
    comment: str = ""
    submitted_at: datetime = Field(default_factory=utcnow)


class PullRequestIdentity(BaseModel):
    """Facts about a PR as reported by GitHub when an event was emitted."""

    model_config = ConfigDict(frozen=True)

    number: int
    owner: str
    repo: str
    author: str
    branch_name: str
    base_branch: str
    url: str
    title: str
    description: str = ""
    linked_issues: tuple[str, ...] = ()


class PRState(BaseModel):
    """Shadow record of one PR and its chat-side representation."""

    pr_number: int
    owner: str
    repo: str
    title: str
    description: str = ""
    author: str
    branch_name: str
    base_branch: str
    url: str
    linked_issues: list[str] = Field(default_factory=list)
    status: PRStatus
    is_draft: bool = False
    reviewers: list[str] = Field(default_factory=list)
    reviews: list[Review] = Field(default_factory=list)
    message_id: str | None = None
    thread_id: str | None = None
    tracked_thread_members: list[str] = Field(default_factory=list)
    closed_by: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _message_and_thread_together(self) -> "PRState":
        if (self.message_id is None) != (self.thread_id is None):
            raise ValueError("message_id and thread_id must be both set or both unset")
        return self

    @classmethod
    def from_identity(
        cls,
        identity: PullRequestIdentity,
        status: PRStatus,
        is_draft: bool,
        reviewers: list[str],
    ) -> "PRState":
        return cls(
            pr_number=identity.number,
            owner=identity.owner,
            repo=identity.repo,
            title=identity.title,
            description=identity.description,
            author=identity.author,
            branch_name=identity.branch_name,
            base_branch=identity.base_branch,
            url=identity.url,
            linked_issues=list(identity.linked_issues),
            status=status,
            is_draft=is_draft,
            reviewers=list(dict.fromkeys(reviewers)),
        )

    @property
    def terminal(self) -> TerminalState:
        if self.status in TERMINAL_STATUSES:
            return TerminalState(self.status.value)
        return TerminalState.NONE

    @property
    def repo_full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    def attach(self, message_id: str, thread_id: str) -> None:
        """Record the chat message and thread created for this PR."""
        self.message_id = message_id
        self.thread_id = thread_id

    def add_reviewer(self, reviewer: str) -> bool:
        """Add a requested reviewer. Returns False if already present."""
        if reviewer in self.reviewers:
            return False
        self.reviewers.append(reviewer)
        return True

    def remove_reviewer(self, reviewer: str) -> bool:
        if reviewer not in self.reviewers:
            return False
        self.reviewers.remove(reviewer)
        return True

    def review_by(self, reviewer: str) -> Review | None:
        return next((r for r in self.reviews if r.reviewer == reviewer), None)

    def upsert_review(self, review: Review) -> Review | None:
        """Replace the reviewer's live review. Returns the replaced one, if any."""
        previous = self.review_by(review.reviewer)
        self.reviews = [r for r in self.reviews if r.reviewer != review.reviewer]
        self.reviews.append(review)
        return previous

    def remove_review(self, reviewer: str) -> Review | None:
        previous = self.review_by(reviewer)
        if previous is not None:
            self.reviews = [r for r in self.reviews if r.reviewer != reviewer]
        return previous

    def reviewers_with(self, verdict: ReviewVerdict) -> list[str]:
        return [r.reviewer for r in self.reviews if r.state == verdict]

    def track_member(self, chat_id: str) -> None:
        if chat_id not in self.tracked_thread_members:
            self.tracked_thread_members.append(chat_id)

    def untrack_member(self, chat_id: str) -> None:
        if chat_id in self.tracked_thread_members:
            self.tracked_thread_members.remove(chat_id)
