"""Canonical PR lifecycle events.

Webhook payloads are validated into exactly one of these models at the
ingress boundary. Every event carries the PR number plus whatever identity
data the payload had, so an event for an untracked PR can still be used to
materialize it.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from pr_relay.schemas.pr_state import PullRequestIdentity, Review, ReviewVerdict, TerminalState


class BaseEvent(BaseModel):
    pr_number: int
    identity: PullRequestIdentity | None = None
    is_draft: bool = False
    terminal: TerminalState = TerminalState.NONE
    requested_reviewers: list[str] = Field(default_factory=list)


class PROpened(BaseEvent):
    kind: Literal["opened"] = "opened"
    identity: PullRequestIdentity


class PREdited(BaseEvent):
    """Draft toggle or title/description edit."""

    kind: Literal["edited"] = "edited"


class ReviewerRequested(BaseEvent):
    kind: Literal["reviewer_requested"] = "reviewer_requested"
    reviewer: str


class ReviewerUnrequested(BaseEvent):
    kind: Literal["reviewer_unrequested"] = "reviewer_unrequested"
    reviewer: str


class ReviewSubmitted(BaseEvent):
    kind: Literal["review_submitted"] = "review_submitted"
    review: Review


class ReviewDismissed(BaseEvent):
    kind: Literal["review_dismissed"] = "review_dismissed"
    reviewer: str
    review_id: int | None = None
    previous_state: ReviewVerdict | None = None


class PRClosed(BaseEvent):
    kind: Literal["closed"] = "closed"
    closed_by: str
    merged: bool = False


class PRReopened(BaseEvent):
    kind: Literal["reopened"] = "reopened"


PREvent = Annotated[
    Union[
        PROpened,
        PREdited,
        ReviewerRequested,
        ReviewerUnrequested,
        ReviewSubmitted,
        ReviewDismissed,
        PRClosed,
        PRReopened,
    ],
    Field(discriminator="kind"),
]
