"""Pydantic schemas for GitHub webhooks."""

from datetime import datetime

from pydantic import BaseModel, Field


class GitHubUser(BaseModel):
    login: str


class GitHubRef(BaseModel):
    ref: str


class GitHubRepository(BaseModel):
    name: str
    owner: GitHubUser


class GitHubPullRequest(BaseModel):
    """The subset of a pull_request object the relay reads.

    Identity fields are optional so that a sparse payload still parses into
    an event for an already-tracked PR.
    """

    number: int
    title: str | None = None
    body: str | None = None
    html_url: str | None = None
    state: str = "open"
    draft: bool = False
    merged: bool = False
    user: GitHubUser | None = None
    head: GitHubRef | None = None
    base: GitHubRef | None = None
    merged_by: GitHubUser | None = None
    requested_reviewers: list[GitHubUser] = Field(default_factory=list)


class GitHubReview(BaseModel):
    id: int
    user: GitHubUser
    state: str
    body: str | None = None
    submitted_at: datetime | None = None


class PullRequestPayload(BaseModel):
    """Webhook body for pull_request and pull_request_review events."""

    action: str
    pull_request: GitHubPullRequest
    repository: GitHubRepository | None = None
    sender: GitHubUser | None = None
    requested_reviewer: GitHubUser | None = None
    review: GitHubReview | None = None


class WebhookResponse(BaseModel):
    """Response schema for webhook events."""

    message: str
    event: str | None = None
    pr: str | None = None
    action: str | None = None


class PingResponse(BaseModel):
    """Response schema for GitHub ping event."""

    message: str = "pong"
    zen: str = ""
