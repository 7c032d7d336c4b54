"""Translate GitHub webhook payloads into PR events."""

from typing import Any

from pydantic import TypeAdapter

from pr_relay.core.issue_parser import extract_linked_issues
from pr_relay.core.logging import get_logger
from pr_relay.schemas.events import PREvent
from pr_relay.schemas.pr_state import PullRequestIdentity, ReviewVerdict, TerminalState, utcnow
from pr_relay.services.github.schemas import PullRequestPayload

logger = get_logger("github.parser")

SUPPORTED_EVENTS = ("pull_request", "pull_request_review")

PULL_REQUEST_ACTIONS = {
    "opened": "opened",
    "edited": "edited",
    "converted_to_draft": "edited",
    "ready_for_review": "edited",
    "review_requested": "reviewer_requested",
    "review_request_removed": "reviewer_unrequested",
    "closed": "closed",
    "reopened": "reopened",
}

_event_adapter = TypeAdapter(PREvent)

# Verdicts a live review can hold; GitHub also reports "pending" and "dismissed"
LIVE_VERDICTS = {verdict.value for verdict in ReviewVerdict if verdict != ReviewVerdict.DISMISSED}


def extract_identity(payload: PullRequestPayload) -> PullRequestIdentity | None:
    """Build the PR identity snapshot, or None if the payload lacks any part of it."""
    pr = payload.pull_request
    repo = payload.repository

    if repo is None or pr.user is None or pr.head is None or pr.base is None:
        return None
    if pr.title is None or pr.html_url is None:
        return None

    description = pr.body or ""
    return PullRequestIdentity(
        number=pr.number,
        owner=repo.owner.login,
        repo=repo.name,
        author=pr.user.login,
        branch_name=pr.head.ref,
        base_branch=pr.base.ref,
        url=pr.html_url,
        title=pr.title,
        description=description,
        linked_issues=tuple(extract_linked_issues(description)),
    )


def extract_terminal(payload: PullRequestPayload) -> TerminalState:
    pr = payload.pull_request
    if pr.merged:
        return TerminalState.MERGED
    if pr.state == "closed" or payload.action == "closed":
        return TerminalState.CLOSED
    return TerminalState.NONE


def extract_closed_by(payload: PullRequestPayload) -> str:
    if payload.pull_request.merged_by is not None:
        return payload.pull_request.merged_by.login
    if payload.sender is not None:
        return payload.sender.login
    return "unknown"


def parse_webhook_event(event_name: str | None, payload: dict[str, Any]) -> PREvent | None:
    """Parse a webhook delivery into an event, or None when it is not relevant.

    Raises pydantic.ValidationError when a supported payload is malformed.
    """
    if event_name not in SUPPORTED_EVENTS:
        logger.debug(f"Ignoring unsupported event type: {event_name}")
        return None

    parsed = PullRequestPayload.model_validate(payload)
    pr = parsed.pull_request

    data: dict[str, Any] = {
        "pr_number": pr.number,
        "identity": extract_identity(parsed),
        "is_draft": pr.draft,
        "terminal": extract_terminal(parsed),
        "requested_reviewers": [user.login for user in pr.requested_reviewers],
    }

    if event_name == "pull_request":
        kind = PULL_REQUEST_ACTIONS.get(parsed.action)
        if kind is None:
            logger.debug(f"Ignoring pull_request action: {parsed.action}")
            return None

        if kind in ("reviewer_requested", "reviewer_unrequested"):
            if parsed.requested_reviewer is None:
                logger.info(f"Ignoring team review request on PR #{pr.number}")
                return None
            data["reviewer"] = parsed.requested_reviewer.login
        elif kind == "closed":
            data["closed_by"] = extract_closed_by(parsed)
            data["merged"] = pr.merged

    else:
        review = parsed.review
        if review is None:
            logger.warning(f"pull_request_review for PR #{pr.number} has no review object")
            return None

        if parsed.action == "submitted":
            if review.state.lower() not in LIVE_VERDICTS:
                logger.debug(f"Ignoring {review.state} review on PR #{pr.number}")
                return None
            kind = "review_submitted"
            data["review"] = {
                "id": review.id,
                "reviewer": review.user.login,
                "state": review.state.lower(),
                "comment": review.body or "",
                "submitted_at": review.submitted_at or utcnow(),
            }
        elif parsed.action == "dismissed":
            kind = "review_dismissed"
            data["reviewer"] = review.user.login
            data["review_id"] = review.id
            state = review.state.lower()
            data["previous_state"] = state if state in LIVE_VERDICTS else None
        else:
            logger.debug(f"Ignoring pull_request_review action: {parsed.action}")
            return None

    data["kind"] = kind
    return _event_adapter.validate_python(data)

