"""Domain schemas shared across services."""

from pr_relay.schemas.events import (
    PRClosed,
    PREdited,
    PREvent,
    PROpened,
    PRReopened,
    ReviewDismissed,
    ReviewerRequested,
    ReviewerUnrequested,
    ReviewSubmitted,
)
from pr_relay.schemas.pr_state import (
    PRState,
    PRStatus,
    PullRequestIdentity,
    Review,
    ReviewVerdict,
    TerminalState,
)

__all__ = [
    "PRClosed",
    "PREdited",
    "PREvent",
    "PROpened",
    "PRReopened",
    "PRState",
    "PRStatus",
    "PullRequestIdentity",
    "Review",
    "ReviewDismissed",
    "ReviewVerdict",
    "ReviewSubmitted",
    "ReviewerRequested",
    "ReviewerUnrequested",
    "TerminalState",
]
