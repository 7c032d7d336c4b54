"""PR status derivation."""

from typing import Iterable

from pr_relay.schemas.pr_state import PRStatus, Review, ReviewVerdict, TerminalState


def derive_status(
    reviews: Iterable[Review],
    is_draft: bool,
    terminal: TerminalState = TerminalState.NONE,
) -> PRStatus:
    """Compute the canonical status from the live reviews and two flags.

    Terminal states win outright, then any requested change beats any number
    of approvals, then approvals, then the draft flag.
    """
    if terminal is not TerminalState.NONE:
        return PRStatus(terminal.value)

    verdicts = {review.state for review in reviews}

    if ReviewVerdict.CHANGES_REQUESTED in verdicts:
        return PRStatus.CHANGES_REQUESTED
    if ReviewVerdict.APPROVED in verdicts:
        return PRStatus.APPROVED

    return PRStatus.DRAFT if is_draft else PRStatus.READY_FOR_REVIEW
