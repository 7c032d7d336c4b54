"""Reaction and thread membership diffing.

Plans are always computed from the reactions a status *should* show, never
from a record of what was last done, so re-running a plan after a partial
failure converges on the same chat state.
"""

from dataclasses import dataclass
from typing import Iterable

from pr_relay.schemas.pr_state import PRStatus

APPROVED_REACTION = "✅"
CHANGES_REQUESTED_REACTION = "🔴"
MERGED_REACTION = "🎉"
CLOSED_REACTION = "🚪"

STATUS_REACTIONS: dict[PRStatus, str] = {
    PRStatus.APPROVED: APPROVED_REACTION,
    PRStatus.CHANGES_REQUESTED: CHANGES_REQUESTED_REACTION,
    PRStatus.MERGED: MERGED_REACTION,
    PRStatus.CLOSED: CLOSED_REACTION,
}

REVIEW_OUTCOME_REACTIONS = frozenset({APPROVED_REACTION, CHANGES_REQUESTED_REACTION})
TERMINAL_REACTIONS = frozenset({MERGED_REACTION, CLOSED_REACTION})
MANAGED_REACTIONS = REVIEW_OUTCOME_REACTIONS | TERMINAL_REACTIONS


@dataclass(frozen=True)
class ReactionPlan:
    add: tuple[str, ...] = ()
    remove: tuple[str, ...] = ()

    @property
    def empty(self) -> bool:
        return not (self.add or self.remove)


@dataclass(frozen=True)
class MembershipPlan:
    add: tuple[str, ...] = ()
    remove: tuple[str, ...] = ()


def reactions_for(status: PRStatus) -> frozenset[str]:
    """Reactions the PR message should carry for a status."""
    reaction = STATUS_REACTIONS.get(status)
    return frozenset({reaction}) if reaction else frozenset()


def _exclusive_group(status: PRStatus) -> frozenset[str]:
    if status in (PRStatus.MERGED, PRStatus.CLOSED):
        return MANAGED_REACTIONS
    if status in (PRStatus.APPROVED, PRStatus.CHANGES_REQUESTED):
        return REVIEW_OUTCOME_REACTIONS
    return frozenset()


def _ordered(reactions: Iterable[str]) -> tuple[str, ...]:
    order = list(STATUS_REACTIONS.values())
    return tuple(sorted(reactions, key=order.index))


def plan_reactions(old_status: PRStatus, new_status: PRStatus) -> ReactionPlan:
    """Reactions to add and remove to move the message from one status to another."""
    if old_status == new_status:
        return ReactionPlan()

    target = reactions_for(new_status)
    stale = (reactions_for(old_status) | _exclusive_group(new_status)) - target
    return ReactionPlan(add=_ordered(target), remove=_ordered(stale))


def plan_member_additions(tracked: Iterable[str], candidates: Iterable[str | None]) -> MembershipPlan:
    """Members to add to the thread, skipping unmapped users and ones already added."""
    tracked = set(tracked)
    add = [c for c in dict.fromkeys(candidates) if c and c not in tracked]
    return MembershipPlan(add=tuple(add))


def plan_member_removals(tracked: Iterable[str], candidates: Iterable[str | None]) -> MembershipPlan:
    """Members to remove, restricted to those the relay itself added."""
    tracked = set(tracked)
    remove = [c for c in dict.fromkeys(candidates) if c and c in tracked]
    return MembershipPlan(remove=tuple(remove))


def plan_thread_teardown(tracked: Iterable[str], author_id: str | None) -> MembershipPlan:
    """Members to remove when a PR closes: every tracked member plus the author."""
    members = list(tracked)
    if author_id:
        members.append(author_id)
    return MembershipPlan(remove=tuple(dict.fromkeys(members)))
