"""Reconciliation engine - applies PR lifecycle events to the chat shadow."""

from typing import Awaitable, Callable

from pr_relay.coordinator.claims import CreationClaims
from pr_relay.coordinator.planner import (
    plan_member_additions,
    plan_member_removals,
    plan_reactions,
    plan_thread_teardown,
)
from pr_relay.coordinator.status import derive_status
from pr_relay.core.exceptions import CreationTimeoutError, MaterializationError, PRCreationError
from pr_relay.core.issue_parser import diff_linked_issues
from pr_relay.core.logging import get_logger
from pr_relay.schemas.events import (
    BaseEvent,
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
from pr_relay.schemas.pr_state import PRState, PRStatus, PullRequestIdentity, TerminalState
from pr_relay.services.chat.base import ChatService
from pr_relay.services.notifications import NotificationBuilder, UserMapping, thread_name
from pr_relay.services.state.base import StateStore

logger = get_logger("coordinator.engine")


class ReconciliationEngine:
    """Keeps one chat message and thread per PR in step with GitHub events.

    Every handler loads the latest stored state, mutates it, re-derives the
    status and pushes only the difference to the chat platform. Chat failures
    after creation are logged and skipped; the state is saved regardless so
    the next event for the same PR converges on the intended chat state.
    """

    def __init__(
        self,
        store: StateStore,
        chat: ChatService,
        notifications: NotificationBuilder,
        users: UserMapping,
        channel_id: str,
        claims: CreationClaims | None = None,
        creation_timeout: float = 5.0,
    ) -> None:
        self.store = store
        self.chat = chat
        self.notifications = notifications
        self.users = users
        self.channel_id = channel_id
        self.claims = claims or CreationClaims()
        self.creation_timeout = creation_timeout

        self._handlers: dict[str, Callable[[PRState, BaseEvent], Awaitable[None]]] = {
            "edited": self._on_edited,
            "reviewer_requested": self._on_reviewer_requested,
            "reviewer_unrequested": self._on_reviewer_unrequested,
            "review_submitted": self._on_review_submitted,
            "review_dismissed": self._on_review_dismissed,
            "closed": self._on_closed,
            "reopened": self._on_reopened,
        }

    async def handle(self, event: PREvent) -> PRState | None:
        """Apply one event. Returns the resulting state, or None if the event was skipped."""
        logger.info(f"Handling {event.kind} for PR #{event.pr_number}")

        if isinstance(event, PROpened):
            return await self._create(event.identity, event.is_draft, event.requested_reviewers)

        state = await self._load_or_materialize(event)
        if state is None:
            return None

        await self._handlers[event.kind](state, event)
        await self.store.save_pr_state(state)

        logger.info(f"PR #{state.pr_number} is now {state.status.value}")
        return state

    # Creation

    async def _create(
        self,
        identity: PullRequestIdentity,
        is_draft: bool,
        reviewers: list[str],
    ) -> PRState:
        pr_number = identity.number
        try:
            async with self.claims.claim(pr_number, self.creation_timeout):
                existing = await self.store.get_pr_state(pr_number)
                if existing is not None:
                    logger.info(f"PR #{pr_number} already tracked, reusing message {existing.message_id}")
                    return existing

                state = PRState.from_identity(identity, derive_status([], is_draft), is_draft, reviewers)
                await self._publish(state)
                await self._add_members(state, state.reviewers)
                await self.store.save_pr_state(state)
        except CreationTimeoutError:
            existing = await self.store.get_pr_state(pr_number)
            if existing is not None:
                return existing
            raise

        logger.info(f"Created notification for PR #{pr_number}: message={state.message_id}, thread={state.thread_id}")
        return state

    async def _publish(self, state: PRState) -> None:
        """Send the PR message, open its thread and post the intro, as one unit."""
        try:
            message_id = await self.chat.send_message(self.channel_id, self.notifications.pr_message(state))
            thread_id = await self.chat.create_thread(
                self.channel_id, message_id, thread_name(state.pr_number, state.title)
            )
            await self.chat.send_thread_message(thread_id, self.notifications.thread_created(state))
        except Exception as e:
            logger.error(f"Failed to create chat representation for PR #{state.pr_number}: {e}")
            raise PRCreationError(state.pr_number, str(e)) from e

        state.attach(message_id, thread_id)

    async def _load_or_materialize(self, event: BaseEvent) -> PRState | None:
        state = await self.store.get_pr_state(event.pr_number)
        if state is not None:
            return state

        if event.terminal is not TerminalState.NONE:
            logger.info(f"Skipping {event.kind} for untracked PR #{event.pr_number}: already {event.terminal.value}")
            return None

        if event.identity is None:
            raise MaterializationError(event.pr_number, f"{event.kind} event carries no PR details")

        reviewers = event.requested_reviewers
        if isinstance(event, ReviewerRequested):
            # The request itself is applied afterwards so it gets its own notice
            reviewers = [r for r in reviewers if r != event.reviewer]

        logger.info(f"PR #{event.pr_number} is not tracked, materializing it before applying {event.kind}")
        return await self._create(event.identity, event.is_draft, reviewers)

    # Chat side effects

    async def _attempt(self, action: str, call: Awaitable) -> bool:
        """Await a chat call, logging instead of raising on failure."""
        try:
            await call
            return True
        except Exception as e:
            logger.warning(f"Failed to {action}: {e}")
            return False

    async def _refresh_message(self, state: PRState) -> None:
        await self._attempt(
            f"update message for PR #{state.pr_number}",
            self.chat.edit_message(self.channel_id, state.message_id, self.notifications.pr_message(state)),
        )

    async def _apply_reactions(self, state: PRState, old_status: PRStatus) -> None:
        plan = plan_reactions(old_status, state.status)
        for emoji in plan.remove:
            await self._attempt(
                f"remove {emoji} from PR #{state.pr_number}",
                self.chat.remove_reaction(self.channel_id, state.message_id, emoji),
            )
        for emoji in plan.add:
            await self._attempt(
                f"add {emoji} to PR #{state.pr_number}",
                self.chat.add_reaction(self.channel_id, state.message_id, emoji),
            )

    async def _post(self, state: PRState, text: str | None) -> None:
        if not text:
            return
        await self._attempt(
            f"post to thread of PR #{state.pr_number}",
            self.chat.send_thread_message(state.thread_id, text),
        )

    async def _add_members(self, state: PRState, logins: list[str]) -> None:
        plan = plan_member_additions(state.tracked_thread_members, [self.users.chat_id(login) for login in logins])
        for user_id in plan.add:
            added = await self._attempt(
                f"add {user_id} to thread of PR #{state.pr_number}",
                self.chat.add_thread_member(state.thread_id, user_id),
            )
            if added:
                state.track_member(user_id)

    async def _remove_members(self, state: PRState, user_ids: tuple[str, ...]) -> None:
        for user_id in user_ids:
            removed = await self._attempt(
                f"remove {user_id} from thread of PR #{state.pr_number}",
                self.chat.remove_thread_member(state.thread_id, user_id),
            )
            if removed:
                state.untrack_member(user_id)

    def _rederive(self, state: PRState, terminal: TerminalState | None = None) -> PRStatus:
        """Recompute the status in place and return the previous one."""
        old_status = state.status
        state.status = derive_status(
            state.reviews,
            state.is_draft,
            state.terminal if terminal is None else terminal,
        )
        return old_status

    # Handlers

    async def _on_edited(self, state: PRState, event: PREdited) -> None:
        state.is_draft = event.is_draft

        changes = None
        if event.identity is not None:
            state.title = event.identity.title
            state.description = event.identity.description
            new_issues = list(event.identity.linked_issues)
            changes = diff_linked_issues(state.linked_issues, new_issues)
            state.linked_issues = new_issues

        old_status = self._rederive(state)
        await self._refresh_message(state)
        await self._apply_reactions(state, old_status)

        if changes is not None and changes.changed:
            await self._post(state, self.notifications.issues_updated(state, changes))

    async def _on_reviewer_requested(self, state: PRState, event: ReviewerRequested) -> None:
        if not state.add_reviewer(event.reviewer):
            logger.debug(f"{event.reviewer} is already a reviewer of PR #{state.pr_number}")

        await self._refresh_message(state)
        await self._add_members(state, [event.reviewer])
        await self._post(state, self.notifications.reviewer_added(event.reviewer))

    async def _on_reviewer_unrequested(self, state: PRState, event: ReviewerUnrequested) -> None:
        if state.review_by(event.reviewer) is not None:
            logger.info(f"Keeping {event.reviewer} on PR #{state.pr_number}: they already reviewed")
            return

        if not state.remove_reviewer(event.reviewer):
            logger.debug(f"{event.reviewer} was not a reviewer of PR #{state.pr_number}")
            return

        await self._refresh_message(state)
        plan = plan_member_removals(state.tracked_thread_members, [self.users.chat_id(event.reviewer)])
        await self._remove_members(state, plan.remove)
        await self._post(state, self.notifications.reviewer_removed(event.reviewer))

    async def _on_review_submitted(self, state: PRState, event: ReviewSubmitted) -> None:
        review = event.review
        self_assigned = state.add_reviewer(review.reviewer)
        if self_assigned:
            logger.info(f"{review.reviewer} reviewed PR #{state.pr_number} without being requested")

        state.upsert_review(review)
        old_status = self._rederive(state)

        await self._refresh_message(state)
        await self._apply_reactions(state, old_status)
        await self._post(state, self.notifications.review_submitted(state, review))

        if self_assigned:
            await self._add_members(state, [review.reviewer])

    async def _on_review_dismissed(self, state: PRState, event: ReviewDismissed) -> None:
        previous = state.remove_review(event.reviewer)
        if previous is None:
            logger.debug(f"No live review by {event.reviewer} on PR #{state.pr_number}")
            return

        old_status = self._rederive(state)
        await self._refresh_message(state)
        await self._apply_reactions(state, old_status)
        await self._post(state, self.notifications.review_dismissed(event.reviewer, previous.state))

    async def _on_closed(self, state: PRState, event: PRClosed) -> None:
        terminal = TerminalState.MERGED if event.merged else TerminalState.CLOSED
        if state.terminal is terminal:
            logger.info(f"PR #{state.pr_number} is already {terminal.value}, skipping close")
            return

        state.closed_by = event.closed_by
        old_status = self._rederive(state, terminal)

        await self._refresh_message(state)
        await self._apply_reactions(state, old_status)
        await self._post(state, self.notifications.pr_closed(state, event.closed_by, event.merged))

        plan = plan_thread_teardown(state.tracked_thread_members, self.users.chat_id(state.author))
        await self._remove_members(state, plan.remove)

        await self._attempt(
            f"lock thread of PR #{state.pr_number}",
            self.chat.lock_thread(state.thread_id, True),
        )

    async def _on_reopened(self, state: PRState, event: PRReopened) -> None:
        if state.status == PRStatus.MERGED:
            logger.warning(f"Ignoring reopen of merged PR #{state.pr_number}")
            return

        state.closed_by = None
        old_status = self._rederive(state, TerminalState.NONE)

        await self._refresh_message(state)
        await self._apply_reactions(state, old_status)
        await self._attempt(
            f"unlock thread of PR #{state.pr_number}",
            self.chat.lock_thread(state.thread_id, False),
        )
        await self._add_members(state, [state.author])
        await self._post(state, self.notifications.pr_reopened(state))
