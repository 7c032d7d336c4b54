"""Tests for the reconciliation engine."""

import asyncio

import pytest

from pr_relay.coordinator.planner import (
    APPROVED_REACTION,
    CHANGES_REQUESTED_REACTION,
    CLOSED_REACTION,
    MERGED_REACTION,
)
from pr_relay.core.exceptions import (
    ChatServiceError,
    CreationTimeoutError,
    MaterializationError,
    PRCreationError,
    StoreError,
)
from pr_relay.schemas.events import (
    PRClosed,
    PREdited,
    PROpened,
    PRReopened,
    ReviewDismissed,
    ReviewerRequested,
    ReviewerUnrequested,
    ReviewSubmitted,
)
from pr_relay.schemas.pr_state import PRState, PRStatus, ReviewVerdict, TerminalState


def added_reactions(chat) -> list[str]:
    return [call.args[2] for call in chat.add_reaction.await_args_list]


def removed_reactions(chat) -> list[str]:
    return [call.args[2] for call in chat.remove_reaction.await_args_list]


def thread_texts(chat) -> list[str]:
    return [call.args[1] for call in chat.send_thread_message.await_args_list]


@pytest.fixture
def open_pr(engine, make_identity):
    async def factory(number: int = 42, reviewers=(), is_draft: bool = False):
        event = PROpened(
            pr_number=number,
            identity=make_identity(number),
            is_draft=is_draft,
            requested_reviewers=list(reviewers),
        )
        return await engine.handle(event)

    return factory


class TestCreation:
    """Tests for the opened path."""

    async def test_opened_creates_message_thread_and_state(self, engine, chat, store, make_identity):
        """Opening sends one message, one thread and one intro."""
        state = await engine.handle(PROpened(pr_number=42, identity=make_identity(), requested_reviewers=["alice"]))

        assert state.status == PRStatus.READY_FOR_REVIEW
        assert state.message_id == "msg-1"
        assert state.thread_id == "thread-msg-1"
        chat.send_message.assert_awaited_once()
        chat.create_thread.assert_awaited_once()
        assert chat.create_thread.await_args.args[2] == "PR #42: Add widget support"
        assert "PR #42" in thread_texts(chat)[0]

        stored = await store.get_pr_state(42)
        assert stored.reviewers == ["alice"]
        assert stored.linked_issues == ["7"]

    async def test_draft_opened(self, open_pr):
        """Draft PRs start as drafts."""
        state = await open_pr(is_draft=True)
        assert state.status == PRStatus.DRAFT

    async def test_initial_reviewers_added_to_thread(self, open_pr, chat):
        """Mapped initial reviewers are added to the thread and tracked."""
        state = await open_pr(reviewers=["alice", "bob", "unmapped"])

        added = [call.args[1] for call in chat.add_thread_member.await_args_list]
        assert added == ["100", "200"]
        assert state.tracked_thread_members == ["100", "200"]

    async def test_long_title_truncated_in_thread_name(self, engine, chat, make_identity):
        """Thread names cap the title at 80 characters."""
        await engine.handle(PROpened(pr_number=9, identity=make_identity(9, title="x" * 120)))

        name = chat.create_thread.await_args.args[2]
        assert name == f"PR #9: {'x' * 77}..."

    async def test_duplicate_opened_reuses_state(self, open_pr, chat):
        """A redelivered opened event does not create a second message."""
        first = await open_pr()
        second = await open_pr()

        assert second.message_id == first.message_id
        chat.send_message.assert_awaited_once()

    async def test_concurrent_opened_creates_once(self, engine, chat, store, make_identity):
        """Two concurrent opened events produce exactly one message and thread."""
        event = PROpened(pr_number=42, identity=make_identity())

        first, second = await asyncio.gather(engine.handle(event), engine.handle(event))

        assert chat.send_message.await_count == 1
        assert chat.create_thread.await_count == 1
        assert first.message_id == second.message_id
        assert len(await store.get_all_pr_states()) == 1

    async def test_event_during_creation_is_kept(self, engine, open_pr, chat, store, make_identity, make_review):
        """A review arriving while the opened event is still adding members lands in the stored state."""
        gate = asyncio.Event()
        entered = asyncio.Event()

        async def add_thread_member(thread_id, user_id):
            entered.set()
            await gate.wait()

        chat.add_thread_member.side_effect = add_thread_member

        opening = asyncio.create_task(open_pr(reviewers=["alice"]))
        await entered.wait()
        reviewing = asyncio.create_task(
            engine.handle(
                ReviewSubmitted(
                    pr_number=42,
                    identity=make_identity(),
                    review=make_review("bob", ReviewVerdict.APPROVED),
                )
            )
        )
        await asyncio.sleep(0.01)
        gate.set()
        await asyncio.gather(opening, reviewing)

        stored = await store.get_pr_state(42)
        assert stored.status == PRStatus.APPROVED
        assert stored.reviewers == ["alice", "bob"]
        assert [review.reviewer for review in stored.reviews] == ["bob"]
        assert stored.tracked_thread_members == ["100", "200"]
        chat.send_message.assert_awaited_once()

    async def test_send_failure_persists_nothing(self, engine, chat, store, claims, make_identity):
        """A failed message send creates no thread and saves no state."""
        chat.send_message.side_effect = ChatServiceError("Discord", "boom")

        with pytest.raises(PRCreationError):
            await engine.handle(PROpened(pr_number=42, identity=make_identity()))

        chat.create_thread.assert_not_awaited()
        assert await store.get_pr_state(42) is None
        assert not claims.is_claimed(42)

    async def test_thread_failure_persists_nothing(self, engine, chat, store, make_identity):
        """A message without a thread is never saved."""
        chat.create_thread.side_effect = ChatServiceError("Discord", "boom")

        with pytest.raises(PRCreationError):
            await engine.handle(PROpened(pr_number=42, identity=make_identity()))

        assert await store.get_pr_state(42) is None

    async def test_retry_after_failure_succeeds(self, engine, chat, store, make_identity):
        """The claim is released after a failure so a redelivery can create the PR."""
        chat.send_thread_message.side_effect = [ChatServiceError("Discord", "boom"), "ok"]
        event = PROpened(pr_number=42, identity=make_identity())

        with pytest.raises(PRCreationError):
            await engine.handle(event)

        state = await engine.handle(event)
        assert state.message_id is not None
        assert (await store.get_pr_state(42)).thread_id == state.thread_id

    async def test_timeout_without_state_fails_closed(self, engine, chat, claims, make_identity):
        """A claim timeout with nothing stored is reported, not waited out."""
        engine.creation_timeout = 0.01
        held = asyncio.Event()
        release = asyncio.Event()

        async def stuck_creator():
            async with claims.claim(42, timeout=1.0):
                held.set()
                await release.wait()

        holder = asyncio.create_task(stuck_creator())
        await held.wait()

        with pytest.raises(CreationTimeoutError):
            await engine.handle(PROpened(pr_number=42, identity=make_identity()))

        chat.send_message.assert_not_awaited()
        release.set()
        await holder

    async def test_timeout_reuses_state_created_meanwhile(self, engine, chat, store, claims, make_identity):
        """On a claim timeout the store is re-checked before failing."""
        engine.creation_timeout = 0.01
        identity = make_identity()
        held = asyncio.Event()
        release = asyncio.Event()

        async def slow_creator():
            async with claims.claim(42, timeout=1.0):
                state = PRState.from_identity(identity, PRStatus.READY_FOR_REVIEW, False, [])
                state.attach("existing-msg", "existing-thread")
                await store.save_pr_state(state)
                held.set()
                await release.wait()

        holder = asyncio.create_task(slow_creator())
        await held.wait()

        state = await engine.handle(PROpened(pr_number=42, identity=identity))

        assert state.message_id == "existing-msg"
        chat.send_message.assert_not_awaited()
        release.set()
        await holder


class TestMaterialization:
    """Tests for events about PRs the engine has never seen."""

    async def test_reviewer_requested_materializes(self, engine, chat, store, make_identity):
        """An unseen PR is created, then the request is applied."""
        event = ReviewerRequested(
            pr_number=42,
            identity=make_identity(),
            requested_reviewers=["alice"],
            reviewer="alice",
        )

        state = await engine.handle(event)

        assert state.reviewers == ["alice"]
        chat.send_message.assert_awaited_once()
        chat.edit_message.assert_awaited_once()
        assert any("was added as a reviewer" in text for text in thread_texts(chat))
        assert (await store.get_pr_state(42)).reviewers == ["alice"]

    async def test_second_delivery_does_not_recreate(self, engine, chat, make_identity):
        """Once materialized, the same event only applies the reviewer mutation."""
        event = ReviewerRequested(pr_number=42, identity=make_identity(), reviewer="alice")

        await engine.handle(event)
        chat.reset_mock()
        state = await engine.handle(event)

        chat.send_message.assert_not_awaited()
        chat.create_thread.assert_not_awaited()
        chat.edit_message.assert_awaited_once()
        assert state.reviewers == ["alice"]

    @pytest.mark.parametrize("terminal", [TerminalState.CLOSED, TerminalState.MERGED])
    async def test_terminal_pr_not_resurrected(self, engine, chat, store, make_identity, terminal):
        """An unseen PR reported as closed or merged is skipped entirely."""
        event = PRClosed(
            pr_number=42,
            identity=make_identity(),
            terminal=terminal,
            closed_by="mia",
            merged=terminal is TerminalState.MERGED,
        )

        assert await engine.handle(event) is None
        assert chat.mock_calls == []
        assert await store.get_pr_state(42) is None

    async def test_terminal_review_event_not_resurrected(self, engine, chat, store, make_identity, make_review):
        """Any event kind is skipped when its payload says the PR is closed."""
        event = ReviewSubmitted(
            pr_number=42,
            identity=make_identity(),
            terminal=TerminalState.CLOSED,
            review=make_review("alice", ReviewVerdict.APPROVED),
        )

        assert await engine.handle(event) is None
        assert chat.mock_calls == []
        assert await store.get_all_pr_states() == []

    async def test_missing_identity_fails(self, engine, chat, store):
        """Materialization without identity data is an error."""
        with pytest.raises(MaterializationError):
            await engine.handle(ReviewerRequested(pr_number=42, reviewer="alice"))

        assert chat.mock_calls == []
        assert await store.get_pr_state(42) is None


class TestReviewers:
    """Tests for reviewer requests and removals."""

    async def test_request_adds_reviewer_and_member(self, engine, open_pr, chat):
        """A requested reviewer is shown, added to the thread and announced."""
        await open_pr()

        state = await engine.handle(ReviewerRequested(pr_number=42, reviewer="bob"))

        assert state.reviewers == ["bob"]
        assert state.tracked_thread_members == ["200"]
        chat.add_thread_member.assert_awaited_with("thread-msg-1", "200")
        assert "<@200> was added as a reviewer" in thread_texts(chat)[-1]

    async def test_thread_add_failure_is_not_fatal(self, engine, open_pr, chat, store):
        """A failed thread add leaves the member untracked but keeps the reviewer."""
        await open_pr()
        chat.add_thread_member.side_effect = ChatServiceError("Discord", "Missing Access")

        state = await engine.handle(ReviewerRequested(pr_number=42, reviewer="bob"))

        assert state.reviewers == ["bob"]
        assert state.tracked_thread_members == []
        assert (await store.get_pr_state(42)).reviewers == ["bob"]

    async def test_unrequest_removes_tracked_member(self, engine, open_pr, chat):
        """Removing a request drops the reviewer and the member the relay added."""
        await open_pr(reviewers=["alice"])

        state = await engine.handle(ReviewerUnrequested(pr_number=42, reviewer="alice"))

        assert state.reviewers == []
        assert state.tracked_thread_members == []
        chat.remove_thread_member.assert_awaited_once_with("thread-msg-1", "100")
        assert "was removed as a reviewer" in thread_texts(chat)[-1]

    async def test_unrequest_untracked_member_not_removed(self, engine, open_pr, chat):
        """A reviewer the relay never added to the thread is not removed from it."""
        chat.add_thread_member.side_effect = ChatServiceError("Discord", "boom")
        await open_pr(reviewers=["alice"])

        await engine.handle(ReviewerUnrequested(pr_number=42, reviewer="alice"))

        chat.remove_thread_member.assert_not_awaited()

    async def test_unrequest_after_review_preserves_history(self, engine, open_pr, chat, make_review):
        """A reviewer who already reviewed stays, and the review is untouched."""
        await open_pr(reviewers=["alice"])
        review = make_review("alice", ReviewVerdict.APPROVED)
        await engine.handle(ReviewSubmitted(pr_number=42, review=review))
        chat.reset_mock()

        state = await engine.handle(ReviewerUnrequested(pr_number=42, reviewer="alice"))

        assert state.reviewers == ["alice"]
        assert [r.id for r in state.reviews] == [review.id]
        assert chat.mock_calls == []


class TestReviews:
    """Tests for review submission and dismissal."""

    async def test_changes_requested(self, engine, open_pr, chat, make_review):
        """A request for changes sets the status and its reaction."""
        await open_pr(reviewers=["alice"])

        state = await engine.handle(
            ReviewSubmitted(pr_number=42, review=make_review("alice", ReviewVerdict.CHANGES_REQUESTED, "Needs tests"))
        )

        assert state.status == PRStatus.CHANGES_REQUESTED
        assert added_reactions(chat) == [CHANGES_REQUESTED_REACTION]
        assert removed_reactions(chat) == [APPROVED_REACTION]
        assert "> Needs tests" in thread_texts(chat)[-1]

    async def test_review_replacement(self, engine, open_pr, make_review):
        """Two reviews from one reviewer leave only the latest."""
        await open_pr(reviewers=["alice"])
        await engine.handle(ReviewSubmitted(pr_number=42, review=make_review("alice", ReviewVerdict.CHANGES_REQUESTED)))

        state = await engine.handle(ReviewSubmitted(pr_number=42, review=make_review("alice", ReviewVerdict.APPROVED)))

        assert [(r.reviewer, r.state) for r in state.reviews] == [("alice", ReviewVerdict.APPROVED)]
        assert state.status == PRStatus.APPROVED

    async def test_self_assignment(self, engine, open_pr, chat, make_review):
        """An unrequested reviewer is added silently and joined to the thread."""
        await open_pr()

        state = await engine.handle(ReviewSubmitted(pr_number=42, review=make_review("bob", ReviewVerdict.COMMENTED)))

        assert state.reviewers == ["bob"]
        assert state.tracked_thread_members == ["200"]
        assert not any("was added as a reviewer" in text for text in thread_texts(chat))

    async def test_comment_does_not_touch_reactions(self, engine, open_pr, chat, make_review):
        """A comment review on a ready PR changes no reactions."""
        await open_pr(reviewers=["alice"])

        await engine.handle(ReviewSubmitted(pr_number=42, review=make_review("alice", ReviewVerdict.COMMENTED)))

        chat.add_reaction.assert_not_awaited()
        chat.remove_reaction.assert_not_awaited()

    async def test_dismissal_recomputes_status(self, engine, open_pr, chat, make_review):
        """Dismissing the only approval returns the PR to ready for review."""
        await open_pr(reviewers=["alice"])
        await engine.handle(ReviewSubmitted(pr_number=42, review=make_review("alice", ReviewVerdict.APPROVED)))
        chat.reset_mock()

        state = await engine.handle(ReviewDismissed(pr_number=42, reviewer="alice"))

        assert state.reviews == []
        assert state.status == PRStatus.READY_FOR_REVIEW
        assert removed_reactions(chat) == [APPROVED_REACTION]
        assert "approved review by <@100> was dismissed" in thread_texts(chat)[-1]

    async def test_reaction_failures_do_not_block_state(self, engine, open_pr, chat, store, make_review):
        """Failed reaction calls are logged while the state is still saved."""
        await open_pr(reviewers=["alice"])
        chat.remove_reaction.side_effect = ChatServiceError("Discord", "boom")
        chat.add_reaction.side_effect = ChatServiceError("Discord", "boom")

        await engine.handle(ReviewSubmitted(pr_number=42, review=make_review("alice", ReviewVerdict.APPROVED)))

        assert (await store.get_pr_state(42)).status == PRStatus.APPROVED
        chat.send_thread_message.assert_awaited()

    async def test_reaction_removal_idempotent(self, engine, open_pr, chat, make_review):
        """Already-absent reactions are removed without error, once per transition."""
        await open_pr(reviewers=["alice"])
        await engine.handle(ReviewSubmitted(pr_number=42, review=make_review("alice", ReviewVerdict.APPROVED)))
        chat.reset_mock()

        # Re-delivered approval: status unchanged, nothing to remove again
        await engine.handle(ReviewSubmitted(pr_number=42, review=make_review("alice", ReviewVerdict.APPROVED)))

        chat.remove_reaction.assert_not_awaited()
        chat.add_reaction.assert_not_awaited()


class TestEdited:
    """Tests for draft toggles and description edits."""

    async def test_ready_for_review(self, engine, open_pr, make_identity):
        """Marking a draft ready re-derives the status."""
        await open_pr(is_draft=True)

        state = await engine.handle(PREdited(pr_number=42, identity=make_identity(), is_draft=False))

        assert state.status == PRStatus.READY_FOR_REVIEW

    async def test_draft_toggle_keeps_review_outcome(self, engine, open_pr, make_identity, make_review):
        """Converting an approved PR to draft keeps it approved."""
        await open_pr()
        await engine.handle(ReviewSubmitted(pr_number=42, review=make_review("alice", ReviewVerdict.APPROVED)))

        state = await engine.handle(PREdited(pr_number=42, identity=make_identity(), is_draft=True))

        assert state.is_draft
        assert state.status == PRStatus.APPROVED

    async def test_linked_issue_change_posts_notice(self, engine, open_pr, chat, make_identity):
        """Changing the linked issues updates the state and posts a notice."""
        await open_pr()

        state = await engine.handle(
            PREdited(pr_number=42, identity=make_identity(description="Fixes #8, closes #7 and resolves #12"))
        )

        assert state.linked_issues == ["7", "8", "12"]
        text = thread_texts(chat)[-1]
        assert "Linked issues updated" in text
        assert "#8" in text and "#12" in text

    async def test_title_only_edit_has_no_notice(self, engine, open_pr, chat, make_identity):
        """Edits that keep the linked issues only update the message."""
        await open_pr()
        chat.reset_mock()

        state = await engine.handle(PREdited(pr_number=42, identity=make_identity(title="Renamed")))

        assert state.title == "Renamed"
        chat.edit_message.assert_awaited_once()
        chat.send_thread_message.assert_not_awaited()


class TestCloseAndReopen:
    """Tests for terminal transitions."""

    async def test_close_tears_down_thread(self, engine, open_pr, chat, make_review):
        """Closing removes tracked members plus the author and locks the thread."""
        await open_pr(reviewers=["alice", "bob"])
        await engine.handle(ReviewSubmitted(pr_number=42, review=make_review("alice", ReviewVerdict.APPROVED)))
        chat.reset_mock()

        state = await engine.handle(PRClosed(pr_number=42, closed_by="mia", terminal=TerminalState.CLOSED))

        assert state.status == PRStatus.CLOSED
        assert state.closed_by == "mia"
        assert added_reactions(chat) == [CLOSED_REACTION]
        assert set(removed_reactions(chat)) == {APPROVED_REACTION, CHANGES_REQUESTED_REACTION, MERGED_REACTION}
        removed = [call.args[1] for call in chat.remove_thread_member.await_args_list]
        assert removed == ["100", "200", "400"]
        assert state.tracked_thread_members == []
        chat.lock_thread.assert_awaited_once_with("thread-msg-1", True)

    async def test_redelivered_close_is_noop(self, engine, open_pr, chat):
        """A second closed event for a closed PR touches nothing in chat."""
        await open_pr(reviewers=["alice"])
        await engine.handle(PRClosed(pr_number=42, closed_by="mia", terminal=TerminalState.CLOSED))
        chat.reset_mock()

        state = await engine.handle(PRClosed(pr_number=42, closed_by="bob", terminal=TerminalState.CLOSED))

        assert state.status == PRStatus.CLOSED
        assert state.closed_by == "mia"
        assert chat.mock_calls == []

    async def test_merge_after_close_still_applies(self, engine, open_pr, chat):
        """A merged event after a plain close moves the PR to merged."""
        await open_pr()
        await engine.handle(PRClosed(pr_number=42, closed_by="mia", terminal=TerminalState.CLOSED))
        chat.reset_mock()

        state = await engine.handle(PRClosed(pr_number=42, closed_by="mia", merged=True, terminal=TerminalState.MERGED))

        assert state.status == PRStatus.MERGED
        assert added_reactions(chat) == [MERGED_REACTION]

    async def test_one_removal_failure_does_not_abort_rest(self, engine, open_pr, chat):
        """Member removals are best effort per member."""
        await open_pr(reviewers=["alice", "bob"])
        chat.remove_thread_member.side_effect = [ChatServiceError("Discord", "boom"), None, None]

        state = await engine.handle(PRClosed(pr_number=42, closed_by="mia", merged=True, terminal=TerminalState.MERGED))

        assert chat.remove_thread_member.await_count == 3
        assert state.tracked_thread_members == ["100"]
        chat.lock_thread.assert_awaited_once()

    async def test_reopen_recomputes_from_reviews(self, engine, open_pr, chat, make_review):
        """A reopened PR that was approved comes back approved."""
        await open_pr(reviewers=["alice"])
        await engine.handle(ReviewSubmitted(pr_number=42, review=make_review("alice", ReviewVerdict.APPROVED)))
        await engine.handle(PRClosed(pr_number=42, closed_by="mia", terminal=TerminalState.CLOSED))
        chat.reset_mock()

        state = await engine.handle(PRReopened(pr_number=42))

        assert state.status == PRStatus.APPROVED
        assert state.closed_by is None
        assert added_reactions(chat) == [APPROVED_REACTION]
        assert CLOSED_REACTION in removed_reactions(chat)
        chat.lock_thread.assert_awaited_once_with("thread-msg-1", False)
        chat.add_thread_member.assert_awaited_once_with("thread-msg-1", "400")
        assert "400" in state.tracked_thread_members
        assert "was reopened" in thread_texts(chat)[-1]

    async def test_merged_is_final(self, engine, open_pr, chat):
        """A reopen for a merged PR is ignored."""
        await open_pr()
        await engine.handle(PRClosed(pr_number=42, closed_by="mia", merged=True, terminal=TerminalState.MERGED))
        chat.reset_mock()

        state = await engine.handle(PRReopened(pr_number=42))

        assert state.status == PRStatus.MERGED
        assert chat.mock_calls == []


class TestStoreErrors:
    async def test_store_error_propagates(self, engine, open_pr, store, monkeypatch):
        """Store failures are not swallowed."""
        await open_pr()

        async def broken_save(state):
            raise StoreError("disk full")

        monkeypatch.setattr(store, "save_pr_state", broken_save)

        with pytest.raises(StoreError):
            await engine.handle(ReviewerRequested(pr_number=42, reviewer="bob"))
