"""Shared fixtures."""

import asyncio
import itertools
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from pr_relay.config import BUNDLED_TEMPLATES
from pr_relay.coordinator import CreationClaims, ReconciliationEngine
from pr_relay.core.issue_parser import extract_linked_issues
from pr_relay.schemas.pr_state import PullRequestIdentity, Review, ReviewVerdict
from pr_relay.services.chat.base import ChatService
from pr_relay.services.notifications import NotificationBuilder, TemplateService, UserMapping
from pr_relay.services.state import InMemoryStateStore

CHANNEL_ID = "pr-channel"

USER_IDS = {
    "dave": "400",
    "alice": "100",
    "bob": "200",
    "mia": "900",
}


@pytest.fixture
def users():
    return UserMapping(USER_IDS)


@pytest.fixture
def templates():
    service = TemplateService()
    service.load(BUNDLED_TEMPLATES)
    return service


@pytest.fixture
def notifications(templates, users):
    return NotificationBuilder(templates, users)


@pytest.fixture
def store():
    return InMemoryStateStore()


@pytest.fixture
def chat():
    """Chat service double that hands out sequential ids and yields on every call."""
    mock = AsyncMock(spec=ChatService)
    ids = itertools.count(1)

    async def send_message(channel_id, content):
        await asyncio.sleep(0)
        return f"msg-{next(ids)}"

    async def create_thread(channel_id, message_id, name):
        await asyncio.sleep(0)
        return f"thread-{message_id}"

    mock.send_message.side_effect = send_message
    mock.create_thread.side_effect = create_thread
    mock.send_thread_message.return_value = "thread-msg"
    return mock


@pytest.fixture
def claims():
    return CreationClaims()


@pytest.fixture
def engine(store, chat, notifications, users, claims):
    return ReconciliationEngine(
        store=store,
        chat=chat,
        notifications=notifications,
        users=users,
        channel_id=CHANNEL_ID,
        claims=claims,
        creation_timeout=1.0,
    )


@pytest.fixture
def make_identity():
    def factory(number: int = 42, **overrides) -> PullRequestIdentity:
        data = {
            "number": number,
            "owner": "acme",
            "repo": "widgets",
            "author": "dave",
            "branch_name": "feature/widgets",
            "base_branch": "main",
            "url": f"https://github.com/acme/widgets/pull/{number}",
            "title": "Add widget support",
            "description": "Adds widgets.\n\nCloses #7",
        }
        data.update(overrides)
        data.setdefault("linked_issues", tuple(extract_linked_issues(data["description"])))
        return PullRequestIdentity(**data)

    return factory


@pytest.fixture
def make_review():
    ids = itertools.count(1000)

    def factory(reviewer: str, state: ReviewVerdict, comment: str = "") -> Review:
        return Review(
            id=next(ids),
            reviewer=reviewer,
            state=state,
            comment=comment,
            submitted_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        )

    return factory
