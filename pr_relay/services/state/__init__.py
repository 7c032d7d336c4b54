"""PR shadow state storage."""

from pr_relay.services.state.base import StateStore
from pr_relay.services.state.file import FileStateStore
from pr_relay.services.state.memory import InMemoryStateStore

__all__ = ["FileStateStore", "InMemoryStateStore", "StateStore"]
