"""Abstract state store interface.

The reconciliation engine depends on StateStore, not on a concrete
backend, so in-memory and file storage are swappable through settings.
"""

from abc import ABC, abstractmethod

from pr_relay.schemas.pr_state import PRState


class StateStore(ABC):
    """Persistence of one PRState per PR number plus a message id index.

    Stores only load and persist records; every business rule about what a
    valid PRState looks like belongs to the engine. Lookups of unknown keys
    return None or an empty list, never raise.
    """

    @abstractmethod
    async def save_pr_state(self, state: PRState) -> None:
        """Insert or replace the state for state.pr_number."""

    @abstractmethod
    async def get_pr_state(self, pr_number: int) -> PRState | None:
        """Return a copy of the stored state, or None."""

    @abstractmethod
    async def delete_pr_state(self, pr_number: int) -> None:
        """Forget a PR. Deleting an unknown PR is a no-op."""

    @abstractmethod
    async def get_all_pr_states(self) -> list[PRState]:
        """Return copies of every stored state."""

    @abstractmethod
    async def get_pr_number_by_message_id(self, message_id: str) -> int | None:
        """Reverse lookup from a chat message id to its PR number."""

    async def close(self) -> None:
        """Release any resources held by the store.

        Optional. Default is a no-op so callers can always call close() safely.
        """
