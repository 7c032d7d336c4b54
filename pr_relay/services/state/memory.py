"""InMemoryStateStore - state held in process memory.

Used in tests and development; everything is lost on restart.
"""

from pr_relay.core.logging import get_logger
from pr_relay.schemas.pr_state import PRState, utcnow
from pr_relay.services.state.base import StateStore

logger = get_logger("state.memory")


class InMemoryStateStore(StateStore):
    def __init__(self) -> None:
        self._states: dict[int, PRState] = {}
        self._message_index: dict[str, int] = {}

    def _put(self, state: PRState, touch: bool = True) -> None:
        previous = self._states.get(state.pr_number)
        if previous and previous.message_id and previous.message_id != state.message_id:
            self._message_index.pop(previous.message_id, None)

        stored = state.model_copy(deep=True)
        if touch:
            stored.updated_at = utcnow()
        self._states[state.pr_number] = stored

        if stored.message_id:
            self._message_index[stored.message_id] = stored.pr_number

    async def save_pr_state(self, state: PRState) -> None:
        self._put(state)
        logger.debug(f"Saved PR state for #{state.pr_number}")

    async def get_pr_state(self, pr_number: int) -> PRState | None:
        state = self._states.get(pr_number)
        return state.model_copy(deep=True) if state else None

    async def delete_pr_state(self, pr_number: int) -> None:
        state = self._states.pop(pr_number, None)
        if state and state.message_id:
            self._message_index.pop(state.message_id, None)
        logger.debug(f"Deleted PR state for #{pr_number}")

    async def get_all_pr_states(self) -> list[PRState]:
        return [state.model_copy(deep=True) for state in self._states.values()]

    async def get_pr_number_by_message_id(self, message_id: str) -> int | None:
        return self._message_index.get(message_id)

    def __len__(self) -> int:
        return len(self._states)

    def clear(self) -> None:
        self._states.clear()
        self._message_index.clear()
