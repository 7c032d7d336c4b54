"""FileStateStore - JSON file persistence for production.

State is kept in memory for reads and written to disk once no save has
happened for `flush_delay` seconds. Writes go to a temporary file that then
replaces the real one.

Single-process only: two relays sharing one file will overwrite each other.
"""

import asyncio
import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from pr_relay.core.exceptions import StoreError
from pr_relay.core.logging import get_logger
from pr_relay.schemas.pr_state import PRState
from pr_relay.services.state.memory import InMemoryStateStore

logger = get_logger("state.file")


class FileStateStore(InMemoryStateStore):
    def __init__(self, file_path: str, flush_delay: float = 1.0) -> None:
        super().__init__()
        self.file_path = Path(file_path)
        self.flush_delay = flush_delay
        self._dirty = False
        self._flush_task: Optional[asyncio.Task] = None

    async def init(self) -> None:
        """Load existing state from disk, creating the directory if needed."""
        self.file_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            content = await asyncio.to_thread(self.file_path.read_text, encoding="utf-8")
        except FileNotFoundError:
            logger.info(f"No existing state file found at {self.file_path}, starting fresh")
            return
        except OSError as e:
            raise StoreError(f"Failed to read state file {self.file_path}: {e}") from e

        try:
            data = json.loads(content)
            for raw in data.get("pr_states", {}).values():
                self._put(PRState.model_validate(raw), touch=False)
        except (json.JSONDecodeError, PydanticValidationError, AttributeError) as e:
            raise StoreError(f"State file {self.file_path} is corrupt: {e}") from e

        logger.info(f"Loaded {len(self)} PR states from {self.file_path}")

    async def save_pr_state(self, state: PRState) -> None:
        await super().save_pr_state(state)
        self._schedule_flush()

    async def delete_pr_state(self, pr_number: int) -> None:
        await super().delete_pr_state(pr_number)
        self._schedule_flush()

    def _schedule_flush(self) -> None:
        self._dirty = True
        if self._flush_task and not self._flush_task.done():
            self._flush_task.cancel()
        self._flush_task = asyncio.create_task(self._delayed_flush())

    async def _delayed_flush(self) -> None:
        await asyncio.sleep(self.flush_delay)
        try:
            await self.flush()
        except StoreError as e:
            logger.error(f"Failed to flush state to disk: {e}")

    def _serialize(self) -> str:
        data = {
            "pr_states": {
                str(number): state.model_dump(mode="json") for number, state in self._states.items()
            },
            "last_saved": datetime.now(timezone.utc).isoformat(),
        }
        return json.dumps(data, indent=2, ensure_ascii=False)

    def _write(self, content: str) -> None:
        tmp_path = self.file_path.with_suffix(self.file_path.suffix + ".tmp")
        tmp_path.write_text(content, encoding="utf-8")
        os.replace(tmp_path, self.file_path)

    async def flush(self) -> None:
        """Write state to disk now if anything changed."""
        if not self._dirty:
            return

        content = self._serialize()
        try:
            await asyncio.to_thread(self._write, content)
        except OSError as e:
            raise StoreError(f"Failed to write state file {self.file_path}: {e}") from e

        self._dirty = False
        logger.debug(f"Flushed state to {self.file_path}")

    async def close(self) -> None:
        """Cancel any pending flush and write remaining changes."""
        if self._flush_task and not self._flush_task.done():
            self._flush_task.cancel()
        self._flush_task = None
        await self.flush()
