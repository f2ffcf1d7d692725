"""Edit tracking for prefix commands.

Remembers which command a user message invoked so that editing the
message within a time window re-runs the command and updates the bot's
earlier reply instead of posting a new one.

Entries expire ``timespan`` seconds after they were recorded. Expired
entries are evicted lazily when looked up and by a periodic sweep.
Invocations for the same message serialize on a per-message lock.
"""

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, AsyncIterator, Callable, Dict, Optional

import structlog

if TYPE_CHECKING:
    from .commands.base import Command

logger = structlog.get_logger("commandwire.edits")


@dataclass
class InvocationState:
    """What is needed to re-run a prefix invocation after an edit."""
    command: "Command"
    invoked_name: str
    prefix: str
    response_id: Optional[int] = None
    # message text the command last ran against
    content: str = ""


@dataclass
class EditEntry:
    """A tracked message and the invocation it triggered."""
    message_id: int
    state: InvocationState
    created_at: float


class EditTracker:
    """Time-bounded store of message -> invocation state.

    Args:
        timespan: Seconds an entry stays usable after it was recorded.
        clock: Monotonic time source (injectable for tests).
    """

    def __init__(self, timespan: float, *, clock: Callable[[], float] = time.monotonic):
        if timespan <= 0:
            raise ValueError("timespan must be positive")
        self.timespan = timespan
        self._clock = clock
        self._entries: Dict[int, EditEntry] = {}
        self._locks: Dict[int, asyncio.Lock] = {}
        self._lock_users: Dict[int, int] = {}
        self._sweep_task: Optional[asyncio.Task] = None

    @classmethod
    def for_timespan(cls, seconds: float) -> "EditTracker":
        return cls(seconds)

    def _is_live(self, entry: EditEntry, now: float) -> bool:
        return now - entry.created_at <= self.timespan

    def record(self, message_id: int, state: InvocationState) -> EditEntry:
        """Track ``message_id`` as having invoked ``state.command``."""
        entry = EditEntry(message_id=message_id, state=state, created_at=self._clock())
        self._entries[message_id] = entry
        logger.debug("edit_entry_recorded", message_id=message_id, command=state.command.name)
        return entry

    def on_edit(self, message_id: int) -> Optional[InvocationState]:
        """Return the stored state if the entry is still inside the window.

        An expired entry is evicted and None is returned.
        """
        entry = self._entries.get(message_id)
        if entry is None:
            return None
        if not self._is_live(entry, self._clock()):
            del self._entries[message_id]
            logger.debug("edit_entry_expired", message_id=message_id)
            return None
        return entry.state

    def contains(self, message_id: int) -> bool:
        """Whether an entry exists for ``message_id`` (live or not)."""
        return message_id in self._entries

    def set_response(self, message_id: int, response_id: int) -> None:
        """Remember the bot reply so a re-run can edit it."""
        entry = self._entries.get(message_id)
        if entry is not None:
            entry.state.response_id = response_id

    def forget(self, message_id: int) -> None:
        """Stop tracking ``message_id`` (e.g. the message was deleted)."""
        self._entries.pop(message_id, None)

    def sweep(self) -> int:
        """Evict every expired entry. Returns the number evicted."""
        now = self._clock()
        stale = [mid for mid, e in self._entries.items() if not self._is_live(e, now)]
        for mid in stale:
            del self._entries[mid]
        if stale:
            logger.debug("edit_entries_swept", evicted=len(stale), remaining=len(self._entries))
        return len(stale)

    def __len__(self) -> int:
        return len(self._entries)

    # --- Per-message serialization ---

    @asynccontextmanager
    async def lock(self, message_id: int) -> AsyncIterator[None]:
        """Hold the per-message lock for the duration of the block.

        Locks are created on demand and dropped once nobody holds or
        waits on them.
        """
        lock = self._locks.get(message_id)
        if lock is None:
            lock = self._locks[message_id] = asyncio.Lock()
        self._lock_users[message_id] = self._lock_users.get(message_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[message_id] -= 1
            if self._lock_users[message_id] == 0:
                del self._lock_users[message_id]
                del self._locks[message_id]

    # --- Periodic sweep ---

    def start_sweeper(self, interval: float) -> None:
        """Run ``sweep()`` every ``interval`` seconds on the running loop."""
        self.stop_sweeper()
        self._sweep_task = asyncio.get_running_loop().create_task(
            self._sweep_loop(interval)
        )

    def stop_sweeper(self) -> None:
        """Cancel the periodic sweep (for shutdown)."""
        if self._sweep_task and not self._sweep_task.done():
            self._sweep_task.cancel()
        self._sweep_task = None

    async def _sweep_loop(self, interval: float) -> None:
        try:
            while True:
                await asyncio.sleep(interval)
                self.sweep()
        except asyncio.CancelledError:
            pass
