from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable

from .config import AUTOSAVE_DELAY_MS
from .errors import PersistenceFailure
from .models.quote import QuoteSnapshot

logger = logging.getLogger(__name__)

SaveCallable = Callable[[QuoteSnapshot], Awaitable[None]]


class AutosaveStatus(str, Enum):
    saving = "saving"
    saved = "saved"
    error = "error"


class DebounceTimer:
    """Runs ``callback`` once, ``delay`` seconds after the last ``schedule()``.

    Scheduling without a running event loop arms nothing.
    """

    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self._delay = delay
        self._callback = callback
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self) -> bool:
        """Re-arm the timer; returns False when there is no running loop to arm it on."""
        self.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return False
        self._handle = loop.call_later(self._delay, self._fire)
        return True

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self._callback()


class AutosaveCoordinator:
    """Debounced persistence of quote snapshots.

    ``notify`` is called with every new snapshot. Only the latest snapshot of
    a burst is saved, and never one whose serialisation matches the last
    dispatched save. ``enabled`` may be a predicate; it is checked both when
    a change arrives and again when the timer fires.

    At most one save runs at a time. A dispatch made while a save is running
    replaces any queued snapshot and starts once the running save returns,
    so the store always ends up with the most recently dispatched state.
    Changes made outside a running event loop stay pending until the next
    in-loop change or ``flush()``.
    """

    def __init__(
        self,
        *,
        save: SaveCallable,
        delay_ms: int = AUTOSAVE_DELAY_MS,
        enabled: bool | Callable[[], bool] = True,
        on_status_change: Callable[[AutosaveStatus], None] | None = None,
    ) -> None:
        self._save = save
        self._enabled = enabled
        self._on_status_change = on_status_change
        self._timer = DebounceTimer(delay_ms / 1000, self._on_timer)
        self._pending: tuple[QuoteSnapshot, str] | None = None
        self._latest: QuoteSnapshot | None = None
        self._last_dispatched: str | None = None
        self._dispatch_seq = 0
        self._queued: tuple[QuoteSnapshot, int] | None = None
        self._worker: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False
        self._status = AutosaveStatus.saved
        self.last_error: PersistenceFailure | None = None

    @property
    def status(self) -> AutosaveStatus:
        return self._status

    @property
    def pending(self) -> bool:
        return self._pending is not None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def is_enabled(self) -> bool:
        if self._closed:
            return False
        if callable(self._enabled):
            return bool(self._enabled())
        return bool(self._enabled)

    def set_enabled(self, enabled: bool | Callable[[], bool]) -> None:
        self._enabled = enabled
        if not self.is_enabled():
            self._drop_pending()

    def notify(self, snapshot: QuoteSnapshot) -> None:
        self._latest = snapshot
        if not self.is_enabled():
            self._drop_pending()
            return
        serialized = snapshot.serialize()
        if serialized == self._last_dispatched:
            # The newest state is the one already sent; an older pending one must not go out.
            self._drop_pending()
            return
        self._pending = (snapshot, serialized)
        if not self._timer.schedule():
            logger.debug("No running event loop, autosave deferred")

    def mark_saved(self, snapshot: QuoteSnapshot) -> None:
        """Record ``snapshot`` as persisted by some path other than autosave."""
        self._latest = snapshot
        self._last_dispatched = snapshot.serialize()
        self._drop_pending()
        self.last_error = None
        self._set_status(AutosaveStatus.saved)

    async def flush(self) -> AutosaveStatus:
        """Save the latest snapshot now, even if it matches the last save."""
        self._timer.cancel()
        self._pending = None
        if self._latest is not None and self.is_enabled():
            task = self._dispatch(self._latest, self._latest.serialize())
            await asyncio.gather(task, return_exceptions=True)
        return self._status

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        """Stop scheduling saves. In-flight saves finish but their results are ignored."""
        self._closed = True
        self._queued = None
        self._drop_pending()

    def _drop_pending(self) -> None:
        self._timer.cancel()
        self._pending = None

    def _on_timer(self) -> None:
        pending, self._pending = self._pending, None
        if pending is None or not self.is_enabled():
            return
        snapshot, serialized = pending
        if serialized == self._last_dispatched:
            return
        self._dispatch(snapshot, serialized)

    def _dispatch(self, snapshot: QuoteSnapshot, serialized: str) -> asyncio.Task[None]:
        # Recorded before the save resolves so a later edit starts a new cycle.
        self._last_dispatched = serialized
        self._dispatch_seq += 1
        self._queued = (snapshot, self._dispatch_seq)
        self._set_status(AutosaveStatus.saving)
        if self._worker is None or self._worker.done():
            task = asyncio.get_running_loop().create_task(self._drain())
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            self._worker = task
        return self._worker

    async def _drain(self) -> None:
        while self._queued is not None:
            (snapshot, seq), self._queued = self._queued, None
            await self._run_save(snapshot, seq)

    async def _run_save(self, snapshot: QuoteSnapshot, seq: int) -> None:
        try:
            await self._save(snapshot)
        except Exception as exc:
            failure = exc if isinstance(exc, PersistenceFailure) else PersistenceFailure(str(exc))
            logger.warning(
                "Autosave failed",
                exc_info=True,
                extra={"dispatch": seq, "error": str(exc)},
            )
            if self._closed or seq != self._dispatch_seq:
                return
            self.last_error = failure
            self._set_status(AutosaveStatus.error)
            return

        logger.debug("Autosave completed", extra={"dispatch": seq})
        if self._closed or seq != self._dispatch_seq:
            return
        self.last_error = None
        self._set_status(AutosaveStatus.saved)

    def _set_status(self, status: AutosaveStatus) -> None:
        if status is self._status:
            return
        self._status = status
        if self._on_status_change is not None:
            self._on_status_change(status)


__all__ = ["AutosaveCoordinator", "AutosaveStatus", "DebounceTimer", "SaveCallable"]
