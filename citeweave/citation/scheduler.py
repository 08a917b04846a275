"""
Render scheduling: coalesce bursts of triggers into one render per frame.

State Machine
-------------
    IDLE ──request()──→ PENDING ──frame fires──→ IDLE, then callback()
                          │
                          └── request() while PENDING: ignored (coalesced)

The "schedule a callback soon" primitive is a FrameScheduler, injected so
tests can advance a fake clock:

    frames = ManualFrameScheduler()
    scheduler = RenderScheduler(frames, update)
    scheduler.request(); scheduler.request()
    frames.advance()          # update() runs once
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Optional

from citeweave.core.logging import get_logger

logger = get_logger(__name__)

FrameCallback = Callable[[], None]


class FrameScheduler(ABC):
    """Primitive that runs a callback at the next paint opportunity."""

    @abstractmethod
    def request_frame(self, callback: FrameCallback) -> Any:
        """Schedule callback once. Returns a handle for cancel_frame()."""
        pass

    @abstractmethod
    def cancel_frame(self, handle: Any) -> None:
        pass


class AsyncioFrameScheduler(FrameScheduler):
    """Frames driven by the running asyncio event loop."""

    def __init__(
        self,
        frame_interval: float = 1 / 60,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self.frame_interval = frame_interval
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def request_frame(self, callback: FrameCallback) -> asyncio.TimerHandle:
        return self._get_loop().call_later(self.frame_interval, callback)

    def cancel_frame(self, handle: Any) -> None:
        handle.cancel()


class ManualFrameScheduler(FrameScheduler):
    """Frames that fire only when advance() is called."""

    def __init__(self) -> None:
        self._queue: dict[int, FrameCallback] = {}
        self._next_handle = 0
        self.frames_fired = 0

    @property
    def pending(self) -> int:
        return len(self._queue)

    def request_frame(self, callback: FrameCallback) -> int:
        self._next_handle += 1
        self._queue[self._next_handle] = callback
        return self._next_handle

    def cancel_frame(self, handle: Any) -> None:
        self._queue.pop(handle, None)

    def advance(self) -> int:
        """
        Fire every frame requested so far.

        Frames requested by the fired callbacks wait for the next advance().

        Returns:
            Number of callbacks run
        """
        due, self._queue = self._queue, {}
        for callback in due.values():
            callback()
        self.frames_fired += 1
        return len(due)


class SchedulerState(Enum):
    IDLE = "idle"
    PENDING = "pending"


class RenderScheduler:
    """Debounces render requests to one callback per frame."""

    def __init__(self, frames: FrameScheduler, callback: FrameCallback) -> None:
        self.frames = frames
        self.callback = callback
        self.state = SchedulerState.IDLE
        self._handle: Any = None

    @property
    def pending(self) -> bool:
        return self.state is SchedulerState.PENDING

    def request(self) -> bool:
        """Ask for a render. Returns True if a new frame was scheduled."""
        if self.state is SchedulerState.PENDING:
            return False
        self.state = SchedulerState.PENDING
        self._handle = self.frames.request_frame(self._on_frame)
        return True

    def _on_frame(self) -> None:
        self.state = SchedulerState.IDLE
        self._handle = None
        self.callback()

    def cancel(self) -> None:
        """Drop a pending frame, if any."""
        if self.state is SchedulerState.PENDING:
            self.frames.cancel_frame(self._handle)
            logger.debug("Cancelled pending render frame")
        self.state = SchedulerState.IDLE
        self._handle = None
