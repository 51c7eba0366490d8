"""
harmonicxplorer - Frame hosts
The scheduler only needs "run this on the next tick" plus a millisecond clock.
ManualFrameHost drives ticks by hand for headless runs and tests; the Qt
timer host lives with the viewer.
"""

from typing import Callable, Optional, Protocol


class TickHandle:
    """Cancel token for one scheduled tick."""
    __slots__ = ('cancelled', 'fired', '_on_cancel')

    def __init__(self, on_cancel: Optional[Callable[["TickHandle"], None]] = None):
        self.cancelled = False
        self.fired = False
        self._on_cancel = on_cancel

    def cancel(self) -> None:
        if self.cancelled or self.fired:
            return
        self.cancelled = True
        if self._on_cancel is not None:
            self._on_cancel(self)

    @property
    def pending(self) -> bool:
        return not (self.cancelled or self.fired)


class FrameHost(Protocol):
    def schedule_tick(self, callback: Callable[[], None]) -> TickHandle:
        ...

    def now(self) -> float:
        ...


class ManualFrameHost:
    """Frame clock that only advances when told to."""

    def __init__(self, start_ms: float = 0.0, frame_ms: float = 1000.0 / 60.0):
        self._now = float(start_ms)
        self.frame_ms = float(frame_ms)
        self._pending: list[tuple[TickHandle, Callable[[], None]]] = []
        self.ticks_run = 0

    def now(self) -> float:
        return self._now

    def schedule_tick(self, callback: Callable[[], None]) -> TickHandle:
        handle = TickHandle()
        self._pending.append((handle, callback))
        return handle

    @property
    def pending_count(self) -> int:
        return sum(1 for handle, _ in self._pending if handle.pending)

    def advance(self, ms: Optional[float] = None) -> int:
        """Move the clock forward and run the ticks that were due; returns how many ran.

        Ticks scheduled while running land on the following frame.
        """
        self._now += self.frame_ms if ms is None else float(ms)
        due, self._pending = self._pending, []
        ran = 0
        for handle, callback in due:
            if not handle.pending:
                continue
            handle.fired = True
            callback()
            ran += 1
        self.ticks_run += ran
        return ran

    def run_frames(self, count: int, ms: Optional[float] = None) -> int:
        return sum(self.advance(ms) for _ in range(count))
