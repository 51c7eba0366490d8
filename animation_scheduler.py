"""
harmonicxplorer - Animation Scheduler
Owns the run/stop lifecycle, integrates rotation over time and coalesces any
number of render requests into one recompute-and-render tick.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Optional

from config import EngineConfig
from errors import EngineConstructionError
from frame_hosts import FrameHost, TickHandle
from logging_utils import log_event
from module_registry import ModuleRegistry
from state_store import StateStore


class RunState(IntEnum):
    STOPPED = 0
    RUNNING = 1


@dataclass
class Metrics:
    """Per-tick timings in milliseconds (overwritten every tick)"""
    fps: float = 0.0
    frame_time: float = 0.0
    render_time: float = 0.0
    waveform_calc_time: float = 0.0
    audio_latency: float = 0.0


class AnimationScheduler:
    """
    Frame loop on top of a host-provided tick source.
    Only one tick is ever pending; extra render requests fold into it.
    """

    def __init__(
        self,
        host: FrameHost,
        store: StateStore,
        registry: ModuleRegistry,
        refresh: Callable[[], None],
        config: Optional[EngineConfig] = None,
        metrics: Optional[Metrics] = None,
    ):
        if not callable(getattr(host, 'schedule_tick', None)) or not callable(getattr(host, 'now', None)):
            raise EngineConstructionError("frame host must provide schedule_tick() and now()")
        self.host = host
        self.store = store
        self.registry = registry
        self.config = config or EngineConfig()
        self.metrics = metrics if metrics is not None else Metrics()
        self._refresh = refresh

        self._pending: Optional[TickHandle] = None
        self.render_requested = False
        self._last_frame_time = host.now()
        self._last_metrics_log = self._last_frame_time
        self.frames_rendered = 0
        self.frames_skipped = 0
        self.low_fps_frames = 0

    @property
    def running(self) -> bool:
        return self.store.state.is_running

    @property
    def run_state(self) -> RunState:
        return RunState.RUNNING if self.running else RunState.STOPPED

    @property
    def tick_pending(self) -> bool:
        return self._pending is not None and self._pending.pending

    # ----- lifecycle -----

    def start(self) -> bool:
        """Stopped -> Running. Returns False when already running."""
        if self.running:
            return False
        self._last_frame_time = self.host.now()
        self.store.set_running(True)
        self._schedule()
        self.registry.on_start()
        log_event("INFO", "Scheduler", "Started")
        return True

    def stop(self) -> bool:
        """Running -> Stopped. Cancels the pending tick; state is left as is."""
        if not self.running:
            return False
        self.store.set_running(False)
        self._cancel_pending()
        self.registry.on_stop()
        log_event("INFO", "Scheduler", "Stopped", frames=self.frames_rendered)
        return True

    def toggle(self) -> bool:
        return self.stop() if self.running else self.start()

    def request_render(self) -> None:
        """Ask for one recompute-and-render; coalesces with any pending tick."""
        self.render_requested = True
        self._schedule()

    def shutdown(self) -> None:
        self.stop()
        self._cancel_pending()

    def _schedule(self) -> None:
        if self.tick_pending:
            return
        self._pending = self.host.schedule_tick(self._tick)

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
        self._pending = None
        self.render_requested = False

    # ----- tick -----

    def _tick(self) -> None:
        self._pending = None
        self.render_requested = False
        start = self.host.now()
        try:
            delta = start - self._last_frame_time
            self._last_frame_time = start
            running = self.running
            stale = delta > self.config.stale_frame_ms

            if running and stale:
                # Host was suspended; a huge delta would make rotation jump
                self.frames_skipped += 1
                log_event("DEBUG", "Scheduler", "Skipping rotation for stale frame", delta_ms=f"{delta:.1f}")
            elif running:
                state = self.store.state
                self.store.advance_rotation(state.speed * delta / 1000.0)

            self._refresh()
            self.registry.render()
            self.frames_rendered += 1
            self._record_metrics(start, delta, running and not stale)
        except Exception as e:
            log_event("ERROR", "Scheduler", "Tick failed", error=e)
        finally:
            if self.running:
                self._schedule()

    def _record_metrics(self, start: float, delta: float, timed_frame: bool) -> None:
        now = self.host.now()
        self.metrics.render_time = now - start
        if timed_frame and delta > 0:
            self.metrics.frame_time = delta
            self.metrics.fps = 1000.0 / delta
            if self.metrics.fps < self.config.low_fps_threshold:
                self.low_fps_frames += 1

        interval = self.config.metrics_log_interval_ms
        if interval > 0 and now - self._last_metrics_log >= interval:
            self._last_metrics_log = now
            self.log_metrics()

    def log_metrics(self) -> None:
        m = self.metrics
        log_event(
            "INFO", "Metrics", "Frame stats",
            fps=f"{m.fps:.1f}",
            frame_ms=f"{m.frame_time:.1f}",
            render_ms=f"{m.render_time:.1f}",
            waveform_ms=f"{m.waveform_calc_time:.1f}",
            audio_ms=f"{m.audio_latency:.1f}",
            frames=self.frames_rendered,
            skipped=self.frames_skipped,
        )
        if self.low_fps_frames:
            log_event("WARN", "Metrics", "Low frame rate", frames_below=self.low_fps_frames,
                      threshold=self.config.low_fps_threshold)
            self.low_fps_frames = 0
