"""
harmonicxplorer - Engine
One explicit engine instance owns the state store, the derived caches
(harmonics, waveform, angle table), the collaborator registry and the
animation scheduler. Collaborators read copies and write through update().
"""

import time
from dataclasses import replace
from typing import Any, Mapping, Optional, Union

from angle_cache import AngleCache, AngleEntry
from animation_scheduler import AnimationScheduler, Metrics
from config import EngineConfig, EngineState, apply_dict_to_dataclass
from errors import ParameterError
from frame_hosts import FrameHost, ManualFrameHost
from harmonic_series import Harmonic, generate_series_checked
from interaction_controller import InteractionController
from logging_utils import log_event, recent_messages, set_log_level
from module_registry import ModuleRegistry
from state_store import ChangeSet, DirtyFlags, StateStore
from waveform_synth import Waveform, flat_waveform, synthesize_checked


class HarmonicEngine:
    """
    Reactive state + harmonic synthesis core.

    Args:
        host: Tick source (defaults to a ManualFrameHost)
        config: EngineConfig, or a mapping of overrides applied over the defaults
        initial_state: EngineState or a partial mapping applied over the defaults
        rng: Optional random.Random for the 'random' phase policy
    """

    def __init__(
        self,
        host: Optional[FrameHost] = None,
        config: Union[EngineConfig, Mapping[str, Any], None] = None,
        initial_state: Union[EngineState, Mapping[str, Any], None] = None,
        rng=None,
    ):
        if isinstance(config, Mapping):
            tuning = EngineConfig()
            apply_dict_to_dataclass(tuning, dict(config))
            config = tuning
        self.config = config or EngineConfig()
        set_log_level(self.config.log_level)

        self.host = host if host is not None else ManualFrameHost()
        self.metrics = Metrics()
        self.dirty = DirtyFlags()
        seed = initial_state if isinstance(initial_state, EngineState) else None
        self.store = StateStore(seed, history_size=self.config.history_size, dirty=self.dirty)
        if isinstance(initial_state, Mapping):
            self.store.update(initial_state, record_history=False)

        self.registry = ModuleRegistry()
        self.scheduler = AnimationScheduler(
            self.host,
            self.store,
            self.registry,
            refresh=self.refresh_derived,
            config=self.config,
            metrics=self.metrics,
        )
        self.interaction = InteractionController(self.store, self.config.zoom_acceleration)

        self.width = self.config.initial_width
        self.height = self.config.initial_height
        self.reference_radius = min(self.width, self.height) * self.config.radius_fraction

        self._rng = rng
        self._harmonics: tuple[Harmonic, ...] = ()
        self._waveform: Waveform = flat_waveform(self.config.resolution)
        self._angle_cache = AngleCache()
        self._angles: tuple[AngleEntry, ...] = ()
        self.harmonics_generation = 0
        self.waveform_generation = 0
        self.initialized = False

        self._unsubscribe = self.store.subscribe(self._on_store_change)

    # ----- state -----

    def get_state(self) -> EngineState:
        return self.store.snapshot()

    def get(self, path: str, default: Any = None) -> Any:
        return self.store.get(path, default)

    def update(self, partial: Mapping[str, Any]) -> ChangeSet:
        return self.store.update(partial)

    def undo(self) -> ChangeSet:
        return self.store.undo()

    def redo(self) -> ChangeSet:
        return self.store.redo()

    def reset_to_defaults(self) -> ChangeSet:
        return self.store.reset_to_defaults()

    def load_settings(self, settings: Any) -> ChangeSet:
        return self.store.load_settings(settings)

    def _on_store_change(self, state: EngineState, change_set: ChangeSet) -> None:
        self.registry.on_state_update(state, change_set)
        self.scheduler.request_render()

    # ----- derived artifacts -----

    def get_harmonics(self) -> list[Harmonic]:
        if self.dirty.harmonics:
            self._recalculate_harmonics()
        return list(self._harmonics)

    def get_waveform(self) -> Waveform:
        if self.dirty.waveform or self.dirty.harmonics:
            self._recalculate_waveform()
        return self._waveform

    def get_angle_cache(self) -> tuple[AngleEntry, ...]:
        if self.dirty.angle_cache:
            self._angles = self._angle_cache.get(self.store.state.axis_count)
            self.dirty.angle_cache = False
        return self._angles

    def refresh_derived(self) -> None:
        """Recompute whatever is stale; called once per tick."""
        if self.dirty.harmonics:
            self._recalculate_harmonics()
        if self.dirty.waveform:
            self._recalculate_waveform()
        if self.dirty.angle_cache:
            self.get_angle_cache()

    def _recalculate_harmonics(self) -> None:
        state = self.store.state
        result = generate_series_checked(
            state.harmonic_count,
            state.harmonic_type,
            state.harmonic_phase,
            self._rng,
        )
        if result.error is not None:
            log_event("WARN", "Engine", "Harmonic series fell back", error=result.error)
        # Swap artifact and flags together; the waveform depends on the new set
        self._harmonics = tuple(result.harmonics)
        self.dirty.harmonics = False
        self.dirty.waveform = True
        self.harmonics_generation += 1
        log_event("DEBUG", "Engine", "Recalculated harmonics", count=len(self._harmonics))

    def _recalculate_waveform(self) -> None:
        if self.dirty.harmonics:
            self._recalculate_harmonics()
        state = self.store.state
        t0 = time.perf_counter()
        result = synthesize_checked(
            self._harmonics,
            state.coordinate_system,
            self.config.resolution,
            state.wavelength,
            self.reference_radius,
            self.config.amplitude_fraction,
        )
        self.metrics.waveform_calc_time = (time.perf_counter() - t0) * 1000.0
        if result.error is not None:
            log_event("ERROR", "Engine", "Waveform fell back to flat line", error=result.error)
        self._waveform = result.waveform
        self.dirty.waveform = False
        self.waveform_generation += 1

    # ----- collaborators -----

    def register_module(self, name: str, collaborator: Any) -> "HarmonicEngine":
        self.registry.register(name, collaborator)
        attach = getattr(collaborator, 'attach', None)
        if callable(attach):
            try:
                attach(self)
            except Exception as e:
                log_event("ERROR", "Engine", "Module attach failed", module=name, error=e)
        return self

    def get_module(self, name: str) -> Optional[Any]:
        return self.registry.get(name)

    def initialize(self) -> bool:
        """Build the derived caches, initialize collaborators and request a first frame."""
        log_event("INFO", "Engine", "Initializing", modules=",".join(self.registry.names()) or "-")
        self.refresh_derived()
        report = self.registry.initialize()
        self.initialized = True
        self.request_render()
        return report.ok

    def on_resize(self, width: float, height: float) -> None:
        """Recompute the reference radius from the new surface size."""
        try:
            width = float(width)
            height = float(height)
        except (TypeError, ValueError):
            width = height = -1.0
        if width <= 0 or height <= 0:
            error = ParameterError('size', (width, height), "width and height must be positive")
            log_event("WARN", "Engine", "Resize ignored", error=error)
            return

        self.width = width
        self.height = height
        self.reference_radius = min(width, height) * self.config.radius_fraction
        self.dirty.waveform = True
        self.registry.on_resize(width, height)
        self.request_render()

    # ----- lifecycle -----

    @property
    def is_running(self) -> bool:
        return self.store.state.is_running

    def start(self) -> bool:
        return self.scheduler.start()

    def stop(self) -> bool:
        return self.scheduler.stop()

    def toggle(self) -> bool:
        return self.scheduler.toggle()

    def request_render(self) -> None:
        self.scheduler.request_render()

    def shutdown(self) -> None:
        self.scheduler.shutdown()
        self._unsubscribe()
        self.registry.clear()
        log_event("INFO", "Engine", "Shut down")

    # ----- diagnostics -----

    def get_metrics(self) -> Metrics:
        return replace(self.metrics)

    def report_audio_latency(self, latency_ms: float) -> None:
        self.metrics.audio_latency = float(latency_ms)

    def debug_messages(self) -> list[str]:
        return recent_messages()
