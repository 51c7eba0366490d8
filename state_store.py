"""
harmonicxplorer - State Store
Holds the shared EngineState, merges partial updates key-wise, classifies
which derived caches each change invalidates, and notifies subscribers.
"""

import copy
import math
from collections import Counter, deque
from dataclasses import asdict, dataclass, field, fields, is_dataclass
from typing import Any, Callable, Mapping, Optional

from config import (
    DEFAULT_STATE,
    ENUM_CHOICES,
    EngineState,
    clamp_param,
    normalize_phase_policy,
    wrap_angle,
)
from errors import ParamResult, ParameterError
from logging_utils import log_event


# Top-level state key -> derived caches it invalidates
INVALIDATION_TABLE: dict[str, frozenset[str]] = {
    'harmonic_count': frozenset({'harmonics', 'waveform'}),
    'harmonic_type': frozenset({'harmonics', 'waveform'}),
    'harmonic_phase': frozenset({'harmonics', 'waveform'}),
    'wavelength': frozenset({'waveform'}),
    'coordinate_system': frozenset({'waveform'}),
    'axis_count': frozenset({'angle_cache'}),
}

DISPLAY_KEYS = frozenset({
    'show_geometry', 'show_waveform', 'show_axis', 'shapes',
    'axis_count', 'wavelength', 'coordinate_system', 'rotation', 'zoom',
    'background_color', 'axis_color', 'grid_color', 'waveform_color',
})
AUDIO_KEYS = frozenset({'audio', 'audio_enabled'})

# Owned by the scheduler (start/stop), not writable through update()
SCHEDULER_KEYS = frozenset({'is_running'})
# Never restored by undo/redo/reset: motion and run state are not configuration
NON_HISTORY_KEYS = frozenset({'is_running', 'rotation'})


@dataclass(frozen=True)
class ChangeSet:
    """Which keys changed in one update and which caches that invalidates."""
    changed_keys: tuple[str, ...] = ()
    harmonics: bool = False
    waveform: bool = False
    angle_cache: bool = False
    display: bool = False
    audio: bool = False
    errors: tuple[ParameterError, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.changed_keys)

    def touches(self, key: str) -> bool:
        return any(k == key or k.startswith(key + '.') for k in self.changed_keys)

    @classmethod
    def from_keys(cls, keys, errors=()) -> "ChangeSet":
        roots = {key.split('.', 1)[0] for key in keys}
        invalidated: set[str] = set()
        for root in roots:
            invalidated |= INVALIDATION_TABLE.get(root, frozenset())
        return cls(
            changed_keys=tuple(keys),
            harmonics='harmonics' in invalidated,
            waveform='waveform' in invalidated,
            angle_cache='angle_cache' in invalidated,
            display=bool(roots & DISPLAY_KEYS),
            audio=bool(roots & AUDIO_KEYS) or 'harmonics' in invalidated,
            errors=tuple(errors),
        )


@dataclass
class DirtyFlags:
    """Staleness of the derived caches; everything starts stale."""
    harmonics: bool = True
    waveform: bool = True
    angle_cache: bool = True

    def mark(self, change_set: ChangeSet) -> None:
        if change_set.harmonics:
            self.harmonics = True
        if change_set.waveform:
            self.waveform = True
        if change_set.angle_cache:
            self.angle_cache = True

    def any(self) -> bool:
        return self.harmonics or self.waveform or self.angle_cache


@dataclass
class StateChangeStats:
    """Running counts of state changes per key."""
    total_changes: int = 0
    per_key: Counter = field(default_factory=Counter)
    undo_count: int = 0
    redo_count: int = 0

    def record(self, keys) -> None:
        self.total_changes += 1
        self.per_key.update(keys)

    def most_frequent(self, n: int = 5) -> list[tuple[str, int]]:
        return self.per_key.most_common(n)


def _to_number(value) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
    return number if math.isfinite(number) else None


def coerce_value(path: str, current: Any, value: Any) -> ParamResult:
    """Per-field reducer: convert, clamp or reject an incoming value.

    A rejected value comes back as `current` with the error attached; a clamped
    value comes back clamped with the error attached.
    """
    if isinstance(current, bool):
        if isinstance(value, bool):
            return ParamResult(value)
        if isinstance(value, (int, float)) and value in (0, 1):
            return ParamResult(bool(value))
        return ParamResult(current, ParameterError(path, value, "expected a boolean"))

    if isinstance(current, (int, float)):
        number = _to_number(value)
        if number is None:
            return ParamResult(current, ParameterError(path, value, "expected a finite number"))
        if path == 'rotation':
            return ParamResult(wrap_angle(number))
        if isinstance(current, int):
            number = float(round(number))
        clamped = clamp_param(path, number)
        result = int(clamped) if isinstance(current, int) else clamped
        if clamped != number:
            return ParamResult(result, ParameterError(path, value, f"clamped to {result}"))
        return ParamResult(result)

    if isinstance(current, str):
        if not isinstance(value, str):
            return ParamResult(current, ParameterError(path, value, "expected a string"))
        choices = ENUM_CHOICES.get(path)
        if choices is None:
            return ParamResult(value)
        if path == 'harmonic_phase':
            resolved = normalize_phase_policy(value)
        else:
            key = value.strip().lower()
            resolved = key if key in choices else None
        if resolved is None:
            return ParamResult(current, ParameterError(path, value, "unknown choice, keeping current"))
        return ParamResult(resolved)

    return ParamResult(value)


class StateStore:
    """
    Owns the configuration state. update() is the only external write path.
    """

    def __init__(
        self,
        initial: Optional[EngineState] = None,
        history_size: int = 50,
        dirty: Optional[DirtyFlags] = None,
    ):
        self._state: EngineState = copy.deepcopy(initial) if initial is not None else EngineState()
        self._state.rotation = wrap_angle(self._state.rotation)
        self.dirty = dirty if dirty is not None else DirtyFlags()
        self.stats = StateChangeStats()
        self._subscribers: list[Callable[[EngineState, ChangeSet], None]] = []
        self._undo_stack: deque[EngineState] = deque(maxlen=max(1, int(history_size)))
        self._redo_stack: list[EngineState] = []

    # ----- reads -----

    @property
    def state(self) -> EngineState:
        """Live state for the engine's own components; collaborators get snapshot()."""
        return self._state

    def snapshot(self) -> EngineState:
        return copy.deepcopy(self._state)

    def get(self, path: str, default: Any = None) -> Any:
        """Read one value by dotted path ('audio.volume', 'shapes.circle.show')."""
        node: Any = self._state
        for part in path.split('.'):
            if not is_dataclass(node) or not hasattr(node, part):
                return default
            node = getattr(node, part)
        return copy.deepcopy(node)

    @property
    def can_undo(self) -> bool:
        return bool(self._undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo_stack)

    # ----- subscriptions -----

    def subscribe(self, callback: Callable[[EngineState, ChangeSet], None]) -> Callable[[], None]:
        """Register a change listener; returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, change_set: ChangeSet) -> None:
        snapshot = self.snapshot()
        for callback in list(self._subscribers):
            try:
                callback(snapshot, change_set)
            except Exception as e:
                log_event("ERROR", "StateStore", "Subscriber failed", error=e)

    # ----- writes -----

    def update(self, partial: Optional[Mapping[str, Any]], *, record_history: bool = True) -> ChangeSet:
        """Merge a partial state. No actual change means no notification."""
        if not partial:
            return ChangeSet()
        if not isinstance(partial, Mapping):
            error = ParameterError('<update>', partial, "expected a mapping")
            log_event("WARN", "StateStore", "Update rejected", error=error)
            return ChangeSet(errors=(error,))

        before = copy.deepcopy(self._state) if record_history else None
        changed: list[str] = []
        errors: list[ParameterError] = []
        for key, value in partial.items():
            if key in SCHEDULER_KEYS:
                errors.append(ParameterError(key, value, "controlled by start()/stop()"))
                continue
            self._apply_key(self._state, key, value, '', changed, errors)

        for error in errors:
            log_event("WARN", "StateStore", "Parameter adjusted", key=error.key, reason=error.reason)

        if not changed:
            return ChangeSet(errors=tuple(errors))

        change_set = ChangeSet.from_keys(changed, errors)
        restorable = [k for k in changed if k.split('.', 1)[0] not in NON_HISTORY_KEYS]
        if before is not None and restorable:
            self._undo_stack.append(before)
            self._redo_stack.clear()
        self.dirty.mark(change_set)
        self.stats.record(changed)
        log_event("DEBUG", "StateStore", "State updated", keys=",".join(changed))
        self._notify(change_set)
        return change_set

    def _apply_key(self, target, key, value, prefix: str, changed: list, errors: list) -> None:
        path = f"{prefix}{key}"
        try:
            if not isinstance(key, str) or key not in {f.name for f in fields(target)}:
                errors.append(ParameterError(path, value, "unknown parameter"))
                return

            current = getattr(target, key)
            if is_dataclass(current):
                if is_dataclass(value) and not isinstance(value, type):
                    value = asdict(value)
                if not isinstance(value, Mapping):
                    errors.append(ParameterError(path, value, "expected a mapping"))
                    return
                for sub_key, sub_value in value.items():
                    self._apply_key(current, sub_key, sub_value, f"{path}.", changed, errors)
                return

            result = coerce_value(path, current, value)
            if result.error is not None:
                errors.append(result.error)
            if result.value != current:
                setattr(target, key, result.value)
                changed.append(path)
        except Exception as e:
            errors.append(ParameterError(path, value, f"apply failed: {e}"))

    def advance_rotation(self, delta: float) -> float:
        """Scheduler-only: integrate rotation without notifying or recording."""
        self._state.rotation = wrap_angle(self._state.rotation + delta)
        return self._state.rotation

    def set_running(self, running: bool) -> ChangeSet:
        """Scheduler-only: flip is_running, notify, never recorded in history."""
        running = bool(running)
        if self._state.is_running == running:
            return ChangeSet()
        self._state.is_running = running
        change_set = ChangeSet.from_keys(['is_running'])
        self._notify(change_set)
        return change_set

    # ----- history -----

    def _restorable(self, state: EngineState) -> dict:
        data = asdict(state)
        for key in NON_HISTORY_KEYS:
            data.pop(key, None)
        return data

    def undo(self) -> ChangeSet:
        if not self._undo_stack:
            return ChangeSet()
        target = self._undo_stack.pop()
        self._redo_stack.append(copy.deepcopy(self._state))
        self.stats.undo_count += 1
        log_event("INFO", "StateStore", "Undo", remaining=len(self._undo_stack))
        return self.update(self._restorable(target), record_history=False)

    def redo(self) -> ChangeSet:
        if not self._redo_stack:
            return ChangeSet()
        target = self._redo_stack.pop()
        self._undo_stack.append(copy.deepcopy(self._state))
        self.stats.redo_count += 1
        log_event("INFO", "StateStore", "Redo", remaining=len(self._redo_stack))
        return self.update(self._restorable(target), record_history=False)

    def reset_to_defaults(self) -> ChangeSet:
        log_event("INFO", "StateStore", "Reset to defaults")
        return self.update(self._restorable(DEFAULT_STATE))

    def load_settings(self, settings: Any) -> ChangeSet:
        """Apply an externally loaded settings mapping."""
        if not isinstance(settings, Mapping):
            error = ParameterError('<settings>', settings, "invalid settings object")
            log_event("WARN", "StateStore", "Settings rejected", error=error)
            return ChangeSet(errors=(error,))
        change_set = self.update(settings)
        log_event("INFO", "StateStore", "Settings loaded", changed=len(change_set.changed_keys))
        return change_set
