# harmonicxplorer Configuration
# All default values, ranges and enum tables

import math
from dataclasses import dataclass, field, is_dataclass
from typing import Literal


TWO_PI = 2.0 * math.pi

SeriesType = Literal[
    'natural', 'octave', 'odd', 'even', 'prime', 'fibonacci',
    'upper', 'lower', 'under', 'geometric', 'harmonic', 'singular',
]

SERIES_TYPES: tuple[str, ...] = (
    'natural',      # 1, 2, 3, 4 ...
    'octave',       # 1, 2, 4, 8 ...
    'odd',          # 1, 3, 5, 7 ...
    'even',         # 2, 4, 6, 8 ...
    'prime',        # 2, 3, 5, 7 ...
    'fibonacci',    # 1, 1, 2, 3, 5 ...
    'upper',        # 1.5^i
    'lower',        # 1.5^-i
    'under',        # 1/(i+1)
    'geometric',    # golden ratio powers
    'harmonic',     # 1/(i+1)
    'singular',     # one entry, ratio = count
)

# Canonical phase policies
PHASE_POLICIES: tuple[str, ...] = ('flat', 'ascending', 'descending', 'alternating', 'random')
# Fixed presets kept from earlier demo variants
PHASE_PRESETS: tuple[str, ...] = ('quarter', 'half', 'three_quarter', 'incremental')
PHASE_ALIASES: dict[str, str] = {
    '0': 'flat',
    'full': 'flat',
    'up': 'ascending',
    'down': 'descending',
    '90': 'quarter',
    '180': 'half',
    '270': 'three_quarter',
}

COORDINATE_SYSTEMS: tuple[str, ...] = ('radial', 'orthogonal', 'polar', 'cartesian')
RADIAL_SYSTEMS = frozenset({'radial', 'polar'})

OSCILLATOR_TYPES: tuple[str, ...] = ('sine', 'square', 'sawtooth', 'triangle')


@dataclass
class ShapeStyle:
    """Visibility and colour for one geometry overlay"""
    show: bool = True
    color: str = '#FFFFFF'


@dataclass
class ShapesConfig:
    """Per-shape overlay styles (merged key-wise on update)"""
    circle: ShapeStyle = field(default_factory=lambda: ShapeStyle(True, '#4CAF50'))
    hexagon: ShapeStyle = field(default_factory=lambda: ShapeStyle(True, '#2196F3'))
    hexagon_in: ShapeStyle = field(default_factory=lambda: ShapeStyle(True, '#1E88E5'))
    square: ShapeStyle = field(default_factory=lambda: ShapeStyle(True, '#9C27B0'))
    square_in: ShapeStyle = field(default_factory=lambda: ShapeStyle(True, '#8E24AA'))
    triangle: ShapeStyle = field(default_factory=lambda: ShapeStyle(False, '#FFC107'))


@dataclass
class AudioParams:
    """Additive synth parameters read by the audio collaborator"""
    base_frequency: float = 220.0     # Fundamental (Hz)
    volume: float = 0.5               # Master volume (0.0-1.0)
    attack: float = 0.3               # Fade-in time (s)
    decay: float = 0.05               # Fade-out time (s)
    oscillator_type: str = 'sine'


@dataclass
class EngineState:
    """Shared configuration state, mutated only through StateStore.update()"""
    is_running: bool = False

    # Display toggles
    show_geometry: bool = True
    show_waveform: bool = True
    show_axis: bool = True
    audio_enabled: bool = False

    # Harmonic series
    harmonic_count: int = 8
    harmonic_type: str = 'natural'
    harmonic_phase: str = 'flat'

    # Coordinate system / geometry
    axis_count: int = 6
    wavelength: float = 6.0          # Waveform periods around the circle / across the width
    coordinate_system: str = 'radial'

    # Motion
    rotation: float = 0.0            # Radians, always in [0, 2pi)
    speed: float = 0.0               # Radians per second
    zoom: float = 1.0

    audio: AudioParams = field(default_factory=AudioParams)
    shapes: ShapesConfig = field(default_factory=ShapesConfig)

    # Colours
    background_color: str = '#121212'
    axis_color: str = '#3a3a3a'
    grid_color: str = '#2a2a2a'
    waveform_color: str = '#FFFFFF'


@dataclass
class EngineConfig:
    """Engine tuning (not part of the shared state)"""
    resolution: int = 1000                  # Samples per waveform buffer
    amplitude_fraction: float = 0.2         # Waveform peak as a fraction of the reference radius
    radius_fraction: float = 0.4            # Reference radius as a fraction of min(width, height)
    initial_width: int = 800
    initial_height: int = 600
    stale_frame_ms: float = 100.0           # Skip rotation integration above this frame gap
    history_size: int = 50                  # Undo/redo snapshots kept
    zoom_acceleration: float = 0.1          # Zoom step grows with current zoom
    low_fps_threshold: float = 30.0         # Warn below this frame rate
    metrics_log_interval_ms: float = 60000.0  # Periodic metrics log (0 = disabled)
    log_level: str = "INFO"                 # Logging level (DEBUG/INFO/WARNING/ERROR)


# Default config instances
DEFAULT_STATE = EngineState()
DEFAULT_ENGINE_CONFIG = EngineConfig()

# Numeric parameter ranges, keyed by dotted state path
PARAM_RANGE_LIMITS: dict[str, tuple[float, float]] = {
    'harmonic_count': (1, 32),
    'axis_count': (3, 24),
    'wavelength': (0.1, 64.0),
    'speed': (-128.0, 128.0),
    'zoom': (0.1, 10.0),
    'audio.base_frequency': (20.0, 20000.0),
    'audio.volume': (0.0, 1.0),
    'audio.attack': (0.0, 5.0),
    'audio.decay': (0.0, 5.0),
}

# Enumerated parameters, keyed by dotted state path
ENUM_CHOICES: dict[str, tuple[str, ...]] = {
    'harmonic_type': SERIES_TYPES,
    'harmonic_phase': PHASE_POLICIES + PHASE_PRESETS,
    'coordinate_system': COORDINATE_SYSTEMS,
    'audio.oscillator_type': OSCILLATOR_TYPES,
}


def apply_dict_to_dataclass(target, data) -> None:
    """Recursively apply values from a dict onto a dataclass instance.
    Unknown keys are ignored; nested dataclasses are merged key-wise."""
    if not isinstance(data, dict):
        return

    for key, value in data.items():
        if not hasattr(target, key):
            continue

        current = getattr(target, key)

        if is_dataclass(current) and isinstance(value, dict):
            apply_dict_to_dataclass(current, value)
            continue

        setattr(target, key, value)


def clamp_param(path: str, value: float) -> float:
    """Clamp a numeric value to its declared range; unknown paths pass through."""
    limits = PARAM_RANGE_LIMITS.get(path)
    if limits is None:
        return value
    low, high = limits
    return max(low, min(high, value))


def wrap_angle(angle: float) -> float:
    """Wrap an angle into [0, 2pi)."""
    wrapped = math.fmod(angle, TWO_PI)
    if wrapped < 0.0:
        wrapped += TWO_PI
    # fmod of a tiny negative value can round up to exactly 2pi
    if wrapped >= TWO_PI:
        wrapped = 0.0
    return wrapped


def normalize_phase_policy(name) -> str | None:
    """Resolve aliases ('up', 'down', '90' ...) to a known phase policy name."""
    key = str(name).strip().lower()
    key = PHASE_ALIASES.get(key, key)
    if key in PHASE_POLICIES or key in PHASE_PRESETS:
        return key
    return None
