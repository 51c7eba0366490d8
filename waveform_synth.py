"""
harmonicxplorer - Waveform Synthesizer
Sums the harmonic set into one normalized periodic sample buffer.
Projection onto screen coordinates is left to consumers (see project_waveform).
"""

from dataclasses import dataclass
from typing import Iterable, Optional

import numpy as np

from config import RADIAL_SYSTEMS, TWO_PI
from errors import ComputationError
from harmonic_series import Harmonic
from logging_utils import log_event

DEFAULT_RESOLUTION = 1000
DEFAULT_AMPLITUDE_FRACTION = 0.2
# Radial systems evaluate terms above this ratio on every n-th sample only
STRIDE_RATIO_THRESHOLD = 10.0


@dataclass(frozen=True, eq=False)
class Waveform:
    """Normalized amplitude buffer plus the metadata needed to project it."""
    samples: np.ndarray
    coordinate_system: str = 'radial'
    wavelength: float = 1.0
    reference_radius: float = 1.0
    amplitude_fraction: float = DEFAULT_AMPLITUDE_FRACTION

    @property
    def resolution(self) -> int:
        return int(self.samples.shape[0])

    @property
    def peak(self) -> float:
        if self.samples.size == 0:
            return 0.0
        return float(np.max(np.abs(self.samples)))

    @property
    def target_peak(self) -> float:
        return self.reference_radius * self.amplitude_fraction

    @property
    def is_flat(self) -> bool:
        return self.peak == 0.0


@dataclass(frozen=True)
class WaveformResult:
    waveform: Waveform
    error: Optional[ComputationError] = None


def term_stride(ratio: float, coordinate_system: str) -> int:
    """Sample-and-hold stride for one term (1 = evaluate every sample)."""
    if coordinate_system not in RADIAL_SYSTEMS or ratio <= STRIDE_RATIO_THRESHOLD:
        return 1
    return max(1, int(ratio // STRIDE_RATIO_THRESHOLD))


def flat_waveform(
    resolution: int,
    coordinate_system: str = 'radial',
    wavelength: float = 1.0,
    reference_radius: float = 1.0,
    amplitude_fraction: float = DEFAULT_AMPLITUDE_FRACTION,
) -> Waveform:
    samples = np.zeros(max(1, int(resolution)), dtype=np.float64)
    samples.setflags(write=False)
    return Waveform(samples, coordinate_system, wavelength, reference_radius, amplitude_fraction)


def _sum_harmonics(
    harmonics: Iterable[Harmonic],
    coordinate_system: str,
    resolution: int,
    allow_stride: bool,
) -> np.ndarray:
    x = np.arange(resolution, dtype=np.float64) * (TWO_PI / resolution)
    index = np.arange(resolution)
    total = np.zeros(resolution, dtype=np.float64)

    for harmonic in harmonics:
        ratio = float(harmonic.ratio)
        if ratio == 0.0 or not np.isfinite(ratio):
            continue
        stride = term_stride(ratio, coordinate_system) if allow_stride else 1
        if stride > 1:
            held = x[(index // stride) * stride]
            total += np.sin(ratio * held + harmonic.phase) / ratio
        else:
            total += np.sin(ratio * x + harmonic.phase) / ratio
    return total


def synthesize_checked(
    harmonics: Iterable[Harmonic],
    coordinate_system: str = 'radial',
    resolution: int = DEFAULT_RESOLUTION,
    wavelength: float = 1.0,
    reference_radius: float = 1.0,
    amplitude_fraction: float = DEFAULT_AMPLITUDE_FRACTION,
    allow_stride: bool = True,
) -> WaveformResult:
    """Result-style synthesis; failures yield a flat buffer and the error."""
    try:
        resolution = max(1, int(resolution))
        total = _sum_harmonics(list(harmonics), coordinate_system, resolution, allow_stride)
        if not np.all(np.isfinite(total)):
            raise ValueError("non-finite samples")

        max_abs = float(np.max(np.abs(total))) if total.size else 0.0
        if max_abs > 0.0:
            total *= (reference_radius * amplitude_fraction) / max_abs
        total.setflags(write=False)
        waveform = Waveform(total, coordinate_system, wavelength, reference_radius, amplitude_fraction)
        return WaveformResult(waveform)
    except Exception as e:
        fallback = flat_waveform(
            resolution if isinstance(resolution, int) and resolution > 0 else DEFAULT_RESOLUTION,
            coordinate_system,
            wavelength,
            reference_radius,
            amplitude_fraction,
        )
        return WaveformResult(fallback, ComputationError('waveform', e))


def synthesize(
    harmonics: Iterable[Harmonic],
    coordinate_system: str = 'radial',
    resolution: int = DEFAULT_RESOLUTION,
    wavelength: float = 1.0,
    reference_radius: float = 1.0,
    amplitude_fraction: float = DEFAULT_AMPLITUDE_FRACTION,
    allow_stride: bool = True,
) -> Waveform:
    """Sum (1/ratio)*sin(ratio*x + phase) over the harmonics, peak-normalized.

    The peak lands on reference_radius * amplitude_fraction unless every
    sample is zero, in which case the buffer stays flat.
    """
    result = synthesize_checked(
        harmonics,
        coordinate_system,
        resolution,
        wavelength,
        reference_radius,
        amplitude_fraction,
        allow_stride,
    )
    if result.error is not None:
        log_event("ERROR", "Waveform", "Synthesis failed, using flat buffer", error=result.error)
    return result.waveform


def project_waveform(
    waveform: Waveform,
    rotation: float = 0.0,
    zoom: float = 1.0,
    points: Optional[int] = None,
) -> tuple[np.ndarray, np.ndarray]:
    """Project a waveform to (x, y) coordinates around the origin.

    Radial systems wrap `wavelength` periods around a circle of radius
    reference_radius * zoom and push each point out by its sample.
    Orthogonal systems lay `wavelength` periods along the x axis.
    """
    count = int(points) if points else waveform.resolution
    t = np.arange(count, dtype=np.float64) / count
    # Periodic lookup: sample position advances `wavelength` buffers per sweep
    source = np.arange(waveform.resolution, dtype=np.float64)
    position = (t * waveform.wavelength * waveform.resolution) % waveform.resolution
    values = np.interp(position, source, waveform.samples, period=waveform.resolution)

    base = waveform.reference_radius * zoom
    if waveform.coordinate_system in RADIAL_SYSTEMS:
        angle = t * TWO_PI + rotation
        radius = base + values * zoom
        return radius * np.cos(angle), radius * np.sin(angle)

    xs = (t * 2.0 - 1.0) * base
    return xs, values * zoom
