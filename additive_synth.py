"""
harmonicxplorer - Additive Synth
Phase-continuous block renderer for the current harmonic set.
Pure numpy; the sounddevice stream lives in audio_output.py.
"""

import threading
from typing import Sequence

import numpy as np

from harmonic_series import Harmonic

SAMPLE_RATE = 44100
BLOCK_SIZE = 512
TWO_PI = 2.0 * np.pi


def oscillator(kind: str, phases: np.ndarray) -> np.ndarray:
    """Evaluate a periodic oscillator shape at the given phases (radians)."""
    if kind == 'square':
        return np.where(np.sin(phases) >= 0.0, 1.0, -1.0)
    if kind == 'sawtooth':
        return 2.0 * ((phases / TWO_PI) % 1.0) - 1.0
    if kind == 'triangle':
        saw = 2.0 * ((phases / TWO_PI) % 1.0) - 1.0
        return 2.0 * np.abs(saw) - 1.0
    return np.sin(phases)


def audible_partials(
    harmonics: Sequence[Harmonic],
    base_frequency: float,
    sample_rate: int = SAMPLE_RATE,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """(frequencies, amplitudes, start phases) for partials below Nyquist.

    Amplitudes follow 1/ratio, the same weighting as the visual waveform.
    """
    nyquist = sample_rate / 2.0
    freqs, amps, phases = [], [], []
    for h in harmonics:
        if h.ratio <= 0:
            continue
        freq = base_frequency * h.ratio
        if freq >= nyquist:
            continue
        freqs.append(freq)
        amps.append(1.0 / h.ratio)
        phases.append(h.phase)
    return np.array(freqs, dtype=np.float64), np.array(amps, dtype=np.float64), np.array(phases, dtype=np.float64)


class AdditiveVoice:
    """
    Sums one oscillator per harmonic, with a linear attack/decay envelope.
    Parameters are swapped in whole from the engine thread; render() only reads them.
    """

    def __init__(self, sample_rate: int = SAMPLE_RATE):
        self.sample_rate = sample_rate
        self.base_frequency = 220.0
        self.volume = 0.5
        self.attack = 0.3
        self.decay = 0.05
        self.oscillator_type = 'sine'
        self.gain = 0.0          # Current envelope level
        self.target_gain = 0.0
        self._harmonics: tuple[Harmonic, ...] = ()
        self._freqs = np.zeros(0)
        self._amps = np.zeros(0)
        self._phases = np.zeros(0)
        # Guards the partial arrays between the engine thread and the audio callback
        self._lock = threading.Lock()

    def set_harmonics(self, harmonics: Sequence[Harmonic]) -> None:
        harmonics = tuple(harmonics)
        if harmonics == self._harmonics:
            return
        self._harmonics = harmonics
        self._rebuild_partials(reset_phases=True)

    def set_params(self, base_frequency: float, volume: float, attack: float,
                   decay: float, oscillator_type: str) -> None:
        retune = base_frequency != self.base_frequency
        self.base_frequency = base_frequency
        self.volume = volume
        self.attack = attack
        self.decay = decay
        self.oscillator_type = oscillator_type
        if retune:
            self._rebuild_partials(reset_phases=False)

    def _rebuild_partials(self, reset_phases: bool) -> None:
        freqs, amps, phases = audible_partials(self._harmonics, self.base_frequency, self.sample_rate)
        with self._lock:
            if not reset_phases and len(phases) == len(self._phases):
                phases = self._phases
            self._freqs, self._amps, self._phases = freqs, amps, phases

    def note_on(self) -> None:
        self.target_gain = 1.0

    def note_off(self) -> None:
        self.target_gain = 0.0

    @property
    def silent(self) -> bool:
        return self.gain == 0.0 and self.target_gain == 0.0

    def _envelope(self, frames: int) -> np.ndarray:
        rising = self.target_gain > self.gain
        seconds = self.attack if rising else self.decay
        if seconds <= 0:
            env = np.full(frames, self.target_gain)
        else:
            step = 1.0 / (seconds * self.sample_rate)
            ramp = self.gain + np.arange(1, frames + 1) * (step if rising else -step)
            env = np.minimum(ramp, self.target_gain) if rising else np.maximum(ramp, self.target_gain)
        self.gain = float(env[-1]) if frames else self.gain
        return env

    def render(self, frames: int = BLOCK_SIZE) -> np.ndarray:
        """Next block of mono float32 samples in [-volume, volume]."""
        if frames <= 0:
            return np.zeros(0, dtype=np.float32)
        env = self._envelope(frames)
        with self._lock:
            if self._freqs.size == 0:
                return np.zeros(frames, dtype=np.float32)

            increments = TWO_PI * self._freqs / self.sample_rate
            steps = np.arange(frames, dtype=np.float64)
            phases = self._phases[:, None] + increments[:, None] * steps[None, :]
            mix = (self._amps[:, None] * oscillator(self.oscillator_type, phases)).sum(axis=0)
            mix /= self._amps.sum()
            self._phases = (self._phases + increments * frames) % TWO_PI
        return (mix * env * self.volume).astype(np.float32)
