"""
harmonicxplorer - Audio Output
Engine collaborator that plays the current harmonic set through a
sounddevice output stream. The stream is only opened while audio is enabled.
"""

from typing import Optional

import numpy as np

from additive_synth import BLOCK_SIZE, SAMPLE_RATE, AdditiveVoice
from logging_utils import log_event


class AudioOutput:
    """Additive synth voice + sounddevice callback stream."""

    def __init__(self, sample_rate: int = SAMPLE_RATE, block_size: int = BLOCK_SIZE,
                 device: Optional[int] = None):
        self.sample_rate = sample_rate
        self.block_size = block_size
        self.device = device
        self.voice = AdditiveVoice(sample_rate)
        self.engine = None
        self.stream = None
        self.underflows = 0
        self._harmonics_stale = False

    def attach(self, engine) -> None:
        self.engine = engine

    # ----- engine hooks -----

    def initialize(self) -> None:
        if self.engine is None:
            return
        self._sync(self.engine.get_state())
        self.voice.set_harmonics(self.engine.get_harmonics())
        self._harmonics_stale = False

    def on_state_update(self, state, change_set) -> None:
        if not change_set.audio or self.engine is None:
            return
        if change_set.harmonics:
            # Pulled once per tick in render(), after the engine has refreshed
            self._harmonics_stale = True
        self._sync(state)

    def render(self) -> None:
        if not self._harmonics_stale or self.engine is None:
            return
        self._harmonics_stale = False
        self.voice.set_harmonics(self.engine.get_harmonics())

    def _sync(self, state) -> None:
        audio = state.audio
        self.voice.set_params(audio.base_frequency, audio.volume, audio.attack,
                              audio.decay, audio.oscillator_type)

        if state.audio_enabled:
            self.voice.note_on()
            self.start_stream()
        else:
            self.voice.note_off()

    # ----- stream -----

    def _callback(self, outdata, frames, time_info, status):
        if status:
            self.underflows += 1
            log_event("DEBUG", "Audio", "Stream status", status=status)
        block = self.voice.render(frames)
        outdata[:, 0] = block
        if outdata.shape[1] > 1:
            outdata[:, 1] = block

    def start_stream(self) -> bool:
        if self.stream is not None:
            return True
        import sounddevice as sd
        try:
            self.stream = sd.OutputStream(
                device=self.device,
                channels=2,
                samplerate=self.sample_rate,
                blocksize=self.block_size,
                dtype='float32',
                callback=self._callback,
            )
            self.stream.start()
        except Exception as e:
            self.stream = None
            log_event("ERROR", "Audio", "Failed to open output stream", error=e)
            return False

        latency = self.stream.latency
        if isinstance(latency, (tuple, list)):
            latency = latency[-1]
        if self.engine is not None:
            self.engine.report_audio_latency(float(latency) * 1000.0)
        log_event("INFO", "Audio", "Output stream started", rate=self.sample_rate,
                  latency_ms=f"{float(latency) * 1000.0:.1f}")
        return True

    def stop_stream(self) -> None:
        if self.stream is None:
            return
        try:
            self.stream.stop()
            self.stream.close()
        except Exception as e:
            log_event("WARN", "Audio", "Error closing output stream", error=e)
        self.stream = None
        log_event("INFO", "Audio", "Output stream stopped", underflows=self.underflows)

    def shutdown(self) -> None:
        self.voice.note_off()
        self.stop_stream()

    def preview_block(self, frames: int = BLOCK_SIZE) -> np.ndarray:
        """Render one block without a device (used by --headless runs)."""
        return self.voice.render(frames)
