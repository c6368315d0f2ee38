"""
Oscillator for PocketBeat
Sine and triangle tone sources driven by a frequency envelope
"""

import numpy as np
from enum import Enum
from typing import Optional
from .envelope import Envelope


class WaveformType(Enum):
    SINE = 0
    TRIANGLE = 1


class Oscillator:
    """
    Tone source with a scheduled start and stop time

    The frequency is an Envelope, so pitch sweeps (kick drop) are evaluated
    per sample on the audio clock. Phase accumulates across blocks; it only
    advances while the oscillator is sounding, so every voice starts at a
    zero crossing going positive.
    """

    def __init__(self, waveform: WaveformType = WaveformType.SINE,
                 frequency: Optional[Envelope] = None,
                 start_time: float = 0.0, stop_time: float = float('inf'),
                 sample_rate: int = 44100):
        self.sr = sample_rate
        self.waveform = waveform
        self.frequency = frequency if frequency is not None else Envelope(440.0)
        self.start_time = float(start_time)
        self.stop_time = float(stop_time)

        # State
        self.phase = 0.0

    def reset_phase(self):
        """Rewind to the zero crossing"""
        self.phase = 0.0

    def _shape(self, phases: np.ndarray) -> np.ndarray:
        if self.waveform == WaveformType.TRIANGLE:
            # 0 at phase 0, rising to 1 at pi/2
            return (2.0 / np.pi) * np.arcsin(np.sin(phases))
        return np.sin(phases)

    def render(self, start_frame: int, num_samples: int) -> np.ndarray:
        """
        Generate a block of samples

        Args:
            start_frame: Absolute frame index of the first sample
            num_samples: Number of samples to generate

        Returns:
            Mono float32 array, silent outside [start_time, stop_time)
        """
        times = (start_frame + np.arange(num_samples, dtype=np.float64)) / self.sr
        active = (times >= self.start_time) & (times < self.stop_time)
        if not np.any(active):
            return np.zeros(num_samples, dtype=np.float32)

        freqs = self.frequency.values_at(times)
        increments = np.where(active, 2.0 * np.pi * freqs / self.sr, 0.0)

        # Phase of each sample is the accumulated phase before its own increment
        accumulated = np.cumsum(increments)
        phases = self.phase + accumulated - increments
        self.phase = float((self.phase + accumulated[-1]) % (2.0 * np.pi))

        output = self._shape(phases)
        output[~active] = 0.0
        return output.astype(np.float32)
