"""
Biquad Filter for PocketBeat
Implements low-pass, band-pass, and high-pass filtering
"""

import numpy as np
from enum import Enum
from scipy.signal import lfilter


class FilterMode(Enum):
    LOW_PASS = 0
    BAND_PASS = 1
    HIGH_PASS = 2


class BiquadFilter:
    """
    Second-order filter with RBJ cookbook coefficients

    Coefficients are computed once (a voice's filter never moves) and the
    lfilter state is carried between blocks so the output is continuous.
    """

    def __init__(self, mode: FilterMode = FilterMode.LOW_PASS,
                 frequency: float = 1000.0, q: float = 0.707,
                 sample_rate: int = 44100):
        self.sr = sample_rate
        self.mode = mode
        self.frequency = float(np.clip(frequency, 20.0, sample_rate * 0.49))
        self.q = float(np.clip(q, 0.1, 100.0))

        self._b, self._a = self._get_biquad_coeffs()
        self._zi = np.zeros(2, dtype=np.float64)

    def _get_biquad_coeffs(self):
        """Get normalized biquad coefficients for scipy.signal.lfilter"""
        w0 = 2.0 * np.pi * self.frequency / self.sr
        w0 = min(w0, np.pi * 0.99)  # Clamp to avoid instability

        cos_w0 = np.cos(w0)
        sin_w0 = np.sin(w0)
        alpha = sin_w0 / (2.0 * self.q)

        if self.mode == FilterMode.LOW_PASS:
            b0 = (1.0 - cos_w0) / 2.0
            b1 = 1.0 - cos_w0
            b2 = (1.0 - cos_w0) / 2.0
        elif self.mode == FilterMode.HIGH_PASS:
            b0 = (1.0 + cos_w0) / 2.0
            b1 = -(1.0 + cos_w0)
            b2 = (1.0 + cos_w0) / 2.0
        else:  # BAND_PASS (constant 0 dB peak gain)
            b0 = alpha
            b1 = 0.0
            b2 = -alpha

        a0 = 1.0 + alpha
        a1 = -2.0 * cos_w0
        a2 = 1.0 - alpha

        b = np.array([b0, b1, b2]) / a0
        a = np.array([1.0, a1 / a0, a2 / a0])
        return b, a

    def reset(self):
        """Reset filter state"""
        self._zi = np.zeros(2, dtype=np.float64)

    def process(self, samples: np.ndarray) -> np.ndarray:
        """
        Filter one mono block

        Args:
            samples: Input block

        Returns:
            Filtered float32 block of the same length
        """
        if len(samples) == 0:
            return np.asarray(samples, dtype=np.float32)
        output, self._zi = lfilter(self._b, self._a, samples, zi=self._zi)
        return output.astype(np.float32)
