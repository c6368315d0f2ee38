"""
Master bus compressor for PocketBeat
Soft-knee downward compressor that keeps overlapping hits from clipping
"""

import numpy as np


class DynamicsCompressor:
    """
    Feed-forward peak compressor with attack/release smoothing

    The detector runs on short sub-blocks rather than per sample: the peak of
    each sub-block drives the gain computer, the smoothed gain reduction is
    updated once per sub-block and interpolated linearly across samples.

    A fixed makeup gain follows: the static curve's reduction at 0 dBFS,
    scaled by MAKEUP_EXPONENT and inverted (about +13 dB at the defaults).
    """

    MAKEUP_EXPONENT = 0.6

    def __init__(self, sample_rate: int = 44100, threshold_db: float = -24.0,
                 knee_db: float = 30.0, ratio: float = 12.0,
                 attack: float = 0.003, release: float = 0.25,
                 detector_size: int = 32):
        self.sr = sample_rate
        self.threshold_db = threshold_db
        self.knee_db = knee_db
        self.ratio = ratio
        self.attack = attack
        self.release = release
        self.detector_size = detector_size

        # Current gain reduction in dB (<= 0)
        self.reduction_db = 0.0

        self._attack_coeff = np.exp(-detector_size / (attack * sample_rate))
        self._release_coeff = np.exp(-detector_size / (release * sample_rate))

        full_scale_reduction = float(self.compute_reduction(np.array([0.0]))[0])
        self.makeup_gain = 10.0 ** (-full_scale_reduction * self.MAKEUP_EXPONENT / 20.0)

    def reset(self):
        self.reduction_db = 0.0

    def compute_reduction(self, level_db: np.ndarray) -> np.ndarray:
        """Static soft-knee curve: gain reduction in dB for input levels in dB"""
        level_db = np.asarray(level_db, dtype=np.float64)
        overshoot = level_db - self.threshold_db
        slope = 1.0 / self.ratio - 1.0

        reduction = np.zeros_like(level_db)
        half_knee = self.knee_db / 2.0
        if self.knee_db > 0:
            in_knee = np.abs(overshoot) <= half_knee
            reduction[in_knee] = slope * (overshoot[in_knee] + half_knee) ** 2 / (2.0 * self.knee_db)
        above = overshoot > half_knee
        reduction[above] = slope * overshoot[above]
        return reduction

    def process(self, samples: np.ndarray) -> np.ndarray:
        """
        Compress a block

        Args:
            samples: Mono [n] or multichannel [n, channels] block

        Returns:
            Compressed block of the same shape and dtype
        """
        num_samples = len(samples)
        if num_samples == 0:
            return samples

        magnitude = np.abs(samples) if samples.ndim == 1 else np.max(np.abs(samples), axis=1)

        size = self.detector_size
        num_blocks = (num_samples + size - 1) // size
        padded = np.zeros(num_blocks * size, dtype=np.float64)
        padded[:num_samples] = magnitude
        peaks = padded.reshape(num_blocks, size).max(axis=1)

        level_db = 20.0 * np.log10(np.maximum(peaks, 1e-6))
        targets = self.compute_reduction(level_db)

        # Smoothed gain at each sub-block boundary
        gains = np.empty(num_blocks + 1, dtype=np.float64)
        gains[0] = current = self.reduction_db
        for i, target in enumerate(targets):
            coeff = self._attack_coeff if target < current else self._release_coeff
            current = target + (current - target) * coeff
            gains[i + 1] = current
        self.reduction_db = float(current)

        edges = np.arange(num_blocks + 1) * size
        curve_db = np.interp(np.arange(num_samples), edges, gains)
        linear = (10.0 ** (curve_db / 20.0) * self.makeup_gain).astype(samples.dtype)

        if samples.ndim == 1:
            return samples * linear
        return samples * linear[:, None]
