"""
Noise Source for PocketBeat
White-noise buffers generated fresh for every voice
"""

import numpy as np

# Every noise voice gets at least this much material
NOISE_DURATION = 0.5  # seconds


def white_noise(rng: np.random.Generator, sample_rate: int,
                duration: float = NOISE_DURATION) -> np.ndarray:
    """
    Generate a uniform white-noise buffer in [-1, 1)

    A new buffer per trigger keeps overlapping hits decorrelated; reusing one
    buffer makes repeated hats audibly loop.
    """
    size = int(np.ceil(max(duration, NOISE_DURATION) * sample_rate))
    return rng.uniform(-1.0, 1.0, size).astype(np.float32)


class NoiseSource:
    """
    Plays a pre-generated noise buffer from a scheduled start time
    """

    def __init__(self, buffer: np.ndarray, start_time: float = 0.0,
                 stop_time: float = float('inf'), sample_rate: int = 44100):
        self.sr = sample_rate
        self.buffer = np.asarray(buffer, dtype=np.float32)
        self.start_time = float(start_time)
        self.stop_time = float(stop_time)

        # First frame at or after start_time
        self._start_frame = int(np.ceil(self.start_time * self.sr))

    def render(self, start_frame: int, num_samples: int) -> np.ndarray:
        """
        Read a block of the buffer

        Args:
            start_frame: Absolute frame index of the first sample
            num_samples: Number of samples to read

        Returns:
            Mono float32 array, silent before start, after stop and past the buffer end
        """
        output = np.zeros(num_samples, dtype=np.float32)
        frames = start_frame + np.arange(num_samples)
        offsets = frames - self._start_frame
        valid = (offsets >= 0) & (offsets < len(self.buffer)) & (frames / self.sr < self.stop_time)
        if np.any(valid):
            output[valid] = self.buffer[offsets[valid]]
        return output
