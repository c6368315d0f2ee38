"""
Voice graph for PocketBeat
One triggered drum hit: source -> optional filter -> gain envelope, layers summed
"""

import numpy as np
from typing import List, Optional, Union
from .constants import InstrumentKind
from .envelope import Envelope
from .filter import BiquadFilter
from .noise import NoiseSource
from .oscillator import Oscillator


Source = Union[Oscillator, NoiseSource]


class Layer:
    """A single signal chain inside a voice"""

    def __init__(self, source: Source, gain: Envelope,
                 filter: Optional[BiquadFilter] = None):
        self.source = source
        self.gain = gain
        self.filter = filter

    @property
    def stop_time(self) -> float:
        return self.source.stop_time

    def render(self, start_frame: int, num_samples: int) -> np.ndarray:
        signal = self.source.render(start_frame, num_samples)
        if self.filter is not None:
            signal = self.filter.process(signal)
        times = (start_frame + np.arange(num_samples, dtype=np.float64)) / self.source.sr
        return (signal * self.gain.values_at(times)).astype(np.float32)


class Voice:
    """
    A short-lived synthesis graph for one drum hit

    Built on the scheduling thread, rendered block by block on the audio
    thread, and dropped once every layer has stopped.
    """

    def __init__(self, kind: InstrumentKind, start_time: float,
                 layers: List[Layer], sample_rate: int = 44100):
        self.kind = kind
        self.start_time = float(start_time)
        self.layers = layers
        self.sr = sample_rate

    @property
    def end_time(self) -> float:
        """Time at which the last layer stops"""
        return max((layer.stop_time for layer in self.layers), default=self.start_time)

    def is_finished(self, time: float) -> bool:
        return time >= self.end_time

    def render(self, start_frame: int, num_samples: int) -> np.ndarray:
        """
        Render and sum all layers

        Args:
            start_frame: Absolute frame index of the first sample
            num_samples: Number of samples to render

        Returns:
            Mono float32 array
        """
        output = np.zeros(num_samples, dtype=np.float32)
        for layer in self.layers:
            np.add(output, layer.render(start_frame, num_samples), out=output)
        return output
