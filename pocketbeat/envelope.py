"""
Envelope Automation for PocketBeat
Time-stamped parameter curves (gain, frequency) evaluated on the audio clock
"""

import numpy as np
from enum import Enum
from typing import List, Tuple


class RampType(Enum):
    SET = 0
    LINEAR = 1
    EXPONENTIAL = 2


class Envelope:
    """
    Automation timeline for a single audio parameter

    Every point is an absolute time on the audio clock, so a voice built
    slightly before (or after) the playback position still lands on the beat.
    Ramps run from the previous point to their own time:

    - set_value_at_time: jump to a value
    - linear_ramp_to_value_at_time: straight line from the previous point
    - exponential_ramp_to_value_at_time: constant-ratio curve from the previous point

    Before the first point the default value holds, after the last point its
    value holds.
    """

    def __init__(self, default_value: float = 0.0):
        self.default_value = float(default_value)
        self.events: List[Tuple[RampType, float, float]] = []  # (type, value, time)

    def _insert(self, ramp: RampType, value: float, time: float) -> 'Envelope':
        value = float(value)
        time = float(time)
        if not (np.isfinite(value) and np.isfinite(time)):
            raise ValueError(f"Automation point must be finite, got value={value} time={time}")

        # Sorted by time; points sharing a time keep insertion order
        idx = len(self.events)
        while idx > 0 and self.events[idx - 1][2] > time:
            idx -= 1
        self.events.insert(idx, (ramp, value, time))
        return self

    def set_value_at_time(self, value: float, time: float) -> 'Envelope':
        """Jump to value at time"""
        return self._insert(RampType.SET, value, time)

    def linear_ramp_to_value_at_time(self, value: float, time: float) -> 'Envelope':
        """Ramp linearly from the previous point to value at time"""
        return self._insert(RampType.LINEAR, value, time)

    def exponential_ramp_to_value_at_time(self, value: float, time: float) -> 'Envelope':
        """Ramp exponentially from the previous point to value at time

        The target must be strictly positive: an exponential curve never
        reaches zero. Callers decay towards a small floor instead.
        """
        if value <= 0.0:
            raise ValueError(f"Exponential ramp target must be positive, got {value}")
        return self._insert(RampType.EXPONENTIAL, value, time)

    @property
    def start_time(self) -> float:
        """Time of the first automation point (inf when empty)"""
        return self.events[0][2] if self.events else float('inf')

    @property
    def end_time(self) -> float:
        """Time of the last automation point (-inf when empty)"""
        return self.events[-1][2] if self.events else float('-inf')

    @property
    def initial_value(self) -> float:
        """Parameter value at the first automation point"""
        if not self.events:
            return self.default_value
        return float(self.values_at(np.array([self.start_time]))[0])

    def value_at(self, time: float) -> float:
        """Parameter value at a single time"""
        return float(self.values_at(np.array([time], dtype=np.float64))[0])

    def values_at(self, times: np.ndarray) -> np.ndarray:
        """
        Evaluate the curve (vectorized)

        Args:
            times: Absolute times in seconds

        Returns:
            float64 array of parameter values, same shape as times
        """
        times = np.asarray(times, dtype=np.float64)
        output = np.full(times.shape, self.default_value, dtype=np.float64)
        if not self.events:
            return output

        prev_value = self.default_value
        prev_time = self.events[0][2]

        for i, (ramp, value, time) in enumerate(self.events):
            # Ramp segment (prev_time, time] overrides the previous hold
            if ramp != RampType.SET and time > prev_time:
                mask = (times > prev_time) & (times <= time)
                if np.any(mask):
                    frac = (times[mask] - prev_time) / (time - prev_time)
                    if ramp == RampType.LINEAR:
                        output[mask] = prev_value + (value - prev_value) * frac
                    elif prev_value > 0.0:
                        output[mask] = prev_value * (value / prev_value) ** frac
                    else:
                        # No exponential path from a non-positive start
                        output[mask] = prev_value

            next_time = self.events[i + 1][2] if i + 1 < len(self.events) else np.inf
            hold = (times >= time) & (times < next_time)
            output[hold] = value

            prev_value = value
            prev_time = time

        return output
