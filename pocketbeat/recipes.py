"""
Drum recipes for PocketBeat
Each instrument is a pure function (time, velocity) -> Voice
"""

import numpy as np
from typing import Callable, Dict
from .constants import InstrumentKind
from .envelope import Envelope
from .filter import BiquadFilter, FilterMode
from .noise import NoiseSource, white_noise
from .oscillator import Oscillator, WaveformType
from .voice import Layer, Voice


# Exponential ramps decay to this instead of zero
RAMP_FLOOR = 0.001

# 1 dB of resonance, the usual default for an audio-graph high-pass
HIGH_PASS_Q = 10.0 ** (1.0 / 20.0)

# Kick: sine with a pitch drop
KICK_START_FREQ = 150.0
KICK_DECAY = 0.5

# Snare: triangle body + high-passed noise
SNARE_TONE_FREQ = 300.0
SNARE_TONE_LEVEL = 0.5
SNARE_TONE_DECAY = 0.1
SNARE_NOISE_CUTOFF = 1000.0
SNARE_NOISE_DECAY = 0.2

# Closed hi-hat
HIHAT_CUTOFF = 7000.0
HIHAT_LEVEL = 0.7
HIHAT_DECAY = 0.05

# Clap: band-passed noise with three bursts
CLAP_CENTER_FREQ = 1500.0
CLAP_Q = 1.0
CLAP_BURST_LEVEL = 0.1
CLAP_DECAY = 0.3
# (peak offset, dip offset) per burst; the last burst decays into the tail
CLAP_BURSTS = [(0.01, 0.04), (0.05, 0.08), (0.09, None)]


Recipe = Callable[[float, float, int, np.random.Generator], Voice]


def kick(time: float, velocity: float, sample_rate: int,
         rng: np.random.Generator) -> Voice:
    """Sine sweeping 150 Hz -> floor, amplitude velocity -> floor, over 0.5 s"""
    end = time + KICK_DECAY

    frequency = Envelope(KICK_START_FREQ)
    frequency.set_value_at_time(KICK_START_FREQ, time)
    frequency.exponential_ramp_to_value_at_time(RAMP_FLOOR, end)

    gain = Envelope()
    gain.set_value_at_time(velocity, time)
    gain.exponential_ramp_to_value_at_time(RAMP_FLOOR, end)

    osc = Oscillator(WaveformType.SINE, frequency, time, end, sample_rate)
    return Voice(InstrumentKind.KICK, time, [Layer(osc, gain)], sample_rate)


def snare(time: float, velocity: float, sample_rate: int,
          rng: np.random.Generator) -> Voice:
    """Triangle body at 300 Hz plus noise high-passed at 1 kHz"""
    tone_end = time + SNARE_TONE_DECAY
    noise_end = time + SNARE_NOISE_DECAY

    # Tone
    frequency = Envelope(SNARE_TONE_FREQ)
    frequency.set_value_at_time(SNARE_TONE_FREQ, time)
    tone_gain = Envelope()
    tone_gain.set_value_at_time(velocity * SNARE_TONE_LEVEL, time)
    tone_gain.exponential_ramp_to_value_at_time(RAMP_FLOOR, tone_end)
    tone = Layer(Oscillator(WaveformType.TRIANGLE, frequency, time, tone_end, sample_rate),
                 tone_gain)

    # Noise
    noise_gain = Envelope()
    noise_gain.set_value_at_time(velocity, time)
    noise_gain.exponential_ramp_to_value_at_time(RAMP_FLOOR, noise_end)
    noise = Layer(NoiseSource(white_noise(rng, sample_rate), time, noise_end, sample_rate),
                  noise_gain,
                  BiquadFilter(FilterMode.HIGH_PASS, SNARE_NOISE_CUTOFF, HIGH_PASS_Q, sample_rate))

    return Voice(InstrumentKind.SNARE, time, [tone, noise], sample_rate)


def hihat(time: float, velocity: float, sample_rate: int,
          rng: np.random.Generator) -> Voice:
    """Very short noise burst high-passed at 7 kHz"""
    end = time + HIHAT_DECAY

    gain = Envelope()
    gain.set_value_at_time(velocity * HIHAT_LEVEL, time)
    gain.exponential_ramp_to_value_at_time(RAMP_FLOOR, end)

    layer = Layer(NoiseSource(white_noise(rng, sample_rate), time, end, sample_rate),
                  gain,
                  BiquadFilter(FilterMode.HIGH_PASS, HIHAT_CUTOFF, HIGH_PASS_Q, sample_rate))
    return Voice(InstrumentKind.HIHAT, time, [layer], sample_rate)


def clap(time: float, velocity: float, sample_rate: int,
         rng: np.random.Generator) -> Voice:
    """
    Band-passed noise with a multi-burst envelope

    Three fast attacks, each falling to a tenth of the peak before the next,
    mimic several hands clapping at almost the same moment:
    0 -> v @10ms, -> 0.1v @40ms, -> v @50ms, -> 0.1v @80ms, -> v @90ms,
    then a long exponential tail to the floor at 300ms.
    """
    end = time + CLAP_DECAY
    burst_floor = max(velocity * CLAP_BURST_LEVEL, RAMP_FLOOR)

    gain = Envelope()
    gain.set_value_at_time(0.0, time)
    for peak_offset, dip_offset in CLAP_BURSTS:
        gain.linear_ramp_to_value_at_time(velocity, time + peak_offset)
        if dip_offset is not None:
            gain.exponential_ramp_to_value_at_time(burst_floor, time + dip_offset)
    gain.exponential_ramp_to_value_at_time(RAMP_FLOOR, end)

    layer = Layer(NoiseSource(white_noise(rng, sample_rate), time, end, sample_rate),
                  gain,
                  BiquadFilter(FilterMode.BAND_PASS, CLAP_CENTER_FREQ, CLAP_Q, sample_rate))
    return Voice(InstrumentKind.CLAP, time, [layer], sample_rate)


RECIPES: Dict[InstrumentKind, Recipe] = {
    InstrumentKind.KICK: kick,
    InstrumentKind.SNARE: snare,
    InstrumentKind.HIHAT: hihat,
    InstrumentKind.CLAP: clap,
}
