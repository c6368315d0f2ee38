"""
PocketBeat
A 16-step drum machine with a look-ahead scheduler and synthesized drums
"""

__version__ = "1.0.0"

from .constants import InstrumentKind, STEPS_PER_BAR, DEFAULT_BPM, MIN_BPM, MAX_BPM
from .engine import AudioEngine, SoundDeviceOutput
from .synthesizer import DrumSynthesizer
from .scheduler import Scheduler, seconds_per_step
from .pattern_manager import PatternManager, PatternSnapshot, Track
from .timer import ThreadingTimer, OfflineTimer

__all__ = [
    'InstrumentKind',
    'STEPS_PER_BAR',
    'DEFAULT_BPM',
    'MIN_BPM',
    'MAX_BPM',
    'AudioEngine',
    'SoundDeviceOutput',
    'DrumSynthesizer',
    'Scheduler',
    'seconds_per_step',
    'PatternManager',
    'PatternSnapshot',
    'Track',
    'ThreadingTimer',
    'OfflineTimer',
]
