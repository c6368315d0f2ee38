"""
Shared constants for PocketBeat
"""

from enum import Enum

STEPS_PER_BAR = 16   # One bar of 16th notes
STEPS_PER_BEAT = 4
DEFAULT_BPM = 120
MIN_BPM = 60
MAX_BPM = 200
DEFAULT_SWING = 30   # Percent, display only


class InstrumentKind(Enum):
    KICK = 'kick'
    SNARE = 'snare'
    HIHAT = 'hihat'
    CLAP = 'clap'

    @classmethod
    def parse(cls, name: str) -> 'InstrumentKind':
        """Look up a kind by value or member name, case-insensitive"""
        key = name.strip().lower()
        for kind in cls:
            if key in (kind.value, kind.name.lower()):
                return kind
        raise ValueError(f"Unknown instrument: {name!r}")
