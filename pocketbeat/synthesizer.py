"""
Drum Synthesizer for PocketBeat
Routes voice invocations to the instrument recipes
"""

import numpy as np
from typing import Dict, Optional
from .constants import InstrumentKind
from .engine import AudioEngine
from .recipes import RECIPES, Recipe
from .voice import Voice


class DrumSynthesizer:
    """
    Single trigger entry point for the four drum voices

    trigger() only builds a small voice graph and queues it on the engine;
    the samples are rendered later on the audio thread.
    """

    def __init__(self, engine: AudioEngine, rng: Optional[np.random.Generator] = None):
        self.engine = engine
        self.recipes: Dict[InstrumentKind, Recipe] = dict(RECIPES)
        self._rng = rng if rng is not None else np.random.default_rng()

        # Dropped-trigger counter for diagnostics
        self.failed_triggers = 0

    def build_voice(self, kind: InstrumentKind, time: float, velocity: float = 1.0) -> Voice:
        """Build the voice graph for one hit without queueing it"""
        velocity = float(np.clip(velocity, 0.0, 1.0))
        recipe = self.recipes[kind]
        return recipe(time, velocity, self.engine.sr, self._rng)

    def trigger(self, kind: InstrumentKind, time: float, velocity: float = 1.0) -> bool:
        """
        Schedule one drum hit

        Args:
            kind: Instrument to play
            time: Absolute trigger time on the audio clock (seconds)
            velocity: Hit strength (0.0-1.0, clamped)

        Returns:
            True if a voice was queued. Never raises: a dropped beat is
            better than a stopped transport.
        """
        if not self.engine.is_ready:
            return False

        if kind not in self.recipes:
            self.failed_triggers += 1
            print(f"No recipe for instrument {kind!r}", flush=True)
            return False

        try:
            voice = self.build_voice(kind, time, velocity)
            self.engine.schedule(voice)
        except Exception as e:
            self.failed_triggers += 1
            print(f"Failed to trigger {kind.name}: {e}", flush=True)
            return False
        return True
