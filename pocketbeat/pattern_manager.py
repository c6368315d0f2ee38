"""
Pattern Manager for PocketBeat
Holds the step grid and tempo as copy-on-write snapshots
"""

import math
import threading
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable, List, Optional, Sequence, Tuple
from .constants import (
    STEPS_PER_BAR, DEFAULT_BPM, MIN_BPM, MAX_BPM, DEFAULT_SWING, InstrumentKind
)


def _empty_steps() -> Tuple[bool, ...]:
    return (False,) * STEPS_PER_BAR


@dataclass(frozen=True)
class Track:
    """One row of the grid: an instrument, its 16 steps, mute and level"""
    kind: InstrumentKind
    name: str = ""
    steps: Tuple[bool, ...] = field(default_factory=_empty_steps)
    muted: bool = False
    velocity: float = 1.0

    def __post_init__(self):
        steps = tuple(bool(s) for s in self.steps)
        if len(steps) != STEPS_PER_BAR:
            raise ValueError(f"Track needs exactly {STEPS_PER_BAR} steps, got {len(steps)}")
        object.__setattr__(self, 'steps', steps)
        if not self.name:
            object.__setattr__(self, 'name', self.kind.name)
        if not 0.0 <= self.velocity <= 1.0:
            raise ValueError(f"Velocity must be in [0, 1], got {self.velocity}")

    def plays(self, step: int) -> bool:
        """True if this track sounds on the given step"""
        return self.steps[step] and not self.muted

    def active_steps(self) -> List[int]:
        return [i for i, on in enumerate(self.steps) if on]


@dataclass(frozen=True)
class PatternSnapshot:
    """Immutable view of the grid and tempo, safe to read from any thread"""
    tracks: Tuple[Track, ...]
    tempo: float

    def get_track(self, kind: InstrumentKind) -> Optional[Track]:
        for track in self.tracks:
            if track.kind == kind:
                return track
        return None

    def is_empty(self) -> bool:
        """Check if no track has an active step"""
        return not any(any(track.steps) for track in self.tracks)


def steps_from_indices(indices: Iterable[int]) -> Tuple[bool, ...]:
    """Build a step tuple with the given step indices switched on"""
    steps = [False] * STEPS_PER_BAR
    for index in indices:
        _check_step_index(index)
        steps[index] = True
    return tuple(steps)


def default_tracks() -> Tuple[Track, ...]:
    """Factory pattern: four on the floor, backbeat, 8th-note hats, one clap"""
    return (
        Track(InstrumentKind.KICK, "BD", steps_from_indices(range(0, 16, 4)), velocity=0.8),
        Track(InstrumentKind.SNARE, "SD", steps_from_indices([4, 12]), velocity=0.7),
        Track(InstrumentKind.HIHAT, "CH", steps_from_indices(range(0, 16, 2)), velocity=0.6),
        Track(InstrumentKind.CLAP, "CP", steps_from_indices([12]), velocity=0.6),
    )


def _check_step_index(index: int):
    if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < STEPS_PER_BAR:
        raise ValueError(f"Step index must be an integer in [0, {STEPS_PER_BAR}), got {index!r}")


def clamp_bpm(bpm: float) -> float:
    """Clamp a tempo to the supported range; non-finite values are rejected"""
    bpm = float(bpm)
    if not math.isfinite(bpm):
        raise ValueError(f"Tempo must be a finite number, got {bpm}")
    return float(max(MIN_BPM, min(MAX_BPM, bpm)))


class PatternManager:
    """
    State store shared by the UI (sole writer) and the scheduler (reader)

    Every mutation builds a new PatternSnapshot under a lock and publishes it
    with a single reference assignment, so a reader always sees either the
    old or the new grid, never a half-edited track.
    """

    def __init__(self, tracks: Optional[Sequence[Track]] = None, bpm: float = DEFAULT_BPM):
        tracks = tuple(tracks) if tracks is not None else default_tracks()
        kinds = [track.kind for track in tracks]
        if len(set(kinds)) != len(kinds):
            raise ValueError("Each instrument may appear only once in a pattern")

        self._lock = threading.Lock()
        self._snapshot = PatternSnapshot(tracks, clamp_bpm(bpm))

        # Swing is shown in the UI but not applied to timing
        self.swing = DEFAULT_SWING

    # ============ Reading ============

    def snapshot(self) -> PatternSnapshot:
        """Current immutable state"""
        return self._snapshot

    @property
    def tracks(self) -> Tuple[Track, ...]:
        return self._snapshot.tracks

    @property
    def bpm(self) -> float:
        return self._snapshot.tempo

    def get_track(self, kind: InstrumentKind) -> Track:
        track = self._snapshot.get_track(kind)
        if track is None:
            raise KeyError(kind)
        return track

    # ============ Mutations ============

    def _update_track(self, kind: InstrumentKind, change: Callable[[Track], Track]) -> Track:
        with self._lock:
            snap = self._snapshot
            for i, track in enumerate(snap.tracks):
                if track.kind == kind:
                    updated = change(track)
                    tracks = snap.tracks[:i] + (updated,) + snap.tracks[i + 1:]
                    self._snapshot = PatternSnapshot(tracks, snap.tempo)
                    return updated
        raise KeyError(kind)

    def set_step(self, kind: InstrumentKind, index: int, value: bool) -> Track:
        """Set one step on or off"""
        _check_step_index(index)

        def change(track):
            steps = list(track.steps)
            steps[index] = bool(value)
            return replace(track, steps=tuple(steps))
        return self._update_track(kind, change)

    def toggle_step(self, kind: InstrumentKind, index: int) -> Track:
        """Flip one step"""
        _check_step_index(index)

        def change(track):
            steps = list(track.steps)
            steps[index] = not steps[index]
            return replace(track, steps=tuple(steps))
        return self._update_track(kind, change)

    def set_steps(self, kind: InstrumentKind, steps: Sequence[bool]) -> Track:
        """Replace a whole row (must be 16 values)"""
        steps = tuple(bool(s) for s in steps)
        if len(steps) != STEPS_PER_BAR:
            raise ValueError(f"Expected {STEPS_PER_BAR} steps, got {len(steps)}")
        return self._update_track(kind, lambda track: replace(track, steps=steps))

    def set_muted(self, kind: InstrumentKind, muted: bool) -> Track:
        return self._update_track(kind, lambda track: replace(track, muted=bool(muted)))

    def toggle_mute(self, kind: InstrumentKind) -> Track:
        return self._update_track(kind, lambda track: replace(track, muted=not track.muted))

    def set_velocity(self, kind: InstrumentKind, velocity: float) -> Track:
        """Set track level (clamped to 0.0-1.0)"""
        velocity = float(velocity)
        if not math.isfinite(velocity):
            raise ValueError(f"Velocity must be a finite number, got {velocity}")
        velocity = max(0.0, min(1.0, velocity))
        return self._update_track(kind, lambda track: replace(track, velocity=velocity))

    def set_bpm(self, bpm: float) -> float:
        """Set the tempo (clamped 60-200); returns the applied value"""
        bpm = clamp_bpm(bpm)
        with self._lock:
            self._snapshot = PatternSnapshot(self._snapshot.tracks, bpm)
        return bpm

    def set_swing(self, swing: float):
        """Set the displayed swing amount in percent (0-100)"""
        self.swing = max(0, min(100, int(swing)))

    def clear(self):
        """Switch every step off; mutes and levels are kept"""
        with self._lock:
            snap = self._snapshot
            tracks = tuple(replace(track, steps=_empty_steps()) for track in snap.tracks)
            self._snapshot = PatternSnapshot(tracks, snap.tempo)
