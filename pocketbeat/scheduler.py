"""
Look-ahead Scheduler for PocketBeat
Turns a coarse, jittery wake-up timer into sample-accurate step playback
"""

import threading
from collections import deque
from typing import Callable, Deque, Optional, Tuple
from .constants import STEPS_PER_BAR, STEPS_PER_BEAT
from .engine import AudioEngine
from .pattern_manager import PatternManager, PatternSnapshot
from .timer import ThreadingTimer

# Wake-up period of the tick loop
LOOKAHEAD_MS = 25.0
# How far past "now" each tick commits events to the engine
SCHEDULE_AHEAD_TIME = 0.1
# Gap between start() and the first step, clear of output latency
START_OFFSET = 0.05


def seconds_per_step(bpm: float) -> float:
    """Duration of one 16th-note step: a quarter note (60 / bpm) split in four"""
    return 60.0 / (bpm * STEPS_PER_BEAT)


class Scheduler:
    """
    Sequencer transport

    Every LOOKAHEAD_MS the tick hands the synthesizer every step that falls
    inside the next SCHEDULE_AHEAD_TIME seconds of audio clock. Because the
    window is wider than the timer period plus its jitter, each step reaches
    the engine before it is due, and the engine plays it at its time stamp
    rather than at the moment the tick happened to run.

    Ticks run one at a time under the scheduler lock. A generation counter
    makes a tick armed before stop() (or before a restart) a no-op.
    """

    def __init__(self, engine: AudioEngine, synth, pattern_manager: PatternManager,
                 timer=None):
        self.engine = engine
        self.synth = synth
        self.pattern_manager = pattern_manager
        self.timer = timer if timer is not None else ThreadingTimer()

        self._lock = threading.RLock()
        self._playing = False
        self._generation = 0
        self._handle = None

        # Cursors: absolute time and index of the next unscheduled step
        self._next_event_time = 0.0
        self._next_step = 0

        # (time, step) of scheduled steps, for the clock-derived playhead
        self._scheduled: Deque[Tuple[float, int]] = deque()
        self._current_step = 0

        self._step_callback: Optional[Callable[[int, float], None]] = None

    # ============ Transport ============

    @property
    def is_playing(self) -> bool:
        return self._playing

    def start(self) -> bool:
        """
        Start playback from step 0

        Calling start() while already playing does nothing, so there is
        never more than one tick loop.

        Returns:
            True if the transport is playing afterwards
        """
        with self._lock:
            if self._playing:
                return True

            if not self.engine.ensure_ready():
                print("Audio engine not ready; playback will be silent", flush=True)

            self._generation += 1
            self._next_event_time = self.engine.current_time + START_OFFSET
            self._next_step = 0
            self._scheduled.clear()
            self._current_step = 0
            self._playing = True

            self._tick(self._generation)
            return self._playing

    def stop(self):
        """Stop playback; sounds already handed to the engine ring out"""
        with self._lock:
            if not self._playing:
                return
            self._playing = False
            self._generation += 1
            self._cancel_pending()

    def toggle(self) -> bool:
        """Start if stopped, stop if playing; returns the new playing state"""
        with self._lock:
            if self._playing:
                self.stop()
            else:
                self.start()
            return self._playing

    def set_step_callback(self, callback: Optional[Callable[[int, float], None]]):
        """
        Set callback invoked from the tick for every scheduled step

        Args:
            callback: Function(step_index, time) called after the step's voices are queued
        """
        self._step_callback = callback

    # ============ Cursors ============

    @property
    def next_event_time(self) -> float:
        """Audio-clock time of the next unscheduled step"""
        return self._next_event_time

    @property
    def next_step(self) -> int:
        """Index of the next unscheduled step"""
        return self._next_step

    @property
    def current_step(self) -> int:
        """
        Step sounding now, according to the audio clock

        For display only: the step whose time most recently passed. Before
        the first step of a run sounds this is 0.
        """
        now = self.engine.current_time
        with self._lock:
            self._prune_scheduled(now)
            if self._scheduled and self._scheduled[0][0] <= now:
                self._current_step = self._scheduled[0][1]
            return self._current_step

    def _prune_scheduled(self, now: float):
        # Keep the latest step that has already started
        while len(self._scheduled) > 1 and self._scheduled[1][0] <= now:
            self._scheduled.popleft()

    # ============ Tick loop ============

    def _tick(self, generation: int):
        with self._lock:
            if not self._playing or generation != self._generation:
                return

            horizon = self.engine.current_time + SCHEDULE_AHEAD_TIME
            while self._playing and self._next_event_time < horizon:
                snapshot = self.pattern_manager.snapshot()
                self._schedule_step(self._next_step, self._next_event_time, snapshot)
                self._advance(snapshot.tempo)

            self._prune_scheduled(self.engine.current_time)

            if self._playing:
                self._arm(generation)

    def _schedule_step(self, step: int, time: float, snapshot: PatternSnapshot):
        """Queue every unmuted track that is on at this step, in track order"""
        self._scheduled.append((time, step))
        for track in snapshot.tracks:
            if track.plays(step):
                self.synth.trigger(track.kind, time, track.velocity)

        if self._step_callback is not None:
            try:
                self._step_callback(step, time)
            except Exception as e:
                print(f"Step callback failed: {e}", flush=True)

    def _advance(self, bpm: float):
        # Tempo is read per step, so edits apply from the next boundary on
        self._next_event_time += seconds_per_step(bpm)
        self._next_step = (self._next_step + 1) % STEPS_PER_BAR

    def _arm(self, generation: int):
        try:
            self._handle = self.timer.call_later(LOOKAHEAD_MS / 1000.0,
                                                 lambda: self._tick(generation))
        except Exception as e:
            # No timer, no playback: fall back to stopped
            print(f"Scheduler timer unavailable, stopping playback: {e}", flush=True)
            self._handle = None
            self._playing = False
            self._generation += 1

    def _cancel_pending(self):
        if self._handle is not None:
            try:
                self.timer.cancel(self._handle)
            finally:
                self._handle = None
