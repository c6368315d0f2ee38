"""
Offline bounce for PocketBeat
Renders a pattern to a WAV file through the real scheduler and engine,
with a simulated clock instead of an audio device
"""

import argparse
import sys
import numpy as np
from scipy.io import wavfile
from typing import List, Optional
from .constants import STEPS_PER_BAR, DEFAULT_BPM, InstrumentKind
from .engine import AudioEngine
from .pattern_manager import PatternManager, steps_from_indices
from .scheduler import Scheduler, LOOKAHEAD_MS, START_OFFSET, seconds_per_step
from .synthesizer import DrumSynthesizer
from .timer import OfflineTimer

# Time left after the last step for tails to ring out
DEFAULT_TAIL = 0.5


def bounce_pattern(pattern_manager: PatternManager, bars: int = 1,
                   sample_rate: int = 44100, tail: float = DEFAULT_TAIL,
                   rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """
    Render a number of bars of the pattern

    The tick loop runs exactly as in real time: render LOOKAHEAD_MS of
    audio, fire the timer, repeat. Playback starts START_OFFSET seconds
    into the output, like a live start.

    Args:
        pattern_manager: Pattern and tempo to render
        bars: Number of times the 16-step pattern is played
        sample_rate: Output sample rate
        tail: Seconds rendered after the last step
        rng: Noise generator (for reproducible renders)

    Returns:
        Stereo float32 array [num_samples, 2]
    """
    if bars < 1:
        raise ValueError(f"bars must be at least 1, got {bars}")

    engine = AudioEngine(sample_rate)
    engine.init()
    synth = DrumSynthesizer(engine, rng)
    timer = OfflineTimer()
    scheduler = Scheduler(engine, synth, pattern_manager, timer)

    total_steps = bars * STEPS_PER_BAR
    scheduled = []

    def on_step(step, time):
        scheduled.append(step)
        if len(scheduled) >= total_steps:
            scheduler.stop()

    scheduler.set_step_callback(on_step)

    duration = START_OFFSET + total_steps * seconds_per_step(pattern_manager.bpm) + tail
    total_frames = int(np.ceil(duration * sample_rate))
    block = max(1, int(round(LOOKAHEAD_MS / 1000.0 * sample_rate)))

    scheduler.start()
    chunks: List[np.ndarray] = []
    rendered = 0
    while rendered < total_frames:
        frames = min(block, total_frames - rendered)
        chunks.append(engine.render(frames))
        rendered += frames
        timer.fire()

    scheduler.stop()
    return np.concatenate(chunks) if chunks else np.zeros((0, 2), dtype=np.float32)


def write_wav(path: str, audio: np.ndarray, sample_rate: int = 44100):
    """Write float audio as 16-bit PCM"""
    pcm = (np.clip(audio, -1.0, 1.0) * 32767.0).astype(np.int16)
    wavfile.write(path, sample_rate, pcm)


def _parse_steps(value: str):
    """Parse 'kick=0,4,8,12' into (InstrumentKind.KICK, steps)"""
    if '=' not in value:
        raise argparse.ArgumentTypeError(f"Expected KIND=STEPS, got {value!r}")
    name, _, indices = value.partition('=')
    try:
        kind = InstrumentKind.parse(name)
        steps = steps_from_indices(int(i) for i in indices.split(',') if i.strip())
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))
    return kind, steps


def _parse_kind(name: str) -> InstrumentKind:
    try:
        return InstrumentKind.parse(name)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='pocketbeat-render',
        description='Render the PocketBeat pattern to a WAV file')
    parser.add_argument('output', help='Output WAV path')
    parser.add_argument('--bpm', type=float, default=DEFAULT_BPM,
                        help='Tempo in BPM, clamped to 60-200 (default: %(default)s)')
    parser.add_argument('--bars', type=int, default=1,
                        help='Number of bars to render (default: %(default)s)')
    parser.add_argument('--sample-rate', type=int, default=44100,
                        help='Output sample rate (default: %(default)s)')
    parser.add_argument('--clear', action='store_true',
                        help='Start from an empty grid instead of the factory pattern')
    parser.add_argument('--steps', type=_parse_steps, action='append', default=[],
                        metavar='KIND=STEPS',
                        help='Set a track\'s active steps, e.g. kick=0,4,8,12 (repeatable)')
    parser.add_argument('--mute', type=_parse_kind, action='append', default=[],
                        metavar='KIND', help='Mute a track (repeatable)')
    parser.add_argument('--seed', type=int, default=None,
                        help='Noise seed for reproducible output')
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    pattern_manager = PatternManager(bpm=args.bpm)
    if args.clear:
        pattern_manager.clear()
    for kind, steps in args.steps:
        pattern_manager.set_steps(kind, steps)
    for kind in args.mute:
        pattern_manager.set_muted(kind, True)

    if args.bars < 1:
        print("--bars must be at least 1", file=sys.stderr)
        return 2

    rng = np.random.default_rng(args.seed)
    audio = bounce_pattern(pattern_manager, bars=args.bars,
                           sample_rate=args.sample_rate, rng=rng)
    write_wav(args.output, audio, args.sample_rate)
    print(f"Rendered {args.bars} bar(s) at {pattern_manager.bpm:g} BPM "
          f"({len(audio) / args.sample_rate:.2f}s) to {args.output}", flush=True)
    return 0


if __name__ == '__main__':
    sys.exit(main())
