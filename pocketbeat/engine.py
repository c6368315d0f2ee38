"""
Audio Engine for PocketBeat
Owns the audio clock, the master bus and the output stream
"""

import threading
import numpy as np
from collections import deque
from typing import List, Optional
from .compressor import DynamicsCompressor
from .voice import Voice


class AudioEngine:
    """
    The audio output subsystem

    The clock is the number of frames rendered so far divided by the sample
    rate: it starts at 0 when the engine is created and never resets.
    Voices are handed over through a queue and rendered on whichever thread
    calls render() - the sounddevice callback in the application, the test
    or the offline bounce otherwise.

    With output=None nothing is opened and the caller drives render() itself,
    which gives a deterministic clock with no audio hardware.
    """

    DEFAULT_MASTER_VOLUME = 0.8

    def __init__(self, sample_rate: int = 44100, output=None,
                 master_volume: float = DEFAULT_MASTER_VOLUME):
        self.sr = sample_rate
        self.output = output
        self.master_volume = float(np.clip(master_volume, 0.0, 1.0))

        # Master bus limiter stage
        self.compressor = DynamicsCompressor(sample_rate)

        # Hand-off from the scheduling thread (deque append/popleft are atomic)
        self._pending: deque = deque()
        # Only touched by the render thread
        self._voices: List[Voice] = []

        self._frame_position = 0
        self._ready = False

        # Voices dropped because render raised
        self.failed_voices = 0
        self._init_lock = threading.Lock()

        # Pre-allocate mix buffer to avoid allocations in render
        self._mix_buffer = np.zeros(4096, dtype=np.float32)

    # ============== Lifecycle ==============

    @property
    def is_ready(self) -> bool:
        return self._ready

    def init(self) -> bool:
        """
        Bring the engine up (idempotent)

        Platforms commonly refuse audio output before a user gesture, so
        this is called lazily from the first interaction rather than at
        construction.

        Returns:
            True if the engine is ready to accept voices
        """
        with self._init_lock:
            if self._ready:
                return True
            if self.output is not None:
                try:
                    self.output.open(self)
                except Exception as e:
                    print(f"Failed to start audio: {e}", flush=True)
                    return False
            self._ready = True
            return True

    def ensure_ready(self) -> bool:
        """Alias for init()"""
        return self.init()

    def close(self):
        """Stop the output; the clock keeps its position"""
        with self._init_lock:
            if self.output is not None and self._ready:
                self.output.close()
            self._ready = False

    # ============== Clock ==============

    @property
    def current_time(self) -> float:
        """Audio clock in seconds"""
        return self._frame_position / self.sr

    @property
    def frame_position(self) -> int:
        return self._frame_position

    # ============== Voices ==============

    def schedule(self, voice: Voice):
        """Queue a voice for rendering. Never blocks."""
        self._pending.append(voice)

    @property
    def active_voice_count(self) -> int:
        return len(self._voices) + len(self._pending)

    def render(self, num_frames: int) -> np.ndarray:
        """
        Mix all sounding voices into the master bus and advance the clock

        Args:
            num_frames: Number of frames to generate

        Returns:
            Stereo audio array [num_frames, 2]
        """
        while self._pending:
            self._voices.append(self._pending.popleft())

        start = self._frame_position
        block_end_time = (start + num_frames) / self.sr

        # Use pre-allocated buffer or create if needed
        if num_frames <= len(self._mix_buffer):
            mix = self._mix_buffer[:num_frames]
            mix.fill(0)
        else:
            mix = np.zeros(num_frames, dtype=np.float32)

        failed = []
        for voice in self._voices:
            if voice.start_time < block_end_time:
                try:
                    np.add(mix, voice.render(start, num_frames), out=mix)
                except Exception as e:
                    # Drop the broken voice; the clock must keep moving
                    failed.append(voice)
                    self.failed_voices += 1
                    print(f"Voice {voice.kind.name} failed to render, dropped: {e}", flush=True)

        # Retire voices that have stopped; sounds in flight always finish
        self._voices = [v for v in self._voices
                        if not v.is_finished(block_end_time) and v not in failed]
        self._frame_position = start + num_frames

        output = np.empty((num_frames, 2), dtype=np.float32)
        output[:, 0] = mix
        output[:, 1] = mix
        if self.master_volume != 1.0:
            np.multiply(output, self.master_volume, out=output)

        output = self.compressor.process(output)

        # Only soft clip if the compressor let a peak through
        if num_frames and np.max(np.abs(output)) > 1.0:
            np.tanh(output, out=output)

        return output


class SoundDeviceOutput:
    """
    Real-time output through a sounddevice stream

    The stream callback pulls blocks from AudioEngine.render, so the audio
    clock advances with the hardware.
    """

    def __init__(self, device: Optional[str] = None, blocksize: int = 512):
        self.device = device
        self.blocksize = blocksize
        self.stream = None
        self._engine: Optional[AudioEngine] = None

        # Callback statistics
        self.callback_count = 0
        self.underrun_count = 0
        self.error_count = 0

    def _resolve_device(self, sd):
        """Find the preferred device index by name, None for the system default"""
        if not self.device:
            return None
        for i, dev in enumerate(sd.query_devices()):
            if dev['max_output_channels'] > 0 and dev['name'] == self.device:
                return i
        print(f"Audio device '{self.device}' not found, using system default", flush=True)
        return None

    def open(self, engine: AudioEngine):
        """Open and start the stream (raises if no audio device is usable)"""
        import sounddevice as sd

        self._engine = engine
        device_param = self._resolve_device(sd)
        self.stream = sd.OutputStream(
            device=device_param,
            channels=2,
            callback=self._audio_callback,
            samplerate=engine.sr,
            blocksize=self.blocksize,
            dtype=np.float32
        )
        self.stream.start()

        if device_param is not None:
            device_name = sd.query_devices(device_param)['name']
        else:
            device_name = sd.query_devices(sd.default.device[1])['name'] + ' [default]'
        print(f"Audio stream started on '{device_name}' "
              f"(buffer: {self.blocksize} samples, ~{self.blocksize / engine.sr * 1000:.1f}ms latency)",
              flush=True)

    def _audio_callback(self, outdata, frames, time_info, status):
        """sounddevice callback - renders the next block"""
        self.callback_count += 1

        if status:
            self.underrun_count += 1
            if self.underrun_count <= 5:  # Only print first 5
                print(f"[Callback #{self.callback_count}] UNDERRUN! Status: {status}", flush=True)

        try:
            outdata[:] = self._engine.render(frames)
        except Exception as e:
            # A broken block is dropped, the stream keeps running
            outdata.fill(0)
            self.error_count += 1
            if self.error_count <= 5:
                print(f"[Callback #{self.callback_count}] Render failed: {e}", flush=True)

    def close(self):
        """Stop the audio stream"""
        if self.stream:
            self.stream.stop()
            self.stream.close()
            self.stream = None
