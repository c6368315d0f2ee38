"""
PocketBeat Synthesis Test Suite

Validates the sound sources, filters, drum recipes, the synthesizer entry
point and the engine's master bus.

Run with: pytest tests/test_synthesis.py -v
"""

import numpy as np
import sys
import os

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pocketbeat.constants import InstrumentKind
from pocketbeat.compressor import DynamicsCompressor
from pocketbeat.engine import AudioEngine
from pocketbeat.envelope import Envelope
from pocketbeat.filter import BiquadFilter, FilterMode
from pocketbeat.noise import NoiseSource, white_noise, NOISE_DURATION
from pocketbeat.oscillator import Oscillator, WaveformType
from pocketbeat.recipes import (
    RECIPES, RAMP_FLOOR, HIGH_PASS_Q, kick, snare, hihat, clap
)
from pocketbeat.synthesizer import DrumSynthesizer
from pocketbeat.voice import Voice


# Constants
SAMPLE_RATE = 44100


def _sine(freq, num_samples, amplitude=1.0):
    t = np.arange(num_samples) / SAMPLE_RATE
    return (amplitude * np.sin(2 * np.pi * freq * t)).astype(np.float32)


def _rms(x):
    return float(np.sqrt(np.mean(np.square(x, dtype=np.float64))))


class FailingOutput:
    """Output whose device cannot be opened"""

    def open(self, engine):
        raise RuntimeError("no audio device")

    def close(self):
        pass


class TestOscillator:
    """Test oscillator waveform generation"""

    def test_sine_amplitude(self):
        """Sine wave peaks at +/-1"""
        osc = Oscillator(WaveformType.SINE, Envelope(440.0), sample_rate=SAMPLE_RATE)
        samples = osc.render(0, SAMPLE_RATE)
        assert 0.99 <= np.max(samples) <= 1.0
        assert -1.0 <= np.min(samples) <= -0.99

    def test_sine_frequency(self):
        """Sine frequency measured via zero crossings"""
        osc = Oscillator(WaveformType.SINE, Envelope(441.0), sample_rate=SAMPLE_RATE)
        samples = osc.render(0, SAMPLE_RATE)
        crossings = np.sum(np.diff(np.signbit(samples)) != 0)
        # Two crossings per cycle
        assert abs(crossings / 2 - 441) <= 2

    def test_starts_at_zero_crossing(self):
        """Both waveforms start at zero, going positive"""
        for waveform in (WaveformType.SINE, WaveformType.TRIANGLE):
            osc = Oscillator(waveform, Envelope(300.0), start_time=0.01,
                             sample_rate=SAMPLE_RATE)
            samples = osc.render(0, 1000)
            first = 441  # 0.01 s
            assert np.all(samples[:first] == 0.0)
            assert samples[first] == pytest.approx(0.0, abs=1e-6)
            assert samples[first + 1] > 0.0

    def test_triangle_range(self):
        """Triangle spans -1..1 and is piecewise linear"""
        osc = Oscillator(WaveformType.TRIANGLE, Envelope(100.0), sample_rate=SAMPLE_RATE)
        samples = osc.render(0, SAMPLE_RATE // 10)
        assert np.max(samples) == pytest.approx(1.0, abs=0.01)
        assert np.min(samples) == pytest.approx(-1.0, abs=0.01)

    def test_block_continuity(self):
        """Rendering in two blocks equals rendering at once"""
        whole = Oscillator(WaveformType.SINE, Envelope(523.0), sample_rate=SAMPLE_RATE)
        split = Oscillator(WaveformType.SINE, Envelope(523.0), sample_rate=SAMPLE_RATE)
        expected = whole.render(0, 2000)
        actual = np.concatenate([split.render(0, 700), split.render(700, 1300)])
        np.testing.assert_allclose(actual, expected, atol=1e-5)

    def test_silent_after_stop(self):
        """No output at or after stop time"""
        osc = Oscillator(WaveformType.SINE, Envelope(440.0), 0.0, 0.01, SAMPLE_RATE)
        samples = osc.render(0, 2000)
        assert np.any(samples[:441] != 0.0)
        assert np.all(samples[441:] == 0.0)

    def test_reset_phase(self):
        """reset_phase rewinds the accumulator"""
        osc = Oscillator(WaveformType.SINE, Envelope(440.0), sample_rate=SAMPLE_RATE)
        osc.render(0, 123)
        assert osc.phase != 0.0
        osc.reset_phase()
        assert osc.phase == 0.0


class TestNoise:
    """Test noise buffers and playback"""

    def test_white_noise_range_and_length(self):
        """Uniform noise in [-1, 1) covering at least half a second"""
        buffer = white_noise(np.random.default_rng(0), SAMPLE_RATE)
        assert len(buffer) == int(np.ceil(NOISE_DURATION * SAMPLE_RATE))
        assert buffer.dtype == np.float32
        assert np.min(buffer) >= -1.0 and np.max(buffer) < 1.0
        assert abs(np.mean(buffer)) < 0.02

    def test_short_request_extended(self):
        """Shorter durations still get the minimum length"""
        buffer = white_noise(np.random.default_rng(0), SAMPLE_RATE, duration=0.05)
        assert len(buffer) == int(np.ceil(NOISE_DURATION * SAMPLE_RATE))

    def test_fresh_buffer_each_call(self):
        """Two buffers from the same generator differ"""
        rng = np.random.default_rng(1)
        assert not np.array_equal(white_noise(rng, SAMPLE_RATE), white_noise(rng, SAMPLE_RATE))

    def test_source_start_and_stop(self):
        """Noise plays from the start frame and stops at stop time"""
        buffer = np.ones(SAMPLE_RATE, dtype=np.float32)
        source = NoiseSource(buffer, start_time=0.01, stop_time=0.02, sample_rate=SAMPLE_RATE)
        samples = source.render(0, 2000)
        assert np.all(samples[:441] == 0.0)
        assert np.all(samples[441:882] == 1.0)
        assert np.all(samples[882:] == 0.0)

    def test_source_ends_with_buffer(self):
        """Silence past the end of the buffer"""
        source = NoiseSource(np.ones(100, dtype=np.float32), sample_rate=SAMPLE_RATE)
        samples = source.render(50, 100)
        assert np.all(samples[:50] == 1.0)
        assert np.all(samples[50:] == 0.0)


class TestFilter:
    """Test biquad filters"""

    def test_high_pass_attenuates_lows(self):
        """High-pass at 1 kHz removes a 100 Hz tone"""
        filt = BiquadFilter(FilterMode.HIGH_PASS, 1000.0, HIGH_PASS_Q, SAMPLE_RATE)
        out = filt.process(_sine(100.0, SAMPLE_RATE))
        assert _rms(out[SAMPLE_RATE // 2:]) < 0.02

    def test_high_pass_keeps_highs(self):
        """High-pass at 1 kHz passes a 10 kHz tone"""
        filt = BiquadFilter(FilterMode.HIGH_PASS, 1000.0, HIGH_PASS_Q, SAMPLE_RATE)
        out = filt.process(_sine(10000.0, SAMPLE_RATE))
        assert _rms(out[SAMPLE_RATE // 2:]) == pytest.approx(1 / np.sqrt(2), rel=0.05)

    def test_low_pass_passes_dc(self):
        """Low-pass has unity DC gain"""
        filt = BiquadFilter(FilterMode.LOW_PASS, 1000.0, 0.707, SAMPLE_RATE)
        out = filt.process(np.ones(SAMPLE_RATE, dtype=np.float32))
        assert out[-1] == pytest.approx(1.0, abs=1e-3)

    def test_band_pass_center_gain(self):
        """Band-pass passes its center frequency at unity and cuts far away"""
        center = BiquadFilter(FilterMode.BAND_PASS, 1500.0, 1.0, SAMPLE_RATE)
        far = BiquadFilter(FilterMode.BAND_PASS, 1500.0, 1.0, SAMPLE_RATE)
        at_center = center.process(_sine(1500.0, SAMPLE_RATE))
        off_center = far.process(_sine(50.0, SAMPLE_RATE))
        assert _rms(at_center[SAMPLE_RATE // 2:]) == pytest.approx(1 / np.sqrt(2), rel=0.05)
        assert _rms(off_center[SAMPLE_RATE // 2:]) < 0.05

    def test_state_carried_between_blocks(self):
        """Processing in blocks equals processing at once"""
        signal = np.random.default_rng(3).uniform(-1, 1, 4000).astype(np.float32)
        whole = BiquadFilter(FilterMode.HIGH_PASS, 7000.0, HIGH_PASS_Q, SAMPLE_RATE)
        split = BiquadFilter(FilterMode.HIGH_PASS, 7000.0, HIGH_PASS_Q, SAMPLE_RATE)
        expected = whole.process(signal)
        actual = np.concatenate([split.process(signal[:1234]), split.process(signal[1234:])])
        np.testing.assert_allclose(actual, expected, atol=1e-5)

    def test_high_pass_resonance(self):
        """Drum high-pass has 1 dB of resonance: slightly peaked above cutoff"""
        assert HIGH_PASS_Q == pytest.approx(1.122, abs=1e-3)
        filt = BiquadFilter(FilterMode.HIGH_PASS, 1000.0, HIGH_PASS_Q, SAMPLE_RATE)
        out = filt.process(_sine(1300.0, SAMPLE_RATE))
        assert _rms(out[SAMPLE_RATE // 2:]) > 1.1 / np.sqrt(2)

    def test_frequency_clamped(self):
        """Cutoff above Nyquist is clamped"""
        filt = BiquadFilter(FilterMode.HIGH_PASS, 50000.0, HIGH_PASS_Q, SAMPLE_RATE)
        assert filt.frequency < SAMPLE_RATE / 2


class TestRecipes:
    """Test the four instrument recipes"""

    def test_all_instruments_have_recipes(self):
        """Every instrument kind maps to a recipe"""
        assert set(RECIPES) == set(InstrumentKind)

    def test_kick_envelopes(self):
        """Kick gain starts at velocity; pitch starts at 150 Hz whatever the velocity"""
        rng = np.random.default_rng(0)
        for velocity in (0.3, 1.0):
            voice = kick(0.2, velocity, SAMPLE_RATE, rng)
            layer = voice.layers[0]
            assert layer.gain.initial_value == pytest.approx(velocity)
            assert layer.source.frequency.initial_value == pytest.approx(150.0)
            assert layer.source.frequency.value_at(0.7) == pytest.approx(RAMP_FLOOR)
            assert layer.gain.value_at(0.7) == pytest.approx(RAMP_FLOOR)
            assert voice.end_time == pytest.approx(0.7)

    def test_kick_render(self):
        """Kick starts at a zero crossing and peaks near its velocity"""
        voice = kick(0.0, 0.8, SAMPLE_RATE, np.random.default_rng(0))
        samples = voice.render(0, SAMPLE_RATE // 2)
        assert samples[0] == pytest.approx(0.0, abs=1e-6)
        assert 0.6 < np.max(np.abs(samples)) <= 0.8

    def test_snare_layers(self):
        """Snare is a triangle body at half level plus high-passed noise"""
        voice = snare(0.0, 1.0, SAMPLE_RATE, np.random.default_rng(0))
        tone, noise = voice.layers
        assert tone.source.waveform == WaveformType.TRIANGLE
        assert tone.source.frequency.initial_value == pytest.approx(300.0)
        assert tone.gain.initial_value == pytest.approx(0.5)
        assert tone.stop_time == pytest.approx(0.1)
        assert noise.filter.mode == FilterMode.HIGH_PASS
        assert noise.filter.frequency == pytest.approx(1000.0)
        assert noise.filter.q == pytest.approx(HIGH_PASS_Q)
        assert noise.gain.initial_value == pytest.approx(1.0)
        assert voice.end_time == pytest.approx(0.2)

    def test_hihat(self):
        """Closed hat: 0.7 level, 7 kHz high-pass, 50 ms"""
        voice = hihat(1.0, 1.0, SAMPLE_RATE, np.random.default_rng(0))
        layer = voice.layers[0]
        assert layer.gain.initial_value == pytest.approx(0.7)
        assert layer.filter.frequency == pytest.approx(7000.0)
        assert voice.end_time == pytest.approx(1.05)

    def test_clap_bursts(self):
        """Clap gain follows three bursts then decays to the floor"""
        v = 0.6
        voice = clap(0.0, v, SAMPLE_RATE, np.random.default_rng(0))
        layer = voice.layers[0]
        gain = layer.gain
        assert gain.value_at(0.0) == 0.0
        assert gain.value_at(0.01) == pytest.approx(v)
        assert gain.value_at(0.04) == pytest.approx(0.1 * v)
        assert gain.value_at(0.05) == pytest.approx(v)
        assert gain.value_at(0.08) == pytest.approx(0.1 * v)
        assert gain.value_at(0.09) == pytest.approx(v)
        assert gain.value_at(0.3) == pytest.approx(RAMP_FLOOR)
        assert layer.filter.mode == FilterMode.BAND_PASS
        assert layer.filter.frequency == pytest.approx(1500.0)
        assert voice.end_time == pytest.approx(0.3)

    def test_fresh_noise_per_hit(self):
        """Consecutive hits get different noise buffers"""
        rng = np.random.default_rng(5)
        a = hihat(0.0, 1.0, SAMPLE_RATE, rng)
        b = hihat(0.0, 1.0, SAMPLE_RATE, rng)
        assert not np.array_equal(a.layers[0].source.buffer, b.layers[0].source.buffer)

    def test_voices_are_finite(self):
        """No NaN or inf in any instrument at extreme velocities"""
        rng = np.random.default_rng(0)
        for recipe in RECIPES.values():
            for velocity in (0.0, 1.0):
                samples = recipe(0.0, velocity, SAMPLE_RATE, rng).render(0, SAMPLE_RATE // 2)
                assert np.all(np.isfinite(samples))


class TestSynthesizer:
    """Test the trigger entry point"""

    def test_trigger_queues_voice(self):
        """A trigger on a ready engine queues one voice"""
        engine = AudioEngine(SAMPLE_RATE)
        engine.init()
        synth = DrumSynthesizer(engine, np.random.default_rng(0))
        assert synth.trigger(InstrumentKind.KICK, 0.1, 0.8)
        assert engine.active_voice_count == 1

    def test_not_ready_is_noop(self):
        """Triggers before the engine is up are dropped silently"""
        engine = AudioEngine(SAMPLE_RATE)
        synth = DrumSynthesizer(engine)
        assert not synth.trigger(InstrumentKind.SNARE, 0.0)
        assert engine.active_voice_count == 0

    def test_failed_output_is_noop(self, capsys):
        """A failed device open leaves the engine unready and triggers dropped"""
        engine = AudioEngine(SAMPLE_RATE, output=FailingOutput())
        assert not engine.init()
        assert "Failed to start audio" in capsys.readouterr().out
        synth = DrumSynthesizer(engine)
        assert not synth.trigger(InstrumentKind.CLAP, 0.0)
        assert engine.active_voice_count == 0

    def test_velocity_clamped(self):
        """Velocity outside 0..1 is clamped"""
        engine = AudioEngine(SAMPLE_RATE)
        synth = DrumSynthesizer(engine, np.random.default_rng(0))
        voice = synth.build_voice(InstrumentKind.KICK, 0.0, 3.0)
        assert voice.layers[0].gain.initial_value == pytest.approx(1.0)

    def test_recipe_failure_caught(self, capsys):
        """A failing recipe is reported and counted, not raised"""
        engine = AudioEngine(SAMPLE_RATE)
        engine.init()
        synth = DrumSynthesizer(engine)

        def broken(time, velocity, sample_rate, rng):
            raise RuntimeError("boom")

        synth.recipes[InstrumentKind.KICK] = broken
        assert not synth.trigger(InstrumentKind.KICK, 0.0)
        assert synth.failed_triggers == 1
        assert "boom" in capsys.readouterr().out


class TestCompressor:
    """Test the master bus compressor"""

    def test_curve_below_knee(self):
        """No reduction well below threshold"""
        comp = DynamicsCompressor(SAMPLE_RATE)
        assert comp.compute_reduction(np.array([-60.0]))[0] == 0.0

    def test_curve_above_knee(self):
        """Ratio 12 above the knee"""
        comp = DynamicsCompressor(SAMPLE_RATE)
        # 0 dBFS is 24 dB over a -24 dB threshold
        assert comp.compute_reduction(np.array([0.0]))[0] == pytest.approx(24.0 * (1 / 12 - 1))

    def test_curve_continuous_at_knee_edges(self):
        """Soft knee joins both straight segments"""
        comp = DynamicsCompressor(SAMPLE_RATE)
        edges = np.array([-24.0 - 15.0, -24.0 + 15.0])
        eps = 1e-6
        below = comp.compute_reduction(edges - eps)
        above = comp.compute_reduction(edges + eps)
        np.testing.assert_allclose(below, above, atol=1e-4)

    def test_makeup_gain(self):
        """Makeup is 0.6 of the full-scale reduction, inverted (about +13 dB)"""
        comp = DynamicsCompressor(SAMPLE_RATE)
        full_scale_reduction = 24.0 * (1 / 12 - 1)
        expected = 10 ** (-full_scale_reduction * 0.6 / 20)
        assert comp.makeup_gain == pytest.approx(expected)
        assert 20 * np.log10(comp.makeup_gain) == pytest.approx(13.2, abs=0.1)

    def test_quiet_signal_only_gets_makeup(self):
        """-40 dBFS is not compressed, only raised by the makeup gain"""
        comp = DynamicsCompressor(SAMPLE_RATE)
        signal = _sine(200.0, 4096, amplitude=0.01)
        np.testing.assert_allclose(comp.process(signal), signal * comp.makeup_gain,
                                   rtol=1e-4, atol=1e-6)

    def test_loud_signal_reduced(self):
        """A full-scale tone settles well below full scale"""
        comp = DynamicsCompressor(SAMPLE_RATE)
        signal = _sine(200.0, SAMPLE_RATE, amplitude=1.0)
        out = comp.process(signal)
        assert np.max(np.abs(out[-4410:])) < 0.6
        assert comp.reduction_db < -15.0

    def test_stereo_shape(self):
        """Stereo blocks keep their shape"""
        comp = DynamicsCompressor(SAMPLE_RATE)
        block = np.zeros((512, 2), dtype=np.float32)
        out = comp.process(block)
        assert out.shape == (512, 2)
        assert out.dtype == np.float32


class TestEngine:
    """Test the audio clock and the master bus"""

    def test_clock_starts_at_zero(self):
        """Clock is 0 at creation and advances with rendered frames"""
        engine = AudioEngine(SAMPLE_RATE)
        assert engine.current_time == 0.0
        engine.render(441)
        assert engine.current_time == pytest.approx(0.01)
        assert engine.frame_position == 441

    def test_render_shape_and_silence(self):
        """Stereo output, silent with no voices"""
        engine = AudioEngine(SAMPLE_RATE)
        out = engine.render(256)
        assert out.shape == (256, 2)
        assert out.dtype == np.float32
        assert np.all(out == 0.0)

    def test_voice_lands_on_its_frame(self):
        """A voice scheduled ahead is silent until its start frame"""
        engine = AudioEngine(SAMPLE_RATE)
        engine.init()
        synth = DrumSynthesizer(engine, np.random.default_rng(0))
        synth.trigger(InstrumentKind.KICK, 1000 / SAMPLE_RATE, 1.0)
        out = engine.render(2048)
        assert np.all(out[:1001] == 0.0)
        assert np.any(out[1001:] != 0.0)
        np.testing.assert_array_equal(out[:, 0], out[:, 1])

    def test_voice_spans_blocks(self):
        """A voice starting mid-block continues into later blocks"""
        engine = AudioEngine(SAMPLE_RATE)
        engine.init()
        synth = DrumSynthesizer(engine, np.random.default_rng(0))
        synth.trigger(InstrumentKind.KICK, 0.005, 1.0)
        engine.render(512)
        assert np.any(engine.render(512) != 0.0)

    def test_finished_voices_retired(self):
        """Voices are dropped after they stop"""
        engine = AudioEngine(SAMPLE_RATE)
        engine.init()
        synth = DrumSynthesizer(engine, np.random.default_rng(0))
        for kind in InstrumentKind:
            synth.trigger(kind, 0.0, 1.0)
        assert engine.active_voice_count == 4
        for _ in range(50):
            engine.render(1024)
        assert engine.active_voice_count == 0

    def test_late_voice_plays_remainder(self):
        """A voice whose start already passed plays from the current position"""
        engine = AudioEngine(SAMPLE_RATE)
        engine.init()
        engine.render(4410)
        synth = DrumSynthesizer(engine, np.random.default_rng(0))
        synth.trigger(InstrumentKind.KICK, 0.0, 1.0)
        assert np.any(engine.render(1024) != 0.0)

    def test_no_clipping_with_stacked_hits(self):
        """Many simultaneous hits stay within full scale"""
        engine = AudioEngine(SAMPLE_RATE)
        engine.init()
        synth = DrumSynthesizer(engine, np.random.default_rng(0))
        for _ in range(16):
            for kind in InstrumentKind:
                synth.trigger(kind, 0.0, 1.0)
        peak = 0.0
        for _ in range(20):
            peak = max(peak, float(np.max(np.abs(engine.render(1024)))))
        assert 0.0 < peak <= 1.0

    def test_init_idempotent(self):
        """init() opens the output only once"""
        opened = []

        class CountingOutput:
            def open(self, engine):
                opened.append(engine)

            def close(self):
                pass

        engine = AudioEngine(SAMPLE_RATE, output=CountingOutput())
        assert engine.init()
        assert engine.ensure_ready()
        assert len(opened) == 1

    def test_single_kick_keeps_its_level(self):
        """The bus holds a lone full-velocity kick near its dry level"""
        engine = AudioEngine(SAMPLE_RATE)
        engine.init()
        rng = np.random.default_rng(0)
        num_frames = int(0.06 * SAMPLE_RATE)
        dry = kick(0.0, 1.0, SAMPLE_RATE, rng).render(0, num_frames) * engine.master_volume

        engine.schedule(kick(0.0, 1.0, SAMPLE_RATE, rng))
        blocks = [engine.render(512) for _ in range(num_frames // 512 + 1)]
        wet = np.concatenate(blocks)[:num_frames, 0]

        body = slice(int(0.02 * SAMPLE_RATE), num_frames)
        dry_db = 20 * np.log10(np.max(np.abs(dry[body])))
        wet_db = 20 * np.log10(np.max(np.abs(wet[body])))
        assert wet_db > dry_db - 9.0
        assert np.max(np.abs(wet)) <= 1.0

    def test_broken_voice_dropped(self, capsys):
        """A voice that fails to render is dropped and the clock keeps running"""

        class BrokenVoice(Voice):
            def render(self, start_frame, num_samples):
                raise RuntimeError("bad graph")

        engine = AudioEngine(SAMPLE_RATE)
        engine.init()
        rng = np.random.default_rng(0)
        layers = kick(0.0, 1.0, SAMPLE_RATE, rng).layers
        engine.schedule(BrokenVoice(InstrumentKind.KICK, 0.0, layers, SAMPLE_RATE))
        engine.schedule(snare(0.0, 1.0, SAMPLE_RATE, rng))

        outputs = [engine.render(512) for _ in range(3)]
        assert engine.frame_position == 3 * 512
        assert engine.failed_voices == 1
        # Only the snare is left sounding
        assert engine.active_voice_count == 1
        assert np.any(outputs[0] != 0.0)
        assert "bad graph" in capsys.readouterr().out

    def test_close_keeps_clock(self):
        """close() stops output but the clock keeps its position"""
        engine = AudioEngine(SAMPLE_RATE)
        engine.init()
        engine.render(100)
        engine.close()
        assert not engine.is_ready
        assert engine.frame_position == 100


if __name__ == '__main__':
    exit(pytest.main([__file__, '-v']))
