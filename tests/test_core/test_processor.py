"""Tests for the AudioProcessor façade."""

import math

import numpy as np
import pytest

from clipdsp.core.context import EngineContext
from clipdsp.core.models import ProcessingSettings, SampleBuffer
from clipdsp.core.processor import AudioProcessor
from clipdsp.utils.errors import ConfigurationError, ProcessingError


@pytest.fixture
def processor(context):
    """Processor on the default context."""
    return AudioProcessor(context)


class TestProcessAudio:
    def test_noop_settings_return_input(self, processor, sine_440):
        assert processor.process_audio(sine_440, ProcessingSettings()) is sine_440
        assert processor.process_audio(sine_440, {}) is sine_440

    def test_crop_then_volume(self, processor, sine_440):
        result = processor.process_audio(sine_440, {
            "crop": {"enabled": True, "start": 0.25, "end": 0.75},
            "volume": 0.5,
        })

        assert result.length == math.floor(0.75 * 44100) - math.floor(0.25 * 44100)
        assert result.peak() == pytest.approx(0.25, rel=1e-3)

    def test_fades_from_camel_case_keys(self, processor, make_constant):
        buffer = make_constant(1.0, 100, sample_rate=100)
        result = processor.process_audio(buffer, {
            "fadeIn": {"enabled": True, "duration": 0.1},
            "fadeOut": {"enabled": True, "duration": 0.1},
        }).channel(0)

        assert result[0] == 0.0
        assert result[50] == 1.0
        assert result[-1] == pytest.approx(0.1)

    def test_playback_rate_trims_boundary_silence(self, processor):
        data = np.zeros(1000)
        data[200:800] = 0.5
        result = processor.process_audio(SampleBuffer((data,), 1000), {"playbackRate": 2.0})

        assert result.length == 300
        assert np.all(result.channel(0) == 0.5)

    def test_pitch_stage(self, processor, make_sine):
        buffer = make_sine(220.0, duration=0.5)
        result = processor.process_audio(buffer, ProcessingSettings(pitch=5))

        assert result.sample_rate == buffer.sample_rate
        assert 0.9 * buffer.length < result.length <= buffer.length

    def test_invalid_mapping(self, processor, sine_440):
        with pytest.raises(ProcessingError):
            processor.process_audio(sine_440, {"pitch": 30})

    def test_fractional_pitch_rejected(self, processor, sine_440):
        with pytest.raises(ProcessingError):
            processor.process_audio(sine_440, {"pitch": 2.7})

    def test_invalid_crop(self, processor, sine_440):
        with pytest.raises(ProcessingError):
            processor.process_audio(sine_440, {"crop": {"enabled": True, "start": 0.5, "end": 0.2}})


class TestApplyVolume:
    def test_no_overload(self, processor, make_constant):
        result = processor.apply_volume(make_constant(0.4, 10), 2.0, "limiter")

        assert not result.clipped
        assert not result.normalized
        assert result.buffer.peak() == pytest.approx(0.8)

    def test_overload_unprotected(self, processor, make_constant):
        result = processor.apply_volume(make_constant(0.6, 10), 2.0, "none")

        assert result.clipped
        assert result.buffer.peak() == pytest.approx(1.2)

    @pytest.mark.parametrize("mode", ["limiter", "softclip"])
    def test_overload_protected(self, processor, make_constant, mode):
        result = processor.apply_volume(make_constant(0.6, 10), 2.0, mode)

        assert not result.clipped
        assert not result.normalized
        assert result.buffer.peak() < 1.0

    def test_overload_normalized(self, processor, make_constant):
        result = processor.apply_volume(make_constant(0.6, 10), 2.0, "normalize")

        assert result.normalized
        assert result.buffer.peak() == pytest.approx(0.99)

    def test_unknown_mode(self, processor, sine_440):
        with pytest.raises(ProcessingError):
            processor.apply_volume(sine_440, 1.0, "crush")


class TestCombinations:
    def test_join(self, processor, make_sine):
        a = make_sine(440.0, duration=0.2)
        b = make_sine(330.0, duration=0.3)
        assert processor.join(a, b).length == a.length + b.length

    def test_mix_uses_headroom(self, processor, make_constant):
        result = processor.mix(make_constant(1.5, 10), make_constant(1.5, 10))

        assert result.normalized
        assert result.buffer.peak() == pytest.approx(0.99)

    def test_detect_clipping(self, processor, make_constant):
        assert processor.detect_clipping(make_constant(0.6, 10), 2.0).clipped


class TestTransposeToKey:
    def test_unknown_key(self, processor, sine_440):
        with pytest.raises(ConfigurationError):
            processor.transpose_to_key(sine_440, "H")

    def test_silence_unchanged(self, processor, silence):
        assert processor.transpose_to_key(silence, "C") is silence

    def test_in_key_unchanged(self, processor, sine_440):
        assert processor.transpose_to_key(sine_440, "C") is sine_440

    def test_out_of_key_shifted(self, processor, make_sine):
        f_sharp = make_sine(1479.98)
        result = processor.transpose_to_key(f_sharp, "C")

        assert result is not f_sharp
        assert processor.key_detector.detect_key(result).note_name == "F6"

    def test_single_semitone_shift_can_keep_pitch(self, processor, make_sine):
        # Known limitation of unaligned OLA: A#4 -> A (-1) comes back as A#4
        a_sharp = make_sine(466.16)
        result = processor.transpose_to_key(a_sharp, "C")

        assert result is not a_sharp
        assert processor.key_detector.detect_key(result).note_name == "A#4"


class TestSoften:
    def test_delegates_with_defaults(self, processor, make_sine):
        buffer = make_sine(15000.0, duration=0.2)
        assert processor.soften(buffer).peak() < buffer.peak()
        assert processor.soften(buffer, intensity=0) is buffer


class TestTempo:
    def test_detect_bpm(self, processor, make_clicks):
        estimate = processor.detect_bpm(make_clicks(22000))
        assert estimate.bpm == pytest.approx(60.0 * 44100 / 22000, abs=1.0)

    def test_undetected_clip_keeps_speed(self, processor):
        silent = SampleBuffer.silence(3 * 44100, 44100)
        assert processor.tempo_sync(silent, 120.0) is silent

    def test_known_source_tempo(self, processor, sine_440):
        assert processor.tempo_sync(sine_440, 150.0, source_bpm=120.0).length == 35280

    def test_sync_to_average(self, processor):
        # Short clips count as one beat: 0.5 s -> 120 BPM, 1.5 s -> 80 BPM
        short = SampleBuffer.silence(22050, 44100)
        longer = SampleBuffer.silence(66150, 44100)
        results = processor.sync_tempo([short, longer])

        assert [r.length for r in results] == [26460, 52920]

    def test_sync_without_any_tempo(self, processor):
        silent = SampleBuffer.silence(3 * 44100, 44100)
        assert processor.sync_tempo([silent])[0] is silent


class TestLoudness:
    def test_analyze(self, processor, make_constant):
        assert processor.analyze_loudness(make_constant(0.5, 100)).peak_db == pytest.approx(-6.0206, abs=1e-3)

    def test_configured_target(self, make_constant):
        context = EngineContext.from_config({"loudness": {"target_peak_db": -6.0}})
        (result,) = AudioProcessor(context).normalize_peaks([make_constant(0.25, 100)])
        assert result.peak() == pytest.approx(10 ** (-6.0 / 20), rel=1e-6)

    def test_explicit_target_overrides(self, processor, make_constant):
        (result,) = processor.normalize_peaks([make_constant(0.25, 100)], target_peak_db=-1.0)
        assert result.peak() == pytest.approx(10 ** (-1.0 / 20), rel=1e-6)
