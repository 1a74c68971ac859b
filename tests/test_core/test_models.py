"""Tests for core data models."""

import json

import numpy as np
import pytest

from clipdsp.core.models import (
    AnalysisResult,
    BasicInfo,
    BpmEstimate,
    FrequencyAnalysis,
    KeyEstimate,
    LoudnessReport,
    PitchAnalysis,
    PitchEstimate,
    ProcessingSettings,
    SampleBuffer,
    Spectrogram,
)
from clipdsp.utils.errors import InvalidBufferError


class TestSampleBuffer:
    def test_derived_properties(self):
        buffer = SampleBuffer((np.zeros(22050), np.zeros(22050)), 44100)
        assert buffer.length == 22050
        assert buffer.num_channels == 2
        assert buffer.duration == pytest.approx(0.5)

    def test_channels_are_read_only(self):
        data = np.zeros(10)
        buffer = SampleBuffer((data,), 100)

        with pytest.raises(ValueError):
            buffer.channel(0)[0] = 1.0
        data[0] = 5.0  # caller's array is decoupled
        assert buffer.channel(0)[0] == 0.0

    def test_unequal_channels_rejected(self):
        with pytest.raises(InvalidBufferError):
            SampleBuffer((np.zeros(10), np.zeros(11)), 100)

    @pytest.mark.parametrize("rate", [0, -44100, 44100.0, True])
    def test_bad_sample_rate_rejected(self, rate):
        with pytest.raises(InvalidBufferError):
            SampleBuffer((np.zeros(10),), rate)

    def test_no_channels_rejected(self):
        with pytest.raises(InvalidBufferError):
            SampleBuffer((), 44100)

    def test_two_dimensional_channel_rejected(self):
        with pytest.raises(InvalidBufferError):
            SampleBuffer((np.zeros((2, 5)),), 44100)

    def test_from_array(self):
        stereo = SampleBuffer.from_array(np.ones((2, 8)), 8000)
        mono = SampleBuffer.from_array([0.1, 0.2], 8000)

        assert stereo.num_channels == 2
        assert mono.num_channels == 1
        with pytest.raises(InvalidBufferError):
            SampleBuffer.from_array(np.zeros((1, 2, 3)), 8000)

    def test_equality_and_copy(self):
        buffer = SampleBuffer((np.arange(5.0),), 10)
        assert buffer.copy() == buffer
        assert buffer != SampleBuffer((np.arange(5.0),), 20)

    def test_peak(self):
        buffer = SampleBuffer((np.array([0.1, -0.7]), np.array([0.3, 0.2])), 10)
        assert buffer.peak() == pytest.approx(0.7)
        assert SampleBuffer.silence(0, 10).peak() == 0.0


class TestResultModels:
    def test_pitch_estimate_validation(self):
        with pytest.raises(ValueError):
            PitchEstimate(440.0, 1.5)
        with pytest.raises(ValueError):
            PitchEstimate(-1.0, 0.5)
        assert PitchEstimate.none().frequency == 0.0

    def test_key_estimate_validation(self):
        with pytest.raises(ValueError):
            KeyEstimate("A4", 69, 440.0, 2.0)

    def test_bpm_estimate_validation(self):
        with pytest.raises(ValueError):
            BpmEstimate(0.0, 0.5, True, 0.0)
        assert BpmEstimate(120.0, 0.5, True, 240.0).to_dict()["original_bpm"] == 240.0

    def test_loudness_report_dict(self):
        assert LoudnessReport(-1.0, -4.0, 0.0).to_dict() == {"peak_db": -1.0, "lufs": -4.0, "lra": 0.0}

    def test_spectrogram_empty(self):
        spectrogram = Spectrogram.empty(48000)
        assert spectrogram.is_empty
        assert spectrogram.frequency_range == (0.0, 24000.0)

    def test_channel_mode(self):
        assert BasicInfo(1.0, 44100, 1, 44100).channel_mode == "mono"
        assert BasicInfo(1.0, 44100, 2, 44100).channel_mode == "stereo"

    def test_analysis_result_serializes(self):
        raw = np.array([-np.inf, -12.0])
        result = AnalysisResult(
            basic=BasicInfo(1.0, 44100, 1, 44100),
            frequency=FrequencyAnalysis(FrequencyAnalysis.empty().band_ratios, 440.0, 450.0, raw),
            pitch=PitchAnalysis.empty(44100),
        )
        data = json.loads(result.to_json())

        assert data["frequency"]["raw_spectrum"] == [None, -12.0]
        assert data["basic"]["channel_mode"] == "mono"
        assert result.is_complete()
        assert "Unpitched" in result.get_summary()


class TestProcessingSettings:
    def test_defaults_are_noop(self):
        assert ProcessingSettings().is_noop()

    def test_from_dict_camel_case(self):
        settings = ProcessingSettings.from_dict({
            "crop": {"enabled": True, "start": 0.1, "end": 0.5},
            "volume": 0.8,
            "fadeIn": {"enabled": True, "duration": 0.05},
            "fadeOut": {"enabled": False, "duration": 0.2},
            "playbackRate": 1.25,
            "pitch": -3,
        })

        assert settings.crop.enabled and settings.crop.end == 0.5
        assert settings.fade_in.duration == 0.05
        assert not settings.fade_out.enabled
        assert settings.playback_rate == 1.25
        assert settings.pitch == -3
        assert not settings.is_noop()

    def test_from_dict_whole_float_pitch(self):
        assert ProcessingSettings.from_dict({"pitch": 3.0}).pitch == 3

    @pytest.mark.parametrize("pitch", [2.7, -0.5, "1.5"])
    def test_from_dict_rejects_fractional_pitch(self, pitch):
        with pytest.raises(ValueError):
            ProcessingSettings.from_dict({"pitch": pitch})

    def test_from_dict_snake_case(self):
        settings = ProcessingSettings.from_dict({"fade_out": {"enabled": True, "duration": 0.1}})
        assert settings.fade_out.enabled

    @pytest.mark.parametrize("kwargs", [
        {"pitch": 13},
        {"pitch": 1.5},
        {"playback_rate": 0.0},
        {"volume": -0.1},
    ])
    def test_validation(self, kwargs):
        with pytest.raises(ValueError):
            ProcessingSettings(**kwargs)
