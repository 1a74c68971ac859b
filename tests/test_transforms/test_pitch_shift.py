"""Tests for OLA time-stretch and pitch shifting."""

import numpy as np
import pytest

from clipdsp.analyzers.spectral import SpectralAnalyzer
from clipdsp.core.models import SampleBuffer
from clipdsp.transforms.pitch_shift import change_pitch, resample_linear, time_stretch_ola


class TestTimeStretch:
    @pytest.mark.parametrize("ratio", [0.5, 0.8909, 1.5, 2.0])
    def test_output_length(self, ratio):
        samples = np.sin(np.arange(10000) * 0.05)
        stretched = time_stretch_ola(samples, ratio)
        assert len(stretched) == int(round(10000 * ratio))

    def test_short_input_single_frame(self):
        stretched = time_stretch_ola(np.ones(100), 2.0)
        assert len(stretched) == 200
        assert np.all(np.isfinite(stretched))

    def test_empty_input(self):
        assert len(time_stretch_ola(np.zeros(0), 2.0)) == 0


class TestResampleLinear:
    def test_reads_at_ratio_positions(self):
        samples = np.arange(10, dtype=float)
        assert np.allclose(resample_linear(samples, 2.0, 5), [0, 2, 4, 6, 8])
        assert np.allclose(resample_linear(samples, 0.5, 4), [0, 0.5, 1.0, 1.5])


class TestChangePitch:
    def test_zero_semitones_is_identity(self, sine_440):
        assert change_pitch(sine_440, 0) is sine_440

    @pytest.mark.parametrize("semitones", [-12, -5, 3, 12])
    def test_length_close_to_original(self, make_sine, semitones):
        buffer = make_sine(220.0)
        shifted = change_pitch(buffer, semitones)

        assert 0.9 * buffer.length < shifted.length <= buffer.length
        assert shifted.sample_rate == buffer.sample_rate
        assert np.all(np.isfinite(shifted.as_array()))

    def test_octave_up_moves_dominant_frequency(self, make_sine, context):
        # Three cycles per read hop keep successive frames in phase
        frequency = 3 * 44100 / 512
        shifted = change_pitch(make_sine(frequency), 12)
        analysis = SpectralAnalyzer(context).analyze(shifted)
        assert abs(analysis.dominant_frequency - 2 * frequency) < 25.0

    def test_channels_preserved(self, make_sine):
        stereo = make_sine(330.0, duration=0.5, num_channels=2)
        shifted = change_pitch(stereo, 4)
        assert shifted.num_channels == 2

    def test_input_untouched(self, make_sine):
        buffer = make_sine(220.0, duration=0.5)
        before = buffer.copy()
        change_pitch(buffer, 7)
        assert buffer == before

    def test_silence_survives(self):
        silent = SampleBuffer.silence(8192, 44100)
        assert change_pitch(silent, 5).length == 8192
