"""
Spectrogram builder for the clip DSP engine.

Short-time dB spectra of channel 0, quantized to 8-bit intensities for
heat-map display.
"""

from typing import Optional

import numpy as np

from clipdsp.core.analyzer_base import BaseAnalyzer, ProgressFn
from clipdsp.core.context import CancelToken, EngineContext, poll
from clipdsp.core.models import SampleBuffer, Spectrogram

# dB range mapped linearly onto 0..255
DB_RANGE = (-100.0, 0.0)


def db_to_intensity(spectrum_db: np.ndarray) -> np.ndarray:
    """Map dB values in DB_RANGE to uint8; -inf and anything below maps to 0."""
    low, high = DB_RANGE
    clean = np.nan_to_num(spectrum_db, nan=low, neginf=low, posinf=high)
    scaled = (np.clip(clean, low, high) - low) / (high - low) * 255.0
    return np.round(scaled).astype(np.uint8)


def frame_count(length: int, window: int, hop: int) -> int:
    """Number of full windows that fit in *length* samples."""
    if length < window:
        return 0
    return (length - window) // hop + 1


class SpectrogramBuilder(BaseAnalyzer[Spectrogram]):
    """
    STFT magnitude heat map.

    Window 512, hop 128, Hann. Height is window / 2 bins spanning
    0..nyquist; width is the number of full windows in the clip.
    """

    def __init__(self, context: Optional[EngineContext] = None):
        """Initialize spectrogram builder."""
        super().__init__("spectrogram", "1.0.0", context)
        self.window_size = int(self.context.setting("spectrogram.window_size"))
        self.hop_size = int(self.context.setting("spectrogram.hop_size"))
        self._window = np.hanning(self.window_size)

    def build(
        self,
        buffer: SampleBuffer,
        cancel_token: Optional[CancelToken] = None,
        on_progress: Optional[ProgressFn] = None,
    ) -> Spectrogram:
        """
        Build the spectrogram of channel 0.

        Args:
            buffer: SampleBuffer to analyze
            cancel_token: Polled every yield_interval frames
            on_progress: Optional sub-progress sink

        Returns:
            Spectrogram: Spectrogram.empty() for clips shorter than one window
        """
        samples = buffer.channel(0)
        sr = buffer.sample_rate
        width = frame_count(len(samples), self.window_size, self.hop_size)
        if width == 0:
            self.logger.debug(
                f"Clip shorter than one window ({len(samples)} < {self.window_size})"
            )
            return Spectrogram.empty(sr)

        height = self.window_size // 2
        data = np.zeros((width, height), dtype=np.uint8)
        estimator = self.context.estimator
        interval = self.context.yield_interval

        for frame in range(width):
            poll(cancel_token, frame, interval)
            start = frame * self.hop_size
            windowed = samples[start:start + self.window_size] * self._window
            data[frame] = db_to_intensity(estimator.magnitude_db(windowed))
            if on_progress is not None:
                on_progress((frame + 1) / width)

        return Spectrogram(
            data=data,
            width=width,
            height=height,
            time_step=self.hop_size / sr,
            frequency_range=(0.0, sr / 2)
        )

    def _analyze_impl(
        self,
        buffer: SampleBuffer,
        cancel_token: Optional[CancelToken],
        on_progress: ProgressFn,
    ) -> Spectrogram:
        return self.build(buffer, cancel_token, on_progress)
