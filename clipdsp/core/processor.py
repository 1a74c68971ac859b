"""
Processing façade for the clip DSP engine.

Applies declarative ProcessingSettings to a buffer and exposes the
combination, volume, key, tempo and loudness helpers the host calls directly.
"""

import logging
from typing import Any, List, Mapping, Optional, Sequence, Union

from clipdsp.analyzers.pitch import BatchPitchDetector
from clipdsp.core.context import CancelToken, EngineContext
from clipdsp.core.models import (
    BpmEstimate,
    ClippingReport,
    LoudnessReport,
    MixResult,
    ProcessingSettings,
    SampleBuffer,
)
from clipdsp.transforms import basic, combine, loudness, pitch_shift, tempo
from clipdsp.transforms.keys import SCALE_NOTES, semitones_to_key
from clipdsp.utils.errors import ConfigurationError, ProcessingError


class AudioProcessor:
    """
    Runs transform pipelines configured by the engine context.

    Stateless apart from the injected context; every call returns new
    buffers.
    """

    def __init__(self, context: Optional[EngineContext] = None):
        """
        Initialize processor.

        Args:
            context: Shared engine context
        """
        self.context = context or EngineContext()
        self.ola_window = int(self.context.setting("transforms.ola_window"))
        self.ola_gain = float(self.context.setting("transforms.ola_gain"))
        self.trim_threshold = float(self.context.setting("transforms.trim_threshold"))
        self.headroom = float(self.context.setting("mix.headroom"))
        self.min_bpm = float(self.context.setting("tempo.min_bpm", tempo.MIN_BPM))
        self.max_bpm = float(self.context.setting("tempo.max_bpm", tempo.MAX_BPM))
        self.tempo_gain = float(self.context.setting("tempo.ola_gain", tempo.TEMPO_OLA_GAIN))
        self.tempo_quality = self.context.setting("tempo.quality", "standard")
        self.target_peak_db = float(self.context.setting("loudness.target_peak_db", loudness.TARGET_PEAK_DB))
        self.limiter_threshold = float(
            self.context.setting("loudness.limiter_threshold", loudness.LIMITER_THRESHOLD)
        )
        self.key_detector = BatchPitchDetector(self.context)
        self.logger = logging.getLogger('processor')

    def process_audio(
        self,
        buffer: SampleBuffer,
        settings: Union[ProcessingSettings, Mapping[str, Any]],
    ) -> SampleBuffer:
        """
        Apply crop, volume, fade in, fade out, playback rate and pitch, in that order.

        No-op stages are skipped. When the rate or pitch stage ran, boundary
        silence is trimmed once more at the end.

        Args:
            buffer: Source buffer
            settings: ProcessingSettings or an equivalent plain mapping

        Returns:
            SampleBuffer: Processed buffer (the input itself for no-op settings)

        Raises:
            ProcessingError: Invalid stage parameters
        """
        if not isinstance(settings, ProcessingSettings):
            try:
                settings = ProcessingSettings.from_dict(settings)
            except (TypeError, ValueError) as e:
                raise ProcessingError(f"Invalid processing settings: {e}", operation="process_audio") from e

        result = buffer
        resampled = False

        if settings.crop.enabled:
            result = basic.crop(result, settings.crop.start, settings.crop.end)

        if settings.volume != 1.0:
            result = basic.gain(result, settings.volume)

        if settings.fade_in.enabled:
            result = basic.fade_in(result, settings.fade_in.duration)

        if settings.fade_out.enabled:
            result = basic.fade_out(result, settings.fade_out.duration)

        if settings.playback_rate != 1.0:
            result = basic.change_playback_rate(result, settings.playback_rate)
            resampled = True

        if settings.pitch != 0:
            result = self.change_pitch(result, settings.pitch)
            resampled = True

        if resampled:
            result = basic.trim_silence(result, self.trim_threshold)

        self.logger.debug(f"Processed {buffer!r} -> {result!r}")
        return result

    def change_pitch(self, buffer: SampleBuffer, semitones: float) -> SampleBuffer:
        """Pitch shift using the configured OLA window and gain."""
        return pitch_shift.change_pitch(
            buffer,
            semitones,
            window_size=self.ola_window,
            ola_gain=self.ola_gain,
            trim_threshold=self.trim_threshold,
        )

    def join(self, a: SampleBuffer, b: SampleBuffer) -> SampleBuffer:
        """Concatenate two buffers (see transforms.combine.join)."""
        return combine.join(a, b)

    def mix(
        self,
        a: SampleBuffer,
        b: SampleBuffer,
        balance1: float = 0.5,
        balance2: float = 0.5,
        auto_normalize: bool = True,
    ) -> MixResult:
        """Weighted mix with the configured headroom (see transforms.combine.mix)."""
        result = combine.mix(a, b, balance1, balance2, auto_normalize, headroom=self.headroom)
        if result.clipped:
            self.logger.warning("Mix clipped; samples clamped to [-1, 1]")
        return result

    def detect_clipping(self, buffer: SampleBuffer, multiplier: float = 1.0) -> ClippingReport:
        """Check whether *multiplier* would push the buffer past full scale."""
        return basic.detect_clipping(buffer, multiplier)

    def apply_volume(
        self,
        buffer: SampleBuffer,
        multiplier: float,
        clipping_mode: str = "none",
    ) -> MixResult:
        """
        Apply gain, then clipping protection if the gain overloads the buffer.

        Args:
            buffer: Source buffer
            multiplier: Linear gain
            clipping_mode: "none", "limiter", "softclip" or "normalize"

        Returns:
            MixResult: clipped is only reported when nothing protected the
            overload; normalized is set when the normalize mode ran
        """
        if clipping_mode not in basic.CLIPPING_MODES:
            raise ProcessingError(
                f"Unknown clipping mode: {clipping_mode!r}",
                operation="apply_volume",
                value=clipping_mode,
            )

        processed = basic.gain(buffer, multiplier)
        report = basic.detect_clipping(buffer, multiplier)

        if report.clipped and clipping_mode != "none":
            self.logger.debug(
                f"Gain {multiplier} peaks at {report.peak_level:.3f}, applying {clipping_mode}"
            )
            processed = basic.protect_clipping(processed, clipping_mode)

        return MixResult(
            buffer=processed,
            normalized=report.clipped and clipping_mode == "normalize",
            clipped=report.clipped and clipping_mode == "none"
        )

    def soften(
        self,
        buffer: SampleBuffer,
        cutoff_frequency: float = 8000.0,
        intensity: float = 50.0,
    ) -> SampleBuffer:
        """Low-pass blend (see transforms.basic.soften)."""
        return basic.soften(buffer, cutoff_frequency, intensity)

    def transpose_to_key(
        self,
        buffer: SampleBuffer,
        target_key: str,
        cancel_token: Optional[CancelToken] = None,
    ) -> SampleBuffer:
        """
        Shift a clip onto the nearest note of *target_key*.

        Detects the clip's dominant note with the batch pitch detector.
        Clips without a detectable note, or already in key, are returned
        unchanged.

        Limitation: the shift goes through change_pitch, whose OLA frames are
        not phase aligned. For small shifts (typically one semitone up or down
        below roughly 700 Hz) the overlap-add pulls the partials back to their
        original frequency, so the perceived pitch may not move. A#4 into C
        major, for example, still detects as A#4.

        Raises:
            ConfigurationError: Unknown target key
        """
        if target_key not in SCALE_NOTES:
            raise ConfigurationError(f"Unknown key: {target_key!r}", config_key="target_key")

        estimate = self.key_detector.detect_key(buffer, cancel_token)
        if estimate is None:
            self.logger.info("No dominant note detected; leaving clip untransposed")
            return buffer

        shift = semitones_to_key(estimate.note_name, target_key)
        if shift is None or shift[0] == 0:
            return buffer

        semitones, target_note = shift
        self.logger.info(
            f"Transposing {estimate.note_name} -> {target_note} ({semitones:+d} semitones)"
        )
        return self.change_pitch(buffer, semitones)

    def detect_bpm(self, buffer: SampleBuffer) -> Optional[BpmEstimate]:
        """Tempo of a clip within the configured BPM range (see transforms.tempo.detect_bpm)."""
        return tempo.detect_bpm(buffer, self.min_bpm, self.max_bpm)

    def tempo_sync(
        self,
        buffer: SampleBuffer,
        target_bpm: float,
        source_bpm: Optional[float] = None,
        quality: Optional[str] = None,
    ) -> SampleBuffer:
        """
        Stretch one clip to *target_bpm* keeping its pitch.

        Args:
            buffer: Source buffer
            target_bpm: Desired tempo
            source_bpm: Known tempo of the clip; detected when omitted
            quality: OLA quality mode, defaults to tempo.quality

        Returns:
            SampleBuffer: Stretched buffer, or the input when no tempo could be detected
        """
        if source_bpm is None:
            estimate = self.detect_bpm(buffer)
            if estimate is None:
                self.logger.info("No tempo detected; leaving clip at its own speed")
                return buffer
            source_bpm = estimate.bpm
        return tempo.tempo_sync(
            buffer,
            source_bpm,
            target_bpm,
            quality=quality or self.tempo_quality,
            ola_gain=self.tempo_gain,
        )

    def sync_tempo(
        self,
        buffers: Sequence[SampleBuffer],
        target_bpm: Optional[float] = None,
        mode: str = "average",
        keep_relative: bool = False,
    ) -> List[SampleBuffer]:
        """
        Bring several clips to one tempo.

        When *target_bpm* is omitted it is chosen from the detected tempos
        with *mode* ("average", "common", "min" or "max").
        """
        estimates = [self.detect_bpm(buffer) for buffer in buffers]
        if target_bpm is None:
            target_bpm = tempo.select_target_bpm(
                [e.bpm for e in estimates if e is not None], mode
            )
            if target_bpm is None:
                self.logger.info("No tempo detected in any clip; nothing to sync")
                return list(buffers)

        self.logger.info(f"Syncing {len(buffers)} clips to {target_bpm:.1f} BPM")
        return tempo.sync_tempo(
            buffers,
            target_bpm,
            keep_relative=keep_relative,
            quality=self.tempo_quality,
            ola_gain=self.tempo_gain,
            estimates=estimates,
        )

    def analyze_loudness(self, buffer: SampleBuffer) -> LoudnessReport:
        """Peak, approximate LUFS and LRA of channel 0."""
        return loudness.analyze_loudness(buffer)

    def normalize_peaks(
        self,
        buffers: Sequence[SampleBuffer],
        target_peak_db: Optional[float] = None,
        keep_relative: bool = False,
        auto_limiter: bool = True,
    ) -> List[SampleBuffer]:
        """Peak-normalise clips to the configured target (see transforms.loudness)."""
        target = self.target_peak_db if target_peak_db is None else target_peak_db
        return loudness.normalize_peaks(
            buffers,
            target_peak_db=target,
            keep_relative=keep_relative,
            auto_limiter=auto_limiter,
            limiter_threshold=self.limiter_threshold,
        )
