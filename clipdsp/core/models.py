"""
Core data models for the clip DSP engine.

Immutable sample buffers plus the typed results and settings the engine
exchanges with its host.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from clipdsp.utils.errors import InvalidBufferError


@dataclass(frozen=True, eq=False)
class SampleBuffer:
    """
    Immutable multi-channel block of decoded samples.

    Channels are stored as read-only float64 arrays of equal length.
    Every transform returns a new SampleBuffer; nothing mutates in place.
    """

    channels: Tuple[np.ndarray, ...]
    sample_rate: int

    def __post_init__(self) -> None:
        """Validate and freeze channel data."""
        if isinstance(self.sample_rate, bool) or not isinstance(
            self.sample_rate, (int, np.integer)
        ):
            raise InvalidBufferError(
                f"Sample rate must be an integer, got {self.sample_rate!r}",
                reason="sample_rate",
            )
        if self.sample_rate <= 0:
            raise InvalidBufferError(
                f"Sample rate must be positive, got {self.sample_rate}",
                reason="sample_rate",
            )
        if len(self.channels) == 0:
            raise InvalidBufferError("Buffer needs at least one channel", reason="channels")

        frozen = []
        for data in self.channels:
            array = np.array(data, dtype=np.float64)
            if array.ndim != 1:
                raise InvalidBufferError(
                    f"Channel data must be one-dimensional, got shape {array.shape}",
                    reason="channels",
                )
            array.flags.writeable = False
            frozen.append(array)

        lengths = {len(array) for array in frozen}
        if len(lengths) > 1:
            raise InvalidBufferError(
                f"All channels must have the same length, got {sorted(lengths)}",
                reason="channels",
            )

        object.__setattr__(self, 'channels', tuple(frozen))
        object.__setattr__(self, 'sample_rate', int(self.sample_rate))

    @classmethod
    def from_array(cls, data: Union[np.ndarray, Sequence], sample_rate: int) -> "SampleBuffer":
        """
        Build a buffer from a mono array or a (channels, samples) matrix.

        Args:
            data: 1-D samples or 2-D array shaped (channels, samples)
            sample_rate: Sample rate in Hz

        Returns:
            SampleBuffer: New buffer
        """
        array = np.asarray(data, dtype=np.float64)
        if array.ndim == 1:
            return cls((array,), sample_rate)
        if array.ndim == 2:
            return cls(tuple(array), sample_rate)
        raise InvalidBufferError(
            f"Expected 1-D or 2-D sample data, got shape {array.shape}",
            reason="shape",
        )

    @classmethod
    def silence(cls, length: int, sample_rate: int, num_channels: int = 1) -> "SampleBuffer":
        """Create an all-zero buffer."""
        return cls(tuple(np.zeros(length) for _ in range(num_channels)), sample_rate)

    @property
    def length(self) -> int:
        """Samples per channel."""
        return len(self.channels[0])

    @property
    def num_channels(self) -> int:
        """Number of channels."""
        return len(self.channels)

    @property
    def duration(self) -> float:
        """Duration in seconds."""
        return self.length / self.sample_rate

    def channel(self, index: int) -> np.ndarray:
        """Return one channel's (read-only) samples."""
        return self.channels[index]

    def as_array(self) -> np.ndarray:
        """Return a writable (channels, samples) copy."""
        return np.vstack(self.channels)

    def peak(self) -> float:
        """Largest absolute sample value across all channels."""
        if self.length == 0:
            return 0.0
        return float(max(np.max(np.abs(data)) for data in self.channels))

    def copy(self) -> "SampleBuffer":
        """Independent buffer holding the same samples."""
        return SampleBuffer(tuple(np.copy(data) for data in self.channels), self.sample_rate)

    def with_channels(self, channels: Sequence[np.ndarray]) -> "SampleBuffer":
        """New buffer at the same sample rate holding *channels*."""
        return SampleBuffer(tuple(channels), self.sample_rate)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SampleBuffer):
            return NotImplemented
        return (
            self.sample_rate == other.sample_rate
            and self.num_channels == other.num_channels
            and all(np.array_equal(a, b) for a, b in zip(self.channels, other.channels))
        )

    def __repr__(self) -> str:
        return (
            f"SampleBuffer(channels={self.num_channels}, length={self.length}, "
            f"sample_rate={self.sample_rate})"
        )


@dataclass(frozen=True)
class PitchEstimate:
    """Single-frame pitch estimate. frequency == 0 means no pitch found."""

    frequency: float  # Hz
    confidence: float  # [0.0, 1.0]

    def __post_init__(self) -> None:
        """Validate fields."""
        if self.frequency < 0:
            raise ValueError(f"Frequency must be >= 0, got {self.frequency}")
        validate_confidence(self.confidence)

    @classmethod
    def none(cls) -> "PitchEstimate":
        """The 'no pitch found' estimate."""
        return cls(0.0, 0.0)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {'frequency': self.frequency, 'confidence': self.confidence}


@dataclass(frozen=True)
class PitchCurvePoint:
    """One analysis window of a pitch curve."""

    time: float  # seconds
    frequency: float  # Hz
    confidence: float  # [0.0, 1.0]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'time': self.time,
            'frequency': self.frequency,
            'confidence': self.confidence
        }


@dataclass
class Spectrogram:
    """Time x frequency intensity matrix, intensities in [0, 255]."""

    data: np.ndarray  # Shape: (width, height), dtype uint8
    width: int  # frames
    height: int  # frequency bins
    time_step: float  # seconds per frame
    frequency_range: Tuple[float, float]  # (0, nyquist)

    @classmethod
    def empty(cls, sample_rate: Optional[int] = None) -> "Spectrogram":
        """Zero-sized spectrogram used for clips shorter than one window."""
        nyquist = sample_rate / 2 if sample_rate else 0.0
        return cls(
            data=np.zeros((0, 0), dtype=np.uint8),
            width=0,
            height=0,
            time_step=0.0,
            frequency_range=(0.0, float(nyquist)),
        )

    @property
    def is_empty(self) -> bool:
        """True when no frame was computed."""
        return self.width == 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'width': self.width,
            'height': self.height,
            'time_step': self.time_step,
            'frequency_range': list(self.frequency_range),
            'data': self.data.tolist()
        }


@dataclass
class BasicInfo:
    """Clip-level facts that need no signal processing."""

    duration: float  # seconds
    sample_rate: int  # Hz
    channel_count: int
    length: int  # samples per channel

    @classmethod
    def from_buffer(cls, buffer: SampleBuffer) -> "BasicInfo":
        """Read basic facts off a buffer."""
        return cls(
            duration=buffer.duration,
            sample_rate=buffer.sample_rate,
            channel_count=buffer.num_channels,
            length=buffer.length
        )

    @property
    def channel_mode(self) -> str:
        """'mono' or 'stereo' (anything wider counts as stereo)."""
        return "mono" if self.channel_count == 1 else "stereo"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'duration': self.duration,
            'sample_rate': self.sample_rate,
            'channel_count': self.channel_count,
            'channel_mode': self.channel_mode,
            'length': self.length
        }


@dataclass(frozen=True)
class BandRatios:
    """Share of linear spectral energy per frequency band."""

    low: float = 0.0  # 20-250 Hz
    mid: float = 0.0  # 250-4000 Hz
    high: float = 0.0  # 4000 Hz - nyquist

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary."""
        return {'low': self.low, 'mid': self.mid, 'high': self.high}


@dataclass
class FrequencyAnalysis:
    """Spectral features of the representative middle segment."""

    band_ratios: BandRatios
    dominant_frequency: float  # Hz
    spectral_centroid: float  # Hz
    raw_spectrum: np.ndarray  # dB per bin, (-inf, 0]

    @classmethod
    def empty(cls) -> "FrequencyAnalysis":
        """Result used when spectral analysis degrades."""
        return cls(BandRatios(), 0.0, 0.0, np.zeros(0))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (raw spectrum with -inf mapped to None)."""
        return {
            'band_ratios': self.band_ratios.to_dict(),
            'dominant_frequency': self.dominant_frequency,
            'spectral_centroid': self.spectral_centroid,
            'raw_spectrum': [
                float(v) if np.isfinite(v) else None for v in self.raw_spectrum
            ]
        }


@dataclass(frozen=True)
class PitchRange:
    """Lowest and highest confident pitch."""

    min: float = 0.0
    max: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary."""
        return {'min': self.min, 'max': self.max}


@dataclass
class PitchAnalysis:
    """Pitch curve, its summary, and the spectrogram."""

    pitch_curve: List[PitchCurvePoint]
    spectrogram: Spectrogram
    average_pitch: float  # Hz, 0 when unpitched
    pitch_range: PitchRange
    is_pitched: bool

    @classmethod
    def empty(cls, sample_rate: Optional[int] = None) -> "PitchAnalysis":
        """Result used when pitch analysis degrades."""
        return cls([], Spectrogram.empty(sample_rate), 0.0, PitchRange(), False)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'pitch_curve': [point.to_dict() for point in self.pitch_curve],
            'spectrogram': self.spectrogram.to_dict(),
            'average_pitch': self.average_pitch,
            'pitch_range': self.pitch_range.to_dict(),
            'is_pitched': self.is_pitched
        }


@dataclass
class AnalysisResult:
    """Complete analysis result for a clip."""

    basic: BasicInfo
    frequency: FrequencyAnalysis
    pitch: PitchAnalysis

    # Metadata
    processing_time: float = 0.0  # seconds
    analyzer_versions: Dict[str, str] = field(default_factory=dict)
    degraded: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'basic': self.basic.to_dict(),
            'frequency': self.frequency.to_dict(),
            'pitch': self.pitch.to_dict(),
            'processing_time': self.processing_time,
            'analyzer_versions': self.analyzer_versions,
            'degraded': self.degraded
        }

    def to_json(self, indent: int = 2) -> str:
        """Export as JSON string."""
        return json.dumps(self.to_dict(), indent=indent, default=str)

    def is_complete(self) -> bool:
        """True if no analysis step degraded."""
        return not self.degraded

    def get_summary(self) -> str:
        """Get human-readable summary."""
        parts = [
            f"{self.basic.duration:.2f}s",
            f"{self.basic.sample_rate / 1000:.1f} kHz",
            self.basic.channel_mode,
        ]

        if self.frequency.dominant_frequency > 0:
            parts.append(f"Peak: {self.frequency.dominant_frequency:.1f} Hz")

        if self.pitch.is_pitched:
            parts.append(f"Pitch: {self.pitch.average_pitch:.1f} Hz")
        else:
            parts.append("Unpitched")

        return " | ".join(parts)


@dataclass(frozen=True)
class CropSettings:
    """Crop window in seconds."""

    enabled: bool = False
    start: float = 0.0
    end: float = 0.0


@dataclass(frozen=True)
class FadeSettings:
    """Fade ramp length in seconds."""

    enabled: bool = False
    duration: float = 0.0


@dataclass(frozen=True)
class ProcessingSettings:
    """
    Declarative edit applied by AudioProcessor.process_audio.

    Stages run in a fixed order: crop, volume, fade in, fade out,
    playback rate, pitch.
    """

    crop: CropSettings = field(default_factory=CropSettings)
    volume: float = 1.0
    fade_in: FadeSettings = field(default_factory=FadeSettings)
    fade_out: FadeSettings = field(default_factory=FadeSettings)
    playback_rate: float = 1.0
    pitch: int = 0  # semitones

    def __post_init__(self) -> None:
        """Validate fields."""
        if isinstance(self.pitch, bool) or not isinstance(self.pitch, (int, np.integer)):
            raise ValueError(f"Pitch shift must be a whole number of semitones, got {self.pitch!r}")
        if not -12 <= self.pitch <= 12:
            raise ValueError(f"Pitch shift must be in [-12, 12], got {self.pitch}")
        if self.playback_rate <= 0:
            raise ValueError(f"Playback rate must be positive, got {self.playback_rate}")
        if self.volume < 0:
            raise ValueError(f"Volume must be >= 0, got {self.volume}")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProcessingSettings":
        """
        Build settings from a plain mapping.

        Accepts snake_case keys and the camelCase keys the node UI emits
        ("fadeIn", "fadeOut", "playbackRate").
        """
        def section(*names: str) -> Mapping[str, Any]:
            for name in names:
                if data.get(name) is not None:
                    return data[name]
            return {}

        crop = section('crop')
        fade_in = section('fade_in', 'fadeIn')
        fade_out = section('fade_out', 'fadeOut')
        rate = data.get('playback_rate', data.get('playbackRate', 1.0))
        pitch = float(data.get('pitch', 0) or 0)
        if not pitch.is_integer():
            raise ValueError(f"Pitch shift must be a whole number of semitones, got {pitch}")

        return cls(
            crop=CropSettings(
                enabled=bool(crop.get('enabled', False)),
                start=float(crop.get('start', 0.0)),
                end=float(crop.get('end', 0.0))
            ),
            volume=float(data.get('volume', 1.0)),
            fade_in=FadeSettings(
                enabled=bool(fade_in.get('enabled', False)),
                duration=float(fade_in.get('duration', 0.0))
            ),
            fade_out=FadeSettings(
                enabled=bool(fade_out.get('enabled', False)),
                duration=float(fade_out.get('duration', 0.0))
            ),
            playback_rate=float(rate if rate is not None else 1.0),
            pitch=int(pitch)
        )

    def is_noop(self) -> bool:
        """True when process_audio would return its input untouched."""
        return (
            not self.crop.enabled
            and self.volume == 1.0
            and not self.fade_in.enabled
            and not self.fade_out.enabled
            and self.playback_rate == 1.0
            and self.pitch == 0
        )


@dataclass(frozen=True)
class ClippingReport:
    """Outcome of a clipping check for a prospective gain."""

    clipped: bool
    peak_level: float  # peak after gain, linear

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {'clipped': self.clipped, 'peak_level': self.peak_level}


@dataclass(frozen=True)
class MixResult:
    """Mixed buffer plus the clipping/normalization flags callers report."""

    buffer: SampleBuffer
    normalized: bool
    clipped: bool


@dataclass(frozen=True)
class KeyEstimate:
    """Dominant note of a clip, voted across confident windows."""

    note_name: str  # e.g. "A4", "C#5"
    midi_note: int
    frequency: float  # equal-tempered frequency of midi_note, Hz
    confidence: float  # share of confident windows voting for midi_note

    def __post_init__(self) -> None:
        """Validate fields."""
        validate_confidence(self.confidence)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'note_name': self.note_name,
            'midi_note': self.midi_note,
            'frequency': self.frequency,
            'confidence': self.confidence
        }


@dataclass(frozen=True)
class BpmEstimate:
    """Tempo of a clip from onset autocorrelation, or from its length when too short."""

    bpm: float  # folded into the usable tempo range
    confidence: float
    estimated: bool  # True when derived from clip duration instead of onsets
    original_bpm: float  # before octave folding

    def __post_init__(self) -> None:
        """Validate fields."""
        validate_confidence(self.confidence)
        if self.bpm <= 0:
            raise ValueError(f"BPM must be positive, got {self.bpm}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'bpm': self.bpm,
            'confidence': self.confidence,
            'estimated': self.estimated,
            'original_bpm': self.original_bpm
        }


@dataclass(frozen=True)
class LoudnessReport:
    """Sample peak, approximate loudness and loudness range of channel 0."""

    peak_db: float  # dBFS sample peak
    lufs: float  # RMS-based approximation, floored at -100
    lra: float  # spread of 400 ms block levels, dB

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {'peak_db': self.peak_db, 'lufs': self.lufs, 'lra': self.lra}


# Validation helpers

def validate_confidence(confidence: float) -> None:
    """Validate confidence score is in valid range."""
    if not (0.0 <= confidence <= 1.0):
        raise ValueError(f"Confidence must be in [0.0, 1.0], got {confidence}")
