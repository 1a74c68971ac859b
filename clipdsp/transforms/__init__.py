"""
Pure buffer-to-buffer transforms.
"""

from clipdsp.transforms.basic import (
    crop,
    gain,
    detect_clipping,
    fade_in,
    fade_out,
    change_playback_rate,
    trim_silence,
    apply_limiter,
    apply_soft_clip,
    normalize,
    protect_clipping,
    soften,
)
from clipdsp.transforms.pitch_shift import change_pitch, time_stretch_ola
from clipdsp.transforms.combine import resample_buffer, join, mix
from clipdsp.transforms.keys import SCALE_NOTES, semitones_to_key
from clipdsp.transforms.tempo import detect_bpm, select_target_bpm, tempo_sync, sync_tempo
from clipdsp.transforms.loudness import analyze_loudness, normalize_peaks, soft_limit

__all__ = [
    "crop",
    "gain",
    "detect_clipping",
    "fade_in",
    "fade_out",
    "change_playback_rate",
    "trim_silence",
    "apply_limiter",
    "apply_soft_clip",
    "normalize",
    "protect_clipping",
    "soften",
    "change_pitch",
    "time_stretch_ola",
    "resample_buffer",
    "join",
    "mix",
    "SCALE_NOTES",
    "semitones_to_key",
    "detect_bpm",
    "select_target_bpm",
    "tempo_sync",
    "sync_tempo",
    "analyze_loudness",
    "normalize_peaks",
    "soft_limit",
]
