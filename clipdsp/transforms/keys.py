"""
Musical key tables and nearest-in-key transposition.
"""

import re
from typing import Dict, List, Optional, Tuple

from clipdsp.utils.errors import ConfigurationError

NOTE_NAMES: List[str] = ['C', 'C#', 'D', 'D#', 'E', 'F', 'F#', 'G', 'G#', 'A', 'A#', 'B']

MAJOR_STEPS: Tuple[int, ...] = (0, 2, 4, 5, 7, 9, 11)
MINOR_STEPS: Tuple[int, ...] = (0, 2, 3, 5, 7, 8, 10)


def _scale(root: int, steps: Tuple[int, ...]) -> List[int]:
    return [(root + step) % 12 for step in steps]


# Pitch classes of each key, scanned from the tonic upwards
SCALE_NOTES: Dict[str, List[int]] = {
    **{name: _scale(root, MAJOR_STEPS) for root, name in enumerate(NOTE_NAMES)},
    **{f"{name}m": _scale(root, MINOR_STEPS) for root, name in enumerate(NOTE_NAMES)},
}

_NOTE_PATTERN = re.compile(r"^([A-G]#?)-?\d*$")


def pitch_class(note_name: str) -> Optional[int]:
    """'C#4' -> 1; None when the name is not a sharp-spelled note."""
    match = _NOTE_PATTERN.match(note_name.strip())
    if match is None:
        return None
    return NOTE_NAMES.index(match.group(1))


def semitones_to_key(note_name: str, target_key: str) -> Optional[Tuple[int, str]]:
    """
    Smallest shift moving *note_name* onto a note of *target_key*.

    Distances wrap into [-6, 6]; on equal distance the scale degree
    scanned first wins.

    Args:
        note_name: Detected note, e.g. "A4" or "C#"
        target_key: Key such as "C", "F#" or "Am"

    Returns:
        (semitones, target_note) or None when note_name cannot be parsed

    Raises:
        ConfigurationError: Unknown target key
    """
    scale = SCALE_NOTES.get(target_key)
    if scale is None:
        raise ConfigurationError(
            f"Unknown key: {target_key!r}",
            config_key="target_key"
        )

    detected = pitch_class(note_name)
    if detected is None:
        return None

    best_distance, best_note = None, NOTE_NAMES[detected]
    for scale_note in scale:
        distance = scale_note - detected
        if distance > 6:
            distance -= 12
        if distance < -6:
            distance += 12
        if best_distance is None or abs(distance) < abs(best_distance):
            best_distance, best_note = distance, NOTE_NAMES[scale_note]

    return best_distance, best_note
