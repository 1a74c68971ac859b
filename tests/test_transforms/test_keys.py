"""Tests for key tables and nearest-in-key transposition."""

import pytest

from clipdsp.transforms.keys import SCALE_NOTES, pitch_class, semitones_to_key
from clipdsp.utils.errors import ConfigurationError


class TestScaleNotes:
    def test_twenty_four_keys(self):
        assert len(SCALE_NOTES) == 24
        assert all(len(notes) == 7 for notes in SCALE_NOTES.values())

    def test_c_major_and_a_minor_share_notes(self):
        assert SCALE_NOTES["C"] == [0, 2, 4, 5, 7, 9, 11]
        assert SCALE_NOTES["Am"] == [9, 11, 0, 2, 4, 5, 7]
        assert sorted(SCALE_NOTES["C"]) == sorted(SCALE_NOTES["Am"])

    def test_sharp_key(self):
        assert SCALE_NOTES["C#"] == [1, 3, 5, 6, 8, 10, 0]


class TestPitchClass:
    @pytest.mark.parametrize("name,expected", [("C4", 0), ("C#4", 1), ("A", 9), ("B-1", 11)])
    def test_parse(self, name, expected):
        assert pitch_class(name) == expected

    @pytest.mark.parametrize("name", ["H2", "", "Db4"])
    def test_unparseable(self, name):
        assert pitch_class(name) is None


class TestSemitonesToKey:
    def test_in_key_note_stays(self):
        assert semitones_to_key("A4", "C") == (0, "A")

    def test_first_scanned_degree_wins_ties(self):
        # C# is one semitone from both C and D; C is scanned first
        assert semitones_to_key("C#4", "C") == (-1, "C")

    def test_minor_key(self):
        assert semitones_to_key("F#3", "Cm") == (-1, "F")

    def test_wraps_around_octave(self):
        # B sits between A# (-1) and C (+1) in C# major; A# is scanned first
        assert semitones_to_key("B3", "C#") == (-1, "A#")

    def test_unknown_key(self):
        with pytest.raises(ConfigurationError):
            semitones_to_key("A4", "Hm")

    def test_unparseable_note(self):
        assert semitones_to_key("??", "C") is None
