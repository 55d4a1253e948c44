"""
Carnatic swara naming.

Maps a frequency to the nearest of the twelve swarasthanas relative to a
reference tonic (Sa). Positions use just-intonation ratios. This is a pure
lookup applied to an estimate after the fact; it plays no part in detection.

Octave bands:
    mandra  one octave below the tonic's octave
    madhya  the tonic's octave
    tara    one octave above
Other octaves are reported as a signed offset, e.g. "+2" or "-2".
"""

import math
from dataclasses import dataclass
from typing import List, Tuple


# (label, ratio to Sa) for the twelve swarasthanas.
# Ri2/Ga1, Ri3/Ga2, Da2/Ni1 and Da3/Ni2 share positions; the more common
# name is used.
SWARASTHANAS: List[Tuple[str, float]] = [
    ("Sa", 1.0),
    ("Ri1", 16 / 15),
    ("Ri2", 9 / 8),
    ("Ga2", 6 / 5),
    ("Ga3", 5 / 4),
    ("Ma1", 4 / 3),
    ("Ma2", 45 / 32),
    ("Pa", 3 / 2),
    ("Da1", 8 / 5),
    ("Da2", 5 / 3),
    ("Ni2", 9 / 5),
    ("Ni3", 15 / 8),
]

OCTAVE_BANDS = {-1: "mandra", 0: "madhya", 1: "tara"}

_POSITION_CENTS = [1200.0 * math.log2(ratio) for _, ratio in SWARASTHANAS]


@dataclass(frozen=True)
class NoteLabel:
    """A swara name for a frequency."""
    label: str            # e.g. "Pa"
    octave_band: str      # "mandra", "madhya", "tara" or a signed offset
    cents_offset: float   # Deviation from the exact position, in cents

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "octaveBand": self.octave_band,
            "centsOffset": self.cents_offset,
        }


def octave_band_name(octave: int) -> str:
    """Name of an octave relative to the tonic's octave."""
    return OCTAVE_BANDS.get(octave, f"{octave:+d}")


def map_frequency_to_label(frequency: float, reference_tonic: float) -> NoteLabel:
    """
    Nearest swarasthana for a frequency.

    Args:
        frequency: Frequency in Hz
        reference_tonic: Frequency of madhya Sa in Hz

    Returns:
        NoteLabel with the cents offset rounded to 2 decimals

    Raises:
        ValueError: If either frequency is not a positive finite number
    """
    for name, value in (("frequency", frequency), ("reference_tonic", reference_tonic)):
        if not (math.isfinite(value) and value > 0):
            raise ValueError(f"{name} must be a positive finite number, got {value}")

    cents = 1200.0 * math.log2(frequency / reference_tonic)
    octave = math.floor(cents / 1200.0)
    within = cents - 1200.0 * octave

    # The upper Sa (1200 cents) belongs to the next octave.
    candidates = _POSITION_CENTS + [1200.0]
    index = min(range(len(candidates)), key=lambda i: abs(within - candidates[i]))
    offset = within - candidates[index]
    if index == len(_POSITION_CENTS):
        index = 0
        octave += 1

    return NoteLabel(
        label=SWARASTHANAS[index][0],
        octave_band=octave_band_name(octave),
        cents_offset=round(offset, 2),
    )
