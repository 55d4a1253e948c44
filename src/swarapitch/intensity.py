"""
Frame loudness and silence gating.

Loudness is the plain root-mean-square of the (DC-removed) frame. Frames
quieter than the gate are still counted as analysed, they just never vote.
"""

import numpy as np


def frame_rms(frame: np.ndarray) -> float:
    """Root-mean-square amplitude, 0.0 for an empty frame."""
    x = np.asarray(frame, dtype=np.float64)
    if x.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(x * x)))


def rms_to_db(rms: float) -> float:
    """Convert an RMS amplitude to dBFS (-inf for silence)."""
    if rms <= 0:
        return float("-inf")
    return float(20.0 * np.log10(rms))


class SilenceGate:
    """
    Energy gate on frame RMS.

    Attributes:
        threshold: Frames with RMS strictly below this are silent
    """

    def __init__(self, threshold: float):
        self.threshold = float(threshold)

    def is_silent(self, frame: np.ndarray) -> bool:
        return frame_rms(frame) < self.threshold

    def __repr__(self) -> str:
        return f"SilenceGate(threshold={self.threshold})"
