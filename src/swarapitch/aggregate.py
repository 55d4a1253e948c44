"""
Reduce per-frame verdicts to one pitch estimate.

Every verdict counts towards the total; only voiced, in-band, finite
frequencies become votes. The median is used by default because single
frames with octave errors or noise produce large outliers that would drag
a mean. Results never depend on the order verdicts arrive in.
"""

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from .config import AGGREGATIONS, ConfigurationError
from .pitch import FrameVerdict


@dataclass(frozen=True)
class PitchEstimate:
    """
    Final pitch estimate for one buffer.

    Invariants:
        voiced_frames <= total_frames
        confidence == voiced_frames / total_frames (0 when no frames)
        frequency is None iff voiced_frames == 0
    """
    frequency: Optional[float]   # Hz, rounded to 2 decimals
    confidence: float            # Voiced ratio in [0, 1], rounded to 2 decimals
    total_frames: int
    voiced_frames: int

    @property
    def voiced(self) -> bool:
        """Whether any frame produced a frequency."""
        return self.frequency is not None

    def to_dict(self) -> dict:
        """External record as returned by the HTTP API and the CLI."""
        return {
            "frequency": self.frequency,
            "confidence": self.confidence,
            "framesAnalyzed": self.total_frames,
            "framesVoiced": self.voiced_frames,
        }


def median(values: Sequence[float]) -> Optional[float]:
    """Median of values; mean of the two middle values for even counts."""
    if not values:
        return None
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return float(ordered[mid])
    return (ordered[mid - 1] + ordered[mid]) / 2.0


class Aggregator:
    """
    Collects frame verdicts for one buffer.

    Not shared between calls; create one per estimation.
    """

    def __init__(self, min_frequency: float, max_frequency: float, mode: str = "median"):
        if mode not in AGGREGATIONS:
            raise ConfigurationError(f"Unknown aggregation '{mode}'. Choose from {AGGREGATIONS}")
        self.min_frequency = min_frequency
        self.max_frequency = max_frequency
        self.mode = mode
        self.total_frames = 0
        self._votes: List[Tuple[int, float]] = []

    @property
    def votes(self) -> List[float]:
        """Accepted frequencies in frame order."""
        return [freq for _, freq in sorted(self._votes)]

    @property
    def voiced_frames(self) -> int:
        return len(self._votes)

    def add(self, verdict: FrameVerdict) -> bool:
        """
        Count a verdict and keep its vote if it has a usable frequency.

        Returns:
            True if the verdict was accepted as a vote
        """
        self.total_frames += 1
        freq = verdict.frequency
        if freq is None or not math.isfinite(freq):
            return False
        if freq < self.min_frequency or freq > self.max_frequency:
            return False
        self._votes.append((verdict.index, freq))
        return True

    def extend(self, verdicts: Iterable[FrameVerdict]) -> "Aggregator":
        for verdict in verdicts:
            self.add(verdict)
        return self

    def result(self) -> PitchEstimate:
        if not self._votes:
            frequency = None
        elif self.mode == "first":
            frequency = min(self._votes)[1]
        else:
            frequency = median([freq for _, freq in self._votes])

        if self.total_frames:
            confidence = self.voiced_frames / self.total_frames
        else:
            confidence = 0.0

        return PitchEstimate(
            frequency=None if frequency is None else round(frequency, 2),
            confidence=round(confidence, 2),
            total_frames=self.total_frames,
            voiced_frames=self.voiced_frames,
        )
