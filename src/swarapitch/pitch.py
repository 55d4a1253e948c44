"""
Single-frame fundamental frequency detection.

Three detectors from the autocorrelation family are available. Each one
scans lags between sample_rate / max_frequency and sample_rate / min_frequency,
scores how well the frame matches itself shifted by that lag, and converts
the winning lag to Hz.

Methods:
- "amdf": Average magnitude difference function. Minimum-seeking. The first
  valley that dips below a cut-off is taken, which avoids locking onto
  multiples of the period.
- "cc": Energy-normalized cross-correlation on the raw frame (Boersma's
  "cc" method without path finding). Maximum-seeking.
- "ac": Hanning-windowed autocorrelation divided by the autocorrelation of
  the window itself. From Boersma (1993) Eq. 9:
      r_x(τ) ≈ r_a(τ) / r_w(τ)

The correlation methods add a small per-octave bonus to higher candidates
(Boersma 1993 Eq. 24) so that a peak at twice the period does not win over
the true period on near-perfectly periodic input.

All methods refine the winning lag with parabolic interpolation and return
None when the frame cannot hold a full period at min_frequency, when the
score curve is degenerate, or when the result is non-finite or out of band.
"""

from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

import numpy as np

from .config import ConfigurationError, EstimatorConfig, METHODS


@dataclass(frozen=True)
class FrameVerdict:
    """Analysis outcome for one frame."""
    index: int                   # Position in the frame sequence
    start: int                   # First sample index in the buffer
    rms: float                   # Loudness after DC removal
    frequency: Optional[float]   # Hz, None if silent or no pitch found
    silent: bool = False         # Rejected by the silence gate

    @property
    def voiced(self) -> bool:
        """Whether this frame produced a frequency vote."""
        return self.frequency is not None

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "start": self.start,
            "rms": round(self.rms, 6),
            "frequency": None if self.frequency is None else round(self.frequency, 2),
            "silent": self.silent,
        }


def lag_range(sample_rate: float, min_frequency: float, max_frequency: float,
              n_samples: int) -> Optional[Tuple[int, int]]:
    """
    Integer lag search range for a frame.

    Args:
        sample_rate: Sample rate in Hz
        min_frequency: Lowest pitch (sets the longest lag)
        max_frequency: Highest pitch (sets the shortest lag)
        n_samples: Frame length

    Returns:
        (min_lag, max_lag), or None if the frame is too short to contain
        one full period at min_frequency or the range is empty
    """
    min_lag = max(1, int(np.ceil(sample_rate / max_frequency)))
    max_lag = int(np.floor(sample_rate / min_frequency))
    if max_lag >= n_samples or min_lag >= max_lag:
        return None
    return (min_lag, max_lag)


def _parabolic_offset(y0: float, y1: float, y2: float) -> float:
    """
    Sub-sample offset of the extremum through three equally spaced points.

    Returns 0.0 when the points are collinear or the vertex lies more than
    one sample away.
    """
    denom = y0 - 2 * y1 + y2
    if abs(denom) <= 1e-12:
        return 0.0
    delta = 0.5 * (y0 - y2) / denom
    if abs(delta) >= 1:
        return 0.0
    return float(delta)


# =============================================================================
# AMDF
# =============================================================================

def _compute_amdf(x: np.ndarray, min_lag: int, max_lag: int) -> np.ndarray:
    """
    Average magnitude difference for lags min_lag..max_lag.

        D(τ) = mean |x[n] - x[n+τ]|,  n = 0 .. N-τ-1

    Averaging (rather than summing) keeps long lags, which overlap fewer
    samples, on the same scale as short ones.
    """
    n = len(x)
    d = np.empty(max_lag - min_lag + 1)
    for i, lag in enumerate(range(min_lag, max_lag + 1)):
        d[i] = np.mean(np.abs(x[:n - lag] - x[lag:]))
    return d


def _find_amdf_lag(d: np.ndarray, min_lag: int, sensitivity: float,
                   ratio: float) -> Optional[float]:
    """
    Pick the period from an AMDF curve.

    The first stretch below the cut-off whose minimum lies past min_lag is
    the valley. A stretch bottoming out at min_lag is the curve climbing
    out of lag 0 and is skipped.

    Args:
        d: AMDF values, d[0] is lag min_lag
        min_lag: Lag of d[0]
        sensitivity: Cut-off as fraction of (max - min) above the minimum
        ratio: The chosen minimum must satisfy D * ratio < max(D)

    Returns:
        Fractional lag, or None if no clear valley exists
    """
    if not np.all(np.isfinite(d)):
        return None
    lo = float(np.min(d))
    hi = float(np.max(d))
    if hi <= lo:
        return None

    cutoff = lo + sensitivity * (hi - lo)
    for first, last in _runs_below(d, cutoff):
        best = first + int(np.argmin(d[first:last + 1]))
        if best == 0:
            continue
        if d[best] * ratio >= hi:
            return None

        lag = float(best + min_lag)
        if best < len(d) - 1:
            lag += _parabolic_offset(d[best - 1], d[best], d[best + 1])
        return lag

    return None


def _runs_below(d: np.ndarray, cutoff: float) -> Iterator[Tuple[int, int]]:
    """(first, last) index pairs of contiguous stretches where d <= cutoff."""
    below = np.concatenate(([0], (d <= cutoff).astype(np.int8), [0]))
    edges = np.flatnonzero(np.diff(below))
    return zip(edges[::2], edges[1::2] - 1)


# =============================================================================
# Correlation methods
# =============================================================================

def _compute_cross_correlation(x: np.ndarray, min_lag: int, max_lag: int) -> np.ndarray:
    """
    Normalized cross-correlation between the frame and its shifted self.

        r(τ) = Σ x[i]·x[i+τ] / sqrt(Σ x[0:n-τ]² · Σ x[τ:n]²)

    Values are filled for lags min_lag-1 .. max_lag+1 so peaks at the range
    ends can be tested against both neighbours. Other entries are 0.

    Returns:
        Array indexed by lag
    """
    n = len(x)
    r = np.zeros(max_lag + 2)

    for lag in range(max(1, min_lag - 1), min(max_lag + 2, n)):
        x1 = x[:n - lag]
        x2 = x[lag:]
        energy = np.sum(x1 * x1) * np.sum(x2 * x2)
        if energy > 0:
            r[lag] = np.sum(x1 * x2) / np.sqrt(energy)

    return r


def _hanning_window(n: int) -> np.ndarray:
    """Generate Hanning window."""
    if n <= 1:
        return np.array([1.0])
    i = np.arange(n)
    return 0.5 - 0.5 * np.cos(2 * np.pi * i / (n - 1))


def _autocorrelation(x: np.ndarray, max_lag: int) -> np.ndarray:
    """Raw autocorrelation for lags 0..max_lag, computed through the FFT."""
    n = len(x)
    size = 1 << int(np.ceil(np.log2(2 * n)))
    spectrum = np.fft.rfft(x, size)
    r = np.fft.irfft(spectrum * np.conj(spectrum), size)
    return r[:max_lag + 1]


def _compute_normalized_autocorrelation(x: np.ndarray, max_lag: int) -> np.ndarray:
    """
    Windowed autocorrelation corrected for the window shape.

    From Boersma (1993) Eq. 9, normalized so that r(0) = 1. Lags where the
    window autocorrelation vanishes are set to 0.

    Returns:
        Array indexed by lag, 0..max_lag+1 (zeros if the frame has no energy)
    """
    window = _hanning_window(len(x))
    r_a = _autocorrelation(x * window, max_lag + 1)
    r_w = _autocorrelation(window, max_lag + 1)

    r = np.zeros(max_lag + 2)
    if r_a[0] <= 0 or r_w[0] <= 0:
        return r

    valid = r_w > 1e-12 * r_w[0]
    r[valid] = (r_a[valid] / r_a[0]) / (r_w[valid] / r_w[0])
    return r


def _find_correlation_lag(r: np.ndarray, min_lag: int, max_lag: int,
                          sample_rate: float, min_frequency: float,
                          voicing_threshold: float,
                          octave_cost: float) -> Optional[float]:
    """
    Choose the best correlation peak in [min_lag, max_lag].

    Peaks weaker than voicing_threshold are ignored. Remaining peaks are
    ranked by strength plus octave_cost per octave above min_frequency.

    Returns:
        Fractional lag, or None if there is no qualifying peak
    """
    best_lag = None
    best_score = -np.inf

    for lag in range(min_lag, min(max_lag + 1, len(r) - 1)):
        if r[lag] > r[lag - 1] and r[lag] > r[lag + 1]:
            strength = r[lag]
            if not np.isfinite(strength) or strength < voicing_threshold:
                continue
            freq = sample_rate / lag
            # Boersma (1993) Eq. 24
            score = strength - octave_cost * np.log2(min_frequency / freq)
            if score > best_score:
                best_score = score
                best_lag = lag

    if best_lag is None:
        return None

    return best_lag + _parabolic_offset(r[best_lag - 1], r[best_lag], r[best_lag + 1])


# =============================================================================
# Estimator
# =============================================================================

class FrequencyEstimator:
    """
    Stateless per-frame pitch detector.

    Attributes:
        sample_rate: Sample rate in Hz
        min_frequency: Lowest accepted pitch in Hz
        max_frequency: Highest accepted pitch in Hz
        method: "amdf", "cc" or "ac"
    """

    def __init__(
        self,
        sample_rate: float,
        min_frequency: float = 60.0,
        max_frequency: float = 1200.0,
        method: str = "amdf",
        amdf_sensitivity: float = 0.1,
        amdf_ratio: float = 5.0,
        voicing_threshold: float = 0.45,
        octave_cost: float = 0.01
    ):
        if not sample_rate > 0:
            raise ConfigurationError(f"sample_rate must be positive, got {sample_rate}")
        if not min_frequency > 0:
            raise ConfigurationError(f"min_frequency must be positive, got {min_frequency}")
        if not max_frequency > min_frequency:
            raise ConfigurationError(
                f"max_frequency ({max_frequency}) must be greater than "
                f"min_frequency ({min_frequency})"
            )
        if method not in METHODS:
            raise ConfigurationError(f"Unknown method '{method}'. Choose from {METHODS}")

        self.sample_rate = float(sample_rate)
        self.min_frequency = float(min_frequency)
        self.max_frequency = float(max_frequency)
        self.method = method
        self.amdf_sensitivity = amdf_sensitivity
        self.amdf_ratio = amdf_ratio
        self.voicing_threshold = voicing_threshold
        self.octave_cost = octave_cost

    @classmethod
    def from_config(cls, sample_rate: float, config: EstimatorConfig) -> "FrequencyEstimator":
        """Build an estimator for one buffer's sample rate."""
        return cls(
            sample_rate,
            min_frequency=config.min_frequency,
            max_frequency=config.max_frequency,
            method=config.method,
            amdf_sensitivity=config.amdf_sensitivity,
            amdf_ratio=config.amdf_ratio,
            voicing_threshold=config.voicing_threshold,
            octave_cost=config.octave_cost,
        )

    def find_lag(self, frame: np.ndarray) -> Optional[float]:
        """
        Best-matching (fractional) lag in samples, or None.

        The frame is expected to be DC-removed already.
        """
        x = np.asarray(frame, dtype=np.float64)
        lags = lag_range(self.sample_rate, self.min_frequency, self.max_frequency, len(x))
        if lags is None:
            return None
        min_lag, max_lag = lags

        if self.method == "amdf":
            d = _compute_amdf(x, min_lag, max_lag)
            return _find_amdf_lag(d, min_lag, self.amdf_sensitivity, self.amdf_ratio)

        if self.method == "cc":
            r = _compute_cross_correlation(x, min_lag, max_lag)
        else:
            r = _compute_normalized_autocorrelation(x, max_lag)
        return _find_correlation_lag(
            r, min_lag, max_lag, self.sample_rate, self.min_frequency,
            self.voicing_threshold, self.octave_cost
        )

    def estimate(self, frame: np.ndarray) -> Optional[float]:
        """
        Estimate the fundamental frequency of one frame.

        Args:
            frame: DC-removed samples that passed the silence gate

        Returns:
            Frequency in Hz within [min_frequency, max_frequency], or None
        """
        lag = self.find_lag(frame)
        if lag is None or not lag > 0:
            return None

        freq = self.sample_rate / lag
        if not np.isfinite(freq):
            return None
        if freq < self.min_frequency or freq > self.max_frequency:
            return None
        return float(freq)

    def __repr__(self) -> str:
        return (f"FrequencyEstimator(method={self.method!r}, "
                f"band=[{self.min_frequency}, {self.max_frequency}] Hz, "
                f"sample_rate={self.sample_rate})")
