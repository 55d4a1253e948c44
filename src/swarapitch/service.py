"""
Pitch estimation over a complete buffer.

    samples -> frames -> gated frames -> per-frame votes -> estimate

estimate_pitch() is a pure function of its inputs: no I/O, no state kept
between calls, so independent buffers can be estimated concurrently.
Frames are independent of each other, and with max_workers > 1 they are
analysed on a thread pool; verdicts carry their frame index, so the
result is identical to a sequential run.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional

import numpy as np

from .aggregate import Aggregator, PitchEstimate
from .config import EstimatorConfig
from .frames import Frame, frame_buffer
from .intensity import SilenceGate, frame_rms, rms_to_db
from .pitch import FrameVerdict, FrequencyEstimator
from .sound import SampleBuffer

logger = logging.getLogger(__name__)


def analyze_frame(frame: Frame, gate: SilenceGate,
                  estimator: FrequencyEstimator) -> FrameVerdict:
    """Gate one frame and, if loud enough, estimate its frequency."""
    rms = frame_rms(frame.samples)
    if rms < gate.threshold:
        return FrameVerdict(frame.index, frame.start, rms, None, silent=True)
    freq = estimator.estimate(frame.samples)
    return FrameVerdict(frame.index, frame.start, rms, freq)


class PitchService:
    """
    Estimator bound to one configuration.

    The configuration is validated on construction. Instances hold no
    per-call state and may be shared between threads.
    """

    def __init__(self, config: Optional[EstimatorConfig] = None):
        if config is None:
            config = EstimatorConfig()
        self.config = config.validate()

    def analyze_frames(self, buffer: SampleBuffer) -> List[FrameVerdict]:
        """
        Per-frame verdicts for a buffer, in frame order.

        Args:
            buffer: Samples and sample rate

        Returns:
            One FrameVerdict per analysed frame (empty if the buffer is
            shorter than one frame)
        """
        config = self.config
        frames = frame_buffer(buffer.samples, config.frame_size, config.hop_size)
        gate = SilenceGate(config.rms_gate)
        estimator = FrequencyEstimator.from_config(buffer.sample_rate, config)

        if config.max_workers > 1 and len(frames) > 1:
            with ThreadPoolExecutor(max_workers=config.max_workers) as executor:
                verdicts = list(executor.map(
                    lambda frame: analyze_frame(frame, gate, estimator), frames
                ))
            verdicts.sort(key=lambda v: v.index)
        else:
            verdicts = [analyze_frame(frame, gate, estimator) for frame in frames]

        if logger.isEnabledFor(logging.DEBUG):
            for v in verdicts:
                logger.debug(
                    "frame %d @%d: %.1f dBFS %s", v.index, v.start, rms_to_db(v.rms),
                    "silent" if v.silent else
                    ("no pitch" if v.frequency is None else f"{v.frequency:.2f} Hz")
                )
        return verdicts

    def estimate(self, buffer: SampleBuffer) -> PitchEstimate:
        """
        Estimate one fundamental frequency for the whole buffer.

        Returns:
            PitchEstimate; frequency is None when no frame was voiced
        """
        verdicts = self.analyze_frames(buffer)
        result = self.summarize(verdicts)
        logger.debug("%r -> %s Hz (confidence %.2f)", buffer, result.frequency, result.confidence)
        return result

    def summarize(self, verdicts: List[FrameVerdict]) -> PitchEstimate:
        """Reduce verdicts from analyze_frames() to a PitchEstimate."""
        config = self.config
        aggregator = Aggregator(config.min_frequency, config.max_frequency, config.aggregation)
        result = aggregator.extend(verdicts).result()

        silent = sum(1 for v in verdicts if v.silent)
        logger.debug(
            "%d frames (%d silent, %d voiced)",
            result.total_frames, silent, result.voiced_frames
        )
        return result


def estimate_pitch(buffer: SampleBuffer,
                   config: Optional[EstimatorConfig] = None) -> PitchEstimate:
    """
    Estimate the fundamental frequency of a buffer.

    Args:
        buffer: Samples and sample rate
        config: Estimator configuration (defaults to EstimatorConfig())

    Returns:
        PitchEstimate

    Raises:
        ConfigurationError: If the configuration is invalid
    """
    return PitchService(config).estimate(buffer)


def estimate_pitch_from_samples(samples: np.ndarray, sample_rate: int,
                                config: Optional[EstimatorConfig] = None) -> PitchEstimate:
    """Convenience wrapper taking a raw sample array."""
    return estimate_pitch(SampleBuffer(samples, sample_rate), config)
