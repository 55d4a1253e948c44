"""
swarapitch - Robust single-value pitch estimation for recorded clips.

Turns a complete, already-captured monophonic recording into one stable
fundamental frequency plus a confidence score. The buffer is cut into
overlapping frames, each frame has its DC offset removed and is gated on
loudness, voiced frames vote with an autocorrelation-family detector, and
the votes are reduced by their median.

Usage:
    from swarapitch import SampleBuffer, EstimatorConfig, estimate_pitch

    buffer = SampleBuffer.from_file("recording.wav")
    estimate = estimate_pitch(buffer)
    print(estimate.frequency, estimate.confidence)

    # Different detector and band
    config = EstimatorConfig(method="cc", min_frequency=80, max_frequency=800)
    estimate = estimate_pitch(buffer, config)

    # Name the result relative to a tonic
    from swarapitch import map_frequency_to_label
    label = map_frequency_to_label(estimate.frequency, reference_tonic=146.83)

Configuration (in order of precedence):
    1. Keyword overrides to load_config()
    2. SWARAPITCH_<FIELD> environment variables
    3. Config file (./swarapitch.toml or ~/.swarapitch/config.toml)
    4. EstimatorConfig defaults
"""

import logging

from .aggregate import Aggregator, PitchEstimate, median
from .config import ConfigurationError, EstimatorConfig, load_config
from .frames import Frame, FrameSequence, frame_buffer, remove_dc
from .intensity import SilenceGate, frame_rms
from .notes import NoteLabel, map_frequency_to_label
from .pitch import FrameVerdict, FrequencyEstimator
from .service import PitchService, estimate_pitch, estimate_pitch_from_samples
from .sound import AudioDecodeError, SampleBuffer

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"
__all__ = [
    "SampleBuffer",
    "AudioDecodeError",
    "EstimatorConfig",
    "ConfigurationError",
    "load_config",
    "Frame",
    "FrameSequence",
    "frame_buffer",
    "remove_dc",
    "SilenceGate",
    "frame_rms",
    "FrameVerdict",
    "FrequencyEstimator",
    "Aggregator",
    "PitchEstimate",
    "median",
    "PitchService",
    "estimate_pitch",
    "estimate_pitch_from_samples",
    "NoteLabel",
    "map_frequency_to_label",
]
